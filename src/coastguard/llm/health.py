"""Reachability probe for the configured LLM backend."""

from __future__ import annotations

import time

from pydantic import BaseModel, Field

from coastguard.core.config import LLMConfig
from coastguard.llm.client import create_llm_client


class HealthStatus(BaseModel):
    service: str
    healthy: bool
    latency_ms: float | None = None
    details: dict = Field(default_factory=dict)


async def check_llm_health(config: LLMConfig) -> HealthStatus:
    """Probe the provider once and time the round trip.

    No request is made when the factory yields no client; the status then
    reports why and the pipeline keeps to its deterministic text and
    heuristic vision verdicts.
    """
    service = f"llm:{config.provider}"
    client = create_llm_client(config)
    if client is None:
        return HealthStatus(
            service=service, healthy=False, details={"reason": "disabled or missing credentials"}
        )

    started = time.monotonic()
    try:
        reachable = await client.is_available()
    except Exception as exc:
        return HealthStatus(service=service, healthy=False, details={"error": str(exc)})
    finally:
        await client.close()

    return HealthStatus(
        service=service,
        healthy=reachable,
        latency_ms=round((time.monotonic() - started) * 1000, 2),
        details={"base_url": config.base_url, "model": config.model, "vision_model": config.vision_model},
    )
