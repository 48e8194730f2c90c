"""HTTP plumbing shared by the LLM providers."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from coastguard.core.config import LLMConfig
from coastguard.core.errors import ValidationFailureError
from coastguard.llm.client import LLMClient

logger = logging.getLogger(__name__)


def _decode(resp: httpx.Response) -> dict[str, Any]:
    try:
        data = resp.json()
    except ValueError as exc:
        raise ValidationFailureError(f"Provider returned a non-JSON body: {exc}") from exc
    if not isinstance(data, dict):
        raise ValidationFailureError("Provider returned JSON that is not an object")
    return data


def reply_text(value: Any) -> str:
    """The text content of a provider reply; anything but a string is malformed."""
    if not isinstance(value, str):
        raise ValidationFailureError(f"Provider reply content is {type(value).__name__}, not text")
    return value


class HTTPProvider(LLMClient):
    """An LLM client that talks JSON over one pooled ``httpx.AsyncClient``.

    Subclasses build request payloads and pick fields out of the replies;
    :meth:`_post_json` owns retries (5xx and transport errors, exponential
    backoff from 0.5s) and status checking. ``health_path`` is probed with a
    GET by :meth:`is_available`.
    """

    health_path = "/"

    def __init__(self, config: LLMConfig, headers: dict[str, str] | None = None) -> None:
        super().__init__(config)
        self._http = httpx.AsyncClient(
            base_url=config.base_url,
            timeout=httpx.Timeout(config.timeout_seconds),
            headers=headers or {},
        )

    async def is_available(self) -> bool:
        try:
            resp = await self._http.get(self.health_path)
        except httpx.HTTPError:
            return False
        return resp.status_code == 200

    async def close(self) -> None:
        await self._http.aclose()

    async def _post_json(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        attempts = max(1, self.config.max_retries + 1)
        attempt = 1
        while True:
            try:
                resp = await self._http.post(path, json=payload)
            except httpx.TransportError as exc:
                if attempt >= attempts:
                    raise
                reason = str(exc) or type(exc).__name__
            else:
                if resp.status_code < 500 or attempt >= attempts:
                    resp.raise_for_status()
                    return _decode(resp)
                reason = f"HTTP {resp.status_code}"

            delay = 0.5 * 2 ** (attempt - 1)
            logger.warning(
                "POST %s failed (%s), retrying in %.1fs (%d/%d)",
                path, reason, delay, attempt, attempts,
            )
            await asyncio.sleep(delay)
            attempt += 1
