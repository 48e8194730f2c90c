"""Provider-neutral LLM interface used by message enhancement and vision."""

from __future__ import annotations

import abc
import json
import re
from typing import Any

from coastguard.core.config import LLMConfig
from coastguard.core.errors import ValidationFailureError

_JSON_BLOCK = re.compile(r"\{[\s\S]*\}")


class LLMClient(abc.ABC):
    """What the risk pipeline needs from a language model.

    Every call returns the model's raw text. Callers own parsing and treat
    any exception as "no model output" and fall back to deterministic text.
    """

    def __init__(self, config: LLMConfig) -> None:
        self.config = config

    @abc.abstractmethod
    async def generate(
        self,
        prompt: str,
        *,
        system_prompt: str | None = None,
        temperature: float = 0.1,
    ) -> str:
        """Single-turn completion with ``config.model``."""

    @abc.abstractmethod
    async def chat(self, messages: list[dict], *, temperature: float = 0.1) -> str:
        """Multi-turn completion over ``{"role", "content"}`` messages."""

    @abc.abstractmethod
    async def describe_images(
        self,
        prompt: str,
        images: list[bytes],
        *,
        temperature: float = 0.1,
    ) -> str:
        """Ask ``config.vision_model`` about JPEG/PNG images, in order."""

    @abc.abstractmethod
    async def is_available(self) -> bool:
        """Cheap reachability probe; never raises."""

    async def close(self) -> None:
        """Release connections. No-op unless a provider holds any."""


def extract_json_object(text: str) -> dict[str, Any]:
    """Parse the outermost ``{...}`` span of a model reply.

    Raises:
        ValidationFailureError: No object found, bad JSON, or not a mapping.
    """
    match = _JSON_BLOCK.search(text)
    if match is None:
        raise ValidationFailureError("No JSON object in LLM response")
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError as exc:
        raise ValidationFailureError(f"Malformed JSON in LLM response: {exc}") from exc
    if not isinstance(data, dict):
        raise ValidationFailureError("LLM response JSON is not an object")
    return data


def create_llm_client(config: LLMConfig) -> LLMClient | None:
    """Build the client named by ``config.provider``.

    ``None`` means "run deterministic": the LLM is switched off, or a hosted
    provider was picked without an API key.

    Raises:
        ValueError: ``config.provider`` is not registered.
    """
    from coastguard.llm.providers import KEY_REQUIRED, PROVIDER_REGISTRY

    name = config.provider.lower()
    try:
        provider_cls = PROVIDER_REGISTRY[name]
    except KeyError:
        known = ", ".join(sorted(PROVIDER_REGISTRY))
        raise ValueError(f"Unknown LLM provider {config.provider!r}. Available: {known}") from None

    if not config.enabled or (name in KEY_REQUIRED and not config.api_key):
        return None
    return provider_cls(config)
