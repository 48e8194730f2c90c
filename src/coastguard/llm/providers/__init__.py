"""Provider registry for LLM backends."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from coastguard.llm.client import LLMClient

from coastguard.llm.providers.base import HTTPProvider
from coastguard.llm.providers.ollama import OllamaClient
from coastguard.llm.providers.openai_compat import OpenAICompatClient

PROVIDER_REGISTRY: dict[str, type[LLMClient]] = {
    "ollama": OllamaClient,
    "openai": OpenAICompatClient,
    "vllm": OpenAICompatClient,
}

# Hosted providers that cannot be called without credentials.
KEY_REQUIRED: frozenset[str] = frozenset({"openai"})

__all__ = [
    "KEY_REQUIRED",
    "PROVIDER_REGISTRY",
    "HTTPProvider",
    "OllamaClient",
    "OpenAICompatClient",
]
