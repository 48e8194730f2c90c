"""Ollama provider (local models, including llava-style vision models)."""

from __future__ import annotations

import base64
from typing import Any

from coastguard.llm.providers.base import HTTPProvider, reply_text


class OllamaClient(HTTPProvider):
    """Talks to a local Ollama daemon.

    ``generate`` asks for JSON output since every caller here parses a JSON
    object out of the reply.
    """

    health_path = "/api/tags"

    async def generate(
        self,
        prompt: str,
        *,
        system_prompt: str | None = None,
        temperature: float = 0.1,
    ) -> str:
        payload: dict[str, Any] = {
            "model": self.config.model,
            "prompt": prompt,
            "format": "json",
            "stream": False,
            "options": {"temperature": temperature, "num_predict": self.config.max_tokens},
        }
        if system_prompt is not None:
            payload["system"] = system_prompt
        data = await self._post_json("/api/generate", payload)
        return reply_text(data["response"])

    async def chat(self, messages: list[dict], *, temperature: float = 0.1) -> str:
        return await self._chat(self.config.model, messages, temperature)

    async def describe_images(
        self,
        prompt: str,
        images: list[bytes],
        *,
        temperature: float = 0.1,
    ) -> str:
        message = {
            "role": "user",
            "content": prompt,
            "images": [base64.b64encode(img).decode("ascii") for img in images],
        }
        return await self._chat(self.config.vision_model, [message], temperature)

    async def _chat(self, model: str, messages: list[dict], temperature: float) -> str:
        data = await self._post_json("/api/chat", {
            "model": model,
            "messages": messages,
            "stream": False,
            "options": {"temperature": temperature},
        })
        return reply_text(data["message"]["content"])
