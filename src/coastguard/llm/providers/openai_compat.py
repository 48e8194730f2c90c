"""OpenAI-compatible provider: OpenAI itself, vLLM, llama.cpp server."""

from __future__ import annotations

import base64
from typing import Any

from coastguard.core.config import LLMConfig
from coastguard.llm.providers.base import HTTPProvider, reply_text


def _image_part(image: bytes) -> dict[str, Any]:
    encoded = base64.b64encode(image).decode("ascii")
    return {
        "type": "image_url",
        "image_url": {"url": f"data:image/jpeg;base64,{encoded}", "detail": "high"},
    }


class OpenAICompatClient(HTTPProvider):
    """Talks to ``/v1/chat/completions``. Images go out as data-URL content parts."""

    health_path = "/v1/models"

    def __init__(self, config: LLMConfig) -> None:
        headers = {"Authorization": f"Bearer {config.api_key}"} if config.api_key else None
        super().__init__(config, headers=headers)

    async def generate(
        self,
        prompt: str,
        *,
        system_prompt: str | None = None,
        temperature: float = 0.1,
    ) -> str:
        messages: list[dict] = []
        if system_prompt is not None:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})
        return await self.chat(messages, temperature=temperature)

    async def chat(self, messages: list[dict], *, temperature: float = 0.1) -> str:
        return await self._complete(self.config.model, messages, temperature)

    async def describe_images(
        self,
        prompt: str,
        images: list[bytes],
        *,
        temperature: float = 0.1,
    ) -> str:
        content = [{"type": "text", "text": prompt}, *(_image_part(img) for img in images)]
        return await self._complete(
            self.config.vision_model, [{"role": "user", "content": content}], temperature
        )

    async def _complete(self, model: str, messages: list[dict], temperature: float) -> str:
        payload: dict[str, Any] = {
            "model": model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": self.config.max_tokens,
            "stream": False,
        }
        if self.config.top_p is not None:
            payload["top_p"] = self.config.top_p
        data = await self._post_json("/v1/chat/completions", payload)
        return reply_text(data["choices"][0]["message"]["content"]).strip()
