"""Shared test fixtures and helpers."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

from coastguard.core.config import LLMConfig
from coastguard.llm.client import LLMClient
from coastguard.vision.analyzer import VisionVerdict

FIXED_NOW = datetime(2026, 3, 14, 9, 30, tzinfo=timezone.utc)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = FIXED_NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class StubLLMClient(LLMClient):
    """Scripted LLM: returns *reply*, optionally after a delay or by raising."""

    def __init__(
        self,
        reply: str = "",
        *,
        delay: float = 0.0,
        error: Exception | None = None,
    ) -> None:
        super().__init__(LLMConfig(provider="vllm", base_url="http://llm.test"))
        self.reply = reply
        self.delay = delay
        self.error = error
        self.prompts: list[str] = []
        self.images: list[list[bytes]] = []

    async def _respond(self) -> str:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.reply

    async def generate(self, prompt, *, system_prompt=None, temperature=0.1) -> str:
        self.prompts.append(prompt)
        return await self._respond()

    async def chat(self, messages, *, temperature=0.1) -> str:
        self.prompts.append(messages[-1]["content"])
        return await self._respond()

    async def describe_images(self, prompt, images, *, temperature=0.1) -> str:
        self.prompts.append(prompt)
        self.images.append(list(images))
        return await self._respond()

    async def is_available(self) -> bool:
        return True


class StubVision:
    """Vision collaborator returning a fixed verdict."""

    def __init__(self, verdict: VisionVerdict | None = None) -> None:
        self.verdict = verdict or VisionVerdict.unavailable("stub")
        self.calls = 0

    async def analyze(self, before: bytes, after: bytes) -> VisionVerdict:
        self.calls += 1
        return self.verdict
