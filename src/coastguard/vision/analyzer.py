"""Vision analyzer protocol and an implementation backed by a multimodal LLM."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Protocol, runtime_checkable

import httpx
from pydantic import BaseModel

from coastguard.core.types import Confidence, LossState
from coastguard.core.errors import ValidationFailureError
from coastguard.llm.client import LLMClient, extract_json_object
from coastguard.scoring.primitives import clamp

logger = logging.getLogger(__name__)

_PROMPT = """You are analyzing satellite images for mangrove loss detection.

Please analyze these BEFORE and AFTER images and provide:
1. Do you see mangrove/seagrass loss between these images? (yes/no)
2. Confidence level: Low/Medium/High
3. Describe the change in one line
4. Based on your visual analysis, what MangScore (0-1) would you assign? (where 0 = complete loss, 1 = no loss)

BEFORE IMAGE (first image):
AFTER IMAGE (second image):

Respond in this exact JSON format:
{
  "loss": "yes" or "no",
  "confidence": "Low", "Medium", or "High",
  "summary": "your one-line description",
  "aiMangScore": your_score_as_number
}"""

_NEUTRAL_SCORE = 0.5


class VisionVerdict(BaseModel):
    """Normalized verdict of the vision collaborator.

    ``ai_score`` is clamped to [0, 1]. When the collaborator could not be
    consulted at all, ``fallback`` is True and the score is neutral (0.5).
    """

    verdict: LossState = LossState.NO_LOSS
    confidence: Confidence | None = None
    summary: str = ""
    ai_score: float | None = None
    fallback: bool = False

    @property
    def analysis(self) -> str:
        if self.confidence is None:
            return self.summary
        return f"Confidence: {self.confidence}. {self.summary}"

    @classmethod
    def unavailable(cls, reason: str) -> VisionVerdict:
        return cls(
            summary=f"Vision analysis unavailable: {reason}",
            ai_score=_NEUTRAL_SCORE,
            fallback=True,
        )


@runtime_checkable
class VisionAnalyzer(Protocol):
    """Compares a before and an after image of the same parcel."""

    async def analyze(self, before: bytes, after: bytes) -> VisionVerdict: ...


def normalize_verdict(raw: dict[str, Any]) -> VisionVerdict:
    """Turn the collaborator's ``{loss, confidence, summary, aiMangScore}`` reply
    into a :class:`VisionVerdict`."""
    loss = str(raw.get("loss", "no")).strip().lower()
    try:
        confidence = Confidence(str(raw.get("confidence", "")).strip().capitalize())
    except ValueError:
        confidence = Confidence.MEDIUM
    score = raw.get("aiMangScore")
    ai_score = clamp(score, 0.0, 1.0) if score is not None else _NEUTRAL_SCORE
    return VisionVerdict(
        verdict=LossState.LOSS if loss == "yes" else LossState.NO_LOSS,
        confidence=confidence,
        summary=str(raw.get("summary", "")),
        ai_score=ai_score,
    )


def unstructured_verdict(text: str) -> VisionVerdict:
    """Best-effort verdict when the reply holds no parseable JSON."""
    return normalize_verdict({
        "loss": "yes" if "yes" in text.lower() else "no",
        "confidence": Confidence.MEDIUM.value,
        "summary": text[:100],
        "aiMangScore": _NEUTRAL_SCORE,
    })


class LLMVisionAnalyzer:
    """Asks a multimodal LLM whether vegetation was lost between two images.

    Args:
        llm_client: Client with vision support, or None to always fall back.
        timeout_seconds: Upper bound on one analysis call.
    """

    def __init__(self, llm_client: LLMClient | None, timeout_seconds: float = 60.0) -> None:
        self._llm = llm_client
        self._timeout = timeout_seconds

    async def analyze(self, before: bytes, after: bytes) -> VisionVerdict:
        if self._llm is None:
            return VisionVerdict.unavailable("no vision model configured")

        try:
            reply = await asyncio.wait_for(
                self._llm.describe_images(_PROMPT, [before, after]),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("Vision analysis timed out after %.1fs", self._timeout)
            return VisionVerdict.unavailable("timed out")
        except (httpx.HTTPError, KeyError, IndexError, TypeError, ValueError) as exc:
            logger.error("Vision analysis error: %s", exc)
            return VisionVerdict.unavailable(str(exc))

        try:
            return normalize_verdict(extract_json_object(reply))
        except ValidationFailureError:
            logger.warning("Vision reply was not JSON, using text heuristics")
            return unstructured_verdict(reply)
