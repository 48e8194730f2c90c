"""Scoring data models."""

from __future__ import annotations

from pydantic import BaseModel, Field

from coastguard.core.types import Band


class RiskComputation(BaseModel):
    """Deterministic output of the weighted risk formula."""

    risk_score: int = Field(ge=0, le=100)
    band: Band
    why: str


class MessageContext(BaseModel):
    """Everything needed to phrase a risk assessment for people."""

    location: str
    risk_score: int
    band: Band
    why: str
    time_window_hrs: float = Field(gt=0)
    rain: float = 0.0
    tide: float = 0.0
    vuln: float = 0.0
    exposure: float = 0.0


class MessageBundle(BaseModel):
    """The three user-facing strings of a risk event.

    ``enhanced`` is True only when the text came from the LLM; the shape is
    identical either way.
    """

    why: str
    sms_short: str
    dashboard: str
    enhanced: bool = False
