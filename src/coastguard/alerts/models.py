"""Alert dispatch data models."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field

from coastguard.core.types import Band
from coastguard.notifications.email import EmailResult


class DispatchSkip(StrEnum):
    """Why a whole risk event produced no alerts."""

    NOT_SOURCE = "not_source"
    GREEN_BAND = "green_band"
    THROTTLED = "throttled"
    NO_SUBSCRIBERS = "no_subscribers"


class SubscriptionOutcome(StrEnum):
    GENERATED = "generated"
    CAP_REACHED = "cap_reached"
    USER_NOT_FOUND = "user_not_found"
    FAILED = "failed"


class GeneratedAlert(BaseModel):
    alert_id: str
    user_id: str
    parcel_id: str
    location: str
    band: Band
    risk_score: int
    sms_short: str
    dashboard: str
    language: str


class SubscriptionResult(BaseModel):
    user_id: str
    outcome: SubscriptionOutcome
    alert: GeneratedAlert | None = None
    email: EmailResult | None = None
    error: str | None = None


class DispatchReport(BaseModel):
    event_id: str
    parcel_id: str
    band: Band
    skipped: DispatchSkip | None = None
    results: list[SubscriptionResult] = Field(default_factory=list)

    @property
    def alerts(self) -> list[GeneratedAlert]:
        return [r.alert for r in self.results if r.alert is not None]

    @property
    def generated(self) -> int:
        return len(self.alerts)


class ProcessSummary(BaseModel):
    processed: int = 0
    generated: int = 0
    failed: int = 0


class InboxEntry(BaseModel):
    id: str
    parcel_id: str
    location: str
    risk_score: int
    band: Band
    why: str
    time_window_hrs: float
    sms_short: str
    dashboard: str
    language: str
    generated_at: datetime


class AlertStats(BaseModel):
    total: int = 0
    today: int = 0
    by_band: dict[str, int] = Field(
        default_factory=lambda: {"red": 0, "yellow": 0, "green": 0}
    )
    latest: InboxEntry | None = None
