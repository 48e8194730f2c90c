"""Parcel, computed output, risk event, subscription and user models."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, model_validator

from coastguard.core.types import Audience, Band, Channel, LossState, UserRole


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ParcelRecord(BaseModel):
    """A monitored coastal land unit. Created by ingestion, read-only here."""

    id: str = Field(default_factory=_new_id)
    parcel_name: str
    village_name: str = ""
    area_total: float = Field(default=0.0, ge=0)
    before_img_url: str | None = None
    after_img_url: str | None = None
    rain: float = Field(default=0.0, ge=0, le=1)
    tide: float = Field(default=0.0, ge=0, le=1)
    exposure: float = Field(default=0.0, ge=0, le=100)
    elev_score: float | None = Field(default=None, ge=0, le=100)
    dist_score: float | None = Field(default=None, ge=0, le=100)
    land_cover_score: float | None = Field(default=None, ge=0, le=100)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @property
    def location(self) -> str:
        return self.village_name or self.parcel_name

    @property
    def missing_site_factors(self) -> list[str]:
        factors = {
            "elev_score": self.elev_score,
            "dist_score": self.dist_score,
            "land_cover_score": self.land_cover_score,
        }
        return [name for name, value in factors.items() if value is None]


class ComputedOutput(BaseModel):
    """Derived indicators for one parcel, owned by the pipeline."""

    id: str = Field(default_factory=_new_id)
    parcel_id: str
    mang_score: int = Field(ge=0, le=100)
    lost_area: float = Field(ge=0)
    llm_analysis: str = ""
    state: LossState
    drop_pct: int = Field(default=0, ge=0, le=100)
    extra_carbon: float = Field(default=0.0, ge=0)
    needs_review: bool = False
    vuln_score: int | None = Field(default=None, ge=0, le=100)
    risk_score: int | None = Field(default=None, ge=0, le=100)
    risk_band: Band | None = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class RiskEventKind(StrEnum):
    SOURCE = "source"
    USER_ALERT = "user_alert"


class AlertMessages(BaseModel):
    model_config = ConfigDict(frozen=True)

    sms_short: str
    dashboard: str


class RiskAssessment(BaseModel):
    """Business fields shared by source events and the user alerts copied from them."""

    model_config = ConfigDict(frozen=True)

    parcel_id: str
    location: str
    risk_score: int = Field(ge=0, le=100)
    band: Band
    why: str
    time_window_hrs: float = Field(default=12, gt=0)
    audience: tuple[Audience, ...] = (Audience.PEOPLE, Audience.OFFICIALS)
    messages: AlertMessages


class PersonalizationContext(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: str
    language: str = "en"


class RiskEvent(BaseModel):
    """Write-once risk event.

    ``kind`` is the discriminant: a source event is the canonical computation
    for a parcel and points at the ComputedOutput that produced it; a user
    alert is a localized copy for one subscriber and carries the
    personalization context instead.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_id)
    kind: RiskEventKind
    assessment: RiskAssessment
    personalization: PersonalizationContext | None = None
    source_computation_id: str | None = None
    generated_at: datetime = Field(default_factory=_utcnow)

    @model_validator(mode="after")
    def _check_variant(self) -> RiskEvent:
        if self.kind == RiskEventKind.USER_ALERT:
            if self.personalization is None:
                raise ValueError("user alerts require a personalization context")
            if self.source_computation_id is not None:
                raise ValueError("user alerts do not reference a computation")
        elif self.personalization is not None:
            raise ValueError("source events cannot be personalized")
        return self

    @property
    def parcel_id(self) -> str:
        return self.assessment.parcel_id

    @property
    def band(self) -> Band:
        return self.assessment.band

    @property
    def user_id(self) -> str | None:
        return self.personalization.user_id if self.personalization else None

    @property
    def is_user_alert(self) -> bool:
        return self.kind == RiskEventKind.USER_ALERT

    @classmethod
    def source(
        cls,
        assessment: RiskAssessment,
        source_computation_id: str | None = None,
        generated_at: datetime | None = None,
    ) -> RiskEvent:
        return cls(
            kind=RiskEventKind.SOURCE,
            assessment=assessment,
            source_computation_id=source_computation_id,
            generated_at=generated_at or _utcnow(),
        )

    @classmethod
    def user_alert(
        cls,
        assessment: RiskAssessment,
        user_id: str,
        language: str,
        generated_at: datetime | None = None,
    ) -> RiskEvent:
        return cls(
            kind=RiskEventKind.USER_ALERT,
            assessment=assessment,
            personalization=PersonalizationContext(user_id=user_id, language=language),
            generated_at=generated_at or _utcnow(),
        )


class Subscription(BaseModel):
    id: str = Field(default_factory=_new_id)
    user_id: str
    parcel_id: str
    location: str
    channels: list[Channel] = Field(default_factory=lambda: [Channel.INAPP])
    is_active: bool = True
    created_at: datetime = Field(default_factory=_utcnow)


class User(BaseModel):
    user_id: str
    name: str
    email: str | None = None
    language: str = "en"
    phone: str | None = None
    role: UserRole | None = None
    created_at: datetime = Field(default_factory=_utcnow)
