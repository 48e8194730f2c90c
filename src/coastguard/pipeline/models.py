"""Pipeline options and result models."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field

from coastguard.core.types import Audience
from coastguard.records.models import RiskEvent


class StageName(StrEnum):
    VEGETATION = "vegetation"
    VULNERABILITY = "vulnerability"
    CARBON = "carbon"
    RISK = "risk"

    @property
    def number(self) -> int:
        return list(StageName).index(self) + 1


class StageStatus(StrEnum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


class StageResult(BaseModel):
    stage: StageName
    status: StageStatus = StageStatus.SKIPPED
    data: dict[str, Any] = Field(default_factory=dict)
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == StageStatus.SUCCEEDED


class PipelineOptions(BaseModel):
    """Per-run options. Unset values fall back to the pipeline config."""

    time_window_hrs: float | None = Field(default=None, gt=0)
    audience: list[Audience] | None = None
    dispatch_alerts: bool = False


def _initial_stages() -> dict[StageName, StageResult]:
    return {stage: StageResult(stage=stage) for stage in StageName}


class PipelineResult(BaseModel):
    """Per-stage outcome of one pipeline run plus the aggregate verdict."""

    identifier: str
    parcel_id: str | None = None
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    stages: dict[StageName, StageResult] = Field(default_factory=_initial_stages)
    errors: list[str] = Field(default_factory=list)
    success: bool = False
    risk_event: RiskEvent | None = None

    @property
    def successful_stages(self) -> int:
        return sum(1 for s in self.stages.values() if s.succeeded)

    @property
    def failure_reason(self) -> str | None:
        """The first recorded error, or None if the run succeeded."""
        if self.success or not self.errors:
            return None
        return self.errors[0]


class QuickPipelineResult(BaseModel):
    success: bool
    risk_event: RiskEvent | None = None
    stages_completed: int = 0
    errors: list[str] = Field(default_factory=list)
    stages: dict[StageName, StageResult] | None = None


class PipelineStatus(BaseModel):
    """Which stages have persisted results for a parcel."""

    parcel_id: str
    parcel_name: str
    stages: dict[StageName, bool]
    last_updated: datetime | None = None

    @property
    def overall_complete(self) -> bool:
        return all(self.stages.values())
