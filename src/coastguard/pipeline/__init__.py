"""Staged risk-computation pipeline."""

from coastguard.pipeline.models import (
    PipelineOptions,
    PipelineResult,
    PipelineStatus,
    QuickPipelineResult,
    StageName,
    StageResult,
    StageStatus,
)
from coastguard.pipeline.orchestrator import StageOrchestrator

__all__ = [
    "PipelineOptions",
    "PipelineResult",
    "PipelineStatus",
    "QuickPipelineResult",
    "StageName",
    "StageOrchestrator",
    "StageResult",
    "StageStatus",
]
