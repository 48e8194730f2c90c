"""Stage orchestrator for the coastal risk pipeline.

Runs four stages strictly in order for one parcel:

1. vegetation & carbon (vision verdict + greenness drop)
2. vulnerability (site factors + vegetation health)
3. carbon accounting (summary of stage 1's ``extra_carbon``)
4. real-time risk scoring (new source RiskEvent)

A stage-1 failure aborts the run because every later stage reads
``mang_score``. Later failures are recorded and the run carries on. Each
stage persists only the ComputedOutput fields it owns, so re-running a
stage overwrites its own fields and nothing else.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Callable

from coastguard.core.config import PipelineConfig
from coastguard.core.errors import CollaboratorError, NotFoundError, PreconditionFailedError
from coastguard.core.types import Confidence, LossState
from coastguard.pipeline.models import (
    PipelineOptions,
    PipelineResult,
    PipelineStatus,
    QuickPipelineResult,
    StageName,
    StageStatus,
)
from coastguard.records.models import (
    AlertMessages,
    ComputedOutput,
    ParcelRecord,
    RiskAssessment,
    RiskEvent,
    RiskEventKind,
)
from coastguard.repositories.protocols import (
    OutputRepository,
    ParcelRepository,
    RiskEventRepository,
)
from coastguard.scoring.engine import RiskScoringEngine
from coastguard.scoring.models import MessageContext
from coastguard.scoring.primitives import clamp, round_half_up
from coastguard.scoring.vulnerability import compose_vulnerability
from coastguard.vision.analyzer import VisionAnalyzer, VisionVerdict
from coastguard.vision.greenness import GreennessEstimator, NullGreennessEstimator
from coastguard.vision.images import ImageLoader

if TYPE_CHECKING:
    from coastguard.alerts.dispatcher import AlertDispatcher

logger = logging.getLogger(__name__)

# ComputedOutput fields each stage is allowed to write.
VEGETATION_FIELDS: frozenset[str] = frozenset({
    "mang_score",
    "lost_area",
    "llm_analysis",
    "state",
    "extra_carbon",
    "drop_pct",
    "needs_review",
})
VULNERABILITY_FIELDS: frozenset[str] = frozenset({"vuln_score"})
RISK_FIELDS: frozenset[str] = frozenset({"risk_score", "risk_band"})


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StageOrchestrator:
    """Sequences the four pipeline stages for a parcel.

    Args:
        parcels: Parcel record source (read-only).
        outputs: Computed output store, written through owned-field patches.
        events: Risk event log.
        scoring: Risk scoring engine (formula + message phrasing).
        vision: Vision collaborator for before/after imagery.
        images: Loads image bytes for a parcel.
        config: Pipeline thresholds and defaults.
        greenness: Deterministic drop-percentage signal.
        dispatcher: Optional alert dispatcher for ``dispatch_alerts`` runs.
        clock: Returns "now"; injectable for tests.
    """

    def __init__(
        self,
        parcels: ParcelRepository,
        outputs: OutputRepository,
        events: RiskEventRepository,
        scoring: RiskScoringEngine,
        vision: VisionAnalyzer,
        images: ImageLoader,
        config: PipelineConfig,
        greenness: GreennessEstimator | None = None,
        dispatcher: AlertDispatcher | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._parcels = parcels
        self._outputs = outputs
        self._events = events
        self._scoring = scoring
        self._vision = vision
        self._images = images
        self._config = config
        self._greenness = greenness or NullGreennessEstimator()
        self._dispatcher = dispatcher
        self._clock = clock or _utcnow

    # -- resolution ----------------------------------------------------------

    def resolve(self, identifier: str) -> ParcelRecord:
        """Resolve a stable id or a parcel name to exactly one record.

        Raises:
            NotFoundError: If nothing matches, or the name is ambiguous.
        """
        identifier = (identifier or "").strip()
        if not identifier:
            raise NotFoundError("Identifier (parcel name or ID) is required")

        parcel = self._parcels.get(identifier)
        if parcel is not None:
            return parcel

        matches = self._parcels.find_by_name(identifier)
        if not matches:
            raise NotFoundError(f"Parcel record not found for: {identifier}")
        if len(matches) > 1:
            raise NotFoundError(
                f"Parcel name {identifier!r} matches {len(matches)} records; use the parcel id"
            )
        return matches[0]

    # -- full runs -----------------------------------------------------------

    async def run_pipeline(
        self,
        identifier: str,
        options: PipelineOptions | None = None,
    ) -> PipelineResult:
        """Run all stages for *identifier*. Never raises; see the result."""
        options = options or PipelineOptions()
        result = PipelineResult(identifier=identifier, started_at=self._clock())

        try:
            parcel = self.resolve(identifier)
        except NotFoundError as exc:
            logger.error("Pipeline aborted: %s", exc)
            result.errors.append(str(exc))
            return result

        result.parcel_id = parcel.id
        logger.info("Starting pipeline for parcel %s (%s)", parcel.parcel_name, parcel.id)

        # Stage 1: everything downstream reads mang_score
        try:
            output = await self.run_vegetation_stage(parcel)
        except Exception as exc:
            self._record_failure(result, StageName.VEGETATION, exc)
            return self._finish(result)
        self._record_success(result, StageName.VEGETATION, output.model_dump(mode="json"))

        # Stage 2: failure falls back to the stored/default vuln_score
        try:
            vuln_score = self.run_vulnerability_stage(parcel)
        except Exception as exc:
            self._record_failure(result, StageName.VULNERABILITY, exc)
        else:
            self._record_success(
                result,
                StageName.VULNERABILITY,
                {"parcel_id": parcel.id, "vuln_score": vuln_score},
            )

        # Stage 3 is the extra_carbon already produced by stage 1
        self._record_success(
            result,
            StageName.CARBON,
            {
                "extra_carbon": output.extra_carbon,
                "note": "carbon accounting is derived in the vegetation stage",
            },
        )

        try:
            event = await self.run_risk_stage(parcel, options)
        except Exception as exc:
            self._record_failure(result, StageName.RISK, exc)
        else:
            result.risk_event = event
            self._record_success(result, StageName.RISK, event.model_dump(mode="json"))

        return self._finish(result)

    async def run_quick_pipeline(
        self,
        identifier: str,
        options: PipelineOptions | None = None,
    ) -> QuickPipelineResult:
        """Run the pipeline and return just the final risk event."""
        full = await self.run_pipeline(identifier, options)
        if full.success and full.risk_event is not None:
            return QuickPipelineResult(
                success=True,
                risk_event=full.risk_event,
                stages_completed=full.successful_stages,
                errors=full.errors,
            )
        return QuickPipelineResult(
            success=False,
            stages_completed=full.successful_stages,
            errors=full.errors,
            stages=full.stages,
        )

    def pipeline_status(self, identifier: str) -> PipelineStatus:
        """Report which stages have persisted results for a parcel.

        Raises:
            NotFoundError: If the identifier does not resolve.
        """
        parcel = self.resolve(identifier)
        output = self._outputs.get_for_parcel(parcel.id)
        has_event = bool(self._events.find(kind=RiskEventKind.SOURCE, parcel_id=parcel.id, limit=1))

        return PipelineStatus(
            parcel_id=parcel.id,
            parcel_name=parcel.parcel_name,
            stages={
                StageName.VEGETATION: output is not None,
                StageName.VULNERABILITY: output is not None and output.vuln_score is not None,
                StageName.CARBON: output is not None,
                StageName.RISK: has_event,
            },
            last_updated=output.updated_at if output else parcel.updated_at,
        )

    async def assess_risk(
        self,
        identifier: str,
        options: PipelineOptions | None = None,
        require_vulnerability: bool = True,
    ) -> RiskEvent:
        """Run only the risk stage for an already processed parcel.

        Raises:
            NotFoundError: If the identifier does not resolve.
            PreconditionFailedError: If earlier stages have not run.
        """
        parcel = self.resolve(identifier)
        return await self.run_risk_stage(
            parcel, options or PipelineOptions(), require_vulnerability=require_vulnerability
        )

    # -- stages --------------------------------------------------------------

    async def run_vegetation_stage(self, parcel: ParcelRecord) -> ComputedOutput:
        """Stage 1: vegetation change, lost area and carbon."""
        verdict, drop_pct = await self._analyze_imagery(parcel)

        threshold = self._config.loss_threshold_pct
        is_loss = verdict.verdict == LossState.LOSS or drop_pct >= threshold
        state = LossState.LOSS if is_loss else LossState.NO_LOSS

        loss_pct = drop_pct if is_loss else 0.0
        lost_area = (loss_pct / 100) * parcel.area_total
        extra_carbon = lost_area * self._config.carbon_per_hectare

        if verdict.ai_score is not None:
            mang_score = verdict.ai_score * 100
        else:
            mang_score = max(0.0, 100 - drop_pct)

        patch: dict[str, Any] = {
            "mang_score": round_half_up(mang_score),
            "lost_area": round(lost_area, 2),
            "llm_analysis": verdict.analysis,
            "state": state,
            "extra_carbon": round(extra_carbon, 2),
            "drop_pct": round_half_up(drop_pct),
            "needs_review": verdict.confidence == Confidence.LOW,
        }
        output = self._outputs.apply_patch(
            parcel.id,
            patch,
            VEGETATION_FIELDS,
            defaults={"vuln_score": self._scoring.config.default_vuln_score},
        )
        logger.info(
            "Vegetation stage for %s: state=%s drop=%.1f%% mang=%d",
            parcel.parcel_name, state, drop_pct, output.mang_score,
        )
        return output

    def run_vulnerability_stage(self, parcel: ParcelRecord) -> int:
        """Stage 2: compose and store ``vuln_score``.

        Raises:
            PreconditionFailedError: If site factors or the stage-1 output
                are missing.
        """
        missing = parcel.missing_site_factors
        if missing:
            raise PreconditionFailedError(f"Missing site factors: {', '.join(missing)}")

        output = self._outputs.get_for_parcel(parcel.id)
        if output is None:
            raise PreconditionFailedError("Vegetation stage output not found")

        vuln_score = compose_vulnerability(
            parcel.elev_score,
            parcel.dist_score,
            parcel.land_cover_score,
            output.mang_score,
            self._scoring.config,
        )
        self._outputs.apply_patch(parcel.id, {"vuln_score": vuln_score}, VULNERABILITY_FIELDS)
        logger.info("Vulnerability stage for %s: vuln_score=%d", parcel.parcel_name, vuln_score)
        return vuln_score

    async def run_risk_stage(
        self,
        parcel: ParcelRecord,
        options: PipelineOptions,
        require_vulnerability: bool = False,
    ) -> RiskEvent:
        """Stage 4: score the parcel and record a source risk event.

        Raises:
            PreconditionFailedError: If no computed output exists, or
                *require_vulnerability* is set and ``vuln_score`` is unset.
        """
        output = self._outputs.get_for_parcel(parcel.id)
        if output is None:
            raise PreconditionFailedError("Computed output not found for risk assessment")
        if require_vulnerability and output.vuln_score is None:
            raise PreconditionFailedError("Vulnerability stage must run first")

        default_vuln = self._scoring.config.default_vuln_score
        rain = clamp(parcel.rain * 100)
        tide = clamp(parcel.tide * 100)
        exposure = clamp(parcel.exposure)
        vuln = clamp(output.vuln_score if output.vuln_score is not None else default_vuln)

        computation = self._scoring.compute_risk(rain, tide, vuln, exposure)
        hours = options.time_window_hrs or self._config.default_time_window_hrs
        audience = options.audience or self._config.default_audience

        context = MessageContext(
            location=parcel.location,
            risk_score=computation.risk_score,
            band=computation.band,
            why=computation.why,
            time_window_hrs=hours,
            rain=rain,
            tide=tide,
            vuln=vuln,
            exposure=exposure,
        )
        messages = await self._scoring.maybe_enhance_messages(context)

        assessment = RiskAssessment(
            parcel_id=parcel.id,
            location=parcel.location,
            risk_score=computation.risk_score,
            band=computation.band,
            why=messages.why,
            time_window_hrs=hours,
            audience=tuple(audience),
            messages=AlertMessages(sms_short=messages.sms_short, dashboard=messages.dashboard),
        )
        event = self._events.add(
            RiskEvent.source(assessment, source_computation_id=output.id, generated_at=self._clock())
        )
        self._outputs.apply_patch(
            parcel.id,
            {"risk_score": computation.risk_score, "risk_band": computation.band},
            RISK_FIELDS,
        )
        logger.info(
            "Risk stage for %s: score=%d band=%s",
            parcel.parcel_name, computation.risk_score, computation.band,
        )

        if options.dispatch_alerts and self._dispatcher is not None:
            try:
                await self._dispatcher.generate_alerts_for_risk(event)
            except Exception:
                logger.exception("Alert dispatch failed for risk event %s", event.id)

        return event

    # -- internal ------------------------------------------------------------

    async def _analyze_imagery(self, parcel: ParcelRecord) -> tuple[VisionVerdict, float]:
        """Vision verdict plus greenness drop. Unreadable imagery counts as no change."""
        try:
            before, after = self._images.load_pair(parcel)
        except CollaboratorError as exc:
            logger.warning("Imagery unavailable for %s: %s", parcel.parcel_name, exc)
            return VisionVerdict.unavailable(str(exc)), 0.0

        drop_pct = clamp(self._greenness.drop_pct(before, after))
        try:
            verdict = await self._vision.analyze(before, after)
        except Exception as exc:
            logger.exception("Vision collaborator failed for %s", parcel.parcel_name)
            verdict = VisionVerdict.unavailable(str(exc))
        return verdict, drop_pct

    def _record_success(self, result: PipelineResult, stage: StageName, data: dict[str, Any]) -> None:
        stage_result = result.stages[stage]
        stage_result.status = StageStatus.SUCCEEDED
        stage_result.data = data

    def _record_failure(self, result: PipelineResult, stage: StageName, exc: Exception) -> None:
        message = f"Stage {stage.number} ({stage.value}) failed: {exc}"
        if isinstance(exc, PreconditionFailedError):
            logger.warning("%s", message)
        else:
            logger.error("%s", message, exc_info=exc)
        stage_result = result.stages[stage]
        stage_result.status = StageStatus.FAILED
        stage_result.error = message
        result.errors.append(message)

    def _finish(self, result: PipelineResult) -> PipelineResult:
        completed = result.successful_stages
        result.success = completed >= self._config.min_successful_stages
        logger.info("Pipeline finished for %s: %d/4 stages succeeded", result.identifier, completed)
        return result
