"""Risk scoring engine with optional LLM-assisted message phrasing.

The deterministic path is the contract: whatever the LLM does, callers get
a :class:`MessageBundle` with the same three fields.
"""

from __future__ import annotations

import asyncio
import logging

import httpx
from pydantic import BaseModel, ValidationError, field_validator

from coastguard.core.config import ScoringConfig
from coastguard.core.errors import ValidationFailureError
from coastguard.i18n.engine import I18nEngine
from coastguard.llm.client import LLMClient, extract_json_object
from coastguard.scoring import primitives
from coastguard.scoring.models import MessageBundle, MessageContext, RiskComputation

logger = logging.getLogger(__name__)

_PROMPT = """Given these coastal risk factors for {location}:
- Rain: {rain}/100
- Tide: {tide}/100
- Vulnerability: {vuln}/100
- Exposure: {exposure}/100
- Risk Score: {risk_score}/100 ({band})
- Time Window: {hours} hours

Generate a crisp one-line reason and two messages. Keep factual, non-alarmist, SMS max 160 chars.

Respond in this exact JSON format:
{{
  "why": "brief reason phrase",
  "smsShort": "SMS message under 160 chars",
  "dashboard": "dashboard message"
}}"""


class _EnhancedPayload(BaseModel):
    why: str
    smsShort: str
    dashboard: str

    @field_validator("why", "smsShort", "dashboard")
    @classmethod
    def _non_empty(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must be a non-empty string")
        return value


class RiskScoringEngine:
    """Computes risk and phrases it, via the LLM when one is configured.

    Args:
        config: Weights and thresholds for the risk formula.
        i18n: Localization engine supplying the SMS templates.
        llm_client: Optional LLM client. None means always deterministic.
        timeout_seconds: Upper bound on a single enhancement call.
        simulation: Append the simulation marker to fallback SMS text.
    """

    def __init__(
        self,
        config: ScoringConfig,
        i18n: I18nEngine,
        llm_client: LLMClient | None = None,
        timeout_seconds: float = 30.0,
        simulation: bool = False,
    ) -> None:
        self._config = config
        self._i18n = i18n
        self._llm = llm_client
        self._timeout = timeout_seconds
        self._simulation = simulation

    @property
    def config(self) -> ScoringConfig:
        return self._config

    def compute_risk(
        self,
        rain: float,
        tide: float,
        vuln: float,
        exposure: float,
    ) -> RiskComputation:
        return primitives.compute_risk(rain, tide, vuln, exposure, self._config)

    def deterministic_messages(self, context: MessageContext) -> MessageBundle:
        """Template-generated English messages for *context*."""
        sms = self._i18n.sms(
            "en",
            context.band,
            context.location,
            context.time_window_hrs,
            context.why,
            simulation=self._simulation,
        )
        dashboard = primitives.dashboard_message(
            context.band,
            context.risk_score,
            context.location,
            context.time_window_hrs,
            context.why,
        )
        return MessageBundle(why=context.why, sms_short=sms, dashboard=dashboard)

    async def maybe_enhance_messages(self, context: MessageContext) -> MessageBundle:
        """Ask the LLM for friendlier text, falling back to the templates."""
        if self._llm is None:
            return self.deterministic_messages(context)

        try:
            reply = await asyncio.wait_for(
                self._llm.generate(self._build_prompt(context)),
                timeout=self._timeout,
            )
            payload = _EnhancedPayload.model_validate(extract_json_object(reply))
        except asyncio.TimeoutError:
            logger.warning("LLM enhancement timed out after %.1fs, using templates", self._timeout)
            return self.deterministic_messages(context)
        except (ValidationError, ValidationFailureError) as exc:
            logger.warning("Invalid LLM enhancement payload, using templates: %s", exc)
            return self.deterministic_messages(context)
        except (httpx.HTTPError, KeyError, IndexError, TypeError, ValueError) as exc:
            logger.warning("LLM enhancement failed, using templates: %s", exc)
            return self.deterministic_messages(context)

        return MessageBundle(
            why=payload.why,
            sms_short=payload.smsShort,
            dashboard=payload.dashboard,
            enhanced=True,
        )

    def _build_prompt(self, context: MessageContext) -> str:
        return _PROMPT.format(
            location=context.location,
            rain=primitives.format_number(context.rain),
            tide=primitives.format_number(context.tide),
            vuln=primitives.format_number(context.vuln),
            exposure=primitives.format_number(context.exposure),
            risk_score=context.risk_score,
            band=context.band,
            hours=primitives.format_number(context.time_window_hrs),
        )
