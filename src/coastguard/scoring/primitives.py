"""Pure scoring functions: clamping, the weighted risk formula, band
classification, driver ("why") derivation and message templating.

Nothing here performs I/O. Weights and thresholds come from an injected
:class:`~coastguard.core.config.ScoringConfig`.
"""

from __future__ import annotations

import math
import re
from typing import Any, Mapping

from coastguard.core.config import ScoringConfig
from coastguard.core.types import Band
from coastguard.scoring.models import RiskComputation

_PLACEHOLDER = re.compile(r"\{(\w+)\}")

DRIVER_LABELS: tuple[str, str, str, str] = (
    "heavy rain",
    "high tide",
    "high vulnerability",
    "dense population",
)
NO_DRIVER_REASON = "moderate combined factors"
SIMULATION_SUFFIX = " (SIM)"


def clamp(value: Any, lo: float = 0.0, hi: float = 100.0) -> float:
    """Clamp *value* into ``[lo, hi]``. Missing or non-numeric values become *lo*."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return lo
    if math.isnan(number):
        return lo
    return max(lo, min(hi, number))


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves going up (2.5 -> 3)."""
    return int(math.floor(value + 0.5))


def classify_band(risk_score: float, config: ScoringConfig | None = None) -> Band:
    """Map a 0-100 score onto Green/Yellow/Red.

    Upper bounds are exclusive: with the default 40/70 split, 39 is Green,
    40 is Yellow, 69 is Yellow and 70 is Red.
    """
    config = config or ScoringConfig()
    if risk_score < config.green_upper:
        return Band.GREEN
    if risk_score < config.yellow_upper:
        return Band.YELLOW
    return Band.RED


def derive_why(
    rain: float,
    tide: float,
    vuln: float,
    exposure: float,
    config: ScoringConfig | None = None,
) -> str:
    """Name the inputs at or above the driver threshold, in a fixed order."""
    config = config or ScoringConfig()
    values = (rain, tide, vuln, exposure)
    drivers = [
        label
        for label, value in zip(DRIVER_LABELS, values)
        if value >= config.driver_threshold
    ]
    return " + ".join(drivers) if drivers else NO_DRIVER_REASON


def compute_risk(
    rain: float,
    tide: float,
    vuln: float,
    exposure: float,
    config: ScoringConfig | None = None,
) -> RiskComputation:
    """Combine the four 0-100 inputs into a risk score, band and reason."""
    config = config or ScoringConfig()
    rain, tide, vuln, exposure = (clamp(v) for v in (rain, tide, vuln, exposure))

    raw = (
        config.rain_weight * rain
        + config.tide_weight * tide
        + config.vuln_weight * vuln
        + config.exposure_weight * exposure
    )
    risk_score = int(clamp(round_half_up(raw)))

    return RiskComputation(
        risk_score=risk_score,
        band=classify_band(risk_score, config),
        why=derive_why(rain, tide, vuln, exposure, config),
    )


# ---------------------------------------------------------------------------
# Message templating
# ---------------------------------------------------------------------------


def format_number(value: float) -> str:
    """Render 12.0 as ``12`` and 1.5 as ``1.5``."""
    return f"{value:g}" if isinstance(value, float) else str(value)


def format_message(template: str, variables: Mapping[str, Any]) -> str:
    """Substitute ``{name}`` placeholders in a single pass.

    Unknown placeholders are left verbatim, and substituted values are never
    re-scanned.
    """
    str_vars = {
        k: format_number(v) if isinstance(v, float) else str(v)
        for k, v in variables.items()
        if v is not None
    }

    def _replace(m: re.Match) -> str:
        return str_vars.get(m.group(1), m.group(0))

    return _PLACEHOLDER.sub(_replace, template)


def sms_message(
    risk_template: str,
    stay_safe: str,
    *,
    location: str,
    hours: float,
    why: str,
    simulation: bool = False,
) -> str:
    """``"<risk phrase at location next Nh: why.> <stay safe>"`` (+ ``" (SIM)"``)."""
    risk = format_message(risk_template, {"location": location, "hours": hours, "why": why})
    message = f"{risk} {stay_safe}"
    return message + SIMULATION_SUFFIX if simulation else message


def dashboard_message(
    band: Band | str,
    risk_score: int,
    location: str,
    hours: float,
    why: str,
) -> str:
    """English-only dashboard line."""
    band_upper = str(band).upper()
    return (
        f"{band_upper}: Risk {risk_score}/100 for {location} "
        f"({format_number(hours)}h). Reason: {why}."
    )
