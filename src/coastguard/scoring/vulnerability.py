"""Vulnerability composer: static site factors plus vegetation health."""

from __future__ import annotations

from coastguard.core.config import ScoringConfig
from coastguard.scoring.primitives import clamp, round_half_up


def compose_vulnerability(
    elev: float,
    dist: float,
    land_cover: float,
    mang_score: float,
    config: ScoringConfig | None = None,
) -> int:
    """Weighted 0-100 vulnerability index.

    With the default weights: ``round(0.3*elev + 0.3*dist + 0.2*land_cover
    + 0.2*mang_score)``.
    """
    config = config or ScoringConfig()
    raw = (
        config.elev_weight * clamp(elev)
        + config.dist_weight * clamp(dist)
        + config.land_cover_weight * clamp(land_cover)
        + config.mang_weight * clamp(mang_score)
    )
    return int(clamp(round_half_up(raw)))
