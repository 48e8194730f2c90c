"""Pure decision functions used by the alert dispatcher.

None of these touch storage or the network; the dispatcher feeds them the
records it has loaded.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Iterable
from zoneinfo import ZoneInfo

from coastguard.core.types import Audience, Band
from coastguard.i18n.engine import I18nEngine
from coastguard.records.models import AlertMessages, RiskAssessment, RiskEvent, User
from coastguard.scoring.primitives import dashboard_message


def requires_alert(band: Band) -> bool:
    """Green never notifies anyone."""
    return band != Band.GREEN


def cooldown_start(now: datetime, cooldown_hours: float) -> datetime:
    return now - timedelta(hours=cooldown_hours)


def is_throttled(
    prior_alerts: Iterable[RiskEvent],
    parcel_id: str,
    band: Band,
    now: datetime,
    cooldown_hours: float,
) -> bool:
    """True if a user alert for the same parcel and band falls inside the cooldown.

    Source events are ignored, so the event being dispatched never
    throttles itself. A zero cooldown disables throttling.
    """
    if cooldown_hours <= 0:
        return False
    since = cooldown_start(now, cooldown_hours)
    return any(
        e.is_user_alert
        and e.parcel_id == parcel_id
        and e.band == band
        and e.generated_at >= since
        for e in prior_alerts
    )


def start_of_day(now: datetime, tz_name: str = "UTC") -> datetime:
    """Midnight of *now*'s calendar day in *tz_name*."""
    local = now.astimezone(ZoneInfo(tz_name))
    return local.replace(hour=0, minute=0, second=0, microsecond=0)


def count_user_facing(alerts: Iterable[RiskEvent]) -> int:
    """Alerts addressed to people; officials-only events do not count."""
    return sum(1 for e in alerts if Audience.PEOPLE in e.assessment.audience)


def daily_cap_reached(alerts_today: int, cap: int) -> bool:
    return alerts_today >= cap


def localize_alert(
    assessment: RiskAssessment,
    language: str | None,
    i18n: I18nEngine,
    simulation: bool = False,
) -> AlertMessages:
    """Localized SMS plus the English dashboard line for one subscriber."""
    sms = i18n.sms(
        language,
        assessment.band,
        assessment.location,
        assessment.time_window_hrs,
        assessment.why,
        simulation=simulation,
    )
    dashboard = dashboard_message(
        assessment.band,
        assessment.risk_score,
        assessment.location,
        assessment.time_window_hrs,
        assessment.why,
    )
    return AlertMessages(sms_short=sms, dashboard=dashboard)


def personalize(assessment: RiskAssessment, messages: AlertMessages) -> RiskAssessment:
    """Copy the source business fields for a user alert addressed to people."""
    return assessment.model_copy(update={"audience": (Audience.PEOPLE,), "messages": messages})


def should_escalate(band: Band, user: User) -> bool:
    """Red alerts go out by email to users who have an address."""
    return band == Band.RED and bool(user.email)
