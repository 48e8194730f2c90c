"""Read side of user alerts: the inbox and per-user statistics."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable

from coastguard.alerts.decisions import start_of_day
from coastguard.alerts.models import AlertStats, InboxEntry
from coastguard.records.models import RiskEvent, RiskEventKind
from coastguard.repositories.protocols import RiskEventRepository


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_inbox_entry(event: RiskEvent) -> InboxEntry:
    a = event.assessment
    return InboxEntry(
        id=event.id,
        parcel_id=a.parcel_id,
        location=a.location,
        risk_score=a.risk_score,
        band=a.band,
        why=a.why,
        time_window_hrs=a.time_window_hrs,
        sms_short=a.messages.sms_short,
        dashboard=a.messages.dashboard,
        language=event.personalization.language if event.personalization else "en",
        generated_at=event.generated_at,
    )


class AlertInbox:
    """Lists a user's own alerts, newest first."""

    def __init__(
        self,
        events: RiskEventRepository,
        clock: Callable[[], datetime] | None = None,
        day_boundary_tz: str = "UTC",
    ) -> None:
        self._events = events
        self._clock = clock or _utcnow
        self._tz = day_boundary_tz

    def get_user_alerts(self, user_id: str, limit: int = 50) -> list[InboxEntry]:
        events = self._events.find(kind=RiskEventKind.USER_ALERT, user_id=user_id, limit=limit)
        return [to_inbox_entry(e) for e in events]

    def get_alert_stats(self, user_id: str) -> AlertStats:
        events = self._events.find(kind=RiskEventKind.USER_ALERT, user_id=user_id)
        today_start = start_of_day(self._clock(), self._tz)

        stats = AlertStats(total=len(events))
        for event in events:
            stats.by_band[str(event.band).lower()] += 1
            if event.generated_at >= today_start:
                stats.today += 1
        if events:
            stats.latest = to_inbox_entry(events[0])
        return stats
