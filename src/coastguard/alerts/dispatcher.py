"""Alert dispatcher: fans a source risk event out to subscribers."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable

from coastguard.alerts.decisions import (
    cooldown_start,
    count_user_facing,
    daily_cap_reached,
    is_throttled,
    localize_alert,
    personalize,
    requires_alert,
    should_escalate,
    start_of_day,
)
from coastguard.alerts.models import (
    DispatchReport,
    DispatchSkip,
    GeneratedAlert,
    ProcessSummary,
    SubscriptionOutcome,
    SubscriptionResult,
)
from coastguard.core.config import AlertConfig
from coastguard.i18n.engine import I18nEngine
from coastguard.notifications.email import EmailResult, EmailSender
from coastguard.records.models import (
    RiskAssessment,
    RiskEvent,
    RiskEventKind,
    Subscription,
    User,
)
from coastguard.repositories.protocols import (
    RiskEventRepository,
    SubscriptionRepository,
    UserRepository,
)

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AlertDispatcher:
    """Turns source risk events into personalized user alerts.

    A source event is skipped as a whole when it is Green, when an alert
    for the same parcel and band went out within the cooldown, or when
    nobody is subscribed. Otherwise every active subscription is handled
    independently (bounded by ``max_workers``): a failure for one
    subscriber is recorded in the report and never stops the others.

    Args:
        events: Risk event log; user alerts are appended here.
        subscriptions: Active subscriptions per parcel.
        users: User profiles (language, email).
        i18n: Localizes the SMS text per user.
        email_sender: Optional escalation channel for Red alerts.
        config: Cooldown, daily cap and concurrency settings.
        clock: Returns the current aware datetime. Defaults to UTC now.
    """

    def __init__(
        self,
        events: RiskEventRepository,
        subscriptions: SubscriptionRepository,
        users: UserRepository,
        i18n: I18nEngine,
        email_sender: EmailSender | None,
        config: AlertConfig,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._events = events
        self._subscriptions = subscriptions
        self._users = users
        self._i18n = i18n
        self._email = email_sender
        self._config = config
        self._clock = clock or _utcnow

    async def generate_alerts_for_risk(self, event: RiskEvent) -> DispatchReport:
        """Create one user alert per eligible subscriber of the event's parcel."""
        report = DispatchReport(event_id=event.id, parcel_id=event.parcel_id, band=event.band)

        if event.kind != RiskEventKind.SOURCE:
            report.skipped = DispatchSkip.NOT_SOURCE
            return report

        if not requires_alert(event.band):
            logger.debug("Event %s is Green, no alerts", event.id)
            report.skipped = DispatchSkip.GREEN_BAND
            return report

        now = self._clock()
        prior = self._events.find(
            kind=RiskEventKind.USER_ALERT,
            parcel_id=event.parcel_id,
            band=event.band,
            since=cooldown_start(now, self._config.cooldown_hours),
        )
        if is_throttled(prior, event.parcel_id, event.band, now, self._config.cooldown_hours):
            logger.info(
                "Alerts for parcel %s (%s) throttled, last sent %s",
                event.parcel_id, event.band, prior[0].generated_at.isoformat(),
            )
            report.skipped = DispatchSkip.THROTTLED
            return report

        subscriptions = self._subscriptions.list_active_for_parcel(event.parcel_id)
        if not subscriptions:
            report.skipped = DispatchSkip.NO_SUBSCRIBERS
            return report

        semaphore = asyncio.Semaphore(max(1, self._config.max_workers))

        async def bounded(sub: Subscription) -> SubscriptionResult:
            async with semaphore:
                return await self._dispatch_one(event, sub, now)

        report.results = list(await asyncio.gather(*(bounded(s) for s in subscriptions)))
        logger.info(
            "Generated %d alert(s) for parcel %s from event %s",
            report.generated, event.parcel_id, event.id,
        )
        return report

    async def process_recent_risk_events(self) -> ProcessSummary:
        """Dispatch every source event generated within the recent window."""
        since = self._clock() - timedelta(minutes=self._config.recent_window_minutes)
        recent = self._events.find(kind=RiskEventKind.SOURCE, since=since)

        summary = ProcessSummary()
        for event in recent:
            try:
                report = await self.generate_alerts_for_risk(event)
            except Exception:
                logger.exception("Dispatch for risk event %s failed", event.id)
                summary.failed += 1
                continue
            summary.processed += 1
            summary.generated += report.generated
        return summary

    async def _dispatch_one(
        self, event: RiskEvent, subscription: Subscription, now: datetime
    ) -> SubscriptionResult:
        user_id = subscription.user_id
        try:
            if daily_cap_reached(self._alerts_today(user_id, now), self._config.max_alerts_per_day):
                logger.info("Daily alert cap reached for user %s", user_id)
                return SubscriptionResult(user_id=user_id, outcome=SubscriptionOutcome.CAP_REACHED)

            user = self._users.get(user_id)
            if user is None:
                logger.warning("Subscriber %s has no user profile, skipping", user_id)
                return SubscriptionResult(user_id=user_id, outcome=SubscriptionOutcome.USER_NOT_FOUND)

            language = self._i18n.resolve_locale(user.language)
            messages = localize_alert(
                event.assessment, language, self._i18n, simulation=self._config.simulation
            )
            assessment = personalize(event.assessment, messages)
            alert = self._events.add(
                RiskEvent.user_alert(assessment, user_id, language, generated_at=now)
            )
        except Exception as exc:
            logger.exception("Alert for user %s on parcel %s failed", user_id, event.parcel_id)
            return SubscriptionResult(
                user_id=user_id, outcome=SubscriptionOutcome.FAILED, error=str(exc)
            )

        email = None
        if self._email is not None and should_escalate(assessment.band, user):
            email = await self._escalate(user, assessment)

        return SubscriptionResult(
            user_id=user_id,
            outcome=SubscriptionOutcome.GENERATED,
            alert=GeneratedAlert(
                alert_id=alert.id,
                user_id=user_id,
                parcel_id=assessment.parcel_id,
                location=assessment.location,
                band=assessment.band,
                risk_score=assessment.risk_score,
                sms_short=messages.sms_short,
                dashboard=messages.dashboard,
                language=language,
            ),
            email=email,
        )

    def _alerts_today(self, user_id: str, now: datetime) -> int:
        parcel_ids = {s.parcel_id for s in self._subscriptions.list_active_for_user(user_id)}
        if not parcel_ids:
            return 0
        todays = self._events.find(
            kind=RiskEventKind.USER_ALERT,
            user_id=user_id,
            parcel_ids=parcel_ids,
            since=start_of_day(now, self._config.day_boundary_tz),
        )
        return count_user_facing(todays)

    async def _escalate(self, user: User, assessment: RiskAssessment) -> EmailResult:
        """Send the Red escalation email. The in-app alert stands either way."""
        try:
            result = await asyncio.wait_for(
                self._email.send_high_risk_alert(user, assessment),
                timeout=self._config.email_timeout_seconds,
            )
        except asyncio.TimeoutError:
            result = EmailResult(success=False, error="Email delivery timed out")
        except Exception as exc:
            logger.exception("Escalation email to user %s failed", user.user_id)
            result = EmailResult(success=False, error=str(exc))

        if not result.success:
            logger.warning("Escalation email to user %s not sent: %s", user.user_id, result.error)
        return result
