"""Tests for alert dispatch decisions, the dispatcher and the inbox."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from coastguard.alerts import (
    AlertDispatcher,
    AlertInbox,
    DispatchSkip,
    SubscriptionOutcome,
)
from coastguard.alerts.decisions import (
    count_user_facing,
    daily_cap_reached,
    is_throttled,
    localize_alert,
    requires_alert,
    should_escalate,
    start_of_day,
)
from coastguard.core.config import AlertConfig
from coastguard.core.types import Audience, Band
from coastguard.i18n.engine import I18nEngine
from coastguard.notifications.email import EmailResult
from coastguard.records.models import (
    AlertMessages,
    RiskAssessment,
    RiskEvent,
    RiskEventKind,
    Subscription,
    User,
)
from coastguard.repositories import (
    InMemoryRiskEventRepository,
    InMemorySubscriptionRepository,
    InMemoryUserRepository,
)

from tests.conftest import FIXED_NOW, FakeClock


def _assessment(parcel_id: str = "p1", band: Band = Band.YELLOW, score: int = 55) -> RiskAssessment:
    return RiskAssessment(
        parcel_id=parcel_id,
        location="Kandla",
        risk_score=score,
        band=band,
        why="high tide",
        time_window_hrs=12,
        messages=AlertMessages(sms_short="source sms", dashboard="source dashboard"),
    )


def _source(parcel_id: str = "p1", band: Band = Band.YELLOW, at: datetime = FIXED_NOW) -> RiskEvent:
    score = {Band.GREEN: 20, Band.YELLOW: 55, Band.RED: 82}[band]
    return RiskEvent.source(_assessment(parcel_id, band, score), generated_at=at)


class RecordingEmailSender:
    def __init__(self, result: EmailResult | None = None, error: Exception | None = None) -> None:
        self.result = result or EmailResult(success=True, notification_id="n1")
        self.error = error
        self.sent: list[tuple[User, RiskAssessment]] = []

    async def send_high_risk_alert(self, user: User, alert: RiskAssessment) -> EmailResult:
        self.sent.append((user, alert))
        if self.error is not None:
            raise self.error
        return self.result


class SlowEmailSender(RecordingEmailSender):
    async def send_high_risk_alert(self, user: User, alert: RiskAssessment) -> EmailResult:
        await asyncio.sleep(1.0)
        return await super().send_high_risk_alert(user, alert)


# ---------------------------------------------------------------------------
# Pure decisions
# ---------------------------------------------------------------------------


class TestDecisions:
    def test_requires_alert(self) -> None:
        assert requires_alert(Band.GREEN) is False
        assert requires_alert(Band.YELLOW) is True
        assert requires_alert(Band.RED) is True

    def test_throttle_ignores_source_events(self) -> None:
        prior = [_source(at=FIXED_NOW - timedelta(minutes=5))]
        assert is_throttled(prior, "p1", Band.YELLOW, FIXED_NOW, 6) is False

    def test_throttle_window(self) -> None:
        alert = RiskEvent.user_alert(_assessment(), "u1", "en", generated_at=FIXED_NOW - timedelta(hours=5))
        assert is_throttled([alert], "p1", Band.YELLOW, FIXED_NOW, 6) is True
        assert is_throttled([alert], "p1", Band.YELLOW, FIXED_NOW, 4) is False
        assert is_throttled([alert], "p1", Band.RED, FIXED_NOW, 6) is False
        assert is_throttled([alert], "p2", Band.YELLOW, FIXED_NOW, 6) is False

    def test_zero_cooldown_disables_throttle(self) -> None:
        alert = RiskEvent.user_alert(_assessment(), "u1", "en", generated_at=FIXED_NOW)
        assert is_throttled([alert], "p1", Band.YELLOW, FIXED_NOW, 0) is False

    def test_start_of_day_utc(self) -> None:
        assert start_of_day(FIXED_NOW) == datetime(2026, 3, 14, tzinfo=timezone.utc)

    def test_start_of_day_other_zone(self) -> None:
        # 20:00 UTC is already the next day in India (UTC+5:30)
        late = datetime(2026, 3, 14, 20, 0, tzinfo=timezone.utc)
        start = start_of_day(late, "Asia/Kolkata")
        assert start.astimezone(timezone.utc) == datetime(2026, 3, 14, 18, 30, tzinfo=timezone.utc)

    def test_daily_cap(self) -> None:
        assert daily_cap_reached(4, 5) is False
        assert daily_cap_reached(5, 5) is True

    def test_officials_only_alerts_do_not_count(self) -> None:
        people = RiskEvent.user_alert(_assessment(), "u1", "en")
        officials = RiskEvent.user_alert(
            _assessment().model_copy(update={"audience": (Audience.OFFICIALS,)}), "u1", "en",
        )
        assert count_user_facing([people, officials]) == 1

    def test_localize_alert(self) -> None:
        messages = localize_alert(_assessment(band=Band.RED, score=82), "hi", I18nEngine())
        assert messages.sms_short.startswith("Kandla में अगले 12 घंटे में उच्च जोखिम")
        assert messages.dashboard == "RED: Risk 82/100 for Kandla (12h). Reason: high tide."

    def test_should_escalate(self) -> None:
        with_email = User(user_id="u1", name="A", email="a@example.org")
        without = User(user_id="u2", name="B")
        assert should_escalate(Band.RED, with_email) is True
        assert should_escalate(Band.YELLOW, with_email) is False
        assert should_escalate(Band.RED, without) is False


# ---------------------------------------------------------------------------
# Dispatcher
# ---------------------------------------------------------------------------


class TestAlertDispatcher:
    def setup_method(self) -> None:
        self.events = InMemoryRiskEventRepository()
        self.subscriptions = InMemorySubscriptionRepository()
        self.users = InMemoryUserRepository()
        self.email = RecordingEmailSender()
        self.clock = FakeClock()

    def _dispatcher(self, email=..., **config) -> AlertDispatcher:
        return AlertDispatcher(
            events=self.events,
            subscriptions=self.subscriptions,
            users=self.users,
            i18n=I18nEngine(),
            email_sender=self.email if email is ... else email,
            config=AlertConfig(**config),
            clock=self.clock,
        )

    def _subscribe(self, user_id: str, parcel_id: str = "p1", **user_fields) -> None:
        self.users.save(User(user_id=user_id, name=user_id.upper(), **user_fields))
        self.subscriptions.save(
            Subscription(user_id=user_id, parcel_id=parcel_id, location="Kandla")
        )

    @pytest.mark.asyncio
    async def test_green_is_skipped(self) -> None:
        self._subscribe("u1")
        report = await self._dispatcher().generate_alerts_for_risk(_source(band=Band.GREEN))
        assert report.skipped == DispatchSkip.GREEN_BAND
        assert report.generated == 0
        assert self.events.count(kind=RiskEventKind.USER_ALERT) == 0

    @pytest.mark.asyncio
    async def test_user_alert_events_are_not_dispatched(self) -> None:
        alert = RiskEvent.user_alert(_assessment(), "u1", "en")
        report = await self._dispatcher().generate_alerts_for_risk(alert)
        assert report.skipped == DispatchSkip.NOT_SOURCE

    @pytest.mark.asyncio
    async def test_no_subscribers(self) -> None:
        report = await self._dispatcher().generate_alerts_for_risk(_source())
        assert report.skipped == DispatchSkip.NO_SUBSCRIBERS

    @pytest.mark.asyncio
    async def test_localized_alert_per_subscriber(self) -> None:
        self._subscribe("u1", language="en")
        self._subscribe("u2", language="gu")
        self._subscribe("u3", language="fr")
        source = self.events.add(_source())

        report = await self._dispatcher().generate_alerts_for_risk(source)

        assert report.skipped is None
        assert report.generated == 3
        by_user = {a.user_id: a for a in report.alerts}
        assert by_user["u1"].sms_short == (
            "Medium risk at Kandla next 12h: high tide. Stay safe. Avoid shore."
        )
        assert "મધ્યમ જોખમ" in by_user["u2"].sms_short
        assert by_user["u3"].language == "en"

        stored = self.events.find(kind=RiskEventKind.USER_ALERT)
        assert len(stored) == 3
        for alert in stored:
            assert alert.assessment.audience == (Audience.PEOPLE,)
            assert alert.assessment.risk_score == source.assessment.risk_score
            assert alert.assessment.why == source.assessment.why
            assert alert.generated_at == self.clock.now
        assert self.events.get(source.id) == source

    @pytest.mark.asyncio
    async def test_simulation_marker(self) -> None:
        self._subscribe("u1")
        report = await self._dispatcher(simulation=True).generate_alerts_for_risk(_source())
        assert report.alerts[0].sms_short.endswith(" (SIM)")

    @pytest.mark.asyncio
    async def test_throttle_makes_dispatch_idempotent(self) -> None:
        self._subscribe("u1")
        dispatcher = self._dispatcher()
        source = _source()

        first = await dispatcher.generate_alerts_for_risk(source)
        second = await dispatcher.generate_alerts_for_risk(source)

        assert first.generated == 1
        assert second.skipped == DispatchSkip.THROTTLED
        assert self.events.count(kind=RiskEventKind.USER_ALERT) == 1

    @pytest.mark.asyncio
    async def test_throttle_expires_after_cooldown(self) -> None:
        self._subscribe("u1")
        dispatcher = self._dispatcher(cooldown_hours=6)
        await dispatcher.generate_alerts_for_risk(_source())

        self.clock.advance(hours=7)
        report = await dispatcher.generate_alerts_for_risk(_source(at=self.clock.now))
        assert report.generated == 1

    @pytest.mark.asyncio
    async def test_band_change_is_not_throttled(self) -> None:
        self._subscribe("u1")
        dispatcher = self._dispatcher()
        await dispatcher.generate_alerts_for_risk(_source(band=Band.YELLOW))
        report = await dispatcher.generate_alerts_for_risk(_source(band=Band.RED))
        assert report.generated == 1

    @pytest.mark.asyncio
    async def test_daily_cap(self) -> None:
        for parcel_id in ("p1", "p2", "p3"):
            self._subscribe("u1", parcel_id)
        dispatcher = self._dispatcher(max_alerts_per_day=2)

        reports = [await dispatcher.generate_alerts_for_risk(_source(p)) for p in ("p1", "p2", "p3")]

        assert [r.generated for r in reports] == [1, 1, 0]
        assert reports[2].results[0].outcome == SubscriptionOutcome.CAP_REACHED

        self.clock.advance(days=1)
        report = await dispatcher.generate_alerts_for_risk(_source("p3", at=self.clock.now))
        assert report.generated == 1

    @pytest.mark.asyncio
    async def test_missing_user_does_not_block_others(self) -> None:
        self.subscriptions.save(Subscription(user_id="ghost", parcel_id="p1", location="Kandla"))
        self._subscribe("u1")
        report = await self._dispatcher().generate_alerts_for_risk(_source())

        outcomes = {r.user_id: r.outcome for r in report.results}
        assert outcomes == {
            "ghost": SubscriptionOutcome.USER_NOT_FOUND,
            "u1": SubscriptionOutcome.GENERATED,
        }

    @pytest.mark.asyncio
    async def test_cap_is_checked_before_user_lookup(self) -> None:
        for parcel_id in ("p1", "p2"):
            self.subscriptions.save(
                Subscription(user_id="ghost", parcel_id=parcel_id, location="Kandla")
            )
        self.events.add(
            RiskEvent.user_alert(_assessment("p2"), "ghost", "en", generated_at=FIXED_NOW)
        )
        report = await self._dispatcher(max_alerts_per_day=1).generate_alerts_for_risk(_source())

        assert [r.outcome for r in report.results] == [SubscriptionOutcome.CAP_REACHED]

    @pytest.mark.asyncio
    async def test_red_escalates_by_email(self) -> None:
        self._subscribe("u1", email="u1@example.org")
        self._subscribe("u2")
        report = await self._dispatcher().generate_alerts_for_risk(_source(band=Band.RED))

        assert report.generated == 2
        assert [user.user_id for user, _ in self.email.sent] == ["u1"]
        by_user = {r.user_id: r for r in report.results}
        assert by_user["u1"].email.success is True
        assert by_user["u2"].email is None

    @pytest.mark.asyncio
    async def test_yellow_never_emails(self) -> None:
        self._subscribe("u1", email="u1@example.org")
        await self._dispatcher().generate_alerts_for_risk(_source(band=Band.YELLOW))
        assert self.email.sent == []

    @pytest.mark.asyncio
    async def test_email_failure_keeps_alert(self) -> None:
        self.email = RecordingEmailSender(error=RuntimeError("smtp down"))
        self._subscribe("u1", email="u1@example.org")
        report = await self._dispatcher().generate_alerts_for_risk(_source(band=Band.RED))

        result = report.results[0]
        assert result.outcome == SubscriptionOutcome.GENERATED
        assert result.email.success is False
        assert "smtp down" in result.email.error
        assert self.events.count(kind=RiskEventKind.USER_ALERT) == 1

    @pytest.mark.asyncio
    async def test_email_timeout_keeps_alert(self) -> None:
        self.email = SlowEmailSender()
        self._subscribe("u1", email="u1@example.org")
        dispatcher = self._dispatcher(email_timeout_seconds=0.01)
        report = await dispatcher.generate_alerts_for_risk(_source(band=Band.RED))

        assert report.results[0].email.success is False
        assert self.events.count(kind=RiskEventKind.USER_ALERT) == 1

    @pytest.mark.asyncio
    async def test_without_email_sender(self) -> None:
        self._subscribe("u1", email="u1@example.org")
        report = await self._dispatcher(email=None).generate_alerts_for_risk(_source(band=Band.RED))
        assert report.generated == 1
        assert report.results[0].email is None

    @pytest.mark.asyncio
    async def test_process_recent_risk_events(self) -> None:
        self._subscribe("u1", "p1")
        self._subscribe("u1", "p2")
        self.events.add(_source("p1", at=FIXED_NOW - timedelta(minutes=10)))
        self.events.add(_source("p2", Band.RED, at=FIXED_NOW - timedelta(minutes=30)))
        self.events.add(_source("p2", Band.GREEN, at=FIXED_NOW - timedelta(minutes=40)))
        self.events.add(_source("p1", Band.RED, at=FIXED_NOW - timedelta(hours=3)))

        summary = await self._dispatcher(recent_window_minutes=60).process_recent_risk_events()

        assert summary.processed == 3
        assert summary.generated == 2
        assert summary.failed == 0


# ---------------------------------------------------------------------------
# Inbox
# ---------------------------------------------------------------------------


class TestAlertInbox:
    def setup_method(self) -> None:
        self.events = InMemoryRiskEventRepository()
        self.clock = FakeClock()
        self.inbox = AlertInbox(self.events, clock=self.clock)

    def _alert(self, user_id: str, band: Band, at: datetime) -> RiskEvent:
        return self.events.add(RiskEvent.user_alert(_assessment(band=band), user_id, "hi", generated_at=at))

    def test_user_alerts_newest_first(self) -> None:
        old = self._alert("u1", Band.YELLOW, FIXED_NOW - timedelta(days=2))
        new = self._alert("u1", Band.RED, FIXED_NOW)
        self._alert("u2", Band.RED, FIXED_NOW)
        self.events.add(_source())

        entries = self.inbox.get_user_alerts("u1")
        assert [e.id for e in entries] == [new.id, old.id]
        assert entries[0].language == "hi"
        assert entries[0].sms_short == "source sms"

    def test_limit(self) -> None:
        for minutes in range(5):
            self._alert("u1", Band.YELLOW, FIXED_NOW - timedelta(minutes=minutes))
        assert len(self.inbox.get_user_alerts("u1", limit=3)) == 3

    def test_stats(self) -> None:
        self._alert("u1", Band.YELLOW, FIXED_NOW - timedelta(days=2))
        self._alert("u1", Band.RED, FIXED_NOW - timedelta(hours=1))
        latest = self._alert("u1", Band.RED, FIXED_NOW)

        stats = self.inbox.get_alert_stats("u1")
        assert stats.total == 3
        assert stats.today == 2
        assert stats.by_band == {"red": 2, "yellow": 1, "green": 0}
        assert stats.latest.id == latest.id

    def test_empty_stats(self) -> None:
        stats = self.inbox.get_alert_stats("nobody")
        assert stats.total == 0
        assert stats.latest is None
