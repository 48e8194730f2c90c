"""Service wiring for CoastGuard.

``build_services`` is the single place where configuration turns into
collaborators. Tests and scripts call it with their own settings (or
pre-built collaborators) to get an isolated, fully wired instance.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from coastguard.alerts.dispatcher import AlertDispatcher
from coastguard.alerts.inbox import AlertInbox
from coastguard.core.config import Settings
from coastguard.i18n.engine import I18nEngine
from coastguard.llm.client import LLMClient, create_llm_client
from coastguard.notifications.email import TemplateEmailSender
from coastguard.notifications.service import MockNotificationService, NotificationService
from coastguard.notifications.store import NotificationStore
from coastguard.pipeline.orchestrator import StageOrchestrator
from coastguard.repositories.memory import (
    InMemoryOutputRepository,
    InMemoryParcelRepository,
    InMemoryRiskEventRepository,
    InMemorySubscriptionRepository,
    InMemoryUserRepository,
)
from coastguard.scoring.engine import RiskScoringEngine
from coastguard.vision.analyzer import LLMVisionAnalyzer
from coastguard.vision.greenness import GreennessEstimator
from coastguard.vision.images import ImageLoader

logger = logging.getLogger(__name__)


@dataclass
class Services:
    settings: Settings
    parcels: InMemoryParcelRepository
    outputs: InMemoryOutputRepository
    events: InMemoryRiskEventRepository
    subscriptions: InMemorySubscriptionRepository
    users: InMemoryUserRepository
    i18n: I18nEngine
    llm_client: LLMClient | None
    scoring: RiskScoringEngine
    notifications: NotificationService
    email_sender: TemplateEmailSender
    dispatcher: AlertDispatcher
    orchestrator: StageOrchestrator
    inbox: AlertInbox

    async def close(self) -> None:
        if self.llm_client is not None:
            await self.llm_client.close()


def build_services(
    settings: Settings | None = None,
    llm_client: LLMClient | None = None,
    notification_service: NotificationService | None = None,
    greenness: GreennessEstimator | None = None,
    clock: Callable[[], datetime] | None = None,
) -> Services:
    """Wire repositories, engines and collaborators from *settings*.

    Args:
        settings: Application settings. Defaults to Settings().
        llm_client: Pre-built LLM client. Built from ``settings.llm`` when omitted;
            ``None`` from the factory means every LLM feature uses its fallback.
        notification_service: Email delivery backend. Defaults to the mock service.
        greenness: Image greenness estimator for stage 1.
        clock: Shared clock for event timestamps, throttling and daily caps.
    """
    if settings is None:
        settings = Settings()

    if llm_client is None:
        llm_client = create_llm_client(settings.llm)
        if llm_client is None:
            logger.info("No LLM configured, using deterministic messages and vision fallback")

    parcels = InMemoryParcelRepository()
    outputs = InMemoryOutputRepository()
    events = InMemoryRiskEventRepository()
    subscriptions = InMemorySubscriptionRepository()
    users = InMemoryUserRepository()

    i18n = I18nEngine(
        bundles_dir=settings.i18n.bundles_dir,
        default_locale=settings.i18n.default_locale,
    )
    scoring = RiskScoringEngine(
        config=settings.scoring,
        i18n=i18n,
        llm_client=llm_client,
        timeout_seconds=settings.llm.timeout_seconds,
        simulation=settings.alerts.simulation,
    )

    if notification_service is None:
        notification_service = MockNotificationService(store=NotificationStore())
    email_sender = TemplateEmailSender(
        service=notification_service,
        i18n=i18n,
        templates_path=settings.notification.templates_path,
        sender=settings.notification.sender,
        timeout_seconds=settings.alerts.email_timeout_seconds,
    )

    dispatcher = AlertDispatcher(
        events=events,
        subscriptions=subscriptions,
        users=users,
        i18n=i18n,
        email_sender=email_sender,
        config=settings.alerts,
        clock=clock,
    )
    orchestrator = StageOrchestrator(
        parcels=parcels,
        outputs=outputs,
        events=events,
        scoring=scoring,
        vision=LLMVisionAnalyzer(llm_client, timeout_seconds=settings.pipeline.vision_timeout_seconds),
        images=ImageLoader(settings.pipeline.uploads_dir),
        config=settings.pipeline,
        greenness=greenness,
        dispatcher=dispatcher,
        clock=clock,
    )
    inbox = AlertInbox(events, clock=clock, day_boundary_tz=settings.alerts.day_boundary_tz)

    return Services(
        settings=settings,
        parcels=parcels,
        outputs=outputs,
        events=events,
        subscriptions=subscriptions,
        users=users,
        i18n=i18n,
        llm_client=llm_client,
        scoring=scoring,
        notifications=notification_service,
        email_sender=email_sender,
        dispatcher=dispatcher,
        orchestrator=orchestrator,
        inbox=inbox,
    )
