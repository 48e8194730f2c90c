"""Delivery backends for rendered notifications."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Protocol, runtime_checkable

from coastguard.notifications.models import Notification, NotificationStatus
from coastguard.notifications.store import NotificationStore

logger = logging.getLogger(__name__)


@runtime_checkable
class NotificationService(Protocol):
    """Hands a notification to a transport and reports what happened to it.

    ``send`` returns the same notification with ``status`` updated. A rejected
    message comes back FAILED with ``error`` set; transport faults may raise.
    """

    async def send(self, notification: Notification) -> Notification: ...

    def get_status(self, notification_id: str) -> NotificationStatus | None: ...

    def list_for_user(self, user_id: str) -> list[Notification]: ...


class MockNotificationService:
    """Delivers instantly into a :class:`NotificationStore`.

    Recipients listed in ``undeliverable`` are bounced with a FAILED status,
    which lets demos and tests exercise the escalation failure path.
    """

    def __init__(
        self,
        store: NotificationStore | None = None,
        undeliverable: Iterable[str] = (),
    ) -> None:
        self._store = store or NotificationStore()
        self._undeliverable = frozenset(undeliverable)

    @property
    def store(self) -> NotificationStore:
        return self._store

    async def send(self, notification: Notification) -> Notification:
        if notification.recipient in self._undeliverable:
            notification.status = NotificationStatus.FAILED
            notification.error = f"Recipient {notification.recipient} rejected the message"
            logger.info("Bounced %s to %s", notification.id, notification.recipient)
        else:
            notification.status = NotificationStatus.DELIVERED
            notification.delivered_at = datetime.now(timezone.utc)
        return self._store.save(notification)

    def get_status(self, notification_id: str) -> NotificationStatus | None:
        found = self._store.get(notification_id)
        return None if found is None else found.status

    def list_for_user(self, user_id: str) -> list[Notification]:
        return self._store.list_for_user(user_id)
