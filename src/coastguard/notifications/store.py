"""Outbox of every notification handed to a delivery backend."""

from __future__ import annotations

from coastguard.notifications.models import Notification


class NotificationStore:
    """Keeps notifications by id, in the order they were first saved.

    Saving a notification that is already present replaces it in place, so a
    status update does not move it in the outbox.
    """

    def __init__(self) -> None:
        self._by_id: dict[str, Notification] = {}

    def save(self, notification: Notification) -> Notification:
        self._by_id[notification.id] = notification
        return notification

    def get(self, notification_id: str) -> Notification | None:
        return self._by_id.get(notification_id)

    def list_for_user(self, user_id: str) -> list[Notification]:
        return [n for n in self._by_id.values() if n.user_id == user_id]

    def list_for_parcel(self, parcel_id: str) -> list[Notification]:
        return [n for n in self._by_id.values() if n.parcel_id == parcel_id]

    @property
    def count(self) -> int:
        return len(self._by_id)
