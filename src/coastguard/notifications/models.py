"""Outbound escalation messages and the templates they are rendered from."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field

from coastguard.core.types import Band


class NotificationChannel(str, Enum):
    EMAIL = "email"
    SMS = "sms"


class NotificationStatus(str, Enum):
    QUEUED = "queued"
    DELIVERED = "delivered"
    FAILED = "failed"


class NotificationPriority(str, Enum):
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Notification(BaseModel):
    """One rendered message addressed to one user about one parcel."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    user_id: str = ""
    parcel_id: str | None = None
    band: Band | None = None
    risk_score: int | None = None
    channel: NotificationChannel = NotificationChannel.EMAIL
    sender: str = ""
    recipient: str = ""
    subject: str = ""
    body: str = ""
    priority: NotificationPriority = NotificationPriority.NORMAL
    template_id: str | None = None
    status: NotificationStatus = NotificationStatus.QUEUED
    error: str | None = None
    queued_at: datetime = Field(default_factory=_utcnow)
    delivered_at: datetime | None = None


class NotificationTemplate(BaseModel):
    """Subject/body pair with ``{placeholder}`` slots, loaded from templates.yml."""

    id: str
    subject: str
    body: str
    channel: NotificationChannel = NotificationChannel.EMAIL
    priority: NotificationPriority = NotificationPriority.NORMAL
