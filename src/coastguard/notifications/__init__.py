"""Escalation email collaborator and the notification service behind it."""

from coastguard.notifications.email import EmailResult, EmailSender, TemplateEmailSender
from coastguard.notifications.service import MockNotificationService, NotificationService

__all__ = [
    "EmailResult",
    "EmailSender",
    "MockNotificationService",
    "NotificationService",
    "TemplateEmailSender",
]
