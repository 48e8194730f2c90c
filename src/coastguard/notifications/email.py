"""High-risk escalation email, rendered from a YAML template."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

import yaml
from pydantic import BaseModel

from coastguard.i18n.engine import I18nEngine
from coastguard.notifications.models import (
    Notification,
    NotificationChannel,
    NotificationPriority,
    NotificationStatus,
    NotificationTemplate,
)
from coastguard.notifications.service import NotificationService
from coastguard.records.models import RiskAssessment, User
from coastguard.scoring.primitives import format_message

logger = logging.getLogger(__name__)

_DEFAULT_TEMPLATES_PATH = Path(__file__).resolve().parent / "templates.yml"
HIGH_RISK_TEMPLATE = "high_risk_alert"


class EmailResult(BaseModel):
    success: bool
    error: str | None = None
    notification_id: str | None = None


@runtime_checkable
class EmailSender(Protocol):
    """Email collaborator. Implementations report failure instead of raising."""

    async def send_high_risk_alert(self, user: User, alert: RiskAssessment) -> EmailResult: ...


class TemplateEmailSender:
    """Renders the high-risk template and hands it to a NotificationService.

    Args:
        service: Delivery backend.
        i18n: Used to embed the user's localized SMS text in the email.
        templates_path: YAML file with a ``templates`` mapping.
        sender: From address.
        timeout_seconds: Upper bound on one delivery attempt.
    """

    def __init__(
        self,
        service: NotificationService,
        i18n: I18nEngine,
        templates_path: str | Path | None = None,
        sender: str = "",
        timeout_seconds: float = 15.0,
    ) -> None:
        self._service = service
        self._i18n = i18n
        self._sender = sender
        self._timeout = timeout_seconds
        self._templates: dict[str, NotificationTemplate] = {}
        self._load_templates(Path(templates_path) if templates_path else _DEFAULT_TEMPLATES_PATH)

    def _load_templates(self, path: Path) -> None:
        if not path.exists():
            return
        with open(path, encoding="utf-8") as fh:
            data = yaml.safe_load(fh) or {}
        for tmpl_id, tmpl_data in data.get("templates", {}).items():
            self._templates[tmpl_id] = NotificationTemplate(
                id=tmpl_id,
                subject=tmpl_data.get("subject", ""),
                body=tmpl_data.get("body", ""),
                channel=NotificationChannel(tmpl_data.get("channel", "email")),
                priority=NotificationPriority(tmpl_data.get("priority", "normal")),
            )

    @property
    def templates(self) -> dict[str, NotificationTemplate]:
        return dict(self._templates)

    def render(self, user: User, alert: RiskAssessment) -> Notification:
        """Build (but do not send) the escalation notification."""
        context: dict[str, Any] = {
            "name": user.name,
            "location": alert.location,
            "risk_score": alert.risk_score,
            "band": str(alert.band),
            "hours": alert.time_window_hrs,
            "why": alert.why,
            "sms": self._i18n.sms(
                user.language, alert.band, alert.location, alert.time_window_hrs, alert.why
            ),
        }
        template = self._templates.get(HIGH_RISK_TEMPLATE)
        if template:
            subject = format_message(template.subject, context)
            body = format_message(template.body, context)
            priority = template.priority
        else:
            subject = f"HIGH RISK ALERT for {alert.location}"
            body = context["sms"]
            priority = NotificationPriority.URGENT

        return Notification(
            user_id=user.user_id,
            channel=NotificationChannel.EMAIL,
            sender=self._sender,
            recipient=user.email or "",
            subject=subject,
            body=body,
            priority=priority,
            template_id=HIGH_RISK_TEMPLATE,
            parcel_id=alert.parcel_id,
            band=alert.band,
            risk_score=alert.risk_score,
        )

    async def send_high_risk_alert(self, user: User, alert: RiskAssessment) -> EmailResult:
        if not user.email:
            return EmailResult(success=False, error="User has no email address")

        notification = self.render(user, alert)
        try:
            result = await asyncio.wait_for(self._service.send(notification), timeout=self._timeout)
        except asyncio.TimeoutError:
            return EmailResult(success=False, error="Email delivery timed out")
        except Exception as exc:
            logger.exception("Email delivery to %s failed", user.email)
            return EmailResult(success=False, error=str(exc))

        if result.status == NotificationStatus.FAILED:
            return EmailResult(success=False, error=result.error or "delivery failed",
                               notification_id=result.id)
        return EmailResult(success=True, notification_id=result.id)
