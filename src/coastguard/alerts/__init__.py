"""Alert dispatch: throttling, daily caps, localization and escalation."""

from coastguard.alerts.dispatcher import AlertDispatcher
from coastguard.alerts.inbox import AlertInbox
from coastguard.alerts.models import (
    AlertStats,
    DispatchReport,
    DispatchSkip,
    GeneratedAlert,
    InboxEntry,
    ProcessSummary,
    SubscriptionOutcome,
    SubscriptionResult,
)

__all__ = [
    "AlertDispatcher",
    "AlertInbox",
    "AlertStats",
    "DispatchReport",
    "DispatchSkip",
    "GeneratedAlert",
    "InboxEntry",
    "ProcessSummary",
    "SubscriptionOutcome",
    "SubscriptionResult",
]
