"""In-memory repositories for development and tests.

Suitable for a single-process deployment. Records are copied on the way in
and out so callers never share mutable state with the store.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Mapping

from pydantic import ValidationError

from coastguard.core.errors import InternalError
from coastguard.core.types import Band
from coastguard.records.models import (
    ComputedOutput,
    ParcelRecord,
    RiskEvent,
    RiskEventKind,
    Subscription,
    User,
)


class InMemoryParcelRepository:
    """Parcel records keyed by stable id."""

    def __init__(self) -> None:
        self._parcels: dict[str, ParcelRecord] = {}

    def save(self, parcel: ParcelRecord) -> ParcelRecord:
        self._parcels[parcel.id] = parcel.model_copy()
        return parcel

    def get(self, parcel_id: str) -> ParcelRecord | None:
        parcel = self._parcels.get(parcel_id)
        return parcel.model_copy() if parcel else None

    def find_by_name(self, parcel_name: str) -> list[ParcelRecord]:
        return [
            p.model_copy() for p in self._parcels.values()
            if p.parcel_name == parcel_name
        ]

    def list_all(self) -> list[ParcelRecord]:
        return [p.model_copy() for p in self._parcels.values()]


class InMemoryOutputRepository:
    """Computed outputs keyed by parcel id, updated through merge patches."""

    def __init__(self) -> None:
        self._outputs: dict[str, ComputedOutput] = {}

    def get_for_parcel(self, parcel_id: str) -> ComputedOutput | None:
        output = self._outputs.get(parcel_id)
        return output.model_copy() if output else None

    def apply_patch(
        self,
        parcel_id: str,
        patch: Mapping[str, Any],
        owned: frozenset[str],
        defaults: Mapping[str, Any] | None = None,
    ) -> ComputedOutput:
        foreign = set(patch) - owned
        if foreign:
            raise InternalError(
                f"Patch for parcel {parcel_id!r} touches fields it does not own: "
                f"{', '.join(sorted(foreign))}"
            )

        existing = self._outputs.get(parcel_id)
        data: dict[str, Any] = existing.model_dump() if existing else {"parcel_id": parcel_id}
        data.update(patch)
        for key, value in (defaults or {}).items():
            if data.get(key) is None:
                data[key] = value
        data["updated_at"] = datetime.now(timezone.utc)

        try:
            output = ComputedOutput.model_validate(data)
        except ValidationError as exc:
            raise InternalError(f"Cannot store output for parcel {parcel_id!r}: {exc}") from exc

        self._outputs[parcel_id] = output
        return output.model_copy()

    @property
    def count(self) -> int:
        return len(self._outputs)


class InMemoryRiskEventRepository:
    """Append-only risk event log."""

    def __init__(self) -> None:
        self._events: dict[str, RiskEvent] = {}

    def add(self, event: RiskEvent) -> RiskEvent:
        if event.id in self._events:
            raise InternalError(f"Risk event {event.id!r} already exists")
        self._events[event.id] = event
        return event

    def get(self, event_id: str) -> RiskEvent | None:
        return self._events.get(event_id)

    def find(
        self,
        *,
        kind: RiskEventKind | None = None,
        parcel_id: str | None = None,
        parcel_ids: set[str] | None = None,
        band: Band | None = None,
        user_id: str | None = None,
        since: datetime | None = None,
        limit: int | None = None,
    ) -> list[RiskEvent]:
        matches = [
            e for e in self._events.values()
            if (kind is None or e.kind == kind)
            and (parcel_id is None or e.parcel_id == parcel_id)
            and (parcel_ids is None or e.parcel_id in parcel_ids)
            and (band is None or e.band == band)
            and (user_id is None or e.user_id == user_id)
            and (since is None or e.generated_at >= since)
        ]
        matches.sort(key=lambda e: e.generated_at, reverse=True)
        return matches[:limit] if limit is not None else matches

    def count(
        self,
        *,
        kind: RiskEventKind | None = None,
        parcel_id: str | None = None,
        parcel_ids: set[str] | None = None,
        band: Band | None = None,
        user_id: str | None = None,
        since: datetime | None = None,
    ) -> int:
        return len(self.find(
            kind=kind,
            parcel_id=parcel_id,
            parcel_ids=parcel_ids,
            band=band,
            user_id=user_id,
            since=since,
        ))


class InMemorySubscriptionRepository:
    """Subscriptions keyed by the unique (user_id, parcel_id) pair."""

    def __init__(self) -> None:
        self._subscriptions: dict[tuple[str, str], Subscription] = {}

    def save(self, subscription: Subscription) -> Subscription:
        key = (subscription.user_id, subscription.parcel_id)
        self._subscriptions[key] = subscription.model_copy()
        return subscription

    def get(self, user_id: str, parcel_id: str) -> Subscription | None:
        sub = self._subscriptions.get((user_id, parcel_id))
        return sub.model_copy() if sub else None

    def list_active_for_parcel(self, parcel_id: str) -> list[Subscription]:
        return [
            s.model_copy() for s in self._subscriptions.values()
            if s.parcel_id == parcel_id and s.is_active
        ]

    def list_active_for_user(self, user_id: str) -> list[Subscription]:
        return [
            s.model_copy() for s in self._subscriptions.values()
            if s.user_id == user_id and s.is_active
        ]


class InMemoryUserRepository:
    """User profiles keyed by user_id."""

    def __init__(self) -> None:
        self._users: dict[str, User] = {}

    def save(self, user: User) -> User:
        self._users[user.user_id] = user.model_copy()
        return user

    def get(self, user_id: str) -> User | None:
        user = self._users.get(user_id)
        return user.model_copy() if user else None
