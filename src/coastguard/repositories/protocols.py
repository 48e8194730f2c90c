"""Protocol definitions for the record store consumed by the core.

The core only needs find-by-key, find-by-filter (with ordering and limit)
and partial upsert semantics. Any document store can sit behind these.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping, Protocol, runtime_checkable

from coastguard.core.types import Band
from coastguard.records.models import (
    ComputedOutput,
    ParcelRecord,
    RiskEvent,
    RiskEventKind,
    Subscription,
    User,
)


@runtime_checkable
class ParcelRepository(Protocol):
    """Protocol for parcel records."""

    def save(self, parcel: ParcelRecord) -> ParcelRecord: ...

    def get(self, parcel_id: str) -> ParcelRecord | None: ...

    def find_by_name(self, parcel_name: str) -> list[ParcelRecord]: ...

    def list_all(self) -> list[ParcelRecord]: ...


@runtime_checkable
class OutputRepository(Protocol):
    """Protocol for computed outputs (one per parcel).

    ``apply_patch`` is a merge patch: only keys present in *patch* change,
    and every key must belong to *owned*. *defaults* are written only where
    the stored value is absent.
    """

    def get_for_parcel(self, parcel_id: str) -> ComputedOutput | None: ...

    def apply_patch(
        self,
        parcel_id: str,
        patch: Mapping[str, Any],
        owned: frozenset[str],
        defaults: Mapping[str, Any] | None = None,
    ) -> ComputedOutput: ...


@runtime_checkable
class RiskEventRepository(Protocol):
    """Protocol for write-once risk events."""

    def add(self, event: RiskEvent) -> RiskEvent: ...

    def get(self, event_id: str) -> RiskEvent | None: ...

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
    ) -> list[RiskEvent]: ...

    def count(
        self,
        *,
        kind: RiskEventKind | None = None,
        parcel_id: str | None = None,
        parcel_ids: set[str] | None = None,
        band: Band | None = None,
        user_id: str | None = None,
        since: datetime | None = None,
    ) -> int: ...


@runtime_checkable
class SubscriptionRepository(Protocol):
    """Protocol for user subscriptions to parcels."""

    def save(self, subscription: Subscription) -> Subscription: ...

    def get(self, user_id: str, parcel_id: str) -> Subscription | None: ...

    def list_active_for_parcel(self, parcel_id: str) -> list[Subscription]: ...

    def list_active_for_user(self, user_id: str) -> list[Subscription]: ...


@runtime_checkable
class UserRepository(Protocol):
    """Protocol for user profiles."""

    def save(self, user: User) -> User: ...

    def get(self, user_id: str) -> User | None: ...
