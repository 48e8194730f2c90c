"""Deterministic greenness-drop signal used alongside the vision verdict."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class GreennessEstimator(Protocol):
    """Estimates the percentage drop in vegetation greenness, 0-100."""

    def drop_pct(self, before: bytes, after: bytes) -> float: ...


class NullGreennessEstimator:
    """Reports no drop. The vision verdict alone then decides loss."""

    def drop_pct(self, before: bytes, after: bytes) -> float:
        return 0.0


class FixedGreennessEstimator:
    """Always reports the same drop, e.g. a value measured offline."""

    def __init__(self, value: float) -> None:
        self._value = value

    def drop_pct(self, before: bytes, after: bytes) -> float:
        return self._value
