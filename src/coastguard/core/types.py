"""Core type definitions shared across CoastGuard modules."""

from __future__ import annotations

from enum import StrEnum


class Band(StrEnum):
    """Discrete risk severity level."""

    GREEN = "Green"
    YELLOW = "Yellow"
    RED = "Red"


class LossState(StrEnum):
    """Vegetation change classification produced by stage 1."""

    LOSS = "Loss"
    NO_LOSS = "NoLoss"


class Confidence(StrEnum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class Audience(StrEnum):
    PEOPLE = "people"
    OFFICIALS = "officials"


class Channel(StrEnum):
    INAPP = "inapp"
    SMS = "sms"
    PUSH = "push"


class UserRole(StrEnum):
    FISHER = "fisher"
    NGO = "ngo"
    OFFICIAL = "official"


SUPPORTED_LANGUAGES: tuple[str, ...] = ("en", "hi", "gu")
