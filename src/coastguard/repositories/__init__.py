"""Repository protocols and in-memory implementations."""

from coastguard.repositories.memory import (
    InMemoryOutputRepository,
    InMemoryParcelRepository,
    InMemoryRiskEventRepository,
    InMemorySubscriptionRepository,
    InMemoryUserRepository,
)
from coastguard.repositories.protocols import (
    OutputRepository,
    ParcelRepository,
    RiskEventRepository,
    SubscriptionRepository,
    UserRepository,
)

__all__ = [
    "InMemoryOutputRepository",
    "InMemoryParcelRepository",
    "InMemoryRiskEventRepository",
    "InMemorySubscriptionRepository",
    "InMemoryUserRepository",
    "OutputRepository",
    "ParcelRepository",
    "RiskEventRepository",
    "SubscriptionRepository",
    "UserRepository",
]
