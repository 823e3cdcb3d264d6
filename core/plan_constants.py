"""Shared tier, role, status and feature constants used across services and routers."""

from __future__ import annotations

from enum import Enum
from typing import FrozenSet, Mapping, Sequence

from core.errors import InvalidArgument


class SubscriptionTier(str, Enum):
    FREE = "free"
    PRO = "pro"
    PLUS = "plus"

    def __str__(self) -> str:  # pragma: no cover - convenience
        return self.value


class AccountRole(str, Enum):
    USER = "user"
    ADMIN = "admin"

    def __str__(self) -> str:  # pragma: no cover - convenience
        return self.value


class AccountStatus(str, Enum):
    ACTIVE = "active"
    SUSPENDED = "suspended"
    BANNED = "banned"

    def __str__(self) -> str:  # pragma: no cover - convenience
        return self.value


class Feature(str, Enum):
    CHAT = "chat"
    ADVANCED_CHAT = "advanced_chat"
    VOICE_INPUT = "voice_input"
    EXTENDED_HISTORY = "extended_history"
    UNLIMITED_HISTORY = "unlimited_history"
    LONG_CONTEXT = "long_context"
    FILE_UPLOAD = "file_upload"
    PRIORITY_PROCESSING = "priority_processing"

    def __str__(self) -> str:  # pragma: no cover - convenience
        return self.value


class PriorityClass(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    def __str__(self) -> str:  # pragma: no cover - convenience
        return self.value


SUPPORTED_TIERS: Sequence[SubscriptionTier] = tuple(SubscriptionTier)
PAID_TIERS: Sequence[SubscriptionTier] = (SubscriptionTier.PRO, SubscriptionTier.PLUS)
ALL_FEATURES: FrozenSet[Feature] = frozenset(Feature)

SUSPENSION_DURATIONS_DAYS: Mapping[str, int] = {
    "7d": 7,
    "30d": 30,
}

# ISO 4217 code -> number of minor-unit digits used for display.
SUPPORTED_CURRENCIES: Mapping[str, int] = {
    "USD": 2,
    "EUR": 2,
    "GBP": 2,
    "INR": 2,
    "JPY": 0,
}


def coerce_tier(value: object) -> SubscriptionTier:
    """Parse user input into a tier or raise ``InvalidArgument``."""
    try:
        return SubscriptionTier(str(value or "").strip().lower())
    except ValueError:
        allowed = ", ".join(tier.value for tier in SubscriptionTier)
        raise InvalidArgument(f"Unknown subscription tier '{value}'. Use one of: {allowed}.", code="tier.invalid") from None


def coerce_feature(value: object) -> Feature:
    try:
        return Feature(str(value or "").strip().lower())
    except ValueError:
        raise InvalidArgument(f"Unknown feature '{value}'.", code="feature.invalid") from None


def coerce_currency(value: object) -> str:
    code = str(value or "").strip().upper()
    if code not in SUPPORTED_CURRENCIES:
        allowed = ", ".join(SUPPORTED_CURRENCIES)
        raise InvalidArgument(f"Unsupported currency '{value}'. Use one of: {allowed}.", code="currency.invalid")
    return code


__all__ = [
    "ALL_FEATURES",
    "AccountRole",
    "AccountStatus",
    "Feature",
    "PAID_TIERS",
    "PriorityClass",
    "SUPPORTED_CURRENCIES",
    "SUPPORTED_TIERS",
    "SUSPENSION_DURATIONS_DAYS",
    "SubscriptionTier",
    "coerce_currency",
    "coerce_feature",
    "coerce_tier",
]
