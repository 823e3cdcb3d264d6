"""Entitlement resolution: lifecycle, role, tier features and monthly ceilings."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, FrozenSet, Optional

from core.errors import StoreUnavailable
from core.logging import get_logger
from core.plan_constants import (
    ALL_FEATURES,
    AccountStatus,
    Feature,
    PriorityClass,
    SubscriptionTier,
    coerce_feature,
)
from services.account_status import effective_status
from services.account_store import Account, AccountStore, utcnow
from services.tier_config_store import TierProfile, get_tier_profile, list_tier_profiles
from services.usage_counter import UsageCounter, month_key

logger = get_logger(__name__)

REASON_BANNED = "account.banned"
REASON_SUSPENDED = "account.suspended"
REASON_FEATURE = "feature.not_in_tier"
REASON_QUOTA = "quota.exceeded"
REASON_STORE = "store.unavailable"

_UPGRADE_TARGET: Dict[SubscriptionTier, str] = {
    SubscriptionTier.FREE: "Pro",
    SubscriptionTier.PRO: "Plus",
    SubscriptionTier.PLUS: "Plus",
}


@dataclass(frozen=True)
class EntitlementDecision:
    """Outcome of one entitlement check. Denials carry a reason code and a message."""

    allowed: bool
    response_budget_chars: int
    feature_flags: FrozenSet[Feature] = field(default_factory=frozenset)
    reason: Optional[str] = None
    message: Optional[str] = None
    tier: Optional[SubscriptionTier] = None
    priority_class: PriorityClass = PriorityClass.LOW
    effective_status: Optional[AccountStatus] = None
    suspended_until: Optional[datetime] = None
    limit: Optional[int] = None
    remaining: Optional[int] = None
    usage_count: int = 0

    def to_detail(self) -> Dict[str, Any]:
        detail: Dict[str, Any] = {
            "code": self.reason,
            "message": self.message,
        }
        if self.tier is not None:
            detail["tier"] = self.tier.value
        if self.suspended_until is not None:
            detail["suspendedUntil"] = self.suspended_until.isoformat()
        if self.limit is not None:
            detail["limit"] = self.limit
            detail["remaining"] = self.remaining
        if self.reason == REASON_STORE:
            detail["retryable"] = True
        return detail


def _deny(
    reason: str,
    message: str,
    *,
    account: Optional[Account] = None,
    status: Optional[AccountStatus] = None,
    **extra: Any,
) -> EntitlementDecision:
    return EntitlementDecision(
        allowed=False,
        response_budget_chars=0,
        reason=reason,
        message=message,
        tier=account.subscription_tier if account else None,
        effective_status=status,
        **extra,
    )


def admin_profile() -> TierProfile:
    """Every feature at the largest configured budget, with no monthly ceiling."""

    profiles = list_tier_profiles().values()
    return TierProfile(
        tier=SubscriptionTier.PLUS,
        features=frozenset(ALL_FEATURES),
        response_budget_chars=max(profile.response_budget_chars for profile in profiles),
        monthly_message_limit=None,
        priority_class=PriorityClass.HIGH,
    )


class EntitlementResolver:
    """Single decision path shared by the UI preflight and the enforcement endpoint.

    Rule order: effective lifecycle state, then the admin role, then the tier
    feature table, then the tier's monthly ceiling. Resolution never writes.
    """

    def __init__(
        self,
        accounts: Optional[AccountStore] = None,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._accounts = accounts
        self._clock = clock

    def resolve(
        self,
        account: Account,
        feature: Feature | str,
        usage_count: int,
        now: datetime,
    ) -> EntitlementDecision:
        requested = coerce_feature(feature)
        status = effective_status(account.status, account.suspended_until, now)

        if status == AccountStatus.BANNED:
            return _deny(
                REASON_BANNED,
                "This account has been banned.",
                account=account,
                status=status,
                usage_count=usage_count,
            )
        if status == AccountStatus.SUSPENDED:
            if account.suspended_until is not None:
                message = f"This account is suspended until {account.suspended_until.date().isoformat()}."
            else:
                message = "This account is suspended."
            return _deny(
                REASON_SUSPENDED,
                message,
                account=account,
                status=status,
                suspended_until=account.suspended_until,
                usage_count=usage_count,
            )

        profile = admin_profile() if account.is_admin else get_tier_profile(account.subscription_tier)

        if not profile.allows(requested):
            upgrade = _UPGRADE_TARGET.get(account.subscription_tier, "a higher plan")
            return _deny(
                REASON_FEATURE,
                f"'{requested.value}' is not included in the {account.subscription_tier.value} plan. "
                f"Upgrade to {upgrade} to unlock it.",
                account=account,
                status=status,
                usage_count=usage_count,
            )

        limit = profile.monthly_message_limit
        remaining: Optional[int] = None
        if limit is not None:
            if usage_count >= limit:
                return _deny(
                    REASON_QUOTA,
                    f"Monthly message limit reached ({usage_count}/{limit}). "
                    "Upgrade to Pro for unlimited messages.",
                    account=account,
                    status=status,
                    limit=limit,
                    remaining=0,
                    usage_count=usage_count,
                )
            remaining = limit - usage_count

        return EntitlementDecision(
            allowed=True,
            response_budget_chars=profile.response_budget_chars,
            feature_flags=profile.features,
            tier=account.subscription_tier,
            priority_class=profile.priority_class,
            effective_status=status,
            limit=limit,
            remaining=remaining,
            usage_count=usage_count,
        )

    def check(self, uid: str, feature: Feature | str) -> EntitlementDecision:
        """Load the account and its current-month usage, then resolve.

        A store outage denies with ``store.unavailable`` rather than granting access.
        """

        requested = coerce_feature(feature)
        if self._accounts is None:  # pragma: no cover - wiring guard
            raise StoreUnavailable("Entitlement checks need an account store.")
        now = self._clock()
        try:
            account = self._accounts.require_account(uid)
        except StoreUnavailable as exc:
            logger.warning("Entitlement check for %s denied: store unavailable (%s).", uid, exc.code)
            return _deny(
                REASON_STORE,
                "Account data is temporarily unavailable. Please retry shortly.",
            )
        usage = UsageCounter.count_for(account, month_key(now))
        decision = self.resolve(account, requested, usage, now)
        if not decision.allowed:
            logger.info("Entitlement denied for %s on %s: %s", uid, requested.value, decision.reason)
        return decision


__all__ = [
    "EntitlementDecision",
    "EntitlementResolver",
    "REASON_BANNED",
    "REASON_FEATURE",
    "REASON_QUOTA",
    "REASON_STORE",
    "REASON_SUSPENDED",
    "admin_profile",
]
