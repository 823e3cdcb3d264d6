"""Administrative operations, each re-authorizing the acting admin on every call."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional

from core.errors import InvalidArgument, Unauthorized
from core.logging import get_logger
from core.plan_constants import AccountStatus, SubscriptionTier, coerce_tier
from services.account_status import AccountStatusMachine, effective_status, parse_suspension_duration
from services.account_store import Account, AccountStore, Discount, PricingTable, utcnow
from services.pricing_engine import PricingEngine
from services.tier_config_store import TierProfile, list_tier_profiles, update_tier_config
from services.usage_counter import UsageCounter

logger = get_logger(__name__)

ACCOUNT_FILTERS = ("all", "active", "suspended", "banned", "free", "pro", "plus")

_MIN_DISCOUNT_PERCENT = 1
_MAX_DISCOUNT_PERCENT = 99


@dataclass(frozen=True)
class AccountStats:
    total: int
    active: int
    suspended: int
    banned: int
    free: int
    pro: int
    plus: int

    def to_dict(self) -> Dict[str, int]:
        return {
            "total": self.total,
            "active": self.active,
            "suspended": self.suspended,
            "banned": self.banned,
            "free": self.free,
            "pro": self.pro,
            "plus": self.plus,
        }


def _coerce_datetime(field_name: str, value: Any) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value or "").strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            raise InvalidArgument(f"{field_name} must be an ISO-8601 timestamp.", code="discount.invalid_date") from None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _coerce_percent(value: Any) -> int:
    if isinstance(value, bool):
        raise InvalidArgument("discountPercent must be an integer.", code="discount.invalid_percent")
    try:
        percent = int(value)
    except (TypeError, ValueError):
        raise InvalidArgument("discountPercent must be an integer.", code="discount.invalid_percent") from None
    if percent != value and not isinstance(value, str):
        raise InvalidArgument("discountPercent must be a whole number.", code="discount.invalid_percent")
    if not _MIN_DISCOUNT_PERCENT <= percent <= _MAX_DISCOUNT_PERCENT:
        raise InvalidArgument(
            f"discountPercent must be between {_MIN_DISCOUNT_PERCENT} and {_MAX_DISCOUNT_PERCENT}.",
            code="discount.invalid_percent",
        )
    return percent


def _coerce_discount_tiers(values: Any) -> frozenset:
    if not values or isinstance(values, (str, bytes)):
        raise InvalidArgument("applicableTiers must list at least one paid tier.", code="discount.invalid_tiers")
    tiers = frozenset(coerce_tier(value) for value in values)
    if SubscriptionTier.FREE in tiers:
        raise InvalidArgument("The free tier cannot be discounted.", code="discount.invalid_tiers")
    return tiers


def _check_window(start: datetime, end: datetime) -> None:
    if start > end:
        raise InvalidArgument("startDate must not be after endDate.", code="discount.invalid_window")


class AdminGateway:
    """Admin-only mutations and reads over accounts, pricing and discounts.

    ``authorize`` runs at the top of every public method; privilege is never
    cached between calls.
    """

    def __init__(
        self,
        accounts: AccountStore,
        *,
        usage: Optional[UsageCounter] = None,
        pricing: Optional[PricingEngine] = None,
        status_machine: Optional[AccountStatusMachine] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._accounts = accounts
        self._clock = clock
        self._usage = usage or UsageCounter(accounts, clock=clock)
        self._pricing = pricing or PricingEngine(accounts)
        self._machine = status_machine or AccountStatusMachine()

    def authorize(self, actor_id: Optional[str]) -> Account:
        actor = str(actor_id or "").strip()
        if not actor:
            raise Unauthorized("An acting admin id is required.")
        account = self._accounts.get_account(actor)
        if account is None or not account.is_admin:
            logger.warning("Rejected admin call from %s.", actor)
            raise Unauthorized("Unauthorized.")
        lifecycle = effective_status(account.status, account.suspended_until, self._clock())
        if lifecycle != AccountStatus.ACTIVE:
            logger.warning("Rejected admin call from %s: account is %s.", actor, lifecycle.value)
            raise Unauthorized("Admin account is not active.", code="admin.inactive")
        return account

    def _audit(self, actor: Account, action: str, target: str, **details: Any) -> None:
        suffix = "".join(f" {key}={value}" for key, value in details.items())
        logger.info("admin action=%s actor=%s target=%s%s", action, actor.uid, target, suffix)

    # ------------------------------------------------------------------
    # Lifecycle and tier
    # ------------------------------------------------------------------

    def ban(self, actor_id: Optional[str], target_id: str) -> Account:
        actor = self.authorize(actor_id)
        now = self._clock()
        updated = self._accounts.update_account(target_id, lambda account: self._machine.ban(account, now))
        self._audit(actor, "ban", target_id)
        return updated

    def suspend(self, actor_id: Optional[str], target_id: str, duration: str) -> Account:
        actor = self.authorize(actor_id)
        parse_suspension_duration(duration)
        now = self._clock()
        updated = self._accounts.update_account(
            target_id, lambda account: self._machine.suspend(account, duration, now)
        )
        self._audit(actor, "suspend", target_id, duration=duration, until=updated.suspended_until)
        return updated

    def reactivate(self, actor_id: Optional[str], target_id: str) -> Account:
        actor = self.authorize(actor_id)
        now = self._clock()
        updated = self._accounts.update_account(target_id, lambda account: self._machine.reactivate(account, now))
        self._audit(actor, "reactivate", target_id)
        return updated

    def change_tier(self, actor_id: Optional[str], target_id: str, tier: Any) -> Account:
        actor = self.authorize(actor_id)
        resolved = coerce_tier(tier)
        now = self._clock()

        def _apply(account: Account) -> Account:
            account.subscription_tier = resolved
            account.subscription_updated_at = now
            account.updated_at = now
            return account

        updated = self._accounts.update_account(target_id, _apply)
        self._audit(actor, "changeTier", target_id, tier=resolved.value)
        return updated

    def reset_usage(self, actor_id: Optional[str], target_id: str, month: Optional[str] = None) -> int:
        actor = self.authorize(actor_id)
        count = self._usage.reset(target_id, month)
        self._audit(actor, "resetUsage", target_id, month=month or self._usage.current_key())
        return count

    # ------------------------------------------------------------------
    # Pricing and discounts
    # ------------------------------------------------------------------

    def update_pricing(self, actor_id: Optional[str], pricing: Mapping[str, Mapping[str, Any]]) -> PricingTable:
        actor = self.authorize(actor_id)
        table = self._pricing.update_pricing(pricing, updated_by=actor.uid)
        self._audit(actor, "updatePricing", "pricing")
        return table

    def update_tier_config(self, actor_id: Optional[str], tiers: Mapping[str, Mapping[str, Any]]) -> List[TierProfile]:
        actor = self.authorize(actor_id)
        update_tier_config(tiers, updated_by=actor.uid)
        self._audit(actor, "updateTierConfig", "tiers", tiers=",".join(sorted(tiers)))
        return list(list_tier_profiles().values())

    def create_discount(self, actor_id: Optional[str], payload: Mapping[str, Any]) -> Discount:
        actor = self.authorize(actor_id)
        name = str(payload.get("name") or "").strip()
        if not name:
            raise InvalidArgument("Discount name is required.", code="discount.invalid_name")
        start = _coerce_datetime("startDate", payload.get("startDate"))
        end = _coerce_datetime("endDate", payload.get("endDate"))
        _check_window(start, end)
        now = self._clock()
        discount = Discount(
            id="",
            name=name,
            discount_percent=_coerce_percent(payload.get("discountPercent")),
            start_date=start,
            end_date=end,
            applicable_tiers=_coerce_discount_tiers(payload.get("applicableTiers")),
            active=bool(payload.get("active", True)),
            created_at=now,
            created_by=actor.uid,
        )
        created = self._accounts.create_discount(discount)
        self._audit(actor, "createDiscount", created.id, percent=created.discount_percent)
        return created

    def update_discount(self, actor_id: Optional[str], discount_id: str, payload: Mapping[str, Any]) -> Discount:
        """Partial update; ``{"active": False}`` deactivates without deleting."""
        actor = self.authorize(actor_id)
        if not discount_id:
            raise InvalidArgument("discountId is required.", code="discount.invalid_id")
        changes: Dict[str, Any] = {}
        if "name" in payload:
            name = str(payload.get("name") or "").strip()
            if not name:
                raise InvalidArgument("Discount name cannot be empty.", code="discount.invalid_name")
            changes["name"] = name
        if "discountPercent" in payload:
            changes["discount_percent"] = _coerce_percent(payload.get("discountPercent"))
        if "startDate" in payload:
            changes["start_date"] = _coerce_datetime("startDate", payload.get("startDate"))
        if "endDate" in payload:
            changes["end_date"] = _coerce_datetime("endDate", payload.get("endDate"))
        if "applicableTiers" in payload:
            changes["applicable_tiers"] = _coerce_discount_tiers(payload.get("applicableTiers"))
        if "active" in payload:
            changes["active"] = bool(payload.get("active"))
        now = self._clock()

        def _apply(discount: Discount) -> Discount:
            updated = replace(discount, **changes, updated_at=now, updated_by=actor.uid)
            _check_window(updated.start_date, updated.end_date)
            return updated

        updated = self._accounts.update_discount(discount_id, _apply)
        self._audit(actor, "updateDiscount", discount_id, fields=",".join(sorted(changes)) or "-")
        return updated

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_account(self, actor_id: Optional[str], target_id: str) -> Account:
        self.authorize(actor_id)
        return self._accounts.require_account(target_id)

    def list_accounts(self, actor_id: Optional[str], account_filter: Optional[str] = "all") -> List[Account]:
        self.authorize(actor_id)
        key = str(account_filter or "all").strip().lower()
        if key not in ACCOUNT_FILTERS:
            allowed = ", ".join(ACCOUNT_FILTERS)
            raise InvalidArgument(f"Unknown account filter '{account_filter}'. Use one of: {allowed}.", code="admin.invalid_filter")
        accounts = self._accounts.list_accounts()
        if key == "all":
            return accounts
        if key in {tier.value for tier in SubscriptionTier}:
            return [account for account in accounts if account.subscription_tier.value == key]
        now = self._clock()
        return [
            account
            for account in accounts
            if effective_status(account.status, account.suspended_until, now).value == key
        ]

    def account_stats(self, actor_id: Optional[str]) -> AccountStats:
        self.authorize(actor_id)
        now = self._clock()
        accounts = self._accounts.list_accounts()
        statuses = Counter(effective_status(account.status, account.suspended_until, now) for account in accounts)
        tiers = Counter(account.subscription_tier for account in accounts)
        return AccountStats(
            total=len(accounts),
            active=statuses[AccountStatus.ACTIVE],
            suspended=statuses[AccountStatus.SUSPENDED],
            banned=statuses[AccountStatus.BANNED],
            free=tiers[SubscriptionTier.FREE],
            pro=tiers[SubscriptionTier.PRO],
            plus=tiers[SubscriptionTier.PLUS],
        )

    def list_discounts(self, actor_id: Optional[str], *, include_inactive: bool = False) -> List[Discount]:
        self.authorize(actor_id)
        return self._accounts.list_discounts(active_only=not include_inactive)


__all__ = ["ACCOUNT_FILTERS", "AccountStats", "AdminGateway"]
