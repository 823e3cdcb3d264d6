"""Account lifecycle transitions and lazy suspension-expiry derivation."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from core.errors import InvalidArgument
from core.plan_constants import SUSPENSION_DURATIONS_DAYS, AccountStatus
from services.account_store import Account


def effective_status(
    status: AccountStatus,
    suspended_until: Optional[datetime],
    now: datetime,
) -> AccountStatus:
    """Return the lifecycle state used for authorization.

    Suspensions expire lazily: once ``now`` reaches ``suspended_until`` the account
    is treated as active even though the stored status still reads suspended.
    Nothing here writes the derived state back.
    """

    if status == AccountStatus.BANNED:
        return AccountStatus.BANNED
    if status == AccountStatus.SUSPENDED:
        if suspended_until is None:
            return AccountStatus.SUSPENDED
        if now < suspended_until:
            return AccountStatus.SUSPENDED
        return AccountStatus.ACTIVE
    return AccountStatus.ACTIVE


@dataclass(frozen=True)
class LifecycleView:
    """Stored versus effective lifecycle state of one account."""

    stored: AccountStatus
    effective: AccountStatus
    suspended_until: Optional[datetime]

    @property
    def suspension_expired(self) -> bool:
        return self.stored == AccountStatus.SUSPENDED and self.effective == AccountStatus.ACTIVE


def parse_suspension_duration(duration: str) -> timedelta:
    key = str(duration or "").strip().lower()
    days = SUSPENSION_DURATIONS_DAYS.get(key)
    if days is None:
        allowed = ", ".join(SUSPENSION_DURATIONS_DAYS)
        raise InvalidArgument(
            f"Unsupported suspension duration '{duration}'. Use one of: {allowed}.",
            code="admin.invalid_duration",
        )
    return timedelta(days=days)


class AccountStatusMachine:
    """Admin-driven transitions. Any state may move to any other state."""

    def view(self, account: Account, now: datetime) -> LifecycleView:
        return LifecycleView(
            stored=account.status,
            effective=effective_status(account.status, account.suspended_until, now),
            suspended_until=account.suspended_until,
        )

    def ban(self, account: Account, now: datetime) -> Account:
        account.status = AccountStatus.BANNED
        account.banned_at = now
        account.updated_at = now
        return account

    def suspend(self, account: Account, duration: str, now: datetime) -> Account:
        delta = parse_suspension_duration(duration)
        account.status = AccountStatus.SUSPENDED
        account.suspended_at = now
        account.suspended_until = now + delta
        account.updated_at = now
        return account

    def reactivate(self, account: Account, now: datetime) -> Account:
        # suspended_until is kept as a record of the last suspension.
        account.status = AccountStatus.ACTIVE
        account.reactivated_at = now
        account.updated_at = now
        return account


__all__ = [
    "AccountStatusMachine",
    "LifecycleView",
    "effective_status",
    "parse_suspension_duration",
]
