"""Monthly message counters stored on the account document."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from core.env import env_int
from core.errors import InvalidArgument, QuotaExceeded
from core.logging import get_logger
from services.account_store import Account, AccountStore, utcnow

logger = get_logger(__name__)

USAGE_INCREMENT_MAX_RETRIES = env_int("USAGE_INCREMENT_MAX_RETRIES", 25, minimum=1)

_MONTH_KEY_PATTERN = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")


def month_key(moment: datetime) -> str:
    """``YYYY-MM`` bucket of ``moment`` in UTC."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).strftime("%Y-%m")


def validate_month_key(key: str) -> str:
    candidate = str(key or "").strip()
    if not _MONTH_KEY_PATTERN.match(candidate):
        raise InvalidArgument(f"Month key must look like YYYY-MM, got '{key}'.", code="usage.invalid_month")
    return candidate


@dataclass(frozen=True)
class UsageSnapshot:
    count: int
    month_key: str
    lifetime_total: int

    def to_dict(self) -> dict:
        return {
            "messageCount": self.count,
            "currentMonth": self.month_key,
            "totalCount": self.lifetime_total,
        }


class UsageCounter:
    """get/increment/reset over ``Account.message_count``.

    Increments run as an optimistic read-modify-write on the account document
    version, so concurrent sessions never overwrite each other's increments.
    """

    def __init__(
        self,
        accounts: AccountStore,
        *,
        clock: Callable[[], datetime] = utcnow,
        max_retries: Optional[int] = None,
    ) -> None:
        self._accounts = accounts
        self._clock = clock
        self._max_retries = max_retries or USAGE_INCREMENT_MAX_RETRIES

    def current_key(self) -> str:
        return month_key(self._clock())

    @staticmethod
    def count_for(account: Account, key: str) -> int:
        return int(account.message_count.get(key, 0))

    @staticmethod
    def lifetime_total(account: Account) -> int:
        return sum(account.message_count.values())

    def get(self, uid: str) -> int:
        account = self._accounts.require_account(uid)
        return self.count_for(account, self.current_key())

    def snapshot(self, uid: str) -> UsageSnapshot:
        account = self._accounts.require_account(uid)
        key = self.current_key()
        return UsageSnapshot(
            count=self.count_for(account, key),
            month_key=key,
            lifetime_total=self.lifetime_total(account),
        )

    def increment(self, uid: str, *, limit: Optional[int] = None) -> int:
        """Add one message to the current month and return the new count.

        With ``limit`` the ceiling is checked against the same snapshot that the
        compare-and-set writes, so concurrent sessions can never push the month
        past it. A full month raises ``QuotaExceeded`` and writes nothing.
        """
        now = self._clock()
        key = month_key(now)

        def _bump(account: Account) -> Account:
            current = account.message_count.get(key, 0)
            if limit is not None and current >= limit:
                raise QuotaExceeded(
                    f"Monthly message limit reached ({current}/{limit}).",
                    limit=limit,
                    usage_count=current,
                )
            account.message_count[key] = current + 1
            account.last_message_at = now
            account.updated_at = now
            return account

        updated = self._accounts.update_account(uid, _bump, max_retries=self._max_retries)
        count = self.count_for(updated, key)
        logger.debug("Usage for %s in %s is now %d.", uid, key, count)
        return count

    def reset(self, uid: str, key: Optional[str] = None) -> int:
        """Zero one month bucket (current month by default). The key itself is kept."""
        now = self._clock()
        target = validate_month_key(key) if key else month_key(now)

        def _zero(account: Account) -> Account:
            account.message_count[target] = 0
            account.updated_at = now
            return account

        self._accounts.update_account(uid, _zero, max_retries=self._max_retries)
        logger.info("Usage for %s in %s reset to 0.", uid, target)
        return 0


__all__ = ["UsageCounter", "UsageSnapshot", "month_key", "validate_month_key"]
