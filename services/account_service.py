"""Account bootstrap on first authentication and activity tracking."""

from __future__ import annotations

from datetime import datetime
from typing import Callable, Optional, Tuple

from core.env import env_list
from core.errors import InvalidArgument
from core.logging import get_logger
from core.plan_constants import AccountRole, AccountStatus, SubscriptionTier
from services.account_store import Account, AccountStore, utcnow

logger = get_logger(__name__)


def admin_emails() -> Tuple[str, ...]:
    return env_list("ADMIN_EMAILS", lower=True)


class AccountService:
    def __init__(
        self,
        accounts: AccountStore,
        *,
        clock: Callable[[], datetime] = utcnow,
        admin_email_source: Callable[[], Tuple[str, ...]] = admin_emails,
    ) -> None:
        self._accounts = accounts
        self._clock = clock
        self._admin_email_source = admin_email_source

    def ensure_account(
        self,
        uid: str,
        *,
        email: Optional[str] = None,
        display_name: Optional[str] = None,
        verified_email: Optional[str] = None,
    ) -> Tuple[Account, bool]:
        """Create the account on first sight, otherwise refresh ``lastActive``.

        New accounts start on the free tier and active. Only ``verified_email``,
        as asserted by the identity provider, is matched against ``ADMIN_EMAILS``
        for the admin role. A self-reported ``email`` is stored but never
        promotes. An existing record's role is never changed here.
        """

        account_id = str(uid or "").strip()
        if not account_id:
            raise InvalidArgument("Account id is required.", code="account.invalid_id")
        now = self._clock()
        trusted_email = (verified_email or "").strip() or None
        normalized_email = trusted_email or (email or "").strip() or None
        role = AccountRole.USER
        if trusted_email and trusted_email.lower() in self._admin_email_source():
            role = AccountRole.ADMIN

        candidate = Account(
            uid=account_id,
            role=role,
            subscription_tier=SubscriptionTier.FREE,
            status=AccountStatus.ACTIVE,
            email=normalized_email,
            display_name=(display_name or "").strip() or None,
            created_at=now,
            last_active=now,
            updated_at=now,
        )
        account, created = self._accounts.create_account(candidate)
        if created:
            logger.info("Created account %s (role=%s).", account_id, role.value)
            return account, True

        def _touch(current: Account) -> Account:
            current.last_active = now
            if normalized_email and not current.email:
                current.email = normalized_email
            if display_name and not current.display_name:
                current.display_name = display_name.strip() or None
            return current

        return self._accounts.update_account(account_id, _touch), False


__all__ = ["AccountService", "admin_emails"]
