from datetime import timedelta

import pytest

from core.errors import InvalidArgument
from core.plan_constants import AccountRole, AccountStatus, SubscriptionTier
from services.account_service import AccountService


def test_first_sight_creates_free_active_account(accounts, clock) -> None:
    service = AccountService(accounts, clock=clock, admin_email_source=lambda: ())
    account, created = service.ensure_account("u1", email="user@example.com", display_name="User")

    assert created
    assert account.role == AccountRole.USER
    assert account.subscription_tier == SubscriptionTier.FREE
    assert account.status == AccountStatus.ACTIVE
    assert account.created_at == clock()


def test_verified_admin_email_gets_admin_role(accounts, clock, monkeypatch) -> None:
    monkeypatch.setenv("ADMIN_EMAILS", "Ops@Example.com, other@example.com")
    account, _ = AccountService(accounts, clock=clock).ensure_account("a1", verified_email="ops@example.com")
    assert account.role == AccountRole.ADMIN
    assert account.email == "ops@example.com"


def test_self_reported_admin_email_does_not_promote(accounts, clock, monkeypatch) -> None:
    monkeypatch.setenv("ADMIN_EMAILS", "ops@example.com")
    service = AccountService(accounts, clock=clock)

    account, created = service.ensure_account("a1", email="ops@example.com")
    assert created
    assert account.role == AccountRole.USER
    assert account.email == "ops@example.com"

    other, _ = service.ensure_account("a2", email="ops@example.com", verified_email="someone@example.com")
    assert other.role == AccountRole.USER
    assert other.email == "someone@example.com"


def test_existing_account_is_touched_not_reset(accounts, clock, make_account) -> None:
    make_account("u1", tier=SubscriptionTier.PRO, status=AccountStatus.BANNED)
    clock.advance(days=1)

    account, created = AccountService(accounts, clock=clock, admin_email_source=lambda: ("x@example.com",)).ensure_account(
        "u1", email="x@example.com"
    )

    assert not created
    assert account.subscription_tier == SubscriptionTier.PRO
    assert account.status == AccountStatus.BANNED
    assert account.role == AccountRole.USER
    assert account.last_active == clock()
    assert account.created_at == clock() - timedelta(days=1)


def test_blank_uid_is_rejected(accounts) -> None:
    with pytest.raises(InvalidArgument):
        AccountService(accounts).ensure_account("  ")
