from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from core.errors import InvalidArgument
from core.plan_constants import AccountStatus
from services.account_status import AccountStatusMachine, effective_status, parse_suspension_duration
from services.account_store import Account

T0 = datetime(2024, 6, 1, 0, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize("offset_hours", [-48, -1, 0, 1, 72])
def test_suspension_reads_active_once_deadline_passes(offset_hours: int) -> None:
    until = T0 + timedelta(days=7)
    now = until + timedelta(hours=offset_hours)
    derived = effective_status(AccountStatus.SUSPENDED, until, now)
    expected = AccountStatus.SUSPENDED if now < until else AccountStatus.ACTIVE
    assert derived == expected


def test_banned_is_banned_regardless_of_suspension_deadline() -> None:
    past = T0 - timedelta(days=30)
    assert effective_status(AccountStatus.BANNED, past, T0) == AccountStatus.BANNED
    assert effective_status(AccountStatus.BANNED, None, T0) == AccountStatus.BANNED


def test_suspension_without_deadline_stays_suspended() -> None:
    assert effective_status(AccountStatus.SUSPENDED, None, T0 + timedelta(days=365)) == AccountStatus.SUSPENDED


def test_suspend_sets_deadline_and_view_expires_lazily() -> None:
    machine = AccountStatusMachine()
    account = machine.suspend(Account(uid="u1"), "7d", T0)

    assert account.status == AccountStatus.SUSPENDED
    assert account.suspended_at == T0
    assert account.suspended_until == T0 + timedelta(days=7)

    during = machine.view(account, T0 + timedelta(days=6))
    assert during.effective == AccountStatus.SUSPENDED
    assert not during.suspension_expired

    after = machine.view(account, T0 + timedelta(days=8))
    assert after.effective == AccountStatus.ACTIVE
    assert after.stored == AccountStatus.SUSPENDED
    assert after.suspension_expired
    # Deriving the view never rewrites the stored record.
    assert account.status == AccountStatus.SUSPENDED


def test_reactivate_keeps_last_suspension_deadline() -> None:
    machine = AccountStatusMachine()
    account = machine.suspend(Account(uid="u1"), "30d", T0)
    reactivated = machine.reactivate(account, T0 + timedelta(days=1))

    assert reactivated.status == AccountStatus.ACTIVE
    assert reactivated.reactivated_at == T0 + timedelta(days=1)
    assert reactivated.suspended_until == T0 + timedelta(days=30)


def test_ban_stamps_banned_at() -> None:
    account = AccountStatusMachine().ban(Account(uid="u1"), T0)
    assert account.status == AccountStatus.BANNED
    assert account.banned_at == T0


@pytest.mark.parametrize("duration", ["1d", "", "forever", "14d"])
def test_unsupported_suspension_duration_is_rejected(duration: str) -> None:
    with pytest.raises(InvalidArgument) as exc:
        parse_suspension_duration(duration)
    assert exc.value.code == "admin.invalid_duration"


def test_suspension_durations_accept_case_and_whitespace() -> None:
    assert parse_suspension_duration(" 30D ") == timedelta(days=30)
