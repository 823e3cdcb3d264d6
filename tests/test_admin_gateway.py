from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from core.errors import InvalidArgument, NotFound, Unauthorized
from core.plan_constants import AccountRole, AccountStatus, SubscriptionTier
from services.admin_gateway import AdminGateway
from services.pricing_engine import PricingEngine


@pytest.fixture()
def gateway(accounts, clock) -> AdminGateway:
    return AdminGateway(accounts, clock=clock)


@pytest.fixture()
def admin(make_account):
    return make_account("admin-1", role=AccountRole.ADMIN)


def _window(clock):
    return {
        "startDate": (clock() - timedelta(days=1)).isoformat(),
        "endDate": (clock() + timedelta(days=10)).isoformat(),
    }


def test_missing_actor_is_unauthorized(gateway) -> None:
    with pytest.raises(Unauthorized):
        gateway.ban(None, "u1")


def test_non_admin_actor_is_unauthorized(gateway, make_account) -> None:
    make_account("u1")
    make_account("u2")
    with pytest.raises(Unauthorized) as exc:
        gateway.ban("u1", "u2")
    assert exc.value.to_detail()["code"] == "admin.unauthorized"
    assert exc.value.status_code == 403


def test_unknown_actor_is_unauthorized(gateway, make_account) -> None:
    make_account("u1")
    with pytest.raises(Unauthorized):
        gateway.change_tier("nobody", "u1", "plus")


def test_demoted_admin_loses_privilege_immediately(gateway, admin, accounts, make_account) -> None:
    make_account("u1")
    gateway.ban(admin.uid, "u1")

    def _demote(account):
        account.role = AccountRole.USER
        return account

    accounts.update_account(admin.uid, _demote)
    with pytest.raises(Unauthorized):
        gateway.reactivate(admin.uid, "u1")


def test_banned_admin_cannot_reactivate_self(gateway, admin, make_account) -> None:
    make_account("admin-2", role=AccountRole.ADMIN)
    gateway.ban("admin-2", admin.uid)

    with pytest.raises(Unauthorized) as exc:
        gateway.reactivate(admin.uid, admin.uid)
    assert exc.value.code == "admin.inactive"
    assert exc.value.status_code == 403


def test_suspended_admin_is_rejected_until_expiry(gateway, make_account, clock) -> None:
    make_account(
        "admin-1",
        role=AccountRole.ADMIN,
        status=AccountStatus.SUSPENDED,
        suspended_until=clock() + timedelta(days=2),
    )
    make_account("u1")

    with pytest.raises(Unauthorized) as exc:
        gateway.change_tier("admin-1", "u1", "plus")
    assert exc.value.code == "admin.inactive"

    clock.advance(days=3)
    assert gateway.change_tier("admin-1", "u1", "plus").subscription_tier == SubscriptionTier.PLUS


def test_lifecycle_transitions(gateway, admin, make_account, clock) -> None:
    make_account("u1")

    banned = gateway.ban(admin.uid, "u1")
    assert banned.status == AccountStatus.BANNED
    assert banned.banned_at == clock()

    suspended = gateway.suspend(admin.uid, "u1", "30d")
    assert suspended.status == AccountStatus.SUSPENDED
    assert suspended.suspended_until == clock() + timedelta(days=30)

    reactivated = gateway.reactivate(admin.uid, "u1")
    assert reactivated.status == AccountStatus.ACTIVE
    assert reactivated.suspended_until == clock() + timedelta(days=30)


def test_invalid_duration_is_rejected(gateway, admin, make_account) -> None:
    make_account("u1")
    with pytest.raises(InvalidArgument):
        gateway.suspend(admin.uid, "u1", "3d")


def test_missing_target_is_not_found(gateway, admin) -> None:
    with pytest.raises(NotFound) as exc:
        gateway.ban(admin.uid, "ghost")
    assert exc.value.code == "account.not_found"


def test_change_tier_stamps_timestamp_even_for_banned_target(gateway, admin, make_account, clock) -> None:
    make_account("u1", status=AccountStatus.BANNED, tier=SubscriptionTier.PLUS)
    updated = gateway.change_tier(admin.uid, "u1", "free")

    assert updated.subscription_tier == SubscriptionTier.FREE
    assert updated.subscription_updated_at == clock()
    assert updated.status == AccountStatus.BANNED


def test_change_tier_rejects_unknown_tier(gateway, admin, make_account) -> None:
    make_account("u1")
    with pytest.raises(InvalidArgument):
        gateway.change_tier(admin.uid, "u1", "gold")


def test_reset_usage(gateway, admin, make_account, accounts) -> None:
    make_account("u1", message_count={"2024-06": 50})
    assert gateway.reset_usage(admin.uid, "u1") == 0
    assert accounts.require_account("u1").message_count == {"2024-06": 0}


def test_create_discount_and_price_effect(gateway, admin, accounts, clock) -> None:
    discount = gateway.create_discount(
        admin.uid,
        {"name": "Summer", "discountPercent": 25, "applicableTiers": ["pro"], **_window(clock)},
    )

    assert discount.id
    assert discount.created_by == admin.uid
    assert discount.active
    quote = PricingEngine(accounts).quote_all("USD", clock())[1]
    assert quote.discount_percent == 25


@pytest.mark.parametrize(
    "overrides, code",
    [
        ({"discountPercent": 0}, "discount.invalid_percent"),
        ({"discountPercent": 100}, "discount.invalid_percent"),
        ({"discountPercent": 12.5}, "discount.invalid_percent"),
        ({"applicableTiers": ["free"]}, "discount.invalid_tiers"),
        ({"applicableTiers": []}, "discount.invalid_tiers"),
        ({"name": " "}, "discount.invalid_name"),
        ({"startDate": "yesterday"}, "discount.invalid_date"),
        ({"startDate": "2024-07-01T00:00:00Z", "endDate": "2024-06-01T00:00:00Z"}, "discount.invalid_window"),
    ],
)
def test_create_discount_validation(gateway, admin, clock, overrides, code) -> None:
    payload = {"name": "Promo", "discountPercent": 10, "applicableTiers": ["pro"], **_window(clock)}
    payload.update(overrides)
    with pytest.raises(InvalidArgument) as exc:
        gateway.create_discount(admin.uid, payload)
    assert exc.value.code == code


def test_update_discount_deactivates_without_deleting(gateway, admin, clock) -> None:
    created = gateway.create_discount(
        admin.uid,
        {"name": "Promo", "discountPercent": 10, "applicableTiers": ["pro", "plus"], **_window(clock)},
    )
    updated = gateway.update_discount(admin.uid, created.id, {"active": False})

    assert not updated.active
    assert updated.updated_by == admin.uid
    assert gateway.list_discounts(admin.uid) == []
    assert [item.id for item in gateway.list_discounts(admin.uid, include_inactive=True)] == [created.id]


def test_update_missing_discount_is_not_found(gateway, admin) -> None:
    with pytest.raises(NotFound) as exc:
        gateway.update_discount(admin.uid, "missing", {"active": False})
    assert exc.value.code == "discount.not_found"


def test_update_pricing_requires_admin(gateway, make_account) -> None:
    make_account("u1")
    with pytest.raises(Unauthorized):
        gateway.update_pricing("u1", {"pro": {"USD": "1"}})


def test_list_accounts_filters_on_effective_status(gateway, admin, make_account, clock) -> None:
    make_account("expired", status=AccountStatus.SUSPENDED, suspended_until=clock() - timedelta(days=1))
    make_account("current", status=AccountStatus.SUSPENDED, suspended_until=clock() + timedelta(days=1))
    make_account("banned", status=AccountStatus.BANNED, tier=SubscriptionTier.PRO)

    suspended = [account.uid for account in gateway.list_accounts(admin.uid, "suspended")]
    active = [account.uid for account in gateway.list_accounts(admin.uid, "active")]
    pro = [account.uid for account in gateway.list_accounts(admin.uid, "pro")]

    assert suspended == ["current"]
    assert sorted(active) == ["admin-1", "expired"]
    assert pro == ["banned"]

    with pytest.raises(InvalidArgument):
        gateway.list_accounts(admin.uid, "vip")


def test_account_stats(gateway, admin, make_account, clock) -> None:
    make_account("u1", tier=SubscriptionTier.PRO)
    make_account("u2", status=AccountStatus.BANNED)
    make_account("u3", status=AccountStatus.SUSPENDED, suspended_until=clock() + timedelta(days=2))

    stats = gateway.account_stats(admin.uid).to_dict()
    assert stats == {"total": 4, "active": 2, "suspended": 1, "banned": 1, "free": 3, "pro": 1, "plus": 0}


def test_update_tier_config_changes_free_ceiling(gateway, admin, make_account) -> None:
    profiles = gateway.update_tier_config(admin.uid, {"free": {"monthlyMessageLimit": 10}})

    free = next(profile for profile in profiles if profile.tier == SubscriptionTier.FREE)
    assert free.monthly_message_limit == 10

    make_account("u1")
    with pytest.raises(Unauthorized):
        gateway.update_tier_config("u1", {"free": {"monthlyMessageLimit": 1000}})
