from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone

import pytest

from core.errors import InvalidArgument, NotFound, QuotaExceeded, StoreUnavailable
from services.account_store import AccountStore, Account
from services.document_store import MemoryDocumentStore
from services.usage_counter import UsageCounter, month_key, validate_month_key


class AlwaysConflictingStore(MemoryDocumentStore):
    def compare_and_set(self, collection, doc_id, data, *, expected_version):
        return False


def test_month_key_uses_utc() -> None:
    assert month_key(datetime(2024, 6, 30, 23, 30, tzinfo=timezone.utc)) == "2024-06"
    assert month_key(datetime(2024, 7, 1, 0, 0, tzinfo=timezone.utc)) == "2024-07"


def test_increment_returns_post_increment_count(accounts, make_account, clock) -> None:
    make_account("u1")
    usage = UsageCounter(accounts, clock=clock)

    assert usage.get("u1") == 0
    assert usage.increment("u1") == 1
    assert usage.increment("u1") == 2
    stored = accounts.require_account("u1")
    assert stored.message_count == {"2024-06": 2}
    assert stored.last_message_at == clock()


def test_month_rollover_uses_independent_keys(accounts, make_account, clock) -> None:
    make_account("u1")
    usage = UsageCounter(accounts, clock=clock)
    for _ in range(3):
        usage.increment("u1")

    clock.set(datetime(2024, 7, 1, 0, 0, 1, tzinfo=timezone.utc))
    assert usage.get("u1") == 0
    assert usage.increment("u1") == 1

    snapshot = usage.snapshot("u1")
    assert snapshot.count == 1
    assert snapshot.month_key == "2024-07"
    assert snapshot.lifetime_total == 4
    assert accounts.require_account("u1").message_count == {"2024-06": 3, "2024-07": 1}


def test_reset_zeroes_current_month_only(accounts, make_account, clock) -> None:
    make_account("u1", message_count={"2024-05": 12, "2024-06": 7})
    usage = UsageCounter(accounts, clock=clock)

    assert usage.reset("u1") == 0
    assert accounts.require_account("u1").message_count == {"2024-05": 12, "2024-06": 0}


def test_reset_accepts_explicit_month(accounts, make_account, clock) -> None:
    make_account("u1", message_count={"2024-05": 12})
    usage = UsageCounter(accounts, clock=clock)

    usage.reset("u1", "2024-05")
    assert accounts.require_account("u1").message_count["2024-05"] == 0

    with pytest.raises(InvalidArgument):
        usage.reset("u1", "May 2024")


def test_validate_month_key_rejects_month_thirteen() -> None:
    with pytest.raises(InvalidArgument):
        validate_month_key("2024-13")


def test_missing_account_raises_not_found(accounts, clock) -> None:
    usage = UsageCounter(accounts, clock=clock)
    with pytest.raises(NotFound):
        usage.increment("ghost")
    with pytest.raises(NotFound):
        usage.get("ghost")


def test_concurrent_increments_are_never_lost(accounts, make_account, clock) -> None:
    make_account("u1")
    usage = UsageCounter(accounts, clock=clock, max_retries=500)
    total = 200

    with ThreadPoolExecutor(max_workers=16) as pool:
        results = list(pool.map(lambda _: usage.increment("u1"), range(total)))

    assert usage.get("u1") == total
    assert sorted(results) == list(range(1, total + 1))


@pytest.mark.sqlite
def test_concurrent_increments_on_sql_store(sqlite_store, clock) -> None:
    accounts = AccountStore(sqlite_store)
    accounts.create_account(Account(uid="u1"))
    usage = UsageCounter(accounts, clock=clock, max_retries=500)
    total = 40

    with ThreadPoolExecutor(max_workers=4) as pool:
        list(pool.map(lambda _: usage.increment("u1"), range(total)))

    assert usage.get("u1") == total


def test_increment_with_limit_refuses_a_full_month(accounts, make_account, clock) -> None:
    make_account("u1", message_count={"2024-06": 49})
    usage = UsageCounter(accounts, clock=clock)

    assert usage.increment("u1", limit=50) == 50
    with pytest.raises(QuotaExceeded) as exc:
        usage.increment("u1", limit=50)

    assert exc.value.code == "quota.exceeded"
    assert exc.value.status_code == 429
    assert exc.value.usage_count == 50
    assert exc.value.to_detail()["remaining"] == 0
    assert usage.get("u1") == 50


def test_concurrent_limited_increments_stop_at_the_ceiling(accounts, make_account, clock) -> None:
    make_account("u1", message_count={"2024-06": 40})
    usage = UsageCounter(accounts, clock=clock, max_retries=500)

    def _attempt(_):
        try:
            return usage.increment("u1", limit=50)
        except QuotaExceeded:
            return None

    with ThreadPoolExecutor(max_workers=16) as pool:
        results = list(pool.map(_attempt, range(32)))

    assert sorted(r for r in results if r is not None) == list(range(41, 51))
    assert results.count(None) == 22
    assert usage.get("u1") == 50


def test_exhausted_retries_surface_contention() -> None:
    accounts = AccountStore(AlwaysConflictingStore())
    accounts.create_account(Account(uid="u1"))
    usage = UsageCounter(accounts, max_retries=3)

    with pytest.raises(StoreUnavailable) as exc:
        usage.increment("u1")
    assert exc.value.code == "store.contention"
    assert accounts.require_account("u1").message_count == {}
