import os
from datetime import datetime, timedelta, timezone
from typing import Callable, Generator, Optional

import pytest

os.environ.setdefault("DATABASE_ALLOW_NON_POSTGRES", "1")
os.environ.setdefault("STORE_BACKEND", "memory")

from core.errors import StoreUnavailable
from core.plan_constants import AccountRole, AccountStatus, SubscriptionTier
from database import Base, build_engine, build_session_factory
from services.account_store import Account, AccountStore
from services.document_store import MemoryDocumentStore, SqlDocumentStore
from services.tier_config_store import clear_tier_config_cache

JUNE_15 = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


class FrozenClock:
    """Callable clock that only moves when a test advances it."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now

    def set(self, moment: datetime) -> datetime:
        self.now = moment
        return self.now


class UnavailableStore(MemoryDocumentStore):
    """Store whose reads fail as if the database were unreachable."""

    def get(self, collection, doc_id):
        raise StoreUnavailable("The account store is unavailable. Please retry shortly.")

    def query(self, collection, filters=None):
        raise StoreUnavailable("The account store is unavailable. Please retry shortly.")

    def ping(self) -> bool:
        return False


@pytest.fixture(autouse=True)
def isolated_tier_config(tmp_path, monkeypatch) -> Generator[None, None, None]:
    monkeypatch.setenv("TIER_CONFIG_FILE", str(tmp_path / "tier_config.json"))
    clear_tier_config_cache()
    yield
    clear_tier_config_cache()


@pytest.fixture()
def clock() -> FrozenClock:
    return FrozenClock(JUNE_15)


@pytest.fixture()
def memory_store() -> MemoryDocumentStore:
    return MemoryDocumentStore()


@pytest.fixture()
def sqlite_store(tmp_path) -> Generator[SqlDocumentStore, None, None]:
    import models  # noqa: F401

    engine = build_engine(f"sqlite+pysqlite:///{tmp_path / 'documents.db'}")
    Base.metadata.create_all(engine)
    try:
        yield SqlDocumentStore(build_session_factory(engine))
    finally:
        engine.dispose()


@pytest.fixture()
def accounts(memory_store) -> AccountStore:
    return AccountStore(memory_store)


@pytest.fixture()
def make_account(accounts) -> Callable[..., Account]:
    def _factory(
        uid: str,
        *,
        role: AccountRole = AccountRole.USER,
        tier: SubscriptionTier = SubscriptionTier.FREE,
        status: AccountStatus = AccountStatus.ACTIVE,
        suspended_until: Optional[datetime] = None,
        message_count: Optional[dict] = None,
        email: Optional[str] = None,
    ) -> Account:
        account, _ = accounts.create_account(
            Account(
                uid=uid,
                role=role,
                subscription_tier=tier,
                status=status,
                suspended_until=suspended_until,
                message_count=dict(message_count or {}),
                email=email,
                created_at=JUNE_15,
            )
        )
        return account

    return _factory


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "sqlite: exercises the SQL document store against a SQLite file")


@pytest.fixture()
def unavailable_store() -> UnavailableStore:
    return UnavailableStore()
