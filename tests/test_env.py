import pytest

from core.env import env_bool, env_choice, env_int, env_list
from database import build_engine, resolve_database_url
from services.document_store import MemoryDocumentStore
from web.main import build_store


def test_env_choice_normalizes_and_rejects_unknown(monkeypatch) -> None:
    monkeypatch.delenv("STORE_BACKEND", raising=False)
    assert env_choice("STORE_BACKEND", ("sql", "memory"), "sql") == "sql"

    monkeypatch.setenv("STORE_BACKEND", " Memory ")
    assert env_choice("STORE_BACKEND", ("sql", "memory"), "sql") == "memory"

    monkeypatch.setenv("STORE_BACKEND", "memroy")
    with pytest.raises(RuntimeError) as exc:
        env_choice("STORE_BACKEND", ("sql", "memory"), "sql")
    assert "memroy" in str(exc.value)


def test_build_store_follows_backend_choice(monkeypatch) -> None:
    monkeypatch.setenv("STORE_BACKEND", "MEMORY")
    assert isinstance(build_store(), MemoryDocumentStore)

    monkeypatch.setenv("STORE_BACKEND", "redis")
    with pytest.raises(RuntimeError):
        build_store()


def test_numeric_and_boolean_fallbacks(monkeypatch) -> None:
    monkeypatch.setenv("USAGE_TEST_INT", "0")
    assert env_int("USAGE_TEST_INT", 25, minimum=1) == 25
    monkeypatch.setenv("USAGE_TEST_BOOL", "On")
    assert env_bool("USAGE_TEST_BOOL", False) is True
    monkeypatch.setenv("USAGE_TEST_BOOL", "maybe")
    assert env_bool("USAGE_TEST_BOOL", False) is False


def test_admin_email_list_is_trimmed_and_lowered(monkeypatch) -> None:
    monkeypatch.setenv("ADMIN_EMAILS", " Ops@Example.com ,, b@example.com")
    assert env_list("ADMIN_EMAILS", lower=True) == ("ops@example.com", "b@example.com")


def test_database_url_requires_postgres_unless_allowed(monkeypatch) -> None:
    monkeypatch.setattr("database.ALLOW_NON_POSTGRES", False)
    monkeypatch.setenv("DATABASE_ALLOW_NON_POSTGRES", "no")
    with pytest.raises(RuntimeError):
        resolve_database_url("sqlite+pysqlite:///:memory:")

    monkeypatch.setenv("DATABASE_ALLOW_NON_POSTGRES", "yes")
    assert resolve_database_url("sqlite+pysqlite:///:memory:").startswith("sqlite")


def test_sqlite_connect_timeout_comes_from_env(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("DATABASE_ALLOW_NON_POSTGRES", "1")
    monkeypatch.setenv("DATABASE_CONNECT_TIMEOUT_SECONDS", "2.5")
    captured = {}

    def _create_engine(url, connect_args=None, **kwargs):
        captured.update(connect_args or {})
        return object()

    monkeypatch.setattr("database.create_engine", _create_engine)
    build_engine(f"sqlite+pysqlite:///{tmp_path / 'x.db'}")
    assert captured == {"check_same_thread": False, "timeout": 2.5}
