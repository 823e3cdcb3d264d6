from typing import Callable, Optional

from dotenv import load_dotenv
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from core.env import env_bool, env_float, env_int, env_str

load_dotenv()

ALLOW_NON_POSTGRES = env_bool("DATABASE_ALLOW_NON_POSTGRES", False)


class Base(DeclarativeBase):
    """SQLAlchemy declarative base."""


def resolve_database_url(url: Optional[str] = None) -> str:
    """Return the configured DSN, refusing non-PostgreSQL URLs unless explicitly allowed."""
    database_url = url or env_str("DATABASE_URL") or env_str("TEST_DATABASE_URL")
    if not database_url:
        raise RuntimeError("DATABASE_URL or TEST_DATABASE_URL must be set to use the SQL document store.")
    is_postgres = database_url.lower().startswith("postgresql")
    allow_other = ALLOW_NON_POSTGRES or env_bool("DATABASE_ALLOW_NON_POSTGRES", False)
    if not is_postgres and not allow_other:
        raise RuntimeError(f"DATABASE_URL must be a PostgreSQL DSN. Current value: {database_url}")
    return database_url


def build_engine(url: Optional[str] = None) -> Engine:
    """Create an engine for ``url`` with a bounded connect timeout."""
    database_url = resolve_database_url(url)
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
        connect_args["timeout"] = env_float("DATABASE_CONNECT_TIMEOUT_SECONDS", 15.0, minimum=0.0)
    else:
        connect_args["connect_timeout"] = env_int("DATABASE_CONNECT_TIMEOUT_SECONDS", 5, minimum=1)
    return create_engine(database_url, connect_args=connect_args, pool_pre_ping=True)


def build_session_factory(engine: Engine) -> Callable[[], Session]:
    """Session factory handed to the SQL document store."""
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)
