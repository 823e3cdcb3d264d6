"""FastAPI application for the entitlement and usage-governance API."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from core.env import env_choice, env_list
from core.logging import get_logger, setup_logging
from services.document_store import DocumentStore, MemoryDocumentStore, SqlDocumentStore
from web import routers

logger = get_logger(__name__)

DEFAULT_CORS_ORIGINS = ("http://localhost:3000",)


def build_store() -> DocumentStore:
    """Create the process-wide store handle selected by ``STORE_BACKEND``."""
    if env_choice("STORE_BACKEND", ("sql", "memory"), "sql") == "memory":
        logger.warning("Using the in-memory document store; data is lost on restart.")
        return MemoryDocumentStore()

    import models  # noqa: F401  registers the documents table
    from database import Base, build_engine, build_session_factory

    engine = build_engine()
    Base.metadata.create_all(engine)
    return SqlDocumentStore(build_session_factory(engine))


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    if getattr(app.state, "store", None) is None:
        app.state.store = build_store()
    yield


def create_app(store: Optional[DocumentStore] = None) -> FastAPI:
    setup_logging()
    app = FastAPI(
        title="MindBot Governance API",
        description="Entitlement, usage, pricing and admin endpoints for the MindBot chat product.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.store = store

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(env_list("CORS_ALLOW_ORIGINS") or DEFAULT_CORS_ORIGINS),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/", summary="Health Check", tags=["Default"])
    def health_check():
        return {"status": "ok", "message": "MindBot Governance API is running."}

    app.include_router(routers.health.router)
    app.include_router(routers.health.router, prefix="/api/v1")
    app.include_router(routers.account.router, prefix="/api/v1")
    app.include_router(routers.chat.router, prefix="/api/v1")
    app.include_router(routers.messages.router, prefix="/api/v1")
    app.include_router(routers.admin.router, prefix="/api/v1")
    app.include_router(routers.pricing.router, prefix="/api/v1")
    return app


app = create_app()
