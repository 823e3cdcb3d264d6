"""Health-related API endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from services.document_store import DocumentStore
from web.deps import get_store

router = APIRouter(tags=["Health"])


@router.get("/healthz", include_in_schema=False)
def read_health(store: DocumentStore = Depends(get_store)) -> JSONResponse:
    """Lightweight health check that pings the document store."""
    store_ok = store.ping()
    payload = {"status": "ok" if store_ok else "unhealthy", "store": {"ok": store_ok}}
    status_code = status.HTTP_200_OK if store_ok else status.HTTP_503_SERVICE_UNAVAILABLE
    return JSONResponse(status_code=status_code, content=payload)


__all__ = ["router"]
