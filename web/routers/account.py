"""Account session bootstrap and entitlement preflight routes."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from core.errors import GovernanceError
from core.plan_constants import coerce_feature
from schemas.api.account import EntitlementResponse, SessionRequest, SessionResponse
from services.account_serializers import serialize_account, serialize_decision
from services.account_service import AccountService
from services.entitlement_service import EntitlementResolver
from web.deps import (
    Clock,
    get_account_id,
    get_account_service,
    get_clock,
    get_entitlement_resolver,
    get_verified_email,
    http_error,
)

router = APIRouter(prefix="/account", tags=["Account"])


@router.post("/session", response_model=SessionResponse, summary="Create or refresh the caller's account record.")
def start_session(
    payload: SessionRequest,
    account_id: str = Depends(get_account_id),
    service: AccountService = Depends(get_account_service),
    clock: Clock = Depends(get_clock),
    verified_email: Optional[str] = Depends(get_verified_email),
) -> SessionResponse:
    try:
        account, created = service.ensure_account(
            account_id,
            email=payload.email,
            display_name=payload.displayName,
            verified_email=verified_email,
        )
    except GovernanceError as exc:
        raise http_error(exc) from exc
    return SessionResponse(account=serialize_account(account, clock()), created=created)


@router.get(
    "/entitlements",
    response_model=EntitlementResponse,
    summary="Advisory preflight using the same resolver as the chat endpoint.",
)
def read_entitlements(
    feature: str = Query(default="chat"),
    account_id: str = Depends(get_account_id),
    resolver: EntitlementResolver = Depends(get_entitlement_resolver),
) -> EntitlementResponse:
    try:
        requested = coerce_feature(feature)
        decision = resolver.check(account_id, requested)
    except GovernanceError as exc:
        raise http_error(exc) from exc
    return serialize_decision(decision, requested)
