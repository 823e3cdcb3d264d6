"""Monthly message usage routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from core.errors import GovernanceError
from core.plan_constants import Feature
from schemas.api.messages import UsageActionRequest, UsageActionResponse, UsageResponse
from services.admin_gateway import AdminGateway
from services.entitlement_service import EntitlementResolver
from services.usage_counter import UsageCounter
from web.deps import (
    denial_error,
    get_account_id,
    get_admin_gateway,
    get_entitlement_resolver,
    get_usage_counter,
    http_error,
    resolve_actor,
)

router = APIRouter(prefix="/messages", tags=["Usage"])


@router.get("", response_model=UsageResponse, summary="Current-month and lifetime message counts.")
def read_usage(
    account_id: str = Depends(get_account_id),
    usage: UsageCounter = Depends(get_usage_counter),
) -> UsageResponse:
    try:
        snapshot = usage.snapshot(account_id)
    except GovernanceError as exc:
        raise http_error(exc) from exc
    return UsageResponse(**snapshot.to_dict())


@router.post("", response_model=UsageActionResponse, summary="Increment own usage or reset an account (admin).")
def post_usage_action(
    payload: UsageActionRequest,
    account_id: str = Depends(get_account_id),
    usage: UsageCounter = Depends(get_usage_counter),
    gateway: AdminGateway = Depends(get_admin_gateway),
    resolver: EntitlementResolver = Depends(get_entitlement_resolver),
) -> UsageActionResponse:
    try:
        if payload.action == "increment":
            decision = resolver.check(account_id, Feature.CHAT)
            if not decision.allowed:
                raise denial_error(decision)
            count = usage.increment(account_id, limit=decision.limit)
            return UsageActionResponse(action="increment", accountId=account_id, messageCount=count)
        target = payload.targetAccountId or account_id
        count = gateway.reset_usage(resolve_actor(account_id, payload.actingAdminId), target, payload.month)
    except GovernanceError as exc:
        raise http_error(exc) from exc
    return UsageActionResponse(action="reset", accountId=target, messageCount=count)
