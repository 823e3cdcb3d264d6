"""Admin routes for account lifecycle, tiers, usage, pricing and discounts."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from core.errors import GovernanceError, InvalidArgument
from schemas.api.admin import (
    AccountListResponse,
    AccountStatsResponse,
    AdminActionRequest,
    AdminActionResponse,
    DiscountListResponse,
)
from services.account_serializers import (
    serialize_account,
    serialize_discount,
    serialize_pricing_table,
    serialize_tier_profile,
)
from services.admin_gateway import AdminGateway
from web.deps import Clock, get_account_id, get_admin_gateway, get_clock, http_error, resolve_actor

router = APIRouter(prefix="/admin", tags=["Admin"])

_TARGETED_ACTIONS = {"ban", "suspend", "reactivate", "changeTier", "resetUsage"}


def _require(value: Optional[str], field: str) -> str:
    if not value or not value.strip():
        raise InvalidArgument(f"{field} is required for this action.")
    return value.strip()


def _run_action(
    gateway: AdminGateway,
    actor: str,
    payload: AdminActionRequest,
    clock: Clock,
) -> AdminActionResponse:
    action = payload.action
    if action in _TARGETED_ACTIONS:
        target = _require(payload.targetAccountId, "targetAccountId")
        if action == "resetUsage":
            count = gateway.reset_usage(actor, target, payload.month)
            return AdminActionResponse(action=action, messageCount=count)
        if action == "ban":
            account = gateway.ban(actor, target)
        elif action == "suspend":
            account = gateway.suspend(actor, target, _require(payload.duration, "duration"))
        elif action == "reactivate":
            account = gateway.reactivate(actor, target)
        else:
            account = gateway.change_tier(actor, target, _require(payload.tier, "tier"))
        return AdminActionResponse(action=action, account=serialize_account(account, clock()))

    if action == "updatePricing":
        table = gateway.update_pricing(actor, payload.pricing or {})
        return AdminActionResponse(action=action, pricing=serialize_pricing_table(table))
    if action == "updateTierConfig":
        profiles = gateway.update_tier_config(actor, payload.tiers or {})
        return AdminActionResponse(action=action, tierConfig=[serialize_tier_profile(profile) for profile in profiles])
    if action == "createDiscount":
        if payload.discount is None:
            raise InvalidArgument("discount is required for this action.")
        discount = gateway.create_discount(actor, payload.discount.model_dump(exclude_unset=True))
        return AdminActionResponse(action=action, discount=serialize_discount(discount))

    if payload.discount is None:
        raise InvalidArgument("discount is required for this action.")
    discount = gateway.update_discount(
        actor,
        _require(payload.discountId, "discountId"),
        payload.discount.model_dump(exclude_unset=True),
    )
    return AdminActionResponse(action=action, discount=serialize_discount(discount))


@router.post("", response_model=AdminActionResponse, summary="Run one admin action.")
def post_admin_action(
    payload: AdminActionRequest,
    account_id: str = Depends(get_account_id),
    gateway: AdminGateway = Depends(get_admin_gateway),
    clock: Clock = Depends(get_clock),
) -> AdminActionResponse:
    actor = resolve_actor(account_id, payload.actingAdminId)
    try:
        # Authorize before validating the payload.
        gateway.authorize(actor)
        return _run_action(gateway, actor, payload, clock)
    except GovernanceError as exc:
        raise http_error(exc) from exc


@router.get("/accounts", response_model=AccountListResponse, summary="List accounts by status or tier.")
def list_accounts(
    actingAdminId: Optional[str] = Query(default=None),
    account_filter: str = Query(default="all", alias="filter"),
    account_id: str = Depends(get_account_id),
    gateway: AdminGateway = Depends(get_admin_gateway),
    clock: Clock = Depends(get_clock),
) -> AccountListResponse:
    actor = resolve_actor(account_id, actingAdminId)
    try:
        accounts = gateway.list_accounts(actor, account_filter)
    except GovernanceError as exc:
        raise http_error(exc) from exc
    now = clock()
    return AccountListResponse(
        filter=account_filter,
        accounts=[serialize_account(account, now) for account in accounts],
    )


@router.get("/stats", response_model=AccountStatsResponse, summary="Account counts by status and tier.")
def read_account_stats(
    actingAdminId: Optional[str] = Query(default=None),
    account_id: str = Depends(get_account_id),
    gateway: AdminGateway = Depends(get_admin_gateway),
) -> AccountStatsResponse:
    actor = resolve_actor(account_id, actingAdminId)
    try:
        stats = gateway.account_stats(actor)
    except GovernanceError as exc:
        raise http_error(exc) from exc
    return AccountStatsResponse(**stats.to_dict())


@router.get("/discounts", response_model=DiscountListResponse, summary="List discounts.")
def list_discounts(
    actingAdminId: Optional[str] = Query(default=None),
    includeInactive: bool = Query(default=False),
    account_id: str = Depends(get_account_id),
    gateway: AdminGateway = Depends(get_admin_gateway),
) -> DiscountListResponse:
    actor = resolve_actor(account_id, actingAdminId)
    try:
        discounts = gateway.list_discounts(actor, include_inactive=includeInactive)
    except GovernanceError as exc:
        raise http_error(exc) from exc
    return DiscountListResponse(discounts=[serialize_discount(discount) for discount in discounts])
