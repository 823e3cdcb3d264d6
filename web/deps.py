"""Shared FastAPI dependencies."""

from __future__ import annotations

from datetime import datetime
from typing import Callable, Optional

from fastapi import Depends, Header, HTTPException, Request, status

from core.errors import GovernanceError, Unauthorized
from services.account_service import AccountService
from services.account_store import AccountStore, utcnow
from services.admin_gateway import AdminGateway
from services.chat_service import ChatGovernanceService
from services.document_store import DocumentStore
from services.entitlement_service import (
    REASON_BANNED,
    REASON_FEATURE,
    REASON_QUOTA,
    REASON_STORE,
    REASON_SUSPENDED,
    EntitlementDecision,
    EntitlementResolver,
)
from services.pricing_engine import PricingEngine
from services.usage_counter import UsageCounter

Clock = Callable[[], datetime]

_DENIAL_STATUS = {
    REASON_BANNED: status.HTTP_403_FORBIDDEN,
    REASON_SUSPENDED: status.HTTP_403_FORBIDDEN,
    REASON_FEATURE: status.HTTP_403_FORBIDDEN,
    REASON_QUOTA: status.HTTP_429_TOO_MANY_REQUESTS,
    REASON_STORE: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def http_error(exc: GovernanceError) -> HTTPException:
    """Translate a service error into the ``{"code", "message"}`` detail shape."""
    return HTTPException(status_code=exc.status_code, detail=exc.to_detail())


def denial_error(decision: EntitlementDecision) -> HTTPException:
    status_code = _DENIAL_STATUS.get(decision.reason or "", status.HTTP_403_FORBIDDEN)
    return HTTPException(status_code=status_code, detail=decision.to_detail())


def get_store(request: Request) -> DocumentStore:
    store = getattr(request.app.state, "store", None)
    if store is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"code": "store.unavailable", "message": "The account store is not configured."},
        )
    return store


def get_clock() -> Clock:
    return utcnow


def get_account_id(x_account_id: Optional[str] = Header(default=None, alias="X-Account-Id")) -> str:
    """Account id verified by the upstream identity provider."""
    account_id = (x_account_id or "").strip()
    if not account_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": "auth.required", "message": "Authentication is required."},
        )
    return account_id


def get_verified_email(x_account_email: Optional[str] = Header(default=None, alias="X-Account-Email")) -> Optional[str]:
    """Email asserted by the upstream identity provider, if it forwarded one."""
    return (x_account_email or "").strip() or None


def resolve_actor(account_id: str, acting_admin_id: Optional[str]) -> str:
    """The acting admin is always the authenticated caller; a mismatching id is rejected."""
    acting = (acting_admin_id or "").strip()
    if acting and acting != account_id:
        raise http_error(Unauthorized("actingAdminId does not match the authenticated account."))
    return account_id


def get_account_store(store: DocumentStore = Depends(get_store)) -> AccountStore:
    return AccountStore(store)


def get_usage_counter(
    accounts: AccountStore = Depends(get_account_store),
    clock: Clock = Depends(get_clock),
) -> UsageCounter:
    return UsageCounter(accounts, clock=clock)


def get_entitlement_resolver(
    accounts: AccountStore = Depends(get_account_store),
    clock: Clock = Depends(get_clock),
) -> EntitlementResolver:
    return EntitlementResolver(accounts, clock=clock)


def get_pricing_engine(accounts: AccountStore = Depends(get_account_store)) -> PricingEngine:
    return PricingEngine(accounts)


def get_account_service(
    accounts: AccountStore = Depends(get_account_store),
    clock: Clock = Depends(get_clock),
) -> AccountService:
    return AccountService(accounts, clock=clock)


def get_admin_gateway(
    accounts: AccountStore = Depends(get_account_store),
    usage: UsageCounter = Depends(get_usage_counter),
    pricing: PricingEngine = Depends(get_pricing_engine),
    clock: Clock = Depends(get_clock),
) -> AdminGateway:
    return AdminGateway(accounts, usage=usage, pricing=pricing, clock=clock)


def get_chat_service(
    accounts: AccountStore = Depends(get_account_store),
    resolver: EntitlementResolver = Depends(get_entitlement_resolver),
    usage: UsageCounter = Depends(get_usage_counter),
    clock: Clock = Depends(get_clock),
) -> ChatGovernanceService:
    return ChatGovernanceService(accounts, resolver=resolver, usage=usage, clock=clock)


__all__ = [
    "denial_error",
    "get_account_id",
    "get_account_service",
    "get_account_store",
    "get_admin_gateway",
    "get_chat_service",
    "get_clock",
    "get_entitlement_resolver",
    "get_pricing_engine",
    "get_store",
    "get_usage_counter",
    "get_verified_email",
    "http_error",
    "resolve_actor",
]
