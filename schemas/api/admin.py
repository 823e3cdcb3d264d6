"""Schemas for admin account, pricing and discount APIs."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from schemas.api.account import AccountResponse
from schemas.api.pricing import TierProfileSchema

AdminAction = Literal[
    "ban",
    "suspend",
    "reactivate",
    "changeTier",
    "resetUsage",
    "updatePricing",
    "updateTierConfig",
    "createDiscount",
    "updateDiscount",
]


class DiscountPayload(BaseModel):
    name: Optional[str] = Field(default=None, max_length=200)
    discountPercent: Optional[int] = None
    startDate: Optional[datetime] = None
    endDate: Optional[datetime] = None
    applicableTiers: Optional[List[str]] = None
    active: Optional[bool] = None


class AdminActionRequest(BaseModel):
    action: AdminAction
    actingAdminId: Optional[str] = None
    targetAccountId: Optional[str] = None
    duration: Optional[str] = Field(default=None, description="Suspension length: 7d or 30d.")
    tier: Optional[str] = None
    month: Optional[str] = None
    pricing: Optional[Dict[str, Dict[str, Any]]] = Field(
        default=None,
        description="Tier -> currency -> price overrides.",
    )
    tiers: Optional[Dict[str, Dict[str, Any]]] = Field(
        default=None,
        description="Tier -> features, responseBudgetChars, monthlyMessageLimit, priorityClass overrides.",
    )
    discountId: Optional[str] = None
    discount: Optional[DiscountPayload] = None


class DiscountResponse(BaseModel):
    id: str
    name: str
    discountPercent: int
    startDate: datetime
    endDate: datetime
    applicableTiers: List[str]
    active: bool
    createdAt: Optional[datetime] = None
    createdBy: Optional[str] = None
    updatedAt: Optional[datetime] = None
    updatedBy: Optional[str] = None


class AdminActionResponse(BaseModel):
    success: bool = True
    action: AdminAction
    account: Optional[AccountResponse] = None
    discount: Optional[DiscountResponse] = None
    pricing: Optional[Dict[str, Dict[str, str]]] = None
    tierConfig: Optional[List[TierProfileSchema]] = None
    messageCount: Optional[int] = None


class AccountListResponse(BaseModel):
    filter: str
    accounts: List[AccountResponse]


class AccountStatsResponse(BaseModel):
    total: int
    active: int
    suspended: int
    banned: int
    free: int
    pro: int
    plus: int


class DiscountListResponse(BaseModel):
    discounts: List[DiscountResponse]


__all__ = [
    "AccountListResponse",
    "AccountStatsResponse",
    "AdminAction",
    "AdminActionRequest",
    "AdminActionResponse",
    "DiscountListResponse",
    "DiscountPayload",
    "DiscountResponse",
]
