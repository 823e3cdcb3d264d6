"""Schemas for account session bootstrap and entitlement preflight."""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field

TierLiteral = Literal["free", "pro", "plus"]
StatusLiteral = Literal["active", "suspended", "banned"]


class SessionRequest(BaseModel):
    email: Optional[str] = Field(default=None, max_length=320)
    displayName: Optional[str] = Field(default=None, max_length=200)


class AccountResponse(BaseModel):
    uid: str
    role: Literal["user", "admin"]
    subscriptionTier: TierLiteral
    status: StatusLiteral = Field(..., description="Stored lifecycle status.")
    effectiveStatus: StatusLiteral = Field(
        ...,
        description="Status used for authorization; expired suspensions read as active.",
    )
    suspensionExpired: bool = Field(
        default=False,
        description="True when the stored status is suspended but the deadline has passed.",
    )
    suspendedUntil: Optional[datetime] = None
    email: Optional[str] = None
    displayName: Optional[str] = None
    createdAt: Optional[datetime] = None
    lastActive: Optional[datetime] = None
    subscriptionUpdatedAt: Optional[datetime] = None
    messageCount: Dict[str, int] = Field(default_factory=dict)


class SessionResponse(BaseModel):
    account: AccountResponse
    created: bool


class EntitlementResponse(BaseModel):
    allowed: bool
    feature: str
    reason: Optional[str] = None
    message: Optional[str] = None
    tier: Optional[TierLiteral] = None
    priorityClass: Literal["low", "medium", "high"]
    responseBudgetChars: int
    featureFlags: List[str] = Field(default_factory=list)
    effectiveStatus: Optional[StatusLiteral] = None
    suspendedUntil: Optional[datetime] = None
    limit: Optional[int] = None
    remaining: Optional[int] = None
    usageCount: int = 0


__all__ = [
    "AccountResponse",
    "EntitlementResponse",
    "SessionRequest",
    "SessionResponse",
    "StatusLiteral",
    "TierLiteral",
]
