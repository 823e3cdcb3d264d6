"""Schemas for monthly message usage."""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, Field


class UsageResponse(BaseModel):
    messageCount: int
    currentMonth: str = Field(..., description="UTC month key (YYYY-MM).")
    totalCount: int


class UsageActionRequest(BaseModel):
    action: Literal["increment", "reset"]
    actingAdminId: Optional[str] = None
    targetAccountId: Optional[str] = None
    month: Optional[str] = Field(default=None, description="Month key to reset; defaults to the current month.")


class UsageActionResponse(BaseModel):
    success: bool = True
    action: Literal["increment", "reset"]
    accountId: str
    messageCount: int


__all__ = ["UsageActionRequest", "UsageActionResponse", "UsageResponse"]
