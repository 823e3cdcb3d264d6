"""Schemas for public pricing and the feature catalog."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class TierPriceSchema(BaseModel):
    tier: str
    currency: str
    basePrice: str = Field(..., description="Stored base price at full precision.")
    finalPrice: str = Field(..., description="Price after the effective discount, unrounded.")
    displayPrice: str = Field(..., description="finalPrice rounded to the currency's minor units.")
    displayBasePrice: str
    discountPercent: int = 0
    discountId: Optional[str] = None
    discountName: Optional[str] = None


class PricingResponse(BaseModel):
    currency: str
    prices: List[TierPriceSchema]


class TierProfileSchema(BaseModel):
    tier: str
    features: List[str]
    responseBudgetChars: int
    monthlyMessageLimit: Optional[int] = None
    priorityClass: str


class FeatureCatalogResponse(BaseModel):
    success: bool = True
    tier: Optional[str] = None
    features: Dict[str, Any]
    entitlements: List[TierProfileSchema] = Field(default_factory=list)
    message: str


__all__ = ["FeatureCatalogResponse", "PricingResponse", "TierPriceSchema", "TierProfileSchema"]
