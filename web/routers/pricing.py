"""Public pricing and feature catalog routes."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from core.errors import GovernanceError
from core.plan_constants import coerce_currency
from schemas.api.pricing import FeatureCatalogResponse, PricingResponse
from services.account_serializers import serialize_quote, serialize_tier_profile
from services.feature_catalog import catalog_for
from services.pricing_engine import PricingEngine
from services.tier_config_store import get_tier_profile, list_tier_profiles
from web.deps import Clock, get_clock, get_pricing_engine, http_error

router = APIRouter(tags=["Pricing"])


@router.get("/pricing", response_model=PricingResponse, summary="Base and effective price per tier.")
def read_pricing(
    currency: str = Query(default="USD"),
    engine: PricingEngine = Depends(get_pricing_engine),
    clock: Clock = Depends(get_clock),
) -> PricingResponse:
    try:
        code = coerce_currency(currency)
        quotes = engine.quote_all(code, clock())
    except GovernanceError as exc:
        raise http_error(exc) from exc
    return PricingResponse(currency=code, prices=[serialize_quote(quote) for quote in quotes])


@router.get("/features", response_model=FeatureCatalogResponse, summary="Feature catalog per tier.")
def read_features(tier: Optional[str] = Query(default=None)) -> FeatureCatalogResponse:
    resolved, features = catalog_for(tier)
    if resolved is None:
        profiles = [serialize_tier_profile(profile) for profile in list_tier_profiles().values()]
        return FeatureCatalogResponse(
            features=features,
            entitlements=profiles,
            message="All subscription tiers and their features",
        )
    return FeatureCatalogResponse(
        tier=resolved.value,
        features=features,
        entitlements=[serialize_tier_profile(get_tier_profile(resolved))],
        message=f"Features available for {resolved.value} subscription",
    )
