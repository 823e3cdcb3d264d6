"""Shared helpers for serialising accounts, entitlements, discounts and prices."""

from __future__ import annotations

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, List, Mapping

from core.plan_constants import SUPPORTED_CURRENCIES, Feature, SubscriptionTier
from schemas.api.account import AccountResponse, EntitlementResponse
from schemas.api.admin import DiscountResponse
from schemas.api.pricing import TierPriceSchema, TierProfileSchema
from services.account_status import AccountStatusMachine
from services.account_store import Account, Discount
from services.entitlement_service import EntitlementDecision
from services.pricing_engine import PriceQuote
from services.tier_config_store import TierProfile


def _sorted_features(features: Iterable[Feature]) -> List[str]:
    return sorted(feature.value for feature in features)


def display_amount(amount: Decimal, currency: str) -> str:
    """Round for display only: two decimals, zero for zero-decimal currencies."""
    digits = SUPPORTED_CURRENCIES.get(currency, 2)
    exponent = Decimal(1).scaleb(-digits)
    return str(amount.quantize(exponent, rounding=ROUND_HALF_UP))


def serialize_account(account: Account, now: datetime) -> AccountResponse:
    lifecycle = AccountStatusMachine().view(account, now)
    return AccountResponse(
        uid=account.uid,
        role=account.role.value,
        subscriptionTier=account.subscription_tier.value,
        status=lifecycle.stored.value,
        effectiveStatus=lifecycle.effective.value,
        suspensionExpired=lifecycle.suspension_expired,
        suspendedUntil=lifecycle.suspended_until,
        email=account.email,
        displayName=account.display_name,
        createdAt=account.created_at,
        lastActive=account.last_active,
        subscriptionUpdatedAt=account.subscription_updated_at,
        messageCount=dict(account.message_count),
    )


def serialize_decision(decision: EntitlementDecision, feature: Feature) -> EntitlementResponse:
    return EntitlementResponse(
        allowed=decision.allowed,
        feature=feature.value,
        reason=decision.reason,
        message=decision.message,
        tier=decision.tier.value if decision.tier else None,
        priorityClass=decision.priority_class.value,
        responseBudgetChars=decision.response_budget_chars,
        featureFlags=_sorted_features(decision.feature_flags),
        effectiveStatus=decision.effective_status.value if decision.effective_status else None,
        suspendedUntil=decision.suspended_until,
        limit=decision.limit,
        remaining=decision.remaining,
        usageCount=decision.usage_count,
    )


def serialize_discount(discount: Discount) -> DiscountResponse:
    return DiscountResponse(
        id=discount.id,
        name=discount.name,
        discountPercent=discount.discount_percent,
        startDate=discount.start_date,
        endDate=discount.end_date,
        applicableTiers=sorted(tier.value for tier in discount.applicable_tiers),
        active=discount.active,
        createdAt=discount.created_at,
        createdBy=discount.created_by,
        updatedAt=discount.updated_at,
        updatedBy=discount.updated_by,
    )


def serialize_quote(quote: PriceQuote) -> TierPriceSchema:
    return TierPriceSchema(
        tier=quote.tier.value,
        currency=quote.currency,
        basePrice=str(quote.base_price),
        finalPrice=str(quote.final_price),
        displayPrice=display_amount(quote.final_price, quote.currency),
        displayBasePrice=display_amount(quote.base_price, quote.currency),
        discountPercent=quote.discount_percent,
        discountId=quote.discount.id if quote.discount else None,
        discountName=quote.discount.name if quote.discount else None,
    )


def serialize_pricing_table(table: Mapping[SubscriptionTier, Mapping[str, Decimal]]) -> Dict[str, Dict[str, str]]:
    return {
        tier.value: {currency: str(price) for currency, price in sorted(prices.items())}
        for tier, prices in table.items()
    }


def serialize_tier_profile(profile: TierProfile) -> TierProfileSchema:
    return TierProfileSchema(
        tier=profile.tier.value,
        features=_sorted_features(profile.features),
        responseBudgetChars=profile.response_budget_chars,
        monthlyMessageLimit=profile.monthly_message_limit,
        priorityClass=profile.priority_class.value,
    )


__all__ = [
    "display_amount",
    "serialize_account",
    "serialize_decision",
    "serialize_discount",
    "serialize_pricing_table",
    "serialize_quote",
    "serialize_tier_profile",
]
