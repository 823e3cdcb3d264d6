"""Multi-currency base prices and best-discount selection."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Tuple

from core.errors import InvalidArgument, StoreUnavailable
from core.logging import get_logger
from core.plan_constants import (
    SUPPORTED_CURRENCIES,
    SubscriptionTier,
    coerce_currency,
    coerce_tier,
)
from services.account_store import AccountStore, Discount, PricingTable

logger = get_logger(__name__)

ZERO = Decimal("0")

DEFAULT_PRICING_TABLE: Mapping[SubscriptionTier, Mapping[str, Decimal]] = {
    SubscriptionTier.FREE: {currency: ZERO for currency in SUPPORTED_CURRENCIES},
    SubscriptionTier.PRO: {
        "USD": Decimal("9.99"),
        "EUR": Decimal("9.49"),
        "GBP": Decimal("8.49"),
        "INR": Decimal("799"),
        "JPY": Decimal("1500"),
    },
    SubscriptionTier.PLUS: {
        "USD": Decimal("19.99"),
        "EUR": Decimal("18.99"),
        "GBP": Decimal("16.99"),
        "INR": Decimal("1599"),
        "JPY": Decimal("3000"),
    },
}


@dataclass(frozen=True)
class PriceQuote:
    """Unrounded price for one tier/currency pair at one instant."""

    tier: SubscriptionTier
    currency: str
    base_price: Decimal
    final_price: Decimal
    discount: Optional[Discount] = None

    @property
    def discount_percent(self) -> int:
        return self.discount.discount_percent if self.discount else 0


def select_discount(
    discounts: Iterable[Discount],
    tier: SubscriptionTier,
    now: datetime,
) -> Optional[Discount]:
    """Highest currently effective percentage for ``tier``; equal percentages resolve to the smallest id."""

    candidates = [discount for discount in discounts if discount.is_effective_for(tier, now)]
    if not candidates:
        return None
    return min(candidates, key=lambda discount: (-discount.discount_percent, discount.id))


class PricingEngine:
    """Resolve list prices from the stored table and apply the effective discount."""

    def __init__(
        self,
        accounts: Optional[AccountStore],
        *,
        default_table: Mapping[SubscriptionTier, Mapping[str, Decimal]] = DEFAULT_PRICING_TABLE,
    ) -> None:
        self._accounts = accounts
        self._default_table = default_table

    def load_table(self) -> PricingTable:
        """Stored pricing; a store outage falls back to the defaults instead of failing."""
        if self._accounts is None:
            return {}
        try:
            return self._accounts.load_pricing()
        except StoreUnavailable as exc:
            logger.warning("Pricing table unavailable (%s); serving default prices.", exc.code)
            return {}

    def load_discounts(self) -> List[Discount]:
        if self._accounts is None:
            return []
        try:
            return self._accounts.list_discounts(active_only=True)
        except StoreUnavailable as exc:
            logger.warning("Discounts unavailable (%s); quoting list prices.", exc.code)
            return []

    def base_price(
        self,
        tier: SubscriptionTier | str,
        currency: str,
        *,
        table: Optional[PricingTable] = None,
    ) -> Decimal:
        resolved_tier = coerce_tier(tier)
        code = coerce_currency(currency)
        if resolved_tier == SubscriptionTier.FREE:
            return ZERO
        stored = self.load_table() if table is None else table
        price = (stored.get(resolved_tier) or {}).get(code)
        if price is not None:
            return price
        fallback = (self._default_table.get(resolved_tier) or {}).get(code)
        if fallback is None:
            # Only reachable with a custom default table missing the pair.
            logger.error("No default price configured for %s/%s.", resolved_tier.value, code)
            return ZERO
        logger.debug("No stored price for %s/%s; using default %s.", resolved_tier.value, code, fallback)
        return fallback

    def effective_price(
        self,
        tier: SubscriptionTier | str,
        currency: str,
        now: datetime,
        discounts: Sequence[Discount],
        *,
        table: Optional[PricingTable] = None,
    ) -> PriceQuote:
        resolved_tier = coerce_tier(tier)
        code = coerce_currency(currency)
        base = self.base_price(resolved_tier, code, table=table)
        if resolved_tier == SubscriptionTier.FREE:
            return PriceQuote(tier=resolved_tier, currency=code, base_price=base, final_price=base)
        discount = select_discount(discounts, resolved_tier, now)
        if discount is None:
            return PriceQuote(tier=resolved_tier, currency=code, base_price=base, final_price=base)
        final = base * (Decimal(1) - Decimal(discount.discount_percent) / Decimal(100))
        return PriceQuote(tier=resolved_tier, currency=code, base_price=base, final_price=final, discount=discount)

    def quote_all(self, currency: str, now: datetime) -> List[PriceQuote]:
        """Quotes for every tier, reading the table and discounts once."""
        table = self.load_table()
        discounts = self.load_discounts()
        return [
            self.effective_price(tier, currency, now, discounts, table=table)
            for tier in SubscriptionTier
        ]

    def update_pricing(
        self,
        pricing: Mapping[str, Mapping[str, Any]],
        *,
        updated_by: Optional[str],
    ) -> PricingTable:
        """Validate and persist ``{tier: {currency: price}}`` overrides."""
        if self._accounts is None:  # pragma: no cover - wiring guard
            raise StoreUnavailable("Pricing cannot be saved without a store.")
        entries = list(_validated_entries(pricing))
        if not entries:
            raise InvalidArgument("Pricing update must contain at least one price.", code="pricing.empty")
        stored = self._accounts.save_pricing(entries, updated_by=updated_by)
        logger.info("Pricing updated by %s for %d entries.", updated_by, len(entries))
        return stored


def _validated_entries(pricing: Mapping[str, Mapping[str, Any]]) -> Iterable[Tuple[SubscriptionTier, str, Decimal]]:
    if not isinstance(pricing, Mapping):
        raise InvalidArgument("Pricing must map tiers to currency prices.", code="pricing.invalid")
    for tier_key, currencies in pricing.items():
        tier = coerce_tier(tier_key)
        if tier == SubscriptionTier.FREE:
            raise InvalidArgument("The free tier is always priced at zero.", code="pricing.free_tier")
        if not isinstance(currencies, Mapping):
            raise InvalidArgument(f"Prices for {tier.value} must map currency codes to amounts.", code="pricing.invalid")
        for currency, raw in currencies.items():
            code = coerce_currency(currency)
            value = raw.get("price") if isinstance(raw, Mapping) else raw
            try:
                price = Decimal(str(value))
            except (InvalidOperation, TypeError, ValueError):
                raise InvalidArgument(f"Price for {tier.value}/{code} is not a number.", code="pricing.invalid") from None
            if not price.is_finite() or price < 0:
                raise InvalidArgument(f"Price for {tier.value}/{code} must be zero or positive.", code="pricing.invalid")
            yield tier, code, price


__all__ = ["DEFAULT_PRICING_TABLE", "PriceQuote", "PricingEngine", "select_discount"]
