"""Typed access to account, discount and pricing documents."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple

from core.errors import NotFound
from core.logging import get_logger
from core.plan_constants import AccountRole, AccountStatus, SubscriptionTier
from services.document_store import DEFAULT_MAX_RETRIES, DocumentMissingError, DocumentStore

logger = get_logger(__name__)

ACCOUNTS_COLLECTION = "accounts"
DISCOUNTS_COLLECTION = "discounts"
CONFIG_COLLECTION = "config"
PRICING_DOCUMENT_ID = "pricing"

PricingTable = Dict[SubscriptionTier, Dict[str, Decimal]]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _to_iso(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def _parse_datetime(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            logger.warning("Ignoring unparseable timestamp %r in stored document.", value)
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _parse_tier(value: Any) -> SubscriptionTier:
    try:
        return SubscriptionTier(str(value or "").strip().lower())
    except ValueError:
        logger.warning("Unknown subscription tier %r stored; treating as free.", value)
        return SubscriptionTier.FREE


def _parse_role(value: Any) -> AccountRole:
    try:
        return AccountRole(str(value or "").strip().lower())
    except ValueError:
        logger.warning("Unknown role %r stored; treating as user.", value)
        return AccountRole.USER


def _parse_status(value: Any) -> AccountStatus:
    try:
        return AccountStatus(str(value or "").strip().lower())
    except ValueError:
        # Unknown statuses fail closed: a suspension without deadline never expires.
        logger.warning("Unknown account status %r stored; treating as suspended.", value)
        return AccountStatus.SUSPENDED


def _parse_message_count(value: Any) -> Dict[str, int]:
    if not isinstance(value, Mapping):
        return {}
    counts: Dict[str, int] = {}
    for key, raw in value.items():
        try:
            counts[str(key)] = max(int(raw), 0)
        except (TypeError, ValueError):
            logger.warning("Ignoring non-numeric message count %r for month %s.", raw, key)
    return counts


@dataclass(slots=True)
class Account:
    """Canonical account snapshot."""

    uid: str
    role: AccountRole = AccountRole.USER
    subscription_tier: SubscriptionTier = SubscriptionTier.FREE
    status: AccountStatus = AccountStatus.ACTIVE
    suspended_until: Optional[datetime] = None
    banned_at: Optional[datetime] = None
    suspended_at: Optional[datetime] = None
    reactivated_at: Optional[datetime] = None
    subscription_updated_at: Optional[datetime] = None
    message_count: Dict[str, int] = field(default_factory=dict)
    last_message_at: Optional[datetime] = None
    email: Optional[str] = None
    display_name: Optional[str] = None
    created_at: Optional[datetime] = None
    last_active: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_admin(self) -> bool:
        return self.role == AccountRole.ADMIN

    @classmethod
    def from_document(cls, uid: str, data: Mapping[str, Any]) -> "Account":
        return cls(
            uid=str(data.get("uid") or uid),
            role=_parse_role(data.get("role")),
            subscription_tier=_parse_tier(data.get("subscriptionTier")),
            status=_parse_status(data.get("status")),
            suspended_until=_parse_datetime(data.get("suspendedUntil")),
            banned_at=_parse_datetime(data.get("bannedAt")),
            suspended_at=_parse_datetime(data.get("suspendedAt")),
            reactivated_at=_parse_datetime(data.get("reactivatedAt")),
            subscription_updated_at=_parse_datetime(data.get("subscriptionUpdatedAt")),
            message_count=_parse_message_count(data.get("messageCount")),
            last_message_at=_parse_datetime(data.get("lastMessageAt")),
            email=data.get("email") or None,
            display_name=data.get("displayName") or None,
            created_at=_parse_datetime(data.get("createdAt")),
            last_active=_parse_datetime(data.get("lastActive")),
            updated_at=_parse_datetime(data.get("updatedAt")),
        )

    def to_document(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "uid": self.uid,
            "role": self.role.value,
            "subscriptionTier": self.subscription_tier.value,
            "status": self.status.value,
            "messageCount": dict(self.message_count),
            "email": self.email,
            "displayName": self.display_name,
            "createdAt": _to_iso(self.created_at),
            "lastActive": _to_iso(self.last_active),
            "updatedAt": _to_iso(self.updated_at),
        }
        optional = {
            "suspendedUntil": self.suspended_until,
            "bannedAt": self.banned_at,
            "suspendedAt": self.suspended_at,
            "reactivatedAt": self.reactivated_at,
            "subscriptionUpdatedAt": self.subscription_updated_at,
            "lastMessageAt": self.last_message_at,
        }
        for key, value in optional.items():
            if value is not None:
                payload[key] = _to_iso(value)
        return payload


@dataclass(slots=True)
class Discount:
    """Time-windowed percentage discount; deactivated instead of deleted."""

    id: str
    name: str
    discount_percent: int
    start_date: datetime
    end_date: datetime
    applicable_tiers: FrozenSet[SubscriptionTier]
    active: bool = True
    created_at: Optional[datetime] = None
    created_by: Optional[str] = None
    updated_at: Optional[datetime] = None
    updated_by: Optional[str] = None

    def is_effective_for(self, tier: SubscriptionTier, now: datetime) -> bool:
        return self.active and tier in self.applicable_tiers and self.start_date <= now <= self.end_date

    @classmethod
    def from_document(cls, doc_id: str, data: Mapping[str, Any]) -> "Discount":
        tiers = set()
        for raw in data.get("applicableTiers") or []:
            try:
                tiers.add(SubscriptionTier(str(raw).strip().lower()))
            except ValueError:
                logger.warning("Discount %s lists unknown tier %r; ignoring it.", doc_id, raw)
        start = _parse_datetime(data.get("startDate"))
        end = _parse_datetime(data.get("endDate"))
        try:
            percent = int(data.get("discountPercent") or 0)
        except (TypeError, ValueError):
            percent = 0
        active = bool(data.get("active", False))
        if start is None or end is None:
            # A window that cannot be read can never be effective.
            logger.warning("Discount %s has an unreadable window; treating as inactive.", doc_id)
            active = False
            start = start or datetime.min.replace(tzinfo=timezone.utc)
            end = end or datetime.min.replace(tzinfo=timezone.utc)
        return cls(
            id=doc_id,
            name=str(data.get("name") or ""),
            discount_percent=percent,
            start_date=start,
            end_date=end,
            applicable_tiers=frozenset(tiers),
            active=active,
            created_at=_parse_datetime(data.get("createdAt")),
            created_by=data.get("createdBy"),
            updated_at=_parse_datetime(data.get("updatedAt")),
            updated_by=data.get("updatedBy"),
        )

    def to_document(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "discountPercent": self.discount_percent,
            "startDate": _to_iso(self.start_date),
            "endDate": _to_iso(self.end_date),
            "applicableTiers": sorted(tier.value for tier in self.applicable_tiers),
            "active": self.active,
            "createdAt": _to_iso(self.created_at),
            "createdBy": self.created_by,
            "updatedAt": _to_iso(self.updated_at),
            "updatedBy": self.updated_by,
        }


def _decode_pricing(data: Mapping[str, Any]) -> PricingTable:
    table: PricingTable = {}
    for tier_key, currencies in (data.get("tiers") or {}).items():
        try:
            tier = SubscriptionTier(str(tier_key).strip().lower())
        except ValueError:
            logger.warning("Pricing document lists unknown tier %r; ignoring it.", tier_key)
            continue
        if not isinstance(currencies, Mapping):
            continue
        entries: Dict[str, Decimal] = {}
        for currency, entry in currencies.items():
            raw = entry.get("price") if isinstance(entry, Mapping) else entry
            try:
                entries[str(currency).upper()] = Decimal(str(raw))
            except (InvalidOperation, TypeError, ValueError):
                logger.warning("Ignoring invalid stored price %r for %s/%s.", raw, tier.value, currency)
        table[tier] = entries
    return table


def _encode_pricing(table: Mapping[SubscriptionTier, Mapping[str, Decimal]]) -> Dict[str, Any]:
    return {
        tier.value: {
            currency: {"price": str(price), "currency": currency}
            for currency, price in sorted(currencies.items())
        }
        for tier, currencies in table.items()
    }


class AccountStore:
    """Adapter over a ``DocumentStore`` handle. Carries no business rules."""

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    @property
    def store(self) -> DocumentStore:
        return self._store

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    def get_account(self, uid: str) -> Optional[Account]:
        document = self._store.get(ACCOUNTS_COLLECTION, uid)
        if document is None:
            return None
        return Account.from_document(uid, document.data)

    def require_account(self, uid: str) -> Account:
        account = self.get_account(uid)
        if account is None:
            raise NotFound(f"Account {uid} was not found.", code="account.not_found")
        return account

    def create_account(self, account: Account) -> Tuple[Account, bool]:
        """Insert ``account`` unless a record already exists for its uid."""
        document, created = self._store.create(ACCOUNTS_COLLECTION, account.uid, account.to_document())
        return Account.from_document(account.uid, document.data), created

    def update_account(
        self,
        uid: str,
        mutate: Callable[[Account], Account],
        *,
        max_retries: int = DEFAULT_MAX_RETRIES,
    ) -> Account:
        """Apply ``mutate`` to the latest snapshot under optimistic concurrency."""

        def _apply(data: Dict[str, Any]) -> Dict[str, Any]:
            return mutate(Account.from_document(uid, data)).to_document()

        try:
            document = self._store.update_with(ACCOUNTS_COLLECTION, uid, _apply, max_retries=max_retries)
        except DocumentMissingError as exc:
            raise NotFound(f"Account {uid} was not found.", code="account.not_found") from exc
        return Account.from_document(uid, document.data)

    def list_accounts(self, filters: Optional[Mapping[str, Any]] = None) -> List[Account]:
        return [Account.from_document(doc.doc_id, doc.data) for doc in self._store.query(ACCOUNTS_COLLECTION, filters)]

    # ------------------------------------------------------------------
    # Discounts
    # ------------------------------------------------------------------

    def get_discount(self, discount_id: str) -> Optional[Discount]:
        document = self._store.get(DISCOUNTS_COLLECTION, discount_id)
        if document is None:
            return None
        return Discount.from_document(discount_id, document.data)

    def list_discounts(self, *, active_only: bool = False) -> List[Discount]:
        filters = {"active": True} if active_only else None
        return [Discount.from_document(doc.doc_id, doc.data) for doc in self._store.query(DISCOUNTS_COLLECTION, filters)]

    def create_discount(self, discount: Discount) -> Discount:
        payload = discount.to_document()
        if discount.id:
            document, _ = self._store.create(DISCOUNTS_COLLECTION, discount.id, payload)
        else:
            document = self._store.add(DISCOUNTS_COLLECTION, payload)
        return Discount.from_document(document.doc_id, document.data)

    def update_discount(self, discount_id: str, mutate: Callable[[Discount], Discount]) -> Discount:
        def _apply(data: Dict[str, Any]) -> Dict[str, Any]:
            return mutate(Discount.from_document(discount_id, data)).to_document()

        try:
            document = self._store.update_with(DISCOUNTS_COLLECTION, discount_id, _apply)
        except DocumentMissingError as exc:
            raise NotFound(f"Discount {discount_id} was not found.", code="discount.not_found") from exc
        return Discount.from_document(discount_id, document.data)

    # ------------------------------------------------------------------
    # Pricing
    # ------------------------------------------------------------------

    def load_pricing(self) -> PricingTable:
        document = self._store.get(CONFIG_COLLECTION, PRICING_DOCUMENT_ID)
        if document is None:
            return {}
        return _decode_pricing(document.data)

    def save_pricing(
        self,
        entries: Iterable[Tuple[SubscriptionTier, str, Decimal]],
        *,
        updated_by: Optional[str],
    ) -> PricingTable:
        """Merge ``(tier, currency, price)`` entries into the stored table."""
        updates = list(entries)
        empty = {"tiers": {}}
        self._store.create(CONFIG_COLLECTION, PRICING_DOCUMENT_ID, empty)

        def _merge(data: Dict[str, Any]) -> Dict[str, Any]:
            table = _decode_pricing(data)
            for tier, currency, price in updates:
                table.setdefault(tier, {})[currency] = price
            return {
                "tiers": _encode_pricing(table),
                "updatedAt": _to_iso(utcnow()),
                "updatedBy": updated_by,
            }

        document = self._store.update_with(CONFIG_COLLECTION, PRICING_DOCUMENT_ID, _merge)
        return _decode_pricing(document.data)


__all__ = [
    "ACCOUNTS_COLLECTION",
    "Account",
    "AccountStore",
    "CONFIG_COLLECTION",
    "DISCOUNTS_COLLECTION",
    "Discount",
    "PRICING_DOCUMENT_ID",
    "PricingTable",
    "utcnow",
]
