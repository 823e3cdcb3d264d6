"""Per-tier feature sets, response budgets and message ceilings."""

from __future__ import annotations

from copy import deepcopy
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, FrozenSet, Iterable, Mapping, Optional

from core.env import env_int
from core.errors import InvalidArgument
from core.logging import get_logger
from core.plan_constants import ALL_FEATURES, Feature, PriorityClass, SubscriptionTier
from services.json_store import JsonStore

DEFAULT_TIER_CONFIG_PATH = Path("config") / "tier_config.json"

logger = get_logger(__name__)
_TIER_CONFIG_STORE = JsonStore(
    path_env="TIER_CONFIG_FILE",
    default_path=DEFAULT_TIER_CONFIG_PATH,
)

FREE_TIER_MONTHLY_LIMIT = env_int("FREE_TIER_MONTHLY_LIMIT", 50, minimum=0)

_DEFAULT_TIER_CONFIG: Dict[str, Any] = {
    "tiers": {
        "free": {
            "features": ["chat"],
            "responseBudgetChars": 500,
            "monthlyMessageLimit": FREE_TIER_MONTHLY_LIMIT,
            "priorityClass": "low",
        },
        "pro": {
            "features": [
                "chat",
                "advanced_chat",
                "voice_input",
                "extended_history",
                "priority_processing",
            ],
            "responseBudgetChars": 2000,
            "monthlyMessageLimit": None,
            "priorityClass": "medium",
        },
        "plus": {
            "features": sorted(feature.value for feature in ALL_FEATURES),
            "responseBudgetChars": 8000,
            "monthlyMessageLimit": None,
            "priorityClass": "high",
        },
    },
    "updatedAt": None,
    "updatedBy": None,
}


@dataclass(frozen=True)
class TierProfile:
    """Resolved entitlements of one subscription tier."""

    tier: SubscriptionTier
    features: FrozenSet[Feature]
    response_budget_chars: int
    monthly_message_limit: Optional[int]
    priority_class: PriorityClass

    def allows(self, feature: Feature) -> bool:
        return feature in self.features


def _default_config_payload() -> Dict[str, Any]:
    return deepcopy(_DEFAULT_TIER_CONFIG)


def _normalize_features(values: Optional[Iterable[Any]], fallback: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    normalized: list[str] = []
    for item in values or []:
        text = str(item or "").strip().lower()
        if not text or text in seen:
            continue
        try:
            Feature(text)
        except ValueError:
            logger.warning("Unknown feature %r in tier config ignored.", item)
            continue
        normalized.append(text)
        seen.add(text)
    if not normalized:
        normalized = list(fallback)
    return normalized


def _safe_optional_int(key: str, value: Any, fallback: Optional[int]) -> Optional[int]:
    if value is None:
        return None
    try:
        candidate = int(value)
    except (TypeError, ValueError):
        logger.warning("Invalid %s override in tier config ignored: %s", key, value)
        return fallback
    if candidate < 0:
        logger.warning("Invalid %s (negative) in tier config ignored: %s", key, value)
        return fallback
    return candidate


def _normalize_tier_entry(tier: str, entry: Mapping[str, Any]) -> Dict[str, Any]:
    base = _DEFAULT_TIER_CONFIG["tiers"][tier]
    normalized = deepcopy(base)
    normalized["features"] = _normalize_features(entry.get("features"), base["features"])
    for key in ("responseBudgetChars",):
        if key in entry:
            value = _safe_optional_int(key, entry.get(key), base[key])
            normalized[key] = base[key] if value is None else value
    if "monthlyMessageLimit" in entry:
        normalized["monthlyMessageLimit"] = _safe_optional_int(
            "monthlyMessageLimit", entry.get("monthlyMessageLimit"), base["monthlyMessageLimit"]
        )
    if "priorityClass" in entry:
        raw = str(entry.get("priorityClass") or "").strip().lower()
        if raw in {item.value for item in PriorityClass}:
            normalized["priorityClass"] = raw
        else:
            logger.warning("Invalid priorityClass override in tier config ignored: %s", entry.get("priorityClass"))
    return normalized


def _merge_tier_config(raw: Any) -> Dict[str, Any]:
    merged = _default_config_payload()
    tiers_raw = raw.get("tiers") if isinstance(raw, Mapping) else None
    if not isinstance(tiers_raw, Mapping):
        return merged
    for tier, entry in tiers_raw.items():
        key = str(tier).strip().lower()
        if key not in merged["tiers"]:
            logger.warning("Tier config lists unknown tier %r; ignoring it.", tier)
            continue
        if isinstance(entry, Mapping):
            merged["tiers"][key] = _normalize_tier_entry(key, entry)
    merged["updatedAt"] = raw.get("updatedAt")
    merged["updatedBy"] = raw.get("updatedBy")
    return merged


def load_tier_config(*, reload: bool = False) -> Dict[str, Any]:
    """Load the tier config with defaults applied to anything the override file omits."""

    return _TIER_CONFIG_STORE.load(
        loader=_merge_tier_config,
        fallback=_default_config_payload,
        reload=reload,
    )


def clear_tier_config_cache() -> None:
    _TIER_CONFIG_STORE.clear_cache()


def get_tier_profile(tier: SubscriptionTier) -> TierProfile:
    entry = load_tier_config()["tiers"][tier.value]
    return TierProfile(
        tier=tier,
        features=frozenset(Feature(item) for item in entry["features"]),
        response_budget_chars=int(entry["responseBudgetChars"]),
        monthly_message_limit=entry.get("monthlyMessageLimit"),
        priority_class=PriorityClass(entry["priorityClass"]),
    )


def list_tier_profiles() -> Dict[SubscriptionTier, TierProfile]:
    return {tier: get_tier_profile(tier) for tier in SubscriptionTier}


def update_tier_config(
    tiers: Mapping[str, Mapping[str, Any]],
    *,
    updated_by: Optional[str],
) -> Dict[str, Any]:
    """Persist overrides for the supplied tiers and return the merged config."""

    if not isinstance(tiers, Mapping) or not tiers:
        raise InvalidArgument("Tier config update must name at least one tier.", code="tier_config.empty")
    config = load_tier_config()
    for tier, entry in tiers.items():
        key = str(tier or "").strip().lower()
        if key not in config["tiers"]:
            raise InvalidArgument(f"Unknown subscription tier '{tier}'.", code="tier.invalid")
        if not isinstance(entry, Mapping):
            raise InvalidArgument(f"Tier config for {key} must be an object.", code="tier_config.invalid")
        config["tiers"][key] = _normalize_tier_entry(key, {**config["tiers"][key], **entry})

    config["updatedAt"] = datetime.now(timezone.utc).isoformat()
    config["updatedBy"] = (updated_by or "").strip() or None

    _TIER_CONFIG_STORE.save(config)
    logger.info("Tier config updated by %s for %s.", config["updatedBy"], ", ".join(sorted(tiers)))
    return deepcopy(config)


__all__ = [
    "TierProfile",
    "clear_tier_config_cache",
    "get_tier_profile",
    "list_tier_profiles",
    "load_tier_config",
    "update_tier_config",
]
