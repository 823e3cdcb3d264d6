"""Environment variable helpers."""

from __future__ import annotations

import os
from typing import Iterable, Optional, Tuple

from core.logging import get_logger

logger = get_logger(__name__)

_TRUE_VALUES = {"1", "true", "yes", "y", "on"}
_FALSE_VALUES = {"0", "false", "no", "n", "off"}


def env_str(key: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(key, default)
    if value is None:
        logger.debug("Environment variable %s not set. Using default=%s.", key, default)
    return value


def env_int(key: str, default: int, *, minimum: Optional[int] = None) -> int:
    raw = os.getenv(key)
    if raw is None:
        return default
    try:
        value = int(raw)
        if minimum is not None and value < minimum:
            raise ValueError
        return value
    except ValueError:
        logger.warning("Invalid %s value '%s'. Falling back to %d.", key, raw, default)
        return default


def env_float(key: str, default: float, *, minimum: Optional[float] = None) -> float:
    raw = os.getenv(key)
    if raw is None:
        return default
    try:
        value = float(raw)
        if minimum is not None and value < minimum:
            raise ValueError
        return value
    except ValueError:
        logger.warning("Invalid %s value '%s'. Falling back to %s.", key, raw, default)
        return default


def env_bool(key: str, default: bool) -> bool:
    raw = os.getenv(key)
    if raw is None:
        return default
    normalized = raw.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    logger.warning("Invalid boolean env %s='%s'. Using default=%s.", key, raw, default)
    return default


def env_choice(key: str, choices: Iterable[str], default: str) -> str:
    """Case-insensitive pick from a fixed set; an unknown value is a startup error."""

    allowed = tuple(choice.lower() for choice in choices)
    raw = os.getenv(key)
    if raw is None or not raw.strip():
        return default
    value = raw.strip().lower()
    if value not in allowed:
        raise RuntimeError(f"Unsupported {key} '{raw}'. Use one of: {', '.join(allowed)}.")
    return value


def env_list(key: str, *, lower: bool = False) -> Tuple[str, ...]:
    """Split a comma separated variable into trimmed, non-empty entries."""

    raw = os.getenv(key) or ""
    items = []
    for entry in raw.split(","):
        entry = entry.strip()
        if not entry:
            continue
        items.append(entry.lower() if lower else entry)
    return tuple(items)


__all__ = ["env_bool", "env_choice", "env_float", "env_int", "env_list", "env_str"]
