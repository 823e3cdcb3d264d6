"""Cached JSON file documents with env path overrides and a cross-process write lock."""

from __future__ import annotations

import json
import os
from copy import deepcopy
from pathlib import Path
from typing import Any, Callable, Optional, Union

from filelock import FileLock, Timeout

from core.env import env_int
from core.logging import get_logger

JsonDefault = Union[Any, Callable[[], Any]]

logger = get_logger(__name__)

_LOCK_TIMEOUT_SECONDS = env_int("JSON_STORE_LOCK_TIMEOUT_SECONDS", 5, minimum=1)


def _default_value(default: JsonDefault) -> Any:
    return default() if callable(default) else default


def read_json_document(path: Path, *, default: JsonDefault) -> Any:
    """Return the JSON payload stored at ``path`` (``default`` if missing or invalid)."""
    if not path.exists():
        return _default_value(default)
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning("Failed to read JSON document %s: %s", path, exc)
        return _default_value(default)


class JsonStore:
    """One JSON file, cached in memory, whose location can be overridden by an env var."""

    def __init__(
        self,
        *,
        path_env: Optional[str],
        default_path: Path,
    ) -> None:
        self._path_env = path_env
        self._default_path = Path(default_path)
        self._cache: Optional[Any] = None
        self._cache_path: Optional[Path] = None

    def resolve_path(self) -> Path:
        if self._path_env:
            env_value = os.getenv(self._path_env)
            if env_value:
                return Path(env_value).expanduser()
        return self._default_path

    def clear_cache(self) -> None:
        self._cache = None
        self._cache_path = None

    def load(
        self,
        *,
        loader: Callable[[Any], Any],
        fallback: Callable[[], Any],
        reload: bool = False,
    ) -> Any:
        path = self.resolve_path()
        if self._cache is not None and self._cache_path == path and not reload:
            return deepcopy(self._cache)

        merged = loader(read_json_document(path, default=fallback))
        self._cache = deepcopy(merged)
        self._cache_path = path
        return deepcopy(merged)

    def save(self, payload: Any) -> None:
        path = self.resolve_path()
        path.parent.mkdir(parents=True, exist_ok=True)
        lock = FileLock(str(path.parent / f"{path.name}.lock"), timeout=_LOCK_TIMEOUT_SECONDS)
        try:
            with lock:
                path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
        except Timeout as exc:
            raise RuntimeError(f"Timed out waiting for the lock on {path}.") from exc
        self._cache = deepcopy(payload)
        self._cache_path = path


__all__ = ["JsonStore", "read_json_document"]
