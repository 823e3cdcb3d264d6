"""Typed error taxonomy shared by the governance services and routers."""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional


class GovernanceError(RuntimeError):
    """Base error carrying a machine-readable code and a user-facing message."""

    default_code = "governance.error"
    status_code = 400
    retryable = False

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        extra: Optional[Mapping[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.extra: Dict[str, Any] = dict(extra or {})

    def to_detail(self) -> Dict[str, Any]:
        detail: Dict[str, Any] = {
            "code": self.code,
            "message": self.message,
        }
        if self.retryable:
            detail["retryable"] = True
        detail.update(self.extra)
        return detail


class NotFound(GovernanceError):
    """Target account or discount does not exist."""

    default_code = "resource.not_found"
    status_code = 404


class Unauthorized(GovernanceError):
    """Actor is missing or lacks the admin role."""

    default_code = "admin.unauthorized"
    status_code = 403


class InvalidArgument(GovernanceError):
    """Bad tier, duration, currency, percent or payload shape."""

    default_code = "request.invalid_argument"
    status_code = 400


class StoreUnavailable(GovernanceError):
    """The document store could not be reached or kept losing write races."""

    default_code = "store.unavailable"
    status_code = 503


class QuotaExceeded(GovernanceError):
    """The monthly message ceiling was already reached when the increment was written."""

    default_code = "quota.exceeded"
    status_code = 429

    def __init__(self, message: str, *, limit: int, usage_count: int) -> None:
        super().__init__(message, extra={"limit": limit, "remaining": 0})
        self.limit = limit
        self.usage_count = usage_count


class UpstreamGenerationFailure(GovernanceError):
    """The external text-generation provider failed; callers may retry."""

    default_code = "generation.upstream_failure"
    status_code = 502
    retryable = True


__all__ = [
    "GovernanceError",
    "InvalidArgument",
    "NotFound",
    "QuotaExceeded",
    "StoreUnavailable",
    "Unauthorized",
    "UpstreamGenerationFailure",
]
