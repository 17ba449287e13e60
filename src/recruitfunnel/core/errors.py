"""Error kinds raised by funnel components.

Every recoverable failure carries a stable ``code`` and an HTTP status so the
facade can turn it into a structured response.
"""

from __future__ import annotations

from typing import Any

from ..schemas.responses import EligibilityStatus, ErrorBody, QuotaDecision


class FunnelError(Exception):
    """Base class for recoverable funnel failures."""

    code = "FunnelError"
    status_code = 400

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_body(self) -> ErrorBody:
        return ErrorBody(
            error=self.code,
            message=self.message,
            status_code=self.status_code,
            details=_jsonable(self.details),
        )


class NotEligible(FunnelError):
    code = "NotEligible"
    status_code = 400

    def __init__(self, eligibility: EligibilityStatus) -> None:
        super().__init__(
            f"Cannot generate shortlist yet. Need {eligibility.remaining_needed} more applications.",
            eligibility=eligibility,
        )
        self.eligibility = eligibility


class QuotaExceeded(FunnelError):
    code = "QuotaExceeded"
    status_code = 403

    def __init__(self, decision: QuotaDecision) -> None:
        super().__init__(decision.reason or "Application limit reached", quota=decision)
        self.decision = decision


class UpgradeRequired(FunnelError):
    code = "UpgradeRequired"
    status_code = 403

    def __init__(self, message: str, *, current_plan: str, required_plan: str | None) -> None:
        super().__init__(message, current_plan=current_plan, required_plan=required_plan)
        self.current_plan = current_plan
        self.required_plan = required_plan


class InvalidTransition(FunnelError):
    code = "InvalidTransition"
    status_code = 422


class InvalidSelection(FunnelError):
    code = "InvalidSelection"
    status_code = 422


class ScoringUnavailable(FunnelError):
    code = "ScoringUnavailable"
    status_code = 503


class SnapshotWriteConflict(FunnelError):
    code = "SnapshotWriteConflict"
    status_code = 409


class NotFound(FunnelError):
    code = "NotFound"
    status_code = 404


class Forbidden(FunnelError):
    code = "Forbidden"
    status_code = 403


class DuplicateApplication(FunnelError):
    code = "DuplicateApplication"
    status_code = 409


class ProjectNotOpen(FunnelError):
    code = "ProjectNotOpen"
    status_code = 409


def http_status_for(error: FunnelError) -> int:
    return error.status_code


def _jsonable(details: dict[str, Any]) -> dict[str, Any]:
    rendered: dict[str, Any] = {}
    for key, value in details.items():
        if hasattr(value, "model_dump"):
            rendered[key] = value.model_dump(mode="json")
        else:
            rendered[key] = value
    return rendered


__all__ = [
    "DuplicateApplication",
    "Forbidden",
    "FunnelError",
    "InvalidSelection",
    "InvalidTransition",
    "NotEligible",
    "NotFound",
    "ProjectNotOpen",
    "QuotaExceeded",
    "ScoringUnavailable",
    "SnapshotWriteConflict",
    "UpgradeRequired",
    "http_status_for",
]
