"""Response shapes exposed to the API layer."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .records import ApplicationStatus
from .shortlist import RedactedShortlist, UpgradePrompt


class EligibilityStatus(BaseModel):
    eligible: bool
    current_applications: int
    required_applications: int
    remaining_needed: int
    estimated_days_to_eligibility: int | None = None
    message: str | None = None

    model_config = ConfigDict(extra="forbid")


class QuotaDecision(BaseModel):
    """Outcome of a quota check; ``max``/``remaining`` are None when unlimited."""

    allowed: bool
    used: int
    max: int | None
    remaining: int | None
    next_reset_date: datetime
    reason: str | None = None
    requires_upgrade: bool = False
    upgrade_prompt: UpgradePrompt | None = None

    model_config = ConfigDict(extra="forbid")


class LimitsResponse(BaseModel):
    can_apply: bool
    max_applications: int
    applications_used: int
    applications_remaining: int
    next_reset_date: datetime
    requires_upgrade: bool
    already_applied: bool = False
    reason: str | None = None
    upgrade_prompt: UpgradePrompt | None = None

    model_config = ConfigDict(extra="forbid")


class ShortlistResponse(BaseModel):
    eligible: bool
    eligibility: EligibilityStatus
    shortlist: RedactedShortlist | None = None
    message: str | None = None

    model_config = ConfigDict(extra="forbid")


class BulkItemResult(BaseModel):
    application_id: str
    success: bool
    new_status: ApplicationStatus | None = None
    error: str | None = None
    detail: str | None = None

    model_config = ConfigDict(extra="forbid")


class ManualOverrideResponse(BaseModel):
    shortlist: RedactedShortlist
    transitions: list[BulkItemResult] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")


class ErrorBody(BaseModel):
    """Structured error body for recoverable failures."""

    error: str
    message: str
    status_code: int
    details: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(extra="forbid")
