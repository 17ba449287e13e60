"""Pydantic schema definitions shared across the funnel engine."""

from __future__ import annotations

from .commands import (
    BulkTransition,
    FunnelCommand,
    GenerateShortlist,
    ManualOverride,
    parse_command,
)
from .records import (
    Application,
    ApplicationStatus,
    CandidateProfile,
    Project,
    ProjectStatus,
    User,
    UserRole,
    VisibilityLevel,
    WorkPreferences,
)
from .responses import (
    BulkItemResult,
    EligibilityStatus,
    ErrorBody,
    LimitsResponse,
    ManualOverrideResponse,
    QuotaDecision,
    ShortlistResponse,
)
from .shortlist import (
    CandidateCard,
    CandidateInsights,
    LockedField,
    RedactedCandidate,
    RedactedShortlist,
    ShortlistEntry,
    ShortlistSnapshot,
    ShortlistView,
    UpgradePrompt,
)

__all__ = [
    "Application",
    "ApplicationStatus",
    "BulkItemResult",
    "BulkTransition",
    "CandidateCard",
    "CandidateInsights",
    "CandidateProfile",
    "EligibilityStatus",
    "ErrorBody",
    "FunnelCommand",
    "GenerateShortlist",
    "LimitsResponse",
    "LockedField",
    "ManualOverride",
    "ManualOverrideResponse",
    "Project",
    "ProjectStatus",
    "QuotaDecision",
    "RedactedCandidate",
    "RedactedShortlist",
    "ShortlistEntry",
    "ShortlistResponse",
    "ShortlistSnapshot",
    "ShortlistView",
    "UpgradePrompt",
    "User",
    "UserRole",
    "VisibilityLevel",
    "WorkPreferences",
    "parse_command",
]
