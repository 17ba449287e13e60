"""Core funnel engine components."""

from __future__ import annotations

# NOTE: errors first; the other modules import from it.
from .errors import (
    DuplicateApplication,
    Forbidden,
    FunnelError,
    InvalidSelection,
    InvalidTransition,
    NotEligible,
    NotFound,
    ProjectNotOpen,
    QuotaExceeded,
    ScoringUnavailable,
    SnapshotWriteConflict,
    UpgradeRequired,
    http_status_for,
)
from .result import Err, Ok, Result
from .tiers import SubscriptionTierCatalog, TierEntitlement
from .quota import QuotaEnforcer
from .scoring import (
    CompatibilityResult,
    CompatibilityScorer,
    HTTPCompatibilityScorer,
    ResilientScorer,
    RuleBasedScorer,
    RuleBasedScorerConfig,
)
from .eligibility import ShortlistEligibilityGate
from .shortlist import ShortlistGenerator
from .redaction import VisibilityRedactor
from .funnel import ALLOWED_TRANSITIONS, FunnelStateMachine, allowed_targets, can_transition
from .engine import RecruitmentFunnelEngine

__all__ = [
    "ALLOWED_TRANSITIONS",
    "CompatibilityResult",
    "CompatibilityScorer",
    "DuplicateApplication",
    "Err",
    "Forbidden",
    "FunnelError",
    "FunnelStateMachine",
    "HTTPCompatibilityScorer",
    "InvalidSelection",
    "InvalidTransition",
    "NotEligible",
    "NotFound",
    "Ok",
    "ProjectNotOpen",
    "QuotaEnforcer",
    "QuotaExceeded",
    "RecruitmentFunnelEngine",
    "ResilientScorer",
    "Result",
    "RuleBasedScorer",
    "RuleBasedScorerConfig",
    "ScoringUnavailable",
    "ShortlistEligibilityGate",
    "ShortlistGenerator",
    "SnapshotWriteConflict",
    "SubscriptionTierCatalog",
    "TierEntitlement",
    "UpgradeRequired",
    "VisibilityRedactor",
    "allowed_targets",
    "can_transition",
    "http_status_for",
]
