"""Shortlist snapshot and read-side view shapes."""

from __future__ import annotations

from datetime import datetime
from typing import Union

from pydantic import BaseModel, ConfigDict, Field

from .records import (
    Application,
    ApplicationStatus,
    CandidateProfile,
    VisibilityLevel,
)


class ShortlistEntry(BaseModel):
    """One ranked candidate inside a snapshot."""

    rank: int = Field(ge=1)
    application_id: str
    user_id: str
    score: float
    strengths: list[str] = Field(default_factory=list)
    concerns: list[str] = Field(default_factory=list)
    recommendation: str | None = None
    degraded: bool = False

    model_config = ConfigDict(extra="forbid", frozen=True)


class ShortlistSnapshot(BaseModel):
    """Immutable ranked shortlist; superseded as a whole, never edited."""

    snapshot_id: str
    project_id: str
    generated_at: datetime
    total_applications_at_generation: int
    entries: tuple[ShortlistEntry, ...] = ()
    visibility_level_at_generation: VisibilityLevel
    is_manual: bool = False
    generated_by: str | None = None
    unscored_application_ids: tuple[str, ...] = ()

    model_config = ConfigDict(extra="forbid", frozen=True)

    @property
    def ranked_candidate_ids(self) -> list[str]:
        return [entry.application_id for entry in self.entries]

    @property
    def complete(self) -> bool:
        return not self.unscored_application_ids


class LockedField(BaseModel):
    """Placeholder for a value the viewer's tier may not see."""

    locked: bool = True
    unlocks_at: VisibilityLevel

    model_config = ConfigDict(extra="forbid", frozen=True)


class CandidateInsights(BaseModel):
    key_strengths: list[str] = Field(default_factory=list)
    concerns: list[str] = Field(default_factory=list)
    recommendation: str | None = None

    model_config = ConfigDict(extra="forbid")


class CandidateCard(BaseModel):
    """Snapshot entry joined with the candidate's profile and application."""

    entry: ShortlistEntry
    profile: CandidateProfile
    application: Application

    model_config = ConfigDict(extra="forbid")


class ShortlistView(BaseModel):
    """Unredacted read model assembled from a snapshot."""

    snapshot: ShortlistSnapshot
    cards: list[CandidateCard] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")


MaybeLocked = Union[str, LockedField, None]


class RedactedCandidate(BaseModel):
    application_id: str
    user_id: str
    ranking: int
    compatibility_score: float
    status: ApplicationStatus
    applied_at: datetime
    name: str | None = None
    university: str | None = None
    major: str | None = None
    graduation_year: int | None = None
    skills: list[str] = Field(default_factory=list)
    bio: str | None = None
    email: MaybeLocked = None
    linkedin: MaybeLocked = None
    cover_letter: MaybeLocked = None
    motivation: MaybeLocked = None
    ai_insights: CandidateInsights | LockedField | None = None
    score_degraded: bool = False

    model_config = ConfigDict(extra="forbid")


class UpgradePrompt(BaseModel):
    current_tier: str
    next_tier: str
    next_tier_name: str
    benefits: list[str] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")


class RedactedShortlist(BaseModel):
    """Tier-filtered shortlist returned to companies."""

    snapshot_id: str
    project_id: str
    generated_at: datetime
    total_applications: int
    shortlisted_count: int
    visibility_level: VisibilityLevel
    is_manual: bool = False
    complete: bool = True
    candidates: list[RedactedCandidate] = Field(default_factory=list)
    upgrade_prompt: UpgradePrompt | None = None

    model_config = ConfigDict(extra="forbid")
