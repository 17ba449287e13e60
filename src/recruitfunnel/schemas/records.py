"""Persistent record shapes shared by the engine and the stores."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class UserRole(str, Enum):
    STUDENT = "STUDENT"
    COMPANY = "COMPANY"
    ADMIN = "ADMIN"


class ProjectStatus(str, Enum):
    DRAFT = "DRAFT"
    PENDING_APPROVAL = "PENDING_APPROVAL"
    LIVE = "LIVE"
    REJECTED = "REJECTED"
    CLOSED = "CLOSED"


class ApplicationStatus(str, Enum):
    PENDING = "PENDING"
    SHORTLISTED = "SHORTLISTED"
    INTERVIEWED = "INTERVIEWED"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"

    @property
    def is_terminal(self) -> bool:
        return self in (ApplicationStatus.ACCEPTED, ApplicationStatus.REJECTED)


class VisibilityLevel(str, Enum):
    """Candidate-field disclosure levels, ordered from least to most open."""

    SHORTLISTED_ONLY = "shortlisted_only"
    FULL_POOL = "full_pool"
    COMPLETE_TRANSPARENCY = "complete_transparency"

    @property
    def rank(self) -> int:
        return _VISIBILITY_ORDER.index(self)

    def includes(self, other: "VisibilityLevel") -> bool:
        """Return True when this level discloses everything ``other`` does."""
        return self.rank >= other.rank


_VISIBILITY_ORDER = (
    VisibilityLevel.SHORTLISTED_ONLY,
    VisibilityLevel.FULL_POOL,
    VisibilityLevel.COMPLETE_TRANSPARENCY,
)


class User(BaseModel):
    """Account record with subscription and monthly quota counters."""

    id: str
    role: UserRole
    name: str | None = None
    subscription_plan: str = "FREE"
    subscription_status: str = "ACTIVE"
    applications_this_month: int = Field(default=0, ge=0)
    last_monthly_reset: datetime | None = None

    model_config = ConfigDict(extra="forbid")


class Project(BaseModel):
    """Company-posted project; read-only for the funnel engine."""

    id: str
    company_id: str
    title: str = ""
    status: ProjectStatus = ProjectStatus.DRAFT
    category: str | None = None
    skills_required: list[str] = Field(default_factory=list)
    skills_preferred: list[str] = Field(default_factory=list)
    experience_level: str | None = None
    duration_months: int | None = None
    created_at: datetime | None = None

    model_config = ConfigDict(extra="forbid")


class Application(BaseModel):
    """A candidate's application to a project.

    ``compatibility_score``, ``score_fingerprint``, ``strengths`` and
    ``concerns`` form the score cache; the fingerprint identifies the scoring
    inputs the cached values were computed from.
    """

    id: str
    user_id: str
    project_id: str
    status: ApplicationStatus = ApplicationStatus.PENDING
    compatibility_score: float | None = None
    score_fingerprint: str | None = None
    strengths: list[str] = Field(default_factory=list)
    concerns: list[str] = Field(default_factory=list)
    cover_letter: str | None = None
    motivation: str | None = None
    created_at: datetime
    updated_at: datetime | None = None

    model_config = ConfigDict(extra="forbid")


class WorkPreferences(BaseModel):
    time_commitment: str | None = None
    project_duration: str | None = None

    model_config = ConfigDict(extra="allow")


class CandidateProfile(BaseModel):
    """Candidate-facing profile data supplied by the profile provider."""

    user_id: str
    name: str | None = None
    email: str | None = None
    university: str | None = None
    major: str | None = None
    graduation_year: int | None = None
    skills: list[str] = Field(default_factory=list)
    bio: str | None = None
    linkedin: str | None = None
    experience_level: str | None = None
    career_goals: list[str] = Field(default_factory=list)
    industries: list[str] = Field(default_factory=list)
    work_preferences: WorkPreferences | None = None

    model_config = ConfigDict(extra="allow")
