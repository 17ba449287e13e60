"""Repository contracts consumed by the funnel engine."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol, runtime_checkable

from ..schemas.records import (
    Application,
    ApplicationStatus,
    CandidateProfile,
    Project,
    User,
)
from ..schemas.shortlist import ShortlistSnapshot


@dataclass(slots=True, frozen=True)
class SlotReservation:
    """Counter state observed by an atomic quota reservation."""

    granted: bool
    used: int
    last_monthly_reset: datetime
    reset_applied: bool = False


@runtime_checkable
class ProjectRepository(Protocol):
    def get_project(self, project_id: str) -> Project | None:
        """Return the project or None."""

    def count_active_applications(self, project_id: str) -> int:
        """Count the project's applications that are not REJECTED."""


@runtime_checkable
class ApplicationRepository(Protocol):
    def get_application(self, application_id: str) -> Application | None:
        """Return the application or None."""

    def find_application(self, user_id: str, project_id: str) -> Application | None:
        """Return the user's application to the project, if any."""

    def list_applications(self, project_id: str) -> list[Application]:
        """Return every application of a project."""

    def create_application(self, application: Application) -> Application:
        """Persist a new application; raise DuplicateApplication on (user, project) clash."""

    def compare_and_set_status(
        self,
        application_id: str,
        expected: ApplicationStatus,
        new: ApplicationStatus,
        *,
        updated_at: datetime,
    ) -> Application | None:
        """Atomically move ``expected`` to ``new``; return None if the status changed underneath."""

    def update_score_cache(
        self,
        application_id: str,
        *,
        score: float,
        fingerprint: str,
        strengths: list[str],
        concerns: list[str],
    ) -> None:
        """Store the latest compatibility score for an application."""


@runtime_checkable
class UserRepository(Protocol):
    def get_user(self, user_id: str) -> User | None:
        """Return the user or None."""

    def reserve_application_slot(
        self,
        user_id: str,
        *,
        period_start: datetime,
        now: datetime,
        limit: int | None,
        application: Application | None = None,
    ) -> SlotReservation:
        """Atomically reset a stale period and increment the counter if below ``limit``.

        A ``limit`` of None means unlimited. The reset (counter to zero and
        ``last_monthly_reset`` to ``now``) applies when the stored reset time
        is missing or earlier than ``period_start``.

        When ``application`` is given it is created in the same atomic step
        as a granted increment. If it clashes with an existing (user, project)
        application, DuplicateApplication is raised and nothing is written.
        """


@runtime_checkable
class ProfileProvider(Protocol):
    def get_profile(self, user_id: str) -> CandidateProfile | None:
        """Return the candidate profile or None."""


@runtime_checkable
class SnapshotStore(Protocol):
    def current_snapshot(self, project_id: str) -> ShortlistSnapshot | None:
        """Return the current snapshot of a project."""

    def replace_snapshot(
        self,
        snapshot: ShortlistSnapshot,
        *,
        expected_snapshot_id: str | None,
    ) -> bool:
        """Swap in ``snapshot`` if the current one still has ``expected_snapshot_id``."""


__all__ = [
    "ApplicationRepository",
    "ProfileProvider",
    "ProjectRepository",
    "SlotReservation",
    "SnapshotStore",
    "UserRepository",
]
