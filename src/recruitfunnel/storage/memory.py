"""Thread-safe in-process record store."""

from __future__ import annotations

import threading
from datetime import datetime
from typing import Iterable

from ..core.errors import DuplicateApplication
from ..schemas.records import (
    Application,
    ApplicationStatus,
    CandidateProfile,
    Project,
    User,
)
from ..schemas.shortlist import ShortlistSnapshot
from ..timeutils import to_utc
from .base import SlotReservation


class InMemoryStore:
    """Implements every repository contract over plain dictionaries.

    A single lock guards all records so each conditional update behaves like
    the atomic statement a database would run.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._users: dict[str, User] = {}
        self._projects: dict[str, Project] = {}
        self._applications: dict[str, Application] = {}
        self._profiles: dict[str, CandidateProfile] = {}
        self._snapshots: dict[str, ShortlistSnapshot] = {}

    # seeding -----------------------------------------------------------------

    def add_users(self, users: Iterable[User]) -> None:
        with self._lock:
            for user in users:
                self._users[user.id] = user.model_copy(deep=True)

    def add_projects(self, projects: Iterable[Project]) -> None:
        with self._lock:
            for project in projects:
                self._projects[project.id] = project.model_copy(deep=True)

    def add_profiles(self, profiles: Iterable[CandidateProfile]) -> None:
        with self._lock:
            for profile in profiles:
                self._profiles[profile.user_id] = profile.model_copy(deep=True)

    def add_applications(self, applications: Iterable[Application]) -> None:
        for application in applications:
            self.create_application(application)

    # projects ----------------------------------------------------------------

    def get_project(self, project_id: str) -> Project | None:
        with self._lock:
            project = self._projects.get(project_id)
            return project.model_copy(deep=True) if project else None

    def count_active_applications(self, project_id: str) -> int:
        with self._lock:
            return sum(
                1
                for app in self._applications.values()
                if app.project_id == project_id and app.status != ApplicationStatus.REJECTED
            )

    # applications ------------------------------------------------------------

    def get_application(self, application_id: str) -> Application | None:
        with self._lock:
            application = self._applications.get(application_id)
            return application.model_copy(deep=True) if application else None

    def find_application(self, user_id: str, project_id: str) -> Application | None:
        with self._lock:
            for application in self._applications.values():
                if application.user_id == user_id and application.project_id == project_id:
                    return application.model_copy(deep=True)
        return None

    def list_applications(self, project_id: str) -> list[Application]:
        with self._lock:
            return [
                app.model_copy(deep=True)
                for app in self._applications.values()
                if app.project_id == project_id
            ]

    def create_application(self, application: Application) -> Application:
        with self._lock:
            self._ensure_unique(application)
            self._applications[application.id] = application.model_copy(deep=True)
            return application.model_copy(deep=True)

    def _ensure_unique(self, application: Application) -> None:
        with self._lock:
            if application.id in self._applications:
                raise DuplicateApplication(
                    f"Application {application.id} already exists.",
                    application_id=application.id,
                )
            for existing in self._applications.values():
                if existing.user_id == application.user_id and existing.project_id == application.project_id:
                    raise DuplicateApplication(
                        "You have already applied to this project.",
                        user_id=application.user_id,
                        project_id=application.project_id,
                    )

    def compare_and_set_status(
        self,
        application_id: str,
        expected: ApplicationStatus,
        new: ApplicationStatus,
        *,
        updated_at: datetime,
    ) -> Application | None:
        with self._lock:
            current = self._applications.get(application_id)
            if current is None or current.status != expected:
                return None
            updated = current.model_copy(update={"status": new, "updated_at": updated_at})
            self._applications[application_id] = updated
            return updated.model_copy(deep=True)

    def update_score_cache(
        self,
        application_id: str,
        *,
        score: float,
        fingerprint: str,
        strengths: list[str],
        concerns: list[str],
    ) -> None:
        with self._lock:
            current = self._applications.get(application_id)
            if current is None:
                return
            self._applications[application_id] = current.model_copy(
                update={
                    "compatibility_score": score,
                    "score_fingerprint": fingerprint,
                    "strengths": list(strengths),
                    "concerns": list(concerns),
                }
            )

    # users -------------------------------------------------------------------

    def get_user(self, user_id: str) -> User | None:
        with self._lock:
            user = self._users.get(user_id)
            return user.model_copy(deep=True) if user else None

    def reserve_application_slot(
        self,
        user_id: str,
        *,
        period_start: datetime,
        now: datetime,
        limit: int | None,
        application: Application | None = None,
    ) -> SlotReservation:
        with self._lock:
            user = self._users.get(user_id)
            if user is None:
                raise KeyError(f"Unknown user: {user_id!r}")

            used = user.applications_this_month
            last_reset = user.last_monthly_reset
            reset_applied = last_reset is None or to_utc(last_reset) < to_utc(period_start)
            if reset_applied:
                used = 0
                last_reset = now

            granted = limit is None or used < limit
            if granted:
                used += 1
                if application is not None:
                    self._ensure_unique(application)
                    self._applications[application.id] = application.model_copy(deep=True)

            self._users[user_id] = user.model_copy(
                update={"applications_this_month": used, "last_monthly_reset": last_reset}
            )
            return SlotReservation(
                granted=granted,
                used=used,
                last_monthly_reset=last_reset,
                reset_applied=reset_applied,
            )

    # profiles ----------------------------------------------------------------

    def get_profile(self, user_id: str) -> CandidateProfile | None:
        with self._lock:
            profile = self._profiles.get(user_id)
            return profile.model_copy(deep=True) if profile else None

    # snapshots ---------------------------------------------------------------

    def current_snapshot(self, project_id: str) -> ShortlistSnapshot | None:
        with self._lock:
            return self._snapshots.get(project_id)

    def replace_snapshot(
        self,
        snapshot: ShortlistSnapshot,
        *,
        expected_snapshot_id: str | None,
    ) -> bool:
        with self._lock:
            current = self._snapshots.get(snapshot.project_id)
            current_id = current.snapshot_id if current else None
            if current_id != expected_snapshot_id:
                return False
            self._snapshots[snapshot.project_id] = snapshot
            return True
