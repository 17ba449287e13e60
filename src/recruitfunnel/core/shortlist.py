"""Shortlist generation and snapshot replacement."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Sequence

import structlog

from ..schemas.records import (
    Application,
    ApplicationStatus,
    CandidateProfile,
    Project,
    VisibilityLevel,
)
from ..schemas.shortlist import ShortlistEntry, ShortlistSnapshot
from ..storage.base import (
    ApplicationRepository,
    ProfileProvider,
    ProjectRepository,
    SnapshotStore,
    UserRepository,
)
from ..timeutils import Clock, to_utc, utc_now
from .eligibility import ShortlistEligibilityGate
from .errors import InvalidSelection, NotEligible, NotFound, SnapshotWriteConflict
from .scoring import (
    CompatibilityResult,
    ResilientScorer,
    ScoringTask,
    profile_fingerprint,
    recommendation_for,
)
from .tiers import SubscriptionTierCatalog

if TYPE_CHECKING:
    from ..audit import AuditLogger


@dataclass(slots=True)
class ScoredApplication:
    application: Application
    result: CompatibilityResult

    def sort_key(self) -> tuple[float, object, str]:
        return (-self.result.score, to_utc(self.application.created_at), self.application.id)


def rank_applications(scored: Sequence[ScoredApplication]) -> list[ScoredApplication]:
    """Highest score first; earlier applications win ties."""
    return sorted(scored, key=ScoredApplication.sort_key)


class ShortlistGenerator:
    """Scores a project's applicant pool and writes ranked snapshots."""

    def __init__(
        self,
        *,
        projects: ProjectRepository,
        applications: ApplicationRepository,
        profiles: ProfileProvider,
        users: UserRepository,
        snapshots: SnapshotStore,
        gate: ShortlistEligibilityGate,
        scorer: ResilientScorer,
        catalog: SubscriptionTierCatalog,
        shortlist_size: int = 10,
        now_provider: Clock | None = None,
        audit_logger: "AuditLogger | None" = None,
    ) -> None:
        if shortlist_size < 1:
            raise ValueError("Shortlist size must be positive.")
        self._projects = projects
        self._applications = applications
        self._profiles = profiles
        self._users = users
        self._snapshots = snapshots
        self._gate = gate
        self._scorer = scorer
        self._catalog = catalog
        self._shortlist_size = shortlist_size
        self._now = now_provider or utc_now
        self._audit = audit_logger
        self._logger = structlog.get_logger(__name__)

    @property
    def shortlist_size(self) -> int:
        return self._shortlist_size

    def generate(self, project_id: str, *, actor_id: str | None = None) -> ShortlistSnapshot:
        """Rank the pool and replace the project's current snapshot."""
        project = self._require_project(project_id)

        def build() -> ShortlistSnapshot:
            eligibility = self._gate.evaluate(project_id)
            if not eligibility.eligible:
                raise NotEligible(eligibility)
            pool = self._active_pool(project_id)
            scored = self._score(project, pool)
            ranked = rank_applications(scored)[: self._shortlist_size]
            return self._snapshot(
                project,
                ranked,
                total=len(pool),
                unscored=[item.application.id for item in scored if item.result.degraded],
                is_manual=False,
                actor_id=actor_id,
            )

        return self._commit(project_id, build)

    def manual_override(
        self,
        project_id: str,
        application_ids: Sequence[str],
        *,
        actor_id: str,
    ) -> ShortlistSnapshot:
        """Replace the snapshot with an explicitly chosen, explicitly ordered set."""
        project = self._require_project(project_id)
        selected_ids = list(dict.fromkeys(application_ids))
        if not selected_ids:
            raise InvalidSelection("At least one candidate must be selected.", project_id=project_id)

        def build() -> ShortlistSnapshot:
            pool = self._active_pool(project_id)
            by_id = {application.id: application for application in pool}
            unknown = [app_id for app_id in selected_ids if app_id not in by_id]
            if unknown:
                raise InvalidSelection(
                    "Selected candidates must be active applications of this project.",
                    project_id=project_id,
                    invalid_ids=unknown,
                )
            chosen = [by_id[app_id] for app_id in selected_ids]
            scored = self._score(project, chosen)
            return self._snapshot(
                project,
                scored,
                total=len(pool),
                unscored=[item.application.id for item in scored if item.result.degraded],
                is_manual=True,
                actor_id=actor_id,
            )

        return self._commit(project_id, build)

    def _commit(
        self,
        project_id: str,
        build: Callable[[], ShortlistSnapshot],
    ) -> ShortlistSnapshot:
        for attempt in (1, 2):
            previous = self._snapshots.current_snapshot(project_id)
            expected_id = previous.snapshot_id if previous else None
            snapshot = build()
            if self._snapshots.replace_snapshot(snapshot, expected_snapshot_id=expected_id):
                self._logger.info(
                    "shortlist.generated",
                    project_id=project_id,
                    snapshot_id=snapshot.snapshot_id,
                    size=len(snapshot.entries),
                    total_applications=snapshot.total_applications_at_generation,
                    manual=snapshot.is_manual,
                    complete=snapshot.complete,
                    replaced=expected_id,
                )
                if self._audit:
                    self._audit.append(
                        {
                            "event": "shortlist.snapshot_written",
                            "project_id": project_id,
                            "snapshot_id": snapshot.snapshot_id,
                            "replaced": expected_id,
                            "manual": snapshot.is_manual,
                            "generated_by": snapshot.generated_by,
                            "ranked_candidate_ids": snapshot.ranked_candidate_ids,
                        }
                    )
                return snapshot
            self._logger.warning("shortlist.write_conflict", project_id=project_id, attempt=attempt)
        raise SnapshotWriteConflict(
            "Another shortlist generation finished first; please retry.",
            project_id=project_id,
        )

    def _require_project(self, project_id: str) -> Project:
        project = self._projects.get_project(project_id)
        if project is None:
            raise NotFound(f"Project {project_id} not found.", project_id=project_id)
        return project

    def _active_pool(self, project_id: str) -> list[Application]:
        return [
            application
            for application in self._applications.list_applications(project_id)
            if application.status != ApplicationStatus.REJECTED
        ]

    def _score(self, project: Project, pool: Sequence[Application]) -> list[ScoredApplication]:
        cached: dict[str, CompatibilityResult] = {}
        tasks: list[ScoringTask] = []
        fingerprints: dict[str, str] = {}

        for application in pool:
            profile = self._profiles.get_profile(application.user_id) or CandidateProfile(
                user_id=application.user_id
            )
            fingerprint = profile_fingerprint(profile, project)
            fingerprints[application.id] = fingerprint
            if application.compatibility_score is not None and application.score_fingerprint == fingerprint:
                cached[application.id] = CompatibilityResult(
                    score=application.compatibility_score,
                    strengths=list(application.strengths),
                    concerns=list(application.concerns),
                    recommendation=recommendation_for(application.compatibility_score),
                )
            else:
                tasks.append(ScoringTask(application.id, profile, project))

        fresh = self._scorer.score_batch(tasks)
        for key, result in fresh.items():
            if result.degraded:
                continue
            self._applications.update_score_cache(
                key,
                score=result.score,
                fingerprint=fingerprints[key],
                strengths=result.strengths,
                concerns=result.concerns,
            )

        self._logger.debug(
            "shortlist.scored",
            project_id=project.id,
            cached=len(cached),
            scored=len(fresh),
        )
        return [
            ScoredApplication(application, cached.get(application.id) or fresh[application.id])
            for application in pool
        ]

    def _snapshot(
        self,
        project: Project,
        ranked: Sequence[ScoredApplication],
        *,
        total: int,
        unscored: Sequence[str],
        is_manual: bool,
        actor_id: str | None,
    ) -> ShortlistSnapshot:
        entries = tuple(
            ShortlistEntry(
                rank=index,
                application_id=item.application.id,
                user_id=item.application.user_id,
                score=item.result.score,
                strengths=list(item.result.strengths),
                concerns=list(item.result.concerns),
                recommendation=item.result.recommendation,
                degraded=item.result.degraded,
            )
            for index, item in enumerate(ranked, start=1)
        )
        return ShortlistSnapshot(
            snapshot_id=uuid.uuid4().hex,
            project_id=project.id,
            generated_at=to_utc(self._now()),
            total_applications_at_generation=total,
            entries=entries,
            visibility_level_at_generation=self._company_visibility(project),
            is_manual=is_manual,
            generated_by=actor_id,
            unscored_application_ids=tuple(unscored),
        )

    def _company_visibility(self, project: Project) -> VisibilityLevel:
        company = self._users.get_user(project.company_id)
        plan = company.subscription_plan if company else None
        return self._catalog.resolve(plan).shortlist_visibility
