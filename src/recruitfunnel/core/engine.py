"""Recruitment funnel facade.

Every public method returns an ``Ok`` or ``Err`` value. Recoverable
``FunnelError`` failures never escape as exceptions; storage failures do.
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING, Callable, Sequence, TypeVar

import structlog

from ..schemas.commands import BulkTransition, GenerateShortlist, ManualOverride
from ..schemas.records import (
    Application,
    ApplicationStatus,
    CandidateProfile,
    Project,
    ProjectStatus,
    User,
    UserRole,
)
from ..schemas.responses import (
    BulkItemResult,
    LimitsResponse,
    ManualOverrideResponse,
    ShortlistResponse,
)
from ..schemas.shortlist import (
    CandidateCard,
    RedactedShortlist,
    ShortlistSnapshot,
    ShortlistView,
)
from ..storage.base import (
    ApplicationRepository,
    ProfileProvider,
    ProjectRepository,
    SnapshotStore,
    UserRepository,
)
from ..timeutils import Clock, to_utc, utc_now
from .eligibility import ShortlistEligibilityGate
from .errors import DuplicateApplication, Forbidden, FunnelError, InvalidSelection, NotFound, ProjectNotOpen
from .funnel import FunnelStateMachine
from .quota import QuotaEnforcer
from .redaction import VisibilityRedactor
from .result import Err, Ok, Result
from .shortlist import ShortlistGenerator
from .tiers import SubscriptionTierCatalog, TierEntitlement

if TYPE_CHECKING:
    from ..audit import AuditLogger

T = TypeVar("T")


class RecruitmentFunnelEngine:
    """Entry points for shortlist reads, generation, funnel moves and applications."""

    def __init__(
        self,
        *,
        users: UserRepository,
        projects: ProjectRepository,
        applications: ApplicationRepository,
        profiles: ProfileProvider,
        snapshots: SnapshotStore,
        catalog: SubscriptionTierCatalog,
        gate: ShortlistEligibilityGate,
        quota: QuotaEnforcer,
        generator: ShortlistGenerator,
        redactor: VisibilityRedactor,
        funnel: FunnelStateMachine,
        now_provider: Clock | None = None,
        audit_logger: "AuditLogger | None" = None,
    ) -> None:
        self._users = users
        self._projects = projects
        self._applications = applications
        self._profiles = profiles
        self._snapshots = snapshots
        self._catalog = catalog
        self._gate = gate
        self._quota = quota
        self._generator = generator
        self._redactor = redactor
        self._funnel = funnel
        self._now = now_provider or utc_now
        self._audit = audit_logger
        self._logger = structlog.get_logger(__name__)

    # -- shortlist -----------------------------------------------------------------

    def get_shortlist(self, project_id: str, requesting_company_id: str) -> Result[ShortlistResponse]:
        """Return eligibility and the redacted current snapshot; never generates."""

        def read() -> ShortlistResponse:
            project, _requester = self._company_scope(project_id, requesting_company_id)
            eligibility = self._gate.evaluate(project_id)
            snapshot = self._snapshots.current_snapshot(project_id)
            if snapshot is None:
                message = (
                    "Shortlist has not been generated yet."
                    if eligibility.eligible
                    else eligibility.message
                )
                return ShortlistResponse(
                    eligible=eligibility.eligible,
                    eligibility=eligibility,
                    shortlist=None,
                    message=message,
                )
            return ShortlistResponse(
                eligible=eligibility.eligible,
                eligibility=eligibility,
                shortlist=self._render(snapshot, self._owner_tier(project)),
            )

        return self._run("get_shortlist", read)

    def generate_shortlist(self, project_id: str, requesting_company_id: str) -> Result[RedactedShortlist]:
        def generate() -> RedactedShortlist:
            project, requester = self._company_scope(project_id, requesting_company_id)
            snapshot = self._generator.generate(project_id, actor_id=requester.id)
            return self._render(snapshot, self._owner_tier(project))

        return self._run("generate_shortlist", generate)

    def manual_override(
        self,
        project_id: str,
        requesting_company_id: str,
        candidate_ids: Sequence[str],
    ) -> Result[ManualOverrideResponse]:
        """Pin an explicit shortlist and move selected PENDING applications to SHORTLISTED."""

        def override() -> ManualOverrideResponse:
            project, requester = self._company_scope(project_id, requesting_company_id)
            tier = self._owner_tier(project)
            self._funnel.authorize_manual_override(tier)
            snapshot = self._generator.manual_override(
                project_id, candidate_ids, actor_id=requester.id
            )
            pending = [
                entry.application_id
                for entry in snapshot.entries
                if self._status_of(entry.application_id) == ApplicationStatus.PENDING
            ]
            transitions: list[BulkItemResult] = []
            if pending:
                transitions = self._funnel.bulk_transition(
                    pending, ApplicationStatus.SHORTLISTED, requester
                )
            return ManualOverrideResponse(
                shortlist=self._render(snapshot, tier),
                transitions=transitions,
            )

        return self._run("manual_override", override)

    # -- funnel --------------------------------------------------------------------

    def bulk_transition(
        self,
        requesting_user_id: str,
        application_ids: Sequence[str],
        target_status: ApplicationStatus,
    ) -> Result[list[BulkItemResult]]:
        def bulk() -> list[BulkItemResult]:
            actor = self._require_user(requesting_user_id)
            return self._funnel.bulk_transition(application_ids, target_status, actor)

        return self._run("bulk_transition", bulk)

    def execute(
        self,
        command: GenerateShortlist | ManualOverride | BulkTransition,
        *,
        actor_id: str,
        project_id: str | None = None,
    ) -> Result:
        """Dispatch a parsed command to its entry point."""
        match command:
            case GenerateShortlist() | ManualOverride() if not project_id:
                return self._reject(
                    "execute",
                    InvalidSelection(
                        f"The {command.action} command requires a project_id.",
                        action=command.action,
                    ),
                )
            case GenerateShortlist():
                return self.generate_shortlist(project_id, actor_id)
            case ManualOverride(candidate_ids=candidate_ids):
                return self.manual_override(project_id, actor_id, candidate_ids)
            case BulkTransition(application_ids=application_ids, target_status=target_status):
                return self.bulk_transition(actor_id, application_ids, target_status)
        raise TypeError(f"Unsupported command: {type(command).__name__}")

    # -- applications --------------------------------------------------------------

    def check_limits(self, user_id: str, project_id: str | None = None) -> Result[LimitsResponse]:
        def limits() -> LimitsResponse:
            user = self._require_user(user_id)
            decision = self._quota.check(user)
            already_applied = bool(
                project_id and self._applications.find_application(user.id, project_id)
            )
            return LimitsResponse(
                can_apply=decision.allowed and not already_applied,
                max_applications=-1 if decision.max is None else decision.max,
                applications_used=decision.used,
                applications_remaining=-1 if decision.remaining is None else decision.remaining,
                next_reset_date=decision.next_reset_date,
                requires_upgrade=decision.requires_upgrade,
                already_applied=already_applied,
                reason="You have already applied to this project." if already_applied else decision.reason,
                upgrade_prompt=decision.upgrade_prompt,
            )

        return self._run("check_limits", limits)

    def record_application(
        self,
        user_id: str,
        project_id: str,
        *,
        cover_letter: str | None = None,
        motivation: str | None = None,
    ) -> Result[Application]:
        """Reserve a quota slot and create a PENDING application in one atomic step."""

        def apply() -> Application:
            user = self._require_user(user_id)
            if user.role != UserRole.STUDENT:
                raise Forbidden("Only students can apply to projects.", user_id=user_id)
            project = self._require_project(project_id)
            if project.status != ProjectStatus.LIVE:
                raise ProjectNotOpen(
                    "Project is not accepting applications.",
                    project_id=project_id,
                    status=project.status.value,
                )
            if self._applications.find_application(user.id, project_id) is not None:
                raise DuplicateApplication(
                    "You have already applied to this project.",
                    user_id=user_id,
                    project_id=project_id,
                )

            now = to_utc(self._now())
            application = Application(
                id=uuid.uuid4().hex,
                user_id=user.id,
                project_id=project_id,
                status=ApplicationStatus.PENDING,
                cover_letter=cover_letter,
                motivation=motivation,
                created_at=now,
                updated_at=now,
            )
            # Reservation and insert commit together; a lost duplicate race
            # leaves the counter untouched.
            decision = self._quota.check_and_reserve(user, application=application)
            self._logger.info(
                "application.recorded",
                application_id=application.id,
                user_id=user.id,
                project_id=project_id,
                used=decision.used,
                max=decision.max,
            )
            if self._audit:
                self._audit.append(
                    {
                        "event": "application.recorded",
                        "application_id": application.id,
                        "user_id": user.id,
                        "project_id": project_id,
                        "applications_used": decision.used,
                    }
                )
            return application

        return self._run("record_application", apply)

    # -- helpers -------------------------------------------------------------------

    def _run(self, operation: str, func: Callable[[], T]) -> Result[T]:
        try:
            return Ok(func())
        except FunnelError as exc:
            return self._reject(operation, exc)

    def _reject(self, operation: str, error: FunnelError) -> Err:
        self._logger.info(
            "engine.rejected",
            operation=operation,
            error=error.code,
            message=error.message,
        )
        return Err(error)

    def _render(self, snapshot: ShortlistSnapshot, tier: TierEntitlement) -> RedactedShortlist:
        return self._redactor.redact(self._view(snapshot), tier)

    def _view(self, snapshot: ShortlistSnapshot) -> ShortlistView:
        cards: list[CandidateCard] = []
        for entry in snapshot.entries:
            application = self._applications.get_application(entry.application_id)
            if application is None:
                self._logger.warning(
                    "shortlist.missing_application",
                    snapshot_id=snapshot.snapshot_id,
                    application_id=entry.application_id,
                )
                continue
            profile = self._profiles.get_profile(entry.user_id) or CandidateProfile(user_id=entry.user_id)
            cards.append(CandidateCard(entry=entry, profile=profile, application=application))
        return ShortlistView(snapshot=snapshot, cards=cards)

    def _company_scope(self, project_id: str, requesting_company_id: str) -> tuple[Project, User]:
        project = self._require_project(project_id)
        requester = self._require_user(requesting_company_id)
        if requester.role == UserRole.ADMIN:
            return project, requester
        if requester.role != UserRole.COMPANY or project.company_id != requester.id:
            raise Forbidden(
                "Only the owning company can access this project's shortlist.",
                project_id=project_id,
                requester_id=requesting_company_id,
            )
        return project, requester

    def _owner_tier(self, project: Project) -> TierEntitlement:
        owner = self._users.get_user(project.company_id)
        return self._catalog.resolve(owner.subscription_plan if owner else None)

    def _status_of(self, application_id: str) -> ApplicationStatus | None:
        application = self._applications.get_application(application_id)
        return application.status if application else None

    def _require_user(self, user_id: str) -> User:
        user = self._users.get_user(user_id)
        if user is None:
            raise NotFound(f"User {user_id} not found.", user_id=user_id)
        return user

    def _require_project(self, project_id: str) -> Project:
        project = self._projects.get_project(project_id)
        if project is None:
            raise NotFound(f"Project {project_id} not found.", project_id=project_id)
        return project


__all__ = ["RecruitmentFunnelEngine"]
