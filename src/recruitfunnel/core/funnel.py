"""Application status funnel.

``ALLOWED_TRANSITIONS`` is the only definition of the funnel graph; UI code
that needs to predict legality should call ``can_transition`` or
``allowed_targets`` instead of comparing status strings.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import TYPE_CHECKING, Mapping, Sequence

import structlog

from ..schemas.records import Application, ApplicationStatus, User, UserRole
from ..schemas.responses import BulkItemResult
from ..storage.base import ApplicationRepository, ProjectRepository
from ..timeutils import Clock, to_utc, utc_now
from .errors import Forbidden, FunnelError, InvalidTransition, NotFound, UpgradeRequired
from .tiers import SubscriptionTierCatalog, TierEntitlement

if TYPE_CHECKING:
    from ..audit import AuditLogger

_S = ApplicationStatus

ALLOWED_TRANSITIONS: Mapping[ApplicationStatus, frozenset[ApplicationStatus]] = MappingProxyType(
    {
        _S.PENDING: frozenset({_S.SHORTLISTED, _S.REJECTED}),
        _S.SHORTLISTED: frozenset({_S.INTERVIEWED, _S.REJECTED}),
        _S.INTERVIEWED: frozenset({_S.ACCEPTED, _S.REJECTED}),
        _S.ACCEPTED: frozenset(),
        _S.REJECTED: frozenset(),
    }
)


def can_transition(source: ApplicationStatus, target: ApplicationStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(source, frozenset())


def allowed_targets(status: ApplicationStatus) -> list[ApplicationStatus]:
    """Legal next statuses, in funnel order."""
    targets = ALLOWED_TRANSITIONS.get(status, frozenset())
    return [candidate for candidate in ApplicationStatus if candidate in targets]


class FunnelStateMachine:
    """Moves applications through the funnel one atomic step at a time."""

    def __init__(
        self,
        *,
        applications: ApplicationRepository,
        projects: ProjectRepository,
        catalog: SubscriptionTierCatalog,
        now_provider: Clock | None = None,
        audit_logger: "AuditLogger | None" = None,
    ) -> None:
        self._applications = applications
        self._projects = projects
        self._catalog = catalog
        self._now = now_provider or utc_now
        self._audit = audit_logger
        self._logger = structlog.get_logger(__name__)

    def transition(
        self,
        application_id: str,
        target: ApplicationStatus,
        actor: User,
    ) -> Application:
        application = self._applications.get_application(application_id)
        if application is None:
            raise NotFound(f"Application {application_id} not found.", application_id=application_id)
        self._authorize(application, actor)

        source = application.status
        if not can_transition(source, target):
            if source.is_terminal:
                message = f"Application is already {source.value} and can no longer change status."
            else:
                message = f"Cannot move application from {source.value} to {target.value}."
            raise InvalidTransition(
                message,
                application_id=application_id,
                current_status=source.value,
                target_status=target.value,
                allowed=[status.value for status in allowed_targets(source)],
            )

        updated = self._applications.compare_and_set_status(
            application_id,
            source,
            target,
            updated_at=to_utc(self._now()),
        )
        if updated is None:
            # Someone else moved the application after we read it.
            raise InvalidTransition(
                "Application status changed concurrently; reload and retry.",
                application_id=application_id,
                expected_status=source.value,
                target_status=target.value,
            )

        self._logger.info(
            "funnel.transition",
            application_id=application_id,
            source=source.value,
            target=target.value,
            actor_id=actor.id,
        )
        if self._audit:
            self._audit.append(
                {
                    "event": "funnel.transition",
                    "application_id": application_id,
                    "project_id": application.project_id,
                    "from": source.value,
                    "to": target.value,
                    "actor_id": actor.id,
                }
            )
        return updated

    def bulk_transition(
        self,
        application_ids: Sequence[str],
        target: ApplicationStatus,
        actor: User,
    ) -> list[BulkItemResult]:
        """Apply ``target`` to each id independently; failures are reported per item."""
        results: list[BulkItemResult] = []
        for application_id in dict.fromkeys(application_ids):
            try:
                updated = self.transition(application_id, target, actor)
            except FunnelError as exc:
                self._logger.info(
                    "funnel.transition_rejected",
                    application_id=application_id,
                    target=target.value,
                    error=exc.code,
                )
                results.append(
                    BulkItemResult(
                        application_id=application_id,
                        success=False,
                        error=exc.code,
                        detail=exc.message,
                    )
                )
                continue
            results.append(
                BulkItemResult(application_id=application_id, success=True, new_status=updated.status)
            )

        failed = sum(1 for item in results if not item.success)
        self._logger.info(
            "funnel.bulk_transition",
            target=target.value,
            requested=len(results),
            succeeded=len(results) - failed,
            failed=failed,
            actor_id=actor.id,
        )
        return results

    def authorize_manual_override(self, entitlement: TierEntitlement) -> None:
        if entitlement.allows_manual_override:
            return
        required = self._catalog.cheapest_with_manual_override()
        raise UpgradeRequired(
            f"Manual shortlist override is not included in the {entitlement.name} plan.",
            current_plan=entitlement.plan_id,
            required_plan=required.plan_id if required else None,
        )

    def _authorize(self, application: Application, actor: User) -> None:
        if actor.role == UserRole.ADMIN:
            return
        if actor.role != UserRole.COMPANY:
            raise Forbidden(
                "Only the project's company can change application status.",
                application_id=application.id,
                actor_id=actor.id,
            )
        project = self._projects.get_project(application.project_id)
        if project is None or project.company_id != actor.id:
            raise Forbidden(
                "Application belongs to another company's project.",
                application_id=application.id,
                actor_id=actor.id,
            )


__all__ = [
    "ALLOWED_TRANSITIONS",
    "FunnelStateMachine",
    "allowed_targets",
    "can_transition",
]
