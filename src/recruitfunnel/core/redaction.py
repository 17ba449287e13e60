"""Tier-dependent candidate field redaction.

Redaction is a pure read-time transform: it builds new response objects and
never touches the snapshot or application records it reads from.
"""

from __future__ import annotations

from typing import Any

from ..schemas.records import UserRole, VisibilityLevel
from ..schemas.shortlist import (
    CandidateCard,
    CandidateInsights,
    LockedField,
    RedactedCandidate,
    RedactedShortlist,
    ShortlistView,
)
from .tiers import SubscriptionTierCatalog, TierEntitlement

BIO_PREVIEW_LENGTH = 100

# Minimum visibility level that discloses each guarded field.
FIELD_VISIBILITY: dict[str, VisibilityLevel] = {
    "email": VisibilityLevel.FULL_POOL,
    "linkedin": VisibilityLevel.FULL_POOL,
    "cover_letter": VisibilityLevel.FULL_POOL,
    "motivation": VisibilityLevel.FULL_POOL,
    "ai_insights": VisibilityLevel.COMPLETE_TRANSPARENCY,
}


class VisibilityRedactor:
    """Applies a company tier's visibility level to a shortlist view."""

    def __init__(self, *, catalog: SubscriptionTierCatalog) -> None:
        self._catalog = catalog

    def redact(self, view: ShortlistView, tier: TierEntitlement) -> RedactedShortlist:
        level = tier.shortlist_visibility
        cards = view.cards
        if tier.candidate_pool_size >= 0:
            cards = cards[: tier.candidate_pool_size]

        snapshot = view.snapshot
        upgrade_prompt = None
        if level != VisibilityLevel.COMPLETE_TRANSPARENCY:
            upgrade_prompt = self._catalog.upgrade_prompt(tier.plan_id, UserRole.COMPANY)

        return RedactedShortlist(
            snapshot_id=snapshot.snapshot_id,
            project_id=snapshot.project_id,
            generated_at=snapshot.generated_at,
            total_applications=snapshot.total_applications_at_generation,
            shortlisted_count=len(snapshot.entries),
            visibility_level=level,
            is_manual=snapshot.is_manual,
            complete=snapshot.complete,
            candidates=[self._redact_card(card, level) for card in cards],
            upgrade_prompt=upgrade_prompt,
        )

    def _redact_card(self, card: CandidateCard, level: VisibilityLevel) -> RedactedCandidate:
        profile = card.profile
        application = card.application
        entry = card.entry

        insights = CandidateInsights(
            key_strengths=list(entry.strengths),
            concerns=list(entry.concerns),
            recommendation=entry.recommendation,
        )
        return RedactedCandidate(
            application_id=entry.application_id,
            user_id=entry.user_id,
            ranking=entry.rank,
            compatibility_score=entry.score,
            status=application.status,
            applied_at=application.created_at,
            name=profile.name,
            university=profile.university,
            major=profile.major,
            graduation_year=profile.graduation_year,
            skills=list(profile.skills),
            bio=self._bio(profile.bio, level),
            email=_guard("email", profile.email, level),
            linkedin=_guard("linkedin", profile.linkedin, level),
            cover_letter=_guard("cover_letter", application.cover_letter, level),
            motivation=_guard("motivation", application.motivation, level),
            ai_insights=_guard("ai_insights", insights, level),
            score_degraded=entry.degraded,
        )

    @staticmethod
    def _bio(bio: str | None, level: VisibilityLevel) -> str | None:
        if bio is None or level != VisibilityLevel.SHORTLISTED_ONLY:
            return bio
        if len(bio) <= BIO_PREVIEW_LENGTH:
            return bio
        return bio[:BIO_PREVIEW_LENGTH] + "..."


def _guard(field_name: str, value: Any, level: VisibilityLevel) -> Any | LockedField:
    if is_visible(field_name, level):
        return value
    return LockedField(unlocks_at=FIELD_VISIBILITY[field_name])


def is_visible(field_name: str, level: VisibilityLevel) -> bool:
    """Whether ``field_name`` is disclosed at ``level``; unguarded fields always are."""
    required = FIELD_VISIBILITY.get(field_name)
    return required is None or level.includes(required)
