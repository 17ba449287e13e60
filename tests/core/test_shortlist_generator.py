from __future__ import annotations

from typing import Any

import pendulum
import pytest

from recruitfunnel.config import load_defaults
from recruitfunnel.core import (
    CompatibilityResult,
    InvalidSelection,
    NotEligible,
    ResilientScorer,
    ShortlistEligibilityGate,
    ShortlistGenerator,
    SnapshotWriteConflict,
    SubscriptionTierCatalog,
)
from recruitfunnel.core.shortlist import ScoredApplication, rank_applications
from recruitfunnel.schemas import (
    Application,
    ApplicationStatus,
    CandidateProfile,
    Project,
    ProjectStatus,
    User,
    UserRole,
    VisibilityLevel,
)
from recruitfunnel.storage import InMemoryStore

NOW = pendulum.datetime(2025, 3, 15, 12, 0, tz="UTC")


class TableScorer:
    """Scores from a per-user table; counts calls."""

    def __init__(self, scores: dict[str, float], *, failing: set[str] | None = None):
        self.scores = scores
        self.failing = failing or set()
        self.calls = 0

    def score(self, profile: CandidateProfile, project: Project) -> CompatibilityResult:
        self.calls += 1
        if profile.user_id in self.failing:
            raise RuntimeError("scorer offline")
        return CompatibilityResult(score=self.scores.get(profile.user_id, 40.0), strengths=["fit"])


class RacingSnapshotStore(InMemoryStore):
    """Always loses the compare-and-set on snapshot replacement."""

    def replace_snapshot(self, snapshot, *, expected_snapshot_id):
        return False


def build_store(count: int, *, store: InMemoryStore | None = None, plan: str = "COMPANY_PREMIUM") -> InMemoryStore:
    store = store or InMemoryStore()
    store.add_users([User(id="company-1", role=UserRole.COMPANY, subscription_plan=plan)])
    store.add_projects(
        [
            Project(
                id="project-1",
                company_id="company-1",
                title="Payments dashboard",
                status=ProjectStatus.LIVE,
                skills_required=["Python"],
            )
        ]
    )
    users = [User(id=f"student-{idx}", role=UserRole.STUDENT) for idx in range(count)]
    store.add_users(users)
    store.add_profiles(
        [CandidateProfile(user_id=user.id, name=f"Student {idx}", skills=["Python"]) for idx, user in enumerate(users)]
    )
    store.add_applications(
        [
            Application(
                id=f"app-{idx:02d}",
                user_id=user.id,
                project_id="project-1",
                created_at=NOW.subtract(days=count - idx),
            )
            for idx, user in enumerate(users)
        ]
    )
    return store


def build_generator(
    store: InMemoryStore,
    scorer,
    *,
    threshold: int = 3,
    shortlist_size: int = 10,
) -> ShortlistGenerator:
    catalog = SubscriptionTierCatalog.from_config(load_defaults()["tiers"])
    return ShortlistGenerator(
        projects=store,
        applications=store,
        profiles=store,
        users=store,
        snapshots=store,
        gate=ShortlistEligibilityGate(projects=store, threshold=threshold),
        scorer=ResilientScorer(scorer, timeout_seconds=2.0),
        catalog=catalog,
        shortlist_size=shortlist_size,
        now_provider=lambda: NOW,
    )


def test_generate_refuses_below_threshold():
    store = build_store(2)
    generator = build_generator(store, TableScorer({}))

    with pytest.raises(NotEligible) as excinfo:
        generator.generate("project-1")

    assert excinfo.value.eligibility.remaining_needed == 1
    assert store.current_snapshot("project-1") is None


def test_generate_ranks_top_k_by_score():
    store = build_store(12)
    scores = {f"student-{idx}": float(idx * 5) for idx in range(12)}
    generator = build_generator(store, TableScorer(scores), shortlist_size=10)

    snapshot = generator.generate("project-1", actor_id="company-1")

    assert len(snapshot.entries) == 10
    assert snapshot.ranked_candidate_ids[:3] == ["app-11", "app-10", "app-09"]
    assert [entry.rank for entry in snapshot.entries] == list(range(1, 11))
    assert snapshot.total_applications_at_generation == 12
    assert snapshot.visibility_level_at_generation == VisibilityLevel.COMPLETE_TRANSPARENCY
    assert snapshot.generated_by == "company-1"
    assert snapshot.complete
    assert store.current_snapshot("project-1") == snapshot


def test_shortlist_smaller_than_k_takes_everyone():
    store = build_store(4)
    generator = build_generator(store, TableScorer({}), shortlist_size=10)

    snapshot = generator.generate("project-1")

    assert len(snapshot.entries) == 4


def test_ties_go_to_earliest_application():
    store = build_store(5)
    generator = build_generator(store, TableScorer({}))

    snapshot = generator.generate("project-1")

    # app-00 was created first; every score is equal.
    assert snapshot.ranked_candidate_ids == ["app-00", "app-01", "app-02", "app-03", "app-04"]


def test_tie_break_is_independent_of_input_order():
    early = Application(id="z-early", user_id="u1", project_id="p", created_at=NOW.subtract(hours=2))
    late = Application(id="a-late", user_id="u2", project_id="p", created_at=NOW)
    scored = [
        ScoredApplication(late, CompatibilityResult(score=70.0)),
        ScoredApplication(early, CompatibilityResult(score=70.0)),
    ]

    forward = [item.application.id for item in rank_applications(scored)]
    backward = [item.application.id for item in rank_applications(list(reversed(scored)))]

    assert forward == backward == ["z-early", "a-late"]


def test_generation_is_idempotent_and_replaces_snapshot():
    store = build_store(6)
    scores = {f"student-{idx}": float(90 - idx * 7 % 30) for idx in range(6)}
    generator = build_generator(store, TableScorer(scores))

    first = generator.generate("project-1")
    second = generator.generate("project-1")

    assert first.ranked_candidate_ids == second.ranked_candidate_ids
    assert first.snapshot_id != second.snapshot_id
    assert store.current_snapshot("project-1").snapshot_id == second.snapshot_id


def test_rejected_applications_are_excluded():
    store = build_store(5)
    store.compare_and_set_status(
        "app-04", ApplicationStatus.PENDING, ApplicationStatus.REJECTED, updated_at=NOW
    )
    generator = build_generator(store, TableScorer({"student-4": 99.0}))

    snapshot = generator.generate("project-1")

    assert "app-04" not in snapshot.ranked_candidate_ids
    assert snapshot.total_applications_at_generation == 4


def test_scores_are_cached_until_profile_changes():
    store = build_store(3)
    scorer = TableScorer({})
    generator = build_generator(store, scorer)

    generator.generate("project-1")
    generator.generate("project-1")
    assert scorer.calls == 3

    store.add_profiles([CandidateProfile(user_id="student-1", skills=["Python", "Rust"])])
    generator.generate("project-1")
    assert scorer.calls == 4
    assert store.get_application("app-01").compatibility_score == 40.0


def test_unscorable_candidates_are_flagged_not_dropped():
    store = build_store(3)
    generator = build_generator(store, TableScorer({}, failing={"student-2"}))

    snapshot = generator.generate("project-1")

    assert len(snapshot.entries) == 3
    assert not snapshot.complete
    assert snapshot.unscored_application_ids == ("app-02",)
    degraded = [entry for entry in snapshot.entries if entry.degraded]
    assert [entry.application_id for entry in degraded] == ["app-02"]
    assert store.get_application("app-02").compatibility_score is None


def test_manual_override_keeps_selected_order():
    store = build_store(4)
    generator = build_generator(store, TableScorer({"student-3": 95.0}))

    snapshot = generator.manual_override("project-1", ["app-01", "app-03", "app-01"], actor_id="company-1")

    assert snapshot.is_manual
    assert snapshot.ranked_candidate_ids == ["app-01", "app-03"]
    assert snapshot.total_applications_at_generation == 4


def test_manual_override_rejects_foreign_ids():
    store = build_store(4)
    generator = build_generator(store, TableScorer({}))

    with pytest.raises(InvalidSelection) as excinfo:
        generator.manual_override("project-1", ["app-01", "nope"], actor_id="company-1")

    assert excinfo.value.details["invalid_ids"] == ["nope"]


def test_lost_snapshot_race_is_retried_then_surfaced():
    store = build_store(3, store=RacingSnapshotStore())
    generator = build_generator(store, TableScorer({}))

    with pytest.raises(SnapshotWriteConflict):
        generator.generate("project-1")
