"""Compatibility scoring between candidate profiles and projects."""

from __future__ import annotations

import hashlib
import json
import time
from collections import deque
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field, replace
from typing import Any, Protocol, Sequence, runtime_checkable
from urllib import error, request

import structlog
from rapidfuzz import fuzz

from ..schemas.records import CandidateProfile, Project
from .errors import ScoringUnavailable

SCORING_UNAVAILABLE_CONCERN = "Compatibility scoring unavailable; neutral score applied"


@dataclass(slots=True)
class CompatibilityResult:
    """Scorer output on a 0..100 scale."""

    score: float
    strengths: list[str] = field(default_factory=list)
    concerns: list[str] = field(default_factory=list)
    breakdown: dict[str, float] = field(default_factory=dict)
    recommendation: str | None = None
    degraded: bool = False


@runtime_checkable
class CompatibilityScorer(Protocol):
    """Pure scoring contract; identical inputs must yield identical results."""

    def score(self, profile: CandidateProfile, project: Project) -> CompatibilityResult:
        """Score a candidate profile against a project."""


def recommendation_for(score: float) -> str:
    if score >= 80:
        return "Highly recommended candidate - schedule interview immediately"
    if score >= 60:
        return "Solid candidate - worth interviewing with skill assessment"
    return "Consider for entry-level role with mentoring"


def profile_fingerprint(profile: CandidateProfile, project: Project) -> str:
    """Stable digest of the inputs a score was computed from."""
    payload = {
        "profile": profile.model_dump(mode="json"),
        "project": project.model_dump(
            mode="json",
            include={"skills_required", "skills_preferred", "experience_level", "category", "duration_months"},
        ),
    }
    encoded = json.dumps(payload, sort_keys=True, ensure_ascii=False, separators=(",", ":"))
    return hashlib.sha256(encoded.encode("utf-8")).hexdigest()


@dataclass
class RuleBasedScorerConfig:
    """Weights and thresholds for the rule-based scorer."""

    weights: dict[str, float] = None  # type: ignore[assignment]
    min_skill_similarity: float = 85.0
    reference_year: int | None = None

    def __post_init__(self) -> None:
        if self.weights is None:
            self.weights = {
                "skills": 0.30,
                "experience": 0.25,
                "career_goals": 0.20,
                "industry": 0.15,
                "availability": 0.10,
            }


class RuleBasedScorer:
    """Weighted five-signal scorer; missing profile fields count as neutral."""

    _EXPERIENCE_FIT: dict[str, dict[str, float]] = {
        "entry": {
            "Student - No prior internship/work experience": 1.0,
            "Student - Some internship/work experience": 0.8,
        },
        "mid": {
            "Student - Some internship/work experience": 1.0,
            "Recent Graduate - 0-2 years experience": 1.0,
            "Career Changer - New field, existing skills": 0.8,
        },
        "senior": {
            "Recent Graduate - 0-2 years experience": 0.7,
            "Career Changer - New field, existing skills": 0.9,
        },
    }
    _EXPERIENCE_DEFAULT = {"entry": 0.6, "mid": 0.5, "senior": 0.4}

    _CAREER_GOAL_BONUS = {
        "Contribute to meaningful projects": 0.3,
        "Prepare for full-time roles": 0.2,
        "Earn recommendations/references": 0.2,
    }

    def __init__(self, *, config: RuleBasedScorerConfig | None = None) -> None:
        self._config = config or RuleBasedScorerConfig()

    def score(self, profile: CandidateProfile, project: Project) -> CompatibilityResult:
        level = self._experience_level(project.experience_level)
        skills, matched, missing = self._skills_match(
            profile.skills, project.skills_required, project.skills_preferred
        )
        signals = {
            "skills": skills,
            "experience": self._experience_match(profile, level),
            "career_goals": self._career_goals_match(profile),
            "industry": self._industry_fit(profile, project.category),
            "availability": self._availability_match(profile),
        }
        weights = self._config.weights
        total_weight = sum(weights.get(name, 0.0) for name in signals) or 1.0
        weighted = sum(value * weights.get(name, 0.0) for name, value in signals.items())
        final = round(min(max(weighted / total_weight, 0.0), 1.0) * 100, 2)

        strengths, concerns = self._explain(signals, matched, missing, profile)
        return CompatibilityResult(
            score=final,
            strengths=strengths,
            concerns=concerns,
            breakdown={name: round(value * 100, 2) for name, value in signals.items()},
            recommendation=recommendation_for(final),
        )

    def _skills_match(
        self,
        candidate_skills: Sequence[str],
        required: Sequence[str],
        preferred: Sequence[str],
    ) -> tuple[float, list[str], list[str]]:
        if not candidate_skills:
            return 0.5, [], list(required)

        corpus = [skill.lower().strip() for skill in candidate_skills if skill and skill.strip()]
        matched_required = [skill for skill in required if self._has_skill(corpus, skill)]
        matched_preferred = [skill for skill in preferred if self._has_skill(corpus, skill)]
        missing = [skill for skill in required if skill not in matched_required]

        required_score = len(matched_required) / len(required) if required else 1.0
        preferred_score = len(matched_preferred) / len(preferred) if preferred else 0.5
        return min(1.0, required_score * 0.8 + preferred_score * 0.2), matched_required + matched_preferred, missing

    def _has_skill(self, corpus: Sequence[str], skill: str) -> bool:
        needle = skill.lower().strip()
        if not needle:
            return False
        for text in corpus:
            if needle in text or text in needle:
                return True
            if fuzz.token_set_ratio(needle, text) >= self._config.min_skill_similarity:
                return True
        return False

    def _experience_match(self, profile: CandidateProfile, level: str) -> float:
        fit = self._EXPERIENCE_FIT[level].get(profile.experience_level or "")
        if fit is not None:
            return fit
        if (
            level == "entry"
            and self._config.reference_year is not None
            and profile.graduation_year is not None
            and profile.graduation_year >= self._config.reference_year
        ):
            return 0.9
        return self._EXPERIENCE_DEFAULT[level]

    def _career_goals_match(self, profile: CandidateProfile) -> float:
        if not profile.career_goals:
            return 0.5
        score = 0.5 + sum(self._CAREER_GOAL_BONUS.get(goal, 0.0) for goal in profile.career_goals)
        return min(1.0, score)

    @staticmethod
    def _industry_fit(profile: CandidateProfile, category: str | None) -> float:
        if not profile.industries or not category:
            return 0.5
        target = category.lower()
        for industry in profile.industries:
            lowered = industry.lower()
            if lowered in target or target in lowered:
                return 1.0
        return 0.3

    @staticmethod
    def _availability_match(profile: CandidateProfile) -> float:
        prefs = profile.work_preferences
        if prefs is None:
            return 0.7
        score = 0.5
        if prefs.time_commitment == "35+ hours - Full-time internship":
            score += 0.3
        elif prefs.time_commitment == "20-30 hours - Part-time":
            score += 0.2
        if prefs.project_duration and "3-4 months" in prefs.project_duration:
            score += 0.2
        return min(1.0, score)

    @staticmethod
    def _experience_level(raw: str | None) -> str:
        if not raw:
            return "entry"
        lowered = raw.lower()
        if "senior" in lowered or "lead" in lowered:
            return "senior"
        if "mid" in lowered or "intermediate" in lowered:
            return "mid"
        return "entry"

    @staticmethod
    def _explain(
        signals: dict[str, float],
        matched: list[str],
        missing: list[str],
        profile: CandidateProfile,
    ) -> tuple[list[str], list[str]]:
        strengths: list[str] = []
        concerns: list[str] = []
        if matched:
            strengths.append(f"Skill match: {', '.join(matched[:3])}")
        if missing:
            concerns.append(f"Missing required skills: {', '.join(missing[:3])}")
        if not profile.skills:
            concerns.append("No skills listed")
        if signals["experience"] >= 0.8:
            strengths.append("Experience level fits the role")
        elif signals["experience"] < 0.5:
            concerns.append("Experience level below role expectations")
        if signals["industry"] >= 1.0:
            strengths.append("Industry interest aligns with project")
        elif signals["industry"] < 0.5:
            concerns.append("Industry interests differ from project")
        if signals["career_goals"] >= 0.8:
            strengths.append("Career goals align with project objectives")
        if signals["availability"] >= 0.8:
            strengths.append("Availability matches project timeline")
        return strengths, concerns


class HTTPCompatibilityScorer:
    """Remote scorer speaking JSON over HTTP."""

    def __init__(self, endpoint: str, api_key: str | None = None, *, timeout: float = 10.0):
        self._endpoint = endpoint
        self._api_key = api_key
        self._timeout = timeout
        self._logger = structlog.get_logger(__name__)

    def score(self, profile: CandidateProfile, project: Project) -> CompatibilityResult:
        payload = {
            "candidate": profile.model_dump(mode="json"),
            "project": project.model_dump(mode="json"),
        }
        data = json.dumps(payload, ensure_ascii=False).encode("utf-8")
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"

        req = request.Request(self._endpoint, data=data, headers=headers, method="POST")
        try:
            with request.urlopen(req, timeout=self._timeout) as resp:
                body = json.loads(resp.read().decode("utf-8") or "{}")
        except (error.URLError, TimeoutError, json.JSONDecodeError) as exc:
            self._logger.warning("scoring.request_failed", user_id=profile.user_id, error=str(exc))
            raise ScoringUnavailable(f"Remote scorer failed: {exc}", user_id=profile.user_id) from exc
        return self._parse(body, profile.user_id)

    @staticmethod
    def _parse(body: Any, user_id: str) -> CompatibilityResult:
        if not isinstance(body, dict) or "score" not in body:
            raise ScoringUnavailable("Remote scorer returned no score.", user_id=user_id)
        try:
            score = float(body["score"])
        except (TypeError, ValueError) as exc:
            raise ScoringUnavailable("Remote scorer returned a non-numeric score.", user_id=user_id) from exc
        score = min(max(score, 0.0), 100.0)
        return CompatibilityResult(
            score=score,
            strengths=[str(item) for item in body.get("strengths") or []],
            concerns=[str(item) for item in body.get("concerns") or []],
            recommendation=body.get("recommendation") or recommendation_for(score),
        )


@dataclass(slots=True)
class ScoringTask:
    key: str
    profile: CandidateProfile
    project: Project


class ResilientScorer:
    """Scores batches concurrently; failures degrade to a neutral result.

    At most ``max_workers`` calls are in flight at once. ``timeout_seconds``
    bounds each call from the moment it starts, so candidates waiting behind a
    hung call are still scored. A call that overruns is abandoned: its worker
    thread cannot be interrupted and finishes in the background, but it no
    longer counts against ``max_workers``.
    """

    def __init__(
        self,
        scorer: CompatibilityScorer,
        *,
        timeout_seconds: float = 5.0,
        max_workers: int = 4,
        fallback_score: float = 50.0,
    ) -> None:
        self._scorer = scorer
        self._timeout = timeout_seconds
        self._max_workers = max(1, max_workers)
        self._fallback_score = fallback_score
        self._logger = structlog.get_logger(__name__)

    def score(self, profile: CandidateProfile, project: Project) -> CompatibilityResult:
        return self.score_batch([ScoringTask(profile.user_id, profile, project)])[profile.user_id]

    def score_batch(self, tasks: Sequence[ScoringTask]) -> dict[str, CompatibilityResult]:
        if not tasks:
            return {}
        results: dict[str, CompatibilityResult] = {}
        queued = deque(tasks)
        running: dict[Future[CompatibilityResult], tuple[ScoringTask, float]] = {}
        # One thread per task, so a submitted call starts immediately and an
        # abandoned call never blocks the ones queued after it.
        pool = ThreadPoolExecutor(max_workers=len(tasks), thread_name_prefix="scoring")
        try:
            while queued or running:
                while queued and len(running) < self._max_workers:
                    task = queued.popleft()
                    future = pool.submit(self._scorer.score, task.profile, task.project)
                    running[future] = (task, time.monotonic())

                oldest = min(started for _, started in running.values())
                remaining = max(0.0, oldest + self._timeout - time.monotonic())
                done, _ = wait(running, timeout=remaining, return_when=FIRST_COMPLETED)
                for future in done:
                    task, _ = running.pop(future)
                    results[task.key] = self._collect(task, future)

                now = time.monotonic()
                for future, (task, started) in list(running.items()):
                    if now - started >= self._timeout:
                        del running[future]
                        self._logger.warning("scoring.degraded", key=task.key, reason="timeout")
                        results[task.key] = self.fallback()
        finally:
            pool.shutdown(wait=False, cancel_futures=True)
        return results

    def fallback(self) -> CompatibilityResult:
        return CompatibilityResult(
            score=self._fallback_score,
            concerns=[SCORING_UNAVAILABLE_CONCERN],
            recommendation=None,
            degraded=True,
        )

    def _collect(self, task: ScoringTask, future: Future[CompatibilityResult]) -> CompatibilityResult:
        try:
            outcome = future.result()
        except Exception as exc:  # noqa: BLE001
            self._logger.warning("scoring.degraded", key=task.key, reason=str(exc))
            return self.fallback()
        return self._clamp(outcome)

    @staticmethod
    def _clamp(result: CompatibilityResult) -> CompatibilityResult:
        return replace(result, score=min(max(float(result.score), 0.0), 100.0))


__all__ = [
    "CompatibilityResult",
    "CompatibilityScorer",
    "HTTPCompatibilityScorer",
    "ResilientScorer",
    "RuleBasedScorer",
    "RuleBasedScorerConfig",
    "SCORING_UNAVAILABLE_CONCERN",
    "ScoringTask",
    "profile_fingerprint",
    "recommendation_for",
]
