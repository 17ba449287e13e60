"""Shortlist eligibility gate."""

from __future__ import annotations

import math

from ..schemas.responses import EligibilityStatus
from ..storage.base import ProjectRepository


class ShortlistEligibilityGate:
    """Opens shortlist generation once a project reaches the application threshold."""

    def __init__(
        self,
        *,
        projects: ProjectRepository,
        threshold: int = 30,
        applications_per_day_estimate: float = 3.0,
    ) -> None:
        if threshold < 1:
            raise ValueError("Eligibility threshold must be positive.")
        self._projects = projects
        self._threshold = threshold
        self._per_day = applications_per_day_estimate

    @property
    def threshold(self) -> int:
        return self._threshold

    def evaluate(self, project_id: str) -> EligibilityStatus:
        return self.evaluate_count(self._projects.count_active_applications(project_id))

    def evaluate_count(self, current: int) -> EligibilityStatus:
        remaining = max(0, self._threshold - current)
        eligible = remaining == 0
        if eligible:
            message = "AI shortlisting is available"
            estimate = None
        else:
            message = f"Need {remaining} more applications to enable AI shortlisting"
            estimate = math.ceil(remaining / self._per_day)
        return EligibilityStatus(
            eligible=eligible,
            current_applications=current,
            required_applications=self._threshold,
            remaining_needed=remaining,
            estimated_days_to_eligibility=estimate,
            message=message,
        )
