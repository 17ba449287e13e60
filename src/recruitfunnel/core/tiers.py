"""Subscription plan entitlements."""

from __future__ import annotations

from types import MappingProxyType
from typing import Any, Mapping

import structlog
from pydantic import BaseModel, ConfigDict, Field

from ..schemas.config import TierSettings
from ..schemas.records import UserRole, VisibilityLevel
from ..schemas.shortlist import UpgradePrompt

UNLIMITED = -1
DEFAULT_PLAN = "FREE"


class TierEntitlement(BaseModel):
    """Static entitlements attached to one subscription plan."""

    plan_id: str
    name: str
    audience: str = "any"
    price: float = 0
    max_applications_per_month: int = UNLIMITED
    shortlist_visibility: VisibilityLevel = VisibilityLevel.SHORTLISTED_ONLY
    allows_manual_override: bool = False
    allows_custom_projects: bool = False
    candidate_pool_size: int = 10
    next_tier: Mapping[str, str] = Field(default_factory=dict)
    benefits: tuple[str, ...] = ()

    model_config = ConfigDict(extra="forbid", frozen=True)

    @property
    def unlimited(self) -> bool:
        return self.max_applications_per_month == UNLIMITED

    def next_tier_for(self, role: UserRole | str) -> str | None:
        key = role.value if isinstance(role, UserRole) else str(role)
        return self.next_tier.get(key.lower())


class SubscriptionTierCatalog:
    """Read-only mapping from plan identifier to entitlements."""

    def __init__(self, entitlements: Mapping[str, TierEntitlement]) -> None:
        if DEFAULT_PLAN not in entitlements:
            raise ValueError(f"Tier catalog must define the {DEFAULT_PLAN!r} plan.")
        self._entitlements = MappingProxyType(dict(entitlements))
        self._logger = structlog.get_logger(__name__)

    @classmethod
    def from_config(cls, tiers: Mapping[str, Any]) -> "SubscriptionTierCatalog":
        entitlements: dict[str, TierEntitlement] = {}
        for plan_id, raw in tiers.items():
            settings = raw if isinstance(raw, TierSettings) else TierSettings.model_validate(raw)
            entitlements[plan_id] = TierEntitlement(plan_id=plan_id, **settings.model_dump())
        return cls(entitlements)

    def get(self, plan_id: str) -> TierEntitlement | None:
        return self._entitlements.get(plan_id)

    def resolve(self, plan_id: str | None) -> TierEntitlement:
        """Return the plan's entitlements, falling back to the free plan."""
        entitlement = self.get(plan_id or DEFAULT_PLAN)
        if entitlement is None:
            self._logger.warning("tiers.unknown_plan", plan_id=plan_id, fallback=DEFAULT_PLAN)
            return self._entitlements[DEFAULT_PLAN]
        return entitlement

    def upgrade_prompt(self, plan_id: str | None, role: UserRole | str) -> UpgradePrompt | None:
        current = self.resolve(plan_id)
        next_plan = current.next_tier_for(role)
        if not next_plan:
            return None
        target = self.get(next_plan)
        if target is None:
            return None
        return UpgradePrompt(
            current_tier=current.name,
            next_tier=target.plan_id,
            next_tier_name=target.name,
            benefits=list(target.benefits),
        )

    def cheapest_with_manual_override(self) -> TierEntitlement | None:
        candidates = [tier for tier in self._entitlements.values() if tier.allows_manual_override]
        if not candidates:
            return None
        return min(candidates, key=lambda tier: tier.price)


__all__ = ["DEFAULT_PLAN", "SubscriptionTierCatalog", "TierEntitlement", "UNLIMITED"]
