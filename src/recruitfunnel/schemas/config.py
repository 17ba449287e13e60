"""Pydantic configuration schema for YAML input."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .records import VisibilityLevel


class FunnelSettings(BaseModel):
    eligibility_threshold: int = Field(default=30, ge=1)
    shortlist_size: int = Field(default=10, ge=1)
    applications_per_day_estimate: float = Field(default=3.0, gt=0)

    model_config = ConfigDict(extra="forbid")


class ScoringSettings(BaseModel):
    timeout_seconds: float = Field(default=5.0, gt=0)
    max_workers: int = Field(default=4, ge=1)
    fallback_score: float = Field(default=50.0, ge=0, le=100)
    reference_year: int | None = None
    weights: dict[str, float] | None = None
    endpoint: str | None = None
    api_key: str | None = None

    model_config = ConfigDict(extra="forbid")


class StorageSettings(BaseModel):
    url: str = "sqlite:///recruitfunnel.db"

    model_config = ConfigDict(extra="forbid")


class TierSettings(BaseModel):
    name: str
    audience: str = "any"
    price: float = 0
    max_applications_per_month: int = -1
    shortlist_visibility: VisibilityLevel = VisibilityLevel.SHORTLISTED_ONLY
    allows_manual_override: bool = False
    allows_custom_projects: bool = False
    candidate_pool_size: int = 10
    next_tier: dict[str, str] = Field(default_factory=dict)
    benefits: list[str] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")


class AppConfig(BaseModel):
    funnel: FunnelSettings = Field(default_factory=FunnelSettings)
    scoring: ScoringSettings = Field(default_factory=ScoringSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    tiers: dict[str, TierSettings] = Field(default_factory=dict)

    model_config = ConfigDict(extra="forbid")

    def to_settings(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


def load_config(raw: Any) -> AppConfig:
    if not isinstance(raw, dict):
        raise ValidationError.from_exception_data(
            "AppConfig",
            [{"type": "dict_type", "loc": ("config",), "input": raw}],
        )
    return AppConfig.model_validate(raw)
