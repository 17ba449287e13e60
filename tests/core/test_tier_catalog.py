from __future__ import annotations

import pytest

from recruitfunnel.config import load_defaults
from recruitfunnel.core import SubscriptionTierCatalog, TierEntitlement
from recruitfunnel.schemas import UserRole, VisibilityLevel


def build_catalog() -> SubscriptionTierCatalog:
    return SubscriptionTierCatalog.from_config(load_defaults()["tiers"])


def test_default_catalog_defines_every_plan():
    catalog = build_catalog()

    for plan_id in (
        "FREE",
        "STUDENT_PREMIUM",
        "STUDENT_PRO",
        "COMPANY_BASIC",
        "COMPANY_PREMIUM",
        "COMPANY_PRO",
    ):
        assert catalog.get(plan_id) is not None
    assert catalog.resolve("FREE").max_applications_per_month == 4
    assert catalog.resolve("STUDENT_PREMIUM").max_applications_per_month == 10
    assert catalog.resolve("STUDENT_PRO").unlimited


def test_company_plans_are_ordered_by_visibility():
    catalog = build_catalog()

    assert catalog.resolve("FREE").shortlist_visibility == VisibilityLevel.SHORTLISTED_ONLY
    assert catalog.resolve("COMPANY_BASIC").shortlist_visibility == VisibilityLevel.FULL_POOL
    assert catalog.resolve("COMPANY_PREMIUM").shortlist_visibility == VisibilityLevel.COMPLETE_TRANSPARENCY
    assert not catalog.resolve("COMPANY_BASIC").allows_manual_override
    assert catalog.resolve("COMPANY_PREMIUM").allows_manual_override


def test_unknown_plan_falls_back_to_free():
    catalog = build_catalog()

    assert catalog.resolve("GOLD_PLUS").plan_id == "FREE"
    assert catalog.resolve(None).plan_id == "FREE"


def test_upgrade_prompt_follows_role_specific_next_tier():
    catalog = build_catalog()

    student_prompt = catalog.upgrade_prompt("FREE", UserRole.STUDENT)
    company_prompt = catalog.upgrade_prompt("FREE", "COMPANY")

    assert student_prompt is not None
    assert student_prompt.next_tier == "STUDENT_PREMIUM"
    assert student_prompt.benefits
    assert company_prompt is not None
    assert company_prompt.next_tier == "COMPANY_BASIC"
    assert catalog.upgrade_prompt("STUDENT_PRO", UserRole.STUDENT) is None


def test_cheapest_manual_override_plan():
    catalog = build_catalog()

    cheapest = catalog.cheapest_with_manual_override()

    assert cheapest is not None
    assert cheapest.plan_id == "COMPANY_PREMIUM"


def test_catalog_requires_free_plan():
    with pytest.raises(ValueError):
        SubscriptionTierCatalog({"PAID": TierEntitlement(plan_id="PAID", name="Paid")})


def test_entitlements_are_immutable():
    tier = build_catalog().resolve("FREE")

    with pytest.raises(Exception):
        tier.max_applications_per_month = 100  # type: ignore[misc]
