from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import Any

import pendulum
import pytest

from recruitfunnel.config import load_defaults
from recruitfunnel.core import QuotaEnforcer, QuotaExceeded, SubscriptionTierCatalog
from recruitfunnel.core.quota import is_new_period, next_reset_date, period_start
from recruitfunnel.schemas import User, UserRole
from recruitfunnel.storage import InMemoryStore

NOW = pendulum.datetime(2025, 3, 15, 12, 0, tz="UTC")


def build_user(**kwargs: Any) -> User:
    defaults: dict[str, Any] = {
        "id": "student-1",
        "role": UserRole.STUDENT,
        "subscription_plan": "FREE",
        "applications_this_month": 0,
        "last_monthly_reset": pendulum.datetime(2025, 3, 1, tz="UTC"),
    }
    defaults.update(kwargs)
    return User(**defaults)


def build_enforcer(store: InMemoryStore, now=NOW) -> QuotaEnforcer:
    catalog = SubscriptionTierCatalog.from_config(load_defaults()["tiers"])
    return QuotaEnforcer(users=store, catalog=catalog, now_provider=lambda: now)


def test_period_helpers_use_calendar_months():
    assert period_start(NOW) == pendulum.datetime(2025, 3, 1, tz="UTC")
    assert next_reset_date(NOW) == pendulum.datetime(2025, 4, 1, tz="UTC")
    assert next_reset_date(pendulum.datetime(2025, 12, 31, 23, 59, tz="UTC")) == pendulum.datetime(
        2026, 1, 1, tz="UTC"
    )
    assert is_new_period(None, NOW)
    assert is_new_period(pendulum.datetime(2025, 2, 28, 23, 59, tz="UTC"), NOW)
    assert not is_new_period(pendulum.datetime(2025, 3, 1, tz="UTC"), NOW)


def test_reserve_increments_counter_by_exactly_one():
    store = InMemoryStore()
    user = build_user(applications_this_month=1)
    store.add_users([user])

    decision = build_enforcer(store).check_and_reserve(user)

    assert decision.allowed
    assert decision.used == 2
    assert decision.max == 4
    assert decision.remaining == 2
    assert decision.next_reset_date == pendulum.datetime(2025, 4, 1, tz="UTC")
    assert store.get_user(user.id).applications_this_month == 2


def test_quota_exceeded_carries_upgrade_prompt_and_leaves_counter():
    store = InMemoryStore()
    user = build_user(applications_this_month=4)
    store.add_users([user])

    with pytest.raises(QuotaExceeded) as excinfo:
        build_enforcer(store).check_and_reserve(user)

    decision = excinfo.value.decision
    assert not decision.allowed
    assert decision.remaining == 0
    assert decision.requires_upgrade
    assert decision.upgrade_prompt is not None
    assert decision.upgrade_prompt.next_tier == "STUDENT_PREMIUM"
    assert "monthly limit of 4" in (decision.reason or "")
    assert store.get_user(user.id).applications_this_month == 4


def test_new_month_resets_counter_before_evaluating_limit():
    store = InMemoryStore()
    user = build_user(
        applications_this_month=4,
        last_monthly_reset=pendulum.datetime(2025, 2, 3, tz="UTC"),
    )
    store.add_users([user])

    decision = build_enforcer(store).check_and_reserve(user)

    stored = store.get_user(user.id)
    assert decision.allowed
    assert decision.used == 1
    assert stored.applications_this_month == 1
    assert stored.last_monthly_reset == NOW


def test_reset_happens_once_per_period():
    store = InMemoryStore()
    user = build_user(
        applications_this_month=3,
        last_monthly_reset=pendulum.datetime(2025, 2, 3, tz="UTC"),
    )
    store.add_users([user])
    enforcer = build_enforcer(store)

    enforcer.check_and_reserve(user)
    second = enforcer.check_and_reserve(store.get_user(user.id))

    assert second.used == 2
    assert store.get_user(user.id).applications_this_month == 2


def test_unlimited_plan_always_allows():
    store = InMemoryStore()
    user = build_user(subscription_plan="STUDENT_PRO", applications_this_month=500)
    store.add_users([user])

    decision = build_enforcer(store).check_and_reserve(user)

    assert decision.allowed
    assert decision.max is None
    assert decision.remaining is None
    assert store.get_user(user.id).applications_this_month == 501


def test_check_is_read_only():
    store = InMemoryStore()
    user = build_user(
        applications_this_month=4,
        last_monthly_reset=pendulum.datetime(2025, 1, 10, tz="UTC"),
    )
    store.add_users([user])

    decision = build_enforcer(store).check(user)

    assert decision.allowed
    assert decision.used == 0
    assert store.get_user(user.id).applications_this_month == 4


def test_concurrent_reservations_grant_only_the_last_slot_once():
    store = InMemoryStore()
    user = build_user(applications_this_month=3)
    store.add_users([user])
    enforcer = build_enforcer(store)

    def attempt() -> bool:
        try:
            enforcer.check_and_reserve(user)
        except QuotaExceeded:
            return False
        return True

    with ThreadPoolExecutor(max_workers=8) as pool:
        outcomes = list(pool.map(lambda _: attempt(), range(8)))

    assert outcomes.count(True) == 1
    assert outcomes.count(False) == 7
    assert store.get_user(user.id).applications_this_month == 4
