"""Monthly application quota enforcement.

This module is the only place that decides whether a user's counter belongs
to an earlier calendar period. The reset is lazy: it happens inside the
store's atomic reservation the next time the user applies.
"""

from __future__ import annotations

from datetime import datetime

import pendulum
import structlog

from ..schemas.records import Application, User
from ..schemas.responses import QuotaDecision
from ..storage.base import UserRepository
from ..timeutils import Clock, to_utc, utc_now
from .errors import QuotaExceeded
from .tiers import SubscriptionTierCatalog, TierEntitlement


def period_start(moment: datetime) -> pendulum.DateTime:
    """First instant of the calendar month containing ``moment`` (UTC)."""
    return to_utc(moment).start_of("month")


def next_reset_date(moment: datetime) -> pendulum.DateTime:
    return period_start(moment).add(months=1)


def is_new_period(last_reset: datetime | None, now: datetime) -> bool:
    if last_reset is None:
        return True
    return period_start(last_reset) < period_start(now)


class QuotaEnforcer:
    """Tracks and reserves per-user monthly application slots."""

    def __init__(
        self,
        *,
        users: UserRepository,
        catalog: SubscriptionTierCatalog,
        now_provider: Clock | None = None,
    ) -> None:
        self._users = users
        self._catalog = catalog
        self._now = now_provider or utc_now
        self._logger = structlog.get_logger(__name__)

    def check(self, user: User) -> QuotaDecision:
        """Evaluate the user's quota without writing anything."""
        now = to_utc(self._now())
        tier = self._catalog.resolve(user.subscription_plan)
        used = 0 if is_new_period(user.last_monthly_reset, now) else user.applications_this_month
        allowed = tier.unlimited or used < tier.max_applications_per_month
        return self._decision(user, tier, used=used, allowed=allowed, now=now)

    def check_and_reserve(self, user: User, *, application: Application | None = None) -> QuotaDecision:
        """Reserve one application slot or raise ``QuotaExceeded``.

        A given ``application`` is created together with the reservation, so a
        duplicate never consumes a slot.
        """
        now = to_utc(self._now())
        tier = self._catalog.resolve(user.subscription_plan)
        limit = None if tier.unlimited else tier.max_applications_per_month

        reservation = self._users.reserve_application_slot(
            user.id,
            period_start=period_start(now),
            now=now,
            limit=limit,
            application=application,
        )
        if reservation.reset_applied:
            self._logger.info(
                "quota.period_reset",
                user_id=user.id,
                previous_reset=user.last_monthly_reset.isoformat() if user.last_monthly_reset else None,
            )

        decision = self._decision(
            user,
            tier,
            used=reservation.used,
            allowed=reservation.granted,
            now=now,
        )
        if not reservation.granted:
            self._logger.info(
                "quota.exceeded",
                user_id=user.id,
                plan=tier.plan_id,
                used=reservation.used,
                max=limit,
            )
            raise QuotaExceeded(decision)

        self._logger.info(
            "quota.reserved",
            user_id=user.id,
            plan=tier.plan_id,
            used=reservation.used,
            max=limit,
        )
        return decision

    def _decision(
        self,
        user: User,
        tier: TierEntitlement,
        *,
        used: int,
        allowed: bool,
        now: datetime,
    ) -> QuotaDecision:
        maximum = None if tier.unlimited else tier.max_applications_per_month
        remaining = None if maximum is None else max(0, maximum - used)
        reason = None
        upgrade_prompt = None
        if not allowed:
            reason = (
                f"You've reached your monthly limit of {maximum} applications. "
                "Upgrade your plan to apply to more projects."
            )
            upgrade_prompt = self._catalog.upgrade_prompt(tier.plan_id, user.role)
        return QuotaDecision(
            allowed=allowed,
            used=used,
            max=maximum,
            remaining=remaining,
            next_reset_date=next_reset_date(now),
            reason=reason,
            requires_upgrade=not allowed and upgrade_prompt is not None,
            upgrade_prompt=upgrade_prompt,
        )
