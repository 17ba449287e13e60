"""Dependency injection container for the funnel engine."""

from __future__ import annotations

from typing import Any

from dependency_injector import containers, providers

from .audit import AuditLogger
from .config import load_defaults, merge_settings
from .core import (
    FunnelStateMachine,
    HTTPCompatibilityScorer,
    QuotaEnforcer,
    RecruitmentFunnelEngine,
    ResilientScorer,
    RuleBasedScorer,
    RuleBasedScorerConfig,
    ShortlistEligibilityGate,
    ShortlistGenerator,
    SubscriptionTierCatalog,
    VisibilityRedactor,
)
from .core.scoring import CompatibilityScorer
from .schemas.config import load_config
from .storage import InMemoryStore, SqlStore
from .timeutils import Clock, utc_now

MEMORY_URL = "memory://"


class FunnelContainer(containers.DeclarativeContainer):
    """Dependency-injector container definition."""

    config = providers.Configuration()

    clock = providers.Object(utc_now)
    audit_logger = providers.Object(None)

    store = providers.Singleton(SqlStore.from_url, config.storage.url)

    catalog = providers.Singleton(SubscriptionTierCatalog.from_config, config.tiers)

    rule_config = providers.Factory(
        RuleBasedScorerConfig,
        weights=config.scoring.weights,
        reference_year=config.scoring.reference_year,
    )
    base_scorer = providers.Singleton(RuleBasedScorer, config=rule_config)

    scorer = providers.Singleton(
        ResilientScorer,
        base_scorer,
        timeout_seconds=config.scoring.timeout_seconds,
        max_workers=config.scoring.max_workers,
        fallback_score=config.scoring.fallback_score,
    )

    gate = providers.Singleton(
        ShortlistEligibilityGate,
        projects=store,
        threshold=config.funnel.eligibility_threshold,
        applications_per_day_estimate=config.funnel.applications_per_day_estimate,
    )

    quota = providers.Singleton(QuotaEnforcer, users=store, catalog=catalog, now_provider=clock)

    generator = providers.Singleton(
        ShortlistGenerator,
        projects=store,
        applications=store,
        profiles=store,
        users=store,
        snapshots=store,
        gate=gate,
        scorer=scorer,
        catalog=catalog,
        shortlist_size=config.funnel.shortlist_size,
        now_provider=clock,
        audit_logger=audit_logger,
    )

    redactor = providers.Singleton(VisibilityRedactor, catalog=catalog)

    funnel = providers.Singleton(
        FunnelStateMachine,
        applications=store,
        projects=store,
        catalog=catalog,
        now_provider=clock,
        audit_logger=audit_logger,
    )

    engine = providers.Singleton(
        RecruitmentFunnelEngine,
        users=store,
        projects=store,
        applications=store,
        profiles=store,
        snapshots=store,
        catalog=catalog,
        gate=gate,
        quota=quota,
        generator=generator,
        redactor=redactor,
        funnel=funnel,
        now_provider=clock,
        audit_logger=audit_logger,
    )


def create_container(
    *,
    settings: dict[str, Any] | None = None,
    store: Any = None,
    scorer: CompatibilityScorer | None = None,
    now_provider: Clock | None = None,
    audit_logger: AuditLogger | None = None,
) -> FunnelContainer:
    """Instantiate container with packaged defaults merged with ``settings``.

    ``store``, ``scorer``, ``now_provider`` and ``audit_logger`` replace the
    configured providers when given.
    """

    merged = merge_settings(load_defaults(), settings or {})
    app_config = load_config(merged)

    container = FunnelContainer()
    container.config.from_dict(app_config.to_settings())

    if store is not None:
        container.store.override(providers.Object(store))
    elif app_config.storage.url == MEMORY_URL:
        container.store.override(providers.Singleton(InMemoryStore))

    if scorer is not None:
        container.base_scorer.override(providers.Object(scorer))
    elif app_config.scoring.endpoint:
        container.base_scorer.override(
            providers.Singleton(
                HTTPCompatibilityScorer,
                app_config.scoring.endpoint,
                app_config.scoring.api_key,
                timeout=app_config.scoring.timeout_seconds,
            )
        )

    if now_provider is not None:
        container.clock.override(providers.Object(now_provider))
    if audit_logger is not None:
        container.audit_logger.override(providers.Object(audit_logger))

    return container


__all__ = ["FunnelContainer", "MEMORY_URL", "create_container"]
