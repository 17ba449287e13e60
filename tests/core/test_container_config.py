from __future__ import annotations

import pytest
from pydantic import ValidationError

from recruitfunnel.config import ConfigManager, load_defaults, merge_settings
from recruitfunnel.container import create_container
from recruitfunnel.core import HTTPCompatibilityScorer, RuleBasedScorer
from recruitfunnel.schemas.config import AppConfig, load_config
from recruitfunnel.storage import InMemoryStore, SqlStore


def test_create_container_with_overrides():
    container = create_container(
        settings={
            "funnel": {"eligibility_threshold": 5, "shortlist_size": 3},
            "scoring": {"weights": {"skills": 0.9, "experience": 0.1}, "fallback_score": 40},
            "storage": {"url": "memory://"},
        }
    )

    gate = container.gate()
    generator = container.generator()
    base_scorer = container.base_scorer()
    scorer = container.scorer()

    assert isinstance(container.store(), InMemoryStore)
    assert gate.threshold == 5
    assert generator.shortlist_size == 3
    assert isinstance(base_scorer, RuleBasedScorer)
    assert base_scorer._config.weights["skills"] == 0.9
    assert base_scorer._config.weights["experience"] == 0.1
    assert base_scorer._config.weights["industry"] == 0.15
    assert scorer.fallback().score == 40


def test_default_container_uses_packaged_settings(tmp_path):
    url = f"sqlite:///{tmp_path / 'funnel.db'}"
    container = create_container(settings={"storage": {"url": url}})

    store = container.store()
    try:
        assert isinstance(store, SqlStore)
        assert container.gate().threshold == 30
        assert container.generator().shortlist_size == 10
        assert container.catalog().resolve("COMPANY_PRO").candidate_pool_size == -1
    finally:
        store.dispose()


def test_scoring_endpoint_selects_remote_scorer():
    container = create_container(
        settings={
            "scoring": {"endpoint": "http://scoring.local/score", "api_key": "k"},
            "storage": {"url": "memory://"},
        }
    )

    assert isinstance(container.base_scorer(), HTTPCompatibilityScorer)


def test_load_config_validation():
    data = {
        "funnel": {"eligibility_threshold": 12},
        "tiers": {"FREE": {"name": "Free", "shortlist_visibility": "full_pool"}},
    }
    app_config = load_config(data)
    assert isinstance(app_config, AppConfig)
    settings = app_config.to_settings()
    assert settings["funnel"]["eligibility_threshold"] == 12
    assert settings["tiers"]["FREE"]["shortlist_visibility"] == "full_pool"


def test_load_config_rejects_bad_input():
    with pytest.raises(ValidationError):
        load_config(["not", "a", "mapping"])
    with pytest.raises(ValidationError):
        load_config({"funnel": {"eligibility_threshold": 0}})
    with pytest.raises(ValidationError):
        load_config({"funnel": {"unknown_key": 1}})


def test_merge_settings_is_recursive_and_non_destructive():
    base = {"funnel": {"eligibility_threshold": 30, "shortlist_size": 10}, "storage": {"url": "a"}}

    merged = merge_settings(base, {"funnel": {"shortlist_size": 5}})

    assert merged == {"funnel": {"eligibility_threshold": 30, "shortlist_size": 5}, "storage": {"url": "a"}}
    assert base["funnel"]["shortlist_size"] == 10


def test_config_manager_loads_named_yaml(tmp_path):
    (tmp_path / "local.yaml").write_text("funnel:\n  shortlist_size: 7\n", encoding="utf-8")
    (tmp_path / "empty.yaml").write_text("", encoding="utf-8")

    manager = ConfigManager(tmp_path)

    assert manager.load("local") == {"funnel": {"shortlist_size": 7}}
    assert manager.load("empty") == {}
    assert load_defaults()["funnel"]["eligibility_threshold"] == 30
