"""Tests for configuration loading and validation."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from essay_harvest.config.policies import Policies, load_policies
from essay_harvest.config.settings import Settings


def test_default_settings_load_packaged_yaml() -> None:
    settings = Settings(create_dirs=False)

    pipeline = settings.policies.pipeline
    assert settings.environment == "development"
    assert settings.policy_version == "2026-08-01"
    assert pipeline.sources == ["OFFICIAL", "CONFIGURED", "AGGREGATOR"]
    assert pipeline.delay_between_sources_seconds == 2
    assert pipeline.delay_between_institutions_seconds == 3
    assert pipeline.verified_confidence_threshold == 0.8
    assert settings.policies.schedule.pre_season == "08-01"
    assert settings.policies.strategies.shared_institution_name == "Common App"
    assert settings.policies.llm.api_key_env_var == "OPENAI_API_KEY"


def test_policy_env_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("HARVEST_POLICY__PIPELINE__DELAY_BETWEEN_SOURCES_SECONDS", "0")
    monkeypatch.setenv("HARVEST_POLICY__STORAGE__BACKEND", "memory")

    settings = Settings(create_dirs=False)

    assert settings.policies.pipeline.delay_between_sources_seconds == 0
    assert settings.policies.storage.backend == "memory"


def test_environment_file_overrides_default(tmp_path: Path) -> None:
    (tmp_path / "default.yaml").write_text(
        yaml.safe_dump({"policies": {"pipeline": {"stale_run_minutes": 120, "recent_runs_limit": 5}}}),
        encoding="utf-8",
    )
    (tmp_path / "testing.yaml").write_text(
        yaml.safe_dump({"policies": {"pipeline": {"stale_run_minutes": 30}}}),
        encoding="utf-8",
    )

    settings = Settings(config_dir=tmp_path, environment="testing", create_dirs=False)

    assert settings.policies.pipeline.stale_run_minutes == 30
    assert settings.policies.pipeline.recent_runs_limit == 5


def test_paths_are_created_and_store_path_resolves(tmp_path: Path) -> None:
    settings = Settings(paths={"data_dir": tmp_path / "data", "logs_dir": tmp_path / "logs"})

    assert (tmp_path / "data").is_dir()
    assert (tmp_path / "logs").is_dir()
    assert settings.store_path == tmp_path / "data" / "harvest-store.json"
    assert settings.log_file == tmp_path / "logs" / "essay-harvest.log"


def test_load_policies_from_yaml_file(tmp_path: Path) -> None:
    path = tmp_path / "policies.yaml"
    path.write_text(yaml.safe_dump({"policy_version": "test", "pipeline": {"sources": ["AGGREGATOR"]}}), encoding="utf-8")

    policies = load_policies(path)

    assert policies.policy_version == "test"
    assert policies.pipeline.sources == ["AGGREGATOR"]
    with pytest.raises(FileNotFoundError):
        load_policies(tmp_path / "missing.yaml")


def test_policy_validation_errors() -> None:
    with pytest.raises(ValueError):
        Policies(policy_version="")
    with pytest.raises(ValueError):
        load_policies({"pipeline": {"verified_confidence_threshold": 1.5}})
    with pytest.raises(ValueError):
        load_policies({"storage": {"backend": "sqlite"}})
