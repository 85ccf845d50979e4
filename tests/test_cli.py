"""End-to-end smoke tests for the Typer-based harvester CLI."""

from __future__ import annotations

from pathlib import Path
from typing import Iterator, List

import pytest
from loguru import logger
from typer.testing import CliRunner

from essay_harvest.cli.common import CLIError, parse_indices, parse_override
from essay_harvest.cli.main import app
from essay_harvest.entities import RunStatus, SourceType
from essay_harvest.storage import JsonPromptStore


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture()
def base_args(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[List[str]]:
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    yield [
        "-o",
        f"paths.data_dir={tmp_path / 'data'}",
        "-o",
        f"paths.logs_dir={tmp_path / 'logs'}",
        "-o",
        "log_level=WARNING",
        "-o",
        "policies.pipeline.delay_between_sources_seconds=0",
        "-o",
        "policies.pipeline.delay_between_institutions_seconds=0",
    ]
    # The CLI points loguru at the runner's captured streams.
    logger.remove()


def _store(tmp_path: Path) -> JsonPromptStore:
    return JsonPromptStore(tmp_path / "data" / "harvest-store.json")


def test_parse_override_builds_nested_mapping() -> None:
    assert parse_override("policies.pipeline.delay_between_sources_seconds=0") == {
        "policies": {"pipeline": {"delay_between_sources_seconds": 0}}
    }
    assert parse_override("paths.data_dir=/tmp/harvest") == {"paths": {"data_dir": "/tmp/harvest"}}


def test_parse_indices() -> None:
    assert parse_indices("0, 2,3") == [0, 2, 3]
    with pytest.raises(CLIError):
        parse_indices("1,x")
    with pytest.raises(CLIError):
        parse_indices(" , ")


def test_institution_and_source_management(runner: CliRunner, base_args: List[str], tmp_path: Path) -> None:
    added = runner.invoke(app, [*base_args, "institutions", "add", "Example University", "--alias", "EU"])
    assert added.exit_code == 0, added.output
    assert "Example University" in added.output

    listed = runner.invoke(app, [*base_args, "institutions", "list"])
    assert listed.exit_code == 0, listed.output
    assert "Example University" in listed.output

    source = runner.invoke(
        app,
        [
            *base_args,
            "sources",
            "add",
            "EU",
            "https://example.edu/essays",
            "--kind",
            "aggregator",
            "--priority",
            "4",
            "--selector",
            ".prompts",
            "--hint",
            "Supplements only",
        ],
    )
    assert source.exit_code == 0, source.output

    (config,) = _store(tmp_path).list_source_configs()
    assert config.source_kind is SourceType.AGGREGATOR
    assert config.priority == 4
    assert config.extraction_hints.css_selectors == [".prompts"]
    assert config.extraction_hints.llm_hint == "Supplements only"

    sources = runner.invoke(app, [*base_args, "sources", "list", "--institution", "EU"])
    assert sources.exit_code == 0, sources.output

    updated = runner.invoke(app, [*base_args, "sources", "update", config.id, "--priority", "7", "--inactive"])
    assert updated.exit_code == 0, updated.output
    reloaded = _store(tmp_path).get_source_config(config.id)
    assert reloaded.priority == 7 and reloaded.is_active is False

    removed = runner.invoke(app, [*base_args, "sources", "remove", config.id])
    assert removed.exit_code == 0, removed.output
    assert _store(tmp_path).list_source_configs() == []


def test_source_for_unknown_institution_is_a_cli_error(runner: CliRunner, base_args: List[str]) -> None:
    result = runner.invoke(app, [*base_args, "sources", "add", "Ghost College", "https://ghost.edu/essays"])

    assert result.exit_code != 0
    assert isinstance(result.exception, CLIError)
    assert "not in the catalogue" in str(result.exception)


def test_update_without_fields_is_a_cli_error(runner: CliRunner, base_args: List[str]) -> None:
    result = runner.invoke(app, [*base_args, "sources", "update", "missing"])

    assert isinstance(result.exception, CLIError)


def test_dashboard_coverage_renders_stats(runner: CliRunner, base_args: List[str]) -> None:
    runner.invoke(app, [*base_args, "institutions", "add", "Example University"])

    result = runner.invoke(app, [*base_args, "dashboard", "coverage", "--year", "2026"])

    assert result.exit_code == 0, result.output
    assert '"total_institutions": 1' in result.output
    assert '"coverage_percent": 0.0' in result.output


def test_manual_run_on_empty_catalogue_completes(runner: CliRunner, base_args: List[str], tmp_path: Path) -> None:
    result = runner.invoke(app, [*base_args, "runs", "trigger", "--operator", "ops"])

    assert result.exit_code == 0, result.output
    (run,) = _store(tmp_path).list_runs()
    assert run.status is RunStatus.COMPLETED
    assert run.operator_id == "ops"
    # Built-in URL tables name institutions the empty catalogue cannot resolve.
    assert run.total_institutions > 0
    assert run.success_count == 0 and run.new_prompts_count == 0

    listed = runner.invoke(app, [*base_args, "runs", "list", "-n", "5"])
    assert listed.exit_code == 0, listed.output


def test_show_missing_run_is_a_cli_error(runner: CliRunner, base_args: List[str]) -> None:
    result = runner.invoke(app, [*base_args, "runs", "show", "does-not-exist"])

    assert isinstance(result.exception, CLIError)
    assert "not found" in str(result.exception)


def test_invalid_override_is_rejected(runner: CliRunner, base_args: List[str]) -> None:
    result = runner.invoke(app, [*base_args, "-o", "policies.pipeline.verified_confidence_threshold=3", "runs", "list"])

    assert isinstance(result.exception, CLIError)
    assert "Invalid configuration" in str(result.exception)
