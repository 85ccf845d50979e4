"""Tests for the prompt stores."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from essay_harvest.entities import (
    AuditEntry,
    Institution,
    PersistedPrompt,
    PipelineRun,
    ProvenanceEntry,
    ReviewStatus,
    SourceConfig,
    SourceType,
)
from essay_harvest.storage import DuplicatePromptError, InMemoryPromptStore, JsonPromptStore


def _prompt(institution_id: str, text: str = "Describe a challenge you overcame.") -> PersistedPrompt:
    return PersistedPrompt(
        institution_id=institution_id,
        application_year=2026,
        prompt_text=text,
        review_status=ReviewStatus.VERIFIED,
        provenance=[
            ProvenanceEntry(source_type=SourceType.OFFICIAL, source_url="https://example.edu", confidence=0.9)
        ],
    )


def test_natural_key_is_unique(store: InMemoryPromptStore) -> None:
    institution = store.add_institution(Institution(name="Example University"))
    store.create_prompt(_prompt(institution.id))

    with pytest.raises(DuplicatePromptError):
        store.create_prompt(_prompt(institution.id))

    assert store.find_prompt(institution.id, 2026, "Describe a challenge you overcame.") is not None
    assert store.find_prompt(institution.id, 2025, "Describe a challenge you overcame.") is None


def test_find_institution_matches_aliases_case_insensitively(store: InMemoryPromptStore) -> None:
    store.add_institution(Institution(name="Massachusetts Institute of Technology", aliases=["MIT"]))

    assert store.find_institution("mit").name == "Massachusetts Institute of Technology"
    assert store.find_institution("  massachusetts institute of technology ") is not None
    assert store.find_institution("Caltech") is None


def test_returned_records_are_copies(store: InMemoryPromptStore) -> None:
    institution = store.add_institution(Institution(name="Example University"))
    config = store.save_source_config(SourceConfig(institution_id=institution.id, url="https://example.edu"))

    fetched = store.get_source_config(config.id)
    fetched.priority = 99

    assert store.get_source_config(config.id).priority == 0


def test_json_store_round_trips_every_collection(tmp_path: Path) -> None:
    path = tmp_path / "store" / "harvest.json"
    writer = JsonPromptStore(path)
    institution = writer.add_institution(Institution(name="Example University", aliases=["EU"]))
    prompt = writer.create_prompt(_prompt(institution.id))
    writer.add_audit_entry(AuditEntry(prompt_id=prompt.id, to_status=ReviewStatus.VERIFIED))
    config = writer.save_source_config(
        SourceConfig(institution_id=institution.id, url="https://example.edu/essays", priority=2)
    )
    run = PipelineRun(application_year=2026)
    run.complete([{"institution_name": "Example University", "success": True, "essays_found": 1}])
    writer.save_run(run)

    reader = JsonPromptStore(path)

    assert reader.find_institution("eu").id == institution.id
    (loaded,) = reader.list_prompts()
    assert loaded.natural_key == prompt.natural_key
    assert loaded.provenance[0].confidence == 0.9
    assert [entry.prompt_id for entry in reader.list_audit_entries()] == [prompt.id]
    assert reader.get_source_config(config.id).priority == 2
    assert reader.get_run(run.id).new_prompts_count == 1
    assert not path.with_suffix(".json.tmp").exists()


def test_json_store_deletes_persist(tmp_path: Path) -> None:
    path = tmp_path / "harvest.json"
    writer = JsonPromptStore(path)
    institution = writer.add_institution(Institution(name="Example University"))
    config = writer.save_source_config(SourceConfig(institution_id=institution.id, url="https://example.edu"))

    assert writer.delete_source_config(config.id) is True
    assert writer.delete_source_config(config.id) is False
    assert JsonPromptStore(path).list_source_configs() == []


def test_json_store_rejects_unknown_format_version(tmp_path: Path) -> None:
    path = tmp_path / "harvest.json"
    path.write_text(json.dumps({"format_version": 99}), encoding="utf-8")

    with pytest.raises(ValueError, match="format_version"):
        JsonPromptStore(path)
