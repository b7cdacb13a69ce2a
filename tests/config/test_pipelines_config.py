from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest

from ticketpipe.config import (
    ConfigurationError,
    MissingConfigurationError,
    PipelineDefinitionError,
    get_pipelines_path,
    load_pipeline_definitions,
    parse_pipeline_definitions,
)
from ticketpipe.domain.model import DeletionPolicy, LemonadeOptions, PretixOptions, ProviderType

if TYPE_CHECKING:
    from pathlib import Path


def _pretix_pipeline(**overrides: object) -> dict[str, object]:
    pipeline: dict[str, object] = {
        "id": "conf-pretix",
        "provider": "pretix",
        "options": {"orgUrl": "https://pretix.example/api/v1/organizers/acme", "token": "t"},
        "events": [
            {
                "externalId": "conf",
                "eventId": "42",
                "name": "Conference",
                "products": [
                    {"externalId": 101, "productId": "general", "name": "General"},
                    {
                        "externalId": 102,
                        "productId": "staff",
                        "name": "Staff",
                        "isSuperuser": True,
                    },
                ],
            }
        ],
        "feeds": [{"feedId": "conf-tickets", "displayName": "Tickets", "folder": "Conference"}],
        "syncIntervalSeconds": 120,
    }
    pipeline.update(overrides)
    return pipeline


def test_document_parses_into_definitions() -> None:
    lemonade = _pretix_pipeline(
        id="party",
        provider="lemonade",
        options={"apiUrl": "https://api.lemonade.example", "token": "t"},
        deletionPolicy="delete",
    )

    pretix, party = parse_pipeline_definitions({"pipelines": [_pretix_pipeline(), lemonade]})

    assert pretix.provider is ProviderType.PRETIX
    assert isinstance(pretix.options, PretixOptions)
    assert pretix.events[0].products[0].external_id == "101"
    assert pretix.events[0].superuser_product_ids == frozenset({"staff"})
    assert pretix.feeds[0].folder == "Conference"
    assert pretix.sync_interval_seconds == 120
    assert pretix.effective_deletion_policy is DeletionPolicy.REDACT_CONSUMED
    assert isinstance(party.options, LemonadeOptions)
    assert party.effective_deletion_policy is DeletionPolicy.DELETE


def test_bare_list_is_accepted() -> None:
    assert [d.id for d in parse_pipeline_definitions([_pretix_pipeline()])] == ["conf-pretix"]


@pytest.mark.parametrize(
    ("payload", "message"),
    [
        ([_pretix_pipeline(), _pretix_pipeline()], "Duplicate pipeline id"),
        ([_pretix_pipeline(provider="eventbrite")], "Invalid pipeline definitions"),
        ([_pretix_pipeline(options={"apiUrl": "x", "token": "t"})], "options do not match"),
        ([_pretix_pipeline(events=[])], "event mapping"),
    ],
)
def test_invalid_documents_are_configuration_errors(payload: object, message: str) -> None:
    with pytest.raises(ConfigurationError, match=message):
        parse_pipeline_definitions(payload)


def test_load_from_file(tmp_path: Path) -> None:
    path = tmp_path / "pipelines.json"
    path.write_text(json.dumps({"pipelines": [_pretix_pipeline()]}), encoding="utf-8")

    assert [d.id for d in load_pipeline_definitions(path)] == ["conf-pretix"]


def test_unreadable_or_malformed_files_are_configuration_errors(tmp_path: Path) -> None:
    broken = tmp_path / "broken.json"
    broken.write_text("{not json", encoding="utf-8")

    with pytest.raises(ConfigurationError, match="not valid JSON"):
        load_pipeline_definitions(broken)
    with pytest.raises(ConfigurationError, match="Cannot read"):
        load_pipeline_definitions(tmp_path / "missing.json")


def test_pipelines_path_comes_from_environment(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.delenv("TICKETPIPE_PIPELINES_FILE", raising=False)
    with pytest.raises(MissingConfigurationError):
        get_pipelines_path()

    monkeypatch.setenv("TICKETPIPE_PIPELINES_FILE", str(tmp_path / "pipelines.json"))
    assert get_pipelines_path() == tmp_path / "pipelines.json"


def test_definition_errors_name_the_pipeline() -> None:
    with pytest.raises(PipelineDefinitionError) as excinfo:
        parse_pipeline_definitions([_pretix_pipeline(options={"orgUrl": "x"})])

    assert excinfo.value.pipeline_id == "conf-pretix"
    assert str(excinfo.value).startswith("Pipeline conf-pretix: options do not match")
