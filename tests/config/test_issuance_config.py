from __future__ import annotations

import pytest

from ticketpipe.config import IssuanceConfig, MissingConfigurationError, get_issuance_config
from ticketpipe.config.issuance import DEFAULT_CREDENTIAL_MAX_AGE_SECONDS, DEFAULT_PROVIDER_NAME


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "TICKETPIPE_EDDSA_PRIVATE_KEY",
        "TICKETPIPE_SERVER_URL",
        "TICKETPIPE_PROVIDER_NAME",
        "TICKETPIPE_CREDENTIAL_MAX_AGE_SECONDS",
        "TICKETPIPE_ARTIFACT_CACHE_TTL_SECONDS",
        "TICKETPIPE_SYNC_INTERVAL_SECONDS",
    ):
        monkeypatch.delenv(name, raising=False)


def test_required_settings_must_be_present(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TICKETPIPE_SERVER_URL", "https://tickets.example.org")

    with pytest.raises(MissingConfigurationError, match="TICKETPIPE_EDDSA_PRIVATE_KEY"):
        get_issuance_config()


def test_defaults_apply_when_optional_settings_are_unset(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TICKETPIPE_EDDSA_PRIVATE_KEY", " abcd \n")
    monkeypatch.setenv("TICKETPIPE_SERVER_URL", "https://tickets.example.org/")

    config = get_issuance_config()

    assert config.eddsa_private_key == "abcd"
    assert config.provider_name == DEFAULT_PROVIDER_NAME
    assert config.credential_max_age_seconds == DEFAULT_CREDENTIAL_MAX_AGE_SECONDS
    assert config.artifact_cache_ttl_seconds is None
    assert config.feeds_url == "https://tickets.example.org/feeds"


def test_optional_settings_are_read(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TICKETPIPE_EDDSA_PRIVATE_KEY", "abcd")
    monkeypatch.setenv("TICKETPIPE_SERVER_URL", "https://tickets.example.org")
    monkeypatch.setenv("TICKETPIPE_PROVIDER_NAME", "Example Tickets")
    monkeypatch.setenv("TICKETPIPE_CREDENTIAL_MAX_AGE_SECONDS", "120")
    monkeypatch.setenv("TICKETPIPE_ARTIFACT_CACHE_TTL_SECONDS", "86400")
    monkeypatch.setenv("TICKETPIPE_SYNC_INTERVAL_SECONDS", "15")

    config = IssuanceConfig.from_environment()

    assert config.provider_name == "Example Tickets"
    assert config.credential_max_age_seconds == 120
    assert config.artifact_cache_ttl_seconds == 86400
    assert config.sync_interval_seconds == 15
