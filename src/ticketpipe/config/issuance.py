"""Issuance server configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Final

from .env import optional_float_env, optional_int_env, require_env_vars

DEFAULT_PROVIDER_NAME: Final[str] = "ticketpipe"
DEFAULT_CREDENTIAL_MAX_AGE_SECONDS: Final[int] = 60 * 60
DEFAULT_ARTIFACT_CACHE_MAX_ENTRIES: Final[int] = 10_000
DEFAULT_VERIFICATION_CACHE_MAX_ENTRIES: Final[int] = 1_000
DEFAULT_SYNC_INTERVAL_SECONDS: Final[float] = 60.0


@dataclass(frozen=True, slots=True, kw_only=True)
class IssuanceConfig:
    """Settings shared by every pipeline hosted by one server process."""

    eddsa_private_key: str
    server_url: str
    provider_name: str = DEFAULT_PROVIDER_NAME
    credential_max_age_seconds: int = DEFAULT_CREDENTIAL_MAX_AGE_SECONDS
    artifact_cache_max_entries: int = DEFAULT_ARTIFACT_CACHE_MAX_ENTRIES
    artifact_cache_ttl_seconds: float | None = None
    verification_cache_max_entries: int = DEFAULT_VERIFICATION_CACHE_MAX_ENTRIES
    sync_interval_seconds: float = DEFAULT_SYNC_INTERVAL_SECONDS

    @property
    def feeds_url(self) -> str:
        return f"{self.server_url.rstrip('/')}/feeds"

    @classmethod
    def from_environment(cls) -> IssuanceConfig:
        values = require_env_vars(["TICKETPIPE_EDDSA_PRIVATE_KEY", "TICKETPIPE_SERVER_URL"])
        return cls(
            eddsa_private_key=values["TICKETPIPE_EDDSA_PRIVATE_KEY"].strip(),
            server_url=values["TICKETPIPE_SERVER_URL"].strip(),
            provider_name=os.getenv("TICKETPIPE_PROVIDER_NAME") or DEFAULT_PROVIDER_NAME,
            credential_max_age_seconds=optional_int_env(
                "TICKETPIPE_CREDENTIAL_MAX_AGE_SECONDS", DEFAULT_CREDENTIAL_MAX_AGE_SECONDS
            )
            or DEFAULT_CREDENTIAL_MAX_AGE_SECONDS,
            artifact_cache_max_entries=optional_int_env(
                "TICKETPIPE_ARTIFACT_CACHE_MAX_ENTRIES", DEFAULT_ARTIFACT_CACHE_MAX_ENTRIES
            )
            or DEFAULT_ARTIFACT_CACHE_MAX_ENTRIES,
            artifact_cache_ttl_seconds=optional_float_env(
                "TICKETPIPE_ARTIFACT_CACHE_TTL_SECONDS", None
            ),
            verification_cache_max_entries=optional_int_env(
                "TICKETPIPE_VERIFICATION_CACHE_MAX_ENTRIES",
                DEFAULT_VERIFICATION_CACHE_MAX_ENTRIES,
            )
            or DEFAULT_VERIFICATION_CACHE_MAX_ENTRIES,
            sync_interval_seconds=optional_float_env(
                "TICKETPIPE_SYNC_INTERVAL_SECONDS", DEFAULT_SYNC_INTERVAL_SECONDS
            )
            or DEFAULT_SYNC_INTERVAL_SECONDS,
        )


def get_issuance_config() -> IssuanceConfig:
    return IssuanceConfig.from_environment()
