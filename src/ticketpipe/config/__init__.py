"""Application configuration helpers."""

from __future__ import annotations

from .env import optional_float_env, optional_int_env, require_env_vars
from .errors import ConfigurationError, MissingConfigurationError, PipelineDefinitionError
from .http_resilience import CacheConfig, RateLimit, ResilienceConfig, RetryPolicy
from .issuance import IssuanceConfig, get_issuance_config
from .lemonade import LEMONADE_PAGE_SIZE, lemonade_resilience
from .logging import configure_logging
from .pipelines import get_pipelines_path, load_pipeline_definitions, parse_pipeline_definitions
from .pretix import pretix_metadata_resilience, pretix_orders_resilience
from .storage import DatabaseConfig, StorageConfig, get_database_config, get_storage_config

__all__ = [
    "LEMONADE_PAGE_SIZE",
    "CacheConfig",
    "ConfigurationError",
    "DatabaseConfig",
    "IssuanceConfig",
    "MissingConfigurationError",
    "PipelineDefinitionError",
    "RateLimit",
    "ResilienceConfig",
    "RetryPolicy",
    "StorageConfig",
    "configure_logging",
    "get_database_config",
    "get_issuance_config",
    "get_pipelines_path",
    "get_storage_config",
    "lemonade_resilience",
    "load_pipeline_definitions",
    "optional_float_env",
    "optional_int_env",
    "parse_pipeline_definitions",
    "pretix_metadata_resilience",
    "pretix_orders_resilience",
    "require_env_vars",
]
