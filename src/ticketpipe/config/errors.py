"""Errors raised while loading server settings and pipeline definitions."""

from __future__ import annotations


class ConfigurationError(RuntimeError):
    """Raised when configuration values are invalid."""


class MissingConfigurationError(ConfigurationError):
    """Raised when required configuration values are absent or blank."""


class PipelineDefinitionError(ConfigurationError):
    """A single pipeline definition is malformed."""

    def __init__(self, message: str, *, pipeline_id: str | None = None) -> None:
        super().__init__(f"Pipeline {pipeline_id}: {message}" if pipeline_id else message)
        self.pipeline_id = pipeline_id
