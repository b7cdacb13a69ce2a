"""Loading pipeline definitions from the operator-authored JSON document."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import TYPE_CHECKING, Final

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ticketpipe.domain.model import (
    CsvOptions,
    DeletionPolicy,
    EventMapping,
    FeedConfig,
    LemonadeOptions,
    PipelineDefinition,
    PretixOptions,
    ProductMapping,
    ProviderType,
)

from .errors import ConfigurationError, MissingConfigurationError, PipelineDefinitionError

if TYPE_CHECKING:
    from ticketpipe.domain.model import ProviderOptions

PIPELINES_FILE_ENV: Final[str] = "TICKETPIPE_PIPELINES_FILE"


class _DefinitionModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class ProductModel(_DefinitionModel):
    external_id: str = Field(alias="externalId")
    product_id: str = Field(alias="productId")
    name: str
    is_superuser: bool = Field(default=False, alias="isSuperuser")

    @field_validator("external_id", "product_id", mode="before")
    @classmethod
    def _stringify(cls, value: object) -> object:
        return str(value) if isinstance(value, int) else value


class EventModel(_DefinitionModel):
    external_id: str = Field(alias="externalId")
    event_id: str = Field(alias="eventId")
    name: str
    image_url: str | None = Field(default=None, alias="imageUrl")
    products: list[ProductModel] = Field(default_factory=list)

    def to_mapping(self) -> EventMapping:
        return EventMapping(
            external_id=self.external_id,
            event_id=self.event_id,
            name=self.name,
            image_url=self.image_url,
            products=tuple(
                ProductMapping(
                    external_id=product.external_id,
                    product_id=product.product_id,
                    name=product.name,
                    is_superuser=product.is_superuser,
                )
                for product in self.products
            ),
        )


class FeedModel(_DefinitionModel):
    feed_id: str = Field(alias="feedId")
    display_name: str = Field(alias="displayName")
    folder: str
    description: str = ""
    is_private: bool = Field(default=False, alias="isPrivate")


class PretixOptionsModel(_DefinitionModel):
    org_url: str = Field(alias="orgUrl")
    token: str


class LemonadeOptionsModel(_DefinitionModel):
    api_url: str = Field(alias="apiUrl")
    token: str


class CsvOptionsModel(_DefinitionModel):
    data: str


_OPTIONS_MODELS: dict[ProviderType, type[_DefinitionModel]] = {
    ProviderType.PRETIX: PretixOptionsModel,
    ProviderType.LEMONADE: LemonadeOptionsModel,
    ProviderType.CSV: CsvOptionsModel,
}


class PipelineModel(_DefinitionModel):
    id: str
    provider: ProviderType
    options: dict[str, object]
    events: list[EventModel]
    feeds: list[FeedModel] = Field(default_factory=list)
    editor_ids: list[str] = Field(default_factory=list, alias="editorIds")
    deletion_policy: DeletionPolicy | None = Field(default=None, alias="deletionPolicy")
    sync_interval_seconds: float | None = Field(default=None, alias="syncIntervalSeconds")

    def to_definition(self) -> PipelineDefinition:
        try:
            return PipelineDefinition(
                id=self.id,
                provider=self.provider,
                options=self._provider_options(),
                events=tuple(event.to_mapping() for event in self.events),
                feeds=tuple(
                    FeedConfig(
                        feed_id=feed.feed_id,
                        display_name=feed.display_name,
                        folder=feed.folder,
                        description=feed.description,
                        is_private=feed.is_private,
                    )
                    for feed in self.feeds
                ),
                editor_ids=tuple(self.editor_ids),
                deletion_policy=self.deletion_policy,
                sync_interval_seconds=self.sync_interval_seconds,
            )
        except ValueError as exc:
            raise PipelineDefinitionError(str(exc)) from exc

    def _provider_options(self) -> ProviderOptions:
        model_type = _OPTIONS_MODELS[self.provider]
        try:
            options = model_type.model_validate(self.options)
        except ValidationError as exc:
            raise PipelineDefinitionError(
                f"options do not match provider {self.provider}: {exc}", pipeline_id=self.id
            ) from exc
        match options:
            case PretixOptionsModel():
                return PretixOptions(org_url=options.org_url, token=options.token)
            case LemonadeOptionsModel():
                return LemonadeOptions(api_url=options.api_url, token=options.token)
            case CsvOptionsModel():
                return CsvOptions(data=options.data)
            case _:
                raise PipelineDefinitionError("unsupported provider", pipeline_id=self.id)


class PipelinesDocument(_DefinitionModel):
    pipelines: list[PipelineModel]


def parse_pipeline_definitions(payload: object) -> list[PipelineDefinition]:
    """Validate a decoded document (or a bare list of pipelines) into definitions."""

    if isinstance(payload, list):
        payload = {"pipelines": payload}
    try:
        document = PipelinesDocument.model_validate(payload)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid pipeline definitions: {exc}") from exc

    definitions = [pipeline.to_definition() for pipeline in document.pipelines]
    seen: set[str] = set()
    for definition in definitions:
        if definition.id in seen:
            raise PipelineDefinitionError(
                f"Duplicate pipeline id: {definition.id}", pipeline_id=definition.id
            )
        seen.add(definition.id)
    return definitions


def load_pipeline_definitions(path: Path) -> list[PipelineDefinition]:
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigurationError(f"Cannot read pipeline definitions from {path}: {exc}") from exc
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"{path} is not valid JSON: {exc}") from exc
    return parse_pipeline_definitions(payload)


def get_pipelines_path() -> Path:
    raw = os.getenv(PIPELINES_FILE_ENV)
    if raw is None or not raw.strip():
        raise MissingConfigurationError(f"Missing configuration for: {PIPELINES_FILE_ENV}")
    return Path(raw).expanduser()
