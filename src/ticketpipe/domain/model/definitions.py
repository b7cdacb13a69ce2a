"""Pipeline definitions: operator-authored, immutable configuration of a pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar

from ticketpipe.domain.model.enums import DeletionPolicy, ProviderType

_DEFAULT_DELETION_POLICY: dict[ProviderType, DeletionPolicy] = {
    ProviderType.PRETIX: DeletionPolicy.REDACT_CONSUMED,
    ProviderType.LEMONADE: DeletionPolicy.REDACT_CONSUMED,
    ProviderType.CSV: DeletionPolicy.DELETE,
}


@dataclass(frozen=True, slots=True, kw_only=True)
class ProductMapping:
    """Maps a provider product (item, ticket type) onto a local product id."""

    external_id: str
    product_id: str
    name: str
    is_superuser: bool = False


@dataclass(frozen=True, slots=True, kw_only=True)
class EventMapping:
    """Maps a provider event onto a local event id and its products."""

    external_id: str
    event_id: str
    name: str
    products: tuple[ProductMapping, ...] = ()
    image_url: str | None = None

    def product_for_external(self, external_id: str) -> ProductMapping | None:
        for product in self.products:
            if product.external_id == external_id:
                return product
        return None

    def product(self, product_id: str) -> ProductMapping | None:
        for product in self.products:
            if product.product_id == product_id:
                return product
        return None

    @property
    def superuser_product_ids(self) -> frozenset[str]:
        return frozenset(p.product_id for p in self.products if p.is_superuser)


@dataclass(frozen=True, slots=True, kw_only=True)
class FeedConfig:
    feed_id: str
    display_name: str
    folder: str
    description: str = ""
    is_private: bool = False


@dataclass(frozen=True, slots=True, kw_only=True)
class PretixOptions:
    PROVIDER: ClassVar[ProviderType] = ProviderType.PRETIX

    org_url: str
    token: str


@dataclass(frozen=True, slots=True, kw_only=True)
class LemonadeOptions:
    PROVIDER: ClassVar[ProviderType] = ProviderType.LEMONADE

    api_url: str
    token: str


@dataclass(frozen=True, slots=True, kw_only=True)
class CsvOptions:
    PROVIDER: ClassVar[ProviderType] = ProviderType.CSV

    data: str


type ProviderOptions = PretixOptions | LemonadeOptions | CsvOptions


@dataclass(frozen=True, slots=True, kw_only=True)
class PipelineDefinition:
    id: str
    provider: ProviderType
    options: ProviderOptions
    events: tuple[EventMapping, ...]
    feeds: tuple[FeedConfig, ...]
    editor_ids: tuple[str, ...] = ()
    deletion_policy: DeletionPolicy | None = None
    sync_interval_seconds: float | None = None

    def __post_init__(self) -> None:
        if self.options.PROVIDER is not self.provider:
            raise ValueError(
                f"Pipeline {self.id}: {self.provider} pipeline configured with "
                f"{self.options.PROVIDER} options"
            )
        if not self.events:
            raise ValueError(f"Pipeline {self.id}: at least one event mapping is required")

    @property
    def effective_deletion_policy(self) -> DeletionPolicy:
        if self.deletion_policy is not None:
            return self.deletion_policy
        return _DEFAULT_DELETION_POLICY[self.provider]

    def event_for_external(self, external_id: str) -> EventMapping | None:
        for event in self.events:
            if event.external_id == external_id:
                return event
        return None

    def event(self, event_id: str) -> EventMapping | None:
        for event in self.events:
            if event.event_id == event_id:
                return event
        return None
