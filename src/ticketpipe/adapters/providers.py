"""Dispatch from a pipeline's provider tag to its adapter."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ticketpipe.adapters.flatfile import CsvAdapter
from ticketpipe.adapters.lemonade import LemonadeAdapter
from ticketpipe.adapters.pretix import PretixAdapter
from ticketpipe.domain.model import ProviderType

if TYPE_CHECKING:
    from collections.abc import Callable

    from ticketpipe.domain.model import PipelineDefinition
    from ticketpipe.domain.ports.fetching import ProviderAdapter

type AdapterFactory = Callable[[], ProviderAdapter]

DEFAULT_ADAPTERS: dict[ProviderType, AdapterFactory] = {
    ProviderType.PRETIX: PretixAdapter,
    ProviderType.LEMONADE: LemonadeAdapter,
    ProviderType.CSV: CsvAdapter,
}


def build_provider_adapter(
    definition: PipelineDefinition,
    *,
    factories: dict[ProviderType, AdapterFactory] | None = None,
) -> ProviderAdapter:
    registry = factories if factories is not None else DEFAULT_ADAPTERS
    try:
        factory = registry[definition.provider]
    except KeyError:
        raise ValueError(f"No adapter registered for provider {definition.provider}") from None
    return factory()
