"""HTTP client for the Pretix organiser REST API."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

import httpx
from pydantic import ValidationError

from ticketpipe.adapters.http_resilience import ResilientClient, default_client_factory
from ticketpipe.config import pretix_metadata_resilience, pretix_orders_resilience
from ticketpipe.domain.errors import FetchError
from ticketpipe.domain.model import PretixOptions
from ticketpipe.domain.ports.fetching import RawRecords

from .schema import EventPayload, ItemsPage, OrdersPage, PositionRecord, localized
from .translator import parse_positions

if TYPE_CHECKING:
    from collections.abc import Callable

    from ticketpipe.config import ResilienceConfig
    from ticketpipe.domain.model import Atom, EventMapping, PipelineDefinition

log = getLogger(__name__)

PAID_STATUS = "p"


def _options(definition: PipelineDefinition) -> PretixOptions:
    if not isinstance(definition.options, PretixOptions):
        raise FetchError(f"Pipeline {definition.id} is not a Pretix pipeline", provider="pretix")
    return definition.options


@dataclass(slots=True)
class PretixAdapter:
    """Reads paid order positions for every mapped event of a Pretix organiser."""

    client_factory: Callable[[ResilienceConfig], ResilientClient] = field(
        default=default_client_factory
    )

    def fetch(self, definition: PipelineDefinition) -> RawRecords:
        options = _options(definition)
        try:
            records = asyncio.run(self._fetch_async(definition, options))
        except httpx.HTTPStatusError as exc:
            raise FetchError(
                f"Pretix returned {exc.response.status_code} for {exc.request.url}",
                provider="pretix",
            ) from exc
        except httpx.HTTPError as exc:
            raise FetchError(f"Pretix request failed: {exc}", provider="pretix") from exc
        except ValidationError as exc:
            raise FetchError(f"Unexpected Pretix payload: {exc}", provider="pretix") from exc
        log.info("Fetched %d Pretix positions for pipeline %s", len(records), definition.id)
        return RawRecords(records=records)

    def to_atoms(self, definition: PipelineDefinition, raw: RawRecords) -> list[Atom]:
        records = [record for record in raw.records if isinstance(record, PositionRecord)]
        return parse_positions(definition, records, updated_at=raw.fetched_at)

    async def _fetch_async(
        self,
        definition: PipelineDefinition,
        options: PretixOptions,
    ) -> list[PositionRecord]:
        org_url = options.org_url.rstrip("/")
        headers = {"Authorization": f"Token {options.token}"}
        records: list[PositionRecord] = []

        async with self.client_factory(pretix_metadata_resilience(org_url)) as metadata_client:
            for event in definition.events:
                await self._check_event_metadata(metadata_client, org_url, headers, event)

        async with self.client_factory(pretix_orders_resilience(org_url)) as orders_client:
            for event in definition.events:
                records.extend(
                    await self._fetch_event_positions(orders_client, org_url, headers, event)
                )
        return records

    async def _check_event_metadata(
        self,
        client: ResilientClient,
        org_url: str,
        headers: dict[str, str],
        event: EventMapping,
    ) -> None:
        response = await client.get(f"{org_url}/events/{event.external_id}/", headers=headers)
        response.raise_for_status()
        payload = EventPayload.model_validate(response.json())
        log.debug("Pretix event %s is named %r", payload.slug, localized(payload.name))

        known_items: set[str] = set()
        url: str | None = f"{org_url}/events/{event.external_id}/items/"
        while url is not None:
            response = await client.get(url, headers=headers)
            response.raise_for_status()
            page = ItemsPage.model_validate(response.json())
            known_items.update(str(item.id) for item in page.results)
            url = page.next

        for product in event.products:
            if product.external_id not in known_items:
                log.warning(
                    "Pretix event %s has no item %s (mapped to product %s)",
                    event.external_id,
                    product.external_id,
                    product.product_id,
                )

    async def _fetch_event_positions(
        self,
        client: ResilientClient,
        org_url: str,
        headers: dict[str, str],
        event: EventMapping,
    ) -> list[PositionRecord]:
        records: list[PositionRecord] = []
        url: str | None = f"{org_url}/events/{event.external_id}/orders/"
        params: dict[str, str] | None = {"include_canceled_positions": "true"}
        while url is not None:
            response = await client.get(url, headers=headers, params=params)
            response.raise_for_status()
            page = OrdersPage.model_validate(response.json())
            for order in page.results:
                if order.status != PAID_STATUS:
                    continue
                records.extend(
                    PositionRecord(event_slug=event.external_id, order=order, position=position)
                    for position in order.positions
                )
            # ``next`` already carries the query string
            url = page.next
            params = None
        return records


if TYPE_CHECKING:
    from ticketpipe.domain.ports.fetching import ProviderAdapter

    _adapter_check: ProviderAdapter = PretixAdapter()
