"""HTTP client for the Lemonade ticket API."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

import httpx
from pydantic import ValidationError

from ticketpipe.adapters.http_resilience import ResilientClient, default_client_factory
from ticketpipe.config import LEMONADE_PAGE_SIZE, lemonade_resilience
from ticketpipe.domain.errors import FetchError
from ticketpipe.domain.model import LemonadeOptions
from ticketpipe.domain.ports.fetching import RawRecords

from .schema import TicketRecord, TicketsPage
from .translator import parse_tickets

if TYPE_CHECKING:
    from collections.abc import Callable

    from ticketpipe.config import ResilienceConfig
    from ticketpipe.domain.model import Atom, PipelineDefinition


log = getLogger(__name__)


@dataclass(slots=True)
class LemonadeAdapter:
    client_factory: Callable[[ResilienceConfig], ResilientClient] = field(
        default=default_client_factory
    )
    page_size: int = LEMONADE_PAGE_SIZE

    def fetch(self, definition: PipelineDefinition) -> RawRecords:
        if not isinstance(definition.options, LemonadeOptions):
            raise FetchError(
                f"Pipeline {definition.id} is not a Lemonade pipeline", provider="lemonade"
            )
        try:
            records = asyncio.run(self._fetch_async(definition, definition.options))
        except httpx.HTTPStatusError as exc:
            raise FetchError(
                f"Lemonade returned {exc.response.status_code} for {exc.request.url}",
                provider="lemonade",
            ) from exc
        except httpx.HTTPError as exc:
            raise FetchError(f"Lemonade request failed: {exc}", provider="lemonade") from exc
        except ValidationError as exc:
            raise FetchError(f"Unexpected Lemonade payload: {exc}", provider="lemonade") from exc
        log.info("Fetched %d Lemonade tickets for pipeline %s", len(records), definition.id)
        return RawRecords(records=records)

    def to_atoms(self, definition: PipelineDefinition, raw: RawRecords) -> list[Atom]:
        records = [record for record in raw.records if isinstance(record, TicketRecord)]
        return parse_tickets(definition, records, updated_at=raw.fetched_at)

    async def _fetch_async(
        self,
        definition: PipelineDefinition,
        options: LemonadeOptions,
    ) -> list[TicketRecord]:
        api_url = options.api_url.rstrip("/")
        headers = {"Authorization": f"Bearer {options.token}"}
        records: list[TicketRecord] = []
        async with self.client_factory(lemonade_resilience(api_url)) as client:
            for event in definition.events:
                skip = 0
                while True:
                    response = await client.get(
                        f"{api_url}/events/{event.external_id}/tickets",
                        headers=headers,
                        params={"skip": skip, "limit": self.page_size},
                    )
                    response.raise_for_status()
                    page = TicketsPage.model_validate(response.json())
                    records.extend(
                        TicketRecord(event_id=event.external_id, ticket=ticket)
                        for ticket in page.items
                    )
                    skip += len(page.items)
                    if len(page.items) < self.page_size:
                        break
                    if page.total is not None and skip >= page.total:
                        break
        return records


if TYPE_CHECKING:
    from ticketpipe.domain.ports.fetching import ProviderAdapter

    _adapter_check: ProviderAdapter = LemonadeAdapter()
