from __future__ import annotations

from datetime import UTC, datetime

import httpx
import pytest

from ticketpipe.adapters.lemonade import LemonadeAdapter
from ticketpipe.adapters.lemonade.schema import TicketRecord
from ticketpipe.domain.errors import FetchError, TranslationError
from ticketpipe.domain.model import (
    EventMapping,
    LemonadeOptions,
    PipelineDefinition,
    ProductMapping,
    ProviderType,
)
from ticketpipe.domain.ports.fetching import RawRecords

from tests.helpers.http import RecordingFactory

API_URL = "https://api.lemonade.example"

DEFINITION = PipelineDefinition(
    id="lemonade-main",
    provider=ProviderType.LEMONADE,
    options=LemonadeOptions(api_url=API_URL, token="bearer-token"),
    events=(
        EventMapping(
            external_id="evt-1",
            event_id="42",
            name="Conference",
            products=(
                ProductMapping(external_id="ga", product_id="general", name="General"),
                ProductMapping(
                    external_id="crew", product_id="staff", name="Crew", is_superuser=True
                ),
            ),
        ),
    ),
    feeds=(),
)


def _ticket(index: int, **overrides: object) -> dict[str, object]:
    ticket: dict[str, object] = {
        "_id": f"t{index}",
        "type": "ga",
        "email": f"holder{index}@example.com",
        "assignedName": f"Holder {index}",
    }
    ticket.update(overrides)
    return ticket


def _paged_handler(tickets: list[dict[str, object]]) -> RecordingFactory:
    def handler(request: httpx.Request) -> httpx.Response:
        skip = int(request.url.params["skip"])
        limit = int(request.url.params["limit"])
        return httpx.Response(
            200, json={"items": tickets[skip : skip + limit], "total": len(tickets)}
        )

    return RecordingFactory(handler)


def test_fetch_pages_until_total_is_reached() -> None:
    factory = _paged_handler([_ticket(index) for index in range(4)])
    adapter = LemonadeAdapter(client_factory=factory, page_size=2)

    raw = adapter.fetch(DEFINITION)

    assert len(raw) == 4
    assert [request.url.params["skip"] for request in factory.requests] == ["0", "2"]
    assert factory.requests[0].headers["Authorization"] == "Bearer bearer-token"
    assert factory.paths() == ["/events/evt-1/tickets"] * 2


def test_short_page_ends_pagination() -> None:
    factory = _paged_handler([_ticket(index) for index in range(3)])

    LemonadeAdapter(client_factory=factory, page_size=2).fetch(DEFINITION)

    assert len(factory.requests) == 2


def test_tickets_map_to_atoms() -> None:
    factory = _paged_handler(
        [
            _ticket(1),
            _ticket(2, type="crew", checkedInAt="2026-03-01T09:00:00Z"),
            _ticket(3, cancelled=True),
            _ticket(4, email=None),
            _ticket(5, type="vip"),
        ]
    )
    adapter = LemonadeAdapter(client_factory=factory)

    mapped = adapter.to_atoms(DEFINITION, adapter.fetch(DEFINITION))

    atoms = {atom.position_id: atom for atom in mapped}

    assert sorted(atoms) == ["t1", "t2", "t3"]
    assert atoms["t1"].name == "Holder 1"
    assert atoms["t2"].product_id == "staff"
    assert atoms["t2"].is_consumed
    assert atoms["t2"].provider_checkin_at == datetime(2026, 3, 1, 9, tzinfo=UTC)
    assert atoms["t3"].is_revoked


def test_http_errors_become_fetch_errors() -> None:
    factory = RecordingFactory(lambda _request: httpx.Response(503))

    with pytest.raises(FetchError) as excinfo:
        LemonadeAdapter(client_factory=factory).fetch(DEFINITION)

    assert excinfo.value.provider == "lemonade"


def test_unmapped_event_fails_translation() -> None:
    adapter = LemonadeAdapter(client_factory=_paged_handler([_ticket(1)]))
    raw = adapter.fetch(DEFINITION)
    record = raw.records[0]
    assert isinstance(record, TicketRecord)
    orphan = TicketRecord(event_id="evt-unknown", ticket=record.ticket)

    with pytest.raises(TranslationError):
        adapter.to_atoms(DEFINITION, RawRecords(records=[orphan]))
