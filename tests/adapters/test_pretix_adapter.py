from __future__ import annotations

import logging
from datetime import UTC, datetime

import httpx
import pytest

from ticketpipe.adapters.pretix import PretixAdapter
from ticketpipe.domain.errors import FetchError
from ticketpipe.domain.model import (
    EventMapping,
    PipelineDefinition,
    PretixOptions,
    ProductMapping,
    ProviderType,
    make_atom_id,
)

from tests.helpers.http import RecordingFactory

ORG_URL = "https://pretix.example/api/v1/organizers/acme"
EVENT_PATH = "/api/v1/organizers/acme/events/conf"

DEFINITION = PipelineDefinition(
    id="pretix-main",
    provider=ProviderType.PRETIX,
    options=PretixOptions(org_url=f"{ORG_URL}/", token="secret"),
    events=(
        EventMapping(
            external_id="conf",
            event_id="42",
            name="Conference",
            products=(
                ProductMapping(external_id="101", product_id="general", name="General"),
                ProductMapping(
                    external_id="102", product_id="staff", name="Staff", is_superuser=True
                ),
            ),
        ),
    ),
    feeds=(),
)

EVENT = {"slug": "conf", "name": {"en": "Conference", "de": "Konferenz"}}
ITEMS = {
    "count": 2,
    "next": None,
    "results": [{"id": 101, "name": {"en": "General"}}, {"id": 102, "name": "Staff"}],
}
FIRST_ORDERS = {
    "count": 3,
    "next": f"{ORG_URL}/events/conf/orders/?page=2&include_canceled_positions=true",
    "results": [
        {
            "code": "ABC12",
            "status": "p",
            "email": "Buyer@Example.com",
            "positions": [
                {
                    "id": 1,
                    "item": 101,
                    "attendee_name": "Ada",
                    "attendee_email": "",
                    "secret": "s1",
                },
                {
                    "id": 2,
                    "item": 102,
                    "attendee_name": "Grace",
                    "attendee_email": "staff@example.com",
                    "checkins": [
                        {"datetime": "2026-03-01T10:00:00Z", "list": 1},
                        {"datetime": "2026-03-01T09:30:00Z", "list": 2},
                    ],
                },
            ],
        },
        {
            "code": "PEND1",
            "status": "n",
            "email": "pending@example.com",
            "positions": [{"id": 5, "item": 101}],
        },
    ],
}
SECOND_ORDERS = {
    "count": 3,
    "next": None,
    "results": [
        {
            "code": "XYZ99",
            "status": "p",
            "email": "late@example.com",
            "positions": [
                {"id": 3, "item": 101, "canceled": True},
                {"id": 4, "item": 999},
            ],
        },
    ],
}


def _handler(request: httpx.Request) -> httpx.Response:
    path = request.url.path
    if path == f"{EVENT_PATH}/":
        return httpx.Response(200, json=EVENT)
    if path == f"{EVENT_PATH}/items/":
        return httpx.Response(200, json=ITEMS)
    if path == f"{EVENT_PATH}/orders/":
        page = SECOND_ORDERS if request.url.params.get("page") == "2" else FIRST_ORDERS
        return httpx.Response(200, json=page)
    return httpx.Response(404, json={"detail": "Not found."})


def test_fetch_reads_paid_positions_across_pages() -> None:
    factory = RecordingFactory(_handler)
    adapter = PretixAdapter(client_factory=factory)

    atoms = adapter.to_atoms(DEFINITION, adapter.fetch(DEFINITION))

    by_position = {atom.position_id: atom for atom in atoms}
    assert sorted(by_position) == ["conf:1", "conf:2", "conf:3"]
    assert by_position["conf:1"].id == make_atom_id("pretix-main", "conf:1")
    assert by_position["conf:1"].email == "buyer@example.com"
    assert by_position["conf:1"].secret == "s1"
    staff = by_position["conf:2"]
    assert staff.product_id == "staff"
    assert staff.is_consumed
    assert staff.provider_checkin_at == datetime(2026, 3, 1, 9, 30, tzinfo=UTC)
    assert by_position["conf:3"].is_revoked
    assert factory.profiles == ["pretix-metadata", "pretix-orders"]


def test_fetch_authenticates_and_requests_canceled_positions() -> None:
    factory = RecordingFactory(_handler)

    PretixAdapter(client_factory=factory).fetch(DEFINITION)

    assert {request.headers["Authorization"] for request in factory.requests} == {"Token secret"}
    orders = [request for request in factory.requests if request.url.path.endswith("/orders/")]
    assert len(orders) == 2
    assert orders[0].url.params["include_canceled_positions"] == "true"
    assert orders[1].url.params["page"] == "2"


def test_missing_items_are_reported(caplog: pytest.LogCaptureFixture) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/items/"):
            return httpx.Response(
                200, json={"count": 1, "next": None, "results": [{"id": 101, "name": "General"}]}
            )
        return _handler(request)

    with caplog.at_level(logging.WARNING, logger="ticketpipe.adapters.pretix.client"):
        PretixAdapter(client_factory=RecordingFactory(handler)).fetch(DEFINITION)

    assert "has no item 102" in caplog.text


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(401, json={"detail": "Invalid token."}),
        httpx.Response(200, json={"unexpected": True}),
    ],
)
def test_provider_failures_become_fetch_errors(response: httpx.Response) -> None:
    adapter = PretixAdapter(client_factory=RecordingFactory(lambda _request: response))

    with pytest.raises(FetchError) as excinfo:
        adapter.fetch(DEFINITION)

    assert excinfo.value.provider == "pretix"


def test_network_errors_become_fetch_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(FetchError, match="request failed"):
        PretixAdapter(client_factory=RecordingFactory(handler)).fetch(DEFINITION)
