"""Translate Lemonade tickets into atoms."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from ticketpipe.domain.errors import TranslationError
from ticketpipe.domain.model import Atom, make_atom_id

if TYPE_CHECKING:
    from datetime import datetime

    from ticketpipe.domain.model import PipelineDefinition

    from .schema import TicketRecord

log = getLogger(__name__)


def parse_ticket(
    definition: PipelineDefinition,
    record: TicketRecord,
    *,
    updated_at: datetime,
) -> Atom | None:
    event = definition.event_for_external(record.event_id)
    if event is None:
        raise TranslationError(
            f"Lemonade ticket {record.ticket.id} belongs to unmapped event {record.event_id}"
        )

    ticket = record.ticket
    product = event.product_for_external(ticket.ticket_type)
    if product is None:
        log.debug(
            "Skipping Lemonade ticket %s: type %s is not mapped", ticket.id, ticket.ticket_type
        )
        return None
    if not ticket.email:
        log.warning("Skipping Lemonade ticket %s: not assigned to an email", ticket.id)
        return None

    return Atom(
        id=make_atom_id(definition.id, ticket.id),
        pipeline_id=definition.id,
        position_id=ticket.id,
        email=ticket.email,
        name=ticket.name or "",
        event_id=event.event_id,
        product_id=product.product_id,
        is_consumed=ticket.checked_in,
        is_revoked=ticket.cancelled,
        provider_checkin_at=ticket.checked_in_at,
        updated_at=updated_at,
    )


def parse_tickets(
    definition: PipelineDefinition,
    records: list[TicketRecord],
    *,
    updated_at: datetime,
) -> list[Atom]:
    return [
        atom
        for record in records
        if (atom := parse_ticket(definition, record, updated_at=updated_at)) is not None
    ]
