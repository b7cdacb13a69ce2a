"""Translate Pretix order positions into atoms."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from ticketpipe.domain.errors import TranslationError
from ticketpipe.domain.model import Atom, make_atom_id

from .schema import PositionRecord

if TYPE_CHECKING:
    from datetime import datetime

    from ticketpipe.domain.model import PipelineDefinition

log = getLogger(__name__)


def parse_position(
    definition: PipelineDefinition,
    record: PositionRecord,
    *,
    updated_at: datetime,
) -> Atom | None:
    """Return the atom for one position, or ``None`` when it should not be held.

    Positions of unmapped items and positions without any email are skipped.
    """

    event = definition.event_for_external(record.event_slug)
    if event is None:
        raise TranslationError(
            f"Pretix position {record.position.id} belongs to unmapped event {record.event_slug}"
        )

    position = record.position
    product = event.product_for_external(str(position.item))
    if product is None:
        log.debug("Skipping Pretix position %s: item %s is not mapped", position.id, position.item)
        return None

    email = position.attendee_email or record.order.email
    if email is None:
        log.warning(
            "Skipping Pretix position %s of order %s: no email", position.id, record.order.code
        )
        return None

    checkin_times = sorted(checkin.checked_at for checkin in position.checkins)
    position_id = f"{record.event_slug}:{position.id}"
    return Atom(
        id=make_atom_id(definition.id, position_id),
        pipeline_id=definition.id,
        position_id=position_id,
        email=email,
        name=position.attendee_name or "",
        event_id=event.event_id,
        product_id=product.product_id,
        secret=position.secret,
        is_consumed=bool(checkin_times),
        is_revoked=position.canceled,
        provider_checkin_at=checkin_times[0] if checkin_times else None,
        updated_at=updated_at,
    )


def parse_positions(
    definition: PipelineDefinition,
    records: list[PositionRecord],
    *,
    updated_at: datetime,
) -> list[Atom]:
    atoms: list[Atom] = []
    for record in records:
        atom = parse_position(definition, record, updated_at=updated_at)
        if atom is not None:
            atoms.append(atom)
    return atoms
