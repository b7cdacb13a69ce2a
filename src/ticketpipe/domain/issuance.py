"""Turning atoms into signed ticket artifacts."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from ticketpipe.domain.clock import to_millis, utcnow
from ticketpipe.domain.model import TicketCategory, TicketData, build_ticket_artifact

if TYPE_CHECKING:
    from ticketpipe.domain.artifact_cache import ArtifactCache
    from ticketpipe.domain.clock import Clock
    from ticketpipe.domain.model import (
        Atom,
        CheckinRecord,
        PipelineDefinition,
        SerializedArtifact,
    )
    from ticketpipe.domain.ports.signing import Signer

log = getLogger(__name__)


def ticket_from_atom(
    definition: PipelineDefinition,
    atom: Atom,
    checkin: CheckinRecord | None,
    *,
    commitment: str,
    signed_at: int,
) -> TicketData | None:
    """Build the credential payload for ``atom``, or ``None`` if it is no longer mapped."""

    event = definition.event(atom.event_id)
    product = event.product(atom.product_id) if event is not None else None
    if event is None or product is None:
        log.warning(
            "Pipeline %s: atom %s refers to unmapped event/product %s/%s",
            definition.id,
            atom.id,
            atom.event_id,
            atom.product_id,
        )
        return None

    consumed_at = None
    if checkin is not None:
        consumed_at = checkin.checked_in_at
    elif atom.provider_checkin_at is not None:
        consumed_at = atom.provider_checkin_at

    return TicketData(
        event_name=event.name,
        ticket_name=product.name,
        checker_email=checkin.checker_email if checkin is not None else None,
        image_url=event.image_url,
        image_alt_text=event.name if event.image_url else None,
        ticket_id=atom.id,
        event_id=atom.event_id,
        product_id=atom.product_id,
        timestamp_consumed=to_millis(consumed_at) if consumed_at is not None else 0,
        timestamp_signed=signed_at,
        attendee_semaphore_id=commitment,
        is_consumed=atom.is_consumed or checkin is not None,
        is_revoked=atom.is_revoked,
        ticket_category=TicketCategory.GENERIC,
        attendee_name=atom.name,
        attendee_email=atom.email,
    )


class TicketIssuer:
    """Signs ticket data through the artifact cache.

    Identical tickets (ignoring the signing timestamp) are signed once and the
    cached artifact is returned verbatim afterwards.
    """

    def __init__(self, signer: Signer, cache: ArtifactCache, *, clock: Clock = utcnow) -> None:
        self._signer = signer
        self._cache = cache
        self._clock = clock

    @property
    def public_key(self) -> str:
        return self._signer.public_key

    def now_millis(self) -> int:
        return to_millis(self._clock())

    def issue(self, ticket: TicketData) -> SerializedArtifact:
        return self._cache.get_or_create(ticket.fingerprint(), lambda: self._sign(ticket))

    def _sign(self, ticket: TicketData) -> SerializedArtifact:
        signature = self._signer.sign(ticket.signing_message())
        log.debug("Signed ticket %s", ticket.ticket_id)
        return build_ticket_artifact(
            ticket, signature=signature, public_key=self._signer.public_key
        )
