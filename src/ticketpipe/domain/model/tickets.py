"""Ticket credential data and the serialized artifacts issued to holders."""

from __future__ import annotations

import hashlib
import json
from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING, ClassVar, Final

from ticketpipe.domain.model.enums import TicketCategory

if TYPE_CHECKING:
    from collections.abc import Mapping

TICKET_ARTIFACT_TYPE: Final[str] = "eddsa-ticket-pcd"


def canonical_json(payload: Mapping[str, object]) -> str:
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


def stable_artifact_id(ticket_id: str) -> str:
    """Artifact id that stays the same across re-issuance of one ticket."""

    return hashlib.sha256(f"issued-ticket-{ticket_id}".encode()).hexdigest()


@dataclass(frozen=True, slots=True, kw_only=True)
class TicketData:
    """Everything that goes into one issued ticket credential.

    ``timestamp_signed`` is regenerated on every issuance and is therefore
    excluded from :meth:`fingerprint`.
    """

    VOLATILE_FIELDS: ClassVar[frozenset[str]] = frozenset({"timestamp_signed"})

    # display only
    event_name: str
    ticket_name: str
    checker_email: str | None = None
    image_url: str | None = None
    image_alt_text: str | None = None
    # signed
    ticket_id: str
    event_id: str
    product_id: str
    timestamp_consumed: int = 0
    timestamp_signed: int
    attendee_semaphore_id: str
    is_consumed: bool = False
    is_revoked: bool = False
    ticket_category: TicketCategory = TicketCategory.GENERIC
    attendee_name: str
    attendee_email: str

    def to_payload(self) -> dict[str, object]:
        payload = asdict(self)
        payload["ticket_category"] = int(self.ticket_category)
        return {_camel(key): value for key, value in payload.items()}

    def fingerprint(self) -> str:
        """Stable hash of every semantically significant field."""

        payload = {
            key: value
            for key, value in self.to_payload().items()
            if key not in {_camel(name) for name in self.VOLATILE_FIELDS}
        }
        return hashlib.sha256(canonical_json(payload).encode("utf-8")).hexdigest()

    def signing_message(self) -> bytes:
        return canonical_json(self.to_payload()).encode("utf-8")


@dataclass(frozen=True, slots=True)
class SerializedArtifact:
    """Wire form of an issued credential: a type tag plus an opaque JSON document."""

    type: str
    pcd: str

    @property
    def id(self) -> str:
        document = json.loads(self.pcd)
        return str(document["id"])

    def to_json(self) -> str:
        return canonical_json({"type": self.type, "pcd": self.pcd})

    @classmethod
    def from_json(cls, raw: str) -> SerializedArtifact:
        document = json.loads(raw)
        return cls(type=str(document["type"]), pcd=str(document["pcd"]))


def build_ticket_artifact(
    ticket: TicketData, *, signature: str, public_key: str
) -> SerializedArtifact:
    pcd = canonical_json(
        {
            "id": stable_artifact_id(ticket.ticket_id),
            "ticket": ticket.to_payload(),
            "signature": signature,
            "publicKey": public_key,
        }
    )
    return SerializedArtifact(type=TICKET_ARTIFACT_TYPE, pcd=pcd)
