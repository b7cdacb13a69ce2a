"""Atoms: normalised provider records held by a pipeline, and their consumption state."""

from __future__ import annotations

import hashlib
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Final

ATOM_NAMESPACE: Final[uuid.UUID] = uuid.UUID("5b1f9f8e-6f47-4a43-9a43-1c6f3d0e2a11")


def _utcnow() -> datetime:
    return datetime.now(UTC)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def hash_email(email: str) -> str:
    """Return the stable hashed identifier used for redacted atoms."""

    return hashlib.sha256(normalize_email(email).encode("utf-8")).hexdigest()


def make_atom_id(pipeline_id: str, position_id: str) -> str:
    """Deterministic atom id for a provider position, unique across pipelines."""

    return str(uuid.uuid5(ATOM_NAMESPACE, f"{pipeline_id}:{position_id}"))


@dataclass(eq=False, kw_only=True)
class Atom:
    """One ticket position as last reported by a provider.

    ``is_consumed`` and ``provider_checkin_at`` reflect check-ins made at the
    provider itself; local check-ins live in :class:`CheckinRecord`.
    """

    id: str
    pipeline_id: str
    position_id: str
    email: str
    name: str
    event_id: str
    product_id: str
    secret: str | None = None
    is_consumed: bool = False
    is_revoked: bool = False
    provider_checkin_at: datetime | None = None
    updated_at: datetime = field(default_factory=_utcnow)

    def __post_init__(self) -> None:
        self.email = normalize_email(self.email)

    def content_key(self) -> tuple[object, ...]:
        """Fields whose change makes a sync rewrite the atom."""

        return (
            self.email,
            self.name,
            self.event_id,
            self.product_id,
            self.secret,
            self.is_consumed,
            self.is_revoked,
            self.provider_checkin_at,
        )

    def redact(self, *, redacted_at: datetime | None = None) -> RedactedAtom:
        return RedactedAtom(
            id=self.id,
            pipeline_id=self.pipeline_id,
            position_id=self.position_id,
            hashed_email=hash_email(self.email),
            event_id=self.event_id,
            product_id=self.product_id,
            secret=self.secret,
            is_consumed=self.is_consumed,
            provider_checkin_at=self.provider_checkin_at,
            redacted_at=redacted_at or _utcnow(),
        )


@dataclass(eq=False, kw_only=True)
class RedactedAtom:
    """An atom withdrawn upstream after it was consumed, held under a hashed email."""

    id: str
    pipeline_id: str
    position_id: str
    hashed_email: str
    event_id: str
    product_id: str
    secret: str | None = None
    is_consumed: bool = False
    provider_checkin_at: datetime | None = None
    redacted_at: datetime = field(default_factory=_utcnow)

    def restore(self, email: str, *, name: str = "") -> Atom:
        """Re-key the atom to a verified email whose hash matches."""

        if hash_email(email) != self.hashed_email:
            raise ValueError(f"Email does not match redacted atom {self.id}")
        return Atom(
            id=self.id,
            pipeline_id=self.pipeline_id,
            position_id=self.position_id,
            email=email,
            name=name,
            event_id=self.event_id,
            product_id=self.product_id,
            secret=self.secret,
            is_consumed=self.is_consumed,
            provider_checkin_at=self.provider_checkin_at,
        )


@dataclass(eq=False, kw_only=True)
class CheckinRecord:
    """Local consumption of an atom. At most one exists per atom id."""

    atom_id: str
    pipeline_id: str
    checker_email: str
    checked_in_at: datetime
    offline: bool = False


@dataclass(eq=False, kw_only=True)
class Principal:
    """A holder identity: public identity commitment linked to a verified email."""

    commitment: str
    email: str
    created_at: datetime = field(default_factory=_utcnow)

    def __post_init__(self) -> None:
        self.email = normalize_email(self.email)
