"""Online and offline check-in of atoms by superusers.

Consistency failures (unknown, revoked or already consumed tickets, missing
grants) are returned as :class:`TicketError` values so that one bad ticket in
an offline batch never aborts the rest. Re-consuming an atom that was already
checked in here is a successful no-op for any superuser of its event.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING

from ticketpipe.domain.clock import utcnow
from ticketpipe.domain.errors import (
    CheckinConflictError,
    InvalidCredentialError,
    NotAuthorizedError,
)
from ticketpipe.domain.model import CheckinRecord

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping
    from datetime import datetime

    from ticketpipe.domain.clock import Clock
    from ticketpipe.domain.credentials import CredentialVerifier, SerializedCredential
    from ticketpipe.domain.model import Atom, PipelineDefinition, Principal
    from ticketpipe.domain.ports.unit_of_work import TicketRepositories, TicketUnitOfWork

log = getLogger(__name__)


class TicketErrorName(StrEnum):
    INVALID_TICKET = "InvalidTicket"
    ALREADY_CHECKED_IN = "AlreadyCheckedIn"
    TICKET_REVOKED = "TicketRevoked"
    NOT_AUTHORIZED = "NotAuthorized"
    NOT_SUPERUSER = "NotSuperuser"
    INVALID_SIGNATURE = "InvalidSignature"
    SERVER_ERROR = "ServerError"


@dataclass(frozen=True, slots=True, kw_only=True)
class TicketError:
    name: TicketErrorName
    detailed_message: str | None = None
    checker: str | None = None
    checkin_timestamp: datetime | None = None
    revoked_timestamp: datetime | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class CheckinResult:
    success: bool
    error: TicketError | None = None
    # true when an earlier check-in had already consumed the atom
    already_consumed: bool = False


@dataclass(frozen=True, slots=True, kw_only=True)
class TicketInfo:
    ticket_id: str
    event_name: str
    ticket_name: str
    attendee_name: str
    attendee_email: str


@dataclass(frozen=True, slots=True, kw_only=True)
class CheckTicketResult:
    success: bool
    ticket: TicketInfo | None = None
    error: TicketError | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class OfflineTicket:
    id: str
    attendee_email: str
    attendee_name: str
    event_name: str
    ticket_name: str
    checker: str | None
    checkin_timestamp: datetime | None
    is_consumed: bool


@dataclass(frozen=True, slots=True)
class _Admitted:
    atom: Atom
    definition: PipelineDefinition
    existing: CheckinRecord | None = None


def _failed(name: TicketErrorName, message: str) -> CheckinResult:
    return CheckinResult(success=False, error=TicketError(name=name, detailed_message=message))


class CheckinService:
    def __init__(
        self,
        unit_of_work_factory: Callable[[], TicketUnitOfWork],
        definitions: Mapping[str, PipelineDefinition],
        verifier: CredentialVerifier,
        *,
        clock: Clock = utcnow,
    ) -> None:
        self._unit_of_work_factory = unit_of_work_factory
        self._definitions = definitions
        self._verifier = verifier
        self._clock = clock
        self._lock = threading.Lock()

    # online

    def check_in(self, credential: SerializedCredential, atom_id: str) -> CheckinResult:
        try:
            checker = self._authenticate(credential)
            if isinstance(checker, TicketError):
                return CheckinResult(success=False, error=checker)
            return self._consume(checker, atom_id, offline=False)
        except Exception:
            log.exception("Check-in of %s failed", atom_id)
            return _failed(TicketErrorName.SERVER_ERROR, "Unexpected error during check-in")

    def check_ticket(self, credential: SerializedCredential, atom_id: str) -> CheckTicketResult:
        """Validate ``atom_id`` for ``credential`` without consuming it."""

        try:
            checker = self._authenticate(credential)
            if isinstance(checker, TicketError):
                return CheckTicketResult(success=False, error=checker)
            with self._unit_of_work_factory() as uow:
                admitted = self._evaluate(uow.repositories, checker, atom_id)
        except Exception:
            log.exception("Checking ticket %s failed", atom_id)
            return CheckTicketResult(
                success=False,
                error=TicketError(name=TicketErrorName.SERVER_ERROR),
            )

        if isinstance(admitted, TicketError):
            return CheckTicketResult(success=False, error=admitted)
        if admitted.existing is not None:
            return CheckTicketResult(success=False, error=_already_checked_in(admitted.existing))

        atom, definition = admitted.atom, admitted.definition
        event = definition.event(atom.event_id)
        product = event.product(atom.product_id) if event is not None else None
        return CheckTicketResult(
            success=True,
            ticket=TicketInfo(
                ticket_id=atom.id,
                event_name=event.name if event is not None else "",
                ticket_name=product.name if product is not None else "",
                attendee_name=atom.name,
                attendee_email=atom.email,
            ),
        )

    # offline

    def upload_offline_checkins(
        self, credential: SerializedCredential, atom_ids: Iterable[str]
    ) -> None:
        """Consume every valid id; invalid ids are skipped."""

        checker = self._authenticate(credential)
        if isinstance(checker, TicketError):
            log.info("Ignoring offline check-ins: %s", checker.name)
            return
        for atom_id in dict.fromkeys(atom_ids):
            result = self._consume(checker, atom_id, offline=True)
            if not result.success and result.error is not None:
                log.debug("Skipping offline check-in of %s: %s", atom_id, result.error.name)

    def get_offline_tickets(self, credential: SerializedCredential) -> list[OfflineTicket]:
        """Return every atom the checker could consume, for local caching."""

        checker = self._authenticate(credential)
        if isinstance(checker, TicketError):
            if checker.name is TicketErrorName.INVALID_SIGNATURE:
                raise InvalidCredentialError(checker.detailed_message or "Invalid credential")
            raise NotAuthorizedError(checker.detailed_message or "Unknown checker")

        tickets: list[OfflineTicket] = []
        with self._unit_of_work_factory() as uow:
            repositories = uow.repositories
            for definition in self._definitions.values():
                event_ids = _superuser_event_ids(repositories, definition, checker)
                if not event_ids:
                    continue
                atoms = repositories.atoms.list_by_events(definition.id, event_ids)
                checkins = repositories.checkins.list_for_atoms([atom.id for atom in atoms])
                for atom in atoms:
                    if atom.is_revoked:
                        continue
                    tickets.append(_offline_ticket(definition, atom, checkins.get(atom.id)))
        return tickets

    # administration

    def delete_checkin(self, atom_id: str) -> bool:
        with self._lock, self._unit_of_work_factory() as uow:
            deleted = uow.repositories.checkins.delete(atom_id)
            uow.commit()
        if deleted:
            log.info("Deleted check-in of %s", atom_id)
        return deleted

    # internals

    def _authenticate(self, credential: SerializedCredential) -> Principal | TicketError:
        try:
            commitment = self._verifier.verify_checker_credential(credential)
        except InvalidCredentialError as exc:
            return TicketError(name=TicketErrorName.INVALID_SIGNATURE, detailed_message=str(exc))
        with self._unit_of_work_factory() as uow:
            principal = uow.repositories.principals.get_by_commitment(commitment)
        if principal is None:
            return TicketError(
            name=TicketErrorName.NOT_AUTHORIZED,
            detailed_message="Credential does not belong to a known user",
            )
        return principal

    def _consume(self, checker: Principal, atom_id: str, *, offline: bool) -> CheckinResult:
        for _attempt in range(2):
            try:
                return self._consume_once(checker, atom_id, offline=offline)
            except CheckinConflictError:
                log.info("Check-in of %s raced with another writer; re-evaluating", atom_id)
        return _failed(TicketErrorName.SERVER_ERROR, f"Could not check in {atom_id}")

    def _consume_once(self, checker: Principal, atom_id: str, *, offline: bool) -> CheckinResult:
        with self._lock, self._unit_of_work_factory() as uow:
            repositories = uow.repositories
            admitted = self._evaluate(repositories, checker, atom_id)
            if isinstance(admitted, TicketError):
                return CheckinResult(success=False, error=admitted)
            if admitted.existing is not None:
                return CheckinResult(success=True, already_consumed=True)
            atom = admitted.atom
            repositories.checkins.add(
                CheckinRecord(
                    atom_id=atom.id,
                    pipeline_id=atom.pipeline_id,
                    checker_email=checker.email,
                    checked_in_at=self._clock(),
                    offline=offline,
                )
            )
            uow.commit()
        log.info("Checked in %s by %s%s", atom_id, checker.email, " (offline)" if offline else "")
        return CheckinResult(success=True)

    def _evaluate(
        self, repositories: TicketRepositories, checker: Principal, atom_id: str
    ) -> _Admitted | TicketError:
        atom = repositories.atoms.get(atom_id)
        if atom is None:
            redacted = repositories.redacted_atoms.get(atom_id)
            if redacted is not None:
                return TicketError(
                    name=TicketErrorName.TICKET_REVOKED,
                    detailed_message="Ticket is no longer reported by its provider",
                    revoked_timestamp=redacted.redacted_at,
                )
            return TicketError(
                name=TicketErrorName.INVALID_TICKET,
                detailed_message=f"Unknown ticket {atom_id}",
            )

        definition = self._definitions.get(atom.pipeline_id)
        if definition is None:
            return TicketError(
                name=TicketErrorName.INVALID_TICKET,
                detailed_message=f"Ticket belongs to unknown pipeline {atom.pipeline_id}",
            )
        if atom.is_revoked:
            return TicketError(
                name=TicketErrorName.TICKET_REVOKED,
                detailed_message="Ticket was revoked",
                revoked_timestamp=atom.updated_at,
            )
        if atom.event_id not in _superuser_event_ids(repositories, definition, checker):
            return TicketError(
                name=TicketErrorName.NOT_SUPERUSER,
                detailed_message="Checker holds no superuser ticket for this event",
            )

        existing = repositories.checkins.get(atom.id)
        if existing is None and atom.is_consumed:
            return TicketError(
                name=TicketErrorName.ALREADY_CHECKED_IN,
                detailed_message="Ticket was checked in at the provider",
                checkin_timestamp=atom.provider_checkin_at,
            )
        return _Admitted(atom, definition, existing)


def _already_checked_in(record: CheckinRecord) -> TicketError:
    return TicketError(
    name=TicketErrorName.ALREADY_CHECKED_IN,
    detailed_message="Ticket was already checked in",
    checker=record.checker_email,
    checkin_timestamp=record.checked_in_at,
    )


def _superuser_event_ids(
    repositories: TicketRepositories,
    definition: PipelineDefinition,
    checker: Principal,
) -> set[str]:
    """Events of ``definition`` for which ``checker`` holds a superuser ticket."""

    event_ids: set[str] = set()
    for held in repositories.atoms.list_by_email(definition.id, checker.email):
        if held.is_revoked:
            continue
        event = definition.event(held.event_id)
        if event is not None and held.product_id in event.superuser_product_ids:
            event_ids.add(held.event_id)
    return event_ids


def _offline_ticket(
    definition: PipelineDefinition, atom: Atom, checkin: CheckinRecord | None
) -> OfflineTicket:
    event = definition.event(atom.event_id)
    product = event.product(atom.product_id) if event is not None else None
    return OfflineTicket(
        id=atom.id,
        attendee_email=atom.email,
        attendee_name=atom.name,
        event_name=event.name if event is not None else "",
        ticket_name=product.name if product is not None else "",
        checker=checkin.checker_email if checkin is not None else None,
        checkin_timestamp=(
            checkin.checked_in_at if checkin is not None else atom.provider_checkin_at
        ),
        is_consumed=checkin is not None or atom.is_consumed,
    )
