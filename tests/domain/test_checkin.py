from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta
from typing import TYPE_CHECKING

import pytest

from ticketpipe.adapters.crypto import verify_ed25519_signature
from ticketpipe.adapters.sqlalchemy import SqlAlchemyTicketUnitOfWork
from ticketpipe.domain.artifact_cache import MemoryCacheStore, VerificationCache
from ticketpipe.domain.checkin import CheckinService, TicketErrorName
from ticketpipe.domain.credentials import CredentialVerifier, build_signature_credential
from ticketpipe.domain.errors import NotAuthorizedError
from ticketpipe.domain.model import Principal, make_atom_id

from tests.helpers.ticketing import (
    CONFERENCE,
    START,
    WORKSHOP,
    Holder,
    MutableClock,
    make_atom,
    make_definition,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from sqlalchemy.engine import Engine

    from ticketpipe.domain.model import Atom

type UowFactory = Callable[[], SqlAlchemyTicketUnitOfWork]

DEFINITION = make_definition(events=(CONFERENCE, WORKSHOP))
TICKET_ID = make_atom_id("main", "pos-7")
WORKSHOP_TICKET_ID = make_atom_id("main", "pos-8")
REVOKED_ID = make_atom_id("main", "pos-9")
CONSUMED_UPSTREAM_ID = make_atom_id("main", "pos-10")


def _ticket() -> Atom:
    return make_atom("pos-7", email="attendee@example.com", name="Ada Attendee")


def _ticket_atoms() -> list[Atom]:
    return [
        _ticket(),
        make_atom("pos-8", email="attendee@example.com", event_id="43", product_id="workshop"),
        make_atom("pos-9", email="late@example.com", is_revoked=True),
        make_atom(
            "pos-10", email="early@example.com", is_consumed=True, provider_checkin_at=START
        ),
    ]


def _seed(factory: UowFactory, *checkers: tuple[Holder, str]) -> None:
    with factory() as uow:
        repositories = uow.repositories
        for atom in _ticket_atoms():
            repositories.atoms.upsert(atom)
        for index, (holder, email) in enumerate(checkers):
            repositories.atoms.upsert(make_atom(f"staff-{index}", email=email, product_id="staff"))
            repositories.principals.add(Principal(commitment=holder.commitment, email=email))
        uow.commit()


def _service(factory: UowFactory, clock: MutableClock) -> CheckinService:
    verifier = CredentialVerifier(
        verify_ed25519_signature,
        VerificationCache(MemoryCacheStore(max_entries=50)),
        max_age=timedelta(minutes=10),
        clock=clock,
    )
    return CheckinService(factory, {DEFINITION.id: DEFINITION}, verifier, clock=clock)


@pytest.fixture
def staff() -> Holder:
    return Holder()


@pytest.fixture
def service(
    ticket_uow_factory: UowFactory, clock: MutableClock, staff: Holder
) -> CheckinService:
    _seed(ticket_uow_factory, (staff, "staff@example.com"))
    return _service(ticket_uow_factory, clock)


def test_check_in_then_repeat_by_same_checker_is_idempotent(
    service: CheckinService, staff: Holder
) -> None:
    first = service.check_in(staff.checker_credential(), TICKET_ID)
    second = service.check_in(staff.checker_credential(), TICKET_ID)

    assert first.success and not first.already_consumed
    assert second.success and second.already_consumed


def test_second_superuser_retry_is_a_no_op(
    ticket_uow_factory: UowFactory, clock: MutableClock
) -> None:
    first_staff, second_staff = Holder(), Holder()
    _seed(
        ticket_uow_factory,
        (first_staff, "first@example.com"),
        (second_staff, "second@example.com"),
    )
    service = _service(ticket_uow_factory, clock)
    service.check_in(first_staff.checker_credential(), TICKET_ID)
    clock.advance(seconds=30)

    result = service.check_in(second_staff.checker_credential(), TICKET_ID)

    assert result.success and result.already_consumed
    assert result.error is None
    with ticket_uow_factory() as uow:
        record = uow.repositories.checkins.get(TICKET_ID)
    assert record is not None
    assert record.checker_email == "first@example.com"
    assert record.checked_in_at == START


@pytest.mark.parametrize(
    ("atom_id", "expected"),
    [
        (WORKSHOP_TICKET_ID, TicketErrorName.NOT_SUPERUSER),
        (REVOKED_ID, TicketErrorName.TICKET_REVOKED),
        (CONSUMED_UPSTREAM_ID, TicketErrorName.ALREADY_CHECKED_IN),
        ("not-a-ticket", TicketErrorName.INVALID_TICKET),
    ],
)
def test_check_in_rejections(
    service: CheckinService, staff: Holder, atom_id: str, expected: TicketErrorName
) -> None:
    result = service.check_in(staff.checker_credential(), atom_id)

    assert not result.success
    assert result.error is not None
    assert result.error.name is expected


def test_unknown_checker_is_not_authorized(service: CheckinService) -> None:
    result = service.check_in(Holder().checker_credential(), TICKET_ID)

    assert result.error is not None
    assert result.error.name is TicketErrorName.NOT_AUTHORIZED


def test_wrong_message_is_an_invalid_signature(service: CheckinService, staff: Holder) -> None:
    credential = build_signature_credential(staff.signer, "let me in")

    result = service.check_in(credential, TICKET_ID)

    assert result.error is not None
    assert result.error.name is TicketErrorName.INVALID_SIGNATURE


def test_redacted_ticket_is_reported_revoked(
    service: CheckinService, staff: Holder, ticket_uow_factory: UowFactory
) -> None:
    with ticket_uow_factory() as uow:
        uow.repositories.redacted_atoms.upsert(_ticket().redact(redacted_at=START))
        uow.repositories.atoms.delete([TICKET_ID])
        uow.commit()

    result = service.check_in(staff.checker_credential(), TICKET_ID)

    assert result.error is not None
    assert result.error.name is TicketErrorName.TICKET_REVOKED
    assert result.error.revoked_timestamp == START


def test_check_ticket_describes_without_consuming(service: CheckinService, staff: Holder) -> None:
    checked = service.check_ticket(staff.checker_credential(), TICKET_ID)
    service.check_in(staff.checker_credential(), TICKET_ID)
    after = service.check_ticket(staff.checker_credential(), TICKET_ID)

    assert checked.success
    assert checked.ticket is not None
    assert (checked.ticket.event_name, checked.ticket.ticket_name) == (
        "Conference",
        "General Admission",
    )
    assert checked.ticket.attendee_name == "Ada Attendee"
    assert not after.success
    assert after.error is not None
    assert after.error.name is TicketErrorName.ALREADY_CHECKED_IN


def test_offline_tickets_cover_superuser_events(service: CheckinService, staff: Holder) -> None:
    service.check_in(staff.checker_credential(), TICKET_ID)

    offline = service.get_offline_tickets(staff.checker_credential())
    tickets = {ticket.id: ticket for ticket in offline}

    assert WORKSHOP_TICKET_ID not in tickets
    assert REVOKED_ID not in tickets
    assert tickets[TICKET_ID].is_consumed
    assert tickets[TICKET_ID].checker == "staff@example.com"
    assert tickets[CONSUMED_UPSTREAM_ID].checkin_timestamp == START
    with pytest.raises(NotAuthorizedError):
        service.get_offline_tickets(Holder().checker_credential())


def test_offline_upload_consumes_valid_ids_and_skips_the_rest(
    service: CheckinService, staff: Holder
) -> None:
    service.upload_offline_checkins(
        staff.checker_credential(), [TICKET_ID, "not-a-ticket", REVOKED_ID, TICKET_ID]
    )

    offline = service.get_offline_tickets(staff.checker_credential())
    tickets = {ticket.id: ticket for ticket in offline}
    assert tickets[TICKET_ID].is_consumed
    assert tickets[TICKET_ID].checker == "staff@example.com"
    assert tickets[CONSUMED_UPSTREAM_ID].checker is None


def test_deleted_checkin_can_be_repeated(service: CheckinService, staff: Holder) -> None:
    service.check_in(staff.checker_credential(), TICKET_ID)

    assert service.delete_checkin(TICKET_ID)
    assert not service.delete_checkin(TICKET_ID)
    result = service.check_in(staff.checker_credential(), TICKET_ID)
    assert result.success and not result.already_consumed


def test_concurrent_checkins_consume_once(file_engine: Engine, clock: MutableClock) -> None:
    _ = file_engine
    checkers = [Holder() for _ in range(4)]
    _seed(
        SqlAlchemyTicketUnitOfWork,
        *((holder, f"staff{index}@example.com") for index, holder in enumerate(checkers)),
    )
    service = _service(SqlAlchemyTicketUnitOfWork, clock)
    credentials = [holder.checker_credential() for holder in checkers]

    with ThreadPoolExecutor(max_workers=4) as pool:
        results = list(pool.map(lambda c: service.check_in(c, TICKET_ID), credentials * 2))

    fresh = [result for result in results if result.success and not result.already_consumed]
    repeated = [result for result in results if result.success and result.already_consumed]
    assert len(fresh) == 1
    assert len(repeated) == len(results) - 1
    with SqlAlchemyTicketUnitOfWork() as uow:
        checkins = uow.repositories.checkins
        assert list(checkins.list_for_atoms([TICKET_ID])) == [TICKET_ID]
        assert checkins.consumed_ids("main") == {TICKET_ID}
