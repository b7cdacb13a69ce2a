from __future__ import annotations

import threading
from datetime import timedelta
from typing import TYPE_CHECKING

import pytest

from ticketpipe.adapters.crypto import Ed25519Signer
from ticketpipe.adapters.sqlalchemy import SqlAlchemyTicketUnitOfWork
from ticketpipe.domain.artifact_cache import ArtifactCache, MemoryCacheStore
from ticketpipe.domain.errors import FetchError
from ticketpipe.domain.issuance import TicketIssuer
from ticketpipe.domain.model import CheckinRecord, DeletionPolicy, PipelineState
from ticketpipe.domain.pipeline import Pipeline, PipelineStateError
from ticketpipe.domain.ports.fetching import RawRecords
from ticketpipe.domain.sync import engine
from ticketpipe.domain.sync.engine import apply_sync_plan

from tests.helpers.ticketing import (
    START,
    FakeAdapter,
    MutableClock,
    failing_adapter,
    make_atom,
    make_definition,
    ticket_payload,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from sqlalchemy.engine import Engine

    from ticketpipe.domain.model import Atom, PipelineDefinition
    from ticketpipe.domain.ports.fetching import ProviderAdapter
    from ticketpipe.domain.ports.unit_of_work import TicketRepositories
    from ticketpipe.domain.sync.plan import SyncPlan

type UowFactory = Callable[[], SqlAlchemyTicketUnitOfWork]


def _pipeline(
    adapter: ProviderAdapter,
    factory: UowFactory,
    clock: MutableClock,
    *,
    definition: PipelineDefinition | None = None,
) -> Pipeline:
    issuer = TicketIssuer(
        Ed25519Signer.generate(), ArtifactCache(MemoryCacheStore(max_entries=50)), clock=clock
    )
    return Pipeline(definition or make_definition(), adapter, factory, issuer, clock=clock)


def _stored(factory: UowFactory, pipeline_id: str = "main") -> list[Atom]:
    with factory() as uow:
        return uow.repositories.atoms.list_for_pipeline(pipeline_id)


def test_sync_writes_snapshot_and_skips_unchanged_atoms(
    ticket_uow_factory: UowFactory, clock: MutableClock
) -> None:
    adapter = FakeAdapter()
    adapter.push([make_atom("pos-1"), make_atom("pos-2", email="Other@Example.com")])
    pipeline = _pipeline(adapter, ticket_uow_factory, clock)
    pipeline.start()

    first = pipeline.sync()
    clock.advance(seconds=30)
    second = pipeline.sync()

    assert first is not None and first.success
    assert (first.fetched, first.upserted) == (2, 2)
    assert second is not None and second.success
    assert (second.upserted, second.unchanged) == (0, 2)
    assert [atom.email for atom in _stored(ticket_uow_factory)] == [
        "holder@example.com",
        "other@example.com",
    ]
    assert pipeline.last_successful_sync_at == START + timedelta(seconds=30)


def test_failed_fetch_leaves_store_untouched(
    ticket_uow_factory: UowFactory, clock: MutableClock
) -> None:
    adapter = FakeAdapter()
    adapter.push([make_atom("pos-1")])
    adapter.push(FetchError("503 from provider", provider="fake"))
    pipeline = _pipeline(adapter, ticket_uow_factory, clock)
    pipeline.start()

    assert pipeline.sync() is not None
    clock.advance(minutes=1)
    failed = pipeline.sync()

    assert failed is not None
    assert not failed.success
    assert failed.error == "FetchError"
    assert len(_stored(ticket_uow_factory)) == 1
    assert pipeline.last_successful_sync_at == START


def test_sync_requires_running_pipeline(
    ticket_uow_factory: UowFactory, clock: MutableClock
) -> None:
    adapter = failing_adapter()
    pipeline = _pipeline(adapter, ticket_uow_factory, clock)

    assert pipeline.sync() is None
    pipeline.start()
    pipeline.stop()

    assert pipeline.sync() is None
    assert pipeline.state is PipelineState.STOPPED
    assert adapter.fetches == 0


def test_start_counts_cached_atoms_once(
    ticket_uow_factory: UowFactory, clock: MutableClock
) -> None:
    with ticket_uow_factory() as uow:
        uow.repositories.atoms.upsert(make_atom("pos-1"))
        uow.commit()
    pipeline = _pipeline(FakeAdapter(), ticket_uow_factory, clock)

    pipeline.start()

    assert pipeline.is_serving
    assert pipeline.cached_atoms == 1
    with pytest.raises(PipelineStateError):
        pipeline.start()


def test_consumed_atom_missing_upstream_is_redacted(
    ticket_uow_factory: UowFactory, clock: MutableClock
) -> None:
    kept, gone = make_atom("pos-1"), make_atom("pos-2")
    adapter = FakeAdapter()
    adapter.push([kept, gone])
    adapter.push([kept])
    pipeline = _pipeline(
        adapter,
        ticket_uow_factory,
        clock,
        definition=make_definition(deletion_policy=DeletionPolicy.REDACT_CONSUMED),
    )
    pipeline.start()
    pipeline.sync()
    with ticket_uow_factory() as uow:
        uow.repositories.checkins.add(
            CheckinRecord(
                atom_id=gone.id,
                pipeline_id="main",
                checker_email="staff@example.com",
                checked_in_at=clock(),
            )
        )
        uow.commit()

    result = pipeline.sync()

    assert result is not None
    assert (result.redacted, result.deleted) == (1, 0)
    with ticket_uow_factory() as uow:
        assert uow.repositories.atoms.get(gone.id) is None
        redacted = uow.repositories.redacted_atoms.get(gone.id)
    assert redacted is not None
    assert redacted.hashed_email != gone.email


def _store_state(factory: UowFactory) -> tuple[list[tuple[str, str]], set[str], set[str]]:
    with factory() as uow:
        repositories = uow.repositories
        stored = repositories.atoms.list_for_pipeline("main")
        atoms = sorted((atom.id, atom.name) for atom in stored)
        return (
            atoms,
            repositories.redacted_atoms.list_ids("main"),
            repositories.checkins.consumed_ids("main"),
        )


def test_failed_batch_rolls_back_and_next_sync_recovers(
    ticket_uow_factory: UowFactory, clock: MutableClock, monkeypatch: pytest.MonkeyPatch
) -> None:
    renamed, consumed, dropped = make_atom("pos-1"), make_atom("pos-2"), make_atom("pos-3")
    adapter = FakeAdapter()
    adapter.push([renamed, consumed, dropped])
    adapter.push([make_atom("pos-1", name="Renamed Holder"), make_atom("pos-4")])
    pipeline = _pipeline(
        adapter,
        ticket_uow_factory,
        clock,
        definition=make_definition(deletion_policy=DeletionPolicy.REDACT_CONSUMED),
    )
    pipeline.start()
    pipeline.sync()
    with ticket_uow_factory() as uow:
        uow.repositories.checkins.add(
            CheckinRecord(
                atom_id=consumed.id,
                pipeline_id="main",
                checker_email="staff@example.com",
                checked_in_at=clock(),
            )
        )
        uow.commit()
    before = _store_state(ticket_uow_factory)

    def apply_then_fail(plan: SyncPlan, repositories: TicketRepositories) -> None:
        apply_sync_plan(plan, repositories)
        raise RuntimeError("disk full")

    monkeypatch.setattr(engine, "apply_sync_plan", apply_then_fail)
    failed = pipeline.sync()

    assert failed is not None
    assert not failed.success
    assert failed.error == "SyncCommitError"
    assert _store_state(ticket_uow_factory) == before
    assert pipeline.state is PipelineState.RUNNING

    monkeypatch.undo()
    recovered = pipeline.sync()

    assert recovered is not None and recovered.success
    assert (recovered.upserted, recovered.redacted, recovered.deleted) == (2, 1, 1)
    atoms, redacted_ids, _ = _store_state(ticket_uow_factory)
    assert atoms == sorted([(renamed.id, "Renamed Holder"), (make_atom("pos-4").id, "Holder")])
    assert redacted_ids == {consumed.id}


def test_start_failure_allows_another_start(
    ticket_uow_factory: UowFactory, clock: MutableClock
) -> None:
    attempts = 0

    def flaky_factory() -> SqlAlchemyTicketUnitOfWork:
        nonlocal attempts
        attempts += 1
        if attempts == 1:
            raise RuntimeError("database unavailable")
        return ticket_uow_factory()

    pipeline = _pipeline(FakeAdapter(), flaky_factory, clock)

    with pytest.raises(RuntimeError, match="database unavailable"):
        pipeline.start()
    assert pipeline.state is PipelineState.CREATED

    pipeline.start()
    assert pipeline.is_serving


def test_issue_tickets_skips_revoked_and_reflects_checkins(
    ticket_uow_factory: UowFactory, clock: MutableClock
) -> None:
    valid = make_atom("pos-1")
    adapter = FakeAdapter()
    adapter.push([valid, make_atom("pos-2", is_revoked=True)])
    pipeline = _pipeline(adapter, ticket_uow_factory, clock)
    pipeline.start()
    pipeline.sync()

    issued = pipeline.issue_tickets(email="HOLDER@example.com", commitment="c0ffee")
    with ticket_uow_factory() as uow:
        uow.repositories.checkins.add(
            CheckinRecord(
                atom_id=valid.id,
                pipeline_id="main",
                checker_email="staff@example.com",
                checked_in_at=clock(),
            )
        )
        uow.commit()
    reissued = pipeline.issue_tickets(email="holder@example.com", commitment="c0ffee")

    assert [event_name for event_name, _ in issued] == ["Conference"]
    assert ticket_payload(issued[0][1].pcd)["isConsumed"] is False
    assert ticket_payload(reissued[0][1].pcd)["isConsumed"] is True
    assert issued[0][1].id == reissued[0][1].id


class _BlockingAdapter:
    def __init__(self) -> None:
        self.entered = threading.Event()
        self.release = threading.Event()

    def fetch(self, definition: PipelineDefinition) -> RawRecords:
        self.entered.set()
        self.release.wait(timeout=5)
        return RawRecords(records=[make_atom("pos-1", pipeline_id=definition.id)])

    def to_atoms(self, definition: PipelineDefinition, raw: RawRecords) -> list[Atom]:
        _ = definition
        return list(raw.records)  # type: ignore[arg-type]


def test_overlapping_sync_is_skipped(file_engine: Engine, clock: MutableClock) -> None:
    _ = file_engine
    adapter = _BlockingAdapter()
    pipeline = _pipeline(adapter, SqlAlchemyTicketUnitOfWork, clock)
    pipeline.start()
    results = []
    worker = threading.Thread(target=lambda: results.append(pipeline.sync()))
    worker.start()
    assert adapter.entered.wait(timeout=5)

    skipped = pipeline.sync()
    adapter.release.set()
    worker.join(timeout=5)

    assert skipped is None
    assert len(results) == 1
    assert results[0] is not None and results[0].success
