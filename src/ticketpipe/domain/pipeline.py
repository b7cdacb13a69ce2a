"""The pipeline: one provider, its atom scope, and the sync loop state machine."""

from __future__ import annotations

import threading
from logging import getLogger
from typing import TYPE_CHECKING

from ticketpipe.domain.clock import utcnow
from ticketpipe.domain.errors import SyncCommitError, TransientError
from ticketpipe.domain.issuance import ticket_from_atom
from ticketpipe.domain.model import PipelineState, SyncPhase
from ticketpipe.domain.sync import SyncResult, run_sync_cycle

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime

    from ticketpipe.domain.clock import Clock
    from ticketpipe.domain.issuance import TicketIssuer
    from ticketpipe.domain.model import PipelineDefinition, SerializedArtifact
    from ticketpipe.domain.ports.fetching import ProviderAdapter
    from ticketpipe.domain.ports.unit_of_work import TicketUnitOfWork

log = getLogger(__name__)


class PipelineStateError(RuntimeError):
    """Raised when a lifecycle transition is not allowed from the current state."""


class Pipeline:
    """Runs sync cycles for one definition and issues tickets from its atoms.

    Lifecycle: ``CREATED -> STARTING -> RUNNING -> STOPPED``. While running, a
    sync moves the pipeline between ``IDLE`` and ``SYNCING``. Cycles of one
    pipeline never overlap: a sync requested while another is applying is
    skipped and returns ``None``.
    """

    def __init__(
        self,
        definition: PipelineDefinition,
        adapter: ProviderAdapter,
        unit_of_work_factory: Callable[[], TicketUnitOfWork],
        issuer: TicketIssuer,
        *,
        clock: Clock = utcnow,
    ) -> None:
        self.definition = definition
        self._adapter = adapter
        self._unit_of_work_factory = unit_of_work_factory
        self._issuer = issuer
        self._clock = clock
        self._sync_lock = threading.Lock()
        self._state_lock = threading.Lock()
        self.state = PipelineState.CREATED
        self.phase = SyncPhase.IDLE
        self.cached_atoms = 0
        self.last_sync: SyncResult | None = None
        self.last_successful_sync_at: datetime | None = None

    @property
    def id(self) -> str:
        return self.definition.id

    @property
    def is_serving(self) -> bool:
        return self.state is PipelineState.RUNNING

    def start(self) -> None:
        """Load what the store already holds so feeds can be served before the first sync."""

        with self._state_lock:
            if self.state is not PipelineState.CREATED:
                raise PipelineStateError(f"Pipeline {self.id} cannot start from {self.state}")
            self.state = PipelineState.STARTING

        try:
            with self._unit_of_work_factory() as uow:
                self.cached_atoms = uow.repositories.atoms.count(self.id)
        except Exception:
            log.exception("Pipeline %s failed to load cached atoms", self.id)
            with self._state_lock:
                self.state = PipelineState.CREATED
            raise

        with self._state_lock:
            self.state = PipelineState.RUNNING
        log.info("Pipeline %s running with %d cached atoms", self.id, self.cached_atoms)

    def stop(self) -> None:
        with self._state_lock:
            if self.state is PipelineState.STOPPED:
                return
            self.state = PipelineState.STOPPED
        log.info("Pipeline %s stopped", self.id)

    def sync(self) -> SyncResult | None:
        if not self.is_serving:
            log.warning("Pipeline %s is %s; not syncing", self.id, self.state)
            return None
        if not self._sync_lock.acquire(blocking=False):
            log.info("Pipeline %s: previous sync still running, skipping", self.id)
            return None
        try:
            self.phase = SyncPhase.SYNCING
            result = self._run_cycle()
            self.last_sync = result
            if result.success:
                self.last_successful_sync_at = result.finished_at
            return result
        finally:
            self.phase = SyncPhase.IDLE
            self._sync_lock.release()

    def _run_cycle(self) -> SyncResult:
        started_at = self._clock()
        log.info("Pipeline %s: sync started", self.id)
        try:
            result = run_sync_cycle(
                self.definition,
                self._adapter,
                self._unit_of_work_factory,
                clock=self._clock,
            )
        except TransientError as exc:
            log.warning("Pipeline %s: sync aborted, store untouched: %s", self.id, exc)
            return self._failed(started_at, exc.name, str(exc))
        except SyncCommitError as exc:
            log.exception("Pipeline %s: sync batch rolled back", self.id)
            return self._failed(started_at, exc.name, str(exc))

        log.info(
            "Pipeline %s: sync finished: fetched=%d upserted=%d deleted=%d redacted=%d "
            "unredacted=%d unchanged=%d",
            self.id,
            result.fetched,
            result.upserted,
            result.deleted,
            result.redacted,
            result.unredacted,
            result.unchanged,
        )
        return result

    def _failed(self, started_at: datetime, error: str, message: str) -> SyncResult:
        return SyncResult(
            pipeline_id=self.id,
            started_at=started_at,
            finished_at=self._clock(),
            success=False,
            error=error,
            message=message,
        )

    def issue_tickets(self, *, email: str, commitment: str) -> list[tuple[str, SerializedArtifact]]:
        """Return ``(event name, artifact)`` for every valid ticket held by ``email``."""

        with self._unit_of_work_factory() as uow:
            repositories = uow.repositories
            atoms = repositories.atoms.list_by_email(self.id, email)
            checkins = repositories.checkins.list_for_atoms([atom.id for atom in atoms])

        signed_at = self._issuer.now_millis()
        issued: list[tuple[str, SerializedArtifact]] = []
        for atom in sorted(atoms, key=lambda item: (item.event_id, item.id)):
            if atom.is_revoked:
                continue
            ticket = ticket_from_atom(
                self.definition,
                atom,
                checkins.get(atom.id),
                commitment=commitment,
                signed_at=signed_at,
            )
            if ticket is None:
                continue
            issued.append((ticket.event_name, self._issuer.issue(ticket)))
        return issued
