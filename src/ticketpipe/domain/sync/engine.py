"""One synchronisation cycle: fetch, map, diff, guard deletions, commit."""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from ticketpipe.domain.clock import utcnow
from ticketpipe.domain.errors import SyncCommitError
from ticketpipe.domain.sync.plan import SyncPlan, compute_sync_plan

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime

    from ticketpipe.domain.clock import Clock
    from ticketpipe.domain.model import PipelineDefinition
    from ticketpipe.domain.ports.fetching import ProviderAdapter
    from ticketpipe.domain.ports.unit_of_work import TicketRepositories, TicketUnitOfWork

log = getLogger(__name__)


@dataclass(slots=True, kw_only=True)
class SyncResult:
    pipeline_id: str
    started_at: datetime
    finished_at: datetime
    success: bool
    fetched: int = 0
    upserted: int = 0
    deleted: int = 0
    redacted: int = 0
    unredacted: int = 0
    unchanged: int = 0
    error: str | None = None
    message: str | None = None


def apply_sync_plan(plan: SyncPlan, repositories: TicketRepositories) -> None:
    """Write ``plan`` through ``repositories``. The caller owns the transaction."""

    for redacted in plan.redactions:
        repositories.redacted_atoms.upsert(redacted)
    if plan.deletions:
        repositories.atoms.delete(plan.deletions)
    if plan.unredacted:
        repositories.redacted_atoms.delete(plan.unredacted)
    for atom in plan.upserts:
        repositories.atoms.upsert(atom)


def run_sync_cycle(
    definition: PipelineDefinition,
    adapter: ProviderAdapter,
    unit_of_work_factory: Callable[[], TicketUnitOfWork],
    *,
    clock: Clock = utcnow,
) -> SyncResult:
    """Run one cycle for ``definition``.

    Fetch and mapping failures propagate untouched and leave the store as it
    was. Failures while applying the plan are rolled back and re-raised as
    :class:`SyncCommitError`.
    """

    started_at = clock()
    raw = adapter.fetch(definition)
    incoming = adapter.to_atoms(definition, raw)

    try:
        with unit_of_work_factory() as uow:
            repositories = uow.repositories
            plan = compute_sync_plan(
                pipeline_id=definition.id,
                incoming=incoming,
                existing=repositories.atoms.list_for_pipeline(definition.id),
                consumed_ids=repositories.checkins.consumed_ids(definition.id),
                redacted_ids=repositories.redacted_atoms.list_ids(definition.id),
                policy=definition.effective_deletion_policy,
                now=clock(),
            )
            apply_sync_plan(plan, repositories)
            uow.commit()
    except Exception as exc:
        raise SyncCommitError(f"Pipeline {definition.id}: sync batch failed: {exc}") from exc

    return SyncResult(
        pipeline_id=definition.id,
        started_at=started_at,
        finished_at=clock(),
        success=True,
        fetched=len(raw),
        upserted=len(plan.upserts),
        deleted=len(plan.deletions) - len(plan.redactions),
        redacted=len(plan.redactions),
        unredacted=len(plan.unredacted),
        unchanged=plan.unchanged,
    )
