"""Diffing a fresh provider snapshot against the atom store.

The plan is computed from plain values so it can be reasoned about (and
tested) without a database. Applying it is the engine's job.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from ticketpipe.domain.model import DeletionPolicy

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence, Set
    from datetime import datetime

    from ticketpipe.domain.model import Atom, RedactedAtom

log = getLogger(__name__)


@dataclass(slots=True, kw_only=True)
class SyncPlan:
    """Store mutations that bring one pipeline in line with its provider."""

    pipeline_id: str
    upserts: list[Atom] = field(default_factory=list)
    deletions: list[str] = field(default_factory=list)
    redactions: list[RedactedAtom] = field(default_factory=list)
    # redacted ids the provider reports again; they return as regular atoms
    unredacted: list[str] = field(default_factory=list)
    unchanged: int = 0

    @property
    def is_empty(self) -> bool:
        return not (self.upserts or self.deletions or self.redactions or self.unredacted)


def dedupe_atoms(atoms: Iterable[Atom]) -> list[Atom]:
    """Keep the last atom reported for each id, preserving first-seen order."""

    by_id: dict[str, Atom] = {}
    for atom in atoms:
        if atom.id in by_id:
            log.warning("Provider reported position %s twice; keeping the last", atom.position_id)
        by_id[atom.id] = atom
    return list(by_id.values())


def compute_sync_plan(
    *,
    pipeline_id: str,
    incoming: Sequence[Atom],
    existing: Sequence[Atom],
    consumed_ids: Set[str],
    redacted_ids: Set[str],
    policy: DeletionPolicy,
    now: datetime,
) -> SyncPlan:
    plan = SyncPlan(pipeline_id=pipeline_id)
    current = {atom.id: atom for atom in existing}
    fresh = dedupe_atoms(incoming)
    fresh_ids = {atom.id for atom in fresh}

    for atom in fresh:
        previous = current.get(atom.id)
        if previous is not None and previous.content_key() == atom.content_key():
            plan.unchanged += 1
            continue
        atom.updated_at = now
        plan.upserts.append(atom)
        if atom.id in redacted_ids:
            plan.unredacted.append(atom.id)

    for atom_id, atom in current.items():
        if atom_id in fresh_ids:
            continue
        if policy is DeletionPolicy.REDACT_CONSUMED and atom_id in consumed_ids:
            plan.redactions.append(atom.redact(redacted_at=now))
        plan.deletions.append(atom_id)

    return plan
