"""Provider synchronisation: diff planning and the per-cycle engine."""

from __future__ import annotations

from .engine import SyncResult, apply_sync_plan, run_sync_cycle
from .plan import SyncPlan, compute_sync_plan, dedupe_atoms

__all__ = [
    "SyncPlan",
    "SyncResult",
    "apply_sync_plan",
    "compute_sync_plan",
    "dedupe_atoms",
    "run_sync_cycle",
]
