"""Domain port definitions for adapters."""

from __future__ import annotations

from .cache import CacheStore
from .fetching import ProviderAdapter, RawRecords
from .persistence import (
    AtomRepository,
    CacheEntryRepository,
    CheckinRepository,
    PrincipalRepository,
    RedactedAtomRepository,
)
from .signing import SignatureVerifier, Signer
from .unit_of_work import (
    CacheRepositories,
    CacheUnitOfWork,
    RepositoryCollection,
    TicketRepositories,
    TicketUnitOfWork,
    UnitOfWork,
)

__all__ = [
    "AtomRepository",
    "CacheEntryRepository",
    "CacheRepositories",
    "CacheStore",
    "CacheUnitOfWork",
    "CheckinRepository",
    "PrincipalRepository",
    "ProviderAdapter",
    "RawRecords",
    "RedactedAtomRepository",
    "RepositoryCollection",
    "SignatureVerifier",
    "Signer",
    "TicketRepositories",
    "TicketUnitOfWork",
    "UnitOfWork",
]
