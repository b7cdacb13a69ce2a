"""Holder identities and the identity-link flow that restores redacted atoms."""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from ticketpipe.domain.model import Principal, hash_email, normalize_email

if TYPE_CHECKING:
    from collections.abc import Callable

    from ticketpipe.domain.ports.unit_of_work import TicketRepositories, TicketUnitOfWork

log = getLogger(__name__)


class IdentityConflictError(ValueError):
    """Raised when a commitment is already linked to a different email."""


@dataclass(slots=True, kw_only=True)
class LinkResult:
    principal: Principal
    created: bool
    restored: list[str] = field(default_factory=list)


class IdentityDirectory:
    def __init__(self, unit_of_work_factory: Callable[[], TicketUnitOfWork]) -> None:
        self._unit_of_work_factory = unit_of_work_factory

    def resolve(self, commitment: str) -> Principal | None:
        with self._unit_of_work_factory() as uow:
            return uow.repositories.principals.get_by_commitment(commitment)

    def link(self, *, commitment: str, email: str) -> LinkResult:
        """Link ``commitment`` to a verified ``email`` and restore its redacted atoms.

        Everything happens in one transaction.
        """

        email = normalize_email(email)
        with self._unit_of_work_factory() as uow:
            repositories = uow.repositories
            principal = repositories.principals.get_by_commitment(commitment)
            created = principal is None
            if principal is None:
                principal = Principal(commitment=commitment, email=email)
                repositories.principals.add(principal)
            elif principal.email != email:
                raise IdentityConflictError(
                    f"Commitment {commitment} is already linked to another email"
                )
            restored = _restore_redacted(repositories, email)
            uow.commit()

        log.info("Linked %s to %s; restored %d atoms", commitment, email, len(restored))
        return LinkResult(principal=principal, created=created, restored=restored)

    def restore_redacted(self, email: str) -> list[str]:
        """Move atoms redacted under ``email``'s hash back into the active store."""

        with self._unit_of_work_factory() as uow:
            restored = _restore_redacted(uow.repositories, normalize_email(email))
            uow.commit()
        return restored


def _restore_redacted(repositories: TicketRepositories, email: str) -> list[str]:
    redacted = repositories.redacted_atoms.list_by_hashed_email(hash_email(email))
    for item in redacted:
        repositories.atoms.upsert(item.restore(email))
    restored = [item.id for item in redacted]
    if restored:
        repositories.redacted_atoms.delete(restored)
    return restored
