"""Error taxonomy shared by the sync engine, feeds and check-in.

Every error carries a machine-readable ``name`` that outer surfaces return
alongside the free-text message.
"""

from __future__ import annotations

from typing import ClassVar


class TicketpipeError(Exception):
    """Base class for all domain errors."""

    name: ClassVar[str] = "Error"


# Transient: retried on the next scheduled sync, never surfaced to holders.


class TransientError(TicketpipeError):
    name = "TransientError"


class FetchError(TransientError):
    """A provider could not be read (network, auth, timeout, bad payload)."""

    name = "FetchError"

    def __init__(self, message: str, *, provider: str | None = None) -> None:
        super().__init__(message)
        self.provider = provider


class TranslationError(TransientError):
    """Raw provider records could not be mapped into atoms."""

    name = "TranslationError"


# Validation: typed rejection, no retry.


class IssuanceValidationError(TicketpipeError):
    name = "ValidationError"


class MissingCredentialError(IssuanceValidationError):
    name = "MissingCredential"


class InvalidCredentialError(IssuanceValidationError):
    name = "InvalidCredential"


class UnknownFeedError(IssuanceValidationError):
    name = "UnknownFeed"

    def __init__(self, feed_id: str) -> None:
        super().__init__(f"Unknown feed: {feed_id}")
        self.feed_id = feed_id


# Authorization: valid credential, insufficient permission.


class IssuanceAuthorizationError(TicketpipeError):
    name = "AuthorizationError"


class NotAuthorizedError(IssuanceAuthorizationError):
    name = "NotAuthorized"


# Fatal for one sync cycle.


class SyncCommitError(TicketpipeError):
    """Applying a sync plan failed; the batch was rolled back."""

    name = "SyncCommitError"


# Consistency


class CheckinConflictError(TicketpipeError):
    """Another writer consumed the atom between our read and our write."""

    name = "CheckinConflict"

    def __init__(self, atom_id: str) -> None:
        super().__init__(f"Atom {atom_id} was checked in concurrently")
        self.atom_id = atom_id
