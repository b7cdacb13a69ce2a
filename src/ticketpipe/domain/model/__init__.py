"""Public domain model surface."""

from __future__ import annotations

from ticketpipe.domain.model.actions import (
    Action,
    AppendToFolder,
    DeleteFolder,
    FeedDescriptor,
    ListFeedsResponse,
    Permission,
    PollFeedResponse,
    ReplaceInFolder,
    folder_within,
    join_folder,
)
from ticketpipe.domain.model.atoms import (
    Atom,
    CheckinRecord,
    Principal,
    RedactedAtom,
    hash_email,
    make_atom_id,
    normalize_email,
)
from ticketpipe.domain.model.definitions import (
    CsvOptions,
    EventMapping,
    FeedConfig,
    LemonadeOptions,
    PipelineDefinition,
    PretixOptions,
    ProductMapping,
    ProviderOptions,
)
from ticketpipe.domain.model.enums import (
    ActionType,
    DeletionPolicy,
    PipelineState,
    ProviderType,
    SyncPhase,
    TicketCategory,
)
from ticketpipe.domain.model.tickets import (
    TICKET_ARTIFACT_TYPE,
    SerializedArtifact,
    TicketData,
    build_ticket_artifact,
    canonical_json,
    stable_artifact_id,
)

__all__ = [  # noqa: RUF022
    # atoms
    "Atom",
    "RedactedAtom",
    "CheckinRecord",
    "Principal",
    "hash_email",
    "make_atom_id",
    "normalize_email",
    # definitions
    "PipelineDefinition",
    "EventMapping",
    "ProductMapping",
    "FeedConfig",
    "PretixOptions",
    "LemonadeOptions",
    "CsvOptions",
    "ProviderOptions",
    # tickets
    "TICKET_ARTIFACT_TYPE",
    "TicketData",
    "SerializedArtifact",
    "build_ticket_artifact",
    "canonical_json",
    "stable_artifact_id",
    # actions and feeds
    "Action",
    "ReplaceInFolder",
    "AppendToFolder",
    "DeleteFolder",
    "Permission",
    "FeedDescriptor",
    "ListFeedsResponse",
    "PollFeedResponse",
    "folder_within",
    "join_folder",
    # enums
    "ActionType",
    "DeletionPolicy",
    "PipelineState",
    "ProviderType",
    "SyncPhase",
    "TicketCategory",
]
