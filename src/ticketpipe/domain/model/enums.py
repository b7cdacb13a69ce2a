"""Enumerations shared across the domain model."""

from __future__ import annotations

from enum import IntEnum, StrEnum


class ProviderType(StrEnum):
    """Type tag selecting the provider adapter of a pipeline."""

    PRETIX = "pretix"
    LEMONADE = "lemonade"
    CSV = "csv"


class DeletionPolicy(StrEnum):
    """What a sync does with consumed atoms that disappeared upstream."""

    DELETE = "delete"
    REDACT_CONSUMED = "redact_consumed"


class PipelineState(StrEnum):
    CREATED = "created"
    STARTING = "starting"
    RUNNING = "running"
    STOPPED = "stopped"


class SyncPhase(StrEnum):
    IDLE = "idle"
    SYNCING = "syncing"


class ActionType(StrEnum):
    REPLACE_IN_FOLDER = "ReplaceInFolder"
    APPEND_TO_FOLDER = "AppendToFolder"
    DELETE_FOLDER = "DeleteFolder"


class TicketCategory(IntEnum):
    """Ticket family embedded in issued credentials. Values are part of the wire format."""

    ZUCONNECT = 0
    DEVCONNECT = 1
    PCD_WORKING_GROUP = 2
    ZUZALU = 3
    GENERIC = 4
