"""Feed descriptors and the declarative actions feeds return to holders."""

from __future__ import annotations

import posixpath
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from ticketpipe.domain.model.enums import ActionType

if TYPE_CHECKING:
    from ticketpipe.domain.model.tickets import SerializedArtifact


def join_folder(*parts: str) -> str:
    """Join folder path segments the way holders' collections name folders."""

    cleaned = [part.strip("/") for part in parts if part.strip("/")]
    return posixpath.join(*cleaned) if cleaned else ""


def folder_within(folder: str, scope: str) -> bool:
    folder = folder.strip("/")
    scope = scope.strip("/")
    return folder == scope or folder.startswith(f"{scope}/")


@dataclass(frozen=True, slots=True)
class ReplaceInFolder:
    folder: str
    artifacts: tuple[SerializedArtifact, ...] = ()
    type: ActionType = field(default=ActionType.REPLACE_IN_FOLDER, init=False)


@dataclass(frozen=True, slots=True)
class AppendToFolder:
    folder: str
    artifacts: tuple[SerializedArtifact, ...] = ()
    type: ActionType = field(default=ActionType.APPEND_TO_FOLDER, init=False)


@dataclass(frozen=True, slots=True)
class DeleteFolder:
    folder: str
    recursive: bool = False
    type: ActionType = field(default=ActionType.DELETE_FOLDER, init=False)


type Action = ReplaceInFolder | AppendToFolder | DeleteFolder


@dataclass(frozen=True, slots=True)
class Permission:
    """Grants a feed the right to emit one action type inside a folder."""

    type: ActionType
    folder: str

    def allows(self, action: Action) -> bool:
        return action.type is self.type and folder_within(action.folder, self.folder)


@dataclass(frozen=True, slots=True, kw_only=True)
class FeedDescriptor:
    id: str
    name: str
    description: str
    folder: str
    permissions: tuple[Permission, ...]
    is_private: bool = False
    credential_type: str = "signature-credential"

    def permits(self, action: Action) -> bool:
        return any(permission.allows(action) for permission in self.permissions)


@dataclass(frozen=True, slots=True)
class ListFeedsResponse:
    provider_url: str
    provider_name: str
    feeds: tuple[FeedDescriptor, ...]


@dataclass(frozen=True, slots=True)
class PollFeedResponse:
    actions: tuple[Action, ...] = ()
