"""Feed host, pipeline feeds, and the client-side collection actions apply to."""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from ticketpipe.domain.errors import (
    IssuanceAuthorizationError,
    IssuanceValidationError,
    UnknownFeedError,
)
from ticketpipe.domain.model import (
    ActionType,
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

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from ticketpipe.domain.credentials import CredentialVerifier, SerializedCredential
    from ticketpipe.domain.identity import IdentityDirectory
    from ticketpipe.domain.model import Action, FeedConfig, SerializedArtifact
    from ticketpipe.domain.pipeline import Pipeline

log = getLogger(__name__)


class PipelineNotServingError(RuntimeError):
    """Raised when a feed is polled before its pipeline is running."""


@runtime_checkable
class Feed(Protocol):
    @property
    def descriptor(self) -> FeedDescriptor: ...

    def handle_request(self, credential: SerializedCredential | None) -> list[Action]: ...


class PipelineFeed:
    """Serves the tickets a pipeline holds for the credential's identity.

    Each poll clears the feed folder and replaces one subfolder per event, so
    tickets that were revoked or deleted since the last poll disappear.
    """

    def __init__(
        self,
        pipeline: Pipeline,
        config: FeedConfig,
        verifier: CredentialVerifier,
        identities: IdentityDirectory,
    ) -> None:
        self._pipeline = pipeline
        self._verifier = verifier
        self._identities = identities
        self._descriptor = FeedDescriptor(
            id=config.feed_id,
            name=config.display_name,
            description=config.description,
            folder=config.folder,
            permissions=(
                Permission(ActionType.DELETE_FOLDER, config.folder),
                Permission(ActionType.REPLACE_IN_FOLDER, config.folder),
            ),
            is_private=config.is_private,
        )

    @property
    def descriptor(self) -> FeedDescriptor:
        return self._descriptor

    def handle_request(self, credential: SerializedCredential | None) -> list[Action]:
        commitment = self._verifier.verify_feed_credential(credential)
        if not self._pipeline.is_serving:
            raise PipelineNotServingError(
                f"Pipeline {self._pipeline.id} is {self._pipeline.state}"
            )

        folder = self._descriptor.folder
        actions: list[Action] = [DeleteFolder(folder, recursive=True)]
        principal = self._identities.resolve(commitment)
        if principal is None:
            return actions

        by_event: dict[str, list[SerializedArtifact]] = {}
        for event_name, artifact in self._pipeline.issue_tickets(
            email=principal.email, commitment=commitment
        ):
            by_event.setdefault(event_name, []).append(artifact)
        actions.extend(
            ReplaceInFolder(join_folder(folder, event_name), tuple(artifacts))
            for event_name, artifacts in by_event.items()
        )
        return actions


def feeds_for_pipeline(
    pipeline: Pipeline,
    verifier: CredentialVerifier,
    identities: IdentityDirectory,
) -> list[PipelineFeed]:
    return [
        PipelineFeed(pipeline, config, verifier, identities)
        for config in pipeline.definition.feeds
    ]


@dataclass(frozen=True, slots=True)
class FeedPollOutcome:
    """Result of one feed within a batch poll."""

    feed_id: str
    actions: tuple[Action, ...] = ()
    error: str | None = None


class FeedHost:
    """Registry of named feeds and dispatcher of poll requests."""

    def __init__(self, *, provider_url: str, provider_name: str) -> None:
        self.provider_url = provider_url
        self.provider_name = provider_name
        self._feeds: dict[str, Feed] = {}

    def register(self, feed: Feed) -> None:
        feed_id = feed.descriptor.id
        if feed_id in self._feeds:
            raise ValueError(f"Feed {feed_id} is already registered")
        self._feeds[feed_id] = feed

    def has_feed(self, feed_id: str) -> bool:
        return feed_id in self._feeds

    def list_feeds(self) -> ListFeedsResponse:
        """List every feed that is not private."""

        return self._response(
            feed.descriptor for feed in self._feeds.values() if not feed.descriptor.is_private
        )

    def list_single_feed(self, feed_id: str) -> ListFeedsResponse:
        """Describe one feed by exact id, private or not."""

        return self._response([self._get(feed_id).descriptor])

    def handle_feed_request(
        self, feed_id: str, credential: SerializedCredential | None
    ) -> PollFeedResponse:
        """Poll one feed.

        Validation and authorization failures propagate as typed errors. Any
        other handler failure is logged and answered with no actions.
        """

        feed = self._get(feed_id)
        return PollFeedResponse(actions=tuple(self._run_handler(feed, credential)))

    def handle_feed_requests(
        self,
        feed_ids: Sequence[str],
        credential: SerializedCredential | None,
    ) -> list[FeedPollOutcome]:
        """Poll several feeds; a failure in one never affects the others."""

        outcomes: list[FeedPollOutcome] = []
        for feed_id in feed_ids:
            try:
                response = self.handle_feed_request(feed_id, credential)
            except (IssuanceValidationError, IssuanceAuthorizationError) as exc:
                outcomes.append(FeedPollOutcome(feed_id=feed_id, error=exc.name))
                continue
            outcomes.append(FeedPollOutcome(feed_id=feed_id, actions=response.actions))
        return outcomes

    def _get(self, feed_id: str) -> Feed:
        feed = self._feeds.get(feed_id)
        if feed is None:
            raise UnknownFeedError(feed_id)
        return feed

    def _response(self, descriptors: Iterable[FeedDescriptor]) -> ListFeedsResponse:
        return ListFeedsResponse(
            provider_url=self.provider_url,
            provider_name=self.provider_name,
            feeds=tuple(descriptors),
        )

    def _run_handler(self, feed: Feed, credential: SerializedCredential | None) -> list[Action]:
        feed_id = feed.descriptor.id
        try:
            actions = feed.handle_request(credential)
        except (IssuanceValidationError, IssuanceAuthorizationError):
            raise
        except Exception:
            log.exception("Feed %s failed to handle a request", feed_id)
            return []

        permitted: list[Action] = []
        for action in actions:
            if feed.descriptor.permits(action):
                permitted.append(action)
            else:
                log.warning(
                    "Feed %s emitted %s on %s outside its permissions; dropped",
                    feed_id,
                    action.type,
                    action.folder,
                )
        return permitted


class CredentialCollection:
    """A holder's local folders of artifacts, updated by applying feed actions."""

    def __init__(self) -> None:
        self._folders: dict[str, dict[str, SerializedArtifact]] = {}

    def apply(self, actions: Iterable[Action]) -> None:
        for action in actions:
            match action:
                case DeleteFolder(folder=folder, recursive=recursive):
                    self._delete(folder, recursive=recursive)
                case ReplaceInFolder(folder=folder, artifacts=artifacts):
                    self._folders[folder.strip("/")] = {a.id: a for a in artifacts}
                case AppendToFolder(folder=folder, artifacts=artifacts):
                    contents = self._folders.setdefault(folder.strip("/"), {})
                    contents.update((a.id, a) for a in artifacts)

    def _delete(self, folder: str, *, recursive: bool) -> None:
        if recursive:
            for name in [name for name in self._folders if folder_within(name, folder)]:
                del self._folders[name]
        else:
            self._folders.pop(folder.strip("/"), None)

    def folders(self) -> list[str]:
        return sorted(name for name, contents in self._folders.items() if contents)

    def artifacts(self, folder: str) -> list[SerializedArtifact]:
        return list(self._folders.get(folder.strip("/"), {}).values())

    def snapshot(self) -> dict[str, tuple[SerializedArtifact, ...]]:
        return {name: tuple(self._folders[name].values()) for name in self.folders()}
