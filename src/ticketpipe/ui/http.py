"""HTTP surface: feeds, check-in and offline mode over FastAPI."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, Literal

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ticketpipe import __version__
from ticketpipe.domain.clock import to_millis
from ticketpipe.domain.credentials import SerializedCredential
from ticketpipe.domain.errors import (
    IssuanceAuthorizationError,
    IssuanceValidationError,
    TicketpipeError,
    UnknownFeedError,
)
from ticketpipe.domain.model import DeleteFolder

if TYPE_CHECKING:
    from datetime import datetime

    from ticketpipe.app import IssuanceApplication
    from ticketpipe.domain.checkin import OfflineTicket, TicketError, TicketInfo
    from ticketpipe.domain.model import Action, FeedDescriptor, ListFeedsResponse

log = getLogger(__name__)


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class CredentialModel(WireModel):
    type: str
    pcd: str

    def to_domain(self) -> SerializedCredential:
        return SerializedCredential(type=self.type, pcd=self.pcd)


class ArtifactModel(WireModel):
    type: str
    pcd: str


class ActionModel(WireModel):
    type: str
    folder: str
    pcds: list[ArtifactModel] | None = None
    recursive: bool | None = None

    @classmethod
    def from_domain(cls, action: Action) -> ActionModel:
        if isinstance(action, DeleteFolder):
            return cls(type=action.type, folder=action.folder, recursive=action.recursive)
        return cls(
            type=action.type,
            folder=action.folder,
            pcds=[ArtifactModel(type=a.type, pcd=a.pcd) for a in action.artifacts],
        )


class PermissionModel(WireModel):
    type: str
    folder: str


class FeedModel(WireModel):
    id: str
    name: str
    description: str
    folder: str
    permissions: list[PermissionModel]
    credential_type: str
    is_private: bool

    @classmethod
    def from_domain(cls, descriptor: FeedDescriptor) -> FeedModel:
        return cls(
            id=descriptor.id,
            name=descriptor.name,
            description=descriptor.description,
            folder=descriptor.folder,
            permissions=[
                PermissionModel(type=p.type, folder=p.folder) for p in descriptor.permissions
            ],
            credential_type=descriptor.credential_type,
            is_private=descriptor.is_private,
        )


class ListFeedsModel(WireModel):
    provider_url: str
    provider_name: str
    feeds: list[FeedModel]

    @classmethod
    def from_domain(cls, response: ListFeedsResponse) -> ListFeedsModel:
        return cls(
            provider_url=response.provider_url,
            provider_name=response.provider_name,
            feeds=[FeedModel.from_domain(feed) for feed in response.feeds],
        )


class PollFeedRequest(WireModel):
    feed_id: str
    pcd: CredentialModel | None = None


class PollFeedModel(WireModel):
    actions: list[ActionModel]


class BatchPollRequest(WireModel):
    feed_ids: list[str] = Field(min_length=1)
    pcd: CredentialModel | None = None


class FeedOutcomeModel(WireModel):
    feed_id: str
    actions: list[ActionModel]
    error: str | None = None


class BatchPollModel(WireModel):
    results: list[FeedOutcomeModel]


class TicketErrorModel(WireModel):
    name: str
    detailed_message: str | None = None
    checker: str | None = None
    checkin_timestamp: int | None = None
    revoked_timestamp: int | None = None

    @classmethod
    def from_domain(cls, error: TicketError | None) -> TicketErrorModel | None:
        if error is None:
            return None
        return cls(
            name=error.name,
            detailed_message=error.detailed_message,
            checker=error.checker,
            checkin_timestamp=_millis(error.checkin_timestamp),
            revoked_timestamp=_millis(error.revoked_timestamp),
        )


class CheckinRequest(WireModel):
    ticket_id: str
    credential: CredentialModel


class CheckinModel(WireModel):
    success: bool
    error: TicketErrorModel | None = None
    already_consumed: bool = False


class TicketInfoModel(WireModel):
    ticket_id: str
    event_name: str
    ticket_name: str
    attendee_name: str
    attendee_email: str

    @classmethod
    def from_domain(cls, info: TicketInfo | None) -> TicketInfoModel | None:
        if info is None:
            return None
        return cls(
            ticket_id=info.ticket_id,
            event_name=info.event_name,
            ticket_name=info.ticket_name,
            attendee_name=info.attendee_name,
            attendee_email=info.attendee_email,
        )


class CheckTicketModel(WireModel):
    success: bool
    ticket: TicketInfoModel | None = None
    error: TicketErrorModel | None = None


class OfflineTicketsRequest(WireModel):
    credential: CredentialModel


class OfflineTicketModel(WireModel):
    id: str
    attendee_email: str
    attendee_name: str
    event_name: str
    ticket_name: str
    checker: str | None = None
    checkin_timestamp: int | None = None
    is_consumed: bool

    @classmethod
    def from_domain(cls, ticket: OfflineTicket) -> OfflineTicketModel:
        return cls(
            id=ticket.id,
            attendee_email=ticket.attendee_email,
            attendee_name=ticket.attendee_name,
            event_name=ticket.event_name,
            ticket_name=ticket.ticket_name,
            checker=ticket.checker,
            checkin_timestamp=_millis(ticket.checkin_timestamp),
            is_consumed=ticket.is_consumed,
        )


class OfflineTicketsModel(WireModel):
    offline_tickets: list[OfflineTicketModel]


class OfflineCheckinsRequest(WireModel):
    credential: CredentialModel
    checked_in_ticket_ids: list[str]


class OfflineCheckinsModel(WireModel):
    success: Literal[True] = True


def _millis(value: datetime | None) -> int | None:
    return to_millis(value) if value is not None else None


def _error_response(status_code: int, exc: TicketpipeError) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": {"name": exc.name, "detailedMessage": str(exc)}},
    )


def create_app(application: IssuanceApplication) -> FastAPI:
    """Build the FastAPI app for an already constructed application."""

    app = FastAPI(
        title="ticketpipe",
        version=__version__,
        description="Ticket feeds and check-in for synced ticketing providers.",
    )
    app.state.application = application
    feed_host = application.feed_host
    checkins = application.checkins

    @app.exception_handler(UnknownFeedError)
    async def _unknown_feed(_request: Request, exc: UnknownFeedError) -> JSONResponse:
        return _error_response(status.HTTP_404_NOT_FOUND, exc)

    @app.exception_handler(IssuanceValidationError)
    async def _invalid(_request: Request, exc: IssuanceValidationError) -> JSONResponse:
        return _error_response(status.HTTP_400_BAD_REQUEST, exc)

    @app.exception_handler(IssuanceAuthorizationError)
    async def _forbidden(_request: Request, exc: IssuanceAuthorizationError) -> JSONResponse:
        return _error_response(status.HTTP_403_FORBIDDEN, exc)

    @app.get("/feeds", response_model=ListFeedsModel)
    def list_feeds() -> ListFeedsModel:
        return ListFeedsModel.from_domain(feed_host.list_feeds())

    @app.get("/feeds/{feed_id}", response_model=ListFeedsModel)
    def list_single_feed(feed_id: str) -> ListFeedsModel:
        return ListFeedsModel.from_domain(feed_host.list_single_feed(feed_id))

    @app.post("/feeds", response_model=PollFeedModel)
    def poll_feed(body: PollFeedRequest) -> PollFeedModel:
        credential = body.pcd.to_domain() if body.pcd is not None else None
        response = feed_host.handle_feed_request(body.feed_id, credential)
        return PollFeedModel(actions=[ActionModel.from_domain(a) for a in response.actions])

    @app.post("/feeds/batch", response_model=BatchPollModel)
    def poll_feeds(body: BatchPollRequest) -> BatchPollModel:
        credential = body.pcd.to_domain() if body.pcd is not None else None
        outcomes = feed_host.handle_feed_requests(body.feed_ids, credential)
        return BatchPollModel(
            results=[
                FeedOutcomeModel(
                    feed_id=outcome.feed_id,
                    actions=[ActionModel.from_domain(a) for a in outcome.actions],
                    error=outcome.error,
                )
                for outcome in outcomes
            ]
        )

    @app.post("/checkin", response_model=CheckinModel)
    def check_in(body: CheckinRequest) -> CheckinModel:
        result = checkins.check_in(body.credential.to_domain(), body.ticket_id)
        return CheckinModel(
            success=result.success,
            error=TicketErrorModel.from_domain(result.error),
            already_consumed=result.already_consumed,
        )

    @app.post("/check-ticket", response_model=CheckTicketModel)
    def check_ticket(body: CheckinRequest) -> CheckTicketModel:
        result = checkins.check_ticket(body.credential.to_domain(), body.ticket_id)
        return CheckTicketModel(
            success=result.success,
            ticket=TicketInfoModel.from_domain(result.ticket),
            error=TicketErrorModel.from_domain(result.error),
        )

    @app.post("/offline/tickets", response_model=OfflineTicketsModel)
    def offline_tickets(body: OfflineTicketsRequest) -> OfflineTicketsModel:
        tickets = checkins.get_offline_tickets(body.credential.to_domain())
        return OfflineTicketsModel(
            offline_tickets=[OfflineTicketModel.from_domain(ticket) for ticket in tickets]
        )

    @app.post("/offline/checkins", response_model=OfflineCheckinsModel)
    def offline_checkins(body: OfflineCheckinsRequest) -> OfflineCheckinsModel:
        checkins.upload_offline_checkins(body.credential.to_domain(), body.checked_in_ticket_ids)
        return OfflineCheckinsModel()

    log.debug("HTTP routes registered for %d pipelines", len(application.pipelines))
    return app
