"""Pydantic models describing the Pretix REST API payloads."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

# n: pending, p: paid, e: expired, c: canceled
OrderStatus = Literal["n", "p", "e", "c"]


def _blank_to_none(value: object) -> object:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return value


class PretixBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


def localized(value: dict[str, str] | str, *, fallback: str = "") -> str:
    """Pick a display string from a Pretix multi-language field."""

    if isinstance(value, str):
        return value
    if "en" in value:
        return value["en"]
    return next(iter(value.values()), fallback)


class EventPayload(PretixBaseModel):
    slug: str
    name: dict[str, str] | str


class ItemPayload(PretixBaseModel):
    id: int
    name: dict[str, str] | str
    admission: bool = True


class ItemsPage(PretixBaseModel):
    count: int = 0
    next: str | None = None
    results: list[ItemPayload]


class CheckinPayload(PretixBaseModel):
    checked_at: datetime = Field(alias="datetime")
    list_id: int | None = Field(default=None, alias="list")


class PositionPayload(PretixBaseModel):
    id: int
    item: int
    attendee_name: str | None = None
    attendee_email: str | None = None
    secret: str | None = None
    canceled: bool = False
    checkins: list[CheckinPayload] = Field(default_factory=list)

    @field_validator("attendee_name", "attendee_email", mode="before")
    @classmethod
    def _normalize_attendee(cls, value: object) -> object:
        return _blank_to_none(value)


class OrderPayload(PretixBaseModel):
    code: str
    status: OrderStatus
    email: str | None = None
    positions: list[PositionPayload] = Field(default_factory=list)

    @field_validator("email", mode="before")
    @classmethod
    def _normalize_email(cls, value: object) -> object:
        return _blank_to_none(value)


class OrdersPage(PretixBaseModel):
    count: int = 0
    next: str | None = None
    results: list[OrderPayload]


@dataclass(frozen=True, slots=True)
class PositionRecord:
    """One order position together with the order and event it belongs to."""

    event_slug: str
    order: OrderPayload
    position: PositionPayload
