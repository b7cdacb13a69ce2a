"""Pydantic models describing the Lemonade ticket API payloads."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class LemonadeBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class TicketPayload(LemonadeBaseModel):
    id: str = Field(alias="_id")
    ticket_type: str = Field(alias="type")
    email: str | None = None
    name: str | None = Field(default=None, alias="assignedName")
    cancelled: bool = False
    checked_in_at: datetime | None = Field(default=None, alias="checkedInAt")

    @property
    def checked_in(self) -> bool:
        return self.checked_in_at is not None


class TicketsPage(LemonadeBaseModel):
    items: list[TicketPayload]
    total: int | None = None


@dataclass(frozen=True, slots=True)
class TicketRecord:
    event_id: str
    ticket: TicketPayload
