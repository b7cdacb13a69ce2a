"""Public interface for the Lemonade adapter."""

from __future__ import annotations

from .client import LemonadeAdapter
from .schema import TicketPayload, TicketRecord
from .translator import parse_ticket, parse_tickets

__all__ = [
    "LemonadeAdapter",
    "TicketPayload",
    "TicketRecord",
    "parse_ticket",
    "parse_tickets",
]
