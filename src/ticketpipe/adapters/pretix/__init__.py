"""Public interface for the Pretix adapter."""

from __future__ import annotations

from .client import PretixAdapter
from .schema import OrderPayload, PositionPayload, PositionRecord
from .translator import parse_position, parse_positions

__all__ = [
    "OrderPayload",
    "PositionPayload",
    "PositionRecord",
    "PretixAdapter",
    "parse_position",
    "parse_positions",
]
