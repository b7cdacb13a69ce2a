"""Flat-file provider: a CSV dataset embedded in the pipeline definition."""

from __future__ import annotations

import csv
import io
from dataclasses import dataclass
from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING, Final

from ticketpipe.domain.errors import FetchError, TranslationError
from ticketpipe.domain.model import Atom, CsvOptions, make_atom_id
from ticketpipe.domain.ports.fetching import RawRecords

if TYPE_CHECKING:
    from collections.abc import Mapping

    from ticketpipe.domain.model import PipelineDefinition

log = getLogger(__name__)

REQUIRED_COLUMNS: Final[tuple[str, ...]] = ("id", "email", "event", "product")
_TRUE_VALUES: Final[frozenset[str]] = frozenset({"1", "true", "yes", "y"})


def _flag(value: str | None) -> bool:
    return (value or "").strip().lower() in _TRUE_VALUES


def _timestamp(value: str | None) -> datetime | None:
    if value is None or not value.strip():
        return None
    try:
        parsed = datetime.fromisoformat(value.strip())
    except ValueError as exc:
        raise TranslationError(f"Invalid check-in timestamp {value!r}") from exc
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


def parse_row(
    definition: PipelineDefinition,
    row: Mapping[str, str | None],
    *,
    updated_at: datetime,
) -> Atom | None:
    missing = [column for column in REQUIRED_COLUMNS if not (row.get(column) or "").strip()]
    if missing:
        log.warning("Skipping CSV row %r: missing %s", row, ", ".join(missing))
        return None

    position_id = str(row["id"]).strip()
    event = definition.event_for_external(str(row["event"]).strip())
    if event is None:
        log.warning("Skipping CSV row %s: event %s is not mapped", position_id, row["event"])
        return None
    product = event.product_for_external(str(row["product"]).strip())
    if product is None:
        log.warning("Skipping CSV row %s: product %s is not mapped", position_id, row["product"])
        return None

    checked_in_at = _timestamp(row.get("checked_in_at"))
    return Atom(
        id=make_atom_id(definition.id, position_id),
        pipeline_id=definition.id,
        position_id=position_id,
        email=str(row["email"]),
        name=(row.get("name") or "").strip(),
        event_id=event.event_id,
        product_id=product.product_id,
        secret=(row.get("secret") or "").strip() or None,
        is_consumed=_flag(row.get("consumed")) or checked_in_at is not None,
        is_revoked=_flag(row.get("revoked")),
        provider_checkin_at=checked_in_at,
        updated_at=updated_at,
    )


@dataclass(slots=True)
class CsvAdapter:
    """Serves the dataset embedded in the definition; there is no remote side."""

    def fetch(self, definition: PipelineDefinition) -> RawRecords:
        if not isinstance(definition.options, CsvOptions):
            raise FetchError(f"Pipeline {definition.id} is not a CSV pipeline", provider="csv")
        reader = csv.DictReader(io.StringIO(definition.options.data.strip()))
        rows = [dict(row) for row in reader]
        return RawRecords(records=rows)

    def to_atoms(self, definition: PipelineDefinition, raw: RawRecords) -> list[Atom]:
        atoms: list[Atom] = []
        for row in raw.records:
            if not isinstance(row, dict):
                raise TranslationError(f"Unexpected CSV record {row!r}")
            atom = parse_row(definition, row, updated_at=raw.fetched_at)
            if atom is not None:
                atoms.append(atom)
        return atoms


if TYPE_CHECKING:
    from ticketpipe.domain.ports.fetching import ProviderAdapter

    _adapter_check: ProviderAdapter = CsvAdapter()
