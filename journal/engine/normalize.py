"""Payload normalization for inbound trade events.

Bots send loosely-typed JSON: numbers arrive as numbers or strings, tickets as
integers or strings, timestamps in assorted ISO-8601 spellings, and any field
may be missing. Everything in here turns that into a fully-typed, defaulted
``NormalizedTrade`` so the reconciliation engine never sees raw input.

A malformed field never aborts a submission. It degrades to ``None`` instead,
and in particular never to ``0``, which would skew win rate and PnL sums.
"""

import math
from dataclasses import dataclass, fields as dataclass_fields
from datetime import datetime, timezone
from typing import Any

from pydantic import TypeAdapter, ValidationError

from journal.config import settings
from journal.errors import ValidationFailure

NUMERIC_FIELDS = (
    "entry",
    "exit_price",
    "sl",
    "tp",
    "size",
    "pnl",
    "pnl_percentage",
    "result_r",
    "commission",
    "swap",
)

_datetime_adapter = TypeAdapter(datetime)


def clean_number(value: Any) -> float | None:
    """Parse a number or numeric string; anything else becomes None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    elif not isinstance(value, (int, float)):
        return None
    try:
        number = float(value)
    except (ValueError, OverflowError):
        # OverflowError: integers too large for a float
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def clean_text(value: Any) -> str | None:
    """Strip strings, stringify numbers (integer tickets), drop everything else."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        text = value.strip()
        return text or None
    return None


def clean_timestamp(value: Any) -> datetime | None:
    """Parse an ISO-8601 timestamp into an aware UTC datetime, or None."""
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        parsed = _datetime_adapter.validate_python(value)
    except ValidationError:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


@dataclass(frozen=True)
class NormalizedTrade:
    """A trade event after defaults have been applied. Maps 1:1 onto Trade columns."""

    status: str
    platform: str
    timestamp: datetime
    ticket: str | None = None
    pair: str | None = None
    direction: str | None = None
    entry: float | None = None
    exit_price: float | None = None
    sl: float | None = None
    tp: float | None = None
    size: float | None = None
    trade_type: str | None = None
    strategy: str | None = None
    broker_account_id: str | None = None
    open_time: datetime | None = None
    close_time: datetime | None = None
    pnl: float | None = None
    pnl_percentage: float | None = None
    result_r: float | None = None
    notes: str | None = None
    pnl_currency: str | None = None
    commission: float | None = None
    swap: float | None = None

    @property
    def reconcilable(self) -> bool:
        """Only a closing event with a broker ticket can match an earlier row."""
        return self.status == "closed" and self.ticket is not None

    def fields(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in dataclass_fields(self)}

    def update_fields(self) -> dict[str, Any]:
        """Columns written when merging into an existing row.

        Status and platform are always written; everything else only when
        this event carries a value. The canonical timestamp is left out: it
        depends on the times already stored on the row, so the UPDATE
        derives it (see ``journal.engine.reconcile``).
        """
        always = {"status", "platform"}
        return {
            name: value
            for name, value in self.fields().items()
            if name in always or (value is not None and name != "timestamp")
        }


def normalize_event(event, now: datetime | None = None) -> NormalizedTrade:
    """Apply status/platform defaults and derive the canonical timestamp.

    ``event`` is a :class:`journal.schemas.trade.TradeEvent`, already cleaned
    field by field.
    """
    now = now or datetime.now(timezone.utc)
    timestamp = event.close_time or event.open_time or now
    values = event.model_dump(exclude={"status", "platform"})
    return NormalizedTrade(
        status=event.status or settings.default_status,
        platform=event.platform or settings.default_platform,
        timestamp=timestamp,
        **values,
    )


def parse_event(raw: Any, require_identification: bool = True):
    """Build a TradeEvent from a decoded JSON body.

    Raises ValidationFailure for non-object bodies and, when
    ``require_identification`` is set, for events with neither pair nor ticket.
    """
    from journal.schemas.trade import TradeEvent

    if not isinstance(raw, dict):
        raise ValidationFailure("Invalid JSON body")
    event = TradeEvent.model_validate(raw)
    if require_identification and event.pair is None and event.ticket is None:
        raise ValidationFailure("Missing trade identification (pair or ticket)")
    return event
