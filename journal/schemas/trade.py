"""Pydantic schemas for Trade APIs."""

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from journal.engine.normalize import (
    NUMERIC_FIELDS,
    clean_number,
    clean_text,
    clean_timestamp,
)

TEXT_FIELDS = (
    "pair",
    "trade_type",
    "strategy",
    "broker_account_id",
    "ticket",
    "notes",
    "pnl_currency",
)
LOWERCASE_FIELDS = ("direction", "status", "platform")


class TradeEvent(BaseModel):
    """Inbound trade event from a bot. Every field is optional; unknown fields are ignored."""

    pair: str | None = None
    direction: str | None = None
    entry: float | None = None
    exit_price: float | None = None
    sl: float | None = None
    tp: float | None = None
    size: float | None = None
    trade_type: str | None = None
    strategy: str | None = None
    broker_account_id: str | None = Field(default=None, alias="account_id")
    platform: str | None = None
    ticket: str | None = None
    status: str | None = None
    open_time: datetime | None = None
    close_time: datetime | None = None
    pnl: float | None = None
    pnl_percentage: float | None = None
    result_r: float | None = None
    notes: str | None = None
    pnl_currency: str | None = None
    commission: float | None = None
    swap: float | None = None

    model_config = {"extra": "ignore", "populate_by_name": True}

    @field_validator(*NUMERIC_FIELDS, mode="before")
    @classmethod
    def _clean_numbers(cls, value):
        return clean_number(value)

    @field_validator(*TEXT_FIELDS, mode="before")
    @classmethod
    def _clean_text(cls, value):
        return clean_text(value)

    @field_validator(*LOWERCASE_FIELDS, mode="before")
    @classmethod
    def _clean_lowercase(cls, value):
        text = clean_text(value)
        return text.lower() if text else None

    @field_validator("open_time", "close_time", mode="before")
    @classmethod
    def _clean_timestamps(cls, value):
        return clean_timestamp(value)


class ManualTradeCreate(BaseModel):
    """Trade entered by hand in the dashboard. Stricter than bot events."""

    pair: str = Field(min_length=1, max_length=32)
    direction: str
    entry: float
    sl: float
    tp: float
    size: float = 0.5
    trade_type: str | None = None
    strategy: str | None = None
    exit_price: float | None = None
    pnl: float | None = None
    pnl_percentage: float | None = None
    result_r: float | None = None
    notes: str | None = None
    open_time: datetime | None = None
    close_time: datetime | None = None

    @field_validator("pair")
    @classmethod
    def _trim_pair(cls, value: str) -> str:
        text = value.strip().upper()
        if not text:
            raise ValueError("must not be empty")
        return text

    @field_validator("direction")
    @classmethod
    def _validate_direction(cls, value: str) -> str:
        direction = value.strip().lower()
        if direction not in ("long", "short"):
            raise ValueError("must be 'long' or 'short'")
        return direction

    @field_validator("notes", "trade_type", "strategy")
    @classmethod
    def _blank_to_none(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None


class TradeRead(BaseModel):
    id: int
    pair: str | None
    direction: str | None
    entry: float | None
    exit_price: float | None
    sl: float | None
    tp: float | None
    size: float | None
    trade_type: str | None
    strategy: str | None
    broker_account_id: str | None
    platform: str | None
    ticket: str | None
    status: str | None
    open_time: datetime | None
    close_time: datetime | None
    pnl: float | None
    pnl_percentage: float | None
    result_r: float | None
    notes: str | None
    pnl_currency: str | None
    commission: float | None
    swap: float | None
    timestamp: datetime

    model_config = {"from_attributes": True}
