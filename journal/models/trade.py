"""Trade model — one journaled position, opened and/or closed."""

from datetime import datetime, timezone

from sqlalchemy import Index
from sqlmodel import SQLModel, Field


class Trade(SQLModel, table=True):
    __tablename__ = "trade"
    __table_args__ = (
        # Natural key used to match a closing event to its opening row
        Index("ix_trade_natural_key", "user_id", "ticket", "platform"),
    )

    id: int | None = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", index=True)

    pair: str | None = None
    direction: str | None = None  # "long" or "short"
    entry: float | None = None
    exit_price: float | None = None
    sl: float | None = None
    tp: float | None = None
    size: float | None = None
    trade_type: str | None = None
    strategy: str | None = None
    broker_account_id: str | None = None  # account id reported by the bot

    platform: str | None = None  # "ctrader", "mt5", ...
    ticket: str | None = None  # broker ticket; None for manual entries
    status: str | None = None  # "opened", "closed"
    open_time: datetime | None = None
    close_time: datetime | None = None

    pnl: float | None = None
    pnl_percentage: float | None = None
    result_r: float | None = None
    notes: str | None = None
    pnl_currency: str | None = None
    commission: float | None = None
    swap: float | None = None

    # Canonical display time: close_time, else open_time, else arrival time
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc), index=True
    )
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
