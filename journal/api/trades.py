"""Bot-facing trade API: ingestion and recent-trade reads, authenticated by API key."""

import logging

from fastapi import APIRouter, Depends, Request
from sqlmodel import Session, select

from journal.config import settings
from journal.database import get_session
from journal.engine.normalize import clean_number, normalize_event, parse_event
from journal.engine.reconcile import reconcile
from journal.errors import ValidationFailure
from journal.models.api_key import ApiKey
from journal.models.trade import Trade
from journal.schemas.trade import TradeRead
from journal.api.deps import get_api_key_owner

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/trades", tags=["trades"])


async def read_json_body(request: Request):
    """Request body as parsed JSON; 400 when it is not JSON."""
    try:
        return await request.json()
    except ValueError:
        raise ValidationFailure("Invalid JSON body")


@router.post("")
def ingest_trade(
    api_key: ApiKey = Depends(get_api_key_owner),
    raw=Depends(read_json_body),
    session: Session = Depends(get_session),
):
    """Create a trade, or close the matching open one (same ticket and platform)."""
    event = parse_event(raw)
    result = reconcile(session, api_key.user_id, normalize_event(event))
    return {"ok": True, "mode": result.mode, "id": result.trade_id}


def clamp_limit(value: str | None) -> int:
    number = clean_number(value)
    if number is None:
        return settings.trades_default_limit
    return max(1, min(int(number), settings.trades_max_limit))


@router.get("", response_model=list[TradeRead])
def recent_trades(
    limit: str | None = None,
    api_key: ApiKey = Depends(get_api_key_owner),
    session: Session = Depends(get_session),
):
    stmt = (
        select(Trade)
        .where(Trade.user_id == api_key.user_id)
        .order_by(Trade.timestamp.desc(), Trade.id.desc())
        .limit(clamp_limit(limit))
    )
    return session.exec(stmt).all()
