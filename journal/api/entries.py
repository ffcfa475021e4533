"""Dashboard-facing trade journal: list, manual entry and deletion."""

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session, select

from journal.database import get_session
from journal.engine.normalize import normalize_event
from journal.engine.reconcile import reconcile
from journal.models.trade import Trade
from journal.models.user import User
from journal.schemas.trade import ManualTradeCreate, TradeEvent, TradeRead
from journal.api.deps import get_current_user

router = APIRouter(prefix="/api/journal", tags=["journal"])

MANUAL_PLATFORM = "manual"


@router.get("/trades", response_model=list[TradeRead])
def list_trades(
    limit: int = 100,
    offset: int = 0,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    stmt = (
        select(Trade)
        .where(Trade.user_id == user.id)
        .order_by(Trade.timestamp.desc(), Trade.id.desc())
        .offset(offset)
        .limit(limit)
    )
    return session.exec(stmt).all()


@router.post("/trades", response_model=TradeRead, status_code=201)
def create_trade(
    data: ManualTradeCreate,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    """Journal a trade by hand. Manual trades carry no ticket, so they always insert."""
    event = TradeEvent.model_validate(
        {**data.model_dump(), "platform": MANUAL_PLATFORM, "status": "closed"}
    )
    result = reconcile(session, user.id, normalize_event(event))
    return session.get(Trade, result.trade_id)


@router.delete("/trades/{trade_id}", status_code=204)
def delete_trade(
    trade_id: int,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    trade = session.get(Trade, trade_id)
    if not trade or trade.user_id != user.id:
        raise HTTPException(status_code=404, detail="Trade not found")
    session.delete(trade)
    session.commit()
