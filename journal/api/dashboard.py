"""Dashboard API — summary stats, equity curve, breakdowns and calendar."""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session, select

from journal.database import get_session
from journal.api.deps import get_current_user
from journal.models.trade import Trade
from journal.models.user import User
from journal.services import stats

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])


def _user_trades(session: Session, user: User) -> list[Trade]:
    stmt = select(Trade).where(Trade.user_id == user.id).order_by(Trade.timestamp)
    return list(session.exec(stmt).all())


@router.get("/summary")
def dashboard_summary(
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    """Aggregated stats across all of the user's trades."""
    return stats.summarize(_user_trades(session, user))


@router.get("/equity")
def equity_curve(
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return stats.equity_curve(_user_trades(session, user))


@router.get("/analytics")
def analytics(
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    """Per-pair and per-weekday breakdowns plus the long/short split."""
    trades = _user_trades(session, user)
    return {
        "summary": stats.summarize(trades),
        "by_pair": stats.by_pair(trades),
        "by_weekday": stats.by_weekday(trades),
    }


@router.get("/calendar")
def calendar_month(
    year: int | None = None,
    month: int | None = None,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    now = datetime.now(timezone.utc)
    year = year or now.year
    month = month or now.month
    try:
        days = stats.calendar_month(_user_trades(session, user), year, month)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid year or month")
    return {"year": year, "month": month, "days": days}
