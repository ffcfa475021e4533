"""Journal statistics: win rate, PnL, R-multiples, breakdowns and calendar.

All functions are pure reductions over already-loaded trades. A trade without
PnL counts as 0 in sums but is neither a win nor a loss. A trade without an
R-multiple is left out of the R average.
"""

import calendar
from dataclasses import dataclass, asdict
from datetime import date, datetime, timedelta, timezone
from typing import Iterable, Protocol

WEEKDAY_LABELS = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]


class TradeLike(Protocol):
    pair: str | None
    direction: str | None
    pnl: float | None
    result_r: float | None
    timestamp: datetime | None


@dataclass
class Bucket:
    label: str
    trades: int = 0
    wins: int = 0
    pnl: float = 0.0

    def add(self, trade: TradeLike) -> None:
        self.trades += 1
        if (trade.pnl or 0.0) > 0:
            self.wins += 1
        self.pnl += trade.pnl or 0.0

    def as_dict(self) -> dict:
        data = asdict(self)
        data["pnl"] = round(self.pnl, 2)
        data["win_rate"] = round(self.wins / self.trades * 100, 1) if self.trades else 0.0
        return data


def _utc(ts: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored in UTC
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def _pct(part: int, whole: int) -> float:
    return round(part / whole * 100, 1) if whole else 0.0


def summarize(trades: Iterable[TradeLike]) -> dict:
    trades = list(trades)
    total = len(trades)
    wins = sum(1 for t in trades if (t.pnl or 0.0) > 0)
    losses = sum(1 for t in trades if (t.pnl or 0.0) < 0)
    r_values = [t.result_r for t in trades if t.result_r is not None]
    longs = sum(1 for t in trades if t.direction == "long")
    shorts = sum(1 for t in trades if t.direction == "short")

    return {
        "total_trades": total,
        "wins": wins,
        "losses": losses,
        "breakeven": total - wins - losses,
        "win_rate": _pct(wins, total),
        "total_pnl": round(sum(t.pnl or 0.0 for t in trades), 2),
        "avg_r": round(sum(r_values) / len(r_values), 2) if r_values else 0.0,
        "long_trades": longs,
        "short_trades": shorts,
        "long_pct": _pct(longs, longs + shorts),
        "short_pct": _pct(shorts, longs + shorts),
    }


def equity_curve(trades: Iterable[TradeLike]) -> list[dict]:
    """Running PnL in canonical timestamp order."""
    ordered = sorted(
        (t for t in trades if t.timestamp is not None),
        key=lambda t: _utc(t.timestamp),
    )
    running = 0.0
    points = []
    for t in ordered:
        running += t.pnl or 0.0
        points.append({"timestamp": _utc(t.timestamp).isoformat(), "equity": round(running, 2)})
    return points


def by_pair(trades: Iterable[TradeLike]) -> list[dict]:
    buckets: dict[str, Bucket] = {}
    for t in trades:
        label = (t.pair or "Unknown").upper()
        buckets.setdefault(label, Bucket(label)).add(t)
    ordered = sorted(buckets.values(), key=lambda b: b.trades, reverse=True)
    return [b.as_dict() for b in ordered]


def by_weekday(trades: Iterable[TradeLike]) -> list[dict]:
    """Monday-first buckets; weekdays without trades are omitted."""
    buckets: dict[int, Bucket] = {}
    for t in trades:
        if t.timestamp is None:
            continue
        idx = _utc(t.timestamp).weekday()
        buckets.setdefault(idx, Bucket(WEEKDAY_LABELS[idx])).add(t)
    return [buckets[idx].as_dict() for idx in sorted(buckets)]


def calendar_month(trades: Iterable[TradeLike], year: int, month: int) -> list[dict]:
    """Monday-start grid of full weeks covering ``year``/``month``.

    Raises ValueError for an invalid month.
    """
    first_weekday, days_in_month = calendar.monthrange(year, month)
    start = date(year, month, 1) - timedelta(days=first_weekday)
    total_cells = -(-(first_weekday + days_in_month) // 7) * 7

    per_day: dict[date, list[float]] = {}
    for t in trades:
        if t.timestamp is None:
            continue
        day = _utc(t.timestamp).date()
        summary = per_day.setdefault(day, [0.0, 0])
        summary[0] += t.pnl or 0.0
        summary[1] += 1

    cells = []
    for offset in range(total_cells):
        day = start + timedelta(days=offset)
        pnl, count = per_day.get(day, (0.0, 0))
        cells.append({
            "date": day.isoformat(),
            "pnl": round(pnl, 2),
            "count": count,
            "in_month": day.month == month,
        })
    return cells
