"""Tests for the insert-vs-update decision of the reconciliation engine."""

from datetime import datetime

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlmodel import Session, delete, select

from journal.engine import reconcile as reconcile_module
from journal.engine.normalize import normalize_event
from journal.engine.reconcile import INSERTED, UPDATED, reconcile
from journal.errors import PersistenceFailure
from journal.models.trade import Trade
from journal.schemas.trade import TradeEvent


def _event(**payload):
    return normalize_event(TradeEvent.model_validate(payload))


def _rows(session: Session, **filters) -> list[Trade]:
    session.expire_all()
    stmt = select(Trade)
    for name, value in filters.items():
        stmt = stmt.where(getattr(Trade, name) == value)
    return list(session.exec(stmt).all())


# ---------------------------------------------------------------------------
# 1. Lookup strategy
# ---------------------------------------------------------------------------

def test_new_ticket_close_inserts(session, user):
    result = reconcile(session, user.id, _event(ticket="T1", pair="EURUSD", pnl=10))
    assert result.mode == INSERTED
    rows = _rows(session, ticket="T1")
    assert len(rows) == 1
    assert rows[0].id == result.trade_id
    assert rows[0].user_id == user.id
    assert rows[0].status == "closed"
    assert rows[0].platform == "ctrader"


def test_redelivered_close_updates_same_row(session, user):
    first = reconcile(session, user.id, _event(ticket="T1", pair="EURUSD", pnl=10))
    second = reconcile(session, user.id, _event(ticket="T1", pair="EURUSD", pnl=12))

    assert (first.mode, second.mode) == (INSERTED, UPDATED)
    assert first.trade_id == second.trade_id
    rows = _rows(session, ticket="T1")
    assert len(rows) == 1
    assert rows[0].pnl == 12.0


def test_opened_then_closed_merges_into_one_row(session, user):
    opened = reconcile(session, user.id, _event(
        status="opened", ticket="T1", platform="ctrader", pair="EURUSD",
        direction="long", entry=1.085, sl=1.08, open_time="2024-01-01T09:00:00Z",
    ))
    closed = reconcile(session, user.id, _event(
        status="closed", ticket="T1", platform="ctrader", exit_price=1.09, pnl=50.0,
        close_time="2024-01-02T10:00:00Z",
    ))

    assert opened.mode == INSERTED
    assert closed.mode == UPDATED
    assert closed.trade_id == opened.trade_id

    [row] = _rows(session, ticket="T1")
    assert row.status == "closed"
    assert row.exit_price == 1.09
    assert row.pnl == 50.0
    # values only the opening event reported survive
    assert row.pair == "EURUSD"
    assert row.entry == 1.085
    assert row.sl == 1.08
    assert row.timestamp.replace(tzinfo=None) == datetime(2024, 1, 2, 10)


@pytest.mark.parametrize("strategy", ["lookup", "atomic"])
def test_timestampless_close_keeps_open_time_as_timestamp(request, session, user, strategy):
    if strategy == "atomic":
        request.getfixturevalue("atomic_db")
    reconcile(session, user.id, _event(
        status="opened", ticket="T1", pair="EURUSD", open_time="2024-01-01T09:00:00Z",
    ), strategy=strategy)
    result = reconcile(session, user.id, _event(status="closed", ticket="T1", pnl=5), strategy=strategy)

    assert result.mode == UPDATED
    [row] = _rows(session, ticket="T1")
    assert row.close_time is None
    assert row.open_time.replace(tzinfo=None) == datetime(2024, 1, 1, 9)
    assert row.timestamp.replace(tzinfo=None) == datetime(2024, 1, 1, 9)


def test_stored_close_time_outranks_new_open_time(session, user):
    reconcile(session, user.id, _event(ticket="T1", close_time="2024-01-02T10:00:00Z"))
    reconcile(session, user.id, _event(ticket="T1", open_time="2024-01-01T09:00:00Z", pnl=3))

    [row] = _rows(session, ticket="T1")
    assert row.open_time.replace(tzinfo=None) == datetime(2024, 1, 1, 9)
    assert row.timestamp.replace(tzinfo=None) == datetime(2024, 1, 2, 10)


def test_opened_event_never_looks_up(session, user):
    reconcile(session, user.id, _event(status="opened", ticket="T1", pair="EURUSD"))
    result = reconcile(session, user.id, _event(status="opened", ticket="T1", pair="EURUSD"))
    assert result.mode == INSERTED
    assert len(_rows(session, ticket="T1")) == 2


def test_ticketless_trades_never_reconcile(session, user):
    payload = dict(pair="EURUSD", direction="long", entry=1.1, pnl=5)
    first = reconcile(session, user.id, _event(**payload))
    second = reconcile(session, user.id, _event(**payload))
    assert (first.mode, second.mode) == (INSERTED, INSERTED)
    assert first.trade_id != second.trade_id


def test_natural_key_includes_platform(session, user):
    reconcile(session, user.id, _event(ticket="T1", platform="ctrader"))
    result = reconcile(session, user.id, _event(ticket="T1", platform="mt5"))
    assert result.mode == INSERTED


def test_natural_key_includes_user(session, user, user_factory):
    other = user_factory("other@example.com")
    reconcile(session, user.id, _event(ticket="T1"))
    result = reconcile(session, other.id, _event(ticket="T1"))
    assert result.mode == INSERTED
    assert len(_rows(session, ticket="T1")) == 2


def test_lookup_race_can_duplicate(session, user, monkeypatch):
    # Two concurrent closes for a new ticket both miss the lookup
    monkeypatch.setattr(reconcile_module, "find_by_natural_key", lambda *args: None)
    reconcile(session, user.id, _event(ticket="T9"))
    reconcile(session, user.id, _event(ticket="T9"))
    assert len(_rows(session, ticket="T9")) == 2


# ---------------------------------------------------------------------------
# 2. Atomic strategy
# ---------------------------------------------------------------------------

def test_atomic_redelivery_updates(session, user, atomic_db):
    first = reconcile(session, user.id, _event(ticket="T1", pnl=10))
    second = reconcile(session, user.id, _event(ticket="T1", pnl=20))
    assert (first.mode, second.mode) == (INSERTED, UPDATED)
    assert first.trade_id == second.trade_id
    [row] = _rows(session, ticket="T1")
    assert row.pnl == 20.0


def test_atomic_closes_the_lookup_race(session, user, atomic_db, monkeypatch):
    monkeypatch.setattr(reconcile_module, "find_by_natural_key", lambda *args: None)
    reconcile(session, user.id, _event(ticket="T9"))
    result = reconcile(session, user.id, _event(ticket="T9"))
    assert result.mode == UPDATED
    assert len(_rows(session, ticket="T9")) == 1


def test_atomic_store_rejects_duplicate_natural_key(session, user, atomic_db):
    session.add(Trade(user_id=user.id, ticket="T1", platform="ctrader"))
    session.commit()
    session.add(Trade(user_id=user.id, ticket="T1", platform="ctrader"))
    with pytest.raises(IntegrityError):
        session.commit()
    session.rollback()


def test_atomic_ticketless_trades_still_insert(session, user, atomic_db):
    first = reconcile(session, user.id, _event(pair="EURUSD"))
    second = reconcile(session, user.id, _event(pair="EURUSD"))
    assert (first.mode, second.mode) == (INSERTED, INSERTED)


def test_unknown_strategy_rejected(session, user):
    with pytest.raises(ValueError):
        reconcile(session, user.id, _event(ticket="T1"), strategy="merge")


# ---------------------------------------------------------------------------
# 3. Failures
# ---------------------------------------------------------------------------

def _boom(*args, **kwargs):
    raise OperationalError("SELECT", {}, Exception("connection lost"))


def test_find_failure_raises_persistence_failure(session, user, monkeypatch):
    monkeypatch.setattr(reconcile_module, "find_by_natural_key", _boom)
    with pytest.raises(PersistenceFailure) as exc_info:
        reconcile(session, user.id, _event(ticket="T1"))
    assert exc_info.value.message == "Failed to find trade"
    assert "connection lost" not in exc_info.value.message
    assert _rows(session) == []


def test_insert_failure_raises_persistence_failure(session, user, monkeypatch):
    monkeypatch.setattr(session, "commit", _boom)
    with pytest.raises(PersistenceFailure, match="Failed to insert trade"):
        reconcile(session, user.id, _event(pair="EURUSD"))


def _fail_second_exec(session, monkeypatch, before_second=None):
    """Let the conflicting INSERT through, then interfere with the UPDATE."""
    real_exec = session.exec
    calls = []

    def exec_(statement, *args, **kwargs):
        calls.append(statement)
        if len(calls) == 2:
            if before_second is None:
                raise OperationalError("UPDATE", {}, Exception("connection lost"))
            before_second(real_exec)
        return real_exec(statement, *args, **kwargs)

    monkeypatch.setattr(session, "exec", exec_)


def test_atomic_update_failure_is_reported_as_update(session, user, atomic_db, monkeypatch):
    reconcile(session, user.id, _event(ticket="T1"))
    _fail_second_exec(session, monkeypatch)
    with pytest.raises(PersistenceFailure, match="Failed to update trade"):
        reconcile(session, user.id, _event(ticket="T1", pnl=5))


def test_atomic_update_of_vanished_row_is_not_acknowledged(session, user, atomic_db, monkeypatch):
    reconcile(session, user.id, _event(ticket="T1"))
    # a concurrent delete lands between the INSERT and the UPDATE
    _fail_second_exec(session, monkeypatch, before_second=lambda exec_: exec_(delete(Trade)))
    with pytest.raises(PersistenceFailure, match="Failed to update trade"):
        reconcile(session, user.id, _event(ticket="T1", pnl=5))
