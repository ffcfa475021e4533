"""Trade reconciliation — decide whether an event opens a new row or closes an existing one.

The natural key of a bot-submitted trade is (user_id, ticket, platform). Two
strategies keep at most one row per key:

``lookup``
    Find the row by natural key, then update it by id or insert a new one.
    Two separate statements, so two concurrent closing events for a ticket
    nobody has seen yet can both miss the lookup and both insert. Re-delivery
    after a completed request is always safe.

``atomic``
    Relies on the ``ix_trade_natural_key_unique`` index.
    ``INSERT ... ON CONFLICT DO NOTHING`` either creates the row or proves it
    exists, after which the update is addressed by natural key. No duplicate
    can be created regardless of interleaving.

Either way each call issues at most one mutating statement that changes data,
so a failure leaves nothing to roll back beyond the session itself.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import func, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from journal.config import settings
from journal.engine.normalize import NormalizedTrade
from journal.errors import PersistenceFailure
from journal.models.trade import Trade

logger = logging.getLogger(__name__)

INSERTED = "inserted"
UPDATED = "updated"

STRATEGIES = ("lookup", "atomic")


@dataclass(frozen=True)
class ReconcileResult:
    mode: str  # INSERTED or UPDATED
    trade_id: int


def reconcile(
    session: Session,
    user_id: int,
    trade: NormalizedTrade,
    strategy: str | None = None,
) -> ReconcileResult:
    """Persist one normalized trade event for ``user_id``.

    Raises PersistenceFailure if any store operation fails.
    """
    strategy = strategy or settings.upsert_strategy
    if strategy not in STRATEGIES:
        raise ValueError(f"Unknown upsert strategy: {strategy!r}")

    if strategy == "atomic" and trade.ticket is not None:
        result = _reconcile_atomic(session, user_id, trade)
    else:
        result = _reconcile_lookup(session, user_id, trade)

    logger.info(
        f"Trade {result.mode}: user={user_id} id={result.trade_id} "
        f"ticket={trade.ticket} platform={trade.platform} status={trade.status}"
    )
    return result


def find_by_natural_key(session: Session, user_id: int, ticket: str, platform: str) -> int | None:
    """Return the id of the row for (user_id, ticket, platform), if any."""
    stmt = (
        select(Trade.id)
        .where(Trade.user_id == user_id)
        .where(Trade.ticket == ticket)
        .where(Trade.platform == platform)
        .order_by(Trade.id)
        .limit(1)
    )
    return session.exec(stmt).first()


def _reconcile_lookup(session: Session, user_id: int, trade: NormalizedTrade) -> ReconcileResult:
    if trade.reconcilable:
        try:
            existing_id = find_by_natural_key(session, user_id, trade.ticket, trade.platform)
        except SQLAlchemyError:
            _fail(session, "find")

        if existing_id is not None:
            try:
                session.exec(
                    update(Trade)
                    .where(Trade.id == existing_id)
                    .values(**_merge_values(trade))
                )
                session.commit()
            except SQLAlchemyError:
                _fail(session, "update")
            return ReconcileResult(mode=UPDATED, trade_id=existing_id)

    return _insert(session, user_id, trade)


def _merge_values(trade: NormalizedTrade) -> dict:
    """UPDATE values for merging an event into its existing row.

    The canonical timestamp is rebuilt from the merged times: close time
    (event, then row), open time (event, then row), then arrival time.
    """
    close_time = trade.close_time if trade.close_time is not None else Trade.close_time
    open_time = trade.open_time if trade.open_time is not None else Trade.open_time
    values = trade.update_fields()
    values["timestamp"] = func.coalesce(close_time, open_time, trade.timestamp)
    return values


def _insert(session: Session, user_id: int, trade: NormalizedTrade) -> ReconcileResult:
    row = Trade(user_id=user_id, **trade.fields())
    try:
        session.add(row)
        session.commit()
        session.refresh(row)
    except SQLAlchemyError:
        _fail(session, "insert")
    return ReconcileResult(mode=INSERTED, trade_id=row.id)


def _dialect_insert(session: Session):
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert
    if dialect == "sqlite":
        return sqlite.insert
    raise ValueError(f"Atomic upserts are not supported on {dialect}")


def _reconcile_atomic(session: Session, user_id: int, trade: NormalizedTrade) -> ReconcileResult:
    insert = _dialect_insert(session)
    stmt = (
        insert(Trade)
        .values(user_id=user_id, created_at=datetime.now(timezone.utc), **trade.fields())
        .on_conflict_do_nothing(index_elements=["user_id", "ticket", "platform"])
        .returning(Trade.id)
    )
    try:
        inserted_id = session.exec(stmt).scalar()
        if inserted_id is not None:
            session.commit()
    except SQLAlchemyError:
        _fail(session, "insert")
    if inserted_id is not None:
        return ReconcileResult(mode=INSERTED, trade_id=inserted_id)

    try:
        updated_id = session.exec(
            update(Trade)
            .where(Trade.user_id == user_id)
            .where(Trade.ticket == trade.ticket)
            .where(Trade.platform == trade.platform)
            .values(**_merge_values(trade))
            .returning(Trade.id)
        ).scalar()
        session.commit()
    except SQLAlchemyError:
        _fail(session, "update")
    if updated_id is None:
        # The conflicting row was deleted between the two statements
        logger.error(
            f"Trade update matched no row: user={user_id} ticket={trade.ticket} platform={trade.platform}"
        )
        raise PersistenceFailure("update")
    return ReconcileResult(mode=UPDATED, trade_id=updated_id)


def _fail(session: Session, operation: str):
    session.rollback()
    logger.exception(f"Trade {operation} failed")
    raise PersistenceFailure(operation)
