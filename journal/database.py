"""SQLModel database engine and session management."""

import logging

from sqlalchemy import inspect
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine, Session

from journal.config import settings

logger = logging.getLogger(__name__)

NATURAL_KEY_UNIQUE_INDEX = "ix_trade_natural_key_unique"


def _engine_kwargs(url: str) -> dict:
    # SQLite needs check_same_thread=False; PostgreSQL does not.
    # In-memory SQLite must share one connection or every session sees an empty db.
    kwargs: dict = {"echo": False}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
    return kwargs


engine = create_engine(settings.database_url, **_engine_kwargs(settings.database_url))


def _run_migrations():
    """Run lightweight schema migrations."""
    from sqlalchemy import text

    inspector = inspect(engine)
    if "trade" not in inspector.get_table_names():
        return

    # Atomic upserts need (user_id, ticket, platform) to be unique
    if settings.upsert_strategy == "atomic":
        existing_indexes = inspector.get_indexes("trade")
        has_unique_idx = any(idx["name"] == NATURAL_KEY_UNIQUE_INDEX for idx in existing_indexes)
        if not has_unique_idx:
            logger.info(f"Migrating: creating {NATURAL_KEY_UNIQUE_INDEX}")
            with engine.connect() as conn:
                conn.execute(text(
                    f"CREATE UNIQUE INDEX {NATURAL_KEY_UNIQUE_INDEX} "
                    "ON trade (user_id, ticket, platform)"
                ))
                conn.commit()


def create_db_and_tables():
    """Create all tables. Called on startup."""
    import journal.models  # noqa: F401  registers tables on the metadata

    SQLModel.metadata.create_all(engine)
    _run_migrations()


def get_session() -> Session:
    """Dependency that yields a database session."""
    with Session(engine) as session:
        yield session
