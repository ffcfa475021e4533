"""API key resolution and lifecycle: generate, list, revoke, resolve."""

import logging
import secrets
from datetime import datetime, timezone

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from journal.config import settings
from journal.database import engine
from journal.errors import AuthFailure
from journal.models.api_key import ApiKey

logger = logging.getLogger(__name__)

_KEY_RANDOM_LENGTH = 32


def generate_api_key() -> str:
    """Return a new opaque key, e.g. ``trj_live_<32 url-safe chars>``."""
    return f"{settings.api_key_prefix}{secrets.token_urlsafe(24)[:_KEY_RANDOM_LENGTH]}"


def mask_key(key: str) -> str:
    if len(key) <= 8:
        return key
    return f"{key[:4]}…{key[-4:]}"


def extract_api_key(authorization: str | None, x_api_key: str | None) -> str | None:
    """Pull the raw key from ``Authorization: Bearer <key>`` or ``x-api-key``.

    A bearer header wins when both are present. Authorization headers using
    any other scheme are ignored.
    """
    if authorization and authorization.strip().lower().startswith("bearer "):
        key = authorization.strip()[7:].strip()
        if key:
            return key
    if x_api_key and x_api_key.strip():
        return x_api_key.strip()
    return None


def resolve_api_key(session: Session, raw_key: str) -> ApiKey:
    """Return the active ApiKey matching ``raw_key``.

    Raises AuthFailure("invalid") when no key matches and
    AuthFailure("revoked") when the key was revoked.
    """
    api_key = session.exec(select(ApiKey).where(ApiKey.key == raw_key)).first()
    if api_key is None:
        logger.info(f"API key rejected: unknown key {mask_key(raw_key)}")
        raise AuthFailure("invalid")
    if api_key.is_revoked:
        logger.info(f"API key rejected: key id={api_key.id} revoked at {api_key.revoked_at}")
        raise AuthFailure("revoked")
    return api_key


def touch_last_used(key_id: int) -> None:
    """Record that a key was just used. Failures are logged, never raised."""
    try:
        with Session(engine) as session:
            api_key = session.get(ApiKey, key_id)
            if api_key is None:
                return
            api_key.last_used_at = datetime.now(timezone.utc)
            session.add(api_key)
            session.commit()
    except SQLAlchemyError as e:
        logger.warning(f"Could not update last_used_at for API key id={key_id}: {e}")


def create_api_key(session: Session, user_id: int, name: str) -> ApiKey:
    api_key = ApiKey(user_id=user_id, name=name, key=generate_api_key())
    session.add(api_key)
    session.commit()
    session.refresh(api_key)
    logger.info(f"API key created: id={api_key.id} user={user_id} name={name!r}")
    return api_key


def list_api_keys(session: Session, user_id: int) -> list[ApiKey]:
    stmt = (
        select(ApiKey)
        .where(ApiKey.user_id == user_id)
        .order_by(ApiKey.created_at.desc(), ApiKey.id.desc())
    )
    return list(session.exec(stmt).all())


def revoke_api_key(session: Session, api_key: ApiKey) -> ApiKey:
    """Revoke a key. Revoking twice keeps the first revocation time."""
    if api_key.revoked_at is None:
        api_key.revoked_at = datetime.now(timezone.utc)
        session.add(api_key)
        session.commit()
        session.refresh(api_key)
        logger.info(f"API key revoked: id={api_key.id} user={api_key.user_id}")
    return api_key
