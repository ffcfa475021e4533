"""Shared API dependencies."""

from fastapi import BackgroundTasks, Depends, Header, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlmodel import Session, select

from journal.database import get_session
from journal.errors import AuthFailure
from journal.models.api_key import ApiKey
from journal.models.user import User
from journal.services.api_keys import extract_api_key, resolve_api_key, touch_last_used
from journal.services.auth import decode_access_token

bearer_scheme = HTTPBearer()


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    session: Session = Depends(get_session),
) -> User:
    """Validate JWT and return the current user."""
    email = decode_access_token(credentials.credentials)
    if email is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )
    user = session.exec(select(User).where(User.email == email)).first()
    if user is None or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or inactive",
        )
    return user


def get_api_key_owner(
    background_tasks: BackgroundTasks,
    authorization: str | None = Header(default=None),
    x_api_key: str | None = Header(default=None),
    session: Session = Depends(get_session),
) -> ApiKey:
    """Authenticate a bot request by API key.

    The last-used timestamp is written after the response is sent.
    """
    raw_key = extract_api_key(authorization, x_api_key)
    if raw_key is None:
        raise AuthFailure("missing")
    api_key = resolve_api_key(session, raw_key)
    background_tasks.add_task(touch_last_used, api_key.id)
    return api_key
