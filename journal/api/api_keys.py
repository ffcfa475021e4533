"""API key management for the signed-in user."""

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session

from journal.database import get_session
from journal.models.api_key import ApiKey
from journal.models.user import User
from journal.schemas.api_key import ApiKeyCreate, ApiKeyCreated, ApiKeyRead
from journal.services.api_keys import create_api_key, list_api_keys, mask_key, revoke_api_key
from journal.api.deps import get_current_user

router = APIRouter(prefix="/api/api-keys", tags=["api-keys"])


def _read(api_key: ApiKey) -> ApiKeyRead:
    return ApiKeyRead(
        id=api_key.id,
        name=api_key.name,
        masked_key=mask_key(api_key.key),
        created_at=api_key.created_at,
        last_used_at=api_key.last_used_at,
        revoked_at=api_key.revoked_at,
    )


@router.get("", response_model=list[ApiKeyRead])
def list_keys(
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return [_read(k) for k in list_api_keys(session, user.id)]


@router.post("", response_model=ApiKeyCreated, status_code=201)
def create_key(
    data: ApiKeyCreate,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    api_key = create_api_key(session, user.id, data.name)
    return ApiKeyCreated(**_read(api_key).model_dump(), key=api_key.key)


@router.post("/{key_id}/revoke", response_model=ApiKeyRead)
def revoke_key(
    key_id: int,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    api_key = session.get(ApiKey, key_id)
    if not api_key or api_key.user_id != user.id:
        raise HTTPException(status_code=404, detail="API key not found")
    return _read(revoke_api_key(session, api_key))
