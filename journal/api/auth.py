"""Authentication API — register, login and current user."""

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlmodel import Session, select

from journal.database import get_session
from journal.models.user import User
from journal.services.auth import (
    create_access_token,
    hash_password,
    normalize_email,
    verify_password,
    verify_totp,
)
from journal.api.deps import get_current_user

router = APIRouter(prefix="/api/auth", tags=["auth"])


class RegisterRequest(BaseModel):
    email: str = Field(min_length=3, max_length=254, pattern=r"^[^@\s]+@[^@\s]+$")
    password: str = Field(min_length=8)


class LoginRequest(BaseModel):
    email: str
    password: str
    totp_code: str | None = None


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


class UserRead(BaseModel):
    id: int
    email: str
    totp_enabled: bool
    created_at: datetime


def _user_read(user: User) -> UserRead:
    return UserRead(
        id=user.id,
        email=user.email,
        totp_enabled=user.totp_secret is not None,
        created_at=user.created_at,
    )


@router.post("/register", response_model=UserRead, status_code=201)
def register(body: RegisterRequest, session: Session = Depends(get_session)):
    email = normalize_email(body.email)
    if session.exec(select(User).where(User.email == email)).first():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already registered")

    user = User(email=email, hashed_password=hash_password(body.password))
    session.add(user)
    session.commit()
    session.refresh(user)
    return _user_read(user)


@router.post("/login", response_model=LoginResponse)
def login(body: LoginRequest, session: Session = Depends(get_session)):
    email = normalize_email(body.email)
    user = session.exec(select(User).where(User.email == email)).first()

    if not user or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
        )

    if not verify_password(body.password, user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
        )

    if user.totp_secret and not verify_totp(user.totp_secret, body.totp_code):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid TOTP code",
        )

    token = create_access_token(subject=user.email)
    return LoginResponse(access_token=token)


@router.get("/me", response_model=UserRead)
def me(user: User = Depends(get_current_user)):
    return _user_read(user)
