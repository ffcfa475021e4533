"""ApiKey model — opaque bearer secrets used by trading bots to submit trades."""

from datetime import datetime, timezone
from sqlmodel import SQLModel, Field


class ApiKey(SQLModel, table=True):
    __tablename__ = "api_key"

    id: int | None = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", index=True)
    name: str = "default"
    key: str = Field(unique=True, index=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    last_used_at: datetime | None = None
    revoked_at: datetime | None = None  # set once, never cleared

    @property
    def is_revoked(self) -> bool:
        return self.revoked_at is not None
