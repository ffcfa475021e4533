"""Pydantic schemas for API key management."""

from datetime import datetime

from pydantic import BaseModel, Field, field_validator


class ApiKeyCreate(BaseModel):
    name: str = Field(min_length=1, max_length=120)

    @field_validator("name")
    @classmethod
    def _trim_name(cls, value: str) -> str:
        text = value.strip()
        if not text:
            raise ValueError("must not be empty")
        return text


class ApiKeyRead(BaseModel):
    id: int
    name: str
    masked_key: str
    created_at: datetime
    last_used_at: datetime | None
    revoked_at: datetime | None
    # the full key is NEVER exposed after creation


class ApiKeyCreated(ApiKeyRead):
    key: str  # returned exactly once
