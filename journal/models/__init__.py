"""Database models."""

from journal.models.user import User
from journal.models.api_key import ApiKey
from journal.models.trade import Trade

__all__ = [
    "User",
    "ApiKey",
    "Trade",
]
