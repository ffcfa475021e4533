"""Error taxonomy shared by the API layer and the reconciliation engine."""


class JournalError(Exception):
    """Base class for errors rendered as ``{"error": message}`` responses."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class AuthFailure(JournalError):
    """Missing, unknown or revoked API key."""

    status_code = 401

    MESSAGES = {
        "missing": "Missing API key",
        "invalid": "Invalid or revoked API key",
        "revoked": "Invalid or revoked API key",
    }

    def __init__(self, reason: str):
        super().__init__(self.MESSAGES.get(reason, "Unauthorized"))
        self.reason = reason


class ValidationFailure(JournalError):
    status_code = 400


class PersistenceFailure(JournalError):
    """A store read or write failed. The message never carries driver details."""

    status_code = 500

    def __init__(self, operation: str):
        super().__init__(f"Failed to {operation} trade")
        self.operation = operation
