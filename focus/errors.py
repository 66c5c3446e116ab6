"""
Error categories surfaced to the user.
"""


class FocusError(Exception):
    """Base class for errors the bot reports back to the user."""


class ValidationError(FocusError):
    """Malformed request."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.message = message
        self.field = field


class NotFoundError(FocusError):
    """Unknown reflection or missing record."""


class ProviderError(FocusError):
    """Calendar, AI or network failure."""
