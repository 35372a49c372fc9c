"""Exception hierarchy shared by the store, services, and Slack dispatchers."""

from typing import Optional


class PokerError(Exception):
    """Base class for planning poker errors.

    ``user_message`` is the text shown to the Slack user when the error
    reaches a dispatcher boundary.
    """

    default_user_message = "Sorry, something went wrong. Please try again."

    def __init__(self, message: str, user_message: Optional[str] = None):
        self.message = message
        self.user_message = user_message or self.default_user_message
        super().__init__(message)


class ValidationError(PokerError):
    """Missing or invalid user input."""


class StoreError(PokerError):
    """Persistence failure."""

    def __init__(
        self,
        operation: str,
        table: str,
        cause: Optional[BaseException] = None,
    ):
        self.operation = operation
        self.table = table
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"{operation} on {table} failed{detail}")


class UpstreamError(PokerError):
    """Slack API call failure."""


class OAuthExchangeError(UpstreamError):
    """Slack rejected the OAuth code exchange.

    ``error`` is Slack's error string, surfaced verbatim to the installer.
    """

    def __init__(self, error: str):
        self.error = error
        super().__init__(f"Token exchange failed: {error}")


class PayloadError(PokerError):
    """Malformed or unsupported interactive payload."""
