"""Custom exceptions for sheetfeed."""

from __future__ import annotations


class SheetFeedError(Exception):
    """Base exception for all sheetfeed errors."""

    pass


class ValidationError(SheetFeedError, ValueError):
    """Raised when a local precondition fails, before any request is sent."""

    pass


class AuthError(SheetFeedError):
    """Raised when the credential issuer cannot produce an access token."""

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.cause = cause


class FeedParseError(SheetFeedError):
    """Raised when a response body is not well-formed XML."""

    pass


class EmptyResponseError(SheetFeedError):
    """Raised when an operation needs a response body but got none."""

    def __init__(self, operation: str) -> None:
        self.operation = operation
        super().__init__(f"No response to {operation} call")


class ProtocolError(SheetFeedError):
    """Raised when a response cannot be matched to what was sent."""

    pass


class TransportError(SheetFeedError):
    """Base exception for transport-related errors."""

    pass


class AccessDeniedError(TransportError):
    """Raised when a sheet is not publicly readable.

    The service answers 200 with an HTML sign-in page in that case.
    """

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or "Sheet is private. Use authentication or make public.")


class InvalidCredentialError(TransportError):
    """Raised when the service rejects the credential (401)."""

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or "Invalid authorization key.")


class HttpError(TransportError):
    """Raised for any other error status (>= 400)."""

    def __init__(self, status_code: int, reason: str, body: str) -> None:
        self.status_code = status_code
        self.reason = reason
        self.body = body
        super().__init__(f"HTTP error {status_code} ({reason}) - {body}")
