from __future__ import annotations


class BookingValidationError(ValueError):
    """A booking request broke a policy rule; the message is shown to the user."""


class InvalidEnvironment(BookingValidationError):
    pass


class DurationTooLong(BookingValidationError):
    pass


class DurationTooShort(BookingValidationError):
    pass


class CommandUsageError(ValueError):
    """Slash command text could not be parsed."""


class AuthenticationError(Exception):
    """Inbound request failed signature verification."""

    status_code = 401
    detail = "Unauthorized"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.detail)


class MissingTimestamp(AuthenticationError):
    detail = "Missing timestamp"


class InvalidTimestamp(AuthenticationError):
    detail = "Invalid timestamp"


class StaleTimestamp(AuthenticationError):
    detail = "Timestamp too old"


class MissingSignature(AuthenticationError):
    detail = "Missing signature"


class SignatureMismatch(AuthenticationError):
    detail = "Invalid signature"


class BodyReadFailure(AuthenticationError):
    status_code = 500
    detail = "Failed to read body"
