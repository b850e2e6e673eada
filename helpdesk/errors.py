"""Error taxonomy shared by every helpdesk service.

Each error carries the HTTP status it maps to so the API layer can turn any of them
into a ``{"error": ..., "status": ...}`` envelope without knowing the concrete class.
"""

from __future__ import annotations

from typing import Mapping, Sequence


class HelpdeskError(RuntimeError):
    """Base error for helpdesk operations."""

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class ValidationError(HelpdeskError):
    """Missing or malformed input; carries per-field messages when available."""

    status_code = 400
    default_message = "Invalid input"

    def __init__(
        self,
        message: str | None = None,
        *,
        fields: Mapping[str, Sequence[str]] | None = None,
    ) -> None:
        super().__init__(message)
        self.fields: dict[str, list[str]] = {key: list(value) for key, value in (fields or {}).items()}


class UnauthorizedError(HelpdeskError):
    status_code = 401
    default_message = "Authentication required"


class ForbiddenError(HelpdeskError):
    status_code = 403
    default_message = "Insufficient permissions"


class NotFoundError(HelpdeskError):
    status_code = 404
    default_message = "Not found"


class ConflictError(HelpdeskError):
    status_code = 409
    default_message = "Conflict"


class InternalError(HelpdeskError):
    """Storage or unexpected failure; the message is never shown to callers."""

    status_code = 500


class InvalidCredentialsError(UnauthorizedError):
    default_message = "Invalid email or password"


class DuplicateEmailError(ConflictError):
    default_message = "A user with this email already exists"


class UserNotFoundError(NotFoundError):
    default_message = "User not found"


class TicketNotFoundError(NotFoundError):
    default_message = "Ticket not found"


class TicketConflictError(ConflictError):
    default_message = "Ticket was changed by someone else"


class ArticleNotFoundError(NotFoundError):
    default_message = "Article not found"


class NotificationNotFoundError(NotFoundError):
    default_message = "Notification not found"


def require_fields(values: Mapping[str, object], names: Sequence[str]) -> None:
    """Raise ``ValidationError`` listing every required field that is blank."""

    missing = {
        name: ["This field is required"]
        for name in names
        if values.get(name) is None or (isinstance(values.get(name), str) and not str(values.get(name)).strip())
    }
    if missing:
        raise ValidationError("Required fields are missing", fields=missing)
