"""Error taxonomy for the stall API.

Every failure is terminal for the request that hit it. ``main.py`` renders
these as ``{"error": message, "details": ..., **extra}`` with ``status_code``.
"""

from __future__ import annotations

from typing import Any


class StallApiError(Exception):
    status_code: int = 500
    default_message: str = "Internal error"

    def __init__(self, message: str | None = None, *, details: str | None = None, **extra: Any):
        self.message = message or self.default_message
        self.details = details
        self.extra = extra
        super().__init__(self.message)

    def to_body(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.message}
        if self.details:
            body["details"] = self.details
        body.update(self.extra)
        return body


# Authentication (401 / 403)


class MissingCredential(StallApiError):
    status_code = 401
    default_message = "Missing auth token"


class InvalidCredential(StallApiError):
    status_code = 401
    default_message = "Invalid auth token"


class UnverifiedIdentity(StallApiError):
    status_code = 403
    default_message = "Email not found"


# Authorization


class AllowlistQueryFailure(StallApiError):
    status_code = 500
    default_message = "Failed to verify email"


class NotAuthorized(StallApiError):
    status_code = 403
    default_message = "Email not authorized"


# Request validation (400)


class InvalidBody(StallApiError):
    status_code = 400
    default_message = "Invalid JSON body"


class MissingFields(StallApiError):
    status_code = 400
    default_message = "Missing required fields"

    def __init__(self, fields: list[str]):
        super().__init__(fields=list(fields))
        self.fields = list(fields)


class InvalidName(StallApiError):
    status_code = 400
    default_message = "Invalid stall name"


# Infrastructure (500)


class SlugQueryFailure(StallApiError):
    status_code = 500
    default_message = "Failed to validate slug"


class PersistenceFailure(StallApiError):
    status_code = 500
    default_message = "Failed to save submission"


# Collaborator errors. These never reach the client directly; the components
# above translate them.


class StoreError(Exception):
    """A record store call failed."""

    def __init__(self, message: str, *, code: str | None = None):
        self.message = message
        self.code = code
        super().__init__(message)


class UniqueViolation(StoreError):
    """A write was rejected by a unique constraint."""

    def __init__(self, message: str, *, column: str | None = None, code: str | None = "23505"):
        super().__init__(message, code=code)
        self.column = column

    def on_column(self, column: str) -> bool:
        """True when the violated constraint is the one on ``column``.

        ``self.column`` is either the column itself or a "<table>_<column>" constraint stem.
        """
        if not self.column:
            return False
        return self.column == column or self.column.endswith("_" + column)


class IdentityProviderError(Exception):
    """The identity provider could not be reached or refused the request."""
