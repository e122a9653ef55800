"""Error taxonomy shared by all clinic chat services.

Every failure that reaches a caller is one of these classes. Each carries an
HTTP status code and a short machine-readable ``kind`` so that the REST
layer and the WebSocket layer can render the same error the same way.

Hierarchy:
    ChatError
    ├── ConfigurationError   (fatal at startup, never retried)
    ├── AuthenticationError  (sign-in failed; user may retry)
    ├── AuthorizationError   (operation not permitted for this user)
    ├── NotFoundError        (unknown room, message, or invite code)
    ├── InvalidInputError    (rejected by a local guard)
    └── StoreError           (transient I/O failure in the document store)
"""
from enum import Enum
from typing import Optional


class ChatError(Exception):
    """Base exception for clinic chat errors."""

    kind = "error"
    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"error": self.kind, "message": self.message}


class ConfigurationError(ChatError):
    """Raised when connection credentials or settings are missing or malformed."""

    kind = "configuration"
    status_code = 503


class AuthFailure(str, Enum):
    """Distinct ways an interactive sign-in can fail."""

    CANCELLED = "cancelled"
    POPUP_BLOCKED = "popup_blocked"
    EXPIRED = "expired"
    PROVIDER_ERROR = "provider_error"


AUTH_FAILURE_MESSAGES = {
    AuthFailure.CANCELLED: "Sign-in was cancelled. Please try again.",
    AuthFailure.POPUP_BLOCKED: (
        "The sign-in popup was blocked. Allow popups for this site in your "
        "browser settings and try again."
    ),
    AuthFailure.EXPIRED: "The sign-in request expired. Please start again.",
    AuthFailure.PROVIDER_ERROR: "Sign-in failed because of a provider error.",
}

_CANCELLED_CODES = {
    "access_denied",
    "auth/popup-closed-by-user",
    "auth/cancelled-popup-request",
    "auth/user-cancelled",
}
_POPUP_BLOCKED_CODES = {"auth/popup-blocked", "popup_blocked"}
_EXPIRED_CODES = {"expired_token", "auth/timeout"}


def classify_auth_error(code: Optional[str]) -> AuthFailure:
    """Map an identity-provider error code to an :class:`AuthFailure`."""
    normalized = (code or "").strip().lower()
    if normalized in _CANCELLED_CODES:
        return AuthFailure.CANCELLED
    if normalized in _POPUP_BLOCKED_CODES:
        return AuthFailure.POPUP_BLOCKED
    if normalized in _EXPIRED_CODES:
        return AuthFailure.EXPIRED
    return AuthFailure.PROVIDER_ERROR


class AuthenticationError(ChatError):
    """Raised when the identity provider rejects or aborts a sign-in."""

    kind = "authentication"
    status_code = 401

    def __init__(self, failure: AuthFailure, detail: str = ""):
        self.failure = failure
        self.detail = detail
        super().__init__(AUTH_FAILURE_MESSAGES[failure])

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["failure"] = self.failure.value
        return data


class AuthorizationError(ChatError):
    """Raised when a user attempts an operation reserved for someone else."""

    kind = "authorization"
    status_code = 403


class NotFoundError(ChatError):
    """Raised when a room, message, user, or invite code does not exist."""

    kind = "not_found"
    status_code = 404


class InvalidInputError(ChatError):
    """Raised when a local guard rejects user input before any I/O."""

    kind = "invalid_input"
    status_code = 422


class StoreError(ChatError):
    """Raised when the document store fails to complete an operation."""

    kind = "transient_io"
    status_code = 503
