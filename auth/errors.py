"""
auth/errors.py -- Error taxonomy for the auth service.

Every failure the service can report is an AuthError subclass carrying a
stable machine code, a user-visible message and the HTTP status the transport
layer should use. api/main.py registers one exception handler for the base
class, so routes never translate errors by hand.

Messages for unknown-user and wrong-password are identical on purpose
(InvalidCredentials covers both). AccountDisabled and AlreadyInitialized are
deliberately more specific.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for all auth-service failures."""

    code: str = "auth_error"
    message: str = "Authentication failed"
    status_code: int = 401

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)


class MissingCredentials(AuthError):
    code = "missing_credentials"
    message = "Please provide both username and password"
    status_code = 400


class InvalidCredentials(AuthError):
    code = "invalid_credentials"
    message = "Invalid username or password"
    status_code = 401


class AccountDisabled(AuthError):
    code = "account_disabled"
    message = "Account is disabled"
    status_code = 401


class NoToken(AuthError):
    code = "no_token"
    message = "No token provided"
    status_code = 401


class InvalidToken(AuthError):
    """Bad signature, malformed, expired, or subject no longer active."""

    code = "invalid_token"
    message = "Invalid token"
    status_code = 401


class AlreadyInitialized(AuthError):
    code = "already_initialized"
    message = "Setup already completed"
    status_code = 400


class StoreFailure(AuthError):
    """Persistence-layer failure surfaced to the caller as a 500."""

    code = "store_failure"
    message = "Server error"
    status_code = 500
