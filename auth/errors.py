"""
Exceptions surfaced to API clients by the auth handler.
"""

from __future__ import annotations


class AuthError(Exception):
    """An error whose message is safe to return to the client."""

    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class PasswordValidationError(AuthError):
    """Raised by a password validation callback to reject a password."""


class WebAuthnError(AuthError):
    pass


class UnknownMethodError(AuthError):
    status_code = 404

    def __init__(self, method: str) -> None:
        super().__init__(f"Unknown auth method '{method}'")
