"""
auth/errors.py -- Typed failure outcomes of the credential lifecycle.

Every operation in auth/ either returns its success payload or raises exactly
one of these. Each class carries a stable machine-readable code and a
human-readable default message. Transport layers (api/) map the class to a
status code; nothing in auth/ knows about HTTP.

InvalidCredentialsError is deliberately a single error for both "no such
email" and "wrong password" [C1]. Do not add a subclass that tells them apart.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for all auth core failures."""

    code = "auth_error"
    message = "Authentication error."

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)


class UserExistsError(AuthError):
    code = "user_exists"
    message = "A user with this email already exists."


class UserNotFoundError(AuthError):
    code = "user_not_found"
    message = "User not found."


class InvalidCredentialsError(AuthError):
    code = "invalid_credentials"
    message = "Invalid email or password."


class InvalidCurrentPasswordError(AuthError):
    code = "invalid_current_password"
    message = "Invalid current password."


class TokenExpiredError(AuthError):
    code = "token_expired"
    message = "Token has expired."


class TokenInvalidError(AuthError):
    code = "token_invalid"
    message = "Invalid token."


class PasswordTooLongError(AuthError):
    """The password is longer than bcrypt can hash without truncating it."""

    code = "password_too_long"
    message = "Password must be at most 72 bytes."


class HashingError(AuthError):
    """Password hashing failed internally. Fatal to the calling operation."""

    code = "hashing_error"
    message = "Password hashing failed."


# ---------------------------------------------------------------------------
# Store-level outcomes
# ---------------------------------------------------------------------------


class DuplicateEmailError(AuthError):
    """The store's UNIQUE(email) constraint rejected a write.

    The store is the authority on uniqueness. AuthService.register() turns this
    into UserExistsError; update_profile() lets it propagate as-is.
    """

    code = "duplicate_email"
    message = "Email is already in use."


class StoreUnavailableError(AuthError):
    """The credential store could not be reached. Not retried by this layer."""

    code = "store_unavailable"
    message = "Credential store unavailable."
