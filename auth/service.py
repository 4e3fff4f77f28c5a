"""
auth/service.py -- Credential lifecycle orchestration.

AuthService is the only component with business rules. It composes the three
collaborators it is constructed with:

  store   -- UserStore (auth/store.py): persistence, uniqueness authority
  hasher  -- PasswordHasher (auth/passwords.py): bcrypt hash + verify
  tokens  -- TokenIssuer (auth/tokens.py): HS256 bearer tokens

It holds no mutable state between calls, so one instance is shared by every
request worker without locking. Each operation makes at most one store write,
and hashing is never interleaved between two store writes.

Every failure is raised as a typed error from auth/errors.py and propagates to
the caller. Nothing is logged-and-swallowed, and nothing is retried.

Anti-enumeration [C1]:
  login() raises the same InvalidCredentialsError for "no such email" and
  "wrong password", and runs a bcrypt check in both branches so the two cost
  the same. The distinction is logged internally at WARNING only.
"""

from __future__ import annotations

import dataclasses
import logging

from auth.errors import (
    DuplicateEmailError,
    InvalidCredentialsError,
    InvalidCurrentPasswordError,
    UserExistsError,
    UserNotFoundError,
)
from auth.models import AuthConfig, AuthResult, TokenClaims, User
from auth.passwords import PasswordHasher
from auth.store import UserStore
from auth.tokens import Clock, TokenIssuer

logger = logging.getLogger("userauth.auth.service")


class AuthService:
    def __init__(self, store: UserStore, hasher: PasswordHasher, tokens: TokenIssuer) -> None:
        self.store = store
        self.hasher = hasher
        self.tokens = tokens

    # ------------------------------------------------------------------
    # Registration and login
    # ------------------------------------------------------------------

    def register(self, email: str, password: str, name: str) -> AuthResult:
        """Create an account and sign the new user in.

        The find_by_email() pre-check only produces a friendlier error in the
        common case. The store's UNIQUE constraint is the authority: if a
        concurrent registration wins the race, create() raises
        DuplicateEmailError and it is reported as UserExistsError all the same.
        """
        if self.store.find_by_email(email) is not None:
            raise UserExistsError()

        password_hash = self.hasher.hash(password)
        try:
            user = self.store.create(email, password_hash, name)
        except DuplicateEmailError as exc:
            logger.info("Registration lost uniqueness race for %s", email)
            raise UserExistsError() from exc

        result = self._issue(user)
        logger.info("User registered: %s (%s)", user.id, user.email)
        return result

    def login(self, email: str, password: str) -> AuthResult:
        user = self.store.find_by_email(email)
        if user is None:
            # Equalize timing -- do NOT return before running bcrypt [C1]
            self.hasher.verify_dummy(password)
            logger.warning("Login attempt with unknown email: %s", email)
            raise InvalidCredentialsError()
        if not self.hasher.verify(password, user.password_hash):
            logger.warning("Login attempt with wrong password: %s", email)
            raise InvalidCredentialsError()

        result = self._issue(user)
        logger.info("User logged in: %s (%s)", user.id, user.email)
        return result

    # ------------------------------------------------------------------
    # Profile
    # ------------------------------------------------------------------

    def get_profile(self, user_id: str) -> User:
        user = self.store.find_by_id(user_id)
        if user is None:
            raise UserNotFoundError()
        return _public(user)

    def update_profile(self, user_id: str, name: str, email: str) -> User:
        """Overwrite name and email.

        Uniqueness is not re-checked here; a collision surfaces as the store's
        DuplicateEmailError.
        """
        user = self.store.update(user_id, name, email)
        if user is None:
            raise UserNotFoundError()
        logger.info("User profile updated: %s (%s)", user.id, user.email)
        return _public(user)

    def change_password(self, user_id: str, old_password: str, new_password: str) -> None:
        """Replace the password after proving knowledge of the current one.

        Tokens issued before the change stay valid until they expire.
        """
        user = self.store.find_by_id(user_id)
        if user is None:
            raise UserNotFoundError()
        if not self.hasher.verify(old_password, user.password_hash):
            logger.warning("Password change with wrong current password: %s", user_id)
            raise InvalidCurrentPasswordError()

        new_hash = self.hasher.hash(new_password)
        if not self.store.update_password_hash(user_id, new_hash):
            raise UserNotFoundError()
        logger.info("Password changed: %s", user_id)

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    def verify_token(self, token: str) -> TokenClaims:
        """Return the claims of a valid token. Raises TokenInvalidError / TokenExpiredError."""
        return self.tokens.verify(token)

    def _issue(self, user: User) -> AuthResult:
        issued = self.tokens.issue(user)
        return AuthResult(user=_public(user), token=issued.token, expires_at=issued.expires_at)


def _public(user: User) -> User:
    """Copy of user with the password hash stripped."""
    return dataclasses.replace(user, password_hash=None)


def build_auth_service(store: UserStore, config: AuthConfig, clock: Clock | None = None) -> AuthService:
    """Assemble an AuthService from its configuration.

    This is the single construction point used by the application lifespan
    and by tests; nothing in auth/ reads configuration on its own.
    """
    return AuthService(
        store=store,
        hasher=PasswordHasher(rounds=config.bcrypt_rounds),
        tokens=TokenIssuer(config, clock=clock),
    )
