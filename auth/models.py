"""
auth/models.py -- Domain dataclasses for the credential lifecycle.

Pattern: Data class (pure data container, zero logic). Stores and the
service do the work; api/models.py owns the HTTP shape.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class User:
    """A registered identity.

    email is the login key and is matched case-sensitively, exactly as stored.
    password_hash is the bcrypt digest. It is None on every User the
    AuthService hands back to a caller, so it can never leak into a response.
    Timestamps are ISO 8601 UTC strings; updated_at moves on every write.
    """

    id: str
    email: str
    name: str
    password_hash: str | None = field(default=None, repr=False)
    created_at: str | None = None
    updated_at: str | None = None


@dataclass(frozen=True)
class TokenClaims:
    """Identity and timing facts carried by a verified bearer token."""

    user_id: str
    email: str
    issued_at: int  # unix seconds
    expires_at: int  # unix seconds
    subject: str


@dataclass(frozen=True)
class IssuedToken:
    token: str
    expires_at: int  # unix seconds


@dataclass(frozen=True)
class AuthResult:
    """Outcome of a successful register or login."""

    user: User
    token: str
    expires_at: int


@dataclass(frozen=True)
class AuthConfig:
    """Construction-time configuration for the auth core.

    Built once by the application from core.config.Settings and immutable for
    the process lifetime. bcrypt_rounds exists so the test suite can use the
    bcrypt minimum; production always runs the default cost.
    """

    secret_key: str
    token_ttl_seconds: int = 86400
    issuer: str = "userauth"
    bcrypt_rounds: int = 12
