"""
auth/tokens.py -- Bearer token issuance and verification.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with the configured secret
       and carry user_id, email, iat, exp, sub (= user_id) and iss.

  Algorithm allow-list: decode_token() passes algorithms=["HS256"] and nothing
       else. A token whose header names "none", HS512, RS256 or anything other
       than HS256 fails signature verification before any claim is read. This
       closes the alg-confusion / unsigned-token bypass.

  Expiry: python-jose's own exp check reads the wall clock, so it is switched
       off (verify_exp=False) and expiry is checked here against the injected
       clock instead. A token is valid only while now < exp -- no leeway.
       Signature is always checked first, so an expired token with a bad
       signature is reported as invalid, not expired.

  Revocation: none. Tokens are stateless; a password change does not
       invalidate tokens issued before it. Accepted limitation.

Layer rule: no imports from api/ or core/. Secret, TTL and issuer arrive via
AuthConfig at construction time.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone

from jose import JWTError, jwt

from auth.errors import TokenExpiredError, TokenInvalidError
from auth.models import AuthConfig, IssuedToken, TokenClaims, User

logger = logging.getLogger("userauth.auth.tokens")

ALGORITHM = "HS256"

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# JWT encode / decode
# ---------------------------------------------------------------------------


def encode_token(user: User, secret: str, ttl_seconds: int, *, now: datetime, issuer: str) -> IssuedToken:
    """Sign a token for user, valid for ttl_seconds from now.

    Returns the encoded JWT and its expiry as unix seconds, so callers can
    report the expiry without decoding the token again.
    """
    issued_at = int(now.timestamp())
    expires_at = issued_at + ttl_seconds
    payload = {
        "user_id": user.id,
        "email": user.email,
        "sub": user.id,
        "iat": issued_at,
        "exp": expires_at,
        "iss": issuer,
    }
    token = jwt.encode(payload, secret, algorithm=ALGORITHM)
    return IssuedToken(token=token, expires_at=expires_at)


def decode_token(token: str, secret: str, *, now: datetime, issuer: str) -> TokenClaims:
    """Verify token and return its claims.

    Raises:
        TokenInvalidError: bad signature, wrong or missing algorithm, malformed
            token, wrong issuer, or missing/ill-typed claims.
        TokenExpiredError: the signature is good but now >= exp.
    """
    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=[ALGORITHM],
            issuer=issuer,
            options={"verify_exp": False},
        )
    except JWTError as exc:
        logger.debug("Token rejected: %s", exc)
        raise TokenInvalidError() from exc

    user_id = payload.get("user_id")
    email = payload.get("email")
    subject = payload.get("sub")
    issued_at = payload.get("iat")
    expires_at = payload.get("exp")

    if not isinstance(user_id, str) or not isinstance(email, str) or subject != user_id:
        raise TokenInvalidError("Token is missing identity claims.")
    if not _is_timestamp(issued_at) or not _is_timestamp(expires_at):
        raise TokenInvalidError("Token is missing timing claims.")

    if now.timestamp() >= expires_at:
        raise TokenExpiredError()

    return TokenClaims(
        user_id=user_id,
        email=email,
        issued_at=issued_at,
        expires_at=expires_at,
        subject=subject,
    )


def _is_timestamp(value) -> bool:
    # bool is an int subclass; a claim of `true` is not a timestamp.
    return isinstance(value, int) and not isinstance(value, bool)


# ---------------------------------------------------------------------------
# Issuer bound to one configuration
# ---------------------------------------------------------------------------


class TokenIssuer:
    """Binds secret, TTL, issuer name and clock for the AuthService.

    Usage:
        tokens = TokenIssuer(AuthConfig(secret_key=...))
        issued = tokens.issue(user)
        claims = tokens.verify(issued.token)
    """

    def __init__(self, config: AuthConfig, clock: Clock | None = None) -> None:
        if not config.secret_key:
            raise ValueError("TokenIssuer requires a non-empty secret")
        self._secret = config.secret_key
        self._ttl_seconds = config.token_ttl_seconds
        self._issuer = config.issuer
        self._clock = clock or utcnow

    @property
    def ttl_seconds(self) -> int:
        return self._ttl_seconds

    def issue(self, user: User) -> IssuedToken:
        return encode_token(user, self._secret, self._ttl_seconds, now=self._clock(), issuer=self._issuer)

    def verify(self, token: str) -> TokenClaims:
        return decode_token(token, self._secret, now=self._clock(), issuer=self._issuer)
