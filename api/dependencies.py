"""
api/dependencies.py -- FastAPI Depends() helpers for the auth core.

get_auth_service() hands route handlers the AuthService built in the app
lifespan (app.state.auth_service). get_current_claims() is the bearer guard:
it reads "Authorization: Bearer <token>" and returns the verified TokenClaims.

Only the Authorization header is accepted. There is no cookie fallback --
clients authenticate with the bearer token returned by register/login.

Token errors are not caught here. TokenExpiredError / TokenInvalidError
propagate to the AuthError handler in api/main.py, which answers 401 with
code token_expired / token_invalid. A missing or malformed header is answered
here with 401 unauthorized.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.models import TokenClaims
from auth.service import AuthService


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def get_current_claims(request: Request) -> TokenClaims:
    """Require a valid bearer token.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(claims: TokenClaims = Depends(get_current_claims)): ...
    """
    auth_header = request.headers.get("Authorization", "")
    scheme, _, token = auth_header.partition(" ")
    if scheme != "Bearer" or not token.strip():
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Missing or invalid Authorization header."},
            headers={"WWW-Authenticate": "Bearer"},
        )
    service = get_auth_service(request)
    return service.verify_token(token.strip())
