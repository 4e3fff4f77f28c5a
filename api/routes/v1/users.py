"""
api/routes/v1/users.py -- Profile endpoints for the authenticated user.

Routes (all require a bearer token):
  GET  /api/v1/users/profile          -- current user's profile
  PUT  /api/v1/users/profile          -- replace name and email
  POST /api/v1/users/change-password  -- verify old password, set new one

The user id always comes from the verified token's claims, never from the
request body or path, so a caller can only read or change their own record.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from api.dependencies import get_auth_service, get_current_claims
from api.models import ChangePasswordRequest, MessageResponse, UpdateProfileRequest, UserResponse
from auth.models import TokenClaims
from auth.service import AuthService

router = APIRouter()


@router.get("/users/profile", response_model=UserResponse)
def get_profile(
    claims: TokenClaims = Depends(get_current_claims),
    service: AuthService = Depends(get_auth_service),
) -> UserResponse:
    """Return the profile of the token's user. 404 if the account no longer exists."""
    return UserResponse.from_user(service.get_profile(claims.user_id))


@router.put("/users/profile", response_model=UserResponse)
def update_profile(
    body: UpdateProfileRequest,
    claims: TokenClaims = Depends(get_current_claims),
    service: AuthService = Depends(get_auth_service),
) -> UserResponse:
    """Replace name and email. 409 duplicate_email if the email belongs to someone else.

    Tokens already issued keep the old email in their claims until they expire.
    """
    user = service.update_profile(claims.user_id, body.name, body.email)
    return UserResponse.from_user(user)


@router.post("/users/change-password", response_model=MessageResponse)
def change_password(
    body: ChangePasswordRequest,
    claims: TokenClaims = Depends(get_current_claims),
    service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    """Change the password. 400 invalid_current_password if old_password is wrong."""
    service.change_password(claims.user_id, body.old_password, body.new_password)
    return MessageResponse(message="Password changed successfully.")
