"""
api/routes/v1/auth.py -- Public registration and login endpoints.

Routes:
  POST /api/v1/auth/register   -- create account; 201 with user + bearer token
  POST /api/v1/auth/login      -- password login; 200 with user + bearer token

Security:
  [H2] Both routes carry a per-IP rate limit (LOGIN_RATE_LIMIT,
       REGISTER_RATE_LIMIT) in place of the global default. @router.post
       must be the outer decorator so FastAPI registers the slowapi wrapper
       as the endpoint; the middleware leaves these routes to that wrapper.
  [C1] Login failures for unknown email and wrong password are the same
       invalid_credentials 401; AuthService.login() equalizes their timing.
  [M5] Cache-Control: no-store on every response carrying a token.

Handlers are plain `def`, not `async def`: bcrypt is deliberately slow and
CPU-bound, so FastAPI must run these in its thread pool rather than on the
event loop. Typed AuthError failures propagate to the handler in api/main.py.
"""


from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.dependencies import get_auth_service
from api.limiter import limiter
from api.models import AuthResponse, LoginRequest, RegisterRequest
from auth.service import AuthService
from core.config import get_settings

_settings = get_settings()

router = APIRouter()


@router.post("/auth/register", response_model=AuthResponse, status_code=201)
@limiter.limit(_settings.register_rate_limit)  # [H2]
def register(
    request: Request,
    body: RegisterRequest,
    service: AuthService = Depends(get_auth_service),
) -> JSONResponse:
    """Create an account and return a bearer token for it.

    409 user_exists if the email is taken, whether the pre-check caught it or
    the database constraint did.
    """
    result = service.register(body.email, body.password, body.name)
    return _token_response(AuthResponse.from_result(result), status_code=201)


@router.post("/auth/login", response_model=AuthResponse)
@limiter.limit(_settings.login_rate_limit)  # [H2] brute-force mitigation
def login(
    request: Request,
    body: LoginRequest,
    service: AuthService = Depends(get_auth_service),
) -> JSONResponse:
    """Authenticate with email and password; return a bearer token.

    Returns the same invalid_credentials error for unknown email and wrong
    password to avoid leaking which emails are registered.
    """
    result = service.login(body.email, body.password)
    return _token_response(AuthResponse.from_result(result), status_code=200)


def _token_response(payload: AuthResponse, status_code: int) -> JSONResponse:
    resp = JSONResponse(status_code=status_code, content=payload.model_dump())
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp
