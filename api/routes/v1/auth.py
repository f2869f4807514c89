"""
api/routes/v1/auth.py -- Registration, login and current-user endpoints.

Routes:
  POST /api/v1/auth/register   -- create account; 201 with token + user
  POST /api/v1/auth/login      -- password login; 200 with token + user
  GET  /api/v1/auth/me         -- current user (requires bearer token)

AuthService returns AuthResult values; this module is where an AuthError
becomes an HTTP status (_STATUS_BY_ERROR). Error bodies use the shared
{"error": {...}} envelope.

Security:
  Register and login are rate-limited per IP (Settings.auth_rate_limit).
  Login returns the same 401 body for unknown email and wrong password.
  Cache-Control: no-store on every response that carries a token.
  Handlers are sync def so bcrypt runs in FastAPI's threadpool, not on the
  event loop.
"""

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from api.limiter import auth_limit, limiter
from api.models import AuthResponse, ErrorDetail, ErrorResponse, LoginRequest, RegisterRequest, UserResponse
from auth.dependencies import get_auth_service, get_principal, try_get_principal
from auth.models import AuthError, AuthResult, Principal
from auth.service import AuthService

# Auth policy:
# - POST /api/v1/auth/register:  public (rate-limited)
# - POST /api/v1/auth/login:     public (rate-limited)
# - GET  /api/v1/auth/me:        requires auth (get_principal)
router = APIRouter()

_STATUS_BY_ERROR: dict[AuthError, int] = {
    AuthError.VALIDATION: 422,
    AuthError.DUPLICATE_USER: 409,
    AuthError.INVALID_CREDENTIALS: 401,
    AuthError.UNAUTHENTICATED: 401,
    AuthError.FORBIDDEN: 403,
    AuthError.INTERNAL: 500,
}

_MESSAGE_BY_ERROR: dict[AuthError, str] = {
    AuthError.VALIDATION: "Request validation failed.",
    AuthError.DUPLICATE_USER: "A user with that email already exists.",
    AuthError.INVALID_CREDENTIALS: "Invalid email or password.",
    AuthError.UNAUTHENTICATED: "Authentication required.",
    AuthError.FORBIDDEN: "Insufficient role for this resource.",
    AuthError.INTERNAL: "An unexpected error occurred.",
}


@router.post("/auth/register", response_model=AuthResponse, status_code=201)
@limiter.limit(auth_limit)
def register(
    request: Request,
    body: RegisterRequest,
    requester: Principal | None = Depends(try_get_principal),
    service: AuthService = Depends(get_auth_service),
) -> JSONResponse:
    """Create an account and return its first token.

    requester is only consulted when SELF_ASSIGN_ROLE is off: then a role in
    the body is honored only for an admin bearer token.
    """
    result = service.register(body.name, body.email, body.password, role=body.role, requested_by=requester)
    if not result.ok:
        return _error_response(result)
    return _session_response(result, service, status_code=201)


@router.post("/auth/login", response_model=AuthResponse)
@limiter.limit(auth_limit)
def login(
    request: Request,
    body: LoginRequest,
    service: AuthService = Depends(get_auth_service),
) -> JSONResponse:
    """Authenticate with email and password and return a token.

    Unknown email and wrong password produce the identical 401 response.
    """
    result = service.login(body.email, body.password)
    if not result.ok:
        return _error_response(result)
    return _session_response(result, service, status_code=200)


@router.get("/auth/me", response_model=UserResponse)
def me(
    principal: Principal = Depends(get_principal),
    service: AuthService = Depends(get_auth_service),
) -> UserResponse:
    """Return the account behind the bearer token."""
    user = service.get_user(principal.id)
    if user is None:
        # Valid signature, but the account is gone.
        raise HTTPException(
            status_code=404,
            detail={"code": "not_found", "message": "User not found."},
        )
    return UserResponse.from_user(user)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _session_response(result: AuthResult, service: AuthService, status_code: int) -> JSONResponse:
    session = result.session
    resp = JSONResponse(
        status_code=status_code,
        content=AuthResponse(
            token=session.token,
            token_type="bearer",  # noqa: S106 # nosec B106 -- OAuth token type, not a password
            expires_in=service.tokens.expire_seconds,
            user=UserResponse.from_user(session.user),
        ).model_dump(),
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


def _error_response(result: AuthResult) -> JSONResponse:
    resp = JSONResponse(
        status_code=_STATUS_BY_ERROR[result.error],
        content=ErrorResponse(
            error=ErrorDetail(
                code=result.error.value,
                message=_MESSAGE_BY_ERROR[result.error],
                detail=result.detail,
            )
        ).model_dump(),
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp
