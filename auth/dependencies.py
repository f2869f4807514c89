"""
auth/dependencies.py -- Access control: bearer authentication and role gates.

Per request:  no header -> rejected (401)
              header -> token verified -> Principal -> role gate -> handler
                             |                           |
                             +-> rejected (401)          +-> forbidden (403)

The decision logic lives in two plain functions, authenticate() and
authorize(), which return AuthResult values and know nothing about HTTP.
The FastAPI dependencies below wrap them and raise HTTPException on failure.
Raising from a dependency stops the request before the route handler runs,
so nothing downstream executes after a rejection.

The verified Principal is handed to the handler as a typed parameter
(principal: Principal = Depends(get_principal)). Nothing is stored on the
request object.

All authentication failures share one response body regardless of cause
(missing header, wrong scheme, bad signature, expired) so a client cannot
tell which check failed.

Layer rule: may import fastapi (this module is part of the DI system), but
not api/.
"""

from __future__ import annotations

from collections.abc import Callable

from fastapi import HTTPException, Request

from auth.models import AuthError, AuthResult, Principal
from auth.service import AuthService
from auth.tokens import TokenService

_UNAUTHENTICATED_DETAIL = {"code": AuthError.UNAUTHENTICATED.value, "message": "Authentication required."}
_FORBIDDEN_DETAIL = {"code": AuthError.FORBIDDEN.value, "message": "Insufficient role for this resource."}


# ---------------------------------------------------------------------------
# Decision functions
# ---------------------------------------------------------------------------


def parse_bearer(header: str | None) -> str | None:
    """Return the token from an 'Authorization: Bearer <token>' value, or None.

    The value must be exactly the case-sensitive scheme 'Bearer', one space,
    and a token with no whitespace in it.
    """
    if not header or not header.startswith("Bearer "):
        return None
    token = header[len("Bearer ") :]
    if not token or any(ch.isspace() for ch in token):
        return None
    return token


def authenticate(header: str | None, tokens: TokenService) -> AuthResult:
    """Turn an Authorization header value into a Principal, or UNAUTHENTICATED."""
    token = parse_bearer(header)
    if token is None:
        return AuthResult.fail(AuthError.UNAUTHENTICATED)
    principal = tokens.verify(token)
    if principal is None:
        return AuthResult.fail(AuthError.UNAUTHENTICATED)
    return AuthResult(principal=principal)


def authorize(principal: Principal, roles: tuple[str, ...]) -> AuthResult:
    """Allow the principal only if its role is in the allow-list (exact, case-sensitive)."""
    if not principal.role or principal.role not in roles:
        return AuthResult.fail(AuthError.FORBIDDEN)
    return AuthResult(principal=principal)


# ---------------------------------------------------------------------------
# FastAPI dependencies
# ---------------------------------------------------------------------------


def get_token_service(request: Request) -> TokenService:
    return request.app.state.token_service


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def try_get_principal(request: Request) -> Principal | None:
    """Soft variant of get_principal(): None instead of a 401. Never raises."""
    result = authenticate(request.headers.get("Authorization"), get_token_service(request))
    return result.principal


def get_principal(request: Request) -> Principal:
    """Require a valid bearer token. Raises HTTP 401 otherwise.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(principal: Principal = Depends(get_principal)): ...
    """
    result = authenticate(request.headers.get("Authorization"), get_token_service(request))
    if not result.ok:
        raise HTTPException(
            status_code=401,
            detail=_UNAUTHENTICATED_DETAIL,
            headers={"WWW-Authenticate": "Bearer"},
        )
    return result.principal


def require_roles(*roles: str) -> Callable[[Request], Principal]:
    """Build a dependency that admits only principals whose role is in roles.

    Raises HTTP 401 if unauthenticated, HTTP 403 if the role is not allowed.

        @router.get("/admin-only")
        def route(principal: Principal = Depends(require_roles("admin"))): ...
    """
    allowed = tuple(roles)

    def _require(request: Request) -> Principal:
        principal = get_principal(request)
        if not authorize(principal, allowed).ok:
            raise HTTPException(status_code=403, detail=_FORBIDDEN_DETAIL)
        return principal

    return _require
