"""
api/routes/v1/private.py -- Protected example routes.

Routes:
  GET /api/v1/private/user   -- any authenticated principal
  GET /api/v1/private/admin  -- principals with role "admin" only

The handlers receive the verified Principal as a parameter; authentication
and the role gate run as dependencies before the handler body.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from api.models import PrivateResponse
from auth.dependencies import get_principal, require_roles
from auth.models import Principal

router = APIRouter()


@router.get("/private/user", response_model=PrivateResponse)
async def private_user(principal: Principal = Depends(get_principal)) -> PrivateResponse:
    return PrivateResponse(
        message=f"Hello {principal.id}, you are authenticated",
        user_id=principal.id,
        role=principal.role,
    )


@router.get("/private/admin", response_model=PrivateResponse)
async def private_admin(principal: Principal = Depends(require_roles("admin"))) -> PrivateResponse:
    return PrivateResponse(
        message=f"Hello {principal.id}, you have ADMIN access",
        user_id=principal.id,
        role=principal.role,
    )
