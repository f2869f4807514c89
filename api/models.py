"""
API request and response models for AuthGate REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

UserResponse has no password field of any kind: building it from a User
drops the hash by construction.
"""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from auth.models import (
    EMAIL_PATTERN,
    NAME_MAX_LENGTH,
    NAME_MIN_LENGTH,
    PASSWORD_MAX_LENGTH,
    PASSWORD_MIN_LENGTH,
    User,
    validate_password,
)

# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/auth/register.

    Email is lowercased before the pattern check so 'Ana@Test.com' and
    'ana@test.com' are the same account.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=NAME_MIN_LENGTH, max_length=NAME_MAX_LENGTH)
    email: str = Field(max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(min_length=PASSWORD_MIN_LENGTH, max_length=PASSWORD_MAX_LENGTH)
    role: Optional[Literal["user", "admin"]] = None

    @field_validator("email", mode="before")
    @classmethod
    def lowercase_email(cls, value: object) -> object:
        return value.strip().lower() if isinstance(value, str) else value

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        problem = validate_password(value)
        if problem:
            raise ValueError(problem)
        return value


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login.

    No length rules beyond non-empty: a login attempt must never reveal the
    registration policy, it is simply right or wrong.
    """

    email: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=255)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    """Public view of a user account."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    email: str
    role: str
    created_at: str
    updated_at: str

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            name=user.name,
            email=user.email,
            role=user.role,
            created_at=user.created_at or "",
            updated_at=user.updated_at or "",
        )


class AuthResponse(BaseModel):
    """Response for register and login: a bearer token plus the account it belongs to."""

    model_config = ConfigDict(frozen=True)

    token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserResponse


class PrivateResponse(BaseModel):
    """Response for the /private/* routes."""

    model_config = ConfigDict(frozen=True)

    message: str
    user_id: int
    role: str
