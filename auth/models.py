"""
auth/models.py -- Domain dataclasses and result types for authentication.

Pattern: Data class (pure data container, near-zero logic). Stores and
services do the work; these types only carry shape.

AuthResult is the explicit return type of the Auth Service and of the
access-control decision functions. Expected failures (duplicate email, bad
credentials, bad token, wrong role) are values, not exceptions. Only the API
layer turns an AuthError into an HTTP status.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

from core.config import ROLES

# ---------------------------------------------------------------------------
# Field rules -- shared by AuthService and the API request models
# ---------------------------------------------------------------------------

NAME_MIN_LENGTH = 3
NAME_MAX_LENGTH = 50
PASSWORD_MIN_LENGTH = 6
PASSWORD_MAX_LENGTH = 100
# bcrypt only reads the first 72 bytes of its input.
PASSWORD_MAX_BYTES = 72
EMAIL_PATTERN = r"^.+@.+\..+$"

_EMAIL_RE = re.compile(EMAIL_PATTERN)


def normalize_email(email: str) -> str:
    """Emails are the natural key: always compared trimmed and lowercased."""
    return email.strip().lower()


def validate_registration(name: str, email: str, password: str, role: str | None) -> str | None:
    """Return a human-readable problem with the registration input, or None if valid.

    Expects email already normalized.
    """
    name = name.strip()
    if not NAME_MIN_LENGTH <= len(name) <= NAME_MAX_LENGTH:
        return f"Name must be between {NAME_MIN_LENGTH} and {NAME_MAX_LENGTH} characters."
    if not _EMAIL_RE.match(email):
        return "Email address is not valid."
    problem = validate_password(password)
    if problem:
        return problem
    if role is not None and role not in ROLES:
        return f"Role must be one of: {', '.join(ROLES)}."
    return None


def validate_password(password: str) -> str | None:
    if not PASSWORD_MIN_LENGTH <= len(password) <= PASSWORD_MAX_LENGTH:
        return f"Password must be between {PASSWORD_MIN_LENGTH} and {PASSWORD_MAX_LENGTH} characters."
    if len(password.encode("utf-8")) > PASSWORD_MAX_BYTES:
        return f"Password must not exceed {PASSWORD_MAX_BYTES} bytes when UTF-8 encoded."
    return None


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------


@dataclass
class User:
    """A registered account.

    email is stored normalized (trimmed, lowercase) and is unique at the
    store level. hashed_password is a bcrypt hash and must never leave the
    process: API response models do not have a field for it.
    """

    name: str
    email: str
    hashed_password: str
    role: str = "user"  # "user" or "admin"
    id: int | None = None
    created_at: str | None = None
    updated_at: str | None = None


@dataclass(frozen=True)
class Principal:
    """Verified identity for one request, derived from a token. Never persisted."""

    id: int
    role: str


@dataclass(frozen=True)
class AuthSession:
    """Successful register/login outcome: a fresh token plus the user it was issued for."""

    token: str
    user: User


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


class AuthError(str, Enum):
    VALIDATION = "validation_error"
    DUPLICATE_USER = "duplicate_user"
    INVALID_CREDENTIALS = "invalid_credentials"
    UNAUTHENTICATED = "unauthenticated"
    FORBIDDEN = "forbidden"
    INTERNAL = "internal_error"


@dataclass(frozen=True)
class AuthResult:
    """Outcome of an auth operation: exactly one of a value or an error.

    detail is only populated for VALIDATION errors, where telling the caller
    what was wrong is safe. Every other error kind carries no detail so the
    response cannot leak verification internals.
    """

    session: AuthSession | None = None
    principal: Principal | None = None
    error: AuthError | None = None
    detail: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def fail(cls, error: AuthError, detail: str | None = None) -> "AuthResult":
        return cls(error=error, detail=detail)
