"""
auth/tokens.py -- Identity token issuance and verification.

Security design decisions:
  JWT: python-jose with HS256. Tokens carry sub (user id), role, iat and exp
       and are signed with Settings.secret_key. The secret is injected through
       the Settings instance handed to TokenService; it is never read from the
       environment here and never logged.

  Failure semantics: verify() returns None on ANY failure -- malformed token,
       bad signature, missing claims, expiry. Callers cannot tell which, so a
       401 response never leaks verification internals.

  Expiry: checked against the injected clock rather than jose's wall clock, so
       tests can pin time. jose still validates the claim types.

  Canonical signature: base64url allows several spellings of the final
       character of a segment (unused padding bits). The signature segment is
       re-encoded after decoding and must round-trip exactly, so any changed
       character in the token is rejected.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from jose import JWTError, jwt
from jose.utils import base64url_decode, base64url_encode

from auth.models import Principal

if TYPE_CHECKING:
    from core.config import Settings

logger = logging.getLogger("authgate.auth")

_ALGORITHM = "HS256"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _has_canonical_signature(token: str) -> bool:
    parts = token.split(".")
    if len(parts) != 3 or not parts[2]:
        return False
    signature = parts[2].encode("ascii", errors="replace")
    try:
        return base64url_encode(base64url_decode(signature)) == signature
    except ValueError:
        return False


class TokenService:
    """Issues and verifies signed, time-limited identity tokens.

    Usage:
        tokens = TokenService(settings)
        token = tokens.issue(42, "admin")
        principal = tokens.verify(token)   # Principal(id=42, role="admin") or None
    """

    def __init__(self, settings: Settings, clock: Callable[[], datetime] | None = None) -> None:
        self._secret = settings.secret_key
        self.expire_seconds = settings.token_expire_seconds
        self._clock = clock or _utcnow

    def issue(self, subject: int, role: str) -> str:
        """Sign a token for (subject, role) that expires expire_seconds from now."""
        now = self._clock()
        payload = {
            "sub": str(subject),
            "role": role,
            "iat": now,
            "exp": now + timedelta(seconds=self.expire_seconds),
        }
        return jwt.encode(payload, self._secret, algorithm=_ALGORITHM)

    def verify(self, token: str) -> Principal | None:
        """Verify signature and expiry. Returns the Principal, or None on any failure."""
        if not _has_canonical_signature(token):
            return None
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[_ALGORITHM],
                options={"verify_exp": False},
            )
        except JWTError:
            return None

        exp = payload.get("exp")
        role = payload.get("role")
        if not isinstance(exp, (int, float)) or not isinstance(role, str):
            return None
        if self._clock().timestamp() >= exp:
            return None
        try:
            subject = int(payload.get("sub", ""))
        except (TypeError, ValueError):
            return None
        return Principal(id=subject, role=role)
