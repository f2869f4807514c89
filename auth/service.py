"""
auth/service.py -- Registration and login orchestration.

AuthService ties the UserStore, PasswordHasher and TokenService together.
Every operation returns an AuthResult; nothing here raises for an expected
outcome. Failures of the collaborators themselves (database down, corrupt
stored hash, signing error) are logged with their traceback and reported as
AuthError.INTERNAL, whose response never includes the exception text.

Registration:
  validate -> lookup by email (duplicate?) -> hash -> insert -> issue token.
  The lookup is a fast path only. The UNIQUE index on email is what makes the
  check-then-insert safe under concurrent registrations, so an IntegrityError
  on insert is reported as DUPLICATE_USER too.

Login:
  lookup -> verify -> issue token. Unknown email and wrong password both
  return INVALID_CREDENTIALS, and both spend one bcrypt check, so neither the
  payload nor the response time reveals whether the account exists.

Both operations are blocking (bcrypt is CPU-bound, the store does I/O). The
HTTP layer calls them from sync route handlers, which FastAPI runs in its
threadpool.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from jose import JWTError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.models import (
    PASSWORD_MAX_BYTES,
    AuthError,
    AuthResult,
    AuthSession,
    Principal,
    User,
    normalize_email,
    validate_registration,
)

if TYPE_CHECKING:
    from auth.passwords import PasswordHasher
    from auth.store import UserStore
    from auth.tokens import TokenService
    from core.config import Settings

logger = logging.getLogger("authgate.auth")

# Collaborator failures that are not attributable to caller input.
_INTERNAL_ERRORS = (SQLAlchemyError, ValueError, JWTError)


class AuthService:
    """Registration and login for the API.

    Usage:
        service = AuthService(store=store, hasher=hasher, tokens=tokens, settings=settings)
        result = service.login("ana@test.com", "secret123")
        if result.ok:
            token = result.session.token
    """

    def __init__(
        self,
        *,
        store: UserStore,
        hasher: PasswordHasher,
        tokens: TokenService,
        settings: Settings,
    ) -> None:
        self.store = store
        self.hasher = hasher
        self.tokens = tokens
        self.settings = settings

    def register(
        self,
        name: str,
        email: str,
        password: str,
        role: str | None = None,
        requested_by: Principal | None = None,
    ) -> AuthResult:
        """Create an account and issue its first token.

        role=None falls back to Settings.default_role. A caller-supplied role
        is taken as-is while Settings.self_assign_role is on; with it off, only
        an admin principal (requested_by) may choose the role.
        """
        email = normalize_email(email)
        problem = validate_registration(name, email, password, role)
        if problem:
            return AuthResult.fail(AuthError.VALIDATION, problem)

        resolved_role = self._resolve_role(role, requested_by)

        try:
            if self.store.get_by_email(email) is not None:
                logger.info("Registration rejected: email already registered")
                return AuthResult.fail(AuthError.DUPLICATE_USER)

            user = User(
                name=name.strip(),
                email=email,
                hashed_password=self.hasher.hash(password),
                role=resolved_role,
            )
            try:
                user_id = self.store.create_user(user)
            except IntegrityError:
                logger.info("Registration rejected: concurrent insert for the same email")
                return AuthResult.fail(AuthError.DUPLICATE_USER)

            created = self.store.get_by_id(user_id)
            if created is None:
                logger.error("User %s not found immediately after insert", user_id)
                return AuthResult.fail(AuthError.INTERNAL)
            token = self.tokens.issue(created.id, created.role)
        except _INTERNAL_ERRORS:
            logger.exception("Registration failed")
            return AuthResult.fail(AuthError.INTERNAL)

        logger.info("Registered user %s with role %s", created.id, created.role)
        return AuthResult(session=AuthSession(token=token, user=created))

    def login(self, email: str, password: str) -> AuthResult:
        """Verify credentials and issue a token.

        Unknown email and wrong password produce the same INVALID_CREDENTIALS result.
        """
        email = normalize_email(email)
        # Nothing longer than bcrypt's input limit can have been registered.
        if len(password.encode("utf-8")) > PASSWORD_MAX_BYTES:
            return AuthResult.fail(AuthError.INVALID_CREDENTIALS)

        try:
            user = self.store.get_by_email(email)
            if user is None:
                self.hasher.verify_dummy(password)
                return AuthResult.fail(AuthError.INVALID_CREDENTIALS)
            if not self.hasher.verify(password, user.hashed_password):
                return AuthResult.fail(AuthError.INVALID_CREDENTIALS)
            token = self.tokens.issue(user.id, user.role)
        except _INTERNAL_ERRORS:
            logger.exception("Login failed")
            return AuthResult.fail(AuthError.INTERNAL)

        logger.info("User %s logged in", user.id)
        return AuthResult(session=AuthSession(token=token, user=user))

    def get_user(self, user_id: int) -> User | None:
        """Fetch the account behind a principal. Store errors propagate."""
        return self.store.get_by_id(user_id)

    def _resolve_role(self, role: str | None, requested_by: Principal | None) -> str:
        if role is None:
            return self.settings.default_role
        if self.settings.self_assign_role:
            return role
        if requested_by is not None and requested_by.role == "admin":
            return role
        if role != self.settings.default_role:
            logger.warning("Ignoring self-assigned role %r at registration", role)
        return self.settings.default_role
