"""
auth/passwords.py -- Credential hashing (bcrypt, direct usage).

bcrypt is used directly rather than through passlib: passlib's wrap-bug
detection feeds bcrypt 4.x a password longer than 72 bytes, which it
rejects. Inputs longer than 72 bytes are refused at validation time
(auth.models.validate_password) so they are never silently truncated.

Each hash embeds its own random salt and cost factor, so verify() needs only
the stored string. The comparison itself is bcrypt.checkpw's, which is
constant-time.

Errors from the primitive (ValueError on a corrupt stored hash, for example)
propagate. They are not caller mistakes; AuthService reports them as
internal_error.
"""

from __future__ import annotations

import bcrypt

DEFAULT_ROUNDS = 10


class PasswordHasher:
    """Salted one-way password hashing with a fixed work factor.

    Usage:
        hasher = PasswordHasher(rounds=settings.bcrypt_rounds)
        stored = hasher.hash("secret123")
        hasher.verify("secret123", stored)   # True
    """

    def __init__(self, rounds: int = DEFAULT_ROUNDS) -> None:
        self.rounds = rounds
        self._dummy_hash: bytes | None = None

    def hash(self, plain: str) -> str:
        """Return a bcrypt hash of the plaintext password."""
        return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify(self, plain: str, hashed: str) -> bool:
        """Return True if the plaintext password matches the bcrypt hash."""
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))

    def verify_dummy(self, plain: str) -> bool:
        """Spend the same bcrypt work as a real check, against a hash nobody owns.

        Login calls this when the email is unknown so response time does not
        reveal whether an account exists. Always returns False.
        """
        if self._dummy_hash is None:
            self._dummy_hash = bcrypt.hashpw(b"authgate_timing_dummy", bcrypt.gensalt(rounds=self.rounds))
        bcrypt.checkpw(plain.encode("utf-8"), self._dummy_hash)
        return False
