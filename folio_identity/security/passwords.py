"""Bcrypt-backed password hashing for account credentials."""

from __future__ import annotations

import secrets

import bcrypt

from ..domain.errors import ValidationError

MIN_PASSWORD_LENGTH = 6
# bcrypt only reads the first 72 bytes and bcrypt>=5 rejects anything longer
MAX_PASSWORD_BYTES = 72
BCRYPT_ROUNDS = 12
TEMP_PASSWORD_BYTES = 12


class CredentialManager:
    """Hash and verify account passwords.

    The work factor is a module constant rather than a constructor argument so
    that no caller can weaken it. Each :meth:`hash` call draws a fresh salt, so
    two hashes of the same plaintext differ.
    """

    def hash(self, password: str) -> str:
        """Return a bcrypt hash of ``password``.

        Raises
        ------
        ValidationError
            When ``password`` is shorter than :data:`MIN_PASSWORD_LENGTH` or
            encodes to more than :data:`MAX_PASSWORD_BYTES` bytes. The check
            runs before bcrypt so rejected input costs nothing.
        """
        self.check_policy(password)
        salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
        return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")

    def verify(self, password: str, password_hash: str) -> bool:
        """Return ``True`` when ``password`` re-derives ``password_hash``."""
        try:
            # checkpw compares in constant time
            return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
        except (ValueError, AttributeError):
            return False

    @staticmethod
    def check_policy(password: str | None) -> None:
        if not password or len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                f"New password must be at least {MIN_PASSWORD_LENGTH} characters"
            )
        if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValidationError(
                f"New password must be at most {MAX_PASSWORD_BYTES} bytes"
            )


def generate_temporary_password() -> str:
    """Return a random URL-safe credential for privileged resets."""
    return secrets.token_urlsafe(TEMP_PASSWORD_BYTES)
