"""
Password hashing and verification.

Uses bcrypt for password hashing with automatic
salting and configurable work factor.  ``BcryptPasswordHelper`` satisfies
fastapi-users' ``PasswordHelperProtocol`` so the user manager hashes and
verifies through it.

bcrypt only reads the first 72 bytes of its input, so passwords are
SHA-256 digested and base64 encoded (44 bytes) before hashing.
"""

from __future__ import annotations

import base64
import hashlib
import secrets
from typing import Optional, Tuple

import bcrypt

# "$2b$12$" + 22 characters of encoded salt
_SALT_LENGTH = 29


def _prepare(password: str) -> bytes:
    return base64.b64encode(hashlib.sha256(password.encode()).digest())


class BcryptPasswordHelper:
    def __init__(self, rounds: int = 12) -> None:
        self.rounds = rounds

    def hash_with_salt(self, password: str) -> Tuple[str, str]:
        """Hash ``password`` and return ``(hashed_password, salt)``."""
        salt = bcrypt.gensalt(rounds=self.rounds)
        hashed = bcrypt.hashpw(_prepare(password), salt).decode()
        return hashed, salt.decode()

    def hash(self, password: str) -> str:
        return self.hash_with_salt(password)[0]

    def verify_and_update(
        self, plain_password: str, hashed_password: str
    ) -> Tuple[bool, Optional[str]]:
        """Constant-time comparison against a bcrypt hash.

        Returns a re-hashed password when the stored hash used a lower work
        factor than the configured one.
        """
        try:
            verified = bcrypt.checkpw(_prepare(plain_password), hashed_password.encode())
        except (ValueError, TypeError):
            return False, None
        if verified and extract_salt(hashed_password)[4:6] != f"{self.rounds:02d}":
            return True, self.hash(plain_password)
        return verified, None

    def generate(self) -> str:
        return secrets.token_urlsafe()


def extract_salt(hashed_password: str) -> str:
    """Return the salt prefix embedded in a bcrypt hash."""
    return hashed_password[:_SALT_LENGTH]
