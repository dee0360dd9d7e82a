"""
security helpers:
- Argon2id password hashing via argon2-cffi
- Opaque refresh-token material and its SHA-256 storage digest
"""
from __future__ import annotations

import hashlib
import secrets

from argon2 import PasswordHasher, Type
from argon2.exceptions import InvalidHashError, VerificationError

REFRESH_TOKEN_BYTES = 32


class Argon2Hasher:
    """Salted, memory-hard password hashing.

    The encoded hash carries the algorithm parameters and salt, so a hash
    produced under older cost settings still verifies after they change.
    """

    def __init__(self, time_cost: int = 3, memory_cost: int = 2 ** 16, parallelism: int = 1):
        self._ph = PasswordHasher(
            time_cost=time_cost,
            memory_cost=memory_cost,
            parallelism=parallelism,
            type=Type.ID,
        )
        self._dummy_hash = None

    def hash(self, password: str) -> str:
        """Hash a plaintext password using Argon2id
        """
        return self._ph.hash(password)

    def verify(self, password_hash: str, password: str) -> bool:
        """Verify a plaintext password against an encoded hash
        """
        try:
            return self._ph.verify(password_hash, password)
        except (VerificationError, InvalidHashError):
            return False

    def dummy_verify(self, password: str) -> bool:
        """Burn one verification so a missing account costs the same as a bad password."""
        if self._dummy_hash is None:
            self._dummy_hash = self._ph.hash(secrets.token_urlsafe(16))
        self.verify(self._dummy_hash, password)
        return False


def generate_token(nbytes: int = REFRESH_TOKEN_BYTES) -> str:
    """Cryptographically random opaque token, hex encoded."""
    return secrets.token_hex(nbytes)


def hash_token(token: str) -> str:
    """Deterministic digest used to store and look up refresh tokens."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()
