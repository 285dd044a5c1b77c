"""
Password hashing.

UserService depends on the PasswordHasher interface only; the bcrypt
implementation is the production default and tests may pass a cheaper cost.
"""

from abc import ABC, abstractmethod

import bcrypt


# bcrypt only looks at the first 72 bytes of its input
BCRYPT_MAX_BYTES = 72


class PasswordHasher(ABC):
    """Hash and check user passwords."""

    @abstractmethod
    def hash(self, password: str) -> str:
        """Return an encoded hash suitable for storage."""

    @abstractmethod
    def verify(self, password: str, password_hash: str) -> bool:
        """Return True if `password` matches the stored hash."""


class BcryptPasswordHasher(PasswordHasher):
    """
    bcrypt with a configurable cost factor.

    Example:
        >>> hasher = BcryptPasswordHasher(rounds=12)
        >>> stored = hasher.hash("correct horse")
        >>> hasher.verify("correct horse", stored)
        True
    """

    def __init__(self, rounds: int = 12) -> None:
        self.rounds = rounds

    def hash(self, password: str) -> str:
        salt = bcrypt.gensalt(rounds=self.rounds)
        return bcrypt.hashpw(_encode(password), salt).decode("ascii")

    def verify(self, password: str, password_hash: str) -> bool:
        try:
            return bcrypt.checkpw(_encode(password), password_hash.encode("ascii"))
        except ValueError:
            # Malformed stored hash
            return False


def _encode(password: str) -> bytes:
    return password.encode("utf-8")[:BCRYPT_MAX_BYTES]
