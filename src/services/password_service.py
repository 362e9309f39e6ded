"""Salted one-way password hashing with bcrypt."""

import bcrypt

from src.models.auth import MAX_PASSWORD_BYTES

DEFAULT_ROUNDS = 12


class PasswordHasher:
    """bcrypt hash and constant-time verify.

    Both calls are CPU-bound; async callers run them in a worker thread.

    Args:
        rounds: bcrypt cost factor (log2 of the work iterations)
    """

    def __init__(self, rounds: int = DEFAULT_ROUNDS):
        self.rounds = rounds

    def hash(self, password: str) -> str:
        """Hash a password using bcrypt.

        Args:
            password: Plain-text password to hash

        Returns:
            Bcrypt hash string

        Raises:
            ValueError: If the password is longer than 72 bytes
        """
        encoded = password.encode("utf-8")
        if len(encoded) > MAX_PASSWORD_BYTES:
            raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
        salt = bcrypt.gensalt(rounds=self.rounds)
        return bcrypt.hashpw(encoded, salt).decode("utf-8")

    def verify(self, password: str, password_hash: str) -> bool:
        """Verify a password against a bcrypt hash.

        Passwords over 72 bytes can never have been hashed, so they simply
        do not match.

        Raises:
            ValueError: If the stored hash is not a bcrypt hash
        """
        encoded = password.encode("utf-8")
        if len(encoded) > MAX_PASSWORD_BYTES:
            return False
        return bcrypt.checkpw(encoded, password_hash.encode("utf-8"))
