"""Password hashing with bcrypt.

Implements the PasswordHasherPort protocol from
campuslet.foundation.domain.ports. Account rows only ever store the hash.
"""

from __future__ import annotations

import bcrypt

_DEFAULT_ROUNDS = 12


class BcryptPasswordHasher:
    """Password hasher implementing PasswordHasherPort.

    Args:
        rounds: bcrypt cost factor (4-31). Lower values only for tests.

    Example:
        >>> hasher = BcryptPasswordHasher(rounds=4)
        >>> password_hash = hasher.hash_password("correct horse")
        >>> password_hash.startswith("$2b$04$")
        True
        >>> hasher.verify_password("correct horse", password_hash)
        True
    """

    def __init__(self, rounds: int = _DEFAULT_ROUNDS) -> None:
        if not 4 <= rounds <= 31:
            msg = f"bcrypt rounds must be between 4 and 31, got {rounds}"
            raise ValueError(msg)
        self._rounds = rounds

    def hash_password(self, password: str) -> str:
        """Hash a password with a fresh salt.

        Returns:
            Bcrypt hash string (includes salt, starts with $2b$).
        """
        return bcrypt.hashpw(
            password.encode("utf-8"),
            bcrypt.gensalt(rounds=self._rounds),
        ).decode("utf-8")

    def verify_password(self, password: str, password_hash: str) -> bool:
        """Verify a password against a stored bcrypt hash.

        Used by the marketplace login flow, not by the admin operations.
        Malformed hashes verify as False rather than raising.
        """
        try:
            return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
        except ValueError:
            return False
