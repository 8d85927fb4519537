"""Port interface for password hashing.

Account provisioning stores only password hashes. The hashing algorithm is an
infrastructure choice (bcrypt in ``campuslet.infra.auth``).
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class PasswordHasherPort(Protocol):
    """Port for hashing and verifying account passwords.

    Example:
        >>> class PlainHasher:
        ...     def hash_password(self, password: str) -> str:
        ...         return "plain$" + password
        ...
        ...     def verify_password(self, password: str, password_hash: str) -> bool:
        ...         return password_hash == "plain$" + password
        >>> isinstance(PlainHasher(), PasswordHasherPort)
        True
    """

    def hash_password(self, password: str) -> str:
        """Hash a plaintext password for storage."""
        ...

    def verify_password(self, password: str, password_hash: str) -> bool:
        """Check a plaintext password against a stored hash.

        The admin service only hashes. Verification serves the marketplace
        login flow, which reads the same ``users.password_hash`` column and
        must accept hashes written here.
        """
        ...
