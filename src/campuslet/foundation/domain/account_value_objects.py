"""Value objects for user accounts.

Immutable, validated domain primitives. All validation occurs at construction.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import StrEnum

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class AccountRole(StrEnum):
    """Role stored in ``users.user_type``."""

    STUDENT = "student"
    LANDLORD = "landlord"
    ADMIN = "admin"


@dataclass(frozen=True, slots=True)
class Email:
    """Validated, normalised email address.

    Leading/trailing whitespace is stripped and the address is lower-cased,
    so uniqueness checks are case-insensitive.

    Raises:
        ValueError: If the email is empty, malformed or exceeds 255 chars.
    """

    value: str

    def __post_init__(self) -> None:
        normalised = self.value.strip().lower()
        if not normalised:
            msg = "Email cannot be empty"
            raise ValueError(msg)
        if len(normalised) > 255:
            msg = f"Email too long: {len(normalised)} chars (max 255)"
            raise ValueError(msg)
        if not _EMAIL_PATTERN.match(normalised):
            msg = f"Invalid email format: '{self.value}'"
            raise ValueError(msg)
        object.__setattr__(self, "value", normalised)


@dataclass(frozen=True, slots=True)
class Password:
    """Plaintext password accepted for hashing.

    Raises:
        ValueError: If shorter than 6 characters or longer than 72 bytes
            (the bcrypt input limit).
    """

    value: str

    def __post_init__(self) -> None:
        if len(self.value) < 6:
            msg = "Password must be at least 6 characters"
            raise ValueError(msg)
        if len(self.value.encode("utf-8")) > 72:
            msg = "Password too long (max 72 bytes)"
            raise ValueError(msg)

    def __repr__(self) -> str:
        return "Password('***')"
