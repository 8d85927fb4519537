"""Campuslet Infra Auth -- password hashing."""

from campuslet.infra.auth.password_hasher import BcryptPasswordHasher

__all__ = ["BcryptPasswordHasher"]
