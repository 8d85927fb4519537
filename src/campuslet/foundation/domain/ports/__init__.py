"""Domain port interfaces for hexagonal architecture.

Ports define abstract interfaces that the domain layer uses to interact
with external services. Implementations (adapters) live in infrastructure.
"""

from campuslet.foundation.domain.ports.password_hasher import PasswordHasherPort
from campuslet.foundation.domain.ports.persistence import PersistenceAdapterPort

__all__ = ["PasswordHasherPort", "PersistenceAdapterPort"]
