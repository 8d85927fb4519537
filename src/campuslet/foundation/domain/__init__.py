"""Campuslet Foundation Domain -- pure Python domain primitives.

Exceptions, account value objects, referential-integrity types and port
interfaces shared by the admin domain and the infrastructure adapters.
"""

from campuslet.foundation.domain.account_value_objects import AccountRole, Email, Password
from campuslet.foundation.domain.exceptions import (
    ConcurrentModificationError,
    ConflictError,
    DomainError,
    NotFoundError,
    PartialFailureError,
    ProvisioningFailureError,
    RestrictionViolationError,
    StoreError,
    TransportError,
    ValidationError,
)
from campuslet.foundation.domain.ports import PasswordHasherPort, PersistenceAdapterPort
from campuslet.foundation.domain.referential import (
    DeletionPlan,
    DeletionStep,
    EntityType,
    ExecutionResult,
    ExecutionStatus,
    ForeignKeyEdge,
    ReferenceCheck,
    ReferencePolicy,
    RowRef,
    verify_unreferenced,
)

__all__ = [
    "AccountRole",
    "ConcurrentModificationError",
    "ConflictError",
    "DeletionPlan",
    "DeletionStep",
    "DomainError",
    "Email",
    "EntityType",
    "ExecutionResult",
    "ExecutionStatus",
    "ForeignKeyEdge",
    "NotFoundError",
    "PartialFailureError",
    "Password",
    "PasswordHasherPort",
    "PersistenceAdapterPort",
    "ProvisioningFailureError",
    "ReferenceCheck",
    "ReferencePolicy",
    "RestrictionViolationError",
    "RowRef",
    "StoreError",
    "TransportError",
    "ValidationError",
    "verify_unreferenced",
]
