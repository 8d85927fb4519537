"""Domain exception hierarchy for type-safe error handling.

Every failure the admin core can report is a ``DomainError`` subclass with a
machine-readable ``error_code`` and structured ``context``. Callers branch on
the exception type instead of on a bare ``False``: a missing row, a blocked
delete, a half-applied plan and an unreachable store are all distinct.

Example:
    >>> from campuslet.foundation.domain.exceptions import NotFoundError
    >>> raise NotFoundError("Property", 101)
"""

from __future__ import annotations

from typing import Any

__all__ = [
    "ConcurrentModificationError",
    "ConflictError",
    "DomainError",
    "NotFoundError",
    "PartialFailureError",
    "ProvisioningFailureError",
    "RestrictionViolationError",
    "StoreError",
    "TransportError",
    "ValidationError",
]


class DomainError(Exception):
    """Base class for all domain errors.

    Attributes:
        error_code: Machine-readable error code for client handling.
        message: Human-readable error description.
        context: Structured debugging information (entity names, ids).

    Example:
        >>> raise DomainError("Operation failed", context={"entity": "Property"})
        DomainError: Operation failed (entity=Property)
    """

    error_code: str = "DOMAIN_ERROR"

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        """Initialize domain error with message and optional context.

        Args:
            message: Human-readable error description.
            context: Structured debugging information. Keys should be snake_case.
        """
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        """String representation including context for logging."""
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} ({context_str})"
        return self.message

    def __repr__(self) -> str:
        """Detailed representation for debugging."""
        return f"{self.__class__.__name__}({self.message!r}, context={self.context!r})"


class NotFoundError(DomainError):
    """Raised when a requested row does not exist.

    Maps to HTTP 404 Not Found. Deletes never raise it: deleting an absent
    row is reported as a successful no-op so plans stay retryable.

    Example:
        >>> raise NotFoundError("University", 12)
        NotFoundError: University not found: 12
    """

    error_code: str = "RESOURCE_NOT_FOUND"

    def __init__(
        self,
        resource_type: str,
        resource_id: Any,
        **extra_context: Any,
    ) -> None:
        """Initialize not found error.

        Args:
            resource_type: Entity name (e.g., "Landlord", "User").
            resource_id: Key of the missing row.
            **extra_context: Additional debugging context.
        """
        self.resource_type = resource_type
        self.resource_id = resource_id
        message = f"{resource_type} not found: {resource_id}"
        context = {
            "resource_type": resource_type,
            "resource_id": str(resource_id),
            **extra_context,
        }
        super().__init__(message, context)


class ValidationError(DomainError):
    """Raised when admin input fails domain validation rules.

    Maps to HTTP 422 Unprocessable Entity.

    Example:
        >>> raise ValidationError("role", "Unsupported role 'admin'")
        ValidationError: Validation failed for 'role': Unsupported role 'admin'
    """

    error_code: str = "VALIDATION_ERROR"

    def __init__(
        self,
        field: str,
        reason: str,
        **extra_context: Any,
    ) -> None:
        """Initialize validation error.

        Args:
            field: Field that failed validation.
            reason: Human-readable validation failure reason.
            **extra_context: Additional debugging context.
        """
        self.field = field
        self.reason = reason
        message = f"Validation failed for '{field}': {reason}"
        context = {
            "field": field,
            "reason": reason,
            **extra_context,
        }
        super().__init__(message, context)


class ConflictError(DomainError):
    """Raised when an operation conflicts with current store state.

    Maps to HTTP 409 Conflict. Use for duplicate resource creation.

    Example:
        >>> raise ConflictError("Email already registered", email="a@b.c")
        ConflictError: Conflict: Email already registered (email=a@b.c)
    """

    error_code: str = "CONFLICT"

    def __init__(
        self,
        reason: str,
        **context: Any,
    ) -> None:
        """Initialize conflict error.

        Args:
            reason: Description of the conflict.
            **context: Additional debugging context.
        """
        self.reason = reason
        message = f"Conflict: {reason}"
        super().__init__(message, context)


class RestrictionViolationError(ConflictError):
    """Raised when a RESTRICT foreign key still has live references.

    Maps to HTTP 409 Conflict. This is an expected outcome (for example a
    University with enrolled Students), not a system fault.

    Attributes:
        entity: Entity that could not be deleted.
        key: Key of the protected row.
        references: Referencing row counts per referencing entity.

    Example:
        >>> raise RestrictionViolationError(
        ...     "University", (3,), "2 students enrolled", references={"Student": 2}
        ... )
    """

    error_code: str = "RESTRICTION_VIOLATION"

    def __init__(
        self,
        entity: str,
        key: tuple[int, ...],
        reason: str,
        references: dict[str, int] | None = None,
    ) -> None:
        self.entity = entity
        self.key = key
        self.references = references or {}
        super().__init__(
            f"Cannot delete {entity} {_format_key(key)}: {reason}",
            entity=entity,
            key=_format_key(key),
            references=self.references,
        )


class ConcurrentModificationError(ConflictError):
    """Raised when the store changed between planning and executing a delete.

    Maps to HTTP 409 Conflict. A row appeared that references a row about
    to be deleted, so the plan no longer describes the store. Re-plan and
    retry.
    """

    error_code: str = "CONCURRENT_MODIFICATION"

    def __init__(self, reason: str, **context: Any) -> None:
        super().__init__(reason, **context)


class PartialFailureError(DomainError):
    """Raised when a non-atomic plan stopped after deleting a prefix of its steps.

    Maps to HTTP 500. The store may hold dangling references until an
    operator re-runs the same plan (every step is idempotent) or repairs
    the rows by hand.

    Attributes:
        completed: Rows deleted before the failure, in plan order.
        failed_step: Row whose deletion failed.
        cause: Underlying error.
    """

    error_code: str = "PARTIAL_FAILURE"

    def __init__(
        self,
        completed: list[str],
        failed_step: str,
        cause: DomainError,
    ) -> None:
        self.completed = completed
        self.failed_step = failed_step
        self.cause = cause
        message = (
            f"Deletion stopped at {failed_step} after {len(completed)} completed step(s)"
        )
        super().__init__(
            message,
            {
                "completed": completed,
                "failed_step": failed_step,
                "cause": cause.error_code,
            },
        )


class ProvisioningFailureError(DomainError):
    """Raised when a compound account creation fails.

    Attributes:
        stage: ``account``, ``profile`` or ``compensation``.
        cause: Underlying error.
        user_id: Id of the user row created before the failure, if any.
            Set for ``compensation`` failures so the orphan can be repaired.
    """

    error_code: str = "PROVISIONING_FAILURE"

    def __init__(
        self,
        stage: str,
        cause: Exception,
        user_id: int | None = None,
        **extra_context: Any,
    ) -> None:
        self.stage = stage
        self.cause = cause
        self.user_id = user_id
        if stage == "compensation":
            self.error_code = "PROVISIONING_COMPENSATION_FAILURE"
        message = f"Account provisioning failed at stage '{stage}': {cause}"
        context: dict[str, Any] = {"stage": stage, **extra_context}
        if user_id is not None:
            context["user_id"] = user_id
        super().__init__(message, context)


class StoreError(DomainError):
    """Raised when the backing store rejects a request.

    Maps to HTTP 502 Bad Gateway.
    """

    error_code: str = "STORE_ERROR"

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message, context)


class TransportError(StoreError):
    """Raised when the backing store is unreachable or timed out.

    Maps to HTTP 503 Service Unavailable.
    """

    error_code: str = "TRANSPORT_ERROR"


def _format_key(key: tuple[int, ...]) -> str:
    return ", ".join(str(part) for part in key)
