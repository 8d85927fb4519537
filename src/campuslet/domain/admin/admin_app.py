"""Admin application service.

Entry point for the marketplace's administrative operations: deleting
accounts, properties and universities through the deletion orchestrator,
creating accounts, properties and universities, and listing the
administered records. Every collaborator is
injected at construction; nothing holds a process-wide store client.

Operations return an ``AdminResult`` instead of a bare boolean so callers
can tell a missing row from a blocked delete, a half-applied plan or an
unreachable store.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from campuslet.domain.admin.schema import AdminEntity
from campuslet.foundation.domain.account_value_objects import AccountRole
from campuslet.foundation.domain.exceptions import (
    ConflictError,
    DomainError,
    NotFoundError,
    PartialFailureError,
    ProvisioningFailureError,
    RestrictionViolationError,
    StoreError,
    ValidationError,
)
from campuslet.foundation.domain.referential import ExecutionStatus

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from campuslet.domain.admin.infrastructure.account_provisioning import (
        AccountProvisioningService,
    )
    from campuslet.domain.admin.orchestrator import DeletionOrchestrator
    from campuslet.foundation.domain.ports import PersistenceAdapterPort
    from campuslet.foundation.domain.referential import (
        DeletionPlan,
        ExecutionResult,
        RowRef,
    )

logger = logging.getLogger(__name__)

PROPERTY_FIELDS = frozenset(
    {
        "title",
        "description",
        "property_type",
        "address",
        "city",
        "postal_code",
        "price_per_month",
        "bedrooms",
        "bathrooms",
        "total_capacity",
        "available_from",
        "is_active",
    }
)
_REQUIRED_PROPERTY_FIELDS = frozenset({"title", "address", "city", "price_per_month"})


class AdminStatus(StrEnum):
    """Outcome of an admin operation."""

    DELETED = "deleted"
    NOT_FOUND = "not_found"
    BLOCKED = "blocked"
    CONFLICT = "conflict"
    INVALID = "invalid"
    FAILED = "failed"
    PARTIAL_FAILURE = "partial_failure"
    CREATED = "created"
    UPDATED = "updated"
    PROVISIONING_FAILED = "provisioning_failed"
    COMPENSATION_FAILED = "compensation_failed"
    LISTED = "listed"


@dataclass(frozen=True, slots=True)
class AdminResult:
    """Typed outcome of an admin operation.

    Attributes:
        success: True for completed operations, including deletes of
            absent rows (``status=not_found``).
        status: What happened.
        error: The domain error behind a failure, if any.
        completed: Rows deleted by the operation, in deletion order.
        value: Operation payload (new ids) or listed rows, ``0`` for a
            failed ``create_property``.
    """

    success: bool
    status: AdminStatus
    error: DomainError | None = None
    completed: tuple[RowRef, ...] = field(default=())
    value: Any = None

    @property
    def needs_repair(self) -> bool:
        """True when the store may hold dangling references or orphans."""
        return self.status in (AdminStatus.PARTIAL_FAILURE, AdminStatus.COMPENSATION_FAILED)


class AdminApplication:
    """Administrative operations over the marketplace store.

    Attributes:
        _adapter: Persistence adapter (transactional or best-effort).
        _orchestrator: Builds deletion plans.
        _provisioning: Compound account creation saga.
    """

    def __init__(
        self,
        adapter: PersistenceAdapterPort,
        orchestrator: DeletionOrchestrator,
        provisioning: AccountProvisioningService,
    ) -> None:
        self._adapter = adapter
        self._orchestrator = orchestrator
        self._provisioning = provisioning

    # -- deletions ---------------------------------------------------------

    def delete_student(self, user_id: int) -> AdminResult:
        """Delete a student account: favorites, bookings, reviews, profile, user."""
        return self._delete_account(user_id, AccountRole.STUDENT)

    def delete_landlord(self, user_id: int) -> AdminResult:
        """Delete a landlord account.

        Cascades Properties and their dependents, then the Landlord row,
        then the User row.
        """
        return self._delete_account(user_id, AccountRole.LANDLORD)

    def delete_property(self, property_id: int) -> AdminResult:
        """Delete a property with its amenity links, images, favorites, bookings and reviews."""
        return self._delete(AdminEntity.PROPERTY, property_id)

    def delete_university(self, university_id: int) -> AdminResult:
        """Delete a university; blocked while any student is enrolled."""
        return self._delete(AdminEntity.UNIVERSITY, university_id)

    def preview_deletion(self, entity_type: str, entity_id: int) -> DeletionPlan:
        """Plan a deletion without executing it.

        Raises:
            RestrictionViolationError: The deletion would be blocked.
            ValidationError: Unknown entity type.
        """
        return self._orchestrator.plan_deletion(entity_type, entity_id)

    # -- creations ---------------------------------------------------------

    def create_landlord_with_account(
        self,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
        company_name: str | None = None,
        phone: str | None = None,
        is_verified: bool = False,
        rating: float | None = None,
    ) -> AdminResult:
        """Create a landlord User and Landlord profile; value is ``AccountIds``."""
        fields: dict[str, Any] = {
            "first_name": first_name,
            "last_name": last_name,
            "company_name": company_name,
            "phone": phone,
            "is_verified": is_verified,
        }
        if rating is not None:
            fields["rating"] = rating
        return self._provision(email, password, AccountRole.LANDLORD, fields)

    def create_student_with_account(
        self,
        email: str,
        password: str,
        university_id: int,
        first_name: str,
        last_name: str,
        **profile_fields: Any,
    ) -> AdminResult:
        """Create a student User and Student profile; value is ``AccountIds``."""
        fields = {
            "university_id": university_id,
            "first_name": first_name,
            "last_name": last_name,
            **profile_fields,
        }
        return self._provision(email, password, AccountRole.STUDENT, fields)

    def create_property(
        self,
        landlord_id: int,
        fields: Mapping[str, Any],
        amenity_ids: Sequence[int] = (),
    ) -> AdminResult:
        """Create a property and link its amenities.

        If linking the amenities fails, the new property is deleted again.
        The result's ``value`` is the new property id, or ``0`` on failure.
        """
        try:
            _validate_property_fields(fields)
            if self._adapter.fetch("landlords", {"landlord_id": landlord_id}) is None:
                raise NotFoundError("Landlord", landlord_id)
            property_id = self._adapter.insert(
                "properties",
                {"is_active": True, **fields, "landlord_id": landlord_id},
                returning="property_id",
            )
            if property_id is None:
                raise StoreError("Store returned no property_id", table="properties")
        except DomainError as exc:
            return self._failure(exc, "create_property", value=0)

        unique_amenities = list(dict.fromkeys(amenity_ids))
        if unique_amenities:
            try:
                self._adapter.insert_many(
                    "property_amenities",
                    [
                        {"property_id": property_id, "amenity_id": amenity_id}
                        for amenity_id in unique_amenities
                    ],
                )
            except DomainError as exc:
                return self._undo_property(property_id, exc)

        logger.info(
            "property_created",
            extra={
                "property_id": property_id,
                "landlord_id": landlord_id,
                "amenities": len(unique_amenities),
            },
        )
        return AdminResult(success=True, status=AdminStatus.CREATED, value=property_id)

    def add_university(
        self,
        name: str,
        city: str,
        country: str,
        is_active: bool = True,
    ) -> AdminResult:
        """Create a university; value is the new university id."""
        try:
            if not name.strip():
                raise ValidationError("name", "University name cannot be empty")
            university_id = self._adapter.insert(
                "universities",
                {"name": name.strip(), "city": city, "country": country, "is_active": is_active},
                returning="university_id",
            )
        except DomainError as exc:
            return self._failure(exc, "add_university")
        logger.info("university_created", extra={"university_id": university_id})
        return AdminResult(success=True, status=AdminStatus.CREATED, value=university_id)

    def update_user_profile_status(self, user_id: int, is_complete: bool) -> AdminResult:
        """Set a user's ``is_profile_complete`` flag."""
        try:
            if not self._adapter.update(
                "users", {"user_id": user_id}, {"is_profile_complete": is_complete}
            ):
                raise NotFoundError("User", user_id)
        except DomainError as exc:
            return self._failure(exc, "update_user_profile_status")
        return AdminResult(success=True, status=AdminStatus.UPDATED, value=user_id)

    # -- reads -------------------------------------------------------------

    def list_students(self) -> AdminResult:
        """Students, newest first, with email, profile flag and university name."""
        try:
            students = self._adapter.select_rows("students", order_by=("-student_id",))
            users = self._users_by_id()
            universities = {
                row["university_id"]: row["name"]
                for row in self._adapter.select_rows("universities")
            }
        except DomainError as exc:
            return self._failure(exc, "list_students")
        rows = [
            {
                **student,
                **_account_fields(users.get(student["user_id"])),
                "university_name": universities.get(student["university_id"]),
            }
            for student in students
        ]
        return AdminResult(success=True, status=AdminStatus.LISTED, value=rows)

    def list_landlords(self) -> AdminResult:
        """Landlords, newest first, with email, profile flag and property count."""
        try:
            landlords = self._adapter.select_rows("landlords", order_by=("-landlord_id",))
            users = self._users_by_id()
            owned = Counter(
                row["landlord_id"] for row in self._adapter.select_rows("properties")
            )
        except DomainError as exc:
            return self._failure(exc, "list_landlords")
        rows = [
            {
                **landlord,
                **_account_fields(users.get(landlord["user_id"])),
                "property_count": owned[landlord["landlord_id"]],
            }
            for landlord in landlords
        ]
        return AdminResult(success=True, status=AdminStatus.LISTED, value=rows)

    def list_amenities(self) -> AdminResult:
        """All amenities by name."""
        try:
            rows = self._adapter.select_rows("amenities", order_by=("name",))
        except DomainError as exc:
            return self._failure(exc, "list_amenities")
        return AdminResult(success=True, status=AdminStatus.LISTED, value=rows)

    def list_universities(self) -> AdminResult:
        """Active universities by name."""
        try:
            rows = self._adapter.select_rows(
                "universities", where={"is_active": True}, order_by=("name",)
            )
        except DomainError as exc:
            return self._failure(exc, "list_universities")
        return AdminResult(success=True, status=AdminStatus.LISTED, value=rows)

    # -- internals ---------------------------------------------------------

    def _users_by_id(self) -> dict[int, dict[str, Any]]:
        return {row["user_id"]: row for row in self._adapter.select_rows("users")}

    def _delete_account(self, user_id: int, role: AccountRole) -> AdminResult:
        try:
            user = self._adapter.fetch("users", {"user_id": user_id})
        except DomainError as exc:
            return self._failure(exc, f"delete_{role.value}")
        if user is None:
            return AdminResult(success=True, status=AdminStatus.NOT_FOUND)
        if user.get("user_type") != role.value:
            error = ValidationError(
                "user_id",
                f"User {user_id} is a {user.get('user_type')}, not a {role.value}",
            )
            return self._failure(error, f"delete_{role.value}")
        return self._delete(AdminEntity.USER, user_id)

    def _delete(self, entity_type: str, entity_id: int) -> AdminResult:
        try:
            plan = self._orchestrator.plan_deletion(entity_type, entity_id)
        except DomainError as exc:
            return self._failure(exc, "plan_deletion")
        if plan.is_empty:
            return AdminResult(success=True, status=AdminStatus.NOT_FOUND)
        return self._from_execution(plan, self._adapter.execute(plan))

    def _from_execution(self, plan: DeletionPlan, result: ExecutionResult) -> AdminResult:
        if result.success:
            logger.info(
                "deletion_completed",
                extra={"root": str(plan.root), "deleted": len(result.completed)},
            )
            return AdminResult(
                success=True, status=AdminStatus.DELETED, completed=result.completed
            )

        cause = result.cause or StoreError("Plan execution failed", root=str(plan.root))
        if result.status is ExecutionStatus.PARTIAL_FAILURE:
            error = PartialFailureError(
                completed=[str(ref) for ref in result.completed],
                failed_step=str(result.failed_step),
                cause=cause,
            )
            logger.error(
                "deletion_partially_applied",
                extra={
                    "root": str(plan.root),
                    "completed": error.completed,
                    "failed_step": error.failed_step,
                    "cause": str(cause),
                },
            )
            return AdminResult(
                success=False,
                status=AdminStatus.PARTIAL_FAILURE,
                error=error,
                completed=result.completed,
            )
        return self._failure(cause, "execute_plan")

    def _provision(
        self,
        email: str,
        password: str,
        role: AccountRole,
        fields: Mapping[str, Any],
    ) -> AdminResult:
        try:
            ids = self._provisioning.create_account_with_profile(email, password, role, fields)
        except DomainError as exc:
            return self._failure(exc, f"create_{role.value}_with_account")
        return AdminResult(success=True, status=AdminStatus.CREATED, value=ids)

    def _undo_property(self, property_id: int, cause: DomainError) -> AdminResult:
        logger.warning(
            "property_amenities_failed_removing_property",
            extra={"property_id": property_id, "cause": str(cause)},
        )
        undo_error: DomainError | None = None
        try:
            plan = self._orchestrator.plan_deletion(AdminEntity.PROPERTY, property_id)
            undone = self._adapter.execute(plan)
            if not undone.success:
                undo_error = undone.cause or StoreError(
                    "Property removal failed", property_id=property_id
                )
        except DomainError as exc:
            undo_error = exc

        if undo_error is None:
            return self._failure(cause, "create_property", value=0)

        error = PartialFailureError(
            completed=[f"{AdminEntity.PROPERTY}({property_id})"],
            failed_step=f"{AdminEntity.PROPERTY}({property_id}) removal",
            cause=undo_error,
        )
        logger.error(
            "property_removal_failed",
            extra={"property_id": property_id, "cause": str(error.cause)},
        )
        return AdminResult(
            success=False, status=AdminStatus.PARTIAL_FAILURE, error=error, value=0
        )

    def _failure(self, error: DomainError, operation: str, value: Any = None) -> AdminResult:
        status = _status_for(error)
        log = logger.error if status in _FAULTS else logger.info
        log(
            "admin_operation_failed",
            extra={
                "operation": operation,
                "status": status.value,
                "error_code": error.error_code,
                "error": str(error),
            },
        )
        return AdminResult(success=False, status=status, error=error, value=value)


_FAULTS = frozenset(
    {
        AdminStatus.FAILED,
        AdminStatus.PARTIAL_FAILURE,
        AdminStatus.PROVISIONING_FAILED,
        AdminStatus.COMPENSATION_FAILED,
    }
)


def _status_for(error: DomainError) -> AdminStatus:
    if isinstance(error, RestrictionViolationError):
        return AdminStatus.BLOCKED
    if isinstance(error, ConflictError):
        return AdminStatus.CONFLICT
    if isinstance(error, NotFoundError):
        return AdminStatus.NOT_FOUND
    if isinstance(error, ValidationError):
        return AdminStatus.INVALID
    if isinstance(error, PartialFailureError):
        return AdminStatus.PARTIAL_FAILURE
    if isinstance(error, ProvisioningFailureError):
        if error.stage == "compensation":
            return AdminStatus.COMPENSATION_FAILED
        return AdminStatus.PROVISIONING_FAILED
    return AdminStatus.FAILED


def _validate_property_fields(fields: Mapping[str, Any]) -> None:
    unknown = set(fields) - PROPERTY_FIELDS
    if unknown:
        raise ValidationError("fields", f"Unknown property field(s): {', '.join(sorted(unknown))}")
    missing = {name for name in _REQUIRED_PROPERTY_FIELDS if fields.get(name) in (None, "")}
    if missing:
        raise ValidationError("fields", f"Missing property field(s): {', '.join(sorted(missing))}")


def _account_fields(user: Mapping[str, Any] | None) -> dict[str, Any]:
    if user is None:
        return {"email": None, "is_profile_complete": None}
    return {"email": user["email"], "is_profile_complete": user["is_profile_complete"]}
