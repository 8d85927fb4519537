"""Account provisioning service for compound account creation.

Orchestrates the two-step create as a saga:
1. Stage ``account``: reject a registered email, hash the password, insert
   the User row with ``is_profile_complete = False``
2. Stage ``profile``: insert the Student/Landlord row referencing the user,
   then mark the user's profile complete
3. Compensating action: if stage 2 fails, delete the new User through the
   deletion orchestrator (which also removes a half-written profile)

A failed compensation leaves an orphan User; it is raised with
``stage="compensation"`` and the orphan's id, never swallowed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, NoReturn

from campuslet.domain.admin.schema import AdminEntity
from campuslet.foundation.domain.account_value_objects import AccountRole, Email, Password
from campuslet.foundation.domain.exceptions import (
    ConflictError,
    DomainError,
    ProvisioningFailureError,
    StoreError,
    ValidationError,
)

if TYPE_CHECKING:
    from collections.abc import Mapping

    from campuslet.domain.admin.orchestrator import DeletionOrchestrator
    from campuslet.foundation.domain.ports import PasswordHasherPort, PersistenceAdapterPort

logger = logging.getLogger(__name__)

# Profile columns an admin may set, per role; ``user_id`` is always set here.
PROFILE_FIELDS: dict[AccountRole, frozenset[str]] = {
    AccountRole.STUDENT: frozenset(
        {
            "university_id",
            "first_name",
            "last_name",
            "phone",
            "student_number",
            "year_of_study",
            "program",
            "budget_min",
            "budget_max",
        }
    ),
    AccountRole.LANDLORD: frozenset(
        {
            "first_name",
            "last_name",
            "company_name",
            "phone",
            "is_verified",
            "rating",
        }
    ),
}

_REQUIRED_FIELDS: dict[AccountRole, frozenset[str]] = {
    AccountRole.STUDENT: frozenset({"university_id", "first_name", "last_name"}),
    AccountRole.LANDLORD: frozenset({"first_name", "last_name"}),
}

_PROFILE_ENTITY: dict[AccountRole, tuple[str, str]] = {
    AccountRole.STUDENT: ("students", "student_id"),
    AccountRole.LANDLORD: ("landlords", "landlord_id"),
}


@dataclass(frozen=True, slots=True)
class AccountIds:
    """Keys of a provisioned account.

    Attributes:
        user_id: Key of the ``users`` row.
        profile_id: Key of the ``students`` or ``landlords`` row.
        role: Role of the account.
    """

    user_id: int
    profile_id: int
    role: AccountRole


class AccountProvisioningService:
    """Creates a User plus its role profile, compensating on failure.

    Attributes:
        _adapter: Persistence adapter for the inserts and the compensation.
        _hasher: Password hasher; only hashes are stored.
        _orchestrator: Plans the compensating deletion of the new User.
    """

    def __init__(
        self,
        adapter: PersistenceAdapterPort,
        hasher: PasswordHasherPort,
        orchestrator: DeletionOrchestrator,
    ) -> None:
        self._adapter = adapter
        self._hasher = hasher
        self._orchestrator = orchestrator

    def create_account_with_profile(
        self,
        email: str,
        password: str,
        role: AccountRole | str,
        profile_fields: Mapping[str, Any],
    ) -> AccountIds:
        """Create a User and its Student/Landlord profile.

        Args:
            email: Login email; normalised and checked for uniqueness.
            password: Plaintext password; stored as a bcrypt hash.
            role: ``student`` or ``landlord``.
            profile_fields: Profile columns (see ``PROFILE_FIELDS``).

        Returns:
            AccountIds of the new rows.

        Raises:
            ValidationError: Bad email, password, role or profile fields.
                Nothing was written.
            ConflictError: Email already registered. Nothing was written.
            ProvisioningFailureError: ``stage="account"`` (nothing written),
                ``stage="profile"`` (User compensated away) or
                ``stage="compensation"`` (orphan User left; ``user_id`` set).
        """
        account_role, normalised_email, checked_password = _validate(
            email, password, role, profile_fields
        )

        # Stage 1: account row
        try:
            if self._adapter.find_keys("users", "email", normalised_email.value, ("user_id",)):
                raise ConflictError("Email already registered", email=normalised_email.value)
            user_id = self._adapter.insert(
                "users",
                {
                    "email": normalised_email.value,
                    "password_hash": self._hasher.hash_password(checked_password.value),
                    "user_type": account_role.value,
                    "is_profile_complete": False,
                },
                returning="user_id",
            )
            if user_id is None:
                raise StoreError("Store returned no user_id", table="users")
        except ConflictError:
            raise
        except DomainError as exc:
            logger.warning(
                "account_provisioning_failed",
                extra={"stage": "account", "role": account_role.value, "cause": str(exc)},
            )
            raise ProvisioningFailureError("account", exc) from exc

        # Stage 2: profile row, then mark the account complete
        table, key_column = _PROFILE_ENTITY[account_role]
        try:
            profile_id = self._adapter.insert(
                table,
                {**profile_fields, "user_id": user_id},
                returning=key_column,
            )
            if profile_id is None:
                raise StoreError(f"Store returned no {key_column}", table=table)
            if not self._adapter.update(
                "users", {"user_id": user_id}, {"is_profile_complete": True}
            ):
                raise StoreError("User row vanished before completion", user_id=user_id)
        except Exception as exc:
            self._compensate(user_id, account_role, exc)

        logger.info(
            "account_provisioned",
            extra={
                "user_id": user_id,
                "profile_id": profile_id,
                "role": account_role.value,
            },
        )
        return AccountIds(user_id=user_id, profile_id=profile_id, role=account_role)

    def _compensate(self, user_id: int, role: AccountRole, cause: Exception) -> NoReturn:
        """Delete the just-created User, then raise the matching failure."""
        logger.warning(
            "account_provisioning_compensating",
            extra={"user_id": user_id, "role": role.value, "cause": str(cause)},
        )
        failure: DomainError | None = None
        try:
            plan = self._orchestrator.plan_deletion(AdminEntity.USER, user_id)
            result = self._adapter.execute(plan)
            if not result.success:
                failure = result.cause or StoreError(
                    "Compensating delete failed", status=result.status.value
                )
        except DomainError as exc:
            failure = exc

        if failure is not None:
            logger.error(
                "account_provisioning_compensation_failed",
                extra={
                    "user_id": user_id,
                    "role": role.value,
                    "cause": str(cause),
                    "compensation_error": str(failure),
                },
            )
            raise ProvisioningFailureError(
                "compensation",
                failure,
                user_id=user_id,
                profile_error=str(cause),
            ) from cause

        logger.info(
            "account_provisioning_compensated",
            extra={"user_id": user_id, "role": role.value},
        )
        raise ProvisioningFailureError("profile", cause) from cause


def _validate(
    email: str,
    password: str,
    role: AccountRole | str,
    profile_fields: Mapping[str, Any],
) -> tuple[AccountRole, Email, Password]:
    try:
        account_role = AccountRole(role)
    except ValueError:
        raise ValidationError("role", f"Unknown role '{role}'") from None
    if account_role not in PROFILE_FIELDS:
        raise ValidationError("role", f"Role '{account_role.value}' has no profile")

    try:
        normalised_email = Email(email)
    except ValueError as exc:
        raise ValidationError("email", str(exc)) from None
    try:
        checked_password = Password(password)
    except ValueError as exc:
        raise ValidationError("password", str(exc)) from None

    unknown = set(profile_fields) - PROFILE_FIELDS[account_role]
    if unknown:
        raise ValidationError(
            "profile_fields",
            f"Unknown {account_role.value} field(s): {', '.join(sorted(unknown))}",
        )
    missing = {
        name for name in _REQUIRED_FIELDS[account_role] if profile_fields.get(name) in (None, "")
    }
    if missing:
        raise ValidationError(
            "profile_fields",
            f"Missing {account_role.value} field(s): {', '.join(sorted(missing))}",
        )
    return account_role, normalised_email, checked_password
