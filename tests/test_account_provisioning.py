"""Tests for campuslet.domain.admin.infrastructure.account_provisioning."""

from __future__ import annotations

from typing import Any
from unittest.mock import MagicMock

import pytest
from sqlalchemy import select

from campuslet.domain.admin.infrastructure.account_provisioning import (
    AccountIds,
    AccountProvisioningService,
)
from campuslet.domain.admin.orchestrator import DeletionOrchestrator
from campuslet.domain.admin.schema import AdminEntity
from campuslet.foundation.domain.account_value_objects import AccountRole
from campuslet.foundation.domain.exceptions import (
    ConflictError,
    ProvisioningFailureError,
    StoreError,
    TransportError,
    ValidationError,
)
from campuslet.foundation.domain.referential import DeletionPlan, ExecutionResult, RowRef
from campuslet.infra.persistence import tables as t

_LANDLORD_FIELDS: dict[str, Any] = {"first_name": "Ada", "last_name": "Stone"}


def _make_service() -> tuple[AccountProvisioningService, MagicMock, MagicMock]:
    adapter = MagicMock()
    adapter.find_keys.return_value = []
    adapter.insert.side_effect = [501, 61]
    adapter.update.return_value = True
    hasher = MagicMock()
    hasher.hash_password.return_value = "$2b$12$hash"
    orchestrator = MagicMock()
    orchestrator.plan_deletion.return_value = DeletionPlan(
        RowRef.of("User", 501), ()
    )
    adapter.execute.return_value = ExecutionResult.succeeded([RowRef.of("User", 501)])
    return AccountProvisioningService(adapter, hasher, orchestrator), adapter, orchestrator


class TestValidation:
    @pytest.mark.unit
    @pytest.mark.parametrize(
        ("email", "password", "role", "fields", "field"),
        [
            ("ada@example.com", "secret1", "guest", _LANDLORD_FIELDS, "role"),
            ("ada@example.com", "secret1", "admin", _LANDLORD_FIELDS, "role"),
            ("not-an-email", "secret1", "landlord", _LANDLORD_FIELDS, "email"),
            ("ada@example.com", "123", "landlord", _LANDLORD_FIELDS, "password"),
            ("ada@example.com", "secret1", "landlord", {"first_name": "Ada"}, "profile_fields"),
            (
                "ada@example.com",
                "secret1",
                "landlord",
                {**_LANDLORD_FIELDS, "university_id": 1},
                "profile_fields",
            ),
        ],
    )
    def test_rejected_before_any_write(
        self,
        email: str,
        password: str,
        role: str,
        fields: dict[str, Any],
        field: str,
    ) -> None:
        service, adapter, _ = _make_service()
        with pytest.raises(ValidationError) as exc_info:
            service.create_account_with_profile(email, password, role, fields)
        assert exc_info.value.field == field
        adapter.insert.assert_not_called()


class TestHappyPath:
    @pytest.mark.unit
    def test_creates_user_then_profile_then_marks_complete(self) -> None:
        service, adapter, _ = _make_service()

        ids = service.create_account_with_profile(
            " Ada@Example.com", "secret1", AccountRole.LANDLORD, _LANDLORD_FIELDS
        )

        assert ids == AccountIds(user_id=501, profile_id=61, role=AccountRole.LANDLORD)
        user_call, profile_call = adapter.insert.call_args_list
        assert user_call.args[0] == "users"
        assert user_call.args[1] == {
            "email": "ada@example.com",
            "password_hash": "$2b$12$hash",
            "user_type": "landlord",
            "is_profile_complete": False,
        }
        assert profile_call.args[0] == "landlords"
        assert profile_call.args[1] == {**_LANDLORD_FIELDS, "user_id": 501}
        assert profile_call.kwargs == {"returning": "landlord_id"}
        adapter.update.assert_called_once_with(
            "users", {"user_id": 501}, {"is_profile_complete": True}
        )

    @pytest.mark.unit
    def test_plaintext_password_never_stored(self) -> None:
        service, adapter, _ = _make_service()
        service.create_account_with_profile(
            "ada@example.com", "secret1", "landlord", _LANDLORD_FIELDS
        )
        for call in adapter.insert.call_args_list:
            assert "secret1" not in call.args[1].values()


class TestAccountStage:
    @pytest.mark.unit
    def test_duplicate_email_is_conflict(self) -> None:
        service, adapter, _ = _make_service()
        adapter.find_keys.return_value = [(9,)]
        with pytest.raises(ConflictError, match="Email already registered"):
            service.create_account_with_profile(
                "ada@example.com", "secret1", "landlord", _LANDLORD_FIELDS
            )
        adapter.insert.assert_not_called()

    @pytest.mark.unit
    def test_user_insert_failure(self) -> None:
        service, adapter, orchestrator = _make_service()
        adapter.insert.side_effect = TransportError("down")
        with pytest.raises(ProvisioningFailureError) as exc_info:
            service.create_account_with_profile(
                "ada@example.com", "secret1", "landlord", _LANDLORD_FIELDS
            )
        assert exc_info.value.stage == "account"
        orchestrator.plan_deletion.assert_not_called()


class TestProfileStage:
    @pytest.mark.unit
    def test_profile_failure_compensates_user(self) -> None:
        service, adapter, orchestrator = _make_service()
        adapter.insert.side_effect = [501, StoreError("landlords rejected")]

        with pytest.raises(ProvisioningFailureError) as exc_info:
            service.create_account_with_profile(
                "ada@example.com", "secret1", "landlord", _LANDLORD_FIELDS
            )

        assert exc_info.value.stage == "profile"
        assert exc_info.value.error_code == "PROVISIONING_FAILURE"
        orchestrator.plan_deletion.assert_called_once_with(AdminEntity.USER, 501)
        adapter.execute.assert_called_once()

    @pytest.mark.unit
    def test_completion_update_failure_compensates(self) -> None:
        service, adapter, orchestrator = _make_service()
        adapter.update.return_value = False
        with pytest.raises(ProvisioningFailureError) as exc_info:
            service.create_account_with_profile(
                "ada@example.com", "secret1", "landlord", _LANDLORD_FIELDS
            )
        assert exc_info.value.stage == "profile"
        orchestrator.plan_deletion.assert_called_once()

    @pytest.mark.unit
    def test_compensation_failure_reports_orphan(self) -> None:
        service, adapter, orchestrator = _make_service()
        adapter.insert.side_effect = [501, StoreError("landlords rejected")]
        adapter.execute.return_value = ExecutionResult.failed(
            RowRef.of("User", 501), TransportError("down")
        )

        with pytest.raises(ProvisioningFailureError) as exc_info:
            service.create_account_with_profile(
                "ada@example.com", "secret1", "landlord", _LANDLORD_FIELDS
            )

        err = exc_info.value
        assert err.stage == "compensation"
        assert err.error_code == "PROVISIONING_COMPENSATION_FAILURE"
        assert err.user_id == 501
        assert isinstance(err.cause, TransportError)
        assert "landlords rejected" in err.context["profile_error"]

    @pytest.mark.unit
    def test_compensation_planning_failure_reports_orphan(self) -> None:
        service, adapter, orchestrator = _make_service()
        adapter.insert.side_effect = [501, StoreError("landlords rejected")]
        orchestrator.plan_deletion.side_effect = TransportError("down")

        with pytest.raises(ProvisioningFailureError) as exc_info:
            service.create_account_with_profile(
                "ada@example.com", "secret1", "landlord", _LANDLORD_FIELDS
            )
        assert exc_info.value.stage == "compensation"
        assert exc_info.value.user_id == 501


@pytest.mark.integration
class TestAgainstStore:
    def test_student_account(
        self,
        seeded_adapter: Any,
        orchestrator: DeletionOrchestrator,
        hasher: MagicMock,
        engine: Any,
    ) -> None:
        service = AccountProvisioningService(seeded_adapter, hasher, orchestrator)

        ids = service.create_account_with_profile(
            "new.student@example.com",
            "secret1",
            "student",
            {"university_id": 1, "first_name": "Noor", "last_name": "Haddad", "year_of_study": 2},
        )

        with engine.connect() as conn:
            user = conn.execute(
                select(t.users).where(t.users.c.user_id == ids.user_id)
            ).mappings().one()
            student = conn.execute(
                select(t.students).where(t.students.c.student_id == ids.profile_id)
            ).mappings().one()
        assert user["is_profile_complete"] is True
        assert user["password_hash"] == "hashed:secret1"
        assert student["user_id"] == ids.user_id

    def test_profile_failure_leaves_no_user(
        self,
        seeded_adapter: Any,
        orchestrator: DeletionOrchestrator,
        hasher: MagicMock,
        engine: Any,
    ) -> None:
        service = AccountProvisioningService(seeded_adapter, hasher, orchestrator)

        with pytest.raises(ProvisioningFailureError) as exc_info:
            service.create_account_with_profile(
                "ghost@example.com",
                "secret1",
                "student",
                {"university_id": 999, "first_name": "No", "last_name": "Campus"},
            )

        assert exc_info.value.stage == "profile"
        assert isinstance(exc_info.value.cause, ConflictError)
        with engine.connect() as conn:
            rows = conn.execute(
                select(t.users).where(t.users.c.email == "ghost@example.com")
            ).all()
        assert rows == []
