"""HTTP tests for the admin router over the seeded SQLite scenario."""

from __future__ import annotations

from typing import TYPE_CHECKING
from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from campuslet.api import create_admin_app, get_admin_settings
from campuslet.domain.admin import AdminResult, AdminStatus
from campuslet.foundation.domain.exceptions import TransportError
from campuslet.infra.fastapi import AppSettings
from campuslet.infra.rest import get_rest_store_settings

if TYPE_CHECKING:
    from collections.abc import Iterator

    from campuslet.domain.admin import AdminApplication
    from campuslet.infra.persistence import SqlTransactionalAdapter


@pytest.fixture()
def client(admin: AdminApplication) -> Iterator[TestClient]:
    yield TestClient(create_admin_app(AppSettings(), admin=admin))


@pytest.mark.integration
class TestDeletionRoutes:
    def test_delete_landlord(
        self, client: TestClient, seeded_adapter: SqlTransactionalAdapter
    ) -> None:
        response = client.delete("/admin/landlords/70")

        assert response.status_code == 200
        assert response.json() == {
            "status": "deleted",
            "completed": [
                "Booking(9001)",
                "PropertyAmenity(101, 1)",
                "PropertyAmenity(101, 3)",
                "PropertyImage(55)",
                "Property(101)",
                "Property(102)",
                "Landlord(7)",
                "User(70)",
            ],
        }
        assert seeded_adapter.fetch("users", {"user_id": 70}) is None

    def test_delete_missing_landlord_is_not_found_outcome(self, client: TestClient) -> None:
        response = client.delete("/admin/landlords/999")
        assert response.status_code == 200
        assert response.json() == {"status": "not_found", "completed": []}

    def test_delete_student(self, client: TestClient) -> None:
        response = client.delete("/admin/students/80")
        assert response.status_code == 200
        assert response.json()["completed"] == ["Booking(9001)", "Student(8)", "User(80)"]

    def test_delete_property(self, client: TestClient) -> None:
        response = client.delete("/admin/properties/102")
        assert response.status_code == 200
        assert response.json()["completed"] == ["PropertyImage(55)", "Property(102)"]

    def test_delete_university_with_students_is_blocked(self, client: TestClient) -> None:
        response = client.delete("/admin/universities/1")

        assert response.status_code == 409
        body = response.json()
        assert body["type"] == "/errors/restriction-violation"
        assert body["context"]["references"] == {"Student": 1}

    def test_delete_empty_university(self, client: TestClient) -> None:
        response = client.delete("/admin/universities/2")
        assert response.status_code == 200
        assert response.json()["completed"] == ["University(2)"]


@pytest.mark.integration
class TestListRoutes:
    def test_list_students(self, client: TestClient) -> None:
        response = client.get("/admin/students")

        assert response.status_code == 200
        [sam] = response.json()
        assert sam["student_id"] == 8
        assert sam["email"] == "sam.lee@example.com"
        assert sam["is_profile_complete"] is True
        assert sam["university_name"] == "University of Ottawa"

    def test_list_landlords(self, client: TestClient) -> None:
        response = client.get("/admin/landlords")

        assert response.status_code == 200
        [lena] = response.json()
        assert lena["email"] == "lena.park@example.com"
        assert lena["property_count"] == 2
        assert "password_hash" not in lena

    def test_list_amenities(self, client: TestClient) -> None:
        response = client.get("/admin/amenities")
        assert response.status_code == 200
        assert response.json() == [
            {"amenity_id": 3, "name": "Laundry", "category": "facilities"},
            {"amenity_id": 1, "name": "WiFi", "category": "utilities"},
        ]

    def test_list_universities(self, client: TestClient) -> None:
        client.post(
            "/admin/universities",
            json={
                "name": "Algonquin College",
                "city": "Ottawa",
                "country": "Canada",
                "is_active": False,
            },
        )

        response = client.get("/admin/universities")

        assert response.status_code == 200
        assert [row["name"] for row in response.json()] == [
            "Carleton University",
            "University of Ottawa",
        ]

    def test_store_unreachable_is_503(self) -> None:
        admin = MagicMock()
        admin.list_amenities.return_value = AdminResult(
            success=False, status=AdminStatus.FAILED, error=TransportError("down")
        )
        client = TestClient(create_admin_app(AppSettings(), admin=admin))

        response = client.get("/admin/amenities")

        assert response.status_code == 503


@pytest.mark.integration
class TestDeletionPlanRoute:
    def test_preview_does_not_delete(
        self, client: TestClient, seeded_adapter: SqlTransactionalAdapter
    ) -> None:
        response = client.get("/admin/properties/102/deletion-plan")

        assert response.status_code == 200
        assert response.json() == {
            "root": "Property(102)",
            "steps": [
                {"row": "PropertyImage(55)", "table": "property_images", "key": {"image_id": 55}},
                {"row": "Property(102)", "table": "properties", "key": {"property_id": 102}},
            ],
        }
        assert seeded_adapter.fetch("properties", {"property_id": 102}) is not None

    def test_unknown_entity_slug(self, client: TestClient) -> None:
        response = client.get("/admin/spaceships/1/deletion-plan")

        assert response.status_code == 422
        body = response.json()
        assert body["context"]["field"] == "entity"
        assert "property-images" in body["context"]["allowed"]


@pytest.mark.integration
class TestCreationRoutes:
    def test_create_landlord(self, client: TestClient, seeded_adapter: SqlTransactionalAdapter) -> None:
        response = client.post(
            "/admin/landlords",
            json={
                "email": "new.owner@example.com",
                "password": "s3cret-pass",
                "first_name": "Nia",
                "last_name": "Owens",
                "rating": 4.5,
            },
        )

        assert response.status_code == 201
        body = response.json()
        assert body["role"] == "landlord"
        user = seeded_adapter.fetch("users", {"user_id": body["user_id"]})
        assert user is not None
        assert user["password_hash"] == "hashed:s3cret-pass"

    def test_create_landlord_duplicate_email(self, client: TestClient) -> None:
        response = client.post(
            "/admin/landlords",
            json={
                "email": "lena.park@example.com",
                "password": "s3cret-pass",
                "first_name": "Lena",
                "last_name": "Park",
            },
        )
        assert response.status_code == 409

    def test_create_landlord_rating_out_of_range(self, client: TestClient) -> None:
        response = client.post(
            "/admin/landlords",
            json={
                "email": "x@example.com",
                "password": "s3cret-pass",
                "first_name": "X",
                "last_name": "Y",
                "rating": 7,
            },
        )
        assert response.status_code == 422
        assert response.json()["error_code"] == "REQUEST_VALIDATION_ERROR"

    def test_create_student(self, client: TestClient, seeded_adapter: SqlTransactionalAdapter) -> None:
        response = client.post(
            "/admin/students",
            json={
                "email": "ana.diaz@example.com",
                "password": "s3cret-pass",
                "university_id": 2,
                "first_name": "Ana",
                "last_name": "Diaz",
                "year_of_study": 2,
            },
        )

        assert response.status_code == 201
        profile = seeded_adapter.fetch("students", {"student_id": response.json()["profile_id"]})
        assert profile is not None
        assert profile["university_id"] == 2
        assert profile["year_of_study"] == 2

    def test_create_property(self, client: TestClient, seeded_adapter: SqlTransactionalAdapter) -> None:
        response = client.post(
            "/admin/properties",
            json={
                "landlord_id": 7,
                "title": "Studio near campus",
                "address": "12 King Edward Ave",
                "city": "Ottawa",
                "price_per_month": "950.00",
                "amenity_ids": [1, 3, 1],
            },
        )

        assert response.status_code == 201
        property_id = response.json()["id"]
        assert seeded_adapter.count("property_amenities", "property_id", property_id) == 2

    def test_create_property_missing_landlord(self, client: TestClient) -> None:
        response = client.post(
            "/admin/properties",
            json={
                "landlord_id": 404,
                "title": "Nowhere",
                "address": "1 Main St",
                "city": "Ottawa",
                "price_per_month": "500",
            },
        )
        assert response.status_code == 404
        assert response.json()["context"]["resource_type"] == "Landlord"

    def test_add_university(self, client: TestClient) -> None:
        response = client.post(
            "/admin/universities",
            json={"name": "Carleton University", "city": "Ottawa", "country": "Canada"},
        )
        assert response.status_code == 201
        assert response.json()["id"] > 2


@pytest.mark.integration
class TestProfileStatusRoute:
    def test_update(self, client: TestClient, seeded_adapter: SqlTransactionalAdapter) -> None:
        response = client.patch(
            "/admin/users/80/profile-status", json={"is_profile_complete": True}
        )

        assert response.status_code == 200
        assert response.json() == {"user_id": 80, "is_profile_complete": True}
        user = seeded_adapter.fetch("users", {"user_id": 80})
        assert user is not None
        assert user["is_profile_complete"] is True

    def test_missing_user(self, client: TestClient) -> None:
        response = client.patch(
            "/admin/users/999/profile-status", json={"is_profile_complete": True}
        )
        assert response.status_code == 404


class TestAdminAppWiring:
    @pytest.mark.unit
    def test_missing_admin_state_is_internal_error(self) -> None:
        app = create_admin_app(AppSettings(), admin=MagicMock())
        app.state.admin = None
        response = TestClient(app, raise_server_exceptions=False).delete("/admin/landlords/70")
        assert response.status_code == 500

    @pytest.mark.unit
    def test_extra_health_checks_reported(self) -> None:
        app = create_admin_app(AppSettings(), admin=MagicMock(), health_checks={"cache": lambda: None})
        response = TestClient(app).get("/healthz")
        assert response.json()["checks"] == {"cache": {"status": "ok"}}

    @pytest.mark.unit
    def test_best_effort_requires_rest_store_config(self) -> None:
        get_admin_settings.cache_clear()
        get_rest_store_settings.cache_clear()
        try:
            with (
                patch.dict("os.environ", {"ADMIN_ADAPTER": "best_effort"}, clear=True),
                pytest.raises(ValueError, match="REST_STORE_BASE_URL"),
            ):
                create_admin_app(AppSettings())
        finally:
            get_admin_settings.cache_clear()
            get_rest_store_settings.cache_clear()

    @pytest.mark.unit
    def test_best_effort_wires_rest_adapter(self) -> None:
        env = {
            "ADMIN_ADAPTER": "best_effort",
            "ADMIN_BCRYPT_ROUNDS": "4",
            "REST_STORE_BASE_URL": "https://store.test/rest/v1",
            "REST_STORE_API_KEY": "service-key",
        }
        get_admin_settings.cache_clear()
        get_rest_store_settings.cache_clear()
        try:
            with patch.dict("os.environ", env, clear=True):
                app = create_admin_app(AppSettings())
            assert app.state.admin is not None
            assert set(app.state.health_checks) == {"rest_store"}
        finally:
            get_admin_settings.cache_clear()
            get_rest_store_settings.cache_clear()

    @pytest.mark.unit
    def test_transactional_releases_engine_on_shutdown(self) -> None:
        get_admin_settings.cache_clear()
        try:
            with (
                patch.dict("os.environ", {"ADMIN_BCRYPT_ROUNDS": "4"}, clear=True),
                patch("campuslet.api.app.get_session_factory", return_value=MagicMock()),
                patch("campuslet.api.app.dispose_engine") as dispose,
                patch("campuslet.api.app.configure_logging"),
            ):
                app = create_admin_app(AppSettings())
                assert set(app.state.health_checks) == {"database"}
                with TestClient(app):
                    dispose.assert_not_called()
                dispose.assert_called_once_with()
        finally:
            get_admin_settings.cache_clear()
