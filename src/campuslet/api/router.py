"""Admin REST router.

Thin HTTP layer over :class:`AdminApplication`. Successful outcomes
(including deletes of absent rows, reported as ``status="not_found"``) are
returned as JSON; failed outcomes re-raise the typed domain error so the
RFC 7807 handlers produce the problem response.
"""

from __future__ import annotations

from datetime import date  # noqa: TC003
from decimal import Decimal  # noqa: TC003
from typing import TYPE_CHECKING, Any

from fastapi import APIRouter
from pydantic import BaseModel, Field

from campuslet.api.dependencies import AdminDep  # noqa: TC001
from campuslet.domain.admin.schema import ADMIN_SCHEMA
from campuslet.foundation.domain.exceptions import StoreError, ValidationError

if TYPE_CHECKING:
    from campuslet.domain.admin import AdminResult
    from campuslet.foundation.domain.referential import DeletionPlan

router = APIRouter(prefix="/admin", tags=["admin"])

# URL slug (table name, hyphenated) -> schema entity name
_ENTITY_SLUGS = {
    entity.table.replace("_", "-"): entity.name
    for entity in ADMIN_SCHEMA.entities
    if entity.has_simple_key
}


# -- Request / Response models ------------------------------------------------


class CreateLandlordRequest(BaseModel):
    email: str
    password: str = Field(..., repr=False)
    first_name: str
    last_name: str
    company_name: str | None = None
    phone: str | None = None
    is_verified: bool = False
    rating: float | None = Field(default=None, ge=0, le=5)


class CreateStudentRequest(BaseModel):
    email: str
    password: str = Field(..., repr=False)
    university_id: int
    first_name: str
    last_name: str
    phone: str | None = None
    student_number: str | None = None
    year_of_study: int | None = Field(default=None, ge=1)
    program: str | None = None
    budget_min: Decimal | None = None
    budget_max: Decimal | None = None


class CreatePropertyRequest(BaseModel):
    landlord_id: int
    title: str
    address: str
    city: str
    price_per_month: Decimal = Field(..., gt=0)
    description: str | None = None
    property_type: str | None = None
    postal_code: str | None = None
    bedrooms: int | None = Field(default=None, ge=0)
    bathrooms: int | None = Field(default=None, ge=0)
    total_capacity: int | None = Field(default=None, ge=0)
    available_from: date | None = None
    is_active: bool = True
    amenity_ids: list[int] = Field(default_factory=list)


class CreateUniversityRequest(BaseModel):
    name: str
    city: str
    country: str
    is_active: bool = True


class ProfileStatusRequest(BaseModel):
    is_profile_complete: bool


class DeletionResponse(BaseModel):
    status: str
    completed: list[str]


class AccountResponse(BaseModel):
    user_id: int
    profile_id: int
    role: str


class CreatedResponse(BaseModel):
    id: int


class ProfileStatusResponse(BaseModel):
    user_id: int
    is_profile_complete: bool


class PlanStepResponse(BaseModel):
    row: str
    table: str
    key: dict[str, int]


class DeletionPlanResponse(BaseModel):
    root: str
    steps: list[PlanStepResponse]


class StudentSummaryResponse(BaseModel):
    student_id: int
    user_id: int
    email: str | None
    is_profile_complete: bool | None
    university_id: int
    university_name: str | None
    first_name: str
    last_name: str
    phone: str | None = None
    student_number: str | None = None
    year_of_study: int | None = None
    program: str | None = None
    budget_min: Decimal | None = None
    budget_max: Decimal | None = None


class LandlordSummaryResponse(BaseModel):
    landlord_id: int
    user_id: int
    email: str | None
    is_profile_complete: bool | None
    first_name: str
    last_name: str
    company_name: str | None = None
    phone: str | None = None
    is_verified: bool
    rating: Decimal | None = None
    property_count: int


class AmenityResponse(BaseModel):
    amenity_id: int
    name: str
    category: str | None = None


class UniversityResponse(BaseModel):
    university_id: int
    name: str
    city: str | None = None
    country: str | None = None
    is_active: bool


# -- Reads --------------------------------------------------------------------


@router.get("/students")
def list_students(admin: AdminDep) -> list[StudentSummaryResponse]:
    """Students, newest first, with account email and university name."""
    rows = _unwrap(admin.list_students())
    return [StudentSummaryResponse.model_validate(row) for row in rows]


@router.get("/landlords")
def list_landlords(admin: AdminDep) -> list[LandlordSummaryResponse]:
    """Landlords, newest first, with account email and property count."""
    rows = _unwrap(admin.list_landlords())
    return [LandlordSummaryResponse.model_validate(row) for row in rows]


@router.get("/amenities")
def list_amenities(admin: AdminDep) -> list[AmenityResponse]:
    """All amenities by name."""
    rows = _unwrap(admin.list_amenities())
    return [AmenityResponse.model_validate(row) for row in rows]


@router.get("/universities")
def list_universities(admin: AdminDep) -> list[UniversityResponse]:
    """Active universities by name."""
    rows = _unwrap(admin.list_universities())
    return [UniversityResponse.model_validate(row) for row in rows]


# -- Deletions ----------------------------------------------------------------


@router.delete("/students/{user_id}")
def delete_student(user_id: int, admin: AdminDep) -> DeletionResponse:
    """Delete a student account with its favorites, bookings and reviews."""
    return _deletion_response(admin.delete_student(user_id))


@router.delete("/landlords/{user_id}")
def delete_landlord(user_id: int, admin: AdminDep) -> DeletionResponse:
    """Delete a landlord account with all its properties and their dependents."""
    return _deletion_response(admin.delete_landlord(user_id))


@router.delete("/properties/{property_id}")
def delete_property(property_id: int, admin: AdminDep) -> DeletionResponse:
    """Delete a property with its amenity links, images, favorites and bookings."""
    return _deletion_response(admin.delete_property(property_id))


@router.delete("/universities/{university_id}")
def delete_university(university_id: int, admin: AdminDep) -> DeletionResponse:
    """Delete a university; 409 while students are enrolled."""
    return _deletion_response(admin.delete_university(university_id))


@router.get("/{entity}/{entity_id}/deletion-plan")
def preview_deletion(entity: str, entity_id: int, admin: AdminDep) -> DeletionPlanResponse:
    """Dry run: the rows a deletion would remove, leaf first."""
    entity_name = _ENTITY_SLUGS.get(entity)
    if entity_name is None:
        raise ValidationError(
            "entity", f"Unknown entity '{entity}'", allowed=sorted(_ENTITY_SLUGS)
        )
    return _plan_response(admin.preview_deletion(entity_name, entity_id))


# -- Creations ----------------------------------------------------------------


@router.post("/landlords", status_code=201)
def create_landlord(body: CreateLandlordRequest, admin: AdminDep) -> AccountResponse:
    """Create a landlord user account and its landlord profile."""
    result = admin.create_landlord_with_account(
        email=body.email,
        password=body.password,
        first_name=body.first_name,
        last_name=body.last_name,
        company_name=body.company_name,
        phone=body.phone,
        is_verified=body.is_verified,
        rating=body.rating,
    )
    ids = _unwrap(result)
    return AccountResponse(user_id=ids.user_id, profile_id=ids.profile_id, role=ids.role.value)


@router.post("/students", status_code=201)
def create_student(body: CreateStudentRequest, admin: AdminDep) -> AccountResponse:
    """Create a student user account and its student profile."""
    optional = body.model_dump(
        exclude={"email", "password", "university_id", "first_name", "last_name"},
        exclude_none=True,
    )
    result = admin.create_student_with_account(
        body.email,
        body.password,
        body.university_id,
        body.first_name,
        body.last_name,
        **optional,
    )
    ids = _unwrap(result)
    return AccountResponse(user_id=ids.user_id, profile_id=ids.profile_id, role=ids.role.value)


@router.post("/properties", status_code=201)
def create_property(body: CreatePropertyRequest, admin: AdminDep) -> CreatedResponse:
    """Create a property and link its amenities."""
    fields = body.model_dump(exclude={"landlord_id", "amenity_ids"}, exclude_none=True)
    result = admin.create_property(body.landlord_id, fields, body.amenity_ids)
    return CreatedResponse(id=_unwrap(result))


@router.post("/universities", status_code=201)
def add_university(body: CreateUniversityRequest, admin: AdminDep) -> CreatedResponse:
    """Register a university."""
    result = admin.add_university(body.name, body.city, body.country, body.is_active)
    return CreatedResponse(id=_unwrap(result))


@router.patch("/users/{user_id}/profile-status")
def update_profile_status(
    user_id: int,
    body: ProfileStatusRequest,
    admin: AdminDep,
) -> ProfileStatusResponse:
    """Set whether a user's profile is complete."""
    _unwrap(admin.update_user_profile_status(user_id, body.is_profile_complete))
    return ProfileStatusResponse(user_id=user_id, is_profile_complete=body.is_profile_complete)


# -- Helpers ------------------------------------------------------------------


def _unwrap(result: AdminResult) -> Any:
    if not result.success:
        raise result.error or StoreError("Admin operation failed", status=result.status.value)
    return result.value


def _deletion_response(result: AdminResult) -> DeletionResponse:
    _unwrap(result)
    return DeletionResponse(
        status=result.status.value,
        completed=[str(ref) for ref in result.completed],
    )


def _plan_response(plan: DeletionPlan) -> DeletionPlanResponse:
    return DeletionPlanResponse(
        root=str(plan.root),
        steps=[
            PlanStepResponse(row=str(step.ref), table=step.table, key=dict(step.key))
            for step in plan
        ],
    )
