"""Entity schema for the admin domain.

A static graph of the marketplace's entity tables and the foreign keys
between them, each tagged CASCADE or RESTRICT. The guard and the deletion
orchestrator are driven entirely by this data: adding a table that
references a Property means adding an edge here, nothing else. A missing
edge produces orphan rows, so ``ADMIN_SCHEMA`` lists every foreign key of
the relational schema that points at a deletable entity.
"""

from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING

from campuslet.foundation.domain.exceptions import ValidationError
from campuslet.foundation.domain.referential import (
    EntityType,
    ForeignKeyEdge,
    ReferencePolicy,
)

if TYPE_CHECKING:
    from collections.abc import Iterable


class AdminEntity(StrEnum):
    """Entity names of the admin domain."""

    USER = "User"
    STUDENT = "Student"
    LANDLORD = "Landlord"
    UNIVERSITY = "University"
    PROPERTY = "Property"
    PROPERTY_AMENITY = "PropertyAmenity"
    PROPERTY_IMAGE = "PropertyImage"
    FAVORITE = "Favorite"
    BOOKING = "Booking"
    REVIEW = "Review"


class EntitySchema:
    """Validated, immutable view over entity types and foreign-key edges.

    Raises:
        ValueError: On construction, if an edge names an undeclared entity,
            points at an entity without a single-column key, or marks a
            RESTRICT edge as owning its target.
    """

    def __init__(
        self,
        entities: Iterable[EntityType],
        edges: Iterable[ForeignKeyEdge],
    ) -> None:
        self._entities: dict[str, EntityType] = {}
        for entity in entities:
            if entity.name in self._entities:
                msg = f"Entity {entity.name} declared twice"
                raise ValueError(msg)
            self._entities[entity.name] = entity

        self._edges: tuple[ForeignKeyEdge, ...] = tuple(edges)
        for edge in self._edges:
            for name in (edge.source, edge.target):
                if name not in self._entities:
                    msg = f"Edge {edge.source}.{edge.column} names unknown entity {name}"
                    raise ValueError(msg)
            if not self._entities[edge.target].has_simple_key:
                msg = f"Edge {edge.source}.{edge.column} targets composite-key entity {edge.target}"
                raise ValueError(msg)
            if edge.owns_target and edge.policy is not ReferencePolicy.CASCADE:
                msg = f"Owning edge {edge.source}.{edge.column} must be CASCADE"
                raise ValueError(msg)

    @property
    def entities(self) -> tuple[EntityType, ...]:
        return tuple(self._entities.values())

    @property
    def edges(self) -> tuple[ForeignKeyEdge, ...]:
        return self._edges

    def entity(self, name: str) -> EntityType:
        """Look up an entity type by name.

        Raises:
            ValidationError: If the entity is not part of the schema.
        """
        try:
            return self._entities[name]
        except KeyError:
            raise ValidationError("entity_type", f"Unknown entity '{name}'") from None

    def incoming(
        self,
        name: str,
        policy: ReferencePolicy | None = None,
    ) -> tuple[ForeignKeyEdge, ...]:
        """Edges whose target is ``name`` (rows that reference it)."""
        return tuple(
            edge
            for edge in self._edges
            if edge.target == name and (policy is None or edge.policy is policy)
        )

    def outgoing(self, name: str) -> tuple[ForeignKeyEdge, ...]:
        """Edges whose source is ``name`` (rows it references)."""
        return tuple(edge for edge in self._edges if edge.source == name)

    def owned_targets(self, name: str) -> tuple[ForeignKeyEdge, ...]:
        """Outgoing edges of ``name`` that own the referenced row."""
        return tuple(edge for edge in self.outgoing(name) if edge.owns_target)

    def restrictions(self, name: str) -> tuple[ForeignKeyEdge, ...]:
        return self.incoming(name, ReferencePolicy.RESTRICT)


_CASCADE = ReferencePolicy.CASCADE
_RESTRICT = ReferencePolicy.RESTRICT

ADMIN_SCHEMA = EntitySchema(
    entities=[
        EntityType(AdminEntity.USER, "users", ("user_id",)),
        EntityType(AdminEntity.STUDENT, "students", ("student_id",)),
        EntityType(AdminEntity.LANDLORD, "landlords", ("landlord_id",)),
        EntityType(AdminEntity.UNIVERSITY, "universities", ("university_id",)),
        EntityType(AdminEntity.PROPERTY, "properties", ("property_id",)),
        EntityType(
            AdminEntity.PROPERTY_AMENITY,
            "property_amenities",
            ("property_id", "amenity_id"),
        ),
        EntityType(AdminEntity.PROPERTY_IMAGE, "property_images", ("image_id",)),
        EntityType(AdminEntity.FAVORITE, "favorites", ("student_id", "property_id")),
        EntityType(AdminEntity.BOOKING, "bookings", ("booking_id",)),
        EntityType(AdminEntity.REVIEW, "reviews", ("review_id",)),
    ],
    edges=[
        # Profiles and their account rows are removed together.
        ForeignKeyEdge(AdminEntity.STUDENT, "user_id", AdminEntity.USER, _CASCADE, owns_target=True),
        ForeignKeyEdge(AdminEntity.LANDLORD, "user_id", AdminEntity.USER, _CASCADE, owns_target=True),
        ForeignKeyEdge(
            AdminEntity.STUDENT,
            "university_id",
            AdminEntity.UNIVERSITY,
            _RESTRICT,
            label="students enrolled",
        ),
        ForeignKeyEdge(AdminEntity.PROPERTY, "landlord_id", AdminEntity.LANDLORD, _CASCADE),
        ForeignKeyEdge(AdminEntity.PROPERTY_AMENITY, "property_id", AdminEntity.PROPERTY, _CASCADE),
        ForeignKeyEdge(AdminEntity.PROPERTY_IMAGE, "property_id", AdminEntity.PROPERTY, _CASCADE),
        ForeignKeyEdge(AdminEntity.FAVORITE, "property_id", AdminEntity.PROPERTY, _CASCADE),
        ForeignKeyEdge(AdminEntity.FAVORITE, "student_id", AdminEntity.STUDENT, _CASCADE),
        ForeignKeyEdge(AdminEntity.BOOKING, "property_id", AdminEntity.PROPERTY, _CASCADE),
        ForeignKeyEdge(AdminEntity.BOOKING, "student_id", AdminEntity.STUDENT, _CASCADE),
        ForeignKeyEdge(AdminEntity.REVIEW, "booking_id", AdminEntity.BOOKING, _CASCADE),
        ForeignKeyEdge(AdminEntity.REVIEW, "property_id", AdminEntity.PROPERTY, _CASCADE),
        ForeignKeyEdge(AdminEntity.REVIEW, "student_id", AdminEntity.STUDENT, _CASCADE),
        ForeignKeyEdge(AdminEntity.REVIEW, "landlord_id", AdminEntity.LANDLORD, _CASCADE),
    ],
)
