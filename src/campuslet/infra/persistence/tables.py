"""Relational tables of the marketplace store.

SQLAlchemy Core definitions matching the deployed schema. Foreign keys carry
no ``ON DELETE`` action: the database rejects any delete that would leave a
dangling reference, and the deletion plan removes dependents first.
"""

from __future__ import annotations

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    ForeignKey,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    Text,
)

metadata = MetaData()

users = Table(
    "users",
    metadata,
    Column("user_id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("password_hash", String(255), nullable=False),
    Column("user_type", String(20), nullable=False),
    Column("is_profile_complete", Boolean, nullable=False, default=False),
    CheckConstraint("user_type IN ('student', 'landlord', 'admin')", name="ck_users_user_type"),
)

universities = Table(
    "universities",
    metadata,
    Column("university_id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False),
    Column("city", String(100)),
    Column("country", String(100)),
    Column("is_active", Boolean, nullable=False, default=True),
)

students = Table(
    "students",
    metadata,
    Column("student_id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, ForeignKey("users.user_id"), nullable=False, unique=True),
    Column("university_id", Integer, ForeignKey("universities.university_id"), nullable=False),
    Column("first_name", String(100), nullable=False),
    Column("last_name", String(100), nullable=False),
    Column("phone", String(30)),
    Column("student_number", String(50)),
    Column("year_of_study", Integer),
    Column("program", String(255)),
    Column("budget_min", Numeric(10, 2)),
    Column("budget_max", Numeric(10, 2)),
)

landlords = Table(
    "landlords",
    metadata,
    Column("landlord_id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, ForeignKey("users.user_id"), nullable=False, unique=True),
    Column("first_name", String(100), nullable=False),
    Column("last_name", String(100), nullable=False),
    Column("company_name", String(255)),
    Column("phone", String(30)),
    Column("is_verified", Boolean, nullable=False, default=False),
    Column("rating", Numeric(3, 2)),
)

amenities = Table(
    "amenities",
    metadata,
    Column("amenity_id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(100), nullable=False, unique=True),
    Column("category", String(50)),
)

properties = Table(
    "properties",
    metadata,
    Column("property_id", Integer, primary_key=True, autoincrement=True),
    Column("landlord_id", Integer, ForeignKey("landlords.landlord_id"), nullable=False),
    Column("title", String(255), nullable=False),
    Column("description", Text),
    Column("property_type", String(50)),
    Column("address", String(255), nullable=False),
    Column("city", String(100), nullable=False),
    Column("postal_code", String(20)),
    Column("price_per_month", Numeric(10, 2), nullable=False),
    Column("bedrooms", Integer),
    Column("bathrooms", Integer),
    Column("total_capacity", Integer),
    Column("available_from", Date),
    Column("is_active", Boolean, nullable=False, default=True),
)

property_amenities = Table(
    "property_amenities",
    metadata,
    Column("property_id", Integer, ForeignKey("properties.property_id"), primary_key=True),
    Column("amenity_id", Integer, ForeignKey("amenities.amenity_id"), primary_key=True),
)

property_images = Table(
    "property_images",
    metadata,
    Column("image_id", Integer, primary_key=True, autoincrement=True),
    Column("property_id", Integer, ForeignKey("properties.property_id"), nullable=False),
    Column("image_url", String(500), nullable=False),
    Column("is_primary", Boolean, nullable=False, default=False),
    Column("display_order", Integer, nullable=False, default=0),
)

favorites = Table(
    "favorites",
    metadata,
    Column("student_id", Integer, ForeignKey("students.student_id"), primary_key=True),
    Column("property_id", Integer, ForeignKey("properties.property_id"), primary_key=True),
)

bookings = Table(
    "bookings",
    metadata,
    Column("booking_id", Integer, primary_key=True, autoincrement=True),
    Column("property_id", Integer, ForeignKey("properties.property_id"), nullable=False),
    Column("student_id", Integer, ForeignKey("students.student_id"), nullable=False),
    Column("start_date", Date),
    Column("end_date", Date),
    Column("status", String(20), nullable=False, default="pending"),
    Column("total_price", Numeric(10, 2)),
)

reviews = Table(
    "reviews",
    metadata,
    Column("review_id", Integer, primary_key=True, autoincrement=True),
    Column("booking_id", Integer, ForeignKey("bookings.booking_id")),
    Column("property_id", Integer, ForeignKey("properties.property_id"), nullable=False),
    Column("student_id", Integer, ForeignKey("students.student_id"), nullable=False),
    Column("landlord_id", Integer, ForeignKey("landlords.landlord_id"), nullable=False),
    Column("property_rating", Integer),
    Column("landlord_rating", Integer),
    Column("comment", Text),
)
