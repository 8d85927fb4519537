"""Shared fixtures: the landlord scenario on SQLite and on a fake PostgREST.

Landlord 7 (user 70) owns properties 101 and 102. Property 101 has amenity
links (101,1), (101,3) and pending booking 9001 by student 8 (user 80,
university 1); property 102 has image 55. University 2 has no students.
The ``active_*`` fixtures add student 8's favorite of 102 and review of 9001.
"""

from __future__ import annotations

import copy
import json
from collections.abc import Iterator
from datetime import date
from decimal import Decimal
from typing import Any
from unittest.mock import MagicMock

import httpx
import pytest
from sqlalchemy import Engine, insert

from campuslet.api.dependencies import build_admin_application
from campuslet.domain.admin import (
    ADMIN_SCHEMA,
    AdminApplication,
    DeletionOrchestrator,
    GuardRuleEngine,
)
from campuslet.infra.persistence import (
    DatabaseManager,
    DatabaseSettings,
    SqlTransactionalAdapter,
    metadata,
)
from campuslet.infra.rest import RestBestEffortAdapter

# Insertion order respects foreign keys.
SCENARIO_ROWS: dict[str, list[dict[str, Any]]] = {
    "users": [
        {
            "user_id": 70,
            "email": "lena.park@example.com",
            "password_hash": "x",
            "user_type": "landlord",
            "is_profile_complete": True,
        },
        {
            "user_id": 80,
            "email": "sam.lee@example.com",
            "password_hash": "x",
            "user_type": "student",
            "is_profile_complete": True,
        },
    ],
    "universities": [
        {
            "university_id": university_id,
            "name": name,
            "city": "Ottawa",
            "country": "Canada",
            "is_active": True,
        }
        for university_id, name in ((1, "University of Ottawa"), (2, "Carleton University"))
    ],
    "landlords": [
        {
            "landlord_id": 7,
            "user_id": 70,
            "first_name": "Lena",
            "last_name": "Park",
            "is_verified": False,
        },
    ],
    "students": [
        {
            "student_id": 8,
            "user_id": 80,
            "university_id": 1,
            "first_name": "Sam",
            "last_name": "Lee",
        },
    ],
    "amenities": [
        {"amenity_id": 1, "name": "WiFi", "category": "utilities"},
        {"amenity_id": 3, "name": "Laundry", "category": "facilities"},
    ],
    "properties": [
        {
            "property_id": 101,
            "landlord_id": 7,
            "title": "Studio near campus",
            "address": "12 Laurier Ave",
            "city": "Ottawa",
            "price_per_month": Decimal("950.00"),
            "is_active": True,
        },
        {
            "property_id": 102,
            "landlord_id": 7,
            "title": "Two-bedroom flat",
            "address": "40 Elgin St",
            "city": "Ottawa",
            "price_per_month": Decimal("1400.00"),
            "is_active": True,
        },
    ],
    "property_amenities": [
        {"property_id": 101, "amenity_id": 1},
        {"property_id": 101, "amenity_id": 3},
    ],
    "bookings": [
        {
            "booking_id": 9001,
            "property_id": 101,
            "student_id": 8,
            "status": "pending",
            "start_date": date(2026, 9, 1),
            "end_date": date(2027, 4, 30),
        },
    ],
    "property_images": [
        {
            "image_id": 55,
            "property_id": 102,
            "image_url": "https://img.example.com/55.jpg",
            "is_primary": True,
            "display_order": 0,
        },
    ],
}

# Student 8 has favorited property 102 and reviewed booking 9001.
ACTIVITY_ROWS: dict[str, list[dict[str, Any]]] = {
    "favorites": [{"student_id": 8, "property_id": 102}],
    "reviews": [
        {
            "review_id": 1,
            "booking_id": 9001,
            "property_id": 101,
            "student_id": 8,
            "landlord_id": 7,
            "property_rating": 5,
            "landlord_rating": 4,
            "comment": "Quiet and close to campus",
        },
    ],
}


def seed_scenario(engine: Engine) -> None:
    with engine.begin() as conn:
        for table, rows in SCENARIO_ROWS.items():
            conn.execute(insert(metadata.tables[table]), rows)


def seed_activity(engine: Engine) -> None:
    with engine.begin() as conn:
        for table, rows in ACTIVITY_ROWS.items():
            conn.execute(insert(metadata.tables[table]), rows)


class FakePostgrest:
    """In-memory PostgREST emulation for ``httpx.MockTransport``.

    Supports ``eq.`` filters, ``select``, ``order`` (asc/desc), ``limit``,
    ``offset``, exact counts, a ``max_rows`` cap like db-max-rows
    and the unique/foreign-key errors of the marketplace tables (derived
    from the SQLAlchemy metadata). ``fail_next`` queues a canned response or
    a raised exception for the next matching request.
    """

    def __init__(self, rows: dict[str, list[dict[str, Any]]], max_rows: int | None = None) -> None:
        self.max_rows = max_rows
        self.tables: dict[str, list[dict[str, Any]]] = {
            name: copy.deepcopy(rows.get(name, [])) for name in metadata.tables
        }
        self.requests: list[httpx.Request] = []
        self._faults: dict[tuple[str, str], list[httpx.Response | Exception]] = {}

    def fail_next(
        self,
        method: str,
        table: str,
        outcome: httpx.Response | Exception,
        times: int = 1,
    ) -> None:
        self._faults.setdefault((method, table), []).extend([outcome] * times)

    def rows(self, table: str, **match: Any) -> list[dict[str, Any]]:
        return [r for r in self.tables[table] if all(r.get(k) == v for k, v in match.items())]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        table = request.url.path.rsplit("/", 1)[-1]
        queued = self._faults.get((request.method, table))
        if queued:
            outcome = queued.pop(0)
            if isinstance(outcome, Exception):
                raise outcome
            return outcome

        filters = {
            name: value.removeprefix("eq.")
            for name, value in request.url.params.multi_items()
            if value.startswith("eq.")
        }
        matched = [r for r in self.tables[table] if _matches(r, filters)]
        prefer = request.headers.get("Prefer", "")

        if request.method == "GET":
            return self._get(request, table, matched, prefer)
        if request.method == "POST":
            body = json.loads(request.content)
            return self._post(table, body if isinstance(body, list) else [body], prefer)
        if request.method == "PATCH":
            for row in matched:
                row.update(json.loads(request.content))
            return _rows_response(200, matched, prefer)
        if request.method == "DELETE":
            for row in matched:
                blocker = self._referencing(table, row)
                if blocker:
                    return _error(409, "23503", f"still referenced from table \"{blocker}\"")
            self.tables[table] = [r for r in self.tables[table] if r not in matched]
            return _rows_response(200, matched, prefer)
        return httpx.Response(405)

    def _get(
        self,
        request: httpx.Request,
        table: str,
        matched: list[dict[str, Any]],
        prefer: str,
    ) -> httpx.Response:
        params = request.url.params
        rows = list(matched)
        if "order" in params:
            for part in reversed(params["order"].split(",")):
                column, _, direction = part.partition(".")
                rows.sort(key=lambda r, c=column: r[c], reverse=direction == "desc")
        offset = int(params.get("offset", "0"))
        limit = int(params["limit"]) if "limit" in params else len(rows)
        if self.max_rows is not None:
            limit = min(limit, self.max_rows)
        rows = rows[offset : offset + limit]
        select_param = params.get("select", "*")
        if select_param != "*":
            columns = select_param.split(",")
            rows = [{c: r.get(c) for c in columns} for r in rows]
        headers = {}
        if "count=exact" in prefer:
            headers["Content-Range"] = f"0-{max(len(rows) - 1, 0)}/{len(matched)}"
        return httpx.Response(200, content=_dumps(rows), headers=headers)

    def _post(self, table: str, body: list[dict[str, Any]], prefer: str) -> httpx.Response:
        t = metadata.tables[table]
        staged = [dict(r) for r in self.tables[table]]
        created = []
        for values in body:
            row = {c.name: None for c in t.columns} | values
            pk = list(t.primary_key.columns)
            if len(pk) == 1 and row[pk[0].name] is None:
                row[pk[0].name] = max((r[pk[0].name] for r in staged), default=0) + 1
            for column in t.columns:
                if (
                    column.unique
                    and row[column.name] is not None
                    and any(r.get(column.name) == row[column.name] for r in staged)
                ):
                    return _error(409, "23505", f"duplicate key value violates unique {column.name}")
            for fk in t.foreign_keys:
                value = row.get(fk.parent.name)
                target = fk.column.table.name
                if value is not None and not any(
                    r.get(fk.column.name) == value for r in self.tables[target]
                ):
                    return _error(409, "23503", f"{fk.parent.name} not present in {target}")
            staged.append(row)
            created.append(row)
        self.tables[table] = staged
        return _rows_response(201, created, prefer)

    def _referencing(self, table: str, row: dict[str, Any]) -> str | None:
        for other in metadata.tables.values():
            for fk in other.foreign_keys:
                if fk.column.table.name != table:
                    continue
                if any(r.get(fk.parent.name) == row[fk.column.name] for r in self.tables[other.name]):
                    return other.name
        return None


def _text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _matches(row: dict[str, Any], filters: dict[str, str]) -> bool:
    return all(_text(row.get(name)) == value for name, value in filters.items())


def _dumps(rows: list[dict[str, Any]]) -> bytes:
    return json.dumps(rows, default=str).encode()


def _rows_response(status: int, rows: list[dict[str, Any]], prefer: str) -> httpx.Response:
    if "return=representation" in prefer:
        return httpx.Response(status, content=_dumps(rows))
    return httpx.Response(status if status != 200 else 204)


def _error(status: int, code: str, message: str) -> httpx.Response:
    return httpx.Response(status, json={"code": code, "message": message})


@pytest.fixture()
def db_manager() -> Iterator[DatabaseManager]:
    """In-memory SQLite database with the marketplace tables."""
    manager = DatabaseManager(DatabaseSettings(url="sqlite://"))
    metadata.create_all(manager.get_engine())
    yield manager
    manager.dispose()


@pytest.fixture()
def engine(db_manager: DatabaseManager) -> Engine:
    return db_manager.get_engine()


@pytest.fixture()
def sql_adapter(db_manager: DatabaseManager) -> SqlTransactionalAdapter:
    return SqlTransactionalAdapter(db_manager.get_session_factory())


@pytest.fixture()
def seeded_adapter(engine: Engine, sql_adapter: SqlTransactionalAdapter) -> SqlTransactionalAdapter:
    """Transactional adapter over the seeded landlord scenario."""
    seed_scenario(engine)
    return sql_adapter


@pytest.fixture()
def active_adapter(engine: Engine, seeded_adapter: SqlTransactionalAdapter) -> SqlTransactionalAdapter:
    """Seeded scenario plus a favorite and a review by student 8."""
    seed_activity(engine)
    return seeded_adapter


@pytest.fixture()
def orchestrator(seeded_adapter: SqlTransactionalAdapter) -> DeletionOrchestrator:
    return DeletionOrchestrator(
        ADMIN_SCHEMA, seeded_adapter, GuardRuleEngine(ADMIN_SCHEMA, seeded_adapter)
    )


@pytest.fixture()
def hasher() -> MagicMock:
    """Password hasher stub; hashes are ``hashed:<password>``."""
    mock = MagicMock()
    mock.hash_password.side_effect = lambda password: f"hashed:{password}"
    mock.verify_password.side_effect = lambda password, hashed: hashed == f"hashed:{password}"
    return mock


@pytest.fixture()
def admin(seeded_adapter: SqlTransactionalAdapter, hasher: MagicMock) -> AdminApplication:
    return build_admin_application(seeded_adapter, hasher)


@pytest.fixture()
def postgrest() -> FakePostgrest:
    """Fake PostgREST store seeded with the landlord scenario."""
    return FakePostgrest(SCENARIO_ROWS)


@pytest.fixture()
def rest_adapter(postgrest: FakePostgrest) -> Iterator[RestBestEffortAdapter]:
    client = httpx.Client(transport=httpx.MockTransport(postgrest))
    adapter = RestBestEffortAdapter(
        base_url="https://store.test/rest/v1/",
        api_key="service-key",
        max_retries=2,
        retry_backoff=0,
        client=client,
    )
    yield adapter
    client.close()


@pytest.fixture()
def active_postgrest() -> FakePostgrest:
    """Fake PostgREST store with the scenario plus student 8's favorite and review."""
    return FakePostgrest({**SCENARIO_ROWS, **ACTIVITY_ROWS})


@pytest.fixture()
def active_rest_admin(active_postgrest: FakePostgrest, hasher: MagicMock) -> Iterator[AdminApplication]:
    client = httpx.Client(transport=httpx.MockTransport(active_postgrest))
    adapter = RestBestEffortAdapter(
        base_url="https://store.test/rest/v1/",
        api_key="service-key",
        retry_backoff=0,
        client=client,
    )
    yield build_admin_application(adapter, hasher)
    client.close()


@pytest.fixture()
def capped_postgrest() -> FakePostgrest:
    """Scenario store returning at most two rows per request; property 102 has three images."""
    store = FakePostgrest(SCENARIO_ROWS, max_rows=2)
    for image_id in (56, 57):
        store.tables["property_images"].append(
            {
                "image_id": image_id,
                "property_id": 102,
                "image_url": f"https://img.example.com/{image_id}.jpg",
                "is_primary": False,
                "display_order": image_id - 55,
            }
        )
    return store


@pytest.fixture()
def paged_adapter(capped_postgrest: FakePostgrest) -> Iterator[RestBestEffortAdapter]:
    client = httpx.Client(transport=httpx.MockTransport(capped_postgrest))
    adapter = RestBestEffortAdapter(
        base_url="https://store.test/rest/v1/",
        api_key="service-key",
        retry_backoff=0,
        page_size=2,
        client=client,
    )
    yield adapter
    client.close()
