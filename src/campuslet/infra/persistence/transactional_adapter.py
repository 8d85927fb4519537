"""Transactional persistence adapter over SQLAlchemy.

Implements ``PersistenceAdapterPort`` for a relational database. A deletion
plan runs inside a single transaction: each step locks its row, re-checks
that nothing references it any more and deletes it. Any failure rolls the
whole plan back, so the store is either fully updated or untouched.

Database errors are translated at this boundary:
- ``IntegrityError`` on a delete -> ``ConcurrentModificationError``
- ``IntegrityError`` otherwise -> ``ConflictError``
- ``OperationalError`` (connection loss, timeout) -> ``TransportError``
- any other ``SQLAlchemyError`` -> ``StoreError``
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from sqlalchemy import and_, delete, func, insert, select, update
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError

from campuslet.foundation.domain.exceptions import (
    ConcurrentModificationError,
    ConflictError,
    DomainError,
    StoreError,
    TransportError,
    ValidationError,
)
from campuslet.foundation.domain.referential import (
    DeletionPlan,
    DeletionStep,
    ExecutionResult,
    RowRef,
    verify_unreferenced,
)
from campuslet.infra.persistence.tables import metadata as default_metadata

if TYPE_CHECKING:
    from collections.abc import Iterator

    from sqlalchemy import ColumnElement, MetaData, Table
    from sqlalchemy.orm import Session, sessionmaker

logger = logging.getLogger(__name__)


class SqlTransactionalAdapter:
    """All-or-nothing persistence adapter.

    Args:
        session_factory: Sync session factory (see ``DatabaseManager``).
        metadata: Table definitions; defaults to the marketplace tables.

    Example:
        >>> adapter = SqlTransactionalAdapter(get_session_factory())
        >>> adapter.count("students", "university_id", 3)
        0
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        metadata: MetaData | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._metadata = metadata if metadata is not None else default_metadata

    # -- reads -------------------------------------------------------------

    def find_keys(
        self,
        table: str,
        column: str,
        value: Any,
        key_columns: tuple[str, ...],
    ) -> list[tuple[int, ...]]:
        t = self._table(table)
        keys = [self._column(t, name) for name in key_columns]
        stmt = select(*keys).where(self._column(t, column) == value).order_by(*keys)
        with self._transaction() as session:
            return [tuple(row) for row in session.execute(stmt).all()]

    def select_rows(
        self,
        table: str,
        where: dict[str, Any] | None = None,
        order_by: tuple[str, ...] = (),
    ) -> list[dict[str, Any]]:
        t = self._table(table)
        stmt = select(t)
        for column, value in (where or {}).items():
            stmt = stmt.where(self._column(t, column) == value)
        for name in order_by:
            column = self._column(t, name.removeprefix("-"))
            stmt = stmt.order_by(column.desc() if name.startswith("-") else column.asc())
        with self._transaction() as session:
            return [dict(row) for row in session.execute(stmt).mappings()]

    def count(self, table: str, column: str, value: Any) -> int:
        with self._transaction() as session:
            return self._count(session, table, column, value)

    def fetch(self, table: str, key: dict[str, int]) -> dict[str, Any] | None:
        t = self._table(table)
        stmt = select(t).where(self._match(t, key))
        with self._transaction() as session:
            row = session.execute(stmt).mappings().first()
        return dict(row) if row is not None else None

    # -- writes ------------------------------------------------------------

    def insert(
        self,
        table: str,
        values: dict[str, Any],
        returning: str | None = None,
    ) -> int | None:
        t = self._table(table)
        self._check_columns(t, values)
        if returning is not None:
            self._column(t, returning)
        with self._transaction() as session:
            stmt = insert(t).values(**values)
            if returning is None:
                session.execute(stmt)
                return None
            generated = session.execute(stmt.returning(t.c[returning])).scalar_one()
        logger.debug(
            "row_inserted",
            extra={"table": table, "key_column": returning, "key": generated},
        )
        return int(generated)

    def insert_many(self, table: str, rows: list[dict[str, Any]]) -> None:
        if not rows:
            return
        t = self._table(table)
        for values in rows:
            self._check_columns(t, values)
        with self._transaction() as session:
            session.execute(insert(t), rows)

    def update(self, table: str, key: dict[str, int], values: dict[str, Any]) -> bool:
        t = self._table(table)
        self._check_columns(t, values)
        with self._transaction() as session:
            result = session.execute(update(t).where(self._match(t, key)).values(**values))
            return bool(result.rowcount)

    def delete_row(self, table: str, key: dict[str, int]) -> bool:
        t = self._table(table)
        with self._transaction() as session:
            return self._delete(session, t, key, RowRef(t.name, tuple(key.values())))

    # -- plan execution ----------------------------------------------------

    def execute(self, plan: DeletionPlan) -> ExecutionResult:
        """Run every step of ``plan`` in one transaction.

        Returns:
            SUCCEEDED with every step applied (absent rows count as applied),
            or FAILED with nothing persisted.
        """
        if plan.is_empty:
            return ExecutionResult.succeeded([])

        applied: list[RowRef] = []
        current = plan.root
        try:
            with self._transaction() as session:
                for step in plan:
                    current = step.ref
                    self._apply(session, step)
                    applied.append(step.ref)
        except DomainError as exc:
            logger.warning(
                "deletion_plan_rolled_back",
                extra={
                    "root": str(plan.root),
                    "failed_step": str(current),
                    "error_code": exc.error_code,
                    "cause": str(exc),
                },
            )
            return ExecutionResult.failed(current, exc)

        logger.info(
            "deletion_plan_committed",
            extra={"root": str(plan.root), "steps": len(applied)},
        )
        return ExecutionResult.succeeded(applied)

    def _apply(self, session: Session, step: DeletionStep) -> None:
        t = self._table(step.table)
        where = self._match(t, step.key)
        locked = session.execute(
            select(*t.primary_key.columns).where(where).with_for_update()
        ).first()
        if locked is None:
            return
        verify_unreferenced(
            step,
            lambda table, column, value: self._count(session, table, column, value),
        )
        self._delete(session, t, step.key, step.ref)

    def _delete(self, session: Session, t: Table, key: dict[str, int], ref: RowRef) -> bool:
        try:
            result = session.execute(delete(t).where(self._match(t, key)))
        except IntegrityError as exc:
            raise ConcurrentModificationError(
                f"{ref} is still referenced",
                row=str(ref),
                detail=str(exc.orig),
            ) from exc
        return bool(result.rowcount)

    # -- helpers -----------------------------------------------------------

    @contextmanager
    def _transaction(self) -> Iterator[Session]:
        """Session in a transaction; commits on success, rolls back on error."""
        try:
            with self._session_factory() as session, session.begin():
                yield session
        except IntegrityError as exc:
            raise ConflictError("Integrity constraint violated", detail=str(exc.orig)) from exc
        except OperationalError as exc:
            raise TransportError("Database unavailable", detail=str(exc.orig)) from exc
        except SQLAlchemyError as exc:
            raise StoreError("Database error", detail=str(exc)) from exc

    def _count(self, session: Session, table: str, column: str, value: Any) -> int:
        t = self._table(table)
        stmt = select(func.count()).select_from(t).where(self._column(t, column) == value)
        return int(session.execute(stmt).scalar_one())

    def _table(self, name: str) -> Table:
        try:
            return self._metadata.tables[name]
        except KeyError:
            raise StoreError(f"Unknown table '{name}'", table=name) from None

    @staticmethod
    def _column(t: Table, name: str) -> ColumnElement[Any]:
        try:
            return t.c[name]
        except KeyError:
            raise StoreError(f"Unknown column '{t.name}.{name}'", table=t.name) from None

    def _match(self, t: Table, key: dict[str, int]) -> ColumnElement[bool]:
        if not key:
            msg = f"Empty key for table '{t.name}'"
            raise ValidationError("key", msg)
        return and_(*(self._column(t, column) == value for column, value in key.items()))

    @staticmethod
    def _check_columns(t: Table, values: dict[str, Any]) -> None:
        unknown = set(values) - set(t.c.keys())
        if unknown:
            raise ValidationError(
                "values",
                f"Unknown column(s) for '{t.name}': {', '.join(sorted(unknown))}",
            )
