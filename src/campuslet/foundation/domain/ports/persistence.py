"""Port interface for the persistence adapter.

The admin core reads and writes rows only through this protocol. Two
implementations exist: a transactional SQL adapter (all-or-nothing plan
execution) and a best-effort REST adapter (sequential calls, no atomicity).
Both receive resolved table/column names; neither consults the schema.

Example:
    >>> from campuslet.foundation.domain.ports import PersistenceAdapterPort
    >>> def count_students(store: PersistenceAdapterPort, university_id: int) -> int:
    ...     return store.count("students", "university_id", university_id)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from campuslet.foundation.domain.referential import DeletionPlan, ExecutionResult


@runtime_checkable
class PersistenceAdapterPort(Protocol):
    """Port for row-level access to the relational store.

    Every call is blocking I/O with a bounded timeout. Store failures surface
    as ``StoreError``/``TransportError``; foreign-key or uniqueness rejections
    as ``ConflictError`` subclasses.
    """

    def find_keys(
        self,
        table: str,
        column: str,
        value: Any,
        key_columns: tuple[str, ...],
    ) -> list[tuple[int, ...]]:
        """Return the keys of all rows of ``table`` where ``column == value``.

        Args:
            table: Table to search.
            column: Referencing column to filter on.
            value: Value to match (a referenced key, or e.g. an email).
            key_columns: Key columns to return, in key order.

        Returns:
            Key tuples ordered by key.
        """
        ...

    def select_rows(
        self,
        table: str,
        where: dict[str, Any] | None = None,
        order_by: tuple[str, ...] = (),
    ) -> list[dict[str, Any]]:
        """Return every row of ``table`` matching all ``where`` equalities.

        Args:
            table: Table to read.
            where: Column equalities; all rows when omitted.
            order_by: Columns to sort by; a leading ``-`` sorts descending.

        Returns:
            Complete rows as dicts. Never truncated by a server page size.
        """
        ...

    def count(self, table: str, column: str, value: Any) -> int:
        """Count rows of ``table`` where ``column == value``."""
        ...

    def fetch(self, table: str, key: dict[str, int]) -> dict[str, Any] | None:
        """Fetch a single row by key, or None when absent."""
        ...

    def insert(
        self,
        table: str,
        values: dict[str, Any],
        returning: str | None = None,
    ) -> int | None:
        """Insert a row.

        Args:
            table: Target table.
            values: Column values.
            returning: Generated key column to return, if any.

        Returns:
            The generated key when ``returning`` is given, else None.
        """
        ...

    def insert_many(self, table: str, rows: list[dict[str, Any]]) -> None:
        """Insert several rows (atomically where the store supports it)."""
        ...

    def update(self, table: str, key: dict[str, int], values: dict[str, Any]) -> bool:
        """Update one row by key. Returns False if the row is absent."""
        ...

    def delete_row(self, table: str, key: dict[str, int]) -> bool:
        """Delete one row by key. Returns False if it was already absent."""
        ...

    def execute(self, plan: DeletionPlan) -> ExecutionResult:
        """Execute a leaf-first deletion plan.

        Never raises for a step failure; the failure is reported in the
        returned ``ExecutionResult``.
        """
        ...
