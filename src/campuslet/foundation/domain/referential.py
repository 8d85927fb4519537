"""Referential-integrity primitives shared by the schema, planner and adapters.

Immutable value types describing entity tables, foreign-key edges, row
references, ordered deletion plans and plan execution results. Nothing here
talks to a store; adapters receive fully-resolved table and column names so
they never need to consult the schema themselves.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

from campuslet.foundation.domain.exceptions import (
    ConcurrentModificationError,
    RestrictionViolationError,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from campuslet.foundation.domain.exceptions import DomainError


class ReferencePolicy(StrEnum):
    """What deleting a referenced row does to the rows that reference it."""

    CASCADE = "cascade"
    RESTRICT = "restrict"


@dataclass(frozen=True, slots=True)
class EntityType:
    """An entity and the table that stores it.

    Attributes:
        name: Entity name used in plans and logs (e.g. ``"PropertyImage"``).
        table: Table name in the backing store.
        primary_key: Key column names, in key order.
    """

    name: str
    table: str
    primary_key: tuple[str, ...]

    def __post_init__(self) -> None:
        if not self.primary_key:
            msg = f"Entity {self.name} must declare at least one key column"
            raise ValueError(msg)

    @property
    def has_simple_key(self) -> bool:
        return len(self.primary_key) == 1

    def key_values(self, key: tuple[int, ...]) -> dict[str, int]:
        """Map a key tuple to ``{column: value}`` for this entity."""
        if len(key) != len(self.primary_key):
            msg = f"{self.name} key {key!r} does not match columns {self.primary_key!r}"
            raise ValueError(msg)
        return dict(zip(self.primary_key, key, strict=True))


@dataclass(frozen=True, slots=True)
class ForeignKeyEdge:
    """A foreign key from ``source.column`` to the key of ``target``.

    Attributes:
        source: Referencing entity name.
        column: Referencing column on the source table.
        target: Referenced entity name (must have a single-column key).
        policy: CASCADE or RESTRICT.
        owns_target: Deleting a source row also deletes the target row it
            points at. Used for 1:1 profile rows that own their account row.
        label: Plural phrase for guard messages, e.g. ``"students enrolled"``.
    """

    source: str
    column: str
    target: str
    policy: ReferencePolicy
    owns_target: bool = False
    label: str = ""

    def describe(self, count: int) -> str:
        if self.label:
            return f"{count} {self.label}"
        return f"{count} {self.source} row(s) reference it via {self.column}"


@dataclass(frozen=True, order=True, slots=True)
class RowRef:
    """Reference to a single row: entity name plus key tuple."""

    entity: str
    key: tuple[int, ...]

    @classmethod
    def of(cls, entity: str, *key: int) -> RowRef:
        return cls(entity, tuple(int(part) for part in key))

    @property
    def id(self) -> int:
        """The key of a single-column-key row."""
        if len(self.key) != 1:
            msg = f"{self} has a composite key"
            raise ValueError(msg)
        return self.key[0]

    def __str__(self) -> str:
        return f"{self.entity}({', '.join(str(part) for part in self.key)})"


@dataclass(frozen=True, slots=True)
class ReferenceCheck:
    """A count that must be zero right before a row is deleted.

    Resolved from an incoming edge of the row being deleted: "no row of
    ``table`` may still have ``column == value``".
    """

    table: str
    column: str
    value: int
    policy: ReferencePolicy
    source: str
    label: str = ""


@dataclass(frozen=True, slots=True)
class DeletionStep:
    """Delete one row, after verifying nothing references it any more.

    Attributes:
        ref: Row being deleted.
        table: Table of the row.
        key: ``{column: value}`` identifying the row.
        checks: Reference checks to re-verify immediately before the delete.
    """

    ref: RowRef
    table: str
    key: dict[str, int]
    checks: tuple[ReferenceCheck, ...] = ()


@dataclass(frozen=True, slots=True)
class DeletionPlan:
    """Leaf-first ordered list of delete steps rooted at one row.

    An empty plan means the root did not exist; executing it succeeds.
    """

    root: RowRef
    steps: tuple[DeletionStep, ...] = ()

    def __iter__(self) -> Iterator[DeletionStep]:
        return iter(self.steps)

    def __len__(self) -> int:
        return len(self.steps)

    @property
    def refs(self) -> list[RowRef]:
        return [step.ref for step in self.steps]

    @property
    def is_empty(self) -> bool:
        return not self.steps


class ExecutionStatus(StrEnum):
    """Outcome of executing a deletion plan.

    SUCCEEDED: every step applied (absent rows count as applied).
    FAILED: nothing was persisted; the store is as it was before the call.
    PARTIAL_FAILURE: a prefix of the steps was persisted; needs repair or retry.
    """

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    PARTIAL_FAILURE = "partial_failure"


@dataclass(frozen=True, slots=True)
class ExecutionResult:
    """Result of ``PersistenceAdapterPort.execute``.

    Attributes:
        status: See ``ExecutionStatus``.
        completed: Rows whose delete step was persisted, in plan order.
        failed_step: Row whose step failed, if any.
        cause: Error raised by the failed step, if any.
    """

    status: ExecutionStatus
    completed: tuple[RowRef, ...] = ()
    failed_step: RowRef | None = None
    cause: DomainError | None = None

    @property
    def success(self) -> bool:
        return self.status is ExecutionStatus.SUCCEEDED

    @classmethod
    def succeeded(cls, completed: list[RowRef]) -> ExecutionResult:
        return cls(ExecutionStatus.SUCCEEDED, tuple(completed))

    @classmethod
    def failed(
        cls,
        failed_step: RowRef,
        cause: DomainError,
        completed: list[RowRef] | None = None,
    ) -> ExecutionResult:
        """Build a failure result; a non-empty ``completed`` makes it partial."""
        if completed:
            return cls(ExecutionStatus.PARTIAL_FAILURE, tuple(completed), failed_step, cause)
        return cls(ExecutionStatus.FAILED, (), failed_step, cause)


def verify_unreferenced(
    step: DeletionStep,
    count: Callable[[str, str, int], int],
) -> None:
    """Re-check that nothing references ``step.ref`` before deleting it.

    Args:
        step: Step about to be executed.
        count: ``count(table, column, value)`` against the live store.

    Raises:
        RestrictionViolationError: A RESTRICT reference appeared since planning.
        ConcurrentModificationError: A CASCADE dependent appeared since planning.
    """
    for check in step.checks:
        remaining = count(check.table, check.column, check.value)
        if not remaining:
            continue
        if check.policy is ReferencePolicy.RESTRICT:
            reason = f"{remaining} {check.label}" if check.label else f"{remaining} {check.source}"
            raise RestrictionViolationError(
                step.ref.entity,
                step.ref.key,
                reason,
                references={check.source: remaining},
            )
        raise ConcurrentModificationError(
            f"{remaining} {check.source} row(s) started referencing {step.ref} after planning",
            row=str(step.ref),
            source=check.source,
            column=check.column,
        )
