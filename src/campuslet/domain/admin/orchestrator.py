"""Deletion orchestrator: builds leaf-first deletion plans.

Given a root row, walks the schema's CASCADE edges in the dependents
direction (rows that reference the row, recursively) and the owning edges
towards account rows, consulting the guard for RESTRICT edges on every row
it collects. The collected rows are sorted so that a row is deleted only
after every row that references it.

The orchestrator only reads. Executing the plan is the persistence
adapter's job, so planning can be tested against an in-memory fake.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from campuslet.foundation.domain.referential import (
    DeletionPlan,
    DeletionStep,
    ReferenceCheck,
    ReferencePolicy,
    RowRef,
)

if TYPE_CHECKING:
    from campuslet.domain.admin.guard import GuardRuleEngine
    from campuslet.domain.admin.schema import EntitySchema
    from campuslet.foundation.domain.ports import PersistenceAdapterPort

logger = logging.getLogger(__name__)


class DeletionOrchestrator:
    """Computes ordered deletion plans from the entity schema.

    Attributes:
        _schema: Entity schema (entities and FK edges).
        _adapter: Persistence adapter, used for reads only.
        _guard: Guard rule engine for RESTRICT edges.
    """

    def __init__(
        self,
        schema: EntitySchema,
        adapter: PersistenceAdapterPort,
        guard: GuardRuleEngine,
    ) -> None:
        self._schema = schema
        self._adapter = adapter
        self._guard = guard

    def plan_deletion(self, entity_type: str, entity_id: int) -> DeletionPlan:
        """Plan the deletion of ``(entity_type, entity_id)`` and its dependents.

        Flow:
        1. Absent root: return an empty plan (deleting nothing succeeds).
        2. Depth-first collection of dependents over CASCADE edges, plus
           owned account rows; the guard runs for every collected row.
        3. Leaf-first topological sort, ties ordered by entity name then key.

        Args:
            entity_type: Root entity name.
            entity_id: Root key.

        Returns:
            The ordered plan. Every step carries the reference checks the
            adapter re-verifies immediately before deleting the row.

        Raises:
            RestrictionViolationError: A RESTRICT edge of a collected row has
                live references. Nothing has been modified.
            ValidationError: Unknown entity type.
            StoreError: A read failed.
        """
        root = RowRef.of(entity_type, entity_id)
        root_entity = self._schema.entity(entity_type)
        root_row = self._adapter.fetch(root_entity.table, root_entity.key_values(root.key))
        if root_row is None:
            logger.debug(
                "deletion_plan_root_absent",
                extra={"entity_type": entity_type, "entity_id": entity_id},
            )
            return DeletionPlan(root)

        blockers = self._collect(root, root_row)
        ordered = _leaf_first(blockers)
        plan = DeletionPlan(root, tuple(self._step(ref) for ref in ordered))

        logger.info(
            "deletion_planned",
            extra={
                "entity_type": entity_type,
                "entity_id": entity_id,
                "steps": len(plan),
            },
        )
        return plan

    def _collect(self, root: RowRef, root_row: dict[str, Any]) -> dict[RowRef, set[RowRef]]:
        """Collect the rows to delete, mapped to the rows that must go first."""
        blockers: dict[RowRef, set[RowRef]] = {root: set()}
        rows: dict[RowRef, dict[str, Any]] = {root: root_row}
        stack = [root]

        while stack:
            ref = stack.pop()
            entity = self._schema.entity(ref.entity)

            if entity.has_simple_key:
                self._guard.check_restriction(ref.entity, ref.id).raise_if_blocked(
                    ref.entity, ref.key
                )
                for edge in self._schema.incoming(ref.entity, ReferencePolicy.CASCADE):
                    source = self._schema.entity(edge.source)
                    for key in self._adapter.find_keys(
                        source.table, edge.column, ref.id, source.primary_key
                    ):
                        dependent = RowRef(edge.source, tuple(key))
                        blockers[ref].add(dependent)
                        if dependent not in blockers:
                            blockers[dependent] = set()
                            stack.append(dependent)

            owning = self._schema.owned_targets(ref.entity)
            if not owning:
                continue
            row = rows.get(ref)
            if row is None:
                row = self._adapter.fetch(entity.table, entity.key_values(ref.key))
            if row is None:
                continue
            for edge in owning:
                value = row.get(edge.column)
                if value is None:
                    continue
                owner = RowRef.of(edge.target, value)
                if owner not in blockers:
                    blockers[owner] = set()
                    stack.append(owner)
                blockers[owner].add(ref)

        return blockers

    def _step(self, ref: RowRef) -> DeletionStep:
        entity = self._schema.entity(ref.entity)
        checks: list[ReferenceCheck] = []
        if entity.has_simple_key:
            for edge in self._schema.incoming(ref.entity):
                source = self._schema.entity(edge.source)
                checks.append(
                    ReferenceCheck(
                        table=source.table,
                        column=edge.column,
                        value=ref.id,
                        policy=edge.policy,
                        source=edge.source,
                        label=edge.label,
                    )
                )
        return DeletionStep(
            ref=ref,
            table=entity.table,
            key=entity.key_values(ref.key),
            checks=tuple(checks),
        )


def _leaf_first(blockers: dict[RowRef, set[RowRef]]) -> list[RowRef]:
    """Topologically sort rows so each comes after everything blocking it.

    Raises:
        ValueError: If the blockers form a cycle.
    """
    pending = {ref: set(deps) for ref, deps in blockers.items()}
    ordered: list[RowRef] = []
    while pending:
        ready = sorted(ref for ref, deps in pending.items() if not deps)
        if not ready:
            msg = f"Cyclic cascade between {sorted(str(ref) for ref in pending)}"
            raise ValueError(msg)
        done = set(ready)
        for ref in ready:
            del pending[ref]
        for deps in pending.values():
            deps -= done
        ordered.extend(ready)
    return ordered
