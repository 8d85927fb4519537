"""Guard rule engine for RESTRICT foreign keys.

Evaluates, for one row, every RESTRICT edge of the schema that targets the
row's entity by counting the referencing rows through the persistence
adapter. The rule list is the schema; nothing here names a table.

The decision is a snapshot. A referencing row inserted after the check is
caught later, when the adapter re-verifies the step right before deleting.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from campuslet.foundation.domain.exceptions import RestrictionViolationError

if TYPE_CHECKING:
    from campuslet.domain.admin.schema import EntitySchema
    from campuslet.foundation.domain.ports import PersistenceAdapterPort

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class GuardDecision:
    """Allowed, or Blocked with a reason and referencing row counts.

    Attributes:
        allowed: True when no RESTRICT edge has live references.
        reason: Human-readable reason, e.g. ``"2 students enrolled"``.
        references: Referencing row count per referencing entity.
    """

    allowed: bool
    reason: str = ""
    references: dict[str, int] = field(default_factory=dict)

    @classmethod
    def allow(cls) -> GuardDecision:
        return cls(allowed=True)

    @classmethod
    def block(cls, reason: str, references: dict[str, int]) -> GuardDecision:
        return cls(allowed=False, reason=reason, references=references)

    def raise_if_blocked(self, entity: str, key: tuple[int, ...]) -> None:
        """Raise ``RestrictionViolationError`` for a Blocked decision."""
        if not self.allowed:
            raise RestrictionViolationError(
                entity, key, self.reason, references=dict(self.references)
            )


class GuardRuleEngine:
    """Checks RESTRICT edges before a row may be deleted.

    Attributes:
        _schema: Entity schema providing the RESTRICT edges.
        _adapter: Persistence adapter used to count referencing rows.
    """

    def __init__(self, schema: EntitySchema, adapter: PersistenceAdapterPort) -> None:
        self._schema = schema
        self._adapter = adapter

    def check_restriction(self, entity_type: str, entity_id: int) -> GuardDecision:
        """Decide whether ``(entity_type, entity_id)`` may be deleted.

        Entities with no RESTRICT edges are allowed without touching the
        store.

        Args:
            entity_type: Entity name from the schema.
            entity_id: Key of the row to delete.

        Returns:
            ``GuardDecision.allow()`` or a Blocked decision.

        Raises:
            ValidationError: If ``entity_type`` is not in the schema.
            StoreError: If counting fails.
        """
        self._schema.entity(entity_type)
        reasons: list[str] = []
        references: dict[str, int] = {}
        for edge in self._schema.restrictions(entity_type):
            source = self._schema.entity(edge.source)
            count = self._adapter.count(source.table, edge.column, entity_id)
            if count:
                references[edge.source] = references.get(edge.source, 0) + count
                reasons.append(edge.describe(count))

        if not references:
            return GuardDecision.allow()

        reason = "; ".join(reasons)
        logger.info(
            "deletion_blocked",
            extra={
                "entity_type": entity_type,
                "entity_id": entity_id,
                "reason": reason,
            },
        )
        return GuardDecision.block(reason, references)
