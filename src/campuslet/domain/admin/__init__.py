"""Campuslet admin domain.

Entity schema, guard rule engine, deletion orchestrator, account
provisioning and the admin application service.
"""

from campuslet.domain.admin.admin_app import AdminApplication, AdminResult, AdminStatus
from campuslet.domain.admin.guard import GuardDecision, GuardRuleEngine
from campuslet.domain.admin.infrastructure.account_provisioning import (
    AccountIds,
    AccountProvisioningService,
)
from campuslet.domain.admin.orchestrator import DeletionOrchestrator
from campuslet.domain.admin.schema import ADMIN_SCHEMA, AdminEntity, EntitySchema

__all__ = [
    "ADMIN_SCHEMA",
    "AccountIds",
    "AccountProvisioningService",
    "AdminApplication",
    "AdminEntity",
    "AdminResult",
    "AdminStatus",
    "DeletionOrchestrator",
    "EntitySchema",
    "GuardDecision",
    "GuardRuleEngine",
]
