"""Wiring of the admin application and its FastAPI dependency.

The application object is built once per process by :func:`build_admin_application`
and stored on ``app.state.admin``; routes receive it through
:func:`get_admin_application`.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Annotated

from fastapi import Depends, Request

from campuslet.domain.admin import (
    ADMIN_SCHEMA,
    AccountProvisioningService,
    AdminApplication,
    DeletionOrchestrator,
    GuardRuleEngine,
)

if TYPE_CHECKING:
    from campuslet.domain.admin.schema import EntitySchema
    from campuslet.foundation.domain.ports import PasswordHasherPort, PersistenceAdapterPort


def build_admin_application(
    adapter: PersistenceAdapterPort,
    hasher: PasswordHasherPort,
    schema: EntitySchema = ADMIN_SCHEMA,
) -> AdminApplication:
    """Assemble guard, orchestrator and provisioning around one adapter."""
    guard = GuardRuleEngine(schema, adapter)
    orchestrator = DeletionOrchestrator(schema, adapter, guard)
    provisioning = AccountProvisioningService(adapter, hasher, orchestrator)
    return AdminApplication(adapter, orchestrator, provisioning)


def get_admin_application(request: Request) -> AdminApplication:
    """FastAPI dependency returning the application stored on ``app.state``."""
    admin: AdminApplication | None = getattr(request.app.state, "admin", None)
    if admin is None:
        msg = "Admin application is not configured on app.state.admin"
        raise RuntimeError(msg)
    return admin


AdminDep = Annotated[AdminApplication, Depends(get_admin_application)]
