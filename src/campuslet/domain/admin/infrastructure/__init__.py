"""Admin domain infrastructure services."""

from campuslet.domain.admin.infrastructure.account_provisioning import (
    PROFILE_FIELDS,
    AccountIds,
    AccountProvisioningService,
)

__all__ = ["PROFILE_FIELDS", "AccountIds", "AccountProvisioningService"]
