"""Campuslet Infra Persistence -- engine management, tables, transactional adapter."""

from campuslet.infra.persistence.database import (
    DatabaseManager,
    DatabaseSettings,
    dispose_engine,
    get_database_manager,
    get_engine,
    get_session_factory,
)
from campuslet.infra.persistence.tables import metadata
from campuslet.infra.persistence.transactional_adapter import SqlTransactionalAdapter

__all__ = [
    "DatabaseManager",
    "DatabaseSettings",
    "SqlTransactionalAdapter",
    "dispose_engine",
    "get_database_manager",
    "get_engine",
    "get_session_factory",
    "metadata",
]
