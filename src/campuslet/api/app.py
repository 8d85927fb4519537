"""Campuslet admin API application factory.

Usage::

    uvicorn campuslet.api.app:create_admin_app --factory

The persistence strategy comes from ``ADMIN_ADAPTER``: ``transactional``
wires the SQLAlchemy adapter over ``DATABASE_*`` settings, ``best_effort``
wires the PostgREST adapter over ``REST_STORE_*`` settings. Tests pass a
ready ``AdminApplication`` instead.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

from sqlalchemy import text

from campuslet.api.dependencies import build_admin_application
from campuslet.api.router import router as admin_router
from campuslet.api.settings import AdapterStrategy, get_admin_settings
from campuslet.infra.auth import BcryptPasswordHasher
from campuslet.infra.fastapi import AppSettings, LifespanContribution, create_app
from campuslet.infra.observability import configure_logging
from campuslet.infra.persistence import (
    SqlTransactionalAdapter,
    dispose_engine,
    get_engine,
    get_session_factory,
)
from campuslet.infra.rest import RestBestEffortAdapter, get_rest_store_settings

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable, Mapping

    from fastapi import FastAPI

    from campuslet.domain.admin import AdminApplication

logger = logging.getLogger(__name__)


def create_admin_app(
    settings: AppSettings | None = None,
    *,
    admin: AdminApplication | None = None,
    health_checks: Mapping[str, Callable[[], Any]] | None = None,
) -> FastAPI:
    """Create the admin API.

    Args:
        settings: Application settings. If ``None``, loaded from environment.
        admin: Pre-built admin application. If ``None``, wired from
            environment settings and released on shutdown.
        health_checks: Extra checks for ``/healthz``.

    Returns:
        Configured FastAPI application instance.
    """
    hooks = [LifespanContribution(_logging_lifespan, priority=0)]
    checks: dict[str, Callable[[], Any]] = {}

    if admin is None:
        admin, store_checks, release = _wire_from_environment()
        checks.update(store_checks)
        hooks.append(LifespanContribution(_release_on_shutdown(release), priority=100))

    checks.update(health_checks or {})
    app = create_app(
        settings,
        routers=[admin_router],
        lifespan_hooks=hooks,
        health_checks=checks,
    )
    app.state.admin = admin
    return app


def _wire_from_environment() -> tuple[
    AdminApplication,
    dict[str, Callable[[], Any]],
    Callable[[], None],
]:
    admin_settings = get_admin_settings()
    hasher = BcryptPasswordHasher(rounds=admin_settings.bcrypt_rounds)

    if admin_settings.adapter is AdapterStrategy.BEST_EFFORT:
        rest_settings = get_rest_store_settings()
        if not rest_settings.is_configured():
            msg = (
                "ADMIN_ADAPTER=best_effort requires REST_STORE_BASE_URL "
                "and REST_STORE_API_KEY"
            )
            raise ValueError(msg)
        rest_adapter = RestBestEffortAdapter.from_settings(rest_settings)
        logger.info("admin_store_wired", extra={"adapter": admin_settings.adapter.value})
        return (
            build_admin_application(rest_adapter, hasher),
            {"rest_store": rest_adapter.ping},
            rest_adapter.close,
        )

    sql_adapter = SqlTransactionalAdapter(get_session_factory())
    logger.info("admin_store_wired", extra={"adapter": admin_settings.adapter.value})
    return (
        build_admin_application(sql_adapter, hasher),
        {"database": _ping_database},
        dispose_engine,
    )


def _ping_database() -> None:
    with get_engine().connect() as conn:
        conn.execute(text("SELECT 1"))


@asynccontextmanager
async def _logging_lifespan(app: FastAPI) -> AsyncIterator[None]:
    configure_logging()
    yield


def _release_on_shutdown(
    release: Callable[[], None],
) -> Callable[[FastAPI], Any]:
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        try:
            yield
        finally:
            release()
            logger.info("admin_store_released")

    return lifespan
