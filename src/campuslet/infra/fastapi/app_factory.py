"""FastAPI application factory.

Provides :func:`create_app` which wires routers, middleware, error handlers,
lifespan hooks and the health endpoint into one application.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from fastapi import FastAPI
from starlette.middleware.cors import CORSMiddleware

from campuslet.infra.fastapi._health import router as health_router
from campuslet.infra.fastapi.error_handlers import register_exception_handlers
from campuslet.infra.fastapi.lifespan import LifespanContribution, compose_lifespan
from campuslet.infra.fastapi.middleware.request_id import RequestIdMiddleware
from campuslet.infra.fastapi.settings import AppSettings

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from fastapi import APIRouter

logger = logging.getLogger(__name__)


def create_app(
    settings: AppSettings | None = None,
    *,
    routers: list[APIRouter] | None = None,
    lifespan_hooks: list[LifespanContribution] | None = None,
    health_checks: Mapping[str, Callable[[], Any]] | None = None,
) -> FastAPI:
    """Create a FastAPI application with the standard campuslet wiring.

    Args:
        settings: Application settings. If ``None``, loaded from environment.
        routers: Routers to include.
        lifespan_hooks: Startup/shutdown hooks, composed by priority.
        health_checks: Named blocking checks reported by ``/healthz``.

    Returns:
        Configured FastAPI application instance.
    """
    settings = settings or AppSettings()

    app = FastAPI(
        title=settings.title,
        version=settings.version,
        description=settings.description,
        docs_url=settings.docs_url,
        redoc_url=settings.redoc_url,
        openapi_url=settings.openapi_url,
        debug=settings.debug,
        lifespan=compose_lifespan(list(lifespan_hooks or [])),
    )
    app.state.health_checks = dict(health_checks or {})

    # Starlette runs the last added middleware first
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors.allow_origins,
        allow_credentials=settings.cors.allow_credentials,
        allow_methods=settings.cors.allow_methods,
        allow_headers=settings.cors.allow_headers,
        expose_headers=settings.cors.expose_headers,
        max_age=settings.cors.max_age,
    )
    app.add_middleware(RequestIdMiddleware)

    register_exception_handlers(app)

    app.include_router(health_router)
    for router in routers or []:
        app.include_router(router)
        logger.info("Included router: %r", router.prefix or router)

    return app
