"""Campuslet Infra FastAPI -- error handlers, middleware, lifespan, app factory."""

from campuslet.infra.fastapi.app_factory import create_app
from campuslet.infra.fastapi.error_handlers import (
    ProblemDetail,
    register_exception_handlers,
)
from campuslet.infra.fastapi.lifespan import LifespanContribution, compose_lifespan
from campuslet.infra.fastapi.middleware.request_id import (
    RequestIdMiddleware,
    get_request_id,
)
from campuslet.infra.fastapi.settings import AppSettings, CORSSettings

__all__ = [
    "AppSettings",
    "CORSSettings",
    "LifespanContribution",
    "ProblemDetail",
    "RequestIdMiddleware",
    "compose_lifespan",
    "create_app",
    "get_request_id",
    "register_exception_handlers",
]
