"""``GET /healthz`` over the store the app was wired with.

``app.state.health_checks`` maps a subsystem name to a blocking check that
raises when the subsystem is unreachable (``SELECT 1`` for the database, a
one-row read for the REST store).
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

if TYPE_CHECKING:
    from collections.abc import Callable

router = APIRouter(tags=["health"])
logger = logging.getLogger(__name__)


async def _run_check(name: str, check: Callable[[], Any]) -> dict[str, str]:
    try:
        await run_in_threadpool(check)
    except Exception as exc:
        logger.warning("health_check_failed", extra={"check": name, "error": str(exc)})
        return {"status": "error", "detail": str(exc)}
    return {"status": "ok"}


@router.get("/healthz")
async def healthz(request: Request) -> JSONResponse:
    """Report each check; 503 with ``status="degraded"`` if any failed."""
    registered: dict[str, Callable[[], Any]] = getattr(request.app.state, "health_checks", {})
    checks = {name: await _run_check(name, check) for name, check in registered.items()}
    healthy = all(result["status"] == "ok" for result in checks.values())
    return JSONResponse(
        status_code=200 if healthy else 503,
        content={"status": "ok" if healthy else "degraded", "checks": checks},
    )
