"""Correlation ids for admin requests.

Every request runs under one id. A caller-supplied ``X-Request-ID`` is kept
when it is a UUID; anything else is replaced by a fresh UUID4. The id is
readable through :func:`get_request_id`, bound into the structlog context
for log lines, echoed on the response and quoted as ``correlation_id`` in
5xx problem responses.
"""

from __future__ import annotations

import uuid
from contextvars import ContextVar
from typing import TYPE_CHECKING

import structlog
from starlette.datastructures import Headers, MutableHeaders

if TYPE_CHECKING:
    from starlette.types import ASGIApp, Message, Receive, Scope, Send

REQUEST_ID_HEADER = "X-Request-ID"

_current_request_id: ContextVar[str] = ContextVar("campuslet_request_id", default="")


def get_request_id() -> str:
    """Return the id of the request being served, or ``""`` outside one."""
    return _current_request_id.get()


def _accept_or_generate(candidate: str | None) -> str:
    if candidate:
        try:
            return str(uuid.UUID(candidate))
        except ValueError:
            pass
    return str(uuid.uuid4())


class RequestIdMiddleware:
    """Pure ASGI middleware assigning and propagating the request id.

    Example:
        >>> from fastapi import FastAPI
        >>> app = FastAPI()
        >>> app.add_middleware(RequestIdMiddleware)
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request_id = _accept_or_generate(Headers(scope=scope).get(REQUEST_ID_HEADER))

        async def send_with_id(message: Message) -> None:
            if message["type"] == "http.response.start":
                MutableHeaders(scope=message)[REQUEST_ID_HEADER] = request_id
            await send(message)

        token = _current_request_id.set(request_id)
        with structlog.contextvars.bound_contextvars(request_id=request_id):
            try:
                await self.app(scope, receive, send_with_id)
            finally:
                _current_request_id.reset(token)
