"""Startup and shutdown hooks for the admin app.

Each hook is an async context manager factory taking the app. Hooks enter in
ascending priority and exit in reverse, so logging (priority 0) is up
before the store is wired and still up when the store is released.
"""

from __future__ import annotations

import logging
from contextlib import AsyncExitStack, asynccontextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable, Sequence
    from contextlib import AbstractAsyncContextManager

    from fastapi import FastAPI

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class LifespanContribution:
    """A lifespan hook and its start priority (lower starts first)."""

    hook: Callable[[FastAPI], AbstractAsyncContextManager[Any]]
    priority: int = 500


def compose_lifespan(
    hooks: Sequence[LifespanContribution],
) -> Callable[[FastAPI], AbstractAsyncContextManager[None]]:
    """Fold the hooks into one lifespan usable as ``FastAPI(lifespan=...)``."""
    ordered = sorted(hooks, key=lambda contribution: contribution.priority)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        async with AsyncExitStack() as stack:
            for contribution in ordered:
                await stack.enter_async_context(contribution.hook(app))
                logger.debug("lifespan_hook_started", extra={"priority": contribution.priority})
            yield
        logger.debug("lifespan_hooks_stopped", extra={"count": len(ordered)})

    return lifespan
