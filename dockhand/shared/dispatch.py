"""
Request dispatch adapter.

Wraps a request handler so that every failure raised while serving the
request, synchronously, after an await, or on the post-response
completion path, reaches the failure router at most once, and every
request ends with exactly one terminal write.

Per-request state machine::

    PENDING ──▶ SUCCEEDED ──▶ COMPLETED
       │                         ▲
       └──────▶ FAILED ──────────┘

COMPLETED is terminal. Any later transition is logged and ignored.
"""

import asyncio
import functools
import logging
from enum import Enum
from typing import Any, Awaitable, Callable

from fastapi import Request
from fastapi.routing import APIRoute
from starlette.concurrency import run_in_threadpool
from starlette.responses import Response

from dockhand.shared.errors.handlers import get_failure_router, translate_exception
from dockhand.shared.errors.router import FailureRouter, HttpDelivery

logger = logging.getLogger(__name__)

RequestHandler = Callable[[Request], Awaitable[Response]]
RouterLookup = Callable[[Request], FailureRouter]


class DispatchState(Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    COMPLETED = "completed"


class DispatchContext:
    """Guards the single terminal write of one request.

    Args:
        label: Request label used in logs, e.g. ``"GET /api/v1/health"``.
        router: Failure router used when the request fails.
    """

    def __init__(self, label: str, router: FailureRouter) -> None:
        self.label = label
        self._router = router
        self.state = DispatchState.PENDING
        self.response: Response | None = None
        self.transitions: list[DispatchState] = [DispatchState.PENDING]

    @property
    def is_completed(self) -> bool:
        return self.state is DispatchState.COMPLETED

    def _move(self, state: DispatchState) -> None:
        self.state = state
        self.transitions.append(state)

    def succeed(self, response: Response) -> bool:
        """Record the handler's own response as the terminal write."""
        if self.state is not DispatchState.PENDING:
            logger.warning(
                "Ignoring success for %s in state %s", self.label, self.state.value
            )
            return False
        self._move(DispatchState.SUCCEEDED)
        self.response = response
        self._move(DispatchState.COMPLETED)
        return True

    def fail(self, failure: object) -> Response | None:
        """Route a failure, unless the request already has its write.

        Returns:
            The failure response, or None when the failure was suppressed.
        """
        if self.state is not DispatchState.PENDING:
            logger.error(
                "Suppressed failure for %s after %s: %s",
                self.label,
                self.state.value,
                type(failure).__name__,
                exc_info=failure if isinstance(failure, BaseException) else None,
            )
            return None
        self._move(DispatchState.FAILED)
        self.response = self._router.handle(
            translate_exception(failure)
            if isinstance(failure, BaseException)
            else failure,
            HttpDelivery(),
            context=self.label,
        )
        self._move(DispatchState.COMPLETED)
        return self.response


class _CompletionGuard:
    """Runs a response's background work after the write has happened.

    Failures there can no longer change the response; they are handed to
    the completed dispatch context, which logs and drops them.
    """

    def __init__(
        self, background: Callable[[], Awaitable[Any]], context: DispatchContext
    ) -> None:
        self._background = background
        self._context = context

    async def __call__(self) -> None:
        try:
            await self._background()
        except Exception as exc:
            self._context.fail(exc)


def _default_router_lookup(request: Request) -> FailureRouter:
    return get_failure_router(request.app)


def adapt(
    handler: Callable[[Request], Any],
    router_lookup: RouterLookup = _default_router_lookup,
) -> RequestHandler:
    """Wrap a request handler with exactly-once failure routing.

    Args:
        handler: Coroutine function or plain function taking the request
            and returning a response. Plain functions run in the
            threadpool.
        router_lookup: Returns the failure router for a request. Defaults
            to ``request.app.state.failure_router``.

    Returns:
        An async handler that always returns exactly one response.
    """
    is_async = asyncio.iscoroutinefunction(handler)

    @functools.wraps(handler)
    async def wrapped(request: Request) -> Response:
        context = DispatchContext(
            f"{request.method} {request.url.path}", router_lookup(request)
        )
        try:
            if is_async:
                response = await handler(request)
            else:
                response = await run_in_threadpool(handler, request)
        except Exception as exc:
            return context.fail(exc)

        if response.background is not None:
            response.background = _CompletionGuard(response.background, context)
        context.succeed(response)
        return response

    return wrapped


class EnvelopeRoute(APIRoute):
    """API route whose handler is wrapped by ``adapt``.

    Use as ``APIRouter(route_class=EnvelopeRoute)``. Dependency resolution,
    validation, the endpoint body and response serialization all run
    inside the adapted handler.
    """

    def get_route_handler(self) -> RequestHandler:
        return adapt(super().get_route_handler())
