"""
Centralized error handlers for FastAPI.

Failures raised outside an adapted route (unknown path, method not
allowed, middleware errors) are routed through the same failure router
as everything else, so the client always receives an envelope.
No stack traces or internal details are exposed to clients.
"""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from dockhand.shared.errors.router import FailureRouter, HttpDelivery
from dockhand.shared.errors.taxonomy import (
    ClassifiedFailure,
    ServiceError,
    StatusClassifier,
)

VALIDATION_FAILURE_MESSAGE = "Request validation failed"


def translate_exception(exc: BaseException) -> object:
    """Classify framework exceptions before they reach the router.

    Other exceptions are returned as-is for the router to normalize.
    """
    if isinstance(exc, RequestValidationError):
        return ClassifiedFailure(
            StatusClassifier.BAD_REQUEST, VALIDATION_FAILURE_MESSAGE
        )
    if isinstance(exc, StarletteHTTPException):
        classifier = StatusClassifier.from_http_status(exc.status_code)
        message = str(exc.detail) if exc.detail else classifier.name
        return ClassifiedFailure(classifier, message)
    return exc


def get_failure_router(app: FastAPI) -> FailureRouter:
    """Return the application's failure router."""
    return app.state.failure_router


def register_error_handlers(app: FastAPI) -> None:
    """Register failure-routing exception handlers on the application.

    Args:
        app: The FastAPI application instance. Its ``state.failure_router``
            must be set before the first request.
    """

    def _route(request: Request, exc: BaseException) -> JSONResponse:
        return get_failure_router(request.app).handle(
            translate_exception(exc), HttpDelivery(), context=request.url.path
        )

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        """Framework HTTP errors such as 404 for unknown paths."""
        return _route(request, exc)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Validation errors on routes that are not adapted."""
        return _route(request, exc)

    @app.exception_handler(ServiceError)
    async def handle_service_error(
        request: Request, exc: ServiceError
    ) -> JSONResponse:
        """Classified failures raised outside an adapted route."""
        return _route(request, exc)

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all for unexpected errors. Never exposes internals."""
        return _route(request, exc)
