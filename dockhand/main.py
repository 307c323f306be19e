"""
Application entry point.

Creates the FastAPI application and wires together:
- The failure router (one per application)
- Error handlers (every failure answers with an envelope)
- The event hub, scheduler and stream session manager
- Routers
- Logging configuration

No business logic belongs here.
"""

from contextlib import asynccontextmanager

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI

from dockhand.core.config import settings
from dockhand.interfaces.health import router as health_router
from dockhand.interfaces.realtime import router as realtime_router
from dockhand.interfaces.system.router import router as system_router
from dockhand.realtime.events import EventHub
from dockhand.realtime.session import StreamSessionManager
from dockhand.shared.errors.handlers import register_error_handlers
from dockhand.shared.errors.router import FailureRouter
from dockhand.shared.logging import configure_logging


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the scheduler and session manager; close every session on exit."""
    scheduler = AsyncIOScheduler(job_defaults={"coalesce": True, "max_instances": 1})
    scheduler.start()
    manager = StreamSessionManager(
        router=app.state.failure_router,
        scheduler=scheduler,
        hostname=settings.hostname,
        queue_size=settings.stream_queue_size,
    )
    app.state.session_manager = manager

    try:
        yield
    finally:
        await manager.shutdown()
        scheduler.shutdown(wait=False)
        app.state.session_manager = None


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    This is the composition root of the application.

    Returns:
        A fully configured FastAPI application instance.
    """
    configure_logging(level=settings.log_level)

    app = FastAPI(
        title=settings.project_name,
        version=settings.version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    app.state.failure_router = FailureRouter()
    app.state.event_hub = EventHub()
    app.state.session_manager = None

    # --- Error Handlers ---
    register_error_handlers(app)

    # --- Routers ---
    app.include_router(health_router, prefix="/api/v1")
    app.include_router(system_router, prefix="/api/v1")
    app.include_router(realtime_router, prefix="/api/v1")

    return app


app = create_app()
