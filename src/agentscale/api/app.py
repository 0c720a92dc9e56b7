# src/agentscale/api/app.py
from contextlib import asynccontextmanager
from fastapi import FastAPI

from agentscale.config.settings import get_settings
from agentscale.api.middleware.request_id import RequestIDMiddleware
from agentscale.api.middleware.errors import register_error_handlers
from agentscale.api.routes import health
from agentscale.api.v1.router import router as v1_router
from agentscale.infrastructure.observability.logging import configure_logging, get_logger
from agentscale.infrastructure.observability.error_tracking import (
    init_sentry,
    flush as flush_sentry,
)
from agentscale.orchestration.runtime import build_orchestrator, set_orchestrator

logger = get_logger(__name__)

API_DESCRIPTION = """
# AgentScale Execution API

Runs autonomous browser agents: each run observes a live browser viewport,
asks a decision model for one next action, executes it, and re-observes
until the goal is complete or the iteration budget is spent.

## Features

- **Priority scheduling**: `critical > high > normal > low`, FIFO within a tier
- **Per-organization quotas**: runs over quota fail before a browser is opened
- **Real-time events**: Server-Sent Events and WebSocket feeds of actions,
  observations and status changes
- **Execution control**: stop and pause running executions
"""

OPENAPI_TAGS = [
    {"name": "Health", "description": "Liveness, readiness and metrics."},
    {"name": "Executions", "description": "Queue agent runs, inspect them, and stop or pause them."},
    {"name": "Queue", "description": "Scheduler queue status."},
    {"name": "Usage", "description": "Per-organization daily usage and quota."},
    {"name": "Events", "description": "Real-time execution event streams."},
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the orchestrator on startup; stop it and flush Sentry on shutdown."""
    settings = get_settings()
    configure_logging(settings)
    init_sentry(
        dsn=settings.sentry_dsn,
        environment=settings.sentry_environment or settings.environment,
        release=settings.app_version,
        sample_rate=settings.sentry_sample_rate,
        traces_sample_rate=settings.sentry_traces_sample_rate,
    )

    orchestrator = build_orchestrator(settings)
    set_orchestrator(orchestrator)
    await orchestrator.start()
    logger.info("service_started", app_name=settings.app_name, environment=settings.environment)

    try:
        yield
    finally:
        await orchestrator.stop()
        set_orchestrator(None)
        flush_sentry(timeout=5.0)
        logger.info("service_stopped")


def create_app() -> FastAPI:
    """Application factory."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description=API_DESCRIPTION,
        docs_url="/docs" if settings.debug else None,
        lifespan=lifespan,
        openapi_tags=OPENAPI_TAGS,
    )

    app.add_middleware(RequestIDMiddleware)
    register_error_handlers(app)

    # Probes stay unversioned at the root
    app.include_router(health.router, tags=["Health"])
    app.include_router(v1_router, prefix="/api/v1")

    return app


app = create_app()
