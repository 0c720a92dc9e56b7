"""Health probes, detailed diagnostics and the Prometheus scrape endpoint."""
import logging
import time
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

import psutil
from fastapi import APIRouter, Response, status
from fastapi.responses import PlainTextResponse
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from pydantic import BaseModel, Field

from agentscale.api.dependencies import AppSettings, CurrentOrchestrator
from agentscale.orchestration.runtime import Orchestrator

logger = logging.getLogger(__name__)

_startup_time = time.time()

# Memory thresholds for the system_resources component
MEMORY_DEGRADED_PERCENT = 80
MEMORY_UNHEALTHY_PERCENT = 90

router = APIRouter()


def _now() -> datetime:
    return datetime.now(timezone.utc)


# ===== Schemas =====


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


class ComponentHealth(BaseModel):
    """Health of one orchestrator component."""
    name: str = Field(..., description="Component name")
    status: HealthStatus = Field(..., description="Component health status")
    details: Optional[Dict] = Field(None, description="Component figures")
    error: Optional[str] = Field(None, description="Why the component is not healthy")


class HealthResponse(BaseModel):
    status: HealthStatus = Field(..., description="Worst component status")
    timestamp: datetime = Field(default_factory=_now)
    uptime_seconds: float = Field(..., description="Seconds since the process started")
    version: str = Field(..., description="Application version")
    components: List[ComponentHealth] = Field(default_factory=list)


class LivenessResponse(BaseModel):
    status: str = Field("alive")
    timestamp: datetime = Field(default_factory=_now)


class ReadinessResponse(BaseModel):
    status: str = Field(..., description="ready or not_ready")
    timestamp: datetime = Field(default_factory=_now)
    components: List[ComponentHealth] = Field(default_factory=list)


# ===== Component Checks =====


def check_scheduler(orchestrator: Orchestrator) -> ComponentHealth:
    """Queued work only makes progress while the scheduling loop is alive."""
    scheduler = orchestrator.scheduler
    details = {**scheduler.queue_status(), "max_concurrency": scheduler.max_concurrency}
    if scheduler.running:
        return ComponentHealth(name="scheduler", status=HealthStatus.HEALTHY, details=details)
    return ComponentHealth(
        name="scheduler",
        status=HealthStatus.UNHEALTHY,
        details=details,
        error="Scheduling loop is not running",
    )


def check_event_broadcaster(orchestrator: Orchestrator) -> ComponentHealth:
    return ComponentHealth(
        name="event_broadcaster",
        status=HealthStatus.HEALTHY,
        details={"subscribers": orchestrator.broadcaster.subscriber_count},
    )


def check_system_resources() -> ComponentHealth:
    """Host memory and CPU plus this process's resident memory."""
    try:
        memory = psutil.virtual_memory()
        rss = psutil.Process().memory_info().rss
    except psutil.Error as e:
        logger.error(f"System resource check failed: {e}", exc_info=True)
        return ComponentHealth(
            name="system_resources",
            status=HealthStatus.DEGRADED,
            error=f"Failed to read system resources: {e}",
        )

    details = {
        "memory_percent": round(memory.percent, 2),
        "memory_available_mb": round(memory.available / 2**20, 2),
        "process_memory_mb": round(rss / 2**20, 2),
        "cpu_percent": psutil.cpu_percent(interval=None),
    }
    if memory.percent > MEMORY_UNHEALTHY_PERCENT:
        state, error = HealthStatus.UNHEALTHY, "High memory usage"
    elif memory.percent > MEMORY_DEGRADED_PERCENT:
        state, error = HealthStatus.DEGRADED, "Elevated memory usage"
    else:
        state, error = HealthStatus.HEALTHY, None
    return ComponentHealth(name="system_resources", status=state, details=details, error=error)


def determine_overall_status(components: List[ComponentHealth]) -> HealthStatus:
    """The worst component status wins."""
    statuses = {c.status for c in components}
    for candidate in (HealthStatus.UNHEALTHY, HealthStatus.DEGRADED):
        if candidate in statuses:
            return candidate
    return HealthStatus.HEALTHY


# ===== Endpoints =====


@router.get("/health/live", response_model=LivenessResponse)
async def liveness_probe():
    """Liveness probe: 200 while the process can serve requests."""
    return LivenessResponse()


@router.get("/health/ready", response_model=ReadinessResponse)
async def readiness_probe(response: Response, orchestrator: CurrentOrchestrator):
    """Readiness probe: 503 until the scheduling loop is running."""
    components = [check_scheduler(orchestrator), check_event_broadcaster(orchestrator)]

    if determine_overall_status(components) == HealthStatus.UNHEALTHY:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return ReadinessResponse(status="not_ready", components=components)
    return ReadinessResponse(status="ready", components=components)


@router.get("/health", response_model=HealthResponse)
async def health_check(settings: AppSettings, orchestrator: CurrentOrchestrator):
    """Scheduler, event broadcaster and host resources with uptime and version."""
    components = [
        check_scheduler(orchestrator),
        check_event_broadcaster(orchestrator),
        check_system_resources(),
    ]
    return HealthResponse(
        status=determine_overall_status(components),
        uptime_seconds=round(time.time() - _startup_time, 2),
        version=settings.app_version,
        components=components,
    )


@router.get("/metrics", response_class=PlainTextResponse)
async def metrics(settings: AppSettings):
    """Prometheus metrics in text exposition format."""
    if not settings.metrics_enabled:
        return PlainTextResponse("metrics disabled", status_code=status.HTTP_404_NOT_FOUND)
    return PlainTextResponse(generate_latest(), media_type=CONTENT_TYPE_LATEST)
