"""
API v1 router aggregator.

This module aggregates all v1 API routes into a single router
that can be mounted at /api/v1 in the main application.

Routes included in v1:
    - /agents/{agentId}/execute, /executions/* - Execution control
    - /queue - Scheduler queue status
    - /usage - Organization usage and quota
    - /events - Real-time execution events (SSE and WebSocket)

Routes NOT versioned (kept at root level):
    - /health/* - Health check endpoints
    - /metrics - Prometheus metrics
"""

from fastapi import APIRouter

from agentscale.api.routes import events, executions, queue, usage


# Create main v1 router
router = APIRouter()

# ============================================================================
# Include v1 routes
# ============================================================================

# Execution control routes: /api/v1/agents/{agentId}/execute, /api/v1/executions/*
router.include_router(
    executions.router,
    tags=["Executions"]
)

# Queue routes: /api/v1/queue
router.include_router(
    queue.router,
    prefix="/queue",
    tags=["Queue"]
)

# Usage routes: /api/v1/usage/*
router.include_router(
    usage.router,
    prefix="/usage",
    tags=["Usage"]
)

# Event routes: /api/v1/events/*
router.include_router(
    events.router,
    prefix="/events",
    tags=["Events"]
)


# ============================================================================
# Router export
# ============================================================================

__all__ = ["router"]
