# src/agentscale/api/routes/executions.py
from fastapi import APIRouter, Query, status

from agentscale.api.dependencies import CurrentOrchestrator, CurrentScheduler
from agentscale.api.schemas.executions import ExecuteAgentRequest, ExecutionResponse
from agentscale.domain.exceptions import AgentNotFound

DEFAULT_LIST_LIMIT = 50
MAX_LIST_LIMIT = 500

router = APIRouter()


# ============================================================================
# Execution Control Routes
# ============================================================================


@router.post(
    "/agents/{agent_id}/execute",
    response_model=ExecutionResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Queue an agent run",
    description="""
    Create a pending execution for the agent and queue it.

    Returns immediately; the run is picked up by the scheduler in priority
    order. Progress is streamed on `/api/v1/events/{agentId}`.

    **Example Request:**
    ```json
    {"organizationId": "org_123", "priority": "high"}
    ```
    """,
    responses={
        404: {"description": "Agent not found"},
        409: {"description": "Execution already queued"},
    },
)
async def execute_agent(
    agent_id: str,
    request: ExecuteAgentRequest,
    scheduler: CurrentScheduler,
):
    execution = await scheduler.enqueue(
        agent_id,
        request.organization_id,
        priority=request.parsed_priority(),
        trigger=request.trigger,
        scheduled_for=request.scheduled_for,
    )
    return ExecutionResponse.from_execution(execution)


@router.get(
    "/executions",
    response_model=list[ExecutionResponse],
    summary="List an organization's executions",
    description="Most recent executions of the organization, newest first.",
)
async def list_executions(
    orchestrator: CurrentOrchestrator,
    organization_id: str = Query(..., alias="organizationId", min_length=1, description="Owning organization"),
    limit: int = Query(DEFAULT_LIST_LIMIT, ge=1, le=MAX_LIST_LIMIT, description="Maximum executions returned"),
):
    executions = await orchestrator.executions.list_recent(limit=limit, organization_id=organization_id)
    return [ExecutionResponse.from_execution(e) for e in executions]


@router.get(
    "/agents/{agent_id}/executions",
    response_model=list[ExecutionResponse],
    summary="List an agent's executions",
    responses={404: {"description": "Agent not found"}},
)
async def list_agent_executions(
    agent_id: str,
    orchestrator: CurrentOrchestrator,
    limit: int = Query(DEFAULT_LIST_LIMIT, ge=1, le=MAX_LIST_LIMIT, description="Maximum executions returned"),
):
    """Most recent executions of one agent, newest first."""
    if await orchestrator.agents.get(agent_id) is None:
        raise AgentNotFound(f"Agent '{agent_id}' not found", details={"agent_id": agent_id})
    executions = await orchestrator.executions.list_recent(limit=limit, agent_id=agent_id)
    return [ExecutionResponse.from_execution(e) for e in executions]


@router.get(
    "/executions/{execution_id}",
    response_model=ExecutionResponse,
    summary="Get an execution",
    responses={404: {"description": "Execution not found"}},
)
async def get_execution(execution_id: str, orchestrator: CurrentOrchestrator):
    """Execution with its recorded actions and terminal result."""
    execution = await orchestrator.lifecycle.get(execution_id)
    return ExecutionResponse.from_execution(execution)


@router.post(
    "/executions/{execution_id}/stop",
    response_model=ExecutionResponse,
    summary="Stop an execution",
    description="""
    Stop a pending or running execution. It ends as `failed` with
    "Execution stopped by user". Stopping an execution that already ended
    is a no-op and returns it unchanged.
    """,
    responses={404: {"description": "Execution not found"}},
)
async def stop_execution(
    execution_id: str,
    orchestrator: CurrentOrchestrator,
    scheduler: CurrentScheduler,
):
    await orchestrator.lifecycle.get(execution_id)
    await scheduler.stop_execution(execution_id)
    return ExecutionResponse.from_execution(await orchestrator.lifecycle.get(execution_id))


@router.post(
    "/executions/{execution_id}/pause",
    response_model=ExecutionResponse,
    summary="Pause a running execution",
    responses={
        404: {"description": "Execution not found"},
        409: {"description": "Execution is not running"},
    },
)
async def pause_execution(execution_id: str, scheduler: CurrentScheduler):
    """Move a running execution to paused and release its session."""
    execution = await scheduler.pause_execution(execution_id)
    return ExecutionResponse.from_execution(execution)
