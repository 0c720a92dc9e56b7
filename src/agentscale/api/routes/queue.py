# src/agentscale/api/routes/queue.py
from fastapi import APIRouter

from agentscale.api.dependencies import CurrentScheduler
from agentscale.api.schemas.executions import QueueStatusResponse

router = APIRouter()


@router.get("", response_model=QueueStatusResponse, summary="Queue status")
async def queue_status(scheduler: CurrentScheduler):
    """Pending tasks per priority tier and the number of running executions."""
    return QueueStatusResponse(**scheduler.queue_status())
