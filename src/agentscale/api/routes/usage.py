# src/agentscale/api/routes/usage.py
from fastapi import APIRouter

from agentscale.api.dependencies import CurrentOrchestrator
from agentscale.api.schemas.executions import QuotaResponse, UsageRecordResponse, UsageResponse

router = APIRouter()


@router.get("/{organization_id}", response_model=UsageResponse, summary="Organization usage")
async def get_usage(organization_id: str, orchestrator: CurrentOrchestrator):
    """Daily usage records and the organization's quota state."""
    summary = await orchestrator.ledger.summary(organization_id)
    return UsageResponse(
        usage=[UsageRecordResponse.from_record(record) for record in summary["usage"]],
        quota=QuotaResponse(api_calls=summary["api_quota"], api_used=summary["api_used"]),
    )
