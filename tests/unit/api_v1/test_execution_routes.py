# tests/unit/api_v1/test_execution_routes.py
"""Unit tests for execution control, queue, usage and health routes."""

import uuid

import pytest
from httpx import AsyncClient

from agentscale.domain.models import ExecutionStatus


async def _execute(client: AsyncClient, agent_id: str = "agent_1", **body) -> dict:
    response = await client.post(
        f"/api/v1/agents/{agent_id}/execute",
        json={"organizationId": "org_1", **body},
    )
    assert response.status_code == 202, response.text
    return response.json()


@pytest.mark.unit
class TestExecuteRoute:
    """Test POST /api/v1/agents/{agent_id}/execute."""

    async def test_execute_returns_pending_execution(self, async_client: AsyncClient, orchestrator):
        """Queueing returns immediately with a pending execution."""
        data = await _execute(async_client, priority="high")

        assert data["status"] == "pending"
        assert data["priority"] == "high"
        assert data["agentId"] == "agent_1"
        assert data["organizationId"] == "org_1"
        assert data["trigger"] == "api"
        assert data["startTime"] is None
        assert data["result"] is None
        assert orchestrator.scheduler.queue_status()["pending"] == 1

    async def test_unknown_priority_maps_to_normal(self, async_client: AsyncClient):
        data = await _execute(async_client, priority="urgent")

        assert data["priority"] == "normal"

    async def test_snake_case_body_is_accepted(self, async_client: AsyncClient):
        response = await async_client.post(
            "/api/v1/agents/agent_1/execute",
            json={"organization_id": "org_1"},
        )

        assert response.status_code == 202

    async def test_unknown_agent(self, async_client: AsyncClient):
        """Unknown agents are rejected with a structured 404."""
        response = await async_client.post(
            "/api/v1/agents/missing/execute",
            json={"organizationId": "org_1"},
        )

        assert response.status_code == 404
        body = response.json()
        assert body["error"]["code"] == "AGENT_NOT_FOUND"
        assert "request_id" in body

    async def test_missing_organization(self, async_client: AsyncClient):
        response = await async_client.post("/api/v1/agents/agent_1/execute", json={})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"


@pytest.mark.unit
class TestExecutionRoutes:
    """Test execution lookup, stop and pause."""

    async def test_get_completed_execution(self, async_client: AsyncClient, orchestrator):
        """A completed execution carries its result summary."""
        created = await _execute(async_client)
        await orchestrator.scheduler.run_once()

        response = await async_client.get(f"/api/v1/executions/{created['id']}")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "completed"
        assert data["result"]["summary"] == "done"
        assert len(data["observationRefs"]) == 1
        assert data["result"]["observationRefs"] == data["observationRefs"]

    async def test_get_unknown_execution(self, async_client: AsyncClient):
        response = await async_client.get("/api/v1/executions/missing")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "EXECUTION_NOT_FOUND"

    async def test_stop_pending_execution(self, async_client: AsyncClient, orchestrator):
        created = await _execute(async_client)

        response = await async_client.post(f"/api/v1/executions/{created['id']}/stop")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "failed"
        assert data["errorCategory"] == "stopped_by_user"
        assert data["result"] == {"error": "Execution stopped by user"}
        assert orchestrator.scheduler.queue_status()["pending"] == 0

    async def test_stop_is_idempotent(self, async_client: AsyncClient, orchestrator):
        """Stopping a finished execution returns it unchanged."""
        created = await _execute(async_client)
        await orchestrator.scheduler.run_once()

        response = await async_client.post(f"/api/v1/executions/{created['id']}/stop")

        assert response.status_code == 200
        assert response.json()["status"] == "completed"

    async def test_stop_unknown_execution(self, async_client: AsyncClient):
        response = await async_client.post("/api/v1/executions/missing/stop")

        assert response.status_code == 404

    async def test_pause_requires_running(self, async_client: AsyncClient):
        created = await _execute(async_client)

        response = await async_client.post(f"/api/v1/executions/{created['id']}/pause")

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "INVALID_STATE_TRANSITION"

    async def test_pause_running_execution(self, async_client: AsyncClient, orchestrator, agent):
        execution = await orchestrator.scheduler.enqueue(agent.id, agent.organization_id)
        await orchestrator.lifecycle.transition(execution.id, ExecutionStatus.RUNNING)

        response = await async_client.post(f"/api/v1/executions/{execution.id}/pause")

        assert response.status_code == 200
        assert response.json()["status"] == "paused"


@pytest.mark.unit
class TestExecutionListingRoutes:
    """Test organization and agent execution listings."""

    async def test_list_organization_executions_newest_first(self, async_client: AsyncClient, orchestrator, agent):
        first = await _execute(async_client)
        second = await _execute(async_client)
        await orchestrator.agents.create(agent.model_copy(update={"id": "agent_other", "organization_id": "org_2"}))
        await orchestrator.scheduler.enqueue("agent_other", "org_2")

        response = await async_client.get("/api/v1/executions", params={"organizationId": "org_1"})

        assert response.status_code == 200
        assert [e["id"] for e in response.json()] == [second["id"], first["id"]]

    async def test_list_respects_limit(self, async_client: AsyncClient):
        for _ in range(3):
            await _execute(async_client)

        response = await async_client.get("/api/v1/executions", params={"organizationId": "org_1", "limit": 2})

        assert response.status_code == 200
        assert len(response.json()) == 2

    async def test_list_requires_organization(self, async_client: AsyncClient):
        response = await async_client.get("/api/v1/executions")

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    async def test_list_rejects_out_of_range_limit(self, async_client: AsyncClient):
        response = await async_client.get("/api/v1/executions", params={"organizationId": "org_1", "limit": 0})

        assert response.status_code == 400

    async def test_list_agent_executions(self, async_client: AsyncClient, orchestrator, agent):
        await orchestrator.agents.create(agent.model_copy(update={"id": "agent_2"}))
        mine = await _execute(async_client)
        await _execute(async_client, agent_id="agent_2")
        await orchestrator.scheduler.run_once()

        response = await async_client.get("/api/v1/agents/agent_1/executions")

        assert response.status_code == 200
        data = response.json()
        assert [e["id"] for e in data] == [mine["id"]]
        assert data[0]["status"] == "completed"

    async def test_list_unknown_agent_executions(self, async_client: AsyncClient):
        response = await async_client.get("/api/v1/agents/missing/executions")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "AGENT_NOT_FOUND"


@pytest.mark.unit
class TestQueueAndUsageRoutes:
    """Test queue status and usage reporting."""

    async def test_queue_status(self, async_client: AsyncClient):
        await _execute(async_client, priority="critical")
        await _execute(async_client, priority="low")

        response = await async_client.get("/api/v1/queue")

        assert response.status_code == 200
        data = response.json()
        assert data["pending"] == 2
        assert data["running"] == 0
        assert data["priorityCounts"] == {"low": 1, "normal": 0, "high": 0, "critical": 1}

    async def test_usage_after_run(self, async_client: AsyncClient, orchestrator):
        await _execute(async_client)
        await orchestrator.scheduler.run_once()

        response = await async_client.get("/api/v1/usage/org_1")

        assert response.status_code == 200
        data = response.json()
        assert data["quota"] == {"apiCalls": 100, "apiUsed": 1}
        assert len(data["usage"]) == 1
        assert data["usage"][0]["apiCalls"] == 1
        assert data["usage"][0]["browserSessions"] == 1

    async def test_usage_for_unknown_organization(self, async_client: AsyncClient):
        response = await async_client.get("/api/v1/usage/nobody")

        assert response.status_code == 200
        assert response.json() == {"usage": [], "quota": {"apiCalls": None, "apiUsed": None}}


@pytest.mark.unit
class TestHealthRoutes:
    """Test health probes and the metrics endpoint."""

    async def test_liveness(self, async_client: AsyncClient):
        response = await async_client.get("/health/live")

        assert response.status_code == 200
        assert response.json()["status"] == "alive"

    async def test_readiness_without_scheduler_loop(self, async_client: AsyncClient):
        """The scheduling loop is not started by the fixture, so the service is not ready."""
        response = await async_client.get("/health/ready")

        assert response.status_code == 503
        assert response.json()["status"] == "not_ready"

    async def test_readiness_with_scheduler_loop(self, async_client: AsyncClient, orchestrator):
        await orchestrator.start()

        response = await async_client.get("/health/ready")

        assert response.status_code == 200
        components = {c["name"]: c for c in response.json()["components"]}
        assert components["scheduler"]["status"] == "healthy"

    async def test_detailed_health(self, async_client: AsyncClient, orchestrator):
        await orchestrator.start()

        response = await async_client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["version"] == "0.1.0-test"
        assert {c["name"] for c in data["components"]} == {
            "scheduler",
            "event_broadcaster",
            "system_resources",
        }

    async def test_metrics(self, async_client: AsyncClient):
        await _execute(async_client)

        response = await async_client.get("/metrics")

        assert response.status_code == 200
        assert "agentscale_queue_admissions_total" in response.text

    async def test_request_id_header(self, async_client: AsyncClient):
        request_id = str(uuid.uuid4())

        response = await async_client.get("/health/live", headers={"X-Request-ID": request_id})

        assert response.headers["X-Request-ID"] == request_id
