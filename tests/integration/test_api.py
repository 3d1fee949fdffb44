"""
Integration tests for the API endpoints.
"""

import asyncio
from datetime import timedelta

import pytest
import pytest_asyncio
from httpx import AsyncClient

from deliveryq.dispatch.queue import DispatchQueue
from deliveryq.jobs.scheduler import JobScheduler
from tests.conftest import FakeClock, RecordingTransport


class TestHealthAPI:
    """Tests for health endpoints."""

    @pytest.mark.asyncio
    async def test_health_check(self, client: AsyncClient):
        response = await client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["stalled"] is False
        assert data["jobs"]["provider"] == "memory"
        assert "queue_length" in data["dispatch"]

    @pytest.mark.asyncio
    async def test_readiness_check(self, client: AsyncClient):
        response = await client.get("/ready")

        assert response.status_code == 200
        assert response.json()["ready"] is True

    @pytest.mark.asyncio
    async def test_liveness_check(self, client: AsyncClient):
        response = await client.get("/live")

        assert response.status_code == 200
        assert response.json()["alive"] is True

    @pytest.mark.asyncio
    async def test_metrics_endpoint(self, client: AsyncClient):
        response = await client.get("/metrics")

        assert response.status_code == 200
        assert "dispatch_queue_depth" in response.text


class TestJobAPI:
    """Tests for job endpoints."""

    @pytest_asyncio.fixture
    async def created_job(self, client: AsyncClient, clock: FakeClock) -> dict:
        """Schedule a job for testing."""
        response = await client.post(
            "/v1/jobs",
            json={
                "id": "job-1",
                "type": "noop",
                "scheduled_for": (clock.now + timedelta(hours=1)).isoformat(),
                "data": {"to": "user@example.com"},
            },
        )
        assert response.status_code == 201
        return response.json()

    @pytest.mark.asyncio
    async def test_schedule_job(self, created_job: dict):
        assert created_job["job_id"] == "job-1"
        assert created_job["message"] == "Job scheduled successfully"

    @pytest.mark.asyncio
    async def test_schedule_job_in_past(self, client: AsyncClient, clock: FakeClock):
        response = await client.post(
            "/v1/jobs",
            json={
                "type": "noop",
                "scheduled_for": (clock.now - timedelta(hours=1)).isoformat(),
            },
        )

        assert response.status_code == 400
        assert "future" in response.json()["detail"]

    @pytest.mark.asyncio
    async def test_schedule_job_missing_type(self, client: AsyncClient, clock: FakeClock):
        response = await client.post(
            "/v1/jobs",
            json={"scheduled_for": (clock.now + timedelta(hours=1)).isoformat()},
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_get_job(self, client: AsyncClient, created_job: dict):
        response = await client.get("/v1/jobs/job-1")

        assert response.status_code == 200
        data = response.json()
        assert data["id"] == "job-1"
        assert data["exists"] is True
        assert data["status"] == "scheduled"
        assert data["data"] == {"to": "user@example.com"}

    @pytest.mark.asyncio
    async def test_get_job_not_found(self, client: AsyncClient):
        response = await client.get("/v1/jobs/missing")

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_list_jobs(self, client: AsyncClient, created_job: dict):
        response = await client.get("/v1/jobs", params={"status": "scheduled", "type": "noop"})

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert data["jobs"][0]["id"] == "job-1"

    @pytest.mark.asyncio
    async def test_list_jobs_unknown_status(self, client: AsyncClient, created_job: dict):
        response = await client.get("/v1/jobs", params={"status": "exploded"})

        assert response.status_code == 200
        assert response.json()["total"] == 0

    @pytest.mark.asyncio
    async def test_process_job(self, client: AsyncClient, created_job: dict):
        response = await client.post("/v1/jobs/job-1/process")

        assert response.status_code == 200
        assert response.json()["processed"] is True

        again = await client.post("/v1/jobs/job-1/process")
        assert again.status_code == 409

        status = await client.get("/v1/jobs/job-1")
        assert status.json()["status"] == "completed"

    @pytest.mark.asyncio
    async def test_cancel_job(self, client: AsyncClient, created_job: dict):
        response = await client.delete("/v1/jobs/job-1")

        assert response.status_code == 200
        assert response.json()["cancelled"] is True

        gone = await client.get("/v1/jobs/job-1")
        assert gone.status_code == 404

    @pytest.mark.asyncio
    async def test_cancel_processed_job(self, client: AsyncClient, created_job: dict):
        await client.post("/v1/jobs/job-1/process")

        response = await client.delete("/v1/jobs/job-1")

        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_cleanup(
        self,
        client: AsyncClient,
        created_job: dict,
        clock: FakeClock,
    ):
        await client.post("/v1/jobs/job-1/process")
        clock.advance(days=10)

        response = await client.post("/v1/jobs/cleanup", params={"older_than_days": 7})

        assert response.status_code == 200
        assert response.json() == {"removed": 1, "older_than_days": 7}

    @pytest.mark.asyncio
    async def test_dispatch_job_queues_message(
        self,
        client: AsyncClient,
        clock: FakeClock,
        dispatch_queue: DispatchQueue,
        transport: RecordingTransport,
    ):
        """Test processing a dispatch job delivers its data as a message."""
        await client.post(
            "/v1/jobs",
            json={
                "id": "reminder-1",
                "type": "dispatch",
                "scheduled_for": (clock.now + timedelta(minutes=10)).isoformat(),
                "data": {"to": "user@example.com", "priority": "high"},
            },
        )

        response = await client.post("/v1/jobs/reminder-1/process")
        await asyncio.wait_for(dispatch_queue.join(), timeout=5)

        assert response.status_code == 200
        assert transport.calls == [{"to": "user@example.com"}]


class TestMessageAPI:
    """Tests for message endpoints."""

    @pytest.mark.asyncio
    async def test_enqueue_message(
        self,
        client: AsyncClient,
        dispatch_queue: DispatchQueue,
        transport: RecordingTransport,
    ):
        response = await client.post(
            "/v1/messages",
            json={"payload": {"to": "user@example.com"}, "priority": "high"},
        )

        assert response.status_code == 202
        assert response.json()["id"].startswith("msg_")

        await asyncio.wait_for(dispatch_queue.join(), timeout=5)
        assert transport.calls == [{"to": "user@example.com"}]

    @pytest.mark.asyncio
    async def test_enqueue_invalid_priority(self, client: AsyncClient):
        response = await client.post(
            "/v1/messages",
            json={"payload": {"to": "user@example.com"}, "priority": "urgent"},
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_queue_status(self, client: AsyncClient):
        response = await client.get("/v1/messages/status")

        assert response.status_code == 200
        data = response.json()
        assert data["queue_length"] == 0
        assert data["processing"] is False
        assert data["config"]["max_retries"] == 3

    @pytest.mark.asyncio
    async def test_clear_queue(self, client: AsyncClient):
        far_future = "2999-01-01T00:00:00"
        for _ in range(2):
            await client.post(
                "/v1/messages",
                json={"payload": {"to": "x"}, "scheduled_for": far_future},
            )

        response = await client.delete("/v1/messages")

        assert response.status_code == 200
        assert response.json() == {"dropped": 2}

        status = await client.get("/v1/messages/status")
        assert status.json()["queue_length"] == 0


class TestAppWiring:
    """Tests for component wiring in create_app."""

    @pytest.mark.asyncio
    async def test_components_on_state(self, app, scheduler: JobScheduler):
        assert app.state.scheduler is scheduler
        assert scheduler.handlers.get("dispatch") is not None
