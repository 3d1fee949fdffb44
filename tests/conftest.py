"""
Pytest configuration and shared fixtures.
"""

from collections.abc import AsyncGenerator
from datetime import datetime, timedelta
from typing import Any

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from deliveryq.api.main import create_app
from deliveryq.config import Settings
from deliveryq.db.connection import create_session_factory
from deliveryq.dispatch.queue import DispatchQueue
from deliveryq.dispatch.rate_limit import RateLimiter
from deliveryq.jobs.backends import DatabaseJobBackend, MemoryJobBackend
from deliveryq.jobs.scheduler import JobScheduler
from deliveryq.types.queue import DeliveryResult, DispatchConfig

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


class FakeClock:
    """Controllable naive UTC clock."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2024, 1, 1, 12, 0, 0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: Any) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class RecordingTransport:
    """Delivery callable that records payloads and fails on demand."""

    def __init__(self, fail_times: int = 0, error: str = "connection refused"):
        self.fail_times = fail_times
        self.error = error
        self.calls: list[dict[str, Any]] = []

    async def __call__(self, payload: dict[str, Any]) -> DeliveryResult:
        self.calls.append(payload)
        if len(self.calls) <= self.fail_times:
            return DeliveryResult(success=False, error=self.error)
        return DeliveryResult(success=True, message_id=f"test_{len(self.calls)}")


@pytest.fixture
def test_settings() -> Settings:
    """Create test settings."""
    return Settings(
        log_level="DEBUG",
        log_format="console",
        dispatch_rate_limit_per_second=1000,
        dispatch_retry_delays_ms=[10, 20, 50],
        dispatch_poll_interval_seconds=0.01,
        delivery_provider="log",
        job_provider="memory",
        job_poll_interval_seconds=0.01,
        job_runner_enabled=False,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def dispatch_config() -> DispatchConfig:
    """Fast queue configuration for tests."""
    return DispatchConfig(
        rate_limit_per_second=1000,
        max_retries=3,
        retry_delays_ms=[10, 20, 50],
        poll_interval_seconds=0.01,
    )


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def dispatch_queue(transport: RecordingTransport, dispatch_config: DispatchConfig) -> DispatchQueue:
    return DispatchQueue(
        transport,
        config=dispatch_config,
        rate_limiter=RateLimiter(dispatch_config.rate_limit_per_second),
    )


@pytest.fixture
def memory_backend() -> MemoryJobBackend:
    return MemoryJobBackend()


@pytest.fixture
def scheduler(
    test_settings: Settings,
    memory_backend: MemoryJobBackend,
    clock: FakeClock,
) -> JobScheduler:
    """Scheduler on the memory store with a controllable clock."""
    return JobScheduler(test_settings, backend=memory_backend, clock=clock)


@pytest_asyncio.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession]]:
    """Session factory on a private in-memory SQLite database."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    yield create_session_factory(engine)

    await engine.dispose()


@pytest_asyncio.fixture
async def database_backend(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[DatabaseJobBackend]:
    backend = DatabaseJobBackend(session_factory)
    await backend.initialize()
    yield backend
    await backend.close()


@pytest_asyncio.fixture
async def app(
    test_settings: Settings,
    dispatch_queue: DispatchQueue,
    scheduler: JobScheduler,
) -> AsyncGenerator[FastAPI]:
    """Create a FastAPI app wired to the test components."""
    await scheduler.initialize()
    app = create_app(test_settings, dispatch_queue=dispatch_queue, scheduler=scheduler)

    yield app

    await dispatch_queue.close()
    await scheduler.close()


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient]:
    """Create an async HTTP client for testing."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
