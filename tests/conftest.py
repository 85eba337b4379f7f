"""Shared test fixtures.

The service is exercised against an in-memory repository that counts calls
and can simulate an outage (fail_with) or a slow store (delay), a memory
cache, a fake session factory and a manually advanced clock for the breakers.
"""

import asyncio
import uuid
from collections import Counter
from dataclasses import replace
from datetime import date
from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import ASGITransport, AsyncClient

from src.bi_common.errors import DuplicateIdentityDniError
from src.bi_common.resilience import CircuitBreakerConfig, ResilienceRegistry
from src.bi_integration.application.service import BankIntegrationService
from src.bi_integration.domain.models import BankIntegration
from src.bi_integration.infrastructure.cache import MemoryIntegrationCache
from src.main import AppComponents, create_app

TODAY = date(2026, 10, 19)
LOCATION_BASE_URL = "http://register:9081/bankIntegration"

# Three consecutive failures open a breaker; it half-opens 30s later.
FAILURE_THRESHOLD = 3
COOLDOWN_SECONDS = 30.0
TIMEOUT_SECONDS = 0.2


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeSessionFactory:
    """Stands in for async_sessionmaker: `async with factory() as db`."""

    def __init__(self) -> None:
        self.session = MagicMock()
        self.session.commit = AsyncMock()
        self.session.rollback = AsyncMock()
        self.opened = 0

    def __call__(self) -> "FakeSessionFactory":
        self.opened += 1
        return self

    async def __aenter__(self) -> MagicMock:
        return self.session

    async def __aexit__(self, *exc_info: object) -> bool:
        return False


class InMemoryRepository:
    """Protocol-conforming store double. Returns copies, never shared instances."""

    def __init__(self) -> None:
        self.rows: dict[str, BankIntegration] = {}
        self.calls: Counter[str] = Counter()
        self.fail_with: Exception | None = None
        self.delay: float = 0.0

    async def _enter(self, op: str) -> None:
        self.calls[op] += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_with is not None:
            raise self.fail_with

    def _dni_taken(self, identity_dni: str, except_id: str | None = None) -> bool:
        return any(
            r.identity_dni == identity_dni and r.id != except_id for r in self.rows.values()
        )

    async def find_all(self, db: object) -> list[BankIntegration]:
        await self._enter("find_all")
        return [replace(r) for r in self.rows.values()]

    async def find_by_id(self, db: object, integration_id: str) -> BankIntegration | None:
        await self._enter("find_by_id")
        row = self.rows.get(integration_id)
        return replace(row) if row else None

    async def find_by_identity_dni(self, db: object, identity_dni: str) -> BankIntegration | None:
        await self._enter("find_by_identity_dni")
        for row in self.rows.values():
            if row.identity_dni == identity_dni:
                return replace(row)
        return None

    async def insert(self, db: object, record: BankIntegration) -> BankIntegration:
        await self._enter("insert")
        if self._dni_taken(record.identity_dni):
            raise DuplicateIdentityDniError(record.identity_dni)
        saved = replace(record, id=uuid.uuid4().hex)
        self.rows[saved.id] = saved
        return replace(saved)

    async def update(self, db: object, record: BankIntegration) -> BankIntegration:
        await self._enter("update")
        if self._dni_taken(record.identity_dni, except_id=record.id):
            raise DuplicateIdentityDniError(record.identity_dni)
        stored = self.rows[record.id]
        # date_register is never part of the UPDATE statement
        saved = replace(record, date_register=stored.date_register)
        self.rows[saved.id] = saved
        return replace(saved)

    async def delete(self, db: object, integration_id: str) -> None:
        await self._enter("delete")
        self.rows.pop(integration_id, None)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def resilience(clock: FakeClock) -> ResilienceRegistry:
    config = CircuitBreakerConfig(
        failure_rate_threshold=100.0,
        sliding_window_size=FAILURE_THRESHOLD,
        minimum_number_of_calls=FAILURE_THRESHOLD,
        wait_duration_in_open_state=COOLDOWN_SECONDS,
        permitted_calls_in_half_open_state=1,
    )
    return ResilienceRegistry(config, timeout_seconds=TIMEOUT_SECONDS, clock=clock)


@pytest.fixture
def repo() -> InMemoryRepository:
    return InMemoryRepository()


@pytest.fixture
def cache() -> MemoryIntegrationCache:
    return MemoryIntegrationCache()


@pytest.fixture
def session_factory() -> FakeSessionFactory:
    return FakeSessionFactory()


@pytest.fixture
def write_through() -> bool:
    return True


@pytest.fixture
def service(repo, cache, session_factory, resilience, write_through) -> BankIntegrationService:
    return BankIntegrationService(
        repo=repo,
        cache=cache,
        session_factory=session_factory,  # type: ignore[arg-type]
        resilience=resilience,
        write_through=write_through,
        today=lambda: TODAY,
    )


@pytest.fixture
async def client(service, resilience) -> AsyncClient:
    """Async HTTP client for the FastAPI app wired to the in-memory doubles."""
    components = AppComponents(
        service=service,
        resilience=resilience,
        location_base_url=LOCATION_BASE_URL,
    )
    transport = ASGITransport(app=create_app(components=components))
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
