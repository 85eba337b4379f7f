"""Integration-test fixtures.

Requires PostgreSQL (migrated with `alembic upgrade head`) and Redis at the
addresses in config.settings. Skipped unless RUN_INTEGRATION=1.

All integration tests share a single event loop so the engine pool and the
Redis pool stay valid across the session.
"""

import os
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from config.settings import settings
from src.main import build_components, create_app


def pytest_collection_modifyitems(config, items):  # type: ignore[no-untyped-def]
    if os.getenv("RUN_INTEGRATION") == "1":
        return
    skip = pytest.mark.skip(reason="set RUN_INTEGRATION=1 with Postgres + Redis running")
    here = Path(__file__).parent
    for item in items:
        if here in item.path.parents:
            item.add_marker(skip)


@pytest_asyncio.fixture(loop_scope="session", scope="session")
async def live_client() -> AsyncClient:  # type: ignore[override]
    """Session-scoped client wired to the real store and cache."""
    components = build_components(settings)
    await components.service._cache.clear()
    transport = ASGITransport(app=create_app(components=components))
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    await components.aclose()
