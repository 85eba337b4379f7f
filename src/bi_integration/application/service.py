"""BankIntegrationService — cache-then-store facade.

Reads consult the cache first and fall back to the store, populating the
cache on the way out. Writes go to the store inside a session that is
committed on success and rolled back on any error; with write-through
enabled the cache entry is then overwritten (create/update) or evicted
(delete). Cache and store writes are not coordinated: a failure between
them leaves the two out of sync.

Every public method is guarded by its own circuit breaker and the shared
time limit. Infrastructure failures come back as None / [] via the fallback;
AppError (e.g. duplicate identity document) propagates.
"""

import logging
from collections.abc import Callable
from datetime import date
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.bi_common.datetime_utils import utc_today
from src.bi_common.resilience import ResilienceRegistry, absent, empty_list, resilient
from src.bi_integration.domain.cache import BankIntegrationCacheProtocol
from src.bi_integration.domain.models import BankIntegration
from src.bi_integration.domain.repository import BankIntegrationRepositoryProtocol

logger = logging.getLogger("bi.integration")


class BankIntegrationService:
    def __init__(
        self,
        repo: BankIntegrationRepositoryProtocol,
        cache: BankIntegrationCacheProtocol,
        session_factory: async_sessionmaker[AsyncSession],
        resilience: ResilienceRegistry,
        write_through: bool = True,
        today: Callable[[], date] = utc_today,
    ) -> None:
        self._repo = repo
        self._cache = cache
        self._session_factory = session_factory
        self._resilience = resilience
        self._write_through = write_through
        self._today = today

    @resilient("integration.findAll", fallback=empty_list)
    async def find_all(self) -> list[BankIntegration]:
        logger.debug("find_all executed")
        cached = await self._cache.values()
        if cached:
            return cached

        async with self._session_factory() as db:
            records = await self._repo.find_all(db)
        for record in records:
            await self._cache.put(record.id, record)
        return records

    @resilient("integration.findById", fallback=absent)
    async def find_by_id(self, integration_id: str) -> BankIntegration | None:
        logger.debug("find_by_id executed %s", integration_id)
        cached = await self._cache.get(integration_id)
        if cached is not None:
            return cached

        async with self._session_factory() as db:
            record = await self._repo.find_by_id(db, integration_id)
        if record is not None:
            await self._cache.put(integration_id, record)
        return record

    @resilient("integration.findByIdentityDni", fallback=absent)
    async def find_by_identity_dni(self, identity_dni: str) -> BankIntegration | None:
        logger.debug("find_by_identity_dni executed %s", identity_dni)
        async with self._session_factory() as db:
            return await self._repo.find_by_identity_dni(db, identity_dni)

    @resilient("integration.create", fallback=absent)
    async def create(self, record: BankIntegration) -> BankIntegration | None:
        logger.debug("create executed %s", record.identity_dni)
        record.date_register = self._today()
        async with self._session_factory() as db:
            try:
                saved = await self._repo.insert(db, record)
                await db.commit()
            except Exception:
                await db.rollback()
                raise
        if self._write_through:
            await self._cache.put(saved.id, saved)
        return saved

    @resilient("integration.update", fallback=absent)
    async def update(
        self, integration_id: str, changes: dict[str, Any]
    ) -> BankIntegration | None:
        logger.debug("update executed %s:%s", integration_id, sorted(changes))
        async with self._session_factory() as db:
            try:
                existing = await self._repo.find_by_id(db, integration_id)
                if existing is None:
                    return None
                patch = {**changes, "date_register": existing.date_register}
                saved = await self._repo.update(db, existing.merged_with(patch))
                await db.commit()
            except Exception:
                await db.rollback()
                raise
        if self._write_through:
            await self._cache.put(integration_id, saved)
        return saved

    @resilient("integration.delete", fallback=absent)
    async def delete(self, integration_id: str) -> BankIntegration | None:
        logger.debug("delete executed %s", integration_id)
        async with self._session_factory() as db:
            try:
                existing = await self._repo.find_by_id(db, integration_id)
                if existing is None:
                    return None
                await self._repo.delete(db, integration_id)
                await db.commit()
            except Exception:
                await db.rollback()
                raise
        if self._write_through:
            await self._cache.delete(integration_id)
        return existing
