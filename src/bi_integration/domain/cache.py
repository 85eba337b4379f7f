"""Record cache Protocol.

One logical bucket mapping record id -> BankIntegration. No TTL, no eviction
policy, no size bound: entries live until overwritten, deleted, or the bucket
is cleared. The cache is never guaranteed complete.
"""

from typing import Protocol

from src.bi_integration.domain.models import BankIntegration


class BankIntegrationCacheProtocol(Protocol):
    async def get(self, integration_id: str) -> BankIntegration | None: ...

    async def put(self, integration_id: str, record: BankIntegration) -> None: ...

    async def values(self) -> list[BankIntegration]: ...

    async def delete(self, integration_id: str) -> None: ...

    async def clear(self) -> None: ...
