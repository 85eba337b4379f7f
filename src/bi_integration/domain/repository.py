"""Repository Protocol — dependency inversion for testability.

Unit tests inject a mock that conforms to this Protocol.
Infrastructure layer provides the real implementation.
"""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.bi_integration.domain.models import BankIntegration


class BankIntegrationRepositoryProtocol(Protocol):
    async def find_all(self, db: AsyncSession) -> list[BankIntegration]: ...

    async def find_by_id(
        self, db: AsyncSession, integration_id: str
    ) -> BankIntegration | None: ...

    async def find_by_identity_dni(
        self, db: AsyncSession, identity_dni: str
    ) -> BankIntegration | None: ...

    async def insert(
        self, db: AsyncSession, record: BankIntegration
    ) -> BankIntegration: ...

    async def update(
        self, db: AsyncSession, record: BankIntegration
    ) -> BankIntegration: ...

    async def delete(self, db: AsyncSession, integration_id: str) -> None: ...
