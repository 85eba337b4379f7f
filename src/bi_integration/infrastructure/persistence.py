"""BankIntegrationRepository — concrete implementation of BankIntegrationRepositoryProtocol.

All queries use raw text() SQL (no ORM).
Ids are generated here (32-char hex UUID); the identity_dni uniqueness
constraint is enforced by the database and surfaced as DuplicateIdentityDniError.

Transaction ownership: the CALLER (application service) commits or rolls back.
"""

import uuid

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.bi_common.errors import DuplicateIdentityDniError, InternalError
from src.bi_integration.domain.models import BankIntegration

UNIQUE_DNI_CONSTRAINT = "uq_bank_integrations_identity_dni"

# ---------------------------------------------------------------------------
# SQL
# ---------------------------------------------------------------------------

_COLUMNS = """
    id, identity_dni, account_number, account_type, balance,
    date_register, scan_available, prefetch
"""

_LIST_SQL = text(f"""
    SELECT {_COLUMNS}
    FROM bank_integrations
    ORDER BY date_register, id
""")

_GET_BY_ID_SQL = text(f"""
    SELECT {_COLUMNS}
    FROM bank_integrations
    WHERE id = :id
""")

_GET_BY_DNI_SQL = text(f"""
    SELECT {_COLUMNS}
    FROM bank_integrations
    WHERE identity_dni = :identity_dni
""")

_INSERT_SQL = text(f"""
    INSERT INTO bank_integrations
        (id, identity_dni, account_number, account_type, balance,
         date_register, scan_available, prefetch)
    VALUES
        (:id, :identity_dni, :account_number, :account_type, :balance,
         :date_register, :scan_available, :prefetch)
    RETURNING {_COLUMNS}
""")

# date_register is deliberately absent from SET: it is write-once.
_UPDATE_SQL = text(f"""
    UPDATE bank_integrations
    SET identity_dni   = :identity_dni,
        account_number = :account_number,
        account_type   = :account_type,
        balance        = :balance,
        scan_available = :scan_available,
        prefetch       = :prefetch
    WHERE id = :id
    RETURNING {_COLUMNS}
""")

_DELETE_SQL = text("""
    DELETE FROM bank_integrations
    WHERE id = :id
""")

# ---------------------------------------------------------------------------
# Row mappers
# ---------------------------------------------------------------------------


def _row_to_integration(row: object) -> BankIntegration:
    return BankIntegration(
        id=row.id,  # type: ignore[attr-defined]
        identity_dni=row.identity_dni,  # type: ignore[attr-defined]
        account_number=row.account_number,  # type: ignore[attr-defined]
        account_type=row.account_type,  # type: ignore[attr-defined]
        balance=row.balance,  # type: ignore[attr-defined]
        date_register=row.date_register,  # type: ignore[attr-defined]
        scan_available=row.scan_available,  # type: ignore[attr-defined]
        prefetch=row.prefetch,  # type: ignore[attr-defined]
    )


def _params(record: BankIntegration) -> dict[str, object]:
    return {
        "id": record.id,
        "identity_dni": record.identity_dni,
        "account_number": record.account_number,
        "account_type": record.account_type,
        "balance": record.balance,
        "date_register": record.date_register,
        "scan_available": record.scan_available,
        "prefetch": record.prefetch,
    }


def _is_duplicate_dni(exc: IntegrityError) -> bool:
    return UNIQUE_DNI_CONSTRAINT in str(exc.orig)


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class BankIntegrationRepository:
    """Concrete repository — one SQL statement per operation."""

    async def find_all(self, db: AsyncSession) -> list[BankIntegration]:
        result = await db.execute(_LIST_SQL)
        return [_row_to_integration(row) for row in result.fetchall()]

    async def find_by_id(
        self, db: AsyncSession, integration_id: str
    ) -> BankIntegration | None:
        result = await db.execute(_GET_BY_ID_SQL, {"id": integration_id})
        row = result.fetchone()
        return _row_to_integration(row) if row else None

    async def find_by_identity_dni(
        self, db: AsyncSession, identity_dni: str
    ) -> BankIntegration | None:
        result = await db.execute(_GET_BY_DNI_SQL, {"identity_dni": identity_dni})
        row = result.fetchone()
        return _row_to_integration(row) if row else None

    async def insert(
        self, db: AsyncSession, record: BankIntegration
    ) -> BankIntegration:
        params = _params(record)
        params["id"] = uuid.uuid4().hex
        try:
            result = await db.execute(_INSERT_SQL, params)
        except IntegrityError as exc:
            if _is_duplicate_dni(exc):
                raise DuplicateIdentityDniError(record.identity_dni) from exc
            raise
        row = result.fetchone()
        if row is None:
            raise InternalError("Insert returned no rows — this should never happen")
        return _row_to_integration(row)

    async def update(
        self, db: AsyncSession, record: BankIntegration
    ) -> BankIntegration:
        try:
            result = await db.execute(_UPDATE_SQL, _params(record))
        except IntegrityError as exc:
            if _is_duplicate_dni(exc):
                raise DuplicateIdentityDniError(record.identity_dni) from exc
            raise
        row = result.fetchone()
        if row is None:
            raise InternalError(f"Record {record.id} vanished during update")
        return _row_to_integration(row)

    async def delete(self, db: AsyncSession, integration_id: str) -> None:
        await db.execute(_DELETE_SQL, {"id": integration_id})
