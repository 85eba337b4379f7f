# tests/unit/test_integration_persistence.py
"""Unit tests for BankIntegrationRepository using MagicMock AsyncSession."""
from datetime import date
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import IntegrityError

from src.bi_common.errors import DuplicateIdentityDniError, InternalError
from src.bi_integration.domain.models import BankIntegration
from src.bi_integration.infrastructure.db_models import BankIntegrationORM
from src.bi_integration.infrastructure.persistence import (
    UNIQUE_DNI_CONSTRAINT,
    BankIntegrationRepository,
)


def _make_row(**kwargs):
    """Build a mock DB row with all required fields."""
    row = MagicMock()
    row.id = kwargs.get("id", "abc123")
    row.identity_dni = kwargs.get("identity_dni", "12345678")
    row.account_number = kwargs.get("account_number", "ACC-1")
    row.account_type = kwargs.get("account_type", "SAVINGS")
    row.balance = kwargs.get("balance", Decimal("100.00"))
    row.date_register = kwargs.get("date_register", date(2026, 10, 19))
    row.scan_available = False
    row.prefetch = 0
    return row


def _make_record(**kwargs) -> BankIntegration:
    defaults = dict(
        identity_dni="12345678",
        account_number="ACC-1",
        account_type="SAVINGS",
        balance=Decimal("100.00"),
        date_register=date(2026, 10, 19),
    )
    defaults.update(kwargs)
    return BankIntegration(**defaults)


def _result(row=None, rows=None):
    result_mock = MagicMock()
    result_mock.fetchone.return_value = row
    result_mock.fetchall.return_value = rows or []
    return result_mock


def _integrity_error(message: str) -> IntegrityError:
    return IntegrityError("INSERT INTO bank_integrations ...", {}, Exception(message))


@pytest.fixture
def db():
    return MagicMock()


class TestFind:
    @pytest.mark.asyncio
    async def test_find_by_id_maps_row(self, db):
        db.execute = AsyncMock(return_value=_result(_make_row(id="abc123")))

        record = await BankIntegrationRepository().find_by_id(db, "abc123")

        assert record.id == "abc123"
        assert record.balance == Decimal("100.00")
        assert record.date_register == date(2026, 10, 19)
        assert db.execute.call_args.args[1] == {"id": "abc123"}

    @pytest.mark.asyncio
    async def test_find_by_id_returns_none(self, db):
        db.execute = AsyncMock(return_value=_result(None))

        assert await BankIntegrationRepository().find_by_id(db, "missing") is None

    @pytest.mark.asyncio
    async def test_find_by_identity_dni(self, db):
        db.execute = AsyncMock(return_value=_result(_make_row(identity_dni="87654321")))

        record = await BankIntegrationRepository().find_by_identity_dni(db, "87654321")

        assert record.identity_dni == "87654321"
        assert db.execute.call_args.args[1] == {"identity_dni": "87654321"}

    @pytest.mark.asyncio
    async def test_find_all(self, db):
        rows = [_make_row(id=f"id-{i}", identity_dni=f"0000000{i}") for i in range(3)]
        db.execute = AsyncMock(return_value=_result(rows=rows))

        records = await BankIntegrationRepository().find_all(db)

        assert [r.id for r in records] == ["id-0", "id-1", "id-2"]


class TestInsert:
    @pytest.mark.asyncio
    async def test_generates_hex_id(self, db):
        db.execute = AsyncMock(return_value=_result(_make_row(id="returned")))

        saved = await BankIntegrationRepository().insert(db, _make_record())

        params = db.execute.call_args.args[1]
        assert len(params["id"]) == 32
        int(params["id"], 16)
        assert params["identity_dni"] == "12345678"
        assert params["balance"] == Decimal("100.00")
        assert saved.id == "returned"

    @pytest.mark.asyncio
    async def test_duplicate_dni_raises_business_error(self, db):
        db.execute = AsyncMock(
            side_effect=_integrity_error(
                f'duplicate key value violates unique constraint "{UNIQUE_DNI_CONSTRAINT}"'
            )
        )

        with pytest.raises(DuplicateIdentityDniError) as exc_info:
            await BankIntegrationRepository().insert(db, _make_record())
        assert exc_info.value.http_status == 409

    @pytest.mark.asyncio
    async def test_other_integrity_errors_propagate(self, db):
        db.execute = AsyncMock(side_effect=_integrity_error("null value in column"))

        with pytest.raises(IntegrityError):
            await BankIntegrationRepository().insert(db, _make_record())

    @pytest.mark.asyncio
    async def test_no_row_returned_is_internal_error(self, db):
        db.execute = AsyncMock(return_value=_result(None))

        with pytest.raises(InternalError):
            await BankIntegrationRepository().insert(db, _make_record())


class TestUpdate:
    @pytest.mark.asyncio
    async def test_sends_all_fields(self, db):
        db.execute = AsyncMock(return_value=_result(_make_row(account_number="ACC-2")))

        saved = await BankIntegrationRepository().update(
            db, _make_record(id="abc123", account_number="ACC-2")
        )

        params = db.execute.call_args.args[1]
        assert params["id"] == "abc123"
        assert params["account_number"] == "ACC-2"
        assert saved.account_number == "ACC-2"

    @pytest.mark.asyncio
    async def test_duplicate_dni_raises_business_error(self, db):
        db.execute = AsyncMock(side_effect=_integrity_error(UNIQUE_DNI_CONSTRAINT))

        with pytest.raises(DuplicateIdentityDniError):
            await BankIntegrationRepository().update(db, _make_record(id="abc123"))


class TestDelete:
    @pytest.mark.asyncio
    async def test_executes_delete(self, db):
        db.execute = AsyncMock(return_value=_result())

        await BankIntegrationRepository().delete(db, "abc123")

        assert db.execute.call_args.args[1] == {"id": "abc123"}


class TestOrmModel:
    def test_unique_constraint_matches_repository(self):
        names = {c.name for c in BankIntegrationORM.__table__.constraints}
        assert UNIQUE_DNI_CONSTRAINT in names

    def test_column_limits(self):
        columns = BankIntegrationORM.__table__.columns
        assert columns["identity_dni"].type.length == 8
        assert columns["account_number"].type.length == 20
        assert columns["account_type"].type.length == 20
