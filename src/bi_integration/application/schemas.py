"""Pydantic request/response schemas for the bank integration API.

JSON field names are camelCase (identityDni, accountNumber, ...).
The internal flags scan_available and prefetch never appear in any schema,
so they are neither accepted from nor returned to clients.
"""

from datetime import date
from decimal import Decimal
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer
from pydantic.alias_generators import to_camel

from src.bi_integration.domain.models import BankIntegration


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Clients read the balance as a JSON number. Request bodies arrive as floats
# unless sent as strings, so double precision is the wire limit either way.
JsonNumber = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class BankIntegrationRequest(_CamelModel):
    """Create payload. `id` and `dateRegister` are accepted but ignored."""

    id: str | None = None
    identity_dni: str = Field(..., min_length=1, max_length=8)
    account_number: str = Field(..., min_length=1, max_length=20)
    account_type: str = Field(..., min_length=1, max_length=20)
    balance: Decimal
    date_register: date | None = None

    def to_domain(self) -> BankIntegration:
        return BankIntegration(
            identity_dni=self.identity_dni,
            account_number=self.account_number,
            account_type=self.account_type,
            balance=self.balance,
        )


class BankIntegrationPatch(_CamelModel):
    """Update payload — every field optional; null means "not supplied"."""

    id: str | None = None
    identity_dni: str | None = Field(None, min_length=1, max_length=8)
    account_number: str | None = Field(None, min_length=1, max_length=20)
    account_type: str | None = Field(None, min_length=1, max_length=20)
    balance: Decimal | None = None
    date_register: date | None = None

    def changes(self) -> dict[str, Any]:
        """Supplied fields keyed by domain field name, minus id and date_register."""
        return self.model_dump(
            exclude_unset=True,
            exclude_none=True,
            exclude={"id", "date_register"},
        )


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class BankIntegrationResponse(_CamelModel):
    id: str | None
    identity_dni: str
    account_number: str
    account_type: str
    balance: JsonNumber
    date_register: date | None

    @classmethod
    def from_domain(cls, record: BankIntegration) -> "BankIntegrationResponse":
        return cls(
            id=record.id,
            identity_dni=record.identity_dni,
            account_number=record.account_number,
            account_type=record.account_type,
            balance=record.balance,
            date_register=record.date_register,
        )

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)
