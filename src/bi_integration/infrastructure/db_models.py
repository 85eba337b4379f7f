"""SQLAlchemy ORM model for the bank_integrations table.

Used for type reference only — persistence.py uses raw text() SQL.
Alembic migration 001_create_bank_integrations.py is the authoritative DDL source.
"""

from datetime import date
from decimal import Decimal

from sqlalchemy import Boolean, Date, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class BankIntegrationORM(Base):
    __tablename__ = "bank_integrations"
    __table_args__ = (
        UniqueConstraint("identity_dni", name="uq_bank_integrations_identity_dni"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    identity_dni: Mapped[str] = mapped_column(String(8), nullable=False)
    account_number: Mapped[str] = mapped_column(String(20), nullable=False)
    account_type: Mapped[str] = mapped_column(String(20), nullable=False)
    balance: Mapped[Decimal] = mapped_column(Numeric, nullable=False)
    date_register: Mapped[date | None] = mapped_column(Date)
    scan_available: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    prefetch: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
