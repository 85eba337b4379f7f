"""Domain models for bi_integration — pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass, fields, replace
from datetime import date
from decimal import Decimal
from typing import Any

# Store-owned; never overwritten by an update merge.
_IMMUTABLE_FIELDS = frozenset({"id"})


@dataclass(eq=False)
class BankIntegration:
    """One bank-account integration record.

    Identity is the identity document number: two records with the same
    identity_dni compare equal even if their store ids differ.
    """

    identity_dni: str
    account_number: str
    account_type: str
    balance: Decimal
    id: str | None = None            # assigned by the store
    date_register: date | None = None  # stamped once at creation
    scan_available: bool = False     # internal, never serialized to the API
    prefetch: int = 0                # internal, never serialized to the API

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, BankIntegration):
            return NotImplemented
        return self.identity_dni == other.identity_dni

    def __hash__(self) -> int:
        return hash(self.identity_dni)

    def merged_with(self, changes: dict[str, Any]) -> "BankIntegration":
        """Return a copy with `changes` applied field by field, `id` excluded.

        Unknown keys are ignored.
        """
        known = {f.name for f in fields(self)}
        applied = {
            key: value
            for key, value in changes.items()
            if key in known and key not in _IMMUTABLE_FIELDS
        }
        return replace(self, **applied)
