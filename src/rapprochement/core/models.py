#!/usr/bin/env python3
"""
Core Data Models for the Reconciliation Engine

Bank transactions and supplier invoices as supplied by the import and OCR
pipelines. The engine reads these records and never mutates them.

Two dict forms exist for every model:
- from_record(): external records (bank import, OCR, API) with euro amounts
- to_dict()/from_dict(): persisted form with integer cents
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any

from .currency import safe_currency_to_cents
from .dates import FinancialDate
from .money import Money, cents_or_none, money_or_none


class TransactionType(Enum):
    """Direction of a bank transaction."""

    EXPENSE = "expense"
    INCOME = "income"


class ValidationStatus(Enum):
    """Invoice validation states produced by the OCR/entry pipeline."""

    PENDING = "pending"
    VALIDATED = "validated"
    MANUAL_REVIEW = "manual_review"
    REJECTED = "rejected"
    ARCHIVED = "archived"


# Invoices still open for reconciliation
RECONCILABLE_STATUSES = frozenset({ValidationStatus.PENDING.value, ValidationStatus.VALIDATED.value})


def _optional_str(value: Any) -> str | None:
    """Normalize blanks and NaN from CSV/JSON to None."""
    if value is None:
        return None
    if isinstance(value, float) and value != value:
        return None
    text = str(value).strip()
    return text or None


@dataclass(frozen=True)
class Transaction:
    """
    Bank transaction from a statement import.

    Amount is signed: negative for money leaving the account. The type tag
    is authoritative when supplied since some banks export expenses as
    positive amounts with a debit flag.
    """

    id: str
    date: FinancialDate
    amount: Money
    description: str
    type: TransactionType

    # Optional fields
    category: str | None = None

    def __post_init__(self) -> None:
        """Validate required fields."""
        if not self.id:
            raise ValueError("Transaction id is required")

    @property
    def is_expense(self) -> bool:
        """Check if this transaction is money paid out."""
        return self.type == TransactionType.EXPENSE

    @property
    def abs_amount(self) -> Money:
        """Magnitude of the transaction, regardless of sign convention."""
        return self.amount.abs()

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "Transaction":
        """
        Create Transaction from an external record with euro amounts.

        Args:
            record: Dict with id, amount (euros), type, description, date, category

        Returns:
            Transaction instance

        Raises:
            ValueError: If id, date or amount is missing or malformed
        """
        amount_cents = safe_currency_to_cents(record.get("amount"))
        if amount_cents is None:
            raise ValueError(f"Transaction {record.get('id')!r} has no usable amount")

        tx_date = FinancialDate.from_value(record.get("date"))
        if tx_date is None:
            raise ValueError(f"Transaction {record.get('id')!r} has no date")

        type_value = _optional_str(record.get("type"))
        if type_value is None:
            tx_type = TransactionType.EXPENSE if amount_cents < 0 else TransactionType.INCOME
        else:
            tx_type = TransactionType(type_value.lower())

        return cls(
            id=str(record.get("id") or "").strip(),
            date=tx_date,
            amount=Money.from_cents(amount_cents),
            description=_optional_str(record.get("description")) or "",
            type=tx_type,
            category=_optional_str(record.get("category")),
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Transaction":
        """Create Transaction from its persisted dict (amount in cents)."""
        return cls(
            id=data["id"],
            date=FinancialDate.from_string(data["date"]),
            amount=Money.from_cents(data["amount"]),
            description=data.get("description", ""),
            type=TransactionType(data["type"]),
            category=data.get("category"),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for JSON persistence."""
        return {
            "id": self.id,
            "date": self.date.to_iso_string(),
            "amount": self.amount.to_cents(),
            "description": self.description,
            "type": self.type.value,
            "category": self.category,
        }


@dataclass(frozen=True)
class Invoice:
    """
    Supplier invoice ("facture") from OCR or manual entry.

    Every financial field may be missing: OCR output is noisy and the engine
    degrades scores instead of rejecting the invoice.
    """

    id: str
    validation_status: str

    # Optional fields
    numero_facture: str | None = None
    nom_fournisseur: str | None = None
    montant_ht: Money | None = None
    tva: Money | None = None
    montant_ttc: Money | None = None
    date_facture: FinancialDate | None = None
    created_at: FinancialDate | None = None

    def __post_init__(self) -> None:
        """Validate required fields."""
        if not self.id:
            raise ValueError("Invoice id is required")

    @property
    def scoring_date(self) -> FinancialDate | None:
        """Invoice date, falling back to the record creation date."""
        return self.date_facture or self.created_at

    @property
    def is_validated(self) -> bool:
        """Check if the invoice was validated by the user or the OCR pipeline."""
        return self.validation_status == ValidationStatus.VALIDATED.value

    @property
    def is_reconcilable(self) -> bool:
        """Check if the invoice is still open for reconciliation."""
        return self.validation_status in RECONCILABLE_STATUSES

    @property
    def label(self) -> str:
        """Short human label for messages."""
        return self.nom_fournisseur or self.numero_facture or "N/A"

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "Invoice":
        """
        Create Invoice from an external record with euro amounts.

        Unparseable amounts and dates are treated as missing.

        Args:
            record: Dict following the invoice contract

        Returns:
            Invoice instance
        """

        def money_field(name: str) -> Money | None:
            cents = safe_currency_to_cents(record.get(name))
            return Money.from_cents(cents) if cents is not None else None

        def date_field(name: str) -> FinancialDate | None:
            try:
                return FinancialDate.from_value(record.get(name))
            except ValueError:
                return None

        return cls(
            id=str(record.get("id") or "").strip(),
            validation_status=(_optional_str(record.get("validation_status")) or "pending").lower(),
            numero_facture=_optional_str(record.get("numero_facture")),
            nom_fournisseur=_optional_str(record.get("nom_fournisseur")),
            montant_ht=money_field("montant_ht"),
            tva=money_field("tva"),
            montant_ttc=money_field("montant_ttc"),
            date_facture=date_field("date_facture"),
            created_at=date_field("created_at"),
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Invoice":
        """Create Invoice from its persisted dict (amounts in cents)."""
        return cls(
            id=data["id"],
            validation_status=data.get("validation_status", "pending"),
            numero_facture=data.get("numero_facture"),
            nom_fournisseur=data.get("nom_fournisseur"),
            montant_ht=money_or_none(data.get("montant_ht")),
            tva=money_or_none(data.get("tva")),
            montant_ttc=money_or_none(data.get("montant_ttc")),
            date_facture=FinancialDate.from_value(data.get("date_facture")),
            created_at=FinancialDate.from_value(data.get("created_at")),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for JSON persistence."""
        return {
            "id": self.id,
            "validation_status": self.validation_status,
            "numero_facture": self.numero_facture,
            "nom_fournisseur": self.nom_fournisseur,
            "montant_ht": cents_or_none(self.montant_ht),
            "tva": cents_or_none(self.tva),
            "montant_ttc": cents_or_none(self.montant_ttc),
            "date_facture": self.date_facture.to_iso_string() if self.date_facture else None,
            "created_at": self.created_at.to_iso_string() if self.created_at else None,
        }


# Type aliases for common data structures
TransactionList = list[Transaction]
InvoiceList = list[Invoice]
