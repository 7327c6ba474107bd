#!/usr/bin/env python3
"""
Synthetic Test Data Builders

Builds anonymized transactions, invoices and export files for unit and
integration tests. All names, amounts and ids are synthetic.
"""

import csv
from pathlib import Path
from typing import Any

from rapprochement.core.dates import FinancialDate
from rapprochement.core.models import Invoice, Transaction, TransactionType
from rapprochement.core.money import Money

SYNTHETIC_SUPPLIERS = [
    "ACME SARL",
    "Imprimerie Dupont",
    "Boulangerie du Centre",
    "Transports Martin SAS",
    "Cabinet Comptable Leroy",
]


def make_transaction(
    id: str,
    amount: str | int | float,
    date: str = "2024-03-01",
    description: str = "VIR ACME SARL FACT 42",
    type: str | None = None,
    category: str | None = None,
) -> Transaction:
    """Build a Transaction from euro amounts; type defaults to the amount sign."""
    money = Money.from_euros(amount)
    if type is None:
        tx_type = TransactionType.EXPENSE if money.to_cents() < 0 else TransactionType.INCOME
    else:
        tx_type = TransactionType(type)
    return Transaction(
        id=id,
        date=FinancialDate.from_string(date),
        amount=money,
        description=description,
        type=tx_type,
        category=category,
    )


def make_invoice(
    id: str,
    montant_ttc: str | int | float | None = "120.00",
    date_facture: str | None = "2024-03-01",
    nom_fournisseur: str | None = "ACME SARL",
    numero_facture: str | None = None,
    montant_ht: str | int | float | None = None,
    tva: str | int | float | None = None,
    validation_status: str = "pending",
    created_at: str | None = None,
) -> Invoice:
    """Build an Invoice from euro amounts."""

    def money(value: Any) -> Money | None:
        return Money.from_euros(value) if value is not None else None

    return Invoice(
        id=id,
        validation_status=validation_status,
        numero_facture=numero_facture,
        nom_fournisseur=nom_fournisseur,
        montant_ht=money(montant_ht),
        tva=money(tva),
        montant_ttc=money(montant_ttc),
        date_facture=FinancialDate.from_string(date_facture) if date_facture else None,
        created_at=FinancialDate.from_string(created_at) if created_at else None,
    )


def write_csv(path: Path, rows: list[dict[str, Any]]) -> Path:
    """Write rows to a CSV file with a header from the first row."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=list(rows[0].keys()))
        writer.writeheader()
        writer.writerows(rows)
    return path


def sample_transaction_rows() -> list[dict[str, Any]]:
    """Bank export rows: two supplier payments, one income and one large orphan."""
    return [
        {"id": "tx-1", "date": "2024-03-01", "amount": "-120,00", "description": "VIR ACME SARL FACT 42", "type": "expense", "category": ""},
        {"id": "tx-2", "date": "2024-03-04", "amount": "-118.50", "description": "PRLV FOURNISSEUR DIVERS", "type": "expense", "category": ""},
        {"id": "tx-3", "date": "2024-03-05", "amount": "2500.00", "description": "VIR CLIENT DURAND", "type": "income", "category": "ventes"},
        {"id": "tx-4", "date": "2024-03-10", "amount": "-1 450,00", "description": "CB MATERIEL PRO", "type": "expense", "category": ""},
    ]


def sample_invoice_rows() -> list[dict[str, Any]]:
    """Invoice export rows matching sample_transaction_rows()."""
    return [
        {
            "id": "f-1", "numero_facture": "F-2024-001", "nom_fournisseur": "ACME SARL",
            "montant_ht": "100.00", "tva": "20.00", "montant_ttc": "120.00",
            "date_facture": "2024-03-01", "created_at": "", "validation_status": "validated",
        },
        {
            "id": "f-2", "numero_facture": "F-2024-002", "nom_fournisseur": "",
            "montant_ht": "", "tva": "", "montant_ttc": "120.00",
            "date_facture": "2024-03-01", "created_at": "", "validation_status": "pending",
        },
    ]
