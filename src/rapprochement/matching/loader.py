#!/usr/bin/env python3
"""
Record Loader

Loads bank transaction and invoice exports (CSV or JSON) into domain models.

Functions:
- load_transactions: Load a bank statement export as Transaction models
- load_invoices: Load an invoice export as Invoice models

Malformed rows are logged and skipped; a missing file is an error.
"""

import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any, TypeVar

import pandas as pd

from ..core.json_utils import read_json
from ..core.models import Invoice, Transaction

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _read_rows(path: Path, collection_key: str) -> list[dict[str, Any]]:
    """
    Read raw rows from a CSV or JSON file.

    JSON files may hold a list of records or an object with the list under
    collection_key (e.g. {"transactions": [...]}).
    """
    if path.suffix.lower() == ".json":
        data = read_json(path)
        if isinstance(data, dict):
            data = data.get(collection_key, [])
        if not isinstance(data, list):
            raise ValueError(f"Expected a list of records in {path}")
        return [row for row in data if isinstance(row, dict)]

    # Keep amounts as text: "1 234,56" must not be guessed by pandas
    df = pd.read_csv(path, dtype=str, sep=None, engine="python", encoding="utf-8-sig")
    df.columns = [str(c).strip() for c in df.columns]
    return [row.to_dict() for _, row in df.iterrows()]


def _load(path: str | Path, collection_key: str, factory: Callable[[dict[str, Any]], T]) -> list[T]:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")

    items: list[T] = []
    for index, row in enumerate(_read_rows(path, collection_key)):
        try:
            items.append(factory(row))
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("Skipping row %d in %s: %s", index + 1, path, e)
            continue

    logger.info("Loaded %d %s from %s", len(items), collection_key, path)
    return items


def load_transactions(path: str | Path) -> list[Transaction]:
    """
    Load bank transactions from a CSV or JSON export.

    Expected columns: id, date, amount (euros), description, and optionally
    type and category. A missing type is derived from the amount sign.

    Args:
        path: CSV or JSON file

    Returns:
        List of Transaction models in file order

    Raises:
        FileNotFoundError: If the file doesn't exist
    """
    return _load(path, "transactions", Transaction.from_record)


def load_invoices(path: str | Path) -> list[Invoice]:
    """
    Load invoices from a CSV or JSON export.

    Expected columns follow the invoice contract: id, numero_facture,
    nom_fournisseur, montant_ht, tva, montant_ttc, date_facture, created_at,
    validation_status. Financial fields may be blank.

    Args:
        path: CSV or JSON file

    Returns:
        List of Invoice models in file order

    Raises:
        FileNotFoundError: If the file doesn't exist
    """
    return _load(path, "invoices", Invoice.from_record)
