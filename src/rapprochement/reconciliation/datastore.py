#!/usr/bin/env python3
"""
Reconciliation DataStore

Persistence contract for the reconciliation engine and its JSON-file
implementation.

Every method is keyed by tenant id; a tenant only ever sees its own rows.
The two replace_* methods give the bulk delete-then-insert semantics that
make orchestrator reruns idempotent.
"""

import logging
import re
from collections.abc import Iterable
from dataclasses import replace
from pathlib import Path
from typing import Any, Protocol

from ..core.json_utils import read_json, write_json_atomic
from ..core.models import Invoice, Transaction
from ..matching.history import SupplierHistory
from .records import AnomalyRecord, AutomationLogEntry, RapprochementRecord, new_record_id

logger = logging.getLogger(__name__)

_TENANT_ID_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.@-]*$")


class ReconciliationStore(Protocol):
    """
    Protocol for tenant-scoped reconciliation persistence.

    Storage errors propagate to the caller unchanged; implementations must
    not swallow them.
    """

    def load_transactions(self, tenant_id: str) -> list[Transaction]:
        """Load all bank transactions of a tenant."""
        ...

    def load_invoices(self, tenant_id: str, statuses: Iterable[str] | None = None) -> list[Invoice]:
        """
        Load invoices of a tenant.

        Args:
            tenant_id: Tenant identifier
            statuses: Only return invoices whose validation_status is in this set

        Returns:
            Invoices in stored order
        """
        ...

    def load_match_records(self, tenant_id: str) -> list[RapprochementRecord]:
        """Load every match record of a tenant."""
        ...

    def replace_unconfirmed_matches(self, tenant_id: str, records: Iterable[RapprochementRecord]) -> None:
        """Delete all records with validated_by_user=False, then insert the given ones."""
        ...

    def save_match_records(self, tenant_id: str, records: Iterable[RapprochementRecord]) -> None:
        """Overwrite the full set of match records."""
        ...

    def load_anomaly_records(self, tenant_id: str) -> list[AnomalyRecord]:
        """Load every anomaly record of a tenant."""
        ...

    def replace_open_anomalies(self, tenant_id: str, records: Iterable[AnomalyRecord]) -> None:
        """Delete all open anomaly records, then insert the given ones."""
        ...

    def save_anomaly_records(self, tenant_id: str, records: Iterable[AnomalyRecord]) -> None:
        """Overwrite the full set of anomaly records."""
        ...

    def load_supplier_histories(self, tenant_id: str) -> list[SupplierHistory]:
        """Load learned supplier histories."""
        ...

    def upsert_supplier_history(self, tenant_id: str, history: SupplierHistory) -> SupplierHistory:
        """Insert or update the history for history.supplier_normalized; returns the stored record."""
        ...

    def append_automation_log(self, tenant_id: str, entries: Iterable[AutomationLogEntry]) -> None:
        """Append audit log entries."""
        ...

    def load_automation_log(self, tenant_id: str) -> list[AutomationLogEntry]:
        """Load the audit log, oldest first."""
        ...

    def save_transactions(self, tenant_id: str, transactions: Iterable[Transaction]) -> None:
        """Overwrite the tenant's transactions (bank import)."""
        ...

    def save_invoices(self, tenant_id: str, invoices: Iterable[Invoice]) -> None:
        """Overwrite the tenant's invoices (OCR/entry import)."""
        ...


class JsonReconciliationStore:
    """
    ReconciliationStore backed by JSON files.

    Layout: <tenants_dir>/<tenant_id>/{transactions,invoices,matches,
    anomalies,supplier_history,automation_log}.json. Each file is rewritten
    atomically (temp file + rename).
    """

    TRANSACTIONS_FILE = "transactions.json"
    INVOICES_FILE = "invoices.json"
    MATCHES_FILE = "matches.json"
    ANOMALIES_FILE = "anomalies.json"
    SUPPLIER_HISTORY_FILE = "supplier_history.json"
    AUTOMATION_LOG_FILE = "automation_log.json"

    def __init__(self, tenants_dir: Path):
        """
        Initialize the store.

        Args:
            tenants_dir: Root directory holding one subdirectory per tenant
        """
        self.tenants_dir = Path(tenants_dir)

    def tenant_dir(self, tenant_id: str) -> Path:
        """
        Directory of one tenant.

        Raises:
            ValueError: If the tenant id is blank or not a safe directory name
        """
        if not tenant_id or not _TENANT_ID_PATTERN.match(tenant_id) or tenant_id in (".", ".."):
            raise ValueError(f"Invalid tenant id: {tenant_id!r}")
        return self.tenants_dir / tenant_id

    def tenant_ids(self) -> list[str]:
        """List tenants that have stored data."""
        if not self.tenants_dir.exists():
            return []
        return sorted({f.parent.name for f in self.tenants_dir.glob("*/*.json")})

    def _read_rows(self, tenant_id: str, filename: str) -> list[dict[str, Any]]:
        path = self.tenant_dir(tenant_id) / filename
        if not path.exists():
            return []
        data = read_json(path)
        if not isinstance(data, list):
            raise ValueError(f"Corrupted store file (expected a list): {path}")
        return data

    def _write_rows(self, tenant_id: str, filename: str, rows: list[dict[str, Any]]) -> None:
        directory = self.tenant_dir(tenant_id)
        directory.mkdir(parents=True, exist_ok=True)
        write_json_atomic(directory / filename, rows)
        logger.debug(f"Wrote {len(rows)} rows to {directory / filename}")

    # Source records

    def load_transactions(self, tenant_id: str) -> list[Transaction]:
        """Load all bank transactions of a tenant."""
        return [Transaction.from_dict(row) for row in self._read_rows(tenant_id, self.TRANSACTIONS_FILE)]

    def save_transactions(self, tenant_id: str, transactions: Iterable[Transaction]) -> None:
        """Overwrite the tenant's transactions."""
        self._write_rows(tenant_id, self.TRANSACTIONS_FILE, [t.to_dict() for t in transactions])

    def load_invoices(self, tenant_id: str, statuses: Iterable[str] | None = None) -> list[Invoice]:
        """Load invoices, optionally filtered by validation status."""
        invoices = [Invoice.from_dict(row) for row in self._read_rows(tenant_id, self.INVOICES_FILE)]
        if statuses is None:
            return invoices
        wanted = set(statuses)
        return [f for f in invoices if f.validation_status in wanted]

    def save_invoices(self, tenant_id: str, invoices: Iterable[Invoice]) -> None:
        """Overwrite the tenant's invoices."""
        self._write_rows(tenant_id, self.INVOICES_FILE, [f.to_dict() for f in invoices])

    # Match records

    def load_match_records(self, tenant_id: str) -> list[RapprochementRecord]:
        """Load every match record of a tenant."""
        return [RapprochementRecord.from_dict(row) for row in self._read_rows(tenant_id, self.MATCHES_FILE)]

    def save_match_records(self, tenant_id: str, records: Iterable[RapprochementRecord]) -> None:
        """Overwrite the full set of match records."""
        self._write_rows(tenant_id, self.MATCHES_FILE, [r.to_dict() for r in records])

    def replace_unconfirmed_matches(self, tenant_id: str, records: Iterable[RapprochementRecord]) -> None:
        """Keep user-validated records, replace every engine-owned one."""
        kept = [r for r in self.load_match_records(tenant_id) if r.validated_by_user]
        self.save_match_records(tenant_id, kept + list(records))

    # Anomaly records

    def load_anomaly_records(self, tenant_id: str) -> list[AnomalyRecord]:
        """Load every anomaly record of a tenant."""
        return [AnomalyRecord.from_dict(row) for row in self._read_rows(tenant_id, self.ANOMALIES_FILE)]

    def save_anomaly_records(self, tenant_id: str, records: Iterable[AnomalyRecord]) -> None:
        """Overwrite the full set of anomaly records."""
        self._write_rows(tenant_id, self.ANOMALIES_FILE, [r.to_dict() for r in records])

    def replace_open_anomalies(self, tenant_id: str, records: Iterable[AnomalyRecord]) -> None:
        """Keep resolved/ignored records, replace every open one."""
        kept = [r for r in self.load_anomaly_records(tenant_id) if not r.is_open]
        self.save_anomaly_records(tenant_id, kept + list(records))

    # Learning engine

    def load_supplier_histories(self, tenant_id: str) -> list[SupplierHistory]:
        """Load learned supplier histories."""
        return [
            SupplierHistory.from_dict(row) for row in self._read_rows(tenant_id, self.SUPPLIER_HISTORY_FILE)
        ]

    def upsert_supplier_history(self, tenant_id: str, history: SupplierHistory) -> SupplierHistory:
        """Insert or update by normalized supplier key, assigning an id to new rows."""
        histories = self.load_supplier_histories(tenant_id)
        existing = next((h for h in histories if h.supplier_normalized == history.supplier_normalized), None)

        record_id = history.id or (existing.id if existing else None) or new_record_id()
        stored = replace(history, id=record_id)

        updated = [h for h in histories if h.supplier_normalized != history.supplier_normalized]
        updated.append(stored)
        self._write_rows(tenant_id, self.SUPPLIER_HISTORY_FILE, [h.to_dict() for h in updated])
        return stored

    # Audit log

    def load_automation_log(self, tenant_id: str) -> list[AutomationLogEntry]:
        """Load the audit log, oldest first."""
        return [
            AutomationLogEntry.from_dict(row) for row in self._read_rows(tenant_id, self.AUTOMATION_LOG_FILE)
        ]

    def append_automation_log(self, tenant_id: str, entries: Iterable[AutomationLogEntry]) -> None:
        """Append audit log entries."""
        new_rows = [e.to_dict() for e in entries]
        if not new_rows:
            return
        rows = self._read_rows(tenant_id, self.AUTOMATION_LOG_FILE)
        self._write_rows(tenant_id, self.AUTOMATION_LOG_FILE, rows + new_rows)
