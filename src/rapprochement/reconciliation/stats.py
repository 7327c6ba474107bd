#!/usr/bin/env python3
"""
Reconciliation Statistics

Progress figures for a tenant's reconciliation and open-anomaly counts.
"""

from collections.abc import Iterable
from typing import Any

from ..anomalies.models import AnomalySeverity
from ..core.currency import round_half_up
from ..core.models import Transaction
from .records import AnomalyRecord, MatchStatus, RapprochementRecord


def compute_reconciliation_stats(
    transactions: Iterable[Transaction], records: Iterable[RapprochementRecord]
) -> dict[str, Any]:
    """
    Summarize how many expense transactions are reconciled.

    A transaction counts as reconciled when a valide record holds it, as
    pending review when only a suggestion does, and as unreconciled when it
    has no record or only rejected ones.

    Args:
        transactions: Tenant transactions (income is ignored)
        records: Tenant match records

    Returns:
        Dict with total, reconciled, with_suggestion, unreconciled, pct_reconciled
    """
    expenses = [t for t in transactions if t.is_expense]

    statuses_by_transaction: dict[str, set[MatchStatus]] = {}
    for record in records:
        statuses_by_transaction.setdefault(record.transaction_id, set()).add(record.statut)

    reconciled = 0
    with_suggestion = 0
    for tx in expenses:
        statuses = statuses_by_transaction.get(tx.id, set())
        if MatchStatus.VALIDE in statuses:
            reconciled += 1
        elif MatchStatus.SUGGESTION in statuses:
            with_suggestion += 1

    total = len(expenses)
    return {
        "total": total,
        "reconciled": reconciled,
        "with_suggestion": with_suggestion,
        "unreconciled": total - reconciled - with_suggestion,
        "pct_reconciled": round_half_up(100 * reconciled, total) if total else 0,
    }


def summarize_anomalies(records: Iterable[AnomalyRecord]) -> dict[str, int]:
    """
    Count anomaly records, with per-severity counts of the open ones.

    Returns:
        Dict with total, ouvertes, critical, warning, info
    """
    record_list = list(records)
    open_records = [r for r in record_list if r.is_open]

    summary = {"total": len(record_list), "ouvertes": len(open_records)}
    for severity in AnomalySeverity:
        summary[severity.value] = sum(1 for r in open_records if r.severite == severity)
    return summary
