#!/usr/bin/env python3
"""
Review Operations

User decisions on engine output: confirm or reject a proposed match, link an
invoice and a transaction by hand, and close anomalies.

Every decision marks the record validated_by_user so later orchestrator runs
preserve it. Confirmed and manual pairs feed the supplier history.
"""

import logging
from dataclasses import replace
from datetime import datetime

from ..anomalies.models import AnomalyStatus
from ..core.config import DEFAULT_MATCHING_CONFIG, MatchingConfig
from ..core.exceptions import MatchConflictError
from ..core.models import Invoice, Transaction
from ..matching.history import normalize_supplier_name, update_supplier_history
from ..matching.models import MatchType
from ..matching.scorer import MatchScorer
from .datastore import ReconciliationStore
from .records import AnomalyRecord, MatchStatus, RapprochementRecord, new_record_id

logger = logging.getLogger(__name__)

CLOSING_ANOMALY_STATUSES = (AnomalyStatus.RESOLUE, AnomalyStatus.IGNOREE)


def _timestamp(when: datetime | None) -> str:
    return (when or datetime.now()).isoformat(timespec="seconds")


def _find_record(records: list[RapprochementRecord], match_id: str) -> RapprochementRecord:
    for record in records:
        if record.id == match_id:
            return record
    raise KeyError(f"Match record not found: {match_id}")


def _find_conflicts(
    records: list[RapprochementRecord], facture_id: str, transaction_id: str, ignore_id: str | None = None
) -> list[RapprochementRecord]:
    """Active records other than ignore_id already claiming either side."""
    return [
        r
        for r in records
        if r.id != ignore_id
        and r.is_active
        and (r.facture_id == facture_id or r.transaction_id == transaction_id)
    ]


def _learn_from_pair(
    store: ReconciliationStore,
    tenant_id: str,
    invoice: Invoice | None,
    transaction: Transaction | None,
    when: datetime | None,
) -> None:
    if invoice is None or transaction is None or not normalize_supplier_name(invoice.nom_fournisseur):
        return
    histories = store.load_supplier_histories(tenant_id)
    updated = update_supplier_history(histories, invoice.nom_fournisseur, transaction, when)
    store.upsert_supplier_history(tenant_id, updated)


def confirm_match(
    store: ReconciliationStore, tenant_id: str, match_id: str, when: datetime | None = None
) -> RapprochementRecord:
    """
    Confirm a proposed match.

    Args:
        store: Tenant-scoped persistence
        tenant_id: Tenant identifier
        match_id: Match record id
        when: Decision timestamp (default: now)

    Returns:
        The updated record

    Raises:
        KeyError: If the match record doesn't exist
        MatchConflictError: If another active record claims the same invoice or transaction
    """
    records = store.load_match_records(tenant_id)
    record = _find_record(records, match_id)

    conflicts = _find_conflicts(records, record.facture_id, record.transaction_id, ignore_id=record.id)
    if conflicts:
        raise MatchConflictError(
            f"Cannot confirm match {match_id}: invoice or transaction already matched by {conflicts[0].id}"
        )

    confirmed = replace(
        record,
        statut=MatchStatus.VALIDE,
        validated_by_user=True,
        validated_at=_timestamp(when),
    )
    store.save_match_records(tenant_id, [confirmed if r.id == match_id else r for r in records])

    invoices = {f.id: f for f in store.load_invoices(tenant_id)}
    transactions = {t.id: t for t in store.load_transactions(tenant_id)}
    _learn_from_pair(store, tenant_id, invoices.get(record.facture_id), transactions.get(record.transaction_id), when)

    logger.info(f"Tenant {tenant_id}: confirmed match {match_id}")
    return confirmed


def reject_match(
    store: ReconciliationStore, tenant_id: str, match_id: str, when: datetime | None = None
) -> RapprochementRecord:
    """
    Reject a proposed match. The pair will not be proposed again.

    Raises:
        KeyError: If the match record doesn't exist
    """
    records = store.load_match_records(tenant_id)
    record = _find_record(records, match_id)

    rejected = replace(
        record,
        statut=MatchStatus.REJETE,
        validated_by_user=True,
        validated_at=_timestamp(when),
    )
    store.save_match_records(tenant_id, [rejected if r.id == match_id else r for r in records])

    logger.info(f"Tenant {tenant_id}: rejected match {match_id}")
    return rejected


def create_manual_match(
    store: ReconciliationStore,
    tenant_id: str,
    facture_id: str,
    transaction_id: str,
    when: datetime | None = None,
    config: MatchingConfig | None = None,
) -> RapprochementRecord:
    """
    Link an invoice and a transaction by hand.

    The record is user-validated with confidence 100; the computed
    sub-scores are kept for reference.

    Args:
        store: Tenant-scoped persistence
        tenant_id: Tenant identifier
        facture_id: Invoice id
        transaction_id: Transaction id
        when: Decision timestamp (default: now)
        config: Configuration used to compute reference sub-scores

    Returns:
        The new record

    Raises:
        KeyError: If the invoice or transaction doesn't exist
        MatchConflictError: If either side already has an active match
    """
    invoice = next((f for f in store.load_invoices(tenant_id) if f.id == facture_id), None)
    if invoice is None:
        raise KeyError(f"Invoice not found: {facture_id}")
    transaction = next((t for t in store.load_transactions(tenant_id) if t.id == transaction_id), None)
    if transaction is None:
        raise KeyError(f"Transaction not found: {transaction_id}")

    records = store.load_match_records(tenant_id)
    conflicts = _find_conflicts(records, facture_id, transaction_id)
    if conflicts:
        raise MatchConflictError(
            f"Invoice {facture_id} or transaction {transaction_id} already matched by {conflicts[0].id}"
        )

    score = MatchScorer(config or DEFAULT_MATCHING_CONFIG).score(invoice, transaction)
    timestamp = _timestamp(when)
    record = RapprochementRecord(
        id=new_record_id(),
        tenant_id=tenant_id,
        facture_id=facture_id,
        transaction_id=transaction_id,
        montant=invoice.montant_ttc if invoice.montant_ttc is not None else transaction.abs_amount,
        type=MatchType.MANUEL,
        statut=MatchStatus.VALIDE,
        confidence_score=100,
        date_score=score.date,
        amount_score=score.amount,
        description_score=score.description,
        validated_by_user=True,
        validated_at=timestamp,
        created_at=timestamp,
    )
    store.save_match_records(tenant_id, records + [record])
    _learn_from_pair(store, tenant_id, invoice, transaction, when)

    logger.info(f"Tenant {tenant_id}: linked invoice {facture_id} to transaction {transaction_id}")
    return record


def update_anomaly_status(
    store: ReconciliationStore,
    tenant_id: str,
    anomaly_id: str,
    statut: AnomalyStatus | str,
    notes: str | None = None,
    when: datetime | None = None,
) -> AnomalyRecord:
    """
    Close an anomaly as resolved or ignored.

    Closed anomalies survive orchestrator reruns.

    Raises:
        ValueError: If statut is not resolue or ignoree
        KeyError: If the anomaly record doesn't exist
    """
    status = AnomalyStatus(statut) if isinstance(statut, str) else statut
    if status not in CLOSING_ANOMALY_STATUSES:
        raise ValueError(
            f"Anomaly status must be one of {', '.join(s.value for s in CLOSING_ANOMALY_STATUSES)}, got {status.value}"
        )

    records = store.load_anomaly_records(tenant_id)
    record = next((r for r in records if r.id == anomaly_id), None)
    if record is None:
        raise KeyError(f"Anomaly record not found: {anomaly_id}")

    updated = replace(
        record,
        statut=status,
        resolved_at=_timestamp(when),
        notes=notes if notes is not None else record.notes,
    )
    store.save_anomaly_records(tenant_id, [updated if r.id == anomaly_id else r for r in records])

    logger.info(f"Tenant {tenant_id}: anomaly {anomaly_id} marked {status.value}")
    return updated
