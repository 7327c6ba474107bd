#!/usr/bin/env python3
"""
Auto-Match Orchestrator

Composition root of the reconciliation engine and the only component with
storage side effects. One run, for one tenant:

1. Load transactions, reconcilable invoices, supplier histories and the
   existing match records.
2. Withhold everything a user already confirmed; never re-propose a pair a
   user rejected.
3. Match, then detect anomalies with the fresh and the confirmed pairs.
4. Persist: replace engine-owned matches, append the audit log, learn from
   auto matches, replace open anomalies.

Every write is a full replace of the engine-owned rows, so running twice on
unchanged data leaves storage in the same state.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from ..anomalies.detector import AnomalyDetector
from ..core.config import DEFAULT_MATCHING_CONFIG, MatchingConfig
from ..core.models import RECONCILABLE_STATUSES
from ..matching.history import (
    SupplierHistory,
    find_history,
    normalize_supplier_name,
    update_supplier_history,
)
from ..matching.matcher import InvoiceMatcher
from ..matching.models import MatchingResult
from .datastore import ReconciliationStore
from .records import AnomalyRecord, AutomationLogEntry, RapprochementRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AutoMatchResult:
    """Summary of one orchestrator run."""

    auto_matched: int = 0
    suggestions: int = 0
    anomalies: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for JSON output."""
        return {
            "auto_matched": self.auto_matched,
            "suggestions": self.suggestions,
            "anomalies": self.anomalies,
        }


class AutoMatchOrchestrator:
    """Runs matching and anomaly detection for a tenant and persists the outcome."""

    def __init__(self, store: ReconciliationStore, config: MatchingConfig | None = None):
        """
        Initialize the orchestrator.

        Args:
            store: Tenant-scoped persistence
            config: Matching and anomaly configuration
        """
        self.store = store
        self.config = config or DEFAULT_MATCHING_CONFIG
        self.matcher = InvoiceMatcher(self.config)
        self.detector = AnomalyDetector(self.config)

    def run(self, tenant_id: str, when: datetime | None = None) -> AutoMatchResult:
        """
        Reconcile one tenant.

        Args:
            tenant_id: Tenant identifier
            when: Timestamp recorded on written rows (default: now)

        Returns:
            AutoMatchResult counts

        Raises:
            ReconciliationTimeoutError: If matching exceeds max_runtime_seconds
        """
        when = when or datetime.now()

        transactions = self.store.load_transactions(tenant_id)
        invoices = self.store.load_invoices(tenant_id, statuses=RECONCILABLE_STATUSES)
        logger.info(f"Tenant {tenant_id}: loaded {len(transactions)} transactions, {len(invoices)} invoices")

        if not transactions or not invoices:
            logger.info(f"Tenant {tenant_id}: nothing to reconcile")
            return AutoMatchResult()

        histories = self.store.load_supplier_histories(tenant_id)
        existing = self.store.load_match_records(tenant_id)

        # User decisions from earlier runs
        confirmed = [r for r in existing if r.validated_by_user and r.is_active]
        rejected_pairs = {r.pair for r in existing if r.validated_by_user and r.is_rejected}
        held_invoices = {r.facture_id for r in confirmed}
        held_transactions = {r.transaction_id for r in confirmed}

        match_result = self.matcher.match(
            [f for f in invoices if f.id not in held_invoices],
            [t for t in transactions if t.id not in held_transactions],
            histories=histories,
            excluded_pairs=rejected_pairs,
        )

        anomaly_result = self.detector.detect(
            transactions,
            invoices,
            matched_pairs=match_result.matched_pairs + [r.pair for r in confirmed],
        )

        self._persist_matches(tenant_id, match_result, when)
        self._learn_from_auto_matches(tenant_id, match_result, histories, when)

        self.store.replace_open_anomalies(
            tenant_id, [AnomalyRecord.from_detected(tenant_id, a, when) for a in anomaly_result.anomalies]
        )

        result = AutoMatchResult(
            auto_matched=len(match_result.auto_matched),
            suggestions=len(match_result.suggestions),
            anomalies=len(anomaly_result.anomalies),
        )
        logger.info(
            f"Tenant {tenant_id}: {result.auto_matched} auto matches, "
            f"{result.suggestions} suggestions, {result.anomalies} anomalies"
        )
        return result

    def _persist_matches(self, tenant_id: str, match_result: MatchingResult, when: datetime) -> None:
        """Replace engine-owned match rows and log what the engine did."""
        matches = match_result.all_matches
        self.store.replace_unconfirmed_matches(
            tenant_id, [RapprochementRecord.from_suggestion(tenant_id, m, when) for m in matches]
        )
        self.store.append_automation_log(
            tenant_id, [AutomationLogEntry.for_match(tenant_id, m, when) for m in matches]
        )

    def _learn_from_auto_matches(
        self,
        tenant_id: str,
        match_result: MatchingResult,
        histories: list[SupplierHistory],
        when: datetime,
    ) -> None:
        """Update supplier histories from auto-matched pairs that name a supplier."""
        working = list(histories)

        for match in match_result.auto_matched:
            supplier = match.facture.nom_fournisseur
            if not normalize_supplier_name(supplier):
                continue

            current = find_history(working, supplier)
            if current is not None and match.transaction.id in current.learned_transaction_ids:
                continue

            updated = update_supplier_history(working, supplier, match.transaction, when)

            stored = self.store.upsert_supplier_history(tenant_id, updated)
            working = [h for h in working if h.supplier_normalized != stored.supplier_normalized] + [stored]
            logger.debug(f"Learned supplier {stored.supplier_normalized!r} from transaction {match.transaction.id}")

