#!/usr/bin/env python3
"""Tests for the auto-match orchestrator."""

from datetime import datetime

import pytest

from rapprochement.anomalies.models import AnomalySeverity, AnomalyType
from rapprochement.core.config import MatchingConfig
from rapprochement.core.models import Invoice, Transaction
from rapprochement.reconciliation.orchestrator import AutoMatchOrchestrator, AutoMatchResult
from rapprochement.reconciliation.records import AutomationAction, MatchStatus
from rapprochement.reconciliation.review import confirm_match, reject_match, update_anomaly_status
from tests.fixtures.synthetic_data import (
    make_invoice,
    make_transaction,
    sample_invoice_rows,
    sample_transaction_rows,
)

WHEN = datetime(2024, 3, 15, 10, 0)
TENANT = "acme"


@pytest.fixture
def seeded_store(store):
    """Store holding the sample bank export and invoices."""
    store.save_transactions(TENANT, [Transaction.from_record(r) for r in sample_transaction_rows()])
    store.save_invoices(TENANT, [Invoice.from_record(r) for r in sample_invoice_rows()])
    return store


@pytest.fixture
def orchestrator(seeded_store):
    return AutoMatchOrchestrator(seeded_store, MatchingConfig())


def record_for(store, facture_id):
    return next(r for r in store.load_match_records(TENANT) if r.facture_id == facture_id)


class TestAutoMatchOrchestrator:
    """Test AutoMatchOrchestrator.run."""

    @pytest.mark.reconciliation
    def test_first_run(self, orchestrator, seeded_store):
        """Test counts and everything written on a first run."""
        result = orchestrator.run(TENANT, when=WHEN)

        assert result == AutoMatchResult(auto_matched=1, suggestions=1, anomalies=1)

        records = {r.facture_id: r for r in seeded_store.load_match_records(TENANT)}
        assert records["f-1"].transaction_id == "tx-1"
        assert records["f-1"].statut == MatchStatus.VALIDE
        assert records["f-1"].confidence_score == 100
        assert records["f-2"].transaction_id == "tx-2"
        assert records["f-2"].statut == MatchStatus.SUGGESTION
        assert not any(r.validated_by_user for r in records.values())

        anomalies = seeded_store.load_anomaly_records(TENANT)
        assert [(a.type, a.severite, a.anomaly.transaction_id) for a in anomalies] == [
            (AnomalyType.TRANSACTION_SANS_FACTURE, AnomalySeverity.CRITICAL, "tx-4")
        ]

        log = seeded_store.load_automation_log(TENANT)
        assert {e.action_type for e in log} == {AutomationAction.AUTO_MATCH, AutomationAction.MATCH_SUGGESTED}
        assert [e.is_reversible for e in log if e.action_type == AutomationAction.AUTO_MATCH] == [True]

    @pytest.mark.reconciliation
    def test_learns_from_auto_matches(self, orchestrator, seeded_store):
        """Test the auto match feeds the supplier history."""
        orchestrator.run(TENANT, when=WHEN)

        histories = seeded_store.load_supplier_histories(TENANT)
        assert len(histories) == 1
        assert histories[0].supplier_normalized == "acme"
        assert histories[0].transaction_patterns == ("acme sarl",)
        assert histories[0].learned_transaction_ids == ("tx-1",)
        assert histories[0].last_matched_at == "2024-03-15T10:00:00"

    @pytest.mark.reconciliation
    def test_rerun_is_idempotent(self, orchestrator, seeded_store):
        """Test a second run on unchanged data leaves the same state."""
        first = orchestrator.run(TENANT, when=WHEN)
        pairs_before = sorted((r.pair, r.statut) for r in seeded_store.load_match_records(TENANT))
        histories_before = seeded_store.load_supplier_histories(TENANT)

        second = orchestrator.run(TENANT, when=WHEN)

        assert second == first
        assert sorted((r.pair, r.statut) for r in seeded_store.load_match_records(TENANT)) == pairs_before
        assert seeded_store.load_supplier_histories(TENANT) == histories_before
        assert len(seeded_store.load_anomaly_records(TENANT)) == 1
        # The audit log is append-only
        assert len(seeded_store.load_automation_log(TENANT)) == 4

    @pytest.mark.reconciliation
    def test_rerun_with_learned_supplier_keeps_counts(self, store):
        """Test a pattern learned on the first run does not promote a pair on the second."""
        store.save_invoices(
            TENANT,
            [
                make_invoice("f-1", montant_ttc="120.00", date_facture="2024-03-01"),
                make_invoice("f-2", montant_ttc="300.00", date_facture="2024-03-10"),
            ],
        )
        store.save_transactions(
            TENANT,
            [
                make_transaction("tx-1", "-120.00", date="2024-03-01", description="VIR ACME SARL"),
                make_transaction("tx-2", "-300.00", date="2024-03-10", description="PRLV SARL ACME 0042"),
            ],
        )
        orchestrator = AutoMatchOrchestrator(store, MatchingConfig())

        first = orchestrator.run(TENANT, when=WHEN)
        suggested = record_for(store, "f-2")
        assert store.load_supplier_histories(TENANT)[0].transaction_patterns == ("acme sarl",)

        second = orchestrator.run(TENANT, when=WHEN)
        resuggested = record_for(store, "f-2")

        assert first == AutoMatchResult(auto_matched=1, suggestions=1, anomalies=0)
        assert second == first
        assert resuggested.statut == suggested.statut == MatchStatus.SUGGESTION
        assert resuggested.confidence_score > suggested.confidence_score

    @pytest.mark.reconciliation
    def test_confirmed_pairs_are_withheld(self, orchestrator, seeded_store):
        """Test a confirmed suggestion survives and is not re-proposed."""
        orchestrator.run(TENANT, when=WHEN)
        confirm_match(seeded_store, TENANT, record_for(seeded_store, "f-2").id, when=WHEN)

        result = orchestrator.run(TENANT, when=WHEN)

        assert result.suggestions == 0
        records = seeded_store.load_match_records(TENANT)
        assert len(records) == 2
        confirmed = [r for r in records if r.validated_by_user]
        assert [r.pair for r in confirmed] == [("f-2", "tx-2")]

    @pytest.mark.reconciliation
    def test_rejected_pairs_are_excluded(self, orchestrator, seeded_store):
        """Test a rejected pair is never proposed again."""
        orchestrator.run(TENANT, when=WHEN)
        reject_match(seeded_store, TENANT, record_for(seeded_store, "f-2").id, when=WHEN)

        result = orchestrator.run(TENANT, when=WHEN)

        assert result.suggestions == 0
        f2_records = [r for r in seeded_store.load_match_records(TENANT) if r.facture_id == "f-2"]
        assert [(r.transaction_id, r.statut) for r in f2_records] == [("tx-2", MatchStatus.REJETE)]

    @pytest.mark.reconciliation
    def test_closed_anomalies_are_preserved(self, orchestrator, seeded_store):
        """Test resolved anomalies survive reruns next to fresh open ones."""
        orchestrator.run(TENANT, when=WHEN)
        anomaly = seeded_store.load_anomaly_records(TENANT)[0]
        update_anomaly_status(seeded_store, TENANT, anomaly.id, "resolue", notes="Facture papier", when=WHEN)

        orchestrator.run(TENANT, when=WHEN)

        records = seeded_store.load_anomaly_records(TENANT)
        assert sum(1 for r in records if r.is_open) == 1
        resolved = [r for r in records if not r.is_open]
        assert [(r.id, r.notes) for r in resolved] == [(anomaly.id, "Facture papier")]

    @pytest.mark.reconciliation
    def test_archived_invoices_are_ignored(self, seeded_store):
        """Test only pending and validated invoices are reconciled."""
        invoices = seeded_store.load_invoices(TENANT)
        seeded_store.save_invoices(TENANT, [Invoice.from_dict({**f.to_dict(), "validation_status": "archived"}) for f in invoices])

        result = AutoMatchOrchestrator(seeded_store).run(TENANT, when=WHEN)

        assert result == AutoMatchResult()

    @pytest.mark.reconciliation
    def test_short_circuit_without_writes(self, store):
        """Test an empty tenant returns zeros and writes nothing."""
        store.save_transactions(TENANT, [Transaction.from_record(r) for r in sample_transaction_rows()])

        result = AutoMatchOrchestrator(store).run(TENANT, when=WHEN)

        assert result.to_dict() == {"auto_matched": 0, "suggestions": 0, "anomalies": 0}
        assert not (store.tenant_dir(TENANT) / store.MATCHES_FILE).exists()
        assert not (store.tenant_dir(TENANT) / store.ANOMALIES_FILE).exists()

    @pytest.mark.reconciliation
    def test_storage_errors_propagate(self, seeded_store, monkeypatch):
        """Test write failures are not swallowed."""

        def fail(*args, **kwargs):
            raise OSError("disk full")

        monkeypatch.setattr(seeded_store, "replace_unconfirmed_matches", fail)
        with pytest.raises(OSError, match="disk full"):
            AutoMatchOrchestrator(seeded_store).run(TENANT, when=WHEN)
