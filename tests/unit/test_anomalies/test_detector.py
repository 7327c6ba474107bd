#!/usr/bin/env python3
"""Tests for the anomaly detector passes."""

import pytest

from rapprochement.anomalies.detector import AnomalyDetector
from rapprochement.anomalies.models import AnomalySeverity, AnomalyType
from rapprochement.core.config import MatchingConfig
from rapprochement.core.money import Money
from tests.fixtures.synthetic_data import make_invoice, make_transaction


@pytest.fixture
def detector():
    """Create an AnomalyDetector with default settings."""
    return AnomalyDetector(MatchingConfig())


class TestDuplicateTransactions:
    """Test detect_duplicate_transactions."""

    @pytest.mark.anomalies
    def test_same_day_amount_and_label(self, detector):
        """Test the second occurrence is flagged."""
        transactions = [
            make_transaction("tx-1", "-45.00", description="CB BOULANGERIE DU CENTRE"),
            make_transaction("tx-2", "-45.00", description="CB BOULANGERIE DU CENTRE"),
        ]
        anomalies = detector.detect_duplicate_transactions(transactions)

        assert len(anomalies) == 1
        assert anomalies[0].transaction_id == "tx-2"
        assert anomalies[0].severite == AnomalySeverity.WARNING
        assert anomalies[0].montant == Money.from_cents(-4500)

    @pytest.mark.anomalies
    def test_label_containment(self, detector):
        """Test one label containing the other counts, case-insensitively."""
        transactions = [
            make_transaction("tx-1", "-45.00", description="CB BOULANGERIE"),
            make_transaction("tx-2", "-45.00", description="cb boulangerie du centre"),
        ]
        assert len(detector.detect_duplicate_transactions(transactions)) == 1

    @pytest.mark.anomalies
    @pytest.mark.parametrize(
        "second",
        [
            {"amount": "-45.00", "date": "2024-03-02", "description": "CB BOULANGERIE"},
            {"amount": "-46.00", "date": "2024-03-01", "description": "CB BOULANGERIE"},
            {"amount": "-45.00", "date": "2024-03-01", "description": "CB PRESSING"},
        ],
    )
    def test_not_duplicates(self, detector, second):
        """Test a different date, amount or unrelated label is not flagged."""
        transactions = [
            make_transaction("tx-1", "-45.00", description="CB BOULANGERIE"),
            make_transaction("tx-2", **second),
        ]
        assert detector.detect_duplicate_transactions(transactions) == []


class TestDuplicateInvoices:
    """Test detect_duplicate_invoices."""

    @pytest.mark.anomalies
    def test_same_number_is_critical(self, detector):
        """Test a repeated invoice number."""
        invoices = [
            make_invoice("f-1", numero_facture="F-2024-001", nom_fournisseur="ACME SARL"),
            make_invoice("f-2", numero_facture="F-2024-001", nom_fournisseur="Imprimerie Dupont", montant_ttc="80.00"),
        ]
        anomalies = detector.detect_duplicate_invoices(invoices)

        assert len(anomalies) == 1
        assert anomalies[0].severite == AnomalySeverity.CRITICAL
        assert anomalies[0].facture_id == "f-2"
        assert "F-2024-001" in anomalies[0].description

    @pytest.mark.anomalies
    def test_same_supplier_and_total_is_warning(self, detector):
        """Test spelling variants of one supplier with the same total."""
        invoices = [
            make_invoice("f-1", numero_facture="A-1", nom_fournisseur="ACME SARL"),
            make_invoice("f-2", numero_facture="A-2", nom_fournisseur="Acme S.A.R.L."),
        ]
        anomalies = detector.detect_duplicate_invoices(invoices)

        assert len(anomalies) == 1
        assert anomalies[0].severite == AnomalySeverity.WARNING

    @pytest.mark.anomalies
    def test_zero_and_missing_totals_ignored(self, detector):
        """Test the supplier check needs a positive total."""
        invoices = [
            make_invoice("f-1", montant_ttc=None),
            make_invoice("f-2", montant_ttc=None),
            make_invoice("f-3", montant_ttc="0"),
            make_invoice("f-4", montant_ttc="0"),
        ]
        assert detector.detect_duplicate_invoices(invoices) == []


class TestUnmatched:
    """Test the two unmatched passes."""

    @pytest.mark.anomalies
    @pytest.mark.parametrize(
        "amount,expected",
        [
            ("-499.99", None),
            ("-500.00", AnomalySeverity.WARNING),
            ("-999.99", AnomalySeverity.WARNING),
            ("-1000.00", AnomalySeverity.CRITICAL),
        ],
    )
    def test_transaction_without_invoice_thresholds(self, detector, amount, expected):
        """Test the 500 € and 1000 € boundaries."""
        anomalies = detector.detect_transactions_without_invoice([make_transaction("tx-1", amount)], [])
        if expected is None:
            assert anomalies == []
        else:
            assert [a.severite for a in anomalies] == [expected]
            assert anomalies[0].montant == Money.from_euros(amount)

    @pytest.mark.anomalies
    def test_matched_and_income_are_skipped(self, detector):
        """Test reconciled expenses and income are not flagged."""
        transactions = [
            make_transaction("tx-1", "-1500.00"),
            make_transaction("tx-2", "2500.00"),
        ]
        assert detector.detect_transactions_without_invoice(transactions, [("f-1", "tx-1")]) == []

    @pytest.mark.anomalies
    def test_validated_invoice_without_transaction(self, detector):
        """Test only validated invoices are flagged."""
        invoices = [
            make_invoice("f-1", validation_status="validated"),
            make_invoice("f-2", validation_status="pending"),
            make_invoice("f-3", validation_status="validated"),
        ]
        anomalies = detector.detect_invoices_without_transaction(invoices, [("f-3", "tx-9")])

        assert [a.facture_id for a in anomalies] == ["f-1"]
        assert anomalies[0].severite == AnomalySeverity.WARNING
        assert anomalies[0].montant == Money.from_cents(12000)


class TestVatDiscrepancies:
    """Test detect_vat_discrepancies."""

    @pytest.mark.anomalies
    def test_small_gap_is_info(self, detector):
        """Test HT 100 + TVA 20 against TTC 125."""
        invoice = make_invoice("f-1", montant_ht="100.00", tva="20.00", montant_ttc="125.00", numero_facture="F-1")
        tx = make_transaction("tx-1", "-125.00")

        anomalies = detector.detect_vat_discrepancies([invoice], [tx], [("f-1", "tx-1")])

        assert len(anomalies) == 1
        anomaly = anomalies[0]
        assert anomaly.type == AnomalyType.ECART_TVA
        assert anomaly.severite == AnomalySeverity.INFO
        assert anomaly.ecart == Money.from_cents(500)
        assert anomaly.montant_attendu == Money.from_cents(12000)
        assert anomaly.montant == Money.from_cents(12500)
        assert (anomaly.facture_id, anomaly.transaction_id) == ("f-1", "tx-1")

    @pytest.mark.anomalies
    def test_large_gap_is_critical(self, detector):
        """Test a gap above 10 € is critical."""
        invoice = make_invoice("f-1", montant_ht="100.00", tva="20.00", montant_ttc="135.00")
        anomalies = detector.detect_vat_discrepancies([invoice], [make_transaction("tx-1", "-135.00")], [("f-1", "tx-1")])
        assert anomalies[0].severite == AnomalySeverity.CRITICAL

    @pytest.mark.anomalies
    @pytest.mark.parametrize(
        "ht,tva,ttc",
        [
            ("100.00", "20.00", "120.00"),
            ("100.00", "20.00", "120.01"),
            ("100.00", None, "125.00"),
            ("100.00", "0", "125.00"),
        ],
    )
    def test_no_discrepancy(self, detector, ht, tva, ttc):
        """Test consistent, one-cent and VAT-free invoices are not flagged."""
        invoice = make_invoice("f-1", montant_ht=ht, tva=tva, montant_ttc=ttc)
        tx = make_transaction("tx-1", "-125.00")
        assert detector.detect_vat_discrepancies([invoice], [tx], [("f-1", "tx-1")]) == []

    @pytest.mark.anomalies
    def test_unpaired_invoice_not_checked(self, detector):
        """Test the VAT check only runs on paired invoices."""
        invoice = make_invoice("f-1", montant_ht="100.00", tva="20.00", montant_ttc="125.00")
        assert detector.detect_vat_discrepancies([invoice], [], []) == []


class TestAmountOutliers:
    """Test detect_amount_outliers."""

    CLUSTER = ["100", "102", "98", "101", "99", "100", "103", "97", "100", "101", "99", "100", "102", "98"]

    @pytest.mark.anomalies
    def test_single_outlier(self, detector):
        """Test one 6000 € payment among ~100 € payments."""
        transactions = [make_transaction(f"tx-{i}", f"-{a}") for i, a in enumerate(self.CLUSTER)]
        transactions.append(make_transaction("tx-big", "-6000.00", description="VIR TRAVAUX"))

        anomalies = detector.detect_amount_outliers(transactions)

        assert [a.transaction_id for a in anomalies] == ["tx-big"]
        assert anomalies[0].type == AnomalyType.MONTANT_ELEVE
        assert anomalies[0].severite == AnomalySeverity.INFO
        total = sum(int(a) * 100 for a in self.CLUSTER) + 600000
        expected_mean = (2 * total + 15) // 30
        assert anomalies[0].montant_attendu == Money.from_cents(expected_mean)
        assert anomalies[0].ecart == Money.from_cents(600000 - expected_mean)

    @pytest.mark.anomalies
    def test_small_batch_is_skipped(self, detector):
        """Test fewer than five transactions never produce outliers."""
        transactions = [make_transaction(f"tx-{i}", a) for i, a in enumerate(["-10", "-10", "-10", "-9000"])]
        assert detector.detect_amount_outliers(transactions) == []

    @pytest.mark.anomalies
    def test_floor_applies(self, detector):
        """Test a statistical outlier under 5000 € is not flagged."""
        transactions = [make_transaction(f"tx-{i}", f"-{a}") for i, a in enumerate(self.CLUSTER)]
        transactions.append(make_transaction("tx-big", "-4000.00"))
        assert detector.detect_amount_outliers(transactions) == []

    @pytest.mark.anomalies
    def test_small_six_value_batch(self, detector):
        """Test one large value among six cannot clear mean + 3σ."""
        amounts = ["-100", "-102", "-98", "-101", "-99", "-6000"]
        transactions = [make_transaction(f"tx-{i}", a) for i, a in enumerate(amounts)]
        assert detector.detect_amount_outliers(transactions) == []


class TestDetect:
    """Test the merged result."""

    @pytest.mark.anomalies
    def test_duplicate_number_reported_once(self, detector):
        """Test a critical and a warning on the same invoice collapse to the critical one."""
        invoices = [
            make_invoice("f-1", numero_facture="F-2024-001"),
            make_invoice("f-2", numero_facture="F-2024-001"),
        ]
        result = detector.detect([], invoices)

        duplicates = result.of_type(AnomalyType.DOUBLON_FACTURE)
        assert len(duplicates) == 1
        assert duplicates[0].severite == AnomalySeverity.CRITICAL

    @pytest.mark.anomalies
    def test_sorted_by_severity(self, detector):
        """Test critical first, then warning, then info."""
        transactions = [
            make_transaction("tx-1", "-125.00"),
            make_transaction("tx-2", "-600.00", description="CB MATERIEL"),
            make_transaction("tx-3", "-1500.00", description="VIR TRAVAUX"),
        ]
        invoices = [
            make_invoice("f-1", montant_ht="100.00", tva="20.00", montant_ttc="125.00"),
            make_invoice("f-2", montant_ttc="300.00", validation_status="validated"),
        ]
        result = detector.detect(transactions, invoices, [("f-1", "tx-1")])

        ranks = [a.severite.rank for a in result.anomalies]
        assert ranks == sorted(ranks)
        assert result.stats == {"total": 4, "critical": 1, "warning": 2, "info": 1}

    @pytest.mark.anomalies
    def test_to_dict(self, detector):
        """Test JSON output carries cents and stats."""
        result = detector.detect([make_transaction("tx-1", "-1500.00")], [])
        data = result.to_dict()
        assert data["anomalies"][0]["montant"] == -150000
        assert data["anomalies"][0]["type"] == "transaction_sans_facture"
        assert data["stats"]["critical"] == 1
