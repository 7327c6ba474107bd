#!/usr/bin/env python3
"""
Anomaly Detector

Six independent passes over a tenant's transactions and invoices, using the
matcher's pairs as context:

1. Duplicate transactions (same day, same amount, overlapping label)
2. Duplicate invoices (same number, or same supplier and total)
3. Large expenses without an invoice
4. Validated invoices without a transaction
5. VAT inconsistencies on paired invoices (HT + TVA != TTC)
6. Statistical amount outliers

Results are merged, deduplicated on (type, transaction_id, facture_id) and
stable-sorted by severity. All amounts are compared in integer cents.
"""

import logging
from collections.abc import Iterable

import pandas as pd

from ..core.config import DEFAULT_MATCHING_CONFIG, MatchingConfig
from ..core.currency import round_half_up
from ..core.models import Invoice, Transaction
from ..core.money import Money
from ..matching.history import normalize_supplier_name
from .models import AnomalyDetectionResult, AnomalySeverity, AnomalyType, DetectedAnomaly

logger = logging.getLogger(__name__)


class AnomalyDetector:
    """Flags irregularities with a fixed MatchingConfig."""

    def __init__(self, config: MatchingConfig | None = None):
        self.config = config or DEFAULT_MATCHING_CONFIG

    def detect(
        self,
        transactions: Iterable[Transaction],
        invoices: Iterable[Invoice],
        matched_pairs: Iterable[tuple[str, str]] = (),
    ) -> AnomalyDetectionResult:
        """
        Run every detection pass.

        Args:
            transactions: Tenant transactions
            invoices: Tenant invoices
            matched_pairs: (facture_id, transaction_id) pairs considered reconciled

        Returns:
            AnomalyDetectionResult sorted critical first
        """
        transaction_list = list(transactions)
        invoice_list = list(invoices)
        pairs = list(matched_pairs)

        found: list[DetectedAnomaly] = []
        found.extend(self.detect_duplicate_transactions(transaction_list))
        found.extend(self.detect_duplicate_invoices(invoice_list))
        found.extend(self.detect_transactions_without_invoice(transaction_list, pairs))
        found.extend(self.detect_invoices_without_transaction(invoice_list, pairs))
        found.extend(self.detect_vat_discrepancies(invoice_list, transaction_list, pairs))
        found.extend(self.detect_amount_outliers(transaction_list))

        unique: list[DetectedAnomaly] = []
        seen: set[tuple[str, str, str]] = set()
        for anomaly in found:
            if anomaly.dedupe_key in seen:
                continue
            seen.add(anomaly.dedupe_key)
            unique.append(anomaly)

        result = AnomalyDetectionResult(anomalies=sorted(unique, key=lambda a: a.severite.rank))

        stats = result.stats
        logger.info(
            f"Detected {stats['total']} anomalies "
            f"({stats['critical']} critical, {stats['warning']} warning, {stats['info']} info)"
        )
        return result

    def detect_duplicate_transactions(self, transactions: list[Transaction]) -> list[DetectedAnomaly]:
        """Same date, same absolute amount and one label equal to or containing the other."""
        anomalies = []
        seen: dict[tuple[str, int], Transaction] = {}

        for tx in transactions:
            key = (tx.date.to_iso_string(), tx.abs_amount.to_cents())
            existing = seen.get(key)

            if existing is not None and existing.id != tx.id:
                first = existing.description.casefold()
                second = tx.description.casefold()
                if first == second or first in second or second in first:
                    anomalies.append(
                        DetectedAnomaly(
                            type=AnomalyType.DOUBLON_TRANSACTION,
                            severite=AnomalySeverity.WARNING,
                            description=(
                                f'Doublon possible : "{tx.description}" ({tx.amount}) '
                                f"le {tx.date.to_french_format()}"
                            ),
                            transaction_id=tx.id,
                            montant=tx.amount,
                        )
                    )

            seen[key] = tx

        return anomalies

    def detect_duplicate_invoices(self, invoices: list[Invoice]) -> list[DetectedAnomaly]:
        """Repeated invoice number (critical) or repeated supplier and total (warning)."""
        anomalies = []
        seen_numbers: dict[str, Invoice] = {}
        seen_amounts: dict[tuple[str, int], Invoice] = {}

        for invoice in invoices:
            if invoice.numero_facture:
                existing = seen_numbers.get(invoice.numero_facture)
                if existing is not None and existing.id != invoice.id:
                    anomalies.append(
                        DetectedAnomaly(
                            type=AnomalyType.DOUBLON_FACTURE,
                            severite=AnomalySeverity.CRITICAL,
                            description=(
                                f"Facture en doublon : N°{invoice.numero_facture} "
                                f"de {invoice.nom_fournisseur or 'inconnu'}"
                            ),
                            facture_id=invoice.id,
                            montant=invoice.montant_ttc or Money.zero(),
                        )
                    )
                seen_numbers[invoice.numero_facture] = invoice

            supplier_key = normalize_supplier_name(invoice.nom_fournisseur)
            if supplier_key and invoice.montant_ttc is not None and not invoice.montant_ttc.is_zero():
                key = (supplier_key, invoice.montant_ttc.to_cents())
                existing = seen_amounts.get(key)
                if existing is not None and existing.id != invoice.id:
                    anomalies.append(
                        DetectedAnomaly(
                            type=AnomalyType.DOUBLON_FACTURE,
                            severite=AnomalySeverity.WARNING,
                            description=(
                                f"Facture possible doublon : {invoice.nom_fournisseur} - {invoice.montant_ttc}"
                            ),
                            facture_id=invoice.id,
                            montant=invoice.montant_ttc,
                        )
                    )
                seen_amounts[key] = invoice

        return anomalies

    def detect_transactions_without_invoice(
        self, transactions: list[Transaction], matched_pairs: list[tuple[str, str]]
    ) -> list[DetectedAnomaly]:
        """Expenses at or above the anomaly threshold that no pair accounts for."""
        matched_ids = {transaction_id for _, transaction_id in matched_pairs}
        threshold = self.config.cents("anomaly_amount_threshold")
        critical_from = self.config.cents("critical_amount_threshold")

        anomalies = []
        for tx in transactions:
            if not tx.is_expense or tx.id in matched_ids:
                continue
            amount = tx.abs_amount.to_cents()
            if amount < threshold:
                continue

            anomalies.append(
                DetectedAnomaly(
                    type=AnomalyType.TRANSACTION_SANS_FACTURE,
                    severite=AnomalySeverity.CRITICAL if amount >= critical_from else AnomalySeverity.WARNING,
                    description=(
                        f'Transaction de {tx.abs_amount} sans facture : "{tx.description}" '
                        f"du {tx.date.to_french_format()}"
                    ),
                    transaction_id=tx.id,
                    montant=tx.amount,
                )
            )

        return anomalies

    def detect_invoices_without_transaction(
        self, invoices: list[Invoice], matched_pairs: list[tuple[str, str]]
    ) -> list[DetectedAnomaly]:
        """Validated invoices that no pair accounts for."""
        matched_ids = {facture_id for facture_id, _ in matched_pairs}

        anomalies = []
        for invoice in invoices:
            if invoice.id in matched_ids or not invoice.is_validated:
                continue
            amount = invoice.montant_ttc or Money.zero()
            anomalies.append(
                DetectedAnomaly(
                    type=AnomalyType.FACTURE_SANS_TRANSACTION,
                    severite=AnomalySeverity.WARNING,
                    description=f"Facture validée non rapprochée : {invoice.label} - {amount}",
                    facture_id=invoice.id,
                    montant=amount,
                )
            )

        return anomalies

    def detect_vat_discrepancies(
        self,
        invoices: list[Invoice],
        transactions: list[Transaction],
        matched_pairs: list[tuple[str, str]],
    ) -> list[DetectedAnomaly]:
        """HT + TVA differing from TTC on paired invoices."""
        invoices_by_id = {f.id: f for f in invoices}
        transactions_by_id = {t.id: t for t in transactions}
        tolerance = self.config.cents("vat_tolerance")
        critical_above = self.config.cents("vat_critical_threshold")

        anomalies = []
        for facture_id, transaction_id in matched_pairs:
            invoice = invoices_by_id.get(facture_id)
            transaction = transactions_by_id.get(transaction_id)
            if invoice is None or transaction is None:
                continue
            if invoice.montant_ht is None or invoice.tva is None:
                continue
            if invoice.montant_ht.is_zero() or invoice.tva.is_zero():
                continue

            expected = invoice.montant_ht + invoice.tva
            stated = invoice.montant_ttc or Money.zero()
            ecart = (expected - stated).abs()
            if ecart.to_cents() <= tolerance:
                continue

            anomalies.append(
                DetectedAnomaly(
                    type=AnomalyType.ECART_TVA,
                    severite=(
                        AnomalySeverity.CRITICAL if ecart.to_cents() > critical_above else AnomalySeverity.INFO
                    ),
                    description=(
                        f"Écart TVA sur facture {invoice.numero_facture or 'N/A'} : "
                        f"HT({invoice.montant_ht}) + TVA({invoice.tva}) ≠ TTC({stated})"
                    ),
                    transaction_id=transaction.id,
                    facture_id=invoice.id,
                    montant=stated,
                    montant_attendu=expected,
                    ecart=ecart,
                )
            )

        return anomalies

    def detect_amount_outliers(self, transactions: list[Transaction]) -> list[DetectedAnomaly]:
        """Amounts above mean + k·σ and above the absolute floor."""
        if len(transactions) < self.config.outlier_min_transactions:
            return []

        amounts = pd.Series([t.abs_amount.to_cents() for t in transactions], dtype="int64")
        mean = amounts.mean()
        std = amounts.std(ddof=0)
        threshold = mean + self.config.outlier_sigma * std
        floor = self.config.cents("outlier_amount_floor")
        mean_cents = round_half_up(int(amounts.sum()), len(amounts))

        logger.debug(f"Outlier pass: mean={mean:.0f} std={std:.0f} threshold={threshold:.0f} (cents)")

        anomalies = []
        for tx, amount in zip(transactions, amounts.tolist()):
            if amount > threshold and amount > floor:
                expected = Money.from_cents(mean_cents)
                anomalies.append(
                    DetectedAnomaly(
                        type=AnomalyType.MONTANT_ELEVE,
                        severite=AnomalySeverity.INFO,
                        description=(
                            f'Montant inhabituel : {tx.abs_amount} (moyenne : {expected}) - "{tx.description}"'
                        ),
                        transaction_id=tx.id,
                        montant=tx.amount,
                        montant_attendu=expected,
                        ecart=Money.from_cents(amount - mean_cents),
                    )
                )

        return anomalies
