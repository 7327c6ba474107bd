#!/usr/bin/env python3
"""
Invoice Matcher

One-to-one assignment of supplier invoices to expense transactions.

Two strategies:
1. Greedy (default) - invoice-major, first-come-first-served. Each invoice
   takes its best unclaimed transaction; ties go to the earlier transaction.
2. Optimal - global maximum-weight bipartite assignment over the eligible
   score matrix (scipy linear_sum_assignment).

Decisions use the base score (before any supplier boost): pairs at or above
auto_threshold are auto matches; pairs between suggestion_threshold and
auto_threshold are suggestions for review. The boost only raises the
reported confidence and the order of the result lists.
"""

import logging
import time
from collections.abc import Iterable

import numpy as np
from scipy.optimize import linear_sum_assignment

from ..core.config import DEFAULT_MATCHING_CONFIG, MatchingConfig
from ..core.exceptions import ReconciliationTimeoutError
from ..core.models import Invoice, Transaction
from .history import SupplierHistory, index_histories, normalize_supplier_name
from .models import MatchingResult, MatchScore, MatchSuggestion, MatchType
from .scorer import MatchScorer

logger = logging.getLogger(__name__)


class InvoiceMatcher:
    """Matches invoices against bank transactions with a fixed MatchingConfig."""

    def __init__(self, config: MatchingConfig | None = None):
        """
        Initialize the matcher.

        Args:
            config: Thresholds, tolerances and assignment strategy
        """
        self.config = config or DEFAULT_MATCHING_CONFIG
        self.scorer = MatchScorer(self.config)
        self._started_at = 0.0

    def match(
        self,
        invoices: Iterable[Invoice],
        transactions: Iterable[Transaction],
        histories: Iterable[SupplierHistory] = (),
        excluded_pairs: Iterable[tuple[str, str]] = (),
    ) -> MatchingResult:
        """
        Match invoices to expense transactions.

        Args:
            invoices: Invoices to reconcile, in priority order
            transactions: Bank transactions (income is ignored)
            histories: Learned supplier histories
            excluded_pairs: (facture_id, transaction_id) pairs never to propose

        Returns:
            MatchingResult with auto matches, suggestions and leftovers

        Raises:
            ReconciliationTimeoutError: If max_runtime_seconds is exceeded
        """
        self._started_at = time.monotonic()

        invoice_list = list(invoices)
        expenses = [t for t in transactions if t.is_expense]
        excluded = set(excluded_pairs)
        history_index = index_histories(histories)

        if self.config.assignment_strategy == "optimal":
            selected = self._assign_optimal(invoice_list, expenses, history_index, excluded)
        else:
            selected = self._assign_greedy(invoice_list, expenses, history_index, excluded)

        result = self._build_result(invoice_list, expenses, selected)

        logger.info(
            f"Matched {len(invoice_list)} invoices against {len(expenses)} expense transactions "
            f"({self.config.assignment_strategy}): {len(result.auto_matched)} auto, "
            f"{len(result.suggestions)} suggestions, {len(result.unmatched_factures)} unmatched invoices"
        )
        return result

    def _check_deadline(self) -> None:
        limit = self.config.max_runtime_seconds
        if limit is None:
            return
        elapsed = time.monotonic() - self._started_at
        if elapsed > limit:
            raise ReconciliationTimeoutError(elapsed, limit)

    def _score(
        self,
        invoice: Invoice,
        transaction: Transaction,
        history_index: dict[str, SupplierHistory],
    ) -> MatchScore:
        self._check_deadline()
        history = history_index.get(normalize_supplier_name(invoice.nom_fournisseur))
        score = self.scorer.score(invoice, transaction, history)
        logger.debug(
            f"Scored invoice {invoice.id} / transaction {transaction.id}: total={score.total} "
            f"(base={score.base_total}, amount={score.amount}, date={score.date}, "
            f"description={score.description}, supplier={score.supplier})"
        )
        return score

    def _assign_greedy(
        self,
        invoices: list[Invoice],
        expenses: list[Transaction],
        history_index: dict[str, SupplierHistory],
        excluded: set[tuple[str, str]],
    ) -> dict[int, tuple[Transaction, MatchScore]]:
        """Invoice-major greedy selection. Returns {invoice index: (transaction, score)}."""
        selected: dict[int, tuple[Transaction, MatchScore]] = {}
        claimed: set[str] = set()

        for index, invoice in enumerate(invoices):
            best: tuple[Transaction, MatchScore] | None = None

            for transaction in expenses:
                if transaction.id in claimed or (invoice.id, transaction.id) in excluded:
                    continue

                score = self._score(invoice, transaction, history_index)
                if score.base_total < self.config.suggestion_threshold:
                    continue
                # Strictly greater: earlier transactions win ties
                if best is None or score.base_total > best[1].base_total:
                    best = (transaction, score)

            if best is not None:
                claimed.add(best[0].id)
                selected[index] = best

        return selected

    def _assign_optimal(
        self,
        invoices: list[Invoice],
        expenses: list[Transaction],
        history_index: dict[str, SupplierHistory],
        excluded: set[tuple[str, str]],
    ) -> dict[int, tuple[Transaction, MatchScore]]:
        """Global maximum-weight assignment over eligible pairs."""
        if not invoices or not expenses:
            return {}

        # Weight 0 marks an ineligible pair; eligible pairs get base_total + 1 so a
        # zero suggestion threshold still distinguishes them.
        weights = np.zeros((len(invoices), len(expenses)), dtype=np.int64)
        scores: dict[tuple[int, int], MatchScore] = {}

        for i, invoice in enumerate(invoices):
            for j, transaction in enumerate(expenses):
                if (invoice.id, transaction.id) in excluded:
                    continue
                score = self._score(invoice, transaction, history_index)
                if score.base_total >= self.config.suggestion_threshold:
                    weights[i, j] = score.base_total + 1
                    scores[(i, j)] = score

        rows, cols = linear_sum_assignment(weights, maximize=True)

        selected: dict[int, tuple[Transaction, MatchScore]] = {}
        for i, j in zip(rows.tolist(), cols.tolist()):
            if (i, j) in scores:
                selected[i] = (expenses[j], scores[(i, j)])
        return selected

    def _build_result(
        self,
        invoices: list[Invoice],
        expenses: list[Transaction],
        selected: dict[int, tuple[Transaction, MatchScore]],
    ) -> MatchingResult:
        result = MatchingResult()
        matched_transaction_ids: set[str] = set()

        for index, invoice in enumerate(invoices):
            if index not in selected:
                result.unmatched_factures.append(invoice)
                continue

            transaction, score = selected[index]
            matched_transaction_ids.add(transaction.id)
            match_type = MatchType.AUTO if score.base_total >= self.config.auto_threshold else MatchType.SUGGESTION
            suggestion = MatchSuggestion(facture=invoice, transaction=transaction, score=score, type=match_type)

            if match_type == MatchType.AUTO:
                result.auto_matched.append(suggestion)
            else:
                result.suggestions.append(suggestion)

        result.unmatched_transactions = [t for t in expenses if t.id not in matched_transaction_ids]

        # sorted() is stable: equal confidences keep invoice order
        result.auto_matched = sorted(result.auto_matched, key=lambda m: -m.confidence)
        result.suggestions = sorted(result.suggestions, key=lambda m: -m.confidence)
        return result
