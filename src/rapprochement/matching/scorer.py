#!/usr/bin/env python3
"""
Match Scoring System

Combines the similarity primitives into one weighted confidence per
(invoice, transaction) pair:

    total = 0.5 × amount + 0.3 × date + 0.2 × description

computed in integer tenths and rounded half-up, so a 77.5 is a 78 on every
platform. A learned supplier history adds a bounded boost on top.
"""

from ..core.config import DEFAULT_MATCHING_CONFIG, MatchingConfig
from ..core.currency import round_half_up
from ..core.models import Invoice, Transaction
from .history import SupplierHistory, supplier_score
from .models import MatchScore
from .similarity import score_amount_match, score_date_match, score_description_match

# Weights in tenths
AMOUNT_WEIGHT = 5
DATE_WEIGHT = 3
DESCRIPTION_WEIGHT = 2


def weighted_total(amount: int, date: int, description: int) -> int:
    """Weighted combination of the three base sub-scores, rounded half-up."""
    tenths = amount * AMOUNT_WEIGHT + date * DATE_WEIGHT + description * DESCRIPTION_WEIGHT
    return round_half_up(tenths, 10)


def supplier_boost(supplier: int, boost_max: int) -> int:
    """Points added to the total for a supplier sub-score."""
    return round_half_up(supplier * boost_max, 100)


class MatchScorer:
    """Scores candidate pairs with a fixed MatchingConfig."""

    def __init__(self, config: MatchingConfig | None = None):
        self.config = config or DEFAULT_MATCHING_CONFIG

    def score(
        self,
        invoice: Invoice,
        transaction: Transaction,
        history: SupplierHistory | None = None,
    ) -> MatchScore:
        """
        Score one (invoice, transaction) pair.

        Args:
            invoice: Candidate invoice
            transaction: Candidate bank transaction
            history: Supplier history for the invoice's supplier, if any

        Returns:
            MatchScore with sub-scores and total
        """
        date = score_date_match(invoice.scoring_date, transaction.date, self.config.date_window_days)
        amount = score_amount_match(invoice.montant_ttc, transaction.amount, self.config.amount_tolerance_pct)
        description = score_description_match(invoice.nom_fournisseur, transaction.description)

        base_total = weighted_total(amount, date, description)

        supplier = 0
        total = base_total
        if history is not None:
            supplier = supplier_score(history, transaction, self.config.amount_tolerance_pct)
            total = min(100, base_total + supplier_boost(supplier, self.config.supplier_boost_max))

        return MatchScore(
            amount=amount,
            date=date,
            description=description,
            supplier=supplier,
            total=total,
            base_total=base_total,
        )
