#!/usr/bin/env python3
"""
Matching Domain Models

Score breakdowns, proposed (invoice, transaction) pairs and the result of a
matching run.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..core.models import Invoice, Transaction


class MatchType(Enum):
    """How a match was produced."""

    AUTO = "auto"
    SUGGESTION = "suggestion"
    MANUEL = "manuel"


@dataclass(frozen=True)
class MatchScore:
    """
    Sub-scores of one (invoice, transaction) pair, all in [0, 100].

    base_total is the weighted total before any supplier boost; total adds the
    boost. Eligibility, assignment and the auto/suggestion tier use base_total,
    so learning never changes which pairs a rerun proposes.
    supplier is 0 when no supplier history applied.
    """

    amount: int
    date: int
    description: int
    total: int
    supplier: int = 0
    base_total: int | None = None

    def __post_init__(self) -> None:
        """Validate score ranges."""
        if self.base_total is None:
            object.__setattr__(self, "base_total", self.total)
        for name in ("amount", "date", "description", "total", "supplier", "base_total"):
            value = getattr(self, name)
            if not 0 <= value <= 100:
                raise ValueError(f"{name} score must be between 0 and 100, got {value}")

    def to_dict(self) -> dict[str, int]:
        """Convert to dict for JSON output."""
        return {
            "amount": self.amount,
            "date": self.date,
            "description": self.description,
            "supplier": self.supplier,
            "base_total": self.base_total,
            "total": self.total,
        }


@dataclass(frozen=True)
class MatchSuggestion:
    """A proposed one-to-one pairing of an invoice and a bank transaction."""

    facture: Invoice
    transaction: Transaction
    score: MatchScore
    type: MatchType

    @property
    def confidence(self) -> int:
        """Overall confidence, equal to the score total."""
        return self.score.total

    @property
    def pair(self) -> tuple[str, str]:
        """(facture_id, transaction_id)."""
        return (self.facture.id, self.transaction.id)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for JSON output."""
        return {
            "facture_id": self.facture.id,
            "transaction_id": self.transaction.id,
            "type": self.type.value,
            "confidence": self.confidence,
            "score": self.score.to_dict(),
            "fournisseur": self.facture.nom_fournisseur,
            "montant_ttc": self.facture.montant_ttc.to_cents() if self.facture.montant_ttc else None,
            "transaction_amount": self.transaction.amount.to_cents(),
            "transaction_description": self.transaction.description,
        }


@dataclass
class MatchingResult:
    """
    Outcome of one matching run.

    auto_matched and suggestions are sorted by descending confidence.
    unmatched_transactions only lists expense transactions.
    """

    auto_matched: list[MatchSuggestion] = field(default_factory=list)
    suggestions: list[MatchSuggestion] = field(default_factory=list)
    unmatched_factures: list[Invoice] = field(default_factory=list)
    unmatched_transactions: list[Transaction] = field(default_factory=list)

    @property
    def matched_pairs(self) -> list[tuple[str, str]]:
        """All proposed pairs (auto first) as (facture_id, transaction_id)."""
        return [m.pair for m in self.auto_matched] + [m.pair for m in self.suggestions]

    @property
    def all_matches(self) -> list[MatchSuggestion]:
        """Auto matches followed by suggestions."""
        return self.auto_matched + self.suggestions

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for JSON output."""
        return {
            "auto_matched": [m.to_dict() for m in self.auto_matched],
            "suggestions": [m.to_dict() for m in self.suggestions],
            "unmatched_factures": [f.id for f in self.unmatched_factures],
            "unmatched_transactions": [t.id for t in self.unmatched_transactions],
            "summary": {
                "auto_matched": len(self.auto_matched),
                "suggestions": len(self.suggestions),
                "unmatched_factures": len(self.unmatched_factures),
                "unmatched_transactions": len(self.unmatched_transactions),
            },
        }
