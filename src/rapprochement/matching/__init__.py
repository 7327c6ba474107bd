"""
Invoice Matching Package

Pairs supplier invoices with bank expense transactions.

This package provides:
- Similarity primitives for amounts, dates and labels
- Weighted confidence scoring with a supplier-history boost
- One-to-one assignment (greedy or optimal) with auto/suggestion tiers
- Supplier history learning from confirmed matches
- CSV/JSON loading of bank and invoice exports

Key Components:
- similarity: Pure scoring functions
- scorer: Weighted match confidence
- matcher: Assignment of invoices to transactions
- history: Learning engine
"""

from .history import (
    SupplierHistory,
    extract_description_pattern,
    extract_iban_patterns,
    find_history,
    index_histories,
    normalize_supplier_name,
    supplier_score,
    update_supplier_history,
)
from .loader import (
    load_invoices,
    load_transactions,
)
from .matcher import (
    InvoiceMatcher,
)
from .models import (
    MatchingResult,
    MatchScore,
    MatchSuggestion,
    MatchType,
)
from .scorer import (
    MatchScorer,
)
from .similarity import (
    score_amount_match,
    score_date_match,
    score_description_match,
    string_similarity,
)

__all__ = [
    # Main matcher
    "InvoiceMatcher",
    # Match models
    "MatchScore",
    "MatchSuggestion",
    "MatchType",
    "MatchingResult",
    # Match scoring
    "MatchScorer",
    # Learning engine
    "SupplierHistory",
    "extract_description_pattern",
    "extract_iban_patterns",
    "find_history",
    "index_histories",
    # Data loading
    "load_invoices",
    "load_transactions",
    "normalize_supplier_name",
    # Similarity primitives
    "score_amount_match",
    "score_date_match",
    "score_description_match",
    "string_similarity",
    "supplier_score",
    "update_supplier_history",
]
