#!/usr/bin/env python3
"""
Similarity Primitives

Pure scoring functions shared by the match scorer. Every score is an integer
in [0, 100]. Bands are deliberately coarse so that OCR noise on dates and
amounts moves a candidate between a handful of stable values.
"""

from rapidfuzz.distance import Levenshtein

from ..core.currency import percent_difference_basis_points, percent_to_basis_points, round_half_up
from ..core.dates import FinancialDate
from ..core.money import Money

NEUTRAL_DESCRIPTION_SCORE = 50


def _normalize(text: str | None) -> str:
    return (text or "").strip().casefold()


def string_similarity(a: str | None, b: str | None) -> int:
    """
    Levenshtein similarity as a percentage.

    100 × (1 − distance / max(len_a, len_b)) on case-folded, trimmed strings.
    Blank input on either side scores 0, so two empty labels never look alike.

    Args:
        a: First string
        b: Second string

    Returns:
        Similarity between 0 and 100
    """
    s1 = _normalize(a)
    s2 = _normalize(b)
    if not s1 or not s2:
        return 0

    distance = Levenshtein.distance(s1, s2)
    max_len = max(len(s1), len(s2))
    return round_half_up(100 * (max_len - distance), max_len)


def score_date_match(
    invoice_date: FinancialDate | None,
    transaction_date: FinancialDate | None,
    window_days: int = 7,
) -> int:
    """
    Score temporal proximity between an invoice and a transaction.

    0 days → 100, ≤1 → 95, ≤3 → 80, ≤5 → 70, ≤window → 60, beyond → 0.

    Args:
        invoice_date: Invoice date (or creation date fallback)
        transaction_date: Bank transaction date
        window_days: Maximum accepted distance in days

    Returns:
        Date score
    """
    if invoice_date is None or transaction_date is None:
        return 0

    diff_days = invoice_date.days_between(transaction_date)

    if diff_days > window_days:
        return 0
    if diff_days == 0:
        return 100
    if diff_days <= 1:
        return 95
    if diff_days <= 3:
        return 80
    if diff_days <= 5:
        return 70
    return 60


def score_amount_match(
    invoice_ttc: Money | None,
    transaction_amount: Money,
    tolerance_pct: float = 2.0,
) -> int:
    """
    Score amount proximity between an invoice total and a transaction.

    Absolute values are compared so the expense sign convention does not
    matter. Exact → 100, ≤0.5% → 98, ≤1% → 95, ≤tolerance → 85, beyond → 0.
    Both zero is a perfect match; exactly one zero scores 0. A missing TTC
    counts as zero.

    Args:
        invoice_ttc: Invoice total including VAT
        transaction_amount: Signed transaction amount
        tolerance_pct: Maximum relative difference in percent

    Returns:
        Amount score
    """
    invoice_cents = invoice_ttc.to_cents() if invoice_ttc is not None else 0
    tx_cents = transaction_amount.to_cents()

    diff_bp = percent_difference_basis_points(invoice_cents, tx_cents)
    if diff_bp is None:
        return 100
    if invoice_cents == 0 or tx_cents == 0:
        return 0

    tolerance_bp = percent_to_basis_points(tolerance_pct)

    if diff_bp > tolerance_bp:
        return 0
    if diff_bp == 0:
        return 100
    if diff_bp <= 50:
        return 98
    if diff_bp <= 100:
        return 95
    return 85


def score_description_match(supplier_name: str | None, description: str | None) -> int:
    """
    Score how well a bank label names the invoice's supplier.

    No supplier → neutral 50. Either string containing the other → 100.
    Otherwise the Levenshtein similarity of the two.

    Args:
        supplier_name: Supplier name read from the invoice
        description: Bank transaction label

    Returns:
        Description score
    """
    supplier = _normalize(supplier_name)
    if not supplier:
        return NEUTRAL_DESCRIPTION_SCORE

    label = _normalize(description)
    if label and (supplier in label or label in supplier):
        return 100

    return string_similarity(supplier, label)
