#!/usr/bin/env python3
"""
Supplier History - Learning Engine

Accumulates, per normalized supplier name, what confirmed matches looked like
on the bank side: significant words of the transaction label, IBAN-like
references and the running average amount. The scorer turns this into a
small boost so recurring suppliers match better over time without manual
rules.

Updates are pure: update_supplier_history() returns a new record and leaves
the loaded snapshot untouched. The orchestrator persists the result.
"""

import re
import unicodedata
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any

from ..core.currency import percent_difference_basis_points, percent_to_basis_points, round_half_up
from ..core.models import Transaction
from ..core.money import Money

MAX_PATTERNS = 20
MAX_LEARNED_TRANSACTIONS = 500
MAX_PATTERN_WORDS = 4

LEGAL_FORMS = frozenset(
    {"sarl", "sas", "sasu", "sa", "eurl", "snc", "sci", "scop", "selarl", "eirl", "ei", "sca", "gie", "scm"}
)

# Bank operation words that carry no information about the counterparty
BANK_NOISE_WORDS = frozenset(
    {
        "vir", "virement", "viremt", "prlv", "prelevement", "prelev", "sepa", "sct", "sdd", "inst",
        "instantane", "cb", "carte", "paiement", "paie", "achat", "retrait", "dab", "ech", "echeance",
        "fact", "facture", "fac", "ref", "reference", "mandat", "rum", "emis", "recu", "de", "du",
        "des", "le", "la", "les", "pour", "par", "vers", "a", "au", "en", "frais", "commission",
    }
)

_IBAN_COMPACT = re.compile(r"\b[A-Z]{2}\d{2}[A-Z0-9]{10,30}\b")
_IBAN_SPACED = re.compile(r"\b[A-Z]{2}\d{2}(?: \d{4}){2,7}(?: \d{1,4})?\b")


def _strip_accents(text: str) -> str:
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(c for c in decomposed if not unicodedata.combining(c))


def _tokens(text: str | None) -> list[str]:
    """Case-folded, accent-free alphanumeric words."""
    if not text:
        return []
    clean = _strip_accents(text).casefold()
    return re.sub(r"[^0-9a-z]+", " ", clean).split()


def normalize_supplier_name(name: str | None) -> str:
    """
    Normalize a supplier name into a stable history key.

    Accents, punctuation and legal forms are dropped: "ACME S.A.R.L." and
    "Acme sarl" share the key "acme". A name made only of legal-form words
    keeps them rather than collapsing to an empty key.

    Args:
        name: Supplier name as read on the invoice

    Returns:
        Normalized key, empty string for a missing name
    """
    if not name:
        return ""
    # "S.A.R.L." -> "SARL" before tokenizing
    compact = re.sub(r"\b(?:[A-Za-z]\.){2,}", lambda m: m.group(0).replace(".", ""), name)
    words = _tokens(compact)
    significant = [w for w in words if w not in LEGAL_FORMS]
    return " ".join(significant or words)


def extract_description_pattern(description: str | None) -> str:
    """
    Extract the counterparty words from a bank label.

    "VIR SEPA ACME SARL FACT 2024-042" -> "acme sarl"

    Args:
        description: Bank transaction label

    Returns:
        Up to four significant words, empty if none remain
    """
    if not description:
        return ""
    without_ibans = _IBAN_SPACED.sub(" ", _IBAN_COMPACT.sub(" ", description.upper()))
    words = [
        w
        for w in _tokens(without_ibans)
        if w not in BANK_NOISE_WORDS and len(w) >= 2 and not any(c.isdigit() for c in w)
    ]
    return " ".join(words[:MAX_PATTERN_WORDS])


def extract_iban_patterns(description: str | None) -> list[str]:
    """
    Find IBAN-like references in a bank label.

    Args:
        description: Bank transaction label

    Returns:
        Upper-case IBANs without spaces, in order of appearance
    """
    if not description:
        return []
    upper = _strip_accents(description).upper()
    found = [m.group(0) for m in _IBAN_COMPACT.finditer(upper)]
    found.extend(m.group(0).replace(" ", "") for m in _IBAN_SPACED.finditer(upper))
    return list(dict.fromkeys(found))


def pattern_matches(pattern: str, description: str | None) -> bool:
    """Check that every word of a learned pattern appears in the label."""
    pattern_words = set(pattern.split())
    if not pattern_words:
        return False
    return pattern_words <= set(_tokens(description))


@dataclass(frozen=True)
class SupplierHistory:
    """
    Learned bank-side profile of one supplier.

    Pattern collections are tuples: a record is replaced, never edited.
    """

    supplier_normalized: str
    supplier_name: str
    transaction_patterns: tuple[str, ...] = ()
    iban_patterns: tuple[str, ...] = ()
    avg_amount: Money = field(default_factory=Money.zero)
    match_count: int = 0
    last_matched_at: str | None = None
    learned_transaction_ids: tuple[str, ...] = ()
    id: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SupplierHistory":
        """
        Create from a persisted dict.

        Accepts the external contract as well, where avg_amount is a euro
        number rather than cents (flagged by the absence of avg_amount_cents).
        """
        if "avg_amount_cents" in data:
            avg = Money.from_cents(data["avg_amount_cents"])
        else:
            avg = Money.from_euros(data.get("avg_amount", 0) or 0)

        name = data.get("supplier_name") or data.get("supplier_normalized", "")
        return cls(
            supplier_normalized=data.get("supplier_normalized") or normalize_supplier_name(name),
            supplier_name=name,
            transaction_patterns=tuple(data.get("transaction_patterns") or ()),
            iban_patterns=tuple(data.get("iban_patterns") or ()),
            avg_amount=avg,
            match_count=int(data.get("match_count", 0)),
            last_matched_at=data.get("last_matched_at"),
            learned_transaction_ids=tuple(data.get("learned_transaction_ids") or ()),
            id=data.get("id"),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for JSON persistence."""
        return {
            "id": self.id,
            "supplier_name": self.supplier_name,
            "supplier_normalized": self.supplier_normalized,
            "transaction_patterns": list(self.transaction_patterns),
            "iban_patterns": list(self.iban_patterns),
            "avg_amount_cents": self.avg_amount.to_cents(),
            "match_count": self.match_count,
            "last_matched_at": self.last_matched_at,
            "learned_transaction_ids": list(self.learned_transaction_ids),
        }


def index_histories(histories: Iterable[SupplierHistory]) -> dict[str, SupplierHistory]:
    """Index histories by normalized supplier key (last one wins)."""
    return {h.supplier_normalized: h for h in histories if h.supplier_normalized}


def find_history(histories: Iterable[SupplierHistory], supplier_name: str | None) -> SupplierHistory | None:
    """Find the history for a supplier name, if any."""
    key = normalize_supplier_name(supplier_name)
    if not key:
        return None
    return index_histories(histories).get(key)


def _append_bounded(existing: tuple[str, ...], new_items: Iterable[str], limit: int) -> tuple[str, ...]:
    items = list(existing)
    for item in new_items:
        if item and item not in items:
            items.append(item)
    return tuple(items[-limit:])


def update_supplier_history(
    histories: Iterable[SupplierHistory],
    supplier_name: str,
    transaction: Transaction,
    when: datetime | None = None,
) -> SupplierHistory:
    """
    Learn from one confirmed (invoice, transaction) pair.

    Returns the updated record for the supplier, or a new one for a first
    match. The running average uses the transaction magnitude:
    new_avg = (old_avg × old_count + amount) / (old_count + 1).
    Learning the same transaction twice returns the record unchanged.

    Args:
        histories: Current history snapshot
        supplier_name: Supplier name from the invoice
        transaction: Matched bank transaction
        when: Match timestamp (default: now)

    Returns:
        SupplierHistory to persist

    Raises:
        ValueError: If the supplier name normalizes to an empty key
    """
    key = normalize_supplier_name(supplier_name)
    if not key:
        raise ValueError(f"Cannot learn history for blank supplier name: {supplier_name!r}")

    current = index_histories(histories).get(key) or SupplierHistory(
        supplier_normalized=key,
        supplier_name=supplier_name,
    )

    if transaction.id in current.learned_transaction_ids:
        return current

    old_count = current.match_count
    new_avg_cents = round_half_up(
        current.avg_amount.to_cents() * old_count + transaction.abs_amount.to_cents(),
        old_count + 1,
    )
    pattern = extract_description_pattern(transaction.description)

    return replace(
        current,
        transaction_patterns=_append_bounded(current.transaction_patterns, [pattern], MAX_PATTERNS),
        iban_patterns=_append_bounded(
            current.iban_patterns, extract_iban_patterns(transaction.description), MAX_PATTERNS
        ),
        avg_amount=Money.from_cents(new_avg_cents),
        match_count=old_count + 1,
        last_matched_at=(when or datetime.now()).isoformat(timespec="seconds"),
        learned_transaction_ids=_append_bounded(
            current.learned_transaction_ids, [transaction.id], MAX_LEARNED_TRANSACTIONS
        ),
    )


def supplier_score(history: SupplierHistory, transaction: Transaction, tolerance_pct: float) -> int:
    """
    Score how strongly a transaction resembles a supplier's past payments.

    100 when the label contains a learned pattern or IBAN, 50 when only the
    amount sits within tolerance of the learned average, else 0.

    Args:
        history: Supplier history
        transaction: Candidate transaction
        tolerance_pct: Amount tolerance in percent

    Returns:
        Supplier score
    """
    if any(pattern_matches(p, transaction.description) for p in history.transaction_patterns):
        return 100

    ibans = set(extract_iban_patterns(transaction.description))
    if ibans and ibans & set(history.iban_patterns):
        return 100

    if history.match_count > 0 and not history.avg_amount.is_zero():
        diff_bp = percent_difference_basis_points(
            history.avg_amount.to_cents(), transaction.abs_amount.to_cents()
        )
        if diff_bp is not None and diff_bp <= percent_to_basis_points(tolerance_pct):
            return 50

    return 0
