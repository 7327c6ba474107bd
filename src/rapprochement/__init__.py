"""
Rapprochement - Bank Transaction and Invoice Reconciliation Engine

Matches supplier invoices ("factures") to bank transactions, learns the
bank-side footprint of recurring suppliers and flags anomalies (duplicates,
orphans, VAT inconsistencies, unusual amounts) for review.

Domain Packages:
- core: Money, dates, currency parsing, models, configuration
- matching: Similarity scoring, invoice matcher, supplier history learning
- anomalies: Anomaly detector
- reconciliation: Orchestrator, storage, review operations, statistics
- cli: Command-line interface

Example Usage:
    from rapprochement.matching import InvoiceMatcher
    from rapprochement.anomalies import AnomalyDetector
    from rapprochement.reconciliation import AutoMatchOrchestrator, JsonReconciliationStore
"""

__version__ = "0.1.0"
__author__ = "Rapprochement contributors"

# Export core utilities for easy access
from .core.config import Environment, MatchingConfig, get_config
from .core.models import Invoice, Transaction, TransactionType
from .core.money import Money

__all__ = [
    # Configuration
    "Environment",
    # Core models
    "Invoice",
    "MatchingConfig",
    "Money",
    "Transaction",
    "TransactionType",
    "get_config",
]
