"""
Core Utilities Package

Shared primitives used across the reconciliation engine.

This package provides:
- Currency handling with integer euro cents for precision
- Money and FinancialDate value types
- Transaction and Invoice models
- Configuration management for environment-specific settings
- Engine exceptions
"""

from .config import (
    Config,
    Environment,
    MatchingConfig,
    get_config,
    get_tenants_dir,
    load_matching_config,
    reload_config,
)
from .currency import (
    cents_to_euros_str,
    format_cents,
    parse_euros_to_cents,
    percent_difference_basis_points,
    round_half_up,
    safe_currency_to_cents,
)
from .dates import FinancialDate
from .exceptions import (
    MatchConflictError,
    ReconciliationError,
    ReconciliationTimeoutError,
)
from .models import (
    Invoice,
    Transaction,
    TransactionType,
    ValidationStatus,
)
from .money import Money

__all__ = [
    # Configuration
    "Config",
    "Environment",
    "FinancialDate",
    # Data models
    "Invoice",
    "MatchConflictError",
    "MatchingConfig",
    "Money",
    # Exceptions
    "ReconciliationError",
    "ReconciliationTimeoutError",
    "Transaction",
    "TransactionType",
    "ValidationStatus",
    # Currency utilities
    "cents_to_euros_str",
    "format_cents",
    "get_config",
    "get_tenants_dir",
    "load_matching_config",
    "parse_euros_to_cents",
    "percent_difference_basis_points",
    "reload_config",
    "round_half_up",
    "safe_currency_to_cents",
]
