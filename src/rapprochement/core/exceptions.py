#!/usr/bin/env python3
"""
Reconciliation Exceptions

Errors raised by the reconciliation engine. Scoring never raises on noisy
input; these cover the few genuine failure modes.
"""


class ReconciliationError(Exception):
    """Base class for reconciliation engine errors."""


class ReconciliationTimeoutError(ReconciliationError, TimeoutError):
    """Raised when a matching run exceeds its configured deadline."""

    def __init__(self, elapsed_seconds: float, limit_seconds: float):
        self.elapsed_seconds = elapsed_seconds
        self.limit_seconds = limit_seconds
        super().__init__(
            f"Matching exceeded its deadline: {elapsed_seconds:.2f}s elapsed (limit {limit_seconds:.2f}s)"
        )


class MatchConflictError(ReconciliationError):
    """Raised when a manual match would break one-to-one exclusivity."""
