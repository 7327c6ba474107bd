#!/usr/bin/env python3
"""
Money Primitive Type

Immutable currency value wrapper that uses integer euro cents internally.
Prevents floating-point errors and provides type-safe currency operations.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from .currency import (
    cents_to_euros_decimal,
    cents_to_euros_str,
    format_cents,
    parse_euros_to_cents,
)


@dataclass(frozen=True, order=True)
class Money:
    """
    Immutable money value in euro cents.

    Signed: bank debits are negative. Arithmetic and ordering stay in
    integers, and equal amounts hash alike so Money can key a dict.

    Examples:
        >>> income = Money.from_cents(123456)
        >>> str(income)
        '1 234,56 €'

        >>> expense = Money.from_euros("-118,50")
        >>> expense.to_cents()
        -11850

        >>> expense.abs()
        Money(cents=11850)
    """

    cents: int

    @classmethod
    def from_cents(cls, cents: int) -> "Money":
        """Create Money from cents."""
        return cls(cents=int(cents))

    @classmethod
    def from_euros(cls, euros: str | int | float | Decimal) -> "Money":
        """
        Parse from a euro amount such as "1 234,56 €", "120.00" or -118.5.

        Args:
            euros: Amount in euros

        Returns:
            Money object

        Raises:
            ValueError: If the amount cannot be parsed
        """
        return cls(cents=parse_euros_to_cents(euros))

    @classmethod
    def zero(cls) -> "Money":
        """Zero euros."""
        return cls(cents=0)

    def to_cents(self) -> int:
        """Get value in cents."""
        return self.cents

    def to_decimal(self) -> Decimal:
        """Get exact value in euros."""
        return cents_to_euros_decimal(self.cents)

    def to_euros(self) -> float:
        """Get value in euros as a float, for JSON output and reports only."""
        return float(self.to_decimal())

    def to_euros_str(self) -> str:
        """Get plain euro string like '-118.50'."""
        return cents_to_euros_str(self.cents)

    def abs(self) -> "Money":
        """Return absolute value of Money."""
        return Money(cents=abs(self.cents))

    def is_zero(self) -> bool:
        """Check for a zero amount."""
        return self.cents == 0

    def __add__(self, other: "Money") -> "Money":
        """Add two Money objects."""
        return Money(cents=self.cents + other.cents)

    def __sub__(self, other: "Money") -> "Money":
        """Subtract two Money objects."""
        return Money(cents=self.cents - other.cents)

    def __mul__(self, scalar: int) -> "Money":
        """Multiply Money by integer scalar."""
        return Money(cents=self.cents * scalar)

    def __neg__(self) -> "Money":
        """Negate."""
        return Money(cents=-self.cents)

    def __str__(self) -> str:
        """Format as French euro string."""
        return format_cents(self.cents)


def money_or_none(cents: Any) -> Money | None:
    """Rebuild an optional Money from its persisted cents value."""
    if cents is None:
        return None
    return Money.from_cents(int(cents))


def cents_or_none(money: Money | None) -> int | None:
    """Persist an optional Money as cents."""
    return money.to_cents() if money is not None else None
