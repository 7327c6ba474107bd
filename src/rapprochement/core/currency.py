#!/usr/bin/env python3
"""
Currency Conversion and Handling Utilities

Euro amount handling for the reconciliation engine.
All financial calculations use integer arithmetic to avoid floating-point errors.

Currency Systems:
- Bank exports and OCR output use euros: "1 234,56 €", "120.00", -118.5
- Internal calculations use cents: 100 cents = 1,00 €
- Display uses French formatting: "1 234,56 €"

Key Principles:
- Never use floating-point arithmetic for currency calculations
- Convert external values through Decimal, never through float multiplication
- Percent comparisons are done on integer cents
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Union

_CURRENCY_SYMBOLS = ("€", "EUR", "eur")


def _clean_amount_string(amount_str: str) -> str:
    """
    Normalize a French or English formatted amount string for Decimal parsing.

    Handles thousands separators (space, narrow no-break space, dot or comma)
    and a comma or dot decimal separator.
    """
    clean = amount_str.strip()
    for symbol in _CURRENCY_SYMBOLS:
        clean = clean.replace(symbol, "")
    clean = clean.replace(" ", "").replace("\xa0", "").replace(" ", "")

    if "," in clean and "." in clean:
        # The right-most separator is the decimal one
        if clean.rfind(",") > clean.rfind("."):
            clean = clean.replace(".", "").replace(",", ".")
        else:
            clean = clean.replace(",", "")
    elif "," in clean:
        clean = clean.replace(",", ".")

    return clean


def parse_euros_to_cents(euros: Union[str, int, float, Decimal]) -> int:
    """
    Parse a euro amount to integer cents.

    Floats are converted through their shortest string representation so that
    118.5 becomes 11850 and 0.29 becomes 29 (not 28).

    Args:
        euros: Amount like "1 234,56 €", "120.00", 42 or -118.5

    Returns:
        Amount in cents, rounded half-up to the cent

    Raises:
        ValueError: If the value cannot be parsed

    Examples:
        parse_euros_to_cents("1 234,56 €") -> 123456
        parse_euros_to_cents(-118.5) -> -11850
        parse_euros_to_cents(12) -> 1200
    """
    if isinstance(euros, bool):
        raise ValueError(f"Invalid euro amount: {euros!r}")
    if isinstance(euros, int):
        return euros * 100

    try:
        if isinstance(euros, Decimal):
            decimal_amount = euros
        elif isinstance(euros, float):
            decimal_amount = Decimal(repr(euros))
        else:
            clean = _clean_amount_string(str(euros))
            if not clean:
                raise ValueError(f"Empty euro amount: {euros!r}")
            decimal_amount = Decimal(clean)
        cents = (decimal_amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    except InvalidOperation as e:
        raise ValueError(f"Invalid euro amount: {euros!r}") from e

    return int(cents)


def safe_currency_to_cents(value: Any) -> int | None:
    """
    Safely convert an external amount to cents.

    OCR and bank exports are noisy: blanks, "N/A" and NaN are treated as
    missing rather than as errors.

    Args:
        value: Amount as string, number or None

    Returns:
        Integer cents, or None for missing or unparseable input

    Examples:
        safe_currency_to_cents('45,99 €') -> 4599
        safe_currency_to_cents('') -> None
        safe_currency_to_cents(float('nan')) -> None
    """
    if value is None:
        return None
    if isinstance(value, float) and value != value:  # NaN from pandas
        return None
    if isinstance(value, str) and value.strip().lower() in ("", "nan", "none", "null", "n/a"):
        return None

    try:
        return parse_euros_to_cents(value)
    except (ValueError, TypeError, OverflowError):
        return None


def cents_to_euros_str(cents: int) -> str:
    """
    Convert cents to a plain euro string using pure integer arithmetic.

    Args:
        cents: Amount in cents

    Returns:
        Decimal string with a dot separator

    Example:
        cents_to_euros_str(-11850) -> "-118.50"
    """
    is_negative = cents < 0
    abs_cents = abs(int(cents))

    euros = abs_cents // 100
    remainder = abs_cents % 100

    if is_negative:
        return f"-{euros}.{remainder:02d}"
    return f"{euros}.{remainder:02d}"


def cents_to_euros_decimal(cents: int) -> Decimal:
    """Convert cents to an exact Decimal euro value."""
    return Decimal(int(cents)) / Decimal(100)


def format_cents(cents: int) -> str:
    """
    Format cents for display with French conventions.

    Example:
        format_cents(123456) -> "1 234,56 €"
    """
    is_negative = cents < 0
    abs_cents = abs(int(cents))
    euros = abs_cents // 100
    remainder = abs_cents % 100

    grouped = f"{euros:,}".replace(",", " ")
    sign = "-" if is_negative else ""
    return f"{sign}{grouped},{remainder:02d} €"


def percent_difference_basis_points(a_cents: int, b_cents: int) -> int | None:
    """
    Relative difference between two amounts in hundredths of a percent.

    The difference is taken against the larger absolute value, so the result
    is symmetric. 150 basis points == 1.5%.

    Args:
        a_cents: First amount in cents (sign ignored)
        b_cents: Second amount in cents (sign ignored)

    Returns:
        Difference in basis points (rounded up so that tolerances stay strict),
        or None when both amounts are zero
    """
    a_abs = abs(a_cents)
    b_abs = abs(b_cents)
    max_val = max(a_abs, b_abs)
    if max_val == 0:
        return None
    diff = abs(a_abs - b_abs)
    # Ceiling division keeps 100.01 bp from collapsing onto a 100 bp band
    return -(-diff * 10000 // max_val)


def percent_to_basis_points(pct: Union[int, float, Decimal]) -> int:
    """Convert a percent tolerance to basis points (2.5 -> 250), half-up."""
    return int((Decimal(str(pct)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def round_half_up(numerator: int, denominator: int = 1) -> int:
    """
    Integer division rounded half away from zero.

    Python's round() uses banker's rounding; scores and percentages are
    rounded the way the accounting team reads them (76.5 -> 77).

    Args:
        numerator: Dividend
        denominator: Positive divisor

    Returns:
        Rounded integer quotient
    """
    if denominator <= 0:
        raise ValueError("denominator must be positive")
    if numerator < 0:
        return -round_half_up(-numerator, denominator)
    return (2 * numerator + denominator) // (2 * denominator)
