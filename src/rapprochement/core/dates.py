#!/usr/bin/env python3
"""
FinancialDate Primitive Type

Immutable date wrapper with consistent formatting for financial operations.
Provides standardized date handling across bank imports, OCR output and stored records.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

_ACCEPTED_FORMATS = ("%Y-%m-%d", "%d/%m/%Y", "%d-%m-%Y", "%d.%m.%Y")


@dataclass(frozen=True, order=True)
class FinancialDate:
    """Calendar date of a bank operation or invoice, ordered and hashable."""

    date: date

    @classmethod
    def from_string(cls, date_str: str, format: str | None = None) -> "FinancialDate":
        """
        Parse from string.

        ISO dates and ISO timestamps ("2024-03-01T10:12:00Z") are accepted, as
        well as the French day-first formats found in bank exports.

        Args:
            date_str: Date string to parse
            format: Explicit strptime format (default: try the accepted formats)

        Returns:
            FinancialDate object

        Raises:
            ValueError: If no format matches
        """
        text = date_str.strip()
        if format is not None:
            return cls(date=datetime.strptime(text, format).date())

        # Timestamps from the hosted database carry a time part
        if "T" in text:
            text = text.split("T", 1)[0]

        for fmt in _ACCEPTED_FORMATS:
            try:
                return cls(date=datetime.strptime(text, fmt).date())
            except ValueError:
                continue
        raise ValueError(f"Unrecognized date: {date_str!r}")

    @classmethod
    def from_value(cls, value: Any) -> "FinancialDate | None":
        """
        Build from any date-like value, returning None for blanks.

        Handles strings, date/datetime objects and pandas Timestamps (which are
        datetime subclasses). NaT and NaN come through as "missing".

        Args:
            value: Date-like value

        Returns:
            FinancialDate, or None when the value is missing

        Raises:
            ValueError: If a non-empty string cannot be parsed
        """
        if value is None:
            return None
        if isinstance(value, FinancialDate):
            return value
        if isinstance(value, datetime):
            if value != value:  # NaT
                return None
            return cls(date=value.date())
        if isinstance(value, date):
            return cls(date=value)
        if isinstance(value, float) and value != value:
            return None
        text = str(value).strip()
        if not text or text.lower() in ("nan", "nat", "none", "null"):
            return None
        return cls.from_string(text)

    @classmethod
    def today(cls) -> "FinancialDate":
        """Get today's date."""
        return cls(date=date.today())

    def to_iso_string(self) -> str:
        """Format as YYYY-MM-DD."""
        return self.date.isoformat()

    def to_french_format(self) -> str:
        """Format as DD/MM/YYYY for messages shown to French users."""
        return self.date.strftime("%d/%m/%Y")

    def days_between(self, other: "FinancialDate") -> int:
        """
        Absolute number of days between two dates.

        Args:
            other: Other date

        Returns:
            Non-negative day count
        """
        return abs((other.date - self.date).days)

    def age_days(self, other: "FinancialDate | None" = None) -> int:
        """
        Calculate days between this date and another (or today).

        Args:
            other: Other date to compare to (default: today)

        Returns:
            Number of days difference
        """
        if other is None:
            other = FinancialDate.today()
        return (other.date - self.date).days

    def __str__(self) -> str:
        """String representation."""
        return self.to_iso_string()
