#!/usr/bin/env python3
"""Tests for FinancialDate primitive type."""

from datetime import date, datetime

import pandas as pd
import pytest

from rapprochement.core.dates import FinancialDate


class TestFinancialDateParsing:
    """Test FinancialDate construction."""

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "text",
        ["2024-03-01", "01/03/2024", "01-03-2024", "01.03.2024", "2024-03-01T10:12:00Z"],
    )
    def test_accepted_formats(self, text):
        """Test ISO, timestamp and French day-first formats."""
        assert FinancialDate.from_string(text).date == date(2024, 3, 1)

    @pytest.mark.unit
    def test_explicit_format(self):
        """Test an explicit strptime format."""
        assert FinancialDate.from_string("20240301", format="%Y%m%d").date == date(2024, 3, 1)

    @pytest.mark.unit
    def test_unrecognized(self):
        """Test garbage raises ValueError."""
        with pytest.raises(ValueError):
            FinancialDate.from_string("mars 2024")

    @pytest.mark.unit
    @pytest.mark.parametrize("value", [None, "", "nan", float("nan"), pd.NaT])
    def test_from_value_missing(self, value):
        """Test missing values become None."""
        assert FinancialDate.from_value(value) is None

    @pytest.mark.unit
    def test_from_value_objects(self):
        """Test date, datetime and pandas Timestamp inputs."""
        assert FinancialDate.from_value(date(2024, 3, 1)).date == date(2024, 3, 1)
        assert FinancialDate.from_value(datetime(2024, 3, 1, 9, 30)).date == date(2024, 3, 1)
        assert FinancialDate.from_value(pd.Timestamp("2024-03-01")).date == date(2024, 3, 1)


class TestFinancialDateOperations:
    """Test date arithmetic and formatting."""

    @pytest.mark.unit
    def test_days_between_is_absolute(self):
        """Test day distance ignores direction."""
        a = FinancialDate.from_string("2024-03-01")
        b = FinancialDate.from_string("2024-03-04")
        assert a.days_between(b) == 3
        assert b.days_between(a) == 3

    @pytest.mark.unit
    def test_age_days(self):
        """Test signed age against another date."""
        a = FinancialDate.from_string("2024-03-01")
        assert a.age_days(FinancialDate.from_string("2024-03-11")) == 10

    @pytest.mark.unit
    def test_formats(self):
        """Test ISO and French output."""
        d = FinancialDate.from_string("2024-03-01")
        assert d.to_iso_string() == "2024-03-01"
        assert d.to_french_format() == "01/03/2024"
        assert str(d) == "2024-03-01"

    @pytest.mark.unit
    def test_ordering(self):
        """Test comparisons."""
        earlier = FinancialDate.from_string("2024-03-01")
        later = FinancialDate.from_string("2024-03-02")
        assert earlier < later
        assert later >= earlier
        assert earlier == FinancialDate.from_string("01/03/2024")
