"""Tests for year range expansion."""

from datetime import date, datetime

import pytest

from covertrend.analysis.temporal import expand_years, year_time_range


class TestExpandYears:
    """Tests for expand_years()."""

    @pytest.mark.unit
    def test_inclusive_range(self) -> None:
        assert expand_years(date(1990, 1, 1), date(2023, 12, 31)) == list(range(1990, 2024))

    @pytest.mark.unit
    def test_partial_years_touched(self) -> None:
        assert expand_years("2000-06-15", "2002-02-01") == [2000, 2001, 2002]

    @pytest.mark.unit
    def test_single_year(self) -> None:
        assert expand_years("2001-01-01", "2001-12-31") == [2001]

    @pytest.mark.unit
    def test_end_before_start_is_empty(self) -> None:
        assert expand_years("2005-01-01", "2004-12-31") == []

    @pytest.mark.unit
    def test_years_are_ints(self) -> None:
        years = expand_years(datetime(2000, 3, 1, 12), "2001-01-01T00:00:00")
        assert years == [2000, 2001]
        assert all(type(y) is int for y in years)


class TestYearTimeRange:
    @pytest.mark.unit
    def test_full_calendar_year(self) -> None:
        assert year_time_range(2000) == ("2000-01-01", "2000-12-31")

    @pytest.mark.unit
    def test_zero_padded(self) -> None:
        assert year_time_range(850) == ("0850-01-01", "0850-12-31")
