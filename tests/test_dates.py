"""Tests for date arithmetic and heading labels."""

from datetime import date, datetime

import pytest

from org_diary.dates import (
    date_triple,
    heading_label,
    label_date,
    label_month,
    label_year,
    link_label,
    logical_date,
    month_label,
    triple_to_date,
)
from org_diary.models import Instant


class TestLogicalDate:
    """Tests for logical_date."""

    def test_late_night_counts_for_previous_day(self):
        result = logical_date(Instant.at(datetime(2014, 12, 31, 2, 30)), 3 * 3600)
        assert result.day == date(2014, 12, 30)

    def test_after_threshold_same_day(self):
        result = logical_date(Instant.at(datetime(2014, 12, 31, 3, 30)), 3 * 3600)
        assert result.day == date(2014, 12, 31)

    def test_exactly_at_threshold_same_day(self):
        result = logical_date(Instant.at(datetime(2014, 12, 31, 3, 0)), 3 * 3600)
        assert result.day == date(2014, 12, 31)

    def test_crosses_year_boundary(self):
        result = logical_date(Instant.at(datetime(2015, 1, 1, 1, 0)), 3 * 3600)
        assert result.day == date(2014, 12, 31)

    def test_zero_threshold(self):
        result = logical_date(Instant.at(datetime(2014, 12, 31, 0, 1)), 0)
        assert result.day == date(2014, 12, 31)

    def test_keeps_precision(self):
        assert logical_date(Instant.on(date(2014, 12, 31))).has_time is False


class TestDateTriple:
    """Tests for the (month, day, year) key."""

    def test_order(self):
        assert date_triple(Instant.on(date(2014, 12, 31))) == (12, 31, 2014)

    def test_back_to_date(self):
        assert triple_to_date((2, 1, 2015)) == date(2015, 2, 1)


class TestLabels:
    """Tests for heading and link labels."""

    def test_heading_label(self):
        assert heading_label(date(2014, 12, 31)) == "2014-12-31 Wednesday"

    def test_month_label(self):
        assert month_label(2014, 12) == "2014-12 December"

    def test_link_label(self):
        assert link_label(date(2014, 12, 31)) == "31.12.2014"

    def test_label_date(self):
        assert label_date("2014-12-31 Wednesday") == date(2014, 12, 31)

    def test_label_date_without_weekday(self):
        assert label_date("2014-12-31") == date(2014, 12, 31)

    @pytest.mark.parametrize("title", ["2014-12 December", "2014", "Notes", "2014-02-30 Sunday"])
    def test_label_date_rejects(self, title):
        assert label_date(title) is None

    def test_label_month(self):
        assert label_month("2014-12 December") == (2014, 12)

    def test_label_month_rejects_day(self):
        assert label_month("2014-12-31 Wednesday") is None

    def test_label_year(self):
        assert label_year("2014") == 2014
        assert label_year("2014-12 December") is None
