"""
FiscalCalendar tests.
"""

from datetime import date

import pytest

from ledger_kernel.domain.fiscal import FiscalCalendar


class TestAprilStart:
    calendar = FiscalCalendar(start_month=4)

    @pytest.mark.parametrize(
        "day, label, period",
        [
            (date(2024, 4, 1), "2024-25", 1),
            (date(2024, 12, 31), "2024-25", 9),
            (date(2025, 3, 31), "2024-25", 12),
            (date(2025, 4, 1), "2025-26", 1),
            (date(1999, 6, 1), "1999-00", 3),
        ],
    )
    def test_label_and_period(self, day, label, period):
        assert self.calendar.financial_year(day) == label
        assert self.calendar.period_month(day) == period

    def test_year_bounds(self):
        assert self.calendar.year_bounds("2024-25") == (date(2024, 4, 1), date(2025, 3, 31))

    def test_sequence_key(self):
        assert self.calendar.sequence_key("2024-25") == "202425"

    @pytest.mark.parametrize("label", ["2024-26", "24-25", "2024-xx", "abcd"])
    def test_malformed_labels(self, label):
        with pytest.raises(ValueError):
            self.calendar.parse_start_year(label)


class TestJanuaryStart:
    calendar = FiscalCalendar(start_month=1)

    def test_calendar_year_label(self):
        assert self.calendar.financial_year(date(2024, 6, 15)) == "2024"
        assert self.calendar.period_month(date(2024, 6, 15)) == 6

    def test_year_bounds(self):
        assert self.calendar.year_bounds("2024") == (date(2024, 1, 1), date(2024, 12, 31))


def test_invalid_start_month():
    with pytest.raises(ValueError):
        FiscalCalendar(start_month=0)
