"""
Fiscal calendar arithmetic.

A financial year is labelled by its starting calendar year and the last two
digits of the following one: with an April start, 2024-04-01 through
2025-03-31 is "2024-25".  When the year starts in January the label is just
the calendar year ("2024").
"""

from dataclasses import dataclass
from datetime import date, timedelta


@dataclass(frozen=True)
class FiscalCalendar:
    """
    Maps journal dates to financial year labels and period months.

    Contract:
        period_month is 1 for the first month of the financial year and
        12 for the last.
    """

    start_month: int = 4

    def __post_init__(self) -> None:
        if not 1 <= self.start_month <= 12:
            raise ValueError(f"start_month must be 1-12, got {self.start_month}")

    def start_year_of(self, day: date) -> int:
        return day.year if day.month >= self.start_month else day.year - 1

    def financial_year(self, day: date) -> str:
        start_year = self.start_year_of(day)
        if self.start_month == 1:
            return f"{start_year}"
        return f"{start_year}-{(start_year + 1) % 100:02d}"

    def period_month(self, day: date) -> int:
        return ((day.month - self.start_month) % 12) + 1

    def parse_start_year(self, financial_year: str) -> int:
        """
        Starting calendar year of a label such as "2024-25" or "2024".

        Raises:
            ValueError: if the label is malformed or inconsistent.
        """
        head, sep, tail = financial_year.partition("-")
        if not head.isdigit() or len(head) != 4:
            raise ValueError(f"Malformed financial year: {financial_year!r}")
        start_year = int(head)
        if sep:
            if not tail.isdigit() or int(tail) % 100 != (start_year + 1) % 100:
                raise ValueError(f"Malformed financial year: {financial_year!r}")
        return start_year

    def year_bounds(self, financial_year: str) -> tuple[date, date]:
        """First and last day of the financial year."""
        start_year = self.parse_start_year(financial_year)
        first = date(start_year, self.start_month, 1)
        if self.start_month == 1:
            next_first = date(start_year + 1, 1, 1)
        else:
            next_first = date(start_year + 1, self.start_month, 1)
        return first, next_first - timedelta(days=1)

    def sequence_key(self, financial_year: str) -> str:
        """Digits-only form used in journal numbers: "2024-25" -> "202425"."""
        return financial_year.replace("-", "")
