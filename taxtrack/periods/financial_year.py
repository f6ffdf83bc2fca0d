"""
Australian Financial Year Periods

The Australian financial year runs from 1 July to 30 June and is named after
the calendar year in which it ends:
- FY2026 = 1 July 2025 to 30 June 2026

Quarters (for BAS purposes):
- Q1: July - September
- Q2: October - December
- Q3: January - March
- Q4: April - June

Every calendar date falls in exactly one financial year and one quarter.

Usage:
    period_info_of(date(2025, 8, 15))
    # FYPeriod(financial_year=2026, quarter=Quarter.Q1,
    #          fy_label="FY2026", quarter_label="Q1 FY2026")
"""

from datetime import date, datetime
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from taxtrack.exceptions import InvalidPeriodError


# July, 1-indexed
FY_START_MONTH = 7


class Quarter(str, Enum):
    """BAS quarter within an Australian financial year."""
    Q1 = "Q1"  # Jul - Sep
    Q2 = "Q2"  # Oct - Dec
    Q3 = "Q3"  # Jan - Mar
    Q4 = "Q4"  # Apr - Jun


# (first month, last month, last day, in FY start year?)
_QUARTER_BOUNDS: dict[Quarter, tuple[int, int, int, bool]] = {
    Quarter.Q1: (7, 9, 30, True),
    Quarter.Q2: (10, 12, 31, True),
    Quarter.Q3: (1, 3, 31, False),
    Quarter.Q4: (4, 6, 30, False),
}


class FYPeriod(BaseModel):
    """Financial year and quarter for a date, with display labels."""

    model_config = ConfigDict(frozen=True)

    financial_year: int = Field(
        ...,
        description="Calendar year in which the FY ends"
    )
    quarter: Quarter
    fy_label: str = Field(
        ...,
        description="e.g. FY2026"
    )
    quarter_label: str = Field(
        ...,
        description="e.g. Q1 FY2026"
    )


class QuarterDateRange(BaseModel):
    """Inclusive date range of a quarter."""

    model_config = ConfigDict(frozen=True)

    quarter: Quarter
    financial_year: int
    start_date: date
    end_date: date

    @model_validator(mode='after')
    def validate_range(self) -> 'QuarterDateRange':
        if self.end_date < self.start_date:
            raise ValueError("Quarter end cannot be before start")
        return self

    def contains(self, value: Union[date, datetime]) -> bool:
        return self.start_date <= _as_date(value) <= self.end_date


def _as_date(value: Union[date, datetime]) -> date:
    # datetime is a subclass of date, so check it first
    if isinstance(value, datetime):
        return value.date()
    return value


def parse_quarter(value: Union[str, Quarter]) -> Quarter:
    """
    Parse a quarter label such as "q3" or "Q3".

    Raises:
        InvalidPeriodError: For anything other than Q1-Q4.
    """
    if isinstance(value, Quarter):
        return value
    normalized = str(value).strip().upper()
    try:
        return Quarter(normalized)
    except ValueError:
        raise InvalidPeriodError(
            f'Invalid quarter "{value}". Must be Q1, Q2, Q3, or Q4.',
            details={"quarter": str(value)},
        ) from None


def financial_year_of(value: Union[date, datetime]) -> int:
    """
    Financial year containing a date.

    financial_year_of(date(2025, 6, 30))  # 2025
    financial_year_of(date(2025, 7, 1))   # 2026
    """
    d = _as_date(value)
    if d.month >= FY_START_MONTH:
        return d.year + 1
    return d.year


def quarter_of(value: Union[date, datetime]) -> Quarter:
    """BAS quarter containing a date."""
    month = _as_date(value).month
    if 7 <= month <= 9:
        return Quarter.Q1
    if 10 <= month <= 12:
        return Quarter.Q2
    if 1 <= month <= 3:
        return Quarter.Q3
    return Quarter.Q4


def period_info_of(value: Union[date, datetime]) -> FYPeriod:
    """Financial year, quarter and display labels for a date."""
    financial_year = financial_year_of(value)
    quarter = quarter_of(value)
    fy_label = f"FY{financial_year}"
    return FYPeriod(
        financial_year=financial_year,
        quarter=quarter,
        fy_label=fy_label,
        quarter_label=f"{quarter.value} {fy_label}",
    )


def quarter_date_range(quarter: Union[str, Quarter], financial_year: int) -> QuarterDateRange:
    """
    Start and end dates (inclusive) of a quarter.

    quarter_date_range("Q1", 2026)  # 2025-07-01 .. 2025-09-30
    quarter_date_range("Q3", 2026)  # 2026-01-01 .. 2026-03-31
    """
    q = parse_quarter(quarter)
    first_month, last_month, last_day, in_start_year = _QUARTER_BOUNDS[q]
    year = financial_year - 1 if in_start_year else financial_year
    return QuarterDateRange(
        quarter=q,
        financial_year=financial_year,
        start_date=date(year, first_month, 1),
        end_date=date(year, last_month, last_day),
    )


def is_date_in_quarter(
    value: Union[date, datetime],
    quarter: Union[str, Quarter],
    financial_year: int,
) -> bool:
    """Check whether a date falls inside a quarter of a financial year."""
    return quarter_date_range(quarter, financial_year).contains(value)


def quarters_for_year(financial_year: int) -> list[QuarterDateRange]:
    """All four quarters of a financial year, Q1 first."""
    return [quarter_date_range(q, financial_year) for q in Quarter]


def financial_year_range(financial_year: int) -> tuple[date, date]:
    """First and last day of a financial year."""
    return date(financial_year - 1, 7, 1), date(financial_year, 6, 30)


def current_period_info(today: Optional[date] = None) -> FYPeriod:
    """Period info for today (or for the date given)."""
    return period_info_of(today or date.today())
