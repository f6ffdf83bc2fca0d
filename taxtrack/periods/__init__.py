"""Financial year period package."""

from taxtrack.periods.financial_year import (
    FYPeriod,
    Quarter,
    QuarterDateRange,
    current_period_info,
    financial_year_of,
    financial_year_range,
    is_date_in_quarter,
    parse_quarter,
    period_info_of,
    quarter_date_range,
    quarter_of,
    quarters_for_year,
)

__all__ = [
    "FYPeriod",
    "Quarter",
    "QuarterDateRange",
    "current_period_info",
    "financial_year_of",
    "financial_year_range",
    "is_date_in_quarter",
    "parse_quarter",
    "period_info_of",
    "quarter_date_range",
    "quarter_of",
    "quarters_for_year",
]
