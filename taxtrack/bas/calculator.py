"""
BAS (Business Activity Statement) Summary

Calculates the Simpler BAS / Full BAS figures for one quarter:
- G1: Total sales, GST inclusive (sum of income totals)
- 1A: GST collected on sales (sum of income GST)
- 1B: GST paid on purchases, claimable portion only
- G10: Capital purchases (expenses in categories labelled G10)
- G11: Non-capital purchases (expenses in categories labelled G11)
- Net GST: 1A - 1B (negative means a refund is due)

RULES:
- Period bounds are inclusive (quarter_date_range)
- CASH basis counts paid income only; ACCRUAL counts all income
- 1B only includes DOMESTIC providers (international providers charge no GST)
- 1B applies biz_percent per expense, rounding each one DOWN

All figures are integer cents.
"""

from datetime import date
from typing import Optional, Union
from uuid import UUID

import structlog
from pydantic import BaseModel, Field

from taxtrack import money
from taxtrack.audit import AuditLogger
from taxtrack.config import get_settings
from taxtrack.exceptions import InvalidPeriodError
from taxtrack.models.records import AccountingBasis, BasLabel
from taxtrack.periods import Quarter, QuarterDateRange, parse_quarter, quarter_date_range
from taxtrack.periods import quarters_for_year as fy_quarters
from taxtrack.services.storage import TaxRecordStorageInterface


logger = structlog.get_logger(__name__)


class BasSummary(BaseModel):
    """BAS figures for one quarter. All money in cents."""

    quarter: Quarter
    financial_year: int
    basis: AccountingBasis
    period_start: date
    period_end: date

    g1_total_sales_cents: int = Field(..., description="G1: total sales incl. GST")
    label_1a_gst_collected_cents: int = Field(..., description="1A: GST on sales")
    label_1b_gst_paid_cents: int = Field(..., description="1B: claimable GST on purchases")
    net_gst_payable_cents: int = Field(..., description="1A - 1B; negative = refund")
    g10_capital_purchases_cents: int = 0
    g11_non_capital_purchases_cents: int = 0

    income_count: int = Field(..., ge=0)
    expense_count: int = Field(..., ge=0)

    @property
    def is_refund(self) -> bool:
        return self.net_gst_payable_cents < 0


def parse_basis(value: Union[str, AccountingBasis]) -> AccountingBasis:
    """
    Parse an accounting basis ("cash", "ACCRUAL", ...).

    Raises:
        InvalidPeriodError: For anything other than CASH or ACCRUAL.
    """
    if isinstance(value, AccountingBasis):
        return value
    try:
        return AccountingBasis(str(value).strip().upper())
    except ValueError:
        raise InvalidPeriodError(
            f'Invalid accounting basis "{value}". Must be CASH or ACCRUAL.',
            details={"basis": str(value)},
        ) from None


class BasCalculator:
    """
    Builds BAS summaries from stored incomes and expenses.

    Usage:
        calculator = BasCalculator(storage)
        summary = await calculator.get_summary("Q1", 2026, "CASH")
    """

    def __init__(
        self,
        storage: TaxRecordStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._audit = audit_logger

    async def get_summary(
        self,
        quarter: Union[str, Quarter],
        financial_year: int,
        basis: Union[str, AccountingBasis, None] = None,
        correlation_id: Optional[UUID] = None,
    ) -> BasSummary:
        """
        Generate the BAS summary for a quarter.

        Args:
            quarter: Q1-Q4 (case-insensitive)
            financial_year: FY number, e.g. 2026 for Jul 2025 - Jun 2026
            basis: CASH or ACCRUAL (case-insensitive); defaults to
                DEFAULT_ACCOUNTING_BASIS

        Raises:
            InvalidPeriodError: If quarter or basis is invalid
        """
        q = parse_quarter(quarter)
        accounting_basis = parse_basis(
            basis if basis is not None else get_settings().app.default_accounting_basis
        )
        period = quarter_date_range(q, financial_year)

        g1, label_1a, income_count = await self._income_totals(period, accounting_basis)
        label_1b, expense_count, g10, g11 = await self._expense_totals(period)

        summary = BasSummary(
            quarter=q,
            financial_year=financial_year,
            basis=accounting_basis,
            period_start=period.start_date,
            period_end=period.end_date,
            g1_total_sales_cents=g1,
            label_1a_gst_collected_cents=label_1a,
            label_1b_gst_paid_cents=label_1b,
            net_gst_payable_cents=money.add_amounts(label_1a, -label_1b),
            g10_capital_purchases_cents=g10,
            g11_non_capital_purchases_cents=g11,
            income_count=income_count,
            expense_count=expense_count,
        )

        logger.info(
            "bas_summary_generated",
            quarter=q.value,
            financial_year=financial_year,
            basis=accounting_basis.value,
            income_count=income_count,
            expense_count=expense_count,
        )
        if self._audit:
            await self._audit.log_bas_summary(
                quarter=q.value,
                financial_year=financial_year,
                basis=accounting_basis.value,
                net_gst_payable_cents=summary.net_gst_payable_cents,
                correlation_id=correlation_id,
            )

        return summary

    async def _income_totals(
        self,
        period: QuarterDateRange,
        basis: AccountingBasis,
    ) -> tuple[int, int, int]:
        """G1, 1A and the number of incomes counted."""
        incomes = await self._storage.list_incomes(
            date_from=period.start_date,
            date_to=period.end_date,
            paid_only=basis == AccountingBasis.CASH,
        )
        total_sales = sum(income.total_cents for income in incomes)
        gst_collected = sum(income.gst_cents for income in incomes)
        return total_sales, gst_collected, len(incomes)

    async def _expense_totals(
        self,
        period: QuarterDateRange,
    ) -> tuple[int, int, int, int]:
        """1B, the number of domestic expenses, G10 and G11."""
        expenses = await self._storage.list_expenses(
            date_from=period.start_date,
            date_to=period.end_date,
        )

        domestic = [e for e in expenses if not e.provider.is_international]
        gst_paid = sum(
            money.calc_deductible_gst(e.gst_cents, e.biz_percent) for e in domestic
        )

        # G10/G11 cover all purchases, domestic or not
        g10 = sum(e.amount_cents for e in expenses if e.category.bas_label == BasLabel.G10)
        g11 = sum(e.amount_cents for e in expenses if e.category.bas_label == BasLabel.G11)

        return gst_paid, len(domestic), g10, g11

    @staticmethod
    def quarters_for_year(financial_year: int) -> list[QuarterDateRange]:
        """All quarters of a financial year with their date ranges."""
        return fy_quarters(financial_year)
