"""
CSV Parser

Turns a bank or spreadsheet CSV export into structured expense or income rows.

Handles:
- Column mapping (known sources, or auto-detected from headers)
- Australian date formats (D/M/YYYY) alongside ISO dates
- Currency strings ($1,234.56, -$50.00, ($50.00))
- Business-use percentages (50, 50%, 0.5)
- Rows with trailing delimiters or more fields than the header
  (the extra fields are dropped, the row is kept)

Expense rows that cannot be used are SKIPPED, not failed: missing
date/item/total, summary rows ("Total ..."), unparseable dates or amounts,
and non-positive totals. Income rows are skipped only when the client is
blank. Row numbers are 1-based and exclude the header. A skipped row still
uses up its number.
"""

import io
import re
from datetime import date
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional

import pandas as pd
import structlog
from pydantic import BaseModel, ConfigDict, Field

from taxtrack import money


logger = structlog.get_logger(__name__)


class CsvColumnMapping(BaseModel):
    """Which CSV column holds which expense field."""
    model_config = ConfigDict(frozen=True)

    date: str
    item: str = Field(..., description="Provider/vendor/item column")
    total: str = Field(..., description="GST-inclusive amount column")
    gst: Optional[str] = None
    biz_percent: Optional[str] = None
    category: Optional[str] = None
    description: Optional[str] = None


class IncomeCsvColumnMapping(BaseModel):
    """Which CSV column holds which income field."""
    model_config = ConfigDict(frozen=True)

    client: str
    subtotal: str = Field(..., description="Amount before GST")
    gst: str
    total: str = Field(..., description="Subtotal plus GST, as written in the file")
    invoice_num: Optional[str] = None
    date: Optional[str] = Field(
        default=None,
        description="Invoice date column; rows without one use the default date"
    )
    description: Optional[str] = None


class ParsedCsvRow(BaseModel):
    """One usable CSV row, before provider/category matching."""

    row_number: int = Field(..., ge=1)
    date: date
    item_name: str
    total_cents: int
    gst_cents: int = 0
    biz_percent: int = Field(default=100, ge=0, le=100)
    category_name: Optional[str] = None
    description: Optional[str] = None


class ParsedIncomeCsvRow(BaseModel):
    """One income CSV row, before client matching."""

    row_number: int = Field(..., ge=1)
    date: date
    client_name: str
    invoice_num: Optional[str] = None
    subtotal_cents: int
    gst_cents: int
    total_cents_from_csv: int
    calculated_total_cents: int
    description: Optional[str] = None

    @property
    def total_matches(self) -> bool:
        return self.total_cents_from_csv == self.calculated_total_cents


CSV_COLUMN_MAPPINGS: dict[str, CsvColumnMapping] = {
    # Date,Item,Total,GST,Biz%,Category
    "custom": CsvColumnMapping(
        date="Date",
        item="Item",
        total="Total",
        gst="GST",
        biz_percent="Biz%",
        category="Category",
    ),
    "commbank": CsvColumnMapping(
        date="Date",
        item="Description",
        total="Debit",
        description="Description",
    ),
    "amex": CsvColumnMapping(
        date="Date",
        item="Description",
        total="Amount",
        description="Description",
    ),
}

INCOME_CSV_COLUMN_MAPPINGS: dict[str, IncomeCsvColumnMapping] = {
    # Client,Invoice #,Subtotal,GST,Total,Date,Description
    "custom": IncomeCsvColumnMapping(
        client="Client",
        invoice_num="Invoice #",
        subtotal="Subtotal",
        gst="GST",
        total="Total",
        date="Date",
        description="Description",
    ),
}

_ISO_DATE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
_SLASH_DATE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")
_DASH_DATE = re.compile(r"^(\d{1,2})-(\d{1,2})-(\d{4})$")
_CURRENCY_NOISE = re.compile(r"[$£€¥,()\-]")

_DATE_HEADERS = ("date", "transaction date", "trans date")
_ITEM_HEADERS = ("item", "description", "merchant", "vendor", "payee")
_TOTAL_HEADERS = ("total", "amount", "debit", "value", "price")
_GST_HEADERS = ("gst", "tax", "vat")
_BIZ_HEADERS = ("biz%", "biz", "business", "business%", "business use")
_CATEGORY_HEADERS = ("category", "cat", "type")

# index_col=False keeps a trailing delimiter on the first data row from
# turning the first column into the index
_READ_OPTIONS = {
    "dtype": str,
    "keep_default_na": False,
    "skip_blank_lines": True,
    "skipinitialspace": True,
    "index_col": False,
    "engine": "python",
}


def _read_header(content: str) -> list[str]:
    frame = pd.read_csv(io.StringIO(content), nrows=0, **_READ_OPTIONS)
    return [str(column).strip() for column in frame.columns]


def _read_frame(content: str) -> pd.DataFrame:
    width = len(_read_header(content))
    frame = pd.read_csv(
        io.StringIO(content),
        # Over-long rows keep their leading fields
        on_bad_lines=lambda fields: fields[:width],
        **_READ_OPTIONS,
    )
    frame.columns = [str(column).strip() for column in frame.columns]
    return frame


def _read_records(content: str) -> list[dict]:
    if not content.strip():
        return []
    try:
        frame = _read_frame(content)
    except pd.errors.EmptyDataError:
        return []
    return frame.fillna("").to_dict("records")


class CsvParser:
    """Parses CSV content into ParsedCsvRow / ParsedIncomeCsvRow records."""

    def parse_bytes(self, data: bytes, mapping: CsvColumnMapping) -> list[ParsedCsvRow]:
        """Parse UTF-8 CSV bytes (a BOM is tolerated)."""
        return self.parse_string(data.decode("utf-8-sig"), mapping)

    def parse_string(self, content: str, mapping: CsvColumnMapping) -> list[ParsedCsvRow]:
        """
        Parse CSV text into rows.

        Args:
            content: CSV content with a header line
            mapping: Column mapping to apply

        Returns:
            Usable rows, in file order
        """
        records = _read_records(content)
        results: list[ParsedCsvRow] = []

        for row_number, record in enumerate(records, start=1):
            item_value = self._cell(record, mapping.item)
            total_value = self._cell(record, mapping.total)
            date_value = self._cell(record, mapping.date)

            if not item_value or not total_value or not date_value:
                continue

            if self._is_summary_row(item_value, total_value):
                continue

            parsed = self._parse_row(record, mapping, row_number)
            if parsed:
                results.append(parsed)

        logger.debug(
            "csv_parsed",
            record_count=len(records),
            parsed_count=len(results),
            skipped_count=len(records) - len(results),
        )
        return results

    def parse_income_bytes(
        self,
        data: bytes,
        mapping: IncomeCsvColumnMapping,
        default_date: Optional[date] = None,
    ) -> list[ParsedIncomeCsvRow]:
        """Parse UTF-8 income CSV bytes (a BOM is tolerated)."""
        return self.parse_income_string(data.decode("utf-8-sig"), mapping, default_date)

    def parse_income_string(
        self,
        content: str,
        mapping: IncomeCsvColumnMapping,
        default_date: Optional[date] = None,
    ) -> list[ParsedIncomeCsvRow]:
        """
        Parse income CSV text into rows.

        Rows with a blank client are skipped. Missing or unparseable amounts
        count as 0. A missing or unparseable date falls back to
        `default_date`, or today.

        The total from the file is kept alongside subtotal + GST so the
        importer can warn when they disagree.
        """
        records = _read_records(content)
        fallback_date = default_date or date.today()
        results: list[ParsedIncomeCsvRow] = []

        for row_number, record in enumerate(records, start=1):
            client_name = self._cell(record, mapping.client)
            if not client_name:
                continue

            subtotal_cents = self.parse_currency(self._cell(record, mapping.subtotal)) or 0
            gst_cents = self.parse_currency(self._cell(record, mapping.gst)) or 0
            total_cents = self.parse_currency(self._cell(record, mapping.total)) or 0

            results.append(ParsedIncomeCsvRow(
                row_number=row_number,
                date=self.parse_date(self._cell(record, mapping.date)) or fallback_date,
                client_name=client_name,
                invoice_num=self._cell(record, mapping.invoice_num) or None,
                subtotal_cents=subtotal_cents,
                gst_cents=gst_cents,
                total_cents_from_csv=total_cents,
                calculated_total_cents=money.add_amounts(subtotal_cents, gst_cents),
                description=self._cell(record, mapping.description) or None,
            ))

        logger.debug(
            "income_csv_parsed",
            record_count=len(records),
            parsed_count=len(results),
        )
        return results
    @staticmethod
    def _cell(record: dict, column: Optional[str]) -> str:
        if not column:
            return ""
        return str(record.get(column, "")).strip()

    def _parse_row(
        self,
        record: dict,
        mapping: CsvColumnMapping,
        row_number: int,
    ) -> Optional[ParsedCsvRow]:
        row_date = self.parse_date(self._cell(record, mapping.date))
        if row_date is None:
            return None

        total_cents = self.parse_currency(self._cell(record, mapping.total))
        if total_cents is None or total_cents <= 0:
            return None

        # 0 means "not provided"; the importer calculates it
        gst_value = self._cell(record, mapping.gst)
        gst_cents = (self.parse_currency(gst_value) or 0) if gst_value else 0

        biz_value = self._cell(record, mapping.biz_percent)
        biz_percent = self.parse_percentage(biz_value) if biz_value else 100

        return ParsedCsvRow(
            row_number=row_number,
            date=row_date,
            item_name=self._cell(record, mapping.item),
            total_cents=total_cents,
            gst_cents=max(gst_cents, 0),
            biz_percent=biz_percent,
            category_name=self._cell(record, mapping.category) or None,
            description=self._cell(record, mapping.description) or None,
        )

    @staticmethod
    def _is_summary_row(item: str, total: str) -> bool:
        return "total" in item.lower() or "total" in total.lower()

    def parse_date(self, value: Optional[str]) -> Optional[date]:
        """
        Parse a date string.

        Supports: YYYY-MM-DD, DD/MM/YYYY (Australian order), DD-MM-YYYY.
        Returns None for anything else, including impossible dates (31/02/2025).
        """
        if not value or not value.strip():
            return None

        trimmed = value.strip()

        try:
            match = _ISO_DATE.match(trimmed)
            if match:
                year, month, day = (int(part) for part in match.groups())
                return date(year, month, day)

            match = _SLASH_DATE.match(trimmed) or _DASH_DATE.match(trimmed)
            if match:
                day, month, year = (int(part) for part in match.groups())
                return date(year, month, day)
        except ValueError:
            return None

        return None

    def parse_currency(self, value: Optional[str]) -> Optional[int]:
        """
        Parse a currency string into cents.

        Handles: $1,234.56, 1234.56, -$50.00, ($50.00)
        Returns None if the value is not a number.
        """
        if not value or not value.strip():
            return None

        trimmed = value.strip()
        is_negative = (
            (trimmed.startswith("(") and trimmed.endswith(")"))
            or trimmed.startswith("-")
        )
        trimmed = _CURRENCY_NOISE.sub("", trimmed).strip()

        if trimmed in ("", "0", "0.00"):
            return 0

        try:
            amount = Decimal(trimmed)
        except InvalidOperation:
            return None
        if not amount.is_finite():
            return None

        cents = int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
        return -cents if is_negative else cents

    def parse_percentage(self, value: Optional[str]) -> int:
        """
        Parse a business-use percentage (0-100).

        Handles: 50, 50%, 0.5 (values in (0, 1] are fractions).
        Unparseable input defaults to 100.
        """
        if not value or not value.strip():
            return 100

        trimmed = value.strip().replace("%", "")
        try:
            number = Decimal(trimmed)
        except InvalidOperation:
            return 100
        if not number.is_finite():
            return 100

        if 0 < number <= 1:
            number = number * 100

        rounded = int(number.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
        return max(0, min(100, rounded))

    def get_mapping(self, source: str) -> Optional[CsvColumnMapping]:
        """Column mapping for a known source (custom, commbank, amex)."""
        return CSV_COLUMN_MAPPINGS.get(source.lower())

    def get_income_mapping(self, source: str) -> Optional[IncomeCsvColumnMapping]:
        """Income column mapping for a known source (custom)."""
        return INCOME_CSV_COLUMN_MAPPINGS.get(source.lower())

    def detect_mapping(self, headers: list[str]) -> Optional[CsvColumnMapping]:
        """
        Guess the column mapping from header names.

        Returns None unless date, item and total columns are all found.
        """
        def find(candidates: tuple[str, ...]) -> Optional[str]:
            for header in headers:
                if header.lower().strip() in candidates:
                    return header
            return None

        date_col = find(_DATE_HEADERS)
        item_col = find(_ITEM_HEADERS)
        total_col = find(_TOTAL_HEADERS)

        if not date_col or not item_col or not total_col:
            return None

        return CsvColumnMapping(
            date=date_col,
            item=item_col,
            total=total_col,
            gst=find(_GST_HEADERS),
            biz_percent=find(_BIZ_HEADERS),
            category=find(_CATEGORY_HEADERS),
        )

    def extract_headers(self, content: str) -> list[str]:
        """Header names from the first line of CSV content."""
        if not content.strip():
            return []
        try:
            return _read_header(content)
        except pd.errors.EmptyDataError:
            return []
