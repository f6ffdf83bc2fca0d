"""Tests for CSV parsing: dates, currency, percentages and column mapping."""

from datetime import date

import pytest

from taxtrack.imports import (
    CSV_COLUMN_MAPPINGS,
    INCOME_CSV_COLUMN_MAPPINGS,
    CsvColumnMapping,
    CsvParser,
    IncomeCsvColumnMapping,
)


CUSTOM_CSV = """Date,Item,Total,GST,Biz%,Category
15/08/2025,Officeworks,$110.00,$10.00,100%,Office Supplies
2025-08-20,GitHub Inc,"$1,234.56",,50,Software
,Missing Date,$5.00,,,
21/08/2025,Total,$1344.56,,,
31/02/2025,Bad Date,$5.00,,,
22/08/2025,Refund,-$20.00,,,
23/08/2025,Free Thing,$0.00,,,
24/08/2025,Telstra,(12.50),,0.5,
"""


@pytest.fixture
def parser() -> CsvParser:
    return CsvParser()


class TestParseString:
    """Row extraction and skip rules."""

    def test_custom_format(self, parser):
        """Test that usable rows are kept and the rest skipped."""
        rows = parser.parse_string(CUSTOM_CSV, CSV_COLUMN_MAPPINGS["custom"])

        assert [r.row_number for r in rows] == [1, 2]
        first, second = rows

        assert first.date == date(2025, 8, 15)
        assert first.item_name == "Officeworks"
        assert first.total_cents == 11000
        assert first.gst_cents == 1000
        assert first.biz_percent == 100
        assert first.category_name == "Office Supplies"

        assert second.date == date(2025, 8, 20)
        assert second.total_cents == 123456
        assert second.gst_cents == 0
        assert second.biz_percent == 50

    def test_row_numbers_skip_over_dropped_rows(self, parser):
        """Test that a skipped row still uses up its number."""
        content = "Date,Item,Total\n,Nothing,$1\n01/07/2025,Officeworks,$5.00\n"
        rows = parser.parse_string(content, CSV_COLUMN_MAPPINGS["custom"])
        assert [r.row_number for r in rows] == [2]

    def test_commbank_format(self, parser):
        """Test the CommBank mapping uses Debit and copies the description."""
        content = "Date,Description,Debit,Credit\n01/09/2025,OFFICEWORKS 1234,45.00,\n"
        rows = parser.parse_string(content, CSV_COLUMN_MAPPINGS["commbank"])

        assert len(rows) == 1
        assert rows[0].item_name == "OFFICEWORKS 1234"
        assert rows[0].description == "OFFICEWORKS 1234"
        assert rows[0].total_cents == 4500

    def test_empty_content(self, parser):
        """Test that empty input gives no rows."""
        assert parser.parse_string("", CSV_COLUMN_MAPPINGS["custom"]) == []
        assert parser.parse_string("   \n", CSV_COLUMN_MAPPINGS["custom"]) == []

    def test_header_only(self, parser):
        """Test a file with headers and no data."""
        assert parser.parse_string("Date,Item,Total\n", CSV_COLUMN_MAPPINGS["custom"]) == []

    def test_header_whitespace_is_ignored(self, parser):
        """Test that padded header names still match the mapping."""
        content = "Date , Item , Total\n01/07/2025,Officeworks,5.00\n"
        rows = parser.parse_string(content, CSV_COLUMN_MAPPINGS["custom"])
        assert rows[0].total_cents == 500

    def test_parse_bytes_with_bom(self, parser):
        """Test that a UTF-8 BOM does not break the first header."""
        content = "\ufeffDate,Item,Total\n01/07/2025,Café Vendor,5.00\n".encode("utf-8")
        rows = parser.parse_bytes(content, CSV_COLUMN_MAPPINGS["custom"])
        assert rows[0].item_name == "Café Vendor"


class TestOverlongRows:
    """Rows with more fields than the header are kept."""

    def test_trailing_comma_on_first_row(self, parser):
        """Test that a trailing delimiter on row 1 does not shift every column."""
        content = (
            "Date,Item,Total\n"
            "15/08/2025,Officeworks,$110.00,\n"
            "16/08/2025,Telstra,$55.00\n"
        )
        rows = parser.parse_string(content, CSV_COLUMN_MAPPINGS["custom"])

        assert [(r.row_number, r.item_name, r.total_cents) for r in rows] == [
            (1, "Officeworks", 11000),
            (2, "Telstra", 5500),
        ]
        assert rows[0].date == date(2025, 8, 15)

    def test_trailing_comma_on_middle_row(self, parser):
        """Test that an over-long row in the middle is not dropped."""
        content = (
            "Date,Item,Total\n"
            "15/08/2025,Officeworks,$110.00\n"
            "16/08/2025,Telstra,$55.00,\n"
            "17/08/2025,GitHub,$20.00\n"
        )
        rows = parser.parse_string(content, CSV_COLUMN_MAPPINGS["custom"])
        assert [r.item_name for r in rows] == ["Officeworks", "Telstra", "GitHub"]

    def test_trailing_comma_on_every_row(self, parser):
        """Test an export that ends every data line with a delimiter."""
        content = "Date,Item,Total\n15/08/2025,Officeworks,5.00,\n16/08/2025,Telstra,6.00,\n"
        rows = parser.parse_string(content, CSV_COLUMN_MAPPINGS["custom"])
        assert [r.total_cents for r in rows] == [500, 600]


class TestParseIncome:
    """Income rows: client, amounts, invoice number and date."""

    INCOME_CSV = """Client,Invoice #,Subtotal,GST,Total,Date,Description
Acme Pty Ltd,INV-001,"$1,000.00",$100.00,"$1,100.00",15/08/2025,August retainer
Acme Pty Ltd,INV-002,$500.00,$50.00,$600.00,,Extra hours
,INV-003,$10.00,$1.00,$11.00,01/09/2025,
Globex,,$200.00,,$200.00,2025-09-02,
"""

    def test_custom_income_format(self, parser):
        """Test amounts, totals and optional columns."""
        rows = parser.parse_income_string(
            self.INCOME_CSV,
            INCOME_CSV_COLUMN_MAPPINGS["custom"],
            default_date=date(2025, 8, 31),
        )

        assert [r.row_number for r in rows] == [1, 2, 4]
        first, second, third = rows

        assert first.client_name == "Acme Pty Ltd"
        assert first.invoice_num == "INV-001"
        assert first.subtotal_cents == 100000
        assert first.gst_cents == 10000
        assert first.calculated_total_cents == 110000
        assert first.total_matches
        assert first.date == date(2025, 8, 15)
        assert first.description == "August retainer"

        # File total disagrees with subtotal + GST; the date falls back
        assert second.total_cents_from_csv == 60000
        assert second.calculated_total_cents == 55000
        assert not second.total_matches
        assert second.date == date(2025, 8, 31)

        assert third.invoice_num is None
        assert third.gst_cents == 0
        assert third.date == date(2025, 9, 2)

    def test_missing_date_defaults_to_today(self, parser):
        """Test the date fallback when no default is given."""
        content = "Client,Subtotal,GST,Total\nAcme,10.00,1.00,11.00\n"
        mapping = IncomeCsvColumnMapping(client="Client", subtotal="Subtotal", gst="GST", total="Total")
        rows = parser.parse_income_string(content, mapping)
        assert rows[0].date == date.today()

    def test_income_bytes(self, parser):
        """Test parsing income bytes with a BOM."""
        data = ("\ufeff" + self.INCOME_CSV).encode("utf-8")
        rows = parser.parse_income_bytes(data, INCOME_CSV_COLUMN_MAPPINGS["custom"])
        assert len(rows) == 3

    def test_get_income_mapping(self, parser):
        """Test the known income sources."""
        assert parser.get_income_mapping("Custom") == INCOME_CSV_COLUMN_MAPPINGS["custom"]
        assert parser.get_income_mapping("xero") is None


class TestParseDate:
    """Supported date formats."""

    @pytest.mark.parametrize("value, expected", [
        ("2025-08-15", date(2025, 8, 15)),
        ("15/08/2025", date(2025, 8, 15)),
        ("1/7/2025", date(2025, 7, 1)),
        ("15-08-2025", date(2025, 8, 15)),
        (" 15/08/2025 ", date(2025, 8, 15)),
    ])
    def test_valid_dates(self, parser, value, expected):
        """Test ISO and day-first formats."""
        assert parser.parse_date(value) == expected

    @pytest.mark.parametrize("value", [
        "",
        None,
        "Aug 15 2025",
        "2025/08/15",
        "31/02/2025",
        "15/13/2025",
        "15/08/25",
    ])
    def test_invalid_dates(self, parser, value):
        """Test that anything else, including impossible dates, is None."""
        assert parser.parse_date(value) is None


class TestParseCurrency:
    """Currency strings to cents."""

    @pytest.mark.parametrize("value, expected", [
        ("$1,234.56", 123456),
        ("1234.56", 123456),
        ("-$50.00", -5000),
        ("($50.00)", -5000),
        ("£10", 1000),
        ("€0.5", 50),
        ("0", 0),
        ("$0.00", 0),
        ("10.005", 1001),
    ])
    def test_valid_amounts(self, parser, value, expected):
        """Test symbols, separators and negative notations."""
        assert parser.parse_currency(value) == expected

    @pytest.mark.parametrize("value", ["", None, "abc", "1.2.3", "12,34.5x"])
    def test_invalid_amounts(self, parser, value):
        """Test that non-numbers give None."""
        assert parser.parse_currency(value) is None


class TestParsePercentage:
    """Business-use percentages."""

    @pytest.mark.parametrize("value, expected", [
        ("50", 50),
        ("50%", 50),
        ("0.5", 50),
        ("1", 100),
        ("0", 0),
        ("150", 100),
        ("-10", 0),
        ("33.5", 34),
        ("", 100),
        ("abc", 100),
    ])
    def test_percentages(self, parser, value, expected):
        """Test fractions, clamping and the default."""
        assert parser.parse_percentage(value) == expected


class TestMappings:
    """Known sources and header auto-detection."""

    def test_get_mapping(self, parser):
        """Test lookup of known sources, case-insensitively."""
        assert parser.get_mapping("CommBank") == CSV_COLUMN_MAPPINGS["commbank"]
        assert parser.get_mapping("amex").total == "Amount"
        assert parser.get_mapping("westpac") is None

    def test_detect_mapping(self, parser):
        """Test that recognised headers build a mapping."""
        mapping = parser.detect_mapping(["Transaction Date", "Merchant", "Amount", "GST", "Business%"])
        assert mapping == CsvColumnMapping(
            date="Transaction Date",
            item="Merchant",
            total="Amount",
            gst="GST",
            biz_percent="Business%",
        )

    def test_detect_mapping_needs_required_columns(self, parser):
        """Test that a missing date, item or total column gives None."""
        assert parser.detect_mapping(["Date", "Amount"]) is None
        assert parser.detect_mapping([]) is None

    def test_extract_headers(self, parser):
        """Test reading the header line."""
        assert parser.extract_headers(" Date , Payee,Value\n1,2,3\n") == ["Date", "Payee", "Value"]
        assert parser.extract_headers("") == []
