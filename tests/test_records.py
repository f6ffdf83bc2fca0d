"""
Tests for Tax Track models

Test strategy:
1. Record models enforce amounts, percentages and ABN shape
2. Audit events serialise without PII
3. No storage or encryption involved here
"""

import pytest
from datetime import date
from uuid import uuid4

from taxtrack.models import (
    AccountingBasis,
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
    BasLabel,
    Category,
    Client,
    Expense,
    ImportJob,
    ImportStatus,
    Income,
    Provider,
    ValidationIssue,
)


class TestClientModel:
    """Tests for the Client model."""

    def test_client_creation(self):
        """Test Client model creation."""
        client = Client(name="Acme Pty Ltd", abn="51824753556", is_psi_eligible=True)
        assert client.name == "Acme Pty Ltd"
        assert client.abn == "51824753556"
        assert client.is_psi_eligible

    def test_client_strips_whitespace(self):
        """Test that whitespace is stripped from the name."""
        assert Client(name="  Acme  ").name == "Acme"

    def test_abn_spaces_removed(self):
        """Test that ABNs written with spaces are stored as digits."""
        assert Client(name="Acme", abn="51 824 753 556").abn == "51824753556"

    def test_blank_abn_is_none(self):
        """Test that an empty ABN means no ABN."""
        assert Client(name="Acme", abn="   ").abn is None

    @pytest.mark.parametrize("abn", ["1234", "5182475355X", "518247535561"])
    def test_invalid_abn_rejected(self, abn):
        """Test that ABNs must be 11 digits."""
        with pytest.raises(ValueError):
            Client(name="Acme", abn=abn)

    def test_empty_name_rejected(self):
        """Test that a client needs a name."""
        with pytest.raises(ValueError):
            Client(name="")


class TestExpenseModel:
    """Tests for the Expense model."""

    def _expense(self, **overrides) -> Expense:
        fields = dict(
            date=date(2025, 8, 1),
            amount_cents=11000,
            gst_cents=1000,
            provider=Provider(name="Officeworks"),
            category=Category(name="Office"),
        )
        fields.update(overrides)
        return Expense(**fields)

    def test_expense_defaults(self):
        """Test default business use, currency and import job."""
        expense = self._expense()
        assert expense.biz_percent == 100
        assert expense.currency == "AUD"
        assert expense.import_job_id is None

    def test_amount_must_be_positive(self):
        """Test that zero and negative amounts are rejected."""
        with pytest.raises(ValueError):
            self._expense(amount_cents=0, gst_cents=0)

    def test_gst_cannot_exceed_amount(self):
        """Test the GST-versus-total check."""
        with pytest.raises(ValueError, match="GST cannot exceed"):
            self._expense(amount_cents=100, gst_cents=101)

    @pytest.mark.parametrize("percent", [-1, 101])
    def test_biz_percent_range(self, percent):
        """Test that business use is 0-100."""
        with pytest.raises(ValueError):
            self._expense(biz_percent=percent)


class TestIncomeModel:
    """Tests for the Income model."""

    def test_income_totals_must_add_up(self):
        """Test that total = subtotal + GST."""
        client = Client(name="Acme")
        income = Income(
            date=date(2025, 8, 1),
            client=client,
            subtotal_cents=10000,
            gst_cents=1000,
            total_cents=11000,
        )
        assert not income.is_paid

        with pytest.raises(ValueError, match="subtotal plus GST"):
            Income(
                date=date(2025, 8, 1),
                client=client,
                subtotal_cents=10000,
                gst_cents=1000,
                total_cents=10000,
            )

    def test_paid_date_not_before_invoice(self):
        """Test that payment cannot predate the invoice."""
        with pytest.raises(ValueError, match="Paid date"):
            Income(
                date=date(2025, 8, 1),
                client=Client(name="Acme"),
                subtotal_cents=100,
                total_cents=100,
                is_paid=True,
                paid_date=date(2025, 7, 31),
            )


class TestEnums:
    """Tests for enum values."""

    def test_accounting_basis_values(self):
        """Test basis names."""
        assert AccountingBasis("CASH") == AccountingBasis.CASH
        assert AccountingBasis.ACCRUAL.value == "ACCRUAL"

    def test_bas_labels(self):
        """Test category BAS labels and the default."""
        assert Category(name="Laptop").bas_label == BasLabel.G11
        assert BasLabel("G10") == BasLabel.G10
        assert BasLabel("") == BasLabel.NONE


class TestImportJob:
    """Tests for the ImportJob model."""

    def test_defaults(self):
        """Test that a new job is pending with zero counts."""
        job = ImportJob(record_type="expense")
        assert job.status == ImportStatus.PENDING
        assert job.source == "custom"
        assert job.imported_count == 0
        assert job.error_message is None
        assert job.completed_at is None

    def test_record_type_must_be_known(self):
        """Test that only expense and income jobs exist."""
        assert ImportJob(record_type="income").record_type == "income"
        with pytest.raises(ValueError):
            ImportJob(record_type="invoice")

    def test_counts_not_negative(self):
        """Test that row counts cannot be negative."""
        with pytest.raises(ValueError):
            ImportJob(record_type="expense", failed_count=-1)


class TestValidationIssue:
    """Tests for ValidationIssue."""

    def test_severity_must_be_known(self):
        """Test that severity is error, warning or info."""
        issue = ValidationIssue(
            field="item",
            issue_type="no_match",
            message="No provider",
            severity="error",
        )
        assert issue.suggested_fix is None

        with pytest.raises(ValueError):
            ValidationIssue(field="x", issue_type="y", message="z", severity="fatal")


class TestAuditModels:
    """Tests for audit event models."""

    def test_audit_event_creation(self):
        """Test AuditEvent creation."""
        event = AuditEvent(
            event_type=AuditEventType.EXPENSE_SAVED,
            description="Expense saved",
        )
        assert event.event_id is not None
        assert event.timestamp is not None
        assert event.severity == AuditSeverity.INFO

    def test_to_log_dict(self):
        """Test conversion to a structured log dict."""
        entity_id = uuid4()
        event = AuditEventBuilder.record_saved("client", entity_id)
        log_dict = event.to_log_dict()

        assert log_dict["event_type"] == "client_saved"
        assert log_dict["entity_type"] == "client"
        assert log_dict["entity_id"] == str(entity_id)
        assert log_dict["correlation_id"] is None

    @pytest.mark.parametrize("entity_type, event_type", [
        ("client", AuditEventType.CLIENT_SAVED),
        ("provider", AuditEventType.PROVIDER_SAVED),
        ("category", AuditEventType.CATEGORY_SAVED),
        ("expense", AuditEventType.EXPENSE_SAVED),
        ("income", AuditEventType.INCOME_SAVED),
    ])
    def test_record_saved_event_types(self, entity_type, event_type):
        """Test that each record type maps to its own event."""
        assert AuditEventBuilder.record_saved(entity_type, uuid4()).event_type == event_type

    def test_bas_summary_event(self):
        """Test the BAS summary event details."""
        event = AuditEventBuilder.bas_summary_generated(
            quarter="Q1",
            financial_year=2026,
            basis="CASH",
            net_gst_payable_cents=-500,
        )
        assert event.event_type == AuditEventType.BAS_SUMMARY_GENERATED
        assert event.details["net_gst_payable_cents"] == -500
        assert "Q1 FY2026" in event.description

    def test_csv_import_event_severity(self):
        """Test that failed rows raise the severity to WARNING."""
        job_id = uuid4()
        clean = AuditEventBuilder.csv_import_finished(job_id, False, 3, 3, 0, 0)
        partial = AuditEventBuilder.csv_import_finished(job_id, False, 3, 2, 1, 1)
        preview = AuditEventBuilder.csv_import_finished(job_id, True, 3, 3, 0, 0)

        assert clean.severity == AuditSeverity.INFO
        assert clean.event_type == AuditEventType.CSV_IMPORT_COMPLETED
        assert partial.severity == AuditSeverity.WARNING
        assert preview.event_type == AuditEventType.CSV_IMPORT_PREVIEWED
        assert clean.correlation_id == job_id

    def test_csv_import_failed_event(self):
        """Test the whole-import failure event."""
        event = AuditEventBuilder.csv_import_failed(uuid4(), "bad headers")
        assert event.severity == AuditSeverity.ERROR
        assert event.error_message == "bad headers"
        assert event.details["record_type"] == "expense"

    def test_csv_import_record_type(self):
        """Test that income imports are labelled in the event details."""
        job_id = uuid4()
        finished = AuditEventBuilder.csv_import_finished(job_id, False, 2, 2, 0, 0, record_type="income")
        failed = AuditEventBuilder.csv_import_failed(job_id, "disk full", record_type="income")
        assert finished.details["record_type"] == "income"
        assert failed.details["record_type"] == "income"

    def test_system_error_event(self):
        """Test system error event creation."""
        event = AuditEventBuilder.system_error(
            error_type="DecryptionError",
            error_message="authentication failed",
            details={"table": "clients"},
        )
        assert event.event_type == AuditEventType.SYSTEM_ERROR
        assert event.severity == AuditSeverity.ERROR
        assert event.details == {"table": "clients"}
