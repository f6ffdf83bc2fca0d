"""
Tax Record Models for Tax Track

These models define the schemas for the records a sole trader keeps:
clients, providers, categories, expenses and incomes.

All money is integer cents. Dates are calendar dates (no time zone).

DESIGN DECISION: Models hold PLAINTEXT. Encryption of sensitive fields
happens at the storage boundary, so business logic never sees ciphertext.
Sensitive fields are listed in `ENCRYPTED_COLUMNS` in the storage package.
"""

from datetime import date, datetime
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class AccountingBasis(str, Enum):
    """
    Accounting basis for BAS reporting.

    CASH: only income that has been paid counts
    ACCRUAL: all invoiced income counts
    """
    CASH = "CASH"
    ACCRUAL = "ACCRUAL"


class BasLabel(str, Enum):
    """BAS purchase label a category reports under."""
    G10 = "G10"  # Capital purchases
    G11 = "G11"  # Non-capital purchases
    NONE = ""


# =============================================================================
# REFERENCE RECORDS
# =============================================================================

class Client(BaseModel):
    """
    A person or company that pays for freelance work.

    SENSITIVE: `name` and `abn` are encrypted at rest.
    Never log these values.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Client legal name"
    )
    abn: Optional[str] = Field(
        default=None,
        description="Australian Business Number (11 digits)"
    )
    is_psi_eligible: bool = Field(
        default=False,
        description="Payments fall under Personal Services Income rules"
    )
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @field_validator('abn')
    @classmethod
    def validate_abn(cls, v: Optional[str]) -> Optional[str]:
        """ABNs are written with spaces ("51 824 753 556"); store digits only."""
        if v is None:
            return None
        digits = v.replace(" ", "")
        if not digits:
            return None
        if not digits.isdigit() or len(digits) != 11:
            raise ValueError("ABN must be 11 digits")
        return digits


class Category(BaseModel):
    """Expense category, mapped to a BAS label."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    name: str = Field(..., min_length=1, max_length=100)
    bas_label: BasLabel = Field(
        default=BasLabel.G11,
        description="BAS label for Full BAS reporting"
    )
    is_deductible: bool = True


class Provider(BaseModel):
    """
    A vendor or supplier.

    International providers do not charge Australian GST, so their
    expenses never contribute to BAS 1B.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    name: str = Field(..., min_length=1, max_length=200)
    is_international: bool = False
    default_category_id: Optional[UUID] = None


# =============================================================================
# TRANSACTIONS
# =============================================================================

class Expense(BaseModel):
    """
    A business purchase.

    Amounts are stored in FULL. `biz_percent` is applied when reporting,
    never at entry time.

    SENSITIVE: `description` is encrypted at rest.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    date: date
    description: Optional[str] = Field(default=None, max_length=1000)
    amount_cents: int = Field(
        ...,
        gt=0,
        description="Total in cents, GST inclusive"
    )
    gst_cents: int = Field(
        default=0,
        ge=0,
        description="GST component in cents"
    )
    biz_percent: int = Field(
        default=100,
        ge=0,
        le=100,
        description="Business use percentage"
    )
    currency: str = Field(default="AUD", min_length=3, max_length=3)
    provider: Provider
    category: Category
    import_job_id: Optional[UUID] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @model_validator(mode='after')
    def validate_gst(self) -> 'Expense':
        if self.gst_cents > self.amount_cents:
            raise ValueError("GST cannot exceed the total amount")
        return self


class Income(BaseModel):
    """
    An invoice issued to a client.

    SENSITIVE: `description` is encrypted at rest (and the client's
    name/ABN through the client record).
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    date: date
    client: Client
    invoice_num: Optional[str] = Field(default=None, max_length=50)
    description: Optional[str] = Field(default=None, max_length=1000)
    subtotal_cents: int = Field(..., ge=0)
    gst_cents: int = Field(default=0, ge=0)
    total_cents: int = Field(..., ge=0)
    is_paid: bool = False
    paid_date: Optional[date] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @model_validator(mode='after')
    def validate_totals(self) -> 'Income':
        if self.subtotal_cents + self.gst_cents != self.total_cents:
            raise ValueError("Total must equal subtotal plus GST")
        if self.paid_date and self.paid_date < self.date:
            raise ValueError("Paid date cannot be before invoice date")
        return self


# =============================================================================
# IMPORT JOBS
# =============================================================================

class ImportStatus(str, Enum):
    """Lifecycle of a CSV import batch."""
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class ImportJob(BaseModel):
    """
    One CSV import batch.

    Created as PENDING before rows are saved. Ends COMPLETED, or FAILED
    when nothing could be imported or saving the batch failed.
    """

    id: UUID = Field(default_factory=uuid4)
    record_type: str = Field(..., pattern="^(expense|income)$")
    source: str = Field(default="custom", description="Export format the file was read as")
    status: ImportStatus = ImportStatus.PENDING
    total_rows: int = Field(default=0, ge=0)
    imported_count: int = Field(default=0, ge=0)
    failed_count: int = Field(default=0, ge=0)
    duplicate_count: int = Field(default=0, ge=0)
    total_amount_cents: int = 0
    total_gst_cents: int = 0
    error_message: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    completed_at: Optional[datetime] = None


# =============================================================================
# VALIDATION
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'duplicate')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggested fix if available"
    )
