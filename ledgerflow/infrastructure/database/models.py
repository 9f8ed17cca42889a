"""
Infrastructure - SQLModel database models.
Money columns hold the amount only; the currency lives on the owning document.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import DateTime, UniqueConstraint
from sqlmodel import Field, SQLModel

from ledgerflow.domain.value_objects import utc_now

MONEY = {"max_digits": 20, "decimal_places": 4}
RATE = {"max_digits": 20, "decimal_places": 8}
TIMESTAMP = DateTime(timezone=True)


class Tenant(SQLModel, table=True):
    """Tenant (company) with its base currency."""

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    name: str
    base_currency: str = "QAR"
    allow_self_approval: bool = False
    is_active: bool = True
    created_at: datetime = Field(default_factory=utc_now, sa_type=TIMESTAMP)
    updated_at: datetime = Field(default_factory=utc_now, sa_type=TIMESTAMP)


class Account(SQLModel, table=True):
    """Chart of accounts entry."""

    __table_args__ = (UniqueConstraint("tenant_id", "code"),)

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    tenant_id: UUID = Field(foreign_key="tenant.id", index=True)
    code: str = Field(index=True)
    name: str
    account_type: str
    balance_type: str
    is_posting_allowed: bool = True
    is_active: bool = True
    created_at: datetime = Field(default_factory=utc_now, sa_type=TIMESTAMP)
    updated_at: datetime = Field(default_factory=utc_now, sa_type=TIMESTAMP)
    version: int = 1


class FiscalPeriod(SQLModel, table=True):
    """Accounting period; closed periods reject postings."""

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    tenant_id: UUID = Field(foreign_key="tenant.id", index=True)
    name: str
    start_date: date
    end_date: date
    is_closed: bool = False
    closed_at: datetime | None = Field(default=None, sa_type=TIMESTAMP)
    closed_by: str | None = None
    created_at: datetime = Field(default_factory=utc_now, sa_type=TIMESTAMP)
    updated_at: datetime = Field(default_factory=utc_now, sa_type=TIMESTAMP)
    version: int = 1


class Invoice(SQLModel, table=True):
    """Sales/purchase invoice header with running balances."""

    __table_args__ = (UniqueConstraint("tenant_id", "invoice_number"),)

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    tenant_id: UUID = Field(foreign_key="tenant.id", index=True)
    invoice_number: str = Field(index=True)
    invoice_type: str
    party_type: str
    party_id: str = Field(index=True)
    invoice_date: date = Field(index=True)
    due_date: date | None = None
    currency: str
    exchange_rate: Decimal | None = Field(default=None, **RATE)
    status: str = Field(default="draft", index=True)

    subtotal: Decimal = Field(default=Decimal("0"), **MONEY)
    discount_amount: Decimal = Field(default=Decimal("0"), **MONEY)
    tax_amount: Decimal = Field(default=Decimal("0"), **MONEY)
    total_amount: Decimal = Field(default=Decimal("0"), **MONEY)
    base_currency: str | None = None
    base_currency_amount: Decimal | None = Field(default=None, **MONEY)
    paid_amount: Decimal = Field(default=Decimal("0"), **MONEY)
    balance_amount: Decimal = Field(default=Decimal("0"), **MONEY)

    fiscal_period_id: UUID | None = Field(default=None, foreign_key="fiscalperiod.id")
    posted_journal_id: UUID | None = None
    notes: str | None = None

    created_by: str
    submitted_by: str | None = None
    submitted_at: datetime | None = Field(default=None, sa_type=TIMESTAMP)
    approved_by: str | None = None
    approved_at: datetime | None = Field(default=None, sa_type=TIMESTAMP)
    posted_by: str | None = None
    posted_at: datetime | None = Field(default=None, sa_type=TIMESTAMP)
    created_at: datetime = Field(default_factory=utc_now, sa_type=TIMESTAMP)
    updated_at: datetime = Field(default_factory=utc_now, sa_type=TIMESTAMP)
    version: int = 1


class InvoiceLine(SQLModel, table=True):
    """Invoice line with its computed amounts."""

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    invoice_id: UUID = Field(foreign_key="invoice.id", index=True)
    line_number: int
    description: str = ""
    quantity: Decimal = Field(**RATE)
    unit_price: Decimal = Field(**RATE)
    tax_rate: Decimal = Field(default=Decimal("0"), **MONEY)
    discount_percent: Decimal = Field(default=Decimal("0"), **MONEY)
    account_id: UUID | None = Field(default=None, foreign_key="account.id")
    cost_center_id: UUID | None = None

    subtotal: Decimal = Field(default=Decimal("0"), **MONEY)
    discount_amount: Decimal = Field(default=Decimal("0"), **MONEY)
    tax_amount: Decimal = Field(default=Decimal("0"), **MONEY)
    line_total: Decimal = Field(default=Decimal("0"), **MONEY)


class Payment(SQLModel, table=True):
    """Customer receipt or vendor payment."""

    __table_args__ = (UniqueConstraint("tenant_id", "payment_number"),)

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    tenant_id: UUID = Field(foreign_key="tenant.id", index=True)
    payment_number: str = Field(index=True)
    payment_type: str
    party_type: str
    party_id: str = Field(index=True)
    payment_date: date = Field(index=True)
    amount: Decimal = Field(**MONEY)
    currency: str
    exchange_rate: Decimal | None = Field(default=None, **RATE)
    bank_account_id: UUID | None = Field(default=None, foreign_key="account.id")
    status: str = Field(default="draft", index=True)
    posted_journal_id: UUID | None = None
    notes: str | None = None

    created_by: str
    submitted_by: str | None = None
    submitted_at: datetime | None = Field(default=None, sa_type=TIMESTAMP)
    approved_by: str | None = None
    approved_at: datetime | None = Field(default=None, sa_type=TIMESTAMP)
    posted_by: str | None = None
    posted_at: datetime | None = Field(default=None, sa_type=TIMESTAMP)
    created_at: datetime = Field(default_factory=utc_now, sa_type=TIMESTAMP)
    updated_at: datetime = Field(default_factory=utc_now, sa_type=TIMESTAMP)
    version: int = 1


class PaymentAllocation(SQLModel, table=True):
    """Portion of a payment applied to one invoice."""

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    tenant_id: UUID = Field(foreign_key="tenant.id", index=True)
    payment_id: UUID = Field(foreign_key="payment.id", index=True)
    invoice_id: UUID = Field(foreign_key="invoice.id", index=True)
    amount: Decimal = Field(**MONEY)
    created_at: datetime = Field(default_factory=utc_now, sa_type=TIMESTAMP)


class Journal(SQLModel, table=True):
    """Journal entry header; derived journals are unique per source document."""

    __table_args__ = (
        UniqueConstraint("tenant_id", "journal_number"),
        UniqueConstraint("tenant_id", "source_type", "source_id"),
    )

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    tenant_id: UUID = Field(foreign_key="tenant.id", index=True)
    journal_number: str = Field(index=True)
    journal_type: str
    source_type: str = "manual"
    source_id: UUID | None = Field(default=None, index=True)
    reversal_of_id: UUID | None = Field(default=None, foreign_key="journal.id")
    transaction_date: date = Field(index=True)
    currency: str
    description: str = ""
    total_debit: Decimal = Field(default=Decimal("0"), **MONEY)
    total_credit: Decimal = Field(default=Decimal("0"), **MONEY)
    status: str = Field(default="draft", index=True)

    created_by: str
    submitted_by: str | None = None
    submitted_at: datetime | None = Field(default=None, sa_type=TIMESTAMP)
    approved_by: str | None = None
    approved_at: datetime | None = Field(default=None, sa_type=TIMESTAMP)
    posted_by: str | None = None
    posted_at: datetime | None = Field(default=None, sa_type=TIMESTAMP)
    created_at: datetime = Field(default_factory=utc_now, sa_type=TIMESTAMP)
    updated_at: datetime = Field(default_factory=utc_now, sa_type=TIMESTAMP)
    version: int = 1


class JournalLine(SQLModel, table=True):
    """Ledger line; exactly one of debit/credit is non-zero."""

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    journal_id: UUID = Field(foreign_key="journal.id", index=True)
    tenant_id: UUID = Field(foreign_key="tenant.id", index=True)
    account_id: UUID = Field(foreign_key="account.id", index=True)
    line_number: int
    debit: Decimal = Field(default=Decimal("0"), **MONEY)
    credit: Decimal = Field(default=Decimal("0"), **MONEY)
    description: str = ""
    cost_center_id: UUID | None = None


class AuditLog(SQLModel, table=True):
    """Append-only audit trail; rows are never updated or deleted."""

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    tenant_id: UUID = Field(index=True)
    user_id: str = Field(index=True)
    action: str = Field(index=True)
    entity: str = Field(index=True)
    entity_id: str | None = Field(default=None, index=True)

    changes: str | None = None        # JSON
    metadata_json: str | None = None  # JSON

    success: bool = Field(default=True, index=True)
    error_message: str | None = None
    error_code: str | None = None
    execution_time_ms: int | None = None
    created_at: datetime = Field(default_factory=utc_now, sa_type=TIMESTAMP, index=True)


class ExchangeRateHistory(SQLModel, table=True):
    """Recorded rates, used to capture a rate when a document is created."""

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    tenant_id: UUID = Field(foreign_key="tenant.id", index=True)
    currency: str = Field(index=True)
    valuation_date: date = Field(index=True)
    rate: Decimal = Field(**RATE)
    source: str | None = None
    created_at: datetime = Field(default_factory=utc_now, sa_type=TIMESTAMP)
