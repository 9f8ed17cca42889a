"""
API DTOs - Data Transfer Objects for API requests/responses.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ledgerflow.domain.value_objects import (
    AccountType,
    BalanceType,
    DocumentStatus,
    InvoiceType,
    JournalType,
    Money,
    PartyType,
    PaymentType,
    SourceType,
)


class LedgerModel(BaseModel):
    """Response base - reads domain entities and unwraps Money into its amount."""

    model_config = ConfigDict(from_attributes=True)

    @field_validator("*", mode="before")
    @classmethod
    def unwrap_money(cls, value: Any) -> Any:
        if isinstance(value, Money):
            return value.amount
        return value


# ---------------------------------------------------------------------------
# Tenants, accounts, periods
# ---------------------------------------------------------------------------


class TenantCreateDTO(BaseModel):
    """DTO - Create a tenant with an optional default chart of accounts."""
    name: str = Field(..., min_length=1, max_length=200)
    base_currency: str = Field("QAR", min_length=3, max_length=3)
    allow_self_approval: bool = False
    seed_chart: bool = Field(True, description="Seed the default chart of accounts")


class TenantResponseDTO(LedgerModel):
    id: UUID
    name: str
    base_currency: str
    allow_self_approval: bool


class AccountCreateDTO(BaseModel):
    """DTO - Create a chart of accounts entry."""
    code: str = Field(..., min_length=1, max_length=20)
    name: str = Field(..., min_length=1, max_length=200)
    account_type: AccountType
    balance_type: BalanceType | None = Field(None, description="Defaults to the normal side of the type")
    is_posting_allowed: bool = True


class AccountUpdateDTO(BaseModel):
    """DTO - Type and balance type are frozen once the account is used."""
    name: str | None = Field(None, min_length=1, max_length=200)
    account_type: AccountType | None = None
    balance_type: BalanceType | None = None
    is_posting_allowed: bool | None = None
    is_active: bool | None = None


class AccountResponseDTO(LedgerModel):
    id: UUID
    code: str
    name: str
    account_type: AccountType
    balance_type: BalanceType
    is_posting_allowed: bool
    is_active: bool
    version: int


class FiscalPeriodCreateDTO(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    start_date: date
    end_date: date


class FiscalPeriodResponseDTO(LedgerModel):
    id: UUID
    name: str
    start_date: date
    end_date: date
    is_closed: bool
    closed_at: datetime | None
    closed_by: str | None


class ExchangeRateCreateDTO(BaseModel):
    currency: str = Field(..., min_length=3, max_length=3)
    valuation_date: date
    rate: Decimal = Field(..., gt=0)


# ---------------------------------------------------------------------------
# Invoices
# ---------------------------------------------------------------------------


class InvoiceLineCreateDTO(BaseModel):
    """DTO - Invoice line; line numbers are assigned 1..n when omitted."""
    line_number: int | None = Field(None, ge=1)
    description: str = ""
    quantity: Decimal = Field(..., description="Must be greater than zero")
    unit_price: Decimal = Field(..., description="Must not be negative")
    tax_rate: Decimal = Field(Decimal("0"), description="Percent")
    discount_percent: Decimal = Field(Decimal("0"), description="Percent, 0-100")
    account_id: UUID | None = Field(None, description="Revenue/expense account override")
    cost_center_id: UUID | None = None


class InvoiceCreateDTO(BaseModel):
    """DTO - Create a draft invoice."""
    invoice_type: InvoiceType
    party_type: PartyType | None = Field(None, description="Derived from the invoice type when omitted")
    party_id: str = Field(..., min_length=1)
    invoice_date: date
    due_date: date | None = None
    currency: str | None = Field(None, min_length=3, max_length=3, description="Defaults to base currency")
    exchange_rate: Decimal | None = Field(None, description="Looked up from recorded rates when omitted")
    notes: str | None = None
    lines: list[InvoiceLineCreateDTO] = Field(default_factory=list)

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "invoice_type": "sales",
            "party_id": "CUST-001",
            "invoice_date": "2026-01-15",
            "currency": "QAR",
            "lines": [
                {"description": "Consulting", "quantity": 10, "unit_price": 500, "tax_rate": 15}
            ],
        }
    })


class InvoiceUpdateDTO(BaseModel):
    """DTO - Draft edits only."""
    party_id: str | None = Field(None, min_length=1)
    invoice_date: date | None = None
    due_date: date | None = None
    notes: str | None = None
    lines: list[InvoiceLineCreateDTO] | None = None


class InvoiceLineResponseDTO(LedgerModel):
    line_number: int
    description: str
    quantity: Decimal
    unit_price: Decimal
    tax_rate: Decimal
    discount_percent: Decimal
    account_id: UUID | None
    cost_center_id: UUID | None


class InvoiceResponseDTO(LedgerModel):
    id: UUID
    invoice_number: str
    invoice_type: InvoiceType
    party_type: PartyType
    party_id: str
    invoice_date: date
    due_date: date | None
    currency: str
    exchange_rate: Decimal | None
    status: DocumentStatus
    lines: list[InvoiceLineResponseDTO]
    subtotal: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    base_currency_amount: Decimal | None
    paid_amount: Decimal
    balance_amount: Decimal
    fiscal_period_id: UUID | None
    posted_journal_id: UUID | None
    notes: str | None
    created_by: str
    submitted_by: str | None
    approved_by: str | None
    posted_by: str | None
    posted_at: datetime | None
    version: int


# ---------------------------------------------------------------------------
# Payments
# ---------------------------------------------------------------------------


class AllocationCreateDTO(BaseModel):
    invoice_id: UUID
    amount: Decimal = Field(..., gt=0)


class PaymentCreateDTO(BaseModel):
    """DTO - Create a draft receipt or payment."""
    payment_type: PaymentType
    party_type: PartyType | None = None
    party_id: str = Field(..., min_length=1)
    payment_date: date
    amount: Decimal
    currency: str | None = Field(None, min_length=3, max_length=3)
    exchange_rate: Decimal | None = None
    bank_account_id: UUID | None = None
    notes: str | None = None


class PaymentUpdateDTO(BaseModel):
    """DTO - Draft edits only; the captured exchange rate is kept."""
    party_id: str | None = Field(None, min_length=1)
    payment_date: date | None = None
    amount: Decimal | None = None
    bank_account_id: UUID | None = None
    notes: str | None = None


class AllocationResponseDTO(LedgerModel):
    id: UUID
    invoice_id: UUID
    amount: Decimal


class PaymentResponseDTO(LedgerModel):
    id: UUID
    payment_number: str
    payment_type: PaymentType
    party_type: PartyType
    party_id: str
    payment_date: date
    amount: Decimal
    currency: str
    exchange_rate: Decimal | None
    bank_account_id: UUID | None
    allocations: list[AllocationResponseDTO]
    status: DocumentStatus
    posted_journal_id: UUID | None
    notes: str | None
    created_by: str
    posted_at: datetime | None
    version: int


# ---------------------------------------------------------------------------
# Journals
# ---------------------------------------------------------------------------


class JournalLineCreateDTO(BaseModel):
    line_number: int | None = Field(None, ge=1)
    account_id: UUID
    debit: Decimal = Decimal("0")
    credit: Decimal = Decimal("0")
    description: str = ""
    cost_center_id: UUID | None = None


class JournalCreateDTO(BaseModel):
    """DTO - Manual journal; always in the tenant base currency."""
    journal_type: JournalType = JournalType.GENERAL
    transaction_date: date
    currency: str | None = Field(None, min_length=3, max_length=3)
    description: str = ""
    lines: list[JournalLineCreateDTO] = Field(default_factory=list)


class JournalUpdateDTO(BaseModel):
    """DTO - Draft manual journals only; replaced lines must still balance."""
    transaction_date: date | None = None
    description: str | None = None
    lines: list[JournalLineCreateDTO] | None = None


class ReversalRequestDTO(BaseModel):
    reversal_date: date | None = Field(None, description="Defaults to the original transaction date")


class JournalLineResponseDTO(LedgerModel):
    line_number: int
    account_id: UUID
    debit: Decimal
    credit: Decimal
    description: str
    cost_center_id: UUID | None


class JournalResponseDTO(LedgerModel):
    id: UUID
    journal_number: str
    journal_type: JournalType
    transaction_date: date
    currency: str
    source_type: SourceType
    source_id: UUID | None
    reversal_of_id: UUID | None
    description: str
    status: DocumentStatus
    lines: list[JournalLineResponseDTO]
    total_debit: Decimal
    total_credit: Decimal
    created_by: str
    posted_by: str | None
    posted_at: datetime | None
    version: int


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------


class TrialBalanceLineDTO(BaseModel):
    account_id: UUID
    code: str
    name: str
    account_type: AccountType
    balance_type: BalanceType
    total_debit: Decimal
    total_credit: Decimal
    balance: Decimal


class UnknownAccountLineDTO(BaseModel):
    account_id: UUID
    total_debit: Decimal
    total_credit: Decimal


class TrialBalanceDTO(BaseModel):
    """DTO - Trial balance as of a date, in base currency."""
    as_of: date
    currency: str
    entries: list[TrialBalanceLineDTO]
    unknown_accounts: list[UnknownAccountLineDTO] = Field(
        default_factory=list, description="Posted lines on accounts missing from the chart; included in the totals"
    )
    total_debit: Decimal
    total_credit: Decimal
    is_balanced: bool


class AuditLogResponseDTO(BaseModel):
    """DTO - Audit log."""
    id: UUID
    action: str
    entity: str
    entity_id: str | None
    user_id: str
    timestamp: datetime
    success: bool
    changes: dict[str, Any]
    metadata: dict[str, Any]
    error_message: str | None
    error_code: str | None
    execution_time_ms: int | None

    model_config = ConfigDict(from_attributes=True)


class AuditLogPageDTO(BaseModel):
    data: list[AuditLogResponseDTO]
    total: int
    page: int
    limit: int


class AuditStatisticsDTO(BaseModel):
    total_actions: int
    actions_by_type: dict[str, int]
    actions_by_entity: dict[str, int]
    actions_by_user: list[dict[str, Any]]
    actions_over_time: list[dict[str, Any]]
    failed_actions: int
    failure_rate: float
    avg_execution_time_ms: float | None
    slowest_actions: list[dict[str, Any]]

    model_config = ConfigDict(from_attributes=True)
