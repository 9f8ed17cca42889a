"""
Domain Entities - Accounts, business documents, journals and audit entries.
Documents are plain dataclasses; every change produces a new instance via
``dataclasses.replace`` and the repository bumps ``version`` on save.
"""

import uuid
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from .exceptions import OverAllocationError, StateError, ValidationError
from .value_objects import (
    NORMAL_BALANCE,
    AccountCode,
    AccountType,
    BalanceType,
    DocumentKind,
    DocumentStatus,
    InvoiceType,
    JournalType,
    Money,
    PartyType,
    PaymentType,
    SourceType,
)

PARTY_FOR_INVOICE: dict[InvoiceType, PartyType] = {
    InvoiceType.SALES: PartyType.CUSTOMER,
    InvoiceType.SALES_RETURN: PartyType.CUSTOMER,
    InvoiceType.PURCHASE: PartyType.VENDOR,
    InvoiceType.PURCHASE_RETURN: PartyType.VENDOR,
}

PARTY_FOR_PAYMENT: dict[PaymentType, PartyType] = {
    PaymentType.RECEIPT: PartyType.CUSTOMER,
    PaymentType.PAYMENT: PartyType.VENDOR,
}


@dataclass
class Tenant:
    """Entity - tenant with its reporting currency and approval policy."""
    name: str
    base_currency: str = "QAR"
    allow_self_approval: bool = False
    id: uuid.UUID = field(default_factory=uuid.uuid4)


@dataclass
class Account:
    """
    Entity - chart of accounts entry.
    ``balance_type`` defaults to the normal side of ``account_type``.
    """
    code: AccountCode
    name: str
    account_type: AccountType
    tenant_id: uuid.UUID
    balance_type: BalanceType | None = None
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    is_posting_allowed: bool = True
    is_active: bool = True
    version: int = 1

    def __post_init__(self) -> None:
        if self.balance_type is None:
            self.balance_type = NORMAL_BALANCE[self.account_type]


@dataclass
class FiscalPeriod:
    """Entity - bounded date range; a closed period rejects postings."""
    name: str
    tenant_id: uuid.UUID
    start_date: date
    end_date: date
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    is_closed: bool = False
    closed_at: datetime | None = None
    closed_by: str | None = None
    version: int = 1

    def contains(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date

    def overlaps(self, other: "FiscalPeriod") -> bool:
        return self.start_date <= other.end_date and other.start_date <= self.end_date

    def close(self, actor: str, now: datetime) -> "FiscalPeriod":
        if self.is_closed:
            raise StateError(f"Fiscal period {self.name} is already closed")
        return replace(self, is_closed=True, closed_at=now, closed_by=actor)

    def reopen(self) -> "FiscalPeriod":
        if not self.is_closed:
            raise StateError(f"Fiscal period {self.name} is not closed")
        return replace(self, is_closed=False, closed_at=None, closed_by=None)


@dataclass(frozen=True, slots=True)
class LineAmounts:
    subtotal: Money
    discount: Money
    taxable: Money
    tax: Money
    total: Money


@dataclass(frozen=True, slots=True)
class InvoiceLine:
    """Invoice line item with flat percentage discount and tax."""
    line_number: int
    quantity: Decimal
    unit_price: Decimal
    tax_rate: Decimal = Decimal("0")
    discount_percent: Decimal = Decimal("0")
    description: str = ""
    account_id: uuid.UUID | None = None
    cost_center_id: uuid.UUID | None = None

    def validate(self) -> None:
        if self.quantity <= 0:
            raise ValidationError(f"Line {self.line_number}: quantity must be greater than zero")
        if self.unit_price < 0:
            raise ValidationError(f"Line {self.line_number}: unit price must not be negative")
        if self.tax_rate < 0:
            raise ValidationError(f"Line {self.line_number}: tax rate must not be negative")
        if not Decimal("0") <= self.discount_percent <= Decimal("100"):
            raise ValidationError(f"Line {self.line_number}: discount must be between 0 and 100")

    def amounts(self, currency: str) -> LineAmounts:
        subtotal = Money(self.quantity * self.unit_price, currency)
        discount = subtotal.percent(self.discount_percent)
        taxable = subtotal - discount
        tax = taxable.percent(self.tax_rate)
        return LineAmounts(
            subtotal=subtotal,
            discount=discount,
            taxable=taxable,
            tax=tax,
            total=taxable + tax,
        )


def validate_line_numbers(numbers: list[int]) -> None:
    """Line numbers must be 1..n with no gaps or duplicates."""
    if sorted(numbers) != list(range(1, len(numbers) + 1)):
        raise ValidationError("Line numbers must be unique, 1-based and contiguous")


@dataclass
class Invoice:
    """
    Entity - sales or purchase invoice.
    Mutable only while draft; the exchange rate is frozen at creation.
    """
    invoice_number: str
    invoice_type: InvoiceType
    party_type: PartyType
    party_id: str
    invoice_date: date
    currency: str
    tenant_id: uuid.UUID
    created_by: str
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    exchange_rate: Decimal | None = Decimal("1")
    lines: list[InvoiceLine] = field(default_factory=list)
    due_date: date | None = None
    status: DocumentStatus = DocumentStatus.DRAFT
    subtotal: Money | None = None
    discount_amount: Money | None = None
    tax_amount: Money | None = None
    total_amount: Money | None = None
    base_currency_amount: Money | None = None
    paid_amount: Money | None = None
    balance_amount: Money | None = None
    fiscal_period_id: uuid.UUID | None = None
    posted_journal_id: uuid.UUID | None = None
    notes: str | None = None
    submitted_by: str | None = None
    submitted_at: datetime | None = None
    approved_by: str | None = None
    approved_at: datetime | None = None
    posted_by: str | None = None
    posted_at: datetime | None = None
    version: int = 1

    kind = DocumentKind.INVOICE

    def __post_init__(self) -> None:
        self.currency = self.currency.upper()
        if self.total_amount is None:
            for name, value in self._totals(self.lines).items():
                setattr(self, name, value)
        if self.paid_amount is None:
            self.paid_amount = Money.zero(self.currency)
        if self.balance_amount is None:
            self.balance_amount = self.total_amount - self.paid_amount

    @property
    def transaction_date(self) -> date:
        return self.invoice_date

    def _totals(self, lines: list[InvoiceLine]) -> dict[str, Money]:
        amounts = [line.amounts(self.currency) for line in lines]
        return {
            "subtotal": Money.total((a.subtotal for a in amounts), self.currency),
            "discount_amount": Money.total((a.discount for a in amounts), self.currency),
            "tax_amount": Money.total((a.tax for a in amounts), self.currency),
            "total_amount": Money.total((a.total for a in amounts), self.currency),
        }

    def gross_line_value(self) -> Decimal:
        return sum((line.quantity * line.unit_price for line in self.lines), Decimal("0"))

    def ensure_editable(self) -> None:
        if self.status != DocumentStatus.DRAFT:
            raise StateError(f"Invoice {self.invoice_number} can only be changed while draft")

    def with_lines(self, lines: list[InvoiceLine]) -> "Invoice":
        self.ensure_editable()
        totals = self._totals(lines)
        return replace(
            self,
            lines=list(lines),
            balance_amount=totals["total_amount"] - self.paid_amount,
            **totals,
        )

    def receive_payment(self, amount: Money) -> "Invoice":
        """Apply a posted allocation and derive paid/partial from the balance."""
        if amount > self.balance_amount:
            raise OverAllocationError(
                f"Allocation {amount} exceeds balance {self.balance_amount} "
                f"of invoice {self.invoice_number}",
                invoice_id=str(self.id),
            )
        paid = self.paid_amount + amount
        balance = self.total_amount - paid
        return replace(
            self,
            paid_amount=paid,
            balance_amount=balance,
            status=DocumentStatus.PAID if balance.is_zero() else DocumentStatus.PARTIAL,
        )


@dataclass(frozen=True, slots=True)
class PaymentAllocation:
    invoice_id: uuid.UUID
    amount: Money
    id: uuid.UUID = field(default_factory=uuid.uuid4)


@dataclass
class Payment:
    """Entity - customer receipt or vendor payment with invoice allocations."""
    payment_number: str
    payment_type: PaymentType
    party_type: PartyType
    party_id: str
    payment_date: date
    amount: Money
    tenant_id: uuid.UUID
    created_by: str
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    exchange_rate: Decimal | None = Decimal("1")
    bank_account_id: uuid.UUID | None = None
    allocations: list[PaymentAllocation] = field(default_factory=list)
    status: DocumentStatus = DocumentStatus.DRAFT
    posted_journal_id: uuid.UUID | None = None
    notes: str | None = None
    submitted_by: str | None = None
    submitted_at: datetime | None = None
    approved_by: str | None = None
    approved_at: datetime | None = None
    posted_by: str | None = None
    posted_at: datetime | None = None
    version: int = 1

    kind = DocumentKind.PAYMENT

    @property
    def currency(self) -> str:
        return self.amount.currency

    @property
    def transaction_date(self) -> date:
        return self.payment_date

    def allocated_amount(self) -> Money:
        return Money.total((a.amount for a in self.allocations), self.currency)

    def unallocated_amount(self) -> Money:
        return self.amount - self.allocated_amount()

    def ensure_editable(self) -> None:
        if self.status != DocumentStatus.DRAFT:
            raise StateError(f"Payment {self.payment_number} can only be changed while draft")


@dataclass(frozen=True, slots=True)
class JournalLine:
    """Ledger line in base currency; exactly one of debit/credit is non-zero."""
    account_id: uuid.UUID
    debit: Money
    credit: Money
    line_number: int = 0
    description: str = ""
    cost_center_id: uuid.UUID | None = None

    def has_single_side(self) -> bool:
        if self.debit.is_negative() or self.credit.is_negative():
            return False
        return self.debit.is_zero() != self.credit.is_zero()


@dataclass
class Journal:
    """
    Entity - journal entry. Derived journals are always in base currency.
    Double entry: total debit == total credit in minor units.
    """
    journal_number: str
    journal_type: JournalType
    transaction_date: date
    currency: str
    tenant_id: uuid.UUID
    created_by: str
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    lines: list[JournalLine] = field(default_factory=list)
    source_type: SourceType = SourceType.MANUAL
    source_id: uuid.UUID | None = None
    reversal_of_id: uuid.UUID | None = None
    description: str = ""
    status: DocumentStatus = DocumentStatus.DRAFT
    submitted_by: str | None = None
    submitted_at: datetime | None = None
    approved_by: str | None = None
    approved_at: datetime | None = None
    posted_by: str | None = None
    posted_at: datetime | None = None
    version: int = 1

    kind = DocumentKind.JOURNAL

    def __post_init__(self) -> None:
        self.currency = self.currency.upper()

    @property
    def total_debit(self) -> Money:
        return Money.total((line.debit for line in self.lines), self.currency)

    @property
    def total_credit(self) -> Money:
        return Money.total((line.credit for line in self.lines), self.currency)

    def is_balanced(self) -> bool:
        return self.total_debit.minor_units == self.total_credit.minor_units

    def ensure_editable(self) -> None:
        if self.status != DocumentStatus.DRAFT:
            raise StateError(f"Journal {self.journal_number} can only be changed while draft")


Document = Invoice | Payment | Journal


@dataclass(frozen=True, slots=True)
class AuditLogEntry:
    """Append-only audit record; never updated or deleted."""
    action: str
    entity: str
    entity_id: str | None
    user_id: str
    tenant_id: uuid.UUID
    timestamp: datetime
    success: bool = True
    changes: dict[str, dict[str, Any]] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)
    error_message: str | None = None
    error_code: str | None = None
    execution_time_ms: int | None = None
    id: uuid.UUID = field(default_factory=uuid.uuid4)
