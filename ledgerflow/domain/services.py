"""
Domain Services - Repository contracts and the exchange-rate lookup.
Every repository method takes ``tenant_id``; a row of another tenant is
treated exactly like a missing row.
"""

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal

from .entities import (
    Account,
    AuditLogEntry,
    FiscalPeriod,
    Invoice,
    Journal,
    JournalLine,
    Payment,
    Tenant,
)
from .exceptions import ValidationError
from .value_objects import InvoiceType, JournalType, Money, PaymentType


class ITenantRepository(ABC):

    @abstractmethod
    def get(self, tenant_id: uuid.UUID) -> Tenant | None:
        ...

    @abstractmethod
    def list_active(self) -> list[Tenant]:
        ...

    @abstractmethod
    def add(self, tenant: Tenant) -> Tenant:
        ...


class IAccountRepository(ABC):

    @abstractmethod
    def list(self, tenant_id: uuid.UUID) -> list[Account]:
        ...

    @abstractmethod
    def get(self, tenant_id: uuid.UUID, account_id: uuid.UUID) -> Account | None:
        ...

    @abstractmethod
    def get_by_code(self, tenant_id: uuid.UUID, code: str) -> Account | None:
        ...

    @abstractmethod
    def add(self, account: Account) -> Account:
        ...

    @abstractmethod
    def update(self, account: Account) -> Account:
        """Version-checked write; raises ConflictError on a stale version."""
        ...

    @abstractmethod
    def is_referenced(self, tenant_id: uuid.UUID, account_id: uuid.UUID) -> bool:
        ...


class IFiscalPeriodRepository(ABC):

    @abstractmethod
    def list(self, tenant_id: uuid.UUID) -> list[FiscalPeriod]:
        ...

    @abstractmethod
    def get(self, tenant_id: uuid.UUID, period_id: uuid.UUID) -> FiscalPeriod | None:
        ...

    @abstractmethod
    def find_for_date(
        self, tenant_id: uuid.UUID, day: date, *, for_update: bool = False
    ) -> FiscalPeriod | None:
        ...

    @abstractmethod
    def touch(self, period: FiscalPeriod) -> FiscalPeriod:
        """Bump the version without changing the row; serializes posts against close."""
        ...

    @abstractmethod
    def add(self, period: FiscalPeriod) -> FiscalPeriod:
        ...

    @abstractmethod
    def update(self, period: FiscalPeriod) -> FiscalPeriod:
        ...


class IInvoiceRepository(ABC):

    @abstractmethod
    def get(self, tenant_id: uuid.UUID, invoice_id: uuid.UUID, *, for_update: bool = False) -> Invoice | None:
        ...

    @abstractmethod
    def add(self, invoice: Invoice) -> Invoice:
        ...

    @abstractmethod
    def update(self, invoice: Invoice) -> Invoice:
        """Version-checked write of header, lines and balances."""
        ...

    @abstractmethod
    def delete(self, invoice: Invoice) -> None:
        """Version-checked removal of a draft with its lines."""
        ...

    @abstractmethod
    def next_number(self, tenant_id: uuid.UUID, invoice_type: InvoiceType) -> str:
        ...

    @abstractmethod
    def reserved_amount(
        self,
        tenant_id: uuid.UUID,
        invoice_id: uuid.UUID,
        currency: str,
        exclude_payment_id: uuid.UUID | None = None,
    ) -> Money:
        """Sum of allocations on the invoice from payments that are not posted or cancelled."""
        ...


class IPaymentRepository(ABC):

    @abstractmethod
    def get(self, tenant_id: uuid.UUID, payment_id: uuid.UUID, *, for_update: bool = False) -> Payment | None:
        ...

    @abstractmethod
    def add(self, payment: Payment) -> Payment:
        ...

    @abstractmethod
    def update(self, payment: Payment) -> Payment:
        ...

    @abstractmethod
    def delete(self, payment: Payment) -> None:
        ...

    @abstractmethod
    def next_number(self, tenant_id: uuid.UUID, payment_type: PaymentType) -> str:
        ...


class IJournalRepository(ABC):

    @abstractmethod
    def get(self, tenant_id: uuid.UUID, journal_id: uuid.UUID, *, for_update: bool = False) -> Journal | None:
        ...

    @abstractmethod
    def add(self, journal: Journal) -> Journal:
        ...

    @abstractmethod
    def update(self, journal: Journal) -> Journal:
        ...

    @abstractmethod
    def delete(self, journal: Journal) -> None:
        ...

    @abstractmethod
    def next_number(self, tenant_id: uuid.UUID, journal_type: JournalType) -> str:
        ...

    @abstractmethod
    def find_reversal(self, tenant_id: uuid.UUID, journal_id: uuid.UUID) -> Journal | None:
        ...

    @abstractmethod
    def posted_lines(self, tenant_id: uuid.UUID, as_of: date) -> list[JournalLine]:
        ...


class IExchangeRateRepository(ABC):

    @abstractmethod
    def latest(self, tenant_id: uuid.UUID, currency: str, on_or_before: date) -> Decimal | None:
        ...

    @abstractmethod
    def add(self, tenant_id: uuid.UUID, currency: str, valuation_date: date, rate: Decimal) -> None:
        ...


@dataclass
class AuditLogFilter:
    tenant_id: uuid.UUID
    actions: list[str] = field(default_factory=list)
    entities: list[str] = field(default_factory=list)
    entity_id: str | None = None
    user_id: str | None = None
    success: bool | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    page: int = 1
    limit: int = 50
    descending: bool = True


class IAuditLogRepository(ABC):
    """Append-only; there is no update or delete."""

    @abstractmethod
    def append(self, entry: AuditLogEntry) -> None:
        ...

    @abstractmethod
    def search(self, filters: AuditLogFilter) -> tuple[list[AuditLogEntry], int]:
        ...

    @abstractmethod
    def between(
        self, tenant_id: uuid.UUID, start: datetime | None, end: datetime | None
    ) -> list[AuditLogEntry]:
        ...


class IUnitOfWork(ABC):
    """One atomic unit per lifecycle action: everything commits or nothing does."""

    tenants: ITenantRepository
    accounts: IAccountRepository
    periods: IFiscalPeriodRepository
    invoices: IInvoiceRepository
    payments: IPaymentRepository
    journals: IJournalRepository
    exchange_rates: IExchangeRateRepository

    def __enter__(self) -> "IUnitOfWork":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is not None:
            self.rollback()

    @abstractmethod
    def commit(self) -> None:
        ...

    @abstractmethod
    def rollback(self) -> None:
        ...


class ExchangeRateService:
    """
    Service - captures the rate once, when a document is created.
    Later lifecycle steps only ever read the frozen value.
    """

    def __init__(self, rates: IExchangeRateRepository):
        self.rates = rates

    def capture(
        self,
        tenant_id: uuid.UUID,
        currency: str,
        base_currency: str,
        on: date,
        supplied: Decimal | None = None,
    ) -> Decimal | None:
        if currency.upper() == base_currency.upper():
            if supplied is not None and supplied != 1:
                raise ValidationError(f"Exchange rate for base currency {base_currency} must be 1")
            return Decimal("1")
        if supplied is not None:
            if supplied <= 0:
                raise ValidationError("Exchange rate must be greater than zero")
            return supplied
        # None is kept on the draft; submit rejects it.
        return self.rates.latest(tenant_id, currency.upper(), on)
