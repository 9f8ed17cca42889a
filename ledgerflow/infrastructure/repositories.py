"""
Infrastructure - SQLAlchemy repositories.

Rows are mapped to domain entities on the way out and back on the way in;
no ORM object leaves this module. Updates are version-checked:

    UPDATE ... WHERE id = :id AND tenant_id = :tenant AND version = :expected
"""

from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import delete, exists, func, select, update
from sqlalchemy.orm import Session

from ledgerflow.domain.entities import (
    Account,
    FiscalPeriod,
    Invoice,
    InvoiceLine,
    Journal,
    JournalLine,
    Payment,
    PaymentAllocation,
    Tenant,
)
from ledgerflow.domain.exceptions import ConflictError
from ledgerflow.domain.services import (
    IAccountRepository,
    IExchangeRateRepository,
    IFiscalPeriodRepository,
    IInvoiceRepository,
    IJournalRepository,
    IPaymentRepository,
    ITenantRepository,
)
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
    as_utc,
    utc_now,
)
from ledgerflow.infrastructure.database import models

INVOICE_PREFIX: dict[InvoiceType, str] = {
    InvoiceType.SALES: "INV",
    InvoiceType.PURCHASE: "BILL",
    InvoiceType.SALES_RETURN: "CN",
    InvoiceType.PURCHASE_RETURN: "DN",
}
PAYMENT_PREFIX: dict[PaymentType, str] = {
    PaymentType.RECEIPT: "RCPT",
    PaymentType.PAYMENT: "PAY",
}
JOURNAL_PREFIX: dict[JournalType, str] = {
    JournalType.GENERAL: "GN",
    JournalType.SALES: "SL",
    JournalType.PURCHASE: "PU",
    JournalType.RECEIPT: "RC",
    JournalType.PAYMENT: "PM",
    JournalType.ADJUSTMENT: "AD",
    JournalType.OPENING: "OP",
    JournalType.CLOSING: "CL",
    JournalType.REVERSAL: "RV",
}
UNPOSTED_PAYMENT_STATUSES = (
    DocumentStatus.DRAFT.value,
    DocumentStatus.SUBMITTED.value,
    DocumentStatus.APPROVED.value,
)

_STAMPS = (
    "submitted_by",
    "submitted_at",
    "approved_by",
    "approved_at",
    "posted_by",
    "posted_at",
)


def _format_number(prefix: str, sequence: int) -> str:
    return f"{prefix}-{sequence:06d}"


def _money(value: Decimal | None, currency: str) -> Money | None:
    if value is None:
        return None
    return Money(Decimal(value), currency)


def _amount(value: Money | None) -> Decimal | None:
    return None if value is None else value.amount


def _stamps(source: Any) -> dict[str, Any]:
    stamps = {}
    for name in _STAMPS:
        value = getattr(source, name)
        stamps[name] = as_utc(value) if name.endswith("_at") else value
    return stamps


class SqlAlchemyRepository:
    """Shared helpers; every subclass works inside the unit of work's session."""

    model: type = None

    def __init__(self, session: Session):
        self.session = session

    def _select_row(self, tenant_id: UUID, row_id: UUID, for_update: bool = False):
        stmt = (
            select(self.model)
            .where(self.model.id == row_id, self.model.tenant_id == tenant_id)
            .execution_options(populate_existing=True)
        )
        if for_update:
            stmt = stmt.with_for_update()
        return self.session.execute(stmt).scalar_one_or_none()

    def _versioned_update(self, tenant_id: UUID, row_id: UUID, expected: int, values: dict) -> int:
        result = self.session.execute(
            update(self.model)
            .where(
                self.model.id == row_id,
                self.model.tenant_id == tenant_id,
                self.model.version == expected,
            )
            .values(**values, version=expected + 1, updated_at=utc_now())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise ConflictError(
                f"{self.model.__name__} {row_id} was modified concurrently (expected version {expected})",
                entity_id=str(row_id),
            )
        return expected + 1

    def _versioned_delete(self, tenant_id: UUID, row_id: UUID, expected: int) -> None:
        result = self.session.execute(
            delete(self.model)
            .where(
                self.model.id == row_id,
                self.model.tenant_id == tenant_id,
                self.model.version == expected,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise ConflictError(
                f"{self.model.__name__} {row_id} was modified concurrently (expected version {expected})",
                entity_id=str(row_id),
            )

    def _next_number(self, tenant_id: UUID, prefix: str, number_column, *criteria) -> str:
        """Follows the highest number issued so far; deleted drafts leave gaps, never reuse."""
        stmt = select(func.max(number_column)).where(self.model.tenant_id == tenant_id, *criteria)
        last = self.session.execute(stmt).scalar_one()
        sequence = int(last.rsplit("-", 1)[1]) if last else 0
        return _format_number(prefix, sequence + 1)


class TenantRepository(ITenantRepository):

    def __init__(self, session: Session):
        self.session = session

    def get(self, tenant_id: UUID) -> Tenant | None:
        row = self.session.get(models.Tenant, tenant_id)
        if row is None or not row.is_active:
            return None
        return Tenant(
            id=row.id,
            name=row.name,
            base_currency=row.base_currency,
            allow_self_approval=row.allow_self_approval,
        )

    def list_active(self) -> list[Tenant]:
        rows = self.session.execute(
            select(models.Tenant).where(models.Tenant.is_active.is_(True)).order_by(models.Tenant.name)
        ).scalars()
        return [
            Tenant(id=row.id, name=row.name, base_currency=row.base_currency,
                   allow_self_approval=row.allow_self_approval)
            for row in rows
        ]

    def add(self, tenant: Tenant) -> Tenant:
        self.session.add(
            models.Tenant(
                id=tenant.id,
                name=tenant.name,
                base_currency=tenant.base_currency.upper(),
                allow_self_approval=tenant.allow_self_approval,
            )
        )
        self.session.flush()
        return tenant


class AccountRepository(SqlAlchemyRepository, IAccountRepository):
    model = models.Account

    @staticmethod
    def _to_entity(row: models.Account) -> Account:
        return Account(
            id=row.id,
            tenant_id=row.tenant_id,
            code=row.code,
            name=row.name,
            account_type=AccountType(row.account_type),
            balance_type=BalanceType(row.balance_type),
            is_posting_allowed=row.is_posting_allowed,
            is_active=row.is_active,
            version=row.version,
        )

    def list(self, tenant_id: UUID) -> list[Account]:
        rows = self.session.execute(
            select(models.Account).where(models.Account.tenant_id == tenant_id).order_by(models.Account.code)
        ).scalars()
        return [self._to_entity(row) for row in rows]

    def get(self, tenant_id: UUID, account_id: UUID) -> Account | None:
        row = self._select_row(tenant_id, account_id)
        return self._to_entity(row) if row else None

    def get_by_code(self, tenant_id: UUID, code: str) -> Account | None:
        row = self.session.execute(
            select(models.Account).where(models.Account.tenant_id == tenant_id, models.Account.code == code)
        ).scalar_one_or_none()
        return self._to_entity(row) if row else None

    def add(self, account: Account) -> Account:
        self.session.add(
            models.Account(
                id=account.id,
                tenant_id=account.tenant_id,
                code=account.code,
                name=account.name,
                account_type=account.account_type.value,
                balance_type=account.balance_type.value,
                is_posting_allowed=account.is_posting_allowed,
                is_active=account.is_active,
                version=account.version,
            )
        )
        self.session.flush()
        return account

    def update(self, account: Account) -> Account:
        version = self._versioned_update(
            account.tenant_id,
            account.id,
            account.version,
            {
                "name": account.name,
                "account_type": account.account_type.value,
                "balance_type": account.balance_type.value,
                "is_posting_allowed": account.is_posting_allowed,
                "is_active": account.is_active,
            },
        )
        account.version = version
        return account

    def is_referenced(self, tenant_id: UUID, account_id: UUID) -> bool:
        stmt = select(
            exists().where(
                models.JournalLine.tenant_id == tenant_id,
                models.JournalLine.account_id == account_id,
            )
        )
        return bool(self.session.execute(stmt).scalar())


class FiscalPeriodRepository(SqlAlchemyRepository, IFiscalPeriodRepository):
    model = models.FiscalPeriod

    @staticmethod
    def _to_entity(row: models.FiscalPeriod) -> FiscalPeriod:
        return FiscalPeriod(
            id=row.id,
            tenant_id=row.tenant_id,
            name=row.name,
            start_date=row.start_date,
            end_date=row.end_date,
            is_closed=row.is_closed,
            closed_at=as_utc(row.closed_at),
            closed_by=row.closed_by,
            version=row.version,
        )

    def list(self, tenant_id: UUID) -> list[FiscalPeriod]:
        rows = self.session.execute(
            select(models.FiscalPeriod)
            .where(models.FiscalPeriod.tenant_id == tenant_id)
            .order_by(models.FiscalPeriod.start_date)
        ).scalars()
        return [self._to_entity(row) for row in rows]

    def get(self, tenant_id: UUID, period_id: UUID) -> FiscalPeriod | None:
        row = self._select_row(tenant_id, period_id)
        return self._to_entity(row) if row else None

    def find_for_date(self, tenant_id: UUID, day: date, *, for_update: bool = False) -> FiscalPeriod | None:
        stmt = (
            select(models.FiscalPeriod)
            .where(
                models.FiscalPeriod.tenant_id == tenant_id,
                models.FiscalPeriod.start_date <= day,
                models.FiscalPeriod.end_date >= day,
            )
            .execution_options(populate_existing=True)
        )
        if for_update:
            stmt = stmt.with_for_update()
        row = self.session.execute(stmt).scalars().first()
        return self._to_entity(row) if row else None

    def add(self, period: FiscalPeriod) -> FiscalPeriod:
        self.session.add(
            models.FiscalPeriod(
                id=period.id,
                tenant_id=period.tenant_id,
                name=period.name,
                start_date=period.start_date,
                end_date=period.end_date,
                is_closed=period.is_closed,
                version=period.version,
            )
        )
        self.session.flush()
        return period

    def update(self, period: FiscalPeriod) -> FiscalPeriod:
        period.version = self._versioned_update(
            period.tenant_id,
            period.id,
            period.version,
            {
                "name": period.name,
                "is_closed": period.is_closed,
                "closed_at": period.closed_at,
                "closed_by": period.closed_by,
            },
        )
        return period

    def touch(self, period: FiscalPeriod) -> FiscalPeriod:
        period.version = self._versioned_update(period.tenant_id, period.id, period.version, {})
        return period


class InvoiceRepository(SqlAlchemyRepository, IInvoiceRepository):
    model = models.Invoice

    def _to_entity(self, row: models.Invoice) -> Invoice:
        line_rows = self.session.execute(
            select(models.InvoiceLine)
            .where(models.InvoiceLine.invoice_id == row.id)
            .order_by(models.InvoiceLine.line_number)
        ).scalars()
        currency = row.currency
        return Invoice(
            id=row.id,
            tenant_id=row.tenant_id,
            invoice_number=row.invoice_number,
            invoice_type=InvoiceType(row.invoice_type),
            party_type=PartyType(row.party_type),
            party_id=row.party_id,
            invoice_date=row.invoice_date,
            due_date=row.due_date,
            currency=currency,
            exchange_rate=row.exchange_rate,
            status=DocumentStatus(row.status),
            lines=[
                InvoiceLine(
                    line_number=line.line_number,
                    description=line.description,
                    quantity=Decimal(line.quantity),
                    unit_price=Decimal(line.unit_price),
                    tax_rate=Decimal(line.tax_rate),
                    discount_percent=Decimal(line.discount_percent),
                    account_id=line.account_id,
                    cost_center_id=line.cost_center_id,
                )
                for line in line_rows
            ],
            subtotal=_money(row.subtotal, currency),
            discount_amount=_money(row.discount_amount, currency),
            tax_amount=_money(row.tax_amount, currency),
            total_amount=_money(row.total_amount, currency),
            base_currency_amount=_money(row.base_currency_amount, row.base_currency or currency),
            paid_amount=_money(row.paid_amount, currency),
            balance_amount=_money(row.balance_amount, currency),
            fiscal_period_id=row.fiscal_period_id,
            posted_journal_id=row.posted_journal_id,
            notes=row.notes,
            created_by=row.created_by,
            version=row.version,
            **_stamps(row),
        )

    def get(self, tenant_id: UUID, invoice_id: UUID, *, for_update: bool = False) -> Invoice | None:
        row = self._select_row(tenant_id, invoice_id, for_update)
        return self._to_entity(row) if row else None

    def _header_values(self, invoice: Invoice) -> dict[str, Any]:
        return {
            "invoice_type": invoice.invoice_type.value,
            "party_type": invoice.party_type.value,
            "party_id": invoice.party_id,
            "invoice_date": invoice.invoice_date,
            "due_date": invoice.due_date,
            "currency": invoice.currency,
            "exchange_rate": invoice.exchange_rate,
            "status": invoice.status.value,
            "subtotal": _amount(invoice.subtotal),
            "discount_amount": _amount(invoice.discount_amount),
            "tax_amount": _amount(invoice.tax_amount),
            "total_amount": _amount(invoice.total_amount),
            "base_currency_amount": _amount(invoice.base_currency_amount),
            "base_currency": invoice.base_currency_amount.currency if invoice.base_currency_amount else None,
            "paid_amount": _amount(invoice.paid_amount),
            "balance_amount": _amount(invoice.balance_amount),
            "fiscal_period_id": invoice.fiscal_period_id,
            "posted_journal_id": invoice.posted_journal_id,
            "notes": invoice.notes,
            **_stamps(invoice),
        }

    def _write_lines(self, invoice: Invoice) -> None:
        self.session.execute(delete(models.InvoiceLine).where(models.InvoiceLine.invoice_id == invoice.id))
        for line in invoice.lines:
            amounts = line.amounts(invoice.currency)
            self.session.add(
                models.InvoiceLine(
                    invoice_id=invoice.id,
                    line_number=line.line_number,
                    description=line.description,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    tax_rate=line.tax_rate,
                    discount_percent=line.discount_percent,
                    account_id=line.account_id,
                    cost_center_id=line.cost_center_id,
                    subtotal=amounts.subtotal.amount,
                    discount_amount=amounts.discount.amount,
                    tax_amount=amounts.tax.amount,
                    line_total=amounts.total.amount,
                )
            )

    def add(self, invoice: Invoice) -> Invoice:
        self.session.add(
            models.Invoice(
                id=invoice.id,
                tenant_id=invoice.tenant_id,
                invoice_number=invoice.invoice_number,
                created_by=invoice.created_by,
                version=invoice.version,
                **self._header_values(invoice),
            )
        )
        self.session.flush()
        self._write_lines(invoice)
        self.session.flush()
        return invoice

    def update(self, invoice: Invoice, *, replace_lines: bool = False) -> Invoice:
        invoice.version = self._versioned_update(
            invoice.tenant_id, invoice.id, invoice.version, self._header_values(invoice)
        )
        if replace_lines:
            self._write_lines(invoice)
            self.session.flush()
        return invoice

    def delete(self, invoice: Invoice) -> None:
        self.session.execute(delete(models.InvoiceLine).where(models.InvoiceLine.invoice_id == invoice.id))
        self._versioned_delete(invoice.tenant_id, invoice.id, invoice.version)

    def next_number(self, tenant_id: UUID, invoice_type: InvoiceType) -> str:
        return self._next_number(
            tenant_id,
            INVOICE_PREFIX[invoice_type],
            models.Invoice.invoice_number,
            models.Invoice.invoice_type == invoice_type.value,
        )

    def reserved_amount(
        self,
        tenant_id: UUID,
        invoice_id: UUID,
        currency: str,
        exclude_payment_id: UUID | None = None,
    ) -> Money:
        stmt = (
            select(func.coalesce(func.sum(models.PaymentAllocation.amount), 0))
            .join(models.Payment, models.Payment.id == models.PaymentAllocation.payment_id)
            .where(
                models.PaymentAllocation.tenant_id == tenant_id,
                models.PaymentAllocation.invoice_id == invoice_id,
                models.Payment.status.in_(UNPOSTED_PAYMENT_STATUSES),
            )
        )
        if exclude_payment_id is not None:
            stmt = stmt.where(models.PaymentAllocation.payment_id != exclude_payment_id)
        total = self.session.execute(stmt).scalar_one()
        return Money(Decimal(str(total)), currency)


class PaymentRepository(SqlAlchemyRepository, IPaymentRepository):
    model = models.Payment

    def _to_entity(self, row: models.Payment) -> Payment:
        allocation_rows = self.session.execute(
            select(models.PaymentAllocation)
            .where(models.PaymentAllocation.payment_id == row.id)
            .order_by(models.PaymentAllocation.created_at)
        ).scalars()
        return Payment(
            id=row.id,
            tenant_id=row.tenant_id,
            payment_number=row.payment_number,
            payment_type=PaymentType(row.payment_type),
            party_type=PartyType(row.party_type),
            party_id=row.party_id,
            payment_date=row.payment_date,
            amount=Money(Decimal(row.amount), row.currency),
            exchange_rate=row.exchange_rate,
            bank_account_id=row.bank_account_id,
            allocations=[
                PaymentAllocation(
                    id=allocation.id,
                    invoice_id=allocation.invoice_id,
                    amount=Money(Decimal(allocation.amount), row.currency),
                )
                for allocation in allocation_rows
            ],
            status=DocumentStatus(row.status),
            posted_journal_id=row.posted_journal_id,
            notes=row.notes,
            created_by=row.created_by,
            version=row.version,
            **_stamps(row),
        )

    def get(self, tenant_id: UUID, payment_id: UUID, *, for_update: bool = False) -> Payment | None:
        row = self._select_row(tenant_id, payment_id, for_update)
        return self._to_entity(row) if row else None

    @staticmethod
    def _header_values(payment: Payment) -> dict[str, Any]:
        return {
            "payment_type": payment.payment_type.value,
            "party_type": payment.party_type.value,
            "party_id": payment.party_id,
            "payment_date": payment.payment_date,
            "amount": payment.amount.amount,
            "currency": payment.currency,
            "exchange_rate": payment.exchange_rate,
            "bank_account_id": payment.bank_account_id,
            "status": payment.status.value,
            "posted_journal_id": payment.posted_journal_id,
            "notes": payment.notes,
            **_stamps(payment),
        }

    def _write_allocations(self, payment: Payment) -> None:
        existing = set(
            self.session.execute(
                select(models.PaymentAllocation.id).where(models.PaymentAllocation.payment_id == payment.id)
            ).scalars()
        )
        for allocation in payment.allocations:
            if allocation.id in existing:
                continue
            self.session.add(
                models.PaymentAllocation(
                    id=allocation.id,
                    tenant_id=payment.tenant_id,
                    payment_id=payment.id,
                    invoice_id=allocation.invoice_id,
                    amount=allocation.amount.amount,
                )
            )
        self.session.flush()

    def add(self, payment: Payment) -> Payment:
        self.session.add(
            models.Payment(
                id=payment.id,
                tenant_id=payment.tenant_id,
                payment_number=payment.payment_number,
                created_by=payment.created_by,
                version=payment.version,
                **self._header_values(payment),
            )
        )
        self.session.flush()
        self._write_allocations(payment)
        return payment

    def update(self, payment: Payment) -> Payment:
        payment.version = self._versioned_update(
            payment.tenant_id, payment.id, payment.version, self._header_values(payment)
        )
        self._write_allocations(payment)
        return payment

    def delete(self, payment: Payment) -> None:
        self.session.execute(
            delete(models.PaymentAllocation).where(models.PaymentAllocation.payment_id == payment.id)
        )
        self._versioned_delete(payment.tenant_id, payment.id, payment.version)

    def next_number(self, tenant_id: UUID, payment_type: PaymentType) -> str:
        return self._next_number(
            tenant_id,
            PAYMENT_PREFIX[payment_type],
            models.Payment.payment_number,
            models.Payment.payment_type == payment_type.value,
        )


class JournalRepository(SqlAlchemyRepository, IJournalRepository):
    model = models.Journal

    @staticmethod
    def _line_entity(line: models.JournalLine, currency: str) -> JournalLine:
        return JournalLine(
            account_id=line.account_id,
            debit=Money(Decimal(line.debit), currency),
            credit=Money(Decimal(line.credit), currency),
            line_number=line.line_number,
            description=line.description,
            cost_center_id=line.cost_center_id,
        )

    def _to_entity(self, row: models.Journal) -> Journal:
        line_rows = self.session.execute(
            select(models.JournalLine)
            .where(models.JournalLine.journal_id == row.id)
            .order_by(models.JournalLine.line_number)
        ).scalars()
        return Journal(
            id=row.id,
            tenant_id=row.tenant_id,
            journal_number=row.journal_number,
            journal_type=JournalType(row.journal_type),
            transaction_date=row.transaction_date,
            currency=row.currency,
            lines=[self._line_entity(line, row.currency) for line in line_rows],
            source_type=SourceType(row.source_type),
            source_id=row.source_id,
            reversal_of_id=row.reversal_of_id,
            description=row.description,
            status=DocumentStatus(row.status),
            created_by=row.created_by,
            version=row.version,
            **_stamps(row),
        )

    def get(self, tenant_id: UUID, journal_id: UUID, *, for_update: bool = False) -> Journal | None:
        row = self._select_row(tenant_id, journal_id, for_update)
        return self._to_entity(row) if row else None

    @staticmethod
    def _header_values(journal: Journal) -> dict[str, Any]:
        return {
            "journal_type": journal.journal_type.value,
            "source_type": journal.source_type.value,
            "source_id": journal.source_id,
            "reversal_of_id": journal.reversal_of_id,
            "transaction_date": journal.transaction_date,
            "currency": journal.currency,
            "description": journal.description,
            "total_debit": journal.total_debit.amount,
            "total_credit": journal.total_credit.amount,
            "status": journal.status.value,
            **_stamps(journal),
        }

    def _write_lines(self, journal: Journal) -> None:
        self.session.execute(delete(models.JournalLine).where(models.JournalLine.journal_id == journal.id))
        for line in journal.lines:
            self.session.add(
                models.JournalLine(
                    journal_id=journal.id,
                    tenant_id=journal.tenant_id,
                    account_id=line.account_id,
                    line_number=line.line_number,
                    debit=line.debit.amount,
                    credit=line.credit.amount,
                    description=line.description,
                    cost_center_id=line.cost_center_id,
                )
            )
        self.session.flush()

    def add(self, journal: Journal) -> Journal:
        self.session.add(
            models.Journal(
                id=journal.id,
                tenant_id=journal.tenant_id,
                journal_number=journal.journal_number,
                created_by=journal.created_by,
                version=journal.version,
                **self._header_values(journal),
            )
        )
        self.session.flush()
        self._write_lines(journal)
        return journal

    def update(self, journal: Journal, *, replace_lines: bool = False) -> Journal:
        journal.version = self._versioned_update(
            journal.tenant_id, journal.id, journal.version, self._header_values(journal)
        )
        if replace_lines:
            self._write_lines(journal)
        return journal

    def delete(self, journal: Journal) -> None:
        self.session.execute(delete(models.JournalLine).where(models.JournalLine.journal_id == journal.id))
        self._versioned_delete(journal.tenant_id, journal.id, journal.version)

    def next_number(self, tenant_id: UUID, journal_type: JournalType) -> str:
        return self._next_number(
            tenant_id,
            JOURNAL_PREFIX[journal_type],
            models.Journal.journal_number,
            models.Journal.journal_type == journal_type.value,
        )

    def find_reversal(self, tenant_id: UUID, journal_id: UUID) -> Journal | None:
        row = self.session.execute(
            select(models.Journal).where(
                models.Journal.tenant_id == tenant_id,
                models.Journal.reversal_of_id == journal_id,
            )
        ).scalars().first()
        return self._to_entity(row) if row else None

    def posted_lines(self, tenant_id: UUID, as_of: date) -> list[JournalLine]:
        rows = self.session.execute(
            select(models.JournalLine, models.Journal.currency)
            .join(models.Journal, models.Journal.id == models.JournalLine.journal_id)
            .where(
                models.Journal.tenant_id == tenant_id,
                models.Journal.status == DocumentStatus.POSTED.value,
                models.Journal.transaction_date <= as_of,
            )
        ).all()
        return [self._line_entity(line, currency) for line, currency in rows]


class ExchangeRateRepository(IExchangeRateRepository):

    def __init__(self, session: Session):
        self.session = session

    def latest(self, tenant_id: UUID, currency: str, on_or_before: date) -> Decimal | None:
        rate = self.session.execute(
            select(models.ExchangeRateHistory.rate)
            .where(
                models.ExchangeRateHistory.tenant_id == tenant_id,
                models.ExchangeRateHistory.currency == currency.upper(),
                models.ExchangeRateHistory.valuation_date <= on_or_before,
            )
            .order_by(models.ExchangeRateHistory.valuation_date.desc())
            .limit(1)
        ).scalar_one_or_none()
        return Decimal(rate) if rate is not None else None

    def add(self, tenant_id: UUID, currency: str, valuation_date: date, rate: Decimal) -> None:
        self.session.add(
            models.ExchangeRateHistory(
                tenant_id=tenant_id,
                currency=currency.upper(),
                valuation_date=valuation_date,
                rate=rate,
            )
        )
        self.session.flush()
