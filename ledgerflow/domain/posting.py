"""
Posting Engine - derives balanced journal lines from business documents.

Invoice accounting (base currency):

    sales            Dr receivable          Cr revenue, Cr tax payable
    purchase         Dr expense, Dr tax     Cr payable
    sales_return     Dr returns, Dr tax     Cr receivable
    purchase_return  Dr payable             Cr returns, Cr tax recoverable

Payment accounting:

    receipt          Dr cash/bank           Cr receivable
    payment          Dr payable             Cr cash/bank
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable

from .chart_of_accounts import AccountRole, ChartOfAccounts
from .entities import Invoice, Journal, JournalLine, Payment
from .exceptions import PostingImbalanceError, StateError, ValidationError
from .value_objects import (
    POSTED_STATUSES,
    DocumentStatus,
    ExchangeRate,
    InvoiceType,
    JournalType,
    Money,
    PaymentType,
    SourceType,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class _InvoiceRule:
    journal_type: JournalType
    control_role: AccountRole
    control_is_debit: bool
    default_line_role: AccountRole
    tax_role: AccountRole


INVOICE_RULES: dict[InvoiceType, _InvoiceRule] = {
    InvoiceType.SALES: _InvoiceRule(
        JournalType.SALES, AccountRole.RECEIVABLE, True, AccountRole.REVENUE, AccountRole.TAX_PAYABLE
    ),
    InvoiceType.PURCHASE: _InvoiceRule(
        JournalType.PURCHASE, AccountRole.PAYABLE, False, AccountRole.EXPENSE, AccountRole.TAX_RECOVERABLE
    ),
    InvoiceType.SALES_RETURN: _InvoiceRule(
        JournalType.SALES, AccountRole.RECEIVABLE, False, AccountRole.SALES_RETURNS, AccountRole.TAX_PAYABLE
    ),
    InvoiceType.PURCHASE_RETURN: _InvoiceRule(
        JournalType.PURCHASE, AccountRole.PAYABLE, True, AccountRole.PURCHASE_RETURNS,
        AccountRole.TAX_RECOVERABLE,
    ),
}


@dataclass
class _Component:
    """Offsetting amount for one account, before and after conversion."""
    account_id: uuid.UUID
    amount: Money
    description: str
    base: Money | None = None


class PostingEngine:
    """Builds journals for one tenant; every result is balance-checked before return."""

    def __init__(self, chart: ChartOfAccounts, base_currency: str):
        self.chart = chart
        self.base_currency = base_currency.upper()

    def rate_for(self, currency: str, rate: Decimal | None) -> ExchangeRate:
        """The frozen document rate; never a live rate."""
        if currency.upper() == self.base_currency:
            return ExchangeRate.identity(self.base_currency)
        if rate is None:
            raise ValidationError(f"No exchange rate captured for {currency}")
        return ExchangeRate(rate=rate, currency=currency, base_currency=self.base_currency)

    def base_amount(self, money: Money, rate: Decimal | None) -> Money:
        return self.rate_for(money.currency, rate).convert(money)

    # -- invoices ----------------------------------------------------------

    def build_invoice_journal(
        self, invoice: Invoice, *, journal_number: str, actor: str, now: datetime
    ) -> Journal:
        rule = INVOICE_RULES[invoice.invoice_type]
        rate = self.rate_for(invoice.currency, invoice.exchange_rate)
        control_account = self.chart.resolve(rule.control_role)
        control_amount = rate.convert(invoice.total_amount)

        components = self._invoice_components(invoice, rule)
        for component in components:
            component.base = rate.convert(component.amount)
        self._absorb_rounding(components, control_amount)

        party_label = "Customer" if rule.control_role == AccountRole.RECEIVABLE else "Vendor"
        control_line = (control_account.id, control_amount, f"{party_label}: {invoice.party_id}")
        offsets = [(c.account_id, c.base, c.description) for c in components if not c.base.is_zero()]
        if rule.control_is_debit:
            debits, credits = [control_line], offsets
        else:
            debits, credits = offsets, [control_line]

        lines = self._number_lines(debits, credits)
        journal = Journal(
            journal_number=journal_number,
            journal_type=rule.journal_type,
            transaction_date=invoice.invoice_date,
            currency=self.base_currency,
            tenant_id=invoice.tenant_id,
            created_by=actor,
            lines=lines,
            source_type=SourceType.INVOICE,
            source_id=invoice.id,
            description=f"{invoice.invoice_type.value.replace('_', ' ').title()} {invoice.invoice_number}",
            status=DocumentStatus.POSTED,
            posted_by=actor,
            posted_at=now,
        )
        self.assert_balanced(journal, reference=f"invoice {invoice.invoice_number}")
        return journal

    def _invoice_components(self, invoice: Invoice, rule: _InvoiceRule) -> list[_Component]:
        default_account = self.chart.resolve(rule.default_line_role)
        by_account: dict[uuid.UUID, _Component] = {}
        by_tax_rate: dict[str, _Component] = {}
        tax_account = None

        for line in invoice.lines:
            amounts = line.amounts(invoice.currency)
            account_id = line.account_id or default_account.id
            self.chart.require_postable(account_id)
            group = by_account.get(account_id)
            if group is None:
                group = by_account[account_id] = _Component(
                    account_id, Money.zero(invoice.currency), line.description
                )
            elif line.description:
                group.description = "; ".join(filter(None, [group.description, line.description]))
            group.amount = group.amount + amounts.taxable

            if amounts.tax.is_zero():
                continue
            if tax_account is None:
                tax_account = self.chart.resolve(rule.tax_role)
            rate_key = format(line.tax_rate.normalize(), "f")
            tax_group = by_tax_rate.get(rate_key)
            if tax_group is None:
                tax_group = by_tax_rate[rate_key] = _Component(
                    tax_account.id, Money.zero(invoice.currency), f"Tax {rate_key}%"
                )
            tax_group.amount = tax_group.amount + amounts.tax

        return list(by_account.values()) + list(by_tax_rate.values())

    @staticmethod
    def _absorb_rounding(components: list[_Component], control: Money) -> None:
        """
        Components are converted one by one; the residual against the control
        amount goes to the largest component.
        """
        if not components:
            return
        converted = Money.total((c.base for c in components), control.currency)
        residual = control - converted
        if residual.is_zero():
            return
        largest = max(components, key=lambda c: c.base.minor_units)
        largest.base = largest.base + residual
        logger.debug("Absorbed rounding residual %s into account %s", residual, largest.account_id)

    # -- payments ----------------------------------------------------------

    def build_payment_journal(
        self, payment: Payment, *, journal_number: str, actor: str, now: datetime
    ) -> Journal:
        amount = self.base_amount(payment.amount, payment.exchange_rate)
        if payment.bank_account_id is not None:
            cash = self.chart.require_postable(payment.bank_account_id)
        else:
            cash = self.chart.resolve(AccountRole.CASH)

        if payment.payment_type == PaymentType.RECEIPT:
            receivable = self.chart.resolve(AccountRole.RECEIVABLE)
            debits = [(cash.id, amount, f"Receipt from customer: {payment.party_id}")]
            credits = [(receivable.id, amount, "Accounts receivable collection")]
            journal_type = JournalType.RECEIPT
        else:
            payable = self.chart.resolve(AccountRole.PAYABLE)
            debits = [(payable.id, amount, f"Payment to vendor: {payment.party_id}")]
            credits = [(cash.id, amount, "Cash/bank payment")]
            journal_type = JournalType.PAYMENT

        journal = Journal(
            journal_number=journal_number,
            journal_type=journal_type,
            transaction_date=payment.payment_date,
            currency=self.base_currency,
            tenant_id=payment.tenant_id,
            created_by=actor,
            lines=self._number_lines(debits, credits),
            source_type=SourceType.PAYMENT,
            source_id=payment.id,
            description=f"{payment.payment_type.value.title()} {payment.payment_number}",
            status=DocumentStatus.POSTED,
            posted_by=actor,
            posted_at=now,
        )
        self.assert_balanced(journal, reference=f"payment {payment.payment_number}")
        return journal

    # -- manual journals and reversals -------------------------------------

    def validate_manual_journal(self, journal: Journal) -> None:
        """Manual journals are not generated, only checked."""
        for line in journal.lines:
            self.chart.require_postable(line.account_id)
        self.assert_balanced(journal, reference=f"journal {journal.journal_number}")

    def build_reversal(
        self,
        journal: Journal,
        *,
        journal_number: str,
        transaction_date: date,
        actor: str,
        now: datetime,
    ) -> Journal:
        if journal.status not in POSTED_STATUSES:
            raise StateError(f"Only posted journals can be reversed; {journal.journal_number} is {journal.status.value}")
        if journal.source_type == SourceType.REVERSAL:
            raise StateError(f"Journal {journal.journal_number} is itself a reversal")
        for line in journal.lines:
            self.chart.require_postable(line.account_id)
        lines = [
            JournalLine(
                account_id=line.account_id,
                debit=line.credit,
                credit=line.debit,
                line_number=line.line_number,
                description=f"Reversal: {line.description}".rstrip(": "),
                cost_center_id=line.cost_center_id,
            )
            for line in journal.lines
        ]
        reversal = Journal(
            journal_number=journal_number,
            journal_type=JournalType.REVERSAL,
            transaction_date=transaction_date,
            currency=journal.currency,
            tenant_id=journal.tenant_id,
            created_by=actor,
            lines=lines,
            source_type=SourceType.REVERSAL,
            source_id=journal.id,
            reversal_of_id=journal.id,
            description=f"Reversal of {journal.journal_number}",
            status=DocumentStatus.POSTED,
            posted_by=actor,
            posted_at=now,
        )
        self.assert_balanced(reversal, reference=f"reversal of {journal.journal_number}")
        return reversal

    # -- invariants ----------------------------------------------------------

    def assert_balanced(self, journal: Journal, *, reference: str) -> None:
        debit = sum(line.debit.minor_units for line in journal.lines)
        credit = sum(line.credit.minor_units for line in journal.lines)
        if debit != credit or debit == 0:
            logger.error(
                "Posting imbalance for %s: debit=%s credit=%s minor units",
                reference, debit, credit,
            )
            raise PostingImbalanceError(
                f"Journal for {reference} does not balance",
                total_debit_minor=debit,
                total_credit_minor=credit,
            )

    def _number_lines(
        self,
        debits: Iterable[tuple[uuid.UUID, Money, str]],
        credits: Iterable[tuple[uuid.UUID, Money, str]],
    ) -> list[JournalLine]:
        zero = Money.zero(self.base_currency)
        lines = [
            JournalLine(account_id=account_id, debit=amount, credit=zero, description=text)
            for account_id, amount, text in debits
        ] + [
            JournalLine(account_id=account_id, debit=zero, credit=amount, description=text)
            for account_id, amount, text in credits
        ]
        return [
            JournalLine(
                account_id=line.account_id,
                debit=line.debit,
                credit=line.credit,
                line_number=number,
                description=line.description,
            )
            for number, line in enumerate(lines, start=1)
        ]
