"""
Document State Machine - one transition table shared by invoices, payments
and journals:

    draft -> submitted -> approved -> posted
    draft | submitted -> cancelled

Invoices derive ``partial``/``paid`` from their balance after posting; those
statuses are outside this table and, like ``posted``, accept no action.
"""

from dataclasses import dataclass, replace
from datetime import date, datetime

from .entities import (
    PARTY_FOR_INVOICE,
    PARTY_FOR_PAYMENT,
    Document,
    FiscalPeriod,
    Invoice,
    Journal,
    Payment,
    validate_line_numbers,
)
from .exceptions import (
    ConflictError,
    PeriodClosedError,
    PeriodNotFoundError,
    SelfApprovalError,
    StateError,
    ValidationError,
)
from .value_objects import POSTED_STATUSES, DocumentStatus, ExchangeRate, LifecycleAction, Money

TRANSITIONS: dict[LifecycleAction, tuple[frozenset[DocumentStatus], DocumentStatus]] = {
    LifecycleAction.SUBMIT: (frozenset({DocumentStatus.DRAFT}), DocumentStatus.SUBMITTED),
    LifecycleAction.APPROVE: (frozenset({DocumentStatus.SUBMITTED}), DocumentStatus.APPROVED),
    LifecycleAction.POST: (frozenset({DocumentStatus.APPROVED}), DocumentStatus.POSTED),
    LifecycleAction.CANCEL: (
        frozenset({DocumentStatus.DRAFT, DocumentStatus.SUBMITTED}),
        DocumentStatus.CANCELLED,
    ),
}

# Actor/timestamp fields stamped by each action.
STAMP_PREFIX: dict[LifecycleAction, str] = {
    LifecycleAction.SUBMIT: "submitted",
    LifecycleAction.APPROVE: "approved",
    LifecycleAction.POST: "posted",
}


@dataclass(frozen=True, slots=True)
class TenantPolicy:
    """Per-tenant configuration passed into every transition."""
    base_currency: str
    allow_self_approval: bool = False


class DocumentStateMachine:
    """Validates lifecycle transitions; never performs side effects."""

    def transition(
        self,
        doc: Document,
        action: LifecycleAction,
        actor: str,
        *,
        policy: TenantPolicy,
        now: datetime,
        period: FiscalPeriod | None = None,
    ) -> Document:
        sources, target = TRANSITIONS[action]
        self._check_source(doc, action, sources, target)

        if action == LifecycleAction.SUBMIT:
            self.validate_for_submit(doc, policy)
        elif action == LifecycleAction.APPROVE:
            self._check_approver(doc, actor, policy)
        elif action == LifecycleAction.POST:
            self.check_period(doc.transaction_date, period)

        stamps: dict = {}
        prefix = STAMP_PREFIX.get(action)
        if prefix:
            stamps = {f"{prefix}_by": actor, f"{prefix}_at": now}
        return replace(doc, status=target, **stamps)

    def _check_source(
        self,
        doc: Document,
        action: LifecycleAction,
        sources: frozenset[DocumentStatus],
        target: DocumentStatus,
    ) -> None:
        if doc.status in sources:
            return
        already_done = doc.status == target or (
            action == LifecycleAction.POST and doc.status in POSTED_STATUSES
        )
        if already_done:
            raise ConflictError(
                f"{doc.kind.value.capitalize()} {doc.id} is already {doc.status.value}",
                status=doc.status.value,
            )
        allowed = ", ".join(sorted(s.value for s in sources))
        raise StateError(
            f"Cannot {action.value} {doc.kind.value} in status {doc.status.value} "
            f"(allowed from: {allowed})",
            status=doc.status.value,
        )

    def _check_approver(self, doc: Document, actor: str, policy: TenantPolicy) -> None:
        if actor == doc.created_by and not policy.allow_self_approval:
            raise SelfApprovalError(
                f"{doc.kind.value.capitalize()} cannot be approved by its creator"
            )

    def check_period(self, day: date, period: FiscalPeriod | None) -> None:
        """The posting date must fall in an existing, open period."""
        if period is None or not period.contains(day):
            raise PeriodNotFoundError(f"No fiscal period covers {day.isoformat()}")
        if period.is_closed:
            raise PeriodClosedError(
                f"Fiscal period {period.name} is closed; cannot post on {day.isoformat()}",
                fiscal_period_id=str(period.id),
            )

    # -- submit validation -------------------------------------------------

    def validate_for_submit(self, doc: Document, policy: TenantPolicy) -> None:
        if isinstance(doc, Invoice):
            self._validate_invoice(doc, policy)
        elif isinstance(doc, Payment):
            self._validate_payment(doc, policy)
        elif isinstance(doc, Journal):
            self._validate_journal(doc, policy)

    @staticmethod
    def _require_rate(currency: str, rate, policy: TenantPolicy) -> None:
        if currency == policy.base_currency.upper():
            if rate is not None and rate != 1:
                raise ValidationError(
                    f"Exchange rate for base currency {currency} must be 1"
                )
            return
        if rate is None or rate <= 0:
            raise ValidationError(
                f"No exchange rate captured for {currency} -> {policy.base_currency}"
            )

    @staticmethod
    def _require_base_value(amount: Money, rate, policy: TenantPolicy) -> None:
        """Posting needs a non-zero amount after conversion into base currency."""
        base_currency = policy.base_currency.upper()
        if amount.currency == base_currency:
            return
        if ExchangeRate(rate, amount.currency, base_currency).convert(amount).is_zero():
            raise ValidationError(
                f"{amount} converts to zero {base_currency} at rate {rate}"
            )

    def _validate_invoice(self, invoice: Invoice, policy: TenantPolicy) -> None:
        if not invoice.lines:
            raise ValidationError("Invoice must have at least one line")
        for line in invoice.lines:
            line.validate()
        validate_line_numbers([line.line_number for line in invoice.lines])
        if invoice.gross_line_value() <= 0:
            raise ValidationError("Invoice total of quantity x unit price must be greater than zero")
        if PARTY_FOR_INVOICE[invoice.invoice_type] != invoice.party_type:
            raise ValidationError(
                f"{invoice.invoice_type.value} invoices require a "
                f"{PARTY_FOR_INVOICE[invoice.invoice_type].value}"
            )
        self._require_rate(invoice.currency, invoice.exchange_rate, policy)
        if invoice.total_amount.is_zero():
            raise ValidationError("Invoice total after discount and tax must be greater than zero")
        self._require_base_value(invoice.total_amount, invoice.exchange_rate, policy)

    def _validate_payment(self, payment: Payment, policy: TenantPolicy) -> None:
        if payment.amount.minor_units <= 0:
            raise ValidationError("Payment amount must be greater than zero")
        if PARTY_FOR_PAYMENT[payment.payment_type] != payment.party_type:
            raise ValidationError(
                f"{payment.payment_type.value} payments require a "
                f"{PARTY_FOR_PAYMENT[payment.payment_type].value}"
            )
        if payment.allocated_amount() > payment.amount:
            raise ValidationError("Allocated amount cannot exceed payment amount")
        self._require_rate(payment.currency, payment.exchange_rate, policy)
        self._require_base_value(payment.amount, payment.exchange_rate, policy)

    def _validate_journal(self, journal: Journal, policy: TenantPolicy) -> None:
        if not journal.lines:
            raise ValidationError("Journal must have at least one line")
        if journal.currency != policy.base_currency.upper():
            raise ValidationError(
                f"Manual journals must be in base currency {policy.base_currency}"
            )
        validate_line_numbers([line.line_number for line in journal.lines])
        for line in journal.lines:
            if not line.has_single_side():
                raise ValidationError(
                    f"Line {line.line_number}: exactly one of debit or credit must be non-zero"
                )
        if not journal.is_balanced():
            raise ValidationError(
                f"Debit must equal credit: {journal.total_debit} != {journal.total_credit}"
            )
