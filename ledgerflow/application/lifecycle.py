"""
Application layer - document lifecycle orchestration.

Each action is one unit of work: the status change, the generated journal
and any invoice balance updates commit together or not at all.
"""

import logging
from dataclasses import replace
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from ledgerflow.application.base import AuditedService
from ledgerflow.core.security import IdentityContext
from ledgerflow.domain.allocation import AllocationTracker
from ledgerflow.domain.entities import Document, FiscalPeriod, Invoice, Journal, Payment
from ledgerflow.domain.exceptions import ConflictError, NotFoundError
from ledgerflow.domain.posting import INVOICE_RULES, PostingEngine
from ledgerflow.domain.services import IUnitOfWork
from ledgerflow.domain.state_machine import DocumentStateMachine
from ledgerflow.domain.value_objects import (
    AuditAction,
    DocumentKind,
    JournalType,
    LifecycleAction,
    Money,
    PaymentType,
)

logger = logging.getLogger(__name__)


class LifecycleService(AuditedService):
    """submit / approve / post / cancel, allocation and journal reversal."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.state_machine = DocumentStateMachine()
        self.allocations = AllocationTracker()

    # -- public operations ---------------------------------------------------

    def submit(self, kind: DocumentKind, doc_id: UUID, identity: IdentityContext) -> Document:
        return self.transition(kind, doc_id, LifecycleAction.SUBMIT, identity)

    def approve(self, kind: DocumentKind, doc_id: UUID, identity: IdentityContext) -> Document:
        return self.transition(kind, doc_id, LifecycleAction.APPROVE, identity)

    def post(self, kind: DocumentKind, doc_id: UUID, identity: IdentityContext) -> Document:
        return self.transition(kind, doc_id, LifecycleAction.POST, identity)

    def cancel(self, kind: DocumentKind, doc_id: UUID, identity: IdentityContext) -> Document:
        return self.transition(kind, doc_id, LifecycleAction.CANCEL, identity)

    def transition(
        self,
        kind: DocumentKind,
        doc_id: UUID,
        action: LifecycleAction,
        identity: IdentityContext,
    ) -> Document:
        def operation():
            with self.uow_factory() as uow:
                before, after = self._transition(uow, kind, doc_id, action, identity)
                uow.commit()
            return before, after, after

        return self._audited(action.value, kind.value, doc_id, identity, operation)

    def allocate(
        self,
        payment_id: UUID,
        invoice_id: UUID,
        amount: Decimal,
        identity: IdentityContext,
    ) -> Payment:
        def operation():
            with self.uow_factory() as uow:
                before, after = self._allocate(uow, payment_id, invoice_id, amount, identity)
                uow.commit()
            return before, after, after

        return self._audited(
            AuditAction.ALLOCATE.value,
            DocumentKind.PAYMENT.value,
            payment_id,
            identity,
            operation,
            metadata={"invoice_id": str(invoice_id), "amount": str(amount)},
        )

    def reverse_journal(
        self,
        journal_id: UUID,
        identity: IdentityContext,
        reversal_date: date | None = None,
    ) -> Journal:
        def operation():
            with self.uow_factory() as uow:
                original, reversal = self._reverse(uow, journal_id, reversal_date, identity)
                uow.commit()
            return original, original, reversal

        return self._audited(
            AuditAction.REVERSE.value,
            DocumentKind.JOURNAL.value,
            journal_id,
            identity,
            operation,
            metadata={"reversal_date": reversal_date.isoformat() if reversal_date else None},
        )

    # -- unit-of-work bodies ---------------------------------------------------

    def _repository(self, uow: IUnitOfWork, kind: DocumentKind):
        return {
            DocumentKind.INVOICE: uow.invoices,
            DocumentKind.PAYMENT: uow.payments,
            DocumentKind.JOURNAL: uow.journals,
        }[kind]

    def _load(self, uow: IUnitOfWork, kind: DocumentKind, doc_id: UUID, tenant_id: UUID) -> Document:
        doc = self._repository(uow, kind).get(tenant_id, doc_id, for_update=True)
        if doc is None:
            raise NotFoundError(f"{kind.value.capitalize()} {doc_id} not found")
        return doc

    def _transition(
        self,
        uow: IUnitOfWork,
        kind: DocumentKind,
        doc_id: UUID,
        action: LifecycleAction,
        identity: IdentityContext,
    ) -> tuple[Document, Document]:
        tenant = self._tenant(uow, identity.tenant_id)
        doc = self._load(uow, kind, doc_id, identity.tenant_id)
        now = self.clock()

        period = None
        if action == LifecycleAction.POST:
            period = uow.periods.find_for_date(identity.tenant_id, doc.transaction_date, for_update=True)
        updated = self.state_machine.transition(
            doc,
            action,
            identity.user_id,
            policy=self._policy(tenant),
            now=now,
            period=period,
        )

        if action != LifecycleAction.POST:
            self._repository(uow, kind).update(updated)
            return doc, updated

        # A close committed since the read above fails this version check, and vice versa.
        uow.periods.touch(period)

        engine = PostingEngine(self._chart(uow, identity.tenant_id), tenant.base_currency)
        if isinstance(updated, Invoice):
            updated = self._post_invoice(uow, engine, updated, period, identity.user_id, now)
        elif isinstance(updated, Payment):
            updated = self._post_payment(uow, engine, updated, identity.user_id, now)
        else:
            engine.validate_manual_journal(updated)
            uow.journals.update(updated)
        return doc, updated

    def _post_invoice(
        self,
        uow: IUnitOfWork,
        engine: PostingEngine,
        invoice: Invoice,
        period: FiscalPeriod,
        actor: str,
        now: datetime,
    ) -> Invoice:
        rule = INVOICE_RULES[invoice.invoice_type]
        journal = engine.build_invoice_journal(
            invoice,
            journal_number=uow.journals.next_number(invoice.tenant_id, rule.journal_type),
            actor=actor,
            now=now,
        )
        posted = replace(
            invoice,
            posted_journal_id=journal.id,
            fiscal_period_id=period.id,
            base_currency_amount=engine.base_amount(invoice.total_amount, invoice.exchange_rate),
        )
        # Version check before the journal insert.
        uow.invoices.update(posted)
        uow.journals.add(journal)
        logger.info("Posted invoice %s as journal %s", invoice.invoice_number, journal.journal_number)
        return posted

    def _post_payment(
        self,
        uow: IUnitOfWork,
        engine: PostingEngine,
        payment: Payment,
        actor: str,
        now: datetime,
    ) -> Payment:
        self.allocations.validate_payment_allocations(payment)
        journal_type = JournalType.RECEIPT if payment.payment_type == PaymentType.RECEIPT else JournalType.PAYMENT
        journal = engine.build_payment_journal(
            payment,
            journal_number=uow.journals.next_number(payment.tenant_id, journal_type),
            actor=actor,
            now=now,
        )
        posted = replace(payment, posted_journal_id=journal.id)
        uow.payments.update(posted)

        for allocation in payment.allocations:
            invoice = uow.invoices.get(payment.tenant_id, allocation.invoice_id, for_update=True)
            if invoice is None:
                raise NotFoundError(f"Invoice {allocation.invoice_id} not found")
            uow.invoices.update(self.allocations.apply_to_invoice(invoice, allocation))

        uow.journals.add(journal)
        logger.info("Posted payment %s as journal %s", payment.payment_number, journal.journal_number)
        return posted

    def _allocate(
        self,
        uow: IUnitOfWork,
        payment_id: UUID,
        invoice_id: UUID,
        amount: Decimal,
        identity: IdentityContext,
    ) -> tuple[Payment, Payment]:
        self._tenant(uow, identity.tenant_id)
        payment = self._load(uow, DocumentKind.PAYMENT, payment_id, identity.tenant_id)
        invoice = self._load(uow, DocumentKind.INVOICE, invoice_id, identity.tenant_id)

        reserved = uow.invoices.reserved_amount(
            identity.tenant_id, invoice.id, invoice.currency, exclude_payment_id=payment.id
        )
        own = Money.total(
            (a.amount for a in payment.allocations if a.invoice_id == invoice.id), invoice.currency
        )
        updated = self.allocations.add_allocation(
            payment, invoice, Money(amount, payment.currency), reserved + own
        )
        uow.payments.update(updated)
        # Bumping the invoice version serializes concurrent allocations against it.
        uow.invoices.update(invoice)
        return payment, updated

    def _reverse(
        self,
        uow: IUnitOfWork,
        journal_id: UUID,
        reversal_date: date | None,
        identity: IdentityContext,
    ) -> tuple[Journal, Journal]:
        tenant = self._tenant(uow, identity.tenant_id)
        journal = self._load(uow, DocumentKind.JOURNAL, journal_id, identity.tenant_id)
        existing = uow.journals.find_reversal(identity.tenant_id, journal.id)
        if existing is not None:
            raise ConflictError(
                f"Journal {journal.journal_number} was already reversed by {existing.journal_number}",
                reversal_id=str(existing.id),
            )

        day = reversal_date or journal.transaction_date
        period = uow.periods.find_for_date(identity.tenant_id, day, for_update=True)
        self.state_machine.check_period(day, period)
        uow.periods.touch(period)

        engine = PostingEngine(self._chart(uow, identity.tenant_id), tenant.base_currency)
        reversal = engine.build_reversal(
            journal,
            journal_number=uow.journals.next_number(identity.tenant_id, JournalType.REVERSAL),
            transaction_date=day,
            actor=identity.user_id,
            now=self.clock(),
        )
        uow.journals.update(journal)
        uow.journals.add(reversal)
        logger.info("Reversed journal %s with %s", journal.journal_number, reversal.journal_number)
        return journal, reversal
