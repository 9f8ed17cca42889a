"""
Application layer - draft document creation, editing and deletion.

The exchange rate is captured here, once, and stays frozen for the rest of
the document's life. Edits and deletes are only accepted while a document
is still a draft.
"""

from dataclasses import replace
from uuid import UUID

from ledgerflow.application.base import AuditedService
from ledgerflow.application.dto.accounting_dto import (
    InvoiceCreateDTO,
    InvoiceLineCreateDTO,
    InvoiceUpdateDTO,
    JournalCreateDTO,
    JournalLineCreateDTO,
    JournalUpdateDTO,
    PaymentCreateDTO,
    PaymentUpdateDTO,
)
from ledgerflow.core.security import IdentityContext
from ledgerflow.domain.entities import (
    PARTY_FOR_INVOICE,
    PARTY_FOR_PAYMENT,
    Invoice,
    InvoiceLine,
    Journal,
    JournalLine,
    Payment,
)
from ledgerflow.domain.exceptions import NotFoundError, ValidationError
from ledgerflow.domain.services import ExchangeRateService, IUnitOfWork
from ledgerflow.domain.state_machine import DocumentStateMachine
from ledgerflow.domain.value_objects import AuditAction, DocumentKind, Money, SourceType


def _invoice_lines(lines: list[InvoiceLineCreateDTO]) -> list[InvoiceLine]:
    return [
        InvoiceLine(
            line_number=line.line_number or index,
            description=line.description,
            quantity=line.quantity,
            unit_price=line.unit_price,
            tax_rate=line.tax_rate,
            discount_percent=line.discount_percent,
            account_id=line.account_id,
            cost_center_id=line.cost_center_id,
        )
        for index, line in enumerate(lines, start=1)
    ]


def _journal_lines(lines: list[JournalLineCreateDTO], currency: str) -> list[JournalLine]:
    return [
        JournalLine(
            account_id=line.account_id,
            debit=Money(line.debit, currency),
            credit=Money(line.credit, currency),
            line_number=line.line_number or index,
            description=line.description,
            cost_center_id=line.cost_center_id,
        )
        for index, line in enumerate(lines, start=1)
    ]


class DocumentService(AuditedService):

    def create_invoice(self, data: InvoiceCreateDTO, identity: IdentityContext) -> Invoice:
        def operation():
            with self.uow_factory() as uow:
                tenant = self._tenant(uow, identity.tenant_id)
                currency = (data.currency or tenant.base_currency).upper()
                rate = ExchangeRateService(uow.exchange_rates).capture(
                    tenant.id, currency, tenant.base_currency, data.invoice_date, data.exchange_rate
                )
                invoice = Invoice(
                    invoice_number=uow.invoices.next_number(tenant.id, data.invoice_type),
                    invoice_type=data.invoice_type,
                    party_type=data.party_type or PARTY_FOR_INVOICE[data.invoice_type],
                    party_id=data.party_id,
                    invoice_date=data.invoice_date,
                    due_date=data.due_date,
                    currency=currency,
                    exchange_rate=rate,
                    lines=_invoice_lines(data.lines),
                    notes=data.notes,
                    tenant_id=tenant.id,
                    created_by=identity.user_id,
                )
                uow.invoices.add(invoice)
                uow.commit()
            return None, invoice, invoice

        return self._audited(AuditAction.CREATE.value, DocumentKind.INVOICE.value, None, identity, operation)

    def update_invoice(self, invoice_id: UUID, data: InvoiceUpdateDTO, identity: IdentityContext) -> Invoice:
        def operation():
            with self.uow_factory() as uow:
                invoice = self._get(uow.invoices, DocumentKind.INVOICE, invoice_id, identity, for_update=True)
                invoice.ensure_editable()
                changes = data.model_dump(exclude_unset=True, exclude={"lines"})
                updated = replace(invoice, **changes)
                if data.lines is not None:
                    updated = updated.with_lines(_invoice_lines(data.lines))
                uow.invoices.update(updated, replace_lines=data.lines is not None)
                uow.commit()
            return invoice, updated, updated

        return self._audited(AuditAction.UPDATE.value, DocumentKind.INVOICE.value, invoice_id, identity, operation)

    def create_payment(self, data: PaymentCreateDTO, identity: IdentityContext) -> Payment:
        def operation():
            with self.uow_factory() as uow:
                tenant = self._tenant(uow, identity.tenant_id)
                currency = (data.currency or tenant.base_currency).upper()
                rate = ExchangeRateService(uow.exchange_rates).capture(
                    tenant.id, currency, tenant.base_currency, data.payment_date, data.exchange_rate
                )
                payment = Payment(
                    payment_number=uow.payments.next_number(tenant.id, data.payment_type),
                    payment_type=data.payment_type,
                    party_type=data.party_type or PARTY_FOR_PAYMENT[data.payment_type],
                    party_id=data.party_id,
                    payment_date=data.payment_date,
                    amount=Money(data.amount, currency),
                    exchange_rate=rate,
                    bank_account_id=data.bank_account_id,
                    notes=data.notes,
                    tenant_id=tenant.id,
                    created_by=identity.user_id,
                )
                uow.payments.add(payment)
                uow.commit()
            return None, payment, payment

        return self._audited(AuditAction.CREATE.value, DocumentKind.PAYMENT.value, None, identity, operation)

    def update_payment(self, payment_id: UUID, data: PaymentUpdateDTO, identity: IdentityContext) -> Payment:
        """
        Draft edits of amount, date, party, bank account and notes.

        Existing allocations pin the party and put a floor under the amount.
        """

        def operation():
            with self.uow_factory() as uow:
                payment = self._get(uow.payments, DocumentKind.PAYMENT, payment_id, identity, for_update=True)
                payment.ensure_editable()
                changes = data.model_dump(exclude_unset=True, exclude={"amount"})
                if payment.allocations and changes.get("party_id", payment.party_id) != payment.party_id:
                    raise ValidationError(
                        f"Payment {payment.payment_number} has allocations; its party cannot change"
                    )
                if data.amount is not None:
                    changes["amount"] = Money(data.amount, payment.currency)
                updated = replace(payment, **changes)
                if updated.allocated_amount() > updated.amount:
                    raise ValidationError(
                        f"Amount {updated.amount} is below the {updated.allocated_amount()} already allocated"
                    )
                uow.payments.update(updated)
                uow.commit()
            return payment, updated, updated

        return self._audited(AuditAction.UPDATE.value, DocumentKind.PAYMENT.value, payment_id, identity, operation)

    def create_journal(self, data: JournalCreateDTO, identity: IdentityContext) -> Journal:
        def operation():
            with self.uow_factory() as uow:
                tenant = self._tenant(uow, identity.tenant_id)
                currency = (data.currency or tenant.base_currency).upper()
                journal = Journal(
                    journal_number=uow.journals.next_number(tenant.id, data.journal_type),
                    journal_type=data.journal_type,
                    transaction_date=data.transaction_date,
                    currency=currency,
                    description=data.description,
                    lines=_journal_lines(data.lines, currency),
                    source_type=SourceType.MANUAL,
                    tenant_id=tenant.id,
                    created_by=identity.user_id,
                )
                uow.journals.add(journal)
                uow.commit()
            return None, journal, journal

        return self._audited(AuditAction.CREATE.value, DocumentKind.JOURNAL.value, None, identity, operation)

    def update_journal(self, journal_id: UUID, data: JournalUpdateDTO, identity: IdentityContext) -> Journal:
        """Replacement lines are checked with the same rules as submit."""

        def operation():
            with self.uow_factory() as uow:
                tenant = self._tenant(uow, identity.tenant_id)
                journal = self._get(uow.journals, DocumentKind.JOURNAL, journal_id, identity, for_update=True)
                journal.ensure_editable()
                changes = data.model_dump(exclude_unset=True, exclude={"lines"})
                if "description" in changes and changes["description"] is None:
                    changes["description"] = ""
                updated = replace(journal, **changes)
                if data.lines is not None:
                    updated = replace(updated, lines=_journal_lines(data.lines, journal.currency))
                    DocumentStateMachine().validate_for_submit(updated, self._policy(tenant))
                uow.journals.update(updated, replace_lines=data.lines is not None)
                uow.commit()
            return journal, updated, updated

        return self._audited(AuditAction.UPDATE.value, DocumentKind.JOURNAL.value, journal_id, identity, operation)

    def delete_document(self, kind: DocumentKind, doc_id: UUID, identity: IdentityContext) -> None:
        """Remove a draft. Past draft this raises StateError; cancel the document instead."""

        def operation():
            with self.uow_factory() as uow:
                repository = self._repository(uow, kind)
                doc = self._get(repository, kind, doc_id, identity, for_update=True)
                doc.ensure_editable()
                repository.delete(doc)
                uow.commit()
            return doc, None, None

        self._audited(AuditAction.DELETE.value, kind.value, doc_id, identity, operation)

    # -- reads -----------------------------------------------------------------

    def get_invoice(self, invoice_id: UUID, identity: IdentityContext) -> Invoice:
        with self.uow_factory() as uow:
            return self._get(uow.invoices, DocumentKind.INVOICE, invoice_id, identity)

    def get_payment(self, payment_id: UUID, identity: IdentityContext) -> Payment:
        with self.uow_factory() as uow:
            return self._get(uow.payments, DocumentKind.PAYMENT, payment_id, identity)

    def get_journal(self, journal_id: UUID, identity: IdentityContext) -> Journal:
        with self.uow_factory() as uow:
            return self._get(uow.journals, DocumentKind.JOURNAL, journal_id, identity)

    @staticmethod
    def _repository(uow: IUnitOfWork, kind: DocumentKind):
        return {
            DocumentKind.INVOICE: uow.invoices,
            DocumentKind.PAYMENT: uow.payments,
            DocumentKind.JOURNAL: uow.journals,
        }[kind]

    @staticmethod
    def _get(repository, kind: DocumentKind, doc_id: UUID, identity: IdentityContext, for_update: bool = False):
        doc = repository.get(identity.tenant_id, doc_id, for_update=for_update)
        if doc is None:
            raise NotFoundError(f"{kind.value.capitalize()} {doc_id} not found")
        return doc
