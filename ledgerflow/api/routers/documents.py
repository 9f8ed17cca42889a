"""
API Routers - invoices, payments and journals: drafts and lifecycle actions.
"""

from enum import Enum
from uuid import UUID

from fastapi import APIRouter, Depends, status

from ledgerflow.api.dependencies import get_document_service, get_identity, get_lifecycle_service
from ledgerflow.application.documents import DocumentService
from ledgerflow.application.dto.accounting_dto import (
    AllocationCreateDTO,
    InvoiceCreateDTO,
    InvoiceResponseDTO,
    InvoiceUpdateDTO,
    JournalCreateDTO,
    JournalResponseDTO,
    JournalUpdateDTO,
    PaymentCreateDTO,
    PaymentResponseDTO,
    PaymentUpdateDTO,
    ReversalRequestDTO,
)
from ledgerflow.application.lifecycle import LifecycleService
from ledgerflow.core.security import IdentityContext
from ledgerflow.domain.entities import Document, Invoice, Payment
from ledgerflow.domain.value_objects import DocumentKind, LifecycleAction

router = APIRouter(prefix="/api/v1", tags=["Documents"])


class DocumentCollection(str, Enum):
    INVOICES = "invoices"
    PAYMENTS = "payments"
    JOURNALS = "journals"


COLLECTION_KIND = {
    DocumentCollection.INVOICES: DocumentKind.INVOICE,
    DocumentCollection.PAYMENTS: DocumentKind.PAYMENT,
    DocumentCollection.JOURNALS: DocumentKind.JOURNAL,
}


def _respond(doc: Document) -> InvoiceResponseDTO | PaymentResponseDTO | JournalResponseDTO:
    if isinstance(doc, Invoice):
        return InvoiceResponseDTO.model_validate(doc)
    if isinstance(doc, Payment):
        return PaymentResponseDTO.model_validate(doc)
    return JournalResponseDTO.model_validate(doc)


# ---------------------------------------------------------------------------
# Invoices
# ---------------------------------------------------------------------------


@router.post("/invoices", response_model=InvoiceResponseDTO, status_code=status.HTTP_201_CREATED)
def create_invoice(
    dto: InvoiceCreateDTO,
    identity: IdentityContext = Depends(get_identity),
    service: DocumentService = Depends(get_document_service),
):
    """
    Create a draft invoice.

    - Totals are derived from the lines
    - The exchange rate is captured now and frozen
    """
    return _respond(service.create_invoice(dto, identity))


@router.get("/invoices/{invoice_id}", response_model=InvoiceResponseDTO)
def get_invoice(
    invoice_id: UUID,
    identity: IdentityContext = Depends(get_identity),
    service: DocumentService = Depends(get_document_service),
):
    return _respond(service.get_invoice(invoice_id, identity))


@router.patch("/invoices/{invoice_id}", response_model=InvoiceResponseDTO)
def update_invoice(
    invoice_id: UUID,
    dto: InvoiceUpdateDTO,
    identity: IdentityContext = Depends(get_identity),
    service: DocumentService = Depends(get_document_service),
):
    """Edit a draft invoice; rejected once submitted."""
    return _respond(service.update_invoice(invoice_id, dto, identity))


# ---------------------------------------------------------------------------
# Payments
# ---------------------------------------------------------------------------


@router.post("/payments", response_model=PaymentResponseDTO, status_code=status.HTTP_201_CREATED)
def create_payment(
    dto: PaymentCreateDTO,
    identity: IdentityContext = Depends(get_identity),
    service: DocumentService = Depends(get_document_service),
):
    return _respond(service.create_payment(dto, identity))


@router.get("/payments/{payment_id}", response_model=PaymentResponseDTO)
def get_payment(
    payment_id: UUID,
    identity: IdentityContext = Depends(get_identity),
    service: DocumentService = Depends(get_document_service),
):
    return _respond(service.get_payment(payment_id, identity))


@router.patch("/payments/{payment_id}", response_model=PaymentResponseDTO)
def update_payment(
    payment_id: UUID,
    dto: PaymentUpdateDTO,
    identity: IdentityContext = Depends(get_identity),
    service: DocumentService = Depends(get_document_service),
):
    """Edit a draft payment; the amount cannot drop below what is already allocated."""
    return _respond(service.update_payment(payment_id, dto, identity))


@router.post("/payments/{payment_id}/allocations", response_model=PaymentResponseDTO)
def allocate_payment(
    payment_id: UUID,
    dto: AllocationCreateDTO,
    identity: IdentityContext = Depends(get_identity),
    service: LifecycleService = Depends(get_lifecycle_service),
):
    """
    Allocate part of an unposted payment to a posted invoice.
    Invoice balances move when the payment is posted.
    """
    return _respond(service.allocate(payment_id, dto.invoice_id, dto.amount, identity))


# ---------------------------------------------------------------------------
# Journals
# ---------------------------------------------------------------------------


@router.post("/journals", response_model=JournalResponseDTO, status_code=status.HTTP_201_CREATED)
def create_journal(
    dto: JournalCreateDTO,
    identity: IdentityContext = Depends(get_identity),
    service: DocumentService = Depends(get_document_service),
):
    """Create a draft manual journal in the tenant base currency."""
    return _respond(service.create_journal(dto, identity))


@router.get("/journals/{journal_id}", response_model=JournalResponseDTO)
def get_journal(
    journal_id: UUID,
    identity: IdentityContext = Depends(get_identity),
    service: DocumentService = Depends(get_document_service),
):
    return _respond(service.get_journal(journal_id, identity))


@router.patch("/journals/{journal_id}", response_model=JournalResponseDTO)
def update_journal(
    journal_id: UUID,
    dto: JournalUpdateDTO,
    identity: IdentityContext = Depends(get_identity),
    service: DocumentService = Depends(get_document_service),
):
    return _respond(service.update_journal(journal_id, dto, identity))


@router.post("/journals/{journal_id}/reverse", response_model=JournalResponseDTO, status_code=status.HTTP_201_CREATED)
def reverse_journal(
    journal_id: UUID,
    dto: ReversalRequestDTO | None = None,
    identity: IdentityContext = Depends(get_identity),
    service: LifecycleService = Depends(get_lifecycle_service),
):
    """Post a mirror-image journal; the original stays posted."""
    return _respond(service.reverse_journal(journal_id, identity, dto.reversal_date if dto else None))


# ---------------------------------------------------------------------------
# Lifecycle actions
# ---------------------------------------------------------------------------


@router.post("/{collection}/{doc_id}/{action}")
def run_lifecycle_action(
    collection: DocumentCollection,
    doc_id: UUID,
    action: LifecycleAction,
    identity: IdentityContext = Depends(get_identity),
    service: LifecycleService = Depends(get_lifecycle_service),
):
    """
    submit / approve / post / cancel.

    `post` on an invoice or payment generates its journal in the same
    transaction; a second post of the same document is a 409.
    """
    return _respond(service.transition(COLLECTION_KIND[collection], doc_id, action, identity))


@router.delete("/{collection}/{doc_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_document(
    collection: DocumentCollection,
    doc_id: UUID,
    identity: IdentityContext = Depends(get_identity),
    service: DocumentService = Depends(get_document_service),
):
    """Delete a draft. Submitted or later documents are a 409; cancel them instead."""
    service.delete_document(COLLECTION_KIND[collection], doc_id, identity)
