"""
Allocation / Balance Tracker - links payments to invoices and keeps invoice
balances consistent: balance_amount == total_amount - paid_amount >= 0.
"""

from dataclasses import replace

from .entities import Invoice, Payment, PaymentAllocation
from .exceptions import AllocationMismatchError, OverAllocationError, StateError, ValidationError
from .value_objects import DocumentStatus, InvoiceType, Money, PaymentType

# Payment statuses that still accept new allocations.
ALLOCATABLE_PAYMENT_STATUSES = frozenset(
    {DocumentStatus.DRAFT, DocumentStatus.SUBMITTED, DocumentStatus.APPROVED}
)
ALLOCATABLE_INVOICE_STATUSES = frozenset({DocumentStatus.POSTED, DocumentStatus.PARTIAL})

INVOICE_TYPE_FOR_PAYMENT: dict[PaymentType, InvoiceType] = {
    PaymentType.RECEIPT: InvoiceType.SALES,
    PaymentType.PAYMENT: InvoiceType.PURCHASE,
}


class AllocationTracker:

    def add_allocation(
        self,
        payment: Payment,
        invoice: Invoice,
        amount: Money,
        reserved: Money | None = None,
    ) -> Payment:
        """
        Attach ``amount`` of ``payment`` to ``invoice``.

        ``reserved`` is the sum already claimed on the invoice by other
        payments that are not yet posted.
        """
        if payment.status not in ALLOCATABLE_PAYMENT_STATUSES:
            raise StateError(
                f"Cannot allocate payment {payment.payment_number} in status {payment.status.value}"
            )
        if invoice.status not in ALLOCATABLE_INVOICE_STATUSES:
            raise ValidationError(
                f"Invoice {invoice.invoice_number} must be posted before allocation "
                f"(status {invoice.status.value})"
            )
        expected_type = INVOICE_TYPE_FOR_PAYMENT[payment.payment_type]
        if invoice.invoice_type != expected_type:
            raise ValidationError(
                f"A {payment.payment_type.value} can only be allocated to {expected_type.value} invoices"
            )
        if invoice.party_id != payment.party_id:
            raise ValidationError("Payment and invoice belong to different parties")
        if invoice.currency != payment.currency:
            raise ValidationError(
                f"Currency mismatch: payment in {payment.currency}, invoice in {invoice.currency}"
            )
        if amount.currency != payment.currency:
            raise ValidationError(f"Allocation must be in {payment.currency}")
        if amount.minor_units <= 0:
            raise ValidationError("Allocation amount must be greater than zero")

        reserved = reserved or Money.zero(invoice.currency)
        available = invoice.balance_amount - reserved
        if amount > available:
            raise OverAllocationError(
                f"Allocation {amount} exceeds available balance {available} "
                f"of invoice {invoice.invoice_number}",
                invoice_id=str(invoice.id),
                available=str(available.amount),
            )
        if payment.allocated_amount() + amount > payment.amount:
            raise OverAllocationError(
                f"Allocations would exceed payment amount {payment.amount}",
                payment_id=str(payment.id),
            )

        allocation = PaymentAllocation(invoice_id=invoice.id, amount=amount)
        return replace(payment, allocations=[*payment.allocations, allocation])

    def validate_payment_allocations(self, payment: Payment) -> None:
        allocated = payment.allocated_amount()
        if allocated.minor_units != payment.amount.minor_units:
            raise AllocationMismatchError(
                f"Allocations total {allocated} but payment amount is {payment.amount}",
                payment_id=str(payment.id),
            )

    def apply_to_invoice(self, invoice: Invoice, allocation: PaymentAllocation) -> Invoice:
        """Re-checked against the locked invoice row at payment post."""
        if allocation.invoice_id != invoice.id:
            raise ValidationError("Allocation does not reference this invoice")
        if invoice.status not in ALLOCATABLE_INVOICE_STATUSES:
            raise OverAllocationError(
                f"Invoice {invoice.invoice_number} is {invoice.status.value}",
                invoice_id=str(invoice.id),
            )
        return invoice.receive_payment(allocation.amount)
