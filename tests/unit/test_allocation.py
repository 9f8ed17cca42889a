"""
Unit tests - payment allocation and invoice balance tracking.
"""

from dataclasses import replace
from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from ledgerflow.domain.allocation import AllocationTracker
from ledgerflow.domain.entities import Payment, PaymentAllocation
from ledgerflow.domain.exceptions import (
    AllocationMismatchError,
    OverAllocationError,
    StateError,
    ValidationError,
)
from ledgerflow.domain.value_objects import DocumentStatus, InvoiceType, Money, PartyType, PaymentType


def qar(amount: str) -> Money:
    return Money(Decimal(amount), "QAR")


@pytest.fixture
def tracker() -> AllocationTracker:
    return AllocationTracker()


@pytest.fixture
def posted_invoice(sales_invoice):
    return replace(sales_invoice, status=DocumentStatus.POSTED)


@pytest.fixture
def receipt(tenant_id) -> Payment:
    return Payment(
        payment_number="RCPT-000001",
        payment_type=PaymentType.RECEIPT,
        party_type=PartyType.CUSTOMER,
        party_id="CUST-001",
        payment_date=date(2026, 1, 18),
        amount=qar("5750"),
        tenant_id=tenant_id,
        created_by="alice",
    )


class TestAddAllocation:

    def test_allocation_is_appended(self, tracker, receipt, posted_invoice):
        updated = tracker.add_allocation(receipt, posted_invoice, qar("2000"))

        assert len(updated.allocations) == 1
        assert updated.allocations[0].invoice_id == posted_invoice.id
        assert updated.unallocated_amount() == qar("3750")
        assert receipt.allocations == []

    def test_more_than_invoice_balance(self, tracker, receipt, posted_invoice):
        bigger = replace(receipt, amount=qar("6000"))
        with pytest.raises(OverAllocationError):
            tracker.add_allocation(bigger, posted_invoice, qar("5750.01"))

    def test_reserved_by_other_payments(self, tracker, receipt, posted_invoice):
        with pytest.raises(OverAllocationError):
            tracker.add_allocation(receipt, posted_invoice, qar("2000"), reserved=qar("4000"))

    def test_more_than_payment_amount(self, tracker, receipt, posted_invoice):
        small = replace(receipt, amount=qar("100"))
        with pytest.raises(OverAllocationError, match="payment amount"):
            tracker.add_allocation(small, posted_invoice, qar("150"))

    def test_party_mismatch(self, tracker, receipt, posted_invoice):
        other = replace(receipt, party_id="CUST-999")
        with pytest.raises(ValidationError, match="different parties"):
            tracker.add_allocation(other, posted_invoice, qar("100"))

    def test_currency_mismatch(self, tracker, receipt, posted_invoice):
        usd = replace(receipt, amount=Money(Decimal("100"), "USD"))
        with pytest.raises(ValidationError, match="Currency mismatch"):
            tracker.add_allocation(usd, posted_invoice, Money(Decimal("100"), "USD"))

    def test_receipt_cannot_settle_purchase_invoice(self, tracker, receipt, posted_invoice):
        purchase = replace(posted_invoice, invoice_type=InvoiceType.PURCHASE, party_type=PartyType.VENDOR)
        with pytest.raises(ValidationError):
            tracker.add_allocation(receipt, purchase, qar("100"))

    def test_zero_amount(self, tracker, receipt, posted_invoice):
        with pytest.raises(ValidationError, match="greater than zero"):
            tracker.add_allocation(receipt, posted_invoice, qar("0"))

    def test_posted_payment_is_frozen(self, tracker, receipt, posted_invoice):
        posted = replace(receipt, status=DocumentStatus.POSTED)
        with pytest.raises(StateError):
            tracker.add_allocation(posted, posted_invoice, qar("100"))

    def test_draft_invoice_cannot_be_allocated(self, tracker, receipt, sales_invoice):
        with pytest.raises(ValidationError, match="must be posted"):
            tracker.add_allocation(receipt, sales_invoice, qar("100"))


class TestPaymentTotals:

    def test_fully_allocated_payment_passes(self, tracker, receipt, posted_invoice):
        allocated = tracker.add_allocation(receipt, posted_invoice, qar("5750"))
        tracker.validate_payment_allocations(allocated)

    def test_partial_allocation_is_mismatch(self, tracker, receipt, posted_invoice):
        allocated = tracker.add_allocation(receipt, posted_invoice, qar("5000"))
        with pytest.raises(AllocationMismatchError):
            tracker.validate_payment_allocations(allocated)

    def test_unallocated_payment_is_mismatch(self, tracker, receipt):
        with pytest.raises(AllocationMismatchError):
            tracker.validate_payment_allocations(receipt)


class TestApplyToInvoice:
    """Invoice status follows the remaining balance."""

    def test_full_settlement_marks_paid(self, tracker, posted_invoice):
        paid = tracker.apply_to_invoice(posted_invoice, PaymentAllocation(posted_invoice.id, qar("5750")))

        assert paid.status == DocumentStatus.PAID
        assert paid.balance_amount.is_zero()
        assert paid.paid_amount == qar("5750")

    def test_partial_then_paid(self, tracker, posted_invoice):
        partial = tracker.apply_to_invoice(posted_invoice, PaymentAllocation(posted_invoice.id, qar("2000")))
        assert partial.status == DocumentStatus.PARTIAL
        assert partial.balance_amount == qar("3750")

        paid = tracker.apply_to_invoice(partial, PaymentAllocation(posted_invoice.id, qar("3750")))
        assert paid.status == DocumentStatus.PAID
        assert paid.paid_amount + paid.balance_amount == paid.total_amount

    def test_overpayment_at_post_time(self, tracker, posted_invoice):
        with pytest.raises(OverAllocationError):
            tracker.apply_to_invoice(posted_invoice, PaymentAllocation(posted_invoice.id, qar("6000")))

    def test_paid_invoice_rejects_further_allocations(self, tracker, posted_invoice):
        paid = replace(posted_invoice, status=DocumentStatus.PAID)
        with pytest.raises(OverAllocationError):
            tracker.apply_to_invoice(paid, PaymentAllocation(posted_invoice.id, qar("1")))

    def test_allocation_for_another_invoice(self, tracker, posted_invoice):
        other = replace(posted_invoice, id=uuid4())
        with pytest.raises(ValidationError):
            tracker.apply_to_invoice(other, PaymentAllocation(posted_invoice.id, qar("1")))
