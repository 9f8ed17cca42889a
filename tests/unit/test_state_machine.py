"""
Unit tests - document lifecycle transitions.
"""

from dataclasses import replace
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from ledgerflow.domain.entities import FiscalPeriod, Journal, JournalLine, Payment
from ledgerflow.domain.exceptions import (
    ConflictError,
    PeriodClosedError,
    PeriodNotFoundError,
    SelfApprovalError,
    StateError,
    ValidationError,
)
from ledgerflow.domain.state_machine import DocumentStateMachine, TenantPolicy
from ledgerflow.domain.value_objects import (
    DocumentStatus,
    JournalType,
    LifecycleAction,
    Money,
    PartyType,
    PaymentType,
)

NOW = datetime(2026, 1, 20, 12, 0, tzinfo=timezone.utc)
POLICY = TenantPolicy(base_currency="QAR")


@pytest.fixture
def machine() -> DocumentStateMachine:
    return DocumentStateMachine()


@pytest.fixture
def open_period(tenant_id) -> FiscalPeriod:
    return FiscalPeriod(name="2026-01", tenant_id=tenant_id, start_date=date(2026, 1, 1), end_date=date(2026, 1, 31))


def run(machine, doc, action, actor="alice", policy=POLICY, period=None):
    return machine.transition(doc, action, actor, policy=policy, now=NOW, period=period)


class TestHappyPath:

    def test_draft_to_posted(self, machine, sales_invoice, open_period):
        submitted = run(machine, sales_invoice, LifecycleAction.SUBMIT)
        approved = run(machine, submitted, LifecycleAction.APPROVE, actor="bob")
        posted = run(machine, approved, LifecycleAction.POST, actor="bob", period=open_period)

        assert submitted.status == DocumentStatus.SUBMITTED
        assert submitted.submitted_by == "alice"
        assert approved.approved_by == "bob"
        assert posted.status == DocumentStatus.POSTED
        assert posted.posted_at == NOW

    def test_transition_does_not_mutate_input(self, machine, sales_invoice):
        run(machine, sales_invoice, LifecycleAction.SUBMIT)
        assert sales_invoice.status == DocumentStatus.DRAFT

    def test_cancel_from_draft_and_submitted(self, machine, sales_invoice):
        assert run(machine, sales_invoice, LifecycleAction.CANCEL).status == DocumentStatus.CANCELLED
        submitted = run(machine, sales_invoice, LifecycleAction.SUBMIT)
        assert run(machine, submitted, LifecycleAction.CANCEL).status == DocumentStatus.CANCELLED


class TestIllegalTransitions:

    def test_post_from_draft_is_state_error(self, machine, sales_invoice, open_period):
        with pytest.raises(StateError):
            run(machine, sales_invoice, LifecycleAction.POST, period=open_period)

    def test_cancel_after_approval_is_state_error(self, machine, sales_invoice):
        approved = replace(sales_invoice, status=DocumentStatus.APPROVED)
        with pytest.raises(StateError):
            run(machine, approved, LifecycleAction.CANCEL)

    def test_second_post_is_conflict(self, machine, sales_invoice, open_period):
        posted = replace(sales_invoice, status=DocumentStatus.POSTED)
        with pytest.raises(ConflictError):
            run(machine, posted, LifecycleAction.POST, period=open_period)

    def test_post_of_paid_invoice_is_conflict(self, machine, sales_invoice, open_period):
        paid = replace(sales_invoice, status=DocumentStatus.PAID)
        with pytest.raises(ConflictError):
            run(machine, paid, LifecycleAction.POST, period=open_period)

    def test_resubmit_is_conflict(self, machine, sales_invoice):
        submitted = run(machine, sales_invoice, LifecycleAction.SUBMIT)
        with pytest.raises(ConflictError):
            run(machine, submitted, LifecycleAction.SUBMIT)


class TestApproval:

    def test_creator_cannot_approve(self, machine, sales_invoice):
        submitted = run(machine, sales_invoice, LifecycleAction.SUBMIT)
        with pytest.raises(SelfApprovalError):
            run(machine, submitted, LifecycleAction.APPROVE, actor="alice")

    def test_tenant_policy_allows_self_approval(self, machine, sales_invoice):
        submitted = run(machine, sales_invoice, LifecycleAction.SUBMIT)
        policy = TenantPolicy(base_currency="QAR", allow_self_approval=True)
        approved = run(machine, submitted, LifecycleAction.APPROVE, actor="alice", policy=policy)
        assert approved.approved_by == "alice"


class TestPeriodChecks:

    def test_missing_period(self, machine, sales_invoice):
        approved = replace(sales_invoice, status=DocumentStatus.APPROVED)
        with pytest.raises(PeriodNotFoundError):
            run(machine, approved, LifecycleAction.POST, period=None)

    def test_period_not_covering_date(self, machine, sales_invoice, tenant_id):
        approved = replace(sales_invoice, status=DocumentStatus.APPROVED)
        february = FiscalPeriod(name="2026-02", tenant_id=tenant_id,
                                start_date=date(2026, 2, 1), end_date=date(2026, 2, 28))
        with pytest.raises(PeriodNotFoundError):
            run(machine, approved, LifecycleAction.POST, period=february)

    def test_closed_period(self, machine, sales_invoice, open_period):
        approved = replace(sales_invoice, status=DocumentStatus.APPROVED)
        closed = open_period.close("controller", NOW)
        with pytest.raises(PeriodClosedError):
            run(machine, approved, LifecycleAction.POST, period=closed)


class TestSubmitValidation:

    def test_invoice_without_lines(self, machine, sales_invoice):
        empty = sales_invoice.with_lines([])
        with pytest.raises(ValidationError, match="at least one line"):
            run(machine, empty, LifecycleAction.SUBMIT)

    def test_non_positive_quantity(self, machine, sales_invoice):
        line = replace(sales_invoice.lines[0], quantity=Decimal("0"))
        with pytest.raises(ValidationError, match="quantity"):
            run(machine, sales_invoice.with_lines([line]), LifecycleAction.SUBMIT)

    def test_line_numbers_must_be_contiguous(self, machine, sales_invoice):
        line = replace(sales_invoice.lines[0], line_number=2)
        with pytest.raises(ValidationError, match="Line numbers"):
            run(machine, sales_invoice.with_lines([line]), LifecycleAction.SUBMIT)

    def test_foreign_currency_needs_rate(self, machine, sales_invoice):
        usd = replace(sales_invoice, currency="USD", exchange_rate=None, total_amount=None)
        with pytest.raises(ValidationError, match="exchange rate"):
            run(machine, usd, LifecycleAction.SUBMIT)

    def test_party_type_must_match_invoice_type(self, machine, sales_invoice):
        wrong = replace(sales_invoice, party_type=PartyType.VENDOR)
        with pytest.raises(ValidationError):
            run(machine, wrong, LifecycleAction.SUBMIT)

    def test_fully_discounted_invoice(self, machine, sales_invoice):
        line = replace(sales_invoice.lines[0], discount_percent=Decimal("100"))
        with pytest.raises(ValidationError, match="after discount and tax"):
            run(machine, sales_invoice.with_lines([line]), LifecycleAction.SUBMIT)

    def test_total_converting_to_zero_base_amount(self, machine, sales_invoice):
        line = replace(sales_invoice.lines[0], quantity=Decimal("1"), unit_price=Decimal("1"))
        small = sales_invoice.with_lines([line])
        usd = replace(small, currency="USD", exchange_rate=Decimal("0.001"), total_amount=None)
        with pytest.raises(ValidationError, match="converts to zero"):
            run(machine, usd, LifecycleAction.SUBMIT)

    def test_payment_amount_must_be_positive(self, machine, tenant_id):
        payment = Payment(
            payment_number="RCPT-000001",
            payment_type=PaymentType.RECEIPT,
            party_type=PartyType.CUSTOMER,
            party_id="CUST-001",
            payment_date=date(2026, 1, 18),
            amount=Money(Decimal("0"), "QAR"),
            tenant_id=tenant_id,
            created_by="alice",
        )
        with pytest.raises(ValidationError, match="greater than zero"):
            run(machine, payment, LifecycleAction.SUBMIT)

    def test_unbalanced_manual_journal(self, machine, chart, tenant_id):
        cash, capital = chart.get_by_code("1120"), chart.get_by_code("3100")
        journal = Journal(
            journal_number="GN-000001",
            journal_type=JournalType.GENERAL,
            transaction_date=date(2026, 1, 2),
            currency="QAR",
            tenant_id=tenant_id,
            created_by="alice",
            lines=[
                JournalLine(cash.id, Money("100", "QAR"), Money("0", "QAR"), line_number=1),
                JournalLine(capital.id, Money("0", "QAR"), Money("90", "QAR"), line_number=2),
            ],
        )
        with pytest.raises(ValidationError, match="Debit must equal credit"):
            run(machine, journal, LifecycleAction.SUBMIT)

    def test_manual_journal_line_with_both_sides(self, machine, chart, tenant_id):
        cash = chart.get_by_code("1120")
        journal = Journal(
            journal_number="GN-000002",
            journal_type=JournalType.GENERAL,
            transaction_date=date(2026, 1, 2),
            currency="QAR",
            tenant_id=tenant_id,
            created_by="alice",
            lines=[JournalLine(cash.id, Money("100", "QAR"), Money("100", "QAR"), line_number=1)],
        )
        with pytest.raises(ValidationError, match="exactly one of debit or credit"):
            run(machine, journal, LifecycleAction.SUBMIT)

    def test_manual_journal_must_use_base_currency(self, machine, chart, tenant_id):
        cash, capital = chart.get_by_code("1120"), chart.get_by_code("3100")
        journal = Journal(
            journal_number="GN-000003",
            journal_type=JournalType.GENERAL,
            transaction_date=date(2026, 1, 2),
            currency="USD",
            tenant_id=tenant_id,
            created_by="alice",
            lines=[
                JournalLine(cash.id, Money("100", "USD"), Money("0", "USD"), line_number=1),
                JournalLine(capital.id, Money("0", "USD"), Money("100", "USD"), line_number=2),
            ],
        )
        with pytest.raises(ValidationError, match="base currency"):
            run(machine, journal, LifecycleAction.SUBMIT)
