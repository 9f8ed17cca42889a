"""
Unit tests - journal generation from invoices, payments and reversals.
"""

from dataclasses import replace
from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from ledgerflow.domain.chart_of_accounts import ChartOfAccounts, default_chart
from ledgerflow.domain.entities import InvoiceLine, Journal, JournalLine, Payment, PaymentAllocation
from ledgerflow.domain.exceptions import InvalidAccountError, PostingImbalanceError, StateError
from ledgerflow.domain.posting import PostingEngine
from ledgerflow.domain.value_objects import (
    DocumentStatus,
    InvoiceType,
    JournalType,
    Money,
    PartyType,
    PaymentType,
    SourceType,
)

NOW = datetime(2026, 1, 20, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def engine(chart) -> PostingEngine:
    return PostingEngine(chart, "QAR")


def build(engine, invoice):
    return engine.build_invoice_journal(invoice, journal_number="SL-000001", actor="bob", now=NOW)


def by_code(chart, journal):
    """{account code: (debit, credit)} for compact assertions."""
    return {
        chart.get(line.account_id).code: (line.debit.amount, line.credit.amount)
        for line in journal.lines
    }


class TestSalesInvoice:

    def test_ten_by_five_hundred_at_fifteen_percent(self, engine, chart, sales_invoice):
        journal = build(engine, sales_invoice)

        assert by_code(chart, journal) == {
            "1130": (Decimal("5750.00"), Decimal("0.00")),
            "4100": (Decimal("0.00"), Decimal("5000.00")),
            "2210": (Decimal("0.00"), Decimal("750.00")),
        }
        assert journal.is_balanced()
        assert journal.journal_type == JournalType.SALES
        assert journal.source_type == SourceType.INVOICE
        assert journal.source_id == sales_invoice.id
        assert journal.status == DocumentStatus.POSTED
        assert [line.line_number for line in journal.lines] == [1, 2, 3]

    def test_tax_grouped_per_rate(self, engine, chart, sales_invoice):
        lines = [
            InvoiceLine(line_number=1, quantity=Decimal("1"), unit_price=Decimal("100"), tax_rate=Decimal("5")),
            InvoiceLine(line_number=2, quantity=Decimal("1"), unit_price=Decimal("200"), tax_rate=Decimal("5.0")),
            InvoiceLine(line_number=3, quantity=Decimal("1"), unit_price=Decimal("100"), tax_rate=Decimal("10")),
        ]
        journal = build(engine, sales_invoice.with_lines(lines))

        tax_lines = [line for line in journal.lines if chart.get(line.account_id).code == "2210"]
        assert sorted(line.credit.amount for line in tax_lines) == [Decimal("10.00"), Decimal("15.00")]
        assert journal.total_debit.amount == Decimal("425.00")
        assert journal.is_balanced()

    def test_discount_reduces_taxable_amount(self, engine, chart, sales_invoice):
        line = replace(sales_invoice.lines[0], discount_percent=Decimal("10"))
        journal = build(engine, sales_invoice.with_lines([line]))

        assert by_code(chart, journal) == {
            "1130": (Decimal("5175.00"), Decimal("0.00")),
            "4100": (Decimal("0.00"), Decimal("4500.00")),
            "2210": (Decimal("0.00"), Decimal("675.00")),
        }

    def test_line_account_override(self, engine, chart, sales_invoice):
        service_revenue = chart.get_by_code("4200")
        line = replace(sales_invoice.lines[0], account_id=service_revenue.id, tax_rate=Decimal("0"))
        journal = build(engine, sales_invoice.with_lines([line]))

        assert by_code(chart, journal) == {
            "1130": (Decimal("5000.00"), Decimal("0.00")),
            "4200": (Decimal("0.00"), Decimal("5000.00")),
        }

    def test_non_posting_account_rejected(self, engine, chart, sales_invoice):
        header = chart.get_by_code("4000")
        line = replace(sales_invoice.lines[0], account_id=header.id)
        with pytest.raises(InvalidAccountError):
            build(engine, sales_invoice.with_lines([line]))


class TestForeignCurrency:

    def test_usd_invoice_converted_at_frozen_rate(self, engine, chart, sales_invoice):
        line = InvoiceLine(line_number=1, quantity=Decimal("1"), unit_price=Decimal("1000"))
        usd = replace(sales_invoice, currency="USD", exchange_rate=Decimal("3.75"), total_amount=None,
                      paid_amount=None, balance_amount=None, lines=[line])
        journal = build(engine, usd)

        assert journal.currency == "QAR"
        assert by_code(chart, journal) == {
            "1130": (Decimal("3750.00"), Decimal("0.00")),
            "4100": (Decimal("0.00"), Decimal("3750.00")),
        }

    def test_rounding_residual_absorbed(self, engine, chart, sales_invoice):
        lines = [
            InvoiceLine(line_number=1, quantity=Decimal("1"), unit_price=Decimal("0.01")),
            InvoiceLine(line_number=2, quantity=Decimal("1"), unit_price=Decimal("0.01"),
                        account_id=chart.get_by_code("4200").id),
        ]
        usd = replace(sales_invoice, currency="USD", exchange_rate=Decimal("3.6725"), total_amount=None,
                      paid_amount=None, balance_amount=None, lines=lines)
        journal = build(engine, usd)

        # 0.02 USD -> 0.07 QAR, while each 0.01 USD line alone converts to 0.04 QAR.
        assert journal.total_debit.amount == Decimal("0.07")
        assert journal.total_credit.amount == Decimal("0.07")
        assert sorted(line.credit.amount for line in journal.lines if not line.credit.is_zero()) == [
            Decimal("0.03"), Decimal("0.04"),
        ]


class TestOtherInvoiceTypes:

    def test_purchase_invoice(self, engine, chart, sales_invoice):
        purchase = replace(sales_invoice, invoice_type=InvoiceType.PURCHASE, party_type=PartyType.VENDOR)
        journal = build(engine, purchase)

        assert by_code(chart, journal) == {
            "5100": (Decimal("5000.00"), Decimal("0.00")),
            "1160": (Decimal("750.00"), Decimal("0.00")),
            "2110": (Decimal("0.00"), Decimal("5750.00")),
        }
        assert journal.journal_type == JournalType.PURCHASE

    def test_sales_return(self, engine, chart, sales_invoice):
        credit_note = replace(sales_invoice, invoice_type=InvoiceType.SALES_RETURN)
        journal = build(engine, credit_note)

        assert by_code(chart, journal) == {
            "4190": (Decimal("5000.00"), Decimal("0.00")),
            "2210": (Decimal("750.00"), Decimal("0.00")),
            "1130": (Decimal("0.00"), Decimal("5750.00")),
        }

    def test_missing_default_account(self, tenant_id, sales_invoice):
        accounts = [a for a in default_chart(tenant_id) if a.code != "2210"]
        engine = PostingEngine(ChartOfAccounts(accounts), "QAR")
        with pytest.raises(InvalidAccountError, match="tax_payable"):
            build(engine, sales_invoice)


class TestPaymentJournal:

    def test_receipt(self, engine, chart, tenant_id):
        payment = Payment(
            payment_number="RCPT-000001",
            payment_type=PaymentType.RECEIPT,
            party_type=PartyType.CUSTOMER,
            party_id="CUST-001",
            payment_date=date(2026, 1, 18),
            amount=Money("5750", "QAR"),
            tenant_id=tenant_id,
            created_by="alice",
            allocations=[PaymentAllocation(invoice_id=uuid4(), amount=Money("5750", "QAR"))],
        )
        journal = engine.build_payment_journal(payment, journal_number="RC-000001", actor="bob", now=NOW)

        assert by_code(chart, journal) == {
            "1120": (Decimal("5750.00"), Decimal("0.00")),
            "1130": (Decimal("0.00"), Decimal("5750.00")),
        }
        assert journal.journal_type == JournalType.RECEIPT
        assert journal.source_id == payment.id

    def test_vendor_payment_to_chosen_bank_account(self, engine, chart, tenant_id):
        petty_cash = chart.get_by_code("1110")
        payment = Payment(
            payment_number="PAY-000001",
            payment_type=PaymentType.PAYMENT,
            party_type=PartyType.VENDOR,
            party_id="VEND-001",
            payment_date=date(2026, 1, 18),
            amount=Money("200", "QAR"),
            bank_account_id=petty_cash.id,
            tenant_id=tenant_id,
            created_by="alice",
        )
        journal = engine.build_payment_journal(payment, journal_number="PM-000001", actor="bob", now=NOW)

        assert by_code(chart, journal) == {
            "2110": (Decimal("200.00"), Decimal("0.00")),
            "1110": (Decimal("0.00"), Decimal("200.00")),
        }


class TestReversal:

    def test_reversal_swaps_sides(self, engine, chart, sales_invoice):
        original = build(engine, sales_invoice)
        reversal = engine.build_reversal(
            original, journal_number="RV-000001", transaction_date=date(2026, 1, 25), actor="bob", now=NOW
        )

        assert by_code(chart, reversal) == {
            "1130": (Decimal("0.00"), Decimal("5750.00")),
            "4100": (Decimal("5000.00"), Decimal("0.00")),
            "2210": (Decimal("750.00"), Decimal("0.00")),
        }
        assert reversal.reversal_of_id == original.id
        assert reversal.source_type == SourceType.REVERSAL
        assert reversal.transaction_date == date(2026, 1, 25)

    def test_reversal_of_draft_rejected(self, engine, sales_invoice):
        draft = replace(build(engine, sales_invoice), status=DocumentStatus.DRAFT)
        with pytest.raises(StateError):
            engine.build_reversal(draft, journal_number="RV-1", transaction_date=date(2026, 1, 25),
                                  actor="bob", now=NOW)

    def test_reversal_of_reversal_rejected(self, engine, sales_invoice):
        original = build(engine, sales_invoice)
        reversal = engine.build_reversal(original, journal_number="RV-1", transaction_date=date(2026, 1, 25),
                                         actor="bob", now=NOW)
        with pytest.raises(StateError):
            engine.build_reversal(reversal, journal_number="RV-2", transaction_date=date(2026, 1, 26),
                                  actor="bob", now=NOW)


class TestBalanceInvariant:

    def test_imbalance_raises_and_logs(self, engine, chart, tenant_id, caplog):
        cash = chart.get_by_code("1120")
        journal = Journal(
            journal_number="GN-000001",
            journal_type=JournalType.GENERAL,
            transaction_date=date(2026, 1, 2),
            currency="QAR",
            tenant_id=tenant_id,
            created_by="alice",
            lines=[JournalLine(cash.id, Money("10", "QAR"), Money("0", "QAR"), line_number=1)],
        )
        with pytest.raises(PostingImbalanceError):
            engine.assert_balanced(journal, reference="test")
        assert "Posting imbalance" in caplog.text

    def test_empty_journal_is_not_balanced(self, engine, tenant_id):
        journal = Journal(
            journal_number="GN-000002",
            journal_type=JournalType.GENERAL,
            transaction_date=date(2026, 1, 2),
            currency="QAR",
            tenant_id=tenant_id,
            created_by="alice",
        )
        with pytest.raises(PostingImbalanceError):
            engine.assert_balanced(journal, reference="empty")
