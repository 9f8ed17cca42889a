"""
Unit tests - trial balance aggregation.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

from ledgerflow.domain.entities import JournalLine
from ledgerflow.domain.trial_balance import TrialBalanceAggregator
from ledgerflow.domain.value_objects import Money

AS_OF = date(2026, 1, 31)


def line(account, debit="0", credit="0"):
    return JournalLine(account.id, Money(Decimal(debit), "QAR"), Money(Decimal(credit), "QAR"))


class TestTrialBalance:

    def test_invoice_and_receipt(self, chart):
        receivable, revenue = chart.get_by_code("1130"), chart.get_by_code("4100")
        tax, bank = chart.get_by_code("2210"), chart.get_by_code("1120")
        lines = [
            line(receivable, debit="5750"),
            line(revenue, credit="5000"),
            line(tax, credit="750"),
            line(bank, debit="5750"),
            line(receivable, credit="5750"),
        ]
        report = TrialBalanceAggregator(chart, "QAR").aggregate(lines, AS_OF)

        assert report.is_balanced
        assert report.total_debit == Money("11500", "QAR")
        assert [entry.account.code for entry in report.entries] == ["1120", "1130", "2210", "4100"]
        balances = {entry.account.code: entry.balance.amount for entry in report.entries}
        assert balances == {
            "1120": Decimal("5750.00"),
            "1130": Decimal("0.00"),
            "2210": Decimal("750.00"),
            "4100": Decimal("5000.00"),
        }

    def test_no_lines(self, chart):
        report = TrialBalanceAggregator(chart, "QAR").aggregate([], AS_OF)
        assert report.entries == []
        assert report.is_balanced
        assert report.total_debit.is_zero()

    def test_imbalance_is_reported_not_raised(self, chart, caplog):
        bank = chart.get_by_code("1120")
        report = TrialBalanceAggregator(chart, "QAR").aggregate([line(bank, debit="10")], AS_OF)

        assert not report.is_balanced
        assert "out of balance" in caplog.text

    def test_unknown_account_is_reported_and_totalled(self, chart, caplog):
        bank = chart.get_by_code("1120")
        stray = JournalLine(uuid4(), Money("0", "QAR"), Money("10", "QAR"))
        report = TrialBalanceAggregator(chart, "QAR").aggregate([line(bank, debit="10"), stray], AS_OF)

        assert [entry.account.code for entry in report.entries] == ["1120"]
        assert len(report.unknown_accounts) == 1
        assert report.unknown_accounts[0].account_id == stray.account_id
        assert report.unknown_accounts[0].total_credit == Money("10", "QAR")
        assert report.total_credit == Money("10", "QAR")
        assert report.is_balanced
        assert "unknown account" in caplog.text

    def test_unknown_account_lines_can_unbalance_the_totals(self, chart):
        stray = JournalLine(uuid4(), Money("10", "QAR"), Money("0", "QAR"))
        report = TrialBalanceAggregator(chart, "QAR").aggregate([stray], AS_OF)

        assert report.entries == []
        assert report.total_debit == Money("10", "QAR")
        assert not report.is_balanced
