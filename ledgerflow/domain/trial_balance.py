"""
Trial Balance Aggregator - sums posted journal lines per account.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable

from .chart_of_accounts import ChartOfAccounts, signed_balance
from .entities import Account, JournalLine
from .value_objects import Money

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TrialBalanceEntry:
    account: Account
    total_debit: Money
    total_credit: Money

    @property
    def balance(self) -> Money:
        """Net balance on the account's normal side."""
        return signed_balance(self.account, self.total_debit, self.total_credit)


@dataclass(frozen=True, slots=True)
class UnknownAccountTotal:
    """Posted lines whose account is missing from the chart."""
    account_id: uuid.UUID
    total_debit: Money
    total_credit: Money


@dataclass
class TrialBalance:
    as_of: date
    currency: str
    entries: list[TrialBalanceEntry] = field(default_factory=list)
    unknown_accounts: list[UnknownAccountTotal] = field(default_factory=list)
    total_debit: Money | None = None
    total_credit: Money | None = None

    @property
    def is_balanced(self) -> bool:
        return self.total_debit.minor_units == self.total_credit.minor_units


class TrialBalanceAggregator:

    def __init__(self, chart: ChartOfAccounts, base_currency: str):
        self.chart = chart
        self.base_currency = base_currency.upper()

    def aggregate(self, lines: Iterable[JournalLine], as_of: date) -> TrialBalance:
        """
        ``lines`` must already be restricted to posted journals dated on or
        before ``as_of``; an imbalance is reported, not raised. Lines on an
        account missing from the chart go to ``unknown_accounts`` and still
        count towards the totals.
        """
        zero = Money.zero(self.base_currency)
        debits: dict[uuid.UUID, Money] = {}
        credits: dict[uuid.UUID, Money] = {}
        for line in lines:
            debits[line.account_id] = debits.get(line.account_id, zero) + line.debit
            credits[line.account_id] = credits.get(line.account_id, zero) + line.credit

        entries = []
        unknown = []
        for account_id in debits:
            account = self.chart.get(account_id)
            if account is None:
                logger.error("Journal lines reference unknown account %s", account_id)
                unknown.append(UnknownAccountTotal(account_id, debits[account_id], credits[account_id]))
                continue
            entries.append(TrialBalanceEntry(account, debits[account_id], credits[account_id]))
        entries.sort(key=lambda e: e.account.code)
        unknown.sort(key=lambda u: str(u.account_id))
        rows = [*entries, *unknown]

        report = TrialBalance(
            as_of=as_of,
            currency=self.base_currency,
            entries=entries,
            unknown_accounts=unknown,
            total_debit=Money.total((r.total_debit for r in rows), self.base_currency),
            total_credit=Money.total((r.total_credit for r in rows), self.base_currency),
        )
        if not report.is_balanced:
            logger.error(
                "Trial balance as of %s is out of balance: debit=%s credit=%s",
                as_of.isoformat(), report.total_debit, report.total_credit,
            )
        return report
