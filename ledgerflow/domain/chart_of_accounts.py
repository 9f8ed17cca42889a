"""
Chart-of-Accounts lookup used by the posting engine.
"""

import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from .entities import Account
from .exceptions import AccountInUseError, InvalidAccountError
from .value_objects import AccountCode, AccountType, BalanceType, Money


class AccountRole(str, Enum):
    """Control and default accounts the posting engine needs per tenant."""
    RECEIVABLE = "receivable"
    PAYABLE = "payable"
    REVENUE = "revenue"
    EXPENSE = "expense"
    TAX_PAYABLE = "tax_payable"
    TAX_RECOVERABLE = "tax_recoverable"
    CASH = "cash"
    SALES_RETURNS = "sales_returns"
    PURCHASE_RETURNS = "purchase_returns"


@dataclass(frozen=True, slots=True)
class DefaultAccountCodes:
    """Account codes resolved for each role; configured in settings."""
    receivable: str = "1130"
    payable: str = "2110"
    revenue: str = "4100"
    expense: str = "5100"
    tax_payable: str = "2210"
    tax_recoverable: str = "1160"
    cash: str = "1120"
    sales_returns: str = "4190"
    purchase_returns: str = "5190"

    def code_for(self, role: AccountRole) -> str:
        return getattr(self, role.value)


class ChartOfAccounts:
    """Read-only view over one tenant's accounts."""

    def __init__(self, accounts: Iterable[Account], defaults: DefaultAccountCodes | None = None):
        self._by_id: dict[uuid.UUID, Account] = {}
        self._by_code: dict[str, Account] = {}
        for account in accounts:
            self._by_id[account.id] = account
            self._by_code[account.code] = account
        self.defaults = defaults or DefaultAccountCodes()

    def __contains__(self, account_id: uuid.UUID) -> bool:
        return account_id in self._by_id

    def __iter__(self):
        return iter(self._by_id.values())

    def get(self, account_id: uuid.UUID) -> Account | None:
        return self._by_id.get(account_id)

    def get_by_code(self, code: AccountCode | str) -> Account | None:
        return self._by_code.get(code)

    def require_postable(self, account_id: uuid.UUID) -> Account:
        account = self._by_id.get(account_id)
        if account is None:
            raise InvalidAccountError(f"Account {account_id} not found", account_id=str(account_id))
        if not account.is_active:
            raise InvalidAccountError(f"Account {account.code} is inactive", account_id=str(account_id))
        if not account.is_posting_allowed:
            raise InvalidAccountError(
                f"Account {account.code} does not allow posting", account_id=str(account_id)
            )
        return account

    def resolve(self, role: AccountRole) -> Account:
        """Return the postable default account configured for ``role``."""
        code = self.defaults.code_for(role)
        account = self._by_code.get(code)
        if account is None:
            raise InvalidAccountError(
                f"Default {role.value} account {code} is not in the chart of accounts",
                role=role.value,
            )
        return self.require_postable(account.id)


def signed_balance(account: Account, debit: Money, credit: Money) -> Money:
    """Net balance expressed on the account's normal side."""
    if account.balance_type == BalanceType.DEBIT:
        return debit - credit
    return credit - debit


def ensure_classification_change_allowed(
    account: Account,
    account_type: AccountType | None,
    balance_type: BalanceType | None,
    is_referenced: bool,
) -> None:
    """type and balance_type are frozen once any journal line uses the account."""
    changes_type = account_type is not None and account_type != account.account_type
    changes_side = balance_type is not None and balance_type != account.balance_type
    if (changes_type or changes_side) and is_referenced:
        raise AccountInUseError(
            f"Account {account.code} is referenced by journal lines; "
            "its type and balance type cannot change",
            account_id=str(account.id),
        )


# code, name, type, posting allowed
DEFAULT_CHART: list[tuple[str, str, AccountType, bool]] = [
    ("1000", "Assets", AccountType.ASSET, False),
    ("1110", "Petty Cash", AccountType.ASSET, True),
    ("1120", "Cash at Bank", AccountType.ASSET, True),
    ("1130", "Accounts Receivable", AccountType.ASSET, True),
    ("1160", "Input Tax Recoverable", AccountType.ASSET, True),
    ("1200", "Inventory", AccountType.ASSET, True),
    ("2000", "Liabilities", AccountType.LIABILITY, False),
    ("2110", "Accounts Payable", AccountType.LIABILITY, True),
    ("2210", "Output Tax Payable", AccountType.LIABILITY, True),
    ("3000", "Equity", AccountType.EQUITY, False),
    ("3100", "Share Capital", AccountType.EQUITY, True),
    ("3200", "Retained Earnings", AccountType.EQUITY, True),
    ("4000", "Revenue", AccountType.REVENUE, False),
    ("4100", "Sales Revenue", AccountType.REVENUE, True),
    ("4190", "Sales Returns", AccountType.REVENUE, True),
    ("4200", "Service Revenue", AccountType.REVENUE, True),
    ("5000", "Expenses", AccountType.EXPENSE, False),
    ("5100", "Purchases", AccountType.EXPENSE, True),
    ("5190", "Purchase Returns", AccountType.EXPENSE, True),
    ("5200", "Salaries", AccountType.EXPENSE, True),
    ("5300", "Rent", AccountType.EXPENSE, True),
]


def default_chart(tenant_id: uuid.UUID) -> list[Account]:
    return [
        Account(code=code, name=name, account_type=account_type, tenant_id=tenant_id, is_posting_allowed=posting)
        for code, name, account_type, posting in DEFAULT_CHART
    ]
