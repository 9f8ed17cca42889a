"""
Domain Layer - Value objects, enumerations and fixed-point money.
All money arithmetic uses Decimal quantized to the currency's minor unit.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import ROUND_HALF_EVEN, Decimal
from enum import Enum
from typing import Iterable, NewType

AccountCode = NewType("AccountCode", str)

# ISO 4217 minor-unit exponents that differ from the default of 2.
CURRENCY_EXPONENTS: dict[str, int] = {
    "BHD": 3,
    "IQD": 3,
    "JOD": 3,
    "KWD": 3,
    "LYD": 3,
    "OMR": 3,
    "TND": 3,
    "CLP": 0,
    "ISK": 0,
    "JPY": 0,
    "KRW": 0,
    "UGX": 0,
    "VND": 0,
    "XAF": 0,
    "XOF": 0,
}
DEFAULT_EXPONENT = 2


def currency_exponent(currency: str) -> int:
    return CURRENCY_EXPONENTS.get(currency.upper(), DEFAULT_EXPONENT)


def round_money(amount: Decimal, currency: str) -> Decimal:
    """Round half-even to the currency's minor unit."""
    quantum = Decimal(1).scaleb(-currency_exponent(currency))
    return amount.quantize(quantum, rounding=ROUND_HALF_EVEN)


def utc_now() -> datetime:
    """Current time as an aware UTC datetime; every stored timestamp is UTC."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to a naive value, such as one read back from SQLite."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def _to_decimal(value: Decimal | int | str) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        raise TypeError("Money amounts must not be built from float")
    return Decimal(str(value))


class AccountType(str, Enum):
    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    REVENUE = "revenue"
    EXPENSE = "expense"


class BalanceType(str, Enum):
    """Normal (increasing) side of an account."""
    DEBIT = "debit"
    CREDIT = "credit"


NORMAL_BALANCE: dict[AccountType, BalanceType] = {
    AccountType.ASSET: BalanceType.DEBIT,
    AccountType.EXPENSE: BalanceType.DEBIT,
    AccountType.LIABILITY: BalanceType.CREDIT,
    AccountType.EQUITY: BalanceType.CREDIT,
    AccountType.REVENUE: BalanceType.CREDIT,
}


class DocumentKind(str, Enum):
    INVOICE = "invoice"
    PAYMENT = "payment"
    JOURNAL = "journal"


class DocumentStatus(str, Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    POSTED = "posted"
    PARTIAL = "partial"     # derived from balance, invoices only
    PAID = "paid"           # derived from balance, invoices only
    CANCELLED = "cancelled"


# Statuses reached through posting; none of them accept further lifecycle actions.
POSTED_STATUSES = frozenset({DocumentStatus.POSTED, DocumentStatus.PARTIAL, DocumentStatus.PAID})


class LifecycleAction(str, Enum):
    SUBMIT = "submit"
    APPROVE = "approve"
    POST = "post"
    CANCEL = "cancel"


class InvoiceType(str, Enum):
    SALES = "sales"
    PURCHASE = "purchase"
    SALES_RETURN = "sales_return"
    PURCHASE_RETURN = "purchase_return"


class PartyType(str, Enum):
    CUSTOMER = "customer"
    VENDOR = "vendor"


class PaymentType(str, Enum):
    RECEIPT = "receipt"    # money in from a customer
    PAYMENT = "payment"    # money out to a vendor


class JournalType(str, Enum):
    GENERAL = "general"
    SALES = "sales"
    PURCHASE = "purchase"
    RECEIPT = "receipt"
    PAYMENT = "payment"
    ADJUSTMENT = "adjustment"
    OPENING = "opening"
    CLOSING = "closing"
    REVERSAL = "reversal"


class SourceType(str, Enum):
    INVOICE = "invoice"
    PAYMENT = "payment"
    MANUAL = "manual"
    REVERSAL = "reversal"


class AuditAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    SUBMIT = "submit"
    APPROVE = "approve"
    POST = "post"
    CANCEL = "cancel"
    ALLOCATE = "allocate"
    REVERSE = "reverse"
    CLOSE_PERIOD = "close_period"
    REOPEN_PERIOD = "reopen_period"
    DELETE = "delete"


@dataclass(frozen=True, slots=True)
class Money:
    """Value Object - amount rounded to the currency's minor unit."""
    amount: Decimal
    currency: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "currency", self.currency.upper())
        object.__setattr__(self, "amount", round_money(_to_decimal(self.amount), self.currency))

    @classmethod
    def zero(cls, currency: str) -> "Money":
        return cls(Decimal("0"), currency)

    @classmethod
    def total(cls, items: Iterable["Money"], currency: str) -> "Money":
        result = cls.zero(currency)
        for item in items:
            result = result + item
        return result

    @property
    def minor_units(self) -> int:
        """Integer count of minor units; the only form used for equality checks."""
        return int(self.amount.scaleb(currency_exponent(self.currency)))

    def is_zero(self) -> bool:
        return self.amount == 0

    def is_negative(self) -> bool:
        return self.amount < 0

    def percent(self, rate: Decimal) -> "Money":
        return Money(self.amount * _to_decimal(rate) / Decimal("100"), self.currency)

    def _check_currency(self, other: "Money") -> None:
        if self.currency != other.currency:
            raise ValueError(
                f"Currency mismatch: {self.currency} vs {other.currency}"
            )

    def __add__(self, other: "Money") -> "Money":
        self._check_currency(other)
        return Money(self.amount + other.amount, self.currency)

    def __sub__(self, other: "Money") -> "Money":
        self._check_currency(other)
        return Money(self.amount - other.amount, self.currency)

    def __neg__(self) -> "Money":
        return Money(-self.amount, self.currency)

    def __lt__(self, other: "Money") -> bool:
        self._check_currency(other)
        return self.minor_units < other.minor_units

    def __le__(self, other: "Money") -> bool:
        self._check_currency(other)
        return self.minor_units <= other.minor_units

    def __gt__(self, other: "Money") -> bool:
        self._check_currency(other)
        return self.minor_units > other.minor_units

    def __ge__(self, other: "Money") -> bool:
        self._check_currency(other)
        return self.minor_units >= other.minor_units

    def __str__(self) -> str:
        return f"{self.amount} {self.currency}"


@dataclass(frozen=True, slots=True)
class ExchangeRate:
    """Value Object - rate from a document currency into the tenant base currency."""
    rate: Decimal
    currency: str
    base_currency: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "rate", _to_decimal(self.rate))
        if self.rate <= 0:
            raise ValueError("Exchange rate must be positive")

    @classmethod
    def identity(cls, currency: str) -> "ExchangeRate":
        return cls(rate=Decimal("1"), currency=currency, base_currency=currency)

    def convert(self, money: Money) -> Money:
        """Convert into the base currency, rounded half-even to its minor unit."""
        if money.currency != self.currency.upper():
            raise ValueError(
                f"Cannot convert {money.currency} with a {self.currency} rate"
            )
        return Money(money.amount * self.rate, self.base_currency)
