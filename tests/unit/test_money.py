"""
Unit tests - Money and exchange-rate value objects.
"""

from decimal import Decimal

import pytest

from ledgerflow.domain.value_objects import ExchangeRate, Money


class TestMoneyRounding:
    """Amounts are rounded half-even to the currency's minor unit."""

    def test_half_even_rounds_to_even_neighbour(self):
        assert Money(Decimal("2.345"), "QAR").amount == Decimal("2.34")
        assert Money(Decimal("2.355"), "QAR").amount == Decimal("2.36")

    def test_zero_decimal_currency(self):
        assert Money(Decimal("1500.5"), "JPY").amount == Decimal("1500")
        assert Money(Decimal("1501.5"), "JPY").amount == Decimal("1502")

    def test_three_decimal_currency(self):
        assert Money(Decimal("1.2345"), "KWD").amount == Decimal("1.234")
        assert Money(Decimal("1.2345"), "KWD").minor_units == 1234

    def test_currency_is_upper_cased(self):
        assert Money(Decimal("1"), "usd").currency == "USD"

    def test_float_is_rejected(self):
        with pytest.raises(TypeError):
            Money(0.1, "QAR")

    def test_string_amount_accepted(self):
        assert Money("10.10", "QAR").minor_units == 1010


class TestMoneyArithmetic:

    def test_add_and_subtract(self):
        a = Money(Decimal("100.10"), "QAR")
        b = Money(Decimal("0.20"), "QAR")
        assert (a + b).amount == Decimal("100.30")
        assert (a - b).amount == Decimal("99.90")

    def test_currency_mismatch_raises(self):
        with pytest.raises(ValueError, match="Currency mismatch"):
            Money(Decimal("1"), "QAR") + Money(Decimal("1"), "USD")

    def test_comparison_uses_minor_units(self):
        assert Money(Decimal("5750"), "QAR") == Money(Decimal("5750.00"), "QAR")
        assert Money(Decimal("10.01"), "QAR") > Money(Decimal("10"), "QAR")

    def test_percent(self):
        assert Money(Decimal("5000"), "QAR").percent(Decimal("15")).amount == Decimal("750.00")

    def test_total_of_empty_is_zero(self):
        assert Money.total([], "QAR").is_zero()


class TestExchangeRate:
    """Conversion into the tenant base currency."""

    def test_convert_usd_to_qar(self):
        rate = ExchangeRate(rate=Decimal("3.75"), currency="USD", base_currency="QAR")
        converted = rate.convert(Money(Decimal("1000"), "USD"))
        assert converted.currency == "QAR"
        assert converted.amount == Decimal("3750.00")

    def test_convert_rounds_half_even(self):
        rate = ExchangeRate(rate=Decimal("3.6725"), currency="USD", base_currency="QAR")
        # 0.01 * 3.6725 = 0.036725 -> 0.04
        assert rate.convert(Money(Decimal("0.01"), "USD")).amount == Decimal("0.04")

    def test_identity_rate(self):
        rate = ExchangeRate.identity("QAR")
        assert rate.convert(Money(Decimal("12.34"), "QAR")).amount == Decimal("12.34")

    def test_non_positive_rate_rejected(self):
        with pytest.raises(ValueError):
            ExchangeRate(rate=Decimal("0"), currency="USD", base_currency="QAR")

    def test_wrong_source_currency_rejected(self):
        rate = ExchangeRate(rate=Decimal("3.75"), currency="USD", base_currency="QAR")
        with pytest.raises(ValueError):
            rate.convert(Money(Decimal("1"), "EUR"))
