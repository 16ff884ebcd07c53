from datetime import date, datetime
from decimal import Decimal

import pytest

from loan_amortizer.utils import (
    add_months,
    convert_term_to_months,
    decimal_from_str,
    monthly_rate,
    months_between,
    parse_date,
    parse_year_month,
    to_decimal,
    to_int,
)


class TestToDecimal:
    def test_accepted_types(self):
        assert to_decimal(Decimal("1.5")) == Decimal("1.5")
        assert to_decimal(7) == Decimal("7")
        assert to_decimal(0.1) == Decimal("0.1")
        assert to_decimal(" 1,250.50 ") == Decimal("1250.50")

    @pytest.mark.parametrize("value", [None, "", "abc", "NaN", "inf", float("nan"), True, [1]])
    def test_rejected_values(self, value):
        assert to_decimal(value) is None

    def test_decimal_from_str_raises(self):
        with pytest.raises(ValueError):
            decimal_from_str("twelve")


class TestToInt:
    def test_integral_values(self):
        assert to_int(12) == 12
        assert to_int("12") == 12
        assert to_int("12.0") == 12
        assert to_int(Decimal("3")) == 3

    @pytest.mark.parametrize("value", ["12.5", "x", None, False, float("inf")])
    def test_rejected_values(self, value):
        assert to_int(value) is None


class TestDates:
    def test_parse_year_month(self):
        assert parse_year_month("2024-08") == date(2024, 8, 1)
        with pytest.raises(ValueError):
            parse_year_month("2024/08")
        with pytest.raises(ValueError):
            parse_year_month("2024-13")

    def test_parse_date(self):
        assert parse_date("2024-08-27") == date(2024, 8, 27)
        assert parse_date("2024-08") == date(2024, 8, 1)
        assert parse_date(datetime(2024, 8, 27, 15, 30)) == date(2024, 8, 27)
        assert parse_date(date(2024, 8, 27)) == date(2024, 8, 27)
        with pytest.raises(ValueError):
            parse_date("27/08/2024")
        with pytest.raises(ValueError):
            parse_date(None)

    def test_add_months_clamps_day(self):
        assert add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)
        assert add_months(date(2023, 1, 31), 1) == date(2023, 2, 28)
        assert add_months(date(2024, 11, 15), 3) == date(2025, 2, 15)
        assert add_months(date(2024, 8, 27), 0) == date(2024, 8, 27)

    def test_months_between(self):
        start = date(2024, 8, 27)
        assert months_between(start, date(2024, 11, 27)) == 3
        assert months_between(start, date(2025, 11, 27)) == 15
        assert months_between(start, date(2025, 2, 28)) == 6


class TestTermsAndRates:
    def test_convert_term_to_months(self):
        assert convert_term_to_months(15, "years") == 180
        assert convert_term_to_months(180, "months") == 180
        with pytest.raises(ValueError):
            convert_term_to_months(15, "weeks")

    def test_monthly_rate(self):
        assert monthly_rate(Decimal("12")) == Decimal("0.01")
        assert monthly_rate(Decimal("0")) == 0
