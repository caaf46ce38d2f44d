from datetime import datetime
from decimal import Decimal

import pytest

from billing_core.parsing import dig, parse_amount, parse_date, pick, pick_text


class TestParseAmount:
    @pytest.mark.parametrize("raw,expected", [
        ("100", "100.00"),
        ("1,234.5", "1234.50"),
        ("RM 1,200.00", "1200.00"),
        ("$ 45.10", "45.10"),
        ("(12.50)", "-12.50"),
        ("-3", "-3.00"),
        (7, "7.00"),
        (0.1, "0.10"),
        (Decimal("2.345"), "2.35"),
    ])
    def test_numbers(self, raw, expected):
        assert parse_amount(raw) == Decimal(expected)

    @pytest.mark.parametrize("raw", [None, "", "abc", "NaN", "inf", float("nan"), True, [], {}])
    def test_non_numeric_is_zero(self, raw):
        assert parse_amount(raw) == Decimal("0.00")

    def test_always_two_places(self):
        assert parse_amount("5").as_tuple().exponent == -2

    @pytest.mark.parametrize("raw", ["1e30", "1E+40", 1e30, Decimal("1e27"), 10 ** 30])
    def test_out_of_range_is_zero(self, raw, caplog):
        assert parse_amount(raw) == Decimal("0.00")
        assert "out of range" in caplog.text

    def test_large_but_representable(self):
        assert parse_amount("123456789012345678901234.5") == Decimal("123456789012345678901234.50")


class TestParseDate:
    def test_formats(self):
        assert parse_date("2025-07-05") == datetime(2025, 7, 5)
        assert parse_date("05/07/2025") == datetime(2025, 7, 5)
        assert parse_date("2025/07/05") == datetime(2025, 7, 5)

    def test_iso_datetime(self):
        assert parse_date("2025-07-05T10:11:12.000Z") == datetime(2025, 7, 5)

    def test_bad(self):
        assert parse_date("") is None
        assert parse_date(None) is None
        assert parse_date("31/31/2025") is None


class TestLookups:
    def setup_method(self):
        self.raw = {
            "account": {"account_no": "A-1", "costcenter": {"name": "CC"}},
            "blank": "  ",
            "amount": 0,
        }

    def test_dig(self):
        assert dig(self.raw, "account.costcenter.name") == "CC"
        assert dig(self.raw, "account.missing.name") is None
        assert dig("not a mapping", "a") is None

    def test_pick_skips_blank(self):
        assert pick(self.raw, "blank", "account.account_no") == "A-1"

    def test_pick_keeps_zero(self):
        assert pick(self.raw, "amount") == 0

    def test_pick_text(self):
        assert pick_text({"name": "  Tenaga   Nasional "}, "name") == "Tenaga Nasional"
        assert pick_text(self.raw, "account", default="-") == "-"
        assert pick_text(self.raw, "nothing") is None
