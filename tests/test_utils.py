from datetime import datetime
from decimal import Decimal

import pytest

from billing_core.paths import out_path
from billing_core.utils import fmt_date, fmt_money, report_filename, timestamp_line


class TestFormatting:
    def test_fmt_money(self):
        assert fmt_money(Decimal("1234.5")) == "1,234.50"
        assert fmt_money(0) == "0.00"
        assert fmt_money(-7.1) == "-7.10"
        assert fmt_money(None) == ""

    def test_fmt_date(self):
        assert fmt_date(datetime(2025, 7, 5)) == "05/07/2025"
        assert fmt_date(None) == ""

    def test_timestamp_line(self):
        assert timestamp_line("Generated", datetime(2025, 8, 14, 9, 30)) == "Generated: 2025-08-14 09:30:00"


class TestFilenames:
    def test_report_filename(self):
        when = datetime(2025, 8, 14, 9, 30, 5)
        assert report_filename("utility-costcenter", "xlsx", when) == "utility-costcenter-20250814093005.xlsx"
        assert report_filename("telco account", ".pdf", when) == "telco-account-20250814093005.pdf"


class TestPaths:
    def test_out_path_creates_folder(self, tmp_path):
        p = out_path("xlsx", "a.xlsx", tmp_path)
        assert p == tmp_path / "xlsx" / "a.xlsx"
        assert p.parent.is_dir()

    def test_unknown_kind(self, tmp_path):
        with pytest.raises(ValueError, match="Unknown output kind"):
            out_path("csv", "a.csv", tmp_path)
