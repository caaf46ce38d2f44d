from decimal import Decimal

from billing_core.models import HistoryPoint
from billing_core.normalizer import normalize_bill
from billing_core.periods import PeriodKey
from billing_core.trend import build_trend, build_trend_block, format_trend, trend_window


def _point(label, amount, trending=None, bill_no=None):
    return HistoryPoint(PeriodKey(*label), f"{label}", Decimal(amount), trending, bill_no)


class TestBuildTrend:
    def test_two_periods_window_five(self):
        history = [_point((2025, 6), "20.00"), _point((2025, 5), "10.00")]
        entries = build_trend("A1", history, window_size=5)
        assert len(entries) == 5
        assert [e.placeholder for e in entries] == [True, True, True, False, False]
        assert [e.period for e in entries][-2:] == [PeriodKey(2025, 5), PeriodKey(2025, 6)]
        assert entries[0].period == PeriodKey(2025, 2)
        assert entries[0].text == "-"

    def test_takes_most_recent(self):
        history = [_point((2025, m), "1.00") for m in range(1, 9)]
        entries = build_trend("A1", history, window_size=3)
        assert [e.period.month for e in entries] == [6, 7, 8]

    def test_no_history(self):
        entries = build_trend("A1", [], window_size=4)
        assert len(entries) == 4
        assert all(e.placeholder and e.period is None for e in entries)

    def test_gap_inside_window_is_placeholder(self):
        history = [_point((2025, 1), "1.00"), _point((2025, 3), "3.00")]
        entries = build_trend("A1", history, window_size=3)
        assert [e.period.month for e in entries] == [12, 1, 3]
        assert [e.placeholder for e in entries] == [True, False, False]

    def test_entry_text(self):
        entries = build_trend("A1", [_point((2025, 6), "1234", "+12.5", "INV-1")], window_size=1)
        assert entries[0].text == "RM 1,234.00 (+12.50)\n(INV-1)"

    def test_zero_window(self):
        assert build_trend("A1", [_point((2025, 6), "1")], window_size=0) == []

    def test_bill_records_filtered_by_account(self):
        history = [
            normalize_bill({"account_no": "A1", "period": "2025-05", "amount": "5"}),
            normalize_bill({"account_no": "B2", "period": "2025-06", "amount": "9"}),
        ]
        entries = build_trend("A1", history, window_size=2)
        assert [e.placeholder for e in entries] == [True, False]
        assert entries[1].amount_text == "5.00"


class TestFormatTrend:
    def test_signs(self):
        assert format_trend("+1234.5") == "+1,234.50"
        assert format_trend("-20") == "-20.00"
        assert format_trend("20") == "20.00"

    def test_missing(self):
        assert format_trend(None) == ""
        assert format_trend("") == ""
        assert format_trend("NaN") == ""

    def test_unparseable_kept(self):
        assert format_trend("n/a%") == "n/a%"


class TestTrendBlock:
    def test_union_of_periods(self, records):
        block = build_trend_block(records, window_size=5)
        assert len(block.periods) == 5
        assert block.periods[-1] == PeriodKey(2025, 6)
        assert block.header()[:2] == ["No", "Account No"]
        assert block.header()[-1] == "Jun'25"

    def test_rows(self, records):
        block = build_trend_block(records, window_size=5)
        labels = [r.label for r in block.rows]
        assert labels[0] == "ACC-100 (CC-North - Kuching)"
        acc100 = block.rows[0]
        assert acc100.entries[-1].text == "RM 1,150.50 (+50.50)"
        assert acc100.entries[-2].text == "RM 1,100.00 (+50.00)\n(INV-0)"
        # accounts without history still get a row of placeholders
        acc200 = block.rows[1]
        assert all(e.text == "-" for e in acc200.entries)

    def test_empty(self):
        block = build_trend_block([], window_size=5)
        assert block.is_empty
        assert block.periods == []

    def test_single_account_matches_build_trend(self, records):
        acc100 = [r for r in records if r.account_ref == "ACC-100"]
        block = build_trend_block(acc100, window_size=5)
        assert block.rows[0].entries == build_trend("ACC-100", acc100[0].history, window_size=5)

    def test_history_from_records(self):
        bills = [normalize_bill({"account_no": "A1", "period": f"2025-0{m}", "amount": str(m)}) for m in (1, 2)]
        block = build_trend_block(bills, window_size=3, from_records=True)
        assert block.periods == [PeriodKey(2024, 12), PeriodKey(2025, 1), PeriodKey(2025, 2)]
        assert [e.amount_text for e in block.rows[0].entries] == ["-", "1.00", "2.00"]

    def test_zero_window(self, records):
        block = build_trend_block(records, window_size=0)
        assert block.periods == []
        assert all(row.entries == [] for row in block.rows)


class TestTrendWindow:
    def test_pads_back_from_latest(self):
        assert trend_window({PeriodKey(2025, 1)}, 3) == [PeriodKey(2024, 11), PeriodKey(2024, 12), PeriodKey(2025, 1)]

    def test_nothing_to_anchor(self):
        assert trend_window([], 2) == [None, None]

    def test_zero(self):
        assert trend_window([PeriodKey(2025, 1)], 0) == []
