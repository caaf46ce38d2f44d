import logging
from decimal import Decimal

from billing_core.models import BillStatus
from billing_core.normalizer import (
    flatten_printing_summary,
    flatten_telco_report,
    flatten_year_month_summary,
    normalize_account,
    normalize_beneficiary,
    normalize_bill,
    normalize_history,
    normalize_records,
    parse_status,
)
from billing_core.periods import PeriodKey


class TestNormalizeBill:
    def test_nested_utility_bill(self, utility_bills):
        r = normalize_bill(utility_bills[0])
        assert r.account_ref == "ACC-100"
        assert r.period == PeriodKey(2025, 7)
        assert r.amount == Decimal("1200.50")
        assert r.status == BillStatus.INVOICED
        assert r.cost_center_ref == "CC-North"
        assert r.service_category == "Electricity"
        assert r.beneficiary_ref == "TNB"
        assert r.bill_no == "INV-1"
        assert r.bill_id == "11"
        assert r.account.location == "Kuching"
        assert r.account.beneficiary.filing == "TNB/2025"
        assert len(r.history) == 2

    def test_flat_row(self):
        r = normalize_bill({"account_no": "X", "month": "Feb-2025", "inv_total": "RM 9.99", "cost_center": "HQ"})
        assert r.account_ref == "X"
        assert r.period == PeriodKey(2025, 2)
        assert r.amount == Decimal("9.99")
        assert r.cost_center_ref == "HQ"

    def test_missing_everything_falls_back(self):
        r = normalize_bill({})
        assert r.account_ref is None
        assert r.period is None
        assert r.amount == Decimal("0.00")
        assert r.account.account_no == "-"
        assert r.bill_no == "-"
        assert r.cost_center_ref is None
        assert r.status == BillStatus.NOT_INVOICED

    def test_non_mapping_input(self):
        r = normalize_bill("nonsense")
        assert r.period is None and r.amount == Decimal("0.00")

    def test_bill_id_is_not_account_id(self):
        r = normalize_bill({"id": 99, "account_no": "A", "period": "2025-01"})
        assert r.account.id is None
        assert r.bill_id == "99"

    def test_is_idempotent(self, utility_bills):
        assert normalize_bill(utility_bills[0]) == normalize_bill(utility_bills[0])


class TestStatus:
    def test_flags(self):
        assert parse_status("1") == BillStatus.INVOICED
        assert parse_status("Invoiced") == BillStatus.INVOICED
        assert parse_status("invoice") == BillStatus.INVOICED
        assert parse_status(None) == BillStatus.NOT_INVOICED
        assert parse_status("0") == BillStatus.NOT_INVOICED
        assert parse_status("pending") == BillStatus.NOT_INVOICED
        assert parse_status("disputed") == BillStatus.OTHER


class TestParts:
    def test_double_wrapped_beneficiary(self):
        b = normalize_beneficiary({"beneficiary": {"beneficiary": {"name": "Syabas", "filing": "F-1"}}})
        assert b.name == "Syabas"
        assert b.filing == "F-1"

    def test_beneficiary_from_string(self):
        assert normalize_beneficiary("  TM  Net ").name == "TM Net"

    def test_account_display_name(self):
        a = normalize_account({"account_no": "A-1", "costcenter": {"name": "CC1"}, "location": "Miri"})
        assert a.display_name == "A-1 (CC1 - Miri)"
        assert normalize_account({"account_no": "A-2"}).display_name == "A-2"

    def test_history(self):
        points = normalize_history([
            {"month": "Jun-2025", "amount": "10", "trending": "+1.00", "ubill_no": "B1"},
            "junk",
            {"month": "bad", "amount": "5"},
        ])
        assert len(points) == 2
        assert points[0].period == PeriodKey(2025, 6)
        assert points[0].trending == "+1.00"
        assert points[0].bill_no == "B1"
        assert points[1].period is None

    def test_history_not_a_list(self):
        assert normalize_history(None) == ()
        assert normalize_history({"month": "Jun-2025"}) == ()


class TestNormalizeRecords:
    def test_drops_unparseable_and_logs(self, caplog):
        raws = [
            {"account_no": "A1", "period": "Jan-2025", "amount": "100"},
            {"account_no": "A1", "period": "13-2025", "amount": "5"},
        ]
        with caplog.at_level(logging.WARNING, logger="billing_core.normalizer"):
            batch = normalize_records(raws)
        assert len(batch.records) == 1
        assert batch.dropped_count == 1
        assert batch.dropped == ["13-2025"]
        assert "Dropped record" in caplog.text

    def test_empty_input(self):
        batch = normalize_records(None)
        assert batch.records == [] and batch.dropped_count == 0

    def test_out_of_range_amount_is_kept_as_zero(self):
        batch = normalize_records([{"account_no": "A1", "period": "Jan-2025", "amount": "1E+40"}])
        assert batch.dropped_count == 0
        assert batch.records[0].amount == Decimal("0.00")


class TestFlatten:
    def test_year_month_summary(self):
        items = [{
            "costcenter": "CC1",
            "details": [
                {"year": 2024, "months": [{"month": 12, "expenses": "10.00"}]},
                {"year": 2025, "months": [{"month": 1, "expenses": "20.00"}, {"month": "Feb", "expenses": "5"}]},
            ],
        }]
        rows = flatten_year_month_summary(items, "costcenter")
        assert rows == [
            {"costcenter": "CC1", "period": "2024-12", "amount": "10.00"},
            {"costcenter": "CC1", "period": "2025-01", "amount": "20.00"},
            {"costcenter": "CC1", "period": "Feb-2025", "amount": "5"},
        ]
        records = normalize_records(rows).records
        assert [r.cost_center_ref for r in records] == ["CC1", "CC1", "CC1"]
        assert [r.period for r in records] == [PeriodKey(2024, 12), PeriodKey(2025, 1), PeriodKey(2025, 2)]

    def test_telco_report(self):
        data = [{
            "year": 2025,
            "month": [
                {"name": "Jan'25", "costcenters": [{"name": "CC1", "amount": "50"}]},
                {"name": "Feb", "accounts": [{"account_no": "0123", "provider": "Celcom", "amount": "30"}]},
                "junk",
            ],
        }]
        rows = flatten_telco_report(data)
        assert rows[0] == {"costcenter": "CC1", "period": "Jan'25", "amount": "50"}
        assert rows[1]["account_no"] == "0123"
        assert rows[1]["period"] == "Feb-2025"
        records = normalize_records(rows).records
        assert records[1].account.provider == "Celcom"
        assert records[1].period == PeriodKey(2025, 2)

    def test_printing_summary(self):
        data = [{"year": 2025, "details": [
            {"bill_id": 7, "account": "P-1", "monthly_expenses": [
                {"month": "January", "util_id": 70, "ubill_date": "2025-01-04", "ubill_gtotal": "12.00"},
                {"month": "February", "ubill_gtotal": "8.50"},
            ]},
            "junk",
        ]}]
        rows = flatten_printing_summary(data)
        assert rows[0] == {"account_no": "P-1", "bill_id": 70, "period": "January-2025",
                           "bill_date": "2025-01-04", "amount": "12.00"}
        assert rows[1]["bill_id"] == 7
        records = normalize_records(rows).records
        assert [r.period for r in records] == [PeriodKey(2025, 1), PeriodKey(2025, 2)]
        assert [r.account_ref for r in records] == ["P-1", "P-1"]
