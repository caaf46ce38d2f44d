from decimal import Decimal

from billing_core.aggregation import aggregate, by_service
from billing_core.normalizer import normalize_bill
from billing_core.summaries import (
    STATUS_HEADERS,
    build_status_summary,
    is_accrued,
    is_invoiced,
    status_row_values,
    summary_items,
)


class TestPredicates:
    def test_invoiced(self):
        assert is_invoiced(normalize_bill({"status": "invoiced", "amount": "5"}))
        assert not is_invoiced(normalize_bill({"status": "", "amount": "5"}))

    def test_accrued(self):
        assert is_accrued(normalize_bill({"status": "0", "amount": "5"}))
        assert not is_accrued(normalize_bill({"status": "0", "amount": "0"}))
        assert not is_accrued(normalize_bill({"status": "1", "amount": "5"}))

    def test_accrued_threshold(self):
        r = normalize_bill({"status": "0", "amount": "50"})
        assert is_accrued(r, Decimal("49.99"))
        assert not is_accrued(r, Decimal("50"))


class TestStatusSummary:
    def test_per_year(self, records):
        rows = build_status_summary(records)
        assert len(rows) == 1
        row = rows[0]
        assert row.year == 2025
        assert row.total_bills == 4
        assert row.invoiced_count == 2
        assert row.invoiced_amount == Decimal("1270.50")
        assert row.not_invoiced_count == 2
        assert row.not_invoiced_amount == Decimal("125.10")
        assert row.accrued_count == 2
        assert row.total_billings == Decimal("1395.60")
        assert row.invoiced_percent == Decimal("50.00")

    def test_threshold_changes_accrued(self, records):
        row = build_status_summary(records, Decimal("50"))[0]
        assert row.accrued_count == 1
        assert row.accrued_amount == Decimal("80.00")

    def test_newest_year_first(self):
        records = [
            normalize_bill({"period": "2023-05", "amount": "1"}),
            normalize_bill({"period": "2025-05", "amount": "1"}),
            normalize_bill({"period": "2024-05", "amount": "1"}),
        ]
        assert [r.year for r in build_status_summary(records)] == [2025, 2024, 2023]

    def test_values_line_up_with_headers(self, records):
        row = build_status_summary(records)[0]
        assert len(status_row_values(row)) == len(STATUS_HEADERS)

    def test_empty(self):
        assert build_status_summary([]) == []


class TestSummaryItems:
    def test_sorted_by_total(self, records):
        items = summary_items(aggregate(records, by_service), "total")
        assert [name for name, _ in items] == ["Electricity", "Water"]
        assert items[0][1] == {"bills": 3, "total": Decimal("1350.50")}
