"""
billing_core.summaries
Invoice status summaries + sorted group summaries.
"""
from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, List, Tuple
from .aggregation import AggregateBucket, GroupKey, sort_buckets
from .config import ACCRUAL_THRESHOLD
from .models import BillRecord, BillStatus
from .parsing import CENT, ZERO


def is_invoiced(record: BillRecord) -> bool:
    return record.status == BillStatus.INVOICED

def is_accrued(record: BillRecord, threshold: Decimal = ACCRUAL_THRESHOLD) -> bool:
    """Recorded amount above `threshold` that has not been invoiced yet."""
    return not is_invoiced(record) and record.amount > threshold


@dataclass
class StatusSummaryRow:
    year: int
    total_bills: int = 0
    invoiced_count: int = 0
    invoiced_amount: Decimal = ZERO
    not_invoiced_count: int = 0
    not_invoiced_amount: Decimal = ZERO
    accrued_count: int = 0
    accrued_amount: Decimal = ZERO

    @property
    def total_billings(self) -> Decimal:
        return self.invoiced_amount + self.not_invoiced_amount

    @property
    def invoiced_percent(self) -> Decimal:
        if not self.total_bills:
            return ZERO
        pct = Decimal(self.invoiced_count) * 100 / Decimal(self.total_bills)
        return pct.quantize(CENT, rounding=ROUND_HALF_UP)

    @property
    def accrued_percent(self) -> Decimal:
        if not self.total_bills:
            return ZERO
        pct = Decimal(self.accrued_count) * 100 / Decimal(self.total_bills)
        return pct.quantize(CENT, rounding=ROUND_HALF_UP)


STATUS_HEADERS = [
    "Year",
    "Total Bills",
    "Total Invoiced",
    "Invoiced",
    "Total No Invoice",
    "No Invoiced",
    "Total Accrued",
    "Accrued",
    "Total Billings",
    "Invoiced %",
]


def build_status_summary(records: Iterable[BillRecord], threshold: Decimal = ACCRUAL_THRESHOLD) -> List[StatusSummaryRow]:
    """One row per year, newest first."""
    by_year: Dict[int, StatusSummaryRow] = {}
    for r in records:
        if r.period is None:
            continue
        row = by_year.setdefault(r.year, StatusSummaryRow(year=r.year))
        row.total_bills += 1
        if is_invoiced(r):
            row.invoiced_count += 1
            row.invoiced_amount += r.amount
            continue
        row.not_invoiced_count += 1
        row.not_invoiced_amount += r.amount
        if is_accrued(r, threshold):
            row.accrued_count += 1
            row.accrued_amount += r.amount
    return [by_year[y] for y in sorted(by_year, reverse=True)]

def status_row_values(row: StatusSummaryRow) -> list:
    return [
        row.year,
        row.total_bills,
        row.invoiced_count,
        row.invoiced_amount,
        row.not_invoiced_count,
        row.not_invoiced_amount,
        row.accrued_count,
        row.accrued_amount,
        row.total_billings,
        row.invoiced_percent,
    ]

def summary_items(buckets: Dict[GroupKey, AggregateBucket], sort_mode: str = "total") -> List[Tuple[str, Dict[str, object]]]:
    """Group | Bills | Total items, sorted the same way as the pivot rows."""
    return [(b.label, {"bills": b.count, "total": b.subtotal}) for b in sort_buckets(buckets, sort_mode)]
