"""
billing_core.pivot
Group x period pivot: row amounts, subtotals, grand total and header geometry.

Nothing in here draws. The renderers consume PivotTable.periods for the
month columns and PivotTable.year_spans for the merged year header cells.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Union
from .aggregation import AggregateBucket, GroupKey, sort_buckets
from .config import GRAND_TOTAL_LABEL
from .errors import RenderFailure
from .parsing import ZERO
from .periods import PeriodKey, sorted_periods


@dataclass(frozen=True)
class YearSpan:
    year: int
    start_col: int  # 0-based within the period columns
    col_span: int


@dataclass
class PivotRow:
    key: GroupKey
    label: str
    amounts: Dict[PeriodKey, Optional[Decimal]]
    subtotal: Decimal
    count: int = 0
    trend: Optional[list] = None

    def amount_for(self, period: PeriodKey) -> Optional[Decimal]:
        """None means no data for the period, which is not the same as 0."""
        return self.amounts.get(period)


@dataclass
class PivotTable:
    periods: List[PeriodKey]
    rows: List[PivotRow]
    grand_total: PivotRow
    year_spans: List[YearSpan] = field(default_factory=list)
    label_header: str = "Group"

    @property
    def is_empty(self) -> bool:
        return not self.rows

    @property
    def years(self) -> List[int]:
        return [s.year for s in self.year_spans]

    def for_year(self, year: int) -> "PivotTable":
        periods = [p for p in self.periods if p.year == year]
        rows = []
        for r in self.rows:
            amounts = {p: r.amounts.get(p) for p in periods}
            if all(v is None for v in amounts.values()):
                continue
            rows.append(PivotRow(r.key, r.label, amounts, _row_subtotal(amounts), r.count, r.trend))
        return PivotTable(periods, rows, grand_total_row(rows, periods), year_spans(periods), self.label_header)


def period_universe(buckets: Iterable[AggregateBucket]) -> List[PeriodKey]:
    """Ascending union of every period seen in any bucket."""
    seen = set()
    for b in buckets:
        seen.update(b.amounts.keys())
    return sorted_periods(seen)

def year_spans(periods: List[PeriodKey]) -> List[YearSpan]:
    spans: List[YearSpan] = []
    for i, p in enumerate(periods):
        if spans and spans[-1].year == p.year:
            last = spans[-1]
            spans[-1] = YearSpan(last.year, last.start_col, last.col_span + 1)
        else:
            spans.append(YearSpan(p.year, i, 1))
    return spans

def _row_subtotal(amounts: Dict[PeriodKey, Optional[Decimal]]) -> Decimal:
    return sum((v for v in amounts.values() if v is not None), ZERO)

def grand_total_row(rows: List[PivotRow], periods: List[PeriodKey]) -> PivotRow:
    """Column-wise sum over already built rows (not over raw records)."""
    amounts: Dict[PeriodKey, Optional[Decimal]] = {}
    for p in periods:
        vals = [r.amounts.get(p) for r in rows if r.amounts.get(p) is not None]
        amounts[p] = sum(vals, ZERO) if vals else None
    return PivotRow(
        key=(GRAND_TOTAL_LABEL,),
        label=GRAND_TOTAL_LABEL,
        amounts=amounts,
        subtotal=sum((r.subtotal for r in rows), ZERO),
        count=sum(r.count for r in rows),
    )

def build_pivot(
    buckets: Union[Dict[GroupKey, AggregateBucket], Iterable[AggregateBucket]],
    periods: Optional[Iterable[PeriodKey]] = None,
    sort_mode: str = "label",
    label_header: str = "Group",
) -> PivotTable:
    if isinstance(buckets, dict):
        bucket_map = buckets
    else:
        bucket_map = {b.key: b for b in buckets}
    ordered = sort_buckets(bucket_map, sort_mode)

    cols = sorted_periods(periods) if periods is not None else period_universe(ordered)

    rows: List[PivotRow] = []
    for b in ordered:
        amounts = {p: b.amounts.get(p) for p in cols}
        rows.append(PivotRow(b.key, b.label, amounts, _row_subtotal(amounts), b.count))

    return PivotTable(
        periods=cols,
        rows=rows,
        grand_total=grand_total_row(rows, cols),
        year_spans=year_spans(cols),
        label_header=label_header,
    )

def total_mismatches(table: PivotTable) -> List[str]:
    """Problems with the subtotal/grand-total invariants; empty when consistent."""
    problems: List[str] = []
    for r in table.rows:
        if r.subtotal != _row_subtotal(r.amounts):
            problems.append(f"row {r.label}: subtotal {r.subtotal} != sum of periods")
    for p in table.periods:
        vals = [r.amounts.get(p) for r in table.rows if r.amounts.get(p) is not None]
        expected = sum(vals, ZERO) if vals else None
        if table.grand_total.amounts.get(p) != expected:
            problems.append(f"period {p}: grand total {table.grand_total.amounts.get(p)} != {expected}")
    if table.grand_total.subtotal != sum((r.subtotal for r in table.rows), ZERO):
        problems.append("grand total subtotal != sum of row subtotals")
    return problems

def check_totals(table: PivotTable) -> None:
    problems = total_mismatches(table)
    if problems:
        raise RenderFailure("; ".join(problems))

def attach_trend(table: PivotTable, block) -> PivotTable:
    """Hang each account's trend entries on its row; rows keyed by anything else get none."""
    by_ref = {row.key: row.entries for row in block.rows}
    for row in table.rows:
        row.trend = by_ref.get(row.key[0]) if len(row.key) == 1 else None
    return table
