"""
billing_core.trend
Trailing "previous N periods" block shown next to each account.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Dict, Iterable, List, Optional, Sequence, Union
from .config import CURRENCY_LABEL, PLACEHOLDER, TREND_WINDOW
from .models import Account, BillRecord, HistoryPoint
from .periods import PeriodKey, format_period, previous_period, sorted_periods
from .utils import fmt_money

HistoryItem = Union[HistoryPoint, BillRecord]


@dataclass(frozen=True)
class TrendEntry:
    period: Optional[PeriodKey]
    amount_text: str = PLACEHOLDER
    delta_text: str = ""
    bill_no: Optional[str] = None
    placeholder: bool = True

    @property
    def text(self) -> str:
        if self.placeholder:
            return PLACEHOLDER
        out = f"{CURRENCY_LABEL} {self.amount_text}"
        if self.delta_text:
            out += f" ({self.delta_text})"
        if self.bill_no:
            out += f"\n({self.bill_no})"
        return out


@dataclass
class TrendRow:
    key: str
    label: str
    entries: List[TrendEntry]


@dataclass
class TrendBlock:
    periods: List[PeriodKey]
    rows: List[TrendRow] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.rows

    def header(self, label: str = "Account No") -> List[str]:
        return ["No", label] + [format_period(p, "compact") for p in self.periods]


def format_trend(value) -> str:
    """Thousands-separated 2dp; keeps an explicit +/- sign; blank when absent."""
    if value is None:
        return ""
    s = str(value).strip()
    if not s or s.lower() in ("nan", "none", "null", "undefined"):
        return ""
    sign = s[0] if s[0] in "+-" else ""
    try:
        num = Decimal(s.replace(",", "").replace("+", ""))
    except InvalidOperation:
        return s
    if not num.is_finite():
        return ""
    return f"{sign}{fmt_money(abs(num))}"

def _point(item: HistoryItem):
    """(period, amount, trending, bill_no) for either history shape."""
    if isinstance(item, BillRecord):
        return item.period, item.amount, None, None if item.bill_no == PLACEHOLDER else item.bill_no
    return item.period, item.amount, item.trending, item.bill_no

def _entry(period: PeriodKey, item: Optional[HistoryItem]) -> TrendEntry:
    if item is None:
        return TrendEntry(period)
    _, amount, trending, bill_no = _point(item)
    return TrendEntry(period, fmt_money(amount), format_trend(trending), bill_no, placeholder=False)

def trend_window(periods: Iterable[PeriodKey], window_size: int) -> List[Optional[PeriodKey]]:
    """
    The `window_size` most recent periods, padded backwards with the months
    before them. Nothing to anchor on gives `window_size` None slots.
    """
    if window_size <= 0:
        return []
    out: List[Optional[PeriodKey]] = list(sorted_periods(set(periods))[-window_size:])
    while out and len(out) < window_size:
        out.insert(0, previous_period(out[0]))
    while len(out) < window_size:
        out.insert(0, None)
    return out

def _entries(window: Sequence[Optional[PeriodKey]], by_period: Dict[PeriodKey, HistoryItem]) -> List[TrendEntry]:
    return [TrendEntry(None) if p is None else _entry(p, by_period.get(p)) for p in window]

def _by_period(history: Iterable[HistoryItem]) -> Dict[PeriodKey, HistoryItem]:
    out: Dict[PeriodKey, HistoryItem] = {}
    for item in history:
        period = _point(item)[0]
        if period is not None:
            out[period] = item
    return out

def _matches(item: HistoryItem, account) -> bool:
    if account is None or not isinstance(item, BillRecord):
        return True
    ref = account.account_no if isinstance(account, Account) else str(account)
    return item.account_ref == ref

def build_trend(account, history: Sequence[HistoryItem], window_size: int = TREND_WINDOW) -> List[TrendEntry]:
    """
    The `window_size` most recent periods in `history`, ascending, always
    exactly `window_size` entries long. Missing slots are placeholders.
    """
    by_period = _by_period(h for h in history if _matches(h, account))
    return _entries(trend_window(by_period, window_size), by_period)

def account_histories(records: Iterable[BillRecord], from_records: bool = False) -> Dict[str, List[HistoryItem]]:
    """
    History items per account ref, in first-seen account order. With
    from_records the account's own bills are its history (payloads that
    carry no previous_5_bills).
    """
    out: Dict[str, List[HistoryItem]] = {}
    for r in records:
        items = out.setdefault(r.account_ref or PLACEHOLDER, [])
        if from_records:
            items.append(r)
        else:
            items.extend(r.history)
    return out

def build_trend_block(records: Iterable[BillRecord], window_size: int = TREND_WINDOW,
                      from_records: bool = False) -> TrendBlock:
    """
    One row per account, columns shared across rows: the most recent
    `window_size` periods seen in any account's history.
    """
    records = list(records)
    labels: Dict[str, str] = {}
    for r in records:
        labels.setdefault(r.account_ref or PLACEHOLDER, r.account.display_name if r.account_ref else PLACEHOLDER)

    lookups = {key: _by_period(items) for key, items in account_histories(records, from_records).items()}
    universe = set()
    for by_period in lookups.values():
        universe.update(by_period)
    window = trend_window(universe, window_size) if universe else []

    block = TrendBlock(periods=[p for p in window if p is not None])
    for key, by_period in lookups.items():
        block.rows.append(TrendRow(key, labels[key], _entries(window, by_period)))
    return block
