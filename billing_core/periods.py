"""
billing_core.periods
Calendar period keys: parsing, ordering, formatting.

A PeriodKey is a (year, month) pair. Labels arrive as "Jul-2025" from the
trend arrays, "2025-07" from the summary endpoints and full dates from bill
rows; all of them collapse to the same key.
"""
from __future__ import annotations
import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable, List, Optional
from .config import MONTH_ABBR, MONTH_NAMES
from .errors import UnparseablePeriod
from .parsing import parse_date

_MONTH_LOOKUP = {abbr.lower(): i for i, abbr in enumerate(MONTH_ABBR, start=1)}
_MONTH_LOOKUP.update({name.lower(): i for i, name in enumerate(MONTH_NAMES, start=1)})

_RE_MON_YEAR = re.compile(r"^([A-Za-z]+)[-\s]+(\d{4})$")
_RE_MON_YY = re.compile(r"^([A-Za-z]{3})'(\d{2})$")
_RE_ISO_MONTH = re.compile(r"^(\d{4})-(\d{1,2})$")
_RE_NUM_MONTH_YEAR = re.compile(r"^(\d{1,2})[-/](\d{4})$")

UNKNOWN_MONTH = 0


@dataclass(frozen=True, order=True)
class PeriodKey:
    year: int
    month: int

    @property
    def known(self) -> bool:
        return 1 <= self.month <= 12

    def __str__(self) -> str:
        return format_period(self, "label")


def _key(year: int, month: int) -> Optional[PeriodKey]:
    if year < 1 or not (1 <= month <= 12):
        return None
    return PeriodKey(year, month)

def month_index(name: str) -> int:
    """1-12 for a known month name/abbreviation, UNKNOWN_MONTH otherwise."""
    return _MONTH_LOOKUP.get((name or "").strip().lower(), UNKNOWN_MONTH)

def parse_period(label, allow_unknown_month: bool = False) -> Optional[PeriodKey]:
    """
    Parse a period label into a PeriodKey. Never raises.

    Accepts "Mon-YYYY", "YYYY-MM", "MM-YYYY", "Mon'YY", ISO dates/datetimes and
    date objects. With allow_unknown_month, "Xyz-2025" yields PeriodKey(2025, 0),
    which sorts before every known month of that year.
    """
    if label is None:
        return None
    if isinstance(label, PeriodKey):
        return label
    if isinstance(label, (date, datetime)):
        return PeriodKey(label.year, label.month)

    s = str(label).strip()
    if not s:
        return None

    m = _RE_MON_YEAR.match(s)
    if m:
        idx = month_index(m.group(1))
        year = int(m.group(2))
        if idx == UNKNOWN_MONTH:
            return PeriodKey(year, UNKNOWN_MONTH) if allow_unknown_month else None
        return _key(year, idx)

    m = _RE_MON_YY.match(s)
    if m:
        return _key(2000 + int(m.group(2)), month_index(m.group(1)))

    m = _RE_ISO_MONTH.match(s)
    if m:
        return _key(int(m.group(1)), int(m.group(2)))

    m = _RE_NUM_MONTH_YEAR.match(s)
    if m:
        return _key(int(m.group(2)), int(m.group(1)))

    d = parse_date(s)
    if d:
        return PeriodKey(d.year, d.month)
    return None

def parse_period_strict(label) -> PeriodKey:
    key = parse_period(label)
    if key is None:
        raise UnparseablePeriod(label)
    return key

def compare_periods(a: PeriodKey, b: PeriodKey) -> int:
    return (a > b) - (a < b)

def format_period(key: PeriodKey, style: str = "compact") -> str:
    abbr = MONTH_ABBR[key.month - 1] if key.known else "???"
    if style == "compact":
        return f"{abbr}'{key.year % 100:02d}"
    if style == "short":
        return abbr
    if style == "full":
        name = MONTH_NAMES[key.month - 1] if key.known else "Unknown month"
        return f"{name} {key.year}"
    if style == "label":
        return f"{abbr}-{key.year}"
    if style == "iso":
        return f"{key.year:04d}-{key.month:02d}"
    raise ValueError(f"Unknown period style: {style}")

def sorted_periods(keys: Iterable[PeriodKey]) -> List[PeriodKey]:
    """Ascending and duplicate-free."""
    return sorted(set(keys))

def previous_period(key: PeriodKey) -> PeriodKey:
    if key.month <= 1:
        return PeriodKey(key.year - 1, 12)
    return PeriodKey(key.year, key.month - 1)

def next_period(key: PeriodKey) -> PeriodKey:
    if key.month >= 12:
        return PeriodKey(key.year + 1, 1)
    return PeriodKey(key.year, key.month + 1)

def period_range(start: PeriodKey, end: PeriodKey) -> List[PeriodKey]:
    out: List[PeriodKey] = []
    cur = start
    while cur <= end:
        out.append(cur)
        cur = next_period(cur)
    return out

def default_report_period(today: Optional[date] = None) -> PeriodKey:
    """Month before `today`; bills for a month arrive in the following one."""
    today = today or date.today()
    return previous_period(PeriodKey(today.year, today.month))
