"""
billing_core.parsing
Date/amount parsing and loose payload lookups.
"""
from __future__ import annotations
import logging
from datetime import date, datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Mapping, Optional
from .config import DATE_FORMATS

log = logging.getLogger(__name__)

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

def parse_amount(value) -> Decimal:
    """Coerce an amount cell to a 2dp Decimal. Anything non-numeric is 0."""
    if value is None or isinstance(value, bool):
        return ZERO
    if isinstance(value, Decimal):
        d = value
    elif isinstance(value, int):
        d = Decimal(value)
    elif isinstance(value, float):
        d = Decimal(repr(value))
    else:
        s = str(value).strip()
        if not s:
            return ZERO
        neg = False
        if s.startswith("(") and s.endswith(")"):
            neg = True
            s = s[1:-1].strip()
        s = s.replace("RM", "").replace("$", "").replace(",", "").strip()
        try:
            d = Decimal(s)
        except InvalidOperation:
            return ZERO
        if neg:
            d = -abs(d)
    if not d.is_finite():
        return ZERO
    try:
        return d.quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        # more digits than the context precision can hold at 2dp
        log.warning("Amount out of range, treated as 0: %r", value)
        return ZERO

def parse_date(value) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    s = ("" if value is None else str(value)).strip()
    if not s:
        return None
    s = s.split()[0]
    if "T" in s:
        s = s.split("T")[0]
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(s, fmt)
        except ValueError:
            continue
    return None

def dig(raw: Any, path: str) -> Any:
    """Follow a dotted path through nested mappings; None when any hop is missing."""
    cur = raw
    for part in path.split("."):
        if not isinstance(cur, Mapping):
            return None
        cur = cur.get(part)
        if cur is None:
            return None
    return cur

def pick(raw: Any, *paths: str) -> Any:
    """First non-empty value among alternate key paths."""
    for path in paths:
        v = dig(raw, path)
        if v is None:
            continue
        if isinstance(v, str) and not v.strip():
            continue
        return v
    return None

def pick_text(raw: Any, *paths: str, default: Optional[str] = None) -> Optional[str]:
    v = pick(raw, *paths)
    if v is None or isinstance(v, (Mapping, list, tuple)):
        return default
    return " ".join(str(v).split())
