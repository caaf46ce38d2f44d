"""
billing_core.utils
Small reusable helpers.
"""
from __future__ import annotations
from datetime import datetime
from decimal import Decimal
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

REPORT_TZ = "Asia/Kuala_Lumpur"

def normalize_spaces(text: str) -> str:
    return " ".join((text or "").split()).strip()

def fmt_money(n) -> str:
    """2 decimals, thousands separator, no currency symbol."""
    if n is None:
        return ""
    return f"{Decimal(n):,.2f}"

def now_local() -> datetime:
    try:
        return datetime.now(ZoneInfo(REPORT_TZ))
    except ZoneInfoNotFoundError:
        return datetime.now()

def timestamp_line(prefix: str = "Generated", when: Optional[datetime] = None) -> str:
    dt = when or now_local()
    return f"{prefix}: {dt.strftime('%Y-%m-%d %H:%M:%S')}"

def report_stamp(when: Optional[datetime] = None) -> str:
    return (when or now_local()).strftime("%Y%m%d%H%M%S")

def report_filename(kind: str, ext: str, when: Optional[datetime] = None) -> str:
    """<report-kind>-<YYYYMMDDHHMMSS>.<ext>"""
    safe_kind = "-".join(normalize_spaces(kind).split(" ")) or "report"
    return f"{safe_kind}-{report_stamp(when)}.{ext.lstrip('.')}"

def fmt_date(value: Optional[datetime]) -> str:
    if value is None:
        return ""
    return value.strftime("%d/%m/%Y")
