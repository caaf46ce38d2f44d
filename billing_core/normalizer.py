"""
billing_core.normalizer
Maps loosely-typed API payloads onto BillRecord/Account.

Every report endpoint names things a little differently (bill.account_no vs
bill.account.account_no, ubill_gtotal vs inv_total, ...). All of that is
resolved here; nothing past this module looks at raw payload keys.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple
from .config import INVOICED_FLAGS, NOT_INVOICED_FLAGS, PLACEHOLDER
from .errors import UnparseablePeriod
from .models import Account, Beneficiary, BillRecord, BillStatus, HistoryPoint
from .parsing import parse_amount, pick, pick_text
from .periods import parse_period

log = logging.getLogger(__name__)

AMOUNT_KEYS = ("amount", "ubill_gtotal", "inv_total", "total_amount", "expenses")
PERIOD_KEYS = ("period", "month", "bill_date", "ubill_date", "inv_date", "svc_date", "date")
STATUS_KEYS = ("status", "inv_stat", "ubill_stat")


@dataclass
class NormalizedBatch:
    records: List[BillRecord] = field(default_factory=list)
    dropped: List[str] = field(default_factory=list)

    @property
    def dropped_count(self) -> int:
        return len(self.dropped)


def parse_status(value) -> BillStatus:
    s = "" if value is None else " ".join(str(value).split()).lower()
    if s in INVOICED_FLAGS:
        return BillStatus.INVOICED
    if s in NOT_INVOICED_FLAGS:
        return BillStatus.NOT_INVOICED
    return BillStatus.OTHER

def _unwrap(raw: Any, key: str) -> Any:
    # some endpoints return {"beneficiary": {"beneficiary": {...}}}
    while isinstance(raw, Mapping) and isinstance(raw.get(key), Mapping):
        raw = raw[key]
    return raw

def normalize_beneficiary(raw: Any) -> Beneficiary:
    raw = _unwrap(raw, "beneficiary")
    if isinstance(raw, str):
        return Beneficiary(name=" ".join(raw.split()) or PLACEHOLDER)
    if not isinstance(raw, Mapping):
        return Beneficiary()
    return Beneficiary(
        name=pick_text(raw, "name", "full_name", default=PLACEHOLDER),
        filing=pick_text(raw, "filing", "file_reference"),
        preparer_name=pick_text(raw, "entry_by.full_name", "entry_by.name", "prepared_by"),
        preparer_title=pick_text(raw, "entry_position", "entry_by.position"),
    )

def normalize_account(raw: Any, bill_row: bool = False) -> Account:
    """Account from an account payload, or from a bill row carrying account fields."""
    if isinstance(raw, (str, int)):
        return Account(account_no=str(raw).strip() or PLACEHOLDER)
    if not isinstance(raw, Mapping):
        return Account()
    # on a bill row the top-level "id" is the bill's, not the account's
    id_keys = ("account.id", "account_id", "acc_id") if bill_row else ("account.id", "account_id", "acc_id", "id")
    return Account(
        id=pick_text(raw, *id_keys),
        account_no=pick_text(
            raw, "account.account_no", "account.account", "account_no", "account_master", "account",
            default=PLACEHOLDER,
        ),
        beneficiary=normalize_beneficiary(pick(raw, "account.beneficiary", "beneficiary")),
        cost_center=pick_text(
            raw, "account.costcenter.name", "costcenter.name", "cost_center.name",
            "account.costcenter", "costcenter", "cost_center",
            default=PLACEHOLDER,
        ),
        location=pick_text(raw, "account.location.name", "location.name", "account.location", "location",
                           default=PLACEHOLDER),
        service_category=pick_text(raw, "account.service", "service", "service_category", "category",
                                   default=PLACEHOLDER),
        provider=pick_text(raw, "account.provider", "provider", default=PLACEHOLDER),
        description=pick_text(raw, "account.description", "description", default=PLACEHOLDER),
    )

def normalize_history(items: Any) -> Tuple[HistoryPoint, ...]:
    if not isinstance(items, (list, tuple)):
        return ()
    out: List[HistoryPoint] = []
    for it in items:
        if not isinstance(it, Mapping):
            continue
        label = pick(it, "month", "period", "bill_date", "ubill_date")
        trending = pick(it, "trending", "trend", "delta")
        out.append(HistoryPoint(
            period=parse_period(label),
            period_label=PLACEHOLDER if label is None else str(label),
            amount=parse_amount(pick(it, *AMOUNT_KEYS)),
            trending=None if trending is None else str(trending).strip(),
            bill_no=pick_text(it, "ubill_no", "bill_no", "inv_no"),
        ))
    return tuple(out)

def _ref(value: str) -> Optional[str]:
    return None if not value or value == PLACEHOLDER else value

def normalize_bill(raw: Any) -> BillRecord:
    """Total mapping from any plausible bill shape to a BillRecord. Never raises."""
    if not isinstance(raw, Mapping):
        raw = {}
    account = normalize_account(raw, bill_row=True)
    period_raw = pick(raw, *PERIOD_KEYS)
    period = parse_period(period_raw)
    return BillRecord(
        account_ref=_ref(account.account_no) or account.id,
        period=period,
        period_label=PLACEHOLDER if period_raw is None else str(period_raw),
        amount=parse_amount(pick(raw, *AMOUNT_KEYS)),
        status=parse_status(pick(raw, *STATUS_KEYS)),
        cost_center_ref=_ref(account.cost_center),
        beneficiary_ref=_ref(account.beneficiary.name),
        service_category=_ref(account.service_category),
        bill_no=pick_text(raw, "ubill_no", "bill_no", "inv_no", default=PLACEHOLDER),
        bill_id=pick_text(raw, "util_id", "inv_id", "bill_id", "id"),
        bill_date=pick_text(raw, "ubill_date", "bill_date", "inv_date", "svc_date"),
        account=account,
        history=normalize_history(pick(raw, "previous_5_bills", "history")),
        subtotal=parse_amount(pick(raw, "subtotal", "ubill_stotal")),
        tax=parse_amount(pick(raw, "tax", "ubill_tax")),
        rounding=parse_amount(pick(raw, "rounding", "ubill_round")),
    )

def _require_period(record: BillRecord) -> BillRecord:
    if record.period is None:
        raise UnparseablePeriod(record.period_label)
    return record

def normalize_records(raws: Iterable[Any]) -> NormalizedBatch:
    """Normalize a fetched payload; records without a usable period are dropped and logged."""
    batch = NormalizedBatch()
    for raw in raws or ():
        record = normalize_bill(raw)
        try:
            batch.records.append(_require_period(record))
        except UnparseablePeriod as exc:
            batch.dropped.append(record.period_label)
            log.warning("Dropped record %s (%s): %s", record.bill_id or "-", record.account_ref or "-", exc)
    if batch.dropped:
        log.info("Normalized %d records, dropped %d", len(batch.records), batch.dropped_count)
    return batch


# -----------------------------
# Nested summary payloads -> flat bill rows
# -----------------------------
def flatten_year_month_summary(items: Any, label_key: str) -> List[Dict[str, Any]]:
    """
    [{label_key: "CC1", "details": [{"year": 2025, "months": [{"month": 1, "expenses": "10"}]}]}]
    -> [{label_key: "CC1", "period": "2025-01", "amount": "10"}]
    """
    out: List[Dict[str, Any]] = []
    for item in items or ():
        if not isinstance(item, Mapping):
            continue
        label = item.get(label_key)
        for detail in item.get("details") or ():
            if not isinstance(detail, Mapping):
                continue
            year = detail.get("year")
            for m in detail.get("months") or ():
                if not isinstance(m, Mapping):
                    continue
                month = m.get("month")
                period = f"{year}-{int(month):02d}" if str(month).isdigit() else f"{month}-{year}"
                out.append({label_key: label, "period": period, "amount": m.get("expenses")})
    return out

def flatten_telco_report(data: Any) -> List[Dict[str, Any]]:
    """
    [{"year": 2025, "month": [{"name": "Jan'25", "costcenters": [...], "accounts": [...]}]}]
    -> one flat row per cost centre or account per month.
    """
    out: List[Dict[str, Any]] = []
    for year_obj in data or ():
        if not isinstance(year_obj, Mapping):
            continue
        year = year_obj.get("year")
        for month_obj in year_obj.get("month") or ():
            if not isinstance(month_obj, Mapping):
                continue
            name = month_obj.get("name")
            period = name if parse_period(name) else f"{name}-{year}"
            for cc in month_obj.get("costcenters") or ():
                if isinstance(cc, Mapping):
                    out.append({"costcenter": cc.get("name"), "period": period, "amount": cc.get("amount")})
            for acc in month_obj.get("accounts") or ():
                if not isinstance(acc, Mapping):
                    continue
                out.append({
                    "account_no": acc.get("account_no"),
                    "provider": acc.get("provider"),
                    "description": acc.get("description"),
                    "period": period,
                    "amount": acc.get("amount"),
                })
    return out

def flatten_printing_summary(data: Any) -> List[Dict[str, Any]]:
    """
    [{"year": 2025, "details": [{"bill_id": 7, "account": "P-1",
      "monthly_expenses": [{"month": "January", "ubill_gtotal": "12.00", ...}]}]}]
    -> one flat row per account per month.
    """
    out: List[Dict[str, Any]] = []
    for year_obj in data or ():
        if not isinstance(year_obj, Mapping):
            continue
        year = year_obj.get("year")
        for detail in year_obj.get("details") or ():
            if not isinstance(detail, Mapping):
                continue
            for m in detail.get("monthly_expenses") or ():
                if not isinstance(m, Mapping):
                    continue
                out.append({
                    "account_no": detail.get("account"),
                    "bill_id": m.get("util_id") or detail.get("bill_id"),
                    "period": f"{m.get('month')}-{year}",
                    "bill_date": m.get("ubill_date"),
                    "amount": m.get("ubill_gtotal"),
                })
    return out
