"""
billing_core.aggregation
Group normalized bills by a pluggable key and sum per period.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Callable, Dict, Iterable, List, Optional, Tuple, Union
from .config import UNKNOWN_GROUP
from .models import Account, BillRecord
from .parsing import ZERO
from .periods import PeriodKey, format_period

GroupKey = Tuple[str, ...]
GroupKeyFn = Callable[[BillRecord], GroupKey]


@dataclass(frozen=True)
class GroupBy:
    name: str
    key: GroupKeyFn
    header: str
    label: Optional[Callable[[BillRecord], str]] = None


@dataclass
class AggregateBucket:
    key: GroupKey
    label: str
    amounts: Dict[PeriodKey, Decimal] = field(default_factory=dict)
    count: int = 0
    account: Optional[Account] = None
    records: List[BillRecord] = field(default_factory=list)

    @property
    def subtotal(self) -> Decimal:
        return sum(self.amounts.values(), ZERO)

    def add(self, record: BillRecord) -> None:
        self.amounts[record.period] = self.amounts.get(record.period, ZERO) + record.amount
        self.count += 1
        self.records.append(record)


def _part(value: Optional[str]) -> str:
    return value if value else UNKNOWN_GROUP

def account_key(r: BillRecord) -> GroupKey:
    return (_part(r.account_ref),)

def account_cost_center_key(r: BillRecord) -> GroupKey:
    return (_part(r.account_ref), _part(r.cost_center_ref))

def cost_center_key(r: BillRecord) -> GroupKey:
    return (_part(r.cost_center_ref),)

def service_key(r: BillRecord) -> GroupKey:
    return (_part(r.service_category),)

def beneficiary_key(r: BillRecord) -> GroupKey:
    return (_part(r.beneficiary_ref),)

def year_month_key(r: BillRecord) -> GroupKey:
    if r.period is None:
        return (UNKNOWN_GROUP,)
    return (str(r.period.year), format_period(r.period, "short"))

def _account_label(r: BillRecord) -> str:
    if not r.account_ref:
        return UNKNOWN_GROUP
    return r.account.display_name if r.account.account_no == r.account_ref else r.account_ref


by_account = GroupBy("account", account_key, "Account No", _account_label)
by_account_cost_center = GroupBy("account-costcenter", account_cost_center_key, "Account No / Cost Center")
by_cost_center = GroupBy("costcenter", cost_center_key, "Cost Center")
by_service = GroupBy("service", service_key, "Service")
by_beneficiary = GroupBy("beneficiary", beneficiary_key, "Beneficiary")
by_year_month = GroupBy("year-month", year_month_key, "Year / Month")

GROUP_KEYS: Dict[str, GroupBy] = {
    g.name: g for g in (by_account, by_account_cost_center, by_cost_center, by_service, by_beneficiary, by_year_month)
}


def aggregate(records: Iterable[BillRecord], group_by: Union[GroupBy, GroupKeyFn]) -> Dict[GroupKey, AggregateBucket]:
    """
    Bucket records by group key, summing amounts per period in Decimal.

    Buckets come back in first-seen order; the sums do not depend on input order.
    Records without a period are skipped (the normalizer drops them first).
    """
    if isinstance(group_by, GroupBy):
        key_fn, label_fn = group_by.key, group_by.label
    else:
        key_fn, label_fn = group_by, None

    buckets: Dict[GroupKey, AggregateBucket] = {}
    for r in records:
        if r.period is None:
            continue
        key = key_fn(r) or (UNKNOWN_GROUP,)
        bucket = buckets.get(key)
        if bucket is None:
            label = label_fn(r) if label_fn else " - ".join(key)
            bucket = buckets[key] = AggregateBucket(key=key, label=label, account=r.account)
        bucket.add(r)
    return buckets

def sort_buckets(buckets: Dict[GroupKey, AggregateBucket], sort_mode: str = "label") -> List[AggregateBucket]:
    items = list(buckets.values())
    if sort_mode == "total":
        return sorted(items, key=lambda b: (-b.subtotal, -b.count, b.label))
    if sort_mode == "label":
        return sorted(items, key=lambda b: (b.label == UNKNOWN_GROUP, b.label.upper()))
    if sort_mode == "none":
        return items
    raise ValueError(f"Unknown sort mode: {sort_mode}")
