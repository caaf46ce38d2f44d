"""
billing_core.models
Canonical in-memory records built by the normalizer.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional, Tuple
from .config import PLACEHOLDER
from .periods import PeriodKey


class BillStatus(str, Enum):
    INVOICED = "invoiced"
    NOT_INVOICED = "not-invoiced"
    OTHER = "other"


@dataclass(frozen=True)
class Beneficiary:
    name: str = PLACEHOLDER
    filing: Optional[str] = None
    preparer_name: Optional[str] = None
    preparer_title: Optional[str] = None


@dataclass(frozen=True)
class Account:
    id: Optional[str] = None
    account_no: str = PLACEHOLDER
    beneficiary: Beneficiary = field(default_factory=Beneficiary)
    cost_center: str = PLACEHOLDER
    location: str = PLACEHOLDER
    service_category: str = PLACEHOLDER
    provider: str = PLACEHOLDER
    description: str = PLACEHOLDER

    @property
    def display_name(self) -> str:
        """Account number with a "(cost centre - location)" suffix where known."""
        parts = [p for p in (self.cost_center, self.location) if p and p != PLACEHOLDER]
        if not parts:
            return self.account_no
        return f"{self.account_no} ({' - '.join(parts)})"


@dataclass(frozen=True)
class HistoryPoint:
    """One entry of a bill's previous-period array."""
    period: Optional[PeriodKey]
    period_label: str
    amount: Decimal
    trending: Optional[str] = None
    bill_no: Optional[str] = None


@dataclass(frozen=True)
class BillRecord:
    account_ref: Optional[str]
    period: Optional[PeriodKey]
    amount: Decimal
    status: BillStatus = BillStatus.NOT_INVOICED
    period_label: str = PLACEHOLDER
    cost_center_ref: Optional[str] = None
    beneficiary_ref: Optional[str] = None
    service_category: Optional[str] = None
    bill_no: str = PLACEHOLDER
    bill_id: Optional[str] = None
    bill_date: Optional[str] = None
    account: Account = field(default_factory=Account)
    history: Tuple[HistoryPoint, ...] = ()
    subtotal: Decimal = Decimal("0.00")
    tax: Decimal = Decimal("0.00")
    rounding: Decimal = Decimal("0.00")

    @property
    def year(self) -> Optional[int]:
        return self.period.year if self.period else None


@dataclass(frozen=True)
class Signatory:
    caption: str
    name: str
    title: str


@dataclass(frozen=True)
class ReportMeta:
    """Everything a renderer needs besides the numbers."""
    kind: str
    title: str
    subtitle: str = ""
    reference: str = ""
    date_range: str = ""
    report_period: Optional[PeriodKey] = None
    generated_at: Optional[datetime] = None
    signatories: Tuple[Signatory, ...] = ()
    recipient: str = ""
    sender: str = ""
    company: str = ""
    currency: str = "RM"
    instruction: str = ""
