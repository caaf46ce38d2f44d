"""
billing_core.export
Export orchestration: fetch -> normalize -> aggregate -> pivot -> render -> save.

One BillExporter.export() call is one run. Group fetches go out together
and the pipeline only starts once every one of them has answered; any
failure aborts the run without touching the output folder.
"""
from __future__ import annotations
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union
from .aggregation import GroupBy, aggregate, by_account, by_cost_center, by_service, sort_buckets
from .config import (
    ACCRUAL_THRESHOLD,
    DEFAULT_OUTPUT_DIR,
    DEFAULT_SIGNATORIES,
    MEMO_COMPANY,
    MEMO_RECIPIENT,
    MEMO_SENDER,
    PLACEHOLDER,
    TREND_WINDOW,
)
from .errors import AggregationFailure, EmptyResultSet, ExportError, FetchFailure, RenderFailure
from .excel_reports import render_workbook
from .models import BillRecord, ReportMeta, Signatory
from .normalizer import flatten_printing_summary, flatten_telco_report, flatten_year_month_summary, normalize_records
from .paths import out_path
from .pdf_reports import MemoLayout, render_memo
from .periods import PeriodKey, default_report_period, format_period, parse_period
from .pivot import PivotTable, attach_trend, build_pivot, check_totals
from .sources import BillSource
from .summaries import build_status_summary
from .trend import TrendBlock, build_trend_block
from .utils import now_local, report_filename

log = logging.getLogger(__name__)


class ExportState(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    NORMALIZING = "normalizing"
    AGGREGATING = "aggregating"
    PIVOTING = "pivoting"
    RENDERING = "rendering"
    SAVING = "saving"


@dataclass
class ExportRun:
    kind: str
    state: ExportState = ExportState.IDLE
    history: List[ExportState] = field(default_factory=list)
    fetched: int = 0
    dropped: int = 0
    records: int = 0
    output_path: Optional[Path] = None
    error: Optional[ExportError] = None
    layout: Optional[MemoLayout] = None

    def advance(self, state: ExportState) -> None:
        self.state = state
        self.history.append(state)

    @property
    def ok(self) -> bool:
        return self.output_path is not None and self.error is None


# -----------------------------
# Report kinds
# -----------------------------
def _summary_rows(label_key: str) -> Callable[[list], list]:
    def flatten(raws: list) -> list:
        if any(isinstance(r, Mapping) and "details" in r for r in raws):
            return flatten_year_month_summary(raws, label_key)
        return list(raws)
    return flatten

def _telco_rows(raws: list) -> list:
    if any(isinstance(r, Mapping) and isinstance(r.get("month"), list) for r in raws):
        return flatten_telco_report(raws)
    return list(raws)

def _printing_rows(raws: list) -> list:
    if any(isinstance(r, Mapping) and "year" in r and "details" in r for r in raws):
        return flatten_printing_summary(raws)
    return list(raws)

def _as_is(raws: list) -> list:
    return list(raws)


@dataclass(frozen=True)
class ReportKind:
    name: str
    group_by: GroupBy
    backend: str
    title: str
    flatten: Callable[[list], list] = _as_is
    sort_mode: str = "label"
    status_summary: bool = False
    trend: bool = False
    bill_table: bool = False
    sections_by: Optional[GroupBy] = None
    summary_by: Optional[GroupBy] = None
    trend_from_records: bool = False
    title_mode: str = "fixed"

    @property
    def label_header(self) -> str:
        return self.group_by.header


REPORT_KINDS: Dict[str, ReportKind] = {k.name: k for k in (
    ReportKind("utility-costcenter", by_cost_center, "xlsx", "Utility Billing Summary by Cost Center",
               flatten=_summary_rows("costcenter")),
    ReportKind("utility-service", by_service, "xlsx", "Utility Billing Summary by Service",
               flatten=_summary_rows("service")),
    ReportKind("fuel-costcenter", by_cost_center, "xlsx", "Fuel Billing Summary by Cost Center",
               flatten=_summary_rows("costcenter")),
    ReportKind("printing-account", by_account, "xlsx", "Printing Billing Summary by Account",
               flatten=_printing_rows),
    # telco summaries carry no previous_5_bills; the account's own months are its trend
    ReportKind("telco-account", by_account, "xlsx", "Telco Billing by Account",
               flatten=_telco_rows, trend=True, trend_from_records=True),
    ReportKind("telco-costcenter", by_cost_center, "xlsx", "Telco Billing by Cost Center",
               flatten=_telco_rows),
    ReportKind("maintenance-bill", by_cost_center, "xlsx", "Maintenance Billing Summary",
               sort_mode="total", status_summary=True),
    ReportKind("utility-memo", by_account, "pdf", "Utility Bills", trend=True, bill_table=True,
               title_mode="service"),
    ReportKind("utility-batch-memo", by_service, "pdf", "Utility Bills", bill_table=True,
               sections_by=by_service, title_mode="service"),
    ReportKind("telco-memo", by_account, "pdf", "Telco Bills", bill_table=True,
               summary_by=by_cost_center),
    ReportKind("maintenance-batch-memo", by_cost_center, "pdf", "Vehicle Maintenance Billing",
               bill_table=True, title_mode="beneficiary"),
    ReportKind("printing-memo", by_account, "pdf", "Printing Bills", bill_table=True,
               summary_by=by_cost_center),
)}

def get_report_kind(name: str) -> ReportKind:
    try:
        return REPORT_KINDS[name]
    except KeyError:
        raise ExportError(f"Unknown report kind: {name} (choices: {', '.join(REPORT_KINDS)})", name) from None


# -----------------------------
# Pipeline steps (sync)
# -----------------------------
def _param_period(params: Mapping[str, Any], key: str) -> Optional[PeriodKey]:
    value = params.get(key)
    return parse_period(value) if value not in (None, "") else None

def _param_window(params: Mapping[str, Any]) -> int:
    value = params.get("window")
    if value is None:
        return TREND_WINDOW
    try:
        window = int(value)
    except (TypeError, ValueError):
        raise ExportError(f"Trend window is not a number: {value!r}") from None
    if window < 0:
        raise ExportError(f"Trend window must not be negative: {window}")
    return window

def filter_period_range(records: Iterable[BillRecord], start: Optional[PeriodKey], end: Optional[PeriodKey]) -> List[BillRecord]:
    out = []
    for r in records:
        if start is not None and r.period < start:
            continue
        if end is not None and r.period > end:
            continue
        out.append(r)
    return out

def date_range_text(start: Optional[PeriodKey], end: Optional[PeriodKey]) -> str:
    if start is None and end is None:
        return ""
    a = format_period(start, "full") if start else "..."
    b = format_period(end, "full") if end else "..."
    return f"{a} to {b}"

def _shared(values: Iterable[Optional[str]]) -> Optional[str]:
    seen = {v for v in values if v and v != PLACEHOLDER}
    return seen.pop() if len(seen) == 1 else None

def default_meta(kind: ReportKind, records: Sequence[BillRecord], params: Mapping[str, Any],
                 when: datetime) -> ReportMeta:
    """Titles, parties and signatories for a run when the caller supplies none."""
    start, end = _param_period(params, "from"), _param_period(params, "to")
    period = _param_period(params, "period") or default_report_period(when.date())

    beneficiary = _shared(r.account.beneficiary.name for r in records)
    service = _shared(r.service_category for r in records)
    title = kind.title
    if kind.title_mode == "service":
        if kind.sections_by is not None:
            title = f"{service or 'Mixed Services'} Bills"
        elif service:
            title = f"{service} Bills"
    elif kind.title_mode == "beneficiary" and beneficiary:
        title = f"{kind.title} - {beneficiary}"

    signatories = [Signatory(*s) for s in DEFAULT_SIGNATORIES]
    first = records[0].account.beneficiary if records else None
    if first is not None and first.preparer_name and signatories:
        signatories[0] = Signatory(signatories[0].caption, first.preparer_name,
                                   first.preparer_title or signatories[0].title)

    if kind.bill_table:
        filing = first.filing if first is not None and first.filing else (beneficiary or "Mixed Beneficiaries")
        ref_id = records[0].bill_id if records and records[0].bill_id else "N/A"
        reference = f"{filing} ({ref_id})"
        instruction = (f"Kindly please make a payment to {beneficiary} as follows:" if beneficiary
                       else "Kindly please make a payment as follows:")
    else:
        reference, instruction = "", ""

    return ReportMeta(
        kind=kind.name,
        title=title,
        subtitle=f"By {kind.label_header}",
        reference=reference,
        date_range=date_range_text(start, end),
        report_period=period,
        generated_at=when,
        signatories=tuple(signatories),
        recipient=MEMO_RECIPIENT,
        sender=MEMO_SENDER,
        company=MEMO_COMPANY,
        instruction=instruction,
    )

def _bill_order(records: Iterable[BillRecord]) -> List[BillRecord]:
    return sorted(records, key=lambda r: (r.account.account_no, r.period, r.bill_no))

def report_trend(kind: ReportKind, records: Sequence[BillRecord], window: int = TREND_WINDOW) -> Optional[TrendBlock]:
    if not kind.trend:
        return None
    return build_trend_block(records, window, from_records=kind.trend_from_records)

def summary_table(kind: ReportKind, records: Sequence[BillRecord]) -> Optional[PivotTable]:
    """Second pivot printed under a memo's bill table (cost centre totals across the bills)."""
    if kind.summary_by is None:
        return None
    return build_pivot(aggregate(records, kind.summary_by), label_header=kind.summary_by.header)

def render_report(kind: ReportKind, table: PivotTable, records: Sequence[BillRecord], meta: ReportMeta,
                  window: int = TREND_WINDOW,
                  accrual_threshold: Decimal = ACCRUAL_THRESHOLD,
                  trend: Optional[TrendBlock] = None,
                  summary: Optional[PivotTable] = None) -> Tuple[bytes, Optional[MemoLayout]]:
    if trend is None:
        trend = report_trend(kind, records, window)
    if kind.backend == "xlsx":
        status_rows = build_status_summary(records, accrual_threshold) if kind.status_summary else None
        return render_workbook(table, meta, status_rows=status_rows, trend=trend), None
    if kind.backend == "pdf":
        sections = None
        if kind.sections_by is not None:
            buckets = sort_buckets(aggregate(records, kind.sections_by), "label")
            sections = [(b.label, _bill_order(b.records)) for b in buckets]
        bills = _bill_order(records) if kind.bill_table else None
        if summary is None:
            summary = summary_table(kind, records)
        return render_memo(table, meta, trend=trend, bills=bills, sections=sections, summary=summary)
    raise RenderFailure(f"Unknown back end: {kind.backend}", kind.name)


# -----------------------------
# Orchestrator
# -----------------------------
class BillExporter:
    def __init__(self, source: BillSource, output_dir: Union[str, Path] = DEFAULT_OUTPUT_DIR,
                 clock: Callable[[], datetime] = now_local):
        self.source = source
        self.output_dir = Path(output_dir)
        self.clock = clock

    async def _fetch_one(self, kind: str, params: Mapping[str, Any]) -> list:
        try:
            return await self.source.fetch(kind, params)
        except ExportError:
            raise
        except Exception as exc:
            raise FetchFailure(f"{kind}: {exc}", kind) from exc

    async def fetch(self, kind: str, params: Mapping[str, Any], groups: Optional[Sequence[str]] = None) -> list:
        """All group payloads, concatenated in group order; fails if any group fails."""
        if not groups:
            return list(await self._fetch_one(kind, params))
        results = await asyncio.gather(
            *(self._fetch_one(kind, {**params, "group": g}) for g in groups),
            return_exceptions=True,
        )
        raws: list = []
        for group, result in zip(groups, results):
            if isinstance(result, BaseException):
                log.error("Fetch failed for %s / %s: %s", kind, group, result)
                raise result
            raws.extend(result)
        return raws

    async def _save(self, path: Path, data: bytes) -> None:
        tmp = path.with_name(path.name + ".part")
        try:
            await asyncio.to_thread(tmp.write_bytes, data)
            await asyncio.to_thread(tmp.replace, path)
        except OSError as exc:
            tmp.unlink(missing_ok=True)
            raise RenderFailure(f"Could not save {path.name}: {exc}") from exc

    async def export(
        self,
        kind: str,
        params: Optional[Mapping[str, Any]] = None,
        groups: Optional[Sequence[str]] = None,
        meta: Optional[ReportMeta] = None,
    ) -> ExportRun:
        params = dict(params or {})
        run = ExportRun(kind=kind)
        try:
            report = get_report_kind(kind)
            window = _param_window(params)

            run.advance(ExportState.FETCHING)
            raws = await self.fetch(kind, params, groups)
            run.fetched = len(raws)

            try:
                run.advance(ExportState.NORMALIZING)
                batch = normalize_records(report.flatten(raws))
                run.dropped = batch.dropped_count
                records = filter_period_range(batch.records, _param_period(params, "from"), _param_period(params, "to"))
                if not records:
                    raise EmptyResultSet(f"{kind}: no usable records ({run.fetched} fetched, {run.dropped} dropped)", kind)
                run.records = len(records)

                run.advance(ExportState.AGGREGATING)
                buckets = aggregate(records, report.group_by)

                run.advance(ExportState.PIVOTING)
                table = build_pivot(buckets, sort_mode=report.sort_mode, label_header=report.label_header)
                check_totals(table)
                trend = report_trend(report, records, window)
                if trend is not None:
                    attach_trend(table, trend)
                summary = summary_table(report, records)
                if summary is not None:
                    check_totals(summary)
            except ExportError:
                raise
            except Exception as exc:
                raise AggregationFailure(f"{kind}: {exc}", kind) from exc

            run.advance(ExportState.RENDERING)
            when = self.clock()
            try:
                meta = meta or default_meta(report, records, params, when)
                data, run.layout = render_report(
                    report, table, records, meta,
                    window=window,
                    accrual_threshold=Decimal(str(params.get("accrual_threshold", ACCRUAL_THRESHOLD))),
                    trend=trend,
                    summary=summary,
                )
            except ExportError:
                raise
            except Exception as exc:
                raise RenderFailure(f"{kind}: {exc}", kind) from exc

            run.advance(ExportState.SAVING)
            path = out_path(report.backend, report_filename(kind, report.backend, self.clock()), self.output_dir)
            await self._save(path, data)
            run.output_path = path
            log.info("Export %s: %d records (%d dropped) -> %s", kind, run.records, run.dropped, path)
        except ExportError as exc:
            if not exc.kind:
                exc.kind = kind
            run.error = exc
            exc.run = run
            log.error("Export %s failed at %s: %s", kind, run.state.value, exc)
            raise
        finally:
            run.advance(ExportState.IDLE)
        return run
