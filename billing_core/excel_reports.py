"""
billing_core.excel_reports
Excel creation (openpyxl).
"""
from __future__ import annotations
from decimal import Decimal
from io import BytesIO
from typing import Any, Dict, List, Optional, Tuple
from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter
from .config import (
    AUTOFIT_MAX_WIDTH,
    AUTOFIT_MIN_WIDTH,
    GRAND_TOTAL_LABEL,
    HEADER_FILL,
    NUMBER_FORMAT,
    PERCENT_FORMAT,
    TREND_HEADER_FILL,
)
from .models import ReportMeta
from .periods import format_period
from .pivot import PivotTable
from .summaries import STATUS_HEADERS, StatusSummaryRow, status_row_values
from .trend import TrendBlock
from .utils import fmt_money, timestamp_line

BOLD = Font(bold=True)
TITLE = Font(bold=True, size=14)
THIN = Side(style="thin")
BORDER = Border(top=THIN, left=THIN, bottom=THIN, right=THIN)
CENTER = Alignment(horizontal="center", vertical="center", wrap_text=True)


def _cell_value(v: Any) -> Any:
    if isinstance(v, Decimal):
        return float(v)
    return v

def _display_text(v: Any) -> str:
    if v is None:
        return ""
    if isinstance(v, (Decimal, float)):
        return fmt_money(v)
    return str(v)

def _style_header(ws, row: int, first_col: int, last_col: int, fill: str = HEADER_FILL) -> None:
    for c in range(first_col, last_col + 1):
        cell = ws.cell(row=row, column=c)
        cell.font = BOLD
        cell.fill = PatternFill(fill_type="solid", fgColor=fill)
        cell.alignment = CENTER

def _border_box(ws, top: int, bottom: int, first_col: int, last_col: int) -> None:
    for r in range(top, bottom + 1):
        for c in range(first_col, last_col + 1):
            ws.cell(row=r, column=c).border = BORDER

def autofit_columns(ws, min_width: int = AUTOFIT_MIN_WIDTH, max_width: int = AUTOFIT_MAX_WIDTH,
                    start_row: int = 1) -> None:
    """Width = widest rendered text (+2), clamped to [min_width, max_width]."""
    widths: Dict[int, int] = {}
    for row in ws.iter_rows(min_row=start_row):
        for cell in row:
            if cell.value is None:
                continue
            text = _display_text(cell.value)
            longest = max((len(line) for line in text.splitlines()), default=0)
            widths[cell.column] = max(widths.get(cell.column, 0), longest + 2)
    for col in range(1, ws.max_column + 1):
        width = max(min_width, widths.get(col, 0))
        ws.column_dimensions[get_column_letter(col)].width = min(width, max_width)

def _write_title_block(ws, lines: List[Tuple[str, Font]]) -> int:
    """Title/filter lines at the top of a sheet; returns the next free row."""
    r = 1
    for text, font in lines:
        if text:
            ws.cell(row=r, column=1, value=text).font = font
            r += 1
    return r + 1

def write_pivot_sheet(ws, table: PivotTable, title_lines: List[Tuple[str, Font]]) -> int:
    """
    No | <label> | <year: merged over months> ... | Total
                 | Jan | Feb | ...                 |
    Returns the row of the grand total line.
    """
    n = len(table.periods)
    first_period_col = 3
    total_col = first_period_col + n
    h1 = _write_title_block(ws, title_lines)
    h2 = h1 + 1

    ws.cell(row=h1, column=1, value="No")
    ws.cell(row=h1, column=2, value=table.label_header)
    for span in table.year_spans:
        start = first_period_col + span.start_col
        ws.cell(row=h1, column=start, value=str(span.year))
        if span.col_span > 1:
            ws.merge_cells(start_row=h1, start_column=start, end_row=h1, end_column=start + span.col_span - 1)
    for i, p in enumerate(table.periods):
        ws.cell(row=h2, column=first_period_col + i, value=format_period(p, "short"))
    ws.cell(row=h1, column=total_col, value="Total")

    ws.merge_cells(start_row=h1, start_column=1, end_row=h2, end_column=1)
    ws.merge_cells(start_row=h1, start_column=2, end_row=h2, end_column=2)
    ws.merge_cells(start_row=h1, start_column=total_col, end_row=h2, end_column=total_col)
    _style_header(ws, h1, 1, total_col)
    _style_header(ws, h2, 1, total_col)

    r = h2 + 1
    for no, row in enumerate(table.rows, start=1):
        ws.cell(row=r, column=1, value=no)
        ws.cell(row=r, column=2, value=row.label)
        for i, p in enumerate(table.periods):
            ws.cell(row=r, column=first_period_col + i, value=_cell_value(row.amount_for(p)))
        ws.cell(row=r, column=total_col, value=_cell_value(row.subtotal))
        r += 1

    gt = table.grand_total
    ws.cell(row=r, column=2, value=GRAND_TOTAL_LABEL)
    for i, p in enumerate(table.periods):
        ws.cell(row=r, column=first_period_col + i, value=_cell_value(gt.amount_for(p)))
    ws.cell(row=r, column=total_col, value=_cell_value(gt.subtotal))
    for c in range(1, total_col + 1):
        ws.cell(row=r, column=c).font = BOLD

    for rr in range(h2 + 1, r + 1):
        for c in range(first_period_col, total_col + 1):
            ws.cell(row=rr, column=c).number_format = NUMBER_FORMAT

    _border_box(ws, h1, r, 1, total_col)
    autofit_columns(ws, start_row=h1)
    ws.freeze_panes = ws.cell(row=h2 + 1, column=first_period_col)
    return r

def write_summary_sheet(ws, table: PivotTable, meta: ReportMeta,
                        status_rows: Optional[List[StatusSummaryRow]] = None) -> None:
    r = _write_title_block(ws, [
        (f"{meta.title} - Summary", TITLE),
        (meta.subtitle, BOLD),
        (f"Date Range: {meta.date_range}" if meta.date_range else "", Font()),
        (timestamp_line("Generated", meta.generated_at), Font(italic=True)),
    ])
    last_col = 4

    if status_rows:
        headers = list(STATUS_HEADERS)
        for c, h in enumerate(headers, start=1):
            ws.cell(row=r, column=c, value=h)
        _style_header(ws, r, 1, len(headers))
        top = r
        for row in status_rows:
            r += 1
            for c, v in enumerate(status_row_values(row), start=1):
                cell = ws.cell(row=r, column=c, value=_cell_value(v))
                if isinstance(v, Decimal):
                    cell.number_format = PERCENT_FORMAT if c == len(headers) else NUMBER_FORMAT
        _border_box(ws, top, r, 1, len(headers))
        last_col = max(last_col, len(headers))
        r += 2

    headers = [table.label_header, "Bills", f"Total ({meta.currency})", "Share %"]
    for c, h in enumerate(headers, start=1):
        ws.cell(row=r, column=c, value=h)
    _style_header(ws, r, 1, len(headers))
    top = r
    grand = table.grand_total.subtotal
    for row in table.rows:
        r += 1
        share = (row.subtotal * 100 / grand) if grand else Decimal("0")
        ws.cell(row=r, column=1, value=row.label)
        ws.cell(row=r, column=2, value=row.count)
        ws.cell(row=r, column=3, value=_cell_value(row.subtotal)).number_format = NUMBER_FORMAT
        ws.cell(row=r, column=4, value=round(float(share), 2)).number_format = PERCENT_FORMAT
    r += 1
    ws.cell(row=r, column=1, value=GRAND_TOTAL_LABEL)
    ws.cell(row=r, column=2, value=table.grand_total.count)
    ws.cell(row=r, column=3, value=_cell_value(grand)).number_format = NUMBER_FORMAT
    ws.cell(row=r, column=4, value=100.0 if grand else 0.0).number_format = PERCENT_FORMAT
    for c in range(1, 5):
        ws.cell(row=r, column=c).font = BOLD
    _border_box(ws, top, r, 1, 4)
    autofit_columns(ws, start_row=5)

def write_trend_sheet(ws, trend: TrendBlock, meta: ReportMeta) -> None:
    r = _write_title_block(ws, [("Previous month bill status", TITLE), (meta.subtitle, BOLD)])
    header = trend.header()
    for c, h in enumerate(header, start=1):
        ws.cell(row=r, column=c, value=h)
    _style_header(ws, r, 1, len(header), fill=TREND_HEADER_FILL)
    top = r
    for no, row in enumerate(trend.rows, start=1):
        r += 1
        ws.cell(row=r, column=1, value=no)
        ws.cell(row=r, column=2, value=row.label)
        for c, entry in enumerate(row.entries, start=3):
            ws.cell(row=r, column=c, value=entry.text).alignment = CENTER
    _border_box(ws, top, r, 1, len(header))
    autofit_columns(ws, start_row=top)

def _pivot_title_lines(meta: ReportMeta, title: str) -> List[Tuple[str, Font]]:
    return [
        (title, TITLE),
        (meta.subtitle, BOLD),
        (f"Date Range: {meta.date_range}" if meta.date_range else "", Font()),
    ]

def render_workbook(
    table: PivotTable,
    meta: ReportMeta,
    status_rows: Optional[List[StatusSummaryRow]] = None,
    trend: Optional[TrendBlock] = None,
    per_year: bool = True,
) -> bytes:
    """Summary sheet, full pivot sheet, one sheet per year, optional trend sheet."""
    wb = Workbook()
    ws = wb.active
    ws.title = "Summary"
    write_summary_sheet(ws, table, meta, status_rows)

    write_pivot_sheet(wb.create_sheet("Pivot"), table, _pivot_title_lines(meta, meta.title))

    if per_year:
        for year in table.years:
            write_pivot_sheet(
                wb.create_sheet(str(year)),
                table.for_year(year),
                _pivot_title_lines(meta, f"{meta.title}: {year}"),
            )

    if trend is not None and trend.periods:
        write_trend_sheet(wb.create_sheet("Trend"), trend, meta)

    buf = BytesIO()
    wb.save(buf)
    return buf.getvalue()
