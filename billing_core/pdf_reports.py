"""
billing_core.pdf_reports
PDF creation (reportlab).

Memo layout: heading, parties, title, payment instruction, bill table(s),
grand total, signatures block, optional trend table. The footer is drawn
on every page by the page callbacks.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from io import BytesIO
from xml.sax.saxutils import escape
from typing import List, Optional, Sequence, Tuple
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import (
    FrameBreak,
    KeepTogether,
    Paragraph,
    SimpleDocTemplate,
    Spacer,
    Table,
    TableStyle,
)
from reportlab.platypus.flowables import Flowable, HRFlowable
from .config import (
    FOOTER_RESERVE_MM,
    GRAND_TOTAL_LABEL,
    MEMO_CLOSING,
    MEMO_FOOTER,
    PAGE_MARGIN_MM,
    PLACEHOLDER,
    SIGNATURE_BLOCK_HEIGHT,
)
from .models import BillRecord, ReportMeta
from .parsing import ZERO
from .periods import format_period
from .pivot import PivotTable
from .trend import TrendBlock
from .utils import fmt_date, fmt_money, now_local

BillSection = Tuple[str, Sequence[BillRecord]]

BILL_HEADERS = ["No", "Account No", "Date", "Bill/Inv No", "Beneficiary", "Cost Center"]
BILL_COL_WIDTHS_MM = [10, 32, 22, 32, 27, 26, 25]


def needs_page_break(available_height: float, block_height: float) -> bool:
    """True when a block of `block_height` does not fit in what is left of the frame."""
    return block_height > available_height


@dataclass
class MemoLayout:
    page_count: int = 0
    signature_pages: List[int] = field(default_factory=list)
    guard_breaks: int = 0

    @property
    def signature_page(self) -> Optional[int]:
        return self.signature_pages[0] if self.signature_pages else None


class SignatureGuard(Flowable):
    """
    Zero-size flowable placed right before the signatures block. When the
    block would not fit above the bottom margin it forces a frame break so
    the whole block starts on a fresh page.
    """

    def __init__(self, block_height: float = SIGNATURE_BLOCK_HEIGHT, layout: Optional[MemoLayout] = None):
        super().__init__()
        self.block_height = block_height
        self.layout = layout
        self.width = self.height = 0

    def wrap(self, availWidth, availHeight):
        if needs_page_break(availHeight, self.block_height):
            frame = self._doctemplateAttr("frame")
            if not frame:
                return availWidth, availHeight
            frame.add_generated_content(FrameBreak)
            if self.layout is not None:
                self.layout.guard_breaks += 1
        return 0, 0

    def draw(self):
        pass


class _PageMarker(Flowable):
    """Records the page it lands on."""

    def __init__(self, pages: List[int]):
        super().__init__()
        self.pages = pages
        self.width = self.height = 0

    def wrap(self, availWidth, availHeight):
        return 0, 0

    def draw(self):
        self.pages.append(self.canv.getPageNumber())


def _styles():
    styles = getSampleStyleSheet()
    small = ParagraphStyle("Small", parent=styles["Normal"], fontSize=9, leading=11)
    return {
        "heading": ParagraphStyle("MemoHeading", parent=styles["Title"], fontSize=18, alignment=0),
        "normal": small,
        "bold": ParagraphStyle("SmallBold", parent=small, fontName="Helvetica-Bold"),
        "title": ParagraphStyle("MemoTitle", parent=small, fontName="Helvetica-Bold", fontSize=11, leading=14),
        "cell": ParagraphStyle("Cell", parent=small, fontSize=8, leading=10),
    }

def _style_grid_table(total_row: bool = True) -> TableStyle:
    st = TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), colors.lightgrey),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, -1), 8),
        ("GRID", (0, 0), (-1, -1), 0.25, colors.grey),
        ("ALIGN", (0, 0), (-1, 0), "CENTER"),
        ("ALIGN", (-1, 1), (-1, -1), "RIGHT"),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
        ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.whitesmoke, colors.white]),
    ])
    if total_row:
        st.add("FONTNAME", (0, -1), (-1, -1), "Helvetica-Bold")
        st.add("BACKGROUND", (0, -1), (-1, -1), colors.HexColor("#F0F0F0"))
    return st

def _footer(canvas, doc):
    canvas.saveState()
    canvas.setFont("Helvetica-Oblique", 7)
    width, _ = doc.pagesize
    canvas.drawString(doc.leftMargin, 10 * mm, MEMO_FOOTER)
    canvas.drawRightString(width - doc.rightMargin, 10 * mm, f"Page {doc.page}")
    canvas.restoreState()

def memo_title(meta: ReportMeta) -> str:
    if meta.report_period is not None:
        return f"{meta.title.upper()} - {format_period(meta.report_period, 'full')}"
    return meta.title.upper()

def _parties_table(meta: ReportMeta, st) -> Table:
    when = meta.generated_at or now_local()
    company = escape(meta.company)
    rows = [
        [Paragraph(f"Our Ref : {escape(meta.reference or PLACEHOLDER)}", st["normal"]), "",
         Paragraph(f"Date : {fmt_date(when)}", st["normal"])],
        [Paragraph(f"To : {escape(meta.recipient)}", st["normal"]), "Of", Paragraph(f": {company}", st["normal"])],
        [Paragraph("Copy :", st["normal"]), "Of", Paragraph(":", st["normal"])],
        [Paragraph(f"From : {escape(meta.sender)}", st["normal"]), "Of", Paragraph(f": {company}", st["normal"])],
    ]
    tbl = Table(rows, colWidths=[92 * mm, 10 * mm, 74 * mm])
    tbl.setStyle(TableStyle([
        ("FONTSIZE", (0, 0), (-1, -1), 9),
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ("LEFTPADDING", (0, 0), (-1, -1), 0),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 1),
        ("TOPPADDING", (0, 0), (-1, -1), 1),
    ]))
    return tbl

def _bill_table(bills: Sequence[BillRecord], currency: str, total_label: str, total, st) -> Table:
    head = BILL_HEADERS + [f"Total ({currency})"]
    data = [head]
    for no, b in enumerate(bills, start=1):
        data.append([
            str(no),
            b.account.account_no,
            b.bill_date or "",
            b.bill_no,
            Paragraph(escape(b.account.beneficiary.name), st["cell"]),
            Paragraph(escape(b.account.cost_center), st["cell"]),
            fmt_money(b.amount),
        ])
    data.append([total_label, "", "", "", "", "", fmt_money(total)])
    tbl = Table(data, colWidths=[w * mm for w in BILL_COL_WIDTHS_MM], repeatRows=1)
    st_ = _style_grid_table()
    st_.add("SPAN", (0, -1), (-2, -1))
    st_.add("ALIGN", (0, -1), (-2, -1), "RIGHT")
    st_.add("ALIGN", (0, 1), (3, -2), "CENTER")
    tbl.setStyle(st_)
    return tbl

def _pivot_table(table: PivotTable, currency: str, st) -> Table:
    head = ["No", table.label_header] + [format_period(p, "compact") for p in table.periods] + [f"Total ({currency})"]
    data = [head]
    for no, row in enumerate(table.rows, start=1):
        data.append(
            [str(no), Paragraph(escape(row.label), st["cell"])]
            + [fmt_money(row.amount_for(p)) for p in table.periods]
            + [fmt_money(row.subtotal)]
        )
    gt = table.grand_total
    data.append(["", GRAND_TOTAL_LABEL] + [fmt_money(gt.amount_for(p)) for p in table.periods] + [fmt_money(gt.subtotal)])
    tbl = Table(data, repeatRows=1)
    st_ = _style_grid_table()
    st_.add("ALIGN", (2, 1), (-1, -1), "RIGHT")
    tbl.setStyle(st_)
    return tbl

def _trend_table(trend: TrendBlock, st) -> Table:
    data = [trend.header()]
    for no, row in enumerate(trend.rows, start=1):
        data.append([str(no), Paragraph(escape(row.label), st["cell"])] + [e.text for e in row.entries])
    tbl = Table(data, repeatRows=1)
    st_ = _style_grid_table(total_row=False)
    st_.add("ALIGN", (2, 1), (-1, -1), "CENTER")
    tbl.setStyle(st_)
    return tbl

def _signatures(meta: ReportMeta, pages: List[int], st) -> KeepTogether:
    sigs = list(meta.signatories)
    captions = [Paragraph(s.caption, st["normal"]) for s in sigs]
    lines = ["" for _ in sigs]
    names = [Paragraph(s.name.upper(), st["bold"]) for s in sigs]
    titles = [Paragraph(s.title, st["normal"]) for s in sigs]
    dates = [Paragraph("Date:", st["normal"]) for _ in sigs]
    block = [
        _PageMarker(pages),
        Paragraph(MEMO_CLOSING, st["normal"]),
        Spacer(1, 12),
        Paragraph(escape(meta.company), st["bold"]),
        Spacer(1, 6),
    ]
    if sigs:
        tbl = Table([captions, lines, names, titles, dates], colWidths=[58 * mm] * len(sigs),
                    rowHeights=[None, 14 * mm, None, None, None])
        tbl.setStyle(TableStyle([
            ("VALIGN", (0, 0), (-1, -1), "TOP"),
            ("LEFTPADDING", (0, 0), (-1, -1), 0),
        ]))
        block.append(tbl)
    return KeepTogether(block)

def build_memo_story(
    table: PivotTable,
    meta: ReportMeta,
    layout: MemoLayout,
    trend: Optional[TrendBlock] = None,
    bills: Optional[Sequence[BillRecord]] = None,
    sections: Optional[Sequence[BillSection]] = None,
    summary: Optional[PivotTable] = None,
) -> list:
    st = _styles()
    story = [
        Paragraph("M E M O", st["heading"]),
        Spacer(1, 4),
        _parties_table(meta, st),
        HRFlowable(width="100%", thickness=0.5, color=colors.grey, spaceBefore=4, spaceAfter=8),
        Paragraph(escape(memo_title(meta)), st["title"]),
        Spacer(1, 4),
        Paragraph(escape(meta.instruction or "Kindly please make a payment as follows:"), st["normal"]),
        Spacer(1, 6),
    ]

    if sections:
        for label, section_bills in sections:
            subtotal = sum((b.amount for b in section_bills), ZERO)
            story.append(Paragraph(escape(label), st["bold"]))
            story.append(Spacer(1, 2))
            story.append(_bill_table(section_bills, meta.currency, "Service Subtotal:", subtotal, st))
            story.append(Spacer(1, 8))
        story.append(Paragraph(
            f"{GRAND_TOTAL_LABEL}: {meta.currency} {fmt_money(table.grand_total.subtotal)}", st["bold"]))
    elif bills is not None:
        story.append(_bill_table(bills, meta.currency, f"{GRAND_TOTAL_LABEL}:", table.grand_total.subtotal, st))
    else:
        story.append(_pivot_table(table, meta.currency, st))
    if summary is not None and not summary.is_empty:
        story.append(Spacer(1, 8))
        story.append(Paragraph(f"{escape(summary.label_header)} Summary Across Bills", st["bold"]))
        story.append(Spacer(1, 4))
        story.append(_pivot_table(summary, meta.currency, st))
    story.append(Spacer(1, 12))

    story.append(SignatureGuard(SIGNATURE_BLOCK_HEIGHT, layout))
    story.append(_signatures(meta, layout.signature_pages, st))

    if trend is not None and trend.periods:
        story.append(Spacer(1, 14))
        story.append(Paragraph("Previous month bill status", st["bold"]))
        story.append(Spacer(1, 4))
        story.append(_trend_table(trend, st))
    return story

def render_memo(
    table: PivotTable,
    meta: ReportMeta,
    trend: Optional[TrendBlock] = None,
    bills: Optional[Sequence[BillRecord]] = None,
    sections: Optional[Sequence[BillSection]] = None,
    summary: Optional[PivotTable] = None,
) -> Tuple[bytes, MemoLayout]:
    """A4 memo; returns the PDF bytes and where things landed."""
    buf = BytesIO()
    margin = PAGE_MARGIN_MM * mm
    doc = SimpleDocTemplate(
        buf,
        pagesize=A4,
        leftMargin=margin,
        rightMargin=margin,
        topMargin=margin,
        bottomMargin=FOOTER_RESERVE_MM * mm,
        title=memo_title(meta),
    )
    layout = MemoLayout()
    story = build_memo_story(table, meta, layout, trend=trend, bills=bills, sections=sections, summary=summary)
    doc.build(story, onFirstPage=_footer, onLaterPages=_footer)
    layout.page_count = doc.page
    return buf.getvalue(), layout
