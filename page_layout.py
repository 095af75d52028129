# page_layout.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Union

from invoice_layout import (
    CELL_PADDING,
    InvoiceSections,
    TableSection,
    TextLine,
    line_height,
    readable_on,
)

SECTION_GAP = 24.0
LOGO_GAP = 12.0
HEADER_PADDING = 14.0
TOTALS_PADDING = 8.0
FOOTER_PADDING = 10.0
WATERMARK_COLOR = "#E5E7EB"

# All coordinates are PDF points measured from the top-left corner of the page.
# TextOp.y is the text baseline.


@dataclass(frozen=True)
class TextOp:
    x: float
    y: float
    text: str
    font: str
    size: float
    color: str
    anchor: str = "start"  # start | middle | end
    angle: float = 0.0


@dataclass(frozen=True)
class RectOp:
    x: float
    y: float
    width: float
    height: float
    fill: Optional[str] = None
    stroke: Optional[str] = None
    line_width: float = 0.0


@dataclass(frozen=True)
class LineOp:
    x1: float
    y1: float
    x2: float
    y2: float
    color: str
    width: float = 0.5


@dataclass(frozen=True)
class ImageOp:
    ref: str
    x: float
    y: float
    width: float
    height: float


DrawOp = Union[TextOp, RectOp, LineOp, ImageOp]


@dataclass
class PageLayout:
    number: int
    width: float
    height: float
    ops: list[DrawOp] = field(default_factory=list)

    def texts(self) -> list[str]:
        return [op.text for op in self.ops if isinstance(op, TextOp)]


def _baseline(top: float, line: TextLine) -> float:
    return top + line.size


def _stack(lines, x: float, top: float, anchor: str) -> tuple[list[TextOp], float]:
    ops = []
    y = top
    for line in lines:
        ops.append(TextOp(x, _baseline(y, line), line.text, line.font, line.size, line.color, anchor))
        y += line.height
    return ops, y - top


class _Paginator:
    def __init__(self, sections: InvoiceSections, *, page_numbers: bool, watermark: str | None):
        self.s = sections
        self.page_numbers = page_numbers
        self.watermark = watermark
        self.pages: list[PageLayout] = []
        self.y = 0.0
        self.new_page()

    @property
    def page(self) -> PageLayout:
        return self.pages[-1]

    @property
    def bottom(self) -> float:
        return self.s.page_height - self.s.margins[1]

    def new_page(self) -> None:
        s = self.s
        page = PageLayout(number=len(self.pages) + 1, width=s.page_width, height=s.page_height)
        page.ops.append(RectOp(0, 0, s.page_width, s.page_height, fill=s.background))
        if self.watermark:
            page.ops.append(TextOp(
                s.page_width / 2, s.page_height / 2, self.watermark, s.bold_font, 72,
                WATERMARK_COLOR, anchor="middle", angle=45.0,
            ))
        self.pages.append(page)
        self.y = s.margins[0]

    def fits(self, height: float) -> bool:
        return self.y + height <= self.bottom

    def add(self, ops) -> None:
        self.page.ops.extend(ops)

    # -----------------------------
    # Header
    # -----------------------------
    def place_header(self) -> None:
        s, h = self.s, self.s.header
        left, right = s.content_left, s.content_right
        top = self.y
        logo = h.logo_height if h.logo_ref else 0.0
        ops: list = []

        if h.layout == "center":
            y = top
            if logo:
                ops.append(ImageOp(h.logo_ref, (left + right) / 2 - logo / 2, y, logo, logo))
                y += logo + 8
            mid = (left + right) / 2
            biz, bh = _stack(h.business_lines, mid, y, "middle")
            det, dh = _stack(h.detail_lines, mid, y + bh + 8, "middle")
            ops += biz + det
            content_h = (y - top) + bh + 8 + dh
        elif h.layout == "right":
            if logo:
                ops.append(ImageOp(h.logo_ref, right - logo, top, logo, logo))
            biz_x = right - logo - LOGO_GAP if logo else right
            biz, bh = _stack(h.business_lines, biz_x, top, "end")
            det, dh = _stack(h.detail_lines, left, top, "start")
            ops += biz + det
            content_h = max(logo, bh, dh)
        elif h.layout == "left":
            if logo:
                ops.append(ImageOp(h.logo_ref, left, top, logo, logo))
            biz_x = left + logo + LOGO_GAP if logo else left
            biz, bh = _stack(h.business_lines, biz_x, top, "start")
            det, dh = _stack(h.detail_lines, right, top, "end")
            ops += biz + det
            content_h = max(logo, bh, dh)
        else:  # split: identity left, logo over the invoice details on the right
            biz, bh = _stack(h.business_lines, left, top, "start")
            det_top = top
            if logo:
                ops.append(ImageOp(h.logo_ref, right - logo, top, logo, logo))
                det_top += logo + 8
            det, dh = _stack(h.detail_lines, right, det_top, "end")
            ops += biz + det
            content_h = max(bh, (det_top - top) + dh)

        bottom = top + content_h
        if h.background:
            bottom += HEADER_PADDING
            self.add([RectOp(0, 0, s.page_width, bottom, fill=h.background)])
        self.add(ops)
        if h.border_bottom:
            bottom += 6
            self.add([LineOp(left, bottom, right, bottom, s.border_color, 1.0)])
        self.y = bottom + SECTION_GAP

    def place_bill_to(self) -> None:
        ops, height = _stack(self.s.bill_to.lines, self.s.content_left, self.y, "start")
        self.add(ops)
        self.y += height + SECTION_GAP

    # -----------------------------
    # Table
    # -----------------------------
    def _table_header(self, t: TableSection) -> None:
        s = self.s
        y = self.y
        ops: list = [RectOp(s.content_left, y, s.content_width, t.header_height, fill=t.header_background)]
        for col in t.columns:
            x, anchor = _cell_x(col)
            ops.append(TextOp(x, y + CELL_PADDING + t.size, col.label, t.bold_font, t.size, t.header_text_color, anchor))
        self.add(ops)
        self.y += t.header_height

    def _close_table_segment(self, t: TableSection, segment_top: float) -> None:
        if t.border_width >= 1.0:
            s = self.s
            self.add([RectOp(s.content_left, segment_top, s.content_width, self.y - segment_top,
                             stroke=t.border_color, line_width=t.border_width)])

    def place_table(self) -> None:
        s, t = self.s, self.s.table
        if not self.fits(t.header_height + (t.rows[0].height if t.rows else 0)):
            self.new_page()
        segment_top = self.y
        self._table_header(t)

        for row in t.rows:
            if not self.fits(row.height):
                self._close_table_segment(t, segment_top)
                self.new_page()
                self.add([TextOp(s.content_left, self.y + s.small_size, "Items (cont.)",
                                 s.font, s.small_size, s.muted_color)])
                self.y += line_height(s.small_size)
                segment_top = self.y
                self._table_header(t)

            y = self.y
            ops: list = []
            if row.background:
                ops.append(RectOp(s.content_left, y, s.content_width, row.height, fill=row.background))
            for col, cell in zip(t.columns, row.cells):
                x, anchor = _cell_x(col)
                for k, text in enumerate(cell):
                    baseline = y + CELL_PADDING + t.size + k * line_height(t.size)
                    ops.append(TextOp(x, baseline, text, t.font, t.size, t.text_color, anchor))
            if t.border_width:
                ops.append(LineOp(s.content_left, y + row.height, s.content_right, y + row.height,
                                  t.border_color, t.border_width))
            self.add(ops)
            self.y += row.height

        self._close_table_segment(t, segment_top)
        self.y += SECTION_GAP

    # -----------------------------
    # Totals / footer
    # -----------------------------
    def place_totals(self) -> None:
        s, t = self.s, self.s.totals
        line_heights = [
            line_height(t.total_size) + 8 if ln.emphasized else line_height(t.size) + 4
            for ln in t.lines
        ]
        pad = TOTALS_PADDING if t.background else 0.0
        height = sum(line_heights) + 2 * pad
        if not self.fits(height):
            self.new_page()

        x0 = s.content_right - t.width if t.alignment == "right" else s.content_left
        ops: list = []
        if t.background:
            ops.append(RectOp(x0, self.y, t.width, height, fill=t.background))
        y = self.y + pad
        for ln, lh in zip(t.lines, line_heights):
            if ln.emphasized:
                color = t.text_color
                if t.highlight_color:
                    ops.append(RectOp(x0, y, t.width, lh, fill=t.highlight_color))
                    color = readable_on(t.highlight_color)
                baseline = y + 4 + t.total_size
                ops.append(TextOp(x0 + 8, baseline, ln.label, t.bold_font, t.total_size, color))
                ops.append(TextOp(x0 + t.width - 8, baseline, ln.amount, t.bold_font, t.total_size, color, "end"))
            else:
                baseline = y + 2 + t.size
                ops.append(TextOp(x0 + 8, baseline, ln.label, t.font, t.size, t.text_color))
                ops.append(TextOp(x0 + t.width - 8, baseline, ln.amount, t.font, t.size, t.text_color, "end"))
            y += lh
        self.add(ops)
        self.y += height + SECTION_GAP

    def place_footer(self) -> None:
        s, f = self.s, self.s.footer
        if f is None:
            return
        body_h = line_height(f.size)
        pad = FOOTER_PADDING if f.background else 0.0
        rule = 8.0 if f.border_top else 0.0
        height = rule + 2 * pad + sum(
            line_height(f.title_size) + len(b.lines) * body_h + 6 for b in f.blocks
        )
        if not self.fits(height):
            self.new_page()

        if f.text_align == "center":
            x, anchor = (s.content_left + s.content_right) / 2, "middle"
        elif f.text_align == "right":
            x, anchor = s.content_right, "end"
        else:
            x, anchor = s.content_left, "start"

        top = self.y
        ops: list = []
        if f.border_top:
            ops.append(LineOp(s.content_left, top, s.content_right, top, f.border_color, 1.0))
        if f.background:
            ops.append(RectOp(s.content_left, top + rule, s.content_width, height - rule, fill=f.background))
        y = top + rule + pad
        for block in f.blocks:
            ops.append(TextOp(x, y + f.title_size, block.title, f.bold_font, f.title_size, f.title_color, anchor))
            y += line_height(f.title_size)
            for text in block.lines:
                ops.append(TextOp(x, y + f.size, text, f.font, f.size, f.text_color, anchor))
                y += body_h
            y += 6
        self.add(ops)
        self.y = top + height

    def finish(self) -> list[PageLayout]:
        if self.page_numbers:
            s = self.s
            total = len(self.pages)
            for page in self.pages:
                page.ops.append(TextOp(
                    s.page_width / 2, s.page_height - s.margins[1] / 2,
                    f"Page {page.number} of {total}", s.font, s.small_size, s.muted_color, "middle",
                ))
        return self.pages


def _cell_x(col) -> tuple[float, str]:
    if col.align == "right":
        return col.x + col.width - CELL_PADDING, "end"
    if col.align == "center":
        return col.x + col.width / 2, "middle"
    return col.x + CELL_PADDING, "start"


def layout_pages(sections: InvoiceSections, *, page_numbers: bool = True, watermark: str | None = None) -> list[PageLayout]:
    """
    Place the invoice sections onto pages.

    Header and bill-to open page 1; table rows flow onto new pages with the
    column header repeated; totals and footer move to a fresh page when they
    do not fit below the table.
    """
    p = _Paginator(sections, page_numbers=page_numbers, watermark=watermark)
    p.place_header()
    p.place_bill_to()
    p.place_table()
    p.place_totals()
    p.place_footer()
    return p.finish()
