# invoice_layout.py
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from reportlab.pdfbase.pdfmetrics import stringWidth

from branding import normalize_hex
from invoice_document import InvoiceDocument
from money import format_currency
from template_config import BORDER_WIDTHS, LOGO_HEIGHTS, TemplateConfig

# Status colors are the same on every template; draft uses the template's muted text color
STATUS_COLORS = {
    "paid": "#059669",
    "sent": "#2563EB",
    "overdue": "#DC2626",
    "cancelled": "#6B7280",
}

LINE_SPACING = 1.4
CELL_PADDING = 6.0

# Column fractions of the content width
_COLUMNS = [
    ("description", "Description", "left", 0.52),
    ("quantity", "Qty", "right", 0.10),
    ("unit_price", "Unit Price", "right", 0.19),
    ("amount", "Amount", "right", 0.19),
]
_ROW_NUMBER_FRACTION = 0.06


def status_color(status: str | None, config: TemplateConfig) -> str:
    return STATUS_COLORS.get((status or "").lower(), normalize_hex(config.colors.text_secondary))


def line_height(size: float) -> float:
    return size * LINE_SPACING


def resolve_font(family: str | None, bold: bool = False) -> str:
    """Map a template/branding font family onto one of the standard PDF fonts."""
    fam = (family or "Helvetica").strip().lower()
    is_bold = bold or fam.endswith("-bold") or fam.endswith(" bold")
    if fam.startswith("times"):
        return "Times-Bold" if is_bold else "Times-Roman"
    if fam.startswith("courier"):
        return "Courier-Bold" if is_bold else "Courier"
    return "Helvetica-Bold" if is_bold else "Helvetica"


def readable_on(background: str | None, dark: str = "#111827", light: str = "#FFFFFF") -> str:
    """Text color that stays legible on `background`."""
    bg = normalize_hex(background)
    if not bg or len(bg) != 7:
        return dark
    r, g, b = (int(bg[i:i + 2], 16) for i in (1, 3, 5))
    luminance = (0.299 * r + 0.587 * g + 0.114 * b) / 255
    return dark if luminance > 0.6 else light


def wrap_text(text, font: str, size: float, max_width: float) -> list[str]:
    """Greedy word wrap; tokens wider than the line are split."""
    lines: list[str] = []
    for paragraph in str(text or "").splitlines() or [""]:
        words = paragraph.split()
        current = ""
        for word in words:
            for piece in _split_long_token(word, font, size, max_width):
                test = current + (" " if current else "") + piece
                if stringWidth(test, font, size) <= max_width or not current:
                    current = test
                else:
                    lines.append(current)
                    current = piece
        lines.append(current)
    return lines or [""]


def _split_long_token(token: str, font: str, size: float, max_width: float) -> list[str]:
    if max_width <= 0 or stringWidth(token, font, size) <= max_width:
        return [token]
    chunks = []
    remaining = token
    while remaining:
        lo, hi = 1, len(remaining)
        fit = 1
        while lo <= hi:
            mid = (lo + hi) // 2
            if stringWidth(remaining[:mid], font, size) <= max_width:
                fit = mid
                lo = mid + 1
            else:
                hi = mid - 1
        chunks.append(remaining[:fit])
        remaining = remaining[fit:]
    return chunks


# -----------------------------
# Validation
# -----------------------------
def validate_document(document: InvoiceDocument) -> list[str]:
    """Every problem that blocks rendering, in reading order. Empty list means renderable."""
    errors: list[str] = []

    if not (document.business.name or "").strip():
        errors.append("Business name is required")
    if not (document.client.name or "").strip():
        errors.append("Client name is required")
    if not (document.meta.number or "").strip():
        errors.append("Invoice number is required")
    if not (document.meta.issued_date or "").strip():
        errors.append("Invoice issue date is required")
    if not (document.meta.currency or "").strip():
        errors.append("Currency is required")

    if not document.items:
        errors.append("At least one invoice item is required")
    for n, item in enumerate(document.items, start=1):
        if not (item.description or "").strip():
            errors.append(f"Item {n}: Description is required")
        if item.quantity is None or item.quantity <= 0:
            errors.append(f"Item {n}: Quantity must be greater than 0")
        if item.unit_price is None or item.unit_price < 0:
            errors.append(f"Item {n}: Unit price must be 0 or greater")

    if document.totals.grand_total is None:
        errors.append("Invoice total is required")
    rate = document.totals.tax_rate
    if rate is not None and (rate < 0 or rate > 100):
        errors.append("Tax rate must be between 0% and 100%")

    return errors


def document_warnings(document: InvoiceDocument) -> list[str]:
    """Problems worth mentioning that don't block rendering."""
    warnings: list[str] = []

    if not (document.business.email or "").strip():
        warnings.append("Business email is recommended for professional invoices")
    if not (document.client.email or "").strip() and not (document.client.address or "").strip():
        warnings.append("Client email or address is recommended")

    for n, item in enumerate(document.items, start=1):
        if item.quantity and item.unit_price is not None and item.total is not None:
            if abs(item.total - item.quantity * item.unit_price) > Decimal("0.01"):
                warnings.append(f"Item {n}: Total may not match quantity × unit price")

    grand = document.totals.grand_total
    if grand is not None and grand <= 0:
        warnings.append("Invoice total is zero or negative")

    return warnings


# -----------------------------
# Sections
# -----------------------------
@dataclass(frozen=True)
class TextLine:
    text: str
    font: str
    size: float
    color: str

    @property
    def height(self) -> float:
        return line_height(self.size)


@dataclass(frozen=True)
class HeaderSection:
    layout: str
    business_lines: tuple[TextLine, ...]
    detail_lines: tuple[TextLine, ...]
    logo_ref: Optional[str]
    logo_height: float
    background: Optional[str]
    border_bottom: bool


@dataclass(frozen=True)
class BillToSection:
    lines: tuple[TextLine, ...]


@dataclass(frozen=True)
class TableColumn:
    key: str
    label: str
    align: str
    x: float
    width: float


@dataclass(frozen=True)
class TableRow:
    cells: tuple[tuple[str, ...], ...]
    background: Optional[str]
    height: float


@dataclass(frozen=True)
class TableSection:
    columns: tuple[TableColumn, ...]
    rows: tuple[TableRow, ...]
    header_background: str
    header_text_color: str
    header_height: float
    border_width: float
    border_color: str
    font: str
    bold_font: str
    size: float
    text_color: str


@dataclass(frozen=True)
class TotalLine:
    label: str
    amount: str
    emphasized: bool = False


@dataclass(frozen=True)
class TotalsSection:
    lines: tuple[TotalLine, ...]
    alignment: str
    width: float
    background: Optional[str]
    highlight_color: Optional[str]
    text_color: str
    font: str
    bold_font: str
    size: float
    total_size: float


@dataclass(frozen=True)
class FooterBlock:
    title: str
    lines: tuple[str, ...]


@dataclass(frozen=True)
class FooterSection:
    blocks: tuple[FooterBlock, ...]
    text_align: str
    background: Optional[str]
    border_top: bool
    border_color: str
    title_color: str
    text_color: str
    font: str
    bold_font: str
    size: float
    title_size: float


@dataclass(frozen=True)
class InvoiceSections:
    """Everything both renderers draw, already measured and formatted."""

    page_width: float
    page_height: float
    margins: tuple[float, float, float, float]
    background: str
    border_color: str
    muted_color: str
    font: str
    bold_font: str
    small_size: float
    header: HeaderSection
    bill_to: BillToSection
    table: TableSection
    totals: TotalsSection
    footer: Optional[FooterSection]

    @property
    def content_left(self) -> float:
        return self.margins[2]

    @property
    def content_right(self) -> float:
        return self.page_width - self.margins[3]

    @property
    def content_width(self) -> float:
        return self.content_right - self.content_left


def _tax_label(rate: Decimal) -> str:
    return f"Tax ({float(rate):g}%)"


def _header_section(doc: InvoiceDocument, config: TemplateConfig, logo_ref: str | None) -> HeaderSection:
    colors, sizes = config.colors, config.fonts.sizes
    header = config.styles.header
    regular = resolve_font(config.fonts.primary)
    bold = resolve_font(config.fonts.secondary, bold=True)

    background = normalize_hex(header.background_color)
    if background:
        strong = readable_on(background)
        muted = strong
        accent = strong
    else:
        strong = normalize_hex(colors.text_primary)
        muted = normalize_hex(colors.text_secondary)
        accent = normalize_hex(colors.primary)

    business = [TextLine(doc.business.name, bold, sizes.heading, strong)]
    if header.show_business_info:
        b = doc.business
        extra = [b.email, b.phone, *((b.address or "").splitlines()), b.website]
        if b.tax_number:
            extra.append(f"Tax ID: {b.tax_number}")
        business.extend(TextLine(t.strip(), regular, sizes.small, muted) for t in extra if t and t.strip())

    details = [TextLine("INVOICE", bold, sizes.title, accent)]
    if header.show_invoice_details:
        m = doc.meta
        details.append(TextLine(f"Invoice #: {m.number}", regular, sizes.body, strong))
        details.append(TextLine(f"Issue Date: {m.issued_date}", regular, sizes.body, muted))
        if m.due_date:
            details.append(TextLine(f"Due Date: {m.due_date}", regular, sizes.body, muted))
        if m.account_no:
            details.append(TextLine(f"Account: {m.account_no}", regular, sizes.body, muted))
        details.append(TextLine(m.status.upper(), bold, sizes.small, status_color(m.status, config)))

    return HeaderSection(
        layout=header.layout,
        business_lines=tuple(business),
        detail_lines=tuple(details),
        logo_ref=logo_ref,
        logo_height=LOGO_HEIGHTS.get(header.logo_size, LOGO_HEIGHTS["medium"]),
        background=background,
        border_bottom=header.border_bottom,
    )


def _bill_to_section(doc: InvoiceDocument, config: TemplateConfig) -> BillToSection:
    colors, sizes = config.colors, config.fonts.sizes
    regular = resolve_font(config.fonts.primary)
    bold = resolve_font(config.fonts.secondary, bold=True)
    muted = normalize_hex(colors.text_secondary)

    lines = [
        TextLine("BILL TO", bold, sizes.small, muted),
        TextLine(doc.client.name, bold, sizes.body, normalize_hex(colors.text_primary)),
    ]
    c = doc.client
    for t in [c.email, c.phone, *((c.address or "").splitlines())]:
        if t and t.strip():
            lines.append(TextLine(t.strip(), regular, sizes.body, muted))
    return BillToSection(lines=tuple(lines))


def _table_section(doc: InvoiceDocument, config: TemplateConfig, left: float, width: float, locale: str) -> TableSection:
    table = config.styles.table
    body = config.fonts.sizes.body
    regular = resolve_font(config.fonts.primary)
    bold = resolve_font(config.fonts.secondary, bold=True)

    specs = list(_COLUMNS)
    if table.show_row_numbers:
        key, label, align, frac = specs[0]
        specs[0] = (key, label, align, frac - _ROW_NUMBER_FRACTION)
        specs.insert(0, ("row_number", "#", "left", _ROW_NUMBER_FRACTION))

    columns = []
    x = left
    for key, label, align, frac in specs:
        w = width * frac
        columns.append(TableColumn(key, label, align, x, w))
        x += w

    desc_col = next(c for c in columns if c.key == "description")
    currency = doc.meta.currency
    alt = normalize_hex(table.row_alternate_background)
    rows = []
    for i, item in enumerate(doc.items):
        desc = tuple(wrap_text(item.description, regular, body, desc_col.width - 2 * CELL_PADDING))
        values = {
            "row_number": (str(i + 1),),
            "description": desc,
            "quantity": (str(item.quantity),),
            "unit_price": (format_currency(item.unit_price, currency, locale),),
            "amount": (format_currency(item.total, currency, locale),),
        }
        background = alt if (alt and i % 2 == 1) else None
        height = len(desc) * line_height(body) + 2 * CELL_PADDING
        rows.append(TableRow(tuple(values[c.key] for c in columns), background, height))

    return TableSection(
        columns=tuple(columns),
        rows=tuple(rows),
        header_background=normalize_hex(table.header_background),
        header_text_color=normalize_hex(table.header_text_color),
        header_height=line_height(body) + 2 * CELL_PADDING,
        border_width=BORDER_WIDTHS.get(table.border_style, 0.0),
        border_color=normalize_hex(config.colors.border),
        font=regular,
        bold_font=bold,
        size=body,
        text_color=normalize_hex(config.colors.text_primary),
    )


def _totals_section(doc: InvoiceDocument, config: TemplateConfig, content_width: float, locale: str) -> TotalsSection:
    style = config.styles.totals
    sizes = config.fonts.sizes
    t = doc.totals
    currency = doc.meta.currency

    lines = []
    if style.show_subtotal_breakdown:
        lines.append(TotalLine("Subtotal", format_currency(t.subtotal, currency, locale)))
    if t.discount_amount:
        lines.append(TotalLine("Discount", format_currency(-t.discount_amount, currency, locale)))
    if t.tax_rate and t.tax_rate > 0:
        lines.append(TotalLine(_tax_label(t.tax_rate), format_currency(t.tax_amount, currency, locale)))
    lines.append(TotalLine("Total", format_currency(t.grand_total or 0, currency, locale), emphasized=True))

    background = normalize_hex(style.background_color)
    text_color = readable_on(background) if background else normalize_hex(config.colors.text_primary)
    return TotalsSection(
        lines=tuple(lines),
        alignment=style.alignment,
        width=content_width * 0.45,
        background=background,
        highlight_color=normalize_hex(config.colors.primary) if style.highlight_total else None,
        text_color=text_color,
        font=resolve_font(config.fonts.primary),
        bold_font=resolve_font(config.fonts.secondary, bold=True),
        size=sizes.body,
        total_size=sizes.heading if style.highlight_total else sizes.body,
    )


def _footer_section(doc: InvoiceDocument, config: TemplateConfig, content_width: float) -> Optional[FooterSection]:
    style = config.styles.footer
    if not (style.show_terms or style.show_payment_instructions or style.show_notes):
        return None

    sizes = config.fonts.sizes
    regular = resolve_font(config.fonts.primary)
    bold = resolve_font(config.fonts.secondary, bold=True)

    candidates = []
    if style.show_terms:
        candidates.append(("Terms", doc.terms))
    if style.show_payment_instructions:
        candidates.append(("Payment Instructions", doc.payment_instructions))
    if style.show_notes:
        candidates.append(("Notes", doc.meta.notes))

    blocks = tuple(
        FooterBlock(title, tuple(wrap_text(text, regular, sizes.small, content_width)))
        for title, text in candidates
        if text and text.strip()
    )
    if not blocks:
        return None

    return FooterSection(
        blocks=blocks,
        text_align=style.text_align,
        background=normalize_hex(style.background_color),
        border_top=style.border_top,
        border_color=normalize_hex(config.colors.border),
        title_color=normalize_hex(config.colors.text_secondary),
        text_color=normalize_hex(config.colors.text_primary),
        font=regular,
        bold_font=bold,
        size=sizes.small,
        title_size=sizes.small,
    )


def build_sections(document: InvoiceDocument, config: TemplateConfig, *, fallback_logo: str | None = None, locale: str = "en-US") -> InvoiceSections:
    """
    Measure and format every block of the invoice for `config`.
    `fallback_logo` (the branding logo) is used when the business has none.
    """
    page_w, page_h = config.page_size()
    m = config.layout.margins
    margins = (float(m.top), float(m.bottom), float(m.left), float(m.right))
    left = margins[2]
    width = page_w - margins[2] - margins[3]

    return InvoiceSections(
        page_width=page_w,
        page_height=page_h,
        margins=margins,
        background=normalize_hex(config.colors.background) or "#FFFFFF",
        border_color=normalize_hex(config.colors.border),
        muted_color=normalize_hex(config.colors.text_secondary),
        font=resolve_font(config.fonts.primary),
        bold_font=resolve_font(config.fonts.secondary, bold=True),
        small_size=config.fonts.sizes.small,
        header=_header_section(document, config, document.business.logo_url or fallback_logo),
        bill_to=_bill_to_section(document, config),
        table=_table_section(document, config, left, width, locale),
        totals=_totals_section(document, config, width, locale),
        footer=_footer_section(document, config, width),
    )
