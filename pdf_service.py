# pdf_service.py
import asyncio
import base64
import io
import logging
import re
from datetime import date
from pathlib import Path
from typing import Callable, Optional
from urllib.parse import urlparse

from reportlab.pdfgen import canvas
from reportlab.lib import colors
from reportlab.lib.utils import ImageReader

from branding import Branding, branding_from_profile
from config import Config
from invoice_document import InvoiceDocument, build_document
from invoice_templates import TemplateRegistry
from models import Client, Invoice, User
from page_layout import ImageOp, LineOp, PageLayout, RectOp, TextOp
from rendering import (
    RenderFailure,
    RenderOptions,
    RenderPlan,
    RenderResult,
    RenderSuccess,
    plan_render,
)

_LOGGER = logging.getLogger(__name__)

PDF_MIME_TYPE = "application/pdf"
PDF_CREATOR = "Invoice Generator"
MAX_FILENAME_LENGTH = 100

LogoLoader = Callable[[str], ImageReader]


class LogoUnavailable(Exception):
    pass


# -----------------------------
# Filenames / storage
# -----------------------------
_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9]")


def pdf_filename(number: str, client_name: str, on_date: date | None = None) -> str:
    """
    invoice-<number>-<client>-<YYYY-MM-DD>.pdf with every non-alphanumeric
    character replaced by "-". Names over the limit lose client characters
    first, then number characters.
    """
    stamp = (on_date or date.today()).isoformat()
    num = _UNSAFE_CHARS.sub("-", number or "")
    client = _UNSAFE_CHARS.sub("-", client_name or "")

    def _name() -> str:
        return f"invoice-{num}-{client}-{stamp}.pdf"

    overflow = len(_name()) - MAX_FILENAME_LENGTH
    if overflow > 0:
        client = client[:max(0, len(client) - overflow)]
        overflow = len(_name()) - MAX_FILENAME_LENGTH
    if overflow > 0:
        num = num[:max(0, len(num) - overflow)]
    return _name()


_DATED_PDF = re.compile(r"\d{4}-\d{2}-\d{2}\.pdf")


def find_export(directory: str | Path, number: str, client_name: str) -> Optional[Path]:
    """An earlier export of this invoice in `directory`, whatever day it was written."""
    out_dir = Path(directory)
    if not out_dir.is_dir():
        return None
    sample = pdf_filename(number, client_name, date(2000, 1, 1))
    prefix = sample[:-len("2000-01-01.pdf")]
    for path in sorted(out_dir.glob("invoice-*.pdf")):
        name = path.name
        if name.startswith(prefix) and _DATED_PDF.fullmatch(name[len(prefix):]):
            return path
    return None


def write_pdf(result: RenderSuccess, directory: str | Path) -> Path:
    out_dir = Path(directory)
    out_dir.mkdir(parents=True, exist_ok=True)
    path = out_dir / (result.filename or "invoice.pdf")
    path.write_bytes(result.content)
    return path


# -----------------------------
# Logos
# -----------------------------
def _reader_from_data_uri(ref: str) -> ImageReader:
    header, _, payload = ref.partition(",")
    if ";base64" not in header or not payload:
        raise LogoUnavailable("Only base64 data URIs are supported")
    return ImageReader(io.BytesIO(base64.b64decode(payload)))


def load_logo(ref: str) -> ImageReader:
    """Local logos only: base64 data URIs and existing files. Nothing is fetched over the network."""
    if ref.startswith("data:"):
        return _reader_from_data_uri(ref)
    path = Path(ref)
    if not path.is_file():
        raise LogoUnavailable(f"Logo not found: {ref}")
    return ImageReader(str(path))


def logo_loader_for(uploads_dir: str | Path, base_url: str | None = None) -> LogoLoader:
    """
    Loader that maps stored logo URLs (".../uploads/<file>") onto files in `uploads_dir`.
    URLs on other hosts are treated as unavailable.
    """
    root = Path(uploads_dir)
    own_host = urlparse(base_url).netloc if base_url else None

    def _load(ref: str) -> ImageReader:
        if ref.startswith("data:"):
            return _reader_from_data_uri(ref)
        parsed = urlparse(ref)
        if parsed.scheme in ("http", "https") and parsed.netloc != own_host:
            raise LogoUnavailable(f"Remote logo not available offline: {ref}")
        rel = parsed.path if parsed.scheme else ref
        rel = rel.split("/uploads/", 1)[-1].lstrip("/")
        path = (root / rel).resolve()
        if root.resolve() not in path.parents or not path.is_file():
            raise LogoUnavailable(f"Logo not found: {ref}")
        return ImageReader(str(path))

    return _load


# -----------------------------
# Drawing
# -----------------------------
def _draw_text(pdf, op: TextOp, page_h: float) -> None:
    pdf.setFont(op.font, op.size)
    pdf.setFillColor(colors.HexColor(op.color))
    y = page_h - op.y
    if op.angle:
        pdf.saveState()
        pdf.translate(op.x, y)
        pdf.rotate(op.angle)
        pdf.drawCentredString(0, 0, op.text)
        pdf.restoreState()
    elif op.anchor == "end":
        pdf.drawRightString(op.x, y, op.text)
    elif op.anchor == "middle":
        pdf.drawCentredString(op.x, y, op.text)
    else:
        pdf.drawString(op.x, y, op.text)


def _draw_page(pdf, page: PageLayout, draw_logo: Callable[[ImageOp, float], None]) -> None:
    h = page.height
    for op in page.ops:
        if isinstance(op, RectOp):
            if op.fill:
                pdf.setFillColor(colors.HexColor(op.fill))
            if op.stroke:
                pdf.setStrokeColor(colors.HexColor(op.stroke))
                pdf.setLineWidth(op.line_width)
            pdf.rect(op.x, h - op.y - op.height, op.width, op.height,
                     stroke=1 if op.stroke else 0, fill=1 if op.fill else 0)
        elif isinstance(op, LineOp):
            pdf.setStrokeColor(colors.HexColor(op.color))
            pdf.setLineWidth(op.width)
            pdf.line(op.x1, h - op.y1, op.x2, h - op.y2)
        elif isinstance(op, TextOp):
            _draw_text(pdf, op, h)
        elif isinstance(op, ImageOp):
            draw_logo(op, h)


class InvoicePdfRenderer:
    """Paginated PDF output for invoices, drawn with ReportLab."""

    def __init__(self, registry: TemplateRegistry, *, logo_loader: LogoLoader | None = None, locale: str = "en-US"):
        self.registry = registry
        self.logo_loader = logo_loader or load_logo
        self.locale = locale

    def render(
        self,
        document: InvoiceDocument,
        template_id: str | None = None,
        branding: Branding | None = None,
        *,
        fallback_to_default: bool = True,
        options: RenderOptions | None = None,
        on_date: date | None = None,
    ) -> RenderResult:
        options = options or RenderOptions()
        try:
            plan = plan_render(
                self.registry, document, template_id, branding,
                fallback_to_default=fallback_to_default, locale=self.locale, options=options,
            )
            if not isinstance(plan, RenderPlan):
                return plan
            content, degraded = self._draw(plan, options)
        except Exception as e:
            _LOGGER.exception("PDF render failed for invoice %s", document.meta.number)
            return RenderFailure(message=f"PDF generation failed: {e}")

        return RenderSuccess(
            content=content,
            mime_type=PDF_MIME_TYPE,
            template_id=plan.config.id,
            page_count=len(plan.pages),
            filename=pdf_filename(document.meta.number, document.client.name, on_date),
            degraded=degraded,
            warnings=plan.warnings,
        )

    async def render_async(self, document: InvoiceDocument, template_id: str | None = None,
                           branding: Branding | None = None, **kwargs) -> RenderResult:
        """Awaitable render; a task cancelled before it starts never draws anything."""
        await asyncio.sleep(0)
        return self.render(document, template_id, branding, **kwargs)

    def _draw(self, plan: RenderPlan, options: RenderOptions) -> tuple[bytes, tuple[str, ...]]:
        doc = plan.document
        buf = io.BytesIO()
        pdf = canvas.Canvas(
            buf,
            pagesize=(plan.sections.page_width, plan.sections.page_height),
            pageCompression=0 if options.quality == "draft" else 1,
        )
        pdf.setTitle(f"Invoice {doc.meta.number}")
        pdf.setAuthor(doc.business.name)
        pdf.setSubject(f"Invoice for {doc.client.name}")
        pdf.setCreator(PDF_CREATOR)
        pdf.setKeywords(["invoice", doc.meta.number, doc.business.name])

        degraded: list[str] = []
        readers: dict[str, Optional[ImageReader]] = {}

        def draw_logo(op: ImageOp, page_h: float) -> None:
            if op.ref not in readers:
                try:
                    readers[op.ref] = self.logo_loader(op.ref)
                except Exception as e:
                    _LOGGER.warning("Logo unavailable for invoice %s (%s); rendering without it", doc.meta.number, e)
                    readers[op.ref] = None
            reader = readers[op.ref]
            if reader is None:
                if "logo" not in degraded:
                    degraded.append("logo")
                return
            try:
                pdf.drawImage(reader, op.x, page_h - op.y - op.height, width=op.width, height=op.height,
                              mask="auto", preserveAspectRatio=True, anchor="c")
            except Exception as e:
                _LOGGER.warning("Logo could not be drawn for invoice %s (%s)", doc.meta.number, e)
                readers[op.ref] = None
                if "logo" not in degraded:
                    degraded.append("logo")

        for page in plan.pages:
            _draw_page(pdf, page, draw_logo)
            pdf.showPage()
        pdf.save()
        return buf.getvalue(), tuple(degraded)


# -----------------------------
# Stored invoices
# -----------------------------
def load_invoice_document(session, invoice_id: int, user_id: int | None = None) -> tuple[InvoiceDocument, Optional[Branding]]:
    """
    Document + owner branding for a stored invoice.
    Raises LookupError when the invoice does not exist (or belongs to another user).
    """
    inv = session.get(Invoice, invoice_id)
    if not inv or (user_id is not None and inv.user_id != user_id):
        raise LookupError(f"Invoice not found: id={invoice_id}")

    owner = session.get(User, inv.user_id) if inv.user_id else None
    client = session.get(Client, inv.client_id) if inv.client_id else None

    document = build_document(inv, owner, client)
    # Templates keep their own palette unless the owner picked brand colors
    branding = branding_from_profile(owner) if owner and owner.brand_primary_color else None
    return document, branding


def default_pdf_renderer(registry: TemplateRegistry) -> InvoicePdfRenderer:
    return InvoicePdfRenderer(
        registry,
        logo_loader=logo_loader_for(Config.UPLOADS_DIR, Config.APP_BASE_URL),
        locale=Config.DEFAULT_LOCALE,
    )
