# preview.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from branding import Branding, css_variables
from config import BASE_DIR
from invoice_document import InvoiceDocument
from invoice_templates import TemplateRegistry
from page_layout import ImageOp, LineOp, RectOp, TextOp
from rendering import (
    RenderFailure,
    RenderOptions,
    RenderPlan,
    RenderResult,
    RenderSuccess,
    plan_render,
)

_LOGGER = logging.getLogger(__name__)

PREVIEW_MIME_TYPE = "text/html"
DEFAULT_SCALE = 0.7
MIN_SCALE = 0.3
MAX_SCALE = 1.5
PX_PER_POINT = 96 / 72

_jinja = Environment(
    loader=FileSystemLoader(str(BASE_DIR / "templates")),
    autoescape=select_autoescape(["html"]),
)


def clamp_scale(scale) -> float:
    try:
        value = float(scale)
    except (TypeError, ValueError):
        return DEFAULT_SCALE
    if value != value:  # NaN
        return DEFAULT_SCALE
    return max(MIN_SCALE, min(MAX_SCALE, value))


@dataclass(frozen=True)
class PreviewElement:
    kind: str  # text | rect | line | image
    left: float
    top: float
    width: float = 0.0
    height: float = 0.0
    text: str = ""
    font: str = ""
    size: float = 0.0
    color: str = ""
    fill: Optional[str] = None
    stroke: Optional[str] = None
    line_width: float = 0.0
    anchor: str = "start"
    angle: float = 0.0
    src: Optional[str] = None

    @property
    def css(self) -> str:
        parts = [f"left:{self.left:.2f}px", f"top:{self.top:.2f}px"]
        if self.kind == "text":
            parts += [
                f"font-family:{_css_font(self.font)}",
                f"font-size:{self.size:.2f}px",
                f"color:{self.color}",
            ]
            if "Bold" in self.font:
                parts.append("font-weight:700")
            shift = {"middle": "-50%", "end": "-100%"}.get(self.anchor, "0")
            transform = f"translate({shift},-80%)"
            if self.angle:
                transform += f" rotate({-self.angle:g}deg)"
            parts.append(f"transform:{transform}")
        else:
            parts += [f"width:{self.width:.2f}px", f"height:{self.height:.2f}px"]
            if self.fill:
                parts.append(f"background:{self.fill}")
            if self.stroke:
                parts.append(f"border:{self.line_width:.2f}px solid {self.stroke}")
        return ";".join(parts)


def _css_font(font: str) -> str:
    if font.startswith("Times"):
        return "'Times New Roman',serif"
    if font.startswith("Courier"):
        return "'Courier New',monospace"
    return "Helvetica,Arial,sans-serif"


@dataclass(frozen=True)
class PreviewPage:
    number: int
    width: float
    height: float
    elements: tuple[PreviewElement, ...]


@dataclass(frozen=True)
class PreviewDocument:
    """Scaled, screen-sized rendition of the same page layout the PDF is drawn from."""

    scale: float
    template_id: str
    pages: tuple[PreviewPage, ...]
    css_variables: tuple[tuple[str, str], ...] = ()

    def texts(self) -> list[str]:
        return [el.text for page in self.pages for el in page.elements if el.kind == "text"]

    def to_html(self) -> str:
        return _jinja.get_template("invoice_preview.html").render(preview=self)


def _element(op, factor: float) -> PreviewElement:
    if isinstance(op, TextOp):
        return PreviewElement(
            "text", op.x * factor, op.y * factor, text=op.text, font=op.font,
            size=op.size * factor, color=op.color, anchor=op.anchor, angle=op.angle,
        )
    if isinstance(op, RectOp):
        return PreviewElement(
            "rect", op.x * factor, op.y * factor, op.width * factor, op.height * factor,
            fill=op.fill, stroke=op.stroke, line_width=op.line_width * factor,
        )
    if isinstance(op, LineOp):
        # horizontal rules only
        return PreviewElement(
            "line", min(op.x1, op.x2) * factor, op.y1 * factor, abs(op.x2 - op.x1) * factor,
            max(op.width * factor, 1.0), fill=op.color,
        )
    if isinstance(op, ImageOp):
        return PreviewElement(
            "image", op.x * factor, op.y * factor, op.width * factor, op.height * factor, src=op.ref,
        )
    raise TypeError(f"Unknown draw op: {op!r}")


class InvoicePreviewRenderer:
    """
    Interactive preview. Same validation, branding and layout as the PDF,
    scaled for the screen. Logos are referenced by URL and loaded by the browser.
    """

    def __init__(self, registry: TemplateRegistry, *, scale: float = DEFAULT_SCALE, locale: str = "en-US"):
        self.registry = registry
        self.scale = clamp_scale(scale)
        self.locale = locale

    def render(
        self,
        document: InvoiceDocument,
        template_id: str | None = None,
        branding: Branding | None = None,
        *,
        scale: float | None = None,
        fallback_to_default: bool = True,
        options: RenderOptions | None = None,
    ) -> RenderResult:
        effective_scale = self.scale if scale is None else clamp_scale(scale)
        try:
            plan = plan_render(
                self.registry, document, template_id, branding,
                fallback_to_default=fallback_to_default, locale=self.locale, options=options,
            )
            if not isinstance(plan, RenderPlan):
                return plan
            preview = self._build(plan, effective_scale, branding)
        except Exception as e:
            _LOGGER.exception("Preview render failed for invoice %s", document.meta.number)
            return RenderFailure(message=f"Preview generation failed: {e}")

        return RenderSuccess(
            content=preview,
            mime_type=PREVIEW_MIME_TYPE,
            template_id=plan.config.id,
            page_count=len(preview.pages),
            warnings=plan.warnings,
        )

    def _build(self, plan: RenderPlan, scale: float, branding: Branding | None) -> PreviewDocument:
        factor = PX_PER_POINT * scale
        pages = tuple(
            PreviewPage(
                number=page.number,
                width=page.width * factor,
                height=page.height * factor,
                elements=tuple(_element(op, factor) for op in page.ops),
            )
            for page in plan.pages
        )
        if branding:
            variables = tuple(css_variables(branding).items())
        else:
            colors = plan.config.colors
            variables = (
                ("--brand-primary", colors.primary),
                ("--brand-secondary", colors.secondary),
                ("--brand-font", plan.config.fonts.primary),
            )
        return PreviewDocument(scale=scale, template_id=plan.config.id, pages=pages, css_variables=variables)
