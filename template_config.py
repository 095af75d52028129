# template_config.py
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Literal, Optional

from reportlab.lib.pagesizes import A4, LETTER, landscape

PageFormat = Literal["A4", "Letter"]
Orientation = Literal["portrait", "landscape"]
HeaderLayout = Literal["left", "right", "center", "split"]
LogoSize = Literal["small", "medium", "large"]
TextAlign = Literal["left", "center", "right"]
BorderStyle = Literal["none", "light", "medium", "heavy"]

PAGE_SIZES = {"A4": A4, "Letter": LETTER}

# Logo box height in points per logo_size
LOGO_HEIGHTS = {"small": 40.0, "medium": 60.0, "large": 80.0}

# Table rule width in points per border_style
BORDER_WIDTHS = {"none": 0.0, "light": 0.5, "medium": 1.0, "heavy": 2.0}


# -----------------------------
# Page
# -----------------------------
@dataclass(frozen=True)
class Margins:
    top: float = 60
    bottom: float = 60
    left: float = 60
    right: float = 60


@dataclass(frozen=True)
class PageLayout:
    format: PageFormat = "A4"
    orientation: Orientation = "portrait"
    margins: Margins = field(default_factory=Margins)


# -----------------------------
# Colors / fonts
# -----------------------------
@dataclass(frozen=True)
class ColorPalette:
    primary: str
    secondary: str
    accent: str
    text_primary: str
    text_secondary: str
    background: str = "#FFFFFF"
    border: str = "#E2E8F0"


@dataclass(frozen=True)
class FontSizes:
    title: float = 24
    heading: float = 16
    body: float = 10
    small: float = 8


@dataclass(frozen=True)
class Fonts:
    primary: str = "Helvetica"
    secondary: str = "Helvetica-Bold"
    sizes: FontSizes = field(default_factory=FontSizes)


# -----------------------------
# Section styles
# -----------------------------
@dataclass(frozen=True)
class HeaderStyle:
    layout: HeaderLayout = "split"
    logo_size: LogoSize = "medium"
    show_business_info: bool = True
    show_invoice_details: bool = True
    background_color: Optional[str] = None
    border_bottom: bool = True


@dataclass(frozen=True)
class FooterStyle:
    show_terms: bool = True
    show_payment_instructions: bool = True
    show_notes: bool = True
    text_align: TextAlign = "left"
    background_color: Optional[str] = None
    border_top: bool = True


@dataclass(frozen=True)
class TableStyle:
    header_background: str = "#2563EB"
    header_text_color: str = "#FFFFFF"
    row_alternate_background: Optional[str] = None
    border_style: BorderStyle = "light"
    show_row_numbers: bool = False


@dataclass(frozen=True)
class TotalsStyle:
    alignment: Literal["left", "right"] = "right"
    background_color: Optional[str] = None
    highlight_total: bool = True
    show_subtotal_breakdown: bool = True


@dataclass(frozen=True)
class SectionStyles:
    header: HeaderStyle = field(default_factory=HeaderStyle)
    footer: FooterStyle = field(default_factory=FooterStyle)
    table: TableStyle = field(default_factory=TableStyle)
    totals: TotalsStyle = field(default_factory=TotalsStyle)


@dataclass(frozen=True)
class TemplateConfig:
    """Full visual description of one invoice template. Instances are never mutated."""

    id: str
    name: str
    description: str
    layout: PageLayout
    colors: ColorPalette
    fonts: Fonts = field(default_factory=Fonts)
    styles: SectionStyles = field(default_factory=SectionStyles)
    preview_image: Optional[str] = None

    def page_size(self) -> tuple[float, float]:
        size = PAGE_SIZES.get(self.layout.format, A4)
        if self.layout.orientation == "landscape":
            return landscape(size)
        return size

    def to_dict(self) -> dict:
        return asdict(self)
