# invoice_templates.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from template_config import (
    ColorPalette,
    FontSizes,
    Fonts,
    FooterStyle,
    HeaderStyle,
    Margins,
    PageLayout,
    SectionStyles,
    TableStyle,
    TemplateConfig,
    TotalsStyle,
)

_LOGGER = logging.getLogger(__name__)

TEMPLATE_CATEGORIES: dict[str, dict[str, str]] = {
    "professional": {
        "name": "Professional",
        "description": "Clean, traditional layouts perfect for established businesses",
    },
    "modern": {
        "name": "Modern",
        "description": "Contemporary designs with bold typography and clean lines",
    },
    "minimal": {
        "name": "Minimal",
        "description": "Simple, elegant templates that focus on content clarity",
    },
    "creative": {
        "name": "Creative",
        "description": "Unique designs with artistic elements for creative industries",
    },
    "corporate": {
        "name": "Corporate",
        "description": "Formal templates suitable for large organizations and enterprises",
    },
}


class RegistryError(ValueError):
    """The set of registered templates is inconsistent (raised at startup)."""


class TemplateNotFoundError(LookupError):
    def __init__(self, template_id: str):
        super().__init__(f"Template not found: {template_id}")
        self.template_id = template_id


@dataclass(frozen=True)
class TemplateEntry:
    config: TemplateConfig
    category: str
    is_default: bool = False
    is_premium: bool = False
    summary: str = ""

    @property
    def id(self) -> str:
        return self.config.id


class TemplateRegistry:
    """
    Immutable catalog of invoice templates.

    Built once (see build_default_registry) and handed to whatever needs it.
    Exactly one entry must be the default; this is checked on construction.
    """

    def __init__(self, entries: Iterable[TemplateEntry]):
        self._entries: dict[str, TemplateEntry] = {}
        for entry in entries:
            if entry.id in self._entries:
                raise RegistryError(f"Duplicate template id: {entry.id}")
            if entry.category not in TEMPLATE_CATEGORIES:
                raise RegistryError(f"Unknown template category {entry.category!r} for {entry.id}")
            self._entries[entry.id] = entry

        defaults = [e for e in self._entries.values() if e.is_default]
        if len(defaults) != 1:
            raise RegistryError(
                f"Exactly one default template is required, found {len(defaults)}"
            )
        self._default = defaults[0]

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, template_id: object) -> bool:
        return template_id in self._entries

    def register(self, entry: TemplateEntry) -> "TemplateRegistry":
        """Return a new registry with `entry` added; this one is left untouched."""
        return TemplateRegistry([*self._entries.values(), entry])

    # -----------------------------
    # Lookups
    # -----------------------------
    def get_template(self, template_id: str | None) -> Optional[TemplateConfig]:
        entry = self._entries.get(template_id or "")
        return entry.config if entry else None

    def get_entry(self, template_id: str | None) -> Optional[TemplateEntry]:
        return self._entries.get(template_id or "")

    def require(self, template_id: str | None) -> TemplateConfig:
        cfg = self.get_template(template_id)
        if cfg is None:
            raise TemplateNotFoundError(template_id or "")
        return cfg

    def get_default(self) -> TemplateConfig:
        return self._default.config

    def resolve(self, template_id: str | None, fallback: bool = True) -> Optional[TemplateConfig]:
        """
        Template for `template_id`; no id means the default.
        An unknown id falls back to the default when `fallback` is set, else None.
        """
        if not template_id:
            return self.get_default()
        cfg = self.get_template(template_id)
        if cfg is None and fallback:
            _LOGGER.warning("Unknown template %r, using default %r", template_id, self._default.id)
            return self.get_default()
        return cfg

    def is_valid_template_id(self, template_id: str | None) -> bool:
        return (template_id or "") in self._entries

    def templates(self) -> list[TemplateConfig]:
        return [e.config for e in self._entries.values()]

    def list_by_category(self, category: str) -> list[TemplateConfig]:
        return [e.config for e in self._entries.values() if e.category == category]

    def premium_templates(self) -> list[TemplateConfig]:
        return [e.config for e in self._entries.values() if e.is_premium]

    def free_templates(self) -> list[TemplateConfig]:
        return [e.config for e in self._entries.values() if not e.is_premium]

    def categories(self) -> list[dict]:
        """Categories that have at least one template, with display text and counts."""
        out = []
        for key, info in TEMPLATE_CATEGORIES.items():
            ids = [e.id for e in self._entries.values() if e.category == key]
            if not ids:
                continue
            out.append({
                "category": key,
                "name": info["name"],
                "description": info["description"],
                "count": len(ids),
                "template_ids": ids,
            })
        return out


# -----------------------------
# Built-in templates
# -----------------------------
CLASSIC_PROFESSIONAL = TemplateConfig(
    id="classic-professional",
    name="Classic Professional",
    description="Traditional, clean layout perfect for established businesses",
    preview_image="/images/templates/classic-preview.png",
    layout=PageLayout(format="A4", orientation="portrait", margins=Margins(60, 60, 60, 60)),
    colors=ColorPalette(
        primary="#2563EB",
        secondary="#64748B",
        accent="#059669",
        text_primary="#1E293B",
        text_secondary="#64748B",
        background="#FFFFFF",
        border="#E2E8F0",
    ),
    fonts=Fonts("Helvetica", "Helvetica-Bold", FontSizes(title=24, heading=16, body=10, small=8)),
    styles=SectionStyles(
        header=HeaderStyle(layout="split", logo_size="medium", border_bottom=True),
        footer=FooterStyle(text_align="left", border_top=True),
        table=TableStyle(
            header_background="#2563EB",
            header_text_color="#FFFFFF",
            row_alternate_background="#F8FAFC",
            border_style="light",
            show_row_numbers=True,
        ),
        totals=TotalsStyle(alignment="right", background_color="#F1F5F9", highlight_total=True, show_subtotal_breakdown=True),
    ),
)

MODERN_BOLD = TemplateConfig(
    id="modern-bold",
    name="Modern Bold",
    description="Contemporary design with bold typography and vibrant colors",
    preview_image="/images/templates/modern-preview.png",
    layout=PageLayout(format="A4", orientation="portrait", margins=Margins(50, 50, 50, 50)),
    colors=ColorPalette(
        primary="#7C3AED",
        secondary="#6366F1",
        accent="#EC4899",
        text_primary="#111827",
        text_secondary="#6B7280",
        background="#FFFFFF",
        border="#D1D5DB",
    ),
    fonts=Fonts("Helvetica", "Helvetica-Bold", FontSizes(title=28, heading=18, body=11, small=9)),
    styles=SectionStyles(
        header=HeaderStyle(layout="left", logo_size="large", background_color="#7C3AED", border_bottom=False),
        footer=FooterStyle(text_align="center", background_color="#F9FAFB", border_top=False),
        table=TableStyle(
            header_background="#6366F1",
            header_text_color="#FFFFFF",
            row_alternate_background="#F8FAFC",
            border_style="none",
            show_row_numbers=False,
        ),
        totals=TotalsStyle(alignment="right", background_color="#EC4899", highlight_total=True, show_subtotal_breakdown=True),
    ),
)

MINIMAL_CLEAN = TemplateConfig(
    id="minimal-clean",
    name="Minimal Clean",
    description="Ultra-clean design focusing on content clarity and simplicity",
    preview_image="/images/templates/minimal-preview.png",
    layout=PageLayout(format="A4", orientation="portrait", margins=Margins(80, 80, 80, 80)),
    colors=ColorPalette(
        primary="#374151",
        secondary="#9CA3AF",
        accent="#F59E0B",
        text_primary="#111827",
        text_secondary="#6B7280",
        background="#FFFFFF",
        border="#E5E7EB",
    ),
    fonts=Fonts("Helvetica", "Helvetica-Bold", FontSizes(title=20, heading=14, body=10, small=8)),
    styles=SectionStyles(
        header=HeaderStyle(layout="center", logo_size="small", border_bottom=False),
        footer=FooterStyle(show_payment_instructions=False, text_align="center", border_top=False),
        table=TableStyle(
            header_background="#F9FAFB",
            header_text_color="#374151",
            row_alternate_background=None,
            border_style="light",
            show_row_numbers=False,
        ),
        totals=TotalsStyle(alignment="right", background_color=None, highlight_total=False, show_subtotal_breakdown=False),
    ),
)

BUSINESS_PROFESSIONAL = TemplateConfig(
    id="business-professional",
    name="Business Professional",
    description="Professional business template with company branding and formal layout",
    preview_image="/images/templates/business-preview.png",
    layout=PageLayout(format="A4", orientation="portrait", margins=Margins(40, 40, 40, 40)),
    colors=ColorPalette(
        primary="#00BFFF",
        secondary="#0099CC",
        accent="#FF6B35",
        text_primary="#2C3E50",
        text_secondary="#7F8C8D",
        background="#FFFFFF",
        border="#BDC3C7",
    ),
    fonts=Fonts("Helvetica", "Helvetica-Bold", FontSizes(title=32, heading=18, body=10, small=9)),
    styles=SectionStyles(
        header=HeaderStyle(layout="split", logo_size="large", show_invoice_details=False, border_bottom=True),
        footer=FooterStyle(
            show_terms=False,
            show_payment_instructions=False,
            show_notes=False,
            text_align="center",
            border_top=False,
        ),
        table=TableStyle(
            header_background="#E8F4FD",
            header_text_color="#2C3E50",
            row_alternate_background="#F8FBFF",
            border_style="heavy",
            show_row_numbers=True,
        ),
        totals=TotalsStyle(alignment="right", background_color="#00BFFF", highlight_total=True, show_subtotal_breakdown=True),
    ),
)

BUILTIN_TEMPLATES = [
    TemplateEntry(
        CLASSIC_PROFESSIONAL,
        "professional",
        is_default=True,
        summary="Professional blue color scheme with clear typography and structured sections.",
    ),
    TemplateEntry(
        MODERN_BOLD,
        "modern",
        summary="Perfect for creative agencies, startups, and modern businesses.",
    ),
    TemplateEntry(
        MINIMAL_CLEAN,
        "minimal",
        summary="Perfect for consultants, freelancers, and businesses that prefer understated elegance.",
    ),
    TemplateEntry(
        BUSINESS_PROFESSIONAL,
        "professional",
        summary="Formal layout with heavy table rules. Perfect for corporate invoicing.",
    ),
]


def build_default_registry() -> TemplateRegistry:
    return TemplateRegistry(BUILTIN_TEMPLATES)
