# branding.py
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, fields, is_dataclass, replace
from typing import Any, Mapping, Optional
from urllib.parse import urlparse

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

HEX_COLOR_RE = re.compile(r"^#([A-Fa-f0-9]{6}|[A-Fa-f0-9]{3})$")
FONT_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9 -]*$")

DEFAULT_PRIMARY_COLOR = "#2563EB"
DEFAULT_SECONDARY_COLOR = "#64748B"
DEFAULT_FONT_FAMILY = "Helvetica"
DEFAULT_TEMPLATE_ID = "classic-professional"

LOGO_URL_ERROR = "Logo URL must be a valid URL"

# Older saved customizations used these key names
_KEY_ALIASES = {
    "show_item_numbers": "show_row_numbers",
    "show_subtotals": "show_subtotal_breakdown",
}


@dataclass(frozen=True)
class Branding:
    primary_color: str
    logo_url: Optional[str] = None
    secondary_color: Optional[str] = None
    font_family: Optional[str] = None
    template_customizations: Optional[Mapping[str, Any]] = None
    preferred_template_id: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> Optional["Branding"]:
        if not data:
            return None
        custom = data.get("template_customizations")
        return cls(
            primary_color=data.get("primary_color") or "",
            logo_url=data.get("logo_url") or None,
            secondary_color=data.get("secondary_color") or None,
            font_family=data.get("font_family") or None,
            template_customizations=custom if isinstance(custom, Mapping) else None,
            preferred_template_id=data.get("preferred_template_id") or None,
        )


@dataclass(frozen=True)
class BrandingValidation:
    is_valid: bool
    errors: list[str]


def is_hex_color(value: object) -> bool:
    return isinstance(value, str) and bool(HEX_COLOR_RE.match(value))


def normalize_hex(color: str | None) -> str | None:
    """#abc -> #AABBCC; anything else is returned upper-cased as-is."""
    if not color:
        return color
    if is_hex_color(color) and len(color) == 4:
        color = "#" + "".join(ch * 2 for ch in color[1:])
    return color.upper()


def _is_valid_url(value: object) -> bool:
    if not isinstance(value, str) or not value.strip():
        return False
    # stored uploads are site-relative ("/uploads/<file>")
    if value.startswith("/") and not value.startswith("//"):
        return " " not in value.strip()
    try:
        parsed = urlparse(value.strip())
    except ValueError:
        return False
    if not parsed.scheme:
        return False
    if parsed.scheme in {"data", "mailto", "file"}:
        return bool(parsed.path)
    return bool(parsed.netloc)


def validate_branding(branding: Branding) -> BrandingValidation:
    errors: list[str] = []

    if not branding.primary_color:
        errors.append("Primary color is required")
    elif not is_hex_color(branding.primary_color):
        errors.append("Primary color must be a valid hex color (e.g., #2563EB)")

    if branding.secondary_color and not is_hex_color(branding.secondary_color):
        errors.append("Secondary color must be a valid hex color (e.g., #64748B)")

    if branding.font_family and not FONT_NAME_RE.match(branding.font_family):
        errors.append("Font family may only use letters, digits, spaces and hyphens")

    if branding.logo_url and not _is_valid_url(branding.logo_url):
        errors.append(LOGO_URL_ERROR)

    return BrandingValidation(is_valid=not errors, errors=errors)


def validate_config(config: TemplateConfig) -> list[str]:
    """Errors for a merged template whose colors or fonts can't be drawn."""
    errors: list[str] = []
    colors = [(f"colors.{f.name}", getattr(config.colors, f.name)) for f in fields(config.colors)]
    styles = config.styles
    colors += [
        ("styles.header.background_color", styles.header.background_color),
        ("styles.footer.background_color", styles.footer.background_color),
        ("styles.table.header_background", styles.table.header_background),
        ("styles.table.header_text_color", styles.table.header_text_color),
        ("styles.table.row_alternate_background", styles.table.row_alternate_background),
        ("styles.totals.background_color", styles.totals.background_color),
    ]
    for name, value in colors:
        if value is None and not name.startswith("colors."):
            continue
        if not is_hex_color(value):
            errors.append(f"Template color {name} must be a valid hex color, got {value!r}")

    for name in ("primary", "secondary"):
        value = getattr(config.fonts, name)
        if not isinstance(value, str) or not FONT_NAME_RE.match(value):
            errors.append(f"Template font {name} is not a valid font name, got {value!r}")
    return errors


def branding_from_profile(profile) -> Branding:
    """Branding for a business profile (User row or mapping); unset fields get the house defaults."""
    def _get(name):
        if isinstance(profile, Mapping):
            return profile.get(name)
        return getattr(profile, name, None)

    return Branding(
        primary_color=_get("brand_primary_color") or DEFAULT_PRIMARY_COLOR,
        secondary_color=_get("brand_secondary_color") or DEFAULT_SECONDARY_COLOR,
        font_family=_get("brand_font_family") or DEFAULT_FONT_FAMILY,
        logo_url=_get("logo_url") or None,
        preferred_template_id=_get("preferred_template_id") or DEFAULT_TEMPLATE_ID,
    )


def css_variables(branding: Branding) -> dict[str, str]:
    return {
        "--brand-primary": branding.primary_color,
        "--brand-secondary": branding.secondary_color or DEFAULT_SECONDARY_COLOR,
        "--brand-font": branding.font_family or DEFAULT_FONT_FAMILY,
    }


# -----------------------------
# Merge
# -----------------------------
def apply_branding(base: TemplateConfig, branding: Branding | None) -> TemplateConfig:
    """
    Effective template for a business. `base` is never modified.

    Colors and fonts from the branding are applied first, then any
    template_customizations are merged over the result block by block.
    """
    if branding is None:
        return base

    colors = replace(base.colors, primary=branding.primary_color or base.colors.primary)
    if branding.secondary_color:
        colors = replace(colors, secondary=branding.secondary_color)

    fonts = base.fonts
    if branding.font_family:
        fonts = replace(fonts, primary=branding.font_family, secondary=f"{branding.font_family}-Bold")

    branded = replace(base, colors=colors, fonts=fonts)

    if branding.template_customizations:
        return merge_template(branded, branding.template_customizations)
    return branded


def merge_template(base: TemplateConfig, overrides: Mapping[str, Any]) -> TemplateConfig:
    changes = _merge_fields(base, overrides, {
        "layout": _merge_layout,
        "colors": _merge_colors,
        "fonts": _merge_fonts,
        "styles": _merge_styles,
    })
    return replace(base, **changes) if changes else base


def _merge_layout(base: PageLayout, overrides: Mapping[str, Any]) -> PageLayout:
    return _merged(base, overrides, {"margins": _merge_margins})


def _merge_margins(base: Margins, overrides: Mapping[str, Any]) -> Margins:
    return _merged(base, overrides)


def _merge_colors(base: ColorPalette, overrides: Mapping[str, Any]) -> ColorPalette:
    return _merged(base, overrides)


def _merge_fonts(base: Fonts, overrides: Mapping[str, Any]) -> Fonts:
    return _merged(base, overrides, {"sizes": _merge_font_sizes})


def _merge_font_sizes(base: FontSizes, overrides: Mapping[str, Any]) -> FontSizes:
    return _merged(base, overrides)


def _merge_styles(base: SectionStyles, overrides: Mapping[str, Any]) -> SectionStyles:
    return _merged(base, overrides, {
        "header": _merge_header,
        "footer": _merge_footer,
        "table": _merge_table,
        "totals": _merge_totals,
    })


def _merge_header(base: HeaderStyle, overrides: Mapping[str, Any]) -> HeaderStyle:
    return _merged(base, overrides)


def _merge_footer(base: FooterStyle, overrides: Mapping[str, Any]) -> FooterStyle:
    return _merged(base, overrides)


def _merge_table(base: TableStyle, overrides: Mapping[str, Any]) -> TableStyle:
    return _merged(base, overrides)


def _merge_totals(base: TotalsStyle, overrides: Mapping[str, Any]) -> TotalsStyle:
    return _merged(base, overrides)


def _merged(base, overrides: Mapping[str, Any], nested: dict | None = None):
    changes = _merge_fields(base, overrides, nested or {})
    return replace(base, **changes) if changes else base


def _merge_fields(base, overrides: Mapping[str, Any], nested: dict) -> dict:
    """
    Changes to apply to one block. Nested blocks merge through `nested`;
    leaves (including lists) are replaced wholesale. Unknown keys and
    mismatched shapes are skipped.
    """
    if not isinstance(overrides, Mapping):
        _LOGGER.debug("Ignoring non-mapping customization for %s", type(base).__name__)
        return {}

    known = {f.name for f in fields(base)}
    changes: dict[str, Any] = {}
    for raw_key, value in overrides.items():
        key = _KEY_ALIASES.get(raw_key, raw_key)
        if key not in known:
            _LOGGER.debug("Ignoring unknown customization key %s.%s", type(base).__name__, raw_key)
            continue
        if value is None and key in nested:
            continue

        current = getattr(base, key)
        if key in nested:
            if isinstance(value, type(current)):
                changes[key] = value
            elif isinstance(value, Mapping):
                changes[key] = nested[key](current, value)
            else:
                _LOGGER.debug("Ignoring scalar customization for block %s.%s", type(base).__name__, key)
            continue

        if isinstance(value, Mapping) or is_dataclass(value):
            _LOGGER.debug("Ignoring block customization for leaf %s.%s", type(base).__name__, key)
            continue
        if isinstance(value, list):
            value = tuple(value)
        changes[key] = value
    return changes
