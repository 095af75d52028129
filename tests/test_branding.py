from __future__ import annotations

from dataclasses import replace

from branding import (
    Branding,
    apply_branding,
    branding_from_profile,
    css_variables,
    merge_template,
    normalize_hex,
    validate_branding,
    validate_config,
)
from invoice_templates import CLASSIC_PROFESSIONAL, MINIMAL_CLEAN, MODERN_BOLD


def test_primary_only_changes_primary() -> None:
    base = CLASSIC_PROFESSIONAL

    branded = apply_branding(base, Branding(primary_color="#112233"))

    assert branded is not base
    assert branded.colors.primary == "#112233"
    assert replace(branded, colors=base.colors) == base
    assert branded.colors.secondary == base.colors.secondary
    assert branded.styles == base.styles
    assert base.colors.primary == "#2563EB"


def test_no_branding_returns_base() -> None:
    assert apply_branding(MODERN_BOLD, None) is MODERN_BOLD


def test_secondary_and_font_family() -> None:
    branded = apply_branding(
        MODERN_BOLD,
        Branding(primary_color="#111111", secondary_color="#222222", font_family="Times"),
    )
    assert branded.colors.secondary == "#222222"
    assert branded.fonts.primary == "Times"
    assert branded.fonts.secondary == "Times-Bold"
    assert branded.fonts.sizes == MODERN_BOLD.fonts.sizes


def test_empty_primary_keeps_template_color() -> None:
    branded = apply_branding(MODERN_BOLD, Branding(primary_color=""))
    assert branded.colors.primary == MODERN_BOLD.colors.primary


def test_apply_branding_is_idempotent() -> None:
    branding = Branding(
        primary_color="#123456",
        font_family="Courier",
        template_customizations={"styles": {"table": {"border_style": "heavy"}}},
    )
    once = apply_branding(CLASSIC_PROFESSIONAL, branding)
    assert apply_branding(once, branding) == once


def test_customizations_merge_per_block() -> None:
    branding = Branding(
        primary_color="#2563EB",
        template_customizations={
            "styles": {"table": {"border_style": "heavy"}, "footer": {"text_align": "center"}},
            "fonts": {"sizes": {"body": 12}},
            "layout": {"margins": {"top": 30}},
        },
    )
    merged = apply_branding(CLASSIC_PROFESSIONAL, branding)

    assert merged.styles.table.border_style == "heavy"
    assert merged.styles.table.header_background == CLASSIC_PROFESSIONAL.styles.table.header_background
    assert merged.styles.footer.text_align == "center"
    assert merged.styles.footer.show_terms is True
    assert merged.fonts.sizes.body == 12
    assert merged.fonts.sizes.title == CLASSIC_PROFESSIONAL.fonts.sizes.title
    assert merged.layout.margins.top == 30
    assert merged.layout.margins.bottom == 60
    assert CLASSIC_PROFESSIONAL.styles.table.border_style == "light"


def test_merge_ignores_unknown_keys_and_bad_shapes() -> None:
    base = CLASSIC_PROFESSIONAL
    merged = merge_template(base, {
        "bogus": 1,
        "colors": {"primary": {"nested": "nope"}, "sparkle": "#000000"},
        "styles": "fancy",
        "layout": None,
    })
    assert merged == base


def test_merge_key_aliases_and_lists() -> None:
    merged = merge_template(CLASSIC_PROFESSIONAL, {
        "styles": {"table": {"show_item_numbers": False}, "totals": {"show_subtotals": False}},
    })
    assert merged.styles.table.show_row_numbers is False
    assert merged.styles.totals.show_subtotal_breakdown is False


def test_merge_accepts_whole_block_instance() -> None:
    merged = merge_template(CLASSIC_PROFESSIONAL, {"colors": MODERN_BOLD.colors})
    assert merged.colors == MODERN_BOLD.colors


def test_validate_branding_messages() -> None:
    assert validate_branding(Branding(primary_color="#2563EB")).is_valid
    assert validate_branding(Branding(primary_color="#abc")).is_valid

    missing = validate_branding(Branding(primary_color=""))
    assert missing.errors == ["Primary color is required"]

    result = validate_branding(Branding(
        primary_color="blue",
        secondary_color="#12345G",
        logo_url="not a url",
    ))
    assert not result.is_valid
    assert result.errors == [
        "Primary color must be a valid hex color (e.g., #2563EB)",
        "Secondary color must be a valid hex color (e.g., #64748B)",
        "Logo URL must be a valid URL",
    ]

    assert validate_branding(Branding(primary_color="#000000", logo_url="https://cdn.example.com/logo.png")).is_valid


def test_normalize_hex() -> None:
    assert normalize_hex("#abc") == "#AABBCC"
    assert normalize_hex("#2563eb") == "#2563EB"
    assert normalize_hex(None) is None


def test_branding_from_profile_defaults() -> None:
    branding = branding_from_profile({"brand_primary_color": "#FF0000", "logo_url": "/uploads/logo.png"})
    assert branding.primary_color == "#FF0000"
    assert branding.secondary_color == "#64748B"
    assert branding.font_family == "Helvetica"
    assert branding.logo_url == "/uploads/logo.png"
    assert branding.preferred_template_id == "classic-professional"

    assert css_variables(branding) == {
        "--brand-primary": "#FF0000",
        "--brand-secondary": "#64748B",
        "--brand-font": "Helvetica",
    }


def test_branding_from_dict() -> None:
    assert Branding.from_dict(None) is None
    branding = Branding.from_dict({"primary_color": "#101010", "template_customizations": "junk"})
    assert branding.primary_color == "#101010"
    assert branding.template_customizations is None


def test_validate_branding_font_and_relative_logo() -> None:
    assert validate_branding(Branding(primary_color="#2563EB", font_family="Times New Roman")).is_valid
    assert validate_branding(Branding(primary_color="#2563EB", logo_url="/uploads/logo.png")).is_valid

    result = validate_branding(Branding(primary_color="#2563EB", font_family="x;color:red"))
    assert result.errors == ["Font family may only use letters, digits, spaces and hyphens"]


def test_validate_config() -> None:
    assert validate_config(CLASSIC_PROFESSIONAL) == []
    assert validate_config(MINIMAL_CLEAN) == []

    bad = merge_template(CLASSIC_PROFESSIONAL, {
        "colors": {"accent": "green"},
        "styles": {"totals": {"background_color": "#12"}},
        "fonts": {"primary": "Sans;}"},
    })
    assert validate_config(bad) == [
        "Template color colors.accent must be a valid hex color, got 'green'",
        "Template color styles.totals.background_color must be a valid hex color, got '#12'",
        "Template font primary is not a valid font name, got 'Sans;}'",
    ]
