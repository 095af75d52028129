# rendering.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, ClassVar, Literal, Optional, Union

from branding import LOGO_URL_ERROR, Branding, apply_branding, validate_branding, validate_config
from invoice_document import InvoiceDocument
from invoice_layout import InvoiceSections, build_sections, document_warnings, validate_document
from invoice_templates import TemplateRegistry
from page_layout import PageLayout, layout_pages
from template_config import TemplateConfig

_LOGGER = logging.getLogger(__name__)


# -----------------------------
# Render results
# -----------------------------
@dataclass(frozen=True)
class RenderSuccess:
    """
    A finished render. When `degraded` is non-empty the output is usable but
    something optional (e.g. "logo") was left out.
    `warnings` lists things about the invoice worth fixing that didn't block it.
    """

    content: Any
    mime_type: str
    template_id: str
    page_count: int
    filename: Optional[str] = None
    degraded: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()

    ok: ClassVar[bool] = True
    kind: ClassVar[str] = "success"

    @property
    def is_degraded(self) -> bool:
        return bool(self.degraded)


@dataclass(frozen=True)
class ValidationFailure:
    errors: tuple[str, ...]

    ok: ClassVar[bool] = False
    kind: ClassVar[str] = "validation"

    @property
    def message(self) -> str:
        return "; ".join(self.errors)


@dataclass(frozen=True)
class TemplateNotFound:
    template_id: str

    ok: ClassVar[bool] = False
    kind: ClassVar[str] = "template_not_found"

    @property
    def message(self) -> str:
        return f"Template not found: {self.template_id}"


@dataclass(frozen=True)
class RenderFailure:
    message: str
    retryable: bool = True

    ok: ClassVar[bool] = False
    kind: ClassVar[str] = "render_failure"


RenderResult = Union[RenderSuccess, ValidationFailure, TemplateNotFound, RenderFailure]


@dataclass(frozen=True)
class RenderOptions:
    page_numbers: bool = True
    watermark: Optional[str] = None
    quality: Literal["draft", "standard", "high"] = "standard"


# -----------------------------
# Shared pipeline
# -----------------------------
@dataclass(frozen=True)
class RenderPlan:
    document: InvoiceDocument
    config: TemplateConfig
    sections: InvoiceSections
    pages: list[PageLayout]
    warnings: tuple[str, ...] = ()

    @property
    def grand_total_text(self) -> str:
        return self.sections.totals.lines[-1].amount


def plan_render(
    registry: TemplateRegistry,
    document: InvoiceDocument,
    template_id: str | None = None,
    branding: Branding | None = None,
    *,
    fallback_to_default: bool = True,
    locale: str = "en-US",
    options: RenderOptions | None = None,
) -> Union[RenderPlan, ValidationFailure, TemplateNotFound]:
    """
    Resolve the template, apply branding, validate, then lay the document out.
    Bad branding or a customization that leaves a non-hex color fails validation
    the same way a bad document does.
    PDF and preview output are both drawn from the returned plan.
    """
    options = options or RenderOptions()
    wanted = template_id or (branding.preferred_template_id if branding else None)
    base = registry.resolve(wanted, fallback=fallback_to_default)
    if base is None:
        _LOGGER.info("Rejected render: unknown template %r", wanted)
        return TemplateNotFound(template_id=wanted or "")

    errors = validate_document(document)
    warnings = document_warnings(document)
    config = base
    if branding is not None:
        for error in validate_branding(branding).errors:
            if error == LOGO_URL_ERROR:
                warnings.append("Business logo URL may not be accessible")
            else:
                errors.append(error)
        config = apply_branding(base, branding)
    errors += validate_config(config)
    if errors:
        _LOGGER.info("Rejected render of invoice %s: %s", document.meta.number, "; ".join(errors))
        return ValidationFailure(errors=tuple(errors))

    if warnings:
        _LOGGER.info("Invoice %s rendered with warnings: %s", document.meta.number, "; ".join(warnings))
    sections = build_sections(
        document,
        config,
        fallback_logo=branding.logo_url if branding else None,
        locale=locale,
    )
    pages = layout_pages(sections, page_numbers=options.page_numbers, watermark=options.watermark)
    return RenderPlan(document=document, config=config, sections=sections, pages=pages, warnings=tuple(warnings))
