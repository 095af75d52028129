# invoice_document.py
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Mapping, Optional

from money import CENT, DEFAULT_CURRENCY, compute_totals, line_total, round_money, sum_money, to_decimal

_LOGGER = logging.getLogger(__name__)

INVOICE_STATUSES = ("draft", "sent", "paid", "overdue", "cancelled")

PLACEHOLDER_NUMBER = "INV-0000"
PLACEHOLDER_BUSINESS_NAME = "Your Business"
PLACEHOLDER_SERVICE = "Professional Services"
DEFAULT_TERMS = "Payment is due within 30 days of invoice date."
DEFAULT_PAYMENT_INSTRUCTIONS = "Please remit payment to the account specified above."

_NUMBER_RE = re.compile(r"Invoice #(INV-\d+-\d+)")
_PREFIX_RE = re.compile(r"^Invoice #INV-\d+-\d+ - ")


class DocumentMappingError(ValueError):
    pass


# -----------------------------
# Document types
# -----------------------------
@dataclass(frozen=True)
class BusinessInfo:
    name: str
    email: str = ""
    phone: Optional[str] = None
    address: Optional[str] = None
    logo_url: Optional[str] = None
    website: Optional[str] = None
    tax_number: Optional[str] = None


@dataclass(frozen=True)
class ClientInfo:
    name: str
    email: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None


@dataclass(frozen=True)
class InvoiceMeta:
    id: str
    number: str
    issued_date: str
    currency: str = DEFAULT_CURRENCY
    status: str = "draft"
    due_date: Optional[str] = None
    account_no: Optional[str] = None
    payment_link: Optional[str] = None
    notes: Optional[str] = None


@dataclass(frozen=True)
class LineItem:
    description: str
    quantity: int
    unit_price: Decimal
    total: Decimal
    tax_rate: Optional[Decimal] = None


@dataclass(frozen=True)
class DocumentTotals:
    subtotal: Decimal
    tax_amount: Decimal
    tax_rate: Decimal
    grand_total: Optional[Decimal]
    discount_amount: Decimal = Decimal("0.00")
    discount_rate: Decimal = Decimal("0")


@dataclass(frozen=True)
class InvoiceDocument:
    """Render-ready snapshot of one invoice. Built fresh per render, never edited."""

    business: BusinessInfo
    client: ClientInfo
    meta: InvoiceMeta
    items: tuple[LineItem, ...]
    totals: DocumentTotals
    terms: Optional[str] = None
    payment_instructions: Optional[str] = None


@dataclass(frozen=True)
class FormSnapshot:
    """In-progress invoice form state used by the live preview."""

    buyer_name: str = ""
    buyer_email: str = ""
    buyer_address: str = ""
    service_name: str = ""
    unit_net_price: Any = 0
    qty: Any = 1
    vat_rate: Any = 0
    currency: str = DEFAULT_CURRENCY
    account_no: str = ""
    payment_link: str = ""
    due_date: str = ""
    status: str = "draft"
    notes: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "FormSnapshot":
        data = data or {}
        known = {k: data[k] for k in cls.__dataclass_fields__ if data.get(k) is not None}
        return cls(**known)


# Business identity used when previewing without a saved profile
DEFAULT_PREVIEW_PROFILE = {
    "id": "default",
    "business_name": "Your Business Name",
    "business_email": "contact@yourbusiness.com",
    "business_phone": "+1 (555) 123-4567",
    "business_address": "123 Business Street\nCity, State 12345\nCountry",
    "logo_url": None,
    "default_currency": DEFAULT_CURRENCY,
}


# -----------------------------
# Helpers
# -----------------------------
def _field(record, name: str, default=None):
    if record is None:
        return default
    if isinstance(record, Mapping):
        value = record.get(name, default)
    else:
        value = getattr(record, name, default)
    return default if value is None else value


def _text(value) -> str:
    return str(value).strip() if value is not None else ""


def extract_invoice_number(service_name: str | None) -> str:
    match = _NUMBER_RE.search(service_name or "")
    return match.group(1) if match else PLACEHOLDER_NUMBER


def clean_service_name(service_name: str | None) -> str:
    cleaned = _PREFIX_RE.sub("", service_name or "", count=1)
    return cleaned or PLACEHOLDER_SERVICE


def compose_service_name(number: str, description: str) -> str:
    """Inverse of the two helpers above: 'Invoice #INV-2024-0007 - Website redesign'."""
    return f"Invoice #{number} - {description}"


def _parse_date(value) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    raw = str(value).strip()
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(raw).date()
    except ValueError:
        return None


def format_long_date(value) -> str:
    """'January 15, 2024'. Raises ValueError when `value` is not a date."""
    d = _parse_date(value)
    if d is None:
        raise ValueError(f"Not a date: {value!r}")
    return f"{d:%B} {d.day}, {d.year}"


def _issued_date(record, today: date) -> str:
    for key in ("issued_at", "created_at"):
        raw = _field(record, key)
        if raw in (None, ""):
            continue
        d = _parse_date(raw)
        if d is not None:
            return format_long_date(d)
        _LOGGER.debug("Unparseable %s %r, using today", key, raw)
        break
    return format_long_date(today)


def _due_date(record) -> Optional[str]:
    raw = _field(record, "due_date")
    d = _parse_date(raw)
    if raw not in (None, "") and d is None:
        _LOGGER.debug("Dropping unparseable due_date %r", raw)
    return format_long_date(d) if d else None


def _status(record) -> str:
    status = _text(_field(record, "status", "draft")).lower() or "draft"
    if status not in INVOICE_STATUSES:
        _LOGGER.warning("Unknown invoice status %r, rendering as draft", status)
        return "draft"
    return status


def _quantity(raw) -> int:
    """Missing or zero quantity means 1; negatives are kept so validation rejects them."""
    qty = to_decimal(raw)
    if qty == 0:
        return 1
    return int(qty.to_integral_value())


def payment_instructions_for(payment_link: str | None) -> str:
    if payment_link:
        return f"Please use the following link to pay: {payment_link}"
    return DEFAULT_PAYMENT_INSTRUCTIONS


# -----------------------------
# Mapper
# -----------------------------
def build_document(invoice_record, business_profile=None, client_record=None, *, today: date | None = None) -> InvoiceDocument:
    """
    Map a stored invoice (ORM row or mapping) and its owner's profile onto an InvoiceDocument.

    The invoice carries a snapshot of the buyer; `client_record` only fills what
    the snapshot does not hold (phone). Stored totals are shown as stored.
    """
    if invoice_record is None:
        raise DocumentMappingError("An invoice record is required")
    today = today or date.today()

    business = BusinessInfo(
        name=_text(_field(business_profile, "business_name")) or PLACEHOLDER_BUSINESS_NAME,
        email=_text(_field(business_profile, "business_email")),
        phone=_text(_field(business_profile, "business_phone")) or None,
        address=_text(_field(business_profile, "business_address")) or None,
        logo_url=_text(_field(business_profile, "logo_url")) or None,
        website=_text(_field(business_profile, "website")) or None,
        tax_number=_text(_field(business_profile, "tax_number")) or None,
    )

    client = ClientInfo(
        name=_text(_field(invoice_record, "buyer_name")),
        email=_text(_field(invoice_record, "buyer_email")) or None,
        address=_text(_field(invoice_record, "buyer_address")) or None,
        phone=_text(_field(client_record, "phone")) or None,
    )

    service_name = _text(_field(invoice_record, "service_name"))
    payment_link = _text(_field(invoice_record, "payment_link")) or None
    meta = InvoiceMeta(
        id=_text(_field(invoice_record, "id")),
        number=extract_invoice_number(service_name),
        issued_date=_issued_date(invoice_record, today),
        due_date=_due_date(invoice_record),
        currency=_text(_field(invoice_record, "currency")).upper() or DEFAULT_CURRENCY,
        status=_status(invoice_record),
        account_no=_text(_field(invoice_record, "account_no")) or None,
        payment_link=payment_link,
        notes=_text(_field(invoice_record, "notes")) or None,
    )

    qty = _quantity(_field(invoice_record, "qty", 1))
    unit_price = round_money(_field(invoice_record, "unit_net_price", 0))
    tax_rate = to_decimal(_field(invoice_record, "vat_rate", 0))
    item = LineItem(
        description=clean_service_name(service_name),
        quantity=qty,
        unit_price=unit_price,
        total=line_total(qty, unit_price),
        tax_rate=tax_rate,
    )

    computed = compute_totals(unit_price, qty, tax_rate)
    stored_tax = _field(invoice_record, "vat_amount")
    stored_total = _field(invoice_record, "total_gross_price")
    totals = DocumentTotals(
        subtotal=item.total,
        tax_amount=round_money(stored_tax) if stored_tax is not None else computed.tax_amount,
        tax_rate=tax_rate,
        grand_total=round_money(stored_total) if stored_total is not None else computed.grand_total,
    )
    if totals.tax_amount != computed.tax_amount or totals.grand_total != computed.grand_total:
        _LOGGER.warning(
            "Stored totals for invoice %s differ from recomputed (tax %s vs %s, total %s vs %s)",
            meta.id, totals.tax_amount, computed.tax_amount, totals.grand_total, computed.grand_total,
        )

    return InvoiceDocument(
        business=business,
        client=client,
        meta=meta,
        items=(item,),
        totals=totals,
        terms=DEFAULT_TERMS,
        payment_instructions=payment_instructions_for(payment_link),
    )


def document_from_form(snapshot: FormSnapshot, profile=None, *, now: datetime | None = None) -> InvoiceDocument:
    """Document for an unsaved form; totals are recomputed from the form values."""
    now = now or datetime.now()
    qty = _quantity(snapshot.qty)
    totals = compute_totals(snapshot.unit_net_price, qty, snapshot.vat_rate)
    record = {
        "id": f"preview-{int(now.timestamp() * 1000)}",
        "buyer_name": snapshot.buyer_name,
        "buyer_email": snapshot.buyer_email,
        "buyer_address": snapshot.buyer_address,
        "currency": snapshot.currency or DEFAULT_CURRENCY,
        "account_no": snapshot.account_no,
        "service_name": snapshot.service_name or PLACEHOLDER_SERVICE,
        "unit_net_price": snapshot.unit_net_price or 0,
        "vat_rate": snapshot.vat_rate or 0,
        "vat_amount": totals.tax_amount,
        "total_gross_price": totals.grand_total,
        "qty": qty,
        "payment_link": snapshot.payment_link,
        "issued_at": now,
        "due_date": snapshot.due_date,
        "status": snapshot.status or "draft",
        "notes": snapshot.notes,
    }
    return build_document(record, profile or DEFAULT_PREVIEW_PROFILE, today=now.date())


def totals_consistent(document: InvoiceDocument) -> bool:
    """Line, subtotal and grand-total arithmetic all agree to the cent."""
    for item in document.items:
        if abs(item.total - line_total(item.quantity, item.unit_price)) >= CENT:
            return False
    t = document.totals
    if abs(t.subtotal - sum_money(i.total for i in document.items)) >= CENT:
        return False
    if t.grand_total is None:
        return False
    return abs(t.grand_total - (t.subtotal + t.tax_amount - t.discount_amount)) < CENT
