from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import Decimal
from types import SimpleNamespace

import pytest

from conftest import make_record
from invoice_document import (
    DEFAULT_PAYMENT_INSTRUCTIONS,
    DEFAULT_TERMS,
    DocumentMappingError,
    FormSnapshot,
    build_document,
    clean_service_name,
    document_from_form,
    extract_invoice_number,
    format_long_date,
    totals_consistent,
)


def test_stored_invoice_maps_number_and_description(document) -> None:
    assert document.meta.number == "INV-2024-0007"
    assert len(document.items) == 1
    item = document.items[0]
    assert item.description == "Website redesign"
    assert item.quantity == 1
    assert item.unit_price == Decimal("1500.00")
    assert item.total == Decimal("1500.00")

    assert document.totals.subtotal == Decimal("1500.00")
    assert document.totals.tax_amount == Decimal("150.00")
    assert document.totals.grand_total == Decimal("1650.00")
    assert totals_consistent(document)


def test_identity_and_dates(document) -> None:
    assert document.business.name == "Acme Studio"
    assert document.business.address == "1 Main Street\nSpringfield, IL 62701"
    assert document.client.name == "Jane Doe"
    assert document.client.email == "jane@example.com"
    assert document.meta.issued_date == "January 15, 2024"
    assert document.meta.due_date == "February 14, 2024"
    assert document.meta.status == "sent"
    assert document.meta.currency == "USD"
    assert document.terms == DEFAULT_TERMS
    assert document.payment_instructions == DEFAULT_PAYMENT_INSTRUCTIONS


def test_service_name_without_number() -> None:
    doc = build_document(make_record(service_name="Consulting work"), today=date(2024, 3, 1))

    assert doc.meta.number == "INV-0000"
    assert doc.items[0].description == "Consulting work"


def test_number_helpers() -> None:
    assert extract_invoice_number("Re: Invoice #INV-2023-0042 - Audit") == "INV-2023-0042"
    assert extract_invoice_number(None) == "INV-0000"
    # only a leading prefix is stripped
    assert clean_service_name("Re: Invoice #INV-2023-0042 - Audit") == "Re: Invoice #INV-2023-0042 - Audit"
    assert clean_service_name("") == "Professional Services"
    assert clean_service_name("Invoice #INV-2024-0001 - ") == "Professional Services"


def test_missing_profile_uses_placeholder_business() -> None:
    doc = build_document(make_record(), None, today=date(2024, 3, 1))
    assert doc.business.name == "Your Business"
    assert doc.business.email == ""


def test_format_long_date() -> None:
    assert format_long_date("2024-01-05") == "January 5, 2024"
    assert format_long_date("2024-01-15T23:59:59Z") == "January 15, 2024"
    assert format_long_date(datetime(2023, 12, 31, 8, 0)) == "December 31, 2023"
    with pytest.raises(ValueError):
        format_long_date("yesterday")


def test_issue_date_fallbacks() -> None:
    today = date(2024, 3, 1)
    record = make_record(issued_at=None, created_at="2024-02-29T12:00:00")
    assert build_document(record, today=today).meta.issued_date == "February 29, 2024"

    bad = make_record(issued_at="not-a-date")
    assert build_document(bad, today=today).meta.issued_date == "March 1, 2024"

    assert build_document(make_record(due_date="soon"), today=today).meta.due_date is None


def test_totals_recomputed_when_not_stored() -> None:
    record = make_record(vat_rate="10", vat_amount=None, total_gross_price=None, qty=3)
    doc = build_document(record, today=date(2024, 3, 1))
    assert doc.items[0].total == Decimal("300.00")
    assert doc.totals.tax_amount == Decimal("30.00")
    assert doc.totals.grand_total == Decimal("330.00")
    assert totals_consistent(doc)


def test_stored_totals_win_but_mismatch_is_logged(caplog) -> None:
    record = make_record(total_gross_price="999.00")
    with caplog.at_level(logging.WARNING, logger="invoice_document"):
        doc = build_document(record, today=date(2024, 3, 1))
    assert doc.totals.grand_total == Decimal("999.00")
    assert "differ" in caplog.text
    assert not totals_consistent(doc)


def test_quantity_and_status_normalised() -> None:
    doc = build_document(make_record(qty=0, status="Weird"), today=date(2024, 3, 1))
    assert doc.items[0].quantity == 1
    assert doc.meta.status == "draft"

    assert build_document(make_record(status="PAID"), today=date(2024, 3, 1)).meta.status == "paid"


def test_negative_quantity_is_kept() -> None:
    doc = build_document(make_record(qty=-3, total_gross_price="-300"), today=date(2024, 3, 1))
    assert doc.items[0].quantity == -3
    assert doc.items[0].total == Decimal("-300.00")
    assert build_document(make_record(qty=None), today=date(2024, 3, 1)).items[0].quantity == 1
    assert build_document(make_record(qty=""), today=date(2024, 3, 1)).items[0].quantity == 1


def test_payment_link_instructions() -> None:
    doc = build_document(make_record(payment_link="https://pay.example.com/1"), today=date(2024, 3, 1))
    assert doc.payment_instructions == "Please use the following link to pay: https://pay.example.com/1"
    assert doc.meta.payment_link == "https://pay.example.com/1"


def test_buyer_snapshot_wins_over_client_record() -> None:
    client = {"name": "Renamed Client Ltd", "phone": "+1 555 0100"}
    doc = build_document(make_record(), None, client, today=date(2024, 3, 1))
    assert doc.client.name == "Client Co"
    assert doc.client.phone == "+1 555 0100"


def test_orm_like_objects_are_accepted() -> None:
    row = SimpleNamespace(**make_record(id=12))
    owner = SimpleNamespace(business_name="Row Business", business_email="row@example.com")
    doc = build_document(row, owner, today=date(2024, 3, 1))
    assert doc.meta.id == "12"
    assert doc.business.name == "Row Business"


def test_none_record_is_rejected() -> None:
    with pytest.raises(DocumentMappingError):
        build_document(None)


def test_document_from_form_recomputes_totals() -> None:
    snapshot = FormSnapshot.from_dict({
        "buyer_name": "Jane Doe",
        "service_name": "Logo design",
        "unit_net_price": "200",
        "qty": "2",
        "vat_rate": "10",
        "unexpected": "ignored",
        "notes": None,
    })
    doc = document_from_form(snapshot, now=datetime(2024, 5, 1, 9, 30))

    assert doc.meta.number == "INV-0000"
    assert doc.meta.id.startswith("preview-")
    assert doc.meta.issued_date == "May 1, 2024"
    assert doc.business.name == "Your Business Name"
    assert doc.items[0].description == "Logo design"
    assert doc.totals.grand_total == Decimal("440.00")
    assert totals_consistent(doc)


def test_empty_form_still_builds() -> None:
    doc = document_from_form(FormSnapshot(), now=datetime(2024, 5, 1))
    assert doc.items[0].description == "Professional Services"
    assert doc.client.name == ""
    assert doc.totals.grand_total == Decimal("0.00")
