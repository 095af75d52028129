from __future__ import annotations

import sys
from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from invoice_document import build_document, compose_service_name
from invoice_templates import build_default_registry


@pytest.fixture
def registry():
    return build_default_registry()


@pytest.fixture
def profile() -> dict:
    return {
        "business_name": "Acme Studio",
        "business_email": "billing@acme.test",
        "business_phone": "+1 (555) 010-2030",
        "business_address": "1 Main Street\nSpringfield, IL 62701",
    }


@pytest.fixture
def invoice_record() -> dict:
    return {
        "id": 7,
        "buyer_name": "Jane Doe",
        "buyer_email": "jane@example.com",
        "buyer_address": "42 Elm Road\nShelbyville",
        "service_name": compose_service_name("INV-2024-0007", "Website redesign"),
        "unit_net_price": "1500.00",
        "qty": 1,
        "vat_rate": "10",
        "vat_amount": "150.00",
        "total_gross_price": "1650.00",
        "currency": "USD",
        "status": "sent",
        "issued_at": "2024-01-15T10:30:00Z",
        "due_date": "2024-02-14",
        "notes": "Thanks for your business.",
    }


@pytest.fixture
def document(invoice_record, profile):
    return build_document(invoice_record, profile, today=date(2024, 1, 20))


def make_record(**overrides) -> dict:
    record = {
        "id": 1,
        "buyer_name": "Client Co",
        "service_name": compose_service_name("INV-2024-0001", "Consulting"),
        "unit_net_price": Decimal("100.00"),
        "qty": 1,
        "vat_rate": Decimal("0"),
        "vat_amount": Decimal("0.00"),
        "total_gross_price": Decimal("100.00"),
        "currency": "USD",
        "status": "draft",
        "issued_at": "2024-03-01",
    }
    record.update(overrides)
    return record
