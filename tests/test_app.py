from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

import pytest

from app import create_app
from invoice_document import compose_service_name
from models import Invoice, User


@pytest.fixture
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("INITIAL_ADMIN_USERNAME", "admin")
    monkeypatch.setenv("INITIAL_ADMIN_PASSWORD", "changeme")
    app = create_app({
        "TESTING": True,
        "SECRET_KEY": "test",
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{(tmp_path / 'app.db').as_posix()}",
        "EXPORTS_DIR": str(tmp_path / "exports"),
        "UPLOADS_DIR": str(tmp_path / "uploads"),
    })

    Session = app.extensions["db_session"]
    with Session() as s:
        admin = s.query(User).filter(User.username == "admin").one()
        admin.business_name = "Acme Studio"
        admin.business_email = "billing@acme.test"
        other = User(username="other", password_hash="x")
        s.add(other)
        s.flush()
        s.add_all([
            _invoice(admin.id, "Jane Doe"),
            _invoice(other.id, "Someone Else"),
            _invoice(admin.id, ""),
        ])
        s.commit()
    return app


def _invoice(user_id: int, buyer: str) -> Invoice:
    return Invoice(
        user_id=user_id,
        buyer_name=buyer,
        buyer_email="jane@example.com",
        service_name=compose_service_name("INV-2024-0007", "Website redesign"),
        unit_net_price=Decimal("1500.00"),
        qty=1,
        vat_rate=Decimal("10"),
        vat_amount=Decimal("150.00"),
        total_gross_price=Decimal("1650.00"),
        currency="USD",
        status="sent",
        issued_at=datetime(2024, 1, 15, 10, 30),
        due_date=date(2024, 2, 14),
    )


@pytest.fixture
def client(app):
    c = app.test_client()
    resp = c.post("/login", json={"username": "admin", "password": "changeme"})
    assert resp.status_code == 200
    return c


def test_login_rejects_bad_password(app) -> None:
    resp = app.test_client().post("/login", json={"username": "admin", "password": "wrong"})
    assert resp.status_code == 401
    assert resp.get_json()["ok"] is False


def test_invoice_routes_require_login(app) -> None:
    resp = app.test_client().get("/invoices/1/pdf")
    assert resp.status_code == 401
    assert resp.get_json() == {"error": "login_required"}


def test_templates_listing(app) -> None:
    data = app.test_client().get("/templates").get_json()
    assert data["default"] == "classic-professional"
    ids = [t["id"] for cat in data["categories"] for t in cat["templates"]]
    assert sorted(ids) == sorted(["classic-professional", "business-professional", "modern-bold", "minimal-clean"])

    detail = app.test_client().get("/templates/modern-bold").get_json()
    assert detail["category"] == "modern"
    assert detail["config"]["colors"]["primary"] == "#7C3AED"
    assert app.test_client().get("/templates/nope").status_code == 404


def test_download_pdf(client) -> None:
    resp = client.get("/invoices/1/pdf")

    assert resp.status_code == 200
    assert resp.mimetype == "application/pdf"
    assert resp.data.startswith(b"%PDF")
    disposition = resp.headers["Content-Disposition"]
    assert "attachment" in disposition
    assert "invoice-INV-2024-0007-Jane-Doe-" in disposition


def test_other_users_invoice_is_hidden(client) -> None:
    assert client.get("/invoices/2/pdf").status_code == 404
    assert client.get("/invoices/999/pdf").status_code == 404


def test_invalid_invoice_returns_errors(client) -> None:
    resp = client.get("/invoices/3/pdf")
    assert resp.status_code == 422
    assert resp.get_json()["errors"] == ["Client name is required"]


def test_unknown_template_strict_and_lenient(client) -> None:
    strict = client.get("/invoices/1/pdf?template_id=nope&strict=1")
    assert strict.status_code == 404
    assert strict.get_json()["template_id"] == "nope"

    assert client.get("/invoices/1/pdf?template_id=nope").status_code == 200


def test_stored_invoice_preview(client) -> None:
    resp = client.get("/invoices/1/preview?template_id=minimal-clean&scale=1.0")
    html = resp.get_data(as_text=True)
    assert resp.status_code == 200
    assert 'data-template="minimal-clean"' in html
    assert 'data-scale="1.00"' in html
    assert "$1,650.00" in html
    assert "Acme Studio" in html


def test_form_preview(client) -> None:
    resp = client.post("/preview", json={
        "invoice": {
            "buyer_name": "Jane Doe",
            "service_name": "Logo design",
            "unit_net_price": "200",
            "qty": 2,
            "vat_rate": "10",
        },
        "template_id": "modern-bold",
    })
    html = resp.get_data(as_text=True)
    assert resp.status_code == 200
    assert "$440.00" in html
    assert "Acme Studio" in html


def test_logout(client) -> None:
    assert client.get("/logout").status_code == 302
    assert client.get("/invoices/1/pdf").status_code == 401
