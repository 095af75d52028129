# models.py
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    create_engine,
    String,
    Integer,
    Numeric,
    DateTime,
    Date,
    ForeignKey,
    UniqueConstraint,
    select,
)
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    mapped_column,
    relationship,
    sessionmaker,
)

# -----------------------------
# SQLAlchemy base
# -----------------------------
class Base(DeclarativeBase):
    pass


# -----------------------------
# Tables
# -----------------------------
class User(Base):
    """
    Login account plus the business profile printed on its invoices.
    Brand fields are optional; unset means "use the template's own look".
    """
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    username: Mapped[str] = mapped_column(String(80), unique=True, nullable=False, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    # Business profile
    business_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    business_email: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    business_phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    business_address: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    website: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    tax_number: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    logo_url: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    default_currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")

    # Branding
    brand_primary_color: Mapped[Optional[str]] = mapped_column(String(7), nullable=True)
    brand_secondary_color: Mapped[Optional[str]] = mapped_column(String(7), nullable=True)
    brand_font_family: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    preferred_template_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    clients: Mapped[list["Client"]] = relationship(back_populates="user")
    invoices: Mapped[list["Invoice"]] = relationship(back_populates="user")


class Client(Base):
    __tablename__ = "clients"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)

    name: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    email: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    address: Mapped[Optional[str]] = mapped_column(String, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    user: Mapped["User"] = relationship(back_populates="clients")


class InvoiceSequence(Base):
    """
    Last used sequence number per owner and year.
    Used to generate invoice numbers like INV-2024-0007.
    """
    __tablename__ = "invoice_sequences"
    __table_args__ = (UniqueConstraint("user_id", "year", name="uq_invoice_sequences_user_year"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    year: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    last_seq: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)


class Invoice(Base):
    """
    One billed service. The buyer fields are a snapshot taken when the invoice
    was written; later edits to the Client row do not change them.
    service_name holds "Invoice #<number> - <description>".
    """
    __tablename__ = "invoices"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    client_id: Mapped[Optional[int]] = mapped_column(ForeignKey("clients.id"), nullable=True, index=True)

    buyer_name: Mapped[str] = mapped_column(String(200), nullable=False)
    buyer_email: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    buyer_address: Mapped[Optional[str]] = mapped_column(String, nullable=True)

    service_name: Mapped[str] = mapped_column(String(500), nullable=False)
    unit_net_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0)
    qty: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    vat_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=0)
    vat_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0)
    total_gross_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")

    status: Mapped[str] = mapped_column(String(16), nullable=False, default="draft", index=True)
    account_no: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    payment_link: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(String, nullable=True)

    issued_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    due_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    user: Mapped["User"] = relationship(back_populates="invoices")
    client: Mapped[Optional["Client"]] = relationship()


# -----------------------------
# Engine / session
# -----------------------------
def make_engine(db_url: str, echo: bool = False):
    """
    Create SQLAlchemy engine.
    Note: SQLite path must exist (instance/ folder). db_init.py creates it.
    """
    return create_engine(db_url, echo=echo, future=True)


def make_session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


# -----------------------------
# Invoice number generator
# -----------------------------
def next_invoice_number(session, user_id: int, year: int, seq_width: int = 4) -> str:
    """
    Returns next invoice number like INV-2024-0001.
    Uses a per-owner, per-year counter in invoice_sequences.

    In Postgres this is safe under concurrency when run inside a transaction.
    In SQLite, writes are serialized, so it's also effectively safe.
    """
    seq_row = session.execute(
        select(InvoiceSequence).where(
            InvoiceSequence.user_id == user_id,
            InvoiceSequence.year == year,
        )
    ).scalar_one_or_none()

    if seq_row is None:
        seq_row = InvoiceSequence(user_id=user_id, year=year, last_seq=0)
        session.add(seq_row)
        session.flush()  # ensure it has an id

    seq_row.last_seq += 1
    session.flush()

    return f"INV-{year}-{seq_row.last_seq:0{seq_width}d}"
