"""
Devis (quote) and facture (invoice) models
Totals are derived from the lines by pricing.calc_totals and never set directly
"""

from sqlalchemy import Boolean, Column, Date, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from .database import Base
from .models import generate_uuid, utcnow


class Quote(Base):
    """Devis attached to a dossier"""

    __tablename__ = "quotes"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    dossier_id = Column(String(36), ForeignKey("dossiers.id"), nullable=False, index=True)

    quote_number = Column(String(50), nullable=False, index=True)  # DEV-2026-001, per user
    status = Column(String(20), nullable=False, default="brouillon")  # brouillon, envoye, signe, refuse
    status_changed_at = Column(DateTime, default=utcnow)

    # Derived totals
    total_ht = Column(Float, default=0)
    total_tva = Column(Float, default=0)
    total_ttc = Column(Float, default=0)

    notes = Column(Text, nullable=True)
    validity_days = Column(Integer, default=30)
    pdf_url = Column(String(1000), nullable=True)  # Imported or signed PDF
    is_imported = Column(Boolean, default=False)

    # Lifecycle timestamps
    sent_at = Column(DateTime, nullable=True)
    signed_at = Column(DateTime, nullable=True)
    accepted_at = Column(DateTime, nullable=True)
    refused_at = Column(DateTime, nullable=True)
    refused_reason = Column(Text, nullable=True)
    accepted_ip = Column(String(100), nullable=True)
    accepted_user_agent = Column(String(500), nullable=True)

    # Client signature link (30 days)
    signature_token = Column(String(64), unique=True, nullable=True, index=True)
    signature_token_expires_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    dossier = relationship("Dossier", back_populates="quotes")
    lines = relationship(
        "QuoteLine",
        back_populates="quote",
        order_by="QuoteLine.sort_order",
        cascade="all, delete-orphan",
    )


class QuoteLine(Base):
    __tablename__ = "quote_lines"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    quote_id = Column(String(36), ForeignKey("quotes.id"), nullable=False, index=True)
    sort_order = Column(Integer, default=0)
    label = Column(String(255), nullable=False, default="")
    description = Column(Text, nullable=True)
    qty = Column(Float, default=1)
    unit = Column(String(20), default="u")
    unit_price = Column(Float, default=0)
    vat_rate = Column(Float, default=10)
    discount = Column(Float, default=0)  # percent
    type = Column(String(20), default="standard")  # standard, main_oeuvre, deplacement

    quote = relationship("Quote", back_populates="lines")


class Invoice(Base):
    """Facture - client and artisan details are snapshotted at creation"""

    __tablename__ = "invoices"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    dossier_id = Column(String(36), ForeignKey("dossiers.id"), nullable=False, index=True)
    quote_id = Column(String(36), ForeignKey("quotes.id"), nullable=True)

    invoice_number = Column(String(50), nullable=False, index=True)  # FAC-2026-001, per user
    status = Column(String(20), nullable=False, default="draft")  # draft, sent, paid
    status_changed_at = Column(DateTime, default=utcnow)

    total_ht = Column(Float, default=0)
    total_tva = Column(Float, default=0)
    total_ttc = Column(Float, default=0)
    vat_mode = Column(String(20), default="normal")  # normal, no_vat_293b
    payment_terms = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    pdf_url = Column(String(1000), nullable=True)
    is_imported = Column(Boolean, default=False)

    issue_date = Column(Date, nullable=True)
    due_date = Column(Date, nullable=True)
    sent_at = Column(DateTime, nullable=True)
    paid_at = Column(DateTime, nullable=True)

    # Client snapshot
    client_type = Column(String(20), default="individual")  # individual, business
    client_first_name = Column(String(100), nullable=True)
    client_last_name = Column(String(100), nullable=True)
    client_company = Column(String(255), nullable=True)
    client_address = Column(Text, nullable=True)
    client_phone = Column(String(30), nullable=True)
    client_email = Column(String(255), nullable=True)

    # Artisan snapshot
    artisan_name = Column(String(255), nullable=True)
    artisan_company = Column(String(255), nullable=True)
    artisan_address = Column(Text, nullable=True)
    artisan_phone = Column(String(30), nullable=True)
    artisan_email = Column(String(255), nullable=True)
    artisan_siret = Column(String(20), nullable=True)
    artisan_tva_intracom = Column(String(30), nullable=True)

    # Client view link (90 days)
    client_token = Column(String(64), unique=True, nullable=True, index=True)
    client_token_expires_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    dossier = relationship("Dossier", back_populates="invoices")
    lines = relationship(
        "InvoiceLine",
        back_populates="invoice",
        order_by="InvoiceLine.sort_order",
        cascade="all, delete-orphan",
    )


class InvoiceLine(Base):
    __tablename__ = "invoice_lines"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    invoice_id = Column(String(36), ForeignKey("invoices.id"), nullable=False, index=True)
    sort_order = Column(Integer, default=0)
    label = Column(String(255), nullable=False, default="")
    description = Column(Text, nullable=True)
    qty = Column(Float, default=1)
    unit = Column(String(20), default="u")
    unit_price = Column(Float, default=0)
    vat_rate = Column(Float, default=10)
    discount = Column(Float, default=0)
    type = Column(String(20), default="standard")

    invoice = relationship("Invoice", back_populates="lines")
