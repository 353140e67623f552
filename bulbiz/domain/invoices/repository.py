"""Invoice repository - Database operations for factures"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models_invoice import Invoice, InvoiceLine
from ...shared.numbering import next_document_number
from ..quotes.repository import apply_totals


class InvoiceRepository:
    """Repository for invoice database operations"""

    @staticmethod
    def get_invoice(db: Session, invoice_id: str, user_id: str) -> Optional[Invoice]:
        return db.query(Invoice).filter(Invoice.id == invoice_id, Invoice.user_id == user_id).first()

    @staticmethod
    def get_by_client_token(db: Session, token: str) -> Optional[Invoice]:
        if not token:
            return None
        return db.query(Invoice).filter(Invoice.client_token == token).first()

    @staticmethod
    def list_invoices(db: Session, user_id: str, dossier_id: Optional[str] = None) -> list[Invoice]:
        query = db.query(Invoice).filter(Invoice.user_id == user_id)
        if dossier_id:
            query = query.filter(Invoice.dossier_id == dossier_id)
        return query.order_by(Invoice.created_at.desc()).all()

    @staticmethod
    def next_number(db: Session, user_id: str) -> str:
        return next_document_number(db, Invoice.invoice_number, Invoice.user_id, user_id, "FAC")

    @staticmethod
    def create_invoice(db: Session, user_id: str, dossier_id: str, **invoice_data) -> Invoice:
        invoice = Invoice(user_id=user_id, dossier_id=dossier_id, **invoice_data)
        db.add(invoice)
        db.flush()
        return invoice

    @staticmethod
    def replace_lines(db: Session, invoice: Invoice, lines: list[dict]) -> None:
        """Swap every line; under 293B every rate is forced to 0 before totals"""
        invoice.lines.clear()
        db.flush()
        for index, line in enumerate(lines):
            if invoice.vat_mode == "no_vat_293b":
                line = {**line, "vat_rate": 0}
            invoice.lines.append(InvoiceLine(sort_order=index, **line))
        apply_totals(invoice, invoice.lines)

    @staticmethod
    def delete_invoice(db: Session, invoice: Invoice) -> None:
        db.delete(invoice)
