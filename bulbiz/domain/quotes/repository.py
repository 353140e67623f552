"""Quote repository - Database operations for devis"""

from typing import Iterable, Optional

from sqlalchemy.orm import Session

from ...models_invoice import Invoice, Quote, QuoteLine
from ...pricing import calc_totals
from ...shared.numbering import next_document_number


def apply_totals(document, lines: Iterable) -> None:
    """Store the derived totals of a devis or facture (floats in the database)"""
    totals = calc_totals(lines)
    document.total_ht = float(totals["total_ht"])
    document.total_tva = float(totals["total_tva"])
    document.total_ttc = float(totals["total_ttc"])


class QuoteRepository:
    """Repository for quote database operations"""

    @staticmethod
    def get_quote(db: Session, quote_id: str, user_id: str) -> Optional[Quote]:
        return db.query(Quote).filter(Quote.id == quote_id, Quote.user_id == user_id).first()

    @staticmethod
    def get_by_signature_token(db: Session, token: str) -> Optional[Quote]:
        if not token:
            return None
        return db.query(Quote).filter(Quote.signature_token == token).first()

    @staticmethod
    def list_quotes(db: Session, user_id: str, dossier_id: Optional[str] = None) -> list[Quote]:
        query = db.query(Quote).filter(Quote.user_id == user_id)
        if dossier_id:
            query = query.filter(Quote.dossier_id == dossier_id)
        return query.order_by(Quote.created_at.desc()).all()

    @staticmethod
    def next_number(db: Session, user_id: str) -> str:
        return next_document_number(db, Quote.quote_number, Quote.user_id, user_id, "DEV")

    @staticmethod
    def create_quote(db: Session, user_id: str, dossier_id: str, **quote_data) -> Quote:
        """Stage a new quote (flushed so it has an id, not committed)"""
        quote = Quote(user_id=user_id, dossier_id=dossier_id, **quote_data)
        db.add(quote)
        db.flush()
        return quote

    @staticmethod
    def replace_lines(db: Session, quote: Quote, lines: list[dict]) -> None:
        """Swap every line and recompute the totals (staged)"""
        quote.lines.clear()
        db.flush()
        for index, line in enumerate(lines):
            quote.lines.append(QuoteLine(sort_order=index, **line))
        apply_totals(quote, quote.lines)

    @staticmethod
    def delete_quote(db: Session, quote: Quote) -> None:
        db.query(Invoice).filter(Invoice.quote_id == quote.id).update({Invoice.quote_id: None})
        db.delete(quote)
