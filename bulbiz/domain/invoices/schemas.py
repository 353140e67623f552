"""Invoice domain schemas - Pydantic models for validation"""

from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

from ..quotes.schemas import LineInput, LineResponse

InvoiceStatus = Literal["draft", "sent", "paid"]


class InvoiceCreate(BaseModel):
    """Blank facture, or a copy of a devis when quote_id is given"""

    dossier_id: str
    quote_id: Optional[str] = None
    client_type: Literal["individual", "business"] = "individual"
    client_company: Optional[str] = Field(None, max_length=255)
    notes: Optional[str] = None
    payment_terms: Optional[str] = None
    due_date: Optional[date] = None
    lines: Optional[list[LineInput]] = None


class InvoiceUpdate(BaseModel):
    client_type: Optional[Literal["individual", "business"]] = None
    client_company: Optional[str] = Field(None, max_length=255)
    client_address: Optional[str] = None
    notes: Optional[str] = None
    payment_terms: Optional[str] = None
    issue_date: Optional[date] = None
    due_date: Optional[date] = None


class InvoiceStatusRequest(BaseModel):
    status: InvoiceStatus


class InvoiceResponse(BaseModel):
    id: str
    dossier_id: str
    quote_id: Optional[str] = None
    invoice_number: str
    status: str
    total_ht: float
    total_tva: float
    total_ttc: float
    vat_mode: str
    payment_terms: Optional[str] = None
    notes: Optional[str] = None
    pdf_url: Optional[str] = None
    is_imported: bool = False
    issue_date: Optional[date] = None
    due_date: Optional[date] = None
    sent_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None

    client_type: Optional[str] = None
    client_first_name: Optional[str] = None
    client_last_name: Optional[str] = None
    client_company: Optional[str] = None
    client_address: Optional[str] = None
    client_phone: Optional[str] = None
    client_email: Optional[str] = None

    artisan_name: Optional[str] = None
    artisan_company: Optional[str] = None
    artisan_address: Optional[str] = None
    artisan_phone: Optional[str] = None
    artisan_email: Optional[str] = None
    artisan_siret: Optional[str] = None
    artisan_tva_intracom: Optional[str] = None

    client_token_expires_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    lines: list[LineResponse] = []

    class Config:
        from_attributes = True


class InvoiceTokenResponse(BaseModel):
    token: str
    expires_at: datetime
    view_url: str
