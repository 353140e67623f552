"""Quote domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

from ...pricing import UNIT_OPTIONS

LineType = Literal["standard", "main_oeuvre", "deplacement"]
QuoteStatus = Literal["brouillon", "envoye", "signe", "refuse"]


class LineInput(BaseModel):
    """One devis or facture line as edited by the artisan"""

    label: str = Field("", max_length=255)
    description: Optional[str] = None
    qty: float = 1
    unit: str = "u"
    unit_price: float = 0
    vat_rate: float = 10
    discount: float = Field(0, ge=0, le=100)
    type: LineType = "standard"

    @field_validator("unit")
    @classmethod
    def validate_unit(cls, v):
        if v not in UNIT_OPTIONS:
            raise ValueError(f"Unité invalide: {v}")
        return v


class LineResponse(BaseModel):
    id: str
    sort_order: int
    label: str
    description: Optional[str] = None
    qty: float
    unit: str
    unit_price: float
    vat_rate: float
    discount: float
    type: str

    class Config:
        from_attributes = True


class QuoteCreate(BaseModel):
    dossier_id: str
    template: Optional[str] = None
    notes: Optional[str] = None
    validity_days: Optional[int] = Field(None, ge=1, le=365)
    lines: Optional[list[LineInput]] = None


class QuoteUpdate(BaseModel):
    notes: Optional[str] = None
    validity_days: Optional[int] = Field(None, ge=1, le=365)


class LinesReplace(BaseModel):
    lines: list[LineInput]


class QuoteStatusRequest(BaseModel):
    status: QuoteStatus


class QuoteResponse(BaseModel):
    id: str
    dossier_id: str
    quote_number: str
    status: str
    total_ht: float
    total_tva: float
    total_ttc: float
    notes: Optional[str] = None
    validity_days: Optional[int] = None
    pdf_url: Optional[str] = None
    is_imported: bool = False
    sent_at: Optional[datetime] = None
    signed_at: Optional[datetime] = None
    refused_at: Optional[datetime] = None
    refused_reason: Optional[str] = None
    signature_token_expires_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    lines: list[LineResponse] = []

    class Config:
        from_attributes = True


class QuoteTemplateResponse(BaseModel):
    key: str
    label: str
    items: list[dict]
