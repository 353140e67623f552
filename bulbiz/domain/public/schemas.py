"""Public (client link) schemas - no authentication, token in every request"""

from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

from ...shared.validators import validate_email
from ..dossiers.schemas import Category, Urgency, _check_phone


class ClientFormSubmit(BaseModel):
    token: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1, max_length=5000)
    rgpd_consent: bool = False

    client_first_name: Optional[str] = Field(None, max_length=100)
    client_last_name: Optional[str] = Field(None, max_length=100)
    client_phone: Optional[str] = None
    client_email: Optional[str] = None
    address: Optional[str] = None
    address_line: Optional[str] = Field(None, max_length=255)
    postal_code: Optional[str] = Field(None, max_length=10)
    city: Optional[str] = Field(None, max_length=100)
    floor_number: Optional[int] = None
    has_elevator: Optional[bool] = None
    access_code: Optional[str] = Field(None, max_length=50)
    housing_type: Optional[str] = Field(None, max_length=50)
    occupant_type: Optional[str] = Field(None, max_length=50)
    category: Optional[Category] = None
    urgency: Optional[Urgency] = None

    @field_validator("description")
    @classmethod
    def strip_description(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Description requise")
        return v

    @field_validator("client_phone")
    @classmethod
    def validate_phone(cls, v):
        return _check_phone(v)

    @field_validator("client_email")
    @classmethod
    def validate_client_email(cls, v):
        return validate_email(v)


class QuoteDecision(BaseModel):
    token: str = Field(..., min_length=1)
    action: Literal["accept", "refuse"]
    reason: Optional[str] = Field(None, max_length=2000)


class SlotSelection(BaseModel):
    token: str = Field(..., min_length=1)
    slot_id: str


class PublicSlot(BaseModel):
    id: str
    slot_date: date
    time_start: str
    time_end: str
    selected_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PublicLine(BaseModel):
    label: str
    description: Optional[str] = None
    qty: float
    unit: str
    unit_price: float
    vat_rate: float
    discount: float

    class Config:
        from_attributes = True
