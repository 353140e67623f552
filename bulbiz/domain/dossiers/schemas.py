"""Dossier domain schemas - Pydantic models for validation"""

from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

from ...shared.validators import is_valid_phone, validate_email

Category = Literal["wc", "fuite", "chauffe_eau", "evier", "douche", "autre"]
Urgency = Literal["aujourdhui", "48h", "semaine"]
Source = Literal["lien_client", "manuel", "email"]
RelanceType = Literal["info_manquante", "devis_non_signe"]


def _check_phone(v: Optional[str]) -> Optional[str]:
    if v and not is_valid_phone(v):
        raise ValueError("Numéro de téléphone invalide")
    return v or None


class DossierBase(BaseModel):
    client_first_name: Optional[str] = Field(None, max_length=100)
    client_last_name: Optional[str] = Field(None, max_length=100)
    client_phone: Optional[str] = None
    client_email: Optional[str] = None

    address: Optional[str] = None
    address_line: Optional[str] = Field(None, max_length=255)
    postal_code: Optional[str] = Field(None, max_length=10)
    city: Optional[str] = Field(None, max_length=100)
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    floor_number: Optional[int] = None
    has_elevator: Optional[bool] = None
    access_code: Optional[str] = Field(None, max_length=50)
    housing_type: Optional[str] = Field(None, max_length=50)
    occupant_type: Optional[str] = Field(None, max_length=50)

    description: Optional[str] = Field(None, max_length=5000)

    @field_validator("client_phone")
    @classmethod
    def validate_phone(cls, v):
        return _check_phone(v)

    @field_validator("client_email")
    @classmethod
    def validate_client_email(cls, v):
        return validate_email(v)


class DossierCreate(DossierBase):
    """Schema for creating a dossier (manual entry or parsed email)"""

    category: Category = "autre"
    urgency: Urgency = "semaine"
    source: Literal["manuel", "email"] = "manuel"


class DossierUpdate(DossierBase):
    """Schema for updating a dossier - status goes through /status"""

    category: Optional[Category] = None
    urgency: Optional[Urgency] = None
    appointment_notes: Optional[str] = None


class DossierResponse(BaseModel):
    id: str
    client_first_name: Optional[str] = None
    client_last_name: Optional[str] = None
    client_phone: Optional[str] = None
    client_email: Optional[str] = None
    address: Optional[str] = None
    address_line: Optional[str] = None
    postal_code: Optional[str] = None
    city: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    floor_number: Optional[int] = None
    has_elevator: Optional[bool] = None
    access_code: Optional[str] = None
    housing_type: Optional[str] = None
    occupant_type: Optional[str] = None
    category: str
    urgency: str
    description: Optional[str] = None
    source: str
    status: str
    status_changed_at: Optional[datetime] = None
    appointment_status: str
    appointment_date: Optional[date] = None
    appointment_time_start: Optional[str] = None
    appointment_time_end: Optional[str] = None
    appointment_source: Optional[str] = None
    appointment_confirmed_at: Optional[datetime] = None
    appointment_notes: Optional[str] = None
    client_token_expires_at: Optional[datetime] = None
    relance_active: Optional[bool] = None
    relance_count: Optional[int] = None
    last_relance_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class DossierListResponse(BaseModel):
    items: list[DossierResponse]
    total: int
    page: int
    page_size: int


class StatusChangeRequest(BaseModel):
    status: str


class NoteCreate(BaseModel):
    note: str = Field(..., min_length=1, max_length=5000)


class RelanceToggleRequest(BaseModel):
    active: bool


class RelanceSendRequest(BaseModel):
    type: RelanceType


class ClientLinkRequest(BaseModel):
    force_regenerate: bool = False


class HistoriqueResponse(BaseModel):
    id: int
    action: str
    details: Optional[str] = None
    user_id: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class MediaResponse(BaseModel):
    id: str
    media_type: str
    media_category: Optional[str] = None
    file_name: Optional[str] = None
    file_url: Optional[str] = None
    file_size: Optional[int] = None
    file_type: Optional[str] = None
    duration_seconds: Optional[int] = None
    note: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ParseEmailRequest(BaseModel):
    raw: str = Field(..., min_length=1, max_length=50000)


class GeocodeRequest(BaseModel):
    address: str = Field(..., min_length=1, max_length=500)


class SummaryResponse(BaseModel):
    headline: str
    bullets: list[str]


class DashboardResponse(BaseModel):
    statuses: dict[str, int]
    appointments: dict[str, int]
    total: int
