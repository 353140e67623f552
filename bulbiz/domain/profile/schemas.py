"""Profile schemas - artisan identity and defaults"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ...pricing import VAT_RATES
from ..dossiers.schemas import _check_phone


class ProfileUpdate(BaseModel):
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    company_name: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = None
    address: Optional[str] = None
    siret: Optional[str] = Field(None, max_length=20)
    tva_intracom: Optional[str] = Field(None, max_length=30)
    email_signature: Optional[str] = Field(None, max_length=5000)

    default_vat_rate: Optional[float] = None
    default_validity_days: Optional[int] = Field(None, ge=1, le=365)
    vat_applicable: Optional[bool] = None
    payment_terms_default: Optional[str] = Field(None, max_length=2000)

    client_link_validity_days: Optional[int] = Field(None, ge=1, le=90)
    auto_relance_enabled: Optional[bool] = None
    relance_delay_devis_1: Optional[int] = Field(None, ge=1, le=60)
    relance_delay_devis_2: Optional[int] = Field(None, ge=1, le=60)
    sms_enabled: Optional[bool] = None

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v):
        return _check_phone(v)

    @field_validator("siret")
    @classmethod
    def validate_siret(cls, v):
        if v is None:
            return v
        digits = v.replace(" ", "")
        if not digits.isdigit() or len(digits) != 14:
            raise ValueError("Le SIRET doit contenir 14 chiffres")
        return digits

    @field_validator("default_vat_rate")
    @classmethod
    def validate_vat_rate(cls, v):
        if v is not None and v not in VAT_RATES:
            raise ValueError(f"Taux de TVA invalide (autorisés : {', '.join(str(r) for r in VAT_RATES)})")
        return v


class ProfileResponse(BaseModel):
    id: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    company_name: Optional[str] = None
    artisan_name: str
    phone: Optional[str] = None
    address: Optional[str] = None
    siret: Optional[str] = None
    tva_intracom: Optional[str] = None
    email_signature: Optional[str] = None

    default_vat_rate: Optional[float] = None
    default_validity_days: Optional[int] = None
    vat_applicable: Optional[bool] = None
    payment_terms_default: Optional[str] = None

    client_link_validity_days: Optional[int] = None
    auto_relance_enabled: Optional[bool] = None
    relance_delay_devis_1: Optional[int] = None
    relance_delay_devis_2: Optional[int] = None
    sms_enabled: Optional[bool] = None

    subscription_plan: Optional[str] = None
    subscription_status: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
