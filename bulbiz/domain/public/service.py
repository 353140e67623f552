"""Public service - read views and actions behind client tokens"""

import logging
from typing import Optional

from fastapi import HTTPException, UploadFile
from sqlalchemy.orm import Session

from ...models import Dossier
from ...models_invoice import Invoice, Quote
from ...services.client_tokens import ensure_token_valid
from ..appointments.repository import AppointmentRepository
from ..appointments.service import AppointmentService
from ..dossiers.repository import DossierRepository
from ..dossiers.service import store_media
from ..invoices.repository import InvoiceRepository
from ..lifecycle import LifecycleService
from ..quotes.repository import QuoteRepository
from .schemas import ClientFormSubmit

logger = logging.getLogger(__name__)

CLIENT_FIELDS = (
    "client_first_name",
    "client_last_name",
    "client_phone",
    "client_email",
    "address",
    "address_line",
    "postal_code",
    "city",
    "floor_number",
    "has_elevator",
    "access_code",
    "housing_type",
    "occupant_type",
    "category",
    "urgency",
)


def _artisan(user) -> dict:
    return {
        "name": user.artisan_name,
        "phone": user.phone,
        "email": user.email,
        "address": user.address,
        "siret": user.siret,
    }


class PublicService:
    """Every entry point resolves its token first (404 unknown, 410 expired)"""

    def __init__(self, db: Session):
        self.db = db
        self.lifecycle = LifecycleService(db)

    # ============================================================================
    # TOKEN RESOLUTION
    # ============================================================================

    def dossier_for_token(self, token: str) -> Dossier:
        return ensure_token_valid(DossierRepository.get_by_client_token(self.db, token), "client_token_expires_at")

    def quote_for_token(self, token: str) -> Quote:
        return ensure_token_valid(QuoteRepository.get_by_signature_token(self.db, token), "signature_token_expires_at")

    def invoice_for_token(self, token: str) -> Invoice:
        return ensure_token_valid(InvoiceRepository.get_by_client_token(self.db, token), "client_token_expires_at")

    # ============================================================================
    # CLIENT FORM
    # ============================================================================

    def get_dossier_view(self, token: str) -> dict:
        dossier = self.dossier_for_token(token)
        return {
            "dossier_id": dossier.id,
            "client_first_name": dossier.client_first_name,
            "client_last_name": dossier.client_last_name,
            "client_phone": dossier.client_phone,
            "client_email": dossier.client_email,
            "address": dossier.address,
            "category": dossier.category,
            "urgency": dossier.urgency,
            "description": dossier.description,
            "status": dossier.status,
            "appointment_status": dossier.appointment_status,
            "artisan": _artisan(dossier.user),
            "expires_at": dossier.client_token_expires_at,
        }

    def submit_form(self, data: ClientFormSubmit) -> dict:
        """Client description of the problem; the link is single use"""
        dossier = self.dossier_for_token(data.token)
        if not data.rgpd_consent:
            raise HTTPException(status_code=400, detail="Le consentement RGPD est requis")

        details = "Le client a soumis le formulaire avec sa description du problème"
        with self.lifecycle.transaction():
            for field in CLIENT_FIELDS:
                value = getattr(data, field)
                if value is not None:
                    setattr(dossier, field, value)
            dossier.description = data.description
            dossier.source = "lien_client"

            if dossier.status == "nouveau":
                self.lifecycle.set_dossier_status(
                    dossier, "a_qualifier", None, action="client_form_submitted", details=details
                )
            else:
                self.lifecycle.record(dossier, "client_form_submitted", details, None)

            dossier.client_token = None
            dossier.client_token_expires_at = None

        logger.info(f"📝 Client form submitted for dossier {dossier.id}")
        return {"success": True}

    async def upload_media(self, token: str, file: UploadFile, note: Optional[str] = None):
        dossier = self.dossier_for_token(token)
        content = await file.read()
        media = store_media(self.db, dossier, file.filename, file.content_type, content, "client", note)
        logger.info(f"📎 Client media uploaded for dossier {dossier.id}: {media.file_name}")
        return media

    # ============================================================================
    # QUOTE / INVOICE
    # ============================================================================

    def get_quote_view(self, token: str) -> dict:
        quote = self.quote_for_token(token)
        dossier = quote.dossier
        return {
            "quote_number": quote.quote_number,
            "status": quote.status,
            "total_ht": quote.total_ht,
            "total_tva": quote.total_tva,
            "total_ttc": quote.total_ttc,
            "notes": quote.notes,
            "validity_days": quote.validity_days,
            "pdf_url": quote.pdf_url,
            "sent_at": quote.sent_at,
            "signed_at": quote.signed_at,
            "refused_at": quote.refused_at,
            "lines": quote.lines,
            "client_name": dossier.client_name,
            "address": dossier.address,
            "artisan": _artisan(dossier.user),
        }

    def get_invoice_view(self, token: str) -> dict:
        invoice = self.invoice_for_token(token)
        return {
            "invoice_number": invoice.invoice_number,
            "status": invoice.status,
            "issue_date": invoice.issue_date,
            "due_date": invoice.due_date,
            "total_ht": invoice.total_ht,
            "total_tva": invoice.total_tva,
            "total_ttc": invoice.total_ttc,
            "vat_mode": invoice.vat_mode,
            "payment_terms": invoice.payment_terms,
            "notes": invoice.notes,
            "pdf_url": invoice.pdf_url,
            "lines": invoice.lines,
            "client": {
                "first_name": invoice.client_first_name,
                "last_name": invoice.client_last_name,
                "company": invoice.client_company,
                "address": invoice.client_address,
            },
            "artisan": {
                "name": invoice.artisan_name,
                "company": invoice.artisan_company,
                "address": invoice.artisan_address,
                "phone": invoice.artisan_phone,
                "email": invoice.artisan_email,
                "siret": invoice.artisan_siret,
                "tva_intracom": invoice.artisan_tva_intracom,
            },
        }

    # ============================================================================
    # APPOINTMENT
    # ============================================================================

    def get_appointment_view(self, token: str) -> dict:
        dossier = self.dossier_for_token(token)
        slots = []
        if dossier.appointment_status in ("slots_proposed", "client_selected"):
            slots = AppointmentRepository.list_slots(self.db, dossier.id)
        return {
            "appointment_status": dossier.appointment_status,
            "appointment_date": dossier.appointment_date,
            "appointment_time_start": dossier.appointment_time_start,
            "appointment_time_end": dossier.appointment_time_end,
            "slots": slots,
            "artisan": _artisan(dossier.user),
        }

    def select_slot(self, token: str, slot_id: str) -> dict:
        dossier = self.dossier_for_token(token)
        return AppointmentService(self.db).select_slot_by_client(dossier, slot_id)
