"""Quote service - Business logic for devis"""

import logging
from typing import Optional

from fastapi import HTTPException, UploadFile
from sqlalchemy.orm import Session

from ...config import FRONTEND_URL, QUOTE_SIGNATURE_VALIDITY_DAYS
from ...email_templates import quote_sent_template
from ...models import Dossier, User, utcnow
from ...models_invoice import Quote
from ...pricing import QUOTE_TEMPLATES, create_empty_item, template_items
from ...services import notification_service
from ...services.client_tokens import ensure_token_valid, issue_token
from ..dossiers.repository import DossierRepository
from ..dossiers.service import DOSSIER_NOT_FOUND, upload_to_storage
from ..lifecycle import LifecycleService
from .repository import QuoteRepository
from .schemas import LineInput, QuoteCreate, QuoteUpdate

logger = logging.getLogger(__name__)

QUOTE_NOT_FOUND = "Devis introuvable"
ALREADY_PROCESSED = "Ce devis a déjà été traité"

# Dossier status that follows each quote status
DOSSIER_STATUS_FOR_QUOTE = {
    "envoye": "devis_envoye",
    "signe": "clos_signe",
    "refuse": "clos_perdu",
}

# A booking already under way is kept when the devis is signed
APPOINTMENT_IN_PROGRESS = ("slots_proposed", "client_selected", "rdv_confirmed")


def validation_url(quote: Quote) -> str:
    return f"{FRONTEND_URL}/devis/validation?token={quote.signature_token}"


def _line_dicts(lines: list[LineInput]) -> list[dict]:
    return [line.model_dump() for line in lines]


class QuoteService:
    """Service layer for quote business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = QuoteRepository()
        self.lifecycle = LifecycleService(db)

    def _get_dossier(self, dossier_id: str, user: User) -> Dossier:
        dossier = DossierRepository.get_dossier(self.db, dossier_id, user.id)
        if not dossier:
            raise HTTPException(status_code=404, detail=DOSSIER_NOT_FOUND)
        return dossier

    def get_quote(self, quote_id: str, user: User) -> Quote:
        quote = self.repo.get_quote(self.db, quote_id, user.id)
        if not quote:
            raise HTTPException(status_code=404, detail=QUOTE_NOT_FOUND)
        return quote

    def list_quotes(self, user: User, dossier_id: Optional[str] = None) -> list[Quote]:
        return self.repo.list_quotes(self.db, user.id, dossier_id)

    @staticmethod
    def list_templates() -> list[dict]:
        return [
            {"key": key, "label": template["label"], "items": template["items"]}
            for key, template in QUOTE_TEMPLATES.items()
        ]

    # ============================================================================
    # DRAFTS
    # ============================================================================

    def _default_lines(self, data: QuoteCreate, user: User) -> list[dict]:
        vat_override = None if user.vat_applicable is not False else 0
        if data.lines is not None:
            lines = _line_dicts(data.lines)
        elif data.template:
            if data.template not in QUOTE_TEMPLATES:
                raise HTTPException(status_code=400, detail=f"Modèle de devis inconnu: {data.template}")
            return template_items(data.template, vat_override)
        else:
            lines = [create_empty_item("standard")]
            if user.default_vat_rate is not None:
                lines[0]["vat_rate"] = user.default_vat_rate

        if vat_override is not None:
            for line in lines:
                line["vat_rate"] = vat_override
        return lines

    def create_quote(self, data: QuoteCreate, user: User) -> Quote:
        dossier = self._get_dossier(data.dossier_id, user)
        lines = self._default_lines(data, user)

        with self.lifecycle.transaction():
            quote = self.repo.create_quote(
                self.db,
                user.id,
                dossier.id,
                quote_number=self.repo.next_number(self.db, user.id),
                status="brouillon",
                notes=data.notes,
                validity_days=data.validity_days or user.default_validity_days or 30,
            )
            self.repo.replace_lines(self.db, quote, lines)
            self.lifecycle.record(dossier, "quote_created", f"Devis {quote.quote_number} créé", user.id)

        self.db.refresh(quote)
        logger.info(f"✅ Quote {quote.quote_number} created for dossier {dossier.id}")
        return quote

    def update_quote(self, quote_id: str, data: QuoteUpdate, user: User) -> Quote:
        quote = self.get_quote(quote_id, user)
        for key, value in data.model_dump(exclude_unset=True).items():
            setattr(quote, key, value)
        self.db.commit()
        self.db.refresh(quote)
        return quote

    def replace_lines(self, quote_id: str, lines: list[LineInput], user: User) -> Quote:
        """Totals are recomputed from the new lines, never taken from the caller"""
        quote = self.get_quote(quote_id, user)
        if quote.status in ("signe", "refuse"):
            raise HTTPException(status_code=409, detail="Un devis signé ou refusé n'est plus modifiable")
        self.repo.replace_lines(self.db, quote, _line_dicts(lines))
        self.db.commit()
        self.db.refresh(quote)
        return quote

    async def import_pdf(
        self, dossier_id: str, file: UploadFile, user: User, quote_number: Optional[str] = None
    ) -> Quote:
        dossier = self._get_dossier(dossier_id, user)
        content = await file.read()
        if file.content_type != "application/pdf":
            raise HTTPException(status_code=400, detail="Seuls les fichiers PDF sont acceptés")
        pdf_url = upload_to_storage(dossier, file.filename or "devis.pdf", file.content_type, content)

        with self.lifecycle.transaction():
            quote = self.repo.create_quote(
                self.db,
                user.id,
                dossier.id,
                quote_number=(quote_number or "").strip() or self.repo.next_number(self.db, user.id),
                status="brouillon",
                is_imported=True,
                pdf_url=pdf_url,
            )
            self.lifecycle.record(dossier, "quote_imported", f"Devis {quote.quote_number} importé (PDF)", user.id)

        self.db.refresh(quote)
        return quote

    def delete_quote(self, quote_id: str, user: User) -> None:
        quote = self.get_quote(quote_id, user)
        dossier = quote.dossier
        with self.lifecycle.transaction():
            self.repo.delete_quote(self.db, quote)
            self.lifecycle.record(dossier, "quote_deleted", "Devis supprimé", user.id)
        logger.info(f"🗑️ Quote {quote_id} deleted by user {user.id}")

    # ============================================================================
    # STATUS
    # ============================================================================

    def _stage_status(
        self,
        quote: Quote,
        dossier: Dossier,
        new_status: str,
        user_id: Optional[str],
        action: Optional[str] = None,
        details: Optional[str] = None,
    ) -> bool:
        """
        Stage the quote transition and the dossier status it implies

        Returns True when signing also opened the appointment flow (rdv_pending).
        """
        now = utcnow()
        if not self.lifecycle.set_quote_status(quote, dossier, new_status, user_id, action=action, details=details):
            return False

        if new_status == "envoye":
            quote.sent_at = now
        elif new_status == "signe":
            quote.signed_at = now
        elif new_status == "refuse":
            quote.refused_at = now

        dossier_status = DOSSIER_STATUS_FOR_QUOTE.get(new_status)
        if dossier_status:
            self.lifecycle.set_dossier_status(dossier, dossier_status, user_id, event=True)

        if new_status != "signe" or dossier.appointment_status in APPOINTMENT_IN_PROGRESS:
            return False
        return self.lifecycle.set_appointment_status(
            dossier, "rdv_pending", user_id, details="Prise de rendez-vous en attente", event=True
        )

    async def _request_appointment(self, user: User, dossier: Dossier) -> None:
        try:
            await notification_service.send_appointment_notification(
                self.db, user, dossier, notification_service.APPOINTMENT_REQUESTED
            )
        except Exception as e:
            logger.error(f"❌ Notification error after quote signed (dossier {dossier.id}): {e}")

    async def change_status(self, quote_id: str, new_status: str, user: User) -> Quote:
        """Manual status change by the artisan (paper signature, refusal by phone...)"""
        quote = self.get_quote(quote_id, user)
        dossier = quote.dossier
        with self.lifecycle.transaction():
            appointment_requested = self._stage_status(quote, dossier, new_status, user.id)

        if appointment_requested:
            await self._request_appointment(user, dossier)
        self.db.refresh(quote)
        return quote

    async def validate_by_client(
        self,
        token: str,
        action: str,
        reason: Optional[str],
        ip: str,
        user_agent: str,
    ) -> dict:
        """Accept or refuse a devis from the public signature link"""
        quote = ensure_token_valid(self.repo.get_by_signature_token(self.db, token), "signature_token_expires_at")
        if quote.status in ("signe", "refuse"):
            raise HTTPException(status_code=409, detail=ALREADY_PROCESSED)

        dossier = quote.dossier
        client_name = dossier.client_name or "le client"
        with self.lifecycle.transaction():
            if action == "accept":
                appointment_requested = self._stage_status(
                    quote,
                    dossier,
                    "signe",
                    None,
                    action="quote_validated_by_client",
                    details=f"Devis {quote.quote_number} validé par {client_name} (IP: {ip})",
                )
                quote.accepted_at = quote.signed_at
            else:
                appointment_requested = self._stage_status(
                    quote,
                    dossier,
                    "refuse",
                    None,
                    action="quote_refused_by_client",
                    details=f"Devis {quote.quote_number} refusé par {client_name}"
                    + (f" – Motif : {reason}" if reason else ""),
                )
                quote.refused_reason = reason or None
            quote.accepted_ip = ip
            quote.accepted_user_agent = (user_agent or "")[:500]
            dossier.relance_active = False

        logger.info(f"✍️ Quote {quote.quote_number} {action} by client (dossier {dossier.id})")
        if appointment_requested:
            await self._request_appointment(dossier.user, dossier)
        return {"success": True, "status": quote.status}

    # ============================================================================
    # SEND
    # ============================================================================

    async def send_quote(self, quote_id: str, user: User) -> dict:
        """Issue a 30-day signature link, mark the devis sent and notify the client"""
        quote = self.get_quote(quote_id, user)
        dossier = quote.dossier
        if not dossier.client_email and not dossier.client_phone:
            raise HTTPException(status_code=400, detail="Aucune coordonnée client (email ou téléphone)")
        if not quote.is_imported and not quote.lines:
            raise HTTPException(status_code=400, detail="Le devis ne contient aucune ligne")

        with self.lifecycle.transaction():
            quote.signature_token, quote.signature_token_expires_at = issue_token(QUOTE_SIGNATURE_VALIDITY_DAYS)
            self._stage_status(quote, dossier, "envoye", user.id)

        url = validation_url(quote)
        artisan = user.artisan_name
        result = await notification_service.send_notification(
            self.db,
            user,
            client_email=dossier.client_email,
            client_phone=dossier.client_phone,
            notification_type="quote",
            subject=f"{artisan} – Votre devis",
            mjml_content=quote_sent_template(
                dossier.client_first_name, artisan, url, user.email_signature, user.email, user.phone
            ),
            sms_body=f"Votre devis est disponible. Pour le consulter : {url} — {artisan}",
        )

        with self.lifecycle.transaction():
            if result["email_sent"]:
                self.lifecycle.record(
                    dossier,
                    "quote_sent",
                    f"Devis {quote.quote_number} envoyé par email à {dossier.client_email}",
                    user.id,
                )
            elif result["email_error"]:
                self.lifecycle.record(
                    dossier,
                    "notification_failed",
                    f"Email du devis {quote.quote_number} non envoyé : {result['email_error'][:200]}",
                    user.id,
                )
            if result["sms_sent"]:
                self.lifecycle.record(
                    dossier,
                    "quote_sent_sms",
                    f"Devis {quote.quote_number} envoyé par SMS au {dossier.client_phone}",
                    user.id,
                )
            elif notification_service.sms_failed(result):
                self.lifecycle.record(
                    dossier,
                    "sms_error",
                    f"SMS non envoyé (erreur) – vérifier le numéro {dossier.client_phone}",
                    user.id,
                )

        return {
            "success": True,
            "validation_url": url,
            "email_sent": result["email_sent"],
            "email_error": result["email_error"],
            "sms_sent": result["sms_sent"],
            "sms_error": result["sms_error"],
        }
