"""Invoice service - Business logic for factures"""

import logging
from datetime import date
from typing import Optional

from fastapi import HTTPException, UploadFile
from sqlalchemy.orm import Session

from ...config import FRONTEND_URL, INVOICE_VIEW_VALIDITY_DAYS
from ...email_templates import invoice_sent_template
from ...models import Dossier, User, utcnow
from ...models_invoice import Invoice
from ...services import notification_service
from ...services.client_tokens import is_token_active, issue_token
from ..dossiers.repository import DossierRepository
from ..dossiers.service import DOSSIER_NOT_FOUND, upload_to_storage
from ..lifecycle import LifecycleService
from ..quotes.repository import QuoteRepository
from .repository import InvoiceRepository
from .schemas import InvoiceCreate, InvoiceUpdate

logger = logging.getLogger(__name__)

INVOICE_NOT_FOUND = "Facture introuvable"

DOSSIER_STATUS_FOR_INVOICE = {
    "sent": "invoice_pending",
    "paid": "invoice_paid",
}

LINE_FIELDS = ("label", "description", "qty", "unit", "unit_price", "vat_rate", "discount", "type")


def view_url(invoice: Invoice) -> str:
    return f"{FRONTEND_URL}/facture/view?token={invoice.client_token}"


def snapshot_fields(dossier: Dossier, user: User) -> dict:
    """Client and artisan details frozen on the facture at creation"""
    structured = ", ".join(part for part in [dossier.address_line, dossier.postal_code, dossier.city] if part)
    artisan_name = " ".join(part for part in [user.first_name, user.last_name] if part)
    return {
        "client_first_name": dossier.client_first_name,
        "client_last_name": dossier.client_last_name,
        "client_email": dossier.client_email,
        "client_phone": dossier.client_phone,
        "client_address": structured or dossier.address,
        "artisan_name": artisan_name or None,
        "artisan_company": user.company_name,
        "artisan_address": user.address,
        "artisan_phone": user.phone,
        "artisan_email": user.email,
        "artisan_siret": user.siret,
        "artisan_tva_intracom": user.tva_intracom,
        "vat_mode": "no_vat_293b" if user.vat_applicable is False else "normal",
        "payment_terms": user.payment_terms_default,
    }


class InvoiceService:
    """Service layer for invoice business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = InvoiceRepository()
        self.lifecycle = LifecycleService(db)

    def _get_dossier(self, dossier_id: str, user: User) -> Dossier:
        dossier = DossierRepository.get_dossier(self.db, dossier_id, user.id)
        if not dossier:
            raise HTTPException(status_code=404, detail=DOSSIER_NOT_FOUND)
        return dossier

    def get_invoice(self, invoice_id: str, user: User) -> Invoice:
        invoice = self.repo.get_invoice(self.db, invoice_id, user.id)
        if not invoice:
            raise HTTPException(status_code=404, detail=INVOICE_NOT_FOUND)
        return invoice

    def list_invoices(self, user: User, dossier_id: Optional[str] = None) -> list[Invoice]:
        return self.repo.list_invoices(self.db, user.id, dossier_id)

    # ============================================================================
    # CREATE / EDIT
    # ============================================================================

    def create_invoice(self, data: InvoiceCreate, user: User) -> Invoice:
        dossier = self._get_dossier(data.dossier_id, user)

        quote = None
        if data.quote_id:
            quote = QuoteRepository.get_quote(self.db, data.quote_id, user.id)
            if not quote or quote.dossier_id != dossier.id:
                raise HTTPException(status_code=404, detail="Devis introuvable")

        if data.lines is not None:
            lines = [line.model_dump() for line in data.lines]
        elif quote:
            lines = [{field: getattr(line, field) for field in LINE_FIELDS} for line in quote.lines]
        else:
            lines = []

        fields = snapshot_fields(dossier, user)
        fields["client_type"] = data.client_type
        fields["client_company"] = data.client_company
        if data.payment_terms is not None:
            fields["payment_terms"] = data.payment_terms

        with self.lifecycle.transaction():
            invoice = self.repo.create_invoice(
                self.db,
                user.id,
                dossier.id,
                invoice_number=self.repo.next_number(self.db, user.id),
                quote_id=quote.id if quote else None,
                status="draft",
                issue_date=date.today(),
                due_date=data.due_date,
                notes=data.notes,
                **fields,
            )
            self.repo.replace_lines(self.db, invoice, lines)
            origin = f" depuis le devis {quote.quote_number}" if quote else ""
            self.lifecycle.record(dossier, "invoice_created", f"Facture {invoice.invoice_number} créée{origin}", user.id)

        self.db.refresh(invoice)
        logger.info(f"✅ Invoice {invoice.invoice_number} created for dossier {dossier.id} ({invoice.vat_mode})")
        return invoice

    def _ensure_editable(self, invoice: Invoice) -> None:
        if invoice.status == "paid":
            raise HTTPException(status_code=409, detail="Une facture payée n'est plus modifiable")

    def update_invoice(self, invoice_id: str, data: InvoiceUpdate, user: User) -> Invoice:
        invoice = self.get_invoice(invoice_id, user)
        self._ensure_editable(invoice)
        for key, value in data.model_dump(exclude_unset=True).items():
            setattr(invoice, key, value)
        self.db.commit()
        self.db.refresh(invoice)
        return invoice

    def replace_lines(self, invoice_id: str, lines: list, user: User) -> Invoice:
        invoice = self.get_invoice(invoice_id, user)
        self._ensure_editable(invoice)
        self.repo.replace_lines(self.db, invoice, [line.model_dump() for line in lines])
        self.db.commit()
        self.db.refresh(invoice)
        return invoice

    async def import_pdf(
        self, dossier_id: str, file: UploadFile, user: User, invoice_number: Optional[str] = None
    ) -> Invoice:
        dossier = self._get_dossier(dossier_id, user)
        content = await file.read()
        if file.content_type != "application/pdf":
            raise HTTPException(status_code=400, detail="Seuls les fichiers PDF sont acceptés")
        pdf_url = upload_to_storage(dossier, file.filename or "facture.pdf", file.content_type, content)

        with self.lifecycle.transaction():
            invoice = self.repo.create_invoice(
                self.db,
                user.id,
                dossier.id,
                invoice_number=(invoice_number or "").strip() or self.repo.next_number(self.db, user.id),
                status="draft",
                is_imported=True,
                pdf_url=pdf_url,
                issue_date=date.today(),
                **snapshot_fields(dossier, user),
            )
            self.lifecycle.record(
                dossier, "invoice_imported", f"Facture {invoice.invoice_number} importée (PDF)", user.id
            )

        self.db.refresh(invoice)
        return invoice

    def delete_invoice(self, invoice_id: str, user: User) -> None:
        invoice = self.get_invoice(invoice_id, user)
        dossier = invoice.dossier
        with self.lifecycle.transaction():
            self.repo.delete_invoice(self.db, invoice)
            self.lifecycle.record(dossier, "invoice_deleted", "Facture supprimée", user.id)
        logger.info(f"🗑️ Invoice {invoice_id} deleted by user {user.id}")

    # ============================================================================
    # TOKEN / STATUS / SEND
    # ============================================================================

    def _stage_token(self, invoice: Invoice) -> None:
        if not is_token_active(invoice.client_token, invoice.client_token_expires_at):
            invoice.client_token, invoice.client_token_expires_at = issue_token(INVOICE_VIEW_VALIDITY_DAYS)

    def generate_token(self, invoice_id: str, user: User) -> dict:
        """90-day read-only link for the client (reused while still valid)"""
        invoice = self.get_invoice(invoice_id, user)
        self._stage_token(invoice)
        self.db.commit()
        return {
            "token": invoice.client_token,
            "expires_at": invoice.client_token_expires_at,
            "view_url": view_url(invoice),
        }

    def _stage_status(self, invoice: Invoice, new_status: str, user_id: str, details: Optional[str] = None) -> None:
        dossier = invoice.dossier
        if not self.lifecycle.set_invoice_status(invoice, dossier, new_status, user_id, details=details):
            return

        now = utcnow()
        if new_status == "sent":
            invoice.sent_at = now
        elif new_status == "paid":
            invoice.paid_at = now

        dossier_status = DOSSIER_STATUS_FOR_INVOICE.get(new_status)
        if dossier.status == "invoice_paid":
            logger.info(f"ℹ️ Dossier {dossier.id} already paid - status kept")
        elif dossier_status:
            self.lifecycle.set_dossier_status(dossier, dossier_status, user_id, event=True)

    def change_status(self, invoice_id: str, new_status: str, user: User) -> Invoice:
        invoice = self.get_invoice(invoice_id, user)
        details = f"Facture {invoice.invoice_number} marquée comme payée" if new_status == "paid" else None
        with self.lifecycle.transaction():
            self._stage_status(invoice, new_status, user.id, details=details)
        self.db.refresh(invoice)
        return invoice

    async def send_invoice(self, invoice_id: str, user: User) -> dict:
        invoice = self.get_invoice(invoice_id, user)
        if not invoice.client_email and not invoice.client_phone:
            raise HTTPException(status_code=400, detail="Aucune coordonnée client (email ou téléphone)")
        if invoice.status == "paid":
            raise HTTPException(status_code=409, detail="Cette facture est déjà payée")

        dossier = invoice.dossier
        with self.lifecycle.transaction():
            self._stage_token(invoice)
            self._stage_status(invoice, "sent", user.id)

        url = view_url(invoice)
        artisan = invoice.artisan_company or invoice.artisan_name or "Votre artisan"
        phone = f" ({invoice.artisan_phone})" if invoice.artisan_phone else ""
        result = await notification_service.send_notification(
            self.db,
            user,
            client_email=invoice.client_email,
            client_phone=invoice.client_phone,
            notification_type="invoice",
            subject="Votre facture",
            mjml_content=invoice_sent_template(invoice.client_first_name, artisan, url),
            sms_body=f"Votre facture est disponible. N'hésitez pas à nous contacter. — {artisan}{phone}",
        )

        with self.lifecycle.transaction():
            if result["sms_sent"]:
                self.lifecycle.record(
                    dossier,
                    "invoice_sent_sms",
                    f"Facture {invoice.invoice_number} envoyée par SMS au {invoice.client_phone}",
                    user.id,
                )
            self.lifecycle.record(
                dossier,
                "invoice_sent",
                f"Facture {invoice.invoice_number} envoyée par email à {invoice.client_email}"
                if result["email_sent"]
                else f"Facture {invoice.invoice_number} marquée comme envoyée",
                user.id,
            )

        return {
            "success": True,
            "view_url": url,
            "email_sent": result["email_sent"],
            "email_error": result["email_error"],
            "sms_sent": result["sms_sent"],
        }
