"""Dossier service - Business logic for dossier operations"""

import logging
from typing import Optional

from fastapi import HTTPException, UploadFile
from sqlalchemy.orm import Session

from ...cache import cache, dashboard_key
from ...config import DASHBOARD_CACHE_TTL, FRONTEND_URL
from ...email_templates import client_link_template
from ...models import Dossier, Media, User, utcnow
from ...services import geocoding, notification_service, relance_service, storage
from ...services.client_tokens import format_fr_date, is_token_active, issue_token
from ...services.email_parser import parse_email_content
from ...services.ics import event_from_dossier, generate_ics_content
from ...services.summary import build_summary
from ...statuses import (
    APPOINTMENT_TILE_LABELS,
    DASHBOARD_STATUSES,
    STATUS_ALIASES,
    to_appointment_tile_key,
)
from ..lifecycle import LifecycleService
from .repository import DossierRepository
from .schemas import DossierCreate, DossierUpdate

logger = logging.getLogger(__name__)

DOSSIER_NOT_FOUND = "Dossier introuvable"


def upload_to_storage(dossier: Dossier, file_name: Optional[str], content_type: Optional[str], content: bytes) -> str:
    """Push one file to the dossier-medias bucket and return its URL"""
    if not storage.is_allowed_content_type(content_type):
        raise HTTPException(status_code=400, detail="Type de fichier non supporté")
    if len(content) > storage.MAX_UPLOAD_SIZE:
        raise HTTPException(status_code=413, detail="Fichier trop volumineux (max 50 Mo)")

    key = storage.build_key(dossier.user_id, dossier.id, file_name)
    try:
        return storage.upload_file(key, content, content_type)
    except storage.StorageNotConfiguredError as e:
        raise HTTPException(status_code=503, detail="Stockage temporairement indisponible") from e
    except Exception as e:
        logger.error(f"❌ Upload failed for dossier {dossier.id}: {e}")
        raise HTTPException(status_code=502, detail="Échec de l'envoi du fichier") from e


def store_media(
    db: Session,
    dossier: Dossier,
    file_name: Optional[str],
    content_type: Optional[str],
    content: bytes,
    media_category: Optional[str] = None,
    note: Optional[str] = None,
) -> Media:
    """Upload a file and attach it to the dossier as a media row"""
    file_url = upload_to_storage(dossier, file_name, content_type, content)
    return DossierRepository.add_media(
        db,
        dossier,
        media_type=storage.media_type_for(content_type),
        media_category=media_category,
        file_name=file_name,
        file_url=file_url,
        file_size=len(content),
        file_type=content_type,
        note=note,
    )


class DossierService:
    """Service layer for dossier business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = DossierRepository()
        self.lifecycle = LifecycleService(db)

    # ============================================================================
    # CRUD
    # ============================================================================

    def list_dossiers(self, user: User, page: int = 1, page_size: int = 50, **filters):
        page = max(page, 1)
        page_size = max(1, min(page_size, 100))
        items, total = self.repo.list_dossiers(self.db, user.id, page=page, page_size=page_size, **filters)
        return {"items": items, "total": total, "page": page, "page_size": page_size}

    def get_dossier(self, dossier_id: str, user: User) -> Dossier:
        dossier = self.repo.get_dossier(self.db, dossier_id, user.id)
        if not dossier:
            raise HTTPException(status_code=404, detail=DOSSIER_NOT_FOUND)
        return dossier

    def create_dossier(self, data: DossierCreate, user: User) -> Dossier:
        logger.info(f"📥 Creating dossier for user_id: {user.id} (source={data.source})")
        has_minimal_info = bool(data.client_phone or data.client_email)

        with self.lifecycle.transaction():
            dossier = self.repo.create_dossier(
                self.db,
                user.id,
                **data.model_dump(),
                status="nouveau",
                status_changed_at=utcnow(),
            )
            origin = "import email" if data.source == "email" else "création manuelle"
            partial = "" if has_minimal_info else " – informations partielles"
            self.lifecycle.record(dossier, "created", f"Dossier créé ({origin}){partial}", user.id)

        self.db.refresh(dossier)
        logger.info(f"✅ Dossier created: {dossier.id}")
        return dossier

    def update_dossier(self, dossier_id: str, data: DossierUpdate, user: User) -> Dossier:
        dossier = self.get_dossier(dossier_id, user)
        updates = data.model_dump(exclude_unset=True)
        dossier = self.repo.update_dossier(self.db, dossier, **updates)
        cache.delete(dashboard_key(user.id))
        return dossier

    def delete_dossier(self, dossier_id: str, user: User) -> None:
        """Soft delete: the dossier disappears from lists, counters and relances"""
        dossier = self.get_dossier(dossier_id, user)
        with self.lifecycle.transaction():
            dossier.deleted_at = utcnow()
            dossier.client_token = None
            dossier.client_token_expires_at = None
            self.lifecycle.touch(dossier)
        logger.info(f"🗑️ Dossier {dossier_id} soft-deleted by user {user.id}")

    # ============================================================================
    # STATUS / NOTES / RELANCES
    # ============================================================================

    def change_status(self, dossier_id: str, new_status: str, user: User) -> Dossier:
        """Manual status change from the dossier page (raises LifecycleError -> 409)"""
        dossier = self.get_dossier(dossier_id, user)
        with self.lifecycle.transaction():
            self.lifecycle.set_dossier_status(dossier, new_status, user.id)
        self.db.refresh(dossier)
        return dossier

    def add_note(self, dossier_id: str, note: str, user: User):
        dossier = self.get_dossier(dossier_id, user)
        with self.lifecycle.transaction():
            entry = self.lifecycle.record(dossier, "note", note.strip(), user.id)
        self.db.refresh(entry)
        return entry

    def toggle_relance(self, dossier_id: str, active: bool, user: User) -> Dossier:
        dossier = self.get_dossier(dossier_id, user)
        with self.lifecycle.transaction():
            dossier.relance_active = active
            self.lifecycle.record(
                dossier, "relance_toggle", "Relances activées" if active else "Relances désactivées", user.id
            )
        self.db.refresh(dossier)
        return dossier

    async def send_relance(self, dossier_id: str, relance_type: str, user: User) -> dict:
        dossier = self.get_dossier(dossier_id, user)
        if not dossier.client_email and not dossier.client_phone:
            raise HTTPException(status_code=400, detail="Aucune coordonnée client (email ou téléphone)")
        return await relance_service.send_relance(self.db, user, dossier, relance_type)

    # ============================================================================
    # CLIENT LINK
    # ============================================================================

    def generate_client_token(self, dossier_id: str, user: User, force_regenerate: bool = False) -> dict:
        """Issue (or reuse) the client form token; regeneration overwrites the old one"""
        dossier = self.get_dossier(dossier_id, user)
        return self._ensure_client_token(dossier, user, force_regenerate)

    def _ensure_client_token(self, dossier: Dossier, user: User, force_regenerate: bool) -> dict:
        token_generated = False
        if force_regenerate or not is_token_active(dossier.client_token, dossier.client_token_expires_at):
            with self.lifecycle.transaction():
                dossier.client_token, dossier.client_token_expires_at = issue_token(
                    user.client_link_validity_days or 7
                )
                self.lifecycle.record(
                    dossier,
                    "client_link_generated",
                    f"Lien client généré (expire le {format_fr_date(dossier.client_token_expires_at)})",
                    user.id,
                )
            token_generated = True

        return {
            "token": dossier.client_token,
            "expires_at": dossier.client_token_expires_at,
            "client_link": f"{FRONTEND_URL}/client?token={dossier.client_token}",
            "token_generated": token_generated,
        }

    async def send_client_link(self, dossier_id: str, user: User, force_regenerate: bool = False) -> dict:
        dossier = self.get_dossier(dossier_id, user)
        link = self._ensure_client_token(dossier, user, force_regenerate)
        artisan = user.artisan_name

        result = await notification_service.send_notification(
            self.db,
            user,
            client_email=dossier.client_email,
            client_phone=dossier.client_phone,
            notification_type="client_link",
            subject=f"{artisan} – Complétez votre demande d'intervention",
            mjml_content=client_link_template(
                dossier.client_first_name, artisan, link["client_link"], user.email_signature
            ),
            sms_body=f"Bonjour, complétez votre demande d'intervention ici : {link['client_link']} — {artisan}",
        )

        no_contact = not dossier.client_email and not dossier.client_phone
        with self.lifecycle.transaction():
            if result["email_sent"]:
                self.lifecycle.record(
                    dossier, "client_link_sent_email", f"Lien client envoyé par email à {dossier.client_email}", user.id
                )
            if result["sms_sent"]:
                self.lifecycle.record(
                    dossier, "client_link_sent_sms", f"Lien client envoyé par SMS au {dossier.client_phone}", user.id
                )
            if no_contact:
                self.lifecycle.record(
                    dossier, "client_link_not_sent", "Coordonnées manquantes : lien non envoyé", user.id
                )

        return {
            **link,
            "email_sent": result["email_sent"],
            "email_error": result["email_error"],
            "sms_sent": result["sms_sent"],
            "no_contact": no_contact,
        }

    # ============================================================================
    # READ VIEWS
    # ============================================================================

    def get_historique(self, dossier_id: str, user: User):
        dossier = self.get_dossier(dossier_id, user)
        return self.repo.list_historique(self.db, dossier.id)

    def get_medias(self, dossier_id: str, user: User):
        dossier = self.get_dossier(dossier_id, user)
        return self.repo.list_medias(self.db, dossier.id)

    async def upload_media(
        self,
        dossier_id: str,
        user: User,
        file: UploadFile,
        media_category: Optional[str] = None,
        note: Optional[str] = None,
    ) -> Media:
        dossier = self.get_dossier(dossier_id, user)
        content = await file.read()
        return store_media(self.db, dossier, file.filename, file.content_type, content, media_category, note)

    def get_summary(self, dossier_id: str, user: User) -> dict:
        return build_summary(self.get_dossier(dossier_id, user))

    def get_ics(self, dossier_id: str, user: User) -> str:
        dossier = self.get_dossier(dossier_id, user)
        event = event_from_dossier(dossier)
        if not event:
            raise HTTPException(status_code=404, detail="Aucun rendez-vous planifié")
        return generate_ics_content(event)

    def get_dashboard(self, user: User) -> dict:
        """Per-status and per-appointment-tile counters (cached, invalidated on every transition)"""
        key = dashboard_key(user.id)
        cached = cache.get(key)
        if cached:
            return cached

        statuses = {status: 0 for status in DASHBOARD_STATUSES}
        total = 0
        for status, count in self.repo.count_by_status(self.db, user.id).items():
            bucket = STATUS_ALIASES.get(status, status)
            statuses[bucket] = statuses.get(bucket, 0) + count
            total += count

        appointments = {tile: 0 for tile in APPOINTMENT_TILE_LABELS}
        for status, count in self.repo.count_by_appointment_status(self.db, user.id).items():
            tile = to_appointment_tile_key(status)
            if tile:
                appointments[tile] += count

        counters = {"statuses": statuses, "appointments": appointments, "total": total}
        cache.set(key, counters, ttl=DASHBOARD_CACHE_TTL)
        return counters

    # ============================================================================
    # INTAKE HELPERS
    # ============================================================================

    @staticmethod
    def parse_email(raw: str) -> dict:
        return parse_email_content(raw)

    @staticmethod
    async def geocode(address: str) -> dict:
        try:
            return await geocoding.geocode_address(address)
        except Exception as e:
            logger.error(f"❌ Geocoding failed: {e}")
            raise HTTPException(status_code=502, detail="Service de géocodage indisponible") from e
