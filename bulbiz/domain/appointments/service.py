"""Appointment service - RDV sub-state of a dossier"""

import logging
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import AppointmentSlot, Dossier, User, utcnow
from ...services import google_calendar_service, notification_service
from ...services.ics import full_address
from ...services.relance_service import ensure_client_link
from ..dossiers.repository import DossierRepository
from ..dossiers.service import DOSSIER_NOT_FOUND
from ..lifecycle import LifecycleService
from .repository import AppointmentRepository
from .schemas import ManualRdvRequest, SlotInput

logger = logging.getLogger(__name__)

SOURCE_LABELS = {
    "manual": "fixé manuellement",
    "phone": "fixé par téléphone",
    "email": "fixé par email",
}


def slot_line(slot_date, time_start: str, time_end: str) -> str:
    """'Mardi 10 mars 2026 09:00–11:00'"""
    return f"{notification_service.format_fr_long_date(slot_date)} {time_start}–{time_end}"


def appointment_view(dossier: Dossier, slots: list[AppointmentSlot], notification: Optional[dict] = None) -> dict:
    return {
        "dossier_id": dossier.id,
        "appointment_status": dossier.appointment_status,
        "appointment_date": dossier.appointment_date,
        "appointment_time_start": dossier.appointment_time_start,
        "appointment_time_end": dossier.appointment_time_end,
        "appointment_source": dossier.appointment_source,
        "appointment_confirmed_at": dossier.appointment_confirmed_at,
        "appointment_notes": dossier.appointment_notes,
        "slots": slots,
        "notification": notification,
    }


class AppointmentService:
    """Service layer for the appointment flow"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = AppointmentRepository()
        self.lifecycle = LifecycleService(db)

    def _get_dossier(self, dossier_id: str, user: User) -> Dossier:
        dossier = DossierRepository.get_dossier(self.db, dossier_id, user.id)
        if not dossier:
            raise HTTPException(status_code=404, detail=DOSSIER_NOT_FOUND)
        return dossier

    def _view(self, dossier: Dossier, notification: Optional[dict] = None) -> dict:
        self.db.refresh(dossier)
        return appointment_view(dossier, self.repo.list_slots(self.db, dossier.id), notification)

    async def _notify(self, user: User, dossier: Dossier, event_type: str, payload: Optional[dict] = None):
        try:
            return await notification_service.send_appointment_notification(
                self.db, user, dossier, event_type, payload
            )
        except Exception as e:
            logger.error(f"❌ {event_type} notification error for dossier {dossier.id}: {e}")
            return None

    def get_appointment(self, dossier_id: str, user: User) -> dict:
        return self._view(self._get_dossier(dossier_id, user))

    # ============================================================================
    # TRANSITIONS
    # ============================================================================

    async def request_appointment(self, dossier_id: str, user: User) -> dict:
        """Open (or reopen after a cancel) the appointment flow"""
        dossier = self._get_dossier(dossier_id, user)
        with self.lifecycle.transaction():
            changed = self.lifecycle.set_appointment_status(
                dossier, "rdv_pending", user.id, details="Prise de rendez-vous en attente"
            )
        notification = None
        if changed:
            notification = await self._notify(user, dossier, notification_service.APPOINTMENT_REQUESTED)
        return self._view(dossier, notification)

    async def propose_slots(self, dossier_id: str, slots: list[SlotInput], user: User) -> dict:
        dossier = self._get_dossier(dossier_id, user)

        with self.lifecycle.transaction():
            self.lifecycle.set_appointment_status(
                dossier,
                "slots_proposed",
                user.id,
                action="slots_proposed",
                details=f"{len(slots)} créneau(x) proposé(s)",
            )
            self.repo.replace_slots(self.db, dossier, [slot.model_dump() for slot in slots])
            appointment_link = ensure_client_link(dossier, user)

        notification = await self._notify(
            user,
            dossier,
            notification_service.SLOTS_PROPOSED,
            {
                "slot_lines": [slot_line(s.slot_date, s.time_start, s.time_end) for s in slots],
                "appointment_link": appointment_link,
            },
        )
        return self._view(dossier, notification)

    def _stage_confirmation(
        self,
        dossier: Dossier,
        user: User,
        appointment_date,
        time_start: str,
        time_end: str,
        source: str,
        details: str,
    ) -> None:
        if not self.lifecycle.set_appointment_status(
            dossier, "rdv_confirmed", user.id, action="rdv_confirmed", details=details
        ):
            # Rescheduling an already confirmed RDV
            self.lifecycle.record(dossier, "rdv_confirmed", details, user.id)
        dossier.appointment_date = appointment_date
        dossier.appointment_time_start = time_start
        dossier.appointment_time_end = time_end
        dossier.appointment_source = source
        dossier.appointment_confirmed_at = utcnow()

    async def _after_confirmation(self, user: User, dossier: Dossier) -> Optional[dict]:
        """Calendar sync (best effort) then the client confirmation"""
        event_id = await google_calendar_service.create_calendar_event(user, dossier, self.db)
        if event_id:
            integration = google_calendar_service.get_integration(self.db, user.id)
            account = integration.google_user_email if integration else None
            with self.lifecycle.transaction():
                dossier.google_calendar_event_id = event_id
                self.lifecycle.record(
                    dossier, "google_calendar_synced", f"RDV ajouté à Google Calendar ({account or 'Google'})", user.id
                )

        return await self._notify(
            user,
            dossier,
            notification_service.APPOINTMENT_CONFIRMED,
            {
                "appointment_date": dossier.appointment_date,
                "appointment_time": dossier.appointment_time_start,
                "appointment_time_end": dossier.appointment_time_end,
                "address": full_address(dossier) or None,
            },
        )

    async def confirm_selected_slot(self, dossier_id: str, user: User) -> dict:
        """Confirm the slot the client picked from the link"""
        dossier = self._get_dossier(dossier_id, user)
        selected = self.repo.get_selected_slot(self.db, dossier.id)
        if not selected:
            raise HTTPException(status_code=400, detail="Aucun créneau sélectionné par le client")

        line = slot_line(selected.slot_date, selected.time_start, selected.time_end)
        with self.lifecycle.transaction():
            self._stage_confirmation(
                dossier,
                user,
                selected.slot_date,
                selected.time_start,
                selected.time_end,
                "client_selected",
                f"Rendez-vous confirmé : {line}",
            )

        notification = await self._after_confirmation(user, dossier)
        return self._view(dossier, notification)

    async def set_manual_rdv(self, dossier_id: str, data: ManualRdvRequest, user: User) -> dict:
        """RDV agreed outside the app (phone, email) or set directly by the artisan"""
        dossier = self._get_dossier(dossier_id, user)
        line = slot_line(data.appointment_date, data.time_start, data.time_end)

        with self.lifecycle.transaction():
            self._stage_confirmation(
                dossier,
                user,
                data.appointment_date,
                data.time_start,
                data.time_end,
                data.source,
                f"Rendez-vous {SOURCE_LABELS[data.source]} : {line}",
            )
            if data.notes is not None:
                dossier.appointment_notes = data.notes

        notification = await self._after_confirmation(user, dossier)
        return self._view(dossier, notification)

    async def cancel(self, dossier_id: str, user: User) -> dict:
        dossier = self._get_dossier(dossier_id, user)
        event_id = dossier.google_calendar_event_id

        with self.lifecycle.transaction():
            self.lifecycle.set_appointment_status(
                dossier, "cancelled", user.id, action="rdv_cancelled", details="Rendez-vous annulé"
            )
            dossier.appointment_date = None
            dossier.appointment_time_start = None
            dossier.appointment_time_end = None
            dossier.appointment_confirmed_at = None
            dossier.google_calendar_event_id = None
            self.repo.clear_selection(self.db, dossier.id)

        if event_id:
            await google_calendar_service.delete_calendar_event(user, event_id, self.db)
        return self._view(dossier)

    def mark_done(self, dossier_id: str, user: User) -> dict:
        dossier = self._get_dossier(dossier_id, user)
        with self.lifecycle.transaction():
            self.lifecycle.set_appointment_status(
                dossier, "done", user.id, action="intervention_done", details="Intervention marquée comme réalisée"
            )
        return self._view(dossier)

    # ============================================================================
    # CLIENT SIDE
    # ============================================================================

    def select_slot_by_client(self, dossier: Dossier, slot_id: str) -> dict:
        """The client picks one of the proposed slots (slots_proposed -> client_selected)"""
        if dossier.appointment_status != "slots_proposed":
            raise HTTPException(status_code=409, detail="Aucun créneau à choisir pour ce dossier")
        slot = self.repo.get_slot(self.db, slot_id, dossier.id)
        if not slot:
            raise HTTPException(status_code=404, detail="Créneau introuvable")

        with self.lifecycle.transaction():
            self.repo.clear_selection(self.db, dossier.id)
            slot.selected_at = utcnow()
            self.lifecycle.set_appointment_status(
                dossier,
                "client_selected",
                None,
                action="client_slot_selected",
                details=f"Le client a choisi le créneau : {slot_line(slot.slot_date, slot.time_start, slot.time_end)}",
            )

        logger.info(f"📅 Client selected slot {slot.id} for dossier {dossier.id}")
        return {"success": True, "slot": slot}
