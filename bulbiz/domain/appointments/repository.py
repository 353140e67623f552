"""Appointment repository - Database operations for proposed slots"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models import AppointmentSlot, Dossier


class AppointmentRepository:
    """Repository for appointment slot operations"""

    @staticmethod
    def list_slots(db: Session, dossier_id: str) -> list[AppointmentSlot]:
        return (
            db.query(AppointmentSlot)
            .filter(AppointmentSlot.dossier_id == dossier_id)
            .order_by(AppointmentSlot.slot_date, AppointmentSlot.time_start)
            .all()
        )

    @staticmethod
    def get_slot(db: Session, slot_id: str, dossier_id: str) -> Optional[AppointmentSlot]:
        return (
            db.query(AppointmentSlot)
            .filter(AppointmentSlot.id == slot_id, AppointmentSlot.dossier_id == dossier_id)
            .first()
        )

    @staticmethod
    def get_selected_slot(db: Session, dossier_id: str) -> Optional[AppointmentSlot]:
        return (
            db.query(AppointmentSlot)
            .filter(AppointmentSlot.dossier_id == dossier_id, AppointmentSlot.selected_at.isnot(None))
            .order_by(AppointmentSlot.selected_at.desc())
            .first()
        )

    @staticmethod
    def replace_slots(db: Session, dossier: Dossier, slots: list[dict]) -> list[AppointmentSlot]:
        """Drop the previous proposal and stage the new slots"""
        db.query(AppointmentSlot).filter(AppointmentSlot.dossier_id == dossier.id).delete()
        created = [AppointmentSlot(dossier_id=dossier.id, **slot) for slot in slots]
        db.add_all(created)
        return created

    @staticmethod
    def clear_selection(db: Session, dossier_id: str) -> None:
        db.query(AppointmentSlot).filter(AppointmentSlot.dossier_id == dossier_id).update(
            {AppointmentSlot.selected_at: None}
        )
