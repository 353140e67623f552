"""Dossier repository - Database operations for dossiers"""

from typing import Optional

from sqlalchemy import case, func, or_
from sqlalchemy.orm import Session

from ...models import Dossier, Historique, Media
from ...statuses import URGENCY_ORDER, appointment_statuses_for_tile


class DossierRepository:
    """Repository for dossier database operations (always scoped by user)"""

    @staticmethod
    def _active(db: Session, user_id: str):
        return db.query(Dossier).filter(Dossier.user_id == user_id, Dossier.deleted_at.is_(None))

    @staticmethod
    def get_dossier(db: Session, dossier_id: str, user_id: str) -> Optional[Dossier]:
        return DossierRepository._active(db, user_id).filter(Dossier.id == dossier_id).first()

    @staticmethod
    def get_by_client_token(db: Session, token: str) -> Optional[Dossier]:
        if not token:
            return None
        return (
            db.query(Dossier)
            .filter(Dossier.client_token == token, Dossier.deleted_at.is_(None))
            .first()
        )

    @staticmethod
    def list_dossiers(
        db: Session,
        user_id: str,
        status: Optional[str] = None,
        appointment_tile: Optional[str] = None,
        source: Optional[str] = None,
        category: Optional[str] = None,
        urgency: Optional[str] = None,
        search: Optional[str] = None,
        page: int = 1,
        page_size: int = 50,
    ) -> tuple[list[Dossier], int]:
        """Filtered page of dossiers, most urgent first then newest"""
        query = DossierRepository._active(db, user_id)

        if status == "nouveau":
            query = query.filter(Dossier.status.in_(["nouveau", "a_qualifier"]))
        elif status:
            query = query.filter(Dossier.status == status)
        if appointment_tile:
            query = query.filter(
                Dossier.appointment_status.in_(appointment_statuses_for_tile(appointment_tile))
            )
        if source:
            query = query.filter(Dossier.source == source)
        if category:
            query = query.filter(Dossier.category == category)
        if urgency:
            query = query.filter(Dossier.urgency == urgency)
        if search:
            pattern = f"%{search.strip()}%"
            query = query.filter(
                or_(
                    Dossier.client_first_name.ilike(pattern),
                    Dossier.client_last_name.ilike(pattern),
                    Dossier.client_email.ilike(pattern),
                    Dossier.client_phone.ilike(pattern),
                    Dossier.address.ilike(pattern),
                    Dossier.city.ilike(pattern),
                    Dossier.description.ilike(pattern),
                )
            )

        total = query.count()
        urgency_rank = case(URGENCY_ORDER, value=Dossier.urgency, else_=0)
        items = (
            query.order_by(urgency_rank.desc(), Dossier.created_at.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )
        return items, total

    @staticmethod
    def count_by_status(db: Session, user_id: str) -> dict[str, int]:
        rows = (
            db.query(Dossier.status, func.count(Dossier.id))
            .filter(Dossier.user_id == user_id, Dossier.deleted_at.is_(None))
            .group_by(Dossier.status)
            .all()
        )
        return {status: count for status, count in rows}

    @staticmethod
    def count_by_appointment_status(db: Session, user_id: str) -> dict[str, int]:
        rows = (
            db.query(Dossier.appointment_status, func.count(Dossier.id))
            .filter(Dossier.user_id == user_id, Dossier.deleted_at.is_(None))
            .group_by(Dossier.appointment_status)
            .all()
        )
        return {status: count for status, count in rows}

    @staticmethod
    def create_dossier(db: Session, user_id: str, **dossier_data) -> Dossier:
        """Stage a new dossier (the caller commits with its historique entry)"""
        dossier = Dossier(user_id=user_id, **dossier_data)
        db.add(dossier)
        db.flush()
        return dossier

    @staticmethod
    def update_dossier(db: Session, dossier: Dossier, **updates) -> Dossier:
        for key, value in updates.items():
            if hasattr(dossier, key):
                setattr(dossier, key, value)
        db.commit()
        db.refresh(dossier)
        return dossier

    @staticmethod
    def list_historique(db: Session, dossier_id: str) -> list[Historique]:
        return (
            db.query(Historique)
            .filter(Historique.dossier_id == dossier_id)
            .order_by(Historique.created_at.desc(), Historique.id.desc())
            .all()
        )

    @staticmethod
    def list_medias(db: Session, dossier_id: str) -> list[Media]:
        return (
            db.query(Media)
            .filter(Media.dossier_id == dossier_id)
            .order_by(Media.created_at.desc())
            .all()
        )

    @staticmethod
    def add_media(db: Session, dossier: Dossier, **media_data) -> Media:
        media = Media(dossier_id=dossier.id, user_id=dossier.user_id, **media_data)
        db.add(media)
        db.commit()
        db.refresh(media)
        return media
