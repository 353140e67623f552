"""Lifecycle service - applies status transitions and writes the audit trail"""

import logging
from contextlib import contextmanager
from typing import Any, Optional

from sqlalchemy.orm import Session

from ...cache import invalidate_dashboard
from ...models import Dossier, Historique, utcnow
from .machine import APPOINTMENT, DOSSIER, INVOICE, QUOTE, Axis, validate_transition

logger = logging.getLogger(__name__)


class LifecycleService:
    """
    Stages status changes and historique rows on the session.

    Nothing is committed until the surrounding transaction() block exits, so a
    persistence failure leaves neither the status nor its audit entry behind.
    """

    def __init__(self, db: Session):
        self.db = db
        self._touched: set[str] = set()

    def record(
        self,
        dossier: Dossier,
        action: str,
        details: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> Historique:
        """Append one historique entry (staged, not committed)"""
        entry = Historique(
            dossier_id=dossier.id,
            user_id=user_id,
            action=action,
            details=details,
            created_at=utcnow(),
        )
        self.db.add(entry)
        self._touched.add(dossier.user_id)
        return entry

    def touch(self, dossier: Dossier) -> None:
        """Mark the owner's dashboard stale without writing an audit entry"""
        self._touched.add(dossier.user_id)

    def apply(
        self,
        axis: Axis,
        obj: Any,
        dossier: Dossier,
        new_status: str,
        user_id: Optional[str] = None,
        action: Optional[str] = None,
        details: Optional[str] = None,
        event: bool = False,
    ) -> bool:
        """
        Move obj along axis to new_status and append exactly one audit entry.

        event=True marks a move caused by a devis or facture event (see
        validate_transition).

        Returns False (and writes nothing) for a same-status no-op.
        Raises LifecycleError for a transition missing from the table.
        """
        current = getattr(obj, axis.status_attr)
        if not validate_transition(axis, current, new_status, event=event):
            logger.debug(f"ℹ️ {axis.name} already '{new_status}' - skipped")
            return False

        setattr(obj, axis.status_attr, new_status)
        if axis.changed_at_attr:
            setattr(obj, axis.changed_at_attr, utcnow())

        self.record(dossier, action or axis.action, details or axis.describe(new_status), user_id)
        logger.info(f"🔄 {axis.name} {getattr(obj, 'id', '?')}: {current} → {new_status}")
        return True

    def set_dossier_status(self, dossier: Dossier, new_status: str, user_id=None, **kwargs) -> bool:
        return self.apply(DOSSIER, dossier, dossier, new_status, user_id, **kwargs)

    def set_appointment_status(self, dossier: Dossier, new_status: str, user_id=None, **kwargs) -> bool:
        return self.apply(APPOINTMENT, dossier, dossier, new_status, user_id, **kwargs)

    def set_quote_status(self, quote, dossier: Dossier, new_status: str, user_id=None, **kwargs) -> bool:
        return self.apply(QUOTE, quote, dossier, new_status, user_id, **kwargs)

    def set_invoice_status(self, invoice, dossier: Dossier, new_status: str, user_id=None, **kwargs) -> bool:
        return self.apply(INVOICE, invoice, dossier, new_status, user_id, **kwargs)

    @contextmanager
    def transaction(self):
        """Commit staged changes together; rollback and re-raise on failure"""
        try:
            yield self
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            self._touched.clear()
            logger.error(f"❌ Transition aborted, nothing persisted: {e}")
            raise

        touched, self._touched = self._touched, set()
        for user_id in touched:
            invalidate_dashboard(user_id)
