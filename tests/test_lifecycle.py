"""State machines and the audit trail written by LifecycleService"""

import pytest

from bulbiz.domain.lifecycle import (
    APPOINTMENT,
    DOSSIER,
    INVOICE,
    QUOTE,
    LifecycleError,
    LifecycleService,
    allowed_next,
    validate_transition,
)
from bulbiz.domain.lifecycle import service as lifecycle_service
from bulbiz.models import Historique


class TestTransitionTables:
    def test_invoice_paid_is_terminal(self):
        assert allowed_next(DOSSIER, "invoice_paid") == []

    def test_done_is_terminal(self):
        assert allowed_next(APPOINTMENT, "done") == []

    def test_signed_quote_is_terminal(self):
        assert allowed_next(QUOTE, "signe") == []

    def test_refused_quote_can_be_resent(self):
        assert allowed_next(QUOTE, "refuse") == ["envoye"]

    def test_cancelled_rdv_can_restart(self):
        assert set(allowed_next(APPOINTMENT, "cancelled")) == {"rdv_pending", "rdv_confirmed"}

    def test_every_target_is_a_known_status(self):
        for axis in (DOSSIER, APPOINTMENT, QUOTE, INVOICE):
            for targets in axis.transitions.values():
                assert set(targets) <= set(axis.transitions)


class TestValidateTransition:
    def test_allowed(self):
        assert validate_transition(DOSSIER, "devis_envoye", "clos_signe") is True

    def test_same_status_is_noop(self):
        assert validate_transition(DOSSIER, "clos_signe", "clos_signe") is False

    def test_declared_self_loop_is_applied(self):
        assert validate_transition(QUOTE, "envoye", "envoye") is True
        assert validate_transition(APPOINTMENT, "slots_proposed", "slots_proposed") is True

    def test_not_in_table(self):
        with pytest.raises(LifecycleError) as exc:
            validate_transition(DOSSIER, "invoice_paid", "nouveau")
        assert exc.value.current == "invoice_paid"
        assert exc.value.allowed == []

    def test_unknown_target(self):
        with pytest.raises(LifecycleError):
            validate_transition(INVOICE, "draft", "cancelled")

    def test_document_events_bypass_the_staff_table(self):
        assert validate_transition(DOSSIER, "invoice_paid", "clos_signe", event=True) is True
        assert validate_transition(DOSSIER, "devis_envoye", "invoice_pending", event=True) is True
        assert validate_transition(APPOINTMENT, "done", "rdv_pending", event=True) is True
        with pytest.raises(LifecycleError):
            validate_transition(DOSSIER, "devis_envoye", "invoice_pending")


class TestLifecycleService:
    def _entries(self, db, dossier):
        return db.query(Historique).filter(Historique.dossier_id == dossier.id).all()

    def test_one_audit_entry_per_change(self, db, make_dossier, user):
        dossier = make_dossier(status="nouveau")
        lifecycle = LifecycleService(db)
        with lifecycle.transaction():
            assert lifecycle.set_dossier_status(dossier, "devis_a_faire", user.id) is True

        entries = self._entries(db, dossier)
        assert len(entries) == 1
        assert entries[0].action == "status_change"
        assert entries[0].details == 'Statut changé en "Devis à faire"'
        assert dossier.status == "devis_a_faire"
        assert dossier.status_changed_at is not None

    def test_noop_writes_nothing(self, db, make_dossier, user):
        dossier = make_dossier(status="clos_signe")
        lifecycle = LifecycleService(db)
        with lifecycle.transaction():
            assert lifecycle.set_dossier_status(dossier, "clos_signe", user.id) is False
        assert self._entries(db, dossier) == []

    def test_custom_action_and_details(self, db, make_dossier, user):
        dossier = make_dossier()
        lifecycle = LifecycleService(db)
        with lifecycle.transaction():
            lifecycle.set_appointment_status(
                dossier, "rdv_pending", user.id, action="rdv_requested", details="Prise de rendez-vous"
            )
        [entry] = self._entries(db, dossier)
        assert (entry.action, entry.details) == ("rdv_requested", "Prise de rendez-vous")

    def test_failure_rolls_back_status_and_audit(self, db, make_dossier, user):
        dossier = make_dossier(status="nouveau")
        lifecycle = LifecycleService(db)
        with pytest.raises(RuntimeError):
            with lifecycle.transaction():
                lifecycle.set_dossier_status(dossier, "a_qualifier", user.id)
                raise RuntimeError("db down")

        db.refresh(dossier)
        assert dossier.status == "nouveau"
        assert self._entries(db, dossier) == []

    def test_illegal_transition_raises(self, db, make_dossier, user):
        dossier = make_dossier(status="invoice_paid")
        lifecycle = LifecycleService(db)
        with pytest.raises(LifecycleError):
            with lifecycle.transaction():
                lifecycle.set_dossier_status(dossier, "devis_envoye", user.id)
        db.refresh(dossier)
        assert dossier.status == "invoice_paid"

    def test_document_event_moves_from_any_status(self, db, make_dossier, user):
        dossier = make_dossier(status="invoice_pending")
        lifecycle = LifecycleService(db)
        with lifecycle.transaction():
            assert lifecycle.set_dossier_status(dossier, "clos_signe", None, event=True) is True

        [entry] = self._entries(db, dossier)
        assert entry.details == 'Statut changé en "Devis signé"'
        assert dossier.status == "clos_signe"

    def test_event_still_rejects_other_targets(self, db, make_dossier, user):
        dossier = make_dossier(status="invoice_paid")
        lifecycle = LifecycleService(db)
        with pytest.raises(LifecycleError):
            with lifecycle.transaction():
                lifecycle.set_dossier_status(dossier, "nouveau", user.id, event=True)

    def test_dashboard_invalidated_after_commit(self, db, make_dossier, user, monkeypatch):
        invalidated = []
        monkeypatch.setattr(lifecycle_service, "invalidate_dashboard", invalidated.append)
        dossier = make_dossier(status="nouveau")
        lifecycle = LifecycleService(db)

        with lifecycle.transaction():
            lifecycle.set_dossier_status(dossier, "a_qualifier", user.id)
            assert invalidated == []

        assert invalidated == [user.id]

    def test_no_invalidation_on_rollback(self, db, make_dossier, user, monkeypatch):
        invalidated = []
        monkeypatch.setattr(lifecycle_service, "invalidate_dashboard", invalidated.append)
        dossier = make_dossier(status="nouveau")
        with pytest.raises(RuntimeError):
            with LifecycleService(db).transaction() as lifecycle:
                lifecycle.set_dossier_status(dossier, "a_qualifier", user.id)
                raise RuntimeError("db down")
        assert invalidated == []
