"""RDV flow: request, slot proposal, client choice, confirmation, cancel, done"""

from datetime import date

from bulbiz.models import AppointmentSlot, Historique, NotificationLog

SLOTS = [
    {"slot_date": "2026-03-10", "time_start": "09:00", "time_end": "11:00"},
    {"slot_date": "2026-03-11", "time_start": "14:00", "time_end": "16:00"},
]


def _base(dossier):
    return f"/dossiers/{dossier.id}/appointment"


def _actions(db, dossier_id):
    return [h.action for h in db.query(Historique).filter(Historique.dossier_id == dossier_id).all()]


class TestRequest:
    def test_request_notifies_client(self, client, db, providers, make_dossier):
        dossier = make_dossier(status="clos_signe")

        data = client.post(f"{_base(dossier)}/request").json()

        assert data["appointment_status"] == "rdv_pending"
        assert data["notification"]["email_status"] == "SENT"
        assert data["notification"]["sms_status"] == "SENT"
        assert "souhaite convenir d'un RDV" in providers.sms[0]["body"]
        logs = db.query(NotificationLog).filter(NotificationLog.dossier_id == dossier.id).all()
        assert {(log.channel, log.status) for log in logs} == {("email", "SENT"), ("sms", "SENT")}

    def test_repeat_request_is_noop(self, client, providers, make_dossier):
        dossier = make_dossier(appointment_status="rdv_pending")
        data = client.post(f"{_base(dossier)}/request").json()
        assert data["notification"] is None
        assert providers.emails == []


class TestSlots:
    def test_propose_slots(self, client, db, providers, make_dossier):
        dossier = make_dossier(appointment_status="rdv_pending")

        response = client.post(f"{_base(dossier)}/slots", json={"slots": SLOTS})

        assert response.status_code == 200
        data = response.json()
        assert data["appointment_status"] == "slots_proposed"
        assert [slot["time_start"] for slot in data["slots"]] == ["09:00", "14:00"]
        db.refresh(dossier)
        assert dossier.client_token is not None
        assert f"/client?token={dossier.client_token}" in providers.sms[0]["body"]
        assert "Mardi 10 mars 2026 09:00–11:00" in providers.emails[0]["body"]

    def test_new_proposal_replaces_previous(self, client, db, make_dossier):
        dossier = make_dossier(appointment_status="rdv_pending")
        client.post(f"{_base(dossier)}/slots", json={"slots": SLOTS})
        data = client.post(f"{_base(dossier)}/slots", json={"slots": SLOTS[:1]}).json()

        assert len(data["slots"]) == 1
        assert db.query(AppointmentSlot).filter(AppointmentSlot.dossier_id == dossier.id).count() == 1

    def test_end_before_start_rejected(self, client, make_dossier):
        dossier = make_dossier(appointment_status="rdv_pending")
        bad = [{"slot_date": "2026-03-10", "time_start": "11:00", "time_end": "09:00"}]
        assert client.post(f"{_base(dossier)}/slots", json={"slots": bad}).status_code == 422

    def test_at_most_five_slots(self, client, make_dossier):
        dossier = make_dossier(appointment_status="rdv_pending")
        response = client.post(f"{_base(dossier)}/slots", json={"slots": SLOTS * 3})
        assert response.status_code == 422

    def test_not_from_none(self, client, make_dossier):
        dossier = make_dossier()
        response = client.post(f"{_base(dossier)}/slots", json={"slots": SLOTS})
        assert response.status_code == 409
        assert response.json()["axis"] == "appointment"


class TestClientChoiceAndConfirmation:
    def _proposed(self, client, db, make_dossier):
        dossier = make_dossier(status="clos_signe", appointment_status="rdv_pending")
        slots = client.post(f"{_base(dossier)}/slots", json={"slots": SLOTS}).json()["slots"]
        db.refresh(dossier)
        return dossier, slots

    def test_public_view_lists_slots(self, client, db, make_dossier):
        dossier, slots = self._proposed(client, db, make_dossier)

        data = client.get("/public/appointment", params={"token": dossier.client_token}).json()

        assert data["appointment_status"] == "slots_proposed"
        assert [slot["id"] for slot in data["slots"]] == [slot["id"] for slot in slots]

    def test_client_selects_slot(self, client, db, make_dossier):
        dossier, slots = self._proposed(client, db, make_dossier)

        response = client.post(
            "/public/appointment/select", json={"token": dossier.client_token, "slot_id": slots[1]["id"]}
        )

        assert response.status_code == 200
        assert response.json()["slot"]["time_start"] == "14:00"
        db.refresh(dossier)
        assert dossier.appointment_status == "client_selected"
        entry = (
            db.query(Historique)
            .filter(Historique.dossier_id == dossier.id, Historique.action == "client_slot_selected")
            .one()
        )
        assert entry.user_id is None

    def test_select_unknown_slot(self, client, db, make_dossier):
        dossier, _ = self._proposed(client, db, make_dossier)
        response = client.post("/public/appointment/select", json={"token": dossier.client_token, "slot_id": "x"})
        assert response.status_code == 404

    def test_select_twice_conflicts(self, client, db, make_dossier):
        dossier, slots = self._proposed(client, db, make_dossier)
        payload = {"token": dossier.client_token, "slot_id": slots[0]["id"]}
        client.post("/public/appointment/select", json=payload)
        assert client.post("/public/appointment/select", json=payload).status_code == 409

    def test_confirm_syncs_calendar_and_notifies(self, client, db, providers, make_dossier):
        providers.calendar_event_id = "evt-123"
        dossier, slots = self._proposed(client, db, make_dossier)
        client.post("/public/appointment/select", json={"token": dossier.client_token, "slot_id": slots[0]["id"]})

        data = client.post(f"{_base(dossier)}/confirm").json()

        assert data["appointment_status"] == "rdv_confirmed"
        assert data["appointment_date"] == "2026-03-10"
        assert data["appointment_time_start"] == "09:00"
        assert data["appointment_source"] == "client_selected"
        assert data["notification"]["email_status"] == "SENT"
        assert providers.calendar_events == [dossier.id]
        db.refresh(dossier)
        assert dossier.google_calendar_event_id == "evt-123"
        assert "google_calendar_synced" in _actions(db, dossier.id)
        assert "RDV confirmé" in providers.sms[-1]["body"]

    def test_confirm_without_selection(self, client, db, make_dossier):
        dossier, _ = self._proposed(client, db, make_dossier)
        assert client.post(f"{_base(dossier)}/confirm").status_code == 400


class TestManualRdv:
    def test_phone_rdv_from_none(self, client, db, make_dossier):
        dossier = make_dossier()
        data = client.post(
            f"{_base(dossier)}/manual",
            json={"appointment_date": "2026-03-12", "time_start": "08:30", "time_end": "10:00", "source": "phone"},
        ).json()

        assert data["appointment_status"] == "rdv_confirmed"
        assert data["appointment_source"] == "phone"

    def test_reschedule_is_logged(self, client, db, make_dossier):
        dossier = make_dossier()
        body = {"appointment_date": "2026-03-12", "time_start": "08:30", "time_end": "10:00"}
        client.post(f"{_base(dossier)}/manual", json=body)
        data = client.post(f"{_base(dossier)}/manual", json={**body, "time_start": "13:00", "time_end": "14:00"}).json()

        assert data["appointment_time_start"] == "13:00"
        assert _actions(db, dossier.id).count("rdv_confirmed") == 2


class TestCancelAndDone:
    def _confirmed(self, client, make_dossier):
        dossier = make_dossier()
        client.post(
            f"{_base(dossier)}/manual",
            json={"appointment_date": "2026-03-12", "time_start": "08:30", "time_end": "10:00"},
        )
        return dossier

    def test_cancel_removes_calendar_event(self, client, providers, make_dossier):
        providers.calendar_event_id = "evt-9"
        dossier = self._confirmed(client, make_dossier)

        data = client.post(f"{_base(dossier)}/cancel").json()

        assert data["appointment_status"] == "cancelled"
        assert data["appointment_date"] is None
        assert providers.deleted_events == ["evt-9"]

    def test_cancelled_can_restart(self, client, make_dossier):
        dossier = self._confirmed(client, make_dossier)
        client.post(f"{_base(dossier)}/cancel")
        assert client.post(f"{_base(dossier)}/request").json()["appointment_status"] == "rdv_pending"

    def test_done(self, client, make_dossier):
        dossier = self._confirmed(client, make_dossier)
        data = client.post(f"{_base(dossier)}/done").json()
        assert data["appointment_status"] == "done"
        assert client.post(f"{_base(dossier)}/cancel").status_code == 409

    def test_done_requires_confirmed(self, client, make_dossier):
        dossier = make_dossier(appointment_status="rdv_pending")
        assert client.post(f"{_base(dossier)}/done").status_code == 409


class TestNotificationChecks:
    def test_missing_email_skipped(self, client, db, providers, make_dossier):
        dossier = make_dossier(client_email=None, appointment_status="cancelled")

        data = client.post(f"{_base(dossier)}/request").json()

        assert data["notification"]["email_status"] == "SKIPPED"
        assert data["notification"]["sms_status"] == "SENT"
        assert "notification_skipped" in _actions(db, dossier.id)

    def test_client_email_same_as_artisan(self, client, db, providers, user, make_dossier):
        dossier = make_dossier(client_email=user.email.upper(), appointment_status="cancelled")

        data = client.post(f"{_base(dossier)}/request").json()

        assert data["notification"]["email_status"] == "FAILED"
        assert providers.emails == []
        log = (
            db.query(NotificationLog)
            .filter(NotificationLog.dossier_id == dossier.id, NotificationLog.channel == "email")
            .one()
        )
        assert log.error_code == "WRONG_RECIPIENT"

    def test_both_channels_failed(self, client, providers, make_dossier):
        providers.email_error = "boom"
        providers.sms_result = (False, "Twilio error 21211")
        dossier = make_dossier(appointment_status="cancelled")

        data = client.post(f"{_base(dossier)}/request").json()

        assert data["notification"]["email_status"] == "FAILED"
        assert data["notification"]["sms_status"] == "FAILED"
        assert data["notification"]["error_message"].startswith("Email et SMS ont échoué")

    def test_sms_disabled(self, client, db, providers, user, make_dossier):
        user.sms_enabled = False
        db.commit()
        dossier = make_dossier(appointment_status="cancelled")

        data = client.post(f"{_base(dossier)}/request").json()

        assert data["notification"]["sms_status"] == "SKIPPED"
        assert providers.sms == []


class TestIcsAfterConfirmation:
    def test_ics_available(self, client, make_dossier):
        dossier = make_dossier()
        client.post(
            f"{_base(dossier)}/manual",
            json={"appointment_date": date(2026, 3, 12).isoformat(), "time_start": "08:30", "time_end": "10:00"},
        )
        response = client.get(f"/dossiers/{dossier.id}/appointment.ics")
        assert "DTSTART:20260312T083000" in response.text
        assert "DTEND:20260312T100000" in response.text
