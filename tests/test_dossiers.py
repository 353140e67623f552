"""Dossier CRUD, dashboard counters, client link and the public form"""

from datetime import date, timedelta

from bulbiz.models import Dossier, Historique, utcnow


def _actions(db, dossier_id):
    return [h.action for h in db.query(Historique).filter(Historique.dossier_id == dossier_id).all()]


class TestDossierCrud:
    def test_create_manual(self, client, db):
        response = client.post(
            "/dossiers",
            json={
                "client_first_name": "Marc",
                "client_phone": "06 98 76 54 32",
                "category": "wc",
                "urgency": "aujourdhui",
            },
        )

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "nouveau"
        assert data["appointment_status"] == "none"
        assert data["source"] == "manuel"
        [entry] = db.query(Historique).filter(Historique.dossier_id == data["id"]).all()
        assert entry.details == "Dossier créé (création manuelle)"

    def test_create_without_contact_is_partial(self, client, db):
        data = client.post("/dossiers", json={"source": "email"}).json()
        [entry] = db.query(Historique).filter(Historique.dossier_id == data["id"]).all()
        assert entry.details == "Dossier créé (import email) – informations partielles"

    def test_invalid_phone(self, client):
        assert client.post("/dossiers", json={"client_phone": "123"}).status_code == 422

    def test_other_users_dossier_is_hidden(self, client, db, make_dossier):
        dossier = make_dossier()
        dossier.user_id = "someone-else"
        db.commit()
        assert client.get(f"/dossiers/{dossier.id}").status_code == 404

    def test_soft_delete(self, client, db, make_dossier):
        dossier = make_dossier()
        assert client.delete(f"/dossiers/{dossier.id}").status_code == 200

        db.refresh(dossier)
        assert dossier.deleted_at is not None
        assert db.get(Dossier, dossier.id) is not None
        assert client.get(f"/dossiers/{dossier.id}").status_code == 404

    def test_list_filters_and_urgency_order(self, client, make_dossier):
        make_dossier(urgency="semaine", client_last_name="Lent")
        make_dossier(urgency="aujourdhui", client_last_name="Pressé")
        make_dossier(status="a_qualifier", urgency="48h")
        make_dossier(status="devis_envoye")

        data = client.get("/dossiers", params={"status": "nouveau"}).json()

        assert data["total"] == 3
        assert data["items"][0]["client_last_name"] == "Pressé"
        assert data["items"][-1]["client_last_name"] == "Lent"

    def test_search(self, client, make_dossier):
        make_dossier(city="Lyon")
        make_dossier(client_last_name="Bernard")
        data = client.get("/dossiers", params={"search": "bern"}).json()
        assert [item["client_last_name"] for item in data["items"]] == ["Bernard"]


class TestStatusAndNotes:
    def test_manual_status_change(self, client, db, make_dossier):
        dossier = make_dossier()
        response = client.post(f"/dossiers/{dossier.id}/status", json={"status": "devis_a_faire"})

        assert response.status_code == 200
        assert response.json()["status"] == "devis_a_faire"
        assert _actions(db, dossier.id) == ["status_change"]

    def test_illegal_status_change(self, client, make_dossier):
        dossier = make_dossier(status="invoice_paid")
        response = client.post(f"/dossiers/{dossier.id}/status", json={"status": "nouveau"})

        assert response.status_code == 409
        assert response.json()["axis"] == "dossier"
        assert response.json()["requested"] == "nouveau"

    def test_note_and_historique(self, client, make_dossier):
        dossier = make_dossier()
        response = client.post(f"/dossiers/{dossier.id}/notes", json={"note": "  Client absent le matin  "})
        assert response.status_code == 201
        assert response.json()["details"] == "Client absent le matin"

        historique = client.get(f"/dossiers/{dossier.id}/historique").json()
        assert [entry["action"] for entry in historique] == ["note"]

    def test_relance_toggle(self, client, db, make_dossier):
        dossier = make_dossier()
        data = client.post(f"/dossiers/{dossier.id}/relance-toggle", json={"active": False}).json()
        assert data["relance_active"] is False
        assert _actions(db, dossier.id) == ["relance_toggle"]


class TestDashboard:
    def test_a_qualifier_counted_as_nouveau(self, client, make_dossier):
        for _ in range(3):
            make_dossier(status="nouveau")
        make_dossier(status="a_qualifier")
        make_dossier(status="devis_envoye")

        data = client.get("/dossiers/dashboard").json()

        assert data["statuses"]["nouveau"] == 4
        assert "a_qualifier" not in data["statuses"]
        assert data["statuses"]["devis_envoye"] == 1
        assert data["total"] == 5

    def test_appointment_tiles(self, client, make_dossier):
        make_dossier(appointment_status="rdv_pending")
        make_dossier(appointment_status="slots_proposed")
        make_dossier(appointment_status="client_selected")
        make_dossier(appointment_status="rdv_confirmed")
        make_dossier(appointment_status="done")
        make_dossier(appointment_status="cancelled")

        tiles = client.get("/dossiers/dashboard").json()["appointments"]

        assert tiles == {"slots_needed": 1, "waiting_client": 2, "rdv_confirmed": 1, "rdv_done": 1}

    def test_deleted_dossiers_not_counted(self, client, make_dossier):
        make_dossier(deleted_at=utcnow())
        assert client.get("/dossiers/dashboard").json()["total"] == 0

    def test_tile_filter(self, client, make_dossier):
        make_dossier(appointment_status="slots_proposed")
        make_dossier(appointment_status="client_selected")
        make_dossier(appointment_status="rdv_pending")
        data = client.get("/dossiers", params={"appointment": "waiting_client"}).json()
        assert data["total"] == 2


class TestIcsDownload:
    def test_no_appointment(self, client, make_dossier):
        dossier = make_dossier()
        assert client.get(f"/dossiers/{dossier.id}/appointment.ics").status_code == 404

    def test_download(self, client, make_dossier):
        dossier = make_dossier(
            appointment_status="rdv_confirmed",
            appointment_date=date(2026, 3, 10),
            appointment_time_start="09:00",
        )
        response = client.get(f"/dossiers/{dossier.id}/appointment.ics")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/calendar")
        assert "DTSTART:20260310T090000" in response.text
        assert "DTEND:20260310T100000" in response.text


class TestClientLink:
    def test_generate_and_reuse(self, client, db, make_dossier):
        dossier = make_dossier()
        first = client.post(f"/dossiers/{dossier.id}/client-token").json()
        second = client.post(f"/dossiers/{dossier.id}/client-token").json()

        assert first["token_generated"] is True
        assert second["token_generated"] is False
        assert first["token"] == second["token"]
        assert first["client_link"].endswith(f"/client?token={first['token']}")

    def test_force_regenerate_overwrites(self, client, make_dossier):
        dossier = make_dossier()
        first = client.post(f"/dossiers/{dossier.id}/client-token").json()
        second = client.post(f"/dossiers/{dossier.id}/client-token", json={"force_regenerate": True}).json()
        assert first["token"] != second["token"]

    def test_send_link(self, client, db, providers, make_dossier):
        dossier = make_dossier()
        data = client.post(f"/dossiers/{dossier.id}/send-client-link").json()

        assert data["email_sent"] is True
        assert data["sms_sent"] is True
        assert data["client_link"] in providers.sms[0]["body"]
        assert {"client_link_generated", "client_link_sent_email", "client_link_sent_sms"} <= set(
            _actions(db, dossier.id)
        )

    def test_send_link_without_contact(self, client, db, providers, make_dossier):
        dossier = make_dossier(client_email=None, client_phone=None)
        data = client.post(f"/dossiers/{dossier.id}/send-client-link").json()

        assert data["no_contact"] is True
        assert providers.emails == [] and providers.sms == []
        assert "client_link_not_sent" in _actions(db, dossier.id)


class TestPublicForm:
    def _with_token(self, client, dossier):
        return client.post(f"/dossiers/{dossier.id}/client-token").json()["token"]

    def test_view(self, client, make_dossier):
        dossier = make_dossier()
        token = self._with_token(client, dossier)

        data = client.get("/public/dossier", params={"token": token}).json()

        assert data["dossier_id"] == dossier.id
        assert data["artisan"]["name"] == "Plomberie Martin"

    def test_unknown_token(self, public_client):
        assert public_client.get("/public/dossier", params={"token": "nope"}).status_code == 404

    def test_expired_token(self, public_client, db, make_dossier):
        dossier = make_dossier(client_token="a" * 64, client_token_expires_at=utcnow() - timedelta(hours=1))
        response = public_client.get("/public/dossier", params={"token": dossier.client_token})
        assert response.status_code == 410

    def test_consent_required(self, client, make_dossier):
        dossier = make_dossier()
        token = self._with_token(client, dossier)
        response = client.post("/public/dossier/submit", json={"token": token, "description": "Fuite"})
        assert response.status_code == 400

    def test_submit_qualifies_and_burns_token(self, client, db, make_dossier):
        dossier = make_dossier(source="manuel")
        token = self._with_token(client, dossier)

        response = client.post(
            "/public/dossier/submit",
            json={
                "token": token,
                "description": "  Le ballon ne chauffe plus  ",
                "rgpd_consent": True,
                "category": "chauffe_eau",
                "floor_number": 3,
                "has_elevator": False,
            },
        )

        assert response.json() == {"success": True}
        db.refresh(dossier)
        assert dossier.status == "a_qualifier"
        assert dossier.source == "lien_client"
        assert dossier.description == "Le ballon ne chauffe plus"
        assert dossier.category == "chauffe_eau"
        assert dossier.floor_number == 3
        assert dossier.client_token is None

        entry = (
            db.query(Historique)
            .filter(Historique.dossier_id == dossier.id, Historique.action == "client_form_submitted")
            .one()
        )
        assert entry.user_id is None

        again = client.post(
            "/public/dossier/submit", json={"token": token, "description": "x", "rgpd_consent": True}
        )
        assert again.status_code == 404

    def test_submit_keeps_later_status(self, client, db, make_dossier):
        dossier = make_dossier(status="devis_a_faire")
        token = self._with_token(client, dossier)
        client.post("/public/dossier/submit", json={"token": token, "description": "Précisions", "rgpd_consent": True})
        db.refresh(dossier)
        assert dossier.status == "devis_a_faire"
        assert "client_form_submitted" in _actions(db, dossier.id)

    def test_client_media_upload(self, client, db, providers, make_dossier):
        dossier = make_dossier()
        token = self._with_token(client, dossier)

        response = client.post(
            "/public/dossier/media",
            data={"token": token, "note": "Sous l'évier"},
            files={"file": ("fuite.jpg", b"\xff\xd8\xff" + b"0" * 100, "image/jpeg")},
        )

        assert response.status_code == 201
        data = response.json()
        assert data["media_type"] == "photo"
        assert data["media_category"] == "client"
        assert data["file_url"].startswith("https://cdn.example.test/")
        assert providers.uploads[0]["content_type"] == "image/jpeg"

    def test_rejected_media_type(self, client, make_dossier):
        dossier = make_dossier()
        token = self._with_token(client, dossier)
        response = client.post(
            "/public/dossier/media",
            data={"token": token},
            files={"file": ("script.sh", b"echo hi", "application/x-sh")},
        )
        assert response.status_code == 400


class TestIntakeHelpers:
    def test_parse_email_endpoint(self, client):
        response = client.post("/dossiers/parse-email", json={"raw": "Bonjour, fuite urgente au 06 12 34 56 78"})
        data = response.json()
        assert data["client_phone"] == "0612345678"
        assert data["category"] == "fuite"
        assert data["urgency"] == "aujourdhui"

    def test_summary_endpoint(self, client, make_dossier):
        dossier = make_dossier()
        data = client.get(f"/dossiers/{dossier.id}/summary").json()
        assert data["headline"] == "Demande : fuite – urgence 48h"
