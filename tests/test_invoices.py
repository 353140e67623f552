"""Factures: snapshots, 293B, numbering, status and the client view link"""

from datetime import date

from bulbiz.models import Historique
from bulbiz.models_invoice import Invoice

LINES = [
    {"label": "Déplacement", "qty": 1, "unit": "forfait", "unit_price": 35, "vat_rate": 20, "type": "deplacement"},
    {"label": "Main d'œuvre", "qty": 2, "unit": "h", "unit_price": 65, "vat_rate": 10, "type": "main_oeuvre"},
]


def _create(client, dossier, **extra):
    response = client.post("/invoices", json={"dossier_id": dossier.id, "lines": LINES, **extra})
    assert response.status_code == 201
    return response.json()


class TestCreateInvoice:
    def test_numbering(self, client, make_dossier):
        dossier = make_dossier()
        year = date.today().year
        assert _create(client, dossier)["invoice_number"] == f"FAC-{year}-001"
        assert _create(client, dossier)["invoice_number"] == f"FAC-{year}-002"

    def test_totals(self, client, make_dossier):
        data = _create(client, make_dossier())
        assert (data["total_ht"], data["total_tva"], data["total_ttc"]) == (165, 20, 185)
        assert data["vat_mode"] == "normal"
        assert data["status"] == "draft"

    def test_snapshot_is_frozen(self, client, db, user, make_dossier):
        dossier = make_dossier()
        data = _create(client, dossier)

        assert data["client_first_name"] == "Julie"
        assert data["client_address"] == "12 rue des Lilas, 75011 Paris"
        assert data["artisan_company"] == "Plomberie Martin"
        assert data["artisan_name"] == "Paul Martin"
        assert data["artisan_siret"] == "12345678901234"

        dossier.client_first_name = "Juliette"
        user.company_name = "Martin & Fils"
        db.commit()

        again = client.get(f"/invoices/{data['id']}").json()
        assert again["client_first_name"] == "Julie"
        assert again["artisan_company"] == "Plomberie Martin"

    def test_structured_address_preferred(self, client, make_dossier):
        dossier = make_dossier(address_line="3 allée des Pins", postal_code="69003", city="Lyon")
        assert _create(client, dossier)["client_address"] == "3 allée des Pins, 69003, Lyon"

    def test_293b_forces_zero_vat(self, client, db, user, make_dossier):
        user.vat_applicable = False
        db.commit()

        data = _create(client, make_dossier())

        assert data["vat_mode"] == "no_vat_293b"
        assert all(line["vat_rate"] == 0 for line in data["lines"])
        assert data["total_tva"] == 0
        assert data["total_ttc"] == data["total_ht"] == 165

    def test_copy_from_quote(self, client, make_dossier):
        dossier = make_dossier()
        quote = client.post("/quotes", json={"dossier_id": dossier.id, "template": "fuite"}).json()

        response = client.post("/invoices", json={"dossier_id": dossier.id, "quote_id": quote["id"]})

        data = response.json()
        assert data["quote_id"] == quote["id"]
        assert [line["label"] for line in data["lines"]] == [line["label"] for line in quote["lines"]]
        assert data["total_ttc"] == quote["total_ttc"]

    def test_quote_from_other_dossier(self, client, make_dossier):
        dossier, other = make_dossier(), make_dossier()
        quote = client.post("/quotes", json={"dossier_id": other.id}).json()
        response = client.post("/invoices", json={"dossier_id": dossier.id, "quote_id": quote["id"]})
        assert response.status_code == 404

    def test_creation_logged(self, client, db, make_dossier):
        dossier = make_dossier()
        data = _create(client, dossier)
        entry = db.query(Historique).filter(Historique.dossier_id == dossier.id).one()
        assert entry.action == "invoice_created"
        assert data["invoice_number"] in entry.details


class TestInvoiceStatus:
    def test_paid_moves_dossier(self, client, db, make_dossier):
        dossier = make_dossier(status="clos_signe")
        invoice = _create(client, dossier)

        response = client.post(f"/invoices/{invoice['id']}/status", json={"status": "paid"})

        assert response.status_code == 200
        assert response.json()["paid_at"] is not None
        db.refresh(dossier)
        assert dossier.status == "invoice_paid"

    def test_paid_invoice_is_locked(self, client, make_dossier):
        invoice = _create(client, make_dossier())
        client.post(f"/invoices/{invoice['id']}/status", json={"status": "paid"})

        assert client.patch(f"/invoices/{invoice['id']}", json={"notes": "x"}).status_code == 409
        assert client.put(f"/invoices/{invoice['id']}/lines", json={"lines": []}).status_code == 409
        assert client.post(f"/invoices/{invoice['id']}/send").status_code == 409
        assert client.post(f"/invoices/{invoice['id']}/status", json={"status": "sent"}).status_code == 409

    def test_second_invoice_keeps_paid_dossier(self, client, db, make_dossier):
        dossier = make_dossier(status="clos_signe")
        first = _create(client, dossier)
        client.post(f"/invoices/{first['id']}/status", json={"status": "paid"})
        second = _create(client, dossier)

        response = client.post(f"/invoices/{second['id']}/send")

        assert response.status_code == 200
        db.refresh(dossier)
        assert dossier.status == "invoice_paid"


class TestSendInvoice:
    def test_send(self, client, db, providers, make_dossier):
        dossier = make_dossier(status="clos_signe")
        invoice = _create(client, dossier)

        data = client.post(f"/invoices/{invoice['id']}/send").json()

        assert data["email_sent"] is True
        assert data["sms_sent"] is True
        assert "/facture/view?token=" in data["view_url"]
        stored = db.get(Invoice, invoice["id"])
        assert stored.status == "sent"
        assert stored.client_token is not None
        db.refresh(dossier)
        assert dossier.status == "invoice_pending"
        assert providers.emails[0]["subject"] == "Votre facture"

    def test_send_from_unsigned_quote_dossier(self, client, db, make_dossier):
        dossier = make_dossier(status="devis_envoye")
        invoice = _create(client, dossier)

        response = client.post(f"/invoices/{invoice['id']}/send")

        assert response.status_code == 200
        db.refresh(dossier)
        assert dossier.status == "invoice_pending"

    def test_paid_from_lost_dossier(self, client, db, make_dossier):
        dossier = make_dossier(status="clos_perdu")
        invoice = _create(client, dossier)

        response = client.post(f"/invoices/{invoice['id']}/status", json={"status": "paid"})

        assert response.status_code == 200
        db.refresh(dossier)
        assert dossier.status == "invoice_paid"

    def test_token_reused_while_valid(self, client, make_dossier):
        invoice = _create(client, make_dossier())
        first = client.post(f"/invoices/{invoice['id']}/token").json()
        second = client.post(f"/invoices/{invoice['id']}/token").json()
        assert first["token"] == second["token"]

    def test_public_view(self, client, make_dossier):
        invoice = _create(client, make_dossier())
        token = client.post(f"/invoices/{invoice['id']}/token").json()["token"]

        response = client.get("/public/invoice", params={"token": token})

        assert response.status_code == 200
        data = response.json()
        assert data["invoice_number"] == invoice["invoice_number"]
        assert data["artisan"]["company"] == "Plomberie Martin"
        assert len(data["lines"]) == 2
