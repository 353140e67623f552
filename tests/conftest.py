"""
Shared fixtures: in-memory SQLite, FastAPI TestClient with dependency
overrides, and recorders replacing every outbound provider.
"""

import os

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-jwt-secret")
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["DB_LOG_SLOW_QUERIES"] = "false"
for name in ("REDIS_URL", "REDIS_HOST", "STRIPE_SECRET_KEY", "TWILIO_ACCOUNT_SID", "RESEND_API_KEY"):
    os.environ.pop(name, None)

from datetime import timedelta  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from bulbiz import email_service  # noqa: E402
from bulbiz.auth import get_current_user  # noqa: E402
from bulbiz.database import Base, get_db  # noqa: E402
from bulbiz.main import app  # noqa: E402
from bulbiz.models import Dossier, User, utcnow  # noqa: E402
from bulbiz.models_invoice import Quote  # noqa: E402
from bulbiz.services import google_calendar_service, storage, twilio_service  # noqa: E402
from bulbiz.services.client_tokens import issue_token  # noqa: E402


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def user(db):
    artisan = User(
        auth_uid="auth-artisan-1",
        email="artisan@plomberie-martin.fr",
        first_name="Paul",
        last_name="Martin",
        company_name="Plomberie Martin",
        phone="0611223344",
        siret="12345678901234",
        sms_enabled=True,
        vat_applicable=True,
        default_vat_rate=10,
    )
    db.add(artisan)
    db.commit()
    db.refresh(artisan)
    return artisan


class ProviderCalls:
    """Records what would have been sent to Resend / Gmail, Twilio and Google Calendar"""

    def __init__(self):
        self.emails = []
        self.sms = []
        self.calendar_events = []
        self.deleted_events = []
        self.uploads = []
        self.email_error = None
        self.sms_result = (True, None)
        self.calendar_event_id = None


@pytest.fixture
def providers(monkeypatch):
    calls = ProviderCalls()

    async def fake_send_client_email(db, user, to, subject, mjml_content):
        if calls.email_error:
            raise Exception(calls.email_error)
        calls.emails.append({"to": to, "subject": subject, "body": mjml_content})
        return "resend"

    async def fake_send_sms(to_phone, message_body):
        calls.sms.append({"to": to_phone, "body": message_body})
        return calls.sms_result

    async def fake_create_calendar_event(user, dossier, db):
        calls.calendar_events.append(dossier.id)
        return calls.calendar_event_id

    async def fake_delete_calendar_event(user, event_id, db):
        calls.deleted_events.append(event_id)
        return True

    def fake_upload_file(key, content, content_type):
        calls.uploads.append({"key": key, "size": len(content), "content_type": content_type})
        return f"https://cdn.example.test/{key}"

    monkeypatch.setattr(email_service, "send_client_email", fake_send_client_email)
    monkeypatch.setattr(twilio_service, "send_sms", fake_send_sms)
    monkeypatch.setattr(google_calendar_service, "create_calendar_event", fake_create_calendar_event)
    monkeypatch.setattr(google_calendar_service, "delete_calendar_event", fake_delete_calendar_event)
    monkeypatch.setattr(storage, "upload_file", fake_upload_file)
    return calls


@pytest.fixture
def client(db, user, providers):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = lambda: user
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def public_client(db, providers):
    """No get_current_user override: public routes must work without a token"""

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def make_dossier(db, user):
    def _make(**fields):
        values = {
            "user_id": user.id,
            "client_first_name": "Julie",
            "client_last_name": "Durand",
            "client_email": "julie.durand@example.com",
            "client_phone": "0612345678",
            "address": "12 rue des Lilas, 75011 Paris",
            "category": "fuite",
            "urgency": "48h",
            "description": "Fuite sous l'évier de la cuisine",
        }
        values.update(fields)
        dossier = Dossier(**values)
        db.add(dossier)
        db.commit()
        db.refresh(dossier)
        return dossier

    return _make


@pytest.fixture
def sent_quote(db, user, make_dossier):
    """Dossier in devis_envoye with one sent quote and a live signature token"""
    dossier = make_dossier(status="devis_envoye")
    token, expires_at = issue_token(30)
    quote = Quote(
        user_id=user.id,
        dossier_id=dossier.id,
        quote_number="DEV-2026-001",
        status="envoye",
        total_ht=100,
        total_tva=10,
        total_ttc=110,
        sent_at=utcnow() - timedelta(days=1),
        signature_token=token,
        signature_token_expires_at=expires_at,
    )
    db.add(quote)
    db.commit()
    db.refresh(quote)
    return quote
