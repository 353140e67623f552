import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


def generate_uuid():
    """Generate a UUID primary key (matches the ids exposed to the frontend)"""
    return str(uuid.uuid4())


def utcnow() -> datetime:
    """Naive UTC timestamp, the convention for every DateTime column"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class User(Base):
    """Artisan account and profile settings"""

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    auth_uid = Column(String(128), unique=True, nullable=False, index=True)  # JWT "sub"
    email = Column(String(255), nullable=False, index=True)

    # Identity shown on devis / factures
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    company_name = Column(String(255), nullable=True)
    phone = Column(String(30), nullable=True)
    address = Column(Text, nullable=True)
    siret = Column(String(20), nullable=True)
    tva_intracom = Column(String(30), nullable=True)
    email_signature = Column(Text, nullable=True)

    # Devis / facture defaults
    default_vat_rate = Column(Float, default=10)
    default_validity_days = Column(Integer, default=30)
    vat_applicable = Column(Boolean, default=True)
    payment_terms_default = Column(Text, nullable=True)

    # Client links and relances
    client_link_validity_days = Column(Integer, default=7)
    auto_relance_enabled = Column(Boolean, default=False)
    relance_delay_devis_1 = Column(Integer, default=2)  # days after devis_envoye
    relance_delay_devis_2 = Column(Integer, default=5)
    sms_enabled = Column(Boolean, default=True)

    # Billing (mirrored from Stripe webhooks)
    stripe_customer_id = Column(String(255), nullable=True, index=True)
    subscription_plan = Column(String(20), default="free")  # free, pro, enterprise
    subscription_status = Column(String(20), nullable=True)  # trialing, active, past_due, canceled
    current_period_end = Column(DateTime, nullable=True)
    trial_ends_at = Column(DateTime, nullable=True)
    referral_code = Column(String(50), unique=True, nullable=True)
    referral_credits_months = Column(Integer, default=0)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    dossiers = relationship("Dossier", back_populates="user")

    @property
    def artisan_name(self) -> str:
        """Display name used as email sender and in SMS bodies"""
        full_name = " ".join(part for part in [self.first_name, self.last_name] if part)
        return self.company_name or full_name or "Votre artisan"


class Dossier(Base):
    """Customer service request - root aggregate of the domain"""

    __tablename__ = "dossiers"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)

    # Client identity
    client_first_name = Column(String(100), nullable=True)
    client_last_name = Column(String(100), nullable=True)
    client_phone = Column(String(30), nullable=True)
    client_email = Column(String(255), nullable=True)

    # Service address (free text + structured + geocoded)
    address = Column(Text, nullable=True)
    address_line = Column(String(255), nullable=True)
    postal_code = Column(String(10), nullable=True)
    city = Column(String(100), nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    floor_number = Column(Integer, nullable=True)
    has_elevator = Column(Boolean, nullable=True)
    access_code = Column(String(50), nullable=True)
    housing_type = Column(String(50), nullable=True)
    occupant_type = Column(String(50), nullable=True)

    # Intake
    category = Column(String(30), nullable=False, default="autre")  # wc, fuite, chauffe_eau, evier, douche, autre
    urgency = Column(String(20), nullable=False, default="semaine")  # aujourdhui, 48h, semaine
    description = Column(Text, nullable=True)
    source = Column(String(20), nullable=False, default="manuel")  # lien_client, manuel, email

    # Lifecycle
    status = Column(String(30), nullable=False, default="nouveau", index=True)
    status_changed_at = Column(DateTime, default=utcnow)

    # Appointment sub-state
    appointment_status = Column(String(30), nullable=False, default="none", index=True)
    appointment_date = Column(Date, nullable=True)
    appointment_time_start = Column(String(5), nullable=True)  # HH:MM
    appointment_time_end = Column(String(5), nullable=True)
    appointment_source = Column(String(20), nullable=True)  # client_selected, manual, phone, email
    appointment_confirmed_at = Column(DateTime, nullable=True)
    appointment_notes = Column(Text, nullable=True)
    google_calendar_event_id = Column(String(255), nullable=True)

    # Client link (formulaire client + choix de créneau)
    client_token = Column(String(64), unique=True, nullable=True, index=True)
    client_token_expires_at = Column(DateTime, nullable=True)

    # Relances
    relance_active = Column(Boolean, default=True)
    relance_count = Column(Integer, default=0)
    last_relance_at = Column(DateTime, nullable=True)

    deleted_at = Column(DateTime, nullable=True)  # Soft delete only
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    user = relationship("User", back_populates="dossiers")
    historique = relationship(
        "Historique", back_populates="dossier", order_by="Historique.created_at.desc()"
    )
    medias = relationship("Media", back_populates="dossier")
    slots = relationship(
        "AppointmentSlot", back_populates="dossier", order_by="AppointmentSlot.slot_date"
    )
    quotes = relationship("Quote", back_populates="dossier")
    invoices = relationship("Invoice", back_populates="dossier")

    @property
    def client_name(self) -> str:
        return " ".join(part for part in [self.client_first_name, self.client_last_name] if part)


class Historique(Base):
    """Append-only audit log entry for a dossier"""

    __tablename__ = "historique"

    id = Column(Integer, primary_key=True, index=True)
    dossier_id = Column(String(36), ForeignKey("dossiers.id"), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=True)  # NULL for client actions
    action = Column(String(50), nullable=False)
    details = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow)

    dossier = relationship("Dossier", back_populates="historique")


class Media(Base):
    """Evidence attached to a dossier (photo, video, audio note, plan, note)"""

    __tablename__ = "medias"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    dossier_id = Column(String(36), ForeignKey("dossiers.id"), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    media_type = Column(String(20), nullable=False, default="photo")  # photo, video, audio, plan, note
    media_category = Column(String(50), nullable=True)
    file_name = Column(String(255), nullable=True)
    file_url = Column(String(1000), nullable=True)
    file_size = Column(Integer, nullable=True)
    file_type = Column(String(100), nullable=True)  # MIME type
    duration_seconds = Column(Integer, nullable=True)  # audio / video only
    note = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow)

    dossier = relationship("Dossier", back_populates="medias")


class AppointmentSlot(Base):
    """Slot proposed to the client for an intervention"""

    __tablename__ = "appointment_slots"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    dossier_id = Column(String(36), ForeignKey("dossiers.id"), nullable=False, index=True)
    slot_date = Column(Date, nullable=False)
    time_start = Column(String(5), nullable=False)
    time_end = Column(String(5), nullable=False)
    selected_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow)

    dossier = relationship("Dossier", back_populates="slots")


class Relance(Base):
    """Follow-up reminder sent to a client"""

    __tablename__ = "relances"

    id = Column(Integer, primary_key=True, index=True)
    dossier_id = Column(String(36), ForeignKey("dossiers.id"), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    type = Column(String(30), nullable=False)  # info_manquante, devis_non_signe
    email_to = Column(String(255), nullable=True)
    status = Column(String(20), default="sent")
    created_at = Column(DateTime, default=utcnow)


class NotificationLog(Base):
    """Delivery log for appointment notifications (one row per channel attempt)"""

    __tablename__ = "notification_logs"

    id = Column(Integer, primary_key=True, index=True)
    dossier_id = Column(String(36), ForeignKey("dossiers.id"), nullable=False, index=True)
    event_type = Column(String(50), nullable=False)
    channel = Column(String(10), nullable=False)  # email, sms
    recipient = Column(String(255), nullable=False)
    status = Column(String(10), nullable=False)  # SENT, FAILED, SKIPPED
    error_code = Column(String(50), nullable=True)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow)


class Subscription(Base):
    """Stripe subscription mirror"""

    __tablename__ = "subscriptions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    stripe_subscription_id = Column(String(255), unique=True, nullable=False)
    stripe_customer_id = Column(String(255), nullable=True)
    plan = Column(String(20), default="free")
    status = Column(String(20), nullable=True)
    current_period_start = Column(DateTime, nullable=True)
    current_period_end = Column(DateTime, nullable=True)
    cancel_at_period_end = Column(Boolean, default=False)
    canceled_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class Referral(Base):
    """Parrainage - referrer earns a free month when the referred user converts"""

    __tablename__ = "referrals"

    id = Column(Integer, primary_key=True, index=True)
    referrer_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    referred_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    status = Column(String(20), default="pending")  # pending, converted, rewarded
    reward_given_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow)
