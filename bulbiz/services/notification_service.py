"""
Unified Notification Service
Email first (Gmail or Resend), then SMS (Twilio), for every client-facing event.
A failure on one channel never blocks the other or the transition that triggered it.
"""

import logging
from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from .. import email_service
from ..domain.lifecycle import LifecycleService
from ..email_templates import (
    appointment_confirmed_template,
    appointment_requested_template,
    slots_proposed_template,
)
from ..models import Dossier, NotificationLog, User
from ..shared.validators import is_valid_email, normalize_phone
from . import twilio_service
from .ics import IcsEvent, google_calendar_url, outlook_calendar_url

logger = logging.getLogger(__name__)

INVALID_PHONE = "INVALID_PHONE"


async def send_notification(
    db: Session,
    user: User,
    client_email: Optional[str],
    client_phone: Optional[str],
    notification_type: str,
    subject: str,
    mjml_content: Optional[str],
    sms_body: Optional[str],
) -> dict:
    """
    Send one document notification (devis, facture, relance, lien client)

    SMS is attempted only when the artisan has sms_enabled and an SMS body is given.

    Returns:
        Dict with email_sent / sms_sent, the error of each channel, the provider
        used for email and the normalized phone
    """
    result = {
        "email_sent": False,
        "sms_sent": False,
        "email_error": None,
        "sms_error": None,
        "email_provider": None,
        "sms_phone": None,
    }

    # Send Email
    if client_email and mjml_content:
        try:
            logger.info(f"📧 Sending {notification_type} email to {client_email}")
            result["email_provider"] = await email_service.send_client_email(
                db, user, client_email, subject, mjml_content
            )
            result["email_sent"] = True
            logger.info(f"✅ {notification_type} email sent successfully to {client_email}")
        except Exception as e:
            result["email_error"] = str(e)
            logger.error(f"❌ Failed to send {notification_type} email to {client_email}: {e}")
    else:
        logger.debug(f"⚠️ No email address for {notification_type} notification")

    # Send SMS
    if client_phone and sms_body and user.sms_enabled is not False:
        formatted_phone = normalize_phone(client_phone)
        result["sms_phone"] = formatted_phone or client_phone
        if not formatted_phone:
            logger.warning(f"⚠️ Invalid phone number format: {client_phone}")
            result["sms_error"] = INVALID_PHONE
        else:
            try:
                logger.info(f"📱 Attempting to send {notification_type} SMS to {formatted_phone}")
                success, error = await twilio_service.send_sms(formatted_phone, sms_body)
                if success:
                    result["sms_sent"] = True
                    logger.info(f"✅ {notification_type} SMS sent successfully to {formatted_phone}")
                else:
                    result["sms_error"] = error
                    if error == twilio_service.SMS_NOT_CONFIGURED:
                        logger.debug(f"ℹ️ {notification_type} SMS skipped: {error}")
                    else:
                        logger.warning(f"⚠️ {notification_type} SMS not sent to {formatted_phone}: {error}")
            except Exception as e:
                result["sms_error"] = str(e)
                logger.error(f"❌ Failed to send {notification_type} SMS to {formatted_phone}: {e}")

    return result


def sms_failed(result: dict) -> bool:
    """An SMS was attempted and failed (provider not configured does not count)"""
    return bool(result["sms_error"]) and result["sms_error"] != twilio_service.SMS_NOT_CONFIGURED


# ============================================
# Appointment notifications
# ============================================

APPOINTMENT_REQUESTED = "APPOINTMENT_REQUESTED"
SLOTS_PROPOSED = "SLOTS_PROPOSED"
APPOINTMENT_CONFIRMED = "APPOINTMENT_CONFIRMED"

EVENT_LABELS = {
    APPOINTMENT_REQUESTED: "proposition de rendez-vous",
    SLOTS_PROPOSED: "lien de choix de créneau",
    APPOINTMENT_CONFIRMED: "confirmation de rendez-vous",
}

BOTH_FAILED_MESSAGE = (
    "Email et SMS ont échoué. Vérifiez les coordonnées du client et la configuration."
)

FR_DAYS = ["Lundi", "Mardi", "Mercredi", "Jeudi", "Vendredi", "Samedi", "Dimanche"]
FR_MONTHS = [
    "janvier", "février", "mars", "avril", "mai", "juin",
    "juillet", "août", "septembre", "octobre", "novembre", "décembre",
]


def format_fr_long_date(value: Optional[date]) -> str:
    """date(2026, 3, 10) -> 'Mardi 10 mars 2026'"""
    if not value:
        return ""
    return f"{FR_DAYS[value.weekday()]} {value.day} {FR_MONTHS[value.month - 1]} {value.year}"


def _appointment_email(event_type: str, user: User, dossier: Dossier, payload: dict) -> tuple[str, str]:
    artisan = user.artisan_name
    if event_type == APPOINTMENT_REQUESTED:
        return (
            f"{artisan} souhaite convenir d'un rendez-vous",
            appointment_requested_template(dossier.client_first_name, artisan, user.phone, user.email),
        )
    if event_type == SLOTS_PROPOSED:
        return (
            f"{artisan} vous propose des créneaux",
            slots_proposed_template(
                dossier.client_first_name,
                artisan,
                payload.get("slot_lines", []),
                payload.get("appointment_link"),
                user.phone,
            ),
        )

    appointment_date = payload.get("appointment_date")
    time_start = payload.get("appointment_time") or ""
    time_end = payload.get("appointment_time_end") or ""
    address = payload.get("address")
    display_date = format_fr_long_date(appointment_date)

    google_url = outlook_url = None
    if appointment_date and time_start:
        event = IcsEvent(
            title=f"RDV – {artisan}",
            start_date=appointment_date.isoformat(),
            start_time=time_start,
            end_time=time_end or f"{min(int(time_start[:2]) + 1, 23):02d}:{time_start[3:5]}",
            description=f"Rendez-vous avec {artisan}"
            + (f"\nTél : {user.phone}" if user.phone else "")
            + (f"\nEmail : {user.email}" if user.email else ""),
            location=address,
        )
        google_url = google_calendar_url(event)
        outlook_url = outlook_calendar_url(event)

    time_range = f"{time_start} – {time_end}" if time_start and time_end else time_start
    return (
        f"Rendez-vous confirmé avec {artisan} – {display_date}",
        appointment_confirmed_template(
            dossier.client_first_name,
            artisan,
            display_date,
            time_range,
            address,
            user.phone,
            google_url,
            outlook_url,
        ),
    )


def _appointment_sms(event_type: str, user: User, payload: dict) -> str:
    artisan = user.artisan_name
    contact = f" Contact : {user.phone}" if user.phone else ""
    if event_type == APPOINTMENT_REQUESTED:
        return f"Bonjour, suite à la validation de votre devis, {artisan} souhaite convenir d'un RDV.{contact}"
    if event_type == SLOTS_PROPOSED:
        link = payload.get("appointment_link")
        choose = f" Choisissez ici : {link}" if link else ""
        return f"Bonjour, {artisan} vous propose des créneaux de RDV.{choose}{contact}"

    appointment_date = payload.get("appointment_date")
    date_str = appointment_date.strftime("%d/%m/%Y") if appointment_date else ""
    time_start = payload.get("appointment_time")
    time_end = payload.get("appointment_time_end")
    address = payload.get("address")
    return (
        f"✅ RDV confirmé avec {artisan} : {date_str}"
        + (f" à {time_start}" if time_start else "")
        + (f"–{time_end}" if time_end else "")
        + "."
        + (f" 📍 {address}" if address else "")
        + contact
    )


class AppointmentNotifier:
    """Writes one notification_logs row per channel and the matching historique entry"""

    def __init__(self, db: Session, user: User, dossier: Dossier, event_type: str):
        self.db = db
        self.user = user
        self.dossier = dossier
        self.event_type = event_type
        self.label = EVENT_LABELS[event_type]
        self.lifecycle = LifecycleService(db)

    def log(
        self,
        channel: str,
        recipient: str,
        status: str,
        error_code: Optional[str] = None,
        error_message: Optional[str] = None,
    ) -> None:
        self.db.add(
            NotificationLog(
                dossier_id=self.dossier.id,
                event_type=self.event_type,
                channel=channel,
                recipient=recipient,
                status=status,
                error_code=error_code,
                error_message=error_message,
            )
        )

    def record(self, action: str, details: str) -> None:
        self.lifecycle.record(self.dossier, action, details, self.user.id)

    async def send_email(self, payload: dict) -> tuple[str, Optional[str]]:
        client_email = self.dossier.client_email
        if not client_email or not is_valid_email(client_email):
            self.log(
                "email",
                client_email or "MISSING",
                "SKIPPED",
                "INVALID_RECIPIENT",
                "Email invalide" if client_email else "Email manquant",
            )
            self.record(
                "notification_skipped",
                f"Email non envoyé ({self.label}) : email client manquant ou invalide",
            )
            return "SKIPPED", None

        if self.user.email and client_email.strip().lower() == self.user.email.strip().lower():
            self.log(
                "email",
                client_email,
                "FAILED",
                "WRONG_RECIPIENT",
                "L'email client est identique à l'email artisan",
            )
            self.record(
                "notification_failed",
                f"Email non envoyé ({self.label}) : l'email client est identique à votre email",
            )
            return "FAILED", None

        subject, mjml_content = _appointment_email(self.event_type, self.user, self.dossier, payload)
        try:
            provider = await email_service.send_client_email(
                self.db, self.user, client_email, subject, mjml_content
            )
        except email_service.EmailNotConfiguredError:
            self.log("email", client_email, "FAILED", "EMAIL_NOT_CONFIGURED", "Service email non configuré")
            self.record(
                "notification_failed", f"Email non envoyé ({self.label}) : service email non configuré"
            )
            return "FAILED", None
        except Exception as e:
            logger.error(f"❌ {self.event_type} email error for dossier {self.dossier.id}: {e}")
            self.log("email", client_email, "FAILED", "SEND_ERROR", str(e)[:500])
            self.record("notification_failed", f"Email non envoyé ({self.label}) : erreur technique")
            return "FAILED", str(e)

        self.log("email", client_email, "SENT")
        via = " via Gmail" if provider == "gmail" else ""
        self.record("notification_sent", f"Email envoyé{via} : {self.label} → {client_email}")
        return "SENT", None

    async def send_sms(self, payload: dict) -> str:
        sms_enabled = self.user.sms_enabled is not False
        client_phone = self.dossier.client_phone
        if not sms_enabled or not client_phone:
            if client_phone:
                self.log("sms", client_phone, "SKIPPED", "SMS_DISABLED", "SMS désactivé")
            return "SKIPPED"

        normalized = normalize_phone(client_phone)
        if not normalized:
            self.log("sms", client_phone, "SKIPPED", INVALID_PHONE, "Numéro invalide")
            self.record("notification_skipped", f"SMS non envoyé ({self.label}) : numéro client invalide")
            return "SKIPPED"

        if self.user.phone and normalize_phone(self.user.phone) == normalized:
            self.log(
                "sms",
                normalized,
                "FAILED",
                "WRONG_RECIPIENT",
                "Le téléphone client est identique au téléphone artisan",
            )
            return "FAILED"

        try:
            success, error = await twilio_service.send_sms(
                normalized, _appointment_sms(self.event_type, self.user, payload)
            )
        except Exception as e:
            logger.error(f"❌ {self.event_type} SMS error for dossier {self.dossier.id}: {e}")
            success, error = False, str(e)

        if success:
            self.log("sms", normalized, "SENT")
            self.record("notification_sent", f"SMS envoyé : {self.label} → {normalized}")
            return "SENT"

        if error == twilio_service.SMS_NOT_CONFIGURED:
            self.log("sms", normalized, "SKIPPED", "SMS_NOT_CONFIGURED", error)
            return "SKIPPED"

        self.log("sms", normalized, "FAILED", (error or "UNKNOWN")[:50], error)
        self.record("notification_failed", f"SMS non envoyé ({self.label}) : erreur technique")
        return "FAILED"


async def send_appointment_notification(
    db: Session,
    user: User,
    dossier: Dossier,
    event_type: str,
    payload: Optional[dict] = None,
) -> dict:
    """
    Notify the client of an appointment event by email and SMS

    Runs after the triggering transition is committed; its own log rows and
    historique entries are committed together at the end.

    Returns:
        {"email_status", "sms_status", "error_message"?} with SENT / FAILED / SKIPPED
    """
    if event_type not in EVENT_LABELS:
        raise ValueError(f"event_type invalide: {event_type}")

    payload = payload or {}
    notifier = AppointmentNotifier(db, user, dossier, event_type)
    result = {"email_status": "SKIPPED", "sms_status": "SKIPPED"}

    with notifier.lifecycle.transaction():
        result["email_status"], email_error = await notifier.send_email(payload)
        if email_error:
            result["error_message"] = email_error
        result["sms_status"] = await notifier.send_sms(payload)

    if result["email_status"] == "FAILED" and result["sms_status"] == "FAILED":
        result["error_message"] = BOTH_FAILED_MESSAGE

    logger.info(
        f"📣 {event_type} for dossier {dossier.id}: email={result['email_status']} sms={result['sms_status']}"
    )
    return result
