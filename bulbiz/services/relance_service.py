"""
Relances - follow-up reminders to clients

Manual relances are sent from the dossier page; automatic relances run daily
from the arq worker (see worker.py).
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from .. import email_service
from ..config import FRONTEND_URL
from ..domain.lifecycle import LifecycleService
from ..email_templates import relance_devis_non_signe_template, relance_info_manquante_template
from ..models import Dossier, Relance, User, utcnow
from ..models_invoice import Quote
from ..statuses import RELANCE_TYPES
from . import notification_service
from .client_tokens import is_token_active, issue_token

logger = logging.getLogger(__name__)

MAX_DEVIS_RELANCES = 2
INFO_MANQUANTE_MIN_AGE = timedelta(hours=24)
MIN_HOURS_BETWEEN_RELANCES = 20


def ensure_client_link(dossier: Dossier, user: User) -> str:
    """Reuse the dossier's unexpired client token or issue a new one"""
    if not is_token_active(dossier.client_token, dossier.client_token_expires_at):
        dossier.client_token, dossier.client_token_expires_at = issue_token(
            user.client_link_validity_days or 7
        )
    return f"{FRONTEND_URL}/client?token={dossier.client_token}"


def _pending_quote_url(db: Session, dossier: Dossier) -> Optional[str]:
    quote = (
        db.query(Quote)
        .filter(Quote.dossier_id == dossier.id, Quote.status == "envoye")
        .order_by(Quote.sent_at.desc())
        .first()
    )
    if quote and is_token_active(quote.signature_token, quote.signature_token_expires_at):
        return f"{FRONTEND_URL}/devis/validation?token={quote.signature_token}"
    return None


def build_relance_message(
    db: Session, user: User, dossier: Dossier, relance_type: str, client_link: str
) -> tuple[str, str, str]:
    """(subject, mjml, sms body) for a relance type"""
    artisan = user.artisan_name
    phone = f" ({user.phone})" if user.phone else ""

    if relance_type == "info_manquante":
        first_name = f" {dossier.client_first_name}" if dossier.client_first_name else ""
        return (
            f"{artisan} – Informations complémentaires nécessaires",
            relance_info_manquante_template(
                dossier.client_first_name, artisan, client_link, user.email_signature
            ),
            f"Bonjour{first_name}, pour traiter votre demande, complétez ces infos (2 min) : "
            f"{client_link} — {artisan}{phone}",
        )

    return (
        f"{artisan} – Suivi de votre devis",
        relance_devis_non_signe_template(
            dossier.client_first_name, artisan, user.email_signature, _pending_quote_url(db, dossier)
        ),
        f"Rappel : votre devis est en attente de validation. N'hésitez pas à nous contacter. "
        f"— {artisan}{phone}",
    )


async def send_relance(db: Session, user: User, dossier: Dossier, relance_type: str) -> dict:
    """
    Send a manual relance by email and SMS

    The relance is recorded and relance_count incremented whether or not a
    channel delivered; the response says what was attempted and delivered.
    """
    if relance_type not in RELANCE_TYPES:
        raise ValueError(f"Type de relance invalide: {relance_type}")

    label = RELANCE_TYPES[relance_type]
    client_link = ensure_client_link(dossier, user)
    subject, mjml_content, sms_body = build_relance_message(db, user, dossier, relance_type, client_link)

    result = await notification_service.send_notification(
        db,
        user,
        client_email=dossier.client_email,
        client_phone=dossier.client_phone,
        notification_type=f"relance_{relance_type}",
        subject=subject,
        mjml_content=mjml_content,
        sms_body=sms_body,
    )

    lifecycle = LifecycleService(db)
    with lifecycle.transaction():
        if result["email_sent"]:
            lifecycle.record(
                dossier, "relance_sent", f'Relance "{label}" envoyée par email à {dossier.client_email}', user.id
            )
        if result["sms_sent"]:
            lifecycle.record(
                dossier, "relance_sent_sms", f'Relance "{label}" envoyée par SMS au {result["sms_phone"]}', user.id
            )
        elif notification_service.sms_failed(result):
            lifecycle.record(
                dossier,
                "sms_error",
                f"SMS non envoyé (erreur) – vérifier le numéro {dossier.client_phone}",
                user.id,
            )

        db.add(
            Relance(
                dossier_id=dossier.id,
                user_id=user.id,
                type=relance_type,
                email_to=dossier.client_email or dossier.client_phone or "",
                status="sent",
            )
        )
        dossier.relance_count = (dossier.relance_count or 0) + 1
        dossier.last_relance_at = utcnow()

    logger.info(
        f"🔔 Relance {relance_type} for dossier {dossier.id}: "
        f"email={result['email_sent']} sms={result['sms_sent']} (count={dossier.relance_count})"
    )
    return {
        "attempted": True,
        "type": relance_type,
        "email_sent": result["email_sent"],
        "sms_sent": result["sms_sent"],
        "email_error": result["email_error"],
        "sms_error": result["sms_error"],
        "relance_count": dossier.relance_count,
        "last_relance_at": dossier.last_relance_at,
    }


# ============================================
# Automatic relances
# ============================================


def _devis_relance_due(dossier: Dossier, user: User, now: datetime) -> bool:
    changed_at = dossier.status_changed_at or dossier.created_at
    if changed_at is None:
        return False
    days_since_status = (now - changed_at).total_seconds() / 86400
    count = dossier.relance_count or 0
    delay_1 = user.relance_delay_devis_1 if user.relance_delay_devis_1 is not None else 2
    delay_2 = user.relance_delay_devis_2 if user.relance_delay_devis_2 is not None else 5

    if not ((count == 0 and days_since_status >= delay_1) or (count == 1 and days_since_status >= delay_2)):
        return False
    if dossier.last_relance_at:
        hours_since_last = (now - dossier.last_relance_at).total_seconds() / 3600
        if hours_since_last < MIN_HOURS_BETWEEN_RELANCES:
            return False
    return True


def find_due_relances(db: Session, now: Optional[datetime] = None) -> list[tuple[Dossier, str]]:
    """Dossiers eligible for an automatic relance, with the relance type"""
    now = now or utcnow()
    base = (
        db.query(Dossier)
        .join(User, Dossier.user_id == User.id)
        .filter(
            Dossier.deleted_at.is_(None),
            Dossier.relance_active.is_(True),
            Dossier.client_email.isnot(None),
            Dossier.client_email != "",
            User.auto_relance_enabled.is_(True),
        )
    )

    due = [
        (dossier, "info_manquante")
        for dossier in base.filter(
            Dossier.status == "a_qualifier",
            Dossier.relance_count == 0,
            Dossier.created_at < now - INFO_MANQUANTE_MIN_AGE,
        ).all()
    ]
    for dossier in base.filter(
        Dossier.status == "devis_envoye", Dossier.relance_count < MAX_DEVIS_RELANCES
    ).all():
        if _devis_relance_due(dossier, dossier.user, now):
            due.append((dossier, "devis_non_signe"))
    return due


async def check_relances(db: Session, now: Optional[datetime] = None) -> dict:
    """
    Send every due automatic relance (email only)

    Every attempt counts: relance_count and last_relance_at move even when the
    email fails, and the failure is written to the historique.
    """
    now = now or utcnow()
    total_sent = 0
    failed = 0

    for dossier, relance_type in find_due_relances(db, now):
        user = dossier.user
        lifecycle = LifecycleService(db)
        error = None
        try:
            client_link = ensure_client_link(dossier, user)
            subject, mjml_content, _ = build_relance_message(db, user, dossier, relance_type, client_link)
            await email_service.send_client_email(
                db, user, dossier.client_email, subject, mjml_content
            )
        except Exception as e:
            error = str(e)
            logger.error(f"❌ Failed to send relance for dossier {dossier.id}: {e}")

        count = (dossier.relance_count or 0) + 1
        label = "Info manquante" if relance_type == "info_manquante" else "Devis non signé"
        progress = "" if relance_type == "info_manquante" else f" ({count}/{MAX_DEVIS_RELANCES})"
        if error is None:
            action = "relance_sent"
            details = f'Relance auto "{label}"{progress} envoyée à {dossier.client_email}'
        else:
            action = "relance_failed"
            details = f'Relance auto "{label}"{progress} non envoyée à {dossier.client_email} (erreur : {error})'

        with lifecycle.transaction():
            db.add(
                Relance(
                    dossier_id=dossier.id,
                    user_id=dossier.user_id,
                    type=relance_type,
                    email_to=dossier.client_email,
                    status="sent" if error is None else "failed",
                )
            )
            dossier.relance_count = count
            dossier.last_relance_at = now
            lifecycle.record(dossier, action, details, dossier.user_id)

        if error is None:
            total_sent += 1
        else:
            failed += 1

    logger.info(f"✅ Automatic relances done: {total_sent} sent, {failed} failed")
    return {"relances_sent": total_sent, "failed": failed}
