"""
Unified Email Service using the artisan's Gmail connection or Resend (fallback)
Provides email functionality using MJML templates for responsive design
"""

import io
import logging
from typing import Optional, Union

import resend
from mjml import mjml_to_html
from sqlalchemy.orm import Session

from .config import EMAIL_FROM_ADDRESS, RESEND_API_KEY
from .models import User
from .services import gmail_service

logger = logging.getLogger(__name__)

# Initialize Resend as fallback
resend.api_key = RESEND_API_KEY


class EmailNotConfiguredError(Exception):
    """No Gmail connection and no RESEND_API_KEY"""


def compile_mjml_to_html(mjml_content: str) -> str:
    """Compile MJML template to production-ready HTML"""
    try:
        result = mjml_to_html(io.StringIO(mjml_content))
        # mjml_to_html returns a dict-like result with 'html' and 'errors'
        if isinstance(result, dict):
            if result.get("errors"):
                logger.warning(f"MJML compilation warnings: {result['errors']}")
            return result.get("html", "")
        if getattr(result, "errors", None):
            logger.warning(f"MJML compilation warnings: {result.errors}")
        return getattr(result, "html", str(result))
    except Exception as e:
        logger.error(f"MJML compilation error: {e}")
        raise Exception(f"Failed to compile MJML template: {str(e)}") from e


def get_sender_email(artisan_name: Optional[str] = None) -> str:
    """Resend sender: the artisan's name on the platform address"""
    if artisan_name:
        return f"{artisan_name} <{EMAIL_FROM_ADDRESS}>"
    return EMAIL_FROM_ADDRESS


async def send_email(
    to: Union[str, list[str]],
    subject: str,
    mjml_content: Optional[str] = None,
    html_content: Optional[str] = None,
    from_address: Optional[str] = None,
    reply_to: Optional[str] = None,
) -> dict:
    """
    Send an email through Resend

    Args:
        to: Recipient email(s)
        subject: Email subject line
        mjml_content: MJML template content (compiled to HTML)
        html_content: Already compiled HTML (skips MJML)
        from_address: Optional custom from address
        reply_to: Optional reply-to (the artisan's own address)

    Returns:
        Send response dict

    Raises:
        EmailNotConfiguredError: RESEND_API_KEY missing
    """
    if html_content is None:
        html_content = compile_mjml_to_html(mjml_content or "")

    recipients = [to] if isinstance(to, str) else to

    if not RESEND_API_KEY:
        logger.error("❌ No email service configured - RESEND_API_KEY missing")
        raise EmailNotConfiguredError("Email service not configured")

    try:
        logger.info(f"📧 Sending email via Resend to: {to}")
        email_data = {
            "from": from_address or EMAIL_FROM_ADDRESS,
            "to": recipients,
            "subject": subject,
            "html": html_content,
        }
        if reply_to:
            email_data["reply_to"] = reply_to

        response = resend.Emails.send(email_data)
        logger.info(f"✅ Email sent successfully via Resend: {response}")
        return response
    except Exception as e:
        logger.error(f"❌ Email send error to {recipients}: {e}")
        raise Exception(f"Failed to send email: {str(e)}") from e


async def send_client_email(
    db: Session,
    user: User,
    to: str,
    subject: str,
    mjml_content: str,
) -> str:
    """
    Send a client-facing email on behalf of the artisan

    Gmail is tried first when the artisan connected one; any Gmail failure
    falls back to Resend.

    Returns:
        The provider used: "gmail" or "resend"
    """
    html_content = compile_mjml_to_html(mjml_content)

    connection = gmail_service.get_connection(db, user.id)
    if connection:
        try:
            await gmail_service.send_gmail(db, connection, to, subject, html_content)
            return "gmail"
        except Exception as e:
            logger.warning(f"⚠️ Gmail send failed, falling back to Resend: {e}")

    await send_email(
        to=to,
        subject=subject,
        html_content=html_content,
        from_address=get_sender_email(user.artisan_name),
        reply_to=user.email,
    )
    return "resend"
