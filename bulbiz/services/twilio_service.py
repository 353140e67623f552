"""
Twilio SMS Service
Platform account, one sender number for every artisan
"""

import logging
from typing import Optional

import httpx

from ..config import TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN, TWILIO_PHONE_NUMBER

logger = logging.getLogger(__name__)

SMS_NOT_CONFIGURED = "SMS provider not configured"


def is_configured() -> bool:
    return bool(TWILIO_ACCOUNT_SID and TWILIO_AUTH_TOKEN and TWILIO_PHONE_NUMBER)


async def send_sms(to_phone: str, message_body: str) -> tuple[bool, Optional[str]]:
    """
    Send SMS via Twilio

    Args:
        to_phone: Recipient phone number, E.164 (see shared.validators.normalize_phone)
        message_body: SMS message content

    Returns:
        Tuple of (success: bool, error_code: Optional[str]).
        error_code is SMS_NOT_CONFIGURED, TWILIO_<http status> or the exception text.
    """
    if not to_phone:
        return False, "No phone number provided"

    if not to_phone.startswith("+"):
        logger.warning(f"Phone number not in E.164 format: {to_phone}")
        return False, "Phone number must be in E.164 format (e.g., +33612345678)"

    if not is_configured():
        logger.debug("Twilio credentials missing - SMS skipped")
        return False, SMS_NOT_CONFIGURED

    try:
        logger.info(f"🚀 Sending SMS to Twilio API for {to_phone}")
        async with httpx.AsyncClient() as client:
            response = await client.post(
                f"https://api.twilio.com/2010-04-01/Accounts/{TWILIO_ACCOUNT_SID}/Messages.json",
                auth=(TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN),
                data={"To": to_phone, "From": TWILIO_PHONE_NUMBER, "Body": message_body},
                timeout=10.0,
            )

        logger.info(f"📡 Twilio API response status: {response.status_code}")

        if response.status_code in [200, 201]:
            message_sid = response.json().get("sid")
            logger.info(f"✅ SMS sent successfully to {to_phone} (SID: {message_sid})")
            return True, None

        logger.error(f"❌ Twilio API error [{response.status_code}]: {response.text[:300]}")
        return False, f"TWILIO_{response.status_code}"

    except httpx.HTTPError as e:
        logger.error(f"Twilio API error: {str(e)}")
        return False, str(e)
