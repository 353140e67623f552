"""
Gmail Service
Sends client emails from the artisan's own Gmail address
"""

import base64
import logging
from typing import Optional

import httpx
from sqlalchemy.orm import Session

from ..models_google import GmailConnection
from .google_oauth import get_valid_access_token

logger = logging.getLogger(__name__)

GMAIL_SEND_URL = "https://gmail.googleapis.com/gmail/v1/users/me/messages/send"
GMAIL_SCOPES = [
    "https://www.googleapis.com/auth/gmail.send",
    "https://www.googleapis.com/auth/userinfo.email",
]


def get_connection(db: Session, user_id: str) -> Optional[GmailConnection]:
    return db.query(GmailConnection).filter(GmailConnection.user_id == user_id).first()


def build_raw_message(sender: str, to: str, subject: str, html_content: str) -> str:
    """RFC 2822 message, base64url encoded as the Gmail API expects"""
    encoded_subject = base64.b64encode(subject.encode("utf-8")).decode("ascii")
    message = "\r\n".join(
        [
            f"From: {sender}",
            f"To: {to}",
            f"Subject: =?UTF-8?B?{encoded_subject}?=",
            "MIME-Version: 1.0",
            "Content-Type: text/html; charset=UTF-8",
            "",
            html_content,
        ]
    )
    return base64.urlsafe_b64encode(message.encode("utf-8")).decode("ascii").rstrip("=")


async def send_gmail(
    db: Session,
    connection: GmailConnection,
    to: str,
    subject: str,
    html_content: str,
) -> str:
    """
    Send one HTML email through the Gmail API

    Returns:
        Gmail message id

    Raises:
        Exception: token unavailable or Gmail API error
    """
    access_token = await get_valid_access_token(connection, db)
    if not access_token:
        raise Exception("Gmail token unavailable")

    raw = build_raw_message(connection.gmail_address, to, subject, html_content)
    logger.info(f"📧 Sending email via Gmail ({connection.gmail_address}) to: {to}")

    async with httpx.AsyncClient(timeout=10.0) as client:
        response = await client.post(
            GMAIL_SEND_URL,
            headers={"Authorization": f"Bearer {access_token}"},
            json={"raw": raw},
        )

    if response.status_code not in [200, 201]:
        logger.error(f"❌ Gmail API error {response.status_code}: {response.text[:300]}")
        raise Exception(f"Gmail API error {response.status_code}")

    message_id = response.json().get("id")
    logger.info(f"✅ Email sent successfully via Gmail: {message_id}")
    return message_id
