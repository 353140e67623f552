"""
Google OAuth token handling shared by the Gmail and Calendar integrations
"""

import logging
from datetime import timedelta
from typing import Any, Optional

import httpx
from sqlalchemy.orm import Session

from ..config import GOOGLE_CLIENT_ID, GOOGLE_CLIENT_SECRET
from ..models import utcnow
from ..security_utils import decrypt_token, encrypt_token

logger = logging.getLogger(__name__)

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"  # noqa: S105 - OAuth endpoint URL
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"
GOOGLE_REVOKE_URL = "https://oauth2.googleapis.com/revoke"

# Refresh a little before the real expiry
EXPIRY_MARGIN = timedelta(minutes=5)


def build_authorization_url(scopes: list[str], redirect_uri: str, state: str) -> str:
    return (
        f"{GOOGLE_AUTH_URL}"
        f"?client_id={GOOGLE_CLIENT_ID}"
        f"&redirect_uri={redirect_uri}"
        f"&response_type=code"
        f"&scope={' '.join(scopes)}"
        f"&access_type=offline"
        f"&prompt=consent"
        f"&state={state}"
    )


async def exchange_code(code: str, redirect_uri: str) -> dict:
    """
    Exchange an authorization code for tokens and the Google account email

    Raises:
        ValueError: Google rejected the code or returned no access token
    """
    async with httpx.AsyncClient(timeout=10.0) as client:
        token_response = await client.post(
            GOOGLE_TOKEN_URL,
            data={
                "code": code,
                "client_id": GOOGLE_CLIENT_ID,
                "client_secret": GOOGLE_CLIENT_SECRET,
                "redirect_uri": redirect_uri,
                "grant_type": "authorization_code",
            },
        )
        if token_response.status_code != 200:
            logger.error(f"❌ Token exchange failed: {token_response.text}")
            raise ValueError("Failed to exchange authorization code")

        tokens = token_response.json()
        access_token = tokens.get("access_token")
        if not access_token:
            raise ValueError("Invalid token response")

        user_info_response = await client.get(
            GOOGLE_USERINFO_URL, headers={"Authorization": f"Bearer {access_token}"}
        )
        email = None
        if user_info_response.status_code == 200:
            email = user_info_response.json().get("email")

    return {
        "access_token": access_token,
        "refresh_token": tokens.get("refresh_token"),
        "expires_in": tokens.get("expires_in", 3600),
        "email": email,
    }


def store_tokens(record: Any, access_token: str, refresh_token: Optional[str], expires_in: int) -> None:
    """Encrypt tokens onto a GmailConnection / GoogleCalendarIntegration row"""
    record.access_token = encrypt_token(access_token)
    if refresh_token:
        record.refresh_token = encrypt_token(refresh_token)
    record.token_expires_at = utcnow() + timedelta(seconds=expires_in)


async def get_valid_access_token(record: Any, db: Session) -> Optional[str]:
    """
    Get a valid access token, refreshing if necessary
    Returns None if refresh fails
    """
    try:
        expires_at = record.token_expires_at
        if expires_at and expires_at > utcnow() + EXPIRY_MARGIN:
            return decrypt_token(record.access_token)

        if not record.refresh_token:
            logger.warning(f"⚠️ {type(record).__name__} {record.id} expired and has no refresh token")
            return None

        logger.info("🔄 Google token expired, refreshing...")
        async with httpx.AsyncClient(timeout=10.0) as client:
            response = await client.post(
                GOOGLE_TOKEN_URL,
                data={
                    "client_id": GOOGLE_CLIENT_ID,
                    "client_secret": GOOGLE_CLIENT_SECRET,
                    "refresh_token": decrypt_token(record.refresh_token),
                    "grant_type": "refresh_token",
                },
            )

        if response.status_code != 200:
            logger.error(f"❌ Token refresh failed: {response.text}")
            return None

        tokens = response.json()
        new_access_token = tokens.get("access_token")
        if not new_access_token:
            logger.error("❌ No access token in refresh response")
            return None

        store_tokens(record, new_access_token, None, tokens.get("expires_in", 3600))
        db.commit()
        logger.info("✅ Google token refreshed successfully")
        return new_access_token

    except Exception as e:
        logger.error(f"❌ Error getting valid access token: {str(e)}")
        return None


async def revoke_token(record: Any) -> None:
    """Best-effort revocation on disconnect"""
    try:
        async with httpx.AsyncClient(timeout=10.0) as client:
            await client.post(GOOGLE_REVOKE_URL, params={"token": decrypt_token(record.access_token)})
    except Exception as e:
        logger.warning(f"⚠️ Failed to revoke Google token: {str(e)}")
