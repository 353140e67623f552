"""Integrations service - Gmail and Google Calendar OAuth connections"""

import logging
from dataclasses import dataclass
from typing import Any, Optional, Type

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...config import GOOGLE_CLIENT_ID, GOOGLE_CLIENT_SECRET, GOOGLE_GMAIL_REDIRECT_URI, GOOGLE_REDIRECT_URI
from ...models import User
from ...models_google import GmailConnection, GoogleCalendarIntegration
from ...services import google_oauth
from ...services.gmail_service import GMAIL_SCOPES
from ...services.google_calendar_service import GOOGLE_CALENDAR_SCOPES

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GoogleProvider:
    name: str
    label: str
    model: Type[Any]
    scopes: list
    redirect_uri: str
    email_field: str


PROVIDERS = {
    "gmail": GoogleProvider(
        "gmail", "Gmail", GmailConnection, GMAIL_SCOPES, GOOGLE_GMAIL_REDIRECT_URI, "gmail_address"
    ),
    "calendar": GoogleProvider(
        "calendar",
        "Google Calendar",
        GoogleCalendarIntegration,
        GOOGLE_CALENDAR_SCOPES,
        GOOGLE_REDIRECT_URI,
        "google_user_email",
    ),
}


class IntegrationService:
    def __init__(self, db: Session):
        self.db = db

    @staticmethod
    def get_provider(name: str) -> GoogleProvider:
        provider = PROVIDERS.get(name)
        if not provider:
            raise HTTPException(status_code=404, detail="Intégration inconnue")
        return provider

    def _record(self, provider: GoogleProvider, user: User) -> Optional[Any]:
        return self.db.query(provider.model).filter(provider.model.user_id == user.id).first()

    def connect_url(self, provider: GoogleProvider, user: User) -> dict:
        if not GOOGLE_CLIENT_ID or not GOOGLE_CLIENT_SECRET:
            raise HTTPException(status_code=503, detail=f"{provider.label} not configured")
        return {"url": google_oauth.build_authorization_url(provider.scopes, provider.redirect_uri, user.id)}

    async def handle_callback(self, provider: GoogleProvider, code: str, user: User) -> dict:
        """Exchange the code forwarded by the frontend and store encrypted tokens"""
        try:
            tokens = await google_oauth.exchange_code(code, provider.redirect_uri)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        except Exception as e:
            logger.error(f"❌ {provider.label} callback error: {str(e)}")
            raise HTTPException(status_code=502, detail=f"Failed to connect {provider.label}") from e

        email = tokens.get("email")
        if provider.name == "gmail" and not email:
            raise HTTPException(status_code=400, detail="Failed to get user info")

        record = self._record(provider, user)
        if not record:
            record = provider.model(user_id=user.id)
            self.db.add(record)
        setattr(record, provider.email_field, email)
        google_oauth.store_tokens(record, tokens["access_token"], tokens.get("refresh_token"), tokens["expires_in"])
        self.db.commit()

        logger.info(f"✅ {provider.label} connected for user: {user.email}")
        return {"success": True, "email": email}

    def status(self, provider: GoogleProvider, user: User) -> dict:
        record = self._record(provider, user)
        if not record:
            return {"connected": False, "email": None}
        return {
            "connected": True,
            "email": getattr(record, provider.email_field),
            "connected_at": record.created_at,
        }

    async def disconnect(self, provider: GoogleProvider, user: User) -> dict:
        record = self._record(provider, user)
        if not record:
            raise HTTPException(status_code=404, detail=f"{provider.label} not connected")
        await google_oauth.revoke_token(record)
        self.db.delete(record)
        self.db.commit()
        logger.info(f"🔌 {provider.label} disconnected for user: {user.email}")
        return {"success": True}
