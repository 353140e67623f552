"""
Google Calendar Service
Creates and deletes the artisan's calendar event for a confirmed RDV
"""

import logging
from typing import Optional

import httpx
from sqlalchemy.orm import Session

from ..models import Dossier, User
from ..models_google import GoogleCalendarIntegration
from .google_oauth import get_valid_access_token
from .ics import build_calendar_description, build_calendar_summary, event_from_dossier, full_address

logger = logging.getLogger(__name__)

GOOGLE_CALENDAR_API = "https://www.googleapis.com/calendar/v3"
GOOGLE_CALENDAR_SCOPES = [
    "https://www.googleapis.com/auth/calendar.events",
    "https://www.googleapis.com/auth/userinfo.email",
]
EVENT_TIMEZONE = "Europe/Paris"


def get_integration(db: Session, user_id: str) -> Optional[GoogleCalendarIntegration]:
    return (
        db.query(GoogleCalendarIntegration)
        .filter(GoogleCalendarIntegration.user_id == user_id)
        .first()
    )


def build_event_body(dossier: Dossier) -> Optional[dict]:
    event = event_from_dossier(dossier)
    if not event:
        return None
    body = {
        "summary": build_calendar_summary(dossier),
        "description": build_calendar_description(dossier),
        "start": {"dateTime": f"{event.start_date}T{event.start_time[:5]}:00", "timeZone": EVENT_TIMEZONE},
        "end": {"dateTime": f"{event.start_date}T{event.end_time[:5]}:00", "timeZone": EVENT_TIMEZONE},
        "reminders": {"useDefault": False, "overrides": [{"method": "popup", "minutes": 30}]},
    }
    location = full_address(dossier)
    if location:
        body["location"] = location
    return body


async def create_calendar_event(user: User, dossier: Dossier, db: Session) -> Optional[str]:
    """
    Create a Google Calendar event for a confirmed appointment
    Returns the Google Calendar event ID if successful, None otherwise
    """
    try:
        integration = get_integration(db, user.id)
        if not integration or not integration.auto_sync_enabled:
            logger.info("ℹ️ Google Calendar not connected or auto-sync disabled")
            return None

        event_body = build_event_body(dossier)
        if not event_body:
            logger.info(f"ℹ️ Dossier {dossier.id} has no appointment date - no calendar event")
            return None

        access_token = await get_valid_access_token(integration, db)
        if not access_token:
            logger.error("❌ Failed to get valid access token")
            return None

        calendar_id = integration.calendar_id or "primary"
        async with httpx.AsyncClient(timeout=10.0) as client:
            response = await client.post(
                f"{GOOGLE_CALENDAR_API}/calendars/{calendar_id}/events",
                headers={"Authorization": f"Bearer {access_token}"},
                json=event_body,
            )

        if response.status_code not in [200, 201]:
            logger.error(f"❌ Failed to create calendar event: {response.text}")
            return None

        event_id = response.json().get("id")
        logger.info(f"✅ Google Calendar event created: {event_id}")
        return event_id

    except Exception as e:
        logger.error(f"❌ Error creating calendar event: {str(e)}")
        return None


async def delete_calendar_event(user: User, event_id: str, db: Session) -> bool:
    """Delete a Google Calendar event (cancelled RDV); 404/410 count as deleted"""
    try:
        integration = get_integration(db, user.id)
        if not integration:
            return False

        access_token = await get_valid_access_token(integration, db)
        if not access_token:
            logger.error("❌ Failed to get valid access token")
            return False

        calendar_id = integration.calendar_id or "primary"
        async with httpx.AsyncClient(timeout=10.0) as client:
            response = await client.delete(
                f"{GOOGLE_CALENDAR_API}/calendars/{calendar_id}/events/{event_id}",
                headers={"Authorization": f"Bearer {access_token}"},
            )

        if response.status_code not in [200, 204, 404, 410]:
            logger.error(f"❌ Failed to delete calendar event: {response.text}")
            return False

        logger.info(f"✅ Google Calendar event deleted: {event_id}")
        return True

    except Exception as e:
        logger.error(f"❌ Error deleting calendar event: {str(e)}")
        return False
