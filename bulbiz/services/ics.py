"""
Calendar output for confirmed appointments (.ics file, Google / Outlook deep links)

Times are floating local times: the artisan and the client share a timezone.
"""

import random
import string
import time
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Optional
from urllib.parse import urlencode

from ..config import FRONTEND_URL
from ..models import Dossier

MAX_LINE_OCTETS = 75

CALENDAR_CATEGORY_LABELS = {
    "wc": "WC / Toilettes",
    "fuite": "Fuite",
    "chauffe_eau": "Chauffe-eau",
    "evier": "Évier",
    "douche": "Douche / Baignoire",
    "autre": "Autre",
}

CALENDAR_URGENCY_LABELS = {
    "aujourdhui": "Aujourd'hui",
    "48h": "Sous 48h",
    "semaine": "Dans la semaine",
}


@dataclass
class IcsEvent:
    title: str
    start_date: str  # YYYY-MM-DD
    start_time: str  # HH:MM
    end_time: str  # HH:MM
    description: Optional[str] = None
    location: Optional[str] = None
    uid: Optional[str] = None


def to_ics_datetime(date_str: str, time_str: str) -> str:
    year, month, day = (int(part) for part in date_str.split("-"))
    hour, minute = (int(part) for part in time_str[:5].split(":"))
    return f"{year}{month:02d}{day:02d}T{hour:02d}{minute:02d}00"


def escape_ics(text: str) -> str:
    return (
        text.replace("\r\n", "\n")
        .replace("\r", "\n")
        .replace("\\", "\\\\")
        .replace(";", "\\;")
        .replace(",", "\\,")
        .replace("\n", "\\n")
    )


def fold_line(line: str) -> str:
    """Split a content line into chunks of at most 75 UTF-8 octets (RFC 5545 3.1)"""
    chunks = []
    current = ""
    size = 0
    for char in line:
        width = len(char.encode("utf-8"))
        if size + width > MAX_LINE_OCTETS:
            chunks.append(current)
            # Continuation lines start with one space, which counts toward the limit
            current, size = " ", 1
        current += char
        size += width
    chunks.append(current)
    return "\r\n".join(chunks)


def _generate_uid() -> str:
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=10))  # noqa: S311
    return f"{int(time.time() * 1000)}-{suffix}@bulbiz.fr"


def generate_ics_content(event: IcsEvent, now: Optional[datetime] = None) -> str:
    """Single-event VCALENDAR with a 30 minute display alarm, CRLF line endings"""
    stamp = (now or datetime.now(timezone.utc)).strftime("%Y%m%dT%H%M%SZ")

    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        "PRODID:-//Bulbiz//RDV//FR",
        "CALSCALE:GREGORIAN",
        "METHOD:PUBLISH",
        "BEGIN:VEVENT",
        f"UID:{event.uid or _generate_uid()}",
        f"DTSTAMP:{stamp}",
        f"DTSTART:{to_ics_datetime(event.start_date, event.start_time)}",
        f"DTEND:{to_ics_datetime(event.start_date, event.end_time)}",
        f"SUMMARY:{escape_ics(event.title)}",
    ]
    if event.description:
        lines.append(f"DESCRIPTION:{escape_ics(event.description)}")
    if event.location:
        lines.append(f"LOCATION:{escape_ics(event.location)}")

    lines += [
        "BEGIN:VALARM",
        "TRIGGER:-PT30M",
        "ACTION:DISPLAY",
        f"DESCRIPTION:{escape_ics(event.title)}",
        "END:VALARM",
        "END:VEVENT",
        "END:VCALENDAR",
    ]
    return "\r\n".join(fold_line(line) for line in lines)


def google_calendar_url(event: IcsEvent) -> str:
    start = to_ics_datetime(event.start_date, event.start_time)
    end = to_ics_datetime(event.start_date, event.end_time)
    params = {"action": "TEMPLATE", "text": event.title, "dates": f"{start}/{end}"}
    if event.location:
        params["location"] = event.location
    if event.description:
        params["details"] = event.description
    return f"https://calendar.google.com/calendar/render?{urlencode(params)}"


def outlook_calendar_url(event: IcsEvent) -> str:
    params = {
        "rru": "addevent",
        "startdt": f"{event.start_date}T{event.start_time[:5]}:00",
        "enddt": f"{event.start_date}T{event.end_time[:5]}:00",
        "subject": event.title,
    }
    if event.location:
        params["location"] = event.location
    if event.description:
        params["body"] = event.description
    return f"https://outlook.live.com/calendar/0/deeplink/compose?{urlencode(params)}"


# ============================================
# Dossier -> event
# ============================================


def full_address(dossier: Dossier) -> str:
    return dossier.address or ", ".join(
        part for part in [dossier.address_line, dossier.postal_code, dossier.city] if part
    )


def build_calendar_summary(dossier: Dossier) -> str:
    client_name = dossier.client_name
    category_label = CALENDAR_CATEGORY_LABELS.get(dossier.category, dossier.category)
    summary = "RDV"
    if client_name:
        summary += f" – {client_name}"
    if category_label:
        summary += f" ({category_label})"
    return summary


def build_calendar_description(dossier: Dossier) -> str:
    """Client, address, intervention and dossier link sections"""
    sections = []

    client_lines = []
    if dossier.client_name:
        client_lines.append(f"👤 Client : {dossier.client_name}")
    if dossier.client_phone:
        client_lines.append(f"📞 Tél : {dossier.client_phone}")
    if dossier.client_email:
        client_lines.append(f"📧 Email : {dossier.client_email}")
    if client_lines:
        sections.append("\n".join(client_lines))

    address_lines = []
    address = full_address(dossier)
    if address:
        address_lines.append(f"📍 Adresse : {address}")
    if dossier.floor_number is not None:
        elevator = " (ascenseur)" if dossier.has_elevator else " (sans ascenseur)"
        address_lines.append(f"🏢 Étage : {dossier.floor_number}{elevator}")
    if dossier.access_code:
        address_lines.append(f"🔑 Code d'accès : {dossier.access_code}")
    if dossier.housing_type:
        address_lines.append(f"🏠 Logement : {dossier.housing_type}")
    if dossier.occupant_type:
        address_lines.append(f"👥 Occupant : {dossier.occupant_type}")
    if address_lines:
        sections.append("\n".join(address_lines))

    intervention_lines = [
        f"🔧 Catégorie : {CALENDAR_CATEGORY_LABELS.get(dossier.category, dossier.category)}"
    ]
    if dossier.urgency:
        intervention_lines.append(
            f"⏰ Urgence : {CALENDAR_URGENCY_LABELS.get(dossier.urgency, dossier.urgency)}"
        )
    if dossier.description:
        intervention_lines.append(f"📝 Description : {dossier.description}")
    if dossier.appointment_notes:
        intervention_lines.append(f"💬 Notes RDV : {dossier.appointment_notes}")
    sections.append("\n".join(intervention_lines))

    sections.append(f"🔗 Dossier : {FRONTEND_URL}/dossier/{dossier.id}")
    return "\n\n".join(sections)


def _one_hour_after(time_str: str) -> str:
    hour, minute = (int(part) for part in time_str[:5].split(":"))
    return f"{min(hour + 1, 23):02d}:{minute:02d}"


def event_from_dossier(dossier: Dossier) -> Optional[IcsEvent]:
    """None until the appointment has a date and a start time"""
    if not dossier.appointment_date or not dossier.appointment_time_start:
        return None
    slot_date = dossier.appointment_date
    if isinstance(slot_date, date):
        slot_date = slot_date.isoformat()
    return IcsEvent(
        title=build_calendar_summary(dossier),
        start_date=slot_date,
        start_time=dossier.appointment_time_start,
        end_time=dossier.appointment_time_end or _one_hour_after(dossier.appointment_time_start),
        description=build_calendar_description(dossier),
        location=full_address(dossier) or None,
        uid=f"{dossier.id}@bulbiz.fr",
    )
