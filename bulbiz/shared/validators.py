"""Shared validation utilities"""

import re
import uuid
from typing import Optional

PHONE_STRIP_RE = re.compile(r"[\s\-().]")
PHONE_RE = re.compile(r"^\+?\d{10,15}$")
EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def validate_uuid(value: str) -> bool:
    """Validate UUID format"""
    try:
        uuid.UUID(value)
        return True
    except (ValueError, AttributeError, TypeError):
        return False


def is_valid_phone(phone: Optional[str]) -> bool:
    if not phone:
        return False
    return bool(PHONE_RE.match(PHONE_STRIP_RE.sub("", phone)))


def normalize_phone(phone: Optional[str]) -> Optional[str]:
    """
    Normalize a French or international phone number to E.164.

    06 12 34 56 78 -> +33612345678, 33612345678 -> +33612345678

    Returns:
        The E.164 number, or None when the input is not a phone number
    """
    if not phone:
        return None
    cleaned = PHONE_STRIP_RE.sub("", phone)
    if not PHONE_RE.match(cleaned):
        return None
    if cleaned.startswith("0") and len(cleaned) == 10:
        cleaned = "+33" + cleaned[1:]
    if not cleaned.startswith("+"):
        cleaned = "+" + cleaned
    return cleaned


def is_valid_email(email: Optional[str]) -> bool:
    return bool(email and EMAIL_RE.match(email.strip()))


def validate_email(email: Optional[str]) -> Optional[str]:
    """
    Validate email format.

    Returns:
        Lowercase email address (None passes through)

    Raises:
        ValueError: If email format is invalid
    """
    if not email:
        return None
    email = email.strip().lower()
    if not EMAIL_RE.match(email):
        raise ValueError("Adresse email invalide")
    return email
