"""
Time-limited client access tokens (dossier form, devis signature, facture view)

A token is checked on every access; regenerating overwrites the previous one.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Optional

from fastapi import HTTPException

from ..models import utcnow
from ..security_utils import generate_hex_token

logger = logging.getLogger(__name__)

INVALID_LINK_MESSAGE = "Lien invalide ou expiré"
EXPIRED_LINK_MESSAGE = "Ce lien a expiré"


def issue_token(validity_days: int) -> tuple[str, datetime]:
    """New random token and its expiry timestamp"""
    return generate_hex_token(), utcnow() + timedelta(days=validity_days)


def is_expired(expires_at: Optional[datetime], now: Optional[datetime] = None) -> bool:
    if expires_at is None:
        return False
    return expires_at < (now or utcnow())


def is_token_active(token: Optional[str], expires_at: Optional[datetime]) -> bool:
    return bool(token) and expires_at is not None and not is_expired(expires_at)


def ensure_token_valid(record: Any, expires_at_attr: str) -> Any:
    """
    Gate for every public endpoint.

    Raises:
        HTTPException 404: no record for this token
        HTTPException 410: token past its expiry
    """
    if record is None:
        raise HTTPException(status_code=404, detail=INVALID_LINK_MESSAGE)
    if is_expired(getattr(record, expires_at_attr)):
        logger.info(f"⏰ Expired client token used for {type(record).__name__} {record.id}")
        raise HTTPException(status_code=410, detail=EXPIRED_LINK_MESSAGE)
    return record


def format_fr_date(value: datetime) -> str:
    return value.strftime("%d/%m/%Y")
