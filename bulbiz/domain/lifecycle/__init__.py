"""Lifecycle domain - explicit state machines for dossier, RDV, devis and facture"""

from .machine import (
    APPOINTMENT,
    DOSSIER,
    INVOICE,
    QUOTE,
    LifecycleError,
    allowed_next,
    validate_transition,
)
from .service import LifecycleService

__all__ = [
    "APPOINTMENT",
    "DOSSIER",
    "INVOICE",
    "QUOTE",
    "LifecycleError",
    "LifecycleService",
    "allowed_next",
    "validate_transition",
]
