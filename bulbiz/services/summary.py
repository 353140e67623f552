"""Structured (non-AI) dossier summary shown at the top of the dossier page"""

from ..models import Dossier
from ..statuses import CATEGORY_LABELS, URGENCY_LABELS
from ..utils.sanitization import truncate
from .ics import full_address

MAX_BULLETS = 5
DESCRIPTION_PREVIEW_LENGTH = 120


def build_summary(dossier: Dossier) -> dict:
    category = CATEGORY_LABELS.get(dossier.category, dossier.category or "Autre")
    urgency = URGENCY_LABELS.get(dossier.urgency, dossier.urgency or "")

    bullets = []
    address = full_address(dossier)
    if address:
        bullets.append(f"Adresse : {address}")
    if dossier.description:
        bullets.append(truncate(dossier.description.strip(), DESCRIPTION_PREVIEW_LENGTH))
    bullets.append(f"Catégorie : {category}")
    bullets.append(f"Urgence : {urgency}")
    if dossier.client_email:
        bullets.append("Email client renseigné")

    return {
        "headline": f"Demande : {category.lower()} – urgence {urgency.lower()}",
        "bullets": bullets[:MAX_BULLETS],
    }
