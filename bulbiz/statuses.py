"""Status taxonomies - values stored in the database and their display labels/colors"""

from typing import Optional

# ============================================================================
# DOSSIER
# ============================================================================

DOSSIER_STATUSES = [
    "nouveau",
    "a_qualifier",
    "devis_a_faire",
    "devis_envoye",
    "clos_signe",
    "clos_perdu",
    "invoice_pending",
    "invoice_paid",
]

STATUS_LABELS = {
    "nouveau": "Nouveau",
    "a_qualifier": "Nouveau",  # Merged with nouveau on the dashboard
    "devis_a_faire": "Devis à faire",
    "devis_envoye": "Devis envoyé",
    "clos_signe": "Devis signé",
    "clos_perdu": "Clos (perdu)",
    "invoice_pending": "Facture en attente",
    "invoice_paid": "Facture payée",
}

STATUS_COLORS = {
    "nouveau": "primary",
    "a_qualifier": "primary",
    "devis_a_faire": "orange",
    "devis_envoye": "blue",
    "clos_signe": "success",
    "clos_perdu": "muted",
    "invoice_pending": "orange",
    "invoice_paid": "emerald",
}

# Dashboard order; a_qualifier is folded into nouveau
DASHBOARD_STATUSES = [
    "nouveau",
    "devis_a_faire",
    "devis_envoye",
    "clos_signe",
    "invoice_pending",
    "invoice_paid",
    "clos_perdu",
]

# Statuses counted under another dashboard bucket
STATUS_ALIASES = {"a_qualifier": "nouveau"}

# ============================================================================
# APPOINTMENT
# ============================================================================

APPOINTMENT_STATUSES = [
    "none",
    "rdv_pending",
    "slots_proposed",
    "client_selected",
    "rdv_confirmed",
    "done",
    "cancelled",
]

APPOINTMENT_STATUS_LABELS = {
    "none": "Aucun",
    "rdv_pending": "Créneaux à proposer",
    "slots_proposed": "En attente client",
    "client_selected": "En attente client",
    "rdv_confirmed": "RDV pris",
    "done": "RDV terminé",
    "cancelled": "Annulé",
}

APPOINTMENT_STATUS_COLORS = {
    "none": "muted",
    "rdv_pending": "warning",
    "slots_proposed": "blue",
    "client_selected": "orange",
    "rdv_confirmed": "success",
    "done": "primary",
    "cancelled": "destructive",
}

APPOINTMENT_TILE_LABELS = {
    "slots_needed": "Créneaux à proposer",
    "waiting_client": "En attente client",
    "rdv_confirmed": "RDV pris",
    "rdv_done": "RDV terminé",
}

_APPOINTMENT_TILES = {
    "rdv_pending": "slots_needed",
    "slots_proposed": "waiting_client",
    "client_selected": "waiting_client",
    "rdv_confirmed": "rdv_confirmed",
    "done": "rdv_done",
}

APPOINTMENT_SOURCES = ["client_selected", "manual", "phone", "email"]


def to_appointment_tile_key(status: Optional[str]) -> Optional[str]:
    """Map an appointment_status to its dashboard tile (None when not shown)"""
    return _APPOINTMENT_TILES.get(status or "none")


def appointment_statuses_for_tile(tile: str) -> list[str]:
    return [status for status, key in _APPOINTMENT_TILES.items() if key == tile]


# ============================================================================
# QUOTE / INVOICE
# ============================================================================

QUOTE_STATUSES = ["brouillon", "envoye", "signe", "refuse"]

QUOTE_STATUS_LABELS = {
    "brouillon": "Brouillon",
    "envoye": "Envoyé",
    "signe": "Signé",
    "refuse": "Refusé",
}

QUOTE_STATUS_COLORS = {
    "brouillon": "muted",
    "envoye": "blue",
    "signe": "success",
    "refuse": "destructive",
}

INVOICE_STATUSES = ["draft", "sent", "paid"]

INVOICE_STATUS_LABELS = {
    "draft": "Brouillon",
    "sent": "Envoyée",
    "paid": "Payée",
}

INVOICE_STATUS_COLORS = {
    "draft": "muted",
    "sent": "orange",
    "paid": "emerald",
}

# ============================================================================
# INTAKE
# ============================================================================

SOURCE_LABELS = {
    "lien_client": "Lien client",
    "manuel": "Manuel",
    "email": "Email",
}

CATEGORY_LABELS = {
    "wc": "WC",
    "fuite": "Fuite",
    "chauffe_eau": "Chauffe-eau",
    "evier": "Évier",
    "douche": "Douche",
    "autre": "Autre",
}

URGENCY_LABELS = {
    "aujourdhui": "Aujourd'hui",
    "48h": "48h",
    "semaine": "Semaine",
}

URGENCY_COLORS = {
    "aujourdhui": "destructive",
    "48h": "warning",
    "semaine": "muted",
}

# Higher = more urgent
URGENCY_ORDER = {
    "aujourdhui": 3,
    "48h": 2,
    "semaine": 1,
}

MEDIA_TYPES = ["photo", "video", "audio", "plan", "note"]

RELANCE_TYPES = {
    "info_manquante": "Info manquante",
    "devis_non_signe": "Devis non signé",
}

VAT_MODES = ["normal", "no_vat_293b"]
CLIENT_TYPES = ["individual", "business"]
