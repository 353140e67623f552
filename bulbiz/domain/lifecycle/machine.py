"""
Dossier / appointment / devis / facture state machines

The transition tables are the only place where allowed status changes are
declared. A self-loop listed in a table is a real action (e.g. re-sending a
devis) and is recorded; any other same-status request is a no-op.
"""

from dataclasses import dataclass
from typing import Optional

from ...statuses import (
    APPOINTMENT_STATUS_LABELS,
    INVOICE_STATUS_LABELS,
    QUOTE_STATUS_LABELS,
    STATUS_LABELS,
)

# ============================================================================
# TRANSITION TABLES
# ============================================================================

DOSSIER_TRANSITIONS = {
    "nouveau": [
        "a_qualifier",
        "devis_a_faire",
        "devis_envoye",
        "clos_signe",
        "clos_perdu",
        "invoice_pending",
        "invoice_paid",
    ],
    "a_qualifier": [
        "nouveau",
        "devis_a_faire",
        "devis_envoye",
        "clos_signe",
        "clos_perdu",
        "invoice_pending",
        "invoice_paid",
    ],
    "devis_a_faire": ["devis_envoye", "clos_signe", "clos_perdu", "invoice_pending", "invoice_paid"],
    "devis_envoye": ["devis_a_faire", "clos_signe", "clos_perdu"],
    "clos_signe": ["devis_envoye", "invoice_pending", "invoice_paid"],
    "clos_perdu": ["devis_a_faire", "devis_envoye", "clos_signe"],
    "invoice_pending": ["invoice_paid"],
    "invoice_paid": [],  # Terminal
}

APPOINTMENT_TRANSITIONS = {
    "none": ["rdv_pending", "rdv_confirmed"],
    "rdv_pending": ["slots_proposed", "rdv_confirmed", "cancelled"],
    "slots_proposed": ["slots_proposed", "client_selected", "rdv_confirmed", "cancelled"],
    "client_selected": ["rdv_confirmed", "slots_proposed", "cancelled"],
    "rdv_confirmed": ["done", "cancelled"],
    "done": [],  # Terminal
    "cancelled": ["rdv_pending", "rdv_confirmed"],
}

QUOTE_TRANSITIONS = {
    "brouillon": ["envoye", "signe", "refuse"],
    "envoye": ["envoye", "signe", "refuse"],
    "signe": [],  # Terminal
    "refuse": ["envoye"],
}

INVOICE_TRANSITIONS = {
    "draft": ["sent", "paid"],
    "sent": ["sent", "paid"],
    "paid": [],  # Terminal
}

# Moves caused by a devis or facture event (sent, signed, refused, paid).
# They apply from any current status; the tables above gate staff edits.
DOSSIER_EVENT_TARGETS = frozenset(
    {"devis_envoye", "clos_signe", "clos_perdu", "invoice_pending", "invoice_paid"}
)
APPOINTMENT_EVENT_TARGETS = frozenset({"rdv_pending"})


@dataclass(frozen=True)
class Axis:
    """One state machine: where the status lives and how it is described"""

    name: str
    transitions: dict
    status_attr: str
    changed_at_attr: Optional[str]
    action: str
    labels: dict
    detail_template: str
    event_targets: frozenset = frozenset()

    def describe(self, status: str) -> str:
        return self.detail_template.format(label=self.labels.get(status, status))


DOSSIER = Axis(
    name="dossier",
    transitions=DOSSIER_TRANSITIONS,
    status_attr="status",
    changed_at_attr="status_changed_at",
    action="status_change",
    labels=STATUS_LABELS,
    detail_template='Statut changé en "{label}"',
    event_targets=DOSSIER_EVENT_TARGETS,
)

APPOINTMENT = Axis(
    name="appointment",
    transitions=APPOINTMENT_TRANSITIONS,
    status_attr="appointment_status",
    changed_at_attr=None,
    action="appointment_status_change",
    labels=APPOINTMENT_STATUS_LABELS,
    detail_template="Rendez-vous : {label}",
    event_targets=APPOINTMENT_EVENT_TARGETS,
)

QUOTE = Axis(
    name="quote",
    transitions=QUOTE_TRANSITIONS,
    status_attr="status",
    changed_at_attr="status_changed_at",
    action="quote_status_change",
    labels=QUOTE_STATUS_LABELS,
    detail_template='Devis passé à "{label}"',
)

INVOICE = Axis(
    name="invoice",
    transitions=INVOICE_TRANSITIONS,
    status_attr="status",
    changed_at_attr="status_changed_at",
    action="invoice_status_change",
    labels=INVOICE_STATUS_LABELS,
    detail_template='Facture passée à "{label}"',
)


class LifecycleError(Exception):
    """Raised when a requested status change is not in the transition table"""

    def __init__(self, axis: str, current: str, new: str, allowed: list):
        self.axis = axis
        self.current = current
        self.new = new
        self.allowed = allowed
        super().__init__(
            f"Invalid {axis} transition: '{current}' -> '{new}'. Allowed from '{current}': {allowed}"
        )


def is_noop(axis: Axis, current: str, new: str) -> bool:
    """Same-status request that is not a declared self-loop"""
    return current == new and new not in axis.transitions.get(current, [])


def validate_transition(axis: Axis, current: Optional[str], new: str, event: bool = False) -> bool:
    """
    Check a transition against the axis table

    With event=True (a devis or facture event), any target listed in the
    axis event_targets is accepted from every status.

    Returns:
        True when the transition must be applied, False when it is a no-op

    Raises:
        LifecycleError: unknown target status or transition not allowed
    """
    if new not in axis.transitions:
        raise LifecycleError(axis.name, current or "", new, [])
    if current is None:
        return True
    if is_noop(axis, current, new):
        return False
    if event and new in axis.event_targets:
        return True
    allowed = axis.transitions.get(current, [])
    if new not in allowed:
        raise LifecycleError(axis.name, current, new, allowed)
    return True


def allowed_next(axis: Axis, current: str) -> list:
    return list(axis.transitions.get(current, []))
