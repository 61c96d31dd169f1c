"""Constants for request statuses, half-day markers, lifecycle actions and leave types."""

from enum import Enum


class RequestStatus(str, Enum):
    """Enumeration of leave request statuses."""

    pending = "pending"
    sent = "sent"
    refused = "refused"
    cancelled = "cancelled"


class PeriodMarker(str, Enum):
    """Half-day marker for the first or last day of a leave span."""

    FULL = "FULL"
    AM = "AM"
    PM = "PM"


class TransitionAction(str, Enum):
    """Admin actions available on a pending request."""

    validate = "validate"
    refuse = "refuse"
    cancel = "cancel"


ACTION_TARGET_STATUS = {
    TransitionAction.validate: RequestStatus.sent,
    TransitionAction.refuse: RequestStatus.refused,
    TransitionAction.cancel: RequestStatus.cancelled,
}

DEFAULT_LEAVE_TYPES = ["21B", "21C", "Information"]

PERIOD_LABELS = {
    PeriodMarker.AM: "Matin",
    PeriodMarker.PM: "Après-midi",
}

# Highlight color for interpolated values in notification emails
VAR_COLOR = "#D71620"

CSV_EXPORT_FILENAME = "detachements-export-complet.csv"
