"""CSV export of every request, for the admins' spreadsheet follow-up."""

import csv
import io
from typing import Iterable

from detachements.constants.constants import PeriodMarker
from detachements.models.leave import LeaveRequest
from detachements.services.LeaveNotificationFormatter import format_date_span
from detachements.utils.compute_days import to_period
from detachements.utils.dates import format_fr_date, format_fr_datetime

CSV_HEADER = [
    "Prénom & Nom", "E-mail Demandeur", "Entité", "Dates", "Lieu", "Article 21", "Nb jours",
    "N+1", "DDRH/RH", "Statut", "Créé le", "Validé le", "Motif décision", "Date décision",
]


def format_export_span(record: LeaveRequest) -> str:
    """
    Dates column: ``01/03/2024 (Matin)`` for a single day, otherwise
    ``01/03/2024 → 05/03/2024`` followed by ``(Début: Après-midi)`` and/or
    ``(Fin: Matin)``.
    """
    if record.date_from == record.date_to or not record.date_to:
        return format_date_span(record.date_from, record.date_to, record.start_period, record.end_period)

    span = f"{format_fr_date(record.date_from)} → {format_fr_date(record.date_to)}"
    if to_period(record.start_period) == PeriodMarker.PM:
        span += " (Début: Après-midi)"
    if to_period(record.end_period) == PeriodMarker.AM:
        span += " (Fin: Matin)"
    return span


def _days(value) -> str:
    value = float(value or 0)
    return str(int(value)) if value.is_integer() else str(value)


def build_csv(records: Iterable[LeaveRequest]) -> str:
    """Semicolon-separated export, one row per request, values quoted only when needed."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, delimiter=";", quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for r in records:
        writer.writerow([
            r.full_name,
            r.applicant_email or "",
            r.entity,
            format_export_span(r),
            r.place,
            r.type,
            _days(r.days),
            r.manager_email,
            r.hr_email,
            r.status.value if r.status else "",
            format_fr_datetime(r.created_at),
            format_fr_datetime(r.validated_at),
            r.decision_reason or "",
            format_fr_datetime(r.decision_at),
        ])
    return buffer.getvalue()
