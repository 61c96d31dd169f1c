"""Normalization and validation of inbound détachement submissions."""

import re
import uuid
from datetime import datetime
from typing import Any, Iterable, Mapping, Optional

from detachements.constants.constants import PeriodMarker, RequestStatus
from detachements.core.config import settings
from detachements.core.errors import ValidationError
from detachements.models.leave import LeaveRequest
from detachements.utils.compute_days import compute_days, to_period
from detachements.utils.dates import normalize_date, parse_date

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
# Whitespace, ASCII control characters and zero-width characters pasted from mail clients
STRIP_RE = re.compile(r"[\s\x00-\x1f\x7f\u200b-\u200d\u2060\ufeff]")

REQUIRED_FIELDS = ("full_name", "entity", "place")


def clean_email(value: Any) -> str:
    """Remove whitespace and control characters from an email address."""
    return STRIP_RE.sub("", str(value or ""))


def is_email(value: Any) -> bool:
    """Permissive ``local@domain.tld`` check, applied after cleaning."""
    return bool(EMAIL_RE.match(clean_email(value)))


def _text(value: Any) -> str:
    return str(value).strip() if value is not None else ""


def _match_leave_type(value: str, leave_types: Iterable[str]) -> Optional[str]:
    for leave_type in leave_types:
        if leave_type.upper() == value.upper():
            return leave_type
    return None


def validate_submission(
    raw: Mapping[str, Any],
    now: Optional[datetime] = None,
    leave_types: Optional[Iterable[str]] = None,
    default_leave_type: Optional[str] = None,
) -> LeaveRequest:
    """
    Turn a raw submission into a new pending LeaveRequest.

    The submission uses the snake_case keys of the model (``full_name``,
    ``applicant_email``, ``date_from``, ``start_period``...). Nothing is
    persisted here: the caller adds the returned record to the store.

    Args:
        raw: submitted fields.
        now: creation timestamp, defaults to ``datetime.utcnow()``.
        leave_types: accepted leave categories, defaults to ``settings.leave_types``.
        default_leave_type: category used when none is submitted.

    Returns:
        A transient LeaveRequest with ``days`` computed and ``status=pending``.

    Raises:
        ValidationError: with a French message and the offending field.
    """
    data = dict(raw or {})
    leave_types = list(leave_types or settings.leave_types)
    default_leave_type = default_leave_type or settings.DEFAULT_LEAVE_TYPE

    values = {name: _text(data.get(name)) for name in REQUIRED_FIELDS}
    missing = [name for name in REQUIRED_FIELDS if not values[name]]
    if missing:
        raise ValidationError("Champs requis manquants (nom, entité, lieu)", field=missing[0])

    applicant_email = clean_email(data.get("applicant_email"))
    if not is_email(applicant_email):
        raise ValidationError("E-mail du demandeur invalide", field="applicant_email")

    raw_from = _text(data.get("date_from"))
    if not raw_from:
        raise ValidationError("Date de début manquante", field="date_from")
    raw_to = _text(data.get("date_to")) or raw_from

    date_from = normalize_date(raw_from)
    if not date_from:
        raise ValidationError(
            "Format de date invalide (utiliser AAAA-MM-JJ ou JJ/MM/AAAA)", field="date_from"
        )
    date_to = normalize_date(raw_to)
    if not date_to:
        raise ValidationError(
            "Format de date invalide (utiliser AAAA-MM-JJ ou JJ/MM/AAAA)", field="date_to"
        )

    start_period = to_period(data.get("start_period"))
    if start_period is None:
        raise ValidationError("startPeriod doit être AM, PM ou FULL", field="start_period")
    end_period = to_period(data.get("end_period"))
    if end_period is None:
        raise ValidationError("endPeriod doit être AM, PM ou FULL", field="end_period")

    leave_type = _match_leave_type(_text(data.get("type")) or default_leave_type, leave_types)
    if leave_type is None:
        raise ValidationError(
            f"type doit être l'une des valeurs : {', '.join(leave_types)}", field="type"
        )

    manager_email = clean_email(data.get("manager_email"))
    if not is_email(manager_email):
        raise ValidationError("E-mail du N+1 invalide", field="manager_email")
    hr_email = clean_email(data.get("hr_email"))
    if not is_email(hr_email):
        raise ValidationError("E-mail du DDRH/RH invalide", field="hr_email")

    start = parse_date(date_from)
    end = parse_date(date_to)
    if end < start:
        raise ValidationError(
            "La date de fin doit être postérieure ou égale à la date de début", field="date_to"
        )
    if start == end and start_period == PeriodMarker.PM and end_period == PeriodMarker.AM:
        raise ValidationError(
            "Demi-journées incohérentes : une journée ne peut pas commencer l'après-midi et finir le matin",
            field="end_period",
        )

    return LeaveRequest(
        id=str(uuid.uuid4()),
        full_name=values["full_name"],
        applicant_email=applicant_email,
        entity=values["entity"],
        place=values["place"],
        date_from=start,
        date_to=end,
        start_period=start_period,
        end_period=end_period,
        type=leave_type,
        manager_email=manager_email,
        hr_email=hr_email,
        comment=_text(data.get("comment")) or None,
        days=compute_days(start, end, start_period, end_period),
        status=RequestStatus.pending,
        created_at=now or datetime.utcnow(),
    )
