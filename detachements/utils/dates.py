"""Canonical date handling.

Accepted input grammar for calendar dates:

* ``YYYY-MM-DD`` (ISO 8601 calendar date)
* ``DD/MM/YYYY`` (French notation), converted to ISO

Anything else, including impossible dates such as ``2024-02-30``, is rejected.
Dates are plain calendar dates: no timezone is ever applied.
"""

import re
from datetime import date, datetime
from typing import Optional, Union

ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
FR_DATE_RE = re.compile(r"^(\d{2})/(\d{2})/(\d{4})$")

DateInput = Union[date, str, None]


def normalize_date(value: DateInput) -> Optional[str]:
    """
    Normalize a date to ``YYYY-MM-DD``.

    Args:
        value: a ``date``/``datetime`` or a string in one of the accepted notations.

    Returns:
        The ISO string, or None when the value is empty or not a valid date.

    Example:
        >>> normalize_date("05/03/2024")
        '2024-03-05'
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()

    text = str(value).strip()
    if not text:
        return None

    match = FR_DATE_RE.match(text)
    if match:
        dd, mm, yyyy = match.groups()
        text = f"{yyyy}-{mm}-{dd}"

    if not ISO_DATE_RE.match(text):
        return None
    try:
        datetime.strptime(text, "%Y-%m-%d")
    except ValueError:
        return None
    return text


def parse_date(value: DateInput) -> Optional[date]:
    """Parse a date in any accepted notation, None when it cannot be parsed."""
    normalized = normalize_date(value)
    return date.fromisoformat(normalized) if normalized else None


def format_fr_date(value: DateInput) -> str:
    """Render a date as ``DD/MM/YYYY``; empty string for missing values."""
    parsed = parse_date(value)
    if not parsed:
        return "" if value is None else str(value)
    return parsed.strftime("%d/%m/%Y")


def format_fr_datetime(value: Optional[datetime]) -> str:
    """Render a timestamp as ``DD/MM/YYYY HH:MM:SS``."""
    if not value:
        return ""
    return value.strftime("%d/%m/%Y %H:%M:%S")
