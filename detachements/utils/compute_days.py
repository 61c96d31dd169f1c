from typing import Optional, Union

from detachements.constants.constants import PeriodMarker
from detachements.utils.dates import DateInput, parse_date


def to_period(value: Union[PeriodMarker, str, None]) -> Optional[PeriodMarker]:
    """Coerce a half-day marker, case-insensitively. Empty means FULL, unknown means None."""
    if isinstance(value, PeriodMarker):
        return value
    text = (value or "").strip().upper()
    if not text:
        return PeriodMarker.FULL
    try:
        return PeriodMarker(text)
    except ValueError:
        return None


def compute_days(
    date_from: DateInput,
    date_to: DateInput,
    start_period: Union[PeriodMarker, str, None] = PeriodMarker.FULL,
    end_period: Union[PeriodMarker, str, None] = PeriodMarker.FULL,
) -> float:
    """
    Compute the duration of a leave span in days, counting half days as 0.5.

    Both bounds are inclusive. ``date_to`` defaults to ``date_from``.

    Single day:
        - FULL on either side, or AM -> PM: 1
        - AM/AM or PM/PM: 0.5
        - any other combination: 1
    Several days:
        - every calendar day counts as 1
        - minus 0.5 when the first day starts in the afternoon (PM)
        - minus 0.5 when the last day ends in the morning (AM)

    Returns 0 when ``date_from`` is missing or unparseable, or when the span is reversed.
    """
    start = parse_date(date_from)
    if start is None:
        return 0.0
    end = parse_date(date_to) if date_to else start
    if end is None or end < start:
        return 0.0

    start_p = to_period(start_period) or PeriodMarker.FULL
    end_p = to_period(end_period) or PeriodMarker.FULL

    if start == end:
        if PeriodMarker.FULL in (start_p, end_p):
            return 1.0
        if start_p == end_p:
            return 0.5
        return 1.0

    total = float((end - start).days + 1)
    if start_p == PeriodMarker.PM:
        total -= 0.5
    if end_p == PeriodMarker.AM:
        total -= 0.5
    return total
