from datetime import datetime, time

from django.core.exceptions import ValidationError
from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime


def ranges_overlap(start, end, other_start, other_end) -> bool:
    """Half-open overlap: touching ranges (end == other_start) do not clash."""
    return start < other_end and end > other_start


def validate_booking_window(start, end):
    if start is None or end is None:
        raise ValidationError("Start and end dates are required.")
    if start >= end:
        raise ValidationError("End date must be after start date.")


def parse_query_datetime(value: str, *, label: str):
    """
    Parse an ISO 8601 date or datetime from a query string into an aware
    datetime. Bare dates resolve to midnight in the current timezone.
    """
    value = (value or "").strip()
    if not value:
        raise ValidationError({label: "This query parameter is required."})

    try:
        parsed = parse_datetime(value)
        day = parse_date(value) if parsed is None else None
    except ValueError:
        parsed = day = None
    if parsed is None:
        if day is None:
            raise ValidationError({label: "Enter a valid ISO 8601 date or datetime."})
        parsed = datetime.combine(day, time.min)

    if timezone.is_naive(parsed):
        parsed = timezone.make_aware(parsed)
    return parsed
