from django.utils import timezone

from listings_app.models import Booking


def _as_local_date(value):
    if hasattr(value, "date"):
        if timezone.is_aware(value):
            value = timezone.localtime(value)
        return value.date()
    return value


class AvailabilityChecker:
    """
    Decides whether a property can take a booking for [start, end).

    A property is unavailable when it is switched off, when the range falls
    outside its availability window (compared on calendar dates), or when a
    non-cancelled booking overlaps the range.
    """

    def __init__(self, bookings=None):
        self.bookings = bookings if bookings is not None else Booking.objects

    def conflicts(self, prop, start, end, exclude_booking_id=None):
        """Non-cancelled bookings whose range satisfies ``ranges_overlap`` with [start, end)."""
        qs = (
            self.bookings.filter(property=prop)
            .exclude(status=Booking.STATUS_CANCELLED)
            .filter(start_date__lt=end, end_date__gt=start)
        )
        if exclude_booking_id is not None:
            qs = qs.exclude(pk=exclude_booking_id)
        return qs.order_by("start_date")

    def within_window(self, prop, start, end) -> bool:
        if prop.available_from and _as_local_date(start) < prop.available_from:
            return False
        if prop.available_to and _as_local_date(end) > prop.available_to:
            return False
        return True

    def is_available(self, prop, start, end, exclude_booking_id=None) -> bool:
        if not prop.is_available:
            return False
        if not self.within_window(prop, start, end):
            return False
        return not self.conflicts(prop, start, end, exclude_booking_id).exists()
