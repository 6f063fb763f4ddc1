from datetime import timedelta

import pytest
from django.utils import timezone

from listings_app.api.exceptions import Conflict
from listings_app.models import Booking, Property
from listings_app.services.availability import AvailabilityChecker
from listings_app.services.bookings import BookingLedger
from listings_app.services.identity import identity_for


pytestmark = pytest.mark.django_db


class RecordingChecker(AvailabilityChecker):
    def __init__(self, log):
        super().__init__()
        self.log = log

    def is_available(self, prop, start, end, exclude_booking_id=None):
        self.log.append("overlap-check")
        return super().is_available(prop, start, end, exclude_booking_id)


@pytest.fixture
def lock_log(monkeypatch):
    log = []
    original = Property.objects.select_for_update

    def locking(*args, **kwargs):
        log.append("lock-property")
        return original(*args, **kwargs)

    monkeypatch.setattr(Property.objects, "select_for_update", locking)
    return log


def _window(days_ahead=10, nights=2):
    start = timezone.now().replace(microsecond=0) + timedelta(days=days_ahead)
    return start, start + timedelta(days=nights)


def test_create_locks_property_before_overlap_check(lock_log, user, property_factory):
    prop = property_factory()
    start, end = _window()

    BookingLedger(checker=RecordingChecker(lock_log)).create(prop.id, user, start_date=start, end_date=end)

    assert lock_log == ["lock-property", "overlap-check"]


def test_date_change_locks_property_before_overlap_check(lock_log, user, booking_factory):
    booking = booking_factory(user=user, days_ahead=10)
    ledger = BookingLedger(checker=RecordingChecker(lock_log))

    ledger.update(booking.id, {"end_date": booking.end_date + timedelta(days=1)}, identity_for(user))

    assert lock_log == ["lock-property", "overlap-check"]


def test_other_edits_take_no_lock(lock_log, user, booking_factory):
    booking = booking_factory(user=user)
    BookingLedger(checker=RecordingChecker(lock_log)).update(booking.id, {"guests": 3}, identity_for(user))

    assert lock_log == []


@pytest.mark.django_db(transaction=True)
def test_second_overlapping_request_loses(user_factory, property_factory):
    prop = property_factory()
    start, end = _window()
    ledger = BookingLedger()

    ledger.create(prop.id, user_factory(), start_date=start, end_date=end)
    with pytest.raises(Conflict):
        ledger.create(prop.id, user_factory(), start_date=start + timedelta(days=1), end_date=end + timedelta(days=1))

    assert Booking.objects.filter(property=prop).count() == 1
