from datetime import timedelta
from decimal import Decimal

import pytest
from django.core import mail
from django.utils import timezone

from listings_app.models import Booking
from notifications.models import OutboundNotification


pytestmark = pytest.mark.django_db


def _window(days_ahead=10, hours=48):
    start = timezone.now().replace(microsecond=0) + timedelta(days=days_ahead)
    return start, start + timedelta(hours=hours)


def _post(client, prop, start, end, **extra):
    payload = {"start_date": start.isoformat(), "end_date": end.isoformat(), **extra}
    return client.post(f"/api/properties/{prop.id}/bookings/", payload, format="json")


def test_create_booking_prices_whole_nights(auth_client, user, property_factory):
    prop = property_factory(price=Decimal("400.00"))
    start, end = _window(hours=60)  # 2.5 nights -> 3

    res = _post(auth_client, prop, start, end, guests=2)

    assert res.status_code == 201, res.data
    data = res.data["data"]
    assert data["status"] == "pending"
    assert data["payment_status"] == "pending"
    assert data["payment_method"] == "eft"
    assert data["nights"] == 3
    assert Decimal(data["total_price"]) == Decimal("1200.00")
    assert data["user"]["id"] == user.id


def test_create_requires_auth(api_client, property_factory):
    prop = property_factory()
    start, end = _window()
    res = _post(api_client, prop, start, end)
    assert res.status_code == 401


def test_overlapping_booking_is_a_conflict(auth_client, property_factory, booking_factory):
    prop = property_factory()
    existing = booking_factory(prop=prop, days_ahead=10, nights=3)

    res = _post(
        auth_client, prop,
        existing.start_date + timedelta(days=1),
        existing.end_date + timedelta(days=1),
    )

    assert res.status_code == 400
    assert res.data["error"] == "conflict"
    assert res.data["message"] == "Property is not available for the selected dates"
    assert Booking.objects.filter(property=prop).count() == 1


def test_back_to_back_booking_is_allowed(auth_client, property_factory, booking_factory):
    prop = property_factory()
    existing = booking_factory(prop=prop, days_ahead=10, nights=3)

    res = _post(auth_client, prop, existing.end_date, existing.end_date + timedelta(days=2))
    assert res.status_code == 201, res.data


def test_cancelled_booking_frees_the_dates(auth_client, property_factory, booking_factory):
    prop = property_factory()
    existing = booking_factory(prop=prop, status=Booking.STATUS_CANCELLED)

    res = _post(auth_client, prop, existing.start_date, existing.end_date)
    assert res.status_code == 201, res.data


def test_end_before_start_is_rejected(auth_client, property_factory):
    prop = property_factory()
    start, end = _window()

    res = _post(auth_client, prop, end, start)

    assert res.status_code == 400
    assert "end_date" in res.data["field_errors"]


def test_zero_guests_is_rejected(auth_client, property_factory):
    prop = property_factory()
    start, end = _window()
    res = _post(auth_client, prop, start, end, guests=0)
    assert res.status_code == 400
    assert "guests" in res.data["field_errors"]


def test_unavailable_property_cannot_be_booked(auth_client, property_factory):
    prop = property_factory(is_available=False)
    start, end = _window()
    res = _post(auth_client, prop, start, end)
    assert res.status_code == 400
    assert res.data["error"] == "conflict"


def test_booking_missing_property_is_404(auth_client):
    start, end = _window()
    res = auth_client.post(
        "/api/properties/999999/bookings/",
        {"start_date": start.isoformat(), "end_date": end.isoformat()},
        format="json",
    )
    assert res.status_code == 404


def test_create_emails_guest_and_owner(
    auth_client, user, owner, property_factory, django_capture_on_commit_callbacks
):
    prop = property_factory(created_by=owner, title="Harbour loft")
    start, end = _window()

    with django_capture_on_commit_callbacks(execute=True):
        res = _post(auth_client, prop, start, end)

    assert res.status_code == 201, res.data
    recipients = sorted(m.to[0] for m in mail.outbox)
    assert recipients == sorted([user.email, owner.email])
    assert any("Harbour loft" in m.subject for m in mail.outbox)
    assert set(
        OutboundNotification.objects.values_list("template_key", "status")
    ) == {("booking.created", "sent"), ("booking.new", "sent")}


def test_owner_booking_own_property_gets_one_email(
    owner, client_for, property_factory, django_capture_on_commit_callbacks
):
    prop = property_factory(created_by=owner)
    start, end = _window()

    with django_capture_on_commit_callbacks(execute=True):
        res = _post(client_for(owner), prop, start, end)

    assert res.status_code == 201
    assert len(mail.outbox) == 1


def test_booking_throttle(monkeypatch, auth_client, property_factory):
    from listings_app.api.throttling import BookingCreateThrottle

    monkeypatch.setattr(BookingCreateThrottle, "THROTTLE_RATES", {"booking-create": "1/min"})
    prop = property_factory()

    first = _post(auth_client, prop, *_window(days_ahead=10))
    second = _post(auth_client, prop, *_window(days_ahead=20))

    assert first.status_code == 201
    assert second.status_code == 429
    assert second.data["error"] == "rate_limited"
    assert "retry_after" in second.data["details"]
