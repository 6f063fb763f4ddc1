"""
Booking ledger: create / update / cancel / check-in / check-out / delete.

Status machine::

    pending -> confirmed -> checked_in -> completed
    pending | confirmed -> cancelled

Writes that depend on availability hold a row lock on the property for the
duration of the transaction, so two requests for the same property cannot
both pass the overlap check.
"""
import logging
import math
from datetime import timedelta
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.db.models import Q
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from listings_app.api.exceptions import Conflict, Forbidden, InvalidState, ResourceNotFound
from listings_app.models import Booking, Property
from listings_app.services.availability import AvailabilityChecker
from listings_app.services.reviews import ReviewAggregator
from listings_app.validators import validate_booking_window

logger = logging.getLogger(__name__)

ONE_DAY = timedelta(days=1)

TRANSITIONS = {
    Booking.STATUS_PENDING: {Booking.STATUS_CONFIRMED, Booking.STATUS_CANCELLED},
    Booking.STATUS_CONFIRMED: {Booking.STATUS_CHECKED_IN, Booking.STATUS_CANCELLED},
    Booking.STATUS_CHECKED_IN: {Booking.STATUS_COMPLETED},
    Booking.STATUS_CANCELLED: set(),
    Booking.STATUS_COMPLETED: set(),
}

EDITABLE_FIELDS = ("start_date", "end_date", "guests", "payment_method", "special_requests")


def nights_between(start, end) -> int:
    return math.ceil((end - start) / ONE_DAY)


def price_for(prop, start, end) -> Decimal:
    return Decimal(prop.price) * nights_between(start, end)


def ensure_transition(booking, target):
    if target not in TRANSITIONS[booking.status]:
        raise InvalidState(
            f"Cannot move a booking with status '{booking.status}' to '{target}'."
        )


def _check_window(start, end):
    try:
        validate_booking_window(start, end)
    except DjangoValidationError as e:
        raise ValidationError({"end_date": e.messages})


class BookingLedger:
    def __init__(self, checker=None, notifier=None, clock=None):
        if notifier is None:
            from notifications.services import Notifier
            notifier = Notifier()
        self.checker = checker or AvailabilityChecker()
        self.notifier = notifier
        self.clock = clock or timezone.now

    # ---- lookups ----
    def get(self, booking_id):
        booking = (
            Booking.objects.select_related("property", "user")
            .filter(pk=booking_id)
            .first()
        )
        if booking is None:
            raise ResourceNotFound(f"Booking not found with id of {booking_id}")
        return booking

    def can_manage(self, booking, identity) -> bool:
        """Requester, the property's creator, or an admin."""
        return (
            identity.is_admin
            or identity.owns(booking.user_id)
            or identity.owns(booking.property.created_by_id)
        )

    def get_for(self, booking_id, identity):
        booking = self.get(booking_id)
        if not self.can_manage(booking, identity):
            raise Forbidden(f"User {identity.user_id} is not authorized to access this booking")
        return booking

    def visible_to(self, identity):
        qs = Booking.objects.select_related("property", "user")
        if identity.is_admin:
            return qs
        return qs.filter(Q(user_id=identity.user_id) | Q(property__created_by_id=identity.user_id))

    def for_property(self, property_id, identity):
        prop = Property.objects.filter(pk=property_id).first()
        if prop is None:
            raise ResourceNotFound(f"Property not found with id of {property_id}")
        if not (identity.is_admin or identity.owns(prop.created_by_id)):
            raise Forbidden(f"User {identity.user_id} is not authorized to view bookings for this property")
        return Booking.objects.select_related("property", "user").filter(property=prop)

    # ---- writes ----
    def create(self, property_id, requester, *, start_date, end_date, guests=1,
               payment_method=Booking.METHOD_EFT, special_requests=""):
        _check_window(start_date, end_date)
        if guests is None or guests < 1:
            raise ValidationError({"guests": ["At least one guest is required."]})

        with transaction.atomic():
            prop = Property.objects.select_for_update().filter(pk=property_id).first()
            if prop is None:
                raise ResourceNotFound(f"Property not found with id of {property_id}")

            if not self.checker.is_available(prop, start_date, end_date):
                raise Conflict("Property is not available for the selected dates")

            booking = Booking.objects.create(
                property=prop,
                user=requester,
                start_date=start_date,
                end_date=end_date,
                guests=guests,
                payment_method=payment_method,
                special_requests=special_requests or "",
                total_price=price_for(prop, start_date, end_date),
            )

            context = {
                "booking_id": booking.pk,
                "property_title": prop.title,
                "start_date": start_date.isoformat(),
                "end_date": end_date.isoformat(),
                "total_price": str(booking.total_price),
                "guest_name": requester.get_full_name() or requester.username,
            }
            self.notifier.notify(requester, "booking.created", context)
            if prop.created_by_id != requester.pk:
                self.notifier.notify(prop.created_by, "booking.new", context)

        logger.info(
            "Booking %s created for property %s by user %s (%s nights)",
            booking.pk, prop.pk, requester.pk, nights_between(start_date, end_date),
        )
        return booking

    def update(self, booking_id, patch, identity):
        unknown = set(patch) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValidationError({field: ["This field cannot be changed."] for field in sorted(unknown)})

        booking = self.get_for(booking_id, identity)
        if booking.status in (Booking.STATUS_CANCELLED, Booking.STATUS_COMPLETED):
            raise InvalidState(f"Cannot update a booking with status '{booking.status}'.")

        if "guests" in patch and (patch["guests"] is None or patch["guests"] < 1):
            raise ValidationError({"guests": ["At least one guest is required."]})

        dates_changed = "start_date" in patch or "end_date" in patch

        with transaction.atomic():
            if dates_changed:
                prop = Property.objects.select_for_update().get(pk=booking.property_id)
                start = patch.get("start_date", booking.start_date)
                end = patch.get("end_date", booking.end_date)
                _check_window(start, end)
                if not self.checker.is_available(prop, start, end, exclude_booking_id=booking.pk):
                    raise Conflict("Property is not available for the selected dates")
                booking.total_price = price_for(prop, start, end)

            for field, value in patch.items():
                setattr(booking, field, value)
            booking.save()

        logger.info("Booking %s updated by user %s", booking.pk, identity.user_id)
        return booking

    def cancel(self, booking_id, identity, reason=None):
        booking = self.get_for(booking_id, identity)
        ensure_transition(booking, Booking.STATUS_CANCELLED)

        if not identity.is_admin:
            min_days = getattr(settings, "CANCELLATION_MIN_DAYS", 2)
            days_until = math.ceil((booking.start_date - self.clock()) / ONE_DAY)
            if days_until < min_days:
                raise Conflict(
                    f"Bookings can only be cancelled up to {min_days * 24} hours before check-in"
                )

        with transaction.atomic():
            booking.status = Booking.STATUS_CANCELLED
            booking.cancelled_by_id = identity.user_id
            booking.cancellation_reason = reason or "Cancelled by user"
            booking.cancelled_at = self.clock()
            booking.save(update_fields=["status", "cancelled_by", "cancellation_reason", "cancelled_at", "updated_at"])

            self.notifier.notify(
                booking.user,
                "booking.cancelled",
                {
                    "booking_id": booking.pk,
                    "property_title": booking.property.title,
                    "reason": booking.cancellation_reason,
                },
            )

        logger.info("Booking %s cancelled by user %s", booking.pk, identity.user_id)
        return booking

    def check_in(self, booking_id):
        booking = self.get(booking_id)
        ensure_transition(booking, Booking.STATUS_CHECKED_IN)
        booking.status = Booking.STATUS_CHECKED_IN
        booking.checked_in_at = self.clock()
        booking.save(update_fields=["status", "checked_in_at", "updated_at"])
        logger.info("Booking %s checked in", booking.pk)
        return booking

    def check_out(self, booking_id):
        booking = self.get(booking_id)
        ensure_transition(booking, Booking.STATUS_COMPLETED)
        booking.status = Booking.STATUS_COMPLETED
        booking.checked_out_at = self.clock()
        booking.save(update_fields=["status", "checked_out_at", "updated_at"])
        logger.info("Booking %s checked out", booking.pk)
        return booking

    def delete(self, booking_id, identity):
        booking = self.get_for(booking_id, identity)
        property_id = booking.property_id
        with transaction.atomic():
            reviewed = booking.reviews.exists()
            # reviews cascade with the booking
            booking.delete()
            if reviewed:
                ReviewAggregator(clock=self.clock).recompute(property_id)
        logger.info("Booking %s deleted by user %s", booking_id, identity.user_id)
