import logging

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from listings_app.api.exceptions import Forbidden
from listings_app.models import Booking
from listings_app.services.bookings import BookingLedger
from listings_app.services.media import MediaStore
from listings_app.validators import validate_image_upload

logger = logging.getLogger(__name__)


class PaymentProofTracker:
    """Attach and verify proof-of-payment images for bookings."""

    def __init__(self, media_store=None, ledger=None, notifier=None, clock=None, max_bytes=None):
        if notifier is None:
            from notifications.services import Notifier
            notifier = Notifier()
        self.media = media_store or MediaStore()
        self.ledger = ledger or BookingLedger(notifier=notifier)
        self.notifier = notifier
        self.clock = clock or timezone.now
        self.max_bytes = max_bytes or getattr(settings, "PAYMENT_PROOF_MAX_BYTES", 1_000_000)

    def attach_proof(self, booking_id, identity, upload):
        booking = self.ledger.get(booking_id)
        if not (identity.is_admin or identity.owns(booking.user_id)):
            raise Forbidden(f"User {identity.user_id} is not authorized to update this booking")

        if upload is None:
            raise ValidationError({"file": ["Please upload a file"]})
        try:
            validate_image_upload(upload, max_bytes=self.max_bytes, label="Payment proof")
        except DjangoValidationError as e:
            raise ValidationError({"file": e.messages})

        stamp = int(self.clock().timestamp() * 1000)
        url, public_id = self.media.upload(
            upload,
            subfolder="payments",
            public_id=f"payment_{booking.pk}_{stamp}",
        )
        previous = booking.proof_public_id

        booking.proof_url = url
        booking.proof_public_id = public_id
        if identity.is_admin:
            booking.proof_verified = True
            booking.proof_verified_at = self.clock()
            booking.proof_verified_by_id = identity.user_id
            booking.payment_status = Booking.PAYMENT_PAID
        else:
            booking.proof_verified = False
            booking.proof_verified_at = None
            booking.proof_verified_by = None
            booking.payment_status = Booking.PAYMENT_PENDING
        booking.save()

        if previous and previous != public_id:
            self.media.release_quietly(previous)

        logger.info(
            "Payment proof attached to booking %s by user %s (verified=%s)",
            booking.pk, identity.user_id, booking.proof_verified,
        )
        return booking

    def verify(self, booking_id, identity):
        if not identity.is_admin:
            raise Forbidden("Only administrators can verify payments")

        booking = self.ledger.get(booking_id)
        if not booking.proof_public_id:
            raise ValidationError("No payment proof found for this booking")

        with transaction.atomic():
            booking.proof_verified = True
            booking.proof_verified_at = self.clock()
            booking.proof_verified_by_id = identity.user_id
            booking.payment_status = Booking.PAYMENT_PAID
            if booking.status == Booking.STATUS_PENDING:
                booking.status = Booking.STATUS_CONFIRMED
            booking.save()

            self.notifier.notify(
                booking.user,
                "payment.verified",
                {
                    "booking_id": booking.pk,
                    "property_title": booking.property.title,
                    "total_price": str(booking.total_price),
                },
            )

        logger.info("Payment verified for booking %s by admin %s", booking.pk, identity.user_id)
        return booking
