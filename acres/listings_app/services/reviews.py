import logging
from decimal import Decimal, ROUND_CEILING

from django.db import IntegrityError, transaction
from django.db.models import Count, Sum
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from listings_app.api.exceptions import Conflict, Forbidden, ResourceNotFound
from listings_app.models import Booking, Property, Review, RATING_BASELINE

logger = logging.getLogger(__name__)

ONE_DECIMAL = Decimal("0.1")

IMMUTABLE_FIELDS = ("property", "booking", "user")
EDITABLE_FIELDS = ("rating", "comment", "is_recommended")


def round_up_one_decimal(value) -> Decimal:
    """ceil(value * 10) / 10, e.g. 4.33 -> 4.4"""
    return Decimal(str(value)).quantize(ONE_DECIMAL, rounding=ROUND_CEILING)


class ReviewAggregator:
    """
    Review writes plus the ratings projection on Property.

    Every write that changes the set of ratings recomputes
    ``ratings_average`` / ``ratings_quantity`` explicitly; there are no
    model signals involved. With zero reviews the average falls back to the
    4.5 baseline.
    """

    def __init__(self, clock=None):
        self.clock = clock or timezone.now

    # ---- projection ----
    def recompute(self, property_id):
        stats = Review.objects.filter(property_id=property_id).aggregate(
            total=Sum("rating"),
            n=Count("id"),
        )
        if stats["n"]:
            average = round_up_one_decimal(Decimal(stats["total"]) / Decimal(stats["n"]))
        else:
            average = RATING_BASELINE
        Property.objects.filter(pk=property_id).update(
            ratings_average=average,
            ratings_quantity=stats["n"],
        )
        return average, stats["n"]

    # ---- lookups ----
    def get(self, review_id):
        review = (
            Review.objects.select_related("property", "user", "reply_user")
            .filter(pk=review_id)
            .first()
        )
        if review is None:
            raise ResourceNotFound(f"No review found with the id of {review_id}")
        return review

    def _eligible_booking(self, prop, identity, booking_id):
        qs = Booking.objects.filter(
            property=prop,
            user_id=identity.user_id,
            status=Booking.STATUS_COMPLETED,
            checked_out_at__isnull=False,
            checked_out_at__lte=self.clock(),
        )
        if booking_id is not None:
            return qs.filter(pk=booking_id).first()
        return qs.order_by("-checked_out_at").first()

    # ---- writes ----
    def add(self, property_id, identity, *, rating, comment, booking_id=None, is_recommended=True):
        prop = Property.objects.filter(pk=property_id).first()
        if prop is None:
            raise ResourceNotFound(f"No property with the id of {property_id}")

        booking = self._eligible_booking(prop, identity, booking_id)
        if booking is None:
            raise Forbidden(
                f"User {identity.user_id} is not authorized to add a review for this property"
            )

        if Review.objects.filter(booking=booking, user_id=identity.user_id).exists():
            raise Conflict(f"User {identity.user_id} has already reviewed this booking")

        try:
            with transaction.atomic():
                review = Review.objects.create(
                    property=prop,
                    user_id=identity.user_id,
                    booking=booking,
                    rating=rating,
                    comment=comment,
                    is_recommended=is_recommended,
                )
                self.recompute(prop.pk)
        except IntegrityError as exc:
            raise Conflict(f"User {identity.user_id} has already reviewed this booking") from exc

        logger.info("Review %s added to property %s by user %s", review.pk, prop.pk, identity.user_id)
        return review

    def update(self, review_id, patch, identity):
        review = self.get(review_id)
        if not (identity.is_admin or identity.owns(review.user_id)):
            raise Forbidden("Not authorized to update review")

        blocked = [f for f in IMMUTABLE_FIELDS if f in patch]
        if blocked:
            raise ValidationError({f: ["This field cannot be changed."] for f in blocked})

        with transaction.atomic():
            for field in EDITABLE_FIELDS:
                if field in patch:
                    setattr(review, field, patch[field])
            review.save()
            self.recompute(review.property_id)
        return review

    def delete(self, review_id, identity):
        review = self.get(review_id)
        if not (identity.is_admin or identity.owns(review.user_id)):
            raise Forbidden("Not authorized to delete review")

        property_id = review.property_id
        with transaction.atomic():
            review.delete()
            self.recompute(property_id)
        logger.info("Review %s deleted by user %s", review_id, identity.user_id)

    # ---- replies ----
    def reply(self, review_id, identity, text):
        review = self.get(review_id)
        if not (identity.is_admin or identity.owns(review.property.created_by_id)):
            raise Forbidden(f"User {identity.user_id} is not authorized to reply to this review")
        if review.reply_text:
            raise Conflict("A reply already exists for this review")

        review.reply_text = text
        review.reply_user_id = identity.user_id
        review.replied_at = self.clock()
        review.reply_updated_at = None
        review.save(update_fields=["reply_text", "reply_user", "replied_at", "reply_updated_at", "updated_at"])
        return review

    def _reply_owned(self, review_id, identity, action):
        review = self.get(review_id)
        if not (identity.is_admin or identity.owns(review.property.created_by_id) or identity.owns(review.reply_user_id)):
            raise Forbidden(f"User {identity.user_id} is not authorized to {action} this reply")
        if not review.reply_text:
            raise ValidationError("No reply exists for this review")
        if not (identity.is_admin or identity.owns(review.reply_user_id)):
            raise Forbidden(f"User {identity.user_id} is not authorized to {action} this reply")
        return review

    def update_reply(self, review_id, identity, text):
        review = self._reply_owned(review_id, identity, "update")
        review.reply_text = text
        review.reply_updated_at = self.clock()
        review.save(update_fields=["reply_text", "reply_updated_at", "updated_at"])
        return review

    def delete_reply(self, review_id, identity):
        review = self._reply_owned(review_id, identity, "delete")
        review.reply_text = ""
        review.reply_user = None
        review.replied_at = None
        review.reply_updated_at = None
        review.save(update_fields=["reply_text", "reply_user", "replied_at", "reply_updated_at", "updated_at"])
        return review
