from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework import serializers

from listings_app.models import Booking, Property, PropertyImage, Review
from listings_app.services.bookings import EDITABLE_FIELDS as BOOKING_EDITABLE_FIELDS, nights_between
from listings_app.services.reviews import IMMUTABLE_FIELDS as REVIEW_IMMUTABLE_FIELDS
from listings_app.validators import strip_html

User = get_user_model()


def _clean_text(value, *, max_len, required=True):
    try:
        clean = strip_html(value or "", max_len=max_len)
    except DjangoValidationError as e:
        raise serializers.ValidationError(e.messages)
    if required and not clean:
        raise serializers.ValidationError("This field may not be blank.")
    return clean


class UserSummarySerializer(serializers.ModelSerializer):
    name = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = ["id", "name", "email"]

    def get_name(self, obj):
        return obj.get_full_name() or obj.username


# ---------
# Property
# ---------
class PropertyImageSerializer(serializers.ModelSerializer):
    class Meta:
        model = PropertyImage
        fields = ["id", "url", "public_id", "is_featured", "position", "uploaded_at"]
        read_only_fields = fields


class PropertySerializer(serializers.ModelSerializer):
    created_by = UserSummarySerializer(read_only=True)
    images = PropertyImageSerializer(many=True, read_only=True)
    featured_image = serializers.SerializerMethodField()

    class Meta:
        model = Property
        fields = [
            "id",
            "title",
            "description",
            "price",
            "street",
            "city",
            "province",
            "postal_code",
            "country",
            "bedrooms",
            "bathrooms",
            "parking",
            "furnished",
            "available_from",
            "available_to",
            "is_available",
            "images",
            "featured_image",
            "ratings_average",
            "ratings_quantity",
            "created_by",
            "created_at",
            "updated_at",
        ]
        read_only_fields = [
            "images",
            "featured_image",
            "ratings_average",
            "ratings_quantity",
            "created_by",
            "created_at",
            "updated_at",
        ]
        extra_kwargs = {
            "price": {"min_value": 0},
            "bedrooms": {"min_value": 0},
            "bathrooms": {"min_value": 0},
        }

    def get_featured_image(self, obj):
        for image in obj.images.all():
            if image.is_featured:
                return image.url
        return None

    def validate_title(self, value):
        return _clean_text(value, max_len=100)

    def validate_description(self, value):
        return _clean_text(value, max_len=1000)

    def validate(self, attrs):
        # window check against stored values on partial updates
        available_from = attrs.get("available_from", getattr(self.instance, "available_from", None))
        available_to = attrs.get("available_to", getattr(self.instance, "available_to", None))
        if available_from and available_to and available_to < available_from:
            raise serializers.ValidationError(
                {"available_to": "Available-to date must be on or after available-from date."}
            )
        return attrs


# --------
# Bookings
# --------
class BookingSerializer(serializers.ModelSerializer):
    property_title = serializers.CharField(source="property.title", read_only=True)
    user = UserSummarySerializer(read_only=True)
    payment_proof = serializers.SerializerMethodField()
    nights = serializers.SerializerMethodField()

    class Meta:
        model = Booking
        fields = [
            "id",
            "property",
            "property_title",
            "user",
            "start_date",
            "end_date",
            "nights",
            "guests",
            "total_price",
            "status",
            "payment_status",
            "payment_method",
            "special_requests",
            "payment_proof",
            "cancellation_reason",
            "cancelled_at",
            "cancelled_by",
            "checked_in_at",
            "checked_out_at",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_payment_proof(self, obj):
        if not obj.proof_public_id:
            return None
        return {
            "url": obj.proof_url,
            "public_id": obj.proof_public_id,
            "verified": obj.proof_verified,
            "verified_at": obj.proof_verified_at,
            "verified_by": obj.proof_verified_by_id,
        }

    def get_nights(self, obj):
        return nights_between(obj.start_date, obj.end_date)


class BookingWriteSerializer(serializers.Serializer):
    start_date = serializers.DateTimeField()
    end_date = serializers.DateTimeField()
    guests = serializers.IntegerField(min_value=1, default=1)
    payment_method = serializers.ChoiceField(choices=Booking.PAYMENT_METHOD_CHOICES, default=Booking.METHOD_EFT)
    special_requests = serializers.CharField(required=False, allow_blank=True, max_length=500, default="")

    def validate(self, attrs):
        if self.partial:
            unknown = sorted(set(self.initial_data) - set(BOOKING_EDITABLE_FIELDS))
            if unknown:
                raise serializers.ValidationError({f: "This field cannot be changed." for f in unknown})

        start = attrs.get("start_date")
        end = attrs.get("end_date")
        if start and end and end <= start:
            raise serializers.ValidationError({"end_date": "End date must be after start date."})
        return attrs


class BookingCancelSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, max_length=500)


# -------
# Reviews
# -------
class ReviewSerializer(serializers.ModelSerializer):
    property_title = serializers.CharField(source="property.title", read_only=True)
    user = UserSummarySerializer(read_only=True)
    reply = serializers.SerializerMethodField()

    class Meta:
        model = Review
        fields = [
            "id",
            "property",
            "property_title",
            "booking",
            "user",
            "rating",
            "comment",
            "is_recommended",
            "reply",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_reply(self, obj):
        if not obj.reply_text:
            return None
        return {
            "text": obj.reply_text,
            "user": obj.reply_user_id,
            "replied_at": obj.replied_at,
            "updated_at": obj.reply_updated_at,
        }


class ReviewWriteSerializer(serializers.Serializer):
    booking = serializers.IntegerField(required=False, min_value=1)
    rating = serializers.IntegerField(min_value=1, max_value=5)
    comment = serializers.CharField(max_length=5000)
    is_recommended = serializers.BooleanField(default=True)

    def validate_comment(self, value):
        return _clean_text(value, max_len=1000)

    def validate(self, attrs):
        if self.partial:
            blocked = [f for f in REVIEW_IMMUTABLE_FIELDS if f in self.initial_data]
            if blocked:
                raise serializers.ValidationError({f: "This field cannot be changed." for f in blocked})
        return attrs


class ReplySerializer(serializers.Serializer):
    text = serializers.CharField(max_length=5000)

    def validate_text(self, value):
        return _clean_text(value, max_len=1000)
