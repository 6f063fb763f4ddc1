from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import connection
from django.db.models import Prefetch
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import filters, generics, status
from rest_framework.exceptions import ValidationError
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser
from rest_framework.permissions import AllowAny, IsAuthenticated, IsAuthenticatedOrReadOnly
from rest_framework.response import Response
from rest_framework.views import APIView

from listings_app.api.permissions import IsAdminRole, IsOwnerRoleOrReadOnly
from listings_app.api.serializers import (
    BookingCancelSerializer,
    BookingSerializer,
    BookingWriteSerializer,
    PropertySerializer,
    ReplySerializer,
    ReviewSerializer,
    ReviewWriteSerializer,
)
from listings_app.api.throttling import BookingCreateThrottle, ReviewCreateThrottle, UploadThrottle
from listings_app.models import Property, PropertyImage, Review
from listings_app.services.availability import AvailabilityChecker
from listings_app.services.bookings import BookingLedger
from listings_app.services.identity import identity_for
from listings_app.services.payments import PaymentProofTracker
from listings_app.services.properties import PropertyRegistry
from listings_app.services.reviews import ReviewAggregator
from listings_app.validators import parse_query_datetime


def ok(data=None, status_code=status.HTTP_200_OK):
    return Response({"success": True, "data": {} if data is None else data}, status=status_code)


def _properties_with_images():
    return Property.objects.select_related("created_by").prefetch_related(
        Prefetch("images", queryset=PropertyImage.objects.order_by("position", "id"))
    )


def _property_payload(prop):
    return PropertySerializer(_properties_with_images().get(pk=prop.pk)).data


# --------------------
# Properties
# --------------------
class PropertyListCreateView(generics.ListCreateAPIView):
    """
    GET  /api/properties/   search (keyword, city, min_price, max_price,
                            available_from, available_to, is_available, created_by)
    POST /api/properties/   owner / admin only
    """
    serializer_class = PropertySerializer
    permission_classes = [IsOwnerRoleOrReadOnly]

    def get_queryset(self):
        return PropertyRegistry().search(self.request.query_params, queryset=_properties_with_images())

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        prop = PropertyRegistry().create(serializer.validated_data, identity_for(request.user))
        return ok(_property_payload(prop), status.HTTP_201_CREATED)


class PropertyDetailView(APIView):
    """GET / PUT / PATCH / DELETE /api/properties/<pk>/"""
    permission_classes = [IsAuthenticatedOrReadOnly]

    def get(self, request, pk):
        prop = PropertyRegistry().get(pk)
        return ok(_property_payload(prop))

    def _update(self, request, pk, partial):
        registry = PropertyRegistry()
        prop = registry.get_for_update(pk, identity_for(request.user))
        serializer = PropertySerializer(prop, data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        prop = registry.update(pk, serializer.validated_data, identity_for(request.user))
        return ok(_property_payload(prop))

    def put(self, request, pk):
        # PUT behaves as a merge, like PATCH
        return self._update(request, pk, partial=True)

    def patch(self, request, pk):
        return self._update(request, pk, partial=True)

    def delete(self, request, pk):
        PropertyRegistry().delete(pk, identity_for(request.user))
        return ok()


class PropertyPhotoUploadView(APIView):
    """PUT /api/properties/<pk>/photo/  (multipart, field 'file')"""
    permission_classes = [IsAuthenticated]
    parser_classes = [MultiPartParser, FormParser]
    throttle_classes = [UploadThrottle]

    def put(self, request, pk):
        upload = request.FILES.get("file") or request.FILES.get("image")
        image = PropertyRegistry().add_image(pk, identity_for(request.user), upload)
        return ok(_property_payload(image.property))

    post = put


class PropertyPhotoDeleteView(APIView):
    """DELETE /api/properties/<pk>/photo/<photo_id>/"""
    permission_classes = [IsAuthenticated]

    def delete(self, request, pk, photo_id):
        prop = PropertyRegistry().remove_image(pk, photo_id, identity_for(request.user))
        return ok(_property_payload(prop))


class PropertyPhotoFeaturedView(APIView):
    """PUT /api/properties/<pk>/photo/<photo_id>/featured/"""
    permission_classes = [IsAuthenticated]

    def put(self, request, pk, photo_id):
        prop = PropertyRegistry().set_featured(pk, photo_id, identity_for(request.user))
        return ok(_property_payload(prop))


class PropertyAvailabilityView(APIView):
    """
    GET /api/properties/<pk>/availability/?start_date=&end_date=
    Returns: {"available": bool, "conflicts": [{"id", "start_date", "end_date"}, ...]}
    """
    permission_classes = [AllowAny]

    def get(self, request, pk):
        prop = PropertyRegistry().get(pk)
        params = request.query_params
        try:
            start = parse_query_datetime(params.get("start_date") or params.get("startDate"), label="start_date")
            end = parse_query_datetime(params.get("end_date") or params.get("endDate"), label="end_date")
        except DjangoValidationError as e:
            raise ValidationError(e.message_dict)
        if start >= end:
            raise ValidationError({"end_date": "End date must be after start date."})

        checker = AvailabilityChecker()
        conflicts = checker.conflicts(prop, start, end).values("id", "start_date", "end_date")
        return ok({
            "available": checker.is_available(prop, start, end),
            "within_window": prop.is_available and checker.within_window(prop, start, end),
            "conflicts": list(conflicts),
        })


# --------------------
# Bookings
# --------------------
class PropertyBookingListCreateView(generics.ListCreateAPIView):
    """
    GET  /api/properties/<pk>/bookings/   property creator / admin
    POST /api/properties/<pk>/bookings/   any authenticated user
    """
    serializer_class = BookingSerializer
    permission_classes = [IsAuthenticated]

    def get_throttles(self):
        if self.request.method == "POST":
            return [BookingCreateThrottle()]
        return super().get_throttles()

    def get_queryset(self):
        return BookingLedger().for_property(self.kwargs["pk"], identity_for(self.request.user))

    def create(self, request, *args, **kwargs):
        serializer = BookingWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        booking = BookingLedger().create(self.kwargs["pk"], request.user, **serializer.validated_data)
        return ok(BookingSerializer(booking).data, status.HTTP_201_CREATED)


class BookingListView(generics.ListAPIView):
    """GET /api/bookings/  my bookings, bookings on my properties, or all (admin)."""
    serializer_class = BookingSerializer
    permission_classes = [IsAuthenticated]
    filter_backends = [DjangoFilterBackend, filters.OrderingFilter]
    filterset_fields = ["status", "payment_status", "property"]
    ordering_fields = ["start_date", "end_date", "created_at", "total_price", "id"]
    ordering = ["-created_at"]

    def get_queryset(self):
        return BookingLedger().visible_to(identity_for(self.request.user))


class BookingDetailView(APIView):
    """GET / PUT / PATCH / DELETE /api/bookings/<pk>/"""
    permission_classes = [IsAuthenticated]

    def get(self, request, pk):
        booking = BookingLedger().get_for(pk, identity_for(request.user))
        return ok(BookingSerializer(booking).data)

    def _update(self, request, pk):
        serializer = BookingWriteSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        booking = BookingLedger().update(pk, dict(serializer.validated_data), identity_for(request.user))
        return ok(BookingSerializer(booking).data)

    def put(self, request, pk):
        return self._update(request, pk)

    def patch(self, request, pk):
        return self._update(request, pk)

    def delete(self, request, pk):
        BookingLedger().delete(pk, identity_for(request.user))
        return ok()


class BookingCancelView(APIView):
    """PUT /api/bookings/<pk>/cancel/  body: {"reason": "..."}"""
    permission_classes = [IsAuthenticated]

    def put(self, request, pk):
        serializer = BookingCancelSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        booking = BookingLedger().cancel(pk, identity_for(request.user), serializer.validated_data.get("reason"))
        return ok(BookingSerializer(booking).data)

    post = put


class BookingCheckInView(APIView):
    """PUT /api/bookings/<pk>/checkin/  (admin)"""
    permission_classes = [IsAuthenticated, IsAdminRole]

    def put(self, request, pk):
        booking = BookingLedger().check_in(pk)
        return ok(BookingSerializer(booking).data)


class BookingCheckOutView(APIView):
    """PUT /api/bookings/<pk>/checkout/  (admin)"""
    permission_classes = [IsAuthenticated, IsAdminRole]

    def put(self, request, pk):
        booking = BookingLedger().check_out(pk)
        return ok(BookingSerializer(booking).data)


class BookingPaymentProofView(APIView):
    """PUT /api/bookings/<pk>/payment-proof/  (multipart, field 'file')"""
    permission_classes = [IsAuthenticated]
    parser_classes = [MultiPartParser, FormParser]
    throttle_classes = [UploadThrottle]

    def put(self, request, pk):
        booking = PaymentProofTracker().attach_proof(pk, identity_for(request.user), request.FILES.get("file"))
        return ok(BookingSerializer(booking).data)


class BookingVerifyPaymentView(APIView):
    """PUT /api/bookings/<pk>/verify-payment/  (admin)"""
    permission_classes = [IsAuthenticated, IsAdminRole]

    def put(self, request, pk):
        booking = PaymentProofTracker().verify(pk, identity_for(request.user))
        return ok(BookingSerializer(booking).data)


# --------------------
# Reviews
# --------------------
def _reviews():
    return Review.objects.select_related("property", "user", "reply_user")


class ReviewListView(generics.ListAPIView):
    """GET /api/reviews/?property=&user=&rating="""
    serializer_class = ReviewSerializer
    permission_classes = [AllowAny]
    filter_backends = [DjangoFilterBackend, filters.OrderingFilter]
    filterset_fields = ["property", "user", "rating", "is_recommended"]
    ordering_fields = ["created_at", "rating"]
    ordering = ["-created_at"]

    def get_queryset(self):
        return _reviews()


class PropertyReviewListCreateView(generics.ListCreateAPIView):
    """
    GET  /api/properties/<pk>/reviews/
    POST /api/properties/<pk>/reviews/  reviewer needs a completed stay
    """
    serializer_class = ReviewSerializer
    permission_classes = [IsAuthenticatedOrReadOnly]

    def get_throttles(self):
        if self.request.method == "POST":
            return [ReviewCreateThrottle()]
        return super().get_throttles()

    def get_queryset(self):
        prop = PropertyRegistry().get(self.kwargs["pk"])
        return _reviews().filter(property=prop)

    def create(self, request, *args, **kwargs):
        serializer = ReviewWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        review = ReviewAggregator().add(
            self.kwargs["pk"],
            identity_for(request.user),
            rating=data["rating"],
            comment=data["comment"],
            booking_id=data.get("booking"),
            is_recommended=data["is_recommended"],
        )
        return ok(ReviewSerializer(review).data, status.HTTP_201_CREATED)


class MyReviewsView(generics.ListAPIView):
    """GET /api/reviews/me/"""
    serializer_class = ReviewSerializer
    permission_classes = [IsAuthenticated]

    def get_queryset(self):
        return _reviews().filter(user=self.request.user)


class MyPropertyReviewsView(generics.ListAPIView):
    """GET /api/reviews/my-properties/"""
    serializer_class = ReviewSerializer
    permission_classes = [IsAuthenticated]

    def get_queryset(self):
        return _reviews().filter(property__created_by=self.request.user)


class ReviewDetailView(APIView):
    """GET / PUT / PATCH / DELETE /api/reviews/<pk>/"""
    permission_classes = [IsAuthenticatedOrReadOnly]

    def get(self, request, pk):
        return ok(ReviewSerializer(ReviewAggregator().get(pk)).data)

    def _update(self, request, pk):
        serializer = ReviewWriteSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        patch = {k: v for k, v in serializer.validated_data.items() if k != "booking"}
        review = ReviewAggregator().update(pk, patch, identity_for(request.user))
        return ok(ReviewSerializer(review).data)

    def put(self, request, pk):
        return self._update(request, pk)

    def patch(self, request, pk):
        return self._update(request, pk)

    def delete(self, request, pk):
        ReviewAggregator().delete(pk, identity_for(request.user))
        return ok()


class ReviewReplyView(APIView):
    """
    PUT    /api/reviews/<pk>/reply/  create the single reply (property creator / admin)
    PATCH  /api/reviews/<pk>/reply/  edit it (replier / admin)
    DELETE /api/reviews/<pk>/reply/  remove it (replier / admin)
    """
    permission_classes = [IsAuthenticated]
    parser_classes = [JSONParser, FormParser]

    def put(self, request, pk):
        serializer = ReplySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        review = ReviewAggregator().reply(pk, identity_for(request.user), serializer.validated_data["text"])
        return ok(ReviewSerializer(review).data)

    def patch(self, request, pk):
        serializer = ReplySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        review = ReviewAggregator().update_reply(pk, identity_for(request.user), serializer.validated_data["text"])
        return ok(ReviewSerializer(review).data)

    def delete(self, request, pk):
        review = ReviewAggregator().delete_reply(pk, identity_for(request.user))
        return ok(ReviewSerializer(review).data)


class HealthCheckView(APIView):
    permission_classes = [AllowAny]
    authentication_classes = []

    def get(self, request):
        # Minimal DB ping (read-only, fast)
        with connection.cursor() as cur:
            cur.execute("SELECT 1")
        return Response({"status": "ok", "db": True}, status=status.HTTP_200_OK)
