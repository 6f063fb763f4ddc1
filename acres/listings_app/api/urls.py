from django.urls import path

from listings_app.api.views import (
    # Properties & photos
    PropertyListCreateView, PropertyDetailView,
    PropertyPhotoUploadView, PropertyPhotoDeleteView, PropertyPhotoFeaturedView,
    PropertyAvailabilityView,

    # Bookings
    PropertyBookingListCreateView, BookingListView, BookingDetailView,
    BookingCancelView, BookingCheckInView, BookingCheckOutView,
    BookingPaymentProofView, BookingVerifyPaymentView,

    # Reviews
    ReviewListView, PropertyReviewListCreateView, MyReviewsView, MyPropertyReviewsView,
    ReviewDetailView, ReviewReplyView,

    # Ops
    HealthCheckView,
)

app_name = "api"

urlpatterns = [
    # Properties
    path("properties/", PropertyListCreateView.as_view(), name="property-list"),
    path("properties/<int:pk>/", PropertyDetailView.as_view(), name="property-detail"),
    path("properties/<int:pk>/photo/", PropertyPhotoUploadView.as_view(), name="property-photo-upload"),
    path("properties/<int:pk>/photo/<int:photo_id>/", PropertyPhotoDeleteView.as_view(), name="property-photo-delete"),
    path(
        "properties/<int:pk>/photo/<int:photo_id>/featured/",
        PropertyPhotoFeaturedView.as_view(),
        name="property-photo-featured",
    ),
    path("properties/<int:pk>/availability/", PropertyAvailabilityView.as_view(), name="property-availability"),
    path("properties/<int:pk>/bookings/", PropertyBookingListCreateView.as_view(), name="property-bookings"),
    path("properties/<int:pk>/reviews/", PropertyReviewListCreateView.as_view(), name="property-reviews"),

    # Bookings
    path("bookings/", BookingListView.as_view(), name="booking-list"),
    path("bookings/<int:pk>/", BookingDetailView.as_view(), name="booking-detail"),
    path("bookings/<int:pk>/cancel/", BookingCancelView.as_view(), name="booking-cancel"),
    path("bookings/<int:pk>/checkin/", BookingCheckInView.as_view(), name="booking-checkin"),
    path("bookings/<int:pk>/checkout/", BookingCheckOutView.as_view(), name="booking-checkout"),
    path("bookings/<int:pk>/payment-proof/", BookingPaymentProofView.as_view(), name="booking-payment-proof"),
    path("bookings/<int:pk>/verify-payment/", BookingVerifyPaymentView.as_view(), name="booking-verify-payment"),

    # Reviews
    path("reviews/", ReviewListView.as_view(), name="review-list"),
    path("reviews/me/", MyReviewsView.as_view(), name="my-reviews"),
    path("reviews/my-properties/", MyPropertyReviewsView.as_view(), name="my-property-reviews"),
    path("reviews/<int:pk>/", ReviewDetailView.as_view(), name="review-detail"),
    path("reviews/<int:pk>/reply/", ReviewReplyView.as_view(), name="review-reply"),

    # Ops
    path("health/", HealthCheckView.as_view(), name="health"),
]
