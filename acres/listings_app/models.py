from decimal import Decimal

from django.conf import settings
from django.contrib.auth.models import User
from django.core.validators import MinValueValidator, MaxValueValidator, MaxLengthValidator
from django.db import models
from django.db.models import Q, F, CheckConstraint


RATING_BASELINE = Decimal(str(getattr(settings, "RATING_BASELINE", "4.5")))


# -----------
# UserProfile
# -----------
class UserProfile(models.Model):
    ROLE_USER = "user"
    ROLE_OWNER = "owner"
    ROLE_ADMIN = "admin"

    ROLE_CHOICES = (
        (ROLE_USER, "User"),
        (ROLE_OWNER, "Owner"),
        (ROLE_ADMIN, "Admin"),
    )

    user = models.OneToOneField(
        User,
        on_delete=models.CASCADE,
        related_name="profile",
    )
    role = models.CharField(
        max_length=20,
        choices=ROLE_CHOICES,
        default=ROLE_USER,
        db_index=True,
    )
    phone = models.CharField(max_length=20, blank=True, default="")

    # Subject claim issued by the external identity provider
    identity_uid = models.CharField(max_length=128, unique=True, null=True, blank=True)

    # SHA-256 digest of the emailed reset token
    password_reset_token = models.CharField(max_length=64, blank=True, default="")
    password_reset_expires = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.user.username} profile ({self.role})"


# --------
# Property
# --------
class Property(models.Model):
    title = models.CharField(max_length=100)
    description = models.TextField(validators=[MaxLengthValidator(1000)])
    price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0"))],
        help_text="Nightly price.",
    )

    # Address
    street = models.CharField(max_length=255)
    city = models.CharField(max_length=100, db_index=True)
    province = models.CharField(max_length=100)
    postal_code = models.CharField(max_length=20)
    country = models.CharField(max_length=100, default="South Africa")

    # Features
    bedrooms = models.PositiveIntegerField()
    bathrooms = models.PositiveIntegerField()
    parking = models.BooleanField(default=False)
    furnished = models.BooleanField(default=False)
    available_from = models.DateField()
    available_to = models.DateField(null=True, blank=True)

    is_available = models.BooleanField(default=True)
    created_by = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name="properties",
    )

    # Projection of the Review table, recomputed after every review write
    ratings_average = models.DecimalField(max_digits=3, decimal_places=1, default=RATING_BASELINE)
    ratings_quantity = models.PositiveIntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        verbose_name_plural = "properties"
        constraints = [
            CheckConstraint(
                condition=Q(price__gte=0),
                name="property_price_gte_0",
            ),
            CheckConstraint(
                condition=Q(available_to__isnull=True) | Q(available_to__gte=F("available_from")),
                name="property_window_ordered",
            ),
        ]

    def __str__(self):
        return f"{self.title} ({self.city})"


# -------------
# PropertyImage
# -------------
class PropertyImage(models.Model):
    property = models.ForeignKey(
        Property,
        on_delete=models.CASCADE,
        related_name="images",
    )
    url = models.CharField(max_length=500)
    public_id = models.CharField(max_length=255)
    is_featured = models.BooleanField(default=False)
    position = models.PositiveIntegerField(default=0)
    uploaded_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["position", "id"]
        constraints = [
            models.UniqueConstraint(
                fields=["property"],
                condition=Q(is_featured=True),
                name="uq_one_featured_image_per_property",
            ),
        ]

    def __str__(self):
        return f"Image {self.public_id} for property {self.property_id}"


# -------
# Booking
# -------
class Booking(models.Model):
    STATUS_PENDING = "pending"
    STATUS_CONFIRMED = "confirmed"
    STATUS_CANCELLED = "cancelled"
    STATUS_CHECKED_IN = "checked_in"
    STATUS_COMPLETED = "completed"

    STATUS_CHOICES = (
        (STATUS_PENDING, "Pending"),
        (STATUS_CONFIRMED, "Confirmed"),
        (STATUS_CANCELLED, "Cancelled"),
        (STATUS_CHECKED_IN, "Checked in"),
        (STATUS_COMPLETED, "Completed"),
    )

    PAYMENT_PENDING = "pending"
    PAYMENT_PARTIAL = "partial"
    PAYMENT_PAID = "paid"
    PAYMENT_REFUNDED = "refunded"
    PAYMENT_FAILED = "failed"

    PAYMENT_STATUS_CHOICES = (
        (PAYMENT_PENDING, "Pending"),
        (PAYMENT_PARTIAL, "Partial"),
        (PAYMENT_PAID, "Paid"),
        (PAYMENT_REFUNDED, "Refunded"),
        (PAYMENT_FAILED, "Failed"),
    )

    METHOD_EFT = "eft"
    METHOD_CREDIT_CARD = "credit_card"
    METHOD_CASH = "cash"

    PAYMENT_METHOD_CHOICES = (
        (METHOD_EFT, "EFT"),
        (METHOD_CREDIT_CARD, "Credit card"),
        (METHOD_CASH, "Cash"),
    )

    property = models.ForeignKey(Property, on_delete=models.CASCADE, related_name="bookings")
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name="bookings")
    start_date = models.DateTimeField()
    end_date = models.DateTimeField()
    guests = models.PositiveIntegerField(default=1)
    total_price = models.DecimalField(max_digits=12, decimal_places=2)

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True)
    payment_status = models.CharField(
        max_length=20,
        choices=PAYMENT_STATUS_CHOICES,
        default=PAYMENT_PENDING,
    )
    payment_method = models.CharField(max_length=20, choices=PAYMENT_METHOD_CHOICES, default=METHOD_EFT)
    special_requests = models.TextField(blank=True, default="", validators=[MaxLengthValidator(500)])

    # Payment proof
    proof_url = models.CharField(max_length=500, blank=True, default="")
    proof_public_id = models.CharField(max_length=255, blank=True, default="")
    proof_verified = models.BooleanField(default=False)
    proof_verified_at = models.DateTimeField(null=True, blank=True)
    proof_verified_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="verified_payments",
    )

    # Cancellation
    cancellation_reason = models.TextField(blank=True, default="", validators=[MaxLengthValidator(500)])
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancelled_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="cancelled_bookings",
    )

    checked_in_at = models.DateTimeField(null=True, blank=True)
    checked_out_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["property", "start_date", "end_date"], name="booking_property_dates_idx"),
        ]
        constraints = [
            CheckConstraint(
                condition=Q(end_date__gt=F("start_date")),
                name="booking_end_after_start",
            ),
            CheckConstraint(
                condition=Q(guests__gte=1),
                name="booking_guests_gte_1",
            ),
        ]

    def __str__(self):
        return f"Booking #{self.id} for {self.property} by {self.user}"


# ------
# Review
# ------
class Review(models.Model):
    property = models.ForeignKey(Property, on_delete=models.CASCADE, related_name="reviews")
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name="reviews")
    booking = models.ForeignKey(Booking, on_delete=models.CASCADE, related_name="reviews")

    rating = models.PositiveSmallIntegerField(
        validators=[MinValueValidator(1), MaxValueValidator(5)],
    )
    comment = models.TextField(validators=[MaxLengthValidator(1000)])
    is_recommended = models.BooleanField(default=True)

    # Single reply from the property owner (or an admin)
    reply_text = models.TextField(blank=True, default="", validators=[MaxLengthValidator(1000)])
    reply_user = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="review_replies",
    )
    replied_at = models.DateTimeField(null=True, blank=True)
    reply_updated_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["booking", "user"],
                name="uq_review_once_per_booking_user",
            ),
            CheckConstraint(
                condition=Q(rating__gte=1) & Q(rating__lte=5),
                name="review_rating_1_to_5",
            ),
        ]

    def __str__(self):
        return f"{self.rating}/5 on {self.property} by {self.user}"
