"""
Outbound email for booking and account events.

Every event below has a built-in copy in ``services.DEFAULT_TEMPLATES``;
an active NotificationTemplate row with the same key overrides it.
"""
from django.conf import settings
from django.db import models
from django.utils import timezone

EVENT_BOOKING_CREATED = "booking.created"
EVENT_BOOKING_NEW = "booking.new"
EVENT_BOOKING_CANCELLED = "booking.cancelled"
EVENT_PAYMENT_VERIFIED = "payment.verified"
EVENT_PASSWORD_RESET = "password.reset"

EVENT_CHOICES = [
    (EVENT_BOOKING_CREATED, "Booking placed (guest)"),
    (EVENT_BOOKING_NEW, "New booking (property creator)"),
    (EVENT_BOOKING_CANCELLED, "Booking cancelled"),
    (EVENT_PAYMENT_VERIFIED, "Payment verified"),
    (EVENT_PASSWORD_RESET, "Password reset"),
]

# always delivered, whatever the user's preferences
ACCOUNT_EVENTS = frozenset({EVENT_PASSWORD_RESET})


class NotificationTemplate(models.Model):
    key = models.CharField(max_length=50, choices=EVENT_CHOICES, unique=True)
    subject = models.CharField(max_length=200)
    body = models.TextField()
    is_active = models.BooleanField(default=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.get_key_display()


class NotificationPreference(models.Model):
    user = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="notification_pref")
    booking_emails = models.BooleanField(
        default=True,
        help_text="Booking and payment updates. Password reset emails are always sent.",
    )

    def __str__(self):
        return f"Prefs for {self.user_id}"

    def allows(self, event_key: str) -> bool:
        return event_key in ACCOUNT_EVENTS or self.booking_emails


class OutboundNotification(models.Model):
    STATUS_QUEUED = "queued"
    STATUS_SENT = "sent"
    STATUS_FAILED = "failed"
    STATUS_SKIPPED = "skipped"

    STATUS_CHOICES = [
        (STATUS_QUEUED, "Queued"),
        (STATUS_SENT, "Sent"),
        (STATUS_FAILED, "Failed"),
        (STATUS_SKIPPED, "Skipped"),
    ]

    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="outbound_notifications")
    template_key = models.CharField(max_length=50, choices=EVENT_CHOICES)
    context = models.JSONField(default=dict, blank=True)
    scheduled_for = models.DateTimeField(default=timezone.now)
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=STATUS_QUEUED)
    created_at = models.DateTimeField(auto_now_add=True)
    sent_at = models.DateTimeField(null=True, blank=True)
    error = models.TextField(blank=True, default="")

    class Meta:
        ordering = ["-created_at"]
        indexes = [models.Index(fields=["status", "scheduled_for"], name="notif_status_sched_idx")]

    def __str__(self):
        return f"{self.template_key} -> {self.user_id} ({self.status})"


class DeliveryAttempt(models.Model):
    notification = models.ForeignKey(OutboundNotification, on_delete=models.CASCADE, related_name="attempts")
    recipient = models.EmailField()
    success = models.BooleanField(default=False)
    response = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
