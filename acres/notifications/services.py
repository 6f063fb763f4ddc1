import logging

from django.conf import settings
from django.core.mail import EmailMultiAlternatives
from django.db import transaction
from django.template import Context, Template
from django.utils import timezone

from .models import EVENT_CHOICES, DeliveryAttempt, NotificationTemplate, OutboundNotification

logger = logging.getLogger(__name__)

KNOWN_EVENTS = frozenset(key for key, _ in EVENT_CHOICES)


# Built-in copies of the seeded templates; used when no active DB template exists.
# Keys mirror models.EVENT_CHOICES.
DEFAULT_TEMPLATES = {
    "booking.created": {
        "subject": "Booking request placed for {{ property_title }}",
        "body": (
            "Hi {{ user.first_name|default:user.username }},\n\n"
            "Your booking request for \"{{ property_title }}\" has been received.\n"
            "Booking ID: {{ booking_id }}\n"
            "Dates: {{ start_date }} to {{ end_date }}\n"
            "Total: {{ total_price }}\n\n"
            "Upload your proof of payment to have the booking confirmed.\n"
        ),
    },
    "booking.new": {
        "subject": "New booking request for {{ property_title }}",
        "body": (
            "Hi {{ user.first_name|default:user.username }},\n\n"
            "{{ guest_name }} requested a booking for \"{{ property_title }}\".\n"
            "Booking ID: {{ booking_id }}\n"
            "Dates: {{ start_date }} to {{ end_date }}\n"
        ),
    },
    "booking.cancelled": {
        "subject": "Booking #{{ booking_id }} cancelled",
        "body": (
            "Hi {{ user.first_name|default:user.username }},\n\n"
            "Your booking for \"{{ property_title }}\" has been cancelled.\n"
            "Reason: {{ reason }}\n"
        ),
    },
    "payment.verified": {
        "subject": "Payment received for {{ property_title }}",
        "body": (
            "Hi {{ user.first_name|default:user.username }},\n\n"
            "We have verified your payment of {{ total_price }} for booking #{{ booking_id }}.\n"
            "Your booking is confirmed.\n"
        ),
    },
    "password.reset": {
        "subject": "Password reset token",
        "body": (
            "Hi {{ user.first_name|default:user.username }},\n\n"
            "You are receiving this email because you (or someone else) requested a password reset.\n"
            "Use this link within {{ ttl_minutes }} minutes:\n\n"
            "{{ reset_url }}\n"
        ),
    },
}


def send_mail(subject, message, from_email, recipient_list, *, html_message=None):
    """
    Single wrapper used across the project.
    Keeps the classic signature and adds optional html_message support.
    """
    email = EmailMultiAlternatives(
        subject=subject,
        body=message,
        from_email=from_email,
        to=recipient_list,
    )

    if html_message:
        email.attach_alternative(html_message, "text/html")

    return email.send()


class EmailTransport:
    @staticmethod
    def send(to_email: str, subject: str, body: str, *, html_message: str | None = None):
        """Uses EMAIL_BACKEND configured in settings."""
        from_email = getattr(settings, "DEFAULT_FROM_EMAIL", None) or "noreply@acres.co.za"
        sent = send_mail(
            subject=subject,
            message=body,
            from_email=from_email,
            recipient_list=[to_email],
            html_message=html_message,
        )
        return {"sent": sent}


class NotificationService:
    @staticmethod
    def template_for(key: str):
        tpl = NotificationTemplate.objects.filter(key=key, is_active=True).first()
        if tpl:
            return tpl.subject or "", tpl.body or ""
        default = DEFAULT_TEMPLATES.get(key)
        if default:
            return default["subject"], default["body"]
        return None

    @staticmethod
    def render(subject: str, body: str, context_dict: dict):
        ctx = Context(context_dict or {}, autoescape=False)
        return Template(subject).render(ctx).strip(), Template(body).render(ctx)

    @staticmethod
    def queue(user, template_key: str, context: dict, scheduled_for=None):
        if template_key not in KNOWN_EVENTS:
            raise ValueError(f"Unknown notification event: {template_key}")
        scheduled_for = scheduled_for or timezone.now()
        return OutboundNotification.objects.create(
            user=user,
            template_key=template_key,
            context=context,
            scheduled_for=scheduled_for,
        )

    @staticmethod
    def _finish(notification, status, *, error="", sent=False):
        notification.status = status
        notification.error = error
        if sent:
            notification.sent_at = timezone.now()
        notification.save(update_fields=["status", "error", "sent_at"])

    @staticmethod
    @transaction.atomic
    def deliver(notification: OutboundNotification):
        if notification.status != OutboundNotification.STATUS_QUEUED:
            return notification.status

        user = notification.user
        prefs = getattr(user, "notification_pref", None)
        if not user.email or (prefs and not prefs.allows(notification.template_key)):
            NotificationService._finish(
                notification,
                OutboundNotification.STATUS_SKIPPED,
                error="Muted by preferences or missing address",
            )
            return notification.status

        template = NotificationService.template_for(notification.template_key)
        if template is None:
            NotificationService._finish(
                notification,
                OutboundNotification.STATUS_FAILED,
                error=f"Template not found: {notification.template_key}",
            )
            logger.error("Notification %s has no template %s", notification.pk, notification.template_key)
            return notification.status

        subject, body = NotificationService.render(
            *template, {**(notification.context or {}), "user": user}
        )

        try:
            res = EmailTransport.send(user.email, subject, body)
        except Exception as exc:
            DeliveryAttempt.objects.create(
                notification=notification,
                recipient=user.email,
                success=False,
                response=str(exc),
            )
            NotificationService._finish(notification, OutboundNotification.STATUS_FAILED, error=str(exc))
            logger.warning("Delivery of notification %s failed: %s", notification.pk, exc)
            return notification.status

        DeliveryAttempt.objects.create(
            notification=notification,
            recipient=user.email,
            success=bool(res.get("sent")),
            response=str(res),
        )
        if res.get("sent"):
            NotificationService._finish(notification, OutboundNotification.STATUS_SENT, sent=True)
        else:
            NotificationService._finish(
                notification,
                OutboundNotification.STATUS_FAILED,
                error="Provider reported failure",
            )
        return notification.status


class Notifier:
    """
    Fire-and-forget outbound notifications.

    ``notify`` stores the message and hands it to the Celery worker once the
    surrounding transaction commits. If the broker is unreachable the row
    stays queued and ``send_due_notifications`` picks it up later.
    """

    def notify(self, user, template_key: str, context: dict | None = None):
        notification = NotificationService.queue(user, template_key, context or {})
        transaction.on_commit(lambda: self._dispatch(notification.pk))
        return notification

    @staticmethod
    def _dispatch(notification_id):
        from .tasks import deliver_notification

        try:
            deliver_notification.delay(notification_id)
        except Exception as exc:
            logger.warning("Could not dispatch notification %s: %s", notification_id, exc)
