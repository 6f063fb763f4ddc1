from datetime import timedelta

import pytest
from django.core import mail
from django.core.management import call_command
from django.utils import timezone

from notifications.models import (
    DeliveryAttempt,
    NotificationPreference,
    NotificationTemplate,
    OutboundNotification,
)
from notifications.services import DEFAULT_TEMPLATES, NotificationService, Notifier
from notifications.tasks import deliver_notification, send_due_notifications


pytestmark = pytest.mark.django_db


def _queue(user, key="payment.verified", **context):
    ctx = {"booking_id": 1, "property_title": "Loft", "total_price": "500.00"}
    ctx.update(context)
    return NotificationService.queue(user, key, ctx)


def _stray(user):
    # written outside NotificationService.queue, e.g. by an older release
    return OutboundNotification.objects.create(user=user, template_key="booking.archived", context={})


def test_deliver_sends_email_with_default_template(user):
    notification = _queue(user)

    status = deliver_notification(notification.id)

    assert status == OutboundNotification.STATUS_SENT
    assert len(mail.outbox) == 1
    assert mail.outbox[0].subject == "Payment received for Loft"
    assert "500.00" in mail.outbox[0].body
    notification.refresh_from_db()
    assert notification.sent_at is not None
    assert DeliveryAttempt.objects.filter(notification=notification, success=True).count() == 1
    assert DeliveryAttempt.objects.get(notification=notification).recipient == user.email


def test_database_template_overrides_default(user):
    NotificationTemplate.objects.create(key="payment.verified", subject="Paid: {{ property_title }}", body="ok")
    deliver_notification(_queue(user).id)
    assert mail.outbox[0].subject == "Paid: Loft"


def test_muted_booking_emails_are_skipped(user):
    NotificationPreference.objects.create(user=user, booking_emails=False)
    notification = _queue(user)

    assert deliver_notification(notification.id) == OutboundNotification.STATUS_SKIPPED
    assert mail.outbox == []


def test_password_reset_ignores_muted_booking_emails(user):
    NotificationPreference.objects.create(user=user, booking_emails=False)
    notification = _queue(user, key="password.reset", reset_url="https://acres.test/reset-password/abc", ttl_minutes=10)

    assert deliver_notification(notification.id) == OutboundNotification.STATUS_SENT
    assert "reset-password/abc" in mail.outbox[0].body


def test_missing_email_is_skipped(user_factory):
    nobody = user_factory(email="")
    assert deliver_notification(_queue(nobody).id) == OutboundNotification.STATUS_SKIPPED


def test_queue_rejects_unknown_event(user):
    with pytest.raises(ValueError):
        _queue(user, key="booking.archived")
    assert not OutboundNotification.objects.exists()


def test_row_with_unknown_event_fails(user):
    notification = _stray(user)

    assert deliver_notification(notification.id) == OutboundNotification.STATUS_FAILED
    notification.refresh_from_db()
    assert "Template not found" in notification.error


def test_transport_error_is_recorded(monkeypatch, user):
    from notifications import services

    def boom(*args, **kwargs):
        raise ConnectionError("smtp down")

    monkeypatch.setattr(services.EmailTransport, "send", staticmethod(boom))
    notification = _queue(user)

    assert deliver_notification(notification.id) == OutboundNotification.STATUS_FAILED
    attempt = DeliveryAttempt.objects.get(notification=notification)
    assert attempt.success is False
    assert "smtp down" in attempt.response


def test_already_sent_is_not_resent(user):
    notification = _queue(user)
    deliver_notification(notification.id)
    deliver_notification(notification.id)
    assert len(mail.outbox) == 1


def test_vanished_notification_returns_none():
    assert deliver_notification(123456) is None


def test_send_due_notifications_picks_up_queued_rows(user):
    _queue(user)
    _stray(user)
    later = _queue(user)
    later.scheduled_for = timezone.now() + timedelta(hours=1)
    later.save(update_fields=["scheduled_for"])

    summary = send_due_notifications()

    assert summary == {"sent": 1, "failed": 1, "skipped": 0, "found": 2}
    later.refresh_from_db()
    assert later.status == OutboundNotification.STATUS_QUEUED


def test_notifier_dispatches_after_commit(user, django_capture_on_commit_callbacks):
    with django_capture_on_commit_callbacks(execute=True) as callbacks:
        Notifier().notify(user, "booking.cancelled", {"booking_id": 3, "property_title": "Loft", "reason": "x"})

    assert len(callbacks) == 1
    assert mail.outbox[0].subject == "Booking #3 cancelled"


def test_notifier_leaves_row_queued_when_broker_is_down(monkeypatch, user, django_capture_on_commit_callbacks):
    from notifications import tasks

    def unreachable(*args, **kwargs):
        raise OSError("broker unreachable")

    monkeypatch.setattr(tasks.deliver_notification, "delay", unreachable)

    with django_capture_on_commit_callbacks(execute=True):
        notification = Notifier().notify(user, "payment.verified", {"property_title": "Loft"})

    notification.refresh_from_db()
    assert notification.status == OutboundNotification.STATUS_QUEUED


def test_seed_command_creates_templates():
    call_command("seed_notification_templates")
    assert set(NotificationTemplate.objects.values_list("key", flat=True)) == set(DEFAULT_TEMPLATES)


def test_seed_command_keeps_edits_unless_overwrite():
    call_command("seed_notification_templates")
    NotificationTemplate.objects.filter(key="password.reset").update(subject="Custom")

    call_command("seed_notification_templates")
    assert NotificationTemplate.objects.get(key="password.reset").subject == "Custom"

    call_command("seed_notification_templates", "--overwrite")
    assert NotificationTemplate.objects.get(key="password.reset").subject == DEFAULT_TEMPLATES["password.reset"]["subject"]
