import logging

from celery import shared_task
from django.utils import timezone

from .models import OutboundNotification
from .services import NotificationService

logger = logging.getLogger(__name__)


@shared_task(name="notifications.tasks.deliver_notification")
def deliver_notification(notification_id: int) -> str | None:
    notification = (
        OutboundNotification.objects.select_related("user")
        .filter(pk=notification_id)
        .first()
    )
    if notification is None:
        logger.warning("Notification %s vanished before delivery", notification_id)
        return None
    return NotificationService.deliver(notification)


@shared_task(name="notifications.tasks.send_due_notifications")
def send_due_notifications() -> dict:
    """
    Deliver all queued notifications scheduled up to now.

    Returns a small summary dict for tests/monitoring.
    """
    qs = (
        OutboundNotification.objects.select_related("user")
        .filter(status=OutboundNotification.STATUS_QUEUED, scheduled_for__lte=timezone.now())
        .order_by("scheduled_for", "id")
    )

    summary = {"sent": 0, "failed": 0, "skipped": 0, "found": 0}
    for notification in qs:
        summary["found"] += 1
        status = NotificationService.deliver(notification)
        if status in summary:
            summary[status] += 1

    if summary["found"]:
        logger.info("send_due_notifications: %s", summary)
    return summary
