from django.contrib import admin

from notifications.models import DeliveryAttempt, NotificationPreference, NotificationTemplate, OutboundNotification


@admin.register(NotificationTemplate)
class NotificationTemplateAdmin(admin.ModelAdmin):
    list_display = ("key", "subject", "is_active", "updated_at")
    list_filter = ("is_active",)
    search_fields = ("key", "subject")


@admin.register(NotificationPreference)
class NotificationPreferenceAdmin(admin.ModelAdmin):
    list_display = ("user", "booking_emails")
    list_filter = ("booking_emails",)
    search_fields = ("user__username", "user__email")


class DeliveryAttemptInline(admin.TabularInline):
    model = DeliveryAttempt
    extra = 0
    readonly_fields = ("recipient", "success", "response", "created_at")


@admin.register(OutboundNotification)
class OutboundNotificationAdmin(admin.ModelAdmin):
    list_display = ("user", "template_key", "status", "created_at", "sent_at")
    list_filter = ("template_key", "status")
    search_fields = ("user__username", "user__email")
    inlines = [DeliveryAttemptInline]
