from django.contrib import admin, messages

from listings_app.models import Booking, Property, PropertyImage, Review, UserProfile
from listings_app.services.reviews import ReviewAggregator


# ---------- Inlines ----------

class PropertyImageInline(admin.TabularInline):
    model = PropertyImage
    extra = 0
    fields = ("url", "public_id", "is_featured", "position", "uploaded_at")
    readonly_fields = ("uploaded_at",)


# ---------- Actions ----------

@admin.action(description="Recompute ratings for selected properties")
def recompute_ratings(modeladmin, request, queryset):
    aggregator = ReviewAggregator()
    for prop_id in queryset.values_list("id", flat=True):
        aggregator.recompute(prop_id)
    messages.success(request, f"Ratings recomputed for {queryset.count()} propert(ies).")


@admin.action(description="Mark selected properties unavailable")
def mark_unavailable(modeladmin, request, queryset):
    updated = queryset.update(is_available=False)
    messages.success(request, f"{updated} propert(ies) marked unavailable.")


# ---------- ModelAdmins ----------

@admin.register(Property)
class PropertyAdmin(admin.ModelAdmin):
    list_display = (
        "title",
        "created_by",
        "city",
        "price",
        "is_available",
        "ratings_average",
        "ratings_quantity",
    )
    list_filter = ("is_available", "furnished", "province", "city")
    search_fields = ("title", "description", "city", "created_by__username")
    readonly_fields = ("created_at", "updated_at", "ratings_average", "ratings_quantity")
    inlines = [PropertyImageInline]
    actions = [recompute_ratings, mark_unavailable]

    fieldsets = (
        ("Core listing", {
            "fields": ("title", "description", "price", "created_by"),
        }),
        ("Location", {
            "fields": ("street", "city", "province", "postal_code", "country"),
        }),
        ("Property details", {
            "fields": ("bedrooms", "bathrooms", "parking", "furnished"),
        }),
        ("Availability", {
            "fields": ("is_available", "available_from", "available_to"),
        }),
        ("Ratings", {
            "fields": ("ratings_average", "ratings_quantity"),
        }),
        ("Timestamps", {
            "fields": ("created_at", "updated_at"),
        }),
    )


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "property",
        "user",
        "start_date",
        "end_date",
        "status",
        "payment_status",
        "total_price",
    )
    list_filter = ("status", "payment_status", "payment_method", "proof_verified")
    search_fields = ("property__title", "user__username", "user__email")
    readonly_fields = ("total_price", "created_at", "updated_at")
    date_hierarchy = "start_date"


@admin.register(Review)
class ReviewAdmin(admin.ModelAdmin):
    list_display = ("id", "property", "user", "rating", "is_recommended", "created_at")
    list_filter = ("rating", "is_recommended")
    search_fields = ("property__title", "user__username", "comment")
    readonly_fields = ("created_at", "updated_at", "replied_at", "reply_updated_at")


@admin.register(UserProfile)
class UserProfileAdmin(admin.ModelAdmin):
    list_display = ("user", "role", "phone", "identity_uid", "created_at")
    list_filter = ("role",)
    search_fields = ("user__username", "user__email", "identity_uid")
    readonly_fields = ("created_at", "password_reset_token", "password_reset_expires")
