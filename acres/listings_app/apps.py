from django.apps import AppConfig


class ListingsAppConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "listings_app"
