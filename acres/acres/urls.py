from django.contrib import admin
from django.urls import path, include
from django.conf import settings
from django.conf.urls.static import static

from drf_spectacular.views import (
    SpectacularAPIView,
    SpectacularSwaggerView,
    SpectacularRedocView,
)

urlpatterns = [
    path("admin/", admin.site.urls),

    # Primary API (namespaced)
    path(
        "api/",
        include(("listings_app.api.urls", "api"), namespace="api"),
    ),
    path(
        "api/auth/",
        include(("user_app.api.urls", "auth"), namespace="auth"),
    ),

    # Versioned API
    path(
        "api/v1/",
        include(("listings_app.api.urls", "api"), namespace="v1"),
    ),
    path(
        "api/v1/auth/",
        include(("user_app.api.urls", "auth"), namespace="v1-auth"),
    ),

    # OpenAPI schema + docs
    path("api/schema/", SpectacularAPIView.as_view(), name="schema"),
    path("api/docs/", SpectacularSwaggerView.as_view(url_name="schema"), name="swagger-ui"),
    path("api/redoc/", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
]


if settings.DEBUG:
    urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
