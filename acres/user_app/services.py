"""
Password reset for locally held credentials.

The raw token only ever leaves the server inside the reset email; the
profile stores its SHA-256 digest plus an expiry.
"""
import hashlib
import logging
import secrets
from datetime import timedelta

from django.conf import settings
from django.contrib.auth import get_user_model
from django.contrib.auth.password_validation import validate_password
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from listings_app.models import UserProfile

logger = logging.getLogger(__name__)


def hash_token(raw: str) -> str:
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


class PasswordResetService:
    def __init__(self, notifier=None, clock=None, ttl_minutes=None):
        if notifier is None:
            from notifications.services import Notifier
            notifier = Notifier()
        self.notifier = notifier
        self.clock = clock or timezone.now
        self.ttl_minutes = ttl_minutes or getattr(settings, "PASSWORD_RESET_TTL_MINUTES", 10)

    def request(self, email):
        """
        Issue a reset token for the account behind ``email``. Returns the raw
        token, or None when no active account matches.
        """
        User = get_user_model()
        user = User.objects.filter(email__iexact=email, is_active=True).order_by("pk").first()
        if user is None:
            logger.info("Password reset requested for unknown email")
            return None

        raw = secrets.token_hex(20)
        with transaction.atomic():
            profile, _ = UserProfile.objects.get_or_create(user=user)
            profile.password_reset_token = hash_token(raw)
            profile.password_reset_expires = self.clock() + timedelta(minutes=self.ttl_minutes)
            profile.save(update_fields=["password_reset_token", "password_reset_expires"])

            base = getattr(settings, "FRONTEND_BASE_URL", "").rstrip("/")
            self.notifier.notify(
                user,
                "password.reset",
                {"reset_url": f"{base}/reset-password/{raw}", "ttl_minutes": self.ttl_minutes},
            )

        logger.info("Password reset token issued for user %s", user.pk)
        return raw

    def reset(self, raw_token, new_password):
        profile = (
            UserProfile.objects.select_related("user")
            .filter(
                password_reset_token=hash_token(raw_token or ""),
                password_reset_expires__gt=self.clock(),
            )
            .first()
        )
        if profile is None:
            raise ValidationError({"token": ["Invalid or expired token."]})

        user = profile.user
        try:
            validate_password(new_password, user=user)
        except DjangoValidationError as e:
            raise ValidationError({"password": e.messages})

        with transaction.atomic():
            user.set_password(new_password)
            user.save(update_fields=["password"])
            profile.password_reset_token = ""
            profile.password_reset_expires = None
            profile.save(update_fields=["password_reset_token", "password_reset_expires"])

        logger.info("Password reset completed for user %s", user.pk)
        return user
