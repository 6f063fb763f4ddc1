"""
Identity contract shared by every component.

Whatever the transport (provider bearer token, session, force_authenticate in
tests), a request resolves to an ``Identity(user_id, role)`` and the services
only ever look at that.
"""
import logging
from dataclasses import dataclass

from django.contrib.auth import get_user_model
from django.db import transaction

from listings_app.models import UserProfile

logger = logging.getLogger(__name__)

ROLES = {choice for choice, _ in UserProfile.ROLE_CHOICES}


@dataclass(frozen=True)
class Identity:
    user_id: int
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == UserProfile.ROLE_ADMIN

    @property
    def is_owner(self) -> bool:
        return self.role == UserProfile.ROLE_OWNER

    def owns(self, user_id) -> bool:
        return user_id is not None and user_id == self.user_id


def role_for(user) -> str:
    # Django staff/superusers always act as admins
    if user.is_staff or user.is_superuser:
        return UserProfile.ROLE_ADMIN
    profile, _ = UserProfile.objects.get_or_create(user=user)
    return profile.role


def identity_for(user) -> Identity:
    return Identity(user_id=user.pk, role=role_for(user))


def resolve_provider_user(uid: str, *, email=None, name=None, role=None):
    """
    Map an identity-provider subject onto a local user, creating it on first
    sight. A role claim, when present and known, is authoritative.
    """
    User = get_user_model()
    role = role if role in ROLES else None

    with transaction.atomic():
        profile = (
            UserProfile.objects.select_for_update()
            .select_related("user")
            .filter(identity_uid=uid)
            .first()
        )
        if profile is None:
            user = User.objects.create_user(
                username=f"idp_{uid}"[:150],
                email=email or "",
                first_name=(name or "")[:150],
            )
            user.set_unusable_password()
            user.save(update_fields=["password"])
            profile = UserProfile.objects.create(
                user=user,
                identity_uid=uid,
                role=role or UserProfile.ROLE_USER,
            )
            logger.info("Provisioned local user %s for identity %s", user.pk, uid)
            return user

        if role and profile.role != role:
            logger.info("Role for user %s changed %s -> %s by provider claim", profile.user_id, profile.role, role)
            profile.role = role
            profile.save(update_fields=["role"])
        return profile.user
