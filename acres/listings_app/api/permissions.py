from rest_framework import permissions

from listings_app.models import UserProfile
from listings_app.services.identity import identity_for


class IsAdminRole(permissions.BasePermission):
    """Admin role (or Django staff) only."""
    message = "Only administrators can perform this action."

    def has_permission(self, request, view):
        user = request.user
        return bool(user and user.is_authenticated and identity_for(user).is_admin)


class IsOwnerRoleOrReadOnly(permissions.BasePermission):
    """Read for all; creating listings requires the owner or admin role."""
    message = "Only owners and administrators can list properties."

    def has_permission(self, request, view):
        if request.method in permissions.SAFE_METHODS:
            return True
        user = request.user
        if not (user and user.is_authenticated):
            return False
        return identity_for(user).role in (UserProfile.ROLE_OWNER, UserProfile.ROLE_ADMIN)

