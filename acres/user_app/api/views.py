import logging

from django.contrib.auth import get_user_model
from rest_framework import status
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from listings_app.api.exceptions import ResourceNotFound
from listings_app.api.permissions import IsAdminRole
from listings_app.api.throttling import PasswordResetConfirmThrottle, PasswordResetThrottle
from listings_app.models import UserProfile
from user_app.api.serializers import (
    MeSerializer,
    MeUpdateSerializer,
    PasswordResetConfirmSerializer,
    PasswordResetRequestSerializer,
    RoleUpdateSerializer,
)
from user_app.services import PasswordResetService

logger = logging.getLogger(__name__)

User = get_user_model()


class MeView(APIView):
    """
    GET    /api/auth/me/   current user
    PUT    /api/auth/me/   update name / phone
    DELETE /api/auth/me/   deactivate the account
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        return Response({"success": True, "data": MeSerializer(request.user).data})

    def put(self, request):
        ser = MeUpdateSerializer(data=request.data, partial=True)
        ser.is_valid(raise_exception=True)
        user = ser.save(request.user)
        return Response({"success": True, "data": MeSerializer(user).data})

    patch = put

    def delete(self, request):
        # rows are kept; provider tokens for this subject are refused from now on
        request.user.is_active = False
        request.user.save(update_fields=["is_active"])
        logger.info("User %s deactivated their account", request.user.pk)
        return Response({"success": True, "data": {}})


class UserRoleView(APIView):
    """PUT /api/auth/users/<pk>/role/  (admin)"""
    permission_classes = [IsAuthenticated, IsAdminRole]

    def put(self, request, pk):
        ser = RoleUpdateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        user = User.objects.filter(pk=pk).first()
        if user is None:
            raise ResourceNotFound(f"User not found with id of {pk}")

        role = ser.validated_data["role"]
        profile, _ = UserProfile.objects.get_or_create(user=user)
        profile.role = role
        profile.save(update_fields=["role"])
        logger.info("Role for user %s set to %s by admin %s", user.pk, role, request.user.pk)
        return Response({"success": True, "data": {"id": user.pk, "role": role}})


class ForgotPasswordView(APIView):
    permission_classes = [AllowAny]
    throttle_classes = [PasswordResetThrottle]

    def post(self, request):
        ser = PasswordResetRequestSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        PasswordResetService().request(ser.validated_data["email"])
        # same answer whether or not the account exists
        return Response({"success": True, "data": {"message": "Password reset email sent"}})


class ResetPasswordView(APIView):
    permission_classes = [AllowAny]
    throttle_classes = [PasswordResetConfirmThrottle]

    def post(self, request):
        ser = PasswordResetConfirmSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        PasswordResetService().reset(ser.validated_data["token"], ser.validated_data["password"])
        return Response(
            {"success": True, "data": {"message": "Password updated successfully"}},
            status=status.HTTP_200_OK,
        )
