from django.urls import path

from user_app.api.views import ForgotPasswordView, MeView, ResetPasswordView, UserRoleView

app_name = "auth"

urlpatterns = [
    path("me/", MeView.as_view(), name="me"),
    path("users/<int:pk>/role/", UserRoleView.as_view(), name="user-role"),
    path("forgot-password/", ForgotPasswordView.as_view(), name="forgot-password"),
    path("reset-password/", ResetPasswordView.as_view(), name="reset-password"),
]
