# user_app/tests.py
from datetime import timedelta

import pytest
from django.core import mail
from django.utils import timezone

from listings_app.models import UserProfile
from user_app.services import PasswordResetService, hash_token


pytestmark = pytest.mark.django_db


class RecordingNotifier:
    def __init__(self):
        self.sent = []

    def notify(self, user, key, context=None):
        self.sent.append((user, key, context))


# ---------- me ----------

def test_me_returns_identity(auth_client, user):
    res = auth_client.get("/api/auth/me/")

    assert res.status_code == 200
    assert res.data["success"] is True
    assert res.data["data"]["id"] == user.id
    assert res.data["data"]["role"] == "user"
    assert res.data["data"]["name"] == "Alice"


def test_update_name_and_phone(auth_client, user):
    res = auth_client.put("/api/auth/me/", {"name": "Alice Smith", "phone": "+27 (82) 555-0101"}, format="json")

    assert res.status_code == 200, res.data
    user.refresh_from_db()
    assert (user.first_name, user.last_name) == ("Alice", "Smith")
    assert user.profile.phone == "+27825550101"
    assert res.data["data"]["phone"] == "+27825550101"


def test_phone_update_echoes_new_value_for_token_user(api_client, provider_token):
    api_client.credentials(HTTP_AUTHORIZATION=f"Bearer {provider_token('phone-sub')}")
    api_client.get("/api/auth/me/")

    res = api_client.put("/api/auth/me/", {"phone": "082 555 0199"}, format="json")

    assert res.status_code == 200, res.data
    assert res.data["data"]["phone"] == "0825550199"
    assert UserProfile.objects.get(identity_uid="phone-sub").phone == "0825550199"


def test_invalid_phone_is_rejected(auth_client):
    res = auth_client.put("/api/auth/me/", {"phone": "12"}, format="json")
    assert res.status_code == 400
    assert "phone" in res.data["field_errors"]


def test_role_cannot_be_self_assigned(auth_client, user):
    auth_client.put("/api/auth/me/", {"role": "admin"}, format="json")
    user.profile.refresh_from_db()
    assert user.profile.role == "user"


def test_delete_me_deactivates(auth_client, user):
    res = auth_client.delete("/api/auth/me/")

    assert res.status_code == 200
    user.refresh_from_db()
    assert user.is_active is False


# ---------- roles ----------

def test_admin_can_change_role(admin_user, client_for, user):
    res = client_for(admin_user).put(f"/api/auth/users/{user.id}/role/", {"role": "owner"}, format="json")

    assert res.status_code == 200, res.data
    assert res.data["data"] == {"id": user.id, "role": "owner"}
    user.profile.refresh_from_db()
    assert user.profile.role == UserProfile.ROLE_OWNER


def test_non_admin_cannot_change_role(auth_client, user):
    res = auth_client.put(f"/api/auth/users/{user.id}/role/", {"role": "admin"}, format="json")
    assert res.status_code == 403


def test_unknown_role_is_rejected(admin_user, client_for, user):
    res = client_for(admin_user).put(f"/api/auth/users/{user.id}/role/", {"role": "manager"}, format="json")
    assert res.status_code == 400


def test_role_change_for_missing_user_is_404(admin_user, client_for):
    res = client_for(admin_user).put("/api/auth/users/999999/role/", {"role": "owner"}, format="json")
    assert res.status_code == 404


# ---------- password reset ----------

def test_forgot_password_emails_reset_link(api_client, user, settings, django_capture_on_commit_callbacks):
    settings.FRONTEND_BASE_URL = "https://acres.example"

    with django_capture_on_commit_callbacks(execute=True):
        res = api_client.post("/api/auth/forgot-password/", {"email": user.email}, format="json")

    assert res.status_code == 200
    assert len(mail.outbox) == 1
    assert "https://acres.example/reset-password/" in mail.outbox[0].body
    profile = UserProfile.objects.get(user=user)
    assert len(profile.password_reset_token) == 64
    assert profile.password_reset_expires > timezone.now()


def test_forgot_password_unknown_email_looks_the_same(api_client):
    res = api_client.post("/api/auth/forgot-password/", {"email": "ghost@example.com"}, format="json")

    assert res.status_code == 200
    assert mail.outbox == []


def test_token_is_stored_hashed(user):
    raw = PasswordResetService(notifier=RecordingNotifier()).request(user.email)

    profile = UserProfile.objects.get(user=user)
    assert profile.password_reset_token == hash_token(raw)
    assert profile.password_reset_token != raw


def test_reset_password_with_token(api_client, user):
    notifier = RecordingNotifier()
    raw = PasswordResetService(notifier=notifier).request(user.email)
    assert notifier.sent[0][1] == "password.reset"

    res = api_client.post(
        "/api/auth/reset-password/", {"token": raw, "password": "Brand-new-pass-2030"}, format="json"
    )

    assert res.status_code == 200, res.data
    user.refresh_from_db()
    assert user.check_password("Brand-new-pass-2030")
    assert UserProfile.objects.get(user=user).password_reset_token == ""


def test_reset_token_is_single_use(api_client, user):
    raw = PasswordResetService(notifier=RecordingNotifier()).request(user.email)
    api_client.post("/api/auth/reset-password/", {"token": raw, "password": "Brand-new-pass-2030"}, format="json")

    res = api_client.post("/api/auth/reset-password/", {"token": raw, "password": "Another-pass-2031"}, format="json")
    assert res.status_code == 400
    assert "token" in res.data["field_errors"]


def test_expired_token_is_rejected(api_client, user):
    clock = lambda: timezone.now() - timedelta(hours=1)  # noqa: E731
    raw = PasswordResetService(notifier=RecordingNotifier(), clock=clock).request(user.email)

    res = api_client.post("/api/auth/reset-password/", {"token": raw, "password": "Brand-new-pass-2030"}, format="json")
    assert res.status_code == 400


def test_weak_password_is_rejected(api_client, user):
    raw = PasswordResetService(notifier=RecordingNotifier()).request(user.email)
    res = api_client.post("/api/auth/reset-password/", {"token": raw, "password": "123"}, format="json")

    assert res.status_code == 400
    assert "password" in res.data["field_errors"]
