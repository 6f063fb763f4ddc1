import pytest
from django.contrib.auth import get_user_model

from listings_app.models import UserProfile
from listings_app.services.identity import Identity, identity_for, resolve_provider_user


pytestmark = pytest.mark.django_db

User = get_user_model()


def _bearer(api_client, token):
    api_client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")
    return api_client


def test_first_token_provisions_local_user(api_client, provider_token):
    token = provider_token("abc123", role="owner", email="pat@example.com", name="Pat")

    res = _bearer(api_client, token).get("/api/auth/me/")

    assert res.status_code == 200, res.data
    assert res.data["data"]["email"] == "pat@example.com"
    assert res.data["data"]["role"] == "owner"
    profile = UserProfile.objects.get(identity_uid="abc123")
    assert profile.user.username == "idp_abc123"
    assert not profile.user.has_usable_password()


def test_same_subject_maps_to_same_user(api_client, provider_token):
    _bearer(api_client, provider_token("same-sub")).get("/api/auth/me/")
    _bearer(api_client, provider_token("same-sub")).get("/api/auth/me/")

    assert UserProfile.objects.filter(identity_uid="same-sub").count() == 1


def test_role_claim_is_authoritative(api_client, provider_token):
    _bearer(api_client, provider_token("promote-me", role="user")).get("/api/auth/me/")
    res = _bearer(api_client, provider_token("promote-me", role="admin")).get("/api/auth/me/")

    assert res.data["data"]["role"] == "admin"


def test_unknown_role_claim_is_ignored():
    user = resolve_provider_user("weird-role", role="manager")
    assert user.profile.role == UserProfile.ROLE_USER


def test_owner_token_can_create_property(api_client, provider_token):
    client = _bearer(api_client, provider_token("landlord-1", role="owner"))
    res = client.post(
        "/api/properties/",
        {
            "title": "Token home",
            "description": "Created with a provider token.",
            "price": "100.00",
            "street": "1 Main Road",
            "city": "Pretoria",
            "province": "Gauteng",
            "postal_code": "0002",
            "bedrooms": 1,
            "bathrooms": 1,
            "available_from": "2030-01-01",
        },
        format="json",
    )
    assert res.status_code == 201, res.data


def test_bad_signature_is_401(api_client, provider_token):
    token = provider_token("intruder", key="a-completely-different-signing-key-for-tests")
    res = _bearer(api_client, token).get("/api/auth/me/")

    assert res.status_code == 401
    assert res.data["success"] is False
    assert res.data["error"] == "unauthorised"
    assert res.has_header("WWW-Authenticate")


def test_expired_token_is_401(api_client, provider_token):
    res = _bearer(api_client, provider_token("late", ttl=-60)).get("/api/auth/me/")
    assert res.status_code == 401


def test_deactivated_user_is_rejected(api_client, provider_token):
    user = resolve_provider_user("gone")
    user.is_active = False
    user.save(update_fields=["is_active"])

    res = _bearer(api_client, provider_token("gone")).get("/api/auth/me/")
    assert res.status_code == 401


def test_missing_credentials_on_protected_route(api_client):
    res = api_client.get("/api/bookings/")
    assert res.status_code == 401


def test_staff_resolve_to_admin(user_factory):
    staff = user_factory(is_staff=True)
    assert identity_for(staff) == Identity(user_id=staff.id, role="admin")


def test_identity_creates_missing_profile(db):
    bare = User.objects.create_user(username="bare", password="x")
    assert identity_for(bare).role == "user"
    assert UserProfile.objects.filter(user=bare).exists()


def test_identity_owns():
    identity = Identity(user_id=7, role="user")
    assert identity.owns(7)
    assert not identity.owns(8)
    assert not identity.owns(None)
