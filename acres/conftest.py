# acres/conftest.py
import io
import os
import time
import uuid
from datetime import date, timedelta
from decimal import Decimal

import jwt
import pytest
from django.conf import settings as django_settings
from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.core.files.uploadedfile import SimpleUploadedFile
from django.utils import timezone
from PIL import Image
from rest_framework.test import APIClient

from listings_app.models import Booking, Property, UserProfile


@pytest.fixture(autouse=True)
def clear_cache_between_tests(settings):
    # Make sure throttle counters don't leak across tests
    cache.clear()
    yield
    cache.clear()


@pytest.fixture(autouse=True)
def unique_cache_location_for_session(settings):
    """
    Give each test its own LocMem cache 'LOCATION' so throttle history
    from a previous run is never reused.
    """
    caches = settings.CACHES.copy()
    default = caches.get("default", {}).copy()
    default["LOCATION"] = f"pytest-cache-{os.getpid()}-{uuid.uuid4()}"
    caches["default"] = default
    settings.CACHES = caches


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def user_factory(db):
    """
    Usage:
      u = user_factory()
      owner = user_factory(username="olive", role="owner")
      admin = user_factory(username="root", role="admin")
    """
    User = get_user_model()
    counter = {"n": 0}

    def make_user(*, username=None, email=None, password="pass12345", role=UserProfile.ROLE_USER, **extra):
        counter["n"] += 1
        if username is None:
            username = f"user{counter['n']}"
        if email is None:
            email = f"{username}@example.com"

        u = User.objects.create_user(username=username, email=email, password=password, **extra)
        profile, _ = UserProfile.objects.get_or_create(user=u)
        profile.role = role
        profile.save(update_fields=["role"])
        return u

    return make_user


@pytest.fixture
def user(user_factory):
    return user_factory(username="alice", first_name="Alice")


@pytest.fixture
def owner(user_factory):
    return user_factory(username="olive", first_name="Olive", role=UserProfile.ROLE_OWNER)


@pytest.fixture
def admin_user(user_factory):
    return user_factory(username="root", first_name="Admin", role=UserProfile.ROLE_ADMIN)


@pytest.fixture
def property_factory(db, user_factory):
    """
    Usage:
      prop = property_factory()
      prop2 = property_factory(created_by=owner, price="900.00", city="Durban")
    """
    def make_property(*, created_by=None, **overrides):
        if created_by is None:
            created_by = user_factory(role=UserProfile.ROLE_OWNER)
        data = {
            "title": "Sea view cottage",
            "description": "Two bedroom cottage close to the beach.",
            "price": Decimal("500.00"),
            "street": "1 Beach Road",
            "city": "Cape Town",
            "province": "Western Cape",
            "postal_code": "8001",
            "bedrooms": 2,
            "bathrooms": 1,
            "available_from": date.today() - timedelta(days=1),
        }
        data.update(overrides)
        return Property.objects.create(created_by=created_by, **data)

    return make_property


@pytest.fixture
def booking_factory(db, user_factory, property_factory):
    """
    Creates bookings directly (no availability check), starting ``days_ahead``
    days from now and lasting ``nights`` nights.
    """
    def make_booking(*, prop=None, user=None, days_ahead=10, nights=2, **overrides):
        if prop is None:
            prop = property_factory()
        if user is None:
            user = user_factory()
        start = overrides.pop("start_date", timezone.now() + timedelta(days=days_ahead))
        end = overrides.pop("end_date", start + timedelta(days=nights))
        overrides.setdefault("total_price", prop.price * nights)
        return Booking.objects.create(property=prop, user=user, start_date=start, end_date=end, **overrides)

    return make_booking


@pytest.fixture
def completed_booking(booking_factory):
    """A finished stay that entitles its guest to review."""
    def make(*, prop=None, user=None):
        start = timezone.now() - timedelta(days=5)
        return booking_factory(
            prop=prop,
            user=user,
            start_date=start,
            end_date=start + timedelta(days=2),
            status=Booking.STATUS_COMPLETED,
            checked_in_at=start,
            checked_out_at=start + timedelta(days=2),
        )

    return make


@pytest.fixture
def auth_client(api_client, user):
    """APIClient already authenticated as `user`."""
    api_client.force_authenticate(user=user)
    return api_client


@pytest.fixture
def client_for():
    """Fresh APIClient authenticated as the given user."""
    def make(u):
        c = APIClient()
        c.force_authenticate(user=u)
        return c

    return make


@pytest.fixture
def provider_token():
    """Mint a bearer token the way the identity provider would."""
    def make(sub, *, role=None, email=None, name=None, ttl=300, key=None):
        claims = {"sub": str(sub), "exp": int(time.time()) + ttl}
        if role:
            claims["role"] = role
        if email:
            claims["email"] = email
        if name:
            claims["name"] = name
        return jwt.encode(claims, key or django_settings.SIMPLE_JWT["SIGNING_KEY"], algorithm="HS256")

    return make


def _png_bytes(size=(8, 8), color=(200, 30, 30)):
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def image_file():
    def make(name="photo.png", content_type="image/png", content=None):
        return SimpleUploadedFile(name, content if content is not None else _png_bytes(), content_type=content_type)

    return make
