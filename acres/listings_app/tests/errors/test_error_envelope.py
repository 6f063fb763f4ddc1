import pytest
from rest_framework.exceptions import ValidationError
from rest_framework.test import APIRequestFactory

from listings_app.api.exceptions import (
    Conflict,
    Forbidden,
    InvalidState,
    ResourceNotFound,
    UpstreamFailure,
    custom_exception_handler,
)


pytestmark = pytest.mark.django_db


def _handle(exc, path="/api/things/"):
    request = APIRequestFactory().get(path)
    return custom_exception_handler(exc, {"request": request, "view": None})


@pytest.mark.parametrize(
    "exc, status_code, code",
    [
        (ResourceNotFound("Property not found with id of 5"), 404, "not_found"),
        (Forbidden(), 403, "forbidden"),
        (Conflict("Dates taken"), 400, "conflict"),
        (InvalidState(), 400, "invalid_state"),
        (UpstreamFailure("Problem with file upload."), 500, "upstream_failure"),
    ],
)
def test_typed_errors_map_to_status_and_code(exc, status_code, code):
    res = _handle(exc)

    assert res.status_code == status_code
    assert res.data["success"] is False
    assert res.data["error"] == code
    assert res.data["status"] == status_code
    assert res.data["path"] == "/api/things/"
    assert res.data["message"]


def test_message_carries_detail():
    res = _handle(ResourceNotFound("Booking not found with id of 9"))
    assert res.data["message"] == "Booking not found with id of 9"


def test_validation_error_lists_field_errors():
    res = _handle(ValidationError({"rating": ["Too high."], "comment": "Required."}))

    assert res.status_code == 400
    assert res.data["error"] == "validation_error"
    assert res.data["field_errors"] == {"rating": ["Too high."], "comment": ["Required."]}
    assert res.data["message"] == "rating: Too high."


def test_plain_validation_message_has_no_field_errors():
    res = _handle(ValidationError("No payment proof found for this booking"))

    assert res.data["message"] == "No payment proof found for this booking"
    assert "field_errors" not in res.data


def test_django_permission_denied_becomes_forbidden():
    from django.core.exceptions import PermissionDenied

    res = _handle(PermissionDenied())
    assert res.status_code == 403
    assert res.data["error"] == "forbidden"


def test_unhandled_exception_renders_500_envelope():
    res = _handle(RuntimeError("boom"))

    assert res.status_code == 500
    assert res.data["success"] is False
    assert res.data["error"] == "error"
    assert res.data["status"] == 500
    assert "boom" not in res.data["message"]


def test_crashing_view_still_returns_json(api_client, property_factory, monkeypatch):
    from listings_app.services.properties import PropertyRegistry

    prop = property_factory()

    def explode(self, pk):
        raise RuntimeError("database on fire")

    monkeypatch.setattr(PropertyRegistry, "get", explode)
    res = api_client.get(f"/api/properties/{prop.id}/")

    assert res.status_code == 500
    assert res["Content-Type"].startswith("application/json")
    assert res.json()["success"] is False
    assert res.json()["path"] == f"/api/properties/{prop.id}/"


def test_unknown_route_under_api_is_404(api_client):
    res = api_client.get("/api/properties/1/nothing-here/")
    assert res.status_code == 404


def test_versioned_prefix_serves_same_routes(api_client, property_factory):
    prop = property_factory()
    res = api_client.get(f"/api/v1/properties/{prop.id}/")
    assert res.status_code == 200
    assert res.data["data"]["id"] == prop.id


def test_health_endpoint(api_client):
    res = api_client.get("/api/health/")
    assert res.status_code == 200
    assert res.data == {"status": "ok", "db": True}


def test_schema_is_served(api_client):
    res = api_client.get("/api/schema/")
    assert res.status_code == 200
