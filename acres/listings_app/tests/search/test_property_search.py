from datetime import date
from decimal import Decimal

import pytest


pytestmark = pytest.mark.django_db


def _ids(res):
    return {row["id"] for row in res.data["data"]}


def test_keyword_matches_title_or_description(api_client, property_factory):
    a = property_factory(title="Beach house", description="Sunny")
    b = property_factory(title="Flat", description="Walk to the beach")
    property_factory(title="Mountain cabin", description="Snowy")

    res = api_client.get("/api/properties/", {"keyword": "beach"})

    assert res.status_code == 200
    assert _ids(res) == {a.id, b.id}


def test_q_is_an_alias_for_keyword(api_client, property_factory):
    a = property_factory(title="Loft")
    property_factory(title="Cottage")

    res = api_client.get("/api/properties/", {"q": "loft"})
    assert _ids(res) == {a.id}


def test_city_filter_is_case_insensitive(api_client, property_factory):
    a = property_factory(city="Durban")
    property_factory(city="Cape Town")

    res = api_client.get("/api/properties/", {"city": "durb"})
    assert _ids(res) == {a.id}


def test_price_range(api_client, property_factory):
    cheap = property_factory(price=Decimal("300.00"))
    mid = property_factory(price=Decimal("600.00"))
    property_factory(price=Decimal("1200.00"))

    res = api_client.get("/api/properties/", {"min_price": "250", "max_price": "700"})
    assert _ids(res) == {cheap.id, mid.id}


def test_min_price_above_max_price_is_rejected(api_client):
    res = api_client.get("/api/properties/", {"min_price": "900", "max_price": "100"})

    assert res.status_code == 400
    assert res.data["error"] == "validation_error"
    assert "min_price" in res.data["field_errors"]


def test_non_numeric_price_is_rejected(api_client):
    res = api_client.get("/api/properties/", {"min_price": "cheap"})
    assert res.status_code == 400


def test_availability_window_filters(api_client, property_factory):
    open_ended = property_factory(available_from=date(2030, 1, 1))
    closes_early = property_factory(available_from=date(2030, 1, 1), available_to=date(2030, 2, 1))
    property_factory(available_from=date(2030, 6, 1))

    res = api_client.get("/api/properties/", {"available_from": "2030-03-01"})
    assert _ids(res) == {open_ended.id}

    res = api_client.get("/api/properties/", {"available_from": "2030-01-15"})
    assert _ids(res) == {open_ended.id, closes_early.id}


def test_is_available_and_created_by_filters(api_client, property_factory, owner):
    mine = property_factory(created_by=owner)
    property_factory(created_by=owner, is_available=False)
    property_factory()

    res = api_client.get("/api/properties/", {"created_by": owner.id, "is_available": "true"})
    assert _ids(res) == {mine.id}


def test_invalid_boolean_filter_is_rejected(api_client):
    res = api_client.get("/api/properties/", {"is_available": "maybe"})
    assert res.status_code == 400


def test_results_are_newest_first(api_client, property_factory):
    first = property_factory(title="Old")
    second = property_factory(title="New")

    res = api_client.get("/api/properties/")
    ids = [row["id"] for row in res.data["data"]]
    assert ids.index(second.id) < ids.index(first.id)
