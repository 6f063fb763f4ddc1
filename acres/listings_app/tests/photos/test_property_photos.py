import pytest
from django.core.files.storage import FileSystemStorage

from listings_app.models import PropertyImage


pytestmark = pytest.mark.django_db


def _upload(client, prop, file_obj):
    return client.put(f"/api/properties/{prop.id}/photo/", {"file": file_obj}, format="multipart")


def test_first_photo_becomes_featured(owner, client_for, property_factory, image_file):
    prop = property_factory(created_by=owner)
    res = _upload(client_for(owner), prop, image_file())

    assert res.status_code == 200, res.data
    images = res.data["data"]["images"]
    assert len(images) == 1
    assert images[0]["is_featured"] is True
    assert res.data["data"]["featured_image"] == images[0]["url"]
    assert images[0]["public_id"].startswith("cyc-acres/properties/photo_")


def test_later_photos_are_appended_not_featured(owner, client_for, property_factory, image_file):
    prop = property_factory(created_by=owner)
    client = client_for(owner)
    _upload(client, prop, image_file("a.png"))
    res = _upload(client, prop, image_file("b.png"))

    images = res.data["data"]["images"]
    assert [img["position"] for img in images] == [1, 2]
    assert [img["is_featured"] for img in images] == [True, False]


def test_non_image_upload_is_rejected(owner, client_for, property_factory, image_file):
    prop = property_factory(created_by=owner)
    bad = image_file("notes.txt", content_type="text/plain", content=b"hello")
    res = _upload(client_for(owner), prop, bad)

    assert res.status_code == 400
    assert "file" in res.data["field_errors"]
    assert not PropertyImage.objects.exists()


def test_corrupt_image_is_rejected(owner, client_for, property_factory, image_file):
    prop = property_factory(created_by=owner)
    res = _upload(client_for(owner), prop, image_file(content=b"not really a png"))
    assert res.status_code == 400


def test_oversized_image_is_rejected(settings, owner, client_for, property_factory, image_file):
    settings.MAX_FILE_UPLOAD = 10
    prop = property_factory(created_by=owner)
    res = _upload(client_for(owner), prop, image_file())

    assert res.status_code == 400
    assert "less than 10 bytes" in res.data["field_errors"]["file"][0]


def test_missing_file_is_rejected(owner, client_for, property_factory):
    prop = property_factory(created_by=owner)
    res = client_for(owner).put(f"/api/properties/{prop.id}/photo/", {}, format="multipart")

    assert res.status_code == 400
    assert res.data["field_errors"]["file"] == ["Please upload a file"]


def test_only_creator_can_upload(auth_client, property_factory, image_file):
    prop = property_factory()
    res = _upload(auth_client, prop, image_file())
    assert res.status_code == 403


def test_storage_failure_is_upstream_error(monkeypatch, owner, client_for, property_factory, image_file):
    def boom(self, name, content, max_length=None):
        raise OSError("disk full")

    monkeypatch.setattr(FileSystemStorage, "save", boom)
    prop = property_factory(created_by=owner)
    res = _upload(client_for(owner), prop, image_file())

    assert res.status_code == 500
    assert res.data["error"] == "upstream_failure"
    assert res.data["message"] == "Problem with file upload."
    assert not PropertyImage.objects.exists()


def test_set_featured_keeps_exactly_one(owner, client_for, property_factory, image_file):
    prop = property_factory(created_by=owner)
    client = client_for(owner)
    _upload(client, prop, image_file("a.png"))
    _upload(client, prop, image_file("b.png"))
    second = prop.images.order_by("position").last()

    res = client.put(f"/api/properties/{prop.id}/photo/{second.id}/featured/")

    assert res.status_code == 200, res.data
    assert list(prop.images.filter(is_featured=True).values_list("id", flat=True)) == [second.id]


def test_deleting_featured_photo_promotes_next(owner, client_for, property_factory, image_file):
    prop = property_factory(created_by=owner)
    client = client_for(owner)
    _upload(client, prop, image_file("a.png"))
    _upload(client, prop, image_file("b.png"))
    first, second = prop.images.order_by("position")

    res = client.delete(f"/api/properties/{prop.id}/photo/{first.id}/")

    assert res.status_code == 200, res.data
    second.refresh_from_db()
    assert second.is_featured is True
    assert prop.images.count() == 1


def test_delete_survives_storage_failure(monkeypatch, owner, client_for, property_factory, image_file):
    prop = property_factory(created_by=owner)
    client = client_for(owner)
    _upload(client, prop, image_file())
    image = prop.images.get()

    def boom(self, name):
        raise OSError("storage offline")

    monkeypatch.setattr(FileSystemStorage, "delete", boom)
    res = client.delete(f"/api/properties/{prop.id}/photo/{image.id}/")

    assert res.status_code == 200
    assert not prop.images.exists()


def test_delete_unknown_photo_is_404(owner, client_for, property_factory):
    prop = property_factory(created_by=owner)
    res = client_for(owner).delete(f"/api/properties/{prop.id}/photo/424242/")
    assert res.status_code == 404
