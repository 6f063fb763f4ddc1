import logging
import os

from django.conf import settings
from django.core.files.storage import default_storage
from django.utils.text import get_valid_filename

from listings_app.api.exceptions import UpstreamFailure

logger = logging.getLogger(__name__)


class MediaStore:
    """
    Thin adapter over Django's storage API.

    ``upload`` returns ``(url, public_id)``; the public id is the storage name
    and is what ``destroy`` needs later on. Point STORAGES["default"] at a
    remote backend to move media off the app server.
    """

    def __init__(self, storage=None, folder=None):
        self.storage = storage or default_storage
        self.folder = folder if folder is not None else getattr(settings, "MEDIA_STORAGE_FOLDER", "")

    def _name_for(self, subfolder, public_id, original_name):
        _, ext = os.path.splitext(original_name or "")
        filename = get_valid_filename(f"{public_id}{ext.lower()}")
        parts = [p for p in (self.folder, subfolder, filename) if p]
        return "/".join(parts)

    def upload(self, file_obj, *, subfolder, public_id):
        name = self._name_for(subfolder, public_id, getattr(file_obj, "name", ""))
        try:
            if hasattr(file_obj, "seek"):
                file_obj.seek(0)
            saved_name = self.storage.save(name, file_obj)
            url = self.storage.url(saved_name)
        except Exception as exc:
            logger.error("Media upload failed for %s: %s", name, exc)
            raise UpstreamFailure("Problem with file upload.") from exc
        logger.info("Uploaded %s", saved_name)
        return url, saved_name

    def destroy(self, public_id):
        if not public_id:
            return
        self.storage.delete(public_id)

    def release_quietly(self, public_id):
        """Best-effort delete: failures are logged and never raised."""
        try:
            self.destroy(public_id)
        except Exception as exc:
            logger.warning("Could not release media object %s: %s", public_id, exc)
            return False
        return True
