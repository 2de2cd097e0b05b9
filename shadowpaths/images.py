"""Object storage for story images.

The rest of the application only keeps the ``(url, storage_id)`` pair an
upload returns; nothing else looks at the bytes.
"""
import os
import uuid
from dataclasses import dataclass

from flask import current_app
from werkzeug.security import safe_join
from werkzeug.utils import secure_filename

from .errors import NotFound, ValidationFailed


@dataclass
class StoredImage:
    url: str
    storage_id: str


class LocalImageStore:
    """Keeps uploads on local disk and serves them under ``url_prefix``."""

    def __init__(self, folder, url_prefix="/uploads", allowed_extensions=None):
        self.folder = folder
        self.url_prefix = url_prefix.rstrip("/")
        self.allowed_extensions = set(allowed_extensions or ())

    def _path(self, storage_id):
        path = safe_join(self.folder, storage_id)
        if path is None:
            raise NotFound("Image", storage_id)
        return path

    def upload(self, file, namespace=""):
        filename = secure_filename(file.filename or "")
        extension = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
        if not filename or (self.allowed_extensions and extension not in self.allowed_extensions):
            raise ValidationFailed(["Upload a png, jpg, gif or webp image"])
        name = f"{uuid.uuid4().hex[:12]}-{filename}"
        storage_id = f"{namespace}/{name}" if namespace else name
        path = self._path(storage_id)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        file.save(path)
        return StoredImage(url=f"{self.url_prefix}/{storage_id}", storage_id=storage_id)

    def delete(self, storage_id):
        path = self._path(storage_id)
        if os.path.exists(path):
            os.remove(path)


def get_image_store():
    return current_app.extensions["image_store"]
