import logging
import os
import secrets
import time

from django.core.files.storage import default_storage

logger = logging.getLogger(__name__)

UPLOADS_DIR = 'uploads'
VERSIONS_DIR = 'versions'


def generate_blob_name(original_name, prefix=''):
    """
    ``{unixMillis}-{random}{ext}``; the user-supplied name only lends its extension.
    """
    _, ext = os.path.splitext(original_name or '')
    return f"{prefix}{int(time.time() * 1000)}-{secrets.randbelow(10 ** 9)}{ext.lower()}"


class BlobStore:
    """
    Uploaded bytes on a Django storage backend, addressed by generated names.

    Paths handed out are storage names relative to the storage root, so the
    database never records absolute filesystem locations.
    """

    def __init__(self, storage=None):
        self.storage = storage if storage is not None else default_storage

    def save(self, uploaded_file, directory=UPLOADS_DIR, prefix=''):
        """Store an uploaded file, returning ``(filename, path)``."""
        filename = generate_blob_name(uploaded_file.name, prefix=prefix)
        if hasattr(uploaded_file, 'seek'):
            uploaded_file.seek(0)
        path = self.storage.save(f"{directory}/{filename}", uploaded_file)
        return os.path.basename(path), path

    def copy(self, source_path, original_name, directory=UPLOADS_DIR, prefix=''):
        filename = generate_blob_name(original_name, prefix=prefix)
        with self.storage.open(source_path, 'rb') as source:
            path = self.storage.save(f"{directory}/{filename}", source)
        return os.path.basename(path), path

    def exists(self, path):
        return bool(path) and self.storage.exists(path)

    def open(self, path):
        return self.storage.open(path, 'rb')

    def size(self, path):
        return self.storage.size(path)

    def delete(self, path):
        """
        Remove a blob. A blob that is already gone is logged, not raised.
        Returns whether something was deleted.
        """
        if not self.exists(path):
            logger.warning("Blob %s not found on disk; nothing to delete", path)
            return False
        try:
            self.storage.delete(path)
        except OSError as exc:
            logger.error("Failed to delete blob %s: %s", path, exc)
            return False
        return True
