"""Storage backend selection."""

from vidupload.core.config import settings
from vidupload.storage.base import StorageBackend
from vidupload.storage.gcs import gcs_backend
from vidupload.storage.local import local_backend


def get_storage_backend() -> StorageBackend:
    """Return the backend configured by STORAGE_BACKEND.

    Raises:
        ValueError: unknown backend name
    """
    if settings.STORAGE_BACKEND == "gcs":
        return gcs_backend
    if settings.STORAGE_BACKEND == "local":
        return local_backend
    raise ValueError(f"Unknown storage backend: {settings.STORAGE_BACKEND}")
