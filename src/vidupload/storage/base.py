"""Abstract storage backend interface."""

from abc import ABC, abstractmethod
from datetime import datetime


class StorageBackend(ABC):
    """Abstract base class for storage backends."""

    def get_object_key(self, video_id: str) -> str:
        """Object key under which a video's raw bytes are stored."""
        return f"videos/{video_id}"

    @abstractmethod
    def generate_upload_url(self, video_id: str, expires_at: datetime) -> str:
        """Issue a write target for a video.

        Args:
            video_id: Video identifier the bytes belong to
            expires_at: UTC time after which the target must be refused

        Returns:
            URL accepting a single PUT of the raw file body
        """
        pass

    @abstractmethod
    def object_exists(self, object_key: str) -> bool:
        """Check whether bytes have been stored under ``object_key``."""
        pass

    @abstractmethod
    def get_backend_name(self) -> str:
        """Return backend identifier."""
        pass
