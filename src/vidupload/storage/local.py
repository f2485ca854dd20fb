"""Local filesystem storage backend.

Write targets point back at the origin service's own
``PUT /api/videos/{video_id}/content`` endpoint, guarded by a single-use
token, so the upload client sees the same contract as with a signed URL.
"""

import secrets
import threading
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import AsyncIterator, Dict

from vidupload.core.config import settings
from vidupload.storage.base import StorageBackend


class UploadTokenError(Exception):
    """Token is unknown, expired or bound to another video."""
    pass


class UploadTokenConsumedError(UploadTokenError):
    """Token was valid but its single PUT already happened."""
    pass


@dataclass
class _UploadGrant:
    video_id: str
    object_key: str
    expires_at: datetime
    consumed: bool = False


class LocalStorageBackend(StorageBackend):
    """Local filesystem storage backend."""

    def __init__(self):
        self.base_path = Path(settings.LOCAL_STORAGE_PATH)
        self._grants: Dict[str, _UploadGrant] = {}
        self._lock = threading.Lock()

    def _drop_expired_grants(self, now: datetime) -> None:
        # Caller holds self._lock
        expired = [token for token, grant in self._grants.items() if now > grant.expires_at]
        for token in expired:
            del self._grants[token]

    def generate_upload_url(self, video_id: str, expires_at: datetime) -> str:
        token = secrets.token_urlsafe(32)
        with self._lock:
            self._drop_expired_grants(datetime.utcnow())
            self._grants[token] = _UploadGrant(
                video_id=video_id,
                object_key=self.get_object_key(video_id),
                expires_at=expires_at,
            )
        base_url = settings.ORIGIN_PUBLIC_URL.rstrip("/")
        return f"{base_url}/api/videos/{video_id}/content?token={token}"

    def consume_upload_token(self, video_id: str, token: str, now: datetime) -> str:
        """Spend a write target token and return the object key it grants.

        A spent grant is kept until it expires so a repeated PUT is reported
        as already used; expired grants are dropped.

        Raises:
            UploadTokenError: unknown token, other video, or expired
            UploadTokenConsumedError: token already used
        """
        with self._lock:
            grant = self._grants.get(token)
            if grant is None or grant.video_id != video_id:
                raise UploadTokenError("Invalid upload token")
            if now > grant.expires_at:
                del self._grants[token]
                raise UploadTokenError("Upload token expired")
            if grant.consumed:
                raise UploadTokenConsumedError("Upload token already used")
            grant.consumed = True
            return grant.object_key

    def _object_path(self, object_key: str) -> Path:
        safe_key = object_key.replace("..", "_").lstrip("/")
        return self.base_path / safe_key

    async def store_object(self, object_key: str, chunks: AsyncIterator[bytes]) -> int:
        """Write a streamed request body to disk.

        Returns:
            Number of bytes written
        """
        target_path = self._object_path(object_key)
        target_path.parent.mkdir(parents=True, exist_ok=True)

        size = 0
        partial_path = target_path.with_suffix(".part")
        try:
            with open(partial_path, "wb") as f:
                async for chunk in chunks:
                    f.write(chunk)
                    size += len(chunk)
        except BaseException:
            partial_path.unlink(missing_ok=True)
            raise
        partial_path.replace(target_path)
        return size

    def object_exists(self, object_key: str) -> bool:
        return self._object_path(object_key).is_file()

    def get_backend_name(self) -> str:
        return "local"


# Singleton instance
local_backend = LocalStorageBackend()
