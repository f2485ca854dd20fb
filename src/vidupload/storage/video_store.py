"""Video record tracking store."""

import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from vidupload.models.upload import VideoStatus, Visibility


@dataclass
class VideoRecord:
    """Video record metadata."""

    video_id: str
    object_key: str
    created_at: datetime
    updated_at: datetime
    title: str = ""
    description: str = ""
    tags: List[str] = field(default_factory=list)
    visibility: Visibility = Visibility.PRIVATE
    status: VideoStatus = VideoStatus.PENDING
    content_type: Optional[str] = None
    size_bytes: Optional[int] = None


class VideoStore:
    """In-memory store for video records."""

    def __init__(self):
        self._videos: Dict[str, VideoRecord] = {}
        self._lock = threading.Lock()

    def create(self, record: VideoRecord) -> None:
        """Store a new video record."""
        with self._lock:
            self._videos[record.video_id] = record

    def get(self, video_id: str) -> Optional[VideoRecord]:
        """Retrieve a video record by video_id."""
        return self._videos.get(video_id)

    def record_upload(
        self, video_id: str, content_type: Optional[str], size_bytes: int, uploaded_at: datetime
    ) -> None:
        """Remember what landed at the write target."""
        with self._lock:
            record = self._videos.get(video_id)
            if record:
                record.content_type = content_type
                record.size_bytes = size_bytes
                record.updated_at = uploaded_at

    def finalize(
        self,
        video_id: str,
        title: str,
        description: str,
        tags: List[str],
        visibility: Visibility,
        finalized_at: datetime,
    ) -> Optional[VideoRecord]:
        """Apply metadata and mark the video finalized.

        Repeating the call with the metadata the video was finalized with
        returns the stored record unchanged, so a client whose response got
        lost can retry.

        Returns:
            The finalized record, or None when it is unknown or was finalized
            with different metadata
        """
        with self._lock:
            record = self._videos.get(video_id)
            if record is None:
                return None
            if record.status is VideoStatus.FINALIZED:
                same_metadata = (
                    record.title == title
                    and record.description == description
                    and record.tags == list(tags)
                    and record.visibility is visibility
                )
                return record if same_metadata else None
            record.title = title
            record.description = description
            record.tags = list(tags)
            record.visibility = visibility
            record.status = VideoStatus.FINALIZED
            record.updated_at = finalized_at
            return record


# Singleton instance
video_store = VideoStore()
