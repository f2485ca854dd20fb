"""Upload data models shared by the origin service and the upload client."""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class Visibility(str, Enum):
    """Who can see a finalized video."""

    PUBLIC = "public"
    UNLISTED = "unlisted"
    PRIVATE = "private"


class VideoStatus(str, Enum):
    """Lifecycle of a video record on the origin service."""

    PENDING = "pending"  # Write target issued, metadata not submitted yet
    FINALIZED = "finalized"  # Bytes stored and metadata applied


class InitializeVideoResponse(BaseModel):
    """Response body of the initialize call."""

    success: bool
    videoId: str = ""
    uploadUrl: str = ""
    error: Optional[str] = None


class FinalizeUploadResponse(BaseModel):
    """Response body of a successful finalize call."""

    success: bool = True
    videoId: str
    title: str
    description: str
    tags: List[str] = Field(default_factory=list)
    visibility: Visibility
    status: VideoStatus
    createdAt: datetime
    updatedAt: datetime
