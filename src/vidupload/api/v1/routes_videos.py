"""Video upload API routes: initialize, direct write target, finalize."""

import asyncio
import logging
from datetime import datetime, timedelta
from uuid import uuid4

from fastapi import APIRouter, Form, HTTPException, Request
from fastapi.responses import JSONResponse

from vidupload.core.config import settings
from vidupload.models.upload import FinalizeUploadResponse, InitializeVideoResponse
from vidupload.storage.factory import get_storage_backend
from vidupload.storage.local import LocalStorageBackend, UploadTokenConsumedError, UploadTokenError
from vidupload.storage.video_store import VideoRecord, video_store
from vidupload.uploader.exceptions import MetadataValidationError
from vidupload.uploader.metadata import AssetMetadata, validate_metadata

router = APIRouter(prefix="/api", tags=["videos"])
logger = logging.getLogger(__name__)


def _initialize_failure(video_id: str, error: str) -> JSONResponse:
    body = InitializeVideoResponse(success=False, videoId=video_id, error=error)
    return JSONResponse(status_code=500, content=body.model_dump(exclude_none=True))


@router.post("/videos/initialize", response_model=InitializeVideoResponse, response_model_exclude_none=True)
async def initialize_video():
    """Create a pending video and hand out a one-time write target for it."""
    try:
        backend = get_storage_backend()
    except ValueError as e:
        logger.error(f"Storage backend configuration error: {e}")
        return _initialize_failure("", "Storage configuration error")

    video_id = str(uuid4())
    object_key = backend.get_object_key(video_id)
    created_at = datetime.utcnow()

    logger.info(
        "Initializing new video",
        extra={"video_id": video_id, "object_key": object_key, "backend": backend.get_backend_name()},
    )

    video_store.create(
        VideoRecord(
            video_id=video_id,
            object_key=object_key,
            created_at=created_at,
            updated_at=created_at,
        )
    )

    expires_at = created_at + timedelta(minutes=settings.UPLOAD_URL_EXPIRATION_MINUTES)
    try:
        upload_url = backend.generate_upload_url(video_id, expires_at)
    except Exception as e:
        logger.error(
            f"Failed to generate upload URL: {e}",
            extra={"video_id": video_id, "object_key": object_key},
            exc_info=True,
        )
        return _initialize_failure(video_id, "Failed to generate upload URL")

    logger.info("Video initialized", extra={"video_id": video_id, "expires_at": expires_at.isoformat()})

    return InitializeVideoResponse(success=True, videoId=video_id, uploadUrl=upload_url)


@router.put("/videos/{video_id}/content")
async def upload_video_content(video_id: str, request: Request, token: str = ""):
    """Write target served by the local backend: accepts one PUT per token."""
    try:
        backend = get_storage_backend()
    except ValueError as e:
        logger.error(f"Storage backend configuration error: {e}")
        raise HTTPException(status_code=500, detail="Storage configuration error")

    if not isinstance(backend, LocalStorageBackend):
        raise HTTPException(status_code=404, detail="Direct uploads are not served by this backend")

    if video_store.get(video_id) is None:
        raise HTTPException(status_code=404, detail="Video not found")

    try:
        object_key = backend.consume_upload_token(video_id, token, datetime.utcnow())
    except UploadTokenConsumedError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except UploadTokenError as e:
        raise HTTPException(status_code=403, detail=str(e))

    try:
        size_bytes = await backend.store_object(object_key, request.stream())
    except Exception as e:
        logger.error(f"Failed to store file: {e}", extra={"video_id": video_id}, exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to store file")

    content_type = request.headers.get("content-type") or settings.DEFAULT_CONTENT_TYPE
    video_store.record_upload(video_id, content_type, size_bytes, datetime.utcnow())

    logger.info(
        "Video bytes stored",
        extra={"video_id": video_id, "size": size_bytes, "content_type": content_type},
    )

    return {"videoId": video_id, "sizeBytes": size_bytes}


@router.post("/upload", response_model=FinalizeUploadResponse)
async def finalize_upload(
    videoId: str = Form(...),
    title: str = Form(""),
    description: str = Form(""),
    tags: str = Form(""),
    visibility: str = Form(...),
) -> FinalizeUploadResponse:
    """Apply metadata to an uploaded video."""
    try:
        record = video_store.get(videoId)
        if record is None:
            raise HTTPException(status_code=404, detail="Video not found")

        try:
            metadata = validate_metadata(
                AssetMetadata(title=title, description=description, tags=tags, visibility=visibility)
            )
        except MetadataValidationError as e:
            raise HTTPException(status_code=422, detail=str(e))

        try:
            backend = get_storage_backend()
            uploaded = await asyncio.to_thread(backend.object_exists, record.object_key)
        except Exception as e:
            logger.error(f"Failed to verify video file: {e}", extra={"video_id": videoId}, exc_info=True)
            raise HTTPException(status_code=500, detail="Failed to verify video file")

        if not uploaded:
            raise HTTPException(status_code=409, detail="Video file has not been uploaded")

        finalized = video_store.finalize(
            videoId,
            title=metadata.title,
            description=metadata.description,
            tags=metadata.tags,
            visibility=metadata.visibility,
            finalized_at=datetime.utcnow(),
        )
        if finalized is None:
            raise HTTPException(status_code=409, detail="Video already finalized with different metadata")

        logger.info(
            "Video finalized",
            extra={"video_id": videoId, "visibility": metadata.visibility.value, "tags": len(metadata.tags)},
        )

        return FinalizeUploadResponse(
            videoId=finalized.video_id,
            title=finalized.title,
            description=finalized.description,
            tags=finalized.tags,
            visibility=finalized.visibility,
            status=finalized.status,
            createdAt=finalized.created_at,
            updatedAt=finalized.updated_at,
        )

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Unexpected error during finalize: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error")
