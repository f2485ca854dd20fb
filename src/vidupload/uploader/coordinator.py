"""Upload coordinator: the state machine behind one upload attempt.

A coordinator walks a single attempt through three phases:

1. ``begin()`` asks the origin service for a write target,
2. ``transfer(data)`` PUTs the file bytes straight to that target,
3. ``finalize(metadata)`` submits the video's metadata to the origin service.

Progress is a single ``UploadStatus``; there are no separate loading,
uploading or error flags. A write target is used for at most one PUT. Any
transfer failure makes the session unusable and the only way forward is
``reset()`` followed by a fresh ``begin()``.

Concurrent uploads need one coordinator each.
"""

import asyncio
import logging
import mimetypes
from datetime import datetime, timedelta
from pathlib import Path
from typing import AsyncIterator, Awaitable, Callable, Optional, TypeVar, Union

import httpx

from vidupload.core.config import settings
from vidupload.core.logging import video_id_context
from vidupload.uploader.exceptions import (
    FinalizeRejectedError,
    FinalizeUnreachableError,
    InvalidStateError,
    PhaseCancelledError,
    PhaseError,
    TransferRejectedError,
    TransferUnreachableError,
)
from vidupload.uploader.initiator import (
    SessionInitiator,
    http_client_scope,
    response_error_reason,
    status_line,
)
from vidupload.uploader.metadata import AssetMetadata, ValidatedMetadata, validate_metadata
from vidupload.uploader.state import Phase, SessionState, UploadSession, UploadStatus

logger = logging.getLogger(__name__)

FINALIZE_PATH = "/api/upload"
CHUNK_SIZE = 65536  # 64KB chunks when streaming a file from disk

CAUSE_CANCELLED = "cancelled"
CAUSE_NO_SESSION = "no session"
CAUSE_UPLOAD_EXPIRED = "upload expired"

_FROM_SETTINGS = object()

T = TypeVar("T")

TransferSource = Union[bytes, bytearray, memoryview, Path]


async def _read_chunks(path: Path) -> AsyncIterator[bytes]:
    """Stream a file from disk without blocking the event loop."""
    handle = await asyncio.to_thread(path.open, "rb")
    try:
        while chunk := await asyncio.to_thread(handle.read, CHUNK_SIZE):
            yield chunk
    finally:
        await asyncio.to_thread(handle.close)


class UploadCoordinator:
    """Owns one upload attempt from ``begin()`` to ``Done`` or ``Errored``."""

    def __init__(
        self,
        initiator: Optional[SessionInitiator] = None,
        *,
        origin_base_url: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        request_timeout: Optional[float] = None,
        transfer_timeout: Optional[float] = None,
        finalize_retry_window: Optional[timedelta] = _FROM_SETTINGS,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        """
        Args:
            initiator: Source of upload sessions. Defaults to a SessionInitiator
                talking to ``origin_base_url`` through ``http_client``.
            origin_base_url: Origin service base URL for initialize and finalize.
            http_client: Shared client. When omitted, each call opens its own.
            request_timeout: Seconds allowed for the initialize and finalize calls.
            transfer_timeout: Seconds allowed for the PUT.
            finalize_retry_window: How long after a successful transfer finalize
                may still be attempted. ``None`` means no limit; when not given,
                FINALIZE_RETRY_WINDOW_SECONDS applies.
            clock: Current UTC time, injectable for tests.
        """
        self.origin_base_url = (origin_base_url or settings.ORIGIN_BASE_URL).rstrip("/")
        self.request_timeout = request_timeout if request_timeout is not None else settings.REQUEST_TIMEOUT
        self.transfer_timeout = transfer_timeout if transfer_timeout is not None else settings.TRANSFER_TIMEOUT
        if finalize_retry_window is _FROM_SETTINGS:
            seconds = settings.FINALIZE_RETRY_WINDOW_SECONDS
            finalize_retry_window = timedelta(seconds=seconds) if seconds is not None else None
        self.finalize_retry_window = finalize_retry_window

        self._http_client = http_client
        self._clock = clock
        self._initiator = initiator or SessionInitiator(
            origin_base_url=self.origin_base_url,
            http_client=http_client,
            timeout=self.request_timeout,
            clock=clock,
        )

        self._status = UploadStatus(SessionState.IDLE)
        self._session: Optional[UploadSession] = None
        self._inflight: Optional[asyncio.Future] = None
        self._cancel_requested = False

    @property
    def status(self) -> UploadStatus:
        return self._status

    @property
    def state(self) -> SessionState:
        return self._status.state

    @property
    def session(self) -> Optional[UploadSession]:
        return self._session

    @property
    def finalize_url(self) -> str:
        return f"{self.origin_base_url}{FINALIZE_PATH}"

    def _set_status(self, status: UploadStatus) -> None:
        logger.debug(
            "Upload state changed",
            extra={"from_state": str(self._status), "to_state": str(status)},
        )
        self._status = status

    def _fail(self, phase: Phase, cause: str) -> None:
        self._set_status(UploadStatus.errored(phase, cause))

    def _require(self, operation: str, *allowed: SessionState) -> None:
        if self._status.state not in allowed:
            raise InvalidStateError(operation, str(self._status))

    async def _run_phase(self, phase: Phase, operation: Awaitable[T]) -> T:
        """Await one network phase, translating failures into Errored states.

        The phase runs as its own task so ``cancel()`` can stop it without
        touching the caller's task.
        """
        self._cancel_requested = False
        # Set before the task exists so the task's context copy carries it
        asset_token = video_id_context.set(self._session.asset_id if self._session else None)
        self._inflight = asyncio.ensure_future(operation)
        try:
            return await self._inflight
        except PhaseError as e:
            self._fail(phase, e.cause)
            raise
        except asyncio.CancelledError:
            self._fail(phase, CAUSE_CANCELLED)
            logger.info("Upload phase cancelled", extra={"phase": phase.value})
            if self._cancel_requested:
                raise PhaseCancelledError(phase) from None
            raise
        except Exception as e:
            logger.error("Unexpected error during upload phase", extra={"phase": phase.value}, exc_info=True)
            self._fail(phase, str(e) or type(e).__name__)
            raise
        finally:
            self._inflight = None
            self._cancel_requested = False
            video_id_context.reset(asset_token)

    async def begin(self) -> UploadStatus:
        """Start an attempt by requesting a fresh write target.

        Raises:
            InvalidStateError: not in Idle
            InitUnreachableError, InitRejectedError: initialize failed
            PhaseCancelledError: ``cancel()`` was called while waiting
        """
        self._require("begin", SessionState.IDLE)
        self._set_status(UploadStatus(SessionState.INITIALIZING))

        session = await self._run_phase(Phase.INIT, self._initiator.initialize())

        self._session = session
        self._set_status(UploadStatus(SessionState.READY))
        return self._status

    async def transfer(self, data: TransferSource, content_type: Optional[str] = None) -> UploadStatus:
        """PUT the whole file to the session's write target, once.

        Args:
            data: File contents, or a path to stream from disk
            content_type: Declared MIME type. Guessed from the file name for
                paths, else DEFAULT_CONTENT_TYPE.

        Raises:
            InvalidStateError: not in Ready, including while another transfer is running
            TransferUnreachableError, TransferRejectedError: the PUT failed
            PhaseCancelledError: ``cancel()`` was called during the PUT
        """
        self._require("transfer", SessionState.READY)
        session = self._session
        if session is None or not session.write_target or session.transferred_at is not None:
            self._fail(Phase.TRANSFER, CAUSE_NO_SESSION)
            raise TransferRejectedError(CAUSE_NO_SESSION)

        self._set_status(UploadStatus(SessionState.TRANSFERRING))
        await self._run_phase(Phase.TRANSFER, self._put(session, data, content_type))

        session.transferred_at = self._clock()
        self._set_status(UploadStatus(SessionState.TRANSFERRED))
        return self._status

    async def _put(self, session: UploadSession, data: TransferSource, content_type: Optional[str]) -> None:
        headers = {}
        if isinstance(data, Path):
            if content_type is None:
                content_type, _ = mimetypes.guess_type(data.name)
            try:
                size = await asyncio.to_thread(lambda: data.stat().st_size)
            except OSError as e:
                raise TransferRejectedError(f"Cannot read {data}: {e}") from e
            headers["Content-Length"] = str(size)
            body = _read_chunks(data)
        else:
            body = bytes(data)
        headers["Content-Type"] = content_type or settings.DEFAULT_CONTENT_TYPE

        logger.info(
            "Transferring file to write target",
            extra={"video_id": session.asset_id, "content_type": headers["Content-Type"]},
        )

        try:
            async with http_client_scope(self._http_client, self.transfer_timeout) as client:
                response = await client.put(
                    session.write_target,
                    content=body,
                    headers=headers,
                    timeout=self.transfer_timeout,
                )
        except httpx.TransportError as e:
            logger.warning(
                "Write target unreachable",
                extra={"video_id": session.asset_id, "error": str(e), "error_type": type(e).__name__},
            )
            raise TransferUnreachableError(str(e) or type(e).__name__) from e
        except OSError as e:
            raise TransferRejectedError(f"Cannot read {data}: {e}") from e

        if not response.is_success:
            logger.warning(
                "Write target rejected transfer",
                extra={"video_id": session.asset_id, "status_code": response.status_code},
            )
            raise TransferRejectedError(status_line(response))

        logger.info("File transferred", extra={"video_id": session.asset_id})

    def _finalize_window_elapsed(self) -> bool:
        if self.finalize_retry_window is None:
            return False
        transferred_at = self._session.transferred_at
        return self._clock() - transferred_at > self.finalize_retry_window

    async def finalize(self, metadata: AssetMetadata) -> UploadStatus:
        """Validate metadata and submit it to finalize the asset.

        Legal after a successful transfer, and again after a failed finalize
        for as long as the finalize retry window has not elapsed.

        Raises:
            InvalidStateError: not in Transferred or Errored(finalize)
            MetadataValidationError: metadata invalid; state is unchanged
            TransferRejectedError: the retry window elapsed, a new attempt is needed
            FinalizeUnreachableError, FinalizeRejectedError: the submit failed
            PhaseCancelledError: ``cancel()`` was called while waiting
        """
        if not (self._status.state is SessionState.TRANSFERRED or self._status.phase is Phase.FINALIZE):
            raise InvalidStateError("finalize", str(self._status))

        validated = validate_metadata(metadata)

        if self._finalize_window_elapsed():
            logger.warning(
                "Finalize retry window elapsed",
                extra={"video_id": self._session.asset_id},
            )
            self._fail(Phase.TRANSFER, CAUSE_UPLOAD_EXPIRED)
            raise TransferRejectedError(CAUSE_UPLOAD_EXPIRED)

        self._set_status(UploadStatus(SessionState.FINALIZING))
        await self._run_phase(Phase.FINALIZE, self._submit(self._session, validated))

        self._set_status(UploadStatus(SessionState.DONE))
        return self._status

    async def _submit(self, session: UploadSession, metadata: ValidatedMetadata) -> None:
        fields = {
            "videoId": session.asset_id,
            "title": metadata.title,
            "description": metadata.description,
            "tags": metadata.tags_text,
            "visibility": metadata.visibility.value,
        }
        # (None, value) parts force multipart/form-data without file names
        multipart = {name: (None, value) for name, value in fields.items()}

        logger.info("Submitting video metadata", extra={"video_id": session.asset_id})

        try:
            async with http_client_scope(self._http_client, self.request_timeout) as client:
                response = await client.post(self.finalize_url, files=multipart)
        except httpx.TransportError as e:
            logger.warning(
                "Origin service unreachable during finalize",
                extra={"video_id": session.asset_id, "error": str(e), "error_type": type(e).__name__},
            )
            raise FinalizeUnreachableError(str(e) or type(e).__name__) from e

        if not response.is_success:
            reason = response_error_reason(response) or status_line(response)
            logger.warning(
                "Origin service rejected finalize",
                extra={"video_id": session.asset_id, "status_code": response.status_code},
            )
            raise FinalizeRejectedError(reason)

        logger.info("Video finalized", extra={"video_id": session.asset_id})

    def cancel(self) -> bool:
        """Cancel the in-flight phase, if there is one.

        The awaiting phase call raises PhaseCancelledError and the state
        becomes Errored(phase, "cancelled"). Returns whether anything was cancelled.
        """
        if self._inflight is None or self._inflight.done():
            return False
        self._cancel_requested = True
        self._inflight.cancel()
        return True

    def reset(self) -> UploadStatus:
        """Discard the session and go back to Idle.

        Raises:
            InvalidStateError: a phase is in flight; ``cancel()`` it first
        """
        if self._status.is_in_flight:
            raise InvalidStateError("reset", str(self._status))
        self._session = None
        self._set_status(UploadStatus(SessionState.IDLE))
        return self._status
