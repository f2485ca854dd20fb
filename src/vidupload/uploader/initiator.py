"""Client for the origin service's initialize call."""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, Callable, Optional

import httpx

from vidupload.core.config import settings
from vidupload.uploader.exceptions import InitRejectedError, InitUnreachableError
from vidupload.uploader.state import UploadSession

logger = logging.getLogger(__name__)

INITIALIZE_PATH = "/api/videos/initialize"
DEFAULT_INIT_ERROR = "Failed to initialize upload."


@asynccontextmanager
async def http_client_scope(
    client: Optional[httpx.AsyncClient], timeout: float
) -> AsyncIterator[httpx.AsyncClient]:
    """Yield the shared client if one was given, else a short-lived one."""
    if client is not None:
        yield client
        return
    async with httpx.AsyncClient(timeout=timeout) as fresh_client:
        yield fresh_client


def response_error_reason(response: httpx.Response) -> Optional[str]:
    """Extract the ``error`` (or FastAPI ``detail``) message from a JSON body, if any."""
    try:
        body = response.json()
    except ValueError:
        return None
    if not isinstance(body, dict):
        return None
    for key in ("error", "detail"):
        if isinstance(body.get(key), str) and body[key]:
            return body[key]
    return None


def status_line(response: httpx.Response) -> str:
    return f"{response.status_code} {response.reason_phrase}".strip()


class SessionInitiator:
    """Obtains exactly one upload session from the origin service per call.

    There is no retry here. Every call may mint a new write target on the
    origin service, so retrying is left to the caller.
    """

    def __init__(
        self,
        origin_base_url: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.origin_base_url = (origin_base_url or settings.ORIGIN_BASE_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.REQUEST_TIMEOUT
        self._http_client = http_client
        self._clock = clock

    @property
    def initialize_url(self) -> str:
        return f"{self.origin_base_url}{INITIALIZE_PATH}"

    async def initialize(self) -> UploadSession:
        """Request a write target and asset id.

        Returns:
            A fresh, unused UploadSession

        Raises:
            InitUnreachableError: network or transport failure
            InitRejectedError: non-2xx status, ``success: false`` or a malformed body
        """
        logger.info("Requesting upload session", extra={"url": self.initialize_url})

        try:
            async with http_client_scope(self._http_client, self.timeout) as client:
                response = await client.post(self.initialize_url)
        except httpx.TransportError as e:
            logger.warning(
                "Origin service unreachable during initialize",
                extra={"url": self.initialize_url, "error": str(e), "error_type": type(e).__name__},
            )
            raise InitUnreachableError(str(e) or type(e).__name__) from e

        if not response.is_success:
            reason = response_error_reason(response) or DEFAULT_INIT_ERROR
            logger.warning(
                "Origin service rejected initialize",
                extra={"status_code": response.status_code, "reason": reason},
            )
            raise InitRejectedError(reason)

        try:
            body = response.json()
        except ValueError:
            raise InitRejectedError("Malformed initialize response") from None
        if not isinstance(body, dict):
            raise InitRejectedError("Malformed initialize response")

        if not body.get("success"):
            reason = body.get("error") or DEFAULT_INIT_ERROR
            logger.warning(
                "Origin service reported initialize failure",
                extra={"status_code": response.status_code, "reason": reason},
            )
            raise InitRejectedError(str(reason))

        upload_url = body.get("uploadUrl")
        video_id = body.get("videoId")
        if not upload_url or not video_id:
            raise InitRejectedError("Initialize response is missing uploadUrl or videoId")

        logger.info("Upload session initialized", extra={"video_id": video_id})

        return UploadSession(
            asset_id=str(video_id),
            write_target=str(upload_url),
            created_at=self._clock(),
        )
