"""Pytest configuration and shared fixtures."""

import asyncio
from typing import List, Optional, Tuple

import httpx
import pytest

from vidupload.uploader.coordinator import UploadCoordinator

ORIGIN_URL = "https://origin.test"
UPLOAD_URL = "https://store.test/x?signature=abc"


class FakeOrigin:
    """Scripted origin service and write target behind httpx.MockTransport.

    Replies are (status_code, json_body) pairs so every request gets a fresh
    httpx.Response. A transport error can be injected per (method, path).
    """

    def __init__(self):
        self.init_reply: Tuple[int, Optional[dict]] = (
            200,
            {"success": True, "uploadUrl": UPLOAD_URL, "videoId": "v1"},
        )
        self.put_reply: Tuple[int, Optional[dict]] = (200, None)
        self.finalize_reply: Tuple[int, Optional[dict]] = (200, {"success": True})
        self.errors: dict = {}
        self.requests: List[Tuple[httpx.Request, bytes]] = []
        self.put_started = asyncio.Event()
        self.put_gate: Optional[asyncio.Event] = None

    @staticmethod
    def _reply(reply: Tuple[int, Optional[dict]]) -> httpx.Response:
        status_code, body = reply
        if body is None:
            return httpx.Response(status_code)
        return httpx.Response(status_code, json=body)

    async def handler(self, request: httpx.Request) -> httpx.Response:
        body = await request.aread()
        self.requests.append((request, body))

        key = (request.method, request.url.path)
        if key in self.errors:
            raise self.errors[key]

        if key == ("POST", "/api/videos/initialize"):
            return self._reply(self.init_reply)
        if request.method == "PUT" and request.url.host == "store.test":
            self.put_started.set()
            if self.put_gate is not None:
                await self.put_gate.wait()
            return self._reply(self.put_reply)
        if key == ("POST", "/api/upload"):
            return self._reply(self.finalize_reply)
        return httpx.Response(404)

    def calls(self, method: str, host: str = None, path: str = None) -> List[Tuple[httpx.Request, bytes]]:
        return [
            (request, body)
            for request, body in self.requests
            if request.method == method
            and (host is None or request.url.host == host)
            and (path is None or request.url.path == path)
        ]

    @property
    def init_calls(self):
        return self.calls("POST", path="/api/videos/initialize")

    @property
    def put_calls(self):
        return self.calls("PUT", host="store.test")

    @property
    def finalize_calls(self):
        return self.calls("POST", path="/api/upload")


@pytest.fixture
def origin():
    """Scripted origin service."""
    return FakeOrigin()


@pytest.fixture
def http_client(origin):
    """AsyncClient routed to the fake origin."""
    return httpx.AsyncClient(transport=httpx.MockTransport(origin.handler))


@pytest.fixture
def coordinator(http_client):
    """Coordinator talking to the fake origin."""
    return UploadCoordinator(origin_base_url=ORIGIN_URL, http_client=http_client)
