"""Tests for storage backends."""

from datetime import datetime, timedelta
from unittest.mock import MagicMock, patch

import pytest
from google.api_core.exceptions import GoogleAPIError
from tenacity import wait_none

from vidupload.core.config import settings
from vidupload.storage.factory import get_storage_backend
from vidupload.storage.gcs import GCSStorageBackend, gcs_backend
from vidupload.storage.local import (
    LocalStorageBackend,
    UploadTokenConsumedError,
    UploadTokenError,
    local_backend,
)


async def _chunks(*parts):
    for part in parts:
        yield part


class TestLocalStorageBackend:
    """Tests for local storage backend."""

    @pytest.fixture
    def backend(self, tmp_path, monkeypatch):
        monkeypatch.setattr(settings, "ORIGIN_PUBLIC_URL", "http://origin.test/")
        backend = LocalStorageBackend()
        backend.base_path = tmp_path
        return backend

    def test_get_object_key(self, backend):
        """Test object key layout."""
        assert backend.get_object_key("abc") == "videos/abc"

    def test_generate_upload_url(self, backend):
        """Test that the write target points at the content endpoint."""
        url = backend.generate_upload_url("abc", datetime.utcnow() + timedelta(minutes=15))

        assert url.startswith("http://origin.test/api/videos/abc/content?token=")
        assert len(url.split("token=")[1]) > 20

    def test_each_url_gets_its_own_token(self, backend):
        """Test that tokens are never reused between targets."""
        expires_at = datetime.utcnow() + timedelta(minutes=15)
        first = backend.generate_upload_url("abc", expires_at)
        second = backend.generate_upload_url("abc", expires_at)

        assert first != second

    def test_token_is_single_use(self, backend):
        """Test that a token grants exactly one PUT."""
        now = datetime.utcnow()
        url = backend.generate_upload_url("abc", now + timedelta(minutes=15))
        token = url.split("token=")[1]

        assert backend.consume_upload_token("abc", token, now) == "videos/abc"
        with pytest.raises(UploadTokenConsumedError):
            backend.consume_upload_token("abc", token, now)

    def test_token_rejected_for_other_video(self, backend):
        """Test that a token is bound to its video."""
        now = datetime.utcnow()
        token = backend.generate_upload_url("abc", now + timedelta(minutes=15)).split("token=")[1]

        with pytest.raises(UploadTokenError):
            backend.consume_upload_token("other", token, now)

    def test_unknown_token_rejected(self, backend):
        """Test an invented token."""
        with pytest.raises(UploadTokenError):
            backend.consume_upload_token("abc", "made-up", datetime.utcnow())

    def test_expired_token_rejected(self, backend):
        """Test that the target stops working after it expires."""
        now = datetime.utcnow()
        token = backend.generate_upload_url("abc", now + timedelta(minutes=15)).split("token=")[1]

        with pytest.raises(UploadTokenError) as exc_info:
            backend.consume_upload_token("abc", token, now + timedelta(minutes=16))

        assert not isinstance(exc_info.value, UploadTokenConsumedError)

    def test_expired_token_is_forgotten(self, backend):
        """Test that an expired token is dropped when it is presented."""
        now = datetime.utcnow()
        token = backend.generate_upload_url("abc", now + timedelta(minutes=15)).split("token=")[1]

        with pytest.raises(UploadTokenError):
            backend.consume_upload_token("abc", token, now + timedelta(minutes=16))

        assert token not in backend._grants

    def test_expired_grants_swept_on_new_target(self, backend):
        """Test that abandoned targets do not accumulate."""
        past = datetime.utcnow() - timedelta(minutes=1)
        for i in range(50):
            backend.generate_upload_url(f"old-{i}", past)
        assert len(backend._grants) == 50

        backend.generate_upload_url("abc", datetime.utcnow() + timedelta(minutes=15))

        assert len(backend._grants) == 1

    def test_spent_grant_swept_after_expiry(self, backend):
        """Test that a used token is remembered only until it expires."""
        now = datetime.utcnow()
        token = backend.generate_upload_url("abc", now + timedelta(seconds=1)).split("token=")[1]
        backend.consume_upload_token("abc", token, now)

        with patch("vidupload.storage.local.datetime") as mock_datetime:
            mock_datetime.utcnow.return_value = now + timedelta(minutes=1)
            backend.generate_upload_url("def", now + timedelta(minutes=16))

        assert token not in backend._grants
        assert len(backend._grants) == 1

    @pytest.mark.asyncio
    async def test_store_object(self, backend, tmp_path):
        """Test writing a streamed body to disk."""
        size = await backend.store_object("videos/abc", _chunks(b"hello ", b"world"))

        assert size == 11
        assert (tmp_path / "videos" / "abc").read_bytes() == b"hello world"
        assert backend.object_exists("videos/abc")
        assert not (tmp_path / "videos" / "abc.part").exists()

    @pytest.mark.asyncio
    async def test_store_object_failure_leaves_nothing(self, backend, tmp_path):
        """Test that an interrupted body is not visible as an object."""

        async def broken():
            yield b"partial"
            raise ConnectionError("client went away")

        with pytest.raises(ConnectionError):
            await backend.store_object("videos/abc", broken())

        assert not backend.object_exists("videos/abc")
        assert not (tmp_path / "videos" / "abc.part").exists()

    def test_object_exists_missing(self, backend):
        """Test a key that was never written."""
        assert not backend.object_exists("videos/missing")

    def test_object_path_stays_under_base(self, backend, tmp_path):
        """Test that keys cannot escape the storage directory."""
        path = backend._object_path("../../etc/passwd")
        assert tmp_path in path.parents

    def test_backend_name(self, backend):
        assert backend.get_backend_name() == "local"


class TestGCSStorageBackend:
    """Tests for GCS storage backend."""

    @pytest.fixture
    def gcs_settings(self, monkeypatch):
        monkeypatch.setattr(settings, "GCS_BUCKET_NAME", "test-bucket")
        monkeypatch.setattr(settings, "GCP_PROJECT_ID", "test-project")

    @pytest.fixture
    def mock_storage_client(self):
        with patch("vidupload.storage.gcs.storage.Client") as mock_client:
            yield mock_client

    def test_missing_bucket_configuration(self, monkeypatch):
        """Test that an unconfigured bucket fails loudly."""
        monkeypatch.setattr(settings, "GCS_BUCKET_NAME", "")

        with pytest.raises(ValueError):
            GCSStorageBackend().object_exists("videos/abc")

    def test_generate_upload_url(self, gcs_settings, mock_storage_client):
        """Test V4 signed PUT URL generation."""
        backend = GCSStorageBackend()
        mock_blob = MagicMock()
        mock_blob.generate_signed_url.return_value = "https://storage.googleapis.com/test-bucket/videos/abc?X-Goog-Signature=1"
        mock_storage_client.return_value.bucket.return_value.blob.return_value = mock_blob
        signing_creds = MagicMock(service_account_email="uploader@test-project.iam.gserviceaccount.com")
        expires_at = datetime.utcnow() + timedelta(minutes=15)

        with patch.object(backend, "_signing_credentials", return_value=signing_creds):
            url = backend.generate_upload_url("abc", expires_at)

        assert url.startswith("https://storage.googleapis.com/test-bucket/videos/abc")
        mock_storage_client.assert_called_once_with(project="test-project")
        mock_storage_client.return_value.bucket.assert_called_once_with("test-bucket")
        mock_storage_client.return_value.bucket.return_value.blob.assert_called_once_with("videos/abc")
        kwargs = mock_blob.generate_signed_url.call_args.kwargs
        assert kwargs["version"] == "v4"
        assert kwargs["method"] == "PUT"
        assert kwargs["expiration"] == expires_at
        assert kwargs["credentials"] is signing_creds

    def test_object_exists(self, gcs_settings, mock_storage_client):
        """Test the existence check."""
        backend = GCSStorageBackend()
        mock_storage_client.return_value.bucket.return_value.blob.return_value.exists.return_value = True

        assert backend.object_exists("videos/abc") is True

    def test_object_exists_retries_api_errors(self, gcs_settings, mock_storage_client, monkeypatch):
        """Test that transient API errors are retried."""
        monkeypatch.setattr(GCSStorageBackend.object_exists.retry, "wait", wait_none())
        backend = GCSStorageBackend()
        exists = mock_storage_client.return_value.bucket.return_value.blob.return_value.exists
        exists.side_effect = [GoogleAPIError("unavailable"), False]

        assert backend.object_exists("videos/abc") is False
        assert exists.call_count == 2

    def test_backend_name(self):
        assert GCSStorageBackend().get_backend_name() == "gcs"


def test_factory_selects_backend(monkeypatch):
    """Test backend selection from settings."""
    monkeypatch.setattr(settings, "STORAGE_BACKEND", "local")
    assert get_storage_backend() is local_backend

    monkeypatch.setattr(settings, "STORAGE_BACKEND", "gcs")
    assert get_storage_backend() is gcs_backend


def test_factory_rejects_unknown_backend(monkeypatch):
    """Test an unknown backend name."""
    monkeypatch.setattr(settings, "STORAGE_BACKEND", "ftp")

    with pytest.raises(ValueError):
        get_storage_backend()
