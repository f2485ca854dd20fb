"""Google Cloud Storage backend."""

import logging
from datetime import datetime
from typing import Optional

from google.api_core.exceptions import GoogleAPIError
from google.cloud import storage
from google.oauth2 import service_account
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from vidupload.core.config import settings
from vidupload.storage.base import StorageBackend

logger = logging.getLogger(__name__)


class GCSStorageBackend(StorageBackend):
    """Google Cloud Storage backend.

    Write targets are V4 signed PUT URLs, so file bytes go straight to the
    bucket and never through the origin service.
    """

    def __init__(self):
        self._client: Optional[storage.Client] = None
        self._bucket: Optional[storage.Bucket] = None

    def _get_bucket(self) -> storage.Bucket:
        """Lazy-load and cache GCS bucket."""
        if self._bucket is None:
            if not settings.GCS_BUCKET_NAME:
                raise ValueError("GCS_BUCKET_NAME not configured")

            self._client = storage.Client(project=settings.GCP_PROJECT_ID or None)
            self._bucket = self._client.bucket(settings.GCS_BUCKET_NAME)

        return self._bucket

    def _signing_credentials(self) -> service_account.Credentials:
        """Build credentials that sign through the IAM signBlob API.

        Works on Cloud Run / GCE / GKE without a private key file. The service
        account needs roles/iam.serviceAccountTokenCreator on itself.
        """
        from google.auth import compute_engine, iam
        from google.auth.transport import requests as auth_requests

        credentials = compute_engine.Credentials()
        auth_request = auth_requests.Request()

        # Refresh to learn the service account email
        credentials.refresh(auth_request)
        service_account_email = credentials.service_account_email

        signer = iam.Signer(
            request=auth_request,
            credentials=credentials,
            service_account_email=service_account_email,
        )
        # token_uri is required by the constructor only; signing goes through the IAM signer
        return service_account.Credentials(
            signer=signer,
            service_account_email=service_account_email,
            token_uri="https://oauth2.googleapis.com/token",
        )

    def generate_upload_url(self, video_id: str, expires_at: datetime) -> str:
        """Generate V4 signed URL for a direct PUT of the video bytes."""
        bucket = self._get_bucket()
        blob = bucket.blob(self.get_object_key(video_id))

        signing_creds = self._signing_credentials()
        return blob.generate_signed_url(
            version="v4",
            expiration=expires_at,
            method="PUT",
            credentials=signing_creds,
            service_account_email=signing_creds.service_account_email,
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type(GoogleAPIError),
        reraise=True,
    )
    def object_exists(self, object_key: str) -> bool:
        """Check if the object exists in GCS."""
        bucket = self._get_bucket()
        return bucket.blob(object_key).exists()

    def get_backend_name(self) -> str:
        return "gcs"


# Singleton instance
gcs_backend = GCSStorageBackend()
