"""S3-compatible storage for rendered documents using MinIO.

Rendered artifacts are kept under ``rendered/<kind>/<document id>/<filename>``
so re-rendering a document replaces its previous artifact. Operations report
failures through result models instead of raising.

Based on MinIO Python SDK:
https://min.io/docs/minio/linux/developers/python/API.html
"""

import io
import logging
from datetime import timedelta

from minio import Minio
from minio.error import S3Error
from pydantic import BaseModel
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from services.shared.config import Settings

logger = logging.getLogger(__name__)

RENDERED_PREFIX = "rendered"


class StorageResult(BaseModel):
    """Result of storage operation.

    Attributes:
        success: Whether operation succeeded
        object_name: Full object path in storage
        bucket: Bucket name
        error: Error message if operation failed
        etag: Object ETag (hash) if available
        size: Object size in bytes if available
    """

    success: bool
    object_name: str | None = None
    bucket: str | None = None
    error: str | None = None
    etag: str | None = None
    size: int | None = None

    @property
    def path(self) -> str | None:
        """``bucket/object`` path of a stored object."""
        if not self.success or not self.object_name:
            return None
        return f"{self.bucket}/{self.object_name}"


class PresignedUrlResult(BaseModel):
    """Result of presigned URL generation."""

    success: bool
    url: str | None = None
    expires_in_seconds: int | None = None
    error: str | None = None


def rendered_object_name(kind: str, document_id: str, filename: str) -> str:
    """Object name for a rendered document artifact."""
    return f"{RENDERED_PREFIX}/{kind}/{document_id}/{filename}"


def _describe(error: Exception) -> str:
    if isinstance(error, S3Error):
        return f"S3 error: {error.code} - {error.message}"
    return str(error)


class StorageService:
    """Object storage for rendered invoices and receipts."""

    def __init__(self, settings: Settings, client: Minio | None = None) -> None:
        """Initialize storage service.

        Args:
            settings: Application settings with storage configuration
            client: Optional preconfigured MinIO client
        """
        self.settings = settings
        self._client = client
        self._known_buckets: set[str] = set()

    def _get_client(self) -> Minio:
        """Get or lazily create the MinIO client.

        Raises:
            ValueError: If storage credentials are not configured
        """
        if self._client is None:
            if not self.settings.storage_access_key:
                raise ValueError(
                    "Storage access key not configured. "
                    "Set APP_STORAGE_ACCESS_KEY environment variable."
                )
            if not self.settings.storage_secret_key:
                raise ValueError(
                    "Storage secret key not configured. "
                    "Set APP_STORAGE_SECRET_KEY environment variable."
                )
            self._client = Minio(
                endpoint=self.settings.storage_endpoint,
                access_key=self.settings.storage_access_key,
                secret_key=self.settings.storage_secret_key,
                secure=self.settings.storage_secure,
            )
            logger.info(f"MinIO client initialized for endpoint: {self.settings.storage_endpoint}")
        return self._client

    def is_available(self) -> bool:
        """Check if storage is enabled and credentials are set."""
        if not self.settings.storage_enabled:
            return False
        return bool(self.settings.storage_access_key and self.settings.storage_secret_key)

    def health_check(self) -> bool:
        """Check if the storage backend is reachable.

        Returns:
            True if MinIO responds to list_buckets
        """
        if not self.is_available():
            return False
        try:
            self._get_client().list_buckets()
            return True
        except Exception as e:
            logger.warning(f"Storage health check failed: {e}")
            return False

    def _ensure_bucket(self, bucket: str) -> None:
        if bucket in self._known_buckets:
            return
        client = self._get_client()
        if not client.bucket_exists(bucket):
            client.make_bucket(bucket)
            logger.info(f"Created bucket: {bucket}")
        self._known_buckets.add(bucket)

    @retry(
        retry=retry_if_exception_type(S3Error),
        stop=stop_after_attempt(3),
        wait=wait_exponential_jitter(initial=1, max=10),
        reraise=True,
    )
    def _put(self, bucket: str, object_name: str, data: bytes, content_type: str) -> str:
        self._ensure_bucket(bucket)
        result = self._get_client().put_object(
            bucket_name=bucket,
            object_name=object_name,
            data=io.BytesIO(data),
            length=len(data),
            content_type=content_type,
        )
        return result.etag

    def upload_bytes(
        self,
        data: bytes,
        object_name: str,
        content_type: str = "application/octet-stream",
        bucket: str | None = None,
    ) -> StorageResult:
        """Upload bytes to storage, retrying transient S3 errors.

        Args:
            data: Bytes to upload
            object_name: Target object name
            content_type: MIME type stored with the object
            bucket: Target bucket (defaults to settings.storage_bucket)

        Returns:
            StorageResult with upload details
        """
        bucket = bucket or self.settings.storage_bucket
        try:
            etag = self._put(bucket, object_name, data, content_type)
        except Exception as e:
            logger.error(f"Error uploading {object_name}: {e}")
            return StorageResult(
                success=False, object_name=object_name, bucket=bucket, error=_describe(e)
            )

        logger.info(f"Uploaded {object_name} to {bucket} ({len(data)} bytes)")
        return StorageResult(
            success=True, object_name=object_name, bucket=bucket, etag=etag, size=len(data)
        )

    def store_rendered(
        self, kind: str, document_id: str, filename: str, content: bytes, media_type: str
    ) -> StorageResult:
        """Store a complete rendered document.

        Args:
            kind: Document kind ('invoice' or 'receipt')
            document_id: Document identifier
            filename: Artifact filename
            content: Rendered bytes
            media_type: MIME type of the artifact

        Returns:
            StorageResult for the stored artifact
        """
        return self.upload_bytes(
            data=content,
            object_name=rendered_object_name(kind, document_id, filename),
            content_type=media_type,
        )

    def get_presigned_url(
        self,
        object_name: str,
        bucket: str | None = None,
        expires_seconds: int = 3600,
    ) -> PresignedUrlResult:
        """Generate a presigned download URL.

        Args:
            object_name: Object name in storage
            bucket: Bucket name (defaults to settings.storage_bucket)
            expires_seconds: URL lifetime in seconds

        Returns:
            PresignedUrlResult with URL or error
        """
        bucket = bucket or self.settings.storage_bucket
        try:
            url = self._get_client().presigned_get_object(
                bucket_name=bucket,
                object_name=object_name,
                expires=timedelta(seconds=expires_seconds),
            )
        except Exception as e:
            logger.error(f"Error generating presigned URL for {object_name}: {e}")
            return PresignedUrlResult(success=False, error=_describe(e))
        return PresignedUrlResult(success=True, url=url, expires_in_seconds=expires_seconds)
