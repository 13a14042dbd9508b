"""
Storage Service

S3-compatible object storage for inspection photos (MinIO in deployment).
"""

import io
import logging
import uuid
from datetime import datetime
from typing import Optional

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

from roomcheck.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()


class StorageService:
    """
    Opaque blob store.

    Photos go in under ``{category}/{YYYY/MM/DD}/{uuid}.jpg``; callers keep
    the returned key and never build paths themselves. Reference photos for
    comparison scoring live under ``{reference_photo_prefix}/{building}.jpg``.
    """

    def __init__(self):
        """Initialize S3 client."""
        endpoint_url = f"{'https' if settings.minio_secure else 'http'}://{settings.minio_endpoint}"

        self.client = boto3.client(
            "s3",
            endpoint_url=endpoint_url,
            aws_access_key_id=settings.minio_access_key,
            aws_secret_access_key=settings.minio_secret_key,
            config=Config(signature_version="s3v4"),
            region_name="us-east-1",  # Required for MinIO
        )
        self.bucket = settings.minio_bucket
        self._ensure_bucket()

    def _ensure_bucket(self):
        try:
            self.client.head_bucket(Bucket=self.bucket)
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code")
            if error_code in ("404", "NoSuchBucket"):
                logger.info("Creating bucket '%s'", self.bucket)
                self.client.create_bucket(Bucket=self.bucket)
            else:
                logger.error("Error checking bucket: %s", e)
                raise

    def store(self, data: bytes, category: str, content_type: str = "image/jpeg") -> str:
        """
        Store a blob.

        Args:
            data: File contents
            category: Top-level grouping, e.g. ``inspections``
            content_type: MIME type

        Returns:
            The object key
        """
        key = f"{category}/{datetime.utcnow():%Y/%m/%d}/{uuid.uuid4().hex}.jpg"
        try:
            self.client.upload_fileobj(
                io.BytesIO(data),
                self.bucket,
                key,
                ExtraArgs={"ContentType": content_type},
            )
            logger.info("Stored s3://%s/%s (%d bytes)", self.bucket, key, len(data))
            return key
        except ClientError as e:
            logger.error("Failed to store file: %s", e)
            raise

    def download(self, key: str) -> Optional[bytes]:
        """Fetch a blob, or None when it does not exist."""
        try:
            response = self.client.get_object(Bucket=self.bucket, Key=key)
            return response["Body"].read()
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code")
            if error_code in ("404", "NoSuchKey"):
                return None
            logger.error("Failed to download %s: %s", key, e)
            raise

    def delete(self, key: str) -> bool:
        """Delete a blob; False when the store refused."""
        try:
            self.client.delete_object(Bucket=self.bucket, Key=key)
            logger.info("Deleted s3://%s/%s", self.bucket, key)
            return True
        except ClientError as e:
            logger.error("Failed to delete %s: %s", key, e)
            return False

    def reference_photo(self, building: Optional[str]) -> Optional[bytes]:
        """Reference photo for a building, else the default one, else None."""
        prefix = settings.reference_photo_prefix
        candidates = [f"{prefix}/{building}.jpg"] if building else []
        candidates.append(f"{prefix}/default.jpg")
        for key in candidates:
            try:
                data = self.download(key)
            except ClientError:
                logger.warning("Reference photo lookup failed for %s", key)
                continue
            if data:
                logger.info("Using reference photo %s", key)
                return data
        return None

    def check_connection(self) -> bool:
        try:
            self.client.head_bucket(Bucket=self.bucket)
            return True
        except ClientError:
            return False


# Singleton instance
_storage_service: StorageService | None = None


def get_storage_service() -> StorageService:
    """Get or create storage service singleton."""
    global _storage_service
    if _storage_service is None:
        _storage_service = StorageService()
    return _storage_service
