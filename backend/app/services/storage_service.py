"""
Storage Service - Handles image storage in S3
With retry logic for resilient operations and configurable deletion strategies
"""

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError, BotoCoreError
from typing import Optional, Dict
from pathlib import PurePosixPath
import asyncio
import secrets
import time
from functools import wraps

from app.core.config import settings
from app.core.exceptions import S3UploadError, S3DeleteError, StorageError
from app.core.logging_config import logger

DELETION_STRATEGIES = ("soft", "move", "hard")
ENVIRONMENT_PREFIXES = ("dev/", "prod/", "test/")
DELETED_FOLDER = "deleted/"


def retry_with_backoff(max_retries: int = 3, base_delay: float = 1.0, max_delay: float = 30.0):
    """
    Decorator for retry logic with exponential backoff.

    Args:
        max_retries: Maximum number of retry attempts
        base_delay: Initial delay in seconds
        max_delay: Maximum delay cap in seconds
    """
    def decorator(func):
        @wraps(func)
        async def async_wrapper(*args, **kwargs):
            last_exception = None
            for attempt in range(max_retries):
                try:
                    return await func(*args, **kwargs)
                except (ClientError, ConnectionError, TimeoutError) as e:
                    last_exception = e
                    if attempt < max_retries - 1:
                        delay = min(base_delay * (2 ** attempt), max_delay)
                        logger.warning(f"[S3-Retry] Attempt {attempt + 1}/{max_retries} failed: {e}. Retrying in {delay:.1f}s...")
                        await asyncio.sleep(delay)
                    else:
                        logger.error(f"[S3-Retry] All {max_retries} attempts failed: {e}")
            raise last_exception
        return async_wrapper
    return decorator


class StorageService:
    """
    S3 storage for entity images.

    Keys follow `{S3_PREFIX}{base_folder}/{entity_id}/{timestamp_ms}-{hex16}{ext}`.
    Deleting an object follows one of three strategies:
    - soft: leave the object in place (the database row is soft-deleted)
    - move: copy to the `deleted/` folder, then remove the original
    - hard: remove the object
    """

    def __init__(self):
        self._client = None
        self._bucket_name = settings.effective_bucket_name
        self._region = settings.AWS_REGION

    @property
    def bucket_name(self) -> str:
        return self._bucket_name

    @property
    def region(self) -> str:
        return self._region

    def _get_client(self):
        """Lazy initialization of the S3 client"""
        if self._client is None:
            kwargs = {
                "region_name": self._region,
                "config": Config(signature_version="s3v4", retries={"max_attempts": 2}),
            }
            if settings.S3_ENDPOINT_URL:
                kwargs["endpoint_url"] = settings.S3_ENDPOINT_URL

            # Explicit credentials for local dev, default credential chain otherwise
            if settings.AWS_ACCESS_KEY_ID and settings.AWS_SECRET_ACCESS_KEY:
                kwargs["aws_access_key_id"] = settings.AWS_ACCESS_KEY_ID
                kwargs["aws_secret_access_key"] = settings.AWS_SECRET_ACCESS_KEY
            else:
                logger.info("S3 client using default credential chain")

            self._client = boto3.client("s3", **kwargs)

        return self._client

    @staticmethod
    def build_key(base_folder: str, entity_id: str, original_name: str) -> str:
        """
        Generate a unique S3 key for an uploaded file.
        Format: {S3_PREFIX}{base_folder}/{entity_id}/{timestamp_ms}-{hex16}{ext}
        """
        extension = PurePosixPath(original_name or "").suffix.lower()
        timestamp = int(time.time() * 1000)
        unique = secrets.token_hex(8)
        return f"{settings.S3_PREFIX}{base_folder}/{entity_id}/{timestamp}-{unique}{extension}"

    @staticmethod
    def deleted_key_for(s3_key: str) -> str:
        """Destination of a moved object: `deleted/` under the environment prefix"""
        for prefix in ENVIRONMENT_PREFIXES:
            if s3_key.startswith(prefix):
                return f"{prefix}{DELETED_FOLDER}{s3_key[len(prefix):]}"
        return f"{DELETED_FOLDER}{s3_key}"

    async def upload_file(
        self,
        content: bytes,
        s3_key: str,
        content_type: str,
        metadata: Optional[Dict[str, str]] = None,
        max_retries: int = 3
    ) -> dict:
        """
        Upload a file to S3 with server-side encryption and retry logic.

        Returns:
            dict with s3_key, bucket, region, size_bytes, etag

        Retry behavior:
            - Retries on ClientError, ConnectionError, TimeoutError
            - Exponential backoff: 1s, 2s, 4s...
        """
        size_bytes = len(content)
        client = self._get_client()

        params = {
            "Bucket": self._bucket_name,
            "Key": s3_key,
            "Body": content,
            "ContentType": content_type,
            "Metadata": {k: str(v) for k, v in (metadata or {}).items()},
        }
        if settings.S3_ENCRYPTION_TYPE:
            params["ServerSideEncryption"] = settings.S3_ENCRYPTION_TYPE

        last_exception = None
        for attempt in range(max_retries):
            try:
                response = client.put_object(**params)
                logger.info(f"[S3-Upload] Uploaded: {s3_key} ({size_bytes} bytes)")
                return {
                    "s3_key": s3_key,
                    "bucket": self._bucket_name,
                    "region": self._region,
                    "size_bytes": size_bytes,
                    "etag": (response or {}).get("ETag", "").strip('"'),
                }
            except (ClientError, ConnectionError, TimeoutError) as e:
                last_exception = e
                if attempt < max_retries - 1:
                    delay = 1.0 * (2 ** attempt)
                    logger.warning(f"[S3-Upload] Attempt {attempt + 1}/{max_retries} failed for {s3_key}: {e}. Retrying in {delay:.1f}s...")
                    await asyncio.sleep(delay)
                else:
                    logger.error(f"[S3-Upload] All {max_retries} attempts failed for {s3_key}: {e}")
            except BotoCoreError as e:
                logger.error(f"[S3-Upload] Unexpected error uploading {s3_key}: {e}")
                raise S3UploadError(s3_key, str(e)) from e

        raise S3UploadError(s3_key, str(last_exception)) from last_exception

    @retry_with_backoff(max_retries=3)
    async def _move_object(self, s3_key: str, destination: str) -> None:
        client = self._get_client()
        copy_params = {
            "Bucket": self._bucket_name,
            "Key": destination,
            "CopySource": {"Bucket": self._bucket_name, "Key": s3_key},
        }
        if settings.S3_ENCRYPTION_TYPE:
            copy_params["ServerSideEncryption"] = settings.S3_ENCRYPTION_TYPE
        client.copy_object(**copy_params)
        client.delete_object(Bucket=self._bucket_name, Key=s3_key)

    @retry_with_backoff(max_retries=3)
    async def _delete_object(self, s3_key: str) -> None:
        self._get_client().delete_object(Bucket=self._bucket_name, Key=s3_key)

    async def delete_file(self, s3_key: str, strategy: Optional[str] = None) -> dict:
        """
        Remove an object according to the deletion strategy.

        Returns:
            dict with the applied strategy and the object's final location
            (None when the object no longer exists)
        """
        strategy = strategy or settings.S3_DELETION_STRATEGY
        if strategy not in DELETION_STRATEGIES:
            raise StorageError(f"Unknown deletion strategy: {strategy}", {"strategy": strategy})

        try:
            if strategy == "soft":
                location = s3_key
            elif strategy == "move":
                location = self.deleted_key_for(s3_key)
                await self._move_object(s3_key, location)
            else:
                location = None
                await self._delete_object(s3_key)
        except (ClientError, BotoCoreError, ConnectionError, TimeoutError) as e:
            raise S3DeleteError(s3_key, str(e)) from e

        logger.info(f"[S3-Delete] {strategy}: {s3_key} -> {location}")
        return {"strategy": strategy, "location": location}

    async def get_presigned_url(self, s3_key: str, expiration: Optional[int] = None) -> str:
        """Generate presigned URL for direct file download"""
        try:
            return self._get_client().generate_presigned_url(
                "get_object",
                Params={"Bucket": self._bucket_name, "Key": s3_key},
                ExpiresIn=expiration or settings.S3_PRESIGNED_URL_EXPIRES
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to generate presigned URL for {s3_key}: {e}")
            raise StorageError("Could not generate image URL", {"s3_key": s3_key}) from e


# Singleton instance
storage_service = StorageService()
