"""
Storage Service - blob storage for verification photos and phrase recordings

The store is opaque to the rest of the service: bytes go in, a URL comes out.
"""
import logging
import uuid
from typing import Dict

import httpx
from tenacity import RetryError, retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from ddride.config import settings
from ddride.errors import StorageError

logger = logging.getLogger(__name__)

EXTENSIONS: Dict[str, str] = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "audio/m4a": "m4a",
    "audio/mpeg": "mp3",
    "audio/wav": "wav",
}


class StorageService:
    """HTTP object store client (S3-compatible PUT)"""

    def _object_key(self, content_type: str) -> str:
        extension = EXTENSIONS.get(content_type, "bin")
        return f"{uuid.uuid4().hex}.{extension}"

    def _public_url(self, key: str) -> str:
        return f"{settings.BLOB_STORAGE_URL}/{settings.BLOB_STORAGE_BUCKET}/{key}"

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type((httpx.TimeoutException, httpx.TransportError))
    )
    def _put_object(self, key: str, data: bytes, content_type: str) -> None:
        headers = {"Content-Type": content_type}
        if settings.BLOB_STORAGE_TOKEN:
            headers["Authorization"] = f"Bearer {settings.BLOB_STORAGE_TOKEN}"

        with httpx.Client(timeout=settings.BLOB_STORAGE_TIMEOUT_SEC) as client:
            response = client.put(self._public_url(key), content=data, headers=headers)
            response.raise_for_status()

    def store(self, data: bytes, content_type: str) -> str:
        """
        Upload bytes and return their URL.

        Raises:
            StorageError: upload failed after retries
        """
        key = self._object_key(content_type)
        try:
            self._put_object(key, data, content_type)
        except (httpx.HTTPError, RetryError) as e:
            logger.error(f"Blob upload failed for {key}: {e}")
            raise StorageError("Failed to store uploaded file") from e

        logger.debug(f"Stored {len(data)} bytes at {key}")
        return self._public_url(key)


# Singleton instance
storage_service = StorageService()
