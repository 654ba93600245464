"""
OpenBooks Backend — Image Upload Collaborators
==============================================

What:  Turn an uploaded image (filename, bytes, content type) into a durable
       URL that a post can reference.
How:   One abstract BlobUploader, two implementations:
       - LocalDiskUploader:  writes into UPLOAD_DIR with aiofiles, returns
                             "/uploads/<name>" (served by the app)
       - AzureBlobUploader:  uploads to an Azure Blob Storage container that
                             is created on first use with public blob read
                             access, returns the blob URL
Who:   Called by the POST /api/posts route, after the store confirmed the
       active user may upload and before the post is created.

Validation (both uploaders):
    - content must be non-empty and at most MAX_UPLOAD_SIZE bytes
    - content type must be image/*
"""

import logging
import re
import time
import uuid
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Union

import aiofiles
from azure.core.exceptions import ResourceExistsError
from azure.storage.blob import ContentSettings
from azure.storage.blob.aio import BlobServiceClient

from openbooks.config import Settings
from openbooks.exceptions import ConfigurationError, FileStorageError, ValidationError

logger = logging.getLogger(__name__)

UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9._-]+")


def sanitize_filename(name: str) -> str:
    return UNSAFE_CHARS.sub("_", name or "upload")


class BlobUploader(ABC):
    """Stores image bytes somewhere durable and returns a URL for them."""

    def __init__(self, max_size: int):
        self.max_size = max_size

    def validate(self, content: bytes, content_type: Optional[str]) -> None:
        """
        Reject empty, oversized and non-image uploads.

        Raises:
            ValidationError with field="image"
        """
        if not content:
            raise ValidationError(message="image file is required", field="image")
        if len(content) > self.max_size:
            max_mb = self.max_size / (1024 * 1024)
            raise ValidationError(
                message=f"Image exceeds maximum of {max_mb:.0f}MB.",
                field="image",
                context={"max_size": self.max_size, "actual_size": len(content)},
            )
        if content_type and not content_type.startswith("image/"):
            raise ValidationError(
                message=f"File content type '{content_type}' is not an image.",
                field="image",
                context={"content_type": content_type},
            )

    async def upload(
        self, filename: str, content: bytes, content_type: Optional[str]
    ) -> str:
        """Validate, store, and return the image URL."""
        self.validate(content, content_type)
        return await self._store(filename, content, content_type)

    @abstractmethod
    async def _store(
        self, filename: str, content: bytes, content_type: Optional[str]
    ) -> str:
        ...

    async def close(self) -> None:
        return None


class LocalDiskUploader(BlobUploader):
    """
    Writes uploads to a local directory.

    File names are "<epoch ms>_<8 hex>_<sanitized original name>", unique even
    for concurrent uploads of the same file.
    """

    def __init__(self, upload_dir: Union[str, Path], max_size: int, url_prefix: str = "/uploads"):
        super().__init__(max_size)
        self.upload_dir = Path(upload_dir).resolve()
        self.upload_dir.mkdir(parents=True, exist_ok=True)
        self.url_prefix = url_prefix.rstrip("/")
        logger.info("LocalDiskUploader initialized with upload_dir=%s", self.upload_dir)

    async def _store(
        self, filename: str, content: bytes, content_type: Optional[str]
    ) -> str:
        name = f"{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}_{sanitize_filename(filename)}"
        path = self.upload_dir / name
        try:
            async with aiofiles.open(path, "wb") as f:
                await f.write(content)
        except OSError as e:
            logger.error("Failed to store upload at %s: %s", path, str(e))
            raise FileStorageError(
                message="Failed to save uploaded image. Please try again.",
                context={"path": str(path), "os_error": str(e)},
            )
        logger.info("Upload stored: %s (%d bytes)", name, len(content))
        return f"{self.url_prefix}/{name}"


class AzureBlobUploader(BlobUploader):
    """
    Uploads to Azure Blob Storage.

    Env:
        AZURE_STORAGE_CONNECTION_STRING  (required)
        AZURE_BLOB_CONTAINER             (default: openbooks-media)
    """

    def __init__(self, connection_string: Optional[str], container_name: str, max_size: int):
        super().__init__(max_size)
        if not connection_string:
            raise ConfigurationError(
                message="Missing AZURE_STORAGE_CONNECTION_STRING",
                missing=["AZURE_STORAGE_CONNECTION_STRING"],
            )
        self._service = BlobServiceClient.from_connection_string(connection_string)
        self.container_name = container_name
        self._container = None

    async def _get_container(self):
        if self._container is None:
            container = self._service.get_container_client(self.container_name)
            try:
                await container.create_container(public_access="blob")
                logger.info("Created blob container %s", self.container_name)
            except ResourceExistsError:
                pass
            self._container = container
        return self._container

    async def _store(
        self, filename: str, content: bytes, content_type: Optional[str]
    ) -> str:
        container = await self._get_container()
        blob_name = sanitize_filename(f"{int(time.time() * 1000)}_{filename}")
        blob = container.get_blob_client(blob_name)
        await blob.upload_blob(
            content,
            overwrite=True,
            content_settings=ContentSettings(
                content_type=content_type or "application/octet-stream"
            ),
        )
        logger.info("Blob uploaded: %s (%d bytes)", blob_name, len(content))
        return blob.url

    async def close(self) -> None:
        await self._service.close()


def build_uploader(settings: Settings) -> BlobUploader:
    """Construct the configured uploader. Raises ConfigurationError when incomplete."""
    if settings.storage_provider == "azureblob":
        return AzureBlobUploader(
            connection_string=settings.azure_storage_connection_string,
            container_name=settings.azure_blob_container,
            max_size=settings.max_upload_size,
        )
    return LocalDiskUploader(settings.upload_dir, settings.max_upload_size)
