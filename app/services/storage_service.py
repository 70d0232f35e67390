"""
Google Cloud Storage service for uploaded files.

Used for identity documents attached to registrations. Files are validated
(size, extension), given a sanitized unique name under a folder prefix and
uploaded in one call; the returned ``public_id`` is the object path used to
delete the file later.
"""

import json
import logging
import mimetypes
import os
import re
from datetime import UTC, datetime
from pathlib import Path
from uuid import uuid4

from google.cloud import storage
from google.cloud.exceptions import GoogleCloudError, NotFound
from google.oauth2 import service_account

from app.core.config import Settings
from app.core.errors import InvalidInput, UpstreamError

logger = logging.getLogger(__name__)


def sanitize_filename(filename: str) -> str:
    """
    Make a filename storage-safe.

    Lowercases, replaces spaces with underscores and drops everything except
    letters, digits, underscores, hyphens and dots.
    """
    filename = filename.lower().replace(" ", "_")
    filename = re.sub(r"[^a-z0-9._-]", "", filename)
    filename = re.sub(r"_+", "_", filename)
    return filename.strip("_.")


class StorageService:
    """File hosting backed by a GCS bucket."""

    def __init__(self, settings: Settings, client: storage.Client | None = None):
        self.settings = settings
        self._client = client
        self._bucket = None

    @property
    def bucket(self):
        if self._bucket is None:
            client = self._client or self._build_client()
            self._bucket = client.bucket(self.settings.gcs_bucket_name)
            logger.info(f"Initialized StorageService for bucket: {self.settings.gcs_bucket_name}")
        return self._bucket

    def _build_client(self) -> storage.Client:
        creds_json = os.getenv("GCS_CREDENTIALS_JSON")
        try:
            if creds_json:
                credentials = service_account.Credentials.from_service_account_info(
                    json.loads(creds_json)
                )
                return storage.Client(project=self.settings.gcs_project_id, credentials=credentials)
            # Application Default Credentials
            return storage.Client(project=self.settings.gcs_project_id)
        except Exception as e:
            logger.error(f"Failed to initialize GCS client: {e}")
            raise UpstreamError("File storage is unavailable") from e

    def validate(self, data: bytes, filename: str) -> None:
        """
        Check size and extension.

        Raises:
            InvalidInput: If the file is empty, too large or of a disallowed type
        """
        if not data:
            raise InvalidInput("Uploaded file is empty")

        if len(data) > self.settings.max_file_size_bytes:
            raise InvalidInput(
                f"File size ({len(data) / 1024 / 1024:.2f}MB) exceeds maximum allowed size "
                f"({self.settings.max_file_size_mb}MB)"
            )

        ext = Path(filename).suffix.lower()
        if ext not in self.settings.allowed_image_extensions:
            raise InvalidInput(
                f"File type {ext or '(none)'} not allowed. Allowed types: "
                f"{', '.join(self.settings.allowed_image_extensions)}"
            )

    def upload(
        self,
        data: bytes,
        folder: str,
        filename: str = "upload",
        content_type: str | None = None,
    ) -> dict:
        """
        Upload bytes under ``folder``.

        Returns:
            {"url": public URL, "public_id": object path}

        Raises:
            InvalidInput: If validation fails
            UpstreamError: If the storage backend fails
        """
        self.validate(data, filename)

        ext = Path(filename).suffix.lower()
        stem = sanitize_filename(Path(filename).stem) or "file"
        public_id = f"{sanitize_filename(folder) or 'uploads'}/{stem}_{uuid4().hex[:8]}{ext}"
        content_type = content_type or mimetypes.guess_type(filename)[0] or "application/octet-stream"

        try:
            blob = self.bucket.blob(public_id)
            blob.metadata = {
                "original_filename": filename,
                "upload_date": datetime.now(UTC).isoformat(),
            }
            blob.upload_from_string(data, content_type=content_type)
        except GoogleCloudError as e:
            logger.error(f"GCS error uploading {public_id}: {e}")
            raise UpstreamError("Failed to upload file to cloud storage") from None

        logger.info(f"Uploaded {public_id} ({len(data)} bytes, {content_type})")
        return {"url": blob.public_url, "public_id": public_id}

    def delete(self, public_id: str) -> bool:
        """
        Delete an uploaded object.

        Returns:
            True if deleted, False if it did not exist
        """
        try:
            self.bucket.blob(public_id).delete()
        except NotFound:
            logger.warning(f"Tried to delete missing object {public_id}")
            return False
        except GoogleCloudError as e:
            logger.error(f"GCS error deleting {public_id}: {e}")
            raise UpstreamError("Failed to delete file from cloud storage") from None

        logger.info(f"Deleted {public_id}")
        return True
