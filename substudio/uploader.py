"""Client-side upload of large media files to blob storage."""

import logging
import mimetypes
import os
from typing import Type

import httpx

from .exceptions import (
    FileTooLargeError,
    InputValidationError,
    StorageUnavailableError,
    SubStudioError,
    UploadAuthError,
    UploadError,
)
from .media import validate_media_file
from .utils import size_in_mb

logger = logging.getLogger(__name__)

_STATUS_ERRORS = {
    400: InputValidationError,
    403: UploadAuthError,
    413: FileTooLargeError,
    503: StorageUnavailableError,
}


def raise_for_error(response: httpx.Response, default: Type[SubStudioError]) -> None:
    """Raises the SubStudioError matching an error response; no-op for 2xx."""
    if response.is_success:
        return
    try:
        payload = response.json()
    except ValueError:
        payload = {}
    if not isinstance(payload, dict):
        payload = {}
    error_cls = _STATUS_ERRORS.get(response.status_code, default)
    raise error_cls(
        payload.get("error") or f"Server error: {response.status_code}",
        details=payload.get("details"),
        suggestion=payload.get("suggestion"),
    )


class BlobUploader:
    """Uploads a file through the server's token exchange and returns its URL."""

    def __init__(self, http_client: httpx.Client, upload_endpoint: str):
        """
        Args:
            http_client: Client used for both the token request and the PUT.
            upload_endpoint: Absolute URL of the server's ``/api/upload``.
        """
        self.http_client = http_client
        self.upload_endpoint = upload_endpoint

    def upload(self, path: str) -> str:
        """
        Uploads ``path`` in a single attempt.

        Returns:
            The public URL of the stored file.

        Raises:
            InputValidationError: If the file fails the client-side pre-check.
            UploadError: On network, auth or storage failure. A partially
                         uploaded object is not cleaned up.
        """
        validate_media_file(path, client_limits=True)
        filename = os.path.basename(path)
        size = os.path.getsize(path)
        content_type = mimetypes.guess_type(path)[0] or "application/octet-stream"
        logger.info(f"Starting blob upload for {filename} ({size_in_mb(size):.1f}MB)")

        try:
            response = self.http_client.post(
                self.upload_endpoint,
                json={
                    "type": "blob.generate-client-token",
                    "payload": {"pathname": filename, "contentType": content_type, "size": size},
                },
            )
            raise_for_error(response, UploadError)
            upload_url = response.json()["uploadUrl"]

            with open(path, "rb") as f:
                response = self.http_client.put(upload_url, content=f, headers={"content-type": content_type})
            raise_for_error(response, UploadError)
            url = response.json()["url"]
        except SubStudioError as e:
            logger.error(f"Blob upload failed: {e.message}")
            raise
        except (httpx.HTTPError, KeyError, ValueError) as e:
            logger.error(f"Blob upload failed: {e}")
            raise UploadError(f"Blob upload failed: {e}") from e

        logger.info(f"Blob upload completed: {url}")
        return url
