"""Blob storage for large uploads.

Files land in a local directory and are served back over HTTP, so the
transcription endpoint can be handed a URL instead of a request body.
Clients that upload directly first exchange file metadata for a signed,
short-lived token, then PUT the bytes with that token.
"""

import base64
import hashlib
import hmac
import json
import logging
import os
import re
import time
import uuid
from typing import BinaryIO, Dict, Optional, Union

from .exceptions import InputValidationError, StorageUnavailableError, UploadAuthError, UploadError
from .media import MAX_UPLOAD_BYTES
from .models import StoredBlob
from .utils import ensure_dir_exists

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")
CHUNK_SIZE = 1024 * 1024


def safe_filename(filename: str) -> str:
    name = _UNSAFE_CHARS.sub("-", os.path.basename(filename or "")).strip(".-")
    return name or "upload.bin"


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def _b64decode(text: str) -> bytes:
    return base64.urlsafe_b64decode(text + "=" * (-len(text) % 4))


class BlobStore:
    """Stores uploaded files and hands out public URLs for them."""

    def __init__(
        self,
        root_dir: str,
        public_base_url: str,
        secret: Optional[str] = None,
        token_ttl_seconds: int = 3600,
        max_bytes: int = MAX_UPLOAD_BYTES,
    ):
        self.root_dir = root_dir
        self.public_base_url = public_base_url.rstrip("/")
        self.secret = secret
        self.token_ttl_seconds = token_ttl_seconds
        self.max_bytes = max_bytes

    def url_for(self, pathname: str) -> str:
        return f"{self.public_base_url}/api/blobs/{pathname}"

    def new_pathname(self, filename: str) -> str:
        return f"{uuid.uuid4().hex[:12]}-{safe_filename(filename)}"

    def path_for(self, pathname: str) -> str:
        """Resolves a pathname inside the storage root, rejecting traversal."""
        if pathname != safe_filename(pathname):
            raise InputValidationError(f"Invalid blob pathname: {pathname}")
        return os.path.join(self.root_dir, pathname)

    def exists(self, pathname: str) -> bool:
        return os.path.isfile(self.path_for(pathname))

    def pathname_from_url(self, url: str) -> Optional[str]:
        """Returns the pathname when ``url`` points into this store, else None."""
        prefix = self.url_for("")
        if not url.startswith(prefix):
            return None
        pathname = url[len(prefix):].split("?", 1)[0]
        return pathname if pathname and pathname == safe_filename(pathname) else None

    def read(self, pathname: str) -> bytes:
        with open(self.path_for(pathname), "rb") as f:
            return f.read()

    def put(
        self,
        filename: str,
        data: Union[bytes, BinaryIO],
        content_type: Optional[str] = None,
        pathname: Optional[str] = None,
    ) -> StoredBlob:
        """
        Persists bytes (or a readable stream) and returns the stored blob.

        Raises:
            UploadError: If the file cannot be written or exceeds ``max_bytes``
                         while streaming. A partial file is removed.
        """
        pathname = pathname or self.new_pathname(filename)
        path = self.path_for(pathname)
        try:
            ensure_dir_exists(self.root_dir)
            size = 0
            with open(path, "wb") as f:
                if isinstance(data, (bytes, bytearray)):
                    f.write(data)
                    size = len(data)
                else:
                    for chunk in iter(lambda: data.read(CHUNK_SIZE), b""):
                        size += len(chunk)
                        if size > self.max_bytes:
                            raise UploadError(
                                "Upload exceeds the maximum size",
                                suggestion="Try a smaller file.",
                            )
                        f.write(chunk)
        except UploadError:
            self.delete(pathname)
            raise
        except OSError as e:
            logger.error(f"Failed to store blob {pathname}: {e}", exc_info=True)
            self.delete(pathname)
            raise UploadError("Upload failed", details=str(e)) from e

        blob = StoredBlob(
            url=self.url_for(pathname),
            pathname=pathname,
            size=size,
            content_type=content_type,
            filename=os.path.basename(filename or pathname),
        )
        logger.info(f"Stored blob {pathname} ({size} bytes)")
        return blob

    def delete(self, pathname: str) -> bool:
        path = self.path_for(pathname)
        if not os.path.exists(path):
            return False
        try:
            os.remove(path)
            return True
        except OSError as e:
            logger.warning(f"Could not remove blob {pathname}: {e}")
            return False

    def _sign(self, body: str) -> str:
        return _b64encode(hmac.new(self.secret.encode("utf-8"), body.encode("utf-8"), hashlib.sha256).digest())

    def issue_token(self, pathname: str, content_type: Optional[str], size: int) -> str:
        """
        Creates a client upload token bound to one pathname.

        Raises:
            StorageUnavailableError: If no signing secret is configured.
        """
        if not self.secret:
            raise StorageUnavailableError(
                "Upload storage not configured",
                details="Set SUBSTUDIO_UPLOAD_SECRET to enable direct uploads",
            )
        claims = {
            "pathname": pathname,
            "contentType": content_type,
            "maxSize": min(size, self.max_bytes) if size else self.max_bytes,
            "exp": int(time.time()) + self.token_ttl_seconds,
        }
        body = _b64encode(json.dumps(claims, sort_keys=True).encode("utf-8"))
        return f"{body}.{self._sign(body)}"

    def verify_token(self, token: Optional[str], pathname: str) -> Dict:
        """
        Checks signature, expiry and pathname of an upload token.

        Returns:
            The token claims.

        Raises:
            StorageUnavailableError: If no signing secret is configured.
            UploadAuthError: If the token is missing, malformed, forged or expired.
        """
        if not self.secret:
            raise StorageUnavailableError("Upload storage not configured")
        if not token or "." not in token:
            raise UploadAuthError("Missing or malformed upload token")
        body, signature = token.rsplit(".", 1)
        if not hmac.compare_digest(signature.encode("utf-8"), self._sign(body).encode("utf-8")):
            raise UploadAuthError("Invalid upload token")
        try:
            claims = json.loads(_b64decode(body))
        except ValueError as e:
            raise UploadAuthError("Invalid upload token") from e
        if claims.get("pathname") != pathname:
            raise UploadAuthError("Upload token does not match this pathname")
        if int(claims.get("exp", 0)) < time.time():
            raise UploadAuthError("Upload token expired", suggestion="Request a new upload token and retry.")
        return claims
