"""File type and size checks applied before any upload or provider call."""

import logging
import os
from typing import Optional

from .exceptions import FileTooLargeError, UnsupportedMediaError
from .utils import BYTES_PER_MB, size_in_mb

logger = logging.getLogger(__name__)

VIDEO_EXTENSIONS = ('.mp4', '.avi', '.mov', '.mkv', '.webm', '.wmv', '.flv', '.m4v', '.3gp', '.ogv')
VIDEO_MIME_TYPES = (
    'video/mp4', 'video/avi', 'video/quicktime', 'video/x-msvideo',
    'video/x-matroska', 'video/webm', 'video/x-ms-wmv', 'video/x-flv',
    'video/x-m4v', 'video/3gpp', 'video/ogg',
)
AUDIO_EXTENSIONS = ('.mp3', '.wav', '.flac', '.aac', '.ogg', '.m4a', '.wma', '.opus', '.aiff')
AUDIO_MIME_TYPES = (
    'audio/mpeg', 'audio/wav', 'audio/flac', 'audio/aac',
    'audio/ogg', 'audio/x-m4a', 'audio/x-ms-wma', 'audio/opus',
    'audio/aiff', 'audio/x-aiff', 'audio/mp4',
)

MAX_UPLOAD_BYTES = 500 * BYTES_PER_MB
MAX_VIDEO_BYTES = 500 * BYTES_PER_MB
MAX_AUDIO_BYTES = 100 * BYTES_PER_MB
# Above this, clients go through blob storage instead of an inline request body.
INLINE_UPLOAD_LIMIT = 5 * BYTES_PER_MB

SUPPORTED_FORMATS_HINT = (
    "Supported formats: video (MP4, AVI, MOV, MKV, WebM, WMV, FLV, etc.), "
    "audio (MP3, WAV, FLAC, AAC, OGG, M4A, etc.)"
)


def _mime_matches(content_type: str, mime_types) -> bool:
    # Loose subtype match, so "video/mp4; codecs=..." and "audio/x-wav" style values pass.
    major = mime_types[0].split('/')[0]
    if not content_type.startswith(major + '/'):
        return False
    return any(mime.split('/')[1] in content_type for mime in mime_types)


def detect_media_type(filename: str, content_type: Optional[str] = None) -> Optional[str]:
    """Returns "video", "audio" or None. The extension wins over the MIME type."""
    name = (filename or "").lower()
    ctype = (content_type or "").lower()
    if name.endswith(VIDEO_EXTENSIONS):
        return "video"
    if name.endswith(AUDIO_EXTENSIONS):
        return "audio"
    if _mime_matches(ctype, VIDEO_MIME_TYPES):
        return "video"
    if _mime_matches(ctype, AUDIO_MIME_TYPES):
        return "audio"
    return None


def validate_media(filename: str, content_type: Optional[str], size: int, client_limits: bool = False) -> str:
    """
    Checks a file against the allow-lists and size ceilings.

    Args:
        filename: Original file name (extension is checked case-insensitively).
        content_type: MIME type reported by the client, may be None.
        size: Size in bytes.
        client_limits: Apply the stricter per-type ceilings (100 MB audio)
                       used before uploading, instead of the 500 MB server cap.

    Returns:
        "video" or "audio".

    Raises:
        UnsupportedMediaError: If the type is not on either allow-list.
        FileTooLargeError: If the size exceeds the applicable ceiling.
    """
    media_type = detect_media_type(filename, content_type)
    if media_type is None:
        raise UnsupportedMediaError(
            f"Unsupported file format: {os.path.basename(filename or '')}",
            suggestion=SUPPORTED_FORMATS_HINT,
        )

    if client_limits:
        limit = MAX_VIDEO_BYTES if media_type == "video" else MAX_AUDIO_BYTES
    else:
        limit = MAX_UPLOAD_BYTES
    if size > limit:
        raise FileTooLargeError(
            f"{media_type.capitalize()} file too large: {size_in_mb(size):.1f}MB. "
            f"Maximum size: {limit // BYTES_PER_MB}MB",
            suggestion="Try a smaller file or compress it before uploading.",
        )
    logger.debug(f"Validated {media_type} file {filename} ({size_in_mb(size):.1f}MB)")
    return media_type


def validate_media_file(path: str, client_limits: bool = True) -> str:
    """Validates a file on disk by name and size."""
    if not os.path.isfile(path):
        raise FileNotFoundError(f"Media file not found: {path}")
    return validate_media(path, None, os.path.getsize(path), client_limits=client_limits)
