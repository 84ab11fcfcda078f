"""Custom Exceptions for the SubStudio application."""

from typing import Any, Dict, Optional


class SubStudioError(Exception):
    """Base class for exceptions in this package.

    Carries an HTTP status code so the web layer can turn any of these into
    the ``{error, details?, suggestion?}`` payload without a lookup table.
    """
    status_code = 500

    def __init__(self, message: str, details: Optional[str] = None, suggestion: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.details = details
        self.suggestion = suggestion

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"error": self.message}
        if self.details:
            payload["details"] = self.details
        if self.suggestion:
            payload["suggestion"] = self.suggestion
        return payload


class ConfigurationError(SubStudioError):
    """Exception raised for missing or invalid configuration (API keys, config file)."""
    pass


class InputValidationError(SubStudioError):
    """Exception raised when a request is rejected before any network call."""
    status_code = 400


class UnsupportedMediaError(InputValidationError):
    """Exception raised for files outside the video/audio allow-lists."""
    pass


class FileTooLargeError(InputValidationError):
    """Exception raised for files above the size ceiling."""
    status_code = 413


class TranscriptionError(SubStudioError):
    """Exception raised for errors during transcription."""
    pass


class TranslationError(SubStudioError):
    """Exception raised for errors during translation."""
    pass


class UploadError(SubStudioError):
    """Exception raised when a file cannot be stored or uploaded."""
    pass


class UploadAuthError(UploadError):
    """Exception raised for a missing, expired or forged upload token."""
    status_code = 403


class StorageUnavailableError(UploadError):
    """Exception raised when blob storage is not configured."""
    status_code = 503


class AudioExtractionError(SubStudioError):
    """Exception raised for errors during audio extraction."""
    pass


class FormattingError(SubStudioError):
    """Exception raised for errors during subtitle formatting."""
    pass


class FileSystemError(SubStudioError):
    """Exception raised for file system related errors (permissions, not found etc)."""
    pass


class SessionBusyError(SubStudioError):
    """Exception raised when a session operation starts while another is running."""
    status_code = 409
