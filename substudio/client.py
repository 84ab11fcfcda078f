"""HTTP client for a running SubStudio server."""

import logging
import mimetypes
import os
from typing import Any, Dict, Optional, Sequence

import httpx

from .exceptions import TranscriptionError, TranslationError
from .media import INLINE_UPLOAD_LIMIT, validate_media_file
from .models import (
    BatchItemError,
    BatchItemResult,
    BatchTranslation,
    Segment,
    TranscriptionResult,
    TranslationResult,
)
from .translator import PROVIDER_CHATGPT
from .uploader import BlobUploader, raise_for_error

logger = logging.getLogger(__name__)


class SubStudioClient:
    """
    Talks to the SubStudio HTTP API the same way the editor UI does.

    Files above the inline limit are first uploaded to blob storage and
    transcribed by URL; smaller ones are sent as multipart form data.
    """

    def __init__(
        self,
        base_url: str,
        http_client: Optional[httpx.Client] = None,
        uploader: Optional[BlobUploader] = None,
        timeout: float = 300.0,
        inline_limit: int = INLINE_UPLOAD_LIMIT,
    ):
        self.base_url = base_url.rstrip("/")
        self.http_client = http_client or httpx.Client(timeout=timeout)
        self.uploader = uploader or BlobUploader(self.http_client, f"{self.base_url}/api/upload")
        self.inline_limit = inline_limit

    def close(self) -> None:
        self.http_client.close()

    def __enter__(self) -> "SubStudioClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _json(self, response: httpx.Response, error_cls) -> Dict[str, Any]:
        raise_for_error(response, error_cls)
        data = response.json()
        if not data.get("success"):
            raise error_cls(data.get("error") or "Request failed", details=data.get("details"))
        return data

    def transcribe_file(
        self,
        path: str,
        language: Optional[str] = None,
        target_language: Optional[str] = None,
        provider: str = PROVIDER_CHATGPT,
    ) -> TranscriptionResult:
        """
        Transcribes a local file on the server.

        Raises:
            InputValidationError: If the file fails the pre-check (no request is sent).
            UploadError: If the blob upload fails.
            TranscriptionError: For server-side transcription failures.
        """
        validate_media_file(path, client_limits=True)
        size = os.path.getsize(path)
        language = language if language and language != "auto" else None
        endpoint = f"{self.base_url}/api/transcribe"

        try:
            if size > self.inline_limit:
                blob_url = self.uploader.upload(path)
                body = {"blobUrl": blob_url, "provider": provider}
                if language:
                    body["language"] = language
                if target_language:
                    body["targetLanguage"] = target_language
                response = self.http_client.post(endpoint, json=body)
            else:
                form = {"provider": provider}
                if language:
                    form["language"] = language
                if target_language:
                    form["targetLanguage"] = target_language
                content_type = mimetypes.guess_type(path)[0] or "application/octet-stream"
                with open(path, "rb") as f:
                    response = self.http_client.post(
                        endpoint, data=form, files={"file": (os.path.basename(path), f, content_type)}
                    )
        except httpx.HTTPError as e:
            raise TranscriptionError("Transcription request failed", details=str(e)) from e

        data = self._json(response, TranscriptionError)
        return TranscriptionResult(
            language=data.get("language"),
            segments=[Segment.from_dict(s) for s in data.get("segments") or []],
            duration=float(data.get("duration") or 0),
            processing_time_seconds=float(data.get("processingTimeSeconds") or 0),
            file_size_mb=float(data.get("fileSizeMB") or 0),
        )

    def translate(
        self,
        text: str,
        target_language: str,
        source_language: Optional[str] = None,
        provider: str = PROVIDER_CHATGPT,
    ) -> TranslationResult:
        try:
            response = self.http_client.post(
                f"{self.base_url}/api/translate",
                json={
                    "text": text,
                    "sourceLanguage": source_language or "auto",
                    "targetLanguage": target_language,
                    "provider": provider,
                },
            )
        except httpx.HTTPError as e:
            raise TranslationError("Translation request failed", details=str(e)) from e
        data = self._json(response, TranslationError)
        return TranslationResult(
            translation=data["translatedText"],
            confidence=data["confidence"],
            cultural_adaptations=data.get("culturalAdaptations") or [],
            provider=data.get("provider"),
        )

    def translate_batch(
        self,
        texts: Sequence[str],
        target_language: str,
        source_language: Optional[str] = None,
        provider: str = PROVIDER_CHATGPT,
    ) -> BatchTranslation:
        try:
            response = self.http_client.put(
                f"{self.base_url}/api/translate",
                json={
                    "texts": list(texts),
                    "sourceLanguage": source_language or "auto",
                    "targetLanguage": target_language,
                    "provider": provider,
                },
            )
        except httpx.HTTPError as e:
            raise TranslationError("Batch translation request failed", details=str(e)) from e
        data = self._json(response, TranslationError)
        return BatchTranslation(
            results=[
                BatchItemResult(
                    index=r["index"],
                    success=r["success"],
                    translated_text=r["translatedText"],
                    confidence=r["confidence"],
                    cultural_adaptations=r.get("culturalAdaptations") or [],
                )
                for r in data.get("results") or []
            ],
            errors=[BatchItemError(index=e["index"], error=e["error"]) for e in data.get("errors") or []],
            provider=data.get("provider") or provider,
            processing_time_ms=int(data.get("processingTimeMs") or 0),
        )
