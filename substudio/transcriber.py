"""Handles Speech-to-Text transcription through a hosted provider."""

import logging
import math
import mimetypes
import os
import tempfile
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Union
from urllib.parse import urlparse

import httpx

from .audio_extractor import AudioExtractor
from .exceptions import (
    AudioExtractionError,
    FileTooLargeError,
    SubStudioError,
    TranscriptionError,
)
from .media import MAX_UPLOAD_BYTES, detect_media_type, validate_media_file
from .models import MediaPayload, Segment, TranscriptionResult
from .translator import PROVIDER_CHATGPT, TranslationContext, TranslationOrchestrator, same_language
from .utils import ensure_dir_exists, remove_quietly, size_in_mb

logger = logging.getLogger(__name__)

DEFAULT_SEGMENT_CONFIDENCE = 0.9
DEFAULT_SEGMENT_SECONDS = 3.0
FAILURE_SUGGESTION = (
    "Try a smaller file or different format. For very large files, ensure stable internet connection."
)

# Languages the Whisper API accepts as an explicit hint (ISO-639-1).
SUPPORTED_LANGUAGES = frozenset([
    'af', 'ar', 'hy', 'az', 'be', 'bs', 'bg', 'ca', 'zh', 'hr', 'cs', 'da',
    'nl', 'en', 'et', 'fi', 'fr', 'gl', 'de', 'el', 'he', 'hi', 'hu', 'is',
    'id', 'it', 'ja', 'kn', 'kk', 'ko', 'lv', 'lt', 'mk', 'ms', 'ml', 'mt',
    'mi', 'mr', 'ne', 'no', 'fa', 'pl', 'pt', 'ro', 'ru', 'sr', 'sk', 'sl',
    'es', 'sw', 'sv', 'tl', 'ta', 'th', 'tr', 'uk', 'ur', 'vi', 'cy',
])


def language_hint(language: Optional[str]) -> Optional[str]:
    """Returns the language to forward to the provider, or None to let it detect."""
    if not language or language == "auto":
        return None
    return language if language in SUPPORTED_LANGUAGES else None


def _to_dict(response: Any) -> Dict[str, Any]:
    if isinstance(response, dict):
        return response
    if hasattr(response, "model_dump"):
        return response.model_dump()
    raise TranscriptionError("Unexpected transcription response", details=f"type {type(response).__name__}")


class Transcriber(ABC):
    """Abstract base class for transcription services."""

    @abstractmethod
    def transcribe(self, payload: MediaPayload, language: Optional[str] = None) -> Dict[str, Any]:
        """
        Transcribes the given media payload.

        Args:
            payload: The file contents and name.
            language: Optional ISO-639-1 hint; None lets the provider detect.

        Returns:
            The provider's verbose response as a mapping with ``segments``
            (each with ``start``, ``end``, ``text`` and optionally
            ``avg_logprob``), ``duration`` and ``language``.

        Raises:
            Any provider exception; the orchestrator wraps it.
        """
        pass


class OpenAITranscriber(Transcriber):
    """Implements transcription with the OpenAI audio transcription API."""

    def __init__(self, client, temp_dir: str = "tmp", model: str = "whisper-1"):
        """
        Args:
            client: An ``openai.OpenAI`` instance.
            temp_dir: Scratch directory for the upload file the SDK streams from.
            model: Transcription model name.
        """
        self.client = client
        self.temp_dir = temp_dir
        self.model = model

    def transcribe(self, payload: MediaPayload, language: Optional[str] = None) -> Dict[str, Any]:
        ensure_dir_exists(self.temp_dir)
        suffix = os.path.splitext(payload.filename)[1] or ".mp3"
        fd, scratch_path = tempfile.mkstemp(prefix="whisper-audio-", suffix=suffix, dir=self.temp_dir)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(payload.data)

            params: Dict[str, Any] = {"model": self.model, "response_format": "verbose_json"}
            hint = language_hint(language)
            if hint:
                params["language"] = hint
                logger.info(f"Using language hint: {hint}")

            logger.info(f"Starting {self.model} transcription ({size_in_mb(payload.size):.1f}MB)")
            with open(scratch_path, "rb") as audio_file:
                response = self.client.audio.transcriptions.create(file=audio_file, **params)
        finally:
            remove_quietly(scratch_path)

        data = _to_dict(response)
        logger.info(f"Transcription completed: {len(data.get('segments') or [])} segments")
        return data


class TranscriptionOrchestrator:
    """
    Turns an uploaded file (inline bytes or a blob URL) into timed segments,
    optionally translating each one.
    """

    def __init__(
        self,
        transcriber: Transcriber,
        translation: Optional[TranslationOrchestrator] = None,
        http_client: Optional[httpx.Client] = None,
        audio_extractor: Optional[AudioExtractor] = None,
        temp_dir: str = "tmp",
        max_download_bytes: int = MAX_UPLOAD_BYTES,
    ):
        self.transcriber = transcriber
        self.translation = translation
        self.http_client = http_client
        self.audio_extractor = audio_extractor
        self.temp_dir = temp_dir
        self.max_download_bytes = max_download_bytes

    def _too_large(self, size: int) -> FileTooLargeError:
        return FileTooLargeError(
            f"File too large: {size_in_mb(size):.1f}MB. "
            f"Maximum size: {self.max_download_bytes // (1024 * 1024)}MB"
        )

    def download(self, url: str) -> MediaPayload:
        """
        Fetches a stored file fully into memory.

        Raises:
            FileTooLargeError: If the declared or received size exceeds the ceiling.
            TranscriptionError: On any transport or HTTP error.
        """
        if self.http_client is None:
            raise TranscriptionError("Blob download is not available", details="No HTTP client configured")
        logger.info(f"Downloading file from blob URL: {url}")
        try:
            with self.http_client.stream("GET", url) as response:
                response.raise_for_status()
                declared = int(response.headers.get("content-length") or 0)
                if declared > self.max_download_bytes:
                    raise self._too_large(declared)
                chunks = []
                received = 0
                for chunk in response.iter_bytes():
                    received += len(chunk)
                    if received > self.max_download_bytes:
                        raise self._too_large(received)
                    chunks.append(chunk)
                data = b"".join(chunks)
                content_type = response.headers.get("content-type")
        except httpx.HTTPError as e:
            raise TranscriptionError("Blob download failed", details=str(e), suggestion=FAILURE_SUGGESTION) from e

        filename = os.path.basename(urlparse(url).path) or "upload.bin"
        logger.info(f"Downloaded {filename}: {size_in_mb(len(data)):.1f}MB")
        return MediaPayload(data=data, filename=filename, content_type=content_type)

    def _maybe_extract_audio(self, payload: MediaPayload) -> MediaPayload:
        """Swaps a video payload for its audio track; any failure keeps the original."""
        if self.audio_extractor is None:
            return payload
        if detect_media_type(payload.filename, payload.content_type) != "video":
            return payload

        ensure_dir_exists(self.temp_dir)
        suffix = os.path.splitext(payload.filename)[1] or ".mp4"
        fd, video_path = tempfile.mkstemp(prefix="video-input-", suffix=suffix, dir=self.temp_dir)
        audio_path = None
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(payload.data)
            audio_path = self.audio_extractor.extract_audio(
                video_path, self.temp_dir, f"audio-output-{os.path.basename(video_path)}"
            )
            with open(audio_path, "rb") as f:
                audio = f.read()
            logger.info(f"Using extracted audio ({size_in_mb(len(audio)):.1f}MB) instead of video payload")
            base = os.path.splitext(payload.filename)[0]
            return MediaPayload(data=audio, filename=f"{base}.mp3", content_type="audio/mpeg")
        except (AudioExtractionError, OSError) as e:
            logger.warning(f"Audio extraction failed, sending original file: {e}")
            return payload
        finally:
            remove_quietly(video_path)
            remove_quietly(audio_path)

    def _build_segments(self, raw: Dict[str, Any]) -> List[Segment]:
        segments = []
        for i, item in enumerate(raw.get("segments") or []):
            text = (item.get("text") or "").strip()
            if not text:
                continue
            start = float(item.get("start") or 0)
            end = float(item.get("end") or start + DEFAULT_SEGMENT_SECONDS)
            avg_logprob = item.get("avg_logprob")
            confidence = (
                min(1.0, math.exp(avg_logprob)) if avg_logprob is not None else DEFAULT_SEGMENT_CONFIDENCE
            )
            segments.append(Segment(
                id=f"segment-{i}",
                start_time=start,
                end_time=end,
                text=text,
                confidence=confidence,
            ))
        return segments

    def _translate_segments(
        self,
        segments: List[Segment],
        target_language: str,
        source_language: Optional[str],
        provider: str,
    ) -> None:
        """Translates segments in order; one failure leaves that segment untranslated."""
        total = len(segments)
        for i, segment in enumerate(segments):
            context = TranslationContext(
                previous_segments=[segments[i - 1].text] if i > 0 else [],
                next_segments=[segments[i + 1].text] if i < total - 1 else [],
            )
            try:
                result = self.translation.translate(
                    segment.text,
                    target_language,
                    source_language=source_language,
                    context=context,
                    provider=provider,
                )
            except Exception as e:
                logger.error(f"Translation failed for segment {i + 1}/{total}: {e}")
                continue
            if result.failed:
                logger.warning(f"No translation for segment {i + 1}/{total}: {result.error}")
                continue
            segment.translation = result.translation
            segment.translation_confidence = result.confidence
            if result.cultural_adaptations:
                logger.info(f"Cultural adaptations in segment {i + 1}: {', '.join(result.cultural_adaptations)}")

    def wants_translation(self, language: Optional[str], target_language: Optional[str]) -> bool:
        if not target_language or target_language == "auto":
            return False
        return not same_language(language, target_language)

    def transcribe(
        self,
        source: Union[MediaPayload, str],
        language: Optional[str] = None,
        target_language: Optional[str] = None,
        provider: str = PROVIDER_CHATGPT,
    ) -> TranscriptionResult:
        """
        Transcribes a payload or blob URL and optionally translates every segment.

        Args:
            source: In-memory payload, or the URL of a previously stored blob.
            language: Source language hint, "auto" or None to detect.
            target_language: Translate segments into this language when it
                             differs from ``language``.
            provider: Translation chain to use for segment translation.

        Returns:
            The normalized TranscriptionResult.

        Raises:
            InputValidationError: For oversize downloads (before the provider call).
            ConfigurationError: If translation is requested but not configured.
            TranscriptionError: For every other failure of the request.
        """
        start = time.monotonic()
        translate = self.wants_translation(language, target_language)
        if translate and self.translation is not None:
            # Fail on a configuration problem before spending a transcription call.
            self.translation.strategies_for(provider)
        elif translate:
            logger.warning("Target language requested but no translation orchestrator configured.")
            translate = False

        try:
            payload = self.download(source) if isinstance(source, str) else source
            if not payload.data:
                raise TranscriptionError("Video transcription failed", details="Uploaded file is empty")
            file_size_mb = size_in_mb(payload.size)
            logger.info(f"Processing file: {file_size_mb:.1f}MB")
            if file_size_mb > 100:
                logger.warning(f"Large file detected: {file_size_mb:.1f}MB - processing may take several minutes")

            payload = self._maybe_extract_audio(payload)
            raw = self.transcriber.transcribe(payload, language)
            segments = self._build_segments(raw)
            if not segments:
                logger.warning("No segments found in transcription")

            if translate:
                logger.info(f"Translating {len(segments)} segments to {target_language}")
                self._translate_segments(segments, target_language, language, provider)
        except SubStudioError as e:
            if isinstance(e, TranscriptionError) and not e.suggestion:
                e.suggestion = FAILURE_SUGGESTION
            logger.error(f"Transcription failed after {time.monotonic() - start:.1f}s: {e.message} {e.details or ''}")
            raise
        except Exception as e:
            logger.error(f"Transcription failed after {time.monotonic() - start:.1f}s: {e}", exc_info=True)
            raise TranscriptionError(
                "Video transcription failed", details=str(e), suggestion=FAILURE_SUGGESTION
            ) from e

        elapsed = round(time.monotonic() - start, 1)
        logger.info(f"Processing completed in {elapsed}s: {len(segments)} segments generated")
        return TranscriptionResult(
            language=raw.get("language") or language or "unknown",
            segments=segments,
            duration=float(raw.get("duration") or 0),
            processing_time_seconds=elapsed,
            file_size_mb=round(file_size_mb, 1),
        )

    def transcribe_file(
        self,
        path: str,
        language: Optional[str] = None,
        target_language: Optional[str] = None,
        provider: str = PROVIDER_CHATGPT,
    ) -> TranscriptionResult:
        """Validates a local file and transcribes it."""
        validate_media_file(path, client_limits=False)
        with open(path, "rb") as f:
            data = f.read()
        content_type = mimetypes.guess_type(path)[0]
        payload = MediaPayload(data=data, filename=os.path.basename(path), content_type=content_type)
        return self.transcribe(payload, language, target_language, provider)
