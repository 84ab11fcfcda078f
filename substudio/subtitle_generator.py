"""Orchestrates the subtitle generation pipeline for a single media file."""

import logging
import os
import time
from dataclasses import replace
from typing import Dict, Optional

from .exceptions import SubStudioError
from .media import validate_media_file
from .models import TranscriptionResult, TranslationResult
from .session import SubtitleSession
from .subtitle_formatter import SubtitleFormatter, SRTFormatter
from .translator import PROVIDER_CHATGPT
from .utils import ensure_dir_exists

logger = logging.getLogger(__name__)


class SubtitleGenerator:
    """
    Manages the end-to-end process of generating subtitles for a media file.

    ``transcriber`` is anything with ``transcribe_file(path, language,
    target_language, provider)`` and ``translator`` anything with
    ``translate_batch(texts, target_language, source_language, provider)``:
    the in-process orchestrators, or a SubStudioClient talking to a server.
    """

    def __init__(self, transcriber, translator, formatter: Optional[SubtitleFormatter] = None):
        """
        Initializes the SubtitleGenerator.

        Args:
            transcriber: Produces timed segments, optionally already translated.
            translator: Used for batch translation when the provider does not
                        translate during transcription.
            formatter: Subtitle formatter, SRT by default.
        """
        self.transcriber = transcriber
        self.translator = translator
        self.formatter = formatter or SRTFormatter()

    def _get_output_paths(self, media_path: str, output_dir: str, target_language: Optional[str]) -> Dict[str, str]:
        """Determines output filenames based on the media path."""
        base_name = os.path.splitext(os.path.basename(media_path))[0]
        ext = self.formatter.extension
        paths = {"original": os.path.join(output_dir, f"{base_name}.{ext}")}
        if target_language:
            paths["translated"] = os.path.join(output_dir, f"{base_name}.{target_language}.{ext}")
            paths["bilingual"] = os.path.join(output_dir, f"{base_name}.bilingual.{ext}")
        return paths

    def _translate_session(
        self,
        session: SubtitleSession,
        target_language: str,
        source_language: Optional[str],
        provider: str,
    ) -> None:
        segments = list(session)
        with session.busy("translation"):
            batch = self.translator.translate_batch(
                [s.text for s in segments], target_language, source_language, provider
            )
        translations: Dict[str, TranslationResult] = {}
        for item in batch.results:
            if item.success and item.index < len(segments):
                translations[segments[item.index].id] = TranslationResult(
                    translation=item.translated_text,
                    confidence=item.confidence,
                    cultural_adaptations=item.cultural_adaptations,
                    provider=batch.provider,
                )
        for error in batch.errors:
            logger.warning(f"Segment {error.index + 1} left untranslated: {error.error}")
        applied = session.apply_translations(translations)
        logger.info(f"Applied {applied}/{len(segments)} translations ({batch.provider})")

    def generate(
        self,
        media_path: str,
        output_dir: str,
        language: Optional[str] = None,
        target_language: Optional[str] = None,
        provider: str = PROVIDER_CHATGPT,
        bilingual: bool = False,
    ) -> Dict[str, str]:
        """
        Executes the full subtitle generation pipeline for a single file.

        Args:
            media_path: Path to the input video or audio file.
            output_dir: Directory to save the subtitle files.
            language: Spoken language, None to detect.
            target_language: Also produce a translated file in this language.
            provider: "chatgpt" translates during transcription with
                      neighbouring lines as context; "mymemory" translates
                      afterwards in one batch.
            bilingual: Also write a file with both languages per block.

        Returns:
            Mapping of "original" / "translated" / "bilingual" to written paths.

        Raises:
            SubStudioError: For any configuration or processing errors in the pipeline.
            FileNotFoundError: If the input file is not found.
        """
        start_time = time.time()
        logger.info(f"--- Starting subtitle generation for: {media_path} ---")
        validate_media_file(media_path, client_limits=False)
        ensure_dir_exists(output_dir)
        paths = self._get_output_paths(media_path, output_dir, target_language)
        session = SubtitleSession(formatter=self.formatter)

        try:
            inline = provider == PROVIDER_CHATGPT
            logger.info("Step 1: Transcribing...")
            with session.busy("transcription"):
                result: TranscriptionResult = self.transcriber.transcribe_file(
                    media_path, language, target_language if inline else None, provider
                )
            if not result.segments:
                raise SubStudioError("Transcription produced no segments. Cannot proceed.")
            session.load(result.segments)
            logger.info(f"Transcription complete ({result.language}). Found {len(session)} segments.")

            if target_language and not inline:
                logger.info(f"Step 2: Translating segments to {target_language} via {provider}...")
                self._translate_session(session, target_language, language, provider)

            logger.info(f"Step 3: Writing {self.formatter.extension.upper()} files...")
            written = {}
            originals = [replace(s, translation=None, translation_confidence=None) for s in session]
            self.formatter.write(originals, paths["original"])
            written["original"] = paths["original"]

            if target_language and session.has_translations:
                session.export_to_file(paths["translated"], bilingual=False)
                written["translated"] = paths["translated"]
                if bilingual:
                    session.export_to_file(paths["bilingual"], bilingual=True)
                    written["bilingual"] = paths["bilingual"]
            elif target_language:
                logger.warning("Translation resulted in no translated segments. Skipping translated subtitles.")

            logger.info(f"--- Subtitle generation completed in {time.time() - start_time:.2f} seconds ---")
            return written

        except SubStudioError as e:
            logger.error(f"Subtitle generation failed: {e}", exc_info=False)
            raise
        except Exception as e:
            logger.critical(f"An unexpected critical error occurred during subtitle generation: {e}", exc_info=True)
            raise SubStudioError(f"An unexpected critical error occurred: {e}") from e
