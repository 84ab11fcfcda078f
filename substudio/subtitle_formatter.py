"""Handles formatting subtitle segments into subtitle files (SRT)."""

import logging
from abc import ABC, abstractmethod
from typing import Iterable

from .models import Segment
from .exceptions import FormattingError
from .utils import format_time_srt

logger = logging.getLogger(__name__)


def segment_content(segment: Segment, bilingual: bool) -> str:
    """Text shown for a segment: both languages, the translation, or the original."""
    if segment.translation:
        if bilingual:
            return f"{segment.text}\n{segment.translation}"
        return segment.translation
    return segment.text


class SubtitleFormatter(ABC):
    """Abstract base class for subtitle formatters."""

    extension = ""

    @abstractmethod
    def format_segments(self, segments: Iterable[Segment], bilingual: bool = False) -> str:
        """
        Renders segments into the subtitle file format.

        Args:
            segments: Segments in display order.
            bilingual: Show original text and translation together.

        Returns:
            The complete file contents.
        """
        pass

    def write(self, segments: Iterable[Segment], output_path: str, bilingual: bool = False) -> None:
        """
        Writes the formatted segments to ``output_path`` (UTF-8).

        Raises:
            FormattingError: If the file cannot be written.
        """
        content = self.format_segments(segments, bilingual)
        try:
            with open(output_path, 'w', encoding='utf-8') as f:
                f.write(content)
        except OSError as e:
            logger.error(f"Failed to write subtitle file to {output_path}: {e}", exc_info=True)
            raise FormattingError(f"Could not write subtitle file: {e}") from e
        logger.info(f"Wrote subtitles to {output_path}")


class SRTFormatter(SubtitleFormatter):
    """Formats subtitles into the SRT (SubRip Text) format."""

    extension = "srt"

    def format_segments(self, segments: Iterable[Segment], bilingual: bool = False) -> str:
        blocks = []
        for index, segment in enumerate(segments, start=1):
            if segment.end_time < segment.start_time:
                # Left as the user entered it; players usually skip such blocks.
                logger.warning(f"Subtitle {index} ends before it starts ({segment.start_time} > {segment.end_time})")
            blocks.append(
                f"{index}\n"
                f"{format_time_srt(segment.start_time)} --> {format_time_srt(segment.end_time)}\n"
                f"{segment_content(segment, bilingual)}\n\n"
            )
        return "".join(blocks)
