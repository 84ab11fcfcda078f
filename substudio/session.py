"""In-memory subtitle editing session."""

import logging
import time
from contextlib import contextmanager
from dataclasses import fields
from typing import Dict, Iterable, Iterator, List, Optional

from .exceptions import SessionBusyError
from .models import Segment, TranslationResult
from .subtitle_formatter import SRTFormatter, SubtitleFormatter

logger = logging.getLogger(__name__)

DEFAULT_NEW_TEXT = "New subtitle text"
EDITABLE_FIELDS = frozenset(f.name for f in fields(Segment)) - {"id"}


class SubtitleSession:
    """
    The segments a user is editing, in insertion order.

    Nothing here is persisted. Times are not sorted or validated: a segment
    may end before it starts if that is what the user typed.
    """

    def __init__(self, formatter: Optional[SubtitleFormatter] = None, bilingual: bool = False):
        self.segments: List[Segment] = []
        self.bilingual = bilingual
        self.formatter = formatter or SRTFormatter()
        self._active_operation: Optional[str] = None
        self._last_id = 0

    def __len__(self) -> int:
        return len(self.segments)

    def __iter__(self) -> Iterator[Segment]:
        return iter(self.segments)

    @property
    def has_translations(self) -> bool:
        return any(s.translation for s in self.segments)

    @property
    def active_operation(self) -> Optional[str]:
        return self._active_operation

    def _new_id(self) -> str:
        # Millisecond clock, bumped on collision: unique within this session only.
        candidate = int(time.time() * 1000)
        if candidate <= self._last_id:
            candidate = self._last_id + 1
        self._last_id = candidate
        return str(candidate)

    def get(self, segment_id: str) -> Segment:
        for segment in self.segments:
            if segment.id == segment_id:
                return segment
        raise KeyError(segment_id)

    def add(self, text: str = DEFAULT_NEW_TEXT, start_time: float = 0.0, end_time: float = 3.0) -> Segment:
        segment = Segment(id=self._new_id(), start_time=start_time, end_time=end_time, text=text)
        self.segments.append(segment)
        return segment

    def update(self, segment_id: str, **changes) -> Segment:
        """
        Edits fields of one segment in place. Values are not checked.

        Raises:
            KeyError: Unknown segment id.
            AttributeError: Unknown or read-only field name.
        """
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise AttributeError(f"Cannot edit segment field(s): {', '.join(sorted(unknown))}")
        segment = self.get(segment_id)
        for name, value in changes.items():
            setattr(segment, name, value)
        return segment

    def delete(self, segment_id: str) -> bool:
        before = len(self.segments)
        self.segments = [s for s in self.segments if s.id != segment_id]
        return len(self.segments) != before

    def clear(self) -> None:
        self.segments = []

    def load(self, segments: Iterable[Segment]) -> None:
        """Replaces all segments, e.g. with a fresh transcription."""
        self.segments = list(segments)
        if self.has_translations:
            self.bilingual = True

    def apply_translations(self, translations: Dict[str, TranslationResult]) -> int:
        """
        Merges translations keyed by segment id.

        Matching by id, not position, keeps edits made while the request was in
        flight: segments deleted meanwhile are skipped, reordered ones still get
        their own text.

        Returns:
            Number of segments updated.
        """
        updated = 0
        for segment in self.segments:
            result = translations.get(segment.id)
            if result is None or result.failed:
                continue
            segment.translation = result.translation
            segment.translation_confidence = result.confidence
            updated += 1
        skipped = len(translations) - updated
        if skipped:
            logger.debug(f"{skipped} translation(s) not applied (segment gone or translation failed)")
        return updated

    @contextmanager
    def busy(self, operation: str) -> Iterator[None]:
        """Marks a long-running operation; a second one cannot start meanwhile."""
        if self._active_operation is not None:
            raise SessionBusyError(
                f"Cannot start {operation} while {self._active_operation} is in progress"
            )
        self._active_operation = operation
        try:
            yield
        finally:
            self._active_operation = None

    def export_srt(self, bilingual: Optional[bool] = None) -> str:
        return self.formatter.format_segments(
            self.segments, self.bilingual if bilingual is None else bilingual
        )

    def export_to_file(self, output_path: str, bilingual: Optional[bool] = None) -> None:
        self.formatter.write(self.segments, output_path, self.bilingual if bilingual is None else bilingual)
