"""Data models for SubStudio."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class Segment:
    """A single timed subtitle entry, editable by the user."""
    id: str
    start_time: float
    end_time: float
    text: str
    translation: Optional[str] = None
    confidence: Optional[float] = None
    translation_confidence: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        """Wire representation (camelCase, optional fields omitted when unset)."""
        data: Dict[str, Any] = {
            "id": self.id,
            "text": self.text,
            "startTime": self.start_time,
            "endTime": self.end_time,
        }
        if self.translation is not None:
            data["translation"] = self.translation
        if self.translation_confidence is not None:
            data["translationConfidence"] = self.translation_confidence
        if self.confidence is not None:
            data["confidence"] = self.confidence
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Segment":
        return cls(
            id=str(data["id"]),
            start_time=float(data.get("startTime") or 0),
            end_time=float(data.get("endTime") or 0),
            text=data.get("text") or "",
            translation=data.get("translation"),
            confidence=data.get("confidence"),
            translation_confidence=data.get("translationConfidence"),
        )


@dataclass
class TranslationResult:
    """Outcome of one translation call. Never raised, always returned."""
    translation: str
    confidence: float
    cultural_adaptations: List[str] = field(default_factory=list)
    provider: Optional[str] = None
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.provider is None


@dataclass
class BatchItemResult:
    index: int
    success: bool
    translated_text: str
    confidence: float
    cultural_adaptations: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "index": self.index,
            "success": self.success,
            "translatedText": self.translated_text,
            "confidence": self.confidence,
        }
        if self.cultural_adaptations:
            data["culturalAdaptations"] = self.cultural_adaptations
        return data


@dataclass
class BatchItemError:
    index: int
    error: str

    def to_dict(self) -> Dict[str, Any]:
        return {"index": self.index, "error": self.error}


@dataclass
class BatchTranslation:
    """Positional batch results: ``results[i]`` always belongs to ``texts[i]``."""
    results: List[BatchItemResult]
    errors: List[BatchItemError]
    provider: str
    processing_time_ms: int = 0

    @property
    def total_processed(self) -> int:
        return len(self.results)

    @property
    def success_count(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def error_count(self) -> int:
        return len(self.errors)


@dataclass
class TranscriptionResult:
    """Holds the normalized output of the speech-to-text provider."""
    language: Optional[str]
    segments: List[Segment] = field(default_factory=list)
    duration: float = 0.0
    processing_time_seconds: float = 0.0
    file_size_mb: float = 0.0


@dataclass
class MediaPayload:
    """An uploaded file held in memory."""
    data: bytes
    filename: str = "upload.bin"
    content_type: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class StoredBlob:
    """A file persisted in blob storage, fetchable through ``url``."""
    url: str
    pathname: str
    size: int
    content_type: Optional[str]
    filename: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": True,
            "url": self.url,
            "size": self.size,
            "type": self.content_type,
            "filename": self.filename,
        }
