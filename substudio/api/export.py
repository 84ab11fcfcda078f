from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, ConfigDict, Field

from substudio.models import Segment
from substudio.subtitle_formatter import SRTFormatter


router = APIRouter(prefix="/api/export", tags=["export"])


class SegmentBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    text: str = ""
    start_time: float = Field(0.0, alias="startTime")
    end_time: float = Field(0.0, alias="endTime")
    translation: Optional[str] = None


class ExportRequest(BaseModel):
    segments: List[SegmentBody] = Field(default_factory=list)
    bilingual: bool = False


@router.post("", response_class=PlainTextResponse)
def export_srt(body: ExportRequest) -> PlainTextResponse:
    segments = [
        Segment(id=s.id, start_time=s.start_time, end_time=s.end_time, text=s.text, translation=s.translation)
        for s in body.segments
    ]
    content = SRTFormatter().format_segments(segments, bilingual=body.bilingual)
    return PlainTextResponse(
        content,
        media_type="text/plain; charset=utf-8",
        headers={"Content-Disposition": 'attachment; filename="subtitles.srt"'},
    )
