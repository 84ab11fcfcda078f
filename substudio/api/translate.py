from __future__ import annotations

import time
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from substudio.api.deps import get_services
from substudio.exceptions import InputValidationError
from substudio.services import Services
from substudio.translator import PROVIDER_CHATGPT, TranslationContext


router = APIRouter(prefix="/api/translate", tags=["translate"])


class ContextBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    previous_segments: List[str] = Field(default_factory=list, alias="previousSegments")
    next_segments: List[str] = Field(default_factory=list, alias="nextSegments")


class TranslateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    text: Optional[str] = None
    source_language: Optional[str] = Field(None, alias="sourceLanguage")
    target_language: Optional[str] = Field(None, alias="targetLanguage")
    provider: str = PROVIDER_CHATGPT
    context: Optional[ContextBody] = None


class BatchTranslateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    texts: Optional[List[str]] = None
    source_language: Optional[str] = Field(None, alias="sourceLanguage")
    target_language: Optional[str] = Field(None, alias="targetLanguage")
    provider: str = PROVIDER_CHATGPT


@router.post("")
def translate_text(body: TranslateRequest, services: Services = Depends(get_services)) -> Dict[str, Any]:
    if not body.text or not body.target_language:
        raise InputValidationError("Text and target language are required")

    start = time.monotonic()
    context = None
    if body.context is not None:
        context = TranslationContext(body.context.previous_segments, body.context.next_segments)
    result = services.translation.translate(
        body.text,
        body.target_language,
        source_language=body.source_language,
        context=context,
        provider=body.provider,
    )

    response: Dict[str, Any] = {
        # Exhausting every strategy still answers with the original text.
        "success": True,
        "translatedText": result.translation,
        "confidence": result.confidence,
        "provider": result.provider or body.provider,
        "processingTime": int((time.monotonic() - start) * 1000),
    }
    if result.cultural_adaptations:
        response["culturalAdaptations"] = result.cultural_adaptations
    if result.error:
        response["warning"] = result.error
    return response


@router.put("")
def translate_batch(body: BatchTranslateRequest, services: Services = Depends(get_services)) -> Dict[str, Any]:
    if not body.texts:
        raise InputValidationError("Texts array is required for batch translation")
    if not body.target_language:
        raise InputValidationError("Target language is required")

    batch = services.translation.translate_batch(
        body.texts,
        body.target_language,
        source_language=body.source_language,
        provider=body.provider,
    )
    return {
        "success": True,
        "results": [r.to_dict() for r in batch.results],
        "errors": [e.to_dict() for e in batch.errors],
        "totalProcessed": batch.total_processed,
        "successCount": batch.success_count,
        "errorCount": batch.error_count,
        "processingTimeMs": batch.processing_time_ms,
        "provider": batch.provider,
    }
