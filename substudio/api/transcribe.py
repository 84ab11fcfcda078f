from __future__ import annotations

import logging
import time
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from starlette.datastructures import UploadFile

from substudio.api.deps import get_services
from substudio.exceptions import InputValidationError, TranscriptionError
from substudio.media import validate_media
from substudio.models import MediaPayload
from substudio.services import Services
from substudio.translator import PROVIDER_CHATGPT


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/transcribe", tags=["transcribe"])


async def _read_source(request: Request, services: Services):
    """Returns (source, language, target_language, provider) from a JSON or multipart body."""
    content_type = request.headers.get("content-type", "")

    if content_type.startswith("application/json"):
        try:
            body = await request.json()
        except ValueError as e:
            raise InputValidationError("Invalid JSON body") from e
        if not isinstance(body, dict) or not isinstance(body.get("blobUrl"), str) or not body["blobUrl"]:
            raise InputValidationError("Blob URL is required for large file processing")
        logger.info(f"Processing blob file: {body['blobUrl']}")
        source = services.resolve_blob(body["blobUrl"])
        return source, body.get("language"), body.get("targetLanguage"), body.get("provider") or PROVIDER_CHATGPT

    if content_type.startswith("multipart/form-data"):
        form = await request.form()
        upload = form.get("file")
        if not isinstance(upload, UploadFile):
            raise InputValidationError("No file provided")
        data = await upload.read()
        filename = upload.filename or "upload.bin"
        validate_media(filename, upload.content_type, len(data))
        logger.info(f"Processing uploaded file: {filename}")
        source = MediaPayload(data=data, filename=filename, content_type=upload.content_type)
        return (
            source,
            form.get("language") or None,
            form.get("targetLanguage") or None,
            form.get("provider") or PROVIDER_CHATGPT,
        )

    raise InputValidationError(
        "Invalid content type. Expected multipart/form-data or application/json",
        details=f"Received: {content_type or 'none'}",
    )


@router.post("")
async def transcribe(request: Request, services: Services = Depends(get_services)):
    start = time.monotonic()
    # Checked first so a missing key is reported before any body is read.
    transcription = services.require_transcription()
    source, language, target_language, provider = await _read_source(request, services)
    if language == "auto":
        language = None

    try:
        result = await run_in_threadpool(
            transcription.transcribe, source, language, target_language, provider
        )
    except TranscriptionError as e:
        content: Dict[str, Any] = e.to_payload()
        content["processingTimeSeconds"] = round(time.monotonic() - start, 1)
        return JSONResponse(status_code=e.status_code, content=content)

    return {
        "success": True,
        "segments": [s.to_dict() for s in result.segments],
        "duration": result.duration,
        "language": result.language,
        "segmentCount": len(result.segments),
        "processingTimeSeconds": result.processing_time_seconds,
        "fileSizeMB": result.file_size_mb,
    }
