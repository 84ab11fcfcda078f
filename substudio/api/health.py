from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from substudio.api.deps import get_services
from substudio.media import AUDIO_EXTENSIONS, MAX_UPLOAD_BYTES, VIDEO_EXTENSIONS
from substudio.services import Services


router = APIRouter(prefix="/api/health", tags=["health"])


def _key_status(services: Services) -> str:
    config = services.config
    if not config.openai_configured:
        return "not_configured"
    return "configured" if config.openai_key_valid else "invalid_key"


@router.get("")
def health(services: Services = Depends(get_services)) -> Dict[str, Any]:
    config = services.config
    key_status = _key_status(services)
    ai_ready = config.openai_key_valid and services.transcription is not None
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "environment": config.environment,
        "version": config.version,
        "services": {
            "api": "operational",
            "openai": key_status,
            # chat translation shares the OpenAI key
            "chatgpt": key_status,
            "mymemory": "available",
        },
        "features": {
            "speech_recognition": "production" if ai_ready else "not_available",
            "translation": {
                "chatgpt": "available" if services.translation.ai_available and config.openai_key_valid else "not_available",
                "mymemory": "available",
            },
            "file_upload": "enabled",
            "direct_upload": "enabled" if services.blob_store.secret else "disabled",
            "subtitle_export": "enabled",
            "audio_extraction": "enabled" if config.extract_audio else "disabled",
        },
        "configuration": {
            "production_ready": config.environment == "production" and ai_ready,
            "max_file_size": f"{MAX_UPLOAD_BYTES // (1024 * 1024)}MB",
            "supported_formats": sorted(ext.lstrip(".").upper() for ext in VIDEO_EXTENSIONS + AUDIO_EXTENSIONS),
        },
    }


@router.post("")
def health_post() -> JSONResponse:
    return JSONResponse(status_code=405, content={"error": "Method not allowed"})
