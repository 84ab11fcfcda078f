from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import FileResponse, JSONResponse
from starlette.datastructures import UploadFile

from substudio.api.deps import get_services
from substudio.exceptions import FileTooLargeError, InputValidationError
from substudio.media import validate_media
from substudio.services import Services
from substudio.utils import size_in_mb


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["upload"])

GENERATE_CLIENT_TOKEN = "blob.generate-client-token"
UPLOAD_COMPLETED = "blob.upload-completed"


def _client_token(services: Services, payload: Dict[str, Any]) -> Dict[str, Any]:
    filename = payload.get("pathname")
    if not filename:
        raise InputValidationError("Pathname is required to request an upload token")
    content_type: Optional[str] = payload.get("contentType")
    size = int(payload.get("size") or 0)
    validate_media(filename, content_type, size)

    store = services.blob_store
    pathname = store.new_pathname(filename)
    token = store.issue_token(pathname, content_type, size)
    logger.info(f"Issued upload token for {pathname} ({size_in_mb(size):.1f}MB)")
    return {
        "type": GENERATE_CLIENT_TOKEN,
        "clientToken": token,
        "uploadUrl": f"{store.url_for(pathname)}?token={token}",
        "pathname": pathname,
        "url": store.url_for(pathname),
    }


@router.post("/upload")
async def upload(request: Request, services: Services = Depends(get_services)):
    content_type = request.headers.get("content-type", "")

    if content_type.startswith("multipart/form-data"):
        form = await request.form()
        upload_file = form.get("file")
        if not isinstance(upload_file, UploadFile):
            raise InputValidationError("No file provided")
        filename = upload_file.filename or "upload.bin"
        validate_media(filename, upload_file.content_type, upload_file.size or 0)
        logger.info(f"Uploading file: {filename}")
        blob = await run_in_threadpool(
            services.blob_store.put, filename, upload_file.file, upload_file.content_type
        )
        return blob.to_dict()

    if content_type.startswith("application/json"):
        try:
            body = await request.json()
        except ValueError as e:
            raise InputValidationError("Invalid JSON body") from e
        if not isinstance(body, dict):
            raise InputValidationError("Invalid upload request")
        event = body.get("type")
        payload = body.get("payload") or {}
        if event == GENERATE_CLIENT_TOKEN:
            return _client_token(services, payload)
        if event == UPLOAD_COMPLETED:
            logger.info(f"Blob upload completed: {payload.get('url')}")
            return {"type": UPLOAD_COMPLETED, "response": "ok"}
        raise InputValidationError(f"Unknown upload event: {event}")

    raise InputValidationError(
        "Invalid content type. Expected multipart/form-data or application/json",
        details=f"Received: {content_type or 'none'}",
    )


@router.put("/blobs/{pathname}")
async def put_blob(
    pathname: str,
    request: Request,
    token: Optional[str] = None,
    services: Services = Depends(get_services),
):
    store = services.blob_store
    claims = store.verify_token(token, pathname)
    max_size = int(claims.get("maxSize") or store.max_bytes)

    chunks = []
    received = 0
    async for chunk in request.stream():
        received += len(chunk)
        if received > max_size:
            raise FileTooLargeError(
                f"Upload exceeds the declared size of {size_in_mb(max_size):.1f}MB",
                suggestion="Request a new upload token with the correct file size.",
            )
        chunks.append(chunk)

    content_type = claims.get("contentType") or request.headers.get("content-type")
    blob = await run_in_threadpool(store.put, pathname, b"".join(chunks), content_type, pathname)
    return blob.to_dict()


@router.get("/blobs/{pathname}")
def get_blob(pathname: str, services: Services = Depends(get_services)):
    store = services.blob_store
    if not store.exists(pathname):
        return JSONResponse(status_code=404, content={"error": "Blob not found"})
    return FileResponse(store.path_for(pathname))
