from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from substudio.api.export import router as export_router
from substudio.api.health import router as health_router
from substudio.api.transcribe import router as transcribe_router
from substudio.api.translate import router as translate_router
from substudio.api.upload import router as upload_router
from substudio.config_loader import AppConfig, load_app_config
from substudio.exceptions import SubStudioError
from substudio.services import Services, build_services
from substudio.utils import ensure_dir_exists


logger = logging.getLogger(__name__)

# Read by the uvicorn factory entry point, which cannot pass arguments.
CONFIG_PATH_ENV = "SUBSTUDIO_CONFIG"
DEFAULT_CONFIG_PATH = "config.yaml"


def create_app(config: Optional[AppConfig] = None, services: Optional[Services] = None) -> FastAPI:
    if services is not None:
        config = services.config
    elif config is None:
        config = load_app_config(os.getenv(CONFIG_PATH_ENV, DEFAULT_CONFIG_PATH))
    services = services or build_services(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        ensure_dir_exists(config.temp_dir)
        ensure_dir_exists(config.storage_dir)
        logger.info(f"SubStudio {config.version} starting ({config.environment})")
        yield
        services.close()

    app = FastAPI(title="SubStudio", version=config.version, lifespan=lifespan)
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(transcribe_router)
    app.include_router(translate_router)
    app.include_router(upload_router)
    app.include_router(export_router)
    app.include_router(health_router)

    @app.exception_handler(SubStudioError)
    async def _substudio_error_handler(request: Request, exc: SubStudioError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message} {exc.details or ''}")
        else:
            logger.warning(f"{request.method} {request.url.path} rejected: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_payload())

    @app.exception_handler(RequestValidationError)
    async def _validation_error_handler(request: Request, exc: RequestValidationError):
        details = "; ".join(
            f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg')}" for err in exc.errors()
        )
        return JSONResponse(status_code=400, content={"error": "Invalid request body", "details": details})

    @app.exception_handler(Exception)
    async def _unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception")
        return JSONResponse(status_code=500, content={"error": str(exc)})

    return app


def run(host: str = "127.0.0.1", port: int = 8000, reload: bool = False) -> None:
    import uvicorn

    uvicorn.run("substudio.server:create_app", factory=True, host=host, port=port, reload=reload)
