"""Construction of the provider clients and orchestrators used by the server."""

import logging
from dataclasses import dataclass
from typing import Optional, Union

import httpx
from openai import OpenAI

from .audio_extractor import AudioExtractor
from .config_loader import AppConfig
from .exceptions import ConfigurationError
from .models import MediaPayload
from .storage import BlobStore
from .transcriber import OpenAITranscriber, TranscriptionOrchestrator
from .translator import (
    FallbackChatTranslator,
    MyMemoryTranslator,
    PrimaryChatTranslator,
    TranslationOrchestrator,
)

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Everything a request handler needs, built once per application."""
    config: AppConfig
    translation: TranslationOrchestrator
    transcription: Optional[TranscriptionOrchestrator]
    blob_store: BlobStore
    http_client: Optional[httpx.Client] = None

    def require_transcription(self) -> TranscriptionOrchestrator:
        if self.transcription is None:
            raise ConfigurationError("OpenAI API key not configured on server")
        return self.transcription

    def resolve_blob(self, url: str) -> Union[MediaPayload, str]:
        """Reads blobs from this server's own store directly; other URLs are downloaded later."""
        pathname = self.blob_store.pathname_from_url(url)
        if pathname is None or not self.blob_store.exists(pathname):
            return url
        logger.info(f"Reading blob {pathname} from local storage")
        return MediaPayload(data=self.blob_store.read(pathname), filename=pathname)

    def close(self) -> None:
        if self.http_client is not None:
            self.http_client.close()


def build_openai_client(config: AppConfig) -> Optional[OpenAI]:
    if not config.openai_configured:
        logger.warning("OPENAI_API_KEY is not set; transcription and AI translation are disabled.")
        return None
    if not config.openai_key_valid:
        logger.warning("OPENAI_API_KEY does not look like an OpenAI key (expected 'sk-' prefix).")
    return OpenAI(
        api_key=config.openai_api_key,
        base_url=config.openai_base_url,
        timeout=config.request_timeout_seconds,
        max_retries=config.openai_max_retries,
    )


def build_services(config: AppConfig, openai_client: Optional[OpenAI] = None) -> Services:
    """Wires clients and orchestrators from configuration; nothing is read from globals."""
    http_client = httpx.Client(timeout=config.request_timeout_seconds, follow_redirects=True)
    openai_client = openai_client or build_openai_client(config)

    primary = fallback = None
    if openai_client is not None:
        primary = PrimaryChatTranslator(openai_client, config.primary_model)
        fallback = FallbackChatTranslator(openai_client, config.fallback_model)
    translation = TranslationOrchestrator(
        primary=primary,
        fallback=fallback,
        free=MyMemoryTranslator(http_client, config.mymemory_url),
        free_delay_seconds=config.mymemory_delay_seconds,
    )

    transcription = None
    if openai_client is not None:
        transcription = TranscriptionOrchestrator(
            OpenAITranscriber(openai_client, config.temp_dir, config.transcription_model),
            translation=translation,
            http_client=http_client,
            audio_extractor=AudioExtractor(config.ffmpeg_path) if config.extract_audio else None,
            temp_dir=config.temp_dir,
        )

    blob_store = BlobStore(
        config.storage_dir,
        config.public_base_url,
        secret=config.upload_secret,
        token_ttl_seconds=config.upload_token_ttl_seconds,
    )
    return Services(
        config=config,
        translation=translation,
        transcription=transcription,
        blob_store=blob_store,
        http_client=http_client,
    )
