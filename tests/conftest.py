import logging
import os
from types import SimpleNamespace

import httpx
import pytest

from substudio.config_loader import build_app_config
from substudio.services import Services
from substudio.storage import BlobStore
from substudio.transcriber import OpenAITranscriber, TranscriptionOrchestrator
from substudio.translator import (
    FallbackChatTranslator,
    MyMemoryTranslator,
    PrimaryChatTranslator,
    TranslationOrchestrator,
)


class FakeChatCompletions:
    """Stands in for ``client.chat.completions``; replies are chosen per model."""

    def __init__(self, replies):
        # model -> reply string, exception instance, or callable(text) -> str
        self.replies = replies
        self.calls = []

    def create(self, model, messages, **kwargs):
        self.calls.append({"model": model, "messages": messages, **kwargs})
        reply = self.replies.get(model)
        if reply is None:
            raise RuntimeError(f"no reply configured for {model}")
        if isinstance(reply, Exception):
            raise reply
        if callable(reply):
            reply = reply(messages[-1]["content"])
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=reply))])


class FakeTranscriptions:
    def __init__(self, response):
        self.response = response
        self.calls = []

    def create(self, file, **params):
        self.calls.append({"path": file.name, "existed": os.path.exists(file.name), "data": file.read(), **params})
        if isinstance(self.response, Exception):
            raise self.response
        return self.response


class FakeOpenAI:
    def __init__(self, chat_replies=None, transcription=None):
        self.chat = SimpleNamespace(completions=FakeChatCompletions(chat_replies or {}))
        self.audio = SimpleNamespace(transcriptions=FakeTranscriptions(transcription or {"segments": []}))


class MyMemoryStub:
    """httpx transport handler answering like the MyMemory API."""

    def __init__(self, translations=None, status=200, fail_on=(), match=0.85):
        self.translations = translations or {}
        self.status = status
        self.match = match
        self.fail_on = set(fail_on)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        text = request.url.params.get("q")
        if text in self.fail_on:
            return httpx.Response(200, json={"responseStatus": 403, "responseDetails": "quota exceeded"})
        translated = self.translations.get(text, f"[mm] {text}")
        return httpx.Response(
            self.status,
            json={"responseStatus": 200, "responseData": {"translatedText": translated, "match": self.match}},
        )


def verbose_transcription(*segments, language="english", duration=12.5):
    """Builds a verbose_json style response from (start, end, text[, avg_logprob]) tuples."""
    items = []
    for i, seg in enumerate(segments):
        item = {"id": i, "start": seg[0], "end": seg[1], "text": seg[2]}
        if len(seg) > 3:
            item["avg_logprob"] = seg[3]
        items.append(item)
    return {"language": language, "duration": duration, "segments": items}


@pytest.fixture
def app_config(tmp_path):
    return build_app_config(
        {
            "openai_api_key": "sk-test",
            "temp_dir": str(tmp_path / "tmp"),
            "log_dir": str(tmp_path / "logs"),
            "storage_dir": str(tmp_path / "blobs"),
            "upload_secret": "test-secret",
            "public_base_url": "http://testserver/",
            "mymemory_delay_seconds": 0,
        },
        use_env=False,
    )


@pytest.fixture
def mymemory():
    return MyMemoryStub()


@pytest.fixture
def fake_openai():
    return FakeOpenAI(
        chat_replies={"gpt-4o": lambda prompt: "Hola mundo", "gpt-4-turbo": "Hola (fallback)"},
        transcription=verbose_transcription((0.0, 2.0, " Hello world ", -0.1), (2.0, 4.0, "How are you?")),
    )


def make_services(config, openai_client, mymemory_handler, blob_handler=None):
    """Wires Services the way build_services does, with every transport faked."""
    mymemory_client = httpx.Client(transport=httpx.MockTransport(mymemory_handler))
    blob_client = httpx.Client(transport=httpx.MockTransport(blob_handler or (lambda r: httpx.Response(404))))
    translation = TranslationOrchestrator(
        primary=PrimaryChatTranslator(openai_client, config.primary_model) if openai_client else None,
        fallback=FallbackChatTranslator(openai_client, config.fallback_model) if openai_client else None,
        free=MyMemoryTranslator(mymemory_client, config.mymemory_url),
        free_delay_seconds=0,
        sleep=lambda seconds: None,
    )
    transcription = None
    if openai_client is not None:
        transcription = TranscriptionOrchestrator(
            OpenAITranscriber(openai_client, config.temp_dir, config.transcription_model),
            translation=translation,
            http_client=blob_client,
            temp_dir=config.temp_dir,
        )
    store = BlobStore(config.storage_dir, config.public_base_url, secret=config.upload_secret)
    return Services(
        config=config,
        translation=translation,
        transcription=transcription,
        blob_store=store,
        http_client=mymemory_client,
    )


@pytest.fixture
def services(app_config, fake_openai, mymemory):
    return make_services(app_config, fake_openai, mymemory)


def write_file(path, size=1024, content=None):
    with open(path, "wb") as f:
        f.write(content if content is not None else b"\0" * size)
    return str(path)


@pytest.fixture
def restore_logging():
    """Undoes setup_logging calls made by CLI entry points."""
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    yield
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()
    for handler in saved_handlers:
        root.addHandler(handler)
    root.setLevel(saved_level)
