import httpx
import pytest
from fastapi.testclient import TestClient

from conftest import make_services, write_file
from substudio.client import SubStudioClient
from substudio.exceptions import (
    InputValidationError,
    StorageUnavailableError,
    TranscriptionError,
    UnsupportedMediaError,
    UploadError,
)
from substudio.server import create_app
from substudio.uploader import BlobUploader


@pytest.fixture
def api(services):
    return TestClient(create_app(services=services))


def test_small_file_goes_inline(api, fake_openai, tmp_path):
    client = SubStudioClient("http://testserver", http_client=api)

    result = client.transcribe_file(write_file(tmp_path / "clip.mp3", content=b"small"), language="auto")

    assert [s.text for s in result.segments] == ["Hello world", "How are you?"]
    assert result.language == "english"
    assert fake_openai.audio.transcriptions.calls[0]["data"] == b"small"
    assert "language" not in fake_openai.audio.transcriptions.calls[0]
    assert not (tmp_path / "blobs").exists()


def test_large_file_goes_through_blob_upload(api, fake_openai, tmp_path):
    client = SubStudioClient("http://testserver", http_client=api, inline_limit=4)

    result = client.transcribe_file(
        write_file(tmp_path / "lecture.mp4", content=b"large video"), target_language="es"
    )

    assert fake_openai.audio.transcriptions.calls[0]["data"] == b"large video"
    assert result.segments[0].translation == "Hola mundo"
    assert len(list((tmp_path / "blobs").iterdir())) == 1


def test_unsupported_file_is_rejected_before_any_request(tmp_path):
    def handler(request):
        raise AssertionError("no request expected")

    client = SubStudioClient("http://testserver", http_client=httpx.Client(transport=httpx.MockTransport(handler)))

    with pytest.raises(UnsupportedMediaError):
        client.transcribe_file(write_file(tmp_path / "notes.txt", 10))


def test_server_errors_are_raised_with_payload(app_config, mymemory, tmp_path):
    app_config.openai_api_key = None
    api = TestClient(create_app(services=make_services(app_config, None, mymemory)))
    client = SubStudioClient("http://testserver", http_client=api)

    with pytest.raises(TranscriptionError) as excinfo:
        client.transcribe_file(write_file(tmp_path / "clip.mp3", 10))
    assert excinfo.value.message == "OpenAI API key not configured on server"

    with pytest.raises(InputValidationError):
        client.translate("Hi", "es", provider="deepl")


def test_translate_and_batch(api):
    client = SubStudioClient("http://testserver", http_client=api)

    single = client.translate("Hello world", "es", source_language="en")
    batch = client.translate_batch(["a", "b"], "fr", provider="mymemory")

    assert single.translation == "Hola mundo"
    assert single.provider == "gpt-4o"
    assert [r.translated_text for r in batch.results] == ["[mm] a", "[mm] b"]
    assert batch.provider == "mymemory"
    assert batch.success_count == 2


def test_uploader_maps_storage_errors(tmp_path):
    def handler(request):
        return httpx.Response(503, json={"error": "Upload storage not configured"})

    uploader = BlobUploader(httpx.Client(transport=httpx.MockTransport(handler)), "http://s/api/upload")

    with pytest.raises(StorageUnavailableError):
        uploader.upload(write_file(tmp_path / "a.mp4", 10))


def test_uploader_wraps_network_errors(tmp_path):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    uploader = BlobUploader(httpx.Client(transport=httpx.MockTransport(handler)), "http://s/api/upload")

    with pytest.raises(UploadError) as excinfo:
        uploader.upload(write_file(tmp_path / "a.mp4", 10))
    assert "connection refused" in excinfo.value.message


def test_uploader_sends_token_request_then_bytes(tmp_path):
    seen = []

    def handler(request):
        seen.append(request)
        if request.method == "POST":
            return httpx.Response(200, json={"uploadUrl": "http://s/api/blobs/x-a.mp4?token=t"})
        return httpx.Response(200, json={"success": True, "url": "http://s/api/blobs/x-a.mp4"})

    uploader = BlobUploader(httpx.Client(transport=httpx.MockTransport(handler)), "http://s/api/upload")

    url = uploader.upload(write_file(tmp_path / "a.mp4", content=b"bytes"))

    assert url == "http://s/api/blobs/x-a.mp4"
    assert [r.method for r in seen] == ["POST", "PUT"]
    assert seen[1].headers["content-type"] == "video/mp4"
    assert seen[1].read() == b"bytes"
