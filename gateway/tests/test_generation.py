import json
from types import SimpleNamespace

import httpx
import pytest

from gateway.app.providers.playground import PARSE_FAILED, GENERATE_FAILED, PlaygroundBackend
from gateway.app.providers.types import GeneratedImage, GenerationError, GenerationRequest
from gateway.app.services import image_host as image_host_module
from gateway.app.services.generation_service import PUBLISH_FAILED, GenerationService, random_seed
from gateway.app.services.image_host import DirectImageHost, QiniuImageHost, timestamp_key

BACKEND_URL = "https://backend.example.com/api/models"


def _backend(handler, **kwargs):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return PlaygroundBackend(
        endpoint_url=BACKEND_URL,
        cookies="session=abc",
        model_type="SDXL",
        status_uuid="uuid-1",
        client=client,
        **kwargs,
    )


def test_random_seed_is_unsigned_32_bit():
    seeds = {random_seed() for _ in range(200)}
    assert all(0 <= seed < 2**32 for seed in seeds)
    assert len(seeds) > 1


@pytest.mark.asyncio
async def test_backend_posts_templated_payload_and_builds_cdn_url():
    captured = {}

    def handler(request):
        captured["headers"] = request.headers
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json={"images": [{"imageKey": "abc123"}]})

    backend = _backend(handler)
    result = await backend.generate(GenerationRequest(prompt="a red fox", seed=42))

    assert isinstance(result, GeneratedImage)
    assert result.source_url == "https://images.playground.com/abc123.jpeg"
    body = captured["body"]
    assert body["prompt"] == "a red fox"
    assert body["seed"] == 42
    assert body["width"] == body["height"] == 1024
    assert body["modelType"] == "SDXL"
    assert body["statusUUID"] == "uuid-1"
    assert body["sampler"] == 9
    assert "bad anatomy" in body["negativePrompt"]
    assert captured["headers"]["cookie"] == "session=abc"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload",
    [
        {},
        {"images": []},
        {"images": [{}]},
        {"images": [{"imageKey": ""}]},
        ["not", "an", "object"],
    ],
)
async def test_missing_image_reference_is_a_generation_error(payload):
    backend = _backend(lambda request: httpx.Response(200, json=payload))
    result = await backend.generate(GenerationRequest(prompt="x", seed=1))
    assert result == GenerationError(PARSE_FAILED)


@pytest.mark.asyncio
async def test_backend_error_status_is_a_generation_error():
    backend = _backend(lambda request: httpx.Response(502, text="bad gateway"))
    result = await backend.generate(GenerationRequest(prompt="x", seed=1))
    assert result == GenerationError(GENERATE_FAILED)


@pytest.mark.asyncio
async def test_backend_network_error_is_a_generation_error():
    def handler(request):
        raise httpx.ReadTimeout("timed out")

    backend = _backend(handler)
    result = await backend.generate(GenerationRequest(prompt="x", seed=1))
    assert isinstance(result, GenerationError)


@pytest.mark.asyncio
async def test_direct_strategy_returns_backend_url():
    backend = _backend(lambda request: httpx.Response(200, json={"images": [{"imageKey": "k1"}]}))
    service = GenerationService(backend, DirectImageHost())
    assert await service.generate("hello") == "https://images.playground.com/k1.jpeg"


def _download_client():
    def handler(request):
        if request.url.host == "images.playground.com":
            return httpx.Response(200, content=b"\xff\xd8jpeg-bytes")
        return httpx.Response(404)

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_rehost_strategy_uploads_under_timestamp_key(monkeypatch):
    uploads = []

    def fake_put_data(token, key, data, **kwargs):
        uploads.append({"token": token, "key": key, "data": data, **kwargs})
        return {"key": key, "hash": "h"}, SimpleNamespace(status_code=200)

    monkeypatch.setattr(image_host_module, "put_data", fake_put_data)

    host = QiniuImageHost(
        access_key="ak",
        secret_key="sk",
        bucket="images-bucket",
        domain="https://cdn.example.com/",
        client=_download_client(),
        key_factory=lambda: timestamp_key(1700000000000),
    )
    backend = _backend(lambda request: httpx.Response(200, json={"images": [{"imageKey": "k2"}]}))
    service = GenerationService(backend, host)

    url = await service.generate("hello")

    assert url == "https://cdn.example.com/images/1700000000000.jpeg"
    assert uploads[0]["key"] == "images/1700000000000.jpeg"
    assert uploads[0]["data"] == b"\xff\xd8jpeg-bytes"
    assert uploads[0]["mime_type"] == "image/jpeg"


@pytest.mark.asyncio
async def test_rehost_upload_failure_is_a_generation_error(monkeypatch):
    monkeypatch.setattr(
        image_host_module,
        "put_data",
        lambda token, key, data, **kwargs: (None, SimpleNamespace(status_code=401)),
    )
    host = QiniuImageHost(
        access_key="ak",
        secret_key="sk",
        bucket="images-bucket",
        domain="https://cdn.example.com",
        client=_download_client(),
    )
    backend = _backend(lambda request: httpx.Response(200, json={"images": [{"imageKey": "k3"}]}))

    result = await GenerationService(backend, host).generate("hello")
    assert result == GenerationError(PUBLISH_FAILED)


def test_timestamp_key_shape():
    assert timestamp_key(123) == "images/123.jpeg"
    assert timestamp_key().startswith("images/")


def test_qiniu_host_requires_credentials():
    with pytest.raises(ValueError):
        QiniuImageHost(access_key="", secret_key="sk", bucket="b", domain="d")
