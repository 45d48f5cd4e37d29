"""Tests for asset service clients."""

import httpx
import pytest

from roomflow.assets import AssetUploadFailed, HttpAssetService, InMemoryAssetService
from roomflow.config import AssetConfig


@pytest.mark.asyncio
async def test_in_memory_assets_are_content_addressed():
    service = InMemoryAssetService()
    first = await service.upload(b"jpeg-bytes", "a.jpg")
    second = await service.upload(b"jpeg-bytes", "copy.jpg")

    assert first == second
    assert first.startswith("mem://")
    assert service.get(first) == b"jpeg-bytes"
    assert await service.upload(b"other") != first


@pytest.mark.asyncio
async def test_http_upload_returns_url():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["body"] = request.read()
        return httpx.Response(200, json={"url": "https://cdn.example.com/a.jpg"})

    client = httpx.AsyncClient(base_url="https://assets.example.com", transport=httpx.MockTransport(handler))
    service = HttpAssetService("https://assets.example.com", client=client)

    ref = await service.upload(b"jpeg-bytes", "a.jpg", "image/jpeg")
    assert ref == "https://cdn.example.com/a.jpg"
    assert seen["path"] == "/upload"
    assert b"jpeg-bytes" in seen["body"]
    await client.aclose()


@pytest.mark.asyncio
async def test_http_upload_errors_are_wrapped():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503)

    client = httpx.AsyncClient(base_url="https://assets.example.com", transport=httpx.MockTransport(handler))
    service = HttpAssetService("https://assets.example.com", client=client)

    with pytest.raises(AssetUploadFailed):
        await service.upload(b"x", "a.jpg")
    await client.aclose()


@pytest.mark.asyncio
async def test_http_upload_without_reference_fails():
    client = httpx.AsyncClient(
        base_url="https://assets.example.com",
        transport=httpx.MockTransport(lambda request: httpx.Response(200, json={})),
    )
    service = HttpAssetService("https://assets.example.com", client=client)

    with pytest.raises(AssetUploadFailed):
        await service.upload(b"x")
    await client.aclose()


def test_from_config_requires_base_url():
    with pytest.raises(ValueError):
        HttpAssetService.from_config(AssetConfig())
