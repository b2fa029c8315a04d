"""
Tests for the Cloudinary backend (HTTP mocked with httpx.MockTransport).
"""

import binascii
import hashlib
import hmac
import json

import httpx
import pytest

from multicloud.implementations.storage.cloudinary import (
    CloudinaryAdapter,
    api_sign_request,
    generate_token,
)

CONFIG = {"cloud_name": "demo", "api_key": "key", "api_secret": "secret"}


def test_api_signature_sorts_and_skips_unsigned_params():
    params = {
        "timestamp": 1700000000,
        "public_id": "docs/a",
        "api_key": "key",
        "file": "ignored",
        "context": "",
    }

    expected = hashlib.sha1(b"public_id=docs/a&timestamp=1700000000secret").hexdigest()

    assert api_sign_request(params, "secret") == expected


def test_delivery_token_format():
    auth_key = "aabbccdd"
    token = generate_token("/demo/image/authenticated/a.jpg", auth_key, 1700000000)

    digest = hmac.new(
        binascii.unhexlify(auth_key),
        b"exp=1700000000~url=/demo/image/authenticated/a.jpg",
        hashlib.sha256,
    ).hexdigest()
    assert token == f"__cld_token__=exp=1700000000~hmac={digest}"


@pytest.mark.asyncio
async def test_connect_requires_credentials():
    assert await CloudinaryAdapter().connect({"cloud_name": "demo"}) is False


@pytest.mark.asyncio
async def test_upload_posts_signed_form():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={
            "public_id": "docs/a",
            "bytes": 5,
            "etag": "abc",
            "secure_url": "https://res.cloudinary.com/demo/image/upload/docs/a.jpg",
        })

    adapter = CloudinaryAdapter(transport=httpx.MockTransport(handler))
    await adapter.connect(CONFIG)

    result = await adapter.upload("docs/a.jpg", b"hello")

    assert result.ok
    assert result.data["public_id"] == "docs/a"
    assert result.data["url"].endswith("docs/a.jpg")
    assert seen[0].url.path == "/v1_1/demo/image/upload"
    assert b'name="signature"' in seen[0].content
    await adapter.close()


@pytest.mark.asyncio
async def test_delete_not_found_is_success():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"result": "not found"})

    adapter = CloudinaryAdapter(transport=httpx.MockTransport(handler))
    await adapter.connect(CONFIG)

    result = await adapter.delete("docs/a.jpg")

    assert result.ok
    assert result.data["deleted"] is False
    await adapter.close()


@pytest.mark.asyncio
async def test_exists_maps_404_to_false():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, json={"error": {"message": "Resource not found"}})

    adapter = CloudinaryAdapter(transport=httpx.MockTransport(handler))
    await adapter.connect(CONFIG)

    assert await adapter.exists("docs/a.jpg") is False
    await adapter.close()


@pytest.mark.asyncio
async def test_usage_reports_plan_extras():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/v1_1/demo/usage"
        return httpx.Response(200, content=json.dumps({
            "plan": "Free",
            "resources": 12,
            "storage": {"usage": 2048},
            "bandwidth": {"usage": 4096},
            "transformations": {"usage": 7},
            "credits": {"usage": 0.5, "limit": 25},
        }))

    adapter = CloudinaryAdapter(transport=httpx.MockTransport(handler))
    await adapter.connect(CONFIG)

    report = (await adapter.get_usage()).data["usage"]

    assert report.object_count == 12
    assert report.total_bytes == 2048
    assert report.extra["plan"] == "Free"
    assert report.extra["bandwidth_bytes"] == 4096
    await adapter.close()


@pytest.mark.asyncio
async def test_private_download_url_expires():
    adapter = CloudinaryAdapter(transport=httpx.MockTransport(lambda r: httpx.Response(200)))
    await adapter.connect(CONFIG)

    url = await adapter.generate_signed_url("docs/a.jpg", 600)

    assert url.startswith("https://api.cloudinary.com/v1_1/demo/image/download?")
    assert "expires_at=" in url
    assert "signature=" in url
    await adapter.close()
