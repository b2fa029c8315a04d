"""
Tests for the HTTP surface.
"""

import pytest
from httpx import AsyncClient

from multicloud.services.gateway import StorageGateway

API = "/api/multicloud"


async def adapter(gateway: StorageGateway, name: str):
    return (await gateway.registry.resolve(name)).adapter


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert "x-request-id" in response.headers


@pytest.mark.asyncio
async def test_request_id_is_echoed_when_safe(client: AsyncClient):
    response = await client.get("/health", headers={"X-Request-ID": "abc-123"})

    assert response.headers["x-request-id"] == "abc-123"
    assert response.headers["x-correlation-id"] == "abc-123"


@pytest.mark.asyncio
async def test_unsafe_request_id_is_replaced(client: AsyncClient):
    response = await client.get("/health", headers={"X-Request-ID": "bad id with spaces"})

    assert response.headers["x-request-id"] != "bad id with spaces"
    assert len(response.headers["x-request-id"]) == 32


@pytest.mark.asyncio
async def test_providers(client: AsyncClient):
    response = await client.get(f"{API}/providers")

    assert response.status_code == 200
    data = response.json()
    assert data["default"] == "primary"
    assert data["count"] == 3
    assert [p["key"] for p in data["providers"]] == ["primary", "secondary", "tertiary"]


@pytest.mark.asyncio
async def test_upload(client: AsyncClient, gateway: StorageGateway):
    response = await client.post(
        f"{API}/upload",
        files={"file": ("report.txt", b"hello", "text/plain")},
        data={"path": "docs/", "options": '{"metadata": {"owner": "ops"}}'},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "success"
    assert data["path"] == "docs/report.txt"
    assert data["served_by"] == "primary"

    stub = await adapter(gateway, "primary")
    assert stub.files["docs/report.txt"] == b"hello"
    assert stub.options["docs/report.txt"]["content_type"] == "text/plain"
    assert stub.options["docs/report.txt"]["metadata"] == {"owner": "ops"}


@pytest.mark.asyncio
async def test_upload_rejects_dangerous_extension(client: AsyncClient):
    response = await client.post(
        f"{API}/upload",
        files={"file": ("run.exe", b"MZ", "application/octet-stream")},
    )

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_upload_rejects_bad_options(client: AsyncClient):
    response = await client.post(
        f"{API}/upload",
        files={"file": ("a.txt", b"x", "text/plain")},
        data={"options": "[1, 2]"},
    )

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_download_reports_serving_backend(client: AsyncClient, gateway: StorageGateway):
    (await adapter(gateway, "primary")).fail_always = True
    (await adapter(gateway, "secondary")).files["a.txt"] = b"payload"

    response = await client.get(f"{API}/download", params={"path": "a.txt"})

    assert response.status_code == 200
    assert response.content == b"payload"
    assert response.headers["x-served-by"] == "secondary"


@pytest.mark.asyncio
async def test_unknown_provider_is_422(client: AsyncClient):
    response = await client.get(f"{API}/exists", params={"path": "a.txt", "provider": "nope"})

    assert response.status_code == 422
    assert "Unknown provider" in response.json()["detail"]


@pytest.mark.asyncio
async def test_invalid_path_is_422(client: AsyncClient):
    response = await client.delete(f"{API}/delete", params={"path": "../etc/passwd"})

    assert response.status_code == 422
    assert response.json()["error_kind"] == "validation_error"
    assert response.json()["request_id"] == response.headers["x-request-id"]


@pytest.mark.asyncio
async def test_exhausted_fallback_is_502(client: AsyncClient, gateway: StorageGateway):
    for name in ("primary", "secondary", "tertiary"):
        (await adapter(gateway, name)).fail_always = True

    response = await client.get(f"{API}/metadata", params={"path": "a.txt"})

    assert response.status_code == 502
    data = response.json()
    assert data["error_kind"] == "fallback_exhausted"
    assert data["tried"] == ["primary", "secondary", "tertiary"]


@pytest.mark.asyncio
async def test_error_result_is_502(client: AsyncClient):
    # No fallback chain for "tertiary"; the missing file is a plain error result
    response = await client.get(f"{API}/metadata", params={"path": "a.txt", "provider": "tertiary"})

    assert response.status_code == 502
    data = response.json()
    assert data["status"] == "error"
    assert data["attempts"] == 3
    assert data["tried"] == ["tertiary"]


@pytest.mark.asyncio
async def test_list_and_exists(client: AsyncClient, gateway: StorageGateway):
    stub = await adapter(gateway, "primary")
    stub.files.update({"docs/a.txt": b"a", "docs/b.txt": b"b", "img/c.png": b"c"})

    listed = await client.get(f"{API}/list", params={"path": "docs/"})
    exists = await client.get(f"{API}/exists", params={"path": "img/c.png"})

    assert listed.json()["count"] == 2
    assert [f["path"] for f in listed.json()["files"]] == ["docs/a.txt", "docs/b.txt"]
    assert exists.json()["exists"] is True


@pytest.mark.asyncio
async def test_signed_url_is_clamped(client: AsyncClient):
    response = await client.get(f"{API}/signed-url", params={"path": "a.txt", "expiration": 5})

    assert response.status_code == 200
    data = response.json()
    assert data["expiration"] == 60
    assert data["provider"] == "primary"
    assert data["signed_url"].startswith("https://primary.example.com/a.txt")


@pytest.mark.asyncio
async def test_signing_failure_is_502(client: AsyncClient, gateway: StorageGateway):
    (await adapter(gateway, "primary")).signed_url = ""

    response = await client.get(f"{API}/signed-url", params={"path": "a.txt"})

    assert response.status_code == 502
    assert response.json()["error_kind"] == "signing_failed"


@pytest.mark.asyncio
async def test_usage_defaults_to_default_backend(client: AsyncClient):
    response = await client.get(f"{API}/usage")

    assert response.status_code == 200
    assert list(response.json()["providers"]) == ["primary"]


@pytest.mark.asyncio
async def test_usage_for_all_backends_isolates_failures(client: AsyncClient, gateway: StorageGateway):
    (await adapter(gateway, "secondary")).usage_error = "access denied"

    response = await client.get(f"{API}/usage", params={"all": "true"})

    providers = response.json()["providers"]
    assert list(providers) == ["primary", "secondary", "tertiary"]
    assert providers["primary"]["status"] == "success"
    assert providers["secondary"] == {
        "status": "error",
        "provider": "secondary",
        "message": "access denied",
        "error_kind": "provider_error",
    }


@pytest.mark.asyncio
async def test_usage_for_named_backends(client: AsyncClient):
    response = await client.get(f"{API}/usage", params=[("provider", "tertiary"), ("provider", "primary")])

    assert list(response.json()["providers"]) == ["tertiary", "primary"]


@pytest.mark.asyncio
async def test_test_connection(client: AsyncClient, gateway: StorageGateway):
    ok = await client.get(f"{API}/test-connection", params={"provider": "secondary"})
    (await adapter(gateway, "tertiary")).fail_always = True
    failed = await client.get(f"{API}/test-connection", params={"provider": "tertiary"})

    assert ok.status_code == 200
    assert failed.status_code == 502
    assert failed.json()["error_kind"] == "connection_error"
