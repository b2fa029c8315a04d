"""
Cloudinary media store over its REST APIs (httpx).

- Upload API: signed uploads and destroys (SHA-1 parameter signatures)
- Admin API: listing, resource details, usage, ping (basic auth)
- Delivery: token-authenticated URLs (HMAC-SHA256) when an auth key is
  configured, otherwise expiring private download URLs
"""

from __future__ import annotations

import hashlib
import hmac
import binascii
import re
from pathlib import PurePosixPath
from typing import Any, Mapping, Optional
from urllib.parse import quote, urlencode

import aiofiles
import httpx

from multicloud.core.exceptions import ProviderError
from multicloud.core.interfaces.storage import FileMetadata, OperationResult
from multicloud.implementations.storage.base import BaseAdapter
from multicloud.utils.timezone import from_iso8601, utc_now

API_BASE = "https://api.cloudinary.com/v1_1"
DELIVERY_BASE = "https://res.cloudinary.com"

# Parameters excluded from upload signatures
UNSIGNED_PARAMS = {"file", "api_key", "resource_type", "cloud_name"}


def api_sign_request(params: Mapping[str, Any], api_secret: str) -> str:
    """SHA-1 signature over sorted, non-empty params followed by the secret."""
    to_sign = "&".join(
        f"{k}={v}"
        for k, v in sorted(params.items())
        if k not in UNSIGNED_PARAMS and v not in (None, "")
    )
    return hashlib.sha1(f"{to_sign}{api_secret}".encode()).hexdigest()


def _escape_to_lower(url: str) -> str:
    escaped = quote(url, safe="/:~_-.")
    return re.sub(r"%[0-9A-F]{2}", lambda m: m.group(0).lower(), escaped)


def generate_token(url_path: str, auth_key: str, expires_at: int) -> str:
    """Token for token-based delivery authentication."""
    parts = [f"exp={expires_at}"]
    to_sign = "~".join([*parts, f"url={_escape_to_lower(url_path)}"])
    key = binascii.unhexlify(auth_key)
    digest = hmac.new(key, to_sign.encode(), hashlib.sha256).hexdigest()
    return "__cld_token__=" + "~".join([*parts, f"hmac={digest}"])


class CloudinaryAdapter(BaseAdapter):
    """
    Cloudinary adapter.

    Object paths map to public IDs without their extension (except for
    raw resources); the extension is kept on delivery URLs so Cloudinary
    serves the original format.

    Usage:
        adapter = CloudinaryAdapter()
        await adapter.connect({
            "cloud_name": "demo",
            "api_key": "...",
            "api_secret": "...",
        })
        result = await adapter.upload("products/shoe.jpg", image_bytes)
    """

    name = "cloudinary"
    display_name = "Cloudinary"
    version = "1.0.0"

    def __init__(
        self,
        name: str | None = None,
        display_name: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(name, display_name)
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self.cloud_name = ""
        self.resource_type = "image"
        self.delivery_type = "upload"

    async def connect(self, config: Mapping[str, Any]) -> bool:
        if not all(config.get(k) for k in ("cloud_name", "api_key", "api_secret")):
            return False
        self._configure(config)
        self.cloud_name = config["cloud_name"]
        self.resource_type = config.get("resource_type") or "image"
        self.delivery_type = "authenticated" if config.get("auth_key") else "upload"
        await self.close()
        self._client = httpx.AsyncClient(
            auth=(config["api_key"], config["api_secret"]),
            timeout=httpx.Timeout(30.0),
            transport=self._transport,
        )
        return True

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise ProviderError("Adapter not connected", provider=self.name)
        return self._client

    @property
    def _api(self) -> str:
        return f"{API_BASE}/{self.cloud_name}"

    def _public_id(self, path: str) -> str:
        if self.resource_type == "raw":
            return path
        return str(PurePosixPath(path).with_suffix(""))

    def _signed_params(self, **params: Any) -> dict[str, Any]:
        params["timestamp"] = int(utc_now().timestamp())
        params["signature"] = api_sign_request(params, self.config["api_secret"])
        params["api_key"] = self.config["api_key"]
        return params

    def _delivery_url(self, path: str) -> str:
        scheme = "https" if self.config.get("secure", True) else "http"
        base = DELIVERY_BASE.replace("https", scheme, 1)
        return f"{base}/{self.cloud_name}/{self.resource_type}/{self.delivery_type}/{quote(path)}"

    def _resource_url(self, path: str) -> str:
        return f"{self._api}/resources/{self.resource_type}/{self.delivery_type}/{quote(self._public_id(path), safe='/')}"

    def _to_metadata(self, resource: Mapping[str, Any]) -> FileMetadata:
        public_id = resource["public_id"]
        fmt = resource.get("format")
        path = f"{public_id}.{fmt}" if fmt and self.resource_type != "raw" else public_id
        created = resource.get("created_at")
        return FileMetadata(
            path=path,
            size=int(resource.get("bytes", 0)),
            content_type=f"{resource.get('resource_type', self.resource_type)}/{fmt or 'octet-stream'}",
            etag=resource.get("etag"),
            last_modified=from_iso8601(created) if created else None,
            extra={
                "public_id": public_id,
                "width": resource.get("width"),
                "height": resource.get("height"),
                "secure_url": resource.get("secure_url"),
            },
        )

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            return response.json().get("error", {}).get("message") or response.text
        except ValueError:
            return response.text

    # ============================================================
    # PROVIDER OPERATIONS
    # ============================================================

    async def upload(
        self,
        path: str,
        content: bytes,
        options: Mapping[str, Any] | None = None,
    ) -> OperationResult:
        options = options or {}
        params: dict[str, Any] = {
            "public_id": self._public_id(path),
            "type": self.delivery_type,
            "overwrite": "true",
        }
        metadata = self._string_metadata(options)
        if metadata:
            params["context"] = "|".join(f"{k}={v}" for k, v in metadata.items())

        self._count("put")
        try:
            response = await self.client.post(
                f"{self._api}/{self.resource_type}/upload",
                data=self._signed_params(**params),
                files={"file": (PurePosixPath(path).name, content)},
            )
        except httpx.HTTPError as e:
            return self._fail("Upload", e)
        if response.status_code != 200:
            return self._fail("Upload", self._error_message(response))

        body = response.json()
        return self._ok(
            path=path,
            size=int(body.get("bytes", len(content))),
            etag=body.get("etag"),
            url=body.get("secure_url") or self._delivery_url(path),
            public_id=body.get("public_id"),
        )

    async def download(
        self,
        path: str,
        local_path: Optional[str] = None,
    ) -> OperationResult:
        url = await self.generate_signed_url(path, 300)
        if not url:
            return self._fail("Download", "could not build delivery URL")

        self._count("get")
        try:
            # Delivery URLs are public CDN links; no admin credentials
            response = await self.client.get(url, auth=None)
        except httpx.HTTPError as e:
            return self._fail("Download", e)
        if response.status_code == 404:
            return self._fail("Download", f"File not found: {path}")
        if response.status_code != 200:
            return self._fail("Download", f"HTTP {response.status_code}")

        content = response.content
        if local_path:
            async with aiofiles.open(local_path, "wb") as f:
                await f.write(content)
        return self._ok(path=path, content=content, size=len(content), local_path=local_path)

    async def delete(self, path: str) -> OperationResult:
        self._count("delete")
        try:
            response = await self.client.post(
                f"{self._api}/{self.resource_type}/destroy",
                data=self._signed_params(
                    public_id=self._public_id(path),
                    type=self.delivery_type,
                    invalidate="true",
                ),
            )
        except httpx.HTTPError as e:
            return self._fail("Delete", e)
        if response.status_code != 200:
            return self._fail("Delete", self._error_message(response))

        result = response.json().get("result")
        if result not in ("ok", "not found"):
            return self._fail("Delete", result or "unexpected response")
        return self._ok(path=path, deleted=result == "ok")

    async def list_files(
        self,
        prefix: str = "",
        options: Mapping[str, Any] | None = None,
    ) -> OperationResult:
        limit = int((options or {}).get("limit", 500))
        files: list[FileMetadata] = []
        params: dict[str, Any] = {"max_results": min(limit, 500)}
        if prefix:
            params["prefix"] = prefix

        try:
            while len(files) < limit:
                self._count("list")
                response = await self.client.get(
                    f"{self._api}/resources/{self.resource_type}/{self.delivery_type}",
                    params=params,
                )
                if response.status_code != 200:
                    return self._fail("List", self._error_message(response))
                body = response.json()
                files.extend(self._to_metadata(r) for r in body.get("resources", []))
                if not body.get("next_cursor"):
                    break
                params["next_cursor"] = body["next_cursor"]
        except httpx.HTTPError as e:
            return self._fail("List", e)

        files = files[:limit]
        return self._ok(files=files, count=len(files), prefix=prefix)

    async def exists(self, path: str) -> bool:
        self._count("get")
        try:
            response = await self.client.get(self._resource_url(path))
        except httpx.HTTPError as e:
            raise ProviderError(f"Exists check failed: {e}", provider=self.name) from e
        if response.status_code == 404:
            return False
        if response.status_code != 200:
            raise ProviderError(
                f"Exists check failed: {self._error_message(response)}",
                provider=self.name,
            )
        return True

    async def get_metadata(self, path: str) -> OperationResult:
        self._count("get")
        try:
            response = await self.client.get(self._resource_url(path))
        except httpx.HTTPError as e:
            return self._fail("Metadata lookup", e)
        if response.status_code != 200:
            return self._fail("Metadata lookup", self._error_message(response))
        return self._ok(metadata=self._to_metadata(response.json()))

    async def generate_signed_url(self, path: str, ttl: int) -> str:
        expires_at = int(utc_now().timestamp()) + ttl
        auth_key = self.config.get("auth_key")
        if auth_key:
            url = self._delivery_url(path)
            url_path = url.split(self.cloud_name, 1)[1]
            try:
                token = generate_token(f"/{self.cloud_name}{url_path}", auth_key, expires_at)
            except (binascii.Error, ValueError):
                return ""
            return f"{url}?{token}"

        # Private download URL with an expiry, signed like an upload
        fmt = PurePosixPath(path).suffix.lstrip(".")
        params = self._signed_params(
            public_id=self._public_id(path),
            format=fmt,
            type=self.delivery_type,
            expires_at=expires_at,
        )
        return f"{self._api}/{self.resource_type}/download?{urlencode(params)}"

    async def get_usage(self) -> OperationResult:
        self._count("get")
        try:
            response = await self.client.get(f"{self._api}/usage")
        except httpx.HTTPError as e:
            return self._fail("Usage collection", e)
        if response.status_code != 200:
            return self._fail("Usage collection", self._error_message(response))

        body = response.json()
        report = self._usage_report(
            object_count=int(body.get("resources", 0)),
            total_bytes=int((body.get("storage") or {}).get("usage", 0)),
            extra={
                "plan": body.get("plan"),
                "bandwidth_bytes": (body.get("bandwidth") or {}).get("usage", 0),
                "transformations": (body.get("transformations") or {}).get("usage", 0),
                "derived_resources": body.get("derived_resources", 0),
                "credits_used": (body.get("credits") or {}).get("usage"),
                "credits_limit": (body.get("credits") or {}).get("limit"),
            },
        )
        return self._ok(usage=report)

    async def test_connection(self) -> OperationResult:
        try:
            response = await self.client.get(f"{self._api}/ping")
        except httpx.HTTPError as e:
            return self._fail("Connection test", e)
        if response.status_code != 200:
            return self._fail("Connection test", self._error_message(response))
        return self._ok(
            message=f"{self.display_name} connection successful",
            cloud_name=self.cloud_name,
        )

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
