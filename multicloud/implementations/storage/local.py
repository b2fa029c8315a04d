"""
Local filesystem storage backend implementation.
"""

from __future__ import annotations

import asyncio
import hashlib
import hmac
import json
import os
from datetime import datetime
from pathlib import Path
from typing import Any, Mapping, Optional
from urllib.parse import quote, urlencode

import aiofiles
import aiofiles.os

from multicloud.core.exceptions import ProviderError
from multicloud.core.interfaces.storage import FileMetadata, OperationResult
from multicloud.implementations.storage.base import BaseAdapter
from multicloud.utils.timezone import UTC, utc_now

META_SUFFIX = ".meta"


class LocalAdapter(BaseAdapter):
    """
    Local filesystem storage backend.

    Stores files in a local directory. Useful for development, tests and
    as a last-resort fallback target. Custom metadata lives in a sidecar
    ``<file>.meta`` JSON document. Signed URLs carry an HMAC-SHA256
    signature over path and expiry that `verify_signature` checks.

    Usage:
        adapter = LocalAdapter()
        await adapter.connect({"path": "./storage", "base_url": "/files", "signing_secret": "..."})
        await adapter.upload("users/123/avatar.jpg", image_bytes)
    """

    name = "local"
    display_name = "Local Filesystem"
    version = "1.0.0"

    def __init__(self, name: str | None = None, display_name: str | None = None):
        super().__init__(name, display_name)
        self.base_path = Path("./storage")
        self.base_url = "/files"
        self._secret = b""

    async def connect(self, config: Mapping[str, Any]) -> bool:
        if not config.get("path"):
            return False
        self._configure(config)
        self.base_path = Path(config["path"]).resolve()
        self.base_url = (config.get("base_url") or "/files").rstrip("/")
        self._secret = str(config.get("signing_secret") or "").encode()
        await asyncio.to_thread(self.base_path.mkdir, parents=True, exist_ok=True)
        return True

    def _full_path(self, path: str) -> Path:
        """Filesystem path for an object key, confined to base_path."""
        full_path = (self.base_path / path.lstrip("/")).resolve()
        if full_path != self.base_path and self.base_path not in full_path.parents:
            raise ProviderError(f"Path escapes storage root: {path}", provider=self.name)
        return full_path

    @staticmethod
    def _meta_path(full_path: Path) -> Path:
        return full_path.with_name(full_path.name + META_SUFFIX)

    def _signature(self, path: str, expires: int) -> str:
        message = f"{path}:{expires}".encode()
        return hmac.new(self._secret, message, hashlib.sha256).hexdigest()

    def verify_signature(self, path: str, expires: int, signature: str) -> bool:
        """Check a signed URL's signature and expiry."""
        if expires < int(utc_now().timestamp()):
            return False
        return hmac.compare_digest(self._signature(path, expires), signature)

    async def _read_sidecar(self, full_path: Path) -> dict[str, Any]:
        meta_path = self._meta_path(full_path)
        if not meta_path.exists():
            return {}
        async with aiofiles.open(meta_path, "r") as f:
            return json.loads(await f.read())

    async def upload(
        self,
        path: str,
        content: bytes,
        options: Mapping[str, Any] | None = None,
    ) -> OperationResult:
        """Write a file and its sidecar metadata."""
        options = options or {}
        self._count("put")
        try:
            full_path = self._full_path(path)
            await asyncio.to_thread(full_path.parent.mkdir, parents=True, exist_ok=True)

            async with aiofiles.open(full_path, "wb") as f:
                await f.write(content)

            sidecar = {
                "content_type": self._content_type(path, options),
                "cache_control": options.get("cache_control"),
                "visibility": options.get("visibility", "private"),
                "metadata": self._string_metadata(options),
            }
            async with aiofiles.open(self._meta_path(full_path), "w") as f:
                await f.write(json.dumps(sidecar))
        except (OSError, ProviderError) as e:
            return self._fail("Upload", e)

        return self._ok(
            path=path,
            size=len(content),
            etag=hashlib.md5(content).hexdigest(),
            url=f"{self.base_url}/{quote(path)}",
        )

    async def download(
        self,
        path: str,
        local_path: Optional[str] = None,
    ) -> OperationResult:
        self._count("get")
        try:
            full_path = self._full_path(path)
            if not full_path.is_file():
                return self._fail("Download", f"File not found: {path}")
            async with aiofiles.open(full_path, "rb") as f:
                content = await f.read()
            if local_path:
                async with aiofiles.open(local_path, "wb") as f:
                    await f.write(content)
        except (OSError, ProviderError) as e:
            return self._fail("Download", e)

        return self._ok(path=path, content=content, size=len(content), local_path=local_path)

    async def delete(self, path: str) -> OperationResult:
        """Delete a file. Missing files are not an error."""
        self._count("delete")
        try:
            full_path = self._full_path(path)
            deleted = full_path.is_file()
            if deleted:
                await aiofiles.os.remove(full_path)
            meta_path = self._meta_path(full_path)
            if meta_path.exists():
                await aiofiles.os.remove(meta_path)
        except (OSError, ProviderError) as e:
            return self._fail("Delete", e)
        return self._ok(path=path, deleted=deleted)

    def _walk(self, prefix: str, limit: int | None = None) -> list[FileMetadata]:
        files: list[FileMetadata] = []
        for root, _, filenames in os.walk(self.base_path):
            for filename in sorted(filenames):
                if filename.endswith(META_SUFFIX):
                    continue
                full_path = Path(root) / filename
                key = full_path.relative_to(self.base_path).as_posix()
                if prefix and not key.startswith(prefix):
                    continue
                stat = full_path.stat()
                files.append(FileMetadata(
                    path=key,
                    size=stat.st_size,
                    content_type=self._content_type(key, {}),
                    last_modified=datetime.fromtimestamp(stat.st_mtime, tz=UTC),
                ))
                if limit is not None and len(files) >= limit:
                    return files
        return files

    async def list_files(
        self,
        prefix: str = "",
        options: Mapping[str, Any] | None = None,
    ) -> OperationResult:
        limit = int((options or {}).get("limit", 1000))
        self._count("list")
        try:
            files = await asyncio.to_thread(self._walk, prefix, limit)
        except OSError as e:
            return self._fail("List", e)
        return self._ok(files=files, count=len(files), prefix=prefix)

    async def exists(self, path: str) -> bool:
        self._count("get")
        return self._full_path(path).is_file()

    async def get_metadata(self, path: str) -> OperationResult:
        self._count("get")
        try:
            full_path = self._full_path(path)
            if not full_path.is_file():
                return self._fail("Metadata lookup", f"File not found: {path}")
            stat = full_path.stat()
            sidecar = await self._read_sidecar(full_path)
        except (OSError, ValueError, ProviderError) as e:
            return self._fail("Metadata lookup", e)

        metadata = FileMetadata(
            path=path,
            size=stat.st_size,
            content_type=sidecar.get("content_type") or self._content_type(path, {}),
            last_modified=datetime.fromtimestamp(stat.st_mtime, tz=UTC),
            extra={
                "cache_control": sidecar.get("cache_control"),
                "visibility": sidecar.get("visibility", "private"),
                "metadata": sidecar.get("metadata", {}),
            },
        )
        return self._ok(metadata=metadata)

    async def generate_signed_url(self, path: str, ttl: int) -> str:
        if not self._secret:
            return ""
        expires = int(utc_now().timestamp()) + ttl
        query = urlencode({"expires": expires, "signature": self._signature(path, expires)})
        return f"{self.base_url}/{quote(path)}?{query}"

    async def get_usage(self) -> OperationResult:
        try:
            files = await asyncio.to_thread(self._walk, "")
        except OSError as e:
            return self._fail("Usage collection", e)
        report = self._usage_report(
            len(files),
            sum(f.size for f in files),
            extra={"path": str(self.base_path)},
        )
        return self._ok(usage=report)

    async def test_connection(self) -> OperationResult:
        writable = os.access(self.base_path, os.W_OK)
        if not writable:
            return self._fail("Connection test", f"{self.base_path} is not writable")
        return self._ok(
            message=f"{self.display_name} connection successful",
            path=str(self.base_path),
        )
