"""
Azure Blob Storage and Google Cloud Storage through Apache Libcloud.

Libcloud drivers are synchronous; every call runs in a worker thread.
"""

from __future__ import annotations

import asyncio
from typing import Any, Mapping, Optional

import aiofiles
from libcloud.storage.providers import get_driver
from libcloud.storage.types import ObjectDoesNotExistError, Provider

from multicloud.core.exceptions import ProviderError
from multicloud.core.interfaces.storage import FileMetadata, OperationResult
from multicloud.implementations.storage.base import BaseAdapter


class LibcloudAdapter(BaseAdapter):
    """
    Storage adapter backed by a Libcloud storage driver.

    Normalized config:

        driver: libcloud provider constant ("AZURE_BLOBS", "GOOGLE_STORAGE")
        key, secret: account name/key or service account email/key file
        container: bucket or container name
        driver_kwargs: extra driver arguments (project, host, ...)
        cache_control

    Usage:
        adapter = LibcloudAdapter("azure", "Microsoft Azure Blob Storage")
        await adapter.connect({
            "driver": "AZURE_BLOBS",
            "key": "account-name",
            "secret": "account-key",
            "container": "my-container",
        })
    """

    version = "1.0.0"

    def __init__(self, name: str | None = None, display_name: str | None = None):
        super().__init__(name, display_name)
        self._driver = None
        self._container = None
        self.container_name = ""

    async def connect(self, config: Mapping[str, Any]) -> bool:
        if not config.get("container") or not config.get("key"):
            return False

        self._configure(config)
        driver_cls = get_driver(getattr(Provider, config["driver"]))
        self._driver = driver_cls(
            config["key"],
            config.get("secret"),
            **dict(config.get("driver_kwargs") or {}),
        )
        self.container_name = config["container"]
        self._container = None
        return True

    def _get_container(self):
        """Get container (lazy load)."""
        if self._driver is None:
            raise ProviderError("Adapter not connected", provider=self.name)
        if self._container is None:
            self._container = self._driver.get_container(self.container_name)
        return self._container

    def _to_metadata(self, obj) -> FileMetadata:
        extra = obj.extra or {}
        return FileMetadata(
            path=obj.name,
            size=int(obj.size or 0),
            content_type=extra.get("content_type") or "application/octet-stream",
            etag=(obj.hash or "").strip('"') or None,
            last_modified=extra.get("last_modified"),
            extra={"metadata": dict(obj.meta_data or {})},
        )

    # ============================================================
    # SYNC DRIVER CALLS
    # ============================================================

    def _sync_upload(self, path: str, content: bytes, extra: dict[str, Any]):
        return self._driver.upload_object_via_stream(
            iterator=iter([content]),
            container=self._get_container(),
            object_name=path,
            extra=extra,
        )

    def _sync_download(self, path: str) -> bytes:
        obj = self._driver.get_object(self.container_name, path)
        return b"".join(self._driver.download_object_as_stream(obj))

    def _sync_delete(self, path: str) -> bool:
        try:
            obj = self._driver.get_object(self.container_name, path)
        except ObjectDoesNotExistError:
            return False
        return self._driver.delete_object(obj)

    def _sync_list(self, prefix: str, limit: int) -> list[FileMetadata]:
        files = []
        for obj in self._driver.iterate_container_objects(self._get_container(), prefix=prefix or None):
            files.append(self._to_metadata(obj))
            if len(files) >= limit:
                break
        return files

    def _sync_exists(self, path: str) -> bool:
        try:
            self._driver.get_object(self.container_name, path)
            return True
        except ObjectDoesNotExistError:
            return False

    def _sync_metadata(self, path: str) -> FileMetadata:
        return self._to_metadata(self._driver.get_object(self.container_name, path))

    def _sync_signed_url(self, path: str, ttl: int) -> str:
        obj = self._driver.get_object(self.container_name, path)
        return self._driver.get_object_cdn_url(obj, ex_expiry=ttl / 3600)

    def _sync_usage(self) -> tuple[int, int]:
        count = 0
        total = 0
        for obj in self._driver.iterate_container_objects(self._get_container()):
            count += 1
            total += int(obj.size or 0)
        return count, total

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
        extra: dict[str, Any] = {"content_type": self._content_type(path, options)}
        metadata = self._string_metadata(options)
        if metadata:
            extra["meta_data"] = metadata
        if self.config.get("cache_control"):
            extra["cache_control"] = options.get("cache_control") or self.config["cache_control"]

        self._count("put")
        try:
            obj = await asyncio.to_thread(self._sync_upload, path, content, extra)
        except Exception as e:
            return self._fail("Upload", e)

        return self._ok(
            path=obj.name,
            size=len(content),
            etag=(obj.hash or "").strip('"') or None,
            url=self._public_url(path),
        )

    def _public_url(self, path: str) -> str:
        if self.config.get("driver") == "AZURE_BLOBS":
            return f"https://{self.config['key']}.blob.core.windows.net/{self.container_name}/{path}"
        return f"https://storage.googleapis.com/{self.container_name}/{path}"

    async def download(
        self,
        path: str,
        local_path: Optional[str] = None,
    ) -> OperationResult:
        self._count("get")
        try:
            content = await asyncio.to_thread(self._sync_download, path)
        except ObjectDoesNotExistError:
            return self._fail("Download", f"File not found: {path}")
        except Exception as e:
            return self._fail("Download", e)

        if local_path:
            async with aiofiles.open(local_path, "wb") as f:
                await f.write(content)

        return self._ok(path=path, content=content, size=len(content), local_path=local_path)

    async def delete(self, path: str) -> OperationResult:
        self._count("delete")
        try:
            deleted = await asyncio.to_thread(self._sync_delete, path)
        except Exception as e:
            return self._fail("Delete", e)
        return self._ok(path=path, deleted=deleted)

    async def list_files(
        self,
        prefix: str = "",
        options: Mapping[str, Any] | None = None,
    ) -> OperationResult:
        limit = int((options or {}).get("limit", 1000))
        self._count("list")
        try:
            files = await asyncio.to_thread(self._sync_list, prefix, limit)
        except Exception as e:
            return self._fail("List", e)
        return self._ok(files=files, count=len(files), prefix=prefix)

    async def exists(self, path: str) -> bool:
        self._count("get")
        try:
            return await asyncio.to_thread(self._sync_exists, path)
        except ProviderError:
            raise
        except Exception as e:
            raise ProviderError(f"Exists check failed: {e}", provider=self.name) from e

    async def get_metadata(self, path: str) -> OperationResult:
        self._count("get")
        try:
            metadata = await asyncio.to_thread(self._sync_metadata, path)
        except Exception as e:
            return self._fail("Metadata lookup", e)
        return self._ok(metadata=metadata)

    async def generate_signed_url(self, path: str, ttl: int) -> str:
        """SAS URL (Azure) or V4 signed URL (GCS). Returns "" on failure."""
        try:
            return await asyncio.to_thread(self._sync_signed_url, path, ttl) or ""
        except Exception:
            return ""

    async def get_usage(self) -> OperationResult:
        try:
            object_count, total_bytes = await asyncio.to_thread(self._sync_usage)
        except Exception as e:
            return self._fail("Usage collection", e)
        self._count("list")
        report = self._usage_report(
            object_count,
            total_bytes,
            extra={"container": self.container_name},
        )
        return self._ok(usage=report)

    async def test_connection(self) -> OperationResult:
        try:
            container = await asyncio.to_thread(self._get_container)
        except Exception as e:
            return self._fail("Connection test", e)
        return self._ok(
            message=f"{self.display_name} connection successful",
            container=container.name,
        )

    async def close(self) -> None:
        self._container = None

