"""
Storage gateway facade.

The one object HTTP routes and CLI commands talk to. It validates input,
routes data operations through the fallback orchestrator, and sends
signing, usage and connection checks straight to a single backend.
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping, Optional

import aiofiles
import structlog

from multicloud.core.config import Settings
from multicloud.core.exceptions import ValidationError
from multicloud.core.interfaces.cache import CacheBackend
from multicloud.core.interfaces.storage import OperationResult, SignedUrl, StorageProvider
from multicloud.core.plugins.registry import BackendInfo, DriverRegistry
from multicloud.implementations.register import build_cache, build_registry
from multicloud.services.encryption import ContentEncryptor
from multicloud.services.fallback import FallbackOrchestrator, FallbackPolicy
from multicloud.services.signing import SigningPolicies
from multicloud.services.usage import UsageAggregator, UsageEntry

logger = structlog.get_logger(__name__)

MAX_PATH_LENGTH = 1024


def validate_path(path: Any, *, allow_empty: bool = False) -> str:
    """
    Check an object key before it reaches any backend.

    Keys are relative, slash-separated, at most 1024 characters, and may not
    contain `..` segments, backslashes or NUL bytes.

    Raises:
        ValidationError: the key is not acceptable
    """
    if not isinstance(path, str):
        raise ValidationError("Path must be a string")
    if not path:
        if allow_empty:
            return path
        raise ValidationError("Path must not be empty")
    if len(path) > MAX_PATH_LENGTH:
        raise ValidationError(f"Path exceeds {MAX_PATH_LENGTH} characters")
    if "\x00" in path or "\\" in path:
        raise ValidationError("Path contains forbidden characters")
    if path.startswith("/"):
        raise ValidationError("Path must be relative")
    if ".." in path.split("/"):
        raise ValidationError("Path must not contain '..' segments")
    return path


def merge_upload_options(
    defaults: Mapping[str, Any],
    options: Mapping[str, Any] | None,
) -> dict[str, Any]:
    """Caller options win over defaults; metadata mappings are merged."""
    options = options or {}
    merged = {**defaults, **options}
    merged["metadata"] = {
        **(defaults.get("metadata") or {}),
        **(options.get("metadata") or {}),
    }
    return merged


class StorageGateway:
    """
    Explicit facade over registry, fallback, signing and usage services.

    Usage:
        gateway = build_gateway(get_settings())

        result = await gateway.upload("docs/report.pdf", pdf_bytes)
        result.served_by   # backend that actually stored it

        signed = await gateway.generate_signed_url("docs/report.pdf", ttl=600)
        usage = await gateway.get_usage(["aws", "gcp"])

        await gateway.close()
    """

    def __init__(
        self,
        registry: DriverRegistry,
        orchestrator: FallbackOrchestrator | None = None,
        signing: SigningPolicies | None = None,
        usage: UsageAggregator | None = None,
        *,
        encryptor: ContentEncryptor | None = None,
        upload_defaults: Mapping[str, Any] | None = None,
        default_ttl: int = 3600,
        cache: CacheBackend | None = None,
    ):
        self.registry = registry
        self.orchestrator = orchestrator or FallbackOrchestrator(registry)
        self.signing = signing or SigningPolicies()
        self.usage = usage or UsageAggregator(registry)
        self.encryptor = encryptor
        self.upload_defaults = dict(upload_defaults or {})
        self.default_ttl = default_ttl
        self.cache = cache

    # ============================================================
    # DATA OPERATIONS (retry + fallback)
    # ============================================================

    async def upload(
        self,
        path: str,
        content: bytes,
        options: Mapping[str, Any] | None = None,
        provider: str | None = None,
    ) -> OperationResult:
        validate_path(path)
        opts = merge_upload_options(self.upload_defaults, options)
        body = content
        if self.encryptor is not None:
            body = self.encryptor.encrypt(content)
            opts["metadata"]["encrypted"] = "fernet"

        async def call(adapter: StorageProvider) -> OperationResult:
            return await adapter.upload(path, body, opts)

        return await self.orchestrator.execute("upload", call, provider)

    async def download(
        self,
        path: str,
        provider: str | None = None,
        local_path: Optional[str] = None,
    ) -> OperationResult:
        validate_path(path)
        encryptor = self.encryptor

        if encryptor is None:
            async def call(adapter: StorageProvider) -> OperationResult:
                return await adapter.download(path, local_path)
        else:
            # Decrypt inside the attempt so a bad body counts as a backend failure
            async def call(adapter: StorageProvider) -> OperationResult:
                result = await adapter.download(path)
                if not result.ok:
                    return result
                content = encryptor.decrypt(result.data["content"], provider=adapter.name)
                result.data["content"] = content
                result.data["size"] = len(content)
                if local_path:
                    async with aiofiles.open(local_path, "wb") as f:
                        await f.write(content)
                    result.data["local_path"] = local_path
                return result

        return await self.orchestrator.execute("download", call, provider)

    async def delete(self, path: str, provider: str | None = None) -> OperationResult:
        validate_path(path)

        async def call(adapter: StorageProvider) -> OperationResult:
            return await adapter.delete(path)

        return await self.orchestrator.execute("delete", call, provider)

    async def list_files(
        self,
        prefix: str = "",
        options: Mapping[str, Any] | None = None,
        provider: str | None = None,
    ) -> OperationResult:
        validate_path(prefix, allow_empty=True)

        async def call(adapter: StorageProvider) -> OperationResult:
            return await adapter.list_files(prefix, options)

        return await self.orchestrator.execute("list", call, provider)

    async def exists(self, path: str, provider: str | None = None) -> OperationResult:
        """Existence check wrapped as a result with an `exists` flag."""
        validate_path(path)

        async def call(adapter: StorageProvider) -> OperationResult:
            found = await adapter.exists(path)
            return OperationResult.success(adapter.name, path=path, exists=bool(found))

        return await self.orchestrator.execute("exists", call, provider)

    async def get_metadata(self, path: str, provider: str | None = None) -> OperationResult:
        validate_path(path)

        async def call(adapter: StorageProvider) -> OperationResult:
            return await adapter.get_metadata(path)

        return await self.orchestrator.execute("metadata", call, provider)

    # ============================================================
    # SINGLE-BACKEND OPERATIONS
    # ============================================================

    async def generate_signed_url(
        self,
        path: str,
        ttl: int | None = None,
        provider: str | None = None,
    ) -> SignedUrl:
        validate_path(path)
        ttl = self.default_ttl if ttl is None else ttl
        if ttl <= 0:
            raise ValidationError(f"Signed URL ttl must be positive, got {ttl}")
        handle = await self.registry.resolve(provider)
        return await self.signing.policy_for(handle.name).sign(handle, path, ttl)

    async def get_usage(
        self,
        providers: Iterable[str] | None = None,
        *,
        refresh: bool = False,
    ) -> dict[str, UsageEntry]:
        return await self.usage.collect(providers, refresh=refresh)

    async def test_connection(self, provider: str | None = None) -> OperationResult:
        handle = await self.registry.resolve(provider)
        try:
            return await handle.adapter.test_connection()
        except Exception as e:
            logger.warning("Connection test raised", backend=handle.name, error=str(e))
            return OperationResult.failure(handle.name, f"Connection test failed: {e}")

    def list_backends(self) -> list[BackendInfo]:
        return self.registry.list_backends()

    async def close(self) -> None:
        await self.registry.reset()
        if self.cache is not None:
            await self.cache.close()


def build_gateway(settings: Settings) -> StorageGateway:
    """Wire a gateway from settings."""
    registry = build_registry(settings)
    cache = build_cache(settings)
    return StorageGateway(
        registry,
        FallbackOrchestrator(registry, FallbackPolicy.from_settings(settings.fallback)),
        SigningPolicies.from_settings(settings.signed_url),
        UsageAggregator(
            registry,
            max_concurrency=settings.usage.max_concurrency,
            timeout=settings.usage.timeout,
            cache=cache,
            cache_ttl=settings.cache.ttl,
        ),
        encryptor=ContentEncryptor.from_settings(settings.security),
        upload_defaults=settings.upload.default_options(),
        default_ttl=settings.signed_url.default_ttl,
        cache=cache,
    )
