"""
Register all backend implementations with a driver registry.

Each catalog entry pairs an adapter factory with a translator that turns
the backend's settings section into the adapter's normalized config.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Mapping

from multicloud.core.config import Settings
from multicloud.core.interfaces.cache import CacheBackend
from multicloud.core.plugins.registry import AdapterFactory, DriverRegistry
from multicloud.implementations.cache.memory import MemoryCacheBackend
from multicloud.implementations.cache.redis import RedisCacheBackend
from multicloud.implementations.storage.cloud import LibcloudAdapter
from multicloud.implementations.storage.cloudinary import CloudinaryAdapter
from multicloud.implementations.storage.local import LocalAdapter
from multicloud.implementations.storage.s3 import S3Adapter

ConfigTranslator = Callable[[Mapping[str, Any]], dict[str, Any]]


@dataclass(frozen=True)
class CatalogEntry:
    display_name: str
    factory: AdapterFactory
    translate: ConfigTranslator


# ============================================================
# CONFIG TRANSLATORS
# ============================================================

def _aws(c: Mapping[str, Any]) -> dict[str, Any]:
    return {
        "key": c["key"],
        "secret": c["secret"],
        "region": c["region"],
        "bucket": c["bucket"],
        "endpoint": c.get("endpoint"),
        "use_path_style_endpoint": c.get("use_path_style_endpoint", False),
        "acl": c.get("acl"),
        "cache_control": c.get("cache_control"),
    }


def _digitalocean(c: Mapping[str, Any]) -> dict[str, Any]:
    return {
        "key": c["access_key"],
        "secret": c["secret_key"],
        "region": c["region"],
        "bucket": c["bucket"],
        "endpoint": c.get("endpoint") or f"https://{c['region']}.digitaloceanspaces.com",
        "acl": c.get("acl"),
        "cache_control": c.get("cache_control"),
    }


def _cloudflare(c: Mapping[str, Any]) -> dict[str, Any]:
    public_url = None
    if c.get("custom_domain"):
        public_url = f"https://{c['custom_domain']}"
    return {
        "key": c["access_key_id"],
        "secret": c["secret_access_key"],
        "region": "auto",
        "bucket": c["bucket"],
        "endpoint": f"https://{c['account_id']}.r2.cloudflarestorage.com" if c.get("account_id") else None,
        "cache_control": c.get("cache_control"),
        "public_url": public_url,
    }


def _alibaba(c: Mapping[str, Any]) -> dict[str, Any]:
    region = c["region"].removeprefix("oss-")
    return {
        "key": c["access_key_id"],
        "secret": c["access_key_secret"],
        "region": region,
        "bucket": c["bucket"],
        "endpoint": c.get("endpoint") or f"https://oss-{region}.aliyuncs.com",
        # OSS only accepts virtual-hosted style
        "use_path_style_endpoint": False,
        "acl": c.get("acl"),
        "cache_control": c.get("cache_control"),
    }


def _ibm(c: Mapping[str, Any]) -> dict[str, Any]:
    return {
        "key": c["access_key_id"],
        "secret": c["secret_access_key"],
        "region": c["region"],
        "bucket": c["bucket"],
        "endpoint": c.get("endpoint") or f"https://s3.{c['region']}.cloud-object-storage.appdomain.cloud",
        "use_path_style_endpoint": True,
        "cache_control": c.get("cache_control"),
    }


def _oracle(c: Mapping[str, Any]) -> dict[str, Any]:
    endpoint = None
    if c.get("namespace"):
        endpoint = f"https://{c['namespace']}.compat.objectstorage.{c['region']}.oraclecloud.com"
    return {
        "key": c["access_key_id"],
        "secret": c["secret_access_key"],
        "region": c["region"],
        "bucket": c["bucket"],
        "endpoint": endpoint,
        "use_path_style_endpoint": True,
        "cache_control": c.get("cache_control"),
    }


def _azure(c: Mapping[str, Any]) -> dict[str, Any]:
    driver_kwargs = {}
    if c.get("endpoint"):
        driver_kwargs["host"] = c["endpoint"].removeprefix("https://").rstrip("/")
    return {
        "driver": "AZURE_BLOBS",
        "key": c["account_name"],
        "secret": c["account_key"],
        "container": c["container"],
        "driver_kwargs": driver_kwargs,
        "cache_control": c.get("cache_control"),
    }


def _gcp(c: Mapping[str, Any]) -> dict[str, Any]:
    return {
        "driver": "GOOGLE_STORAGE",
        "key": c["client_email"],
        "secret": c.get("key_file") or c.get("private_key"),
        "container": c["bucket"],
        "driver_kwargs": {"project": c["project_id"]} if c.get("project_id") else {},
        "cache_control": c.get("cache_control"),
    }


def _cloudinary(c: Mapping[str, Any]) -> dict[str, Any]:
    return {
        "cloud_name": c["cloud_name"],
        "api_key": c["api_key"],
        "api_secret": c["api_secret"],
        "auth_key": c.get("auth_key"),
        "secure": c.get("secure", True),
        "resource_type": c.get("resource_type", "image"),
    }


def _local(c: Mapping[str, Any]) -> dict[str, Any]:
    return {
        "path": c["path"],
        "base_url": c.get("base_url", "/files"),
        "signing_secret": c.get("signing_secret"),
    }


BACKEND_CATALOG: dict[str, CatalogEntry] = {
    "aws": CatalogEntry(
        "Amazon Web Services S3",
        lambda: S3Adapter("aws", "Amazon Web Services S3"),
        _aws,
    ),
    "azure": CatalogEntry(
        "Microsoft Azure Blob Storage",
        lambda: LibcloudAdapter("azure", "Microsoft Azure Blob Storage"),
        _azure,
    ),
    "gcp": CatalogEntry(
        "Google Cloud Storage",
        lambda: LibcloudAdapter("gcp", "Google Cloud Storage"),
        _gcp,
    ),
    "cloudinary": CatalogEntry(
        "Cloudinary",
        lambda: CloudinaryAdapter("cloudinary", "Cloudinary"),
        _cloudinary,
    ),
    "alibaba": CatalogEntry(
        "Alibaba Cloud OSS",
        lambda: S3Adapter("alibaba", "Alibaba Cloud OSS"),
        _alibaba,
    ),
    "ibm": CatalogEntry(
        "IBM Cloud Object Storage",
        lambda: S3Adapter("ibm", "IBM Cloud Object Storage"),
        _ibm,
    ),
    "digitalocean": CatalogEntry(
        "DigitalOcean Spaces",
        lambda: S3Adapter("digitalocean", "DigitalOcean Spaces"),
        _digitalocean,
    ),
    "oracle": CatalogEntry(
        "Oracle Cloud Object Storage",
        lambda: S3Adapter("oracle", "Oracle Cloud Object Storage"),
        _oracle,
    ),
    "cloudflare": CatalogEntry(
        "Cloudflare R2",
        lambda: S3Adapter("cloudflare", "Cloudflare R2"),
        _cloudflare,
    ),
    "local": CatalogEntry(
        "Local Filesystem",
        lambda: LocalAdapter("local", "Local Filesystem"),
        _local,
    ),
}


def build_registry(settings: Settings) -> DriverRegistry:
    """Create a registry holding every catalog backend, configured from settings."""
    sections = settings.backend_configs()
    configs = {}
    for name, entry in BACKEND_CATALOG.items():
        config = entry.translate(sections[name])
        if name in settings.usage.pricing:
            config["pricing"] = settings.usage.pricing[name]
        configs[name] = config

    registry = DriverRegistry(
        configs=configs,
        default=settings.default,
        enabled=settings.enabled_providers.as_mapping(),
    )
    for name, entry in BACKEND_CATALOG.items():
        registry.register(name, entry.factory, display_name=entry.display_name)
    return registry


def build_cache(settings: Settings) -> CacheBackend | None:
    """Usage report cache, or None when caching is disabled."""
    if not settings.cache.enabled:
        return None
    prefix = f"{settings.cache.prefix}:"
    if settings.cache.backend == "redis":
        return RedisCacheBackend(
            redis_url=settings.cache.redis_url,
            prefix=prefix,
            default_ttl=settings.cache.ttl,
        )
    return MemoryCacheBackend(prefix=prefix, default_ttl=settings.cache.ttl)
