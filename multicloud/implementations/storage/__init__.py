"""
Storage backend adapters.

Available adapters:
- S3Adapter: AWS S3 and S3-compatible stores (aioboto3)
- LibcloudAdapter: Azure Blob Storage, Google Cloud Storage (Apache Libcloud)
- CloudinaryAdapter: Cloudinary media store (httpx)
- LocalAdapter: Local filesystem (development)

Usage:
    # Let the registry build and connect adapters from settings:
    from multicloud.implementations.register import build_registry

    registry = build_registry(get_settings())
    handle = await registry.resolve("aws")

    # Or instantiate directly:
    adapter = LocalAdapter()
    await adapter.connect({"path": "./storage"})
"""

from multicloud.implementations.storage.local import LocalAdapter
from multicloud.implementations.storage.s3 import S3Adapter
from multicloud.implementations.storage.cloud import LibcloudAdapter
from multicloud.implementations.storage.cloudinary import CloudinaryAdapter

__all__ = ["LocalAdapter", "S3Adapter", "LibcloudAdapter", "CloudinaryAdapter"]
