"""
S3-compatible storage backend implementation.

Works with:
- AWS S3
- DigitalOcean Spaces
- Cloudflare R2
- Alibaba Cloud OSS (S3-compatible API)
- IBM Cloud Object Storage (HMAC credentials)
- Oracle Cloud Object Storage (S3 compatibility API)
"""

from __future__ import annotations

import hashlib
from typing import Any, Mapping, Optional

import aioboto3
import aiofiles
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from multicloud.core.exceptions import ProviderError
from multicloud.core.interfaces.storage import FileMetadata, OperationResult
from multicloud.implementations.storage.base import BaseAdapter

AWS_ERRORS = (ClientError, BotoCoreError)


def _is_not_found(error: ClientError) -> bool:
    code = str(error.response.get("Error", {}).get("Code", ""))
    return code in {"404", "NoSuchKey", "NotFound"}


class S3Adapter(BaseAdapter):
    """
    S3-compatible storage adapter.

    One class serves every S3-speaking vendor; the registry gives each
    instance its backend name and a normalized config:

        key, secret, region, bucket, endpoint, use_path_style_endpoint,
        acl, cache_control, storage_class, public_url

    Usage:
        adapter = S3Adapter("digitalocean", "DigitalOcean Spaces")
        await adapter.connect({
            "key": "...",
            "secret": "...",
            "region": "nyc3",
            "bucket": "my-space",
            "endpoint": "https://nyc3.digitaloceanspaces.com",
        })
        result = await adapter.upload("users/123/avatar.jpg", image_bytes)
    """

    name = "aws"
    display_name = "Amazon Web Services S3"
    version = "1.0.0"

    def __init__(self, name: str | None = None, display_name: str | None = None):
        super().__init__(name, display_name)
        self._session: aioboto3.Session | None = None
        self._client_kwargs: dict[str, Any] = {}
        self.bucket = ""

    async def connect(self, config: Mapping[str, Any]) -> bool:
        """Create the SDK session. Clients are opened per operation."""
        if not config.get("bucket"):
            return False

        self._configure(config)
        self.bucket = config["bucket"]
        self._session = aioboto3.Session(
            aws_access_key_id=config.get("key") or None,
            aws_secret_access_key=config.get("secret") or None,
            region_name=config.get("region") or "us-east-1",
        )

        client_kwargs: dict[str, Any] = {}
        if config.get("endpoint"):
            client_kwargs["endpoint_url"] = config["endpoint"]
        if config.get("use_path_style_endpoint"):
            client_kwargs["config"] = Config(s3={"addressing_style": "path"})
        self._client_kwargs = client_kwargs
        return True

    def _client(self):
        if self._session is None:
            raise ProviderError("Adapter not connected", provider=self.name)
        return self._session.client("s3", **self._client_kwargs)

    def _object_url(self, path: str) -> str:
        if self.config.get("public_url"):
            return f"{self.config['public_url'].rstrip('/')}/{path}"
        if self.config.get("endpoint"):
            return f"{self.config['endpoint'].rstrip('/')}/{self.bucket}/{path}"
        region = self.config.get("region") or "us-east-1"
        return f"https://{self.bucket}.s3.{region}.amazonaws.com/{path}"

    async def upload(
        self,
        path: str,
        content: bytes,
        options: Mapping[str, Any] | None = None,
    ) -> OperationResult:
        """Upload a file to the bucket."""
        options = options or {}
        etag = hashlib.md5(content).hexdigest()

        extra_args: dict[str, Any] = {
            "ContentType": self._content_type(path, options),
        }
        if options.get("visibility") == "public":
            extra_args["ACL"] = "public-read"
        elif self.config.get("acl"):
            extra_args["ACL"] = self.config["acl"]
        cache_control = options.get("cache_control") or self.config.get("cache_control")
        if cache_control:
            extra_args["CacheControl"] = cache_control
        if self.config.get("storage_class"):
            extra_args["StorageClass"] = self.config["storage_class"]
        metadata = self._string_metadata(options)
        if metadata:
            extra_args["Metadata"] = metadata

        self._count("put")
        try:
            async with self._client() as s3:
                response = await s3.put_object(
                    Bucket=self.bucket,
                    Key=path,
                    Body=content,
                    **extra_args,
                )
        except AWS_ERRORS as e:
            return self._fail("Upload", e)

        return self._ok(
            path=path,
            size=len(content),
            etag=response.get("ETag", etag).strip('"'),
            url=self._object_url(path),
        )

    async def download(
        self,
        path: str,
        local_path: Optional[str] = None,
    ) -> OperationResult:
        """Download file contents, optionally saving them to local_path."""
        self._count("get")
        try:
            async with self._client() as s3:
                response = await s3.get_object(Bucket=self.bucket, Key=path)
                async with response["Body"] as stream:
                    content = await stream.read()
        except ClientError as e:
            if _is_not_found(e):
                return self._fail("Download", f"File not found: {path}")
            return self._fail("Download", e)
        except BotoCoreError as e:
            return self._fail("Download", e)

        if local_path:
            async with aiofiles.open(local_path, "wb") as f:
                await f.write(content)

        return self._ok(path=path, content=content, size=len(content), local_path=local_path)

    async def delete(self, path: str) -> OperationResult:
        """Delete a file. S3 reports success for missing keys."""
        self._count("delete")
        try:
            async with self._client() as s3:
                await s3.delete_object(Bucket=self.bucket, Key=path)
        except AWS_ERRORS as e:
            return self._fail("Delete", e)
        return self._ok(path=path, deleted=True)

    async def list_files(
        self,
        prefix: str = "",
        options: Mapping[str, Any] | None = None,
    ) -> OperationResult:
        """List files with prefix."""
        options = options or {}
        limit = int(options.get("limit", 1000))
        files: list[FileMetadata] = []

        kwargs: dict[str, Any] = {"Bucket": self.bucket}
        if prefix:
            kwargs["Prefix"] = prefix

        try:
            async with self._client() as s3:
                paginator = s3.get_paginator("list_objects_v2")
                async for page in paginator.paginate(**kwargs):
                    self._count("list")
                    for obj in page.get("Contents", []):
                        files.append(FileMetadata(
                            path=obj["Key"],
                            size=obj["Size"],
                            etag=obj.get("ETag", "").strip('"') or None,
                            last_modified=obj.get("LastModified"),
                        ))
                    if len(files) >= limit:
                        break
        except AWS_ERRORS as e:
            return self._fail("List", e)

        files = files[:limit]
        return self._ok(files=files, count=len(files), prefix=prefix)

    async def exists(self, path: str) -> bool:
        """Check if file exists."""
        self._count("get")
        try:
            async with self._client() as s3:
                await s3.head_object(Bucket=self.bucket, Key=path)
                return True
        except ClientError as e:
            if _is_not_found(e):
                return False
            raise ProviderError(f"Exists check failed: {e}", provider=self.name) from e
        except BotoCoreError as e:
            raise ProviderError(f"Exists check failed: {e}", provider=self.name) from e

    async def get_metadata(self, path: str) -> OperationResult:
        """Get file metadata without downloading."""
        self._count("get")
        try:
            async with self._client() as s3:
                response = await s3.head_object(Bucket=self.bucket, Key=path)
        except AWS_ERRORS as e:
            return self._fail("Metadata lookup", e)

        metadata = FileMetadata(
            path=path,
            size=response["ContentLength"],
            content_type=response.get("ContentType", "application/octet-stream"),
            etag=response.get("ETag", "").strip('"') or None,
            last_modified=response.get("LastModified"),
            extra={
                "cache_control": response.get("CacheControl"),
                "storage_class": response.get("StorageClass", "STANDARD"),
                "metadata": response.get("Metadata", {}),
            },
        )
        return self._ok(metadata=metadata)

    async def generate_signed_url(self, path: str, ttl: int) -> str:
        """Get a presigned GET URL. Returns "" when the SDK cannot sign."""
        try:
            async with self._client() as s3:
                return await s3.generate_presigned_url(
                    "get_object",
                    Params={"Bucket": self.bucket, "Key": path},
                    ExpiresIn=ttl,
                )
        except (*AWS_ERRORS, ProviderError):
            return ""

    async def get_usage(self) -> OperationResult:
        """Walk the bucket for object count and size, then estimate costs."""
        object_count = 0
        total_bytes = 0
        try:
            async with self._client() as s3:
                paginator = s3.get_paginator("list_objects_v2")
                async for page in paginator.paginate(Bucket=self.bucket):
                    self._count("list")
                    for obj in page.get("Contents", []):
                        object_count += 1
                        total_bytes += obj["Size"]
        except AWS_ERRORS as e:
            return self._fail("Usage collection", e)

        report = self._usage_report(
            object_count,
            total_bytes,
            extra={"bucket": self.bucket, "region": self.config.get("region")},
        )
        return self._ok(usage=report)

    async def test_connection(self) -> OperationResult:
        """Check credentials and bucket reachability."""
        try:
            async with self._client() as s3:
                await s3.head_bucket(Bucket=self.bucket)
        except AWS_ERRORS as e:
            return self._fail("Connection test", e)
        return self._ok(
            message=f"{self.display_name} connection successful",
            bucket=self.bucket,
            region=self.config.get("region"),
        )
