"""
Storage provider protocol and normalized result types.

Every backend adapter (S3-compatible, Libcloud, Cloudinary, local) implements
StorageProvider and returns OperationResult from every operation, so the
gateway never touches vendor response objects.
"""
from __future__ import annotations

from typing import Protocol, Any, Mapping, Optional
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from multicloud.utils.timezone import utc_now, to_iso8601, from_iso8601


class OperationStatus(str, Enum):
    SUCCESS = "success"
    ERROR = "error"


class ErrorKind(str, Enum):
    VALIDATION = "validation_error"
    CONNECTION = "connection_error"
    UNKNOWN_BACKEND = "unknown_backend"
    PROVIDER = "provider_error"
    SIGNING_FAILED = "signing_failed"
    FALLBACK_EXHAUSTED = "fallback_exhausted"


@dataclass
class FileMetadata:
    """Represents a stored object."""
    path: str
    size: int
    content_type: str = "application/octet-stream"
    etag: str | None = None
    last_modified: datetime | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def name(self) -> str:
        return self.path.rsplit("/", 1)[-1]

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "path": self.path,
            "size": self.size,
            "content_type": self.content_type,
            "etag": self.etag,
            "last_modified": to_iso8601(self.last_modified),
            **self.extra,
        }


@dataclass
class UsageReport:
    """
    Normalized usage telemetry for one backend.

    `requests` and `costs` are open mappings (get/put/delete/head...,
    storage/request/bandwidth...). Anything a backend reports beyond
    storage, requests and costs goes into `extra`.
    """
    provider: str
    object_count: int = 0
    total_bytes: int = 0
    requests: dict[str, int] = field(default_factory=dict)
    costs: dict[str, float] = field(default_factory=dict)
    total_cost: float = 0.0
    extra: dict[str, Any] = field(default_factory=dict)
    collected_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "provider": self.provider,
            "storage": {
                "object_count": self.object_count,
                "total_bytes": self.total_bytes,
            },
            "requests": dict(self.requests),
            "costs": {**self.costs, "total": round(self.total_cost, 6)},
            "extra": dict(self.extra),
            "collected_at": to_iso8601(self.collected_at),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "UsageReport":
        """Rebuild a report from its `to_dict()` form (cache round trip)."""
        costs = dict(data.get("costs") or {})
        total = costs.pop("total", 0.0)
        storage = data.get("storage") or {}
        collected_at = data.get("collected_at")
        return cls(
            provider=data["provider"],
            object_count=int(storage.get("object_count", 0)),
            total_bytes=int(storage.get("total_bytes", 0)),
            requests={k: int(v) for k, v in (data.get("requests") or {}).items()},
            costs={k: float(v) for k, v in costs.items()},
            total_cost=float(total),
            extra=dict(data.get("extra") or {}),
            collected_at=from_iso8601(collected_at) if collected_at else utc_now(),
        )


@dataclass
class SignedUrl:
    """Time-boxed access URL. The signature material is opaque."""
    url: str
    path: str
    provider: str
    ttl: int
    expires_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "signed_url": self.url,
            "path": self.path,
            "provider": self.provider,
            "expiration": self.ttl,
            "expires_at": to_iso8601(self.expires_at),
        }


@dataclass
class OperationResult:
    """
    Normalized outcome of a storage operation.

    Error results never carry payload; whatever was passed in `data`
    is dropped so callers cannot mistake it for valid output.
    An error coming out of the fallback orchestrator also lists, in order,
    every backend that was tried (`failures`).
    """
    status: OperationStatus
    provider: str
    data: dict[str, Any] = field(default_factory=dict)
    message: str | None = None
    error_kind: ErrorKind | None = None
    served_by: str | None = None
    requested: str | None = None
    attempts: int = 1
    failures: list[dict[str, Any]] = field(default_factory=list)
    timestamp: datetime = field(default_factory=utc_now)

    def __post_init__(self) -> None:
        if self.status is OperationStatus.ERROR:
            self.data = {}
            if self.error_kind is None:
                self.error_kind = ErrorKind.PROVIDER

    @classmethod
    def success(cls, provider: str, **data: Any) -> "OperationResult":
        return cls(status=OperationStatus.SUCCESS, provider=provider, data=data)

    @classmethod
    def failure(
        cls,
        provider: str,
        message: str,
        kind: ErrorKind = ErrorKind.PROVIDER,
    ) -> "OperationResult":
        return cls(
            status=OperationStatus.ERROR,
            provider=provider,
            message=message,
            error_kind=kind,
        )

    @property
    def ok(self) -> bool:
        return self.status is OperationStatus.SUCCESS

    def to_dict(self) -> dict[str, Any]:
        """JSON-safe form. Raw bytes are reported by size only."""
        body: dict[str, Any] = {
            "status": self.status.value,
            "provider": self.provider,
        }
        if self.served_by:
            body["served_by"] = self.served_by
        if self.requested:
            body["requested"] = self.requested
            body["attempts"] = self.attempts
        if self.ok:
            body.update(_jsonable(self.data))
        else:
            body["message"] = self.message
            body["error_kind"] = self.error_kind.value if self.error_kind else None
            if self.failures:
                body["tried"] = [f["backend"] for f in self.failures]
                body["failures"] = [dict(f) for f in self.failures]
        body["timestamp"] = to_iso8601(self.timestamp)
        return body


def _jsonable(data: Mapping[str, Any]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key, value in data.items():
        if isinstance(value, (bytes, bytearray)):
            out.setdefault("size", len(value))
            continue
        if isinstance(value, (FileMetadata, UsageReport)):
            out[key] = value.to_dict()
        elif isinstance(value, list):
            out[key] = [v.to_dict() if isinstance(v, FileMetadata) else v for v in value]
        elif isinstance(value, datetime):
            out[key] = to_iso8601(value)
        else:
            out[key] = value
    return out


class StorageProvider(Protocol):
    """
    Protocol every backend adapter implements.

    Implementations:
    - S3Adapter: AWS, DigitalOcean Spaces, Cloudflare R2, Alibaba OSS, IBM COS, Oracle
    - LibcloudAdapter: Azure Blob Storage, Google Cloud Storage
    - CloudinaryAdapter: Cloudinary media store
    - LocalAdapter: local filesystem (development)
    """

    name: str
    display_name: str
    version: str

    async def connect(self, config: Mapping[str, Any]) -> bool:
        """Initialize clients from config. No network I/O is required."""
        ...

    async def upload(
        self,
        path: str,
        content: bytes,
        options: Mapping[str, Any] | None = None,
    ) -> OperationResult:
        """Upload an object. Payload: path, size, etag, url."""
        ...

    async def download(
        self,
        path: str,
        local_path: Optional[str] = None,
    ) -> OperationResult:
        """Download an object. Payload: path, content, size."""
        ...

    async def delete(self, path: str) -> OperationResult:
        """Delete an object. Deleting a missing object is success."""
        ...

    async def list_files(
        self,
        prefix: str = "",
        options: Mapping[str, Any] | None = None,
    ) -> OperationResult:
        """List objects under prefix. Payload: files (list[FileMetadata]), count."""
        ...

    async def exists(self, path: str) -> bool:
        """Check if an object exists."""
        ...

    async def get_metadata(self, path: str) -> OperationResult:
        """Get object metadata. Payload: metadata (FileMetadata)."""
        ...

    async def generate_signed_url(self, path: str, ttl: int) -> str:
        """Signed URL valid for ttl seconds. Empty string on failure."""
        ...

    async def get_usage(self) -> OperationResult:
        """Usage telemetry. Payload: usage (UsageReport or raw mapping)."""
        ...

    async def test_connection(self) -> OperationResult:
        """Validate credentials/reachability against the real service."""
        ...

    async def close(self) -> None:
        """Release network clients."""
        ...
