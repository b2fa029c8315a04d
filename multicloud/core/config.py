"""
Application configuration using Pydantic Settings.
"""

from typing import Any
from functools import lru_cache
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# ============================================================
# BACKEND CREDENTIALS
# ============================================================

class AwsSettings(BaseSettings):
    """Amazon S3."""

    model_config = SettingsConfigDict(env_prefix="AWS_", extra="ignore")

    key: str = Field(default="", validation_alias="AWS_ACCESS_KEY_ID")
    secret: str = Field(default="", validation_alias="AWS_SECRET_ACCESS_KEY")
    region: str = Field(default="us-east-1", validation_alias="AWS_DEFAULT_REGION")
    bucket: str = Field(default="")
    endpoint: str | None = Field(default=None)
    use_path_style_endpoint: bool = Field(default=False)
    acl: str = Field(default="private")
    cache_control: str = Field(default="max-age=31536000")


class AzureSettings(BaseSettings):
    """Azure Blob Storage."""

    model_config = SettingsConfigDict(env_prefix="AZURE_STORAGE_", extra="ignore")

    account_name: str = Field(default="")
    account_key: str = Field(default="")
    container: str = Field(default="")
    connection_string: str | None = Field(default=None)
    sas_token: str | None = Field(default=None)
    endpoint: str | None = Field(default=None)
    cache_control: str = Field(default="max-age=31536000")


class GcpSettings(BaseSettings):
    """Google Cloud Storage."""

    model_config = SettingsConfigDict(env_prefix="GCP_", extra="ignore")

    project_id: str = Field(default="")
    bucket: str = Field(default="")
    key_file: str | None = Field(default=None, description="Path to service account JSON")
    client_email: str = Field(default="")
    private_key: str | None = Field(default=None)
    predefined_acl: str = Field(default="private")
    cache_control: str = Field(default="max-age=31536000")


class CloudinarySettings(BaseSettings):
    """Cloudinary media store."""

    model_config = SettingsConfigDict(env_prefix="CLOUDINARY_", extra="ignore")

    cloud_name: str = Field(default="")
    api_key: str = Field(default="")
    api_secret: str = Field(default="")
    auth_key: str | None = Field(default=None, description="Hex key for token-based URL auth")
    secure: bool = Field(default=True)
    resource_type: str = Field(default="image")
    quality: str = Field(default="auto")
    format: str = Field(default="auto")


class AlibabaSettings(BaseSettings):
    """Alibaba Cloud OSS (S3-compatible API)."""

    model_config = SettingsConfigDict(env_prefix="ALIBABA_", extra="ignore")

    access_key_id: str = Field(default="")
    access_key_secret: str = Field(default="")
    endpoint: str | None = Field(default=None, validation_alias="ALIBABA_OSS_ENDPOINT")
    bucket: str = Field(default="", validation_alias="ALIBABA_OSS_BUCKET")
    region: str = Field(default="oss-cn-hangzhou", validation_alias="ALIBABA_OSS_REGION")
    acl: str = Field(default="private", validation_alias="ALIBABA_OSS_ACL")
    cache_control: str = Field(default="max-age=31536000")


class IbmSettings(BaseSettings):
    """IBM Cloud Object Storage (HMAC credentials)."""

    model_config = SettingsConfigDict(env_prefix="IBM_", extra="ignore")

    access_key_id: str = Field(default="")
    secret_access_key: str = Field(default="")
    service_instance_id: str = Field(default="")
    endpoint: str | None = Field(default=None)
    bucket: str = Field(default="")
    region: str = Field(default="us-south")
    storage_class: str = Field(default="standard")
    cache_control: str = Field(default="max-age=31536000")


class DigitalOceanSettings(BaseSettings):
    """DigitalOcean Spaces."""

    model_config = SettingsConfigDict(env_prefix="DO_SPACES_", extra="ignore")

    access_key: str = Field(default="")
    secret_key: str = Field(default="")
    region: str = Field(default="nyc3")
    bucket: str = Field(default="")
    endpoint: str | None = Field(default=None)
    acl: str = Field(default="private")
    cache_control: str = Field(default="max-age=31536000")


class OracleSettings(BaseSettings):
    """Oracle Cloud Object Storage (S3 compatibility API)."""

    model_config = SettingsConfigDict(env_prefix="ORACLE_", extra="ignore")

    access_key_id: str = Field(default="", description="Customer secret key id")
    secret_access_key: str = Field(default="")
    region: str = Field(default="us-ashburn-1")
    bucket: str = Field(default="")
    namespace: str = Field(default="")
    storage_tier: str = Field(default="standard")
    cache_control: str = Field(default="max-age=31536000")


class CloudflareSettings(BaseSettings):
    """Cloudflare R2."""

    model_config = SettingsConfigDict(env_prefix="CLOUDFLARE_", extra="ignore")

    account_id: str = Field(default="")
    access_key_id: str = Field(default="")
    secret_access_key: str = Field(default="")
    bucket: str = Field(default="")
    custom_domain: str | None = Field(default=None)
    public_access: bool = Field(default=False)
    cache_control: str = Field(default="max-age=31536000")


class LocalStorageSettings(BaseSettings):
    """Local filesystem backend (development)."""

    model_config = SettingsConfigDict(env_prefix="LOCAL_STORAGE_", extra="ignore")

    path: str = Field(default="./storage")
    base_url: str = Field(default="/files")
    signing_secret: str = Field(default="change-me-in-production")


# ============================================================
# GATEWAY BEHAVIOUR
# ============================================================

class ProviderToggles(BaseSettings):
    """Enable or disable specific backends."""

    model_config = SettingsConfigDict(env_prefix="MULTICLOUD_", extra="ignore")

    aws_enabled: bool = True
    azure_enabled: bool = True
    gcp_enabled: bool = True
    cloudinary_enabled: bool = True
    alibaba_enabled: bool = True
    ibm_enabled: bool = True
    digitalocean_enabled: bool = True
    oracle_enabled: bool = True
    cloudflare_enabled: bool = True
    local_enabled: bool = True

    def as_mapping(self) -> dict[str, bool]:
        return {
            name.removesuffix("_enabled"): value
            for name, value in self.model_dump().items()
        }


class FallbackSettings(BaseSettings):
    """Fallback chains and retry policy used when a backend fails."""

    model_config = SettingsConfigDict(env_prefix="MULTICLOUD_FALLBACK_", extra="ignore")

    enabled: bool = Field(default=True)
    providers: dict[str, list[str]] = Field(
        default={
            "aws": ["azure", "gcp"],
            "azure": ["aws", "gcp"],
            "gcp": ["aws", "azure"],
            "cloudinary": ["aws", "azure"],
            "alibaba": ["aws", "azure"],
            "ibm": ["aws", "azure"],
            "digitalocean": ["aws", "azure"],
            "oracle": ["aws", "azure"],
            "cloudflare": ["aws", "azure"],
        },
        description="Ordered fallback backends per primary backend",
    )
    max_retries: int = Field(
        default=3, ge=1, validation_alias="MULTICLOUD_MAX_RETRIES",
    )
    retry_delay_ms: int = Field(
        default=1000, ge=0, validation_alias="MULTICLOUD_RETRY_DELAY",
    )

    @field_validator("providers")
    @classmethod
    def reject_self_fallback(cls, v: dict[str, list[str]]) -> dict[str, list[str]]:
        for name, chain in v.items():
            if name in chain:
                raise ValueError(f"backend {name} lists itself as a fallback")
        return v


class UploadSettings(BaseSettings):
    """Upload limits enforced at the HTTP boundary."""

    model_config = SettingsConfigDict(env_prefix="MULTICLOUD_", extra="ignore")

    max_file_size: int = Field(default=10 * 1024 * 1024, ge=1)
    allowed_extensions: list[str] = Field(
        default=[
            "jpg", "jpeg", "png", "gif", "svg", "webp",
            "pdf", "doc", "docx", "xls", "xlsx", "ppt", "pptx",
            "txt", "csv", "json", "xml", "zip", "rar",
            "mp4", "avi", "mov", "wmv", "flv", "webm",
            "mp3", "wav", "flac", "aac", "ogg",
        ]
    )
    visibility: str = Field(default="private")
    cache_control: str = Field(default="max-age=31536000")

    def default_options(self) -> dict[str, Any]:
        return {
            "visibility": self.visibility,
            "cache_control": self.cache_control,
            "metadata": {},
        }


class CacheSettings(BaseSettings):
    """Usage report caching."""

    model_config = SettingsConfigDict(env_prefix="MULTICLOUD_CACHE_", extra="ignore")

    enabled: bool = Field(default=True)
    backend: str = Field(default="memory", description="memory or redis")
    redis_url: str = Field(default="redis://localhost:6379/0")
    ttl: int = Field(default=3600, ge=1)
    prefix: str = Field(default="multicloud")

    @field_validator("backend")
    @classmethod
    def validate_backend(cls, v: str) -> str:
        if v not in {"memory", "redis"}:
            raise ValueError("cache backend must be memory or redis")
        return v


class SecuritySettings(BaseSettings):
    """Upload encryption."""

    model_config = SettingsConfigDict(env_prefix="MULTICLOUD_", extra="ignore")

    encrypt_uploads: bool = Field(default=False)
    encryption_key: str = Field(default="")
    encryption_salt: str = Field(default="multicloud-uploads")

    @model_validator(mode="after")
    def require_key_when_encrypting(self) -> "SecuritySettings":
        if self.encrypt_uploads and not self.encryption_key:
            raise ValueError("MULTICLOUD_ENCRYPTION_KEY is required when encrypt_uploads is on")
        return self


class SignedUrlSettings(BaseSettings):
    """Signed URL TTL policy."""

    model_config = SettingsConfigDict(env_prefix="MULTICLOUD_SIGNED_URL_", extra="ignore")

    min_ttl: int = Field(default=60, ge=1)
    max_ttl: int = Field(default=7 * 24 * 3600, ge=1)
    default_ttl: int = Field(default=3600, ge=1)
    overrides: dict[str, dict[str, int]] = Field(
        default_factory=dict,
        description='Per-backend min/max, e.g. {"cloudinary": {"max_ttl": 86400}}',
    )

    @model_validator(mode="after")
    def check_bounds(self) -> "SignedUrlSettings":
        if self.min_ttl > self.max_ttl:
            raise ValueError("min_ttl must not exceed max_ttl")
        return self


class UsageSettings(BaseSettings):
    """Usage aggregation fan-out."""

    model_config = SettingsConfigDict(env_prefix="MULTICLOUD_USAGE_", extra="ignore")

    max_concurrency: int = Field(default=4, ge=1, le=32)
    timeout: float = Field(default=10.0, gt=0, description="Per-backend timeout in seconds")
    pricing: dict[str, dict[str, float]] = Field(
        default_factory=dict,
        description='Price table overrides, e.g. {"aws": {"storage_gb_month": 0.021}}',
    )


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_prefix="MULTICLOUD_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="MultiCloud Storage Gateway")
    app_version: str = Field(default="0.1.0")
    debug: bool = Field(default=False)
    environment: str = Field(default="development")

    # Server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000)

    # Logging
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json", description="json or text")

    # Default backend
    default: str = Field(default="aws")

    # Backends
    aws: AwsSettings = Field(default_factory=AwsSettings)
    azure: AzureSettings = Field(default_factory=AzureSettings)
    gcp: GcpSettings = Field(default_factory=GcpSettings)
    cloudinary: CloudinarySettings = Field(default_factory=CloudinarySettings)
    alibaba: AlibabaSettings = Field(default_factory=AlibabaSettings)
    ibm: IbmSettings = Field(default_factory=IbmSettings)
    digitalocean: DigitalOceanSettings = Field(default_factory=DigitalOceanSettings)
    oracle: OracleSettings = Field(default_factory=OracleSettings)
    cloudflare: CloudflareSettings = Field(default_factory=CloudflareSettings)
    local: LocalStorageSettings = Field(default_factory=LocalStorageSettings)

    # Gateway behaviour
    enabled_providers: ProviderToggles = Field(default_factory=ProviderToggles)
    fallback: FallbackSettings = Field(default_factory=FallbackSettings)
    upload: UploadSettings = Field(default_factory=UploadSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    signed_url: SignedUrlSettings = Field(default_factory=SignedUrlSettings)
    usage: UsageSettings = Field(default_factory=UsageSettings)

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        allowed = {"development", "staging", "production", "testing"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    def backend_configs(self) -> dict[str, dict[str, Any]]:
        """Per-backend settings as plain mappings, keyed by backend name."""
        return {
            "aws": self.aws.model_dump(),
            "azure": self.azure.model_dump(),
            "gcp": self.gcp.model_dump(),
            "cloudinary": self.cloudinary.model_dump(),
            "alibaba": self.alibaba.model_dump(),
            "ibm": self.ibm.model_dump(),
            "digitalocean": self.digitalocean.model_dump(),
            "oracle": self.oracle.model_dump(),
            "cloudflare": self.cloudflare.model_dump(),
            "local": self.local.model_dump(),
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
