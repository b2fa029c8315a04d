"""
Signed URL policy.

The TTL is clamped into the policy window before the adapter is asked to
sign; the URL that comes back is opaque except that it must not be empty.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping

import structlog

from multicloud.core.config import SignedUrlSettings
from multicloud.core.exceptions import SigningFailed, ValidationError
from multicloud.core.interfaces.storage import SignedUrl
from multicloud.core.plugins.registry import DriverHandle
from multicloud.utils.timezone import utc_after

logger = structlog.get_logger(__name__)

DEFAULT_MIN_TTL = 60
DEFAULT_MAX_TTL = 7 * 24 * 3600


@dataclass(frozen=True)
class SignedUrlPolicy:
    min_ttl: int = DEFAULT_MIN_TTL
    max_ttl: int = DEFAULT_MAX_TTL

    def __post_init__(self) -> None:
        if self.min_ttl < 1 or self.min_ttl > self.max_ttl:
            raise ValueError("signed URL policy needs 1 <= min_ttl <= max_ttl")

    def clamp(self, ttl: int) -> int:
        """
        Bring ttl into [min_ttl, max_ttl].

        Raises:
            ValidationError: ttl is zero or negative
        """
        if ttl <= 0:
            raise ValidationError(f"Signed URL ttl must be positive, got {ttl}")
        return max(self.min_ttl, min(ttl, self.max_ttl))

    async def sign(self, handle: DriverHandle, path: str, ttl: int) -> SignedUrl:
        """
        Ask the backend for a signed URL.

        Raises:
            ValidationError: ttl is zero or negative (adapter is not called)
            SigningFailed: the adapter raised or returned an empty URL
        """
        effective = self.clamp(ttl)
        if effective != ttl:
            logger.info("Clamped signed URL ttl", backend=handle.name, requested=ttl, ttl=effective)

        try:
            url = await handle.adapter.generate_signed_url(path, effective)
        except Exception as e:
            logger.warning("Signed URL generation raised", backend=handle.name, error=str(e))
            raise SigningFailed(f"Failed to sign {path}: {e}", provider=handle.name) from e

        if not url:
            raise SigningFailed(f"Backend returned an empty signed URL for {path}", provider=handle.name)

        return SignedUrl(
            url=url,
            path=path,
            provider=handle.name,
            ttl=effective,
            expires_at=utc_after(effective),
        )


@dataclass(frozen=True)
class SigningPolicies:
    """Default policy plus per-backend overrides."""
    default: SignedUrlPolicy = field(default_factory=SignedUrlPolicy)
    overrides: Mapping[str, SignedUrlPolicy] = field(default_factory=dict)

    def policy_for(self, name: str) -> SignedUrlPolicy:
        return self.overrides.get(name, self.default)

    @classmethod
    def from_settings(cls, settings: SignedUrlSettings) -> "SigningPolicies":
        default = SignedUrlPolicy(min_ttl=settings.min_ttl, max_ttl=settings.max_ttl)
        overrides = {
            name: SignedUrlPolicy(
                min_ttl=bounds.get("min_ttl", default.min_ttl),
                max_ttl=bounds.get("max_ttl", default.max_ttl),
            )
            for name, bounds in settings.overrides.items()
        }
        return cls(default=default, overrides=overrides)
