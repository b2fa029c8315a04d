"""
Timezone Utilities.

Golden Rules:
1. Adapters: Always produce UTC timestamps
2. API: Return ISO 8601 with Z suffix (UTC)
3. Vendor timestamps (naive or offset) are normalized on the way in

Usage:
    from multicloud.utils.timezone import utc_now, to_iso8601

    result.timestamp = utc_now()
    body["expires_at"] = to_iso8601(signed.expires_at)
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

# UTC constant
UTC = timezone.utc


def utc_now() -> datetime:
    """
    Get current time in UTC (timezone-aware).

    Always use this instead of datetime.utcnow() which returns
    naive datetime.
    """
    return datetime.now(UTC)


def utc_after(seconds: int) -> datetime:
    """Get the UTC instant `seconds` from now (signed URL expiry)."""
    return utc_now() + timedelta(seconds=seconds)


def to_utc(dt: datetime) -> datetime:
    """
    Convert datetime to UTC.

    Naive datetimes are assumed to already be UTC, which is what
    boto, libcloud and the filesystem hand back.
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def to_iso8601(dt: Optional[datetime]) -> Optional[str]:
    """
    Format as ISO 8601 with Z suffix.

    Usage:
        iso = to_iso8601(meta.last_modified)
        # "2024-01-15T14:30:00Z"
    """
    if dt is None:
        return None
    return to_utc(dt).strftime("%Y-%m-%dT%H:%M:%SZ")


def from_iso8601(iso_string: str) -> datetime:
    """
    Parse ISO 8601 string to UTC datetime.

    Handles:
    - "2024-01-15T14:30:00Z"
    - "2024-01-15T09:30:00-05:00"
    """
    if iso_string.endswith("Z"):
        iso_string = iso_string[:-1] + "+00:00"
    return to_utc(datetime.fromisoformat(iso_string))
