"""Utility functions."""

from multicloud.utils.context import (
    RequestContextMiddleware,
    get_request_id,
)
from multicloud.utils.storage import (
    DANGEROUS_EXTENSIONS,
    generate_file_key,
    read_upload,
    sanitize_filename,
    upload_key,
    validate_upload,
)
from multicloud.utils.timezone import (
    UTC,
    from_iso8601,
    to_iso8601,
    to_utc,
    utc_after,
    utc_now,
)

__all__ = [
    # Request context
    "RequestContextMiddleware",
    "get_request_id",
    # Uploads
    "DANGEROUS_EXTENSIONS",
    "generate_file_key",
    "read_upload",
    "sanitize_filename",
    "upload_key",
    "validate_upload",
    # Time
    "UTC",
    "from_iso8601",
    "to_iso8601",
    "to_utc",
    "utc_after",
    "utc_now",
]
