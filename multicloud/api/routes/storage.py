"""
Storage gateway API routes.

- Upload (POST /upload) - multipart, goes through retry/fallback
- Download (GET /download) - raw bytes, X-Served-By header
- Delete (DELETE /delete) - idempotent
- List / exists / metadata (GET)
- Signed URL (GET /signed-url) - single backend, TTL clamped
- Usage (GET /usage) - per-backend entries, one failure never hides the rest
- Test connection / providers (GET)

Every endpoint takes an optional `provider`; the default backend is used
when it is omitted.
"""

import json
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from fastapi.responses import JSONResponse, Response

from multicloud.api.dependencies.services import (
    ensure_provider,
    get_app_settings,
    get_gateway,
    get_provider,
)
from multicloud.core.config import Settings
from multicloud.core.interfaces.storage import OperationResult
from multicloud.schemas.storage import (
    BackendResponse,
    ProvidersResponse,
    SignedUrlResponse,
    UsageResponse,
)
from multicloud.services.gateway import StorageGateway
from multicloud.utils.storage import read_upload, upload_key

router = APIRouter()

Gateway = Annotated[StorageGateway, Depends(get_gateway)]
Provider = Annotated[Optional[str], Depends(get_provider)]


def respond(result: OperationResult) -> JSONResponse:
    """Success results are 200; backend failures are 502 with the normalized body."""
    return JSONResponse(
        content=result.to_dict(),
        status_code=status.HTTP_200_OK if result.ok else status.HTTP_502_BAD_GATEWAY,
    )


# ============================================================
# DATA OPERATIONS
# ============================================================

@router.post("/upload")
async def upload(
    gateway: Gateway,
    settings: Annotated[Settings, Depends(get_app_settings)],
    file: UploadFile = File(...),
    path: Optional[str] = Form(None, max_length=1024),
    provider: Optional[str] = Form(None),
    options: Optional[str] = Form(None, description="JSON object of upload options"),
) -> JSONResponse:
    """
    Upload a file.

    `path` is the object key; a trailing "/" treats it as a folder and the
    sanitized filename is appended. `options` may set visibility,
    cache_control, content_type and metadata.
    """
    ensure_provider(gateway, provider)

    parsed_options = {}
    if options:
        try:
            parsed_options = json.loads(options)
        except json.JSONDecodeError:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="options must be a JSON object",
            )
        if not isinstance(parsed_options, dict):
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="options must be a JSON object",
            )

    content = await read_upload(file, settings.upload)
    if file.content_type and "content_type" not in parsed_options:
        parsed_options["content_type"] = file.content_type

    key = upload_key(path, file.filename)
    result = await gateway.upload(key, content, parsed_options, provider=provider)
    return respond(result)


@router.get("/download", response_model=None)
async def download(
    gateway: Gateway,
    provider: Provider,
    path: str = Query(..., max_length=1024),
) -> Response:
    """Download a file's bytes."""
    result = await gateway.download(path, provider=provider)
    if not result.ok:
        return respond(result)

    filename = path.rsplit("/", 1)[-1]
    return Response(
        content=result.data["content"],
        media_type="application/octet-stream",
        headers={
            "Content-Disposition": f'attachment; filename="{filename}"',
            "X-Served-By": result.served_by or result.provider,
        },
    )


@router.delete("/delete")
async def delete(
    gateway: Gateway,
    provider: Provider,
    path: str = Query(..., max_length=1024),
) -> JSONResponse:
    """Delete a file. Deleting a missing file succeeds."""
    return respond(await gateway.delete(path, provider=provider))


@router.get("/list")
async def list_files(
    gateway: Gateway,
    provider: Provider,
    path: str = Query("", max_length=1024, description="Key prefix"),
    limit: int = Query(1000, ge=1, le=10000),
) -> JSONResponse:
    """List files under a prefix."""
    return respond(await gateway.list_files(path, {"limit": limit}, provider=provider))


@router.get("/exists")
async def exists(
    gateway: Gateway,
    provider: Provider,
    path: str = Query(..., max_length=1024),
) -> JSONResponse:
    """Check whether a file exists."""
    return respond(await gateway.exists(path, provider=provider))


@router.get("/metadata")
async def metadata(
    gateway: Gateway,
    provider: Provider,
    path: str = Query(..., max_length=1024),
) -> JSONResponse:
    """Get file metadata without downloading."""
    return respond(await gateway.get_metadata(path, provider=provider))


# ============================================================
# SINGLE-BACKEND OPERATIONS
# ============================================================

@router.get("/signed-url", response_model=SignedUrlResponse)
async def signed_url(
    gateway: Gateway,
    provider: Provider,
    path: str = Query(..., max_length=1024),
    expiration: Optional[int] = Query(None, ge=1, le=604800, description="TTL in seconds"),
) -> SignedUrlResponse:
    """Generate a time-limited URL. Short TTLs are raised to the policy minimum."""
    signed = await gateway.generate_signed_url(path, expiration, provider=provider)
    return SignedUrlResponse(
        provider=signed.provider,
        path=signed.path,
        signed_url=signed.url,
        expiration=signed.ttl,
        expires_at=signed.expires_at,
    )


@router.get("/usage", response_model=UsageResponse)
async def usage(
    gateway: Gateway,
    provider: Annotated[Optional[list[str]], Query()] = None,
    all_providers: bool = Query(False, alias="all", description="Collect from every enabled backend"),
    refresh: bool = Query(False, description="Bypass cached reports"),
) -> UsageResponse:
    """
    Usage statistics and estimated costs.

    Without `provider` or `all`, reports the default backend.
    """
    for name in provider or []:
        ensure_provider(gateway, name)

    if all_providers:
        names = None
    elif provider:
        names = provider
    else:
        names = [gateway.registry.default]

    entries = await gateway.get_usage(names, refresh=refresh)
    return UsageResponse(providers={name: entry.to_dict() for name, entry in entries.items()})


@router.get("/test-connection")
async def test_connection(gateway: Gateway, provider: Provider) -> JSONResponse:
    """Check a backend's credentials and reachability."""
    return respond(await gateway.test_connection(provider))


@router.get("/providers", response_model=ProvidersResponse)
async def providers(gateway: Gateway) -> ProvidersResponse:
    """List configured backends."""
    backends = [BackendResponse(**info.to_dict()) for info in gateway.list_backends()]
    return ProvidersResponse(
        providers=backends,
        default=gateway.registry.default,
        count=len(backends),
    )
