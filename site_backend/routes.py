"""
HTTP routes for the site backend API.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile

from site_backend.assets import AssetStore
from site_backend.auth import require_admin
from site_backend.dependencies import get_asset_store
from site_backend.errors import AssetStoreError, NotFoundError, ValidationError
from site_backend.schemas import (
    AssetResponse,
    DeleteResponse,
    HealthResponse,
    UploadResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _http_error(exc: AssetStoreError, failure_detail: str) -> HTTPException:
    if isinstance(exc, NotFoundError):
        detail = "Not found"
    elif isinstance(exc, ValidationError):
        detail = str(exc)
    else:
        detail = failure_detail
    return HTTPException(status_code=exc.status_code, detail=detail)


@router.get("/health", response_model=HealthResponse)
def health():
    return HealthResponse(ok=True, at=datetime.now(timezone.utc).isoformat())


@router.get("/assets", response_model=dict[str, str])
def list_assets(assets: AssetStore = Depends(get_asset_store)):
    try:
        return assets.list_all()
    except AssetStoreError as exc:
        logger.exception("Listing assets failed")
        raise _http_error(exc, "Failed to list assets") from exc


# Keys may contain "/", hence the path converter.
@router.get("/assets/{key:path}", response_model=AssetResponse)
def get_asset(key: str, assets: AssetStore = Depends(get_asset_store)):
    try:
        record = assets.lookup(key)
    except NotFoundError as exc:
        raise _http_error(exc, "Not found") from exc
    except AssetStoreError as exc:
        logger.exception("Reading asset %s failed", key)
        raise _http_error(exc, "Failed to read asset") from exc
    return AssetResponse(key=record.key, url=record.url)


@router.post("/assets", response_model=UploadResponse)
def upload_asset(
    key: Optional[str] = Form(None),
    file: Optional[UploadFile] = File(None),
    assets: AssetStore = Depends(get_asset_store),
    _claims: Optional[dict] = Depends(require_admin),
):
    """
    Create or replace the image stored under ``key``.
    """
    data = None
    original_name = None
    if file is not None:
        # One byte past the limit is enough to reject an oversized upload.
        data = file.file.read(assets.context.settings.max_upload_bytes + 1)
        original_name = file.filename
    try:
        record = assets.upload(key, data, original_name)
    except ValidationError as exc:
        raise _http_error(exc, "Upload failed") from exc
    except Exception as exc:
        logger.exception("Upload of asset %s failed", key)
        raise HTTPException(status_code=500, detail="Upload failed") from exc
    return UploadResponse(success=True, key=record.key, url=record.url)


@router.delete("/assets/{key:path}", response_model=DeleteResponse)
def delete_asset(key: str, assets: AssetStore = Depends(get_asset_store)):
    # Deleting an unknown key still reports success.
    try:
        assets.delete(key)
    except AssetStoreError as exc:
        logger.exception("Delete of asset %s failed", key)
        raise _http_error(exc, "Delete failed") from exc
    return DeleteResponse(success=True, key=key)
