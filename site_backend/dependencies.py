"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import Request

from site_backend.assets import AssetStore
from site_backend.blob_store import BlobStore, InMemoryBlobStore, LocalBlobStore
from site_backend.config import Settings, get_settings
from site_backend.context import AppContext
from site_backend.db import InMemoryMetadataStore, MetadataStore, SqlMetadataStore

logger = logging.getLogger(__name__)


def build_metadata_store(settings: Settings) -> MetadataStore:
    if settings.use_in_memory_backends or not settings.database_url:
        logger.warning("DATABASE_URL not set; asset metadata is kept in memory")
        return InMemoryMetadataStore()
    return SqlMetadataStore(settings.database_url)


def build_blob_store(settings: Settings) -> BlobStore:
    if settings.use_in_memory_backends:
        return InMemoryBlobStore(
            base_url=settings.public_base_url, uploads_path=settings.uploads_path
        )
    return LocalBlobStore(
        settings.upload_dir,
        base_url=settings.public_base_url,
        uploads_path=settings.uploads_path,
    )


def build_context(settings: Optional[Settings] = None) -> AppContext:
    settings = settings or get_settings()
    return AppContext(
        settings=settings,
        metadata=build_metadata_store(settings),
        blobs=build_blob_store(settings),
    )


def get_asset_store(request: Request) -> AssetStore:
    """Return the asset store bound to the running app."""
    return request.app.state.asset_store
