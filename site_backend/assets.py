"""
Image asset store: keeps the metadata records and the uploaded files in step.

The two stores share no transaction. Every write follows the same order:
write the new file, point the metadata at it, then remove whatever file the
metadata pointed at before. A failure at any step leaves at worst an
unreferenced file behind (see ``AssetStore.sweep_orphans``), never a record
pointing at a deleted file.
"""

from __future__ import annotations

import logging
import time
from typing import Optional

from site_backend.blob_store import file_ref_timestamp
from site_backend.context import AppContext
from site_backend.db import AssetRecord
from site_backend.errors import AssetStoreError, NotFoundError, StorageError, ValidationError

logger = logging.getLogger(__name__)


class AssetStore:
    def __init__(self, context: AppContext):
        self.context = context
        self.metadata = context.metadata
        self.blobs = context.blobs

    def _validate_upload(self, key: Optional[str], data: Optional[bytes]) -> str:
        key = (key or "").strip()
        if not key:
            raise ValidationError("Missing 'key' field")
        if not data:
            raise ValidationError("No file uploaded")
        max_bytes = self.context.settings.max_upload_bytes
        if len(data) > max_bytes:
            raise ValidationError(
                f"File too large (max {self.context.settings.max_upload_size_mb} MB)"
            )
        return key

    def _discard(self, file_ref: str) -> None:
        """Best-effort file removal; failures are logged, never raised."""
        try:
            self.blobs.remove(file_ref)
        except Exception:
            logger.warning("Could not remove file %s; leaving it orphaned", file_ref, exc_info=True)

    def upload(
        self, key: Optional[str], data: Optional[bytes], original_name: Optional[str]
    ) -> AssetRecord:
        """
        Create or replace the asset stored under ``key``.

        Returns the new record; its url resolves as soon as this returns.
        """
        key = self._validate_upload(key, data)

        new_ref = self.blobs.put(data, original_name or "", key)
        url = self.blobs.public_url(new_ref)

        try:
            existing = self.metadata.get(key)
            old_ref = existing.file_ref if existing and existing.file_ref != new_ref else None
            record = self.metadata.upsert(key, new_ref, url)
        except Exception as exc:
            # Nothing points at the new file yet.
            self._discard(new_ref)
            if isinstance(exc, AssetStoreError):
                raise
            raise StorageError(f"Failed to save asset {key!r}") from exc

        if old_ref:
            self._discard(old_ref)
        logger.info("Stored asset %s as %s", key, new_ref)
        return record

    def lookup(self, key: str) -> AssetRecord:
        record = self.metadata.get(key)
        if record is None:
            raise NotFoundError(key)
        return record

    def list_all(self) -> dict[str, str]:
        return {record.key: record.url for record in self.metadata.list()}

    def delete(self, key: str) -> Optional[AssetRecord]:
        """
        Remove the asset stored under ``key`` and its file.

        Returns the removed record, or None when the key was not stored.
        """
        prior = self.metadata.delete(key)
        if prior is None:
            logger.info("Delete of unknown asset %s", key)
            return None
        if prior.file_ref:
            self._discard(prior.file_ref)
        logger.info("Deleted asset %s (%s)", key, prior.file_ref)
        return prior

    def sweep_orphans(self, min_age_seconds: float = 3600, dry_run: bool = False) -> list[str]:
        """
        Remove stored files that no record references.

        Files younger than ``min_age_seconds`` are left alone since they may
        belong to an upload that has not written its record yet.
        """
        referenced = {record.file_ref for record in self.metadata.list()}
        cutoff_ms = (time.time() - min_age_seconds) * 1000
        orphans = []
        for file_ref in self.blobs.list_refs():
            if file_ref in referenced:
                continue
            stamp = file_ref_timestamp(file_ref)
            if stamp is not None and stamp > cutoff_ms:
                continue
            orphans.append(file_ref)

        if dry_run:
            return orphans

        removed = []
        for file_ref in orphans:
            try:
                if self.blobs.remove(file_ref):
                    removed.append(file_ref)
            except StorageError:
                logger.warning("Failed to remove orphaned file %s", file_ref, exc_info=True)
        return removed
