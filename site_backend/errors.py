"""
Error kinds raised by the asset store.
"""

from __future__ import annotations


class AssetStoreError(Exception):
    """Base class for asset store failures."""

    status_code = 500


class ValidationError(AssetStoreError):
    """The caller sent a request that can be corrected (missing key or file)."""

    status_code = 400


class NotFoundError(AssetStoreError):
    status_code = 404

    def __init__(self, key: str):
        super().__init__(f"No asset stored under key {key!r}")
        self.key = key


class StorageError(AssetStoreError):
    """The database or the filesystem failed underneath an operation."""

    status_code = 500
