"""
Explicit application context: the handles every request shares.
"""

from __future__ import annotations

from dataclasses import dataclass

from site_backend.blob_store import BlobStore
from site_backend.config import Settings
from site_backend.db import MetadataStore


@dataclass
class AppContext:
    settings: Settings
    metadata: MetadataStore
    blobs: BlobStore
