"""
Blob storage for uploaded image files: a local directory and an in-memory test double.
"""

from __future__ import annotations

import logging
import re
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Protocol
from urllib.parse import quote

from site_backend.errors import StorageError

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")

MAX_KEY_CHARS = 64
MAX_NAME_CHARS = 150


def sanitize_filename(name: str, fallback: str = "image") -> str:
    """Replace every character outside ``[A-Za-z0-9._-]`` with ``_``."""
    cleaned = _UNSAFE_CHARS.sub("_", name or "")
    # "." and ".." would resolve outside the file name.
    if not cleaned.strip("."):
        return fallback
    return cleaned


def file_ref_timestamp(file_ref: str) -> Optional[int]:
    """Return the millisecond stamp a file ref was generated with, if it has one."""
    stamp, sep, _ = file_ref.partition("_")
    if not sep or not stamp.isdigit():
        return None
    return int(stamp)


class _MillisClock:
    """Unix-millisecond stamps that never repeat within the process."""

    def __init__(self):
        self._lock = threading.Lock()
        self._last = 0

    def next(self) -> int:
        with self._lock:
            now = int(time.time() * 1000)
            self._last = max(now, self._last + 1)
            return self._last


class BlobStore(Protocol):
    """Defines the operations the asset store needs from file storage."""

    def put(self, data: bytes, original_name: str, key_hint: str) -> str:
        ...

    def remove(self, file_ref: str) -> bool:
        ...

    def public_url(self, file_ref: str) -> str:
        ...

    def exists(self, file_ref: str) -> bool:
        ...

    def list_refs(self) -> list[str]:
        ...


def _truncate(name: str, limit: int) -> str:
    """Shorten ``name`` to ``limit`` characters, keeping a short extension."""
    if len(name) <= limit:
        return name
    stem, dot, ext = name.rpartition(".")
    if dot and stem and len(ext) < 16:
        return f"{stem[: limit - len(ext) - 1]}.{ext}"
    return name[:limit]


def _make_file_ref(stamp: int, original_name: str, key_hint: str) -> str:
    # Sanitized names are ASCII, so 20 + 1 + 64 + 1 + 150 stays under the 255-byte limit.
    safe_key = _truncate(sanitize_filename(key_hint, fallback="image"), MAX_KEY_CHARS)
    safe_name = _truncate(sanitize_filename(original_name, fallback="image"), MAX_NAME_CHARS)
    return f"{stamp}_{safe_key}_{safe_name}"


def _join_url(base_url: str, uploads_path: str, file_ref: str) -> str:
    path = "/" + uploads_path.strip("/") if uploads_path.strip("/") else ""
    return f"{base_url.rstrip('/')}{path}/{quote(file_ref, safe='')}"


class LocalBlobStore:
    """
    Stores uploads as files in one flat directory.
    """

    def __init__(
        self,
        upload_dir: str | Path,
        base_url: str,
        uploads_path: str = "/uploads",
    ):
        self.root = Path(upload_dir)
        self.base_url = base_url
        self.uploads_path = uploads_path
        self._clock = _MillisClock()
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageError(f"Cannot create upload directory {self.root}") from exc

    def _path(self, file_ref: str) -> Path:
        # Refs are generated by put(); anything with a separator is not ours.
        if not file_ref or "/" in file_ref or "\\" in file_ref or file_ref in {".", ".."}:
            raise StorageError(f"Invalid file reference: {file_ref!r}")
        return self.root / file_ref

    def put(self, data: bytes, original_name: str, key_hint: str) -> str:
        while True:
            file_ref = _make_file_ref(self._clock.next(), original_name, key_hint)
            try:
                # Exclusive create: an existing file is never overwritten.
                with open(self._path(file_ref), "xb") as f:
                    f.write(data)
            except FileExistsError:
                logger.debug("File ref %s already taken, retrying", file_ref)
                continue
            except OSError as exc:
                raise StorageError(f"Failed to write upload {file_ref}") from exc
            return file_ref

    def remove(self, file_ref: str) -> bool:
        path = self._path(file_ref)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise StorageError(f"Failed to delete upload {file_ref}") from exc
        return True

    def public_url(self, file_ref: str) -> str:
        return _join_url(self.base_url, self.uploads_path, file_ref)

    def exists(self, file_ref: str) -> bool:
        return self._path(file_ref).is_file()

    def list_refs(self) -> list[str]:
        try:
            return sorted(p.name for p in self.root.iterdir() if p.is_file())
        except OSError as exc:
            raise StorageError(f"Failed to list upload directory {self.root}") from exc


@dataclass
class InMemoryBlobStore:
    """Test double for file storage, using the same naming scheme."""

    base_url: str = "https://example.test"
    uploads_path: str = "/uploads"
    stored_objects: dict = None
    _clock: _MillisClock = field(default_factory=_MillisClock, repr=False)

    def __post_init__(self):
        if self.stored_objects is None:
            self.stored_objects = {}

    def put(self, data: bytes, original_name: str, key_hint: str) -> str:
        file_ref = _make_file_ref(self._clock.next(), original_name, key_hint)
        self.stored_objects[file_ref] = bytes(data)
        return file_ref

    def remove(self, file_ref: str) -> bool:
        return self.stored_objects.pop(file_ref, None) is not None

    def public_url(self, file_ref: str) -> str:
        return _join_url(self.base_url, self.uploads_path, file_ref)

    def exists(self, file_ref: str) -> bool:
        return file_ref in self.stored_objects

    def list_refs(self) -> list[str]:
        return sorted(self.stored_objects)
