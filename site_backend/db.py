"""
Asset metadata persistence: SQLAlchemy-backed and an in-memory test implementation.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field, replace
from typing import Dict, Optional, Protocol

from sqlalchemy import Column, Float, String, create_engine, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from site_backend.errors import StorageError


class MetadataStore(Protocol):
    """Interface for the key -> file mapping."""

    def get(self, key: str) -> Optional["AssetRecord"]:
        ...

    def list(self) -> list["AssetRecord"]:
        ...

    def upsert(self, key: str, file_ref: str, url: str) -> "AssetRecord":
        ...

    def delete(self, key: str) -> Optional["AssetRecord"]:
        ...


@dataclass
class AssetRecord:
    key: str
    file_ref: str
    url: str
    created_at: float = field(default_factory=lambda: time.time())
    updated_at: float = field(default_factory=lambda: time.time())


class InMemoryMetadataStore:
    """Simple in-memory metadata store for development and tests."""

    def __init__(self):
        self.records: Dict[str, AssetRecord] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[AssetRecord]:
        with self._lock:
            record = self.records.get(key)
            return replace(record) if record else None

    def list(self) -> list[AssetRecord]:
        with self._lock:
            return [replace(record) for record in self.records.values()]

    def upsert(self, key: str, file_ref: str, url: str) -> AssetRecord:
        now = time.time()
        with self._lock:
            existing = self.records.get(key)
            record = AssetRecord(
                key=key,
                file_ref=file_ref,
                url=url,
                created_at=existing.created_at if existing else now,
                updated_at=now,
            )
            self.records[key] = record
            return replace(record)

    def delete(self, key: str) -> Optional[AssetRecord]:
        with self._lock:
            return self.records.pop(key, None)

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        with self._lock:
            self.records.clear()


class SqlMetadataStore:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for SqlMetadataStore")
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        try:
            Base.metadata.create_all(self.engine)
        except SQLAlchemyError as exc:
            raise StorageError("Failed to initialise the images table") from exc

    def _to_record(self, row: "ImageRow") -> AssetRecord:
        return AssetRecord(
            key=row.key,
            file_ref=row.filename,
            url=row.url,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def get(self, key: str) -> Optional[AssetRecord]:
        try:
            with self.Session() as session:
                row = session.get(ImageRow, key)
                return self._to_record(row) if row else None
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to read asset {key!r}") from exc

    def list(self) -> list[AssetRecord]:
        try:
            with self.Session() as session:
                rows = session.execute(select(ImageRow)).scalars().all()
                return [self._to_record(row) for row in rows]
        except SQLAlchemyError as exc:
            raise StorageError("Failed to list assets") from exc

    def _upsert_once(self, key: str, file_ref: str, url: str) -> AssetRecord:
        now = time.time()
        with self.Session() as session:
            row = session.get(ImageRow, key)
            if row:
                row.filename = file_ref
                row.url = url
                row.updated_at = now
            else:
                row = ImageRow(
                    key=key,
                    url=url,
                    filename=file_ref,
                    created_at=now,
                    updated_at=now,
                )
                session.add(row)
            session.commit()
            session.refresh(row)
            return self._to_record(row)

    def upsert(self, key: str, file_ref: str, url: str) -> AssetRecord:
        try:
            try:
                return self._upsert_once(key, file_ref, url)
            except IntegrityError:
                # Lost a race to insert the same key; the row exists now.
                return self._upsert_once(key, file_ref, url)
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to save asset {key!r}") from exc

    def delete(self, key: str) -> Optional[AssetRecord]:
        try:
            with self.Session() as session:
                row = session.get(ImageRow, key, with_for_update=True)
                if not row:
                    return None
                prior = self._to_record(row)
                session.delete(row)
                session.commit()
                return prior
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to delete asset {key!r}") from exc


Base = declarative_base()


class ImageRow(Base):
    __tablename__ = "images"

    key = Column(String, primary_key=True)
    url = Column(String, nullable=False)
    filename = Column(String, nullable=False)
    created_at = Column(Float, nullable=False)
    updated_at = Column(Float, nullable=False)
