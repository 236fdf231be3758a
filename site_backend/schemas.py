"""
Pydantic schemas for the site backend.
"""

from __future__ import annotations

from pydantic import BaseModel


class AssetResponse(BaseModel):
    key: str
    url: str


class UploadResponse(BaseModel):
    success: bool
    key: str
    url: str


class DeleteResponse(BaseModel):
    success: bool
    key: str


class HealthResponse(BaseModel):
    ok: bool
    at: str
