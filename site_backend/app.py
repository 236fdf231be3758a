"""
FastAPI application entry point for the site backend.
"""

from __future__ import annotations

import logging
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from site_backend.assets import AssetStore
from site_backend.blob_store import LocalBlobStore
from site_backend.config import get_settings
from site_backend.context import AppContext
from site_backend.dependencies import build_context
from site_backend.routes import router

logger = logging.getLogger(__name__)


def create_app(context: Optional[AppContext] = None) -> FastAPI:
    context = context or build_context()
    settings = context.settings
    app = FastAPI(title="Site Backend (FastAPI)", version="0.1.0")
    app.state.context = context
    app.state.asset_store = AssetStore(context)

    origins = settings.cors_origin_list
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        # Browsers reject credentialed responses for a wildcard origin.
        allow_credentials="*" not in origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(router, prefix=settings.api_prefix)

    # Uploaded files are served straight from the upload directory.
    if isinstance(context.blobs, LocalBlobStore):
        app.mount(
            settings.uploads_path,
            StaticFiles(directory=str(context.blobs.root)),
            name="uploads",
        )
    return app


def run() -> None:
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info("Serving on http://%s:%s", settings.host, settings.port)
    uvicorn.run(
        "site_backend.app:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
    )


if __name__ == "__main__":
    run()
