"""Manifest endpoint consumed by the offline sync client."""

from __future__ import annotations

import asyncio
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Request

from backend.api.deps import get_catalog_store, get_settings
from backend.config import Settings
from backend.filesystem.catalog_store import CatalogStore
from backend.schemas.manifest import ManifestResponse
from backend.services.manifest_service import build_manifest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["manifest"])


@router.get("/manifest", response_model=ManifestResponse)
async def get_manifest(
    request: Request,
    settings: Annotated[Settings, Depends(get_settings)],
    store: Annotated[CatalogStore, Depends(get_catalog_store)],
) -> ManifestResponse:
    """Return the full catalog snapshot with absolute asset URLs.

    URLs are rooted at the host the request arrived on, so clients must reach
    the server under an address that is valid from their network.
    """
    base_url = str(request.base_url)
    manifest = await asyncio.to_thread(
        build_manifest,
        store,
        base_url,
        fail_open=settings.manifest_fail_open,
    )
    logger.debug(
        "Served manifest v%d (%d albums, %d tracks)",
        manifest.version,
        len(manifest.albums),
        len(manifest.tracks),
    )
    return manifest
