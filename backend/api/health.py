"""Health check endpoints."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel

from backend.api.deps import get_catalog_store
from backend.exceptions import CatalogUnavailableError
from backend.filesystem.catalog_store import CatalogStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class PingResponse(BaseModel):
    ok: bool
    port: int | None


class HealthResponse(BaseModel):
    status: str
    version: str
    catalog: str


@router.get("/api/ping", response_model=PingResponse)
async def ping(request: Request) -> PingResponse:
    """Liveness probe used by clients to auto-detect the server port."""
    return PingResponse(ok=True, port=request.url.port)


@router.get("/api/health", response_model=HealthResponse)
async def health_check(
    store: Annotated[CatalogStore, Depends(get_catalog_store)],
) -> HealthResponse:
    """Health check endpoint for monitoring."""
    catalog_status = "ok"
    try:
        store.read_albums()
        store.read_tracks()
    except CatalogUnavailableError:
        logger.warning("Health check catalog read failed", exc_info=True)
        catalog_status = "error"

    return HealthResponse(
        status="ok" if catalog_status == "ok" else "degraded",
        version="0.1.0",
        catalog=catalog_status,
    )
