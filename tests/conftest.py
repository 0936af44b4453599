"""Shared test fixtures for the Museo sync server and client."""

from __future__ import annotations

import json
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

import pytest
from httpx import ASGITransport, AsyncClient

from backend.config import Settings
from backend.filesystem.catalog_store import CatalogStore, ensure_data_dirs
from backend.main import create_app

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator
    from pathlib import Path


@asynccontextmanager
async def create_test_client(settings: Settings) -> AsyncGenerator[AsyncClient]:
    """Create an HTTP test client for the app.

    Creates the data directories itself because ASGITransport does not run
    the application lifespan.
    """
    ensure_data_dirs(settings)
    app = create_app(settings)
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


def write_catalog(
    settings: Settings,
    albums: list[dict[str, Any]],
    tracks: list[dict[str, Any]],
) -> None:
    """Write albums.json and tracks.json the way the admin panel does."""
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.albums_file.write_text(json.dumps(albums, indent=2), encoding="utf-8")
    settings.tracks_file.write_text(json.dumps(tracks, indent=2), encoding="utf-8")


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    """Create test settings with temporary paths."""
    return Settings(
        _env_file=None,
        debug=True,
        data_dir=tmp_path / "data",
        uploads_dir=tmp_path / "uploads",
    )


@pytest.fixture
def catalog_store(test_settings: Settings) -> CatalogStore:
    ensure_data_dirs(test_settings)
    return CatalogStore(test_settings)
