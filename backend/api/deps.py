"""Shared API dependencies: settings and catalog store."""

from __future__ import annotations

from fastapi import Request

from backend.config import Settings
from backend.filesystem.catalog_store import CatalogStore


def get_settings(request: Request) -> Settings:
    """Get application settings from app state."""
    settings: Settings = request.app.state.settings
    return settings


def get_catalog_store(request: Request) -> CatalogStore:
    """Get catalog store from app state."""
    store: CatalogStore = request.app.state.catalog_store
    return store
