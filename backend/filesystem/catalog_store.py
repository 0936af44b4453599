"""JSON record store for albums.json and tracks.json."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from backend.exceptions import CatalogUnavailableError

if TYPE_CHECKING:
    from pathlib import Path

    from backend.config import Settings

logger = logging.getLogger(__name__)


@dataclass
class AlbumRecord:
    """An album as stored by the admin panel."""

    id: str
    title: str
    artist: str
    cover_filename: str | None = None
    year: str | None = None
    description: str | None = None
    caratula_number: int | None = None


@dataclass
class TrackRecord:
    """A track as stored by the admin panel."""

    id: str
    title: str
    artist: str
    genre: str
    album_id: str | None = None
    audio_filename: str | None = None


def _str_or_none(value: Any) -> str | None:
    # The admin panel stores "" for cleared fields.
    if value is None or value == "":
        return None
    return str(value)


def _int_or_none(value: Any) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _read_records(path: Path) -> list[dict[str, Any]]:
    """Read a JSON array of records; a missing or blank file is an empty catalog."""
    if not path.exists():
        return []
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise CatalogUnavailableError(f"Cannot read {path.name}: {exc}") from exc
    if not text.strip():
        return []
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise CatalogUnavailableError(f"Invalid JSON in {path.name}: {exc}") from exc
    if not isinstance(data, list):
        raise CatalogUnavailableError(f"{path.name} must contain a JSON array")
    return [record for record in data if isinstance(record, dict)]


def _contained_path(directory: Path, filename: str) -> Path | None:
    """Join a catalog filename onto directory, returning None if it escapes it."""
    path = directory / filename
    if path.resolve().parent != directory.resolve():
        return None
    return path


class CatalogStore:
    """Read access to the album/track catalog and the uploaded media behind it."""

    def __init__(self, settings: Settings) -> None:
        self.albums_file = settings.albums_file
        self.tracks_file = settings.tracks_file
        self.audio_dir = settings.audio_dir
        self.covers_dir = settings.covers_dir

    def read_albums(self) -> list[AlbumRecord]:
        """Return all album records in stored order.

        Raises CatalogUnavailableError if albums.json exists but is unreadable.
        """
        albums: list[AlbumRecord] = []
        for raw in _read_records(self.albums_file):
            if not raw.get("id"):
                logger.warning("Skipping album record without id: %r", raw)
                continue
            albums.append(
                AlbumRecord(
                    id=str(raw["id"]),
                    title=str(raw.get("title") or ""),
                    artist=str(raw.get("artist") or ""),
                    cover_filename=_str_or_none(raw.get("coverFilename")),
                    year=_str_or_none(raw.get("year")),
                    description=_str_or_none(raw.get("description")),
                    caratula_number=_int_or_none(raw.get("caratulaNumber")),
                )
            )
        return albums

    def read_tracks(self) -> list[TrackRecord]:
        """Return all track records in stored order.

        Raises CatalogUnavailableError if tracks.json exists but is unreadable.
        """
        tracks: list[TrackRecord] = []
        for raw in _read_records(self.tracks_file):
            if not raw.get("id"):
                logger.warning("Skipping track record without id: %r", raw)
                continue
            tracks.append(
                TrackRecord(
                    id=str(raw["id"]),
                    title=str(raw.get("title") or ""),
                    artist=str(raw.get("artist") or ""),
                    genre=str(raw.get("genre") or ""),
                    album_id=_str_or_none(raw.get("albumId")),
                    audio_filename=_str_or_none(raw.get("audioFilename")),
                )
            )
        return tracks

    def cover_path(self, filename: str) -> Path | None:
        return _contained_path(self.covers_dir, filename)

    def audio_path(self, filename: str) -> Path | None:
        return _contained_path(self.audio_dir, filename)


def ensure_data_dirs(settings: Settings) -> None:
    """Create the data directory and both upload directories if absent."""
    for directory in (settings.data_dir, settings.audio_dir, settings.covers_dir):
        if directory.exists() and not directory.is_dir():
            msg = f"Path exists but is not a directory: {directory}"
            raise NotADirectoryError(msg)
        if not directory.exists():
            directory.mkdir(parents=True)
            logger.info("Created missing directory: %s", directory)
