"""Manifest service: snapshot the catalog with per-asset size and MD5."""

from __future__ import annotations

import hashlib
import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING
from urllib.parse import quote

from backend.exceptions import CatalogUnavailableError
from backend.schemas.manifest import ManifestAlbum, ManifestResponse, ManifestTrack

if TYPE_CHECKING:
    from collections.abc import Iterable
    from pathlib import Path

    from backend.filesystem.catalog_store import AlbumRecord, CatalogStore, TrackRecord

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 64 * 1024


@dataclass
class FileMeta:
    """Size, content hash and modification time of an asset on disk."""

    size: int
    md5: str
    mtime_ms: int


def hash_file(file_path: Path) -> str:
    """Compute MD5 hex digest of a file."""
    md5 = hashlib.md5()
    with open(file_path, "rb") as f:
        for chunk in iter(lambda: f.read(_CHUNK_SIZE), b""):
            md5.update(chunk)
    return md5.hexdigest()


def file_meta(file_path: Path) -> FileMeta | None:
    """Stat and hash a file. Returns None when it is missing or unreadable."""
    try:
        stat = file_path.stat()
        if not file_path.is_file():
            return None
        return FileMeta(
            size=stat.st_size,
            md5=hash_file(file_path),
            mtime_ms=stat.st_mtime_ns // 1_000_000,
        )
    except OSError:
        return None


def asset_url(base_url: str, kind: str, filename: str) -> str:
    """Absolute download URL for an uploaded asset."""
    return f"{base_url.rstrip('/')}/uploads/{kind}/{quote(filename, safe='')}"


def compute_version(updated_at: Iterable[int | None]) -> int:
    """Manifest version: the newest asset timestamp, floored at 0."""
    return max([0, *(value for value in updated_at if value is not None)])


def _asset_meta(path: Path | None, filename: str) -> FileMeta | None:
    if path is None:
        logger.warning("Ignoring asset outside the uploads directory: %r", filename)
        return None
    return file_meta(path)


def _album_entry(album: AlbumRecord, store: CatalogStore, base_url: str) -> ManifestAlbum:
    filename = album.cover_filename
    meta = _asset_meta(store.cover_path(filename), filename) if filename else None
    return ManifestAlbum(
        id=album.id,
        title=album.title,
        artist=album.artist,
        cover_filename=filename,
        cover_url=asset_url(base_url, "covers", filename) if filename else None,
        cover_size=meta.size if meta else None,
        cover_md5=meta.md5 if meta else None,
        updated_at=meta.mtime_ms if meta else None,
    )


def _track_entry(track: TrackRecord, store: CatalogStore, base_url: str) -> ManifestTrack:
    filename = track.audio_filename
    meta = _asset_meta(store.audio_path(filename), filename) if filename else None
    return ManifestTrack(
        id=track.id,
        title=track.title,
        artist=track.artist,
        genre=track.genre,
        album_id=track.album_id,
        audio_filename=filename,
        audio_url=asset_url(base_url, "audio", filename) if filename else None,
        audio_size=meta.size if meta else None,
        audio_md5=meta.md5 if meta else None,
        updated_at=meta.mtime_ms if meta else None,
    )


def build_manifest(
    store: CatalogStore,
    base_url: str,
    *,
    fail_open: bool = True,
    now_ms: int | None = None,
) -> ManifestResponse:
    """Build a full manifest snapshot of the catalog.

    Every referenced asset is stat'ed and hashed on each call; an asset that is
    referenced but absent on disk gets null size/hash/timestamp.

    If the record store is unreadable and ``fail_open`` is set, an empty
    manifest is returned instead of raising CatalogUnavailableError.
    """
    generated_at = now_ms if now_ms is not None else int(time.time() * 1000)
    try:
        albums = store.read_albums()
        tracks = store.read_tracks()
    except CatalogUnavailableError as exc:
        if not fail_open:
            raise
        logger.warning("Catalog unreadable, serving empty manifest: %s", exc)
        return ManifestResponse(generated_at=generated_at, version=0)

    album_entries = [_album_entry(album, store, base_url) for album in albums]
    track_entries = [_track_entry(track, store, base_url) for track in tracks]

    missing = [a.cover_filename for a in album_entries if a.cover_filename and a.cover_md5 is None]
    missing += [t.audio_filename for t in track_entries if t.audio_filename and t.audio_md5 is None]
    if missing:
        logger.info("Manifest references %d missing asset(s): %s", len(missing), missing[:10])

    version = compute_version(
        [a.updated_at for a in album_entries] + [t.updated_at for t in track_entries]
    )
    return ManifestResponse(
        generated_at=generated_at,
        version=version,
        albums=album_entries,
        tracks=track_entries,
    )
