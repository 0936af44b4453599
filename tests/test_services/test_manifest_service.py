"""Tests for the manifest service."""

from __future__ import annotations

import hashlib
import os
from typing import TYPE_CHECKING
from unittest.mock import patch

import pytest

from backend.exceptions import CatalogUnavailableError
from backend.services.manifest_service import (
    asset_url,
    build_manifest,
    compute_version,
    file_meta,
)
from tests.conftest import write_catalog

if TYPE_CHECKING:
    from pathlib import Path

    from backend.config import Settings
    from backend.filesystem.catalog_store import CatalogStore

BASE = "http://192.168.1.10:5050/"


def _write_asset(path: Path, content: bytes, mtime_ms: int) -> None:
    path.write_bytes(content)
    ns = mtime_ms * 1_000_000
    os.utime(path, ns=(ns, ns))


def _album(id_: str, cover: str | None) -> dict[str, object]:
    return {"id": id_, "title": f"Album {id_}", "artist": "Varios", "coverFilename": cover}


def _track(id_: str, audio: str | None, album_id: str | None = None) -> dict[str, object]:
    return {
        "id": id_,
        "title": f"Track {id_}",
        "artist": "Varios",
        "genre": "Puya",
        "albumId": album_id,
        "audioFilename": audio,
    }


class TestFileMeta:
    def test_size_md5_and_mtime(self, tmp_path: Path) -> None:
        path = tmp_path / "a.mp3"
        _write_asset(path, b"hello", 1_700_000_000_123)

        meta = file_meta(path)

        assert meta is not None
        assert meta.size == 5
        assert meta.md5 == hashlib.md5(b"hello").hexdigest()
        assert meta.mtime_ms == 1_700_000_000_123

    def test_missing_file_returns_none(self, tmp_path: Path) -> None:
        assert file_meta(tmp_path / "nope.mp3") is None

    def test_directory_returns_none(self, tmp_path: Path) -> None:
        assert file_meta(tmp_path) is None


class TestAssetUrl:
    def test_escapes_filename(self) -> None:
        url = asset_url("http://host:5050/", "audio", "La Gota Fría #2.mp3")
        assert url == "http://host:5050/uploads/audio/La%20Gota%20Fr%C3%ADa%20%232.mp3"

    def test_escapes_slashes(self) -> None:
        assert asset_url("http://h", "covers", "a/b.jpg") == "http://h/uploads/covers/a%2Fb.jpg"


class TestComputeVersion:
    def test_empty_is_zero(self) -> None:
        assert compute_version([]) == 0

    def test_all_null_is_zero(self) -> None:
        assert compute_version([None, None]) == 0

    def test_takes_max(self) -> None:
        assert compute_version([5, None, 17, 3]) == 17


class TestBuildManifest:
    def test_empty_catalog(self, catalog_store: CatalogStore) -> None:
        manifest = build_manifest(catalog_store, BASE, now_ms=42)
        assert manifest.version == 0
        assert manifest.generated_at == 42
        assert manifest.albums == []
        assert manifest.tracks == []

    def test_full_snapshot(self, test_settings: Settings, catalog_store: CatalogStore) -> None:
        write_catalog(
            test_settings,
            albums=[_album("alb_1", "a.jpg")],
            tracks=[_track("trk_1", "t.mp3", "alb_1")],
        )
        _write_asset(test_settings.covers_dir / "a.jpg", b"cover", 1_000)
        _write_asset(test_settings.audio_dir / "t.mp3", b"audio-bytes", 2_000)

        manifest = build_manifest(catalog_store, BASE)

        [album] = manifest.albums
        [track] = manifest.tracks
        assert album.cover_url == "http://192.168.1.10:5050/uploads/covers/a.jpg"
        assert album.cover_size == 5
        assert album.cover_md5 == hashlib.md5(b"cover").hexdigest()
        assert album.updated_at == 1_000
        assert track.album_id == "alb_1"
        assert track.audio_url == "http://192.168.1.10:5050/uploads/audio/t.mp3"
        assert track.audio_size == len(b"audio-bytes")
        assert track.audio_md5 == hashlib.md5(b"audio-bytes").hexdigest()
        assert track.updated_at == 2_000
        assert manifest.version == 2_000

    def test_missing_asset_has_null_metadata(
        self, test_settings: Settings, catalog_store: CatalogStore
    ) -> None:
        write_catalog(
            test_settings,
            albums=[_album("alb_1", "gone.jpg")],
            tracks=[_track("trk_1", "gone.mp3")],
        )

        manifest = build_manifest(catalog_store, BASE)

        album, track = manifest.albums[0], manifest.tracks[0]
        assert album.cover_url is not None
        assert (album.cover_size, album.cover_md5, album.updated_at) == (None, None, None)
        assert track.audio_url is not None
        assert (track.audio_size, track.audio_md5, track.updated_at) == (None, None, None)
        assert manifest.version == 0

    def test_filename_outside_uploads_is_not_hashed(
        self, test_settings: Settings, catalog_store: CatalogStore
    ) -> None:
        write_catalog(
            test_settings,
            albums=[_album("alb_1", "../../data/albums.json")],
            tracks=[_track("trk_1", "../../data/tracks.json")],
        )

        manifest = build_manifest(catalog_store, BASE)

        album, track = manifest.albums[0], manifest.tracks[0]
        assert (album.cover_size, album.cover_md5, album.updated_at) == (None, None, None)
        assert (track.audio_size, track.audio_md5, track.updated_at) == (None, None, None)
        assert manifest.version == 0

    def test_null_filename_has_null_url(
        self, test_settings: Settings, catalog_store: CatalogStore
    ) -> None:
        write_catalog(test_settings, albums=[_album("a", None)], tracks=[_track("t", None)])

        manifest = build_manifest(catalog_store, BASE)

        assert manifest.albums[0].cover_url is None
        assert manifest.tracks[0].audio_url is None

    def test_dangling_album_id_is_kept(
        self, test_settings: Settings, catalog_store: CatalogStore
    ) -> None:
        write_catalog(test_settings, albums=[], tracks=[_track("t", None, "alb_deleted")])
        assert build_manifest(catalog_store, BASE).tracks[0].album_id == "alb_deleted"

    def test_preserves_record_order(
        self, test_settings: Settings, catalog_store: CatalogStore
    ) -> None:
        write_catalog(
            test_settings,
            albums=[],
            tracks=[_track("z", None), _track("a", None), _track("m", None)],
        )
        assert [t.id for t in build_manifest(catalog_store, BASE).tracks] == ["z", "a", "m"]

    def test_unreadable_catalog_fails_open(
        self, test_settings: Settings, catalog_store: CatalogStore
    ) -> None:
        test_settings.albums_file.write_text("{broken", encoding="utf-8")

        manifest = build_manifest(catalog_store, BASE, now_ms=7)

        assert manifest.version == 0
        assert manifest.generated_at == 7
        assert manifest.albums == []
        assert manifest.tracks == []

    def test_unreadable_catalog_fails_closed(
        self, test_settings: Settings, catalog_store: CatalogStore
    ) -> None:
        test_settings.albums_file.write_text("{broken", encoding="utf-8")

        with pytest.raises(CatalogUnavailableError):
            build_manifest(catalog_store, BASE, fail_open=False)

    def test_serializes_with_wire_keys(
        self, test_settings: Settings, catalog_store: CatalogStore
    ) -> None:
        write_catalog(test_settings, albums=[_album("a", "a.jpg")], tracks=[_track("t", "t.mp3")])
        _write_asset(test_settings.covers_dir / "a.jpg", b"c", 10)

        data = build_manifest(catalog_store, BASE).model_dump(by_alias=True)

        assert set(data) == {"generatedAt", "version", "albums", "tracks"}
        assert set(data["albums"][0]) == {
            "id",
            "title",
            "artist",
            "coverFilename",
            "coverUrl",
            "coverSize",
            "coverMD5",
            "updatedAt",
        }
        assert set(data["tracks"][0]) == {
            "id",
            "title",
            "artist",
            "genre",
            "albumId",
            "audioFilename",
            "audioUrl",
            "audioSize",
            "audioMD5",
            "updatedAt",
        }

    def test_hashing_error_is_treated_as_missing(
        self, test_settings: Settings, catalog_store: CatalogStore
    ) -> None:
        write_catalog(test_settings, albums=[], tracks=[_track("t", "t.mp3")])
        _write_asset(test_settings.audio_dir / "t.mp3", b"x", 10)

        with patch(
            "backend.services.manifest_service.hash_file",
            side_effect=PermissionError("denied"),
        ):
            manifest = build_manifest(catalog_store, BASE)

        assert manifest.tracks[0].audio_md5 is None
        assert manifest.version == 0
