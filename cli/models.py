"""Client-side data model: manifest snapshot and local library descriptor."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


class ManifestFormatError(ValueError):
    """The server returned something that is not a manifest."""


def _opt_str(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


def _opt_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    return None


@dataclass
class ManifestAlbum:
    id: str
    title: str
    artist: str
    cover_filename: str | None = None
    cover_url: str | None = None
    cover_size: int | None = None
    cover_md5: str | None = None
    updated_at: int | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ManifestAlbum:
        return cls(
            id=str(data.get("id", "")),
            title=str(data.get("title") or ""),
            artist=str(data.get("artist") or ""),
            cover_filename=_opt_str(data.get("coverFilename")),
            cover_url=_opt_str(data.get("coverUrl")),
            cover_size=_opt_int(data.get("coverSize")),
            cover_md5=_opt_str(data.get("coverMD5")),
            updated_at=_opt_int(data.get("updatedAt")),
        )


@dataclass
class ManifestTrack:
    id: str
    title: str
    artist: str
    genre: str
    album_id: str | None = None
    audio_filename: str | None = None
    audio_url: str | None = None
    audio_size: int | None = None
    audio_md5: str | None = None
    updated_at: int | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ManifestTrack:
        return cls(
            id=str(data.get("id", "")),
            title=str(data.get("title") or ""),
            artist=str(data.get("artist") or ""),
            genre=str(data.get("genre") or ""),
            album_id=_opt_str(data.get("albumId")),
            audio_filename=_opt_str(data.get("audioFilename")),
            audio_url=_opt_str(data.get("audioUrl")),
            audio_size=_opt_int(data.get("audioSize")),
            audio_md5=_opt_str(data.get("audioMD5")),
            updated_at=_opt_int(data.get("updatedAt")),
        )


@dataclass
class Manifest:
    """Immutable server snapshot of the catalog."""

    version: int
    generated_at: int = 0
    albums: list[ManifestAlbum] = field(default_factory=list)
    tracks: list[ManifestTrack] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> Manifest:
        """Parse the JSON body of ``GET /api/manifest``."""
        if not isinstance(data, dict):
            raise ManifestFormatError("Manifest must be a JSON object")
        albums = data.get("albums", [])
        tracks = data.get("tracks", [])
        if not isinstance(albums, list) or not isinstance(tracks, list):
            raise ManifestFormatError("Manifest albums and tracks must be lists")
        return cls(
            version=_opt_int(data.get("version")) or 0,
            generated_at=_opt_int(data.get("generatedAt")) or 0,
            albums=[ManifestAlbum.from_dict(a) for a in albums if isinstance(a, dict)],
            tracks=[ManifestTrack.from_dict(t) for t in tracks if isinstance(t, dict)],
        )


@dataclass
class LocalItem:
    """One playable track in the local library descriptor."""

    id: str
    title: str
    artist: str
    album: str | None
    genre: str
    audio_url: str
    image_url: str | None
    local_audio_path: str | None = None
    local_image_path: str | None = None
    audio_md5: str | None = None
    image_md5: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "artist": self.artist,
            "album": self.album,
            "genre": self.genre,
            "audioUrl": self.audio_url,
            "imageUrl": self.image_url,
        }
        # Optional keys are omitted rather than written as null.
        optional = {
            "localAudioPath": self.local_audio_path,
            "localImagePath": self.local_image_path,
            "audioMD5": self.audio_md5,
            "imageMD5": self.image_md5,
        }
        data.update({k: v for k, v in optional.items() if v is not None})
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LocalItem:
        return cls(
            id=str(data.get("id", "")),
            title=str(data.get("title") or ""),
            artist=str(data.get("artist") or ""),
            album=_opt_str(data.get("album")),
            genre=str(data.get("genre") or ""),
            audio_url=str(data.get("audioUrl") or ""),
            image_url=_opt_str(data.get("imageUrl")),
            local_audio_path=_opt_str(data.get("localAudioPath")),
            local_image_path=_opt_str(data.get("localImagePath")),
            audio_md5=_opt_str(data.get("audioMD5")),
            image_md5=_opt_str(data.get("imageMD5")),
        )


@dataclass
class LocalLibrary:
    """Descriptor the player reads: every track with its resolved local files."""

    version: int | None = None
    items: list[LocalItem] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        if self.version is not None:
            data["version"] = self.version
        data["items"] = [item.to_dict() for item in self.items]
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LocalLibrary:
        items = data.get("items", [])
        if not isinstance(items, list):
            items = []
        return cls(
            version=_opt_int(data.get("version")),
            items=[LocalItem.from_dict(i) for i in items if isinstance(i, dict)],
        )


@dataclass
class VersionMarker:
    """Last applied manifest version and when it was applied (epoch ms)."""

    version: int
    at: int


def library_stats(library: LocalLibrary | None) -> tuple[int, int, int]:
    """Return (total, synced, pending) track counts for a library."""
    if library is None:
        return 0, 0, 0
    total = len(library.items)
    synced = sum(1 for item in library.items if item.local_audio_path)
    return total, synced, total - synced
