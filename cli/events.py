"""Progress events emitted while synchronizing the local library."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class AssetKind(StrEnum):
    """Which asset directory a file belongs to."""

    AUDIO = "audio"
    COVER = "cover"


@dataclass(frozen=True)
class ManifestFetched:
    version: int
    album_count: int
    track_count: int

    @property
    def message(self) -> str:
        return f"Manifest v{self.version} with {self.track_count} track(s)"


@dataclass(frozen=True)
class AssetSkipped:
    """Local copy passed the integrity check; nothing was fetched."""

    kind: AssetKind
    filename: str

    @property
    def message(self) -> str:
        return f"Up to date {self.kind} {self.filename}"


@dataclass(frozen=True)
class AssetDownloading:
    """Emitted before the transfer starts."""

    kind: AssetKind
    filename: str
    label: str

    @property
    def message(self) -> str:
        return f"Downloading {self.kind} {self.label}"


@dataclass(frozen=True)
class AssetDownloaded:
    kind: AssetKind
    filename: str
    label: str

    @property
    def message(self) -> str:
        return f"Downloaded {self.kind} {self.label}"


@dataclass(frozen=True)
class AssetOrphanRemoved:
    kind: AssetKind
    filename: str

    @property
    def message(self) -> str:
        return f"Deleted orphan {self.kind} {self.filename}"


@dataclass(frozen=True)
class SyncCompleted:
    version: int
    item_count: int

    @property
    def message(self) -> str:
        return f"Sync complete: {self.item_count} track(s)"


SyncEvent = (
    ManifestFetched
    | AssetSkipped
    | AssetDownloading
    | AssetDownloaded
    | AssetOrphanRemoved
    | SyncCompleted
)
