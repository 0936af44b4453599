"""Persistence for the local library descriptor and version marker."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from typing import TYPE_CHECKING, Any, Protocol

from cli.models import LocalLibrary, VersionMarker

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

LIBRARY_FILE = "library.json"
VERSION_FILE = "version.json"
AUDIO_DIR = "audio"
COVERS_DIR = "covers"


class LocalStateRepository(Protocol):
    """Load/save access to the client's persisted sync state."""

    def ensure_layout(self) -> None: ...

    def load_library(self) -> LocalLibrary | None: ...

    def save_library(self, library: LocalLibrary) -> None: ...

    def load_version(self) -> VersionMarker | None: ...

    def save_version(self, marker: VersionMarker) -> None: ...


def _write_json_atomic(path: Path, data: Any, *, indent: int | None = 2) -> None:
    """Write JSON to a sibling temp file, then rename it over ``path``."""
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=indent, ensure_ascii=False)
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise


def _read_json(path: Path) -> Any | None:
    if not path.exists():
        return None
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        logger.warning("Ignoring unreadable %s: %s", path, exc)
        return None


class FileStateRepository:
    """State stored under a library directory.

    Layout::

        <root>/library.json   {version, items}
        <root>/version.json   {version, at}
        <root>/audio/<filename>
        <root>/covers/<filename>
    """

    def __init__(self, root: Path) -> None:
        self.root = root
        self.library_path = root / LIBRARY_FILE
        self.version_path = root / VERSION_FILE
        self.audio_dir = root / AUDIO_DIR
        self.covers_dir = root / COVERS_DIR

    def ensure_layout(self) -> None:
        """Create the library root and both asset directories if absent."""
        for directory in (self.root, self.audio_dir, self.covers_dir):
            directory.mkdir(parents=True, exist_ok=True)

    def load_library(self) -> LocalLibrary | None:
        data = _read_json(self.library_path)
        if not isinstance(data, dict):
            return None
        return LocalLibrary.from_dict(data)

    def save_library(self, library: LocalLibrary) -> None:
        _write_json_atomic(self.library_path, library.to_dict())

    def load_version(self) -> VersionMarker | None:
        """Return the last applied version, or None if never synced."""
        data = _read_json(self.version_path)
        if not isinstance(data, dict):
            return None
        version = data.get("version")
        if not isinstance(version, int) or isinstance(version, bool):
            return None
        at = data.get("at")
        return VersionMarker(version=version, at=at if isinstance(at, int) else 0)

    def save_version(self, marker: VersionMarker) -> None:
        _write_json_atomic(
            self.version_path, {"version": marker.version, "at": marker.at}, indent=None
        )
