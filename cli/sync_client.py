"""CLI sync client: bring the offline library in line with the server manifest."""

from __future__ import annotations

import argparse
import ipaddress
import json
import logging
import sys
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING
from urllib.parse import urlparse

import httpx

from cli.events import (
    AssetDownloaded,
    AssetDownloading,
    AssetKind,
    AssetOrphanRemoved,
    AssetSkipped,
    ManifestFetched,
    SyncCompleted,
)
from cli.integrity import DEFAULT_AUDIO_HASH_CEILING, is_local_copy_valid
from cli.local_state import AUDIO_DIR, COVERS_DIR, FileStateRepository
from cli.models import LocalItem, LocalLibrary, ManifestFormatError, VersionMarker, library_stats
from cli.transport import HttpTransport

if TYPE_CHECKING:
    from collections.abc import Callable

    from cli.events import SyncEvent
    from cli.local_state import LocalStateRepository
    from cli.models import Manifest
    from cli.transport import Transport

logger = logging.getLogger(__name__)

CONFIG_FILE = ".museo-sync.json"


class SyncError(Exception):
    """Base class for client-side sync failures."""


class SyncInProgressError(SyncError):
    """Raised when synchronize() is called while another pass is running."""


@dataclass
class SyncOptions:
    """Tunables for a single synchronization pass."""

    cleanup: bool = False
    # None disables the ceiling: every audio file with a known MD5 is hashed.
    audio_hash_ceiling: int | None = DEFAULT_AUDIO_HASH_CEILING
    # Inconclusive integrity checks keep the local copy when True.
    fail_open: bool = True


@dataclass
class SyncResult:
    version: int
    items: list[LocalItem] = field(default_factory=list)
    downloaded: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)


@dataclass
class UpdateCheck:
    """Outcome of the cheap version probe done before a full sync."""

    remote_version: int
    local_version: int | None

    @property
    def needs_sync(self) -> bool:
        return self.local_version is None or self.remote_version > self.local_version


def check_for_update(transport: Transport, state: LocalStateRepository) -> UpdateCheck:
    """Compare the server manifest version against the local version marker.

    Callers should only run a full synchronize() when ``needs_sync`` is True.
    """
    manifest = transport.fetch_manifest()
    marker = state.load_version()
    return UpdateCheck(
        remote_version=manifest.version,
        local_version=marker.version if marker is not None else None,
    )


def _safe_asset_path(directory: Path, filename: str) -> Path | None:
    """Resolve a server-provided filename within directory, returning None on traversal."""
    local_path = directory / filename
    resolved = local_path.resolve()
    if resolved.parent != directory.resolve():
        return None
    return local_path


def _now_ms() -> int:
    return int(time.time() * 1000)


class LibrarySynchronizer:
    """Downloads missing or stale assets and rewrites the local library descriptor.

    Covers are resolved before tracks so every track can point at its album's
    local cover. The descriptor and version marker are written only after all
    downloads succeeded; a failed pass leaves the previous state in place.
    """

    def __init__(
        self,
        transport: Transport,
        library_dir: Path,
        state: LocalStateRepository | None = None,
        options: SyncOptions | None = None,
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        self.transport = transport
        self.library_dir = library_dir
        self.audio_dir = library_dir / AUDIO_DIR
        self.covers_dir = library_dir / COVERS_DIR
        self.state: LocalStateRepository = (
            state if state is not None else FileStateRepository(library_dir)
        )
        self.options = options or SyncOptions()
        self._clock = clock
        self._lock = threading.Lock()

    @property
    def in_progress(self) -> bool:
        return self._lock.locked()

    def synchronize(
        self,
        on_progress: Callable[[SyncEvent], None] | None = None,
        options: SyncOptions | None = None,
    ) -> SyncResult:
        """Run one full sync pass.

        Raises SyncInProgressError if a pass is already running. Transport
        errors propagate unchanged and abort the pass.
        """
        if not self._lock.acquire(blocking=False):
            raise SyncInProgressError("A sync is already in progress")
        try:
            return self._run(on_progress, options or self.options)
        finally:
            self._lock.release()

    def _run(
        self,
        on_progress: Callable[[SyncEvent], None] | None,
        options: SyncOptions,
    ) -> SyncResult:
        def emit(event: SyncEvent) -> None:
            logger.debug(event.message)
            if on_progress is not None:
                on_progress(event)

        self.state.ensure_layout()
        for directory in (self.audio_dir, self.covers_dir):
            directory.mkdir(parents=True, exist_ok=True)

        manifest = self.transport.fetch_manifest()
        emit(ManifestFetched(manifest.version, len(manifest.albums), len(manifest.tracks)))

        result = SyncResult(version=manifest.version)
        cover_paths = self._sync_covers(manifest, options, emit, result)
        needed_audio = self._sync_tracks(manifest, cover_paths, options, emit, result)

        self.state.save_library(LocalLibrary(version=manifest.version, items=result.items))
        self.state.save_version(VersionMarker(version=manifest.version, at=self._clock()))

        if options.cleanup:
            self._remove_orphans(AssetKind.AUDIO, self.audio_dir, needed_audio, emit, result)
            self._remove_orphans(AssetKind.COVER, self.covers_dir, set(cover_paths), emit, result)

        emit(SyncCompleted(manifest.version, len(result.items)))
        return result

    def _materialize(
        self,
        kind: AssetKind,
        url: str,
        dest: Path,
        expected_size: int | None,
        expected_md5: str | None,
        hash_ceiling: int | None,
        options: SyncOptions,
        label: str,
        emit: Callable[[SyncEvent], None],
        result: SyncResult,
    ) -> None:
        if is_local_copy_valid(
            dest,
            expected_size,
            expected_md5,
            hash_ceiling=hash_ceiling,
            fail_open=options.fail_open,
        ):
            emit(AssetSkipped(kind, dest.name))
            return
        emit(AssetDownloading(kind, dest.name, label))
        self.transport.download(url, dest)
        result.downloaded.append(dest.name)
        emit(AssetDownloaded(kind, dest.name, label))

    def _sync_covers(
        self,
        manifest: Manifest,
        options: SyncOptions,
        emit: Callable[[SyncEvent], None],
        result: SyncResult,
    ) -> dict[str, str]:
        """Fetch album covers. Returns cover filename -> local path."""
        cover_paths: dict[str, str] = {}
        for album in manifest.albums:
            filename, url = album.cover_filename, album.cover_url
            if not filename or not url:
                continue
            if filename in cover_paths:
                continue
            dest = _safe_asset_path(self.covers_dir, filename)
            if dest is None:
                logger.warning("Skipping cover with unsafe filename: %r", filename)
                continue
            self._materialize(
                AssetKind.COVER,
                url,
                dest,
                album.cover_size,
                album.cover_md5,
                None,
                options,
                filename,
                emit,
                result,
            )
            cover_paths[filename] = str(dest)
        return cover_paths

    def _sync_tracks(
        self,
        manifest: Manifest,
        cover_paths: dict[str, str],
        options: SyncOptions,
        emit: Callable[[SyncEvent], None],
        result: SyncResult,
    ) -> set[str]:
        """Fetch audio and build descriptor items. Returns the needed audio filenames."""
        albums_by_id = {album.id: album for album in manifest.albums}
        needed: set[str] = set()
        for track in manifest.tracks:
            local_audio_path: str | None = None
            filename, url = track.audio_filename, track.audio_url
            if filename and url:
                dest = _safe_asset_path(self.audio_dir, filename)
                if dest is None:
                    logger.warning("Skipping audio with unsafe filename: %r", filename)
                else:
                    self._materialize(
                        AssetKind.AUDIO,
                        url,
                        dest,
                        track.audio_size,
                        track.audio_md5,
                        options.audio_hash_ceiling,
                        options,
                        track.title or filename,
                        emit,
                        result,
                    )
                    local_audio_path = str(dest)
                    needed.add(filename)

            # A dangling album_id resolves to no album rather than failing the pass.
            album = albums_by_id.get(track.album_id) if track.album_id else None
            image_filename = album.cover_filename if album is not None else None
            result.items.append(
                LocalItem(
                    id=track.id,
                    title=track.title,
                    artist=track.artist,
                    album=(album.title or None) if album is not None else None,
                    genre=track.genre,
                    audio_url=filename or "",
                    image_url=image_filename,
                    local_audio_path=local_audio_path,
                    local_image_path=cover_paths.get(image_filename) if image_filename else None,
                    audio_md5=track.audio_md5,
                    image_md5=album.cover_md5 if album is not None else None,
                )
            )
        return needed

    def _remove_orphans(
        self,
        kind: AssetKind,
        directory: Path,
        needed: set[str],
        emit: Callable[[SyncEvent], None],
        result: SyncResult,
    ) -> None:
        """Best-effort deletion of files not referenced by the applied manifest."""
        try:
            entries = sorted(directory.iterdir())
        except OSError as exc:
            logger.warning("Cannot list %s for cleanup: %s", directory, exc)
            return
        for path in entries:
            if path.name in needed or not path.is_file():
                continue
            try:
                path.unlink(missing_ok=True)
            except OSError as exc:
                logger.warning("Cannot delete orphan %s: %s", path, exc)
                continue
            result.removed.append(path.name)
            emit(AssetOrphanRemoved(kind, path.name))


_LOCALHOST_HOSTS = {"localhost", "127.0.0.1", "::1"}


def _is_local_network_host(hostname: str | None) -> bool:
    """Return True for loopback names and private/link-local IP literals."""
    if hostname is None:
        return False
    if hostname in _LOCALHOST_HOSTS:
        return True
    try:
        ip = ipaddress.ip_address(hostname)
    except ValueError:
        return False
    return ip.is_private or ip.is_loopback or ip.is_link_local


def validate_server_url(server_url: str, allow_insecure_http: bool = False) -> str:
    """Validate server URL and enforce HTTPS outside the local network by default."""
    normalized = server_url.strip().rstrip("/")
    parsed = urlparse(normalized)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise ValueError("Server URL must include scheme and host (e.g. http://192.168.1.10:5050)")

    if (
        parsed.scheme == "http"
        and not allow_insecure_http
        and not _is_local_network_host(parsed.hostname)
    ):
        raise ValueError(
            "HTTPS is required for servers outside the local network. "
            "Use --allow-insecure-http only on trusted networks."
        )

    return normalized


def load_config(dir_path: Path) -> dict[str, str]:
    """Load sync config from file."""
    config_path = dir_path / CONFIG_FILE
    if not config_path.exists():
        return {}
    config: dict[str, str] = json.loads(config_path.read_text())
    return config


def save_config(dir_path: Path, config: dict[str, str]) -> None:
    """Save sync config to file."""
    dir_path.mkdir(parents=True, exist_ok=True)
    config_path = dir_path / CONFIG_FILE
    config_path.write_text(json.dumps(config, indent=2))


def _print_event(event: SyncEvent) -> None:
    if isinstance(event, (AssetSkipped, AssetDownloaded)):
        return
    print(f"  {event.message}")


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="museo-sync",
        description="Sync the offline audio library with the Museo admin server",
    )
    parser.add_argument(
        "--dir", "-d", default="./library", help="Library directory (default: ./library)"
    )
    parser.add_argument("--server", "-s", help="Server URL")
    parser.add_argument(
        "--allow-insecure-http",
        action="store_true",
        help="Allow http:// server URLs outside the local network",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser("init", help="Initialize sync configuration")
    subparsers.add_parser("status", help="Compare local and remote versions")
    sync_parser = subparsers.add_parser("sync", help="Download missing or changed assets")
    sync_parser.add_argument(
        "--cleanup", action="store_true", help="Delete local files no longer in the manifest"
    )
    sync_parser.add_argument(
        "--force", action="store_true", help="Sync even if the local version is current"
    )
    sync_parser.add_argument(
        "--strict",
        action="store_true",
        help="Re-download assets whose integrity cannot be verified",
    )
    sync_parser.add_argument(
        "--hash-ceiling",
        type=int,
        default=DEFAULT_AUDIO_HASH_CEILING,
        help="Skip MD5 checks for audio files of at least this many bytes (0: always hash)",
    )

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    library_dir = Path(args.dir).resolve()

    if args.command == "init":
        if not args.server:
            print("Error: --server required for init")
            sys.exit(1)
        try:
            server_url = validate_server_url(args.server, args.allow_insecure_http)
        except ValueError as exc:
            print(f"Error: {exc}")
            sys.exit(1)
        save_config(library_dir, {"server": server_url})
        print(f"Initialized sync config in {library_dir / CONFIG_FILE}")
        return

    config = load_config(library_dir)
    configured_server_url = args.server or config.get("server")
    if not configured_server_url:
        print("Error: No server configured. Run 'museo-sync init --server <url>' first.")
        sys.exit(1)
    try:
        server_url = validate_server_url(configured_server_url, args.allow_insecure_http)
    except ValueError as exc:
        print(f"Error: {exc}")
        sys.exit(1)

    state = FileStateRepository(library_dir)
    with HttpTransport.for_server(server_url) as transport:
        try:
            if args.command == "status":
                check = check_for_update(transport, state)
                total, synced, pending = library_stats(state.load_library())
                local = check.local_version if check.local_version is not None else "none"
                print("Sync Status:")
                print(f"  Local version:  {local}")
                print(f"  Remote version: {check.remote_version}")
                print(f"  Update needed:  {'yes' if check.needs_sync else 'no'}")
                print(f"  Tracks: {total} total, {synced} downloaded, {pending} pending")

            elif args.command == "sync":
                check = check_for_update(transport, state)
                if not check.needs_sync and not args.force:
                    print(f"Already up to date (v{check.local_version}).")
                    return
                options = SyncOptions(
                    cleanup=args.cleanup,
                    audio_hash_ceiling=args.hash_ceiling or None,
                    fail_open=not args.strict,
                )
                synchronizer = LibrarySynchronizer(transport, library_dir, state, options)
                result = synchronizer.synchronize(on_progress=_print_event)
                print(
                    f"Synced v{result.version}: {len(result.downloaded)} downloaded, "
                    f"{len(result.removed)} removed."
                )
            else:
                parser.print_help()
        except (httpx.HTTPError, ManifestFormatError, SyncError, OSError) as exc:
            print(f"Error: sync failed: {exc}")
            sys.exit(1)


if __name__ == "__main__":
    main()
