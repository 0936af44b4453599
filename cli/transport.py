"""HTTP transport for the manifest and asset downloads."""

from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING, Protocol

import httpx

from cli.models import Manifest, ManifestFormatError

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

MANIFEST_PATH = "/api/manifest"


class Transport(Protocol):
    """What the synchronizer needs from the network."""

    def fetch_manifest(self) -> Manifest: ...

    def download(self, url: str, dest: Path) -> None: ...


class HttpTransport:
    """Plain GET transport over httpx.

    Asset URLs are absolute and followed verbatim. HTTP failures surface as
    ``httpx.HTTPError``.
    """

    def __init__(
        self,
        manifest_url: str,
        client: httpx.Client | None = None,
        timeout: float = 60.0,
    ) -> None:
        self.manifest_url = manifest_url
        self._owns_client = client is None
        self.client = client if client is not None else httpx.Client(timeout=timeout)

    @classmethod
    def for_server(
        cls,
        server_url: str,
        client: httpx.Client | None = None,
        timeout: float = 60.0,
    ) -> HttpTransport:
        return cls(server_url.rstrip("/") + MANIFEST_PATH, client=client, timeout=timeout)

    def close(self) -> None:
        """Close the HTTP client if this transport created it."""
        if self._owns_client:
            self.client.close()

    def __enter__(self) -> HttpTransport:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def fetch_manifest(self) -> Manifest:
        resp = self.client.get(self.manifest_url)
        resp.raise_for_status()
        try:
            data = resp.json()
        except ValueError as exc:
            raise ManifestFormatError(f"Manifest is not valid JSON: {exc}") from exc
        return Manifest.from_dict(data)

    def download(self, url: str, dest: Path) -> None:
        """Stream ``url`` into ``dest``, replacing it only once the body is complete."""
        partial = dest.with_name(dest.name + ".part")
        with self.client.stream("GET", url) as resp:
            resp.raise_for_status()
            with open(partial, "wb") as f:
                for chunk in resp.iter_bytes():
                    f.write(chunk)
        os.replace(partial, dest)
        logger.debug("Downloaded %s -> %s", url, dest)
