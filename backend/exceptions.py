"""Application-level exception types.

Convention:
- ``CatalogUnavailableError``: the album/track record store could not be
  read. Only reaches the HTTP layer when the manifest is configured to fail
  closed; the global handler returns 503.
- ``OSError`` escaping a route is logged with its traceback and reported as a
  generic 500 "Storage operation failed".
"""

from __future__ import annotations


class CatalogUnavailableError(Exception):
    """Raised when ``albums.json`` or ``tracks.json`` exists but cannot be parsed."""
