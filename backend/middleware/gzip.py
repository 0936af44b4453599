"""GZip middleware that leaves uploaded media untouched."""

from __future__ import annotations

from typing import TYPE_CHECKING

from starlette.middleware.gzip import GZipMiddleware

if TYPE_CHECKING:
    from starlette.types import ASGIApp, Receive, Scope, Send

MEDIA_PREFIX = "/uploads/"


class ApiGZipMiddleware:
    """Compress API responses; pass media under ``/uploads/`` through as-is."""

    def __init__(
        self,
        app: ASGIApp,
        minimum_size: int = 500,
        excluded_prefix: str = MEDIA_PREFIX,
    ) -> None:
        self.app = app
        self.gzip = GZipMiddleware(app, minimum_size=minimum_size)
        self.excluded_prefix = excluded_prefix

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http" and scope["path"].startswith(self.excluded_prefix):
            await self.app(scope, receive, send)
            return
        await self.gzip(scope, receive, send)
