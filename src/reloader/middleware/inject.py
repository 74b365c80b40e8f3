"""Middleware injecting the reload script into a host app's HTML pages."""
from collections.abc import Callable
from typing import Awaitable

from starlette.datastructures import MutableHeaders
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from reloader.script import inject_script


class LiveReloadMiddleware(BaseHTTPMiddleware):
    """Middleware that appends the reload script to ``text/html`` responses.

    Intended for the host application, not the reloader's own app:

        app.add_middleware(LiveReloadMiddleware, script=reloader.reload_script())
    """

    def __init__(self, app: ASGIApp, script: str) -> None:
        """Initialize middleware.

        Args:
            app: Wrapped ASGI application.
            script: Rendered reload script.
        """
        super().__init__(app)
        self._script = script

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        """Process request and inject the script into HTML bodies.

        Args:
            request: Incoming HTTP request.
            call_next: Next middleware or route handler.

        Returns:
            The original response, or a copy with the script injected.
        """
        response = await call_next(request)

        content_type = response.headers.get("content-type", "")
        if "text/html" not in content_type:
            return response

        chunks = [chunk async for chunk in response.body_iterator]  # type: ignore[attr-defined]
        raw = b"".join(
            chunk if isinstance(chunk, bytes) else chunk.encode("utf-8") for chunk in chunks
        )
        body = inject_script(raw.decode("utf-8", errors="replace"), self._script)

        headers = MutableHeaders(raw=list(response.headers.raw))
        del headers["content-length"]
        return Response(
            content=body,
            status_code=response.status_code,
            headers=headers,
            media_type=response.media_type,
        )
