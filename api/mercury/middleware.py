"""Access logging, body size limit and security headers."""

import logging
import time

from fastapi import Request, Response
from starlette.datastructures import Headers
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from mercury.errors import BodyTooLarge

logger = logging.getLogger(__name__)

HEALTH_PATH = "/api/v1/health"

_SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
    "Content-Security-Policy": "default-src 'none'; frame-ancestors 'none'",
}


def error_response(status_code: int, message: str) -> JSONResponse:
    """The JSON error envelope shared by every failure response."""
    return JSONResponse(
        status_code=status_code,
        content={"error": {"code": status_code, "message": message}},
    )


class AccessLogMiddleware(BaseHTTPMiddleware):
    """Log every request except the health check, and add security headers."""

    async def dispatch(self, request: Request, call_next) -> Response:
        start = time.perf_counter()
        response = await call_next(request)
        for header, value in _SECURITY_HEADERS.items():
            response.headers[header] = value

        if request.url.path != HEALTH_PATH:
            logger.info(
                "%s %s -> %d (%.1f ms)",
                request.method,
                request.url.path,
                response.status_code,
                (time.perf_counter() - start) * 1000,
            )
        return response


class RequestSizeLimitMiddleware:
    """
    Reject request bodies larger than ``max_body_size``.

    A declared ``Content-Length`` is checked up front. Bodies without one
    (chunked uploads) are counted as they are read, and ``BodyTooLarge`` is
    raised from ``receive`` once the limit is passed.
    """

    def __init__(self, app: ASGIApp, max_body_size: int = 1024 * 1024):
        self.app = app
        self.max_body_size = max_body_size

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        content_length = Headers(scope=scope).get("content-length")
        if content_length:
            try:
                size = int(content_length)
            except ValueError:
                response = error_response(400, "Invalid Content-Length header")
                await response(scope, receive, send)
                return
            if size > self.max_body_size:
                response = error_response(413, str(BodyTooLarge(self.max_body_size)))
                await response(scope, receive, send)
                return

        received = 0

        async def limited_receive() -> Message:
            nonlocal received
            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                if received > self.max_body_size:
                    raise BodyTooLarge(self.max_body_size)
            return message

        await self.app(scope, limited_receive, send)
