import logging
import sys
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import APIRouter, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from mercury import __version__
from mercury.channels.dispatcher import Dispatcher
from mercury.config import SecretStore, Settings
from mercury.decoding import UnsupportedContentType
from mercury.errors import (
    AuthError,
    AuthFailure,
    BodyTooLarge,
    DecodeError,
    DispatchError,
    MessageValidationError,
)
from mercury.log import configure_logging
from mercury.middleware import AccessLogMiddleware, RequestSizeLimitMiddleware, error_response
from mercury.routers import heroku, slack

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    http_client: Optional[httpx.AsyncClient] = None,
) -> FastAPI:
    """
    Build the application.

    ``settings`` defaults to the environment. ``http_client`` is used for
    outbound Slack calls when given, and is then left open on shutdown.
    """
    if settings is None:
        settings = Settings()

    secrets = SecretStore.from_settings(settings)
    if not secrets.webhooks_enabled:
        logger.warning("No HEROKU_SECRET configured; /api/v1/heroku/hook is disabled")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        client = http_client or httpx.AsyncClient(timeout=settings.dispatch_timeout)
        app.state.dispatcher = Dispatcher(
            client,
            api_base=settings.slack_api_base,
            token=settings.slack_token.get_secret_value(),
            timeout=settings.dispatch_timeout,
            retries=settings.dispatch_retries,
            backoff=settings.dispatch_backoff,
        )
        yield
        if http_client is None:
            await client.aclose()

    app = FastAPI(
        title="Mercury",
        description="Relay direct messages and Heroku webhooks to Slack.",
        version=__version__,
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.secrets = secrets

    app.add_middleware(RequestSizeLimitMiddleware, max_body_size=settings.max_body_size)
    app.add_middleware(AccessLogMiddleware)

    # --- Exception Handlers ---

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return error_response(exc.status_code, str(exc.detail))

    @app.exception_handler(AuthError)
    async def auth_error_handler(request: Request, exc: AuthError):
        # The reason was logged by the guard; callers only see a generic answer
        if exc.reason is AuthFailure.DISABLED:
            return error_response(404, "Not Found")
        return error_response(401, "Unauthorized")

    @app.exception_handler(BodyTooLarge)
    async def body_too_large_handler(request: Request, exc: BodyTooLarge):
        return error_response(413, str(exc))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return error_response(400, "Invalid request")

    @app.exception_handler(DecodeError)
    async def decode_error_handler(request: Request, exc: DecodeError):
        if isinstance(exc, UnsupportedContentType):
            return error_response(415, str(exc))
        logger.info("Rejected %s %s: %s", request.method, request.url.path, exc)
        return error_response(400, str(exc))

    @app.exception_handler(MessageValidationError)
    async def message_validation_handler(request: Request, exc: MessageValidationError):
        return error_response(400, str(exc))

    @app.exception_handler(DispatchError)
    async def dispatch_error_handler(request: Request, exc: DispatchError):
        # The cause was logged by the dispatcher and stays server-side
        if exc.timed_out:
            return error_response(504, "Upstream delivery timed out")
        return error_response(502, "Upstream delivery failed")

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return error_response(500, "Internal server error")

    # --- Routes ---

    api_v1 = APIRouter(prefix="/api/v1")
    api_v1.include_router(slack.router, prefix="/slack")
    api_v1.include_router(heroku.router, prefix="/heroku")

    @api_v1.get("/health", summary="Health check")
    async def health():
        return {"status": "ok"}

    app.include_router(api_v1)

    return app


def run() -> None:
    try:
        settings = Settings()
    except ValidationError as exc:
        print(f"FATAL: invalid configuration (is SLACK_TOKEN set?)\n{exc}", file=sys.stderr)
        sys.exit(1)

    configure_logging(settings.log_level)

    try:
        app = create_app(settings)
    except ValueError as exc:
        print(f"FATAL: {exc}", file=sys.stderr)
        sys.exit(1)

    import uvicorn

    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)


if __name__ == "__main__":
    run()
