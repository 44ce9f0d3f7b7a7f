#!/usr/bin/env python3
"""
Mail router - HTTP entry point.

Serves the public contact endpoint and the inbound mail webhook.
"""
import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from mailrouter import __version__
from mailrouter.api import build_router
from mailrouter.config import Settings, get_settings
from mailrouter.errors import NotFoundError, SubmissionError
from mailrouter.services.container import Services, open_services

logger = logging.getLogger(__name__)

CORS_ALLOW_METHODS = "POST, OPTIONS"
CORS_ALLOW_HEADERS = "Content-Type"
CORS_MAX_AGE = "86400"


def apply_cors_headers(response: Response, origin: str, allowed_origins: list[str]) -> Response:
    """Grant the origin only when it is allow-listed."""
    if origin and origin in allowed_origins:
        response.headers["Access-Control-Allow-Origin"] = origin
        response.headers["Vary"] = "Origin"
    response.headers["Access-Control-Allow-Methods"] = CORS_ALLOW_METHODS
    response.headers["Access-Control-Allow-Headers"] = CORS_ALLOW_HEADERS
    response.headers["Access-Control-Max-Age"] = CORS_MAX_AGE
    return response


def create_app(settings: Settings | None = None, services: Services | None = None) -> FastAPI:
    """Create FastAPI application.

    When *services* is given it is used as-is and the lifespan opens nothing.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        from mailrouter.logging_config import setup_logging
        setup_logging("Server")

        if services is not None:
            app.state.services = services
            yield
            return

        async with open_services(settings) as opened:
            app.state.services = opened
            logger.info("Mail router ready for %s", settings.DOMAIN)
            yield

    app = FastAPI(
        title="Mail Router API",
        description="Contact form intake and bidirectional email relay",
        version=__version__,
        lifespan=lifespan,
    )

    @app.middleware("http")
    async def cors(request: Request, call_next):
        origin = request.headers.get("origin", "")
        if request.method == "OPTIONS":
            response = Response(status_code=204)
        else:
            response = await call_next(request)
        return apply_cors_headers(response, origin, settings.allowed_origins_list)

    @app.exception_handler(SubmissionError)
    async def submission_error_handler(request: Request, exc: SubmissionError):
        logger.info("Rejected %s %s: %s", request.method, request.url.path, exc.message)
        return JSONResponse({"error": exc.message}, status_code=exc.status_code)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        # Unknown routes and wrong methods are both reported as not found.
        if exc.status_code in (404, 405):
            not_found = NotFoundError("Not found")
            return JSONResponse({"error": not_found.message}, status_code=not_found.status_code)
        return JSONResponse({"error": str(exc.detail)}, status_code=exc.status_code)

    app.include_router(build_router(settings))
    return app


def main() -> None:
    """Main entry point."""
    settings = get_settings()
    logger.info(f"Starting mail router API on port {settings.API_PORT}")
    uvicorn.run(
        create_app(settings),
        host=settings.API_HOST,
        port=settings.API_PORT,
        log_config=None,
    )


if __name__ == "__main__":
    main()
