"""
FastAPI application entry point.

This module creates and configures the FastAPI application. ``create_app``
takes explicit settings and, optionally, a storage client, so tests can
build an app against an in-memory store without touching the environment.

For local development:
    uvicorn upload_relay.main:app --reload --port 3000

Or through the console script:
    upload-relay
"""

import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from . import __version__
from .api.dependencies import build_publisher, build_storage_client
from .api.routes import health, uploads
from .config.settings import Settings, get_settings
from .core.publishing.errors import ConfigMissing
from .core.publishing.publisher import ObjectStore

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

ENV_FILE_HINT = """Create a .env file with:
   KLYM_AWS_ACCESS_KEY=your_access_key
   KLYM_AWS_SECRET_KEY=your_secret_key
   KLYM_S3_BUCKET=your_bucket_name
   KLYM_AWS_REGION=ap-south-1"""


def configure_logging(level: str) -> None:
    logging.basicConfig(
        format=LOG_FORMAT,
        level=getattr(logging, level.upper(), logging.INFO),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Logs the endpoints and the configuration state on startup. Missing
    configuration is reported but does not stop the server.
    """
    settings: Settings = app.state.settings
    base_url = f"http://localhost:{settings.port}"

    logger.info(
        "Upload relay starting",
        extra={
            "version": __version__,
            "bucket": settings.bucket_name,
            "region": settings.aws_region,
            "mock_mode": settings.storage_mock_mode,
        }
    )
    logger.info(f"Server running on {base_url}")
    logger.info(f"Upload endpoint: {base_url}/upload")
    logger.info(f"Test endpoint: {base_url}/test")
    logger.info(f"Health check: {base_url}/health")

    # reported, not fatal: /health shows it and /upload fails on first use
    try:
        settings.require_fields()
    except ConfigMissing as e:
        logger.error(str(e), extra={"missing_fields": e.missing})
        logger.info(ENV_FILE_HINT)
    else:
        logger.info("All environment variables configured")

    yield

    logger.info("Upload relay shutting down")


def create_app(
    settings: Optional[Settings] = None,
    storage: Optional[ObjectStore] = None,
) -> FastAPI:
    """
    Application factory.

    Args:
        settings: Configuration; read from the environment when omitted
        storage: Object store; built from ``settings`` when omitted
    """
    if settings is None:
        settings = get_settings()
    if storage is None:
        storage = build_storage_client(settings)

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        description="""
        Relay that stores one uploaded file in an S3 bucket.

        1. **Upload**: `POST /upload` with multipart field `file`
           - Returns the object URL, a signed URL valid for 24 hours,
             the storage key, ETag and bucket
        2. **Liveness**: `GET /test`
        3. **Configuration**: `GET /health`
        """,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.storage = storage
    app.state.publisher = build_publisher(settings, storage)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(uploads.router, tags=["Upload"])
    app.include_router(health.router, tags=["Health"])

    @app.exception_handler(Exception)
    async def global_exception_handler(request, exc):
        """
        Catch-all exception handler.

        Keeps stack traces out of responses; the full error goes to the log.
        """
        logger.error(
            "Unhandled exception",
            extra={
                "path": request.url.path,
                "method": request.method,
                "error": str(exc),
            },
            exc_info=exc,
        )

        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error"}
        )

    # mounted last so it only sees paths no route claimed
    if os.path.isdir(settings.static_dir):
        app.mount(
            "/",
            StaticFiles(directory=settings.static_dir, html=True),
            name="static",
        )
    else:
        logger.warning(
            "Static directory not found; static assets disabled",
            extra={"static_dir": settings.static_dir}
        )

    logger.info(
        "FastAPI application created",
        extra={
            "title": settings.api_title,
            "version": settings.api_version,
        }
    )

    return app


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    import uvicorn

    settings = get_settings()
    configure_logging(settings.log_level)

    uvicorn.run(
        "upload_relay.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


configure_logging(get_settings().log_level)

# Create the application instance
# This is what uvicorn imports
app = create_app()


if __name__ == "__main__":
    run()
