"""
FastAPI application entry point.

Using an application factory pattern (create_app function) so tests can
build an app against their own settings.

For local development:
    uvicorn mediasync.main:app --reload

For production:
    gunicorn mediasync.main:app -w 4 -k uvicorn.workers.UvicornWorker
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__
from .api.routes import health, replication
from .config.settings import get_settings

# Configure logging
logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=logging.INFO,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Logs the effective configuration on startup. Missing configuration is
    logged rather than fatal so /health/ready can report it.
    """
    settings = get_settings()
    logging.getLogger().setLevel(settings.log_level.upper())

    logger.info(
        "mediasync starting",
        extra={
            "version": __version__,
            "mock_mode": settings.storage_mock_mode,
            "max_concurrency": settings.max_concurrency,
        }
    )

    missing_fields = settings.validate_required_fields()
    if missing_fields:
        logger.error(
            "Missing required configuration",
            extra={"missing_fields": missing_fields}
        )

    yield

    logger.info("mediasync shutting down")


def create_app() -> FastAPI:
    """
    Application factory.

    Creates and configures the FastAPI application.
    """
    settings = get_settings()

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        description="""
        Replicates media trees from the origin bucket to regional replicas.

        ## Authentication

        Replication endpoints require an API key in the `X-API-Key` header.

        ## Workflow

        1. **Upload output**: `POST /api/v1/upload`
           - Push the local output directory to the origin under a prefix

        2. **Replicate**: `POST /api/v1/sync`
           - Copy the prefix from the origin to every replica bucket
           - 200 when every replica succeeded, 207 when only some did
        """,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(
        health.router,
        prefix="/health",
        tags=["Health"],
    )

    app.include_router(
        replication.router,
        prefix="/api/v1",
        tags=["Replication"],
    )

    @app.get("/ping", include_in_schema=False)
    async def ping():
        """Liveness ping used by the upload service before it starts."""
        return {"message": "pong"}

    @app.get("/", include_in_schema=False)
    async def root():
        return {
            "message": "mediasync",
            "version": settings.api_version,
            "docs": "/docs",
            "health": "/health",
        }

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request, exc):
        """
        Catch-all exception handler.

        Logs the full error server-side but returns a generic message.
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
            content={
                "detail": "Internal server error. Please contact support if this persists."
            }
        )

    logger.info(
        "FastAPI application created",
        extra={
            "title": settings.api_title,
            "version": settings.api_version,
        }
    )

    return app


# Create the application instance
# This is what uvicorn/gunicorn will import
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "mediasync.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level=settings.log_level.lower(),
    )
