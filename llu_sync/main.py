"""ASGI app for llu-sync: session routes, manual sync, health and metrics."""

import logging
import uuid
from contextlib import asynccontextmanager
from typing import Any, Dict

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.middleware.cors import CORSMiddleware

from llu_sync import __version__
from llu_sync.api.readings import router as readings_router
from llu_sync.api.session import router as session_router
from llu_sync.data.dynamodb import get_dynamodb_client
from llu_sync.sync.scheduler import SyncScheduler
from llu_sync.utils.config import get_settings, setup_logging
from llu_sync.utils.logging_utils import redact_sensitive_data

settings = get_settings()
setup_logging(settings.log_level, settings.log_output, settings.log_file_path)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> Any:
    """Start the sync scheduler for the life of the app; in development also ensure the table."""
    logger.info("llu-sync starting", extra={"service_env": settings.service_env})

    if settings.service_env == "development":
        try:
            get_dynamodb_client().create_glucose_records_table(wait=True)
        except Exception as e:
            logger.error(f"Glucose records table unavailable: {e}")

    scheduler = SyncScheduler(settings)
    scheduler.start()
    scheduler.schedule()
    app.state.scheduler = scheduler

    yield

    logger.info("llu-sync stopping")
    scheduler.shutdown()


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Echo the caller's X-Request-ID, or mint one, on request.state and the response."""

    header = "X-Request-ID"

    async def dispatch(self, request, call_next):
        request.state.request_id = request.headers.get(self.header) or uuid.uuid4().hex
        response = await call_next(request)
        response.headers[self.header] = request.state.request_id
        return response


def create_app() -> FastAPI:
    """Build the app. The scheduler is created by the lifespan, not here."""
    app = FastAPI(
        title="LibreLinkUp Sync Service",
        description="Periodically copies the latest LibreLinkUp glucose reading into a health store",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestIDMiddleware)

    app.include_router(session_router, prefix="/api")
    app.include_router(readings_router, prefix="/api")

    @app.get("/health")
    async def health_check() -> Dict[str, str]:
        logger.debug("Health check", extra={"endpoint": "/health"})
        return {"status": "healthy", "service": "llu-sync"}

    app.mount("/metrics", make_asgi_app())

    # Structured bodies are redacted before they leave the process
    @app.exception_handler(Exception)
    async def unhandled_exception(request: Request, exc: Exception):
        logger.error(
            "Request failed",
            exc_info=exc,
            extra={"path": str(request.url.path), "request_id": getattr(request.state, "request_id", None)},
        )
        detail = exc.detail if isinstance(exc, HTTPException) else str(exc)
        safe_detail = redact_sensitive_data(detail) if isinstance(detail, (dict, list)) else detail
        return JSONResponse(
            status_code=getattr(exc, "status_code", 500),
            content={
                "status": "error",
                "message": safe_detail,
            },
        )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "llu_sync.main:app",
        host="0.0.0.0",
        port=5001,
        log_level=settings.log_level.lower(),
    )
