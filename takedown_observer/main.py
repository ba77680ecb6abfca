"""FastAPI application wiring for the takedown observer service."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse
from fastapi.staticfiles import StaticFiles
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from psycopg_pool import ConnectionPool

from .api.routes import request_validation_handler, router as api_router
from .config import get_settings
from .domain.service import ReportService
from .logging_setup import configure_logging
from .memory_repository import InMemoryAccountRepository
from .repository import AccountRepository

logger = logging.getLogger(__name__)

settings = get_settings()

SPA_ROUTES = ("/", "/dashboard", "/about", "/related-work")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialise shared resources (store, services) for the app lifecycle."""
    configure_logging(settings.log_level)
    if settings.store_backend == "memory":
        logger.info("account store using in-memory backend")
        app.state.report_service = ReportService(InMemoryAccountRepository())
        yield
        return

    pool = ConnectionPool(settings.database_url, open=False)
    pool.open()
    repository = AccountRepository(pool)
    repository.ensure_schema()
    logger.info("account store using postgres backend")
    app.state.pool = pool
    app.state.report_service = ReportService(repository)
    try:
        yield
    finally:
        pool.close()


def mount_frontend(app: FastAPI, static_dir: Path) -> None:
    """Serve the dashboard bundle from ``static_dir`` when it exists."""
    if not static_dir.is_dir():
        logger.info("static directory %s not found, frontend disabled", static_dir)
        return

    app.mount("/static", StaticFiles(directory=static_dir), name="static")
    index_path = static_dir / "index.html"

    def spa_index() -> FileResponse:
        return FileResponse(index_path)

    for path in SPA_ROUTES:
        app.add_api_route(path, spa_index, methods=["GET"], include_in_schema=False)


app = FastAPI(title=settings.app_name, version=settings.version, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_allowed_origins),
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type"],
)


@app.get("/healthz", tags=["health"])
def healthz() -> dict[str, str]:
    """Return a minimal readiness indicator used by orchestration systems."""
    return {"status": "ok"}


@app.get("/metrics", include_in_schema=False)
def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


app.add_exception_handler(RequestValidationError, request_validation_handler)
app.include_router(api_router)
mount_frontend(app, Path(settings.static_dir))
