"""
FastAPI application factory.

Usage:
    python -m api.app                    # Dev server on port 8000
    APP_BACKEND=sqlite APP_DB_PATH=/data/viviendas.sqlite python -m api.app

OpenAPI docs available at http://localhost:8000/docs after starting.

Structured JSON logging when APP_LOG_FORMAT=json.
CORS middleware with configurable origins via APP_CORS_ORIGINS.
"""

import json
import logging
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

import api.database as _db
from api.routes import dashboard, download, historial, importar, reference, viviendas
from inventario.exceptions import InventarioError
from inventario.notifications import NotificationDispatcher
from store.base import Repository
from utils.config import AppConfig

# ── Configuration ─────────────────────────────────────────────────────────────
_cfg = AppConfig.from_env()

# ── Structured JSON logging ───────────────────────────────────────────────────


class _JsonFormatter(logging.Formatter):
    """Emit log records as newline-delimited JSON."""

    def format(self, record: logging.LogRecord) -> str:
        data: dict = {
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        # Merge extra fields added via logger.info("...", extra={...})
        for key in ("method", "path", "status", "duration_ms", "client_ip",
                    "request_id", "user_id"):
            if hasattr(record, key):
                data[key] = getattr(record, key)
        if record.exc_info:
            data["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(data, ensure_ascii=False)


def configure_logging(log_format: str = "text") -> None:
    handler = logging.StreamHandler()
    if log_format == "json":
        handler.setFormatter(_JsonFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s")
        )
    logging.basicConfig(handlers=[handler], level=logging.INFO, force=True)


configure_logging(_cfg.log_format)
_logger = logging.getLogger("viviendas_api")


def _error_body(error: str, detail, status_code: int) -> dict:
    return {"error": error, "detail": detail, "status_code": status_code}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Drain pending notifications and close the backend on shutdown."""
    yield
    _db.shutdown()


def create_app(repository: Repository | None = None,
               dispatcher: NotificationDispatcher | None = None,
               config: AppConfig | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        repository: Backend to serve (default: built from APP_BACKEND).
        dispatcher: Notification dispatcher (default: built from NOTIFY_*).
        config: Settings override (useful for testing).

    Returns:
        Configured FastAPI application instance.
    """
    cfg = config or _cfg
    _db.configure(repository=repository, dispatcher=dispatcher, config=cfg)

    app = FastAPI(
        title="Viviendas Inventory API",
        summary="Back office for the housing-unit inventory of a residential development.",
        description=(
            "## Viviendas Inventory API\n\n"
            "Lists units and their state history, changes the estado of a unit "
            "(LIBRE, BLOQUEADA, RESERVADA), imports units from spreadsheets and "
            "exports filtered lists to Excel.\n\n"
            "### Identity\n"
            "Write endpoints require `X-User-Id`. The role comes from the user's "
            "profile, or from `X-User-Role` when no profile exists. An "
            "`Authorization: Bearer` token is forwarded to the Supabase backend.\n\n"
            "### Errors\n"
            "Every error body has the shape `{error, detail, status_code}`."
        ),
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_tags=[
            {"name": "viviendas", "description": "List units and change their estado."},
            {"name": "historial", "description": "Append-only state-change history."},
            {"name": "dashboard", "description": "KPI counts, chart series and recent changes."},
            {"name": "importar", "description": "Spreadsheet import, preview and template."},
            {"name": "download", "description": "Excel export of filtered units and history."},
            {"name": "reference", "description": "Estados, transitions, personas and filter options."},
            {"name": "meta", "description": "Health check."},
        ],
    )

    # ── CORS middleware ────────────────────────────────────────────────────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.cors_origins,
        allow_credentials=False,
        allow_methods=["GET", "POST", "HEAD", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-Total-Count", "Content-Disposition"],
    )

    # ── Request logging middleware ─────────────────────────────────────────────

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log each request with a short request id and its duration."""
        request_id = str(uuid.uuid4())[:8]
        start = time.monotonic()
        path = request.url.path
        client_ip = request.client.host if request.client else "unknown"

        response = await call_next(request)
        duration_ms = (time.monotonic() - start) * 1000
        response.headers["X-Request-ID"] = request_id

        if cfg.log_format == "json":
            _logger.info(
                "request",
                extra={
                    "method": request.method,
                    "path": path,
                    "status": response.status_code,
                    "duration_ms": round(duration_ms, 1),
                    "client_ip": client_ip,
                    "request_id": request_id,
                    "user_id": request.headers.get("X-User-Id"),
                },
            )
        else:
            _logger.info(
                "method=%s path=%s status=%d duration_ms=%.1f ip=%s rid=%s",
                request.method, path, response.status_code, duration_ms,
                client_ip, request_id,
            )
        return response

    # ── Error handling ─────────────────────────────────────────────────────────

    @app.exception_handler(InventarioError)
    async def inventario_error_handler(request: Request, exc: InventarioError):
        if exc.status_code >= 500:
            _logger.warning("%s on %s: %s", type(exc).__name__,
                            request.url.path, exc.message)
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(exc.error, exc.message or str(exc), exc.status_code),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body("Request failed", exc.detail, exc.status_code),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=422,
            content=_error_body("Invalid request", jsonable_encoder(exc.errors()), 422),
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        """Catch unhandled exceptions and return JSON instead of HTML traceback."""
        _logger.exception("Unhandled error on %s", request.url.path)
        return JSONResponse(
            status_code=500,
            content=_error_body("Internal server error", str(exc), 500),
        )

    # ── Health check ──────────────────────────────────────────────────────────

    @app.get("/health", tags=["meta"], summary="Health check")
    def health():
        """Return 200 OK if the API is running and can reach the backend."""
        try:
            backend = _db.get_repository().health()
        except InventarioError as e:
            return JSONResponse(
                status_code=503,
                content={"status": "degraded", "error": e.message or str(e)},
            )
        dispatcher = _db.get_dispatcher()
        return {
            "status": "ok",
            **backend,
            "notifications": {
                "sent": dispatcher.sent,
                "failed": len(dispatcher.failures),
            },
        }

    # ── Register routers ──────────────────────────────────────────────────────

    prefix = "/api/v1"
    app.include_router(viviendas.router, prefix=prefix)
    app.include_router(historial.router, prefix=prefix)
    app.include_router(dashboard.router, prefix=prefix)
    app.include_router(importar.router,  prefix=prefix)
    app.include_router(download.router,  prefix=prefix)
    app.include_router(reference.router, prefix=prefix)

    return app


# Singleton instance for uvicorn
app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "api.app:app",
        host=_cfg.api_host,
        port=_cfg.api_port,
        reload=True,
        log_level="info",
    )
