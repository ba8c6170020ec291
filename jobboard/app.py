from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from jobboard.api.error_handling import register_exception_handlers
from jobboard.api.routes import router
from jobboard.config import Settings
from jobboard.logging import get_logger, set_correlation_id

logger = get_logger(__name__)

_settings = Settings.from_env()

__version__ = "0.1.0"
__build__ = _settings.build_sha


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the runtime (and bootstrap the admin account) before serving."""
    from jobboard.service.runtime import get_runtime

    runtime = get_runtime()
    logger.info("app_started", version=__version__, build=__build__)
    yield
    logger.info("app_stopped", users=len(runtime.store.list_users()))


app = FastAPI(title="Job Board API", version=__version__, lifespan=lifespan)


def _allowed_origins() -> List[str]:
    if _settings.cors_allow_origins:
        return _settings.cors_allow_origins
    # Local dev hosts; no wildcard because bearer tokens travel in headers
    return [
        "http://localhost",
        "http://localhost:3000",
        "http://localhost:8000",
        "http://127.0.0.1:3000",
        "http://127.0.0.1:8000",
    ]


app.add_middleware(
    CORSMiddleware,
    allow_origins=_allowed_origins(),
    allow_credentials=False,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Request-ID"],
    expose_headers=["X-Request-ID", "API-Version"],
    max_age=3600,
)


@app.middleware("http")
async def add_correlation_id(request, call_next):
    """Tag each request with a correlation id for structured logging.

    The id comes from the ``X-Request-ID`` header when the client sends one
    and is echoed back on the response.
    """
    client_request_id = request.headers.get("X-Request-ID")
    correlation_id = set_correlation_id(client_request_id)
    response = await call_next(request)
    response.headers["X-Request-ID"] = correlation_id
    return response


@app.middleware("http")
async def add_security_headers(request, call_next):
    response = await call_next(request)
    response.headers.setdefault("X-Frame-Options", "DENY")
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
    response.headers.setdefault("API-Version", __version__)
    # API responses carry bearer-scoped data and must not be cached
    if request.url.path.startswith("/api/") or request.url.path == "/healthz":
        response.headers.setdefault("Cache-Control", "no-store, no-cache, must-revalidate, private")
    return response


register_exception_handlers(app)
app.include_router(router)


UPLOADS_DIR = Path(_settings.uploads_dir)
UPLOADS_DIR.mkdir(parents=True, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=UPLOADS_DIR, html=False), name="uploads")


@app.get("/healthz")
async def health() -> Dict[str, Any]:
    """Health check reporting build info and store/upload readiness."""
    from jobboard.service.runtime import get_runtime

    runtime = get_runtime()
    uploads_ok = UPLOADS_DIR.exists() and UPLOADS_DIR.is_dir()
    if not uploads_ok:
        logger.error("health_check_uploads_missing", path=str(UPLOADS_DIR))
    checks = {
        "store": {"status": "healthy", "type": "memory"},
        "uploads": {"status": "healthy" if uploads_ok else "unhealthy"},
    }
    return {
        "status": "healthy" if uploads_ok else "unhealthy",
        "checks": checks,
        "version": __version__,
        "build": __build__,
        "admin_bootstrapped": runtime.credentials.find_by_email(runtime.settings.admin_email)
        is not None,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
