"""
mediagrab – FastAPI entry point.
Serves the download API and, optionally, the downloaded media files.
"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.staticfiles import StaticFiles

from mediagrab.config import get_settings
from mediagrab.errors import MediaGrabError
from mediagrab.api.config import router as config_router
from mediagrab.api.download import router as download_router
from mediagrab.api.health import router as health_router

settings = get_settings()

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("mediagrab")

# Reduce console noise: uvicorn access log and third-party libs
logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
for name in ("aiohttp.access", "aiohttp.client", "httpx", "httpcore"):
    logging.getLogger(name).setLevel(logging.WARNING)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle."""
    output_dir = Path(settings.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    logger.info("Saving media to %s", output_dir)
    if settings.serve_media:
        logger.info("Serving saved media under %s", settings.media_url_prefix)

    yield

    logger.info("Shutdown complete.")


# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------

app = FastAPI(
    title="mediagrab",
    description="Download Instagram reels and TikTok videos through an ordered fallback of extraction strategies.",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS: browsers forbid allow_credentials with a wildcard origin, so "*"
# means any origin without credentials.
cors_origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()] or ["*"]
_allow_any = cors_origins == ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=not _allow_any,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _cors_headers(origin: Optional[str]) -> dict:
    """Headers so browser allows cross-origin response (including on 5xx)."""
    if _allow_any:
        return {"Access-Control-Allow-Origin": "*"}
    allow = origin if origin in cors_origins else cors_origins[0]
    return {
        "Access-Control-Allow-Origin": allow,
        "Access-Control-Allow-Credentials": "true",
    }


@app.exception_handler(MediaGrabError)
async def mediagrab_error_handler(request: Request, exc: MediaGrabError):
    """Render pipeline errors as {error, message} with the error's status code."""
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    else:
        logger.info("%s %s rejected: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.error, "message": str(exc)},
        headers=_cors_headers(request.headers.get("origin")),
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies are rejected like any other invalid URL: 400 {error, message}."""
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(p) for p in first.get("loc", ()) if p != "body") or "body"
    detail = first.get("msg", "invalid request")
    logger.info("%s %s rejected: %s: %s", request.method, request.url.path, field, detail)
    return JSONResponse(
        status_code=400,
        content={
            "error": "Invalid URL",
            "message": f"Request body must be a JSON object with a string \"url\" field ({field}: {detail})",
        },
        headers=_cors_headers(request.headers.get("origin")),
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler_with_cors(request: Request, exc: StarletteHTTPException):
    """Ensure CORS headers on HTTPException responses so browser shows error."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": "Request failed", "message": str(exc.detail)},
        headers=_cors_headers(request.headers.get("origin")),
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """Log unhandled exceptions and return 500 with CORS so browser shows error instead of CORS block."""
    logger.exception("Unhandled exception: %s", exc)
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "message": "An unexpected error occurred."},
        headers=_cors_headers(request.headers.get("origin")),
    )


# Routers
app.include_router(health_router, prefix="/api", tags=["health"])
app.include_router(config_router, prefix="/api", tags=["config"])
app.include_router(download_router, prefix="/api", tags=["download"])


# ---------------------------------------------------------------------------
# Saved media (read-only)
# ---------------------------------------------------------------------------

if settings.serve_media:
    Path(settings.output_dir).mkdir(parents=True, exist_ok=True)
    app.mount(
        settings.media_url_prefix.rstrip("/") or "/media",
        StaticFiles(directory=settings.output_dir),
        name="media",
    )
