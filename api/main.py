"""
FastAPI Application Entry Point
Social Listening Signal Engine
"""

import logging
import sys
import os

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.routes import router
from config.settings import settings
from models.errors import (
    SignalEngineError, InvalidConfig, PreconditionFailed, CrisisNotFound, RepositoryFailure,
)

# ─── Logging ─────────────────────────────────────────────────────────────────

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

# ─── App ─────────────────────────────────────────────────────────────────────

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description=(
        "Signal analysis over social-media mentions: trending terms, viral content, "
        "conversation clusters, and crisis detection with a managed response lifecycle."
    ),
    docs_url="/docs",
    redoc_url="/redoc",
)

# ─── CORS ────────────────────────────────────────────────────────────────────

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Tighten in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ─── Errors ──────────────────────────────────────────────────────────────────

_STATUS_CODES = (
    (InvalidConfig, 422),
    (PreconditionFailed, 409),
    (CrisisNotFound, 404),
    (RepositoryFailure, 503),
)


def status_for(exc: SignalEngineError) -> int:
    for cls, code in _STATUS_CODES:
        if isinstance(exc, cls):
            return code
    return 500


@app.exception_handler(SignalEngineError)
async def signal_engine_error_handler(request: Request, exc: SignalEngineError):
    code = status_for(exc)
    if code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=code, content={"error_code": exc.error_code, "detail": exc.message})


# ─── Routes ──────────────────────────────────────────────────────────────────

app.include_router(router, prefix="/api/v1")


@app.get("/", tags=["System"])
async def root():
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "docs": "/docs",
        "status": "running",
    }


# ─── Run ─────────────────────────────────────────────────────────────────────

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "api.main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        reload=settings.DEBUG,
    )
