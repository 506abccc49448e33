"""
Main FastAPI application for the Assignment Engine backend.
Handles CORS, request logging middleware, lifespan events, and router registration.
"""
import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config import settings
from app.database import close_db, init_db
from app.routers import assignments, health
from app.services.job_manager import job_manager
from app.services.text_generator import OllamaTextGenerator

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown event handler."""
    logger.info("=" * 60)
    logger.info("  Starting Assignment Engine backend …")
    logger.info("=" * 60)

    # 1. Database (required; raises on failure)
    await init_db()
    logger.info("✓ Database connection OK")

    # 2. Ollama (optional; logs warnings but continues)
    if await OllamaTextGenerator().check_health():
        logger.info("✓ Ollama reachable at %s (model %s)", settings.OLLAMA_BASE_URL, settings.OLLAMA_LLM_MODEL)
    else:
        logger.warning(
            "Ollama is not running.  Start it with: ollama serve\n"
            "  Assignment generation will fail until Ollama is up."
        )

    logger.info("=" * 60)
    logger.info("  Assignment Engine ready on http://%s:%d", settings.HOST, settings.PORT)
    logger.info("  Swagger UI : http://%s:%d/docs", settings.HOST, settings.PORT)
    logger.info("  Health     : http://%s:%d/api/health", settings.HOST, settings.PORT)
    logger.info("=" * 60)

    yield  # ← server is running

    logger.info("Shutting down Assignment Engine backend …")
    # Running jobs write their failure through the engine, so stop them first
    cancelled = await job_manager.shutdown()
    if cancelled:
        logger.info("✓ Cancelled %d running job(s)", cancelled)
    await close_db()
    logger.info("✓ Shutdown complete.")


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Assignment Engine API",
    description=(
        "**Assignment Engine**: target-length academic assignment generation.\n\n"
        "Plans a word budget into sections, generates each with an LLM, "
        "expands short results, and exports DOCX, PDF or TXT.\n\n"
        "Key endpoints:\n"
        "- `POST /api/assignments/generate`: generate a file (or start a job)\n"
        "- `POST /api/assignments/generate-json`: generate cleaned text\n"
        "- `GET  /api/assignments/jobs/{jobId}`: poll a background job\n"
        "- `GET  /api/assignments/jobs/{jobId}/download`: fetch a finished file\n"
    ),
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)


# ---------------------------------------------------------------------------
# CORS
# ---------------------------------------------------------------------------

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_allowed_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition"],
)


# ---------------------------------------------------------------------------
# Request / response logging middleware
# ---------------------------------------------------------------------------

@app.middleware("http")
async def log_requests(request: Request, call_next):
    """
    Log every request with method, path, status code, and elapsed time.
    Attaches an ``X-Process-Time`` header (milliseconds) to every response.
    """
    t0 = time.monotonic()
    response = await call_next(request)
    elapsed_ms = round((time.monotonic() - t0) * 1000, 2)

    # Skip noisy polling from the frontend
    if request.url.path not in ("/api/health", "/") and "/jobs/" not in request.url.path:
        logger.info(
            "%s %s → %d  (%.2f ms)",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
        )

    response.headers["X-Process-Time"] = f"{elapsed_ms}ms"
    return response


# ---------------------------------------------------------------------------
# Global exception handler
# ---------------------------------------------------------------------------

@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Return a structured JSON error for any unhandled exception."""
    logger.error(
        "Unhandled exception on %s %s: %s",
        request.method,
        request.url.path,
        exc,
        exc_info=True,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "success": False,
            "detail": "Internal server error",
            "error": str(exc),
            "path": str(request.url.path),
            "timestamp": datetime.utcnow().isoformat(),
        },
    )


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------

app.include_router(health.router,       prefix="/api/health",      tags=["Health"])
app.include_router(assignments.router,  prefix="/api/assignments", tags=["Assignments"])


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------

@app.get("/", tags=["Root"], include_in_schema=False)
async def root():
    """API root: returns basic service info."""
    return {
        "name": "Assignment Engine API",
        "version": "0.1.0",
        "description": "Academic assignment generation backend",
        "docs": "/docs",
        "health": "/api/health",
        "endpoints": {
            "generate": "/api/assignments/generate",
            "generate_json": "/api/assignments/generate-json",
            "jobs": "/api/assignments/jobs/{jobId}",
            "info": "/api/assignments/info",
        },
    }


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=True,
        log_level="info",
    )
