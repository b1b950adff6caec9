import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from scmlink.api.router import api_router
from scmlink.config import settings
from scmlink.core.database import init_db
from scmlink.core.exceptions import ScmLinkError, ValidationError


def setup_logging() -> None:
    """Configure application logging."""
    # Format: timestamp - level - logger name - message
    log_format = "%(asctime)s | %(levelname)-7s | %(name)s | %(message)s"
    date_format = "%H:%M:%S"

    # Configure root logger
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format=log_format,
        datefmt=date_format,
        stream=sys.stdout,
        force=True,
    )

    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("apscheduler").setLevel(logging.WARNING)

    # Quieten uvicorn access logs (we'll log requests ourselves)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """Application lifespan: startup and shutdown events."""
    from scmlink.scm.github import close_github_client
    from scmlink.services.scheduler import scheduler

    # Startup
    setup_logging()
    logger.info("scmlink API starting up")
    if settings.debug:
        await init_db()
    scheduler.start()
    yield
    # Shutdown
    scheduler.stop()
    await close_github_client()
    logger.info("scmlink API shutting down")


app = FastAPI(
    title="scmlink API",
    description="Links projects to external version-control repositories",
    version="0.1.0",
    lifespan=lifespan,
)

# Proxy headers middleware - trust X-Forwarded-Proto from the reverse proxy
app.add_middleware(ProxyHeadersMiddleware, trusted_hosts=["*"])

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ScmLinkError)
async def scmlink_error_handler(_request: Request, exc: ScmLinkError) -> JSONResponse:
    """Map domain and adapter errors to their HTTP status."""
    content: dict = {"detail": exc.message}
    if isinstance(exc, ValidationError):
        content["errors"] = exc.errors
    if exc.status_code >= 500:
        logger.warning(f"{type(exc).__name__}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=content)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log HTTP requests, skipping OPTIONS preflight."""
    # Skip OPTIONS (CORS preflight) and health checks
    if request.method == "OPTIONS" or request.url.path == "/health":
        return await call_next(request)

    response = await call_next(request)

    # Only log non-2xx or sync endpoints
    path = request.url.path
    if response.status_code >= 400 or path.endswith(("/fetch", "/fetch-changesets")):
        logger.info(f"{request.method} {path} → {response.status_code}")

    return response


# Include API routes
app.include_router(api_router)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}
