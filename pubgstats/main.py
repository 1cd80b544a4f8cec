"""FastAPI application for PUBG tournament stats."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from pubgstats.config import get_settings
from pubgstats.database import close_db, init_db
from pubgstats.errors import PipelineError
from pubgstats.routes.api import router as api_router
from pubgstats.routes.core import router as core_router
from pubgstats.security import limiter

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("Starting PUBG stats service...")
    if settings.DB_AUTO_MIGRATE:
        await init_db()
    if not settings.PUBG_API_KEY:
        logger.warning("[STARTUP] PUBG_API_KEY not set - only scopes with their own key can fetch")

    yield

    logger.info("Shutting down...")
    await close_db()


app = FastAPI(
    title="PUBG Stats Core",
    description="Tournament leaderboards and match normalization for PUBG",
    version="1.0.0",
    lifespan=lifespan,
)

# Add rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(PipelineError)
async def pipeline_error_handler(request: Request, exc: PipelineError):
    """Typed pipeline errors -> {"error", "details"} with the error's status."""
    if exc.http_status >= 500:
        logger.error(f"[API] {request.method} {request.url.path}: {exc}")
    else:
        logger.info(f"[API] {request.method} {request.url.path} -> {exc.http_status}: {exc}")
    return JSONResponse(status_code=exc.http_status, content=exc.to_dict())


# Include routers
app.include_router(core_router)
app.include_router(api_router)
