"""
Main application entry point for MindCare - a mental-health community platform API.
"""
import logging
import time

from fastapi import APIRouter, Depends, FastAPI, Request
import uvicorn

from routes import admin, auth, mood
from routes.config import settings
from routes.email_service import EmailService
from routes.errors import register_exception_handlers
from routes.rate_limiter import RateLimiter, limit_api

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
)
logger = logging.getLogger(__name__)

APP_VERSION = "1.0.0"
STARTED_AT = time.monotonic()

# Initialize FastAPI application
app = FastAPI(
    title="MindCare",
    description="Mental Health Platform API - accounts, mood journaling and mood statistics",
    version=APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc"
)

# Long-lived services, reached by routes through request.app.state
app.state.email_service = EmailService(settings)
app.state.api_limiter = RateLimiter(
    max_requests=settings.RATE_LIMIT_MAX_REQUESTS,
    window=settings.RATE_LIMIT_WINDOW_SECONDS
)
app.state.auth_limiter = RateLimiter(
    max_requests=settings.AUTH_RATE_LIMIT_MAX_REQUESTS,
    window=settings.RATE_LIMIT_WINDOW_SECONDS
)

register_exception_handlers(app)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log method, path, status and duration of every request."""
    started = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - started) * 1000
    logger.info(f"{request.method} {request.url.path} {response.status_code} {elapsed_ms:.1f}ms")
    return response


# ========== API Index ==========

index_router = APIRouter(tags=["Index"])


@index_router.get("/health")
async def health():
    return {
        "success": True,
        "message": "MindCare API is running",
        "uptime": round(time.monotonic() - STARTED_AT, 3)
    }


@index_router.get("/")
async def api_index():
    prefix = settings.API_PREFIX
    return {
        "success": True,
        "message": "MindCare Mental Health Platform API",
        "version": APP_VERSION,
        "endpoints": {
            "auth": f"{prefix}/auth",
            "mood": f"{prefix}/mood",
            "admin": f"{prefix}/admin"
        }
    }


# Include API routers
api_dependencies = [Depends(limit_api)]
app.include_router(index_router, prefix=settings.API_PREFIX)
app.include_router(auth.router, prefix=settings.API_PREFIX, dependencies=api_dependencies)
app.include_router(mood.router, prefix=settings.API_PREFIX, dependencies=api_dependencies)
app.include_router(admin.router, prefix=settings.API_PREFIX, dependencies=api_dependencies)


if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=not settings.is_production)
