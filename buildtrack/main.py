import logging
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware

from .core.config import settings
from .core.rate_limit import limiter
from .db.database import init_db
from .api.api_v1.api import api_router
from .api.errors import register_exception_handlers
from .models.base import utcnow

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.VERSION,
    description="Construction project management API",
    openapi_url="/api/v1/openapi.json",
    docs_url="/api/v1/docs",
    redoc_url="/api/v1/redoc",
)

# Add rate limiting
app.state.limiter = limiter

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Trusted host middleware
if not settings.DEBUG:
    app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.ALLOWED_HOSTS)

register_exception_handlers(app)


# Middleware for request timing
@app.middleware("http")
async def add_process_time_header(request: Request, call_next):
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time
    response.headers["X-Process-Time"] = str(process_time)
    return response


# Health check endpoint
@app.get("/health")
async def health_check():
    return {"status": "healthy", "version": settings.VERSION}


# Include API router
app.include_router(api_router, prefix="/api/v1")


@app.get("/api/v1/health")
async def api_health_check():
    """Health check endpoint"""
    return {"status": "healthy", "timestamp": utcnow().isoformat()}


# Startup event
@app.on_event("startup")
async def startup_event():
    """Initialize database tables in development"""
    if settings.ENVIRONMENT == "development":
        await init_db()
    logger.info(f"{settings.APP_NAME} {settings.VERSION} started ({settings.ENVIRONMENT})")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "buildtrack.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level="debug" if settings.DEBUG else "info"
    )
