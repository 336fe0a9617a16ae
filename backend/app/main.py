from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager
from http import HTTPStatus

from app.core.config import settings
from app.core.database import init_db, close_db
from app.core.exceptions import InvalidInputError, MaintrackError, StorageUnavailableError, error_response
from app.core.logging_config import logger
from app.core.middleware import (
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
    RequestSizeLimitMiddleware,
)
from app.api.v1.router import api_router
from app.modules.storage.record_store import ensure_data_dir
import app.models  # Import models so metadata knows about them


async def ensure_database_ready() -> bool:
    """Create the users table if needed; auth routes fail without it"""
    try:
        await init_db()
        logger.info("[Startup] Database tables ready")
        return True
    except Exception as e:
        logger.error(f"[Startup] Failed to ensure database ready: {e}")
        logger.error("[Startup] Registration and login will not work!")
        return False


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan event handler for startup and shutdown"""
    # Startup
    logger.info("=" * 60)
    logger.info(f"Starting {settings.APP_NAME}...")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Data directory: {settings.DATA_PATH.resolve()}")
    logger.info("=" * 60)

    # Step 1: Data directory for the year partitions
    if not ensure_data_dir():
        logger.warning("[Startup] Data directory not available - /works will answer 503")

    # Step 2: Users table
    db_ready = await ensure_database_ready()
    if not db_ready:
        logger.warning("[Startup] Database not ready - auth routes may fail")

    yield

    # Shutdown
    logger.info(f"Shutting down {settings.APP_NAME}...")
    await close_db()


# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    description="Daily maintenance work tracking, stored as one JSON file per year",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
    redirect_slashes=False  # Prevent 307 redirects that break CORS
)

# Add middleware (order matters - last added runs first)
# 1. Request logging (runs first for all requests)
app.add_middleware(RequestLoggingMiddleware)

# 2. Security headers
app.add_middleware(SecurityHeadersMiddleware)

# 3. Request size limit
app.add_middleware(RequestSizeLimitMiddleware, max_size=settings.MAX_REQUEST_SIZE_MB * 1024 * 1024)

# 4. CORS - Origins from CORS_ORIGINS_STR in .env
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID", "X-Response-Time"],
)


# Exception handlers
@app.exception_handler(MaintrackError)
async def maintrack_exception_handler(request: Request, exc: MaintrackError):
    if isinstance(exc, StorageUnavailableError):
        logger.error(f"{request.method} {request.url.path}: {exc.message}")
    elif exc.status_code >= 500:
        logger.log_error_with_context(exc, context=f"{request.method} {request.url.path}")
    return JSONResponse(status_code=exc.status_code, content=error_response(exc))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"loc": [str(part) for part in err.get("loc", ())], "msg": err.get("msg", "")}
        for err in exc.errors()
    ]
    message = errors[0]["msg"] if errors else "Invalid request"
    error = InvalidInputError(message, errors=errors)
    return JSONResponse(status_code=error.status_code, content=error_response(error))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    try:
        code = HTTPStatus(exc.status_code).name
    except ValueError:
        code = "HTTP_ERROR"
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(MaintrackError(str(exc.detail), code=code)),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Global exception: {exc}", exc_info=True)
    error = MaintrackError(str(exc) if settings.DEBUG else "An error occurred")
    return JSONResponse(status_code=500, content=error_response(error))


# Health check endpoint
@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "app_name": settings.APP_NAME,
        "version": "1.0.0",
        "environment": settings.ENVIRONMENT
    }


# Root endpoint
@app.get("/", tags=["Root"])
async def root():
    """Root endpoint"""
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health"
    }


# Include API router
app.include_router(api_router, prefix=settings.API_PREFIX)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host=settings.SERVER_HOST,
        port=settings.SERVER_PORT,
        reload=settings.DEBUG
    )
