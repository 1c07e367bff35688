"""
FastAPI application main module.
Middleware, error handling, health checks and router wiring for the ClawBack API.
"""
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from starlette.exceptions import HTTPException as StarletteHTTPException
import time
import os
from contextlib import asynccontextmanager
from clawback.api.v1 import api_router, hooks_router
from clawback.config import load_settings
from clawback.database import engine, Base
from clawback.services.catalog import get_catalog
from clawback.utils import setup_logging, get_logger
from clawback.utils.observability import ensure_request_id, current_request_id, REQUEST_ID_HEADER

# Setup logging before creating the app
setup_logging(
    log_level=os.getenv("LOG_LEVEL", "INFO"),
    log_file=os.getenv("LOG_FILE", "logs/clawback.log"),
    enable_console=True
)

logger = get_logger(__name__)

SERVICE_NAME = "clawback"
SERVICE_VERSION = "1.0.0"

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Creates tables and validates the credit catalog before serving traffic.
    """
    logger.info("Application startup initiated")
    try:
        logger.info("Creating database tables")
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables created successfully")

        catalog = get_catalog()
        logger.info("Credit catalog ready", version=catalog.version, cards=len(catalog.cards))

        settings = app.state.settings
        missing = settings.missing(
            "cron_secret",
            "supabase_url",
            "supabase_anon_key",
            "stripe_secret_key",
            "stripe_price_id",
            "stripe_webhook_secret",
        )
        if missing:
            # Endpoints needing these fail closed with 500 when called
            logger.warning("Settings incomplete; dependent endpoints will refuse requests", missing=missing)

        logger.info("Application startup completed successfully")
        yield
    except Exception as e:  # pragma: no cover
        logger.error("Application startup failed", error=str(e), exc_info=True)
        raise
    finally:
        logger.info("Application shutdown completed")

app = FastAPI(
    title="ClawBack API",
    description="""
    Track recurring credit card statement credits and get reminded before they reset.

    ## Features
    * **Credit catalog** - Cards, credits and reset frequencies
    * **Dashboard** - Saved cards, per-credit used / don't care / remind flags
    * **Reminders** - Scheduler-triggered batch computing today's reminders
    * **Pro upgrade** - One-time Stripe checkout

    ## Authentication
    Dashboard and checkout routes take the identity provider access token:
    ```
    Authorization: Bearer <access token>
    ```
    """,
    version=SERVICE_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/api/v1/openapi.json",
    lifespan=lifespan,
)

app.state.settings = load_settings()

app.add_middleware(
    CORSMiddleware,
    allow_origins=app.state.settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(GZipMiddleware, minimum_size=1000)

@app.middleware("http")
async def add_request_context_and_logging(request: Request, call_next):
    """
    Add request ID, timing, and request/response logging.
    """
    request_id = ensure_request_id(request.headers)
    request.state.request_id = request_id
    request.state.start_time = time.time()

    logger.info(
        "Request started",
        method=request.method,
        path=request.url.path,
        user_agent=request.headers.get("User-Agent"),
        remote_addr=request.client.host if request.client else "unknown",
        request_id=request_id
    )

    response = await call_next(request)

    process_time = time.time() - request.state.start_time

    response.headers[REQUEST_ID_HEADER] = request_id
    response.headers["X-Process-Time"] = str(round(process_time * 1000, 2))
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"

    # Path only; query strings may carry the cron secret
    logger.info(
        "Request completed",
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        process_time_ms=round(process_time * 1000, 2),
        request_id=request_id
    )

    return response

def jsonable_errors(exc: RequestValidationError) -> list:
    # ctx may hold exception instances raised by field validators
    errors = []
    for err in exc.errors():
        err = dict(err)
        if "ctx" in err:
            err["ctx"] = {k: str(v) for k, v in err["ctx"].items()}
        errors.append(err)
    return jsonable_encoder(errors)

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle Pydantic validation errors."""
    request_id = current_request_id(request)

    logger.warning(
        "Request validation failed",
        errors=jsonable_errors(exc),
        request_id=request_id,
        path=request.url.path,
        method=request.method
    )

    return JSONResponse(
        status_code=422,
        content={
            "success": False,
            "message": "Request validation failed",
            "details": jsonable_errors(exc),
            "request_id": request_id
        }
    )

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handle HTTP exceptions."""
    request_id = current_request_id(request)

    logger.warning(
        "HTTP exception",
        status_code=exc.status_code,
        detail=exc.detail,
        request_id=request_id,
        path=request.url.path,
        method=request.method
    )

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "message": exc.detail,
            "request_id": request_id
        },
        headers=getattr(exc, "headers", None)
    )

@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    request_id = current_request_id(request)

    logger.error(
        "Unhandled exception",
        error=str(exc),
        error_type=type(exc).__name__,
        request_id=request_id,
        path=request.url.path,
        method=request.method,
        exc_info=True
    )

    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "message": "Internal server error",
            "request_id": request_id
        }
    )

@app.get("/health", tags=["health"], summary="Basic health check")
async def health_check():
    """Basic health check endpoint for load balancers."""
    return {
        "status": "healthy",
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "timestamp": time.time(),
    }

@app.get("/health/detailed", tags=["health"], summary="Detailed health check")
async def detailed_health_check():
    """Detailed health check with database and catalog status."""
    health_status = {
        "status": "healthy",
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "timestamp": time.time(),
        "checks": {}
    }

    try:
        from clawback.database import SessionLocal
        from sqlalchemy import text
        db = SessionLocal()
        try:
            db.execute(text("SELECT 1"))
        finally:
            db.close()
        health_status["checks"]["database"] = "healthy"
    except Exception as e:
        health_status["checks"]["database"] = f"unhealthy: {str(e)}"
        health_status["status"] = "degraded"

    try:
        catalog = get_catalog()
        health_status["checks"]["catalog"] = {"version": catalog.version, "cards": len(catalog.cards)}
    except Exception as e:
        health_status["checks"]["catalog"] = f"unhealthy: {str(e)}"
        health_status["status"] = "degraded"

    missing = app.state.settings.missing("cron_secret", "stripe_webhook_secret", "supabase_url")
    health_status["checks"]["configuration"] = "complete" if not missing else {"missing": missing}

    return health_status

@app.get("/", tags=["root"])
async def root():
    """API root endpoint with basic information."""
    return {
        "message": "ClawBack API",
        "version": SERVICE_VERSION,
        "documentation": "/docs",
        "health_check": "/health",
        "api_base": "/api/v1"
    }

app.include_router(api_router, prefix="/api/v1")
app.include_router(hooks_router, prefix="/api")

if __name__ == "__main__":
    import uvicorn

    logger.info("Starting development server")

    uvicorn.run(
        "clawback.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        reload_dirs=["clawback"],
        log_level="info",
        access_log=True
    )
