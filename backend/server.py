from fastapi import FastAPI, APIRouter, HTTPException, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from dotenv import load_dotenv
from pathlib import Path
from contextlib import asynccontextmanager
from datetime import datetime, timezone
import logging
import traceback

# Load environment variables first
ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')

from config import get_settings, validate_environment

from logging_config import setup_logging, bind_sync_context, clear_sync_context
from sentry_integration import init_sentry

from database import init_firebase, is_firebase_initialized
from member_sync.router import router as skool_webhook_router, method_not_allowed_response

settings = get_settings()

# Use JSON format in production, plain text in development
setup_logging(
    level=settings.LOG_LEVEL,
    json_format=settings.is_production,
    service_name="skool-member-sync"
)
logger = logging.getLogger(__name__)

if settings.SENTRY_DSN:
    init_sentry(
        dsn=settings.SENTRY_DSN,
        environment=settings.ENVIRONMENT,
        traces_sample_rate=0.1 if settings.is_production else 0.0,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler"""
    # Startup
    logger.info("=" * 60)
    logger.info("Starting Skool Member Sync...")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Store backend: {settings.STORE_BACKEND}")
    logger.info("=" * 60)

    env_status = validate_environment()
    if not env_status["valid"]:
        for error in env_status["errors"]:
            logger.error(f"Configuration Error: {error}")
        if settings.is_production:
            raise RuntimeError("Cannot start in production with invalid configuration")

    for warning in env_status.get("warnings", []):
        logger.warning(f"Configuration Warning: {warning}")

    # Firebase is initialized once per process and never torn down
    if settings.STORE_BACKEND == "firebase":
        try:
            init_firebase()
        except Exception as e:
            logger.error(f"Failed to initialize Firebase: {e}")
            if settings.is_production:
                raise

    logger.info("Skool Member Sync started successfully")

    yield

    logger.info("Shutting down Skool Member Sync...")


app = FastAPI(
    title=settings.API_TITLE,
    description="""
    Webhook receiver mirroring Skool community members into Firebase.

    ## Endpoints

    ### Skool Webhook (/api/webhooks/skool)
    - POST - Sync a member: Firestore profile + Firebase Auth user, linked by uid
    - OPTIONS - CORS preflight

    ### Health (/api/health)
    - Configuration and Firebase status
    """,
    version=settings.API_VERSION,
    lifespan=lifespan,
    docs_url="/api/docs" if settings.debug_enabled else None,
    redoc_url="/api/redoc" if settings.debug_enabled else None,
)

api_router = APIRouter(prefix="/api")


# ==================== HEALTH CHECK ENDPOINTS ====================

@api_router.get("/", tags=["Health"])
async def root():
    """Basic health check - returns 200 if service is running"""
    return {
        "message": "Skool Member Sync",
        "status": "healthy",
        "version": settings.API_VERSION,
        "environment": settings.ENVIRONMENT,
    }


@api_router.get("/health", tags=["Health"])
async def health_check():
    """
    Detailed health check for load balancers and uptime monitors.

    Returns:
    - 200: Configuration valid and member store available
    - 503: Firebase not initialized or configuration invalid
    """
    health_status = {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": settings.API_VERSION,
        "environment": settings.ENVIRONMENT,
        "checks": {}
    }

    if settings.STORE_BACKEND == "firebase":
        initialized = is_firebase_initialized()
        health_status["checks"]["firebase"] = {
            "status": "initialized" if initialized else "not_initialized",
            "project_id": settings.FIREBASE_PROJECT_ID or None
        }
        if not initialized:
            health_status["status"] = "unhealthy"
    else:
        health_status["checks"]["member_store"] = {
            "status": "available",
            "type": settings.STORE_BACKEND
        }

    env_status = validate_environment()
    health_status["checks"]["configuration"] = {
        "status": "valid" if env_status["valid"] else "invalid",
        "warnings": len(env_status.get("warnings", [])),
        "errors": len(env_status.get("errors", []))
    }
    if not env_status["valid"]:
        health_status["status"] = "unhealthy"

    if health_status["status"] == "unhealthy":
        raise HTTPException(status_code=503, detail=health_status)

    return health_status


@api_router.get("/health/live", tags=["Health"])
async def liveness_check():
    """
    Liveness probe.
    Returns 200 if the process is running (doesn't check dependencies).
    """
    return {"status": "alive", "timestamp": datetime.now(timezone.utc).isoformat()}


@api_router.get("/config/status", tags=["Health"])
async def config_status():
    """
    Configuration status check (non-sensitive).
    Useful for debugging deployment issues.
    """
    env_status = validate_environment()

    return {
        "environment": settings.ENVIRONMENT,
        "debug": settings.debug_enabled,
        "store_backend": settings.STORE_BACKEND,
        "configuration_valid": env_status["valid"],
        "warnings": env_status.get("warnings", []),
        "variables": env_status.get("variables", {}),
        # Don't expose actual errors in production
        "errors": env_status.get("errors", []) if not settings.is_production else ["Hidden in production"]
    }


api_router.include_router(skool_webhook_router)

app.include_router(api_router)

SKOOL_WEBHOOK_PATH = str(app.url_path_for("skool_webhook"))


# ==================== MIDDLEWARE ====================

# No CORSMiddleware: the webhook route sets its own CORS headers and answers
# OPTIONS with an empty 200.

@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all requests with timing information"""
    import time
    start_time = time.time()

    request_id = request.headers.get("X-Request-ID", f"req-{int(start_time * 1000)}")

    if settings.debug_enabled:
        logger.debug(f"[{request_id}] {request.method} {request.url.path}")

    bind_sync_context(request_id=request_id)
    try:
        response = await call_next(request)

        process_time = time.time() - start_time

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Process-Time"] = str(round(process_time * 1000, 2))

        if settings.debug_enabled or response.status_code >= 400:
            logger.info(f"[{request_id}] {request.method} {request.url.path} -> {response.status_code} ({process_time:.3f}s)")

        return response
    except Exception as e:
        logger.error(f"[{request_id}] Request failed: {str(e)}")
        raise
    finally:
        clear_sync_context()


@app.exception_handler(StarletteHTTPException)
async def webhook_method_not_allowed_handler(request: Request, exc: StarletteHTTPException):
    """Any verb the webhook route does not accept gets its JSON 405 with CORS headers"""
    if exc.status_code == 405 and request.url.path == SKOOL_WEBHOOK_PATH:
        logger.info(f"Skool webhook called: {request.method}")
        return method_not_allowed_response()
    return await http_exception_handler(request, exc)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle uncaught exceptions"""
    logger.error(f"Unhandled exception: {exc}")
    if settings.debug_enabled:
        logger.error(traceback.format_exc())

    # Don't expose internal errors in production
    if settings.is_production:
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"}
        )
    else:
        return JSONResponse(
            status_code=500,
            content={
                "detail": str(exc),
                "type": type(exc).__name__,
                "traceback": traceback.format_exc() if settings.debug_enabled else None
            }
        )
