# erps/main.py
"""
FastAPI application entry point.
Includes security middleware, lifecycle + global error handlers, all routers,
and the background scheduler for reminders / grace-period sweeps.
"""

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from erps.routers import admin, customer_activation, health, inspections, scheduler, verification, warranties
from erps.database import create_tables
from erps.config import settings
from erps.dependencies import get_notifier
from erps.services.scheduler import LifecycleScheduler
from erps.utils.errors import LifecycleError
from erps.utils.logger import get_logger
import time

logger = get_logger(__name__)

API_PREFIX = "/api/v1"

app = FastAPI(
    title="ERPS Warranty & Inspection API",
    description="Warranty registration, installer/inspector verification, customer activation, "
                "annual inspections, reminders, grace-period lapse and reinstatement.",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

app.state.scheduler = LifecycleScheduler(notifier=get_notifier())

# ── CORS (partner portal + customer activation page) ────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],   # Restrict to portal origins in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── API Key Middleware ───────────────────────────────────────────────────────
class APIKeyMiddleware(BaseHTTPMiddleware):
    """
    Optional lightweight API key auth for portal endpoints.
    Token links (installer / inspector verification, customer activation) are excluded:
    the token in the path is the credential. Set API_KEY in .env. Leave empty to disable auth.
    """
    open_paths = {f"{API_PREFIX}/health", "/docs", "/redoc", "/openapi.json"}
    open_prefixes = (
        f"{API_PREFIX}/verify-warranty/",
        f"{API_PREFIX}/verify-inspection/",
        f"{API_PREFIX}/customer/activation/",
    )

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        if path in self.open_paths or path.startswith(self.open_prefixes) or not settings.API_KEY:
            return await call_next(request)

        api_key = request.headers.get("X-API-Key") or request.query_params.get("api_key")
        if api_key != settings.API_KEY:
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={"error": "UNAUTHORIZED", "message": "Invalid or missing API key", "details": []},
            )
        return await call_next(request)


if settings.API_KEY:
    app.add_middleware(APIKeyMiddleware)


# ── Request Timing Middleware ────────────────────────────────────────────────
@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.time()
    response = await call_next(request)
    duration = round((time.time() - start) * 1000, 2)
    logger.debug(f"{request.method} {request.url.path} → {response.status_code} ({duration}ms)")
    return response


# ── Exception Handlers ───────────────────────────────────────────────────────
@app.exception_handler(LifecycleError)
async def lifecycle_error_handler(request: Request, exc: LifecycleError):
    if exc.status_code >= 500:
        logger.error(f"{exc.code} on {request.url.path}: {exc.message}", exc_info=exc)
    else:
        logger.info(f"{exc.code} on {request.method} {request.url.path}: {exc.message} {exc.details}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    details = [f"{'.'.join(str(p) for p in err['loc'][1:]) or 'body'}: {err['msg']}" for err in exc.errors()]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "VALIDATION_ERROR", "message": "Malformed request", "details": details},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "INTERNAL", "message": "Internal server error", "details": []},
    )


# ── Routers ──────────────────────────────────────────────────────────────────
app.include_router(warranties.router,          prefix=API_PREFIX, tags=["🛡️  Warranties"])
app.include_router(inspections.router,         prefix=API_PREFIX, tags=["🔍 Annual Inspections"])
app.include_router(verification.router,        prefix=API_PREFIX, tags=["✅ Installer / Inspector Verification"])
app.include_router(customer_activation.router, prefix=API_PREFIX, tags=["📝 Customer Activation"])
app.include_router(admin.router,               prefix=API_PREFIX, tags=["🔑 ERPS Admin"])
app.include_router(scheduler.router,           prefix=API_PREFIX, tags=["⏰ Scheduler"])
app.include_router(health.router,              prefix=API_PREFIX, tags=["💚 Health"])


# ── Startup ───────────────────────────────────────────────────────────────────
@app.on_event("startup")
async def startup():
    logger.info("🚀 ERPS Warranty Backend starting up...")
    create_tables()
    logger.info("✅ Database tables ready")
    logger.info(f"🌐 Listening on http://{settings.HOST}:{settings.PORT}")
    logger.info("📖 API docs at /docs")

    if settings.SCHEDULER_ENABLED:
        app.state.scheduler.start()
    else:
        logger.info("⏸  Scheduler disabled (SCHEDULER_ENABLED=false); use the /trigger endpoints")


@app.on_event("shutdown")
async def shutdown():
    logger.info("🛑 ERPS Warranty Backend shutting down...")
    await app.state.scheduler.stop()
