"""
IMF Africa Pay — FastAPI Application Entry Point

Aggregates the routers, configures middleware and error envelopes, serves
uploaded receipts and the built frontend, and wires storage, receipt
intake and the notifier together on startup.
"""
import logging
import time
from datetime import datetime, timezone
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from imfpay.config import Settings, get_settings
from imfpay.exceptions import PaymentServiceError
from imfpay.logging_config import setup_logging
from imfpay.routes import payment_router, notification_router
from imfpay.schemas.schemas import HealthResponse
from imfpay.services.notification_service import Notifier, NotificationService, build_notifier
from imfpay.services.payment_store import PaymentStore, create_payment_store
from imfpay.services.receipt_service import ReceiptStorage

settings = get_settings()
logger = logging.getLogger(__name__)

# ─── Application Instance ───────────────────────────────────────────
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description=(
        "Payment intake API for IMF Africa: bank-transfer receipt submission, "
        "payment records, and payer/admin email confirmation."
    ),
    docs_url="/docs",
    redoc_url="/redoc",
)

BOOT_TIME = time.time()


def attach_components(
    application: FastAPI,
    store: PaymentStore,
    receipts: ReceiptStorage,
    notifier: Notifier,
    currency_symbol: str = "$",
) -> None:
    """Make the components available to route dependencies."""
    application.state.store = store
    application.state.receipts = receipts
    application.state.notifier = notifier
    application.state.notifications = NotificationService(store, notifier, receipts, currency_symbol)


def build_components(cfg: Settings) -> tuple[PaymentStore, ReceiptStorage, Notifier]:
    store = create_payment_store(cfg)
    receipts = ReceiptStorage(
        cfg.UPLOAD_DIR,
        max_bytes=cfg.MAX_UPLOAD_BYTES,
        allowed_types=cfg.ALLOWED_UPLOAD_TYPES,
        required=cfg.RECEIPT_REQUIRED,
    )
    receipts.ensure_dir()
    notifier = build_notifier(cfg)
    notifier.initialize()
    return store, receipts, notifier


# ─── Startup / Shutdown ─────────────────────────────────────────────
@app.on_event("startup")
def on_startup():
    """Configure logging, pick the storage backend, verify the mail transport."""
    setup_logging(settings)

    if getattr(app.state, "store", None) is None:
        store, receipts, notifier = build_components(settings)
        attach_components(app, store, receipts, notifier, settings.CURRENCY_SYMBOL)

    boot_msg = (
        f"\n{'='*60}\n"
        f"  {settings.APP_NAME} v{settings.APP_VERSION}\n"
        f"  TIME: {datetime.now().isoformat()}\n"
        f"  STORAGE: {app.state.store.backend}"
        f"{'' if app.state.store.backend == 'sql' else ' (records will not persist)'}\n"
        f"  EMAIL: {app.state.notifier.provider} "
        f"{'[OK] Verified' if app.state.notifier.enabled else '[!] Disabled'}\n"
        f"  UPLOADS: {app.state.receipts.upload_dir}\n"
        f"  DEBUG: {settings.DEBUG}\n"
        f"{'='*60}"
    )
    logger.info(boot_msg)


@app.on_event("shutdown")
def on_shutdown():
    notifier = getattr(app.state, "notifier", None)
    if notifier is not None:
        notifier.close()


# ─── Middleware ──────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log every API request with timing."""
    start = time.time()
    response = await call_next(request)
    duration = round((time.time() - start) * 1000, 1)

    if request.url.path.startswith("/api"):
        logger.info("%s %s -> %s (%sms)", request.method, request.url.path, response.status_code, duration)

    return response


# ─── Error Envelopes ─────────────────────────────────────────────────
def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


@app.exception_handler(PaymentServiceError)
async def payment_error_handler(request: Request, exc: PaymentServiceError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return _error(exc.status_code, exc.message)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404 and exc.detail == "Not Found":
        return _error(404, "Endpoint not found")
    return _error(exc.status_code, str(exc.detail))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(p) for p in first.get("loc", ())[1:]) or "request"
        return _error(400, f"Invalid {field}: {first.get('msg', 'invalid value')}")
    return _error(400, "Invalid request")


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _error(500, "Internal server error")


# ─── API Routers ─────────────────────────────────────────────────────
app.include_router(payment_router)
app.include_router(notification_router)


@app.get("/api/health", response_model=HealthResponse, tags=["Health"])
def health(request: Request):
    """Storage and notifier readiness."""
    db_ok = request.app.state.store.is_connected()
    notifier = request.app.state.notifier
    return HealthResponse(
        status="OK" if db_ok and notifier.enabled else "DEGRADED",
        database="Connected" if db_ok else "Disconnected",
        email="Valid" if notifier.enabled else "Invalid",
        storage=request.app.state.store.backend,
        transport=notifier.provider,
        timestamp=datetime.now(timezone.utc),
        uptime_seconds=round(time.time() - BOOT_TIME, 1),
        version=settings.APP_VERSION,
    )


# ─── Static Files ────────────────────────────────────────────────────
app.mount("/uploads", StaticFiles(directory=settings.UPLOAD_DIR, check_dir=False), name="uploads")

FRONTEND_DIR = Path(settings.FRONTEND_DIR)

if FRONTEND_DIR.exists():
    # API routers are included above, so they take precedence over the SPA mount.
    app.mount("/", StaticFiles(directory=str(FRONTEND_DIR), html=True), name="frontend")
