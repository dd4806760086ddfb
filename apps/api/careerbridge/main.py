"""FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy import text

from careerbridge.core.config import settings
from careerbridge.core.errors import error_body, register_exception_handlers
from careerbridge.core.rate_limit import limiter
from careerbridge.core.structured_logging import configure_logging, request_logging_middleware
from careerbridge.db.session import engine
from careerbridge.routers import (
    admin,
    companies,
    internal,
    meetings,
    messages,
    notifications,
    payments,
    profile,
    reports,
    uploads,
)
from careerbridge.services.email_sender import ResendEmailSender
from careerbridge.services.payment_client import StripePaymentClient
from careerbridge.services.storage_client import S3StorageClient
from careerbridge.services.translation_service import TranslationClient

configure_logging()
logger = logging.getLogger(__name__)

# ============================================================================
# Sentry Integration (optional, for production error tracking)
# ============================================================================

if settings.SENTRY_DSN and settings.ENV != "dev":
    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.ENV,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            SqlalchemyIntegration(),
        ],
        traces_sample_rate=0.1,
        send_default_pii=False,
    )
    logger.info("Sentry initialized for error tracking")


# ============================================================================
# Lifespan: external clients are built once and shared via app.state
# ============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.payment_client = StripePaymentClient(
        settings.STRIPE_SECRET_KEY, settings.STRIPE_WEBHOOK_SECRET
    )
    app.state.translation_client = TranslationClient(settings.GOOGLE_TRANSLATE_API_KEY)
    app.state.storage_client = S3StorageClient(settings.S3_BUCKET, settings.S3_PUBLIC_BASE_URL)
    app.state.email_sender = ResendEmailSender(settings.RESEND_API_KEY, settings.EMAIL_FROM)

    for name in ("payment_client", "translation_client", "storage_client", "email_sender"):
        if not getattr(app.state, name).is_configured():
            logger.warning("%s is not configured; related endpoints will fail", name)

    yield

    engine.dispose()


# ============================================================================
# FastAPI App
# ============================================================================

app = FastAPI(
    title="CareerBridge API",
    description="Career matching for students, alumni and companies in Japan",
    version=settings.VERSION,
    docs_url="/docs" if settings.ENV == "dev" else None,
    redoc_url="/redoc" if settings.ENV == "dev" else None,
    lifespan=lifespan,
)


async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    return JSONResponse(
        status_code=429,
        content=error_body(f"Rate limit exceeded: {exc.detail}", "RATE_LIMITED"),
    )


# Rate limiting (default limit for every route, tighter per-route limits via decorators)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_handler)
app.add_middleware(SlowAPIMiddleware)

register_exception_handlers(app)

app.middleware("http")(request_logging_middleware)

# CORS middleware - added last so it wraps everything
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,  # Required for cookies
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
    expose_headers=["X-Request-ID", "Content-Disposition"],
)

# ============================================================================
# Routers
# ============================================================================

app.include_router(messages.router, prefix="/api")
app.include_router(meetings.router, prefix="/api")
app.include_router(admin.router, prefix="/api")
app.include_router(companies.router, prefix="/api")
app.include_router(profile.router, prefix="/api")
app.include_router(reports.router, prefix="/api")
app.include_router(notifications.router, prefix="/api")
app.include_router(payments.router, prefix="/api")
app.include_router(uploads.router, prefix="/api")

# Internal endpoints (scheduled/cron jobs - protected by INTERNAL_SECRET)
app.include_router(internal.router)


@app.get("/health")
def health():
    """Liveness plus a database round-trip."""
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except Exception:
        logger.exception("Health check database query failed")
        return JSONResponse(
            status_code=503,
            content={"status": "degraded", "database": "unreachable", "version": settings.VERSION},
        )
    return {"status": "ok", "database": "ok", "version": settings.VERSION}
