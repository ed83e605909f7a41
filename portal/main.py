"""FastAPI main application."""

import logging
from contextlib import asynccontextmanager

import sentry_sdk
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

from portal.api import auth, favorites, hubs, reports, users
from portal.api.admin import departments as admin_departments
from portal.api.admin import hubs as admin_hubs
from portal.api.admin import powerbi as admin_powerbi
from portal.api.admin import report_groups as admin_report_groups
from portal.api.admin import reports as admin_reports
from portal.api.admin import ssrs as admin_ssrs
from portal.api.admin import users as admin_users
from portal.config import settings
from portal.core.database import close_db, init_db
from portal.core.logging_config import setup_logging
from portal.middleware.error_handler import ErrorHandlerMiddleware, register_exception_handlers
from portal.middleware.request_logging import AuditLogMiddleware, RequestLoggingMiddleware

logger = logging.getLogger(__name__)

SENSITIVE_HEADERS = ("authorization", "cookie", "x-api-key", "x-auth-token")
SENSITIVE_PARAMS = ("token", "password", "secret")


def _filter_sensitive_data(event, hint):
    """Filter sensitive data from Sentry events before sending."""
    request = event.get("request") or {}

    headers = request.get("headers")
    if headers:
        for header in list(headers):
            if header.lower() in SENSITIVE_HEADERS:
                headers[header] = "[Filtered]"

    query = request.get("query_string") or ""
    if any(param in query.lower() for param in SENSITIVE_PARAMS):
        request["query_string"] = "[Filtered]"

    return event


def _init_sentry() -> None:
    if not settings.SENTRY_DSN:
        logger.info("Sentry DSN not configured - error tracking disabled")
        return

    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            SqlalchemyIntegration(),
        ],
        traces_sample_rate=1.0 if settings.DEBUG else 0.1,
        send_default_pii=False,
        environment=settings.ENVIRONMENT,
        release=f"{settings.APP_NAME}@{settings.APP_VERSION}",
        before_send=_filter_sensitive_data,
    )
    logger.info("Sentry initialized for %s", settings.ENVIRONMENT)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    setup_logging()
    _init_sentry()
    logger.info("Starting %s %s", settings.APP_NAME, settings.APP_VERSION)

    # Schema comes from Alembic outside of development
    if settings.DEBUG:
        await init_db()

    yield

    logger.info("Shutting down %s", settings.APP_NAME)
    await close_db()


# Disable interactive API docs in production
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    lifespan=lifespan,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    openapi_url="/openapi.json" if settings.DEBUG else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"],
)

# Uncaught exceptions become the uniform 500 body
app.add_middleware(ErrorHandlerMiddleware)

if settings.ENVIRONMENT == "production":
    app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.ALLOWED_HOSTS)

# Added last so they run first: the request id must exist before errors are rendered
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(AuditLogMiddleware)

register_exception_handlers(app)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


app.include_router(auth.router, prefix="/api/auth", tags=["Authentication"])
app.include_router(hubs.router, prefix="/api/hubs", tags=["Hubs"])
app.include_router(reports.router, prefix="/api/reports", tags=["Reports"])
app.include_router(favorites.router, prefix="/api/favorites", tags=["Favorites"])
app.include_router(users.router, prefix="/api/users", tags=["Users"])

app.include_router(admin_hubs.router, prefix="/api/admin/hubs", tags=["Admin - Hubs"])
app.include_router(
    admin_report_groups.router, prefix="/api/admin/report-groups", tags=["Admin - Report Groups"]
)
app.include_router(admin_reports.router, prefix="/api/admin/reports", tags=["Admin - Reports"])
app.include_router(
    admin_departments.router, prefix="/api/admin/departments", tags=["Admin - Departments"]
)
app.include_router(admin_users.router, prefix="/api/admin/users", tags=["Admin - Users"])
app.include_router(admin_ssrs.router, prefix="/api/admin/ssrs", tags=["Admin - SSRS"])
app.include_router(admin_powerbi.router, prefix="/api/admin/powerbi", tags=["Admin - Power BI"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "portal.main:app",
        host="0.0.0.0",  # nosec B104
        port=8000,
        reload=settings.DEBUG,
    )
