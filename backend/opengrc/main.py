import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from opengrc.config import settings
from opengrc.database import check_db_connection, dispose_engine
from opengrc.middleware.audit_auto import install_audit_listeners, set_audit_context
from opengrc.routers import (
    asset, audit, compliance_audit, control, evidence, framework, integration, policy, policy_template,
    risk, search, task, vendor,
)
from opengrc.services.policy_templates import list_templates

logger = logging.getLogger(__name__)

ROUTERS = (
    vendor.router,
    control.router,
    framework.router,
    asset.router,
    risk.router,
    policy.router,
    policy_template.router,
    task.router,
    evidence.router,
    compliance_audit.router,
    search.router,
    integration.router,
    audit.router,
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("%s %s starting (search %s)", settings.APP_NAME, settings.APP_VERSION,
                "enabled" if settings.SEARCH_ENABLED else "disabled")
    logger.info("Policy template catalogue ready (%d templates)", len(list_templates()))
    yield
    await dispose_engine()
    logger.info("%s stopped", settings.APP_NAME)


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

install_audit_listeners()


class AuditContextMiddleware(BaseHTTPMiddleware):
    """Expose X-User-Id and the client IP to the audit listeners for this request."""

    async def dispatch(self, request: Request, call_next):
        set_audit_context(
            user_id=request.headers.get("X-User-Id", "").strip() or None,
            ip_address=request.client.host if request.client else None,
        )
        return await call_next(request)


app.add_middleware(AuditContextMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

for r in ROUTERS:
    app.include_router(r)


@app.get("/health")
async def health():
    """Liveness plus database reachability; degraded instead of failing."""
    try:
        await check_db_connection()
        db_status = "connected"
    except Exception as exc:
        logger.warning("Database health check failed: %s", exc)
        db_status = f"error: {exc}"

    return {
        "status": "ok" if db_status == "connected" else "degraded",
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "database": db_status,
        "search_enabled": settings.SEARCH_ENABLED,
    }


@app.get("/api/v1/debug/routes", include_in_schema=settings.DEBUG)
async def debug_routes():
    routes = sorted(
        (
            {"path": route.path, "methods": sorted(route.methods - {"HEAD", "OPTIONS"})}
            for route in app.routes
            if getattr(route, "methods", None) and hasattr(route, "path")
        ),
        key=lambda r: r["path"],
    )
    return {"total_routes": len(routes), "all_routes": routes}
