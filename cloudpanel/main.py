"""
Cloud Console - FastAPI Application

Main entry point for the Cloud Console API server.
"""

from contextlib import asynccontextmanager
from datetime import datetime

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from cloudpanel import __version__
from cloudpanel.config import settings
from cloudpanel.db import init_db, close_db
from cloudpanel.limiter import limiter
from cloudpanel.routers import dashboard, vms, alerts, ai, metrics, charts, app_settings, agent, sse
from cloudpanel.services.ai_advisor import ai_advisor
from cloudpanel.services.metrics_collector import metrics_collector


# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    # Startup
    logger.info("Starting Cloud Console API", version=__version__)

    await init_db()

    if settings.background_tasks_enabled:
        await metrics_collector.start()

    yield

    # Shutdown
    logger.info("Shutting down Cloud Console API")
    if settings.background_tasks_enabled:
        await metrics_collector.stop()
    await ai_advisor.close()
    await close_db()


# Create FastAPI app
app = FastAPI(
    title="Cloud Console API",
    description="Private cloud management dashboard with AI recommendations",
    version=__version__,
    docs_url="/api/docs" if settings.api_debug else None,
    redoc_url="/api/redoc" if settings.api_debug else None,
    lifespan=lifespan,
)

# Add rate limiter
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)

# Add CORS middleware
if settings.cors_origins_list:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


# Request logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all incoming requests."""
    start_time = datetime.utcnow()

    response = await call_next(request)

    duration_ms = (datetime.utcnow() - start_time).total_seconds() * 1000

    logger.info(
        "Request completed",
        method=request.method,
        path=request.url.path,
        status=response.status_code,
        duration_ms=round(duration_ms, 2),
        client=request.client.host if request.client else "unknown",
    )

    return response


# Exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle uncaught exceptions."""
    logger.exception("Unhandled exception", path=request.url.path, error=str(exc))
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"}
    )


# Include routers
app.include_router(dashboard.router, prefix="/api/dashboard", tags=["Dashboard"])
app.include_router(vms.router, prefix="/api/vms", tags=["Virtual Machines"])
app.include_router(alerts.router, prefix="/api/alerts", tags=["Alerts"])
app.include_router(ai.router, prefix="/api/ai", tags=["AI"])
app.include_router(metrics.router, prefix="/api/metrics", tags=["Metrics"])
app.include_router(charts.router, prefix="/api/charts", tags=["Charts"])
app.include_router(app_settings.router, prefix="/api/settings", tags=["Settings"])
app.include_router(agent.router, prefix="/api/agent", tags=["Agent"])
app.include_router(sse.router, prefix="/api/sse", tags=["SSE"])


# Health check endpoint
@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat(),
        "version": __version__
    }


@app.get("/api")
async def api_root():
    """API root - version info."""
    return {
        "name": "Cloud Console API",
        "version": __version__,
        "docs": "/api/docs" if settings.api_debug else None
    }


def run():
    """Console entry point."""
    import uvicorn
    uvicorn.run(
        "cloudpanel.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_debug
    )


if __name__ == "__main__":
    run()
