"""FastAPI application factory"""

from fastapi import FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from spendability.api.middleware import RequestIDMiddleware, MetricsMiddleware
from spendability.api.v1 import bills, settings as settings_api, spendability, subscriptions
from spendability.infrastructure.observability.logging import setup_logging
from spendability.config import settings

# Setup structured logging
setup_logging(settings.log_level)


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Spendability Engine",
        description="Safe-to-spend, bill tracking and recurring charge detection",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(spendability.router, prefix="/v1", tags=["spendability"])
    app.include_router(subscriptions.router, prefix="/v1", tags=["subscriptions"])
    app.include_router(bills.router, prefix="/v1", tags=["bills"])
    app.include_router(settings_api.router, prefix="/v1", tags=["settings"])

    return app


app = create_app()
