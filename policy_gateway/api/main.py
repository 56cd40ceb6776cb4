"""FastAPI application factory"""

from fastapi import FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from policy_gateway.api.errors import register_error_handlers
from policy_gateway.api.middleware import RequestIDMiddleware, MetricsMiddleware
from policy_gateway.api.v1 import applications, claims, payments, views
from policy_gateway.infrastructure.observability.logging import setup_logging
from policy_gateway.config import settings

# Setup structured logging
setup_logging(settings.log_level)


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Policy Gateway",
        description="Insurance applications, claims, premium payments and visitor view counters",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_error_handlers(app)

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(applications.router, prefix="/v1", tags=["applications"])
    app.include_router(claims.router, prefix="/v1", tags=["claims"])
    app.include_router(payments.router, prefix="/v1", tags=["payments"])
    app.include_router(views.router, prefix="/v1", tags=["views"])

    return app


app = create_app()
