"""FastAPI application factory"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from cnab_processor.api.middleware import RequestIDMiddleware, MetricsMiddleware
from cnab_processor.api.v1 import cnab
from cnab_processor.infrastructure.database.models import Base
from cnab_processor.infrastructure.database.session import engine
from cnab_processor.infrastructure.observability.logging import setup_logging
from cnab_processor.config import settings

# Setup structured logging
setup_logging(settings.log_level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Schema migrations are out of scope; create missing tables on startup
    Base.metadata.create_all(bind=engine)
    yield


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="CNAB Processor",
        description="CNAB file import and store balance service",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {
            "status": "healthy",
            "service": settings.service_name,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(cnab.router, prefix="/api", tags=["cnab"])

    return app


app = create_app()
