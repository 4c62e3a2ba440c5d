"""
FastAPI Application Factory

Creates and configures the reconciliation API application.
"""

from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from reconciler.config import get_settings
from reconciler.exceptions import ReconcilerError
from reconciler.serving.api.middleware import RequestLoggingMiddleware, reconciler_error_handler
from reconciler.serving.api.routes import catalog_router, health_router, sales_router
from reconciler.storage import CatalogStore, create_store
from reconciler.transformation import ReconciliationPipeline

logger = structlog.get_logger(__name__)


def create_api_app(
    store: Optional[CatalogStore] = None,
    pipeline: Optional[ReconciliationPipeline] = None,
) -> FastAPI:
    """
    Create and configure FastAPI application.

    Args:
        store: Catalog store, built from StoreSettings when omitted
        pipeline: Reconciliation pipeline, default settings when omitted

    Returns:
        Configured FastAPI app instance
    """
    settings = get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting Catalog Reconciliation API", backend=app.state.store.backend.name)
        yield
        logger.info("Shutting down...")
        await app.state.store.close()

    app = FastAPI(
        title="Catalog Reconciliation API",
        description="Catalog unification and sale decomposition",
        version=settings.version,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        lifespan=lifespan,
    )
    app.state.store = store or create_store(settings)
    app.state.pipeline = pipeline or ReconciliationPipeline()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(RequestLoggingMiddleware)

    app.add_exception_handler(ReconcilerError, reconciler_error_handler)

    app.include_router(health_router, tags=["Health"])
    app.include_router(catalog_router, prefix="/catalog", tags=["Catalog"])
    app.include_router(sales_router, prefix="/sales", tags=["Sales"])

    return app
