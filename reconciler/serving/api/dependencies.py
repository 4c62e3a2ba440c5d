"""
Request Dependencies

The catalog store and pipeline live on the application state; routes
receive them through these dependencies.
"""

from fastapi import Request

from reconciler.storage import CatalogStore
from reconciler.transformation import ReconciliationPipeline


def get_store(request: Request) -> CatalogStore:
    return request.app.state.store


def get_pipeline(request: Request) -> ReconciliationPipeline:
    return request.app.state.pipeline
