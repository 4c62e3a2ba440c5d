"""
Catalog API Endpoints

Unification of products and compositions, and access to the stored
unified catalog.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from reconciler.ingestion import composition_rows
from reconciler.models import CatalogStats, ProductRecord
from reconciler.serving.api.dependencies import get_pipeline, get_store
from reconciler.storage import CatalogStore
from reconciler.transformation import ReconciliationPipeline, composition_fingerprint

router = APIRouter()


class UnifyRequest(BaseModel):
    """Products and compositions to unify; shapes are checked by the engine"""
    products: Any
    compositions: Any


class UnifyResponse(BaseModel):
    """Unified catalog document and the diagnostics of the run"""
    catalog: Dict[str, Any]
    warnings: List[str]
    saved: bool
    changed: bool


class StatusRequest(BaseModel):
    compositions: Any


class StatusResponse(BaseModel):
    """Whether the stored catalog reflects the given compositions"""
    stored_fingerprint: Optional[str]
    current_fingerprint: str
    is_current: bool


class SearchResponse(BaseModel):
    items: List[ProductRecord]
    total: int


@router.post("/unify", response_model=UnifyResponse)
async def unify_catalog(
    request: UnifyRequest,
    store: CatalogStore = Depends(get_store),
    pipeline: ReconciliationPipeline = Depends(get_pipeline),
) -> UnifyResponse:
    """
    Unify products with compositions and store the result.

    Compositions may be a list of definitions or a mapping of composition
    type to definitions.
    """
    compositions = composition_rows(request.compositions)
    result = await pipeline.reconcile_catalog(request.products, compositions, store)
    return UnifyResponse(
        catalog=result.catalog.to_document(),
        warnings=result.warnings,
        saved=result.saved,
        changed=result.changed,
    )


@router.get("")
async def get_catalog(store: CatalogStore = Depends(get_store)) -> Dict[str, Any]:
    """Stored unified catalog document"""
    catalog = await store.require(refresh=True)
    return catalog.to_document()


@router.get("/stats", response_model=CatalogStats)
async def get_catalog_stats(store: CatalogStore = Depends(get_store)) -> CatalogStats:
    """Counts of the stored catalog"""
    catalog = await store.require(refresh=True)
    return catalog.stats


@router.post("/status", response_model=StatusResponse)
async def catalog_status(
    request: StatusRequest,
    store: CatalogStore = Depends(get_store),
) -> StatusResponse:
    """Compare the stored fingerprint with the one of the given compositions"""
    compositions = composition_rows(request.compositions)
    stored = await store.fingerprint(refresh=True)
    current = composition_fingerprint(compositions)
    return StatusResponse(
        stored_fingerprint=stored,
        current_fingerprint=current,
        is_current=stored == current,
    )


@router.get("/search", response_model=SearchResponse)
async def search_catalog(
    q: str = Query(..., min_length=1),
    composite_only: bool = False,
    limit: int = Query(50, ge=1, le=500),
    store: CatalogStore = Depends(get_store),
) -> SearchResponse:
    """Case-insensitive search on product id or name"""
    catalog = await store.require(refresh=True)
    matches = catalog.search(q)
    if composite_only:
        matches = [p for p in matches if p.is_composite]
    return SearchResponse(items=matches[:limit], total=len(matches))
