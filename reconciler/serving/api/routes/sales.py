"""
Sales API Endpoints

Classification and decomposition of sale lines against the stored catalog,
and merging of successive sales imports.
"""

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from reconciler.serving.api.dependencies import get_pipeline, get_store
from reconciler.storage import CatalogStore
from reconciler.transformation import DecompositionReport, MergeResult, ReconciliationPipeline

router = APIRouter()


class DecomposeRequest(BaseModel):
    """Sale lines in recorded order"""
    lines: Any
    already_decomposed: bool = False


@router.post("/decompose", response_model=DecompositionReport)
async def decompose_sales(
    request: DecomposeRequest,
    store: CatalogStore = Depends(get_store),
    pipeline: ReconciliationPipeline = Depends(get_pipeline),
) -> DecompositionReport:
    """
    Classify and decompose sale lines.

    Requires a stored unified catalog (404 otherwise).
    """
    catalog = await store.require(refresh=True)
    return pipeline.process_sales(
        request.lines,
        catalog,
        already_decomposed=request.already_decomposed,
    )


class MergeRequest(BaseModel):
    """A new sales import and the lines imported before it"""
    existing: Any = []
    incoming: Any
    drop_duplicates: bool = False


@router.post("/merge", response_model=MergeResult)
async def merge_sales(
    request: MergeRequest,
    pipeline: ReconciliationPipeline = Depends(get_pipeline),
) -> MergeResult:
    """Append an import to earlier sale lines, optionally skipping duplicates."""
    return pipeline.merge_sales(request.existing, request.incoming, drop_duplicates=request.drop_duplicates)
