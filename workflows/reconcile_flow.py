"""
Prefect Workflow Orchestration - Catalog Reconciliation

Batch workflow that:
- Loads the product catalog and composition definitions
- Unifies them and saves the catalog to the configured store
- Decomposes a sales export against the stored catalog
- Writes the decomposed lines to Parquet and their statistics to JSON
"""

from pathlib import Path
from typing import Optional

import polars as pl
from prefect import flow, get_run_logger, task

from reconciler.config import get_settings
from reconciler.ingestion import load_compositions, load_products, load_sales
from reconciler.storage import create_store
from reconciler.transformation import ReconciliationPipeline


# =============================================================================
# TASKS
# =============================================================================

@task(
    name="reconcile_catalog",
    description="Unify products with compositions and save the catalog",
    retries=2,
    retry_delay_seconds=30,
)
async def reconcile_catalog(products_path: str, compositions_path: str) -> dict:
    """Unify the catalog files and save the result"""
    logger = get_run_logger()

    products = load_products(products_path)
    compositions = load_compositions(compositions_path)
    logger.info(
        f"Loaded {len(products.records)} products ({products.rows_dropped} dropped) "
        f"and {len(compositions)} compositions"
    )

    store = create_store(get_settings())
    try:
        result = await ReconciliationPipeline().reconcile_catalog(products.records, compositions, store)
    finally:
        await store.close()

    for warning in products.warnings + result.warnings:
        logger.warning(warning)

    return {
        "products": result.catalog.stats.total,
        "composite": result.catalog.stats.composite,
        "placeholders": result.catalog.stats.placeholder_components,
        "fingerprint": result.catalog.composition_fingerprint,
        "changed": result.changed,
        "warnings": len(products.warnings) + len(result.warnings),
    }


@task(
    name="decompose_sales",
    description="Classify and decompose a sales export",
    retries=2,
    retry_delay_seconds=30,
)
async def decompose_sales(sales_path: str, output_path: str, already_decomposed: bool = False) -> dict:
    """Decompose a sales file and write the decomposed lines"""
    logger = get_run_logger()

    sales = load_sales(sales_path)
    store = create_store(get_settings())
    try:
        catalog = await store.require()
    finally:
        await store.close()

    report = ReconciliationPipeline().process_sales(
        sales.records,
        catalog,
        already_decomposed=already_decomposed,
        warnings=sales.warnings,
    )

    rows = [line.model_dump(mode="json") for line in report.decomposed_lines]
    df = pl.DataFrame(rows, infer_schema_length=None) if rows else pl.DataFrame()
    if "date" in df.columns:
        df = df.with_columns(pl.col("date").str.to_datetime(strict=False))

    output = Path(output_path)
    output.parent.mkdir(parents=True, exist_ok=True)
    df.write_parquet(output)
    statistics_path = output.with_suffix(".statistics.json")
    statistics_path.write_text(report.statistics.model_dump_json(indent=2), encoding="utf-8")

    for error in report.stats.errors:
        logger.warning(error)
    logger.info(
        f"Decomposition written to {output}: "
        f"{report.stats.lines_imported} -> {report.stats.lines_after_decomposition} lines"
    )

    return {
        **report.stats.model_dump(),
        "total_amount": report.statistics.total_amount,
        "statistics_path": str(statistics_path),
    }


# =============================================================================
# FLOWS
# =============================================================================

@flow(
    name="catalog_reconciliation",
    description="Unify the catalog and decompose sales",
)
async def catalog_reconciliation(
    products_path: str,
    compositions_path: str,
    sales_path: Optional[str] = None,
    output_path: str = "./data/decomposed_sales.parquet",
    already_decomposed: bool = False,
) -> dict:
    """
    Catalog reconciliation pipeline.

    Steps:
    1. Unify products and compositions, save the catalog
    2. Decompose the sales export, when one is given
    """
    logger = get_run_logger()
    results = {"steps": {}}

    results["steps"]["catalog"] = await reconcile_catalog(products_path, compositions_path)

    if sales_path:
        results["steps"]["sales"] = await decompose_sales(sales_path, output_path, already_decomposed)

    logger.info("Catalog reconciliation complete")
    results["status"] = "success"
    return results


if __name__ == "__main__":
    import argparse
    import asyncio

    from reconciler.config.logging import configure_logging

    parser = argparse.ArgumentParser(description="Run the catalog reconciliation flow")
    parser.add_argument("products")
    parser.add_argument("compositions")
    parser.add_argument("--sales")
    parser.add_argument("--output", default="./data/decomposed_sales.parquet")
    parser.add_argument("--already-decomposed", action="store_true")
    args = parser.parse_args()
    configure_logging()

    asyncio.run(catalog_reconciliation(
        args.products,
        args.compositions,
        sales_path=args.sales,
        output_path=args.output,
        already_decomposed=args.already_decomposed,
    ))
