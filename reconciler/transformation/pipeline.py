"""
Reconciliation Pipeline

Orchestrates the engine for the two workflows of the application:
- Catalog reconciliation: unify, validate, save to the catalog store
- Sales processing: classify, decompose, validate, report with statistics
- Sales merging: append an import to earlier lines, optionally without duplicates

Row-level problems end up in the warnings of the results; only structural
errors and store conflicts propagate.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import structlog
from pydantic import BaseModel, Field

from reconciler.models import LineKind, SaleLine, UnifiedCatalog
from reconciler.quality import ValidationResult, validate_catalog, validate_sales
from .classifier import SaleClassifier, coerce_sale_lines
from .decomposer import SaleDecomposer, component_movements
from .merge import MergeResult, find_duplicates, merge_sales
from .statistics import SalesStatistics, SalesStatisticsCalculator
from .unifier import CatalogUnifier

logger = structlog.get_logger(__name__)


@dataclass
class UnificationResult:
    """Catalog built by a reconciliation run"""
    catalog: UnifiedCatalog
    warnings: List[str] = field(default_factory=list)
    validation: Optional[ValidationResult] = None
    saved: bool = False
    previous_fingerprint: Optional[str] = None
    duration_seconds: float = 0.0

    @property
    def changed(self) -> bool:
        """Compositions differ from the ones behind the previously stored catalog"""
        return self.previous_fingerprint != self.catalog.composition_fingerprint


class DecompositionStats(BaseModel):
    """Counters of a sales processing run"""
    lines_imported: int = 0
    lines_after_decomposition: int = 0
    composites_found: int = 0
    components_added: int = 0
    composition_amount: float = 0.0
    component_movements: Dict[str, float] = Field(default_factory=dict)
    duplicate_lines: int = 0
    errors: List[str] = Field(default_factory=list)


class DecompositionReport(BaseModel):
    """Classified input lines, decomposed output lines and run statistics"""
    original_lines: List[SaleLine]
    decomposed_lines: List[SaleLine]
    stats: DecompositionStats
    statistics: SalesStatistics = Field(default_factory=SalesStatistics)


class ReconciliationPipeline:
    """
    Runs unification and decomposition with validation.

    Example:
        pipeline = ReconciliationPipeline()
        result = await pipeline.reconcile_catalog(products, compositions, store)
        report = pipeline.process_sales(lines, result.catalog)
    """

    def __init__(
        self,
        unifier: Optional[CatalogUnifier] = None,
        classifier: Optional[SaleClassifier] = None,
        calculator: Optional[SalesStatisticsCalculator] = None,
        validate: bool = True,
    ):
        self.unifier = unifier or CatalogUnifier()
        self.classifier = classifier or SaleClassifier()
        self.calculator = calculator or SalesStatisticsCalculator()
        self.validate = validate

    def build_catalog(self, products: Sequence[Any], compositions: Sequence[Any]) -> UnificationResult:
        """Unify and validate without persisting"""
        start = time.time()
        catalog = self.unifier.unify(products, compositions)
        warnings = list(catalog.warnings)

        validation = None
        if self.validate:
            validation = validate_catalog(catalog)
            warnings.extend(validation.issues())

        return UnificationResult(
            catalog=catalog,
            warnings=warnings,
            validation=validation,
            duration_seconds=time.time() - start,
        )

    async def reconcile_catalog(
        self,
        products: Sequence[Any],
        compositions: Sequence[Any],
        store: Optional[Any] = None,
    ) -> UnificationResult:
        """
        Unify, validate and save the catalog.

        The previous fingerprint is read from the backend, not the session
        cache. The save is optimistic: it is refused with StaleCatalogError
        when another writer replaced the catalog between that read and the
        write.

        Args:
            products: Product records or mappings
            compositions: Composition definitions or mappings
            store: CatalogStore to save into, None to skip persistence
        """
        result = self.build_catalog(products, compositions)

        if store is not None:
            result.previous_fingerprint = await store.fingerprint(refresh=True)
            await store.save(result.catalog, expected_fingerprint=result.previous_fingerprint)
            result.saved = True

        logger.info(
            "Catalog reconciliation complete",
            products=result.catalog.stats.total,
            composite=result.catalog.stats.composite,
            warnings=len(result.warnings),
            saved=result.saved,
            changed=result.changed,
            duration=round(result.duration_seconds, 3),
        )
        return result

    def process_sales(
        self,
        lines: Sequence[Any],
        catalog: UnifiedCatalog,
        already_decomposed: bool = False,
        warnings: Optional[List[str]] = None,
    ) -> DecompositionReport:
        """
        Classify and decompose sale lines against a catalog.

        Args:
            lines: Sale lines or mappings, in recorded order
            catalog: Unified catalog
            already_decomposed: Lines already contain their component rows,
                classify only
            warnings: Upstream warnings (ingestion) to carry into the report

        Returns:
            DecompositionReport
        """
        sale_lines = coerce_sale_lines(lines)
        classified = self.classifier.classify(sale_lines, catalog.composite_ids())
        errors = list(warnings or [])

        if already_decomposed:
            decomposed = [line.model_copy() for line in classified]
            composites_found = sum(1 for line in decomposed if line.line_kind == LineKind.COMPOSED)
            components_added = 0
        else:
            result = SaleDecomposer(catalog).decompose(classified)
            decomposed = result.lines
            composites_found = result.composites_found
            components_added = result.added_component_count
            errors.extend(result.anomalies)

        if self.validate:
            errors.extend(validate_sales(sale_lines).issues())

        duplicates = find_duplicates(sale_lines)
        if duplicates.total:
            errors.append(f"{duplicates.total} sale lines repeat an earlier line")

        composed = [line for line in decomposed if line.line_kind == LineKind.COMPOSED]
        movements = component_movements(decomposed)
        stats = DecompositionStats(
            lines_imported=len(sale_lines),
            lines_after_decomposition=len(decomposed),
            composites_found=composites_found,
            components_added=components_added,
            composition_amount=round(sum(line.line_amount_incl for line in composed), 2),
            component_movements={cid: m.quantity for cid, m in movements.items()},
            duplicate_lines=duplicates.total,
            errors=errors,
        )

        logger.info(
            f"Processed {stats.lines_imported} sale lines",
            after=stats.lines_after_decomposition,
            composites=stats.composites_found,
            components_added=stats.components_added,
            errors=len(errors),
        )
        return DecompositionReport(
            original_lines=classified,
            decomposed_lines=decomposed,
            stats=stats,
            statistics=self.calculator.calculate(decomposed),
        )

    def merge_sales(
        self,
        existing: Sequence[Any],
        incoming: Sequence[Any],
        drop_duplicates: bool = False,
    ) -> MergeResult:
        """Merge a new sales import into previously imported lines"""
        return merge_sales(
            coerce_sale_lines(existing, "existing"),
            coerce_sale_lines(incoming, "incoming"),
            drop_duplicates,
        )
