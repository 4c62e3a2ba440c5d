"""
Unit Tests - Reconciliation Pipeline
"""
import pytest

from reconciler.exceptions import StaleCatalogError, StructuralError
from reconciler.models import LineKind, SaleLine
from reconciler.storage import CatalogStore, MemoryBackend
from reconciler.transformation import ReconciliationPipeline, unify


class InterleavingBackend(MemoryBackend):
    """Memory backend that lets another writer in right after the next read"""

    def __init__(self):
        super().__init__()
        self.pending = None

    async def read(self):
        document = await super().read()
        if self.pending is not None:
            pending, self.pending = self.pending, None
            await self.write(pending)
        return document


class TestReconcileCatalog:
    """Tests for catalog reconciliation"""

    def test_build_without_store(self, sample_products, sample_compositions):
        """Test unify and validate only"""
        result = ReconciliationPipeline().build_catalog(sample_products, sample_compositions)

        assert result.catalog.stats.composite == 2
        assert result.validation.status.value == "passed"
        assert result.saved is False

    @pytest.mark.asyncio
    async def test_first_save(self, sample_products, sample_compositions, memory_store):
        """Test catalog saved into an empty store"""
        result = await ReconciliationPipeline().reconcile_catalog(
            sample_products, sample_compositions, memory_store
        )

        assert result.saved is True
        assert result.previous_fingerprint is None
        assert result.changed is True
        assert await memory_store.is_current(sample_compositions)

    @pytest.mark.asyncio
    async def test_unchanged_compositions(self, sample_products, sample_compositions, memory_store):
        """Test second run over the same compositions"""
        pipeline = ReconciliationPipeline()
        await pipeline.reconcile_catalog(sample_products, sample_compositions, memory_store)

        result = await pipeline.reconcile_catalog(sample_products, sample_compositions, memory_store)

        assert result.changed is False

    @pytest.mark.asyncio
    async def test_outdated_session_reads_the_backend(self, sample_products, sample_compositions):
        """Test a session whose cache is behind still saves over the latest catalog"""
        backend = MemoryBackend()
        session_a = CatalogStore(backend)
        session_b = CatalogStore(backend)
        pipeline = ReconciliationPipeline()

        await pipeline.reconcile_catalog(sample_products, sample_compositions, session_a)
        other = await pipeline.reconcile_catalog(sample_products, sample_compositions[:1], session_b)

        result = await pipeline.reconcile_catalog(sample_products, [], session_a)

        assert result.previous_fingerprint == other.catalog.composition_fingerprint
        assert await session_b.fingerprint(refresh=True) == result.catalog.composition_fingerprint

    @pytest.mark.asyncio
    async def test_concurrent_write_is_detected_then_retried(self, sample_products, sample_compositions):
        """Test a write landing between read and save is refused once, then the retry succeeds"""
        backend = InterleavingBackend()
        session = CatalogStore(backend)
        pipeline = ReconciliationPipeline()
        await pipeline.reconcile_catalog(sample_products, sample_compositions, session)
        concurrent = unify(sample_products, sample_compositions[:1])
        backend.pending = concurrent.to_document()

        with pytest.raises(StaleCatalogError):
            await pipeline.reconcile_catalog(sample_products, [], session)

        assert await session.fingerprint() == concurrent.composition_fingerprint
        result = await pipeline.reconcile_catalog(sample_products, [], session)
        assert result.saved is True
        assert result.previous_fingerprint == concurrent.composition_fingerprint

    def test_warnings_are_collected(self, sample_products):
        """Test unification warnings reach the result"""
        compositions = [{"id": "9100", "composants": [{"nom": "Parasol"}]}]

        result = ReconciliationPipeline().build_catalog(sample_products + [{"name": "x"}], compositions)

        assert any("Parasol" in w for w in result.warnings)
        assert any("skipped" in w for w in result.warnings)


class TestProcessSales:
    """Tests for sales processing"""

    def test_report(self, sample_catalog, sample_sale_lines):
        """Test classify, decompose and statistics"""
        report = ReconciliationPipeline().process_sales(sample_sale_lines, sample_catalog)

        stats = report.stats
        assert stats.lines_imported == 3
        assert stats.lines_after_decomposition == 5
        assert stats.composites_found == 1
        assert stats.components_added == 2
        assert stats.composition_amount == 285.0
        assert stats.component_movements == {"1003": 12.0, "1001": 6.0}
        assert stats.errors == []
        assert [l.line_kind for l in report.original_lines] == [
            LineKind.COMPOSED, LineKind.CUMULATED, LineKind.ORIGINAL,
        ]

    def test_already_decomposed(self, sample_catalog, sample_sale_lines):
        """Test pre-decomposed imports are classified only"""
        report = ReconciliationPipeline().process_sales(
            sample_sale_lines, sample_catalog, already_decomposed=True
        )

        assert report.stats.lines_after_decomposition == 3
        assert report.stats.components_added == 0
        assert report.stats.composites_found == 1

    def test_anomalies_and_upstream_warnings(self, sample_catalog):
        """Test errors list of the report"""
        lines = [
            SaleLine(product_id="5000", quantity=1, unit_price_incl=50.0, line_amount_incl=50.0, order_ref="A"),
            SaleLine(product_id="1001", quantity=1, order_ref="A"),
            SaleLine(product_id="1002", quantity=2, unit_price_incl=10.0, line_amount_incl=99.0, order_ref="B"),
        ]

        report = ReconciliationPipeline().process_sales(lines, sample_catalog, warnings=["Sale row 7 dropped"])

        errors = report.stats.errors
        assert errors[0] == "Sale row 7 dropped"
        assert any("5000" in e and "not found" in e for e in errors)
        assert any(e.startswith("amount_consistency") for e in errors)

    def test_validation_can_be_disabled(self, sample_catalog):
        """Test pipeline without quality checks"""
        lines = [SaleLine(product_id="1002", quantity=2, unit_price_incl=10.0, line_amount_incl=99.0)]

        report = ReconciliationPipeline(validate=False).process_sales(lines, sample_catalog)

        assert report.stats.errors == []

    def test_empty_catalog(self, sample_sale_lines):
        """Test processing against a catalog without composites"""
        catalog = unify([], [])

        report = ReconciliationPipeline().process_sales(sample_sale_lines, catalog)

        # 9001 is still composed through its silent partner, but cannot be expanded
        assert report.stats.components_added == 0
        assert len(report.decomposed_lines) == 3

    def test_report_statistics(self, sample_catalog, sample_sale_lines):
        """Test statistics over the decomposed lines"""
        statistics = ReconciliationPipeline().process_sales(sample_sale_lines, sample_catalog).statistics

        assert statistics.total_lines == 5
        assert statistics.total_amount == 301.0
        assert [p.product_id for p in statistics.top_products] == ["9001", "1001"]
        assert {p.product_id for p in statistics.by_product if p.kind == "component"} == {"1001", "1003"}

    def test_duplicate_lines_are_reported(self, sample_catalog, sample_sale_lines):
        """Test repeated lines end up in the errors"""
        lines = sample_sale_lines + [sample_sale_lines[2]]

        report = ReconciliationPipeline().process_sales(lines, sample_catalog)

        assert report.stats.duplicate_lines == 1
        assert "1 sale lines repeat an earlier line" in report.stats.errors


class TestMergeSales:
    """Tests for merging sales imports"""

    def test_merge_mappings(self, sample_sale_lines):
        """Test imports given as mappings"""
        incoming = [line.model_dump() for line in sample_sale_lines[1:]]

        result = ReconciliationPipeline().merge_sales(sample_sale_lines, incoming, drop_duplicates=True)

        assert result.merged_count == 3
        assert result.duplicates_removed == 2

    def test_merge_rejects_non_list(self, sample_sale_lines):
        """Test structural error on the offending argument"""
        with pytest.raises(StructuralError) as exc_info:
            ReconciliationPipeline().merge_sales(sample_sale_lines, {"lines": []})

        assert "incoming" in str(exc_info.value)
