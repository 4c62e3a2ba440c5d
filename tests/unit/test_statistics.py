"""
Unit Tests - Sales Statistics
"""
from datetime import date, datetime

import pytest

from reconciler.config import Settings
from reconciler.config.settings import ReportingSettings
from reconciler.models import LineKind, SaleLine
from reconciler.transformation import SalesStatisticsCalculator, sales_statistics


def sale(product_id, name, quantity, price, day, store="Gassin", category="", **kwargs):
    return SaleLine(
        product_id=product_id,
        product_name=name,
        quantity=quantity,
        unit_price_incl=price,
        line_amount_incl=round(quantity * price, 2),
        date=datetime.fromisoformat(day),
        store=store,
        category=category,
        **kwargs,
    )


@pytest.fixture
def settings() -> Settings:
    return Settings(reporting=ReportingSettings(top_products=3))


@pytest.fixture
def decomposed_lines():
    """Three days of decomposed sales over two stores"""
    return [
        sale("9001", "DUO CHAMPAGNE", 3, 95.0, "2024-06-15T10:00", category="COFFRETS",
             line_kind=LineKind.COMPOSED),
        sale("1003", "Champagne Brut 75cl", 6, 0.0, "2024-06-15T10:00", category="CHAMPAGNE",
             line_kind=LineKind.CUMULATED),
        sale("1001", "BK VERRE VILLAGE TROPEZ", 6, 0.0, "2024-06-15T10:00", category="VERRERIE",
             line_kind=LineKind.CUMULATED),
        sale("1001", "BK VERRE VILLAGE TROPEZ", 2, 8.0, "2024-06-16T11:00", store="Tropez", category="VERRERIE"),
        sale("1001", "BK VERRE VILLAGE TROPEZ", 4, 8.0, "2024-06-16T15:00", category="VERRERIE"),
        sale("SERVICE_Frais_de_port", "Frais de port", 1, 12.0, "2024-06-16T15:00", store="Tropez"),
        sale("SANS_ID_Parasol", "Parasol", 1, 30.0, "2024-06-17T09:00", store="Tropez"),
        sale("1002", "VASQUE INOX 40CM", -1, 55.0, "2024-06-17T09:30", category="ACCESSOIRES", is_return=True),
        sale("1004", "Sac de glace", 1, 2.0, "2024-06-17T12:00", store="Tropez"),
    ]


class TestSalesStatistics:
    """Tests for SalesStatisticsCalculator"""

    def test_totals_and_period(self, decomposed_lines, settings):
        """Test line count, amount and covered days"""
        stats = sales_statistics(decomposed_lines, settings)

        assert stats.total_lines == 9
        assert stats.total_amount == 322.0
        assert stats.period_start == date(2024, 6, 15)
        assert stats.period_end == date(2024, 6, 17)

    def test_by_product(self, decomposed_lines, settings):
        """Test billed and component lines of a product are reported apart"""
        products = sales_statistics(decomposed_lines, settings).by_product

        assert [(p.product_id, p.kind) for p in products] == [
            ("9001", "simple"),
            ("1001", "simple"),
            ("SANS_ID_Parasol", "unidentified"),
            ("SERVICE_Frais_de_port", "simple"),
            ("1004", "simple"),
            ("1001", "component"),
            ("1003", "component"),
        ]
        glass = products[1]
        assert glass.quantity == 6
        assert glass.amount == 48.0
        assert glass.average_price == 8.0
        assert products[5].quantity == 6
        assert products[5].amount == 0.0

    def test_returned_only_product_is_not_listed(self, decomposed_lines, settings):
        """Test products without a positive amount are left out"""
        products = sales_statistics(decomposed_lines, settings).by_product

        assert "1002" not in {p.product_id for p in products}

    def test_by_store_excludes_components(self, decomposed_lines, settings):
        """Test store figures only count billed lines"""
        stores = sales_statistics(decomposed_lines, settings).by_store

        assert [(s.store, s.quantity, s.amount, s.sale_count) for s in stores] == [
            ("Gassin", 6, 262.0, 3),
            ("Tropez", 5, 60.0, 4),
        ]

    def test_by_category(self, decomposed_lines, settings):
        """Test services, id-less and uncategorized lines"""
        categories = sales_statistics(decomposed_lines, settings).by_category

        assert [(c.category, c.amount) for c in categories] == [
            ("COFFRETS", 285.0),
            ("VERRERIE", 48.0),
            ("À classer", 30.0),
            ("SERVICES ET FRAIS", 12.0),
            ("UNCLASSIFIED", 2.0),
            ("CHAMPAGNE", 0.0),
            ("ACCESSOIRES", -55.0),
        ]
        glassware = categories[1]
        assert glassware.quantity == 12
        assert glassware.product_count == 1

    def test_by_day(self, decomposed_lines, settings):
        """Test daily figures in chronological order"""
        days = sales_statistics(decomposed_lines, settings).by_day

        assert [(d.day, d.quantity, d.amount, d.sale_count) for d in days] == [
            (date(2024, 6, 15), 3, 285.0, 1),
            (date(2024, 6, 16), 7, 60.0, 3),
            (date(2024, 6, 17), 1, -23.0, 3),
        ]

    def test_top_products(self, decomposed_lines, settings):
        """Test ranking by quantity, components excluded"""
        top = sales_statistics(decomposed_lines, settings).top_products

        assert [(t.rank, t.product_id) for t in top] == [(1, "1001"), (2, "9001"), (3, "SANS_ID_Parasol")]

    def test_returns(self, decomposed_lines, settings):
        """Test returned lines"""
        returns = sales_statistics(decomposed_lines, settings).returns

        assert len(returns) == 1
        assert returns[0].product_id == "1002"
        assert returns[0].amount == -55.0
        assert returns[0].day == date(2024, 6, 17)

    def test_negative_amount_counts_as_return(self, settings):
        """Test refunds not flagged as returns"""
        lines = [
            sale("1001", "Verre", 1, -8.0, "2024-06-15T10:00"),
            sale("1002", "Vasque", 1, 55.0, "2024-06-15T11:00"),
        ]

        returns = sales_statistics(lines, settings).returns

        assert [r.product_id for r in returns] == ["1001"]

    def test_lines_without_date(self, settings):
        """Test undated lines count in totals but not per day"""
        lines = [SaleLine(product_id="1001", quantity=1, unit_price_incl=8.0, line_amount_incl=8.0)]

        stats = sales_statistics(lines, settings)

        assert stats.total_amount == 8.0
        assert stats.period_start is None
        assert stats.by_day == []
        assert stats.by_store[0].store == ""

    def test_empty(self, settings):
        """Test no lines"""
        stats = SalesStatisticsCalculator(settings).calculate([])

        assert stats.total_lines == 0
        assert stats.by_product == []
        assert stats.top_products == []
