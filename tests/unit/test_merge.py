"""
Unit Tests - Sales Merging
"""
from datetime import date, datetime

import pytest

from reconciler.models import SaleLine
from reconciler.transformation import find_duplicates, merge_sales


def sale(product_id, day, quantity=1, price=8.0, store="Gassin"):
    return SaleLine(
        product_id=product_id,
        product_name=f"Produit {product_id}",
        quantity=quantity,
        unit_price_incl=price,
        line_amount_incl=quantity * price,
        date=datetime.fromisoformat(day),
        store=store,
    )


@pytest.fixture
def june_lines():
    return [sale("1001", "2024-06-15T10:00", 2), sale("1002", "2024-06-16T10:00", 1, 55.0)]


@pytest.fixture
def july_lines():
    """July import that repeats a June line and one of its own lines"""
    return [
        sale("1001", "2024-06-15T10:00", 2),
        sale("1003", "2024-07-01T10:00", 1, 45.0),
        sale("1003", "2024-07-01T10:00", 1, 45.0),
        sale("1001", "2024-07-02T10:00", 2),
    ]


class TestFindDuplicates:
    """Tests for duplicate detection"""

    def test_groups(self, july_lines):
        """Test repeated keys and occurrence counts"""
        report = find_duplicates(july_lines)

        assert report.total == 1
        assert len(report.groups) == 1
        group = report.groups[0]
        assert group.product_id == "1003"
        assert group.day == date(2024, 7, 1)
        assert group.amount == 45.0
        assert group.occurrences == 2

    def test_time_of_day_is_ignored(self):
        """Test lines on the same day at different times"""
        lines = [sale("1001", "2024-06-15T10:00"), sale("1001", "2024-06-15T18:00"), sale("1001", "2024-06-15T19:00")]

        report = find_duplicates(lines)

        assert report.total == 2
        assert report.groups[0].occurrences == 3

    @pytest.mark.parametrize("other", [
        sale("1001", "2024-06-15T10:00", store="Tropez"),
        sale("1001", "2024-06-15T10:00", quantity=2),
        sale("1001", "2024-06-16T10:00"),
        sale("1002", "2024-06-15T10:00"),
    ])
    def test_differing_lines(self, other):
        """Test any key difference keeps lines apart"""
        assert find_duplicates([sale("1001", "2024-06-15T10:00"), other]).total == 0

    def test_empty(self):
        """Test no lines"""
        assert find_duplicates([]).groups == []


class TestMergeSales:
    """Tests for merging imports"""

    def test_concatenate(self, june_lines, july_lines):
        """Test plain append reports internal duplicates without removing them"""
        result = merge_sales(june_lines, july_lines)

        assert result.existing_count == 2
        assert result.incoming_count == 4
        assert result.merged_count == 6
        assert result.duplicates_removed == 0
        assert result.internal_duplicates.total == 1

    def test_drop_duplicates(self, june_lines, july_lines):
        """Test incoming lines already seen are skipped"""
        result = merge_sales(june_lines, july_lines, drop_duplicates=True)

        assert result.merged_count == 4
        assert result.duplicates_removed == 2
        assert result.lines[:2] == june_lines
        assert [(l.product_id, l.date.day) for l in result.lines[2:]] == [("1003", 1), ("1001", 2)]

    def test_existing_lines_are_kept(self, june_lines):
        """Test duplicates among previous imports survive"""
        existing = june_lines + [june_lines[0]]

        result = merge_sales(existing, [], drop_duplicates=True)

        assert result.merged_count == 3
        assert result.duplicates_removed == 0

    def test_period_and_months(self, june_lines, july_lines):
        """Test covered days and months"""
        result = merge_sales(june_lines, july_lines, drop_duplicates=True)

        assert result.period_start == date(2024, 6, 15)
        assert result.period_end == date(2024, 7, 2)
        assert result.months == ["2024-06", "2024-07"]

    def test_empty(self):
        """Test nothing to merge"""
        result = merge_sales([], [], drop_duplicates=True)

        assert result.merged_count == 0
        assert result.months == []
