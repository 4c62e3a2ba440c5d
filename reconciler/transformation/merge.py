"""
Sales Merging

Combines a new sales import with previously imported lines and detects
duplicate lines. Two lines are duplicates when they share the day, product
id, product name, store, quantity and amount.
"""

from datetime import date
from typing import List, Optional, Sequence

import polars as pl
import structlog
from pydantic import BaseModel, Field

from reconciler.models import SaleLine
from .statistics import lines_frame

logger = structlog.get_logger(__name__)

DUPLICATE_KEY = ["day", "product_id", "product_name", "store", "quantity", "line_amount_incl"]


class DuplicateGroup(BaseModel):
    """Identical lines seen more than once"""
    day: Optional[date] = None
    product_id: str
    product_name: str
    store: str
    quantity: float
    amount: float
    occurrences: int


class DuplicateReport(BaseModel):
    """Duplicated lines of a sales set"""
    total: int = 0  # Lines beyond the first of each group
    groups: List[DuplicateGroup] = Field(default_factory=list)


class MergeResult(BaseModel):
    """Outcome of merging an import into existing sale lines"""
    existing_count: int
    incoming_count: int
    merged_count: int
    duplicates_removed: int = 0
    internal_duplicates: DuplicateReport = Field(default_factory=DuplicateReport)
    period_start: Optional[date] = None
    period_end: Optional[date] = None
    months: List[str] = Field(default_factory=list)
    lines: List[SaleLine] = Field(default_factory=list)


def find_duplicates(lines: Sequence[SaleLine]) -> DuplicateReport:
    """
    Group identical sale lines.

    Args:
        lines: Sale lines of one import

    Returns:
        DuplicateReport listing every key seen more than once
    """
    if not lines:
        return DuplicateReport()

    groups = (
        lines_frame(lines)
        .group_by(DUPLICATE_KEY, maintain_order=True)
        .agg(pl.len().alias("occurrences"))
        .filter(pl.col("occurrences") > 1)
        .rename({"line_amount_incl": "amount"})
    )
    duplicates = [DuplicateGroup(**row) for row in groups.iter_rows(named=True)]
    return DuplicateReport(total=sum(g.occurrences - 1 for g in duplicates), groups=duplicates)


def merge_sales(
    existing: Sequence[SaleLine],
    incoming: Sequence[SaleLine],
    drop_duplicates: bool = False,
) -> MergeResult:
    """
    Append an import to existing sale lines.

    Existing lines are always kept. With drop_duplicates, an incoming line
    is skipped when the same key was already seen, in the existing lines or
    earlier in the import.

    Args:
        existing: Lines already imported
        incoming: New import
        drop_duplicates: Skip incoming lines that repeat a key

    Returns:
        MergeResult
    """
    existing = list(existing)
    incoming = list(incoming)
    internal = find_duplicates(incoming)
    combined = existing + incoming

    if drop_duplicates and combined:
        df = lines_frame(combined).with_row_index("_row")
        first_seen = pl.col("_row") == pl.col("_row").min().over(DUPLICATE_KEY)
        keep = (pl.col("_row") < len(existing)) | first_seen
        rows = df.filter(keep)["_row"].to_list()
        merged = [combined[i] for i in rows]
    else:
        merged = combined

    days = [line.date.date() for line in merged if line.date is not None]
    result = MergeResult(
        existing_count=len(existing),
        incoming_count=len(incoming),
        merged_count=len(merged),
        duplicates_removed=len(combined) - len(merged),
        internal_duplicates=internal,
        period_start=min(days) if days else None,
        period_end=max(days) if days else None,
        months=sorted({d.strftime("%Y-%m") for d in days}),
        lines=merged,
    )

    logger.info(
        f"Merged {result.incoming_count} sale lines into {result.existing_count}",
        merged=result.merged_count,
        duplicates_removed=result.duplicates_removed,
        internal_duplicates=internal.total,
        months=result.months,
    )
    return result
