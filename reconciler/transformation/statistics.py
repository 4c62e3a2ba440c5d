"""
Sales Statistics

Aggregations over decomposed sale lines:
- Sales by product, split between billed lines and zero-priced components
- Sales by store and by day, billed lines only
- Sales by category, every line, with service and id-less lines grouped apart
- Best sellers by quantity
- Returns and refunds

Components carry no amount, so revenue figures are never counted twice.
"""

from datetime import date
from typing import List, Optional, Sequence

import polars as pl
import structlog
from pydantic import BaseModel, Field

from reconciler.config import get_settings
from reconciler.config.settings import Settings
from reconciler.models import SaleLine

logger = structlog.get_logger(__name__)

LINES_SCHEMA = {
    "product_id": pl.Utf8,
    "product_name": pl.Utf8,
    "quantity": pl.Float64,
    "unit_price_incl": pl.Float64,
    "line_amount_incl": pl.Float64,
    "store": pl.Utf8,
    "category": pl.Utf8,
    "day": pl.Date,
    "is_return": pl.Boolean,
}


class ProductSales(BaseModel):
    product_id: str
    product_name: str
    kind: str  # simple, component or unidentified
    quantity: float
    amount: float
    average_price: float
    unit_price: float


class RankedProduct(ProductSales):
    rank: int


class StoreSales(BaseModel):
    store: str
    quantity: float
    amount: float
    sale_count: int


class CategorySales(BaseModel):
    category: str
    quantity: float
    amount: float
    product_count: int


class DailySales(BaseModel):
    day: date
    quantity: float
    amount: float
    sale_count: int


class ReturnedLine(BaseModel):
    product_id: str
    product_name: str
    quantity: float
    amount: float
    day: Optional[date] = None


class SalesStatistics(BaseModel):
    """Figures of a set of decomposed sale lines"""
    total_lines: int = 0
    total_amount: float = 0.0
    period_start: Optional[date] = None
    period_end: Optional[date] = None
    by_product: List[ProductSales] = Field(default_factory=list)
    by_store: List[StoreSales] = Field(default_factory=list)
    by_category: List[CategorySales] = Field(default_factory=list)
    by_day: List[DailySales] = Field(default_factory=list)
    top_products: List[RankedProduct] = Field(default_factory=list)
    returns: List[ReturnedLine] = Field(default_factory=list)


def lines_frame(lines: Sequence[SaleLine]) -> pl.DataFrame:
    """Project sale lines onto the columns the statistics read"""
    return pl.DataFrame(
        {
            "product_id": [line.product_id for line in lines],
            "product_name": [line.product_name for line in lines],
            "quantity": [float(line.quantity) for line in lines],
            "unit_price_incl": [float(line.unit_price_incl) for line in lines],
            "line_amount_incl": [float(line.line_amount_incl) for line in lines],
            "store": [line.store or "" for line in lines],
            "category": [line.category or "" for line in lines],
            "day": [line.date.date() if line.date else None for line in lines],
            "is_return": [line.is_return for line in lines],
        },
        schema=LINES_SCHEMA,
    )


def _records(df: pl.DataFrame, model: type) -> list:
    return [model(**row) for row in df.iter_rows(named=True)]


class SalesStatisticsCalculator:
    """
    Computes SalesStatistics with polars aggregations.

    Example:
        calculator = SalesStatisticsCalculator()
        stats = calculator.calculate(report.decomposed_lines)
    """

    def __init__(self, settings: Optional[Settings] = None):
        settings = settings or get_settings()
        self.top_n = settings.reporting.top_products
        self.service_category = settings.reporting.service_category
        self.unidentified_category = settings.reporting.unidentified_category
        self.default_category = settings.engine.default_category
        self.service_prefix = settings.ingestion.service_id_prefix
        self.unidentified_prefix = settings.ingestion.unidentified_id_prefix

    @staticmethod
    def _billed(df: pl.DataFrame) -> pl.DataFrame:
        """Lines that carry a price, components excluded"""
        return df.filter(pl.col("unit_price_incl") != 0)

    def by_product(self, df: pl.DataFrame) -> pl.DataFrame:
        """Quantity and amount per product, billed and component lines apart"""
        grouped = (
            df.with_columns((pl.col("unit_price_incl") == 0).alias("is_component"))
            .group_by(["product_id", "is_component"], maintain_order=True)
            .agg([
                pl.col("product_name").first(),
                pl.col("quantity").sum(),
                pl.col("line_amount_incl").sum().round(2).alias("amount"),
                pl.col("unit_price_incl").first().alias("unit_price"),
            ])
        )
        return (
            grouped
            # Products with nothing billed only matter as component movements
            .filter(pl.col("is_component") | (pl.col("amount") > 0))
            .with_columns([
                pl.when(pl.col("is_component")).then(pl.lit("component"))
                .when(pl.col("product_id").str.starts_with(self.unidentified_prefix)).then(pl.lit("unidentified"))
                .otherwise(pl.lit("simple"))
                .alias("kind"),
                pl.when(pl.col("quantity") != 0)
                .then((pl.col("amount") / pl.col("quantity")).round(2))
                .otherwise(0.0)
                .alias("average_price"),
            ])
            .drop("is_component")
            .sort(["amount", "product_id"], descending=[True, False])
        )

    def by_store(self, df: pl.DataFrame) -> pl.DataFrame:
        return (
            self._billed(df)
            .group_by("store", maintain_order=True)
            .agg([
                pl.col("quantity").sum(),
                pl.col("line_amount_incl").sum().round(2).alias("amount"),
                pl.len().alias("sale_count"),
            ])
            .sort(["amount", "store"], descending=[True, False])
        )

    def by_category(self, df: pl.DataFrame) -> pl.DataFrame:
        """Every line, components included, under its reporting category"""
        category = (
            pl.when(pl.col("product_id").str.starts_with(self.service_prefix)).then(pl.lit(self.service_category))
            .when(pl.col("product_id").str.starts_with(self.unidentified_prefix))
            .then(pl.lit(self.unidentified_category))
            .when(pl.col("category") == "").then(pl.lit(self.default_category))
            .otherwise(pl.col("category"))
        )
        return (
            df.with_columns(category.alias("category"))
            .group_by("category", maintain_order=True)
            .agg([
                pl.col("quantity").sum(),
                pl.col("line_amount_incl").sum().round(2).alias("amount"),
                pl.col("product_id").n_unique().alias("product_count"),
            ])
            .sort(["amount", "category"], descending=[True, False])
        )

    def by_day(self, df: pl.DataFrame) -> pl.DataFrame:
        return (
            self._billed(df)
            .filter(pl.col("day").is_not_null())
            .group_by("day")
            .agg([
                pl.col("quantity").sum(),
                pl.col("line_amount_incl").sum().round(2).alias("amount"),
                pl.len().alias("sale_count"),
            ])
            .sort("day")
        )

    def top_products(self, products: pl.DataFrame) -> pl.DataFrame:
        """Best sellers by quantity among billed products"""
        return (
            products.filter(pl.col("kind") != "component")
            .sort(["quantity", "amount", "product_id"], descending=[True, True, False])
            .head(self.top_n)
            .with_row_index("rank", offset=1)
            .with_columns(pl.col("rank").cast(pl.Int64))
        )

    @staticmethod
    def returns(df: pl.DataFrame) -> pl.DataFrame:
        """Returned lines, largest refund first"""
        return (
            df.filter(
                pl.col("is_return") | (pl.col("line_amount_incl") < 0) | (pl.col("quantity") < 0)
            )
            .select([
                "product_id",
                "product_name",
                "quantity",
                pl.col("line_amount_incl").alias("amount"),
                "day",
            ])
            .sort(["amount", "product_id"])
        )

    def calculate(self, lines: Sequence[SaleLine]) -> SalesStatistics:
        """
        Compute every statistic over decomposed sale lines.

        Args:
            lines: Decomposed sale lines

        Returns:
            SalesStatistics, empty when there are no lines
        """
        if not lines:
            return SalesStatistics()

        df = lines_frame(lines)
        products = self.by_product(df)

        stats = SalesStatistics(
            total_lines=df.height,
            total_amount=round(df["line_amount_incl"].sum(), 2),
            period_start=df["day"].min(),
            period_end=df["day"].max(),
            by_product=_records(products, ProductSales),
            by_store=_records(self.by_store(df), StoreSales),
            by_category=_records(self.by_category(df), CategorySales),
            by_day=_records(self.by_day(df), DailySales),
            top_products=_records(self.top_products(products), RankedProduct),
            returns=_records(self.returns(df), ReturnedLine),
        )

        logger.info(
            f"Computed statistics over {stats.total_lines} sale lines",
            amount=stats.total_amount,
            products=len(stats.by_product),
            stores=len(stats.by_store),
            returns=len(stats.returns),
        )
        return stats


def sales_statistics(lines: Sequence[SaleLine], settings: Optional[Settings] = None) -> SalesStatistics:
    """Convenience function: statistics with the application settings."""
    return SalesStatisticsCalculator(settings).calculate(lines)
