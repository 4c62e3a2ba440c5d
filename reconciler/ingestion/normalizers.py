"""
Input Normalizers

Turns raw tables into engine records:
- Headers resolved through the synonym tables
- Identifiers coerced to trimmed text (1234.0 -> "1234")
- Monetary columns cleaned of currency symbols, optionally converted from cents
- Dates parsed from the configured formats or Excel serial numbers
- Service lines without an id get a synthetic SERVICE_ id, other id-less
  rows a SANS_ID_ one when configured
- Returns flagged from the return column or negative quantity/amount

Rows that cannot become a record are dropped and reported as warnings;
a table missing a required column raises StructuralError.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import polars as pl
import structlog
from pydantic import ValidationError

from reconciler.config import get_settings
from reconciler.config.settings import IngestionSettings
from reconciler.exceptions import StructuralError
from reconciler.models import ProductRecord, SaleLine
from .columns import (
    PRODUCT_COLUMN_SYNONYMS,
    PRODUCT_REQUIRED_FIELDS,
    SALE_COLUMN_SYNONYMS,
    SALE_REQUIRED_FIELDS,
    resolve_columns,
)
from .readers import read_document, read_table

logger = structlog.get_logger(__name__)

MONEY_FIELDS = ("unit_price_incl", "line_amount_incl", "purchase_price")
IDENTIFIER_FIELDS = ("order_ref", "operation_id")
TEXT_FIELDS = ("store", "cashier", "client", "supplier", "manufacturer", "payment", "category")
TRUE_VALUES = ["true", "1", "1.0", "oui", "yes", "vrai", "x"]

# Excel day zero
EXCEL_EPOCH = (1899, 12, 30)
MS_PER_DAY = 86_400_000


@dataclass
class NormalizedRows:
    """Records built from a table and the rows that did not make it"""
    records: List[Any]
    warnings: List[str] = field(default_factory=list)
    rows_read: int = 0

    @property
    def rows_dropped(self) -> int:
        return self.rows_read - len(self.records)


def _text(column: str) -> pl.Expr:
    return pl.col(column).cast(pl.Utf8).str.strip_chars()


def _identifier(df: pl.DataFrame, column: str) -> pl.Expr:
    """Identifier column as text, without spreadsheet float artifacts"""
    dtype = df.schema[column]
    if dtype.is_integer():
        return pl.col(column).cast(pl.Utf8)
    if dtype.is_float():
        return (
            pl.when(pl.col(column) == pl.col(column).floor())
            .then(pl.col(column).cast(pl.Int64, strict=False).cast(pl.Utf8))
            .otherwise(pl.col(column).cast(pl.Utf8))
        )
    return _text(column).str.replace(r"^(\d+)\.0+$", "${1}")


def _number(df: pl.DataFrame, column: str, in_cents: bool = False) -> pl.Expr:
    """Numeric column as Float64, unreadable values become null"""
    if df.schema[column].is_numeric():
        expr = pl.col(column).cast(pl.Float64)
    else:
        expr = (
            _text(column)
            .str.replace_all(r"[^\d,.\-]", "")
            .str.replace(",", ".", literal=True)
            .cast(pl.Float64, strict=False)
        )
    return expr / 100 if in_cents else expr


def _from_excel_serial(days: pl.Expr) -> pl.Expr:
    """Excel serial day numbers (1900 date system) as Datetime"""
    return pl.datetime(*EXCEL_EPOCH) + pl.duration(
        milliseconds=(days * MS_PER_DAY).round(0).cast(pl.Int64)
    )


def _datetime(df: pl.DataFrame, column: str, settings: IngestionSettings) -> pl.Expr:
    """Date column as Datetime, unreadable values become null"""
    dtype = df.schema[column]
    if dtype == pl.Datetime or dtype == pl.Date:
        return pl.col(column).cast(pl.Datetime("us"))
    if dtype.is_numeric():
        return _from_excel_serial(pl.col(column).cast(pl.Float64))

    text = _text(column)
    candidates = [
        text.str.to_datetime(fmt, time_unit="us", strict=False) for fmt in settings.date_formats
    ]
    candidates += [
        text.str.to_date(fmt, strict=False).cast(pl.Datetime("us")) for fmt in settings.day_formats
    ]
    # Serials that went through a text cell (Excel sheets, CSV exports)
    candidates.append(
        pl.when(text.str.contains(r"^\d+(\.\d+)?$"))
        .then(_from_excel_serial(text.cast(pl.Float64, strict=False)))
        .otherwise(pl.lit(None, dtype=pl.Datetime("us")))
    )
    return pl.coalesce(candidates)


def _flag(column: str) -> pl.Expr:
    return _text(column).str.to_lowercase().is_in(TRUE_VALUES).fill_null(False)


def _blank(column: str) -> pl.Expr:
    return pl.col(column).is_null() | (pl.col(column) == "")


def _require(mapping: Dict[str, str], required: List[str], argument: str, df: pl.DataFrame) -> None:
    missing = [f for f in required if f not in mapping]
    if missing:
        raise StructuralError(argument, f"a table with columns for {missing}", list(df.columns))


def _synthetic_id(prefix: str) -> pl.Expr:
    return pl.concat_str([
        pl.lit(prefix),
        pl.col("product_name").str.replace_all(r"[^A-Za-z0-9]", "_"),
    ])


def _service_ids(frame: pl.DataFrame, settings: IngestionSettings) -> pl.DataFrame:
    """Give service lines (shipping, delivery...) without an id a synthetic one"""
    if not settings.service_keywords:
        return frame

    name = pl.col("product_name").str.to_lowercase()
    is_service = pl.any_horizontal(
        [name.str.contains(keyword.lower(), literal=True) for keyword in settings.service_keywords]
    ).fill_null(False)
    return frame.with_columns(
        pl.when(_blank("product_id") & is_service)
        .then(_synthetic_id(settings.service_id_prefix))
        .otherwise(pl.col("product_id"))
        .alias("product_id")
    )


def _unidentified_ids(frame: pl.DataFrame, settings: IngestionSettings) -> pl.DataFrame:
    """Keep named rows without an id under a synthetic id, when configured"""
    if not settings.keep_unidentified:
        return frame
    return frame.with_columns(
        pl.when(_blank("product_id") & ~_blank("product_name"))
        .then(_synthetic_id(settings.unidentified_id_prefix))
        .otherwise(pl.col("product_id"))
        .alias("product_id")
    )


def _fill_amounts(frame: pl.DataFrame) -> pl.DataFrame:
    """Derive a missing unit price or line amount from the other one"""
    has_price = "unit_price_incl" in frame.columns
    has_amount = "line_amount_incl" in frame.columns

    if has_amount and not has_price:
        frame = frame.with_columns(
            pl.when(pl.col("quantity") != 0)
            .then(pl.col("line_amount_incl") / pl.col("quantity"))
            .otherwise(0.0)
            .alias("unit_price_incl")
        )
    elif has_price and not has_amount:
        frame = frame.with_columns(
            (pl.col("quantity") * pl.col("unit_price_incl")).alias("line_amount_incl")
        )

    return frame.with_columns([
        pl.col(c).fill_null(0.0) for c in ("unit_price_incl", "line_amount_incl") if c in frame.columns
    ])


def _zero_priced(frame: pl.DataFrame) -> pl.Expr:
    """Placeholder rows: no price and no amount"""
    expr = pl.lit(True)
    for column in ("unit_price_incl", "line_amount_incl"):
        if column in frame.columns:
            expr = expr & (pl.col(column) == 0)
    return expr


def _flag_returns(frame: pl.DataFrame) -> pl.DataFrame:
    returns = pl.col("quantity") < 0
    if "line_amount_incl" in frame.columns:
        returns = returns | (pl.col("line_amount_incl") < 0)
    if "is_return" in frame.columns:
        returns = returns | pl.col("is_return")
    return frame.with_columns(returns.fill_null(False).alias("is_return"))


def _split(frame: pl.DataFrame, reason: pl.Expr, label: str, warnings: List[str]) -> pl.DataFrame:
    """Drop rows with a reason, reporting each one"""
    frame = frame.with_columns(reason.alias("_reason"))
    dropped = frame.filter(pl.col("_reason").is_not_null())
    for row, why in dropped.select("_row", "_reason").iter_rows():
        warnings.append(f"{label} row {row} dropped: {why}")
    return frame.filter(pl.col("_reason").is_null()).drop("_reason")


def _build(frame: pl.DataFrame, model: type, label: str, warnings: List[str]) -> List[Any]:
    records = []
    for row in frame.iter_rows(named=True):
        row_number = row.pop("_row")
        try:
            records.append(model.model_validate(row))
        except ValidationError as e:
            warnings.append(f"{label} row {row_number} dropped: {e.error_count()} validation errors")
    return records


def normalize_sales(df: pl.DataFrame, settings: Optional[IngestionSettings] = None) -> NormalizedRows:
    """
    Normalize a sales export into SaleLine records.

    Args:
        df: Raw sales table
        settings: Ingestion settings, defaults to the application settings

    Returns:
        NormalizedRows of SaleLine in source order

    Raises:
        StructuralError: if product id, product name or quantity has no column
    """
    settings = settings or get_settings().ingestion
    mapping = resolve_columns(df.columns, SALE_COLUMN_SYNONYMS)
    _require(mapping, SALE_REQUIRED_FIELDS, "sales", df)

    exprs = [
        _identifier(df, mapping["product_id"]).alias("product_id"),
        _text(mapping["product_name"]).alias("product_name"),
        _number(df, mapping["quantity"]).alias("quantity"),
    ]
    for name in MONEY_FIELDS:
        if name in mapping:
            exprs.append(_number(df, mapping[name], settings.amounts_in_cents).alias(name))
    for name in IDENTIFIER_FIELDS:
        if name in mapping:
            exprs.append(_identifier(df, mapping[name]).alias(name))
    for name in TEXT_FIELDS:
        if name in mapping:
            exprs.append(_text(mapping[name]).alias(name))
    if "date" in mapping:
        exprs.append(_datetime(df, mapping["date"], settings).alias("date"))
        exprs.append(_text(mapping["date"]).alias("_raw_date"))
    if "is_return" in mapping:
        exprs.append(_flag(mapping["is_return"]).alias("is_return"))

    frame = df.with_row_index("_row", offset=1).select([pl.col("_row")] + exprs)
    frame = _service_ids(frame, settings)
    frame = _unidentified_ids(frame, settings)
    frame = _fill_amounts(frame)
    frame = _flag_returns(frame)

    warnings: List[str] = []
    reason = (
        pl.when(_blank("product_id")).then(pl.lit("missing product id"))
        .when(_blank("product_name")).then(pl.lit("missing product name"))
        .when(pl.col("quantity").is_null()).then(pl.lit("missing or unreadable quantity"))
        .when((pl.col("quantity") == 0) & ~_zero_priced(frame)).then(pl.lit("zero quantity"))
        .otherwise(pl.lit(None, dtype=pl.Utf8))
    )
    frame = _split(frame, reason, "Sale", warnings)

    if "_raw_date" in frame.columns:
        unreadable = frame.filter(pl.col("date").is_null() & ~_blank("_raw_date")).height
        if unreadable:
            warnings.append(f"{unreadable} sale rows have an unreadable date")
        frame = frame.drop("_raw_date")

    records = _build(frame, SaleLine, "Sale", warnings)
    logger.info(
        f"Normalized {len(records)} of {len(df)} sale rows",
        columns=sorted(mapping),
        warnings=len(warnings),
    )
    return NormalizedRows(records=records, warnings=warnings, rows_read=len(df))


def normalize_products(df: pl.DataFrame) -> NormalizedRows:
    """
    Normalize a catalog export into ProductRecord records.

    Raises:
        StructuralError: if product id or name has no column
    """
    mapping = resolve_columns(df.columns, PRODUCT_COLUMN_SYNONYMS)
    _require(mapping, PRODUCT_REQUIRED_FIELDS, "products", df)

    exprs = [
        _identifier(df, mapping["id"]).alias("id"),
        _text(mapping["name"]).fill_null("").alias("name"),
    ]
    if "category" in mapping:
        exprs.append(_text(mapping["category"]).fill_null("").alias("category"))
    for name in ("purchase_price", "sell_price"):
        if name in mapping:
            exprs.append(_number(df, mapping[name]).alias(name))

    frame = df.with_row_index("_row", offset=1).select([pl.col("_row")] + exprs)

    warnings: List[str] = []
    reason = (
        pl.when(_blank("id")).then(pl.lit("missing product id"))
        .otherwise(pl.lit(None, dtype=pl.Utf8))
    )
    frame = _split(frame, reason, "Product", warnings)

    records = _build(frame, ProductRecord, "Product", warnings)
    logger.info(f"Normalized {len(records)} of {len(df)} product rows", warnings=len(warnings))
    return NormalizedRows(records=records, warnings=warnings, rows_read=len(df))


def composition_rows(document: Any) -> List[Any]:
    """
    Flatten a composition document into definition rows.

    Accepted shapes: a list of definitions, {"compositions": [...]}, or a
    mapping of composition type -> list of definitions.

    Raises:
        StructuralError: for any other shape
    """
    if isinstance(document, list):
        return document
    if isinstance(document, dict):
        if isinstance(document.get("compositions"), list):
            return document["compositions"]
        if document and all(isinstance(group, list) for group in document.values()):
            return [row for group in document.values() for row in group]
    raise StructuralError("compositions", "a list or a mapping of lists", document)


def load_sales(path: Union[str, Path], **read_options: Any) -> NormalizedRows:
    """Read and normalize a sales file"""
    return normalize_sales(read_table(path, **read_options))


def load_products(path: Union[str, Path], **read_options: Any) -> NormalizedRows:
    """Read and normalize a product catalog file"""
    return normalize_products(read_table(path, **read_options))


def load_compositions(path: Union[str, Path]) -> List[Any]:
    """Read a composition JSON document and flatten it"""
    return composition_rows(read_document(path))
