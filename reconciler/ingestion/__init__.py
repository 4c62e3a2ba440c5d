"""
Data Ingestion Module
"""
from .columns import PRODUCT_COLUMN_SYNONYMS, SALE_COLUMN_SYNONYMS, resolve_columns
from .normalizers import (
    NormalizedRows,
    composition_rows,
    load_compositions,
    load_products,
    load_sales,
    normalize_products,
    normalize_sales,
)
from .readers import FileFormat, read_document, read_table

__all__ = [
    "FileFormat",
    "NormalizedRows",
    "PRODUCT_COLUMN_SYNONYMS",
    "SALE_COLUMN_SYNONYMS",
    "composition_rows",
    "load_compositions",
    "load_products",
    "load_sales",
    "normalize_products",
    "normalize_sales",
    "read_document",
    "read_table",
    "resolve_columns",
]
