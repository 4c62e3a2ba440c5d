"""
Tabular Readers

Reads sales exports and product catalogs from CSV, JSON, JSON Lines,
Parquet and Excel files into Polars DataFrames, plus composition documents
from JSON. Values are kept as raw as possible; typing happens in the
normalizers.
"""

import json
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Union

import pandas as pd
import polars as pl
import structlog

from reconciler.exceptions import StructuralError

logger = structlog.get_logger(__name__)

NULL_VALUES = ["", "NULL", "null", "None", "NA", "N/A"]


class FileFormat(str, Enum):
    """Supported file formats"""
    CSV = "csv"
    JSON = "json"
    JSONL = "jsonl"
    PARQUET = "parquet"
    EXCEL = "excel"


SUFFIX_FORMATS = {
    ".csv": FileFormat.CSV,
    ".json": FileFormat.JSON,
    ".jsonl": FileFormat.JSONL,
    ".ndjson": FileFormat.JSONL,
    ".parquet": FileFormat.PARQUET,
    ".xlsx": FileFormat.EXCEL,
    ".xls": FileFormat.EXCEL,
}


def detect_format(path: Union[str, Path]) -> FileFormat:
    """Infer the file format from its suffix"""
    suffix = Path(path).suffix.lower()
    file_format = SUFFIX_FORMATS.get(suffix)
    if file_format is None:
        raise ValueError(f"Unsupported file format: {suffix or path}")
    return file_format


def _read_csv(path: Path, delimiter: str = ",") -> pl.DataFrame:
    """Read CSV file with Polars, every column as text"""
    return pl.read_csv(
        path,
        separator=delimiter,
        null_values=NULL_VALUES,
        infer_schema_length=0,
    )


def _rows_frame(rows: Any, path: Path) -> pl.DataFrame:
    # Exports wrap their rows as {"data": [...]}
    if isinstance(rows, dict) and isinstance(rows.get("data"), list):
        rows = rows["data"]
    if not isinstance(rows, list):
        raise StructuralError(str(path), "a JSON list of rows", rows)
    if not rows:
        return pl.DataFrame()
    return pl.from_dicts(rows, infer_schema_length=None)


def _read_json(path: Path) -> pl.DataFrame:
    """Read a JSON array of rows"""
    with open(path, "r", encoding="utf-8") as f:
        return _rows_frame(json.load(f), path)


def _read_jsonl(path: Path) -> pl.DataFrame:
    """Read JSON Lines (NDJSON) file"""
    return pl.read_ndjson(path)


def _read_parquet(path: Path) -> pl.DataFrame:
    """Read Parquet file"""
    return pl.read_parquet(path)


def _read_excel(path: Path, sheet: Optional[Union[str, int]] = None) -> pl.DataFrame:
    """Read one Excel sheet through pandas"""
    pdf = pd.read_excel(path, sheet_name=sheet if sheet is not None else 0, dtype=object)
    # Mixed object columns do not convert to Arrow, so text them first
    for column in pdf.columns:
        pdf[column] = pdf[column].map(lambda v: None if pd.isna(v) else str(v))
    pdf.columns = [str(c) for c in pdf.columns]
    return pl.from_pandas(pdf)


def read_table(
    path: Union[str, Path],
    file_format: Optional[FileFormat] = None,
    sheet: Optional[Union[str, int]] = None,
    delimiter: str = ",",
) -> pl.DataFrame:
    """
    Read a tabular file into a DataFrame.

    Args:
        path: File location
        file_format: Explicit format, inferred from the suffix when omitted
        sheet: Excel sheet name or index
        delimiter: CSV field separator

    Returns:
        Raw DataFrame, headers untouched
    """
    path = Path(path)
    file_format = file_format or detect_format(path)

    readers = {
        FileFormat.CSV: lambda: _read_csv(path, delimiter),
        FileFormat.JSON: lambda: _read_json(path),
        FileFormat.JSONL: lambda: _read_jsonl(path),
        FileFormat.PARQUET: lambda: _read_parquet(path),
        FileFormat.EXCEL: lambda: _read_excel(path, sheet),
    }
    df = readers[file_format]()

    # Drop fully empty rows
    if df.width:
        df = df.filter(~pl.all_horizontal(pl.all().is_null()))

    logger.info(f"Read {len(df)} rows from {path.name}", format=file_format.value, columns=df.width)
    return df


def read_document(path: Union[str, Path]) -> Any:
    """Read a JSON document (composition definitions, stored catalogs)"""
    with open(Path(path), "r", encoding="utf-8") as f:
        return json.load(f)
