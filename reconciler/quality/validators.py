"""
Data Validation Module

Rule-based quality checks over catalog and sales data.
Records are projected onto Polars DataFrames and checked with:
- Null checks
- Uniqueness checks
- Range/boundary checks
- Expression checks (rows matching a failing condition)

Failures never raise; they are summarized in a ValidationResult whose
issues feed the warnings of a unification or decomposition run.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence

import polars as pl
import structlog

from reconciler.config import get_settings
from reconciler.models import SaleLine, UnifiedCatalog

logger = structlog.get_logger(__name__)

CATALOG_SCHEMA = {
    "id": pl.Utf8,
    "name": pl.Utf8,
    "kind": pl.Utf8,
    "purchase_price": pl.Float64,
    "sell_price": pl.Float64,
    "component_count": pl.Int64,
}

SALES_SCHEMA = {
    "product_id": pl.Utf8,
    "order_ref": pl.Utf8,
    "quantity": pl.Float64,
    "unit_price_incl": pl.Float64,
    "line_amount_incl": pl.Float64,
    "line_kind": pl.Utf8,
}


class ValidationSeverity(str, Enum):
    """Severity levels for validation failures"""
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class ValidationStatus(str, Enum):
    """Overall validation status"""
    PASSED = "passed"
    FAILED = "failed"
    PARTIAL = "partial"


@dataclass
class ValidationCheck:
    """Single validation check result"""
    name: str
    passed: bool
    severity: ValidationSeverity
    message: str
    details: Optional[Dict[str, Any]] = None
    failed_rows: int = 0
    total_rows: int = 0


@dataclass
class ValidationResult:
    """Complete validation suite result"""
    status: ValidationStatus
    total_checks: int
    passed_checks: int
    failed_checks: int
    warning_count: int
    checks: List[ValidationCheck] = field(default_factory=list)
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None

    @property
    def success_rate(self) -> float:
        """Percentage of passed checks"""
        if self.total_checks == 0:
            return 100.0
        return (self.passed_checks / self.total_checks) * 100

    def issues(self) -> List[str]:
        """Messages of every failed check, errors first"""
        failed = [c for c in self.checks if not c.passed]
        failed.sort(key=lambda c: c.severity != ValidationSeverity.ERROR)
        return [f"{c.name}: {c.message}" for c in failed]


def catalog_frame(catalog: UnifiedCatalog) -> pl.DataFrame:
    """Project catalog products onto a DataFrame"""
    return pl.DataFrame(
        {
            "id": [p.id for p in catalog.products],
            "name": [p.name for p in catalog.products],
            "kind": [p.kind.value for p in catalog.products],
            "purchase_price": [p.purchase_price for p in catalog.products],
            "sell_price": [p.sell_price for p in catalog.products],
            "component_count": [len(p.components) for p in catalog.products],
        },
        schema=CATALOG_SCHEMA,
    )


def sales_frame(lines: Sequence[SaleLine]) -> pl.DataFrame:
    """Project sale lines onto a DataFrame"""
    return pl.DataFrame(
        {
            "product_id": [line.product_id for line in lines],
            "order_ref": [line.order_ref for line in lines],
            "quantity": [float(line.quantity) for line in lines],
            "unit_price_incl": [float(line.unit_price_incl) for line in lines],
            "line_amount_incl": [float(line.line_amount_incl) for line in lines],
            "line_kind": [line.line_kind.value for line in lines],
        },
        schema=SALES_SCHEMA,
    )


class DataValidator:
    """
    Data validator with a chainable check suite.

    Example:
        validator = DataValidator()
        validator.add_not_null_check("product_id")
        validator.add_range_check("sell_price", min_value=0)
        result = validator.validate(df)
    """

    def __init__(self, strict_mode: bool = False):
        self.strict_mode = strict_mode  # Fail on any warning
        self._checks: List[Callable[[pl.DataFrame], ValidationCheck]] = []

    def reset(self) -> None:
        """Reset validator state"""
        self._checks = []

    @staticmethod
    def _missing_column(name: str, column: str, severity: ValidationSeverity) -> ValidationCheck:
        return ValidationCheck(
            name=name,
            passed=False,
            severity=severity,
            message=f"Column '{column}' not found",
        )

    def add_not_null_check(
        self,
        column: str,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Add check for null values in column"""
        def check(df: pl.DataFrame) -> ValidationCheck:
            name = f"not_null_{column}"
            if column not in df.columns:
                return self._missing_column(name, column, severity)

            null_count = df[column].null_count()
            passed = null_count == 0
            return ValidationCheck(
                name=name,
                passed=passed,
                severity=severity,
                message=f"Column '{column}' has {null_count} null values" if not passed else f"Column '{column}' has no null values",
                details={"null_count": null_count},
                failed_rows=null_count,
                total_rows=len(df),
            )

        self._checks.append(check)
        return self

    def add_unique_check(
        self,
        column: str,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Add check for uniqueness of column values"""
        def check(df: pl.DataFrame) -> ValidationCheck:
            name = f"unique_{column}"
            if column not in df.columns:
                return self._missing_column(name, column, severity)

            duplicates = df.filter(pl.col(column).is_duplicated())
            duplicate_values = sorted(set(duplicates[column].drop_nulls().to_list()))
            passed = duplicates.height == 0
            return ValidationCheck(
                name=name,
                passed=passed,
                severity=severity,
                message=f"Column '{column}' has duplicated values {duplicate_values[:10]}" if not passed else f"Column '{column}' values are unique",
                details={"duplicate_values": duplicate_values},
                failed_rows=duplicates.height,
                total_rows=len(df),
            )

        self._checks.append(check)
        return self

    def add_range_check(
        self,
        column: str,
        min_value: Optional[float] = None,
        max_value: Optional[float] = None,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Add check for values within specified range"""
        conditions = []
        if min_value is not None:
            conditions.append(pl.col(column) < min_value)
        if max_value is not None:
            conditions.append(pl.col(column) > max_value)

        def check(df: pl.DataFrame) -> ValidationCheck:
            name = f"range_{column}"
            if column not in df.columns:
                return self._missing_column(name, column, severity)
            if not conditions:
                return ValidationCheck(name=name, passed=True, severity=severity, message="No range specified")

            combined = conditions[0]
            for cond in conditions[1:]:
                combined = combined | cond

            out_of_range = df.filter(combined).height
            passed = out_of_range == 0
            return ValidationCheck(
                name=name,
                passed=passed,
                severity=severity,
                message=f"Column '{column}' has {out_of_range} values outside range [{min_value}, {max_value}]" if not passed else "All values in range",
                details={"min": min_value, "max": max_value},
                failed_rows=out_of_range,
                total_rows=len(df),
            )

        self._checks.append(check)
        return self

    def add_expression_check(
        self,
        name: str,
        failing: pl.Expr,
        message_on_fail: str,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
        label_column: Optional[str] = None,
    ) -> "DataValidator":
        """
        Add check counting rows that match a failing condition.

        Args:
            name: Check name
            failing: Boolean expression, True for offending rows
            message_on_fail: Message prefix when rows fail
            label_column: Column whose values identify offending rows
        """
        def check(df: pl.DataFrame) -> ValidationCheck:
            try:
                offending = df.filter(failing)
            except pl.exceptions.PolarsError as e:
                return ValidationCheck(
                    name=name,
                    passed=False,
                    severity=severity,
                    message=f"Check failed with error: {e}",
                )

            passed = offending.height == 0
            labels: List[Any] = []
            if not passed and label_column and label_column in offending.columns:
                labels = offending[label_column].head(10).to_list()
            message = "Check passed"
            if not passed:
                message = f"{message_on_fail} ({offending.height} rows)"
                if labels:
                    message += f": {labels}"

            return ValidationCheck(
                name=name,
                passed=passed,
                severity=severity,
                message=message,
                details={"labels": labels},
                failed_rows=offending.height,
                total_rows=len(df),
            )

        self._checks.append(check)
        return self

    def validate(self, df: pl.DataFrame) -> ValidationResult:
        """
        Run all validation checks on DataFrame.

        Args:
            df: DataFrame to validate

        Returns:
            ValidationResult with all check results
        """
        started_at = datetime.now(timezone.utc)
        results = []

        logger.debug(f"Running {len(self._checks)} validation checks on {len(df)} rows")

        for check_func in self._checks:
            result = check_func(df)
            results.append(result)

            if not result.passed:
                logger.warning(
                    f"Validation failed: {result.name}",
                    message=result.message,
                    severity=result.severity.value,
                )

        passed_checks = sum(1 for r in results if r.passed)
        failed_checks = sum(1 for r in results if not r.passed and r.severity == ValidationSeverity.ERROR)
        warning_count = sum(1 for r in results if not r.passed and r.severity == ValidationSeverity.WARNING)

        if failed_checks > 0:
            status = ValidationStatus.FAILED
        elif warning_count > 0 and self.strict_mode:
            status = ValidationStatus.FAILED
        elif warning_count > 0:
            status = ValidationStatus.PARTIAL
        else:
            status = ValidationStatus.PASSED

        return ValidationResult(
            status=status,
            total_checks=len(results),
            passed_checks=passed_checks,
            failed_checks=failed_checks,
            warning_count=warning_count,
            checks=results,
            started_at=started_at,
            completed_at=datetime.now(timezone.utc),
        )


def create_catalog_validator() -> DataValidator:
    """Create pre-configured validator for unified catalogs"""
    return (
        DataValidator()
        .add_not_null_check("id")
        .add_unique_check("id")
        .add_range_check("purchase_price", min_value=0, severity=ValidationSeverity.WARNING)
        .add_range_check("sell_price", min_value=0, severity=ValidationSeverity.WARNING)
        .add_expression_check(
            "composite_components",
            (pl.col("kind") == "composite") & (pl.col("component_count") == 0),
            "Composite products without components",
            label_column="id",
        )
    )


def create_sales_validator(tolerance: Optional[float] = None) -> DataValidator:
    """Create pre-configured validator for sale lines"""
    tolerance = get_settings().engine.amount_tolerance if tolerance is None else tolerance
    zero_priced = (pl.col("unit_price_incl") == 0) & (pl.col("line_amount_incl") == 0)
    return (
        DataValidator()
        .add_not_null_check("product_id")
        .add_expression_check(
            "non_zero_quantity",
            (pl.col("quantity") == 0) & ~zero_priced,
            "Priced lines with zero quantity",
            severity=ValidationSeverity.WARNING,
            label_column="product_id",
        )
        .add_expression_check(
            "amount_consistency",
            (pl.col("line_amount_incl") - pl.col("quantity") * pl.col("unit_price_incl")).abs() > tolerance,
            f"Line amount differs from quantity x unit price by more than {tolerance}",
            severity=ValidationSeverity.WARNING,
            label_column="product_id",
        )
    )


def validate_catalog(catalog: UnifiedCatalog) -> ValidationResult:
    """Run the catalog suite on a unified catalog"""
    return create_catalog_validator().validate(catalog_frame(catalog))


def validate_sales(lines: Sequence[SaleLine], tolerance: Optional[float] = None) -> ValidationResult:
    """Run the sales suite on sale lines"""
    return create_sales_validator(tolerance).validate(sales_frame(lines))
