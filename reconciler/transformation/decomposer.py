"""
Sale Decomposer

Expands composed sale lines into one movement line per component.
The composite keeps the full billed amount; component lines are priced at
zero so revenue is never counted twice while unit movements are preserved.
"""

from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence

import structlog

from reconciler.models import LineKind, ProductRecord, SaleLine, UnifiedCatalog
from .classifier import coerce_sale_lines

logger = structlog.get_logger(__name__)

# Parent fields carried onto component lines
INHERITED_FIELDS = (
    "date",
    "order_ref",
    "store",
    "cashier",
    "client",
    "payment",
    "operation_id",
    "is_return",
)


@dataclass
class DecompositionResult:
    """Output of a decomposition run"""
    lines: List[SaleLine]
    added_component_count: int
    composites_found: int = 0
    anomalies: List[str] = field(default_factory=list)


@dataclass
class ComponentMovement:
    """Units of one component moved through composite sales"""
    component_id: str
    component_name: str
    quantity: float = 0.0
    lines: int = 0


class SaleDecomposer:
    """
    Decomposes composed sale lines using a unified catalog.

    Example:
        decomposer = SaleDecomposer(catalog)
        result = decomposer.decompose(classified_lines)
    """

    def __init__(self, catalog: UnifiedCatalog):
        self.catalog = catalog

    def _component_lines(self, line: SaleLine, product: ProductRecord) -> List[SaleLine]:
        inherited = {name: getattr(line, name) for name in INHERITED_FIELDS}
        lines = []
        for link in product.components:
            component = self.catalog.get(link.component_id)
            lines.append(SaleLine(
                **inherited,
                product_id=link.component_id,
                product_name=link.component_name,
                quantity=line.quantity * link.quantity,
                unit_price_incl=0.0,
                line_amount_incl=0.0,
                category=component.category if component else None,
                line_kind=LineKind.CUMULATED,
            ))
        return lines

    def decompose(self, lines: Sequence[Any]) -> DecompositionResult:
        """
        Emit each composed line followed by its component lines.

        Lines that are not composed pass through unchanged. A composed line
        whose product is missing from the catalog, or is not a composite,
        also passes through and is reported as an anomaly.
        """
        sale_lines = coerce_sale_lines(lines)
        output: List[SaleLine] = []
        anomalies: List[str] = []
        added = 0
        composites_found = 0

        for line in sale_lines:
            output.append(line.model_copy())
            if line.line_kind != LineKind.COMPOSED:
                continue

            product = self.catalog.get(line.product_id)
            if product is None:
                anomalies.append(
                    f"Composed line {line.product_id} ({line.product_name}) not found in catalog"
                )
                continue
            if not product.is_composite:
                anomalies.append(
                    f"Composed line {line.product_id} ({line.product_name}) is not a composite in catalog"
                )
                continue

            components = self._component_lines(line, product)
            output.extend(components)
            added += len(components)
            composites_found += 1

        for anomaly in anomalies:
            logger.warning(anomaly)

        logger.info(
            f"Decomposition complete: {len(output)} lines (+{added} components)",
            composites=composites_found,
            anomalies=len(anomalies),
        )
        return DecompositionResult(
            lines=output,
            added_component_count=added,
            composites_found=composites_found,
            anomalies=anomalies,
        )


def decompose(lines: Sequence[Any], catalog: UnifiedCatalog) -> DecompositionResult:
    """Convenience function: decompose `lines` against `catalog`."""
    return SaleDecomposer(catalog).decompose(lines)


def component_movements(lines: Sequence[SaleLine]) -> Dict[str, ComponentMovement]:
    """Aggregate component quantities over the cumulated lines of a run"""
    movements: "OrderedDict[str, ComponentMovement]" = OrderedDict()
    for line in lines:
        if line.line_kind != LineKind.CUMULATED:
            continue
        movement = movements.get(line.product_id)
        if movement is None:
            movement = ComponentMovement(line.product_id, line.product_name)
            movements[line.product_id] = movement
        movement.quantity += line.quantity
        movement.lines += 1
    return movements
