"""
Sale Classifier

Labels each sale line as original, composed or cumulated. Lines are first
grouped by order reference, then the rules below are tried in order and the
first one that matches wins:

1. product id is a known composite                      -> composed
2. another line of the same order is zero-priced and
   this line has a positive price and amount            -> composed
3. product id contains an underscore                    -> cumulated
4. zero unit price and zero amount                      -> cumulated
5. anything else                                        -> original

This is a best-effort heuristic. Rule order is part of the contract: a known
composite id that also contains an underscore is composed, never cumulated.
"""

from collections import Counter, defaultdict
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import structlog
from pydantic import ValidationError

from reconciler.config import get_settings
from reconciler.exceptions import StructuralError
from reconciler.models import LineKind, SaleLine

logger = structlog.get_logger(__name__)


class ClassificationRule(str, Enum):
    """Rule that decided a line's kind"""
    KNOWN_COMPOSITE = "known_composite"
    ORDER_COOCCURRENCE = "order_cooccurrence"
    SYNTHETIC_ID = "synthetic_id"
    ZERO_PRICE = "zero_price"
    DEFAULT = "default"


RULE_KINDS = {
    ClassificationRule.KNOWN_COMPOSITE: LineKind.COMPOSED,
    ClassificationRule.ORDER_COOCCURRENCE: LineKind.COMPOSED,
    ClassificationRule.SYNTHETIC_ID: LineKind.CUMULATED,
    ClassificationRule.ZERO_PRICE: LineKind.CUMULATED,
    ClassificationRule.DEFAULT: LineKind.ORIGINAL,
}


def coerce_sale_lines(lines: Any, argument: str = "lines") -> List[SaleLine]:
    """
    Accept SaleLine instances or mappings.

    Raises:
        StructuralError: if `lines` is not a list or a row is not a sale line
    """
    if not isinstance(lines, (list, tuple)):
        raise StructuralError(argument, "a list", lines)

    result = []
    for position, line in enumerate(lines):
        if isinstance(line, SaleLine):
            result.append(line)
            continue
        try:
            result.append(SaleLine.model_validate(line))
        except ValidationError as e:
            raise StructuralError(f"{argument}[{position}]", "a sale line", line) from e
    return result


class SaleClassifier:
    """
    Assigns line_kind to every sale line.

    Example:
        classifier = SaleClassifier()
        classified = classifier.classify(lines, catalog.composite_ids())
    """

    def __init__(self, no_order_key: Optional[str] = None):
        self.no_order_key = no_order_key or get_settings().engine.no_order_key

    def _order_key(self, line: SaleLine) -> str:
        return line.order_ref or self.no_order_key

    def _group_by_order(self, lines: Sequence[SaleLine]) -> Dict[str, List[SaleLine]]:
        """Index of order reference -> lines of that order"""
        groups: Dict[str, List[SaleLine]] = defaultdict(list)
        for line in lines:
            groups[self._order_key(line)].append(line)
        return groups

    @staticmethod
    def _has_silent_component(line: SaleLine, order_lines: List[SaleLine]) -> bool:
        """True when another product of the order is a zero-priced line"""
        return any(
            other.is_zero_priced and other.product_id != line.product_id
            for other in order_lines
        )

    def decide(
        self,
        line: SaleLine,
        order_lines: List[SaleLine],
        known_composites: Iterable[str],
    ) -> ClassificationRule:
        """Return the first rule matching `line`"""
        if line.product_id in known_composites:
            return ClassificationRule.KNOWN_COMPOSITE

        if (
            line.unit_price_incl > 0
            and line.line_amount_incl > 0
            and self._has_silent_component(line, order_lines)
        ):
            return ClassificationRule.ORDER_COOCCURRENCE

        if "_" in line.product_id:
            return ClassificationRule.SYNTHETIC_ID

        if line.is_zero_priced:
            return ClassificationRule.ZERO_PRICE

        return ClassificationRule.DEFAULT

    def classify_with_rules(
        self,
        lines: Sequence[Any],
        known_composites: Iterable[str],
    ) -> List[Tuple[SaleLine, ClassificationRule]]:
        """Classify and keep the deciding rule next to each line"""
        sale_lines = coerce_sale_lines(lines)
        composites = set(known_composites)
        groups = self._group_by_order(sale_lines)

        results = []
        for line in sale_lines:
            rule = self.decide(line, groups[self._order_key(line)], composites)
            results.append((line.model_copy(update={"line_kind": RULE_KINDS[rule]}), rule))

        counts = Counter(rule.value for _, rule in results)
        logger.info(
            f"Classified {len(results)} sale lines",
            orders=len(groups),
            **counts,
        )
        return results

    def classify(self, lines: Sequence[Any], known_composites: Iterable[str]) -> List[SaleLine]:
        """
        Classify sale lines.

        Args:
            lines: Sale lines (or mappings), in recorded order
            known_composites: Ids of composite products

        Returns:
            New lines, same length and order, with line_kind populated
        """
        return [line for line, _ in self.classify_with_rules(lines, known_composites)]


def classify(lines: Sequence[Any], known_composites: Iterable[str]) -> List[SaleLine]:
    """Convenience function: classify with default settings."""
    return SaleClassifier().classify(lines, known_composites)
