"""
Catalog Unifier

Merges the master product catalog with composition definitions into one
UnifiedCatalog:
- Catalog products are seeded as simple records
- A composition sharing a catalog id upgrades that record in place (merged)
- Other compositions are appended as new composite records
- Components are resolved by explicit id, then by fuzzy name matching,
  falling back to zero-priced placeholders
- Composite purchase prices are derived from their components

Unification is a pure function of its inputs: records are copied, never
mutated, and malformed rows become warnings instead of errors.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import structlog
from pydantic import BaseModel, ValidationError

from reconciler.config import get_settings
from reconciler.exceptions import StructuralError
from reconciler.models import (
    CatalogStats,
    ComponentLink,
    ComponentSpec,
    CompositionDefinition,
    ProductKind,
    ProductOrigin,
    ProductRecord,
    UnifiedCatalog,
    placeholder_id,
)
from .compositions import composition_fingerprint, describe_composition
from .matcher import FuzzyMatcher

logger = structlog.get_logger(__name__)

STRUCTURAL_FIELDS = ("kind", "origin", "components")


def ensure_list(value: Any, argument: str) -> Sequence[Any]:
    """Reject anything that is not a list of rows."""
    if not isinstance(value, (list, tuple)):
        raise StructuralError(argument, "a list", value)
    return value


def _validate_rows(rows: Sequence[Any], model: type, label: str, warnings: List[str]) -> List[Any]:
    """Validate rows into `model`, skipping (and reporting) the bad ones."""
    valid = []
    for position, row in enumerate(rows):
        if isinstance(row, model):
            valid.append(row)
            continue
        try:
            if isinstance(row, BaseModel):
                row = row.model_dump()
            valid.append(model.model_validate(row))
        except ValidationError as e:
            message = f"{label} row {position} skipped: {e.error_count()} validation errors"
            warnings.append(message)
            logger.warning(message, row=repr(row)[:200])
    return valid


class CatalogUnifier:
    """
    Builds a UnifiedCatalog from products and compositions.

    Example:
        unifier = CatalogUnifier()
        catalog = unifier.unify(products, compositions)
        print(catalog.stats.composite, catalog.warnings)
    """

    def __init__(
        self,
        composition_category: Optional[str] = None,
        default_category: Optional[str] = None,
        schema_version: Optional[str] = None,
    ):
        engine = get_settings().engine
        self.composition_category = composition_category or engine.composition_category
        self.default_category = default_category or engine.default_category
        self.schema_version = schema_version or engine.schema_version

    def _seed_products(self, products: Sequence[Any], warnings: List[str]) -> List[ProductRecord]:
        """Copy catalog products as simple records, first occurrence of an id wins"""
        seeded: List[ProductRecord] = []
        seen = set()

        # Structure is decided here, not by the catalog source
        rows = [
            {k: v for k, v in row.items() if k not in STRUCTURAL_FIELDS}
            if isinstance(row, Mapping) else row
            for row in products
        ]

        for record in _validate_rows(rows, ProductRecord, "Product", warnings):
            if record.id in seen:
                warnings.append(f"Duplicate product id {record.id} ignored")
                continue
            seen.add(record.id)
            seeded.append(record.model_copy(update={
                "category": record.category or self.default_category,
                "kind": ProductKind.SIMPLE,
                "origin": ProductOrigin.CATALOG,
                "components": [],
            }))

        return seeded

    def _resolve_component(
        self,
        spec: ComponentSpec,
        matcher: FuzzyMatcher,
        by_id: Dict[str, ProductRecord],
    ) -> Tuple[ComponentLink, bool]:
        """Build the link for one component; second value is True for placeholders"""
        record = by_id.get(spec.id) if spec.id else None
        if record is None:
            record = matcher.match(spec.name)

        if record is None:
            return ComponentLink(
                component_id=placeholder_id(spec.name),
                component_name=spec.name,
                quantity=spec.quantity,
                purchase_price=0.0,
                sell_price=0.0,
            ), True

        return ComponentLink(
            component_id=record.id,
            component_name=record.name,
            quantity=spec.quantity,
            purchase_price=record.purchase_price,
            sell_price=record.sell_price,
        ), False

    def unify(self, products: Sequence[Any], compositions: Sequence[Any]) -> UnifiedCatalog:
        """
        Merge products and compositions.

        Args:
            products: ProductRecord instances or mappings
            compositions: CompositionDefinition instances or mappings

        Returns:
            UnifiedCatalog with per-row warnings attached

        Raises:
            StructuralError: if either argument is not a list
        """
        ensure_list(products, "products")
        ensure_list(compositions, "compositions")

        warnings: List[str] = []
        if not products:
            warnings.append("Product catalog is empty; every component will be a placeholder")

        seeded = self._seed_products(products, warnings)
        definitions = _validate_rows(compositions, CompositionDefinition, "Composition", warnings)

        # Records about to become composite are not matching candidates
        composition_ids = {d.id for d in definitions}
        candidates = [r for r in seeded if r.id not in composition_ids]
        matcher = FuzzyMatcher(candidates)
        by_id = {r.id: r for r in candidates}

        records: Dict[str, ProductRecord] = {r.id: r for r in seeded}
        catalog_ids = set(records)
        applied = set()
        placeholders: Dict[str, int] = {}

        for definition in definitions:
            specs, parse_warnings = definition.parse_components()
            warnings.extend(parse_warnings)
            if not specs:
                warnings.append(f"Composition {definition.id} has no usable components, skipped")
                continue

            if definition.id in applied:
                warnings.append(f"Composition {definition.id} defined more than once, last definition kept")
            applied.add(definition.id)

            links = []
            placeholders[definition.id] = 0
            for spec in specs:
                link, is_placeholder = self._resolve_component(spec, matcher, by_id)
                if is_placeholder:
                    placeholders[definition.id] += 1
                    warnings.append(
                        f"Composition {definition.id}: component '{spec.name}' not found, "
                        f"placeholder {link.component_id} used"
                    )
                links.append(link)

            purchase_price = sum(link.line_cost for link in links)

            if definition.id in catalog_ids:
                base = records[definition.id]
                records[definition.id] = base.model_copy(update={
                    "name": base.name or definition.name,
                    "kind": ProductKind.COMPOSITE,
                    "origin": ProductOrigin.MERGED,
                    "components": links,
                    "purchase_price": purchase_price,
                })
            else:
                records[definition.id] = ProductRecord(
                    id=definition.id,
                    name=definition.name or describe_composition(definition.id, specs),
                    category=self.composition_category,
                    purchase_price=purchase_price,
                    sell_price=0.0,
                    kind=ProductKind.COMPOSITE,
                    origin=ProductOrigin.COMPOSITION,
                    components=links,
                )

        unified = list(records.values())
        now = datetime.now(timezone.utc)
        catalog = UnifiedCatalog(
            products=unified,
            created_at=now,
            modified_at=now,
            schema_version=self.schema_version,
            composition_fingerprint=composition_fingerprint(compositions),
            stats=CatalogStats.from_products(unified, placeholder_components=sum(placeholders.values())),
            warnings=warnings,
        )

        logger.info(
            "Catalog unified",
            total=catalog.stats.total,
            composite=catalog.stats.composite,
            placeholders=catalog.stats.placeholder_components,
            warnings=len(warnings),
        )
        return catalog


def unify(products: Sequence[Any], compositions: Sequence[Any]) -> UnifiedCatalog:
    """Convenience function: unify with default settings."""
    return CatalogUnifier().unify(products, compositions)
