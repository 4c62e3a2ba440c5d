"""
Catalog Models

Product, component and composition records exchanged with the
reconciliation engine, and the unified catalog document it produces.
"""

import re
from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Dict, List, Optional, Tuple

from pydantic import (
    AliasChoices,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    PrivateAttr,
    ValidationError,
    field_validator,
    model_validator,
)

from reconciler.exceptions import StructuralError

# "<name> (<quantity>)", e.g. "BK VERRE VILLAGE TROPEZ (1)"
ENCODED_COMPONENT_PATTERN = re.compile(r"^(.+?)\s*\((\d+)\)$")
PRODUCT_CODE_PATTERN = re.compile(r"\b(\d{4})\b")


def coerce_identifier(value: Any) -> Any:
    """Turn spreadsheet-style numeric ids (1234, 1234.0) into trimmed text."""
    if isinstance(value, bool):
        return value
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        return value.strip()
    return value


Identifier = Annotated[str, BeforeValidator(coerce_identifier)]


def placeholder_id(name: str) -> str:
    """Identifier synthesized for a component missing from the catalog."""
    return re.sub(r"\s+", "_", name.strip()).upper()


class ProductKind(str, Enum):
    """Structural kind of a catalog product"""
    SIMPLE = "simple"
    COMPOSITE = "composite"


class ProductOrigin(str, Enum):
    """Which source a unified record came from"""
    CATALOG = "catalog"
    COMPOSITION = "composition"
    MERGED = "merged"


class ComponentLink(BaseModel):
    """Quantity-scaled reference from a composite product to a simple one"""
    component_id: str
    component_name: str
    quantity: int = Field(gt=0)
    purchase_price: float = 0.0
    sell_price: float = 0.0

    @property
    def line_cost(self) -> float:
        return self.purchase_price * self.quantity


class ProductRecord(BaseModel):
    """Single product of the catalog, simple or composite"""
    model_config = ConfigDict(populate_by_name=True)

    id: Identifier = Field(min_length=1)
    name: str = ""
    category: str = ""
    purchase_price: float = 0.0
    sell_price: float = 0.0
    kind: ProductKind = ProductKind.SIMPLE
    origin: ProductOrigin = ProductOrigin.CATALOG
    components: List[ComponentLink] = Field(default_factory=list)

    @field_validator("purchase_price", "sell_price", mode="before")
    @classmethod
    def default_missing_price(cls, v: Any) -> Any:
        return 0.0 if v is None else v

    @model_validator(mode="after")
    def check_components(self) -> "ProductRecord":
        if self.kind == ProductKind.COMPOSITE and not self.components:
            raise ValueError(f"Composite product {self.id!r} has no components")
        return self

    @property
    def is_composite(self) -> bool:
        return self.kind == ProductKind.COMPOSITE


class ComponentSpec(BaseModel):
    """A {name, quantity} pair as written in a composition definition"""
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(min_length=1, validation_alias=AliasChoices("name", "nom"))
    quantity: int = Field(default=1, gt=0, validation_alias=AliasChoices("quantity", "quantite"))
    id: Optional[Identifier] = Field(default=None, validation_alias=AliasChoices("id", "component_id"))

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Component name is empty")
        return v


class CompositionDefinition(BaseModel):
    """
    User-authored composition before merging.

    Components come either as objects ({name, quantity}) or as encoded
    strings of the form "<name> (<quantity>)". Entries that cannot be read
    are dropped by parse_components() and reported as warnings.
    """
    model_config = ConfigDict(populate_by_name=True)

    id: Identifier = Field(min_length=1)
    name: str = Field(default="", validation_alias=AliasChoices("name", "nom"))
    components: Optional[List[Any]] = Field(
        default=None, validation_alias=AliasChoices("components", "composants")
    )
    encoded: Optional[List[Any]] = Field(
        default=None, validation_alias=AliasChoices("encoded", "compositions")
    )

    @field_validator("name", mode="before")
    @classmethod
    def default_name(cls, v: Any) -> Any:
        return "" if v is None else str(v).strip()

    @staticmethod
    def parse_encoded(entry: str) -> Optional[ComponentSpec]:
        """Parse one "<name> (<quantity>)" string, None when malformed."""
        match = ENCODED_COMPONENT_PATTERN.match(entry.strip())
        if not match:
            return None
        name = match.group(1).strip()
        quantity = int(match.group(2))
        if not name or quantity <= 0:
            return None
        code = PRODUCT_CODE_PATTERN.search(name)
        return ComponentSpec(name=name, quantity=quantity, id=code.group(1) if code else None)

    def parse_components(self) -> Tuple[List[ComponentSpec], List[str]]:
        """
        Read the component list in whichever format it was written.

        Returns:
            Tuple of parsed components and warnings for dropped entries
        """
        specs: List[ComponentSpec] = []
        warnings: List[str] = []

        if self.components is not None:
            for entry in self.components:
                try:
                    specs.append(ComponentSpec.model_validate(entry))
                except ValidationError as e:
                    warnings.append(
                        f"Composition {self.id}: dropped component {entry!r} "
                        f"({e.error_count()} validation errors)"
                    )
        elif self.encoded is not None:
            for entry in self.encoded:
                spec = self.parse_encoded(entry) if isinstance(entry, str) else None
                if spec is None:
                    warnings.append(f"Composition {self.id}: dropped malformed component {entry!r}")
                    continue
                specs.append(spec)

        return specs, warnings

    def raw_components(self) -> List[Any]:
        """Components exactly as supplied, for fingerprinting."""
        if self.components is not None:
            return list(self.components)
        return list(self.encoded or [])


class CatalogStats(BaseModel):
    """Aggregate counts of a unified catalog"""
    total: int = 0
    simple: int = 0
    composite: int = 0
    by_origin: Dict[str, int] = Field(default_factory=dict)
    placeholder_components: int = 0

    @classmethod
    def from_products(
        cls,
        products: List[ProductRecord],
        placeholder_components: int = 0,
    ) -> "CatalogStats":
        by_origin = {origin.value: 0 for origin in ProductOrigin}
        for product in products:
            by_origin[product.origin.value] += 1
        composite = sum(1 for p in products if p.is_composite)
        return cls(
            total=len(products),
            simple=len(products) - composite,
            composite=composite,
            by_origin=by_origin,
            placeholder_components=placeholder_components,
        )


class UnifiedCatalog(BaseModel):
    """
    Reconciled catalog document.

    This is the persisted/exported artifact; `warnings` is diagnostic output
    of the run that built it and is not part of the document.
    """
    products: List[ProductRecord]
    created_at: datetime
    modified_at: datetime
    schema_version: str
    composition_fingerprint: str
    stats: CatalogStats
    warnings: List[str] = Field(default_factory=list, exclude=True)

    _index: Optional[Dict[str, ProductRecord]] = PrivateAttr(default=None)

    def _by_id(self) -> Dict[str, ProductRecord]:
        if self._index is None:
            self._index = {p.id: p for p in self.products}
        return self._index

    def get(self, product_id: str) -> Optional[ProductRecord]:
        """Find a product by id"""
        return self._by_id().get(product_id)

    def composite_ids(self) -> set:
        """Ids of every composite product"""
        return {p.id for p in self.products if p.is_composite}

    def search(self, term: str) -> List[ProductRecord]:
        """Case-insensitive search on id or name"""
        needle = term.strip().lower()
        if not needle:
            return []
        return [
            p for p in self.products
            if needle in p.id.lower() or needle in p.name.lower()
        ]

    def to_document(self) -> Dict[str, Any]:
        """JSON-compatible document for storage or export"""
        return self.model_dump(mode="json")

    @classmethod
    def from_document(cls, document: Any) -> "UnifiedCatalog":
        """Rebuild a catalog from a stored document"""
        if not isinstance(document, dict):
            raise StructuralError("document", "a mapping", document)
        if not isinstance(document.get("products"), list):
            raise StructuralError("document['products']", "a list", document.get("products"))
        return cls.model_validate(document)
