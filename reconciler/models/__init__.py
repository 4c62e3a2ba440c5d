"""
Domain Models
"""
from .catalog import (
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
from .sales import LineKind, SaleLine

__all__ = [
    "CatalogStats",
    "ComponentLink",
    "ComponentSpec",
    "CompositionDefinition",
    "ProductKind",
    "ProductOrigin",
    "ProductRecord",
    "UnifiedCatalog",
    "placeholder_id",
    "LineKind",
    "SaleLine",
]
