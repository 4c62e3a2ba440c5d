"""
Test Suite Configuration
"""
import pytest
from typing import Any, Dict, List

import polars as pl

from reconciler.config import Settings
from reconciler.models import SaleLine, UnifiedCatalog
from reconciler.storage import CatalogStore, MemoryBackend
from reconciler.transformation import unify


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """Create test settings"""
    return Settings(
        app_env="testing",
        debug=True,
    )


@pytest.fixture
def sample_products() -> List[Dict[str, Any]]:
    """Simple catalog products"""
    return [
        {"id": "1001", "name": "BK VERRE VILLAGE TROPEZ", "category": "VERRERIE",
         "purchase_price": 2.5, "sell_price": 8.0},
        {"id": "1002", "name": "VASQUE INOX 40CM", "category": "ACCESSOIRES",
         "purchase_price": 20.0, "sell_price": 55.0},
        {"id": "1003", "name": "Champagne Brut 75cl", "category": "CHAMPAGNE",
         "purchase_price": 18.0, "sell_price": 45.0},
        {"id": "2000", "name": "COFFRET PLAGE", "category": "COFFRETS",
         "purchase_price": 0.0, "sell_price": 120.0},
    ]


@pytest.fixture
def sample_compositions() -> List[Dict[str, Any]]:
    """Composition definitions in both component formats"""
    return [
        {
            "id": "2000",
            "nom": "COFFRET PLAGE",
            "composants": [
                {"nom": "VASQUE INOX 40CM", "quantite": 1},
                {"nom": "bk verre village tropez", "quantite": 6},
            ],
        },
        {
            "id": "9001",
            "nom": "DUO CHAMPAGNE",
            "compositions": ["Champagne Brut 75cl (2)", "BK VERRE VILLAGE TROPEZ (2)"],
        },
    ]


@pytest.fixture
def sample_catalog(sample_products, sample_compositions) -> UnifiedCatalog:
    """Unified catalog built from the sample inputs"""
    return unify(sample_products, sample_compositions)


@pytest.fixture
def sample_sale_lines() -> List[SaleLine]:
    """One composite order with silent components, one regular order"""
    return [
        SaleLine(product_id="9001", product_name="DUO CHAMPAGNE", quantity=3,
                 unit_price_incl=95.0, line_amount_incl=285.0, order_ref="CMD-1", store="Gassin"),
        SaleLine(product_id="1003", product_name="Champagne Brut 75cl", quantity=6,
                 unit_price_incl=0.0, line_amount_incl=0.0, order_ref="CMD-1"),
        SaleLine(product_id="1001", product_name="BK VERRE VILLAGE TROPEZ", quantity=2,
                 unit_price_incl=8.0, line_amount_incl=16.0, order_ref="CMD-2"),
    ]


@pytest.fixture
def memory_store() -> CatalogStore:
    """Catalog store backed by process memory"""
    return CatalogStore(MemoryBackend())


@pytest.fixture
def sample_sales_df() -> pl.DataFrame:
    """Sales export with French headers, as read from a spreadsheet"""
    return pl.DataFrame({
        "Date": ["15/06/2024 10:30:00", "15/06/2024 10:30:00", "2024-06-16", "not a date", None],
        "Id": ["9001", "1003.0", None, "1001", ""],
        "Produit": ["DUO CHAMPAGNE", "Champagne Brut 75cl", "Frais de port", "BK VERRE", "Ligne vide"],
        "Qté": ["1", "2", "1", "-1", "1"],
        "Prix unitaire TTC": ["95,00 €", "0", "6.90", "8", "3"],
        "Montant TTC": ["95,00", "0", "6.90", "-8", "3"],
        "Commande": ["CMD-1", "CMD-1", "CMD-1", "CMD-2", "CMD-3"],
        "Boutique": [" Gassin ", "Gassin", "Gassin", "Ramatuelle", "Gassin"],
    })


@pytest.fixture
def sample_products_df() -> pl.DataFrame:
    """Catalog export with French headers and float ids"""
    return pl.DataFrame({
        "Id": [1001.0, 1002.0, None],
        "Nom": ["BK VERRE VILLAGE TROPEZ", "VASQUE INOX 40CM", "Sans id"],
        "Catégorie": ["VERRERIE", None, "X"],
        "Prix achat HT": ["2,50", "20", "1"],
        "Prix vente TTC": [8.0, 55.0, 2.0],
    })
