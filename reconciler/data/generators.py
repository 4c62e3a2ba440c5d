"""
Synthetic Data Generator

Generates realistic retail data for demos and tests.
Includes:
- A product catalog export (French headers, 4-digit ids)
- Composition definitions in both object and encoded formats
- A sales export where composites are sold with silent component rows
"""

import json
import random
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional

import numpy as np
import polars as pl
from faker import Faker

# =============================================================================
# CONFIGURATION
# =============================================================================

CATEGORIES = ["VERRERIE", "ACCESSOIRES", "SPIRITUEUX", "CHAMPAGNE", "TEXTILE"]
MAIN_ITEMS = ["VASQUE", "SEAU", "SOBAG"]
STORES = ["Saint-Tropez", "Ramatuelle", "Gassin"]
PAYMENTS = ["CB", "Espèces", "Chèque", "Virement"]

PRODUCT_COLUMNS = {
    "id": "Id",
    "name": "Nom",
    "category": "Catégorie",
    "purchase_price": "Prix achat HT",
    "sell_price": "Prix vente TTC",
}


# =============================================================================
# GENERATORS
# =============================================================================

class ProductGenerator:
    """Generate a product catalog export"""

    def __init__(self, seed: int = 42):
        self.fake = Faker("fr_FR")
        self.fake.seed_instance(seed)
        self.random = random.Random(seed)

    def generate(self, n: int = 200) -> pl.DataFrame:
        """Generate n simple products with ids 1000, 1001, ..."""
        products = []
        for i in range(n):
            category = self.random.choice(CATEGORIES)
            if i < len(MAIN_ITEMS) * 3:
                label = f"{MAIN_ITEMS[i % len(MAIN_ITEMS)]} {self.fake.word().upper()}"
            else:
                label = f"{category[:2]} {self.fake.word().upper()} {self.fake.word().upper()}"

            sell_price = round(self.random.uniform(5, 250), 2)
            products.append({
                PRODUCT_COLUMNS["id"]: str(1000 + i),
                PRODUCT_COLUMNS["name"]: label,
                PRODUCT_COLUMNS["category"]: category,
                PRODUCT_COLUMNS["purchase_price"]: round(sell_price * self.random.uniform(0.3, 0.6), 2),
                PRODUCT_COLUMNS["sell_price"]: sell_price,
            })

        return pl.DataFrame(products)


class CompositionGenerator:
    """Generate composition definitions from a product catalog"""

    def __init__(self, products_df: pl.DataFrame, seed: int = 42):
        self.fake = Faker("fr_FR")
        self.fake.seed_instance(seed)
        self.random = random.Random(seed)
        self.products = products_df.select([
            PRODUCT_COLUMNS["id"], PRODUCT_COLUMNS["name"],
        ]).rows()

    def _component_names(self, count: int) -> List[str]:
        names = [name for _, name in self.random.sample(self.products, count)]
        # Case and spacing drift the matcher has to absorb
        names = [n.lower() if self.random.random() < 0.2 else n for n in names]
        if self.random.random() < 0.1:
            names.append(f"ARTICLE {self.fake.word().upper()} INCONNU")
        return names

    def generate(self, n: int = 20, merged_ratio: float = 0.2) -> List[Dict[str, Any]]:
        """
        Generate n compositions.

        A share of them reuses a catalog id (merged composites); half are
        written with encoded "<name> (<qty>)" components.
        """
        compositions = []
        catalog_ids = [pid for pid, _ in self.products]
        for i in range(n):
            if self.random.random() < merged_ratio:
                composition_id = self.random.choice(catalog_ids)
            else:
                composition_id = str(9000 + i)

            names = self._component_names(self.random.randint(2, 5))
            quantities = [self.random.randint(1, 4) for _ in names]
            definition: Dict[str, Any] = {
                "id": composition_id,
                "nom": f"COFFRET {self.fake.word().upper()}" if self.random.random() < 0.7 else "",
            }
            if i % 2:
                definition["compositions"] = [f"{name} ({qty})" for name, qty in zip(names, quantities)]
            else:
                definition["composants"] = [
                    {"nom": name, "quantite": qty} for name, qty in zip(names, quantities)
                ]
            compositions.append(definition)

        return compositions


class SalesGenerator:
    """Generate a sales export with composite sales"""

    def __init__(
        self,
        products_df: pl.DataFrame,
        compositions: List[Dict[str, Any]],
        seed: int = 42,
    ):
        self.fake = Faker("fr_FR")
        self.fake.seed_instance(seed)
        self.random = random.Random(seed)
        self.rng = np.random.default_rng(seed)
        self.products = products_df.rows(named=True)
        self.compositions = compositions

    def _line(self, order: Dict[str, Any], product_id: str, name: str, quantity: int, price: float) -> Dict[str, Any]:
        return {
            "Date": order["date"].strftime("%d/%m/%Y %H:%M:%S"),
            "Id": product_id,
            "Produit": name,
            "Qté": quantity,
            "Prix unitaire TTC": price,
            "Montant TTC": round(price * quantity, 2),
            "Commande": order["ref"],
            "Boutique": order["store"],
            "Caissier": order["cashier"],
            "Paiement": order["payment"],
        }

    def generate(self, n_orders: int = 500, composite_ratio: float = 0.3) -> pl.DataFrame:
        """Generate sale lines for n orders"""
        lines = []
        start = datetime(2024, 6, 1, 9, 0, 0)
        line_counts = self.rng.integers(1, 5, size=n_orders)

        for i in range(n_orders):
            order = {
                "ref": f"CMD-{100000 + i}",
                "date": start + timedelta(minutes=int(self.rng.integers(0, 60 * 24 * 90))),
                "store": self.random.choice(STORES),
                "cashier": self.fake.first_name(),
                "payment": self.random.choice(PAYMENTS),
            }

            if self.compositions and self.random.random() < composite_ratio:
                composition = self.random.choice(self.compositions)
                price = round(self.random.uniform(80, 600), 2)
                quantity = self.random.randint(1, 2)
                name = composition.get("nom") or f"Composition {composition['id']}"
                lines.append(self._line(order, composition["id"], name, quantity, price))
                # Exports often list the components as zero-priced rows
                if self.random.random() < 0.5:
                    for product in self.random.sample(self.products, 2):
                        lines.append(self._line(
                            order, product[PRODUCT_COLUMNS["id"]], product[PRODUCT_COLUMNS["name"]], quantity, 0.0,
                        ))
                continue

            for _ in range(int(line_counts[i])):
                product = self.random.choice(self.products)
                quantity = self.random.randint(1, 6)
                lines.append(self._line(
                    order,
                    product[PRODUCT_COLUMNS["id"]],
                    product[PRODUCT_COLUMNS["name"]],
                    quantity,
                    product[PRODUCT_COLUMNS["sell_price"]],
                ))

        return pl.DataFrame(lines)


# =============================================================================
# MAIN GENERATOR
# =============================================================================

class DataGenerator:
    """Main data generator orchestrator"""

    def __init__(self, output_dir: Optional[str] = None, seed: int = 42):
        self.output_dir = Path(output_dir or "./data/generated")
        self.seed = seed

    def generate_all(
        self,
        n_products: int = 200,
        n_compositions: int = 20,
        n_orders: int = 500,
        save: bool = True,
    ) -> Dict[str, Any]:
        """Generate the catalog, compositions and sales"""
        products_df = ProductGenerator(self.seed).generate(n_products)
        compositions = CompositionGenerator(products_df, self.seed).generate(n_compositions)
        sales_df = SalesGenerator(products_df, compositions, self.seed).generate(n_orders)

        data = {
            "products": products_df,
            "compositions": compositions,
            "sales": sales_df,
        }
        if save:
            self._save_data(data)
        return data

    def _save_data(self, data: Dict[str, Any]) -> None:
        """Save generated data to files"""
        self.output_dir.mkdir(parents=True, exist_ok=True)
        data["products"].write_csv(self.output_dir / "products.csv")
        data["sales"].write_csv(self.output_dir / "sales.csv")
        with open(self.output_dir / "compositions.json", "w", encoding="utf-8") as f:
            json.dump(data["compositions"], f, ensure_ascii=False, indent=2)
